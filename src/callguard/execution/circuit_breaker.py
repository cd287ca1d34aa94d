"""Circuit breaker pattern for outbound calls.

Stops calling a failing dependency for a cooldown period instead of
piling up more failing calls.

States:
    CLOSED: Normal operation, calls pass through
    OPEN: Failing fast, calls rejected without being attempted
    HALF_OPEN: Probing whether the service recovered

Transitions:
    CLOSED    --[failure_threshold consecutive failures]--> OPEN
    OPEN      --[recovery timeout elapsed on next call]---> HALF_OPEN
    HALF_OPEN --[2 successes]-----------------------------> CLOSED
    any       --[failure_count >= failure_threshold]------> OPEN

Example:
    >>> from callguard.execution.circuit_breaker import CircuitBreaker
    >>> from callguard.execution.config import CircuitBreakerConfig
    >>>
    >>> breaker = CircuitBreaker(CircuitBreakerConfig(failure_threshold=3))
    >>> result = await breaker.execute(lambda: client.get("/calls"))
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterator
from enum import Enum
from typing import TypeVar

from callguard.core.errors import CircuitOpenError
from callguard.core.logging import get_logger

from .clock import Clock, SystemClock
from .config import CircuitBreakerConfig

T = TypeVar("T")

logger = get_logger(__name__)

# Consecutive successes needed in HALF_OPEN before closing
HALF_OPEN_SUCCESS_THRESHOLD = 2


class CircuitBreakerState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Rejecting calls
    HALF_OPEN = "half_open"  # Testing recovery


StateListener = Callable[[CircuitBreakerState, CircuitBreakerState], None]


class CircuitBreaker:
    """Per-service failure tracker gating whether a call may run.

    Attributes:
        name: Identifier for this circuit (the service key)
        config: Threshold and recovery settings
    """

    def __init__(
        self,
        config: CircuitBreakerConfig | None = None,
        *,
        name: str = "default",
        clock: Clock | None = None,
        on_state_change: StateListener | None = None,
    ):
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self._clock = clock or SystemClock()
        self._on_state_change = on_state_change

        self._state = CircuitBreakerState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_time: float | None = None

    @property
    def state(self) -> CircuitBreakerState:
        """Current state (no timeout-driven transition happens on read)."""
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def success_count(self) -> int:
        return self._success_count

    @property
    def last_failure_time(self) -> float | None:
        return self._last_failure_time

    def _should_attempt_reset(self) -> bool:
        if self._last_failure_time is None:
            return False
        elapsed = self._clock.now() - self._last_failure_time
        return elapsed > self.config.recovery_timeout_ms

    def _transition_to(self, new_state: CircuitBreakerState) -> None:
        old_state = self._state
        if old_state == new_state:
            return
        self._state = new_state
        logger.info(
            "circuit.state_changed",
            circuit=self.name,
            old=old_state.value,
            new=new_state.value,
            failure_count=self._failure_count,
        )
        if self._on_state_change is not None:
            self._on_state_change(old_state, new_state)

    def _on_success(self) -> None:
        self._failure_count = 0
        if self._state == CircuitBreakerState.HALF_OPEN:
            self._success_count += 1
            if self._success_count >= HALF_OPEN_SUCCESS_THRESHOLD:
                self._transition_to(CircuitBreakerState.CLOSED)
                self._success_count = 0

    def _on_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = self._clock.now()
        self._success_count = 0

        if self._failure_count >= self.config.failure_threshold:
            self._transition_to(CircuitBreakerState.OPEN)

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` through the breaker.

        Raises:
            CircuitOpenError: If the circuit is open and the recovery
                timeout has not elapsed. ``operation`` is not invoked.
        """
        if self._state == CircuitBreakerState.OPEN:
            if self._should_attempt_reset():
                self._transition_to(CircuitBreakerState.HALF_OPEN)
            else:
                remaining = None
                if self._last_failure_time is not None:
                    remaining = max(
                        0.0,
                        self.config.recovery_timeout_ms - (self._clock.now() - self._last_failure_time),
                    )
                raise CircuitOpenError(remaining_ms=remaining, context={"circuit": self.name})

        try:
            result = await operation()
        except Exception:
            self._on_failure()
            raise

        self._on_success()
        return result

    def reset(self) -> None:
        """Reset circuit to closed state."""
        self._transition_to(CircuitBreakerState.CLOSED)
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_time = None


class CircuitBreakerRegistry:
    """Keyed breakers created lazily from a shared config."""

    def __init__(
        self,
        config: CircuitBreakerConfig,
        *,
        clock: Clock | None = None,
        on_state_change: Callable[[str, CircuitBreakerState, CircuitBreakerState], None] | None = None,
    ):
        self._config = config
        self._clock = clock or SystemClock()
        self._on_state_change = on_state_change
        self._breakers: dict[str, CircuitBreaker] = {}

    def get(self, name: str) -> CircuitBreaker | None:
        """Get a circuit breaker by name, returns None if not found."""
        return self._breakers.get(name)

    def get_or_create(self, name: str) -> CircuitBreaker:
        """Get or create a circuit breaker by name."""
        breaker = self._breakers.get(name)
        if breaker is None:
            listener = None
            if self._on_state_change is not None:
                callback = self._on_state_change

                def listener(old: CircuitBreakerState, new: CircuitBreakerState) -> None:
                    callback(name, old, new)

            breaker = CircuitBreaker(self._config, name=name, clock=self._clock, on_state_change=listener)
            self._breakers[name] = breaker
        return breaker

    def __contains__(self, name: object) -> bool:
        return name in self._breakers

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._breakers))

    def __len__(self) -> int:
        return len(self._breakers)

    def items(self) -> list[tuple[str, CircuitBreaker]]:
        return list(self._breakers.items())

    def reset_all(self) -> None:
        """Reset all circuit breakers."""
        for breaker in self._breakers.values():
            breaker.reset()
