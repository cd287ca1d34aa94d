"""Resilience orchestrator — the single path for outbound calls.

Every call to a third-party service goes through one orchestrator
instance, labelled with a service key and an operation name.  The
orchestrator has no idea what the call does; it only decides whether it
may run, how often to try it, and what to remember about the outcome.

ARCHITECTURE
────────────
::

    execute_with_retry(op, "voice", "create_call")
      │
      ├── LogContext(service="voice", operation="create_call")
      ├── for attempt in 0..max_retries
      │     ├── RateLimiterRegistry["voice"].check_limit()   may sleep / reject
      │     ├── CircuitBreakerRegistry["voice"].execute(op)  may fail fast
      │     ├── success → MetricsStore.record_success → return
      │     └── failure → enhance → MetricsStore.record_failure
      │                   not retryable / last attempt → raise ApiError
      │                   else sleep(compute_delay(attempt))
      │
    execute_with_timeout(op, ms, label)   ─ timeout race
    execute_batch(ops, key, name, ...)    ─ chunked fan-out
    get_metrics / get_all_metrics / reset_metrics / get_health_status

Registries are owned by the instance and created lazily per key; pass
the orchestrator to collaborators explicitly instead of sharing a
module-level default.

Concurrency: single event loop, cooperative.  Per-key state is mutated
between ``await`` points, so concurrent calls for the same key can
interleave (e.g. breaker failure counts from parallel calls).  The
orchestrator is not thread-safe; use one per event loop.

Example::

    orchestrator = ResilienceOrchestrator(get_profile("llm"))
    summary = await orchestrator.execute_with_retry(
        lambda: client.summarize(transcript), "llm", "summarize"
    )
"""

from __future__ import annotations

import random
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

from callguard.core.errors import ApiError
from callguard.core.logging import LogContext, get_logger

from .batch import BatchResult, run_batch
from .circuit_breaker import CircuitBreakerRegistry, CircuitBreakerState
from .classifier import enhance
from .clock import Clock, SystemClock
from .config import ErrorHandlerConfig
from .health import HealthReport, ServiceHealth, build_health_report, build_service_health
from .metrics import ApiMetrics, MetricsStore
from .rate_limit import RateLimiterRegistry
from .retry import UniformSource, compute_delay
from .timeout import execute_with_timeout

T = TypeVar("T")

logger = get_logger(__name__)


class ResilienceOrchestrator:
    """Composes rate limiting, circuit breaking, retry and metrics.

    Parameters
    ----------
    config : ErrorHandlerConfig
        Defaults for retry, breaker and limiter settings.
    clock : Clock, optional
        Time source (defaults to :class:`SystemClock`).
    rng : UniformSource, optional
        Jitter source (defaults to the ``random`` module).
    name : str, optional
        Label used in log lines (e.g. the profile name).
    """

    def __init__(
        self,
        config: ErrorHandlerConfig | None = None,
        *,
        clock: Clock | None = None,
        rng: UniformSource | None = None,
        name: str = "default",
    ) -> None:
        self.config = config or ErrorHandlerConfig()
        self.name = name
        self._clock = clock or SystemClock()
        self._rng = rng or random
        self._breakers = CircuitBreakerRegistry(
            self.config.circuit_breaker,
            clock=self._clock,
            on_state_change=self._on_circuit_state_change,
        )
        self._limiters = RateLimiterRegistry(self.config.rate_limit, clock=self._clock)
        self._metrics = MetricsStore()

    # ── Registries ───────────────────────────────────────────────────

    @property
    def breakers(self) -> CircuitBreakerRegistry:
        return self._breakers

    @property
    def limiters(self) -> RateLimiterRegistry:
        return self._limiters

    @property
    def clock(self) -> Clock:
        return self._clock

    def _on_circuit_state_change(
        self, key: str, old: CircuitBreakerState, new: CircuitBreakerState
    ) -> None:
        if new == CircuitBreakerState.OPEN and self.config.enable_metrics:
            self._metrics.record_trip(key)

    # ── Execution ────────────────────────────────────────────────────

    async def execute_with_retry(
        self,
        operation: Callable[[], Awaitable[T]],
        service_key: str,
        operation_name: str,
        **retry_overrides: Any,
    ) -> T:
        """Run ``operation`` with rate limiting, circuit breaking and retry.

        Args:
            operation: Zero-argument async callable
            service_key: Key selecting the breaker, limiter and metrics
            operation_name: Label for errors and logs
            **retry_overrides: Per-call ``RetryConfig`` fields
                (``max_retries=0``, ``base_delay_ms=50``, ...)

        Returns:
            The operation's result.

        Raises:
            ApiError: Enriched failure of the last attempt made.
        """
        retry_config = self.config.retry.merged(**retry_overrides)
        breaker = self._breakers.get_or_create(service_key)
        limiter = self._limiters.get_or_create(service_key)
        total_attempts = retry_config.max_retries + 1

        with LogContext(orchestrator=self.name, service=service_key, operation=operation_name):
            for attempt in range(total_attempts):
                try:
                    await limiter.check_limit()

                    started = self._clock.now()
                    result = await breaker.execute(operation)
                    response_time = self._clock.now() - started
                except Exception as exc:
                    api_error = enhance(
                        exc, service_key, operation_name, attempt=attempt, timestamp=self._clock.wall()
                    )
                    self._record_failure(service_key, api_error)

                    if self.config.log_errors:
                        logger.warning(
                            "retry.attempt_failed",
                            attempt=attempt + 1,
                            max_attempts=total_attempts,
                            kind=api_error.kind.value,
                            status=api_error.status,
                            retryable=api_error.retryable,
                            error=api_error.message,
                        )

                    if not api_error.retryable or attempt >= retry_config.max_retries:
                        if api_error is exc:
                            raise
                        raise api_error from exc

                    delay = compute_delay(attempt, retry_config, self._rng)
                    if self.config.enable_metrics:
                        self._metrics.record_retry(service_key)
                    logger.debug("retry.backoff", attempt=attempt + 1, delay_ms=delay)
                    await self._clock.sleep(delay)
                    continue

                if self.config.enable_metrics:
                    self._metrics.record_success(service_key, response_time, self._clock.wall())
                if self.config.log_errors and attempt > 0:
                    logger.info("retry.recovered", retries=attempt)
                return result

        # max_retries is validated non-negative, so the loop always returns or raises
        raise AssertionError("unreachable")

    def _record_failure(self, service_key: str, error: ApiError) -> None:
        if self.config.enable_metrics:
            self._metrics.record_failure(service_key, error)

    async def execute_with_timeout(
        self,
        operation: Callable[[], Awaitable[T]],
        timeout_ms: float,
        label: str = "operation",
    ) -> T:
        """Race ``operation()`` against a ``timeout_ms`` timer.

        Raises:
            OperationTimeoutError: ``"<label> timed out after <timeout_ms>ms"``
        """
        return await execute_with_timeout(operation, timeout_ms, label, clock=self._clock)

    async def execute_batch(
        self,
        operations: Sequence[Callable[[], Awaitable[T]]],
        service_key: str,
        operation_name: str,
        *,
        concurrency: int = 5,
        fail_fast: bool = False,
        collect_errors: bool = True,
    ) -> BatchResult[T]:
        """Run ``operations`` in chunks of ``concurrency``, each through retry."""
        return await run_batch(
            self.execute_with_retry,
            operations,
            service_key,
            operation_name,
            concurrency=concurrency,
            fail_fast=fail_fast,
            collect_errors=collect_errors,
        )

    # ── Inspection ───────────────────────────────────────────────────

    def get_metrics(self, service_key: str) -> ApiMetrics | None:
        return self._metrics.get(service_key)

    def get_all_metrics(self) -> dict[str, ApiMetrics]:
        return self._metrics.all()

    def reset_metrics(self, service_key: str) -> None:
        """Forget metrics for ``service_key``; breaker and limiter state is kept."""
        self._metrics.reset(service_key)

    def reset_all_metrics(self) -> None:
        self._metrics.clear()

    def get_circuit_state(self, service_key: str) -> CircuitBreakerState:
        breaker = self._breakers.get(service_key)
        return breaker.state if breaker is not None else CircuitBreakerState.CLOSED

    def get_health_status(self) -> dict[str, ServiceHealth]:
        """Per-service verdicts for every key with recorded metrics."""
        return build_service_health(self._metrics.all(), self._breakers)

    def health_report(self) -> HealthReport:
        return build_health_report(self._metrics.all(), self._breakers)

    def __repr__(self) -> str:
        return f"ResilienceOrchestrator(name={self.name!r}, services={self._metrics.keys()!r})"


__all__ = ["ResilienceOrchestrator"]
