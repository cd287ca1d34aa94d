"""Rate Limiting — sliding one-second window admission control.

Manifesto:
Downstream APIs (voice platforms, LLM endpoints) enforce their own rate
limits and answer with 429s or bans when exceeded.  The in-process
limiter throttles outgoing calls *before* they hit the provider.

ARCHITECTURE
────────────
::

    SlidingWindowLimiter           ─ one per service key
      ├── burst_limit              ─ hard ceiling per rolling second (reject)
      └── requests_per_second      ─ soft pacing target (delay)

    RateLimiterRegistry            ─ lazy get-or-create per key

Each ``check_limit`` call prunes, decides and records synchronously, so
on a single event loop the read-filter-append sequence is atomic.  The
only suspension point is the pacing sleep, which happens after the
request has been recorded.

Example::

    limiter = SlidingWindowLimiter(RateLimitConfig(requests_per_second=5, burst_limit=10))
    await limiter.check_limit()   # may sleep, may raise BurstLimitError
    await call_api()
"""

from __future__ import annotations

from collections.abc import Iterator

from callguard.core.errors import BurstLimitError
from callguard.core.logging import get_logger

from .clock import Clock, SystemClock
from .config import RateLimitConfig

logger = get_logger(__name__)

WINDOW_MS = 1000.0


class SlidingWindowLimiter:
    """Sliding-window limiter over admitted-request timestamps.

    Attributes:
        config: Pacing target and burst ceiling
        name: Identifier used in log lines
    """

    def __init__(
        self,
        config: RateLimitConfig | None = None,
        *,
        name: str = "default",
        clock: Clock | None = None,
    ):
        self.config = config or RateLimitConfig()
        self.name = name
        self._clock = clock or SystemClock()
        self._timestamps: list[float] = []

    def _cleanup(self, now: float) -> None:
        """Remove timestamps outside the window."""
        cutoff = now - WINDOW_MS
        self._timestamps = [ts for ts in self._timestamps if ts > cutoff]

    async def check_limit(self) -> None:
        """Admit the caller, delaying if over the pacing target.

        Raises:
            BurstLimitError: If the window already holds ``burst_limit``
                admitted requests. The request is not recorded.
        """
        now = self._clock.now()
        self._cleanup(now)

        if len(self._timestamps) >= self.config.burst_limit:
            logger.debug(
                "rate_limit.burst_rejected",
                limiter=self.name,
                in_window=len(self._timestamps),
                burst_limit=self.config.burst_limit,
            )
            raise BurstLimitError(burst_limit=self.config.burst_limit, context={"limiter": self.name})

        self._timestamps.append(now)

        if len(self._timestamps) > self.config.requests_per_second:
            oldest = self._timestamps[0]
            wait_ms = WINDOW_MS - (now - oldest)
            if wait_ms > 0:
                logger.debug(
                    "rate_limit.throttled",
                    limiter=self.name,
                    wait_ms=wait_ms,
                    in_window=len(self._timestamps),
                )
                await self._clock.sleep(wait_ms)
                self._cleanup(self._clock.now())

    @property
    def current_count(self) -> int:
        """Admitted requests in the current window."""
        self._cleanup(self._clock.now())
        return len(self._timestamps)


class RateLimiterRegistry:
    """Keyed limiters created lazily from a shared config."""

    def __init__(self, config: RateLimitConfig, *, clock: Clock | None = None):
        self._config = config
        self._clock = clock or SystemClock()
        self._limiters: dict[str, SlidingWindowLimiter] = {}

    def get(self, key: str) -> SlidingWindowLimiter | None:
        """Get limiter for key if exists."""
        return self._limiters.get(key)

    def get_or_create(self, key: str) -> SlidingWindowLimiter:
        """Get or create limiter for key."""
        limiter = self._limiters.get(key)
        if limiter is None:
            limiter = SlidingWindowLimiter(self._config, name=key, clock=self._clock)
            self._limiters[key] = limiter
        return limiter

    def __contains__(self, key: object) -> bool:
        return key in self._limiters

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._limiters))
