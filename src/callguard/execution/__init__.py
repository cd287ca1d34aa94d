"""Callguard Execution — the resilient path for every outbound call.

WHY
───
Calls to third-party services (voice platform, language model, data
store) fail in the same handful of ways: the service is down, it is
slow, it is throttling us, or we sent it something wrong.  Rather than
every client reimplementing retries and guards, ``callguard.execution``
provides one orchestrator that every call passes through.

ARCHITECTURE
────────────
::

    ResilienceOrchestrator
      ├── RateLimiterRegistry    ─ sliding-window admission per key
      ├── CircuitBreakerRegistry ─ fail-fast per key
      ├── classifier             ─ retryable / non-retryable verdicts
      ├── retry.compute_delay    ─ exponential backoff with jitter
      ├── MetricsStore           ─ counters + running mean per key
      └── health                 ─ healthy / degraded / unhealthy

    Helpers
      ├── timeout.execute_with_timeout ─ cooperative timeout race
      ├── batch.run_batch              ─ chunked fan-out
      └── clock                        ─ SystemClock / ManualClock

MODULE MAP
──────────
  1. clock.py           ─ time source abstraction
  2. config.py          ─ config structs + default profiles
  3. circuit_breaker.py ─ CLOSED / OPEN / HALF_OPEN state machine
  4. rate_limit.py      ─ burst ceiling + pacing delay
  5. classifier.py      ─ failure classification and enrichment
  6. retry.py           ─ backoff delay
  7. timeout.py         ─ timeout race
  8. metrics.py         ─ ApiMetrics + MetricsStore
  9. health.py          ─ health verdicts
 10. batch.py           ─ BatchResult + run_batch
 11. orchestrator.py    ─ ResilienceOrchestrator
"""

from .batch import BatchResult, run_batch
from .circuit_breaker import CircuitBreaker, CircuitBreakerRegistry, CircuitBreakerState
from .classifier import classify, enhance, extract_status, is_retryable
from .clock import Clock, ManualClock, SystemClock
from .config import (
    DEFAULT_PROFILES,
    CircuitBreakerConfig,
    ErrorHandlerConfig,
    RateLimitConfig,
    RetryConfig,
    get_profile,
)
from .health import HealthReport, HealthStatus, ServiceHealth, overall_status
from .metrics import ApiMetrics, MetricsStore
from .orchestrator import ResilienceOrchestrator
from .rate_limit import RateLimiterRegistry, SlidingWindowLimiter
from .retry import compute_delay
from .timeout import execute_with_timeout

__all__ = [
    # Orchestrator
    "ResilienceOrchestrator",
    # Config
    "RetryConfig",
    "CircuitBreakerConfig",
    "RateLimitConfig",
    "ErrorHandlerConfig",
    "DEFAULT_PROFILES",
    "get_profile",
    # Circuit breaker
    "CircuitBreaker",
    "CircuitBreakerRegistry",
    "CircuitBreakerState",
    # Rate limiting
    "SlidingWindowLimiter",
    "RateLimiterRegistry",
    # Classification / retry / timeout
    "classify",
    "is_retryable",
    "enhance",
    "extract_status",
    "compute_delay",
    "execute_with_timeout",
    # Metrics / health
    "ApiMetrics",
    "MetricsStore",
    "HealthStatus",
    "ServiceHealth",
    "HealthReport",
    "overall_status",
    # Batch
    "BatchResult",
    "run_batch",
    # Clock
    "Clock",
    "SystemClock",
    "ManualClock",
]
