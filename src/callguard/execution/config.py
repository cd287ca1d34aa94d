"""Configuration structs and named default profiles.

Configuration is immutable once an orchestrator is built; per-call retry
overrides produce a merged copy rather than mutating the defaults.

ARCHITECTURE
────────────
::

    ErrorHandlerConfig
      ├── retry:           RetryConfig
      ├── circuit_breaker: CircuitBreakerConfig
      ├── rate_limit:      RateLimitConfig
      ├── log_errors:      bool
      └── enable_metrics:  bool

    DEFAULT_PROFILES
      ├── "voice"     ─ fast, high-volume voice platform API
      ├── "llm"       ─ slow, low-volume language-model API
      └── "database"  ─ fast, high-volume local data store

Example::

    config = ErrorHandlerConfig.from_dict({
        "retry": {"maxRetries": 2, "baseDelayMs": 100},
        "rateLimit": {"requestsPerSecond": 5, "burstLimit": 10},
    })
    llm = get_profile("llm")
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from typing import Any

from callguard.core.errors import InvalidConfigError


def _snake(key: str) -> str:
    """Normalise ``camelCase`` keys to ``snake_case``."""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()


def _normalise(cls: type, data: Mapping[str, Any], section: str) -> dict[str, Any]:
    known = {f.name for f in fields(cls)}
    result: dict[str, Any] = {}
    for key, value in data.items():
        name = _snake(key)
        if name not in known:
            raise InvalidConfigError(f"{section}.{key}", value, f"Unknown option '{section}.{key}'")
        result[name] = value
    return result


@dataclass(frozen=True)
class RetryConfig:
    """Retry/backoff knobs.

    Attributes:
        max_retries: Retries after the initial attempt (0 = single attempt)
        base_delay_ms: Delay before the first retry
        max_delay_ms: Cap on any single delay
        backoff_multiplier: Growth factor per attempt
        jitter_enabled: Randomise each delay by up to ±25%
        timeout_ms: Advisory per-call timeout for callers using
            ``execute_with_timeout``; not applied by ``execute_with_retry``
    """

    max_retries: int = 3
    base_delay_ms: float = 1000
    max_delay_ms: float = 10000
    backoff_multiplier: float = 2.0
    jitter_enabled: bool = True
    timeout_ms: float = 30000

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise InvalidConfigError("retry.max_retries", self.max_retries, "max_retries must be non-negative")
        if self.base_delay_ms < 0:
            raise InvalidConfigError("retry.base_delay_ms", self.base_delay_ms, "base_delay_ms must be non-negative")
        if self.max_delay_ms < self.base_delay_ms:
            raise InvalidConfigError("retry.max_delay_ms", self.max_delay_ms, "max_delay_ms must be >= base_delay_ms")
        if self.backoff_multiplier < 1:
            raise InvalidConfigError(
                "retry.backoff_multiplier", self.backoff_multiplier, "backoff_multiplier must be >= 1"
            )
        if self.timeout_ms <= 0:
            raise InvalidConfigError("retry.timeout_ms", self.timeout_ms, "timeout_ms must be positive")

    def merged(self, **overrides: Any) -> RetryConfig:
        """Return a copy with ``overrides`` applied (``None`` values are ignored)."""
        if not overrides:
            return self
        changes = _normalise(RetryConfig, {k: v for k, v in overrides.items() if v is not None}, "retry")
        return replace(self, **changes)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RetryConfig:
        return cls(**_normalise(cls, data, "retry"))


@dataclass(frozen=True)
class CircuitBreakerConfig:
    """Circuit breaker knobs.

    ``monitoring_window_ms`` is accepted for compatibility but does not
    influence transitions: the breaker counts consecutive failures.
    """

    failure_threshold: int = 5
    recovery_timeout_ms: float = 60000
    monitoring_window_ms: float = 300000

    def __post_init__(self) -> None:
        if self.failure_threshold < 1:
            raise InvalidConfigError(
                "circuit_breaker.failure_threshold", self.failure_threshold, "failure_threshold must be >= 1"
            )
        if self.recovery_timeout_ms < 0:
            raise InvalidConfigError(
                "circuit_breaker.recovery_timeout_ms",
                self.recovery_timeout_ms,
                "recovery_timeout_ms must be non-negative",
            )
        if self.monitoring_window_ms <= 0:
            raise InvalidConfigError(
                "circuit_breaker.monitoring_window_ms",
                self.monitoring_window_ms,
                "monitoring_window_ms must be positive",
            )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CircuitBreakerConfig:
        return cls(**_normalise(cls, data, "circuit_breaker"))


@dataclass(frozen=True)
class RateLimitConfig:
    """Sliding-window admission knobs.

    ``burst_limit`` is a hard ceiling per rolling second;
    ``requests_per_second`` is a soft pacing target enforced by delay.
    """

    requests_per_second: int = 10
    burst_limit: int = 20

    def __post_init__(self) -> None:
        if self.requests_per_second <= 0:
            raise InvalidConfigError(
                "rate_limit.requests_per_second",
                self.requests_per_second,
                "requests_per_second must be positive",
            )
        if self.burst_limit < 1:
            raise InvalidConfigError("rate_limit.burst_limit", self.burst_limit, "burst_limit must be >= 1")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RateLimitConfig:
        return cls(**_normalise(cls, data, "rate_limit"))


@dataclass(frozen=True)
class ErrorHandlerConfig:
    """Complete configuration for one orchestrator."""

    retry: RetryConfig = field(default_factory=RetryConfig)
    circuit_breaker: CircuitBreakerConfig = field(default_factory=CircuitBreakerConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    log_errors: bool = True
    enable_metrics: bool = True

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ErrorHandlerConfig:
        """Build from the nested plain structure.

        Accepts both ``snake_case`` and ``camelCase`` keys; missing
        sections fall back to defaults.
        """
        sections = _normalise(cls, data, "config")
        kwargs: dict[str, Any] = {}
        if "retry" in sections:
            kwargs["retry"] = RetryConfig.from_dict(sections["retry"])
        if "circuit_breaker" in sections:
            kwargs["circuit_breaker"] = CircuitBreakerConfig.from_dict(sections["circuit_breaker"])
        if "rate_limit" in sections:
            kwargs["rate_limit"] = RateLimitConfig.from_dict(sections["rate_limit"])
        for flag in ("log_errors", "enable_metrics"):
            if flag in sections:
                kwargs[flag] = bool(sections[flag])
        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        return {
            "retry": {f.name: getattr(self.retry, f.name) for f in fields(self.retry)},
            "circuit_breaker": {
                f.name: getattr(self.circuit_breaker, f.name) for f in fields(self.circuit_breaker)
            },
            "rate_limit": {f.name: getattr(self.rate_limit, f.name) for f in fields(self.rate_limit)},
            "log_errors": self.log_errors,
            "enable_metrics": self.enable_metrics,
        }


DEFAULT_PROFILES: dict[str, ErrorHandlerConfig] = {
    # Voice platform: fast, high volume
    "voice": ErrorHandlerConfig(
        retry=RetryConfig(
            max_retries=3,
            base_delay_ms=1000,
            max_delay_ms=10000,
            backoff_multiplier=2,
            jitter_enabled=True,
            timeout_ms=30000,
        ),
        circuit_breaker=CircuitBreakerConfig(
            failure_threshold=5,
            recovery_timeout_ms=60000,
            monitoring_window_ms=300000,
        ),
        rate_limit=RateLimitConfig(requests_per_second=10, burst_limit=20),
    ),
    # Language model: slow, low volume, expensive
    "llm": ErrorHandlerConfig(
        retry=RetryConfig(
            max_retries=2,
            base_delay_ms=2000,
            max_delay_ms=30000,
            backoff_multiplier=2,
            jitter_enabled=True,
            timeout_ms=60000,
        ),
        circuit_breaker=CircuitBreakerConfig(
            failure_threshold=3,
            recovery_timeout_ms=120000,
            monitoring_window_ms=600000,
        ),
        rate_limit=RateLimitConfig(requests_per_second=3, burst_limit=5),
    ),
    # Data store: fast, high volume, gentle backoff
    "database": ErrorHandlerConfig(
        retry=RetryConfig(
            max_retries=5,
            base_delay_ms=500,
            max_delay_ms=5000,
            backoff_multiplier=1.5,
            jitter_enabled=True,
            timeout_ms=10000,
        ),
        circuit_breaker=CircuitBreakerConfig(
            failure_threshold=10,
            recovery_timeout_ms=30000,
            monitoring_window_ms=180000,
        ),
        rate_limit=RateLimitConfig(requests_per_second=50, burst_limit=100),
    ),
}


def get_profile(name: str) -> ErrorHandlerConfig:
    """Return a named default profile."""
    try:
        return DEFAULT_PROFILES[name]
    except KeyError:
        raise InvalidConfigError(
            "profile", name, f"Unknown profile '{name}'. Available: {', '.join(sorted(DEFAULT_PROFILES))}"
        ) from None


__all__ = [
    "RetryConfig",
    "CircuitBreakerConfig",
    "RateLimitConfig",
    "ErrorHandlerConfig",
    "DEFAULT_PROFILES",
    "get_profile",
]
