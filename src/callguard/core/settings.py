"""Environment-driven settings for callguard.

Configuration should be explicit, validated, and environment-driven.
``CallguardSettings`` reads ``CALLGUARD_*`` variables (and ``.env``) and
turns them into an :class:`~callguard.execution.config.ErrorHandlerConfig`
layered over one of the named default profiles.

Examples:
    CALLGUARD_DEFAULT_PROFILE=llm
    CALLGUARD_RETRY__MAX_RETRIES=1
    CALLGUARD_RATE_LIMIT__BURST_LIMIT=8
    CALLGUARD_LOG_LEVEL=DEBUG

    >>> from callguard.core.settings import get_settings, build_config
    >>> config = build_config(get_settings())
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from callguard.execution.config import ErrorHandlerConfig, get_profile


class RetryOverrides(BaseModel):
    max_retries: int | None = None
    base_delay_ms: float | None = None
    max_delay_ms: float | None = None
    backoff_multiplier: float | None = None
    jitter_enabled: bool | None = None
    timeout_ms: float | None = None


class CircuitBreakerOverrides(BaseModel):
    failure_threshold: int | None = None
    recovery_timeout_ms: float | None = None
    monitoring_window_ms: float | None = None


class RateLimitOverrides(BaseModel):
    requests_per_second: int | None = None
    burst_limit: int | None = None


class CallguardSettings(BaseSettings):
    """Callguard configuration.

    All fields can be set via ``CALLGUARD_*`` environment variables; nested
    override sections use ``__`` (``CALLGUARD_RETRY__MAX_RETRIES=2``).
    """

    model_config = SettingsConfigDict(
        env_prefix="CALLGUARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )

    # ── Profile ──────────────────────────────────────────────────
    default_profile: str = Field(default="voice", description="Base profile (voice/llm/database)")

    # ── Overrides ────────────────────────────────────────────────
    retry: RetryOverrides = Field(default_factory=RetryOverrides)
    circuit_breaker: CircuitBreakerOverrides = Field(default_factory=CircuitBreakerOverrides)
    rate_limit: RateLimitOverrides = Field(default_factory=RateLimitOverrides)
    log_errors: bool | None = None
    enable_metrics: bool | None = None

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json", description="json or console")


@lru_cache(maxsize=1)
def get_settings() -> CallguardSettings:
    """Cached settings instance (call ``get_settings.cache_clear()`` in tests)."""
    return CallguardSettings()


def _overrides(model: BaseModel) -> dict[str, Any]:
    return {key: value for key, value in model.model_dump().items() if value is not None}


def build_config(settings: CallguardSettings, profile: str | None = None) -> ErrorHandlerConfig:
    """Resolve settings into an ``ErrorHandlerConfig``.

    Starts from ``profile`` (or ``settings.default_profile``) and applies
    any non-empty override.
    """
    base = get_profile(profile or settings.default_profile).to_dict()
    base["retry"].update(_overrides(settings.retry))
    base["circuit_breaker"].update(_overrides(settings.circuit_breaker))
    base["rate_limit"].update(_overrides(settings.rate_limit))
    if settings.log_errors is not None:
        base["log_errors"] = settings.log_errors
    if settings.enable_metrics is not None:
        base["enable_metrics"] = settings.enable_metrics
    return ErrorHandlerConfig.from_dict(base)


__all__ = ["CallguardSettings", "get_settings", "build_config"]
