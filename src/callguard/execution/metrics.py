"""Per-service call metrics.

One ``ApiMetrics`` record per service key, created on the first recorded
attempt.  Records are mutated only by the orchestrator; readers get
snapshot copies.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any

from callguard.core.errors import ApiError


@dataclass
class ApiMetrics:
    """Counters and rolling statistics for one service key.

    ``average_response_time`` is a running mean in milliseconds over
    successful attempts only.
    """

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    retry_attempts: int = 0
    circuit_breaker_trips: int = 0
    average_response_time: float = 0.0
    last_error: ApiError | None = None
    last_success: datetime | None = None

    @property
    def success_rate(self) -> float:
        """Fraction of successful attempts (1.0 when nothing recorded)."""
        if self.total_requests == 0:
            return 1.0
        return self.successful_requests / self.total_requests

    def to_dict(self) -> dict[str, Any]:
        """Serialise for logging / API responses."""
        return {
            "total_requests": self.total_requests,
            "successful_requests": self.successful_requests,
            "failed_requests": self.failed_requests,
            "retry_attempts": self.retry_attempts,
            "circuit_breaker_trips": self.circuit_breaker_trips,
            "average_response_time": self.average_response_time,
            "success_rate": self.success_rate,
            "last_error": self.last_error.to_dict() if self.last_error else None,
            "last_success": self.last_success.isoformat() if self.last_success else None,
        }


class MetricsStore:
    """Keyed registry of ``ApiMetrics``."""

    def __init__(self) -> None:
        self._metrics: dict[str, ApiMetrics] = {}

    def _get_or_create(self, key: str) -> ApiMetrics:
        metrics = self._metrics.get(key)
        if metrics is None:
            metrics = ApiMetrics()
            self._metrics[key] = metrics
        return metrics

    def record_success(self, key: str, response_time_ms: float, when: datetime) -> None:
        metrics = self._get_or_create(key)
        metrics.total_requests += 1
        metrics.successful_requests += 1
        metrics.last_success = when

        n = metrics.successful_requests
        metrics.average_response_time = (metrics.average_response_time * (n - 1) + response_time_ms) / n

    def record_failure(self, key: str, error: ApiError | None = None) -> None:
        metrics = self._get_or_create(key)
        metrics.total_requests += 1
        metrics.failed_requests += 1
        if error is not None:
            metrics.last_error = error

    def record_retry(self, key: str) -> None:
        self._get_or_create(key).retry_attempts += 1

    def record_trip(self, key: str) -> None:
        self._get_or_create(key).circuit_breaker_trips += 1

    def get(self, key: str) -> ApiMetrics | None:
        """Snapshot of the metrics for ``key``, or ``None`` if never recorded."""
        metrics = self._metrics.get(key)
        return replace(metrics) if metrics is not None else None

    def all(self) -> dict[str, ApiMetrics]:
        return {key: replace(metrics) for key, metrics in self._metrics.items()}

    def reset(self, key: str) -> None:
        """Forget everything recorded for ``key``."""
        self._metrics.pop(key, None)

    def clear(self) -> None:
        self._metrics.clear()

    def keys(self) -> list[str]:
        return list(self._metrics)

    def __contains__(self, key: object) -> bool:
        return key in self._metrics

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())
