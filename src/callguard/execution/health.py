"""Health reporting for outbound services.

Each service key with recorded metrics gets a verdict:

- ``unhealthy`` if its circuit breaker is OPEN
- ``degraded``  if its success rate is below 0.8
- ``healthy``   otherwise

The overall status is the worst individual verdict.

Example:
    >>> report = orchestrator.health_report()
    >>> report.status
    <HealthStatus.DEGRADED: 'degraded'>
    >>> report.to_dict()["services"]["voice"]["success_rate"]
    0.25
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from .circuit_breaker import CircuitBreakerRegistry, CircuitBreakerState
from .metrics import ApiMetrics

DEGRADED_SUCCESS_RATE = 0.8


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(UTC)


class HealthStatus(str, Enum):
    """Health status levels."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class ServiceHealth:
    """Health verdict for a single service key."""

    status: HealthStatus
    circuit_breaker_state: CircuitBreakerState
    success_rate: float
    last_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "circuit_breaker_state": self.circuit_breaker_state.value,
            "success_rate": self.success_rate,
            "last_error": self.last_error,
        }


@dataclass
class HealthReport:
    """Overall health report."""

    status: HealthStatus
    services: dict[str, ServiceHealth]
    timestamp: datetime = field(default_factory=utcnow)

    @property
    def healthy(self) -> bool:
        """Check if overall status is healthy."""
        return self.status == HealthStatus.HEALTHY

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "status": self.status.value,
            "timestamp": self.timestamp.isoformat(),
            "services": {key: health.to_dict() for key, health in self.services.items()},
        }


def evaluate_service(metrics: ApiMetrics, state: CircuitBreakerState) -> ServiceHealth:
    """Derive the verdict for one service from its metrics and breaker state."""
    success_rate = metrics.success_rate

    if state == CircuitBreakerState.OPEN:
        status = HealthStatus.UNHEALTHY
    elif success_rate < DEGRADED_SUCCESS_RATE:
        status = HealthStatus.DEGRADED
    else:
        status = HealthStatus.HEALTHY

    return ServiceHealth(
        status=status,
        circuit_breaker_state=state,
        success_rate=success_rate,
        last_error=metrics.last_error.message if metrics.last_error else None,
    )


def build_service_health(
    metrics: Mapping[str, ApiMetrics],
    breakers: CircuitBreakerRegistry,
) -> dict[str, ServiceHealth]:
    """Verdicts for every service key present in ``metrics``."""
    health: dict[str, ServiceHealth] = {}
    for key, record in metrics.items():
        breaker = breakers.get(key)
        state = breaker.state if breaker is not None else CircuitBreakerState.CLOSED
        health[key] = evaluate_service(record, state)
    return health


def overall_status(services: Mapping[str, ServiceHealth]) -> HealthStatus:
    """Worst status across ``services`` (healthy when empty)."""
    statuses = {health.status for health in services.values()}
    if HealthStatus.UNHEALTHY in statuses:
        return HealthStatus.UNHEALTHY
    if HealthStatus.DEGRADED in statuses:
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY


def build_health_report(
    metrics: Mapping[str, ApiMetrics],
    breakers: CircuitBreakerRegistry,
) -> HealthReport:
    services = build_service_health(metrics, breakers)
    return HealthReport(status=overall_status(services), services=services)


__all__ = [
    "HealthStatus",
    "ServiceHealth",
    "HealthReport",
    "evaluate_service",
    "build_service_health",
    "build_health_report",
    "overall_status",
    "DEGRADED_SUCCESS_RATE",
]
