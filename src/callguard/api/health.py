"""FastAPI Router — health and metrics for outbound services.

ARCHITECTURE
────────────
::

    create_health_router({"voice": voice, "llm": llm, "database": db}) → APIRouter
      GET  /health                     ─ overall status + per-service verdicts
      GET  /health?service=voice       ─ one service
      GET  /health?detailed=true       ─ include metrics
      POST /health {"action": "reset-metrics", "service": "voice"}
      POST /health {"action": "reset-metrics"}   ─ reset everything
      POST /health {"action": "get-metrics"}
      POST /health {"action": "health-check"}  ─ run active checks

    Orchestrators are injected; the router holds no state of its own.
    Checks are keyed by orchestrator name and run through that
    orchestrator's timeout race as "<name>-health-check".

Responses use the ``{"success": bool, "data": ...}`` envelope.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field

from callguard.core.errors import InvalidConfigError
from callguard.core.logging import get_logger
from callguard.execution.health import ServiceHealth, overall_status
from callguard.execution.orchestrator import ResilienceOrchestrator

logger = get_logger(__name__)


class HealthActionRequest(BaseModel):
    """Request body for health management actions."""

    action: str
    service: str | None = None


class ServiceHealthResponse(BaseModel):
    status: str
    circuit_breaker_state: str
    success_rate: float
    last_error: str | None = None

    @classmethod
    def from_health(cls, health: ServiceHealth) -> "ServiceHealthResponse":
        return cls(**health.to_dict())


class CheckResult(BaseModel):
    """Outcome of one active health check."""

    available: bool
    response_time: float | None = None
    error: str | None = None


class Envelope(BaseModel):
    success: bool = True
    data: Any = None
    message: str | None = None
    error: str | None = None


def _collect_health(orchestrators: Mapping[str, ResilienceOrchestrator]) -> dict[str, ServiceHealth]:
    health: dict[str, ServiceHealth] = {}
    for orchestrator in orchestrators.values():
        health.update(orchestrator.get_health_status())
    return health


def _owner(
    orchestrators: Mapping[str, ResilienceOrchestrator], service: str
) -> ResilienceOrchestrator | None:
    for orchestrator in orchestrators.values():
        if orchestrator.get_metrics(service) is not None:
            return orchestrator
    return None


def _all_metrics(orchestrators: Mapping[str, ResilienceOrchestrator]) -> dict[str, dict[str, Any]]:
    return {
        name: {key: metrics.to_dict() for key, metrics in orchestrator.get_all_metrics().items()}
        for name, orchestrator in orchestrators.items()
    }


async def _run_check(
    orchestrator: ResilienceOrchestrator,
    name: str,
    check: Callable[[], Awaitable[Any]],
    timeout_ms: float,
) -> CheckResult:
    clock = orchestrator.clock
    started = clock.now()
    try:
        await orchestrator.execute_with_timeout(check, timeout_ms, f"{name}-health-check")
    except Exception as exc:
        logger.warning("health.check_failed", check=name, error=str(exc))
        return CheckResult(available=False, error=str(exc) or exc.__class__.__name__)
    return CheckResult(available=True, response_time=clock.now() - started)


def create_health_router(
    orchestrators: Mapping[str, ResilienceOrchestrator],
    checks: Mapping[str, Callable[[], Awaitable[Any]]] | None = None,
    check_timeout_ms: float = 5000,
    prefix: str = "/api/health",
    tags: list[str] | None = None,
) -> APIRouter:
    """Create the health router over a set of named orchestrators.

    Args:
        orchestrators: Orchestrators keyed by profile/group name
        checks: Active checks keyed by orchestrator name, run on
            ``{"action": "health-check"}``
        check_timeout_ms: Timeout for each check
        prefix: URL prefix (default: /api/health)
        tags: OpenAPI tags (default: ["health"])

    Example:
        >>> app = FastAPI()
        >>> app.include_router(create_health_router({"voice": voice_orchestrator}))
    """
    active_checks = dict(checks or {})
    for name in active_checks:
        if name not in orchestrators:
            raise InvalidConfigError("health.checks", name, f"No orchestrator named '{name}' for health check")

    router = APIRouter(prefix=prefix, tags=tags or ["health"])

    @router.get("", response_model=Envelope)
    async def get_health(
        service: str | None = Query(None),
        detailed: bool = Query(False),
    ) -> Envelope:
        """System health, or a single service's health when ``service`` is known."""
        services = _collect_health(orchestrators)

        if service and service in services:
            data: dict[str, Any] = {
                "service": service,
                "health": ServiceHealthResponse.from_health(services[service]).model_dump(),
            }
            if detailed:
                owner = _owner(orchestrators, service)
                metrics = owner.get_metrics(service) if owner is not None else None
                if metrics is not None:
                    data["metrics"] = metrics.to_dict()
            return Envelope(data=data)

        data = {
            "status": overall_status(services).value,
            "services": {
                key: ServiceHealthResponse.from_health(health).model_dump() for key, health in services.items()
            },
            "timestamp": datetime.now(UTC).isoformat(),
        }
        if detailed:
            data["metrics"] = _all_metrics(orchestrators)
        return Envelope(data=data)

    @router.post("", response_model=Envelope)
    async def manage_health(request: HealthActionRequest) -> Envelope:
        """Reset or dump metrics, or run the active checks."""
        if request.action == "reset-metrics":
            if request.service:
                owner = _owner(orchestrators, request.service)
                if owner is None:
                    raise HTTPException(400, "Invalid service name")
                owner.reset_metrics(request.service)
                logger.info("health.metrics_reset", service=request.service)
                return Envelope(message=f"Metrics reset for service: {request.service}")

            for orchestrator in orchestrators.values():
                orchestrator.reset_all_metrics()
            logger.info("health.metrics_reset_all")
            return Envelope(message="All metrics reset successfully")

        if request.action == "get-metrics":
            return Envelope(data=_all_metrics(orchestrators))

        if request.action == "health-check":
            results: dict[str, Any] = {}
            for name, check in active_checks.items():
                outcome = await _run_check(orchestrators[name], name, check, check_timeout_ms)
                results[name] = outcome.model_dump(exclude_none=True)
            return Envelope(data=results)

        raise HTTPException(400, "Invalid action")

    return router


__all__ = ["create_health_router", "HealthActionRequest", "ServiceHealthResponse", "CheckResult", "Envelope"]
