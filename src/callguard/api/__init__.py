"""HTTP surface for callguard (FastAPI)."""

from callguard.api.health import create_health_router

__all__ = ["create_health_router"]
