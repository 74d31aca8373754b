"""Health check endpoints."""

from fastapi import APIRouter, Request

from learning_engine.config import get_settings


router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def liveness() -> dict[str, str]:
    """Liveness probe - checks if the application is running."""
    return {"status": "alive"}


@router.get("/ready")
async def readiness(request: Request) -> dict[str, str | bool]:
    """Readiness probe - ready once the engine services are wired."""
    settings = get_settings()
    state = request.app.state
    services_ready = all(
        getattr(state, name, None) is not None
        for name in ("progress_service", "attempt_service", "assignment_service")
    )
    return {
        "status": "ready" if services_ready else "degraded",
        "database": services_ready,
        "environment": settings.environment,
        "debug": settings.debug,
    }


@router.get("")
async def health() -> dict[str, str]:
    """General health check endpoint."""
    settings = get_settings()
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }
