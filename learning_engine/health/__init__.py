"""Health check endpoints."""

from learning_engine.health.router import router


__all__ = ["router"]
