"""FastAPI dependencies for attempts."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import AttemptService


async def get_attempt_service(request: Request) -> AttemptService:
    """Get attempt service from app state."""
    app_state = request.app.state
    if not hasattr(app_state, "attempt_service") or not app_state.attempt_service:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Attempt service not available",
        )
    return app_state.attempt_service


AttemptServiceDep = Annotated[AttemptService, Depends(get_attempt_service)]
