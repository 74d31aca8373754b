"""FastAPI dependencies for assignments."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import AssignmentService


async def get_assignment_service(request: Request) -> AssignmentService:
    """Get assignment service from app state."""
    app_state = request.app.state
    if not hasattr(app_state, "assignment_service") or not app_state.assignment_service:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Assignment service not available",
        )
    return app_state.assignment_service


AssignmentServiceDep = Annotated[AssignmentService, Depends(get_assignment_service)]
