"""Progress ledger API endpoints.

Provides routes for:
- Completion toggles and time updates
- Session and subject progress (aggregated)
- Certificate eligibility
"""

from uuid import UUID

import structlog
from fastapi import APIRouter, status

from learning_engine.auth.dependencies import CurrentUser

from .aggregator import is_certificate_eligible
from .dependencies import ProgressServiceDep
from .schemas import (
    CertificateEligibilityResponse,
    ProgressRecordResponse,
    SessionProgressResponse,
    SubjectProgressResponse,
    UpdateProgressRequest,
)


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/v1/progress", tags=["progress"])


@router.post(
    "",
    response_model=ProgressRecordResponse,
    status_code=status.HTTP_200_OK,
    summary="Update block progress",
)
async def update_progress(
    data: UpdateProgressRequest,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> ProgressRecordResponse:
    """Toggle completion and add time spent on a content block.

    Quiz, examination and assignment blocks keep their ledger completion
    state; the response carries the authoritative record.
    """
    record = await progress_service.upsert_progress(
        user_id=user.id,
        content_block_id=data.content_block_id,
        is_completed=data.is_completed,
        time_spent_seconds=data.time_spent_seconds,
        completion_data=data.completion_data,
        enrollment_id=data.enrollment_id,
    )
    return ProgressRecordResponse.from_entity(record)


@router.get(
    "/session/{session_id}",
    response_model=SessionProgressResponse,
    summary="Get session progress",
)
async def get_session_progress(
    session_id: UUID,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> SessionProgressResponse:
    """Completion statistics and per-block records for a session."""
    progress = await progress_service.get_progress(user.id, session_id)
    return SessionProgressResponse.from_progress(progress)


@router.get(
    "/subject/{subject_id}",
    response_model=SubjectProgressResponse,
    summary="Get subject progress",
)
async def get_subject_progress(
    subject_id: UUID,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> SubjectProgressResponse:
    """Whole-subject statistics with a per-session breakdown."""
    progress = await progress_service.get_subject_progress(user.id, subject_id)
    return SubjectProgressResponse.from_progress(progress)


@router.get(
    "/subject/{subject_id}/certificate",
    response_model=CertificateEligibilityResponse,
    summary="Check certificate eligibility",
)
async def get_certificate_eligibility(
    subject_id: UUID,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> CertificateEligibilityResponse:
    """Eligible only when every required block of the subject is complete."""
    progress = await progress_service.get_subject_progress(user.id, subject_id)
    eligible = is_certificate_eligible(progress.stats)

    if eligible:
        logger.info(
            "certificate_eligible",
            user_id=str(user.id),
            subject_id=str(subject_id),
        )

    return CertificateEligibilityResponse(
        subject_id=subject_id,
        is_eligible=eligible,
        completion_percentage=progress.stats.completion_percentage,
        required_blocks=progress.stats.required_blocks,
        completed_required_blocks=progress.stats.completed_required_blocks,
    )
