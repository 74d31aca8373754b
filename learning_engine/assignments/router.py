"""Assignment submission and grading API endpoints.

Provides routes for:
- Learner submission and status
- Staff grading and grading queue
"""

from uuid import UUID

from fastapi import APIRouter, status

from learning_engine.auth.dependencies import CurrentUser, StaffUser

from .dependencies import AssignmentServiceDep
from .schemas import (
    BlockSubmissionsResponse,
    GradeSubmissionRequest,
    SubmissionResponse,
    SubmissionStatusResponse,
    SubmitAssignmentRequest,
)


router = APIRouter(prefix="/v1/assignments", tags=["assignments"])


@router.post(
    "/{block_id}/submit",
    response_model=SubmissionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit assignment",
)
async def submit_assignment(
    block_id: UUID,
    data: SubmitAssignmentRequest,
    assignment_service: AssignmentServiceDep,
    user: CurrentUser,
) -> SubmissionResponse:
    """Submit text and/or files; a second submission is rejected."""
    submission = await assignment_service.submit(
        user_id=user.id,
        block_id=block_id,
        text=data.text,
        files=[f.model_dump(mode="json") for f in data.files] if data.files else None,
    )
    return SubmissionResponse.from_entity(submission)


@router.get(
    "/{block_id}/status",
    response_model=SubmissionStatusResponse,
    summary="Get submission status",
)
async def get_submission_status(
    block_id: UUID,
    assignment_service: AssignmentServiceDep,
    user: CurrentUser,
) -> SubmissionStatusResponse:
    """Whether the caller has submitted, with the submission and grade if any."""
    has_submitted, submission = await assignment_service.get_submission_status(
        user.id, block_id
    )
    return SubmissionStatusResponse(
        has_submitted=has_submitted,
        submission=SubmissionResponse.from_entity(submission) if submission else None,
    )


@router.post(
    "/submissions/{submission_id}/grade",
    response_model=SubmissionResponse,
    summary="Grade submission (staff)",
)
async def grade_submission(
    submission_id: UUID,
    data: GradeSubmissionRequest,
    assignment_service: AssignmentServiceDep,
    user: CurrentUser,
) -> SubmissionResponse:
    """Grade a submission; 50% or more passes and completes the block."""
    submission = await assignment_service.grade(
        submission_id=submission_id,
        grader_id=user.id,
        grader_role=user.role,
        score=data.score,
        max_score=data.max_score,
        feedback=data.feedback,
        rubric_scores=(
            [r.model_dump(mode="json") for r in data.rubric_scores]
            if data.rubric_scores
            else None
        ),
    )
    return SubmissionResponse.from_entity(submission)


@router.get(
    "/{block_id}/submissions",
    response_model=BlockSubmissionsResponse,
    summary="List block submissions (staff)",
)
async def list_block_submissions(
    block_id: UUID,
    assignment_service: AssignmentServiceDep,
    user: StaffUser,
) -> BlockSubmissionsResponse:
    """Grading queue of an assignment block with pending/graded counts."""
    queue = await assignment_service.list_block_submissions(block_id)
    return BlockSubmissionsResponse.from_queue(queue)
