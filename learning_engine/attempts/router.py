"""Quiz and examination attempt API endpoints.

Provides routes for:
- Question delivery with attempt eligibility
- Starting (or resuming) an attempt
- Recording answers
- Submitting for grading
"""

from uuid import UUID

from fastapi import APIRouter, status

from learning_engine.auth.dependencies import CurrentUser
from learning_engine.core.exceptions import TimeoutExpiredError

from .dependencies import AttemptServiceDep
from .schemas import (
    AttemptQuestionsResponse,
    AttemptResponse,
    RecordAnswerRequest,
    SubmitAttemptRequest,
)


router = APIRouter(prefix="/v1/attempts", tags=["attempts"])


@router.get(
    "/{block_id}/questions",
    response_model=AttemptQuestionsResponse,
    summary="Get attempt questions",
)
async def get_attempt_questions(
    block_id: UUID,
    attempt_service: AttemptServiceDep,
    user: CurrentUser,
) -> AttemptQuestionsResponse:
    """Questions without correct answers, prior-attempt count and can_attempt flag."""
    overview = await attempt_service.get_attempt_questions(user.id, block_id)
    return AttemptQuestionsResponse.from_overview(overview)


@router.post(
    "/{block_id}/start",
    response_model=AttemptResponse,
    status_code=status.HTTP_200_OK,
    summary="Start or resume an attempt",
)
async def start_attempt(
    block_id: UUID,
    attempt_service: AttemptServiceDep,
    user: CurrentUser,
) -> AttemptResponse:
    """Start an attempt; an attempt already in progress is returned as is."""
    attempt = await attempt_service.start_attempt(user.id, block_id)
    return AttemptResponse.from_entity(attempt)


@router.put(
    "/{block_id}/answers",
    response_model=AttemptResponse,
    summary="Record an answer",
)
async def record_answer(
    block_id: UUID,
    data: RecordAnswerRequest,
    attempt_service: AttemptServiceDep,
    user: CurrentUser,
) -> AttemptResponse:
    """Record an answer; past the deadline the graded attempt comes back instead."""
    try:
        attempt = await attempt_service.record_answer(
            user.id, block_id, data.question_id, data.answer
        )
    except TimeoutExpiredError as e:
        return AttemptResponse.from_entity(e.details["attempt"], time_expired=True)
    return AttemptResponse.from_entity(attempt)


@router.post(
    "/{block_id}/submit",
    response_model=AttemptResponse,
    status_code=status.HTTP_200_OK,
    summary="Submit attempt",
)
async def submit_attempt(
    block_id: UUID,
    data: SubmitAttemptRequest,
    attempt_service: AttemptServiceDep,
    user: CurrentUser,
) -> AttemptResponse:
    """Submit and grade synchronously.

    Unanswered questions are rejected with 422 unless ``allow_unanswered``
    confirms the submission.
    """
    attempt = await attempt_service.submit_attempt(
        user.id,
        block_id,
        answers=data.answers,
        time_spent_seconds=data.time_spent_seconds,
        allow_unanswered=data.allow_unanswered,
        auto_submitted=data.auto_submitted,
    )
    return AttemptResponse.from_entity(attempt)
