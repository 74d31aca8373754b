"""Pydantic schemas for assignment submission and grading."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from .models import AssignmentSubmission, SubmissionStatus
from .service import BlockSubmissions


class SubmissionFile(BaseModel):
    """Reference to an uploaded file (upload itself happens elsewhere)."""

    file_name: str = Field(..., min_length=1, max_length=255)
    file_url: str = Field(..., min_length=1)
    file_size: int = Field(..., ge=0)
    uploaded_at: datetime | None = None


class RubricScore(BaseModel):
    criteria: str = Field(..., min_length=1)
    score: Decimal = Field(..., ge=0)
    max_score: Decimal = Field(..., gt=0)
    comments: str | None = None


class SubmitAssignmentRequest(BaseModel):
    """Text and/or files, as the block's submission format requires."""

    text: str | None = Field(default=None, max_length=50000)
    files: list[SubmissionFile] | None = None


class GradeSubmissionRequest(BaseModel):
    """Staff grade; max_score defaults to the assignment's points."""

    score: Decimal = Field(..., description="Points awarded")
    max_score: Decimal | None = Field(default=None, description="Points available")
    feedback: str | None = Field(default=None, max_length=10000)
    rubric_scores: list[RubricScore] | None = None


class SubmissionResponse(BaseModel):
    """Submission with its grade once graded."""

    id: UUID
    user_id: UUID
    content_block_id: UUID
    submission_text: str | None = None
    submission_files: list[SubmissionFile] | None = None
    submitted_at: datetime
    status: SubmissionStatus
    graded_by: UUID | None = None
    graded_at: datetime | None = None
    score: Decimal | None = None
    max_score: Decimal | None = None
    percentage: Decimal | None = None
    is_passed: bool | None = None
    feedback: str | None = None
    rubric_scores: list[RubricScore] | None = None

    @classmethod
    def from_entity(cls, entity: AssignmentSubmission) -> "SubmissionResponse":
        """Create response from entity."""
        return cls(
            id=entity.id,
            user_id=entity.user_id,
            content_block_id=entity.content_block_id,
            submission_text=entity.submission_text,
            submission_files=entity.submission_files,
            submitted_at=entity.submitted_at,
            status=SubmissionStatus(entity.status),
            graded_by=entity.graded_by,
            graded_at=entity.graded_at,
            score=entity.score,
            max_score=entity.max_score,
            percentage=entity.percentage,
            is_passed=entity.is_passed,
            feedback=entity.feedback,
            rubric_scores=entity.rubric_scores,
        )


class SubmissionStatusResponse(BaseModel):
    has_submitted: bool
    submission: SubmissionResponse | None = None


class BlockSubmissionsResponse(BaseModel):
    """Staff grading queue."""

    content_block_id: UUID
    pending_count: int
    graded_count: int
    submissions: list[SubmissionResponse]

    @classmethod
    def from_queue(cls, queue: BlockSubmissions) -> "BlockSubmissionsResponse":
        return cls(
            content_block_id=queue.content_block_id,
            pending_count=queue.pending_count,
            graded_count=queue.graded_count,
            submissions=[SubmissionResponse.from_entity(s) for s in queue.submissions],
        )
