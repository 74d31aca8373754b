"""Database models for assignment submissions.

Cassandra table definitions for:
- Submissions: one per (user, assignment block)
- Lookup by submission id (grading)
- Lookup by block (staff grading queue)

Architecture: dual write on submit. Status lives only in the primary table,
where the conditional updates run.
"""

from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from learning_engine.core.database.execute import json_loads
from learning_engine.utils.timestamps import ensure_utc_aware


class SubmissionStatus(str, Enum):
    """Submission lifecycle (graded is terminal)."""

    SUBMITTED = "submitted"
    GRADED = "graded"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

ASSIGNMENT_SUBMISSIONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.assignment_submissions (
    user_id UUID,
    content_block_id UUID,
    id UUID,
    submission_text TEXT,
    submission_files TEXT,
    submitted_at TIMESTAMP,
    status TEXT,
    graded_by UUID,
    graded_at TIMESTAMP,
    score DECIMAL,
    max_score DECIMAL,
    percentage DECIMAL,
    is_passed BOOLEAN,
    feedback TEXT,
    rubric_scores TEXT,
    PRIMARY KEY ((user_id, content_block_id))
)
"""

SUBMISSIONS_BY_ID_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.assignment_submissions_by_id (
    id UUID PRIMARY KEY,
    user_id UUID,
    content_block_id UUID
)
"""

SUBMISSIONS_BY_BLOCK_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.assignment_submissions_by_block (
    content_block_id UUID,
    submitted_at TIMESTAMP,
    user_id UUID,
    id UUID,
    PRIMARY KEY (content_block_id, submitted_at, user_id)
) WITH CLUSTERING ORDER BY (submitted_at ASC, user_id ASC)
"""

ASSIGNMENT_TABLES_CQL = [
    ASSIGNMENT_SUBMISSIONS_TABLE_CQL,
    SUBMISSIONS_BY_ID_TABLE_CQL,
    SUBMISSIONS_BY_BLOCK_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class AssignmentSubmission:
    """A learner's submission for an assignment block, with its grade.

    ``submission_files`` items are ``{file_name, file_url, file_size,
    uploaded_at}``; ``rubric_scores`` items are ``{criteria, score,
    max_score, comments}``.
    """

    def __init__(
        self,
        user_id: UUID,
        content_block_id: UUID,
        id: UUID | None = None,
        submission_text: str | None = None,
        submission_files: list[dict[str, Any]] | None = None,
        submitted_at: datetime | None = None,
        status: str = SubmissionStatus.SUBMITTED.value,
        graded_by: UUID | None = None,
        graded_at: datetime | None = None,
        score: Decimal | None = None,
        max_score: Decimal | None = None,
        percentage: Decimal | None = None,
        is_passed: bool | None = None,
        feedback: str | None = None,
        rubric_scores: list[dict[str, Any]] | None = None,
    ):
        self.id = id or uuid4()
        self.user_id = user_id
        self.content_block_id = content_block_id
        self.submission_text = submission_text
        self.submission_files = submission_files
        self.submitted_at = submitted_at or datetime.now(UTC)
        self.status = SubmissionStatus(status).value
        self.graded_by = graded_by
        self.graded_at = graded_at
        self.score = score
        self.max_score = max_score
        self.percentage = percentage
        self.is_passed = is_passed
        self.feedback = feedback
        self.rubric_scores = rubric_scores

    @property
    def is_graded(self) -> bool:
        return self.status == SubmissionStatus.GRADED.value

    @classmethod
    def from_row(cls, row: Any) -> "AssignmentSubmission":
        """Create AssignmentSubmission from an assignment_submissions row."""
        return cls(
            id=row.id,
            user_id=row.user_id,
            content_block_id=row.content_block_id,
            submission_text=row.submission_text,
            submission_files=json_loads(row.submission_files),
            submitted_at=ensure_utc_aware(row.submitted_at),
            status=row.status,
            graded_by=row.graded_by,
            graded_at=ensure_utc_aware(row.graded_at),
            score=row.score,
            max_score=row.max_score,
            percentage=row.percentage,
            is_passed=row.is_passed,
            feedback=row.feedback,
            rubric_scores=json_loads(row.rubric_scores),
        )

    def to_completion_data(self) -> dict[str, Any]:
        """Payload stored on the ledger when a passing grade completes the block."""
        return {
            "source": "assignment",
            "submission_id": str(self.id),
            "score": str(self.score),
            "max_score": str(self.max_score),
            "percentage": str(self.percentage),
            "graded_by": str(self.graded_by),
            "graded_at": self.graded_at.isoformat() if self.graded_at else None,
        }

    def __repr__(self) -> str:
        return (
            f"<AssignmentSubmission {self.id} block={self.content_block_id} "
            f"status={self.status}>"
        )
