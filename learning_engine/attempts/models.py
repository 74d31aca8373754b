"""Database models for quiz and examination attempts.

Cassandra table definitions for:
- Attempts: one row per (user, block, attempt_number), newest first

Attempt creation is an ``INSERT ... IF NOT EXISTS`` on the full key, so two
concurrent starts of the same attempt number cannot both succeed. Examinations
only ever use attempt number 1. Answers are a map column so recording one
answer is a single-cell write (last write wins per question).
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from learning_engine.core.database.execute import json_dumps, json_loads
from learning_engine.utils.timestamps import ensure_utc_aware


class AttemptState(str, Enum):
    """Attempt lifecycle: not_started -> in_progress -> submitted -> graded."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    GRADED = "graded"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

ATTEMPTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.attempts (
    user_id UUID,
    content_block_id UUID,
    attempt_number INT,
    id UUID,
    block_type TEXT,
    state TEXT,
    answers MAP<TEXT, TEXT>,
    score INT,
    max_score INT,
    percentage INT,
    is_passed BOOLEAN,
    passing_score INT,
    time_limit_minutes INT,
    time_spent_seconds INT,
    started_at TIMESTAMP,
    deadline_at TIMESTAMP,
    completed_at TIMESTAMP,
    auto_submitted BOOLEAN,
    PRIMARY KEY ((user_id, content_block_id), attempt_number)
) WITH CLUSTERING ORDER BY (attempt_number DESC)
"""

ATTEMPT_TABLES_CQL = [
    ATTEMPTS_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class Attempt:
    """One scored pass through a quiz or examination.

    Attributes:
        user_id: Learner UUID
        content_block_id: Quiz/examination block UUID
        attempt_number: 1-based, strictly increasing per (user, block)
        state: AttemptState value
        answers: question_id (str) -> answer
        score: Sum of points of correctly answered questions
        max_score: Sum of points of all questions
        percentage: round_half_up(100 * score / max_score)
        passing_score: Threshold copied from block configuration at start
        time_limit_minutes: Budget; None means unbounded
        deadline_at: started_at + time limit (server-recorded)
        auto_submitted: True when the deadline, not the learner, ended it
    """

    def __init__(
        self,
        user_id: UUID,
        content_block_id: UUID,
        attempt_number: int,
        block_type: str,
        passing_score: int,
        time_limit_minutes: int | None = None,
        id: UUID | None = None,
        state: str = AttemptState.NOT_STARTED.value,
        answers: dict[str, Any] | None = None,
        score: int | None = None,
        max_score: int | None = None,
        percentage: int | None = None,
        is_passed: bool | None = None,
        time_spent_seconds: int = 0,
        started_at: datetime | None = None,
        deadline_at: datetime | None = None,
        completed_at: datetime | None = None,
        auto_submitted: bool = False,
    ):
        self.id = id or uuid4()
        self.user_id = user_id
        self.content_block_id = content_block_id
        self.attempt_number = attempt_number
        self.block_type = block_type
        self.state = AttemptState(state).value
        self.answers = answers or {}
        self.score = score
        self.max_score = max_score
        self.percentage = percentage
        self.is_passed = is_passed
        self.passing_score = passing_score
        self.time_limit_minutes = time_limit_minutes
        self.time_spent_seconds = time_spent_seconds
        self.started_at = started_at
        self.deadline_at = deadline_at
        self.completed_at = completed_at
        self.auto_submitted = auto_submitted

    @property
    def is_in_progress(self) -> bool:
        return self.state == AttemptState.IN_PROGRESS.value

    @property
    def is_finished(self) -> bool:
        """Graded (or submitted) attempts are immutable."""
        return self.state in (AttemptState.SUBMITTED.value, AttemptState.GRADED.value)

    @property
    def time_limit(self) -> timedelta | None:
        if self.time_limit_minutes is None:
            return None
        return timedelta(minutes=self.time_limit_minutes)

    @staticmethod
    def encode_answer(answer: Any) -> str:
        """Encode one answer for the answers map column."""
        return json_dumps(answer) or "null"

    @classmethod
    def from_row(cls, row: Any) -> "Attempt":
        """Create Attempt from an attempts row."""
        return cls(
            id=row.id,
            user_id=row.user_id,
            content_block_id=row.content_block_id,
            attempt_number=row.attempt_number,
            block_type=row.block_type,
            state=row.state,
            answers={qid: json_loads(raw) for qid, raw in (row.answers or {}).items()},
            score=row.score,
            max_score=row.max_score,
            percentage=row.percentage,
            is_passed=row.is_passed,
            passing_score=row.passing_score,
            time_limit_minutes=row.time_limit_minutes,
            time_spent_seconds=row.time_spent_seconds or 0,
            started_at=ensure_utc_aware(row.started_at),
            deadline_at=ensure_utc_aware(row.deadline_at),
            completed_at=ensure_utc_aware(row.completed_at),
            auto_submitted=bool(row.auto_submitted),
        )

    def encoded_answers(self) -> dict[str, str]:
        return {qid: self.encode_answer(a) for qid, a in self.answers.items()}

    def to_completion_data(self) -> dict[str, Any]:
        """Payload stored on the ledger when this attempt completes the block."""
        return {
            "source": self.block_type,
            "attempt_id": str(self.id),
            "attempt_number": self.attempt_number,
            "score": self.score,
            "max_score": self.max_score,
            "percentage": self.percentage,
            "auto_submitted": self.auto_submitted,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }

    def __repr__(self) -> str:
        return (
            f"<Attempt {self.content_block_id}#{self.attempt_number} "
            f"state={self.state} user={self.user_id}>"
        )