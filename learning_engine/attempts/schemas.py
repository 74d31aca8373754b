"""Pydantic schemas for quiz and examination attempts."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from learning_engine.content.models import Question

from .models import Attempt, AttemptState
from .service import AttemptOverview


class LearnerQuestionResponse(BaseModel):
    """Question as shown to a learner (no correct answer, no explanation)."""

    id: UUID
    question_text: str
    question_type: str
    options: Any = None
    points: int
    difficulty: str
    order_index: int

    @classmethod
    def from_entity(cls, entity: Question) -> "LearnerQuestionResponse":
        return cls(
            id=entity.id,
            question_text=entity.question_text,
            question_type=entity.question_type,
            options=entity.options,
            points=entity.points,
            difficulty=entity.difficulty,
            order_index=entity.order_index,
        )


class AttemptResponse(BaseModel):
    """Attempt state; score fields are set once graded."""

    id: UUID
    content_block_id: UUID
    attempt_number: int
    block_type: str
    state: AttemptState
    answers: dict[str, Any]
    score: int | None = None
    max_score: int | None = None
    percentage: int | None = None
    is_passed: bool | None = None
    passing_score: int
    time_limit_minutes: int | None = None
    time_spent_seconds: int = 0
    started_at: datetime | None = None
    deadline_at: datetime | None = None
    completed_at: datetime | None = None
    auto_submitted: bool = False
    time_expired: bool = Field(
        default=False,
        description="Set when the deadline passed during this request and the attempt was auto-submitted",
    )

    @classmethod
    def from_entity(cls, entity: Attempt, time_expired: bool = False) -> "AttemptResponse":
        """Create response from entity."""
        return cls(
            id=entity.id,
            content_block_id=entity.content_block_id,
            attempt_number=entity.attempt_number,
            block_type=entity.block_type,
            state=AttemptState(entity.state),
            answers=entity.answers,
            score=entity.score,
            max_score=entity.max_score,
            percentage=entity.percentage,
            is_passed=entity.is_passed,
            passing_score=entity.passing_score,
            time_limit_minutes=entity.time_limit_minutes,
            time_spent_seconds=entity.time_spent_seconds,
            started_at=entity.started_at,
            deadline_at=entity.deadline_at,
            completed_at=entity.completed_at,
            auto_submitted=entity.auto_submitted,
            time_expired=time_expired,
        )


class AttemptQuestionsResponse(BaseModel):
    """Question set plus attempt eligibility for a quiz or examination."""

    content_block_id: UUID
    block_type: str
    title: str
    instructions: str
    time_limit_minutes: int | None
    passing_score: int
    max_attempts: int | None
    attempt_count: int
    can_attempt: bool
    questions: list[LearnerQuestionResponse]
    in_progress: AttemptResponse | None = None
    last_result: AttemptResponse | None = None

    @classmethod
    def from_overview(cls, overview: AttemptOverview) -> "AttemptQuestionsResponse":
        block = overview.block
        return cls(
            content_block_id=block.id,
            block_type=block.type,
            title=block.title,
            instructions=getattr(block.content_data, "instructions", ""),
            time_limit_minutes=overview.policy.time_limit_minutes,
            passing_score=overview.policy.passing_score,
            max_attempts=overview.policy.max_attempts,
            attempt_count=overview.attempt_count,
            can_attempt=overview.can_attempt,
            questions=[LearnerQuestionResponse.from_entity(q) for q in overview.questions],
            in_progress=(
                AttemptResponse.from_entity(overview.in_progress)
                if overview.in_progress
                else None
            ),
            last_result=(
                AttemptResponse.from_entity(overview.last_result)
                if overview.last_result
                else None
            ),
        )


class RecordAnswerRequest(BaseModel):
    """One answer; shape depends on the question type."""

    question_id: str = Field(..., min_length=1)
    answer: Any = None


class SubmitAttemptRequest(BaseModel):
    """Submit (and grade) the attempt."""

    answers: dict[str, Any] = Field(default_factory=dict)
    time_spent_seconds: int | None = Field(default=None, ge=0)
    allow_unanswered: bool = Field(
        default=False, description="Confirm submission with unanswered questions"
    )
    auto_submitted: bool = Field(
        default=False, description="Sent by the client timer when the budget ran out"
    )
