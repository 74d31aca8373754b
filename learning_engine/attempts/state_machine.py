"""Attempt state machine.

    not_started --start--> in_progress --submit / deadline--> submitted --> graded

Pure: no store access and no clock reads; every transition takes ``now``.
Scoring runs synchronously on entering ``submitted`` and the attempt moves
straight on to ``graded``.
"""

from datetime import datetime, timedelta
from typing import Any

import structlog

from learning_engine.content.models import Question
from learning_engine.core.exceptions import (
    AttemptNotInProgressError,
    MalformedAnswerError,
    UnansweredQuestionsError,
)

from .models import Attempt, AttemptState
from .scoring import is_passing, is_unanswered, score_answers, validate_answer


logger = structlog.get_logger(__name__)


class AttemptStateMachine:
    """Drives one attempt through its lifecycle.

    Args:
        attempt: Attempt to drive (mutated in place)
        questions: Question bank of the block
        grace_seconds: Tolerance past ``deadline_at`` before the attempt
            counts as overdue
    """

    def __init__(
        self,
        attempt: Attempt,
        questions: list[Question],
        grace_seconds: int = 0,
    ):
        self.attempt = attempt
        self.questions = {str(q.id): q for q in questions}
        self.grace = timedelta(seconds=grace_seconds)

    @property
    def state(self) -> AttemptState:
        return AttemptState(self.attempt.state)

    def _require(self, state: AttemptState) -> None:
        if self.state is not state:
            raise AttemptNotInProgressError(
                f"Attempt is {self.attempt.state}, expected {state.value}"
            )

    def start(self, now: datetime) -> Attempt:
        """Enter in_progress and fix the deadline from the time budget."""
        self._require(AttemptState.NOT_STARTED)
        self.attempt.state = AttemptState.IN_PROGRESS.value
        self.attempt.started_at = now
        limit = self.attempt.time_limit
        self.attempt.deadline_at = now + limit if limit is not None else None
        return self.attempt

    def is_overdue(self, now: datetime) -> bool:
        deadline = self.attempt.deadline_at
        return deadline is not None and now >= deadline + self.grace

    def is_due(self, now: datetime) -> bool:
        """Within the grace window before the deadline, or past it."""
        deadline = self.attempt.deadline_at
        return deadline is not None and now >= deadline - self.grace

    def record_answer(self, question_id: str, answer: Any) -> Attempt:
        """Store an answer (overwrites any previous one for the question).

        Raises:
            AttemptNotInProgressError: Outside in_progress
            MalformedAnswerError: Unknown question or wrong answer shape
        """
        self._require(AttemptState.IN_PROGRESS)
        question = self.questions.get(str(question_id))
        if question is None:
            raise MalformedAnswerError(f"Unknown question {question_id}")
        self.attempt.answers[str(question_id)] = validate_answer(question, answer)
        return self.attempt

    def record_answers(self, answers: dict[str, Any]) -> Attempt:
        for question_id, answer in answers.items():
            self.record_answer(question_id, answer)
        return self.attempt

    def unanswered_question_ids(self) -> list[str]:
        return [
            qid
            for qid in self.questions
            if is_unanswered(self.attempt.answers.get(qid))
        ]

    def submit(
        self,
        now: datetime,
        allow_unanswered: bool = False,
        time_spent_seconds: int | None = None,
        auto: bool = False,
    ) -> Attempt:
        """Submit and grade.

        Explicit submissions refuse unanswered questions unless
        ``allow_unanswered`` is set; auto-submission never validates.

        Raises:
            AttemptNotInProgressError: Outside in_progress
            UnansweredQuestionsError: Explicit submit with gaps and no override
        """
        self._require(AttemptState.IN_PROGRESS)

        if not auto and not allow_unanswered:
            missing = self.unanswered_question_ids()
            if missing:
                raise UnansweredQuestionsError(missing)

        attempt = self.attempt
        attempt.state = AttemptState.SUBMITTED.value
        attempt.completed_at = now
        attempt.auto_submitted = auto
        attempt.time_spent_seconds = self._time_spent(now, time_spent_seconds)

        result = score_answers(self.questions.values(), attempt.answers)
        attempt.score = result.score
        attempt.max_score = result.max_score
        attempt.percentage = result.percentage
        attempt.is_passed = is_passing(result.percentage, attempt.passing_score)
        attempt.state = AttemptState.GRADED.value

        logger.debug(
            "attempt_graded",
            attempt_id=str(attempt.id),
            score=attempt.score,
            max_score=attempt.max_score,
            percentage=attempt.percentage,
            is_passed=attempt.is_passed,
            auto_submitted=auto,
        )
        return attempt

    def check_deadline(self, now: datetime) -> bool:
        """Auto-submit an overdue in-progress attempt; True if it did."""
        if self.state is not AttemptState.IN_PROGRESS or not self.is_overdue(now):
            return False
        self.submit(now, auto=True)
        return True

    def _time_spent(self, now: datetime, reported: int | None) -> int:
        """Server elapsed time, capped at the budget; client figure if smaller."""
        started = self.attempt.started_at or now
        elapsed = max(0, int((now - started).total_seconds()))
        limit = self.attempt.time_limit
        if limit is not None:
            elapsed = min(elapsed, int(limit.total_seconds()))
        if reported is not None and 0 <= reported < elapsed:
            return reported
        return elapsed
