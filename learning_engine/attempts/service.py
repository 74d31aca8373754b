"""Quiz and examination attempt service layer.

Business logic for:
- Question delivery without correct answers
- Attempt-count policy (single-attempt examinations, quiz retry limits)
- Answer recording, explicit submission and deadline auto-submission
- Completion events to the progress ledger on passing attempts
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any
from uuid import UUID

import structlog

from learning_engine.content.models import (
    ContentBlock,
    ContentBlockType,
    ExaminationData,
    Question,
    QuizData,
)
from learning_engine.content.service import ContentService
from learning_engine.core.database.execute import execute_bounded
from learning_engine.core.exceptions import (
    AlreadyAttemptedError,
    AttemptLimitReachedError,
    AttemptNotInProgressError,
    InvalidBlockTypeError,
    TimeoutExpiredError,
)
from learning_engine.progress.service import ProgressService
from learning_engine.utils.timestamps import utcnow

from .models import Attempt, AttemptState
from .state_machine import AttemptStateMachine


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


@dataclass
class AttemptPolicy:
    """Limits read from block configuration, with configured defaults applied."""

    passing_score: int
    time_limit_minutes: int | None
    max_attempts: int | None  # None = unlimited


@dataclass
class AttemptOverview:
    """What a learner sees before (or while) taking an assessment."""

    block: ContentBlock
    questions: list[Question]
    policy: AttemptPolicy
    attempt_count: int
    can_attempt: bool
    in_progress: Attempt | None = None
    last_result: Attempt | None = None
    attempts: list[Attempt] = field(default_factory=list)


class AttemptService:
    """Service for quiz and examination attempts."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        content_service: ContentService,
        progress_service: ProgressService,
        exam_time_limit_minutes: int = 60,
        exam_passing_score: int = 70,
        quiz_passing_score: int = 70,
        grace_seconds: int = 0,
        timeout: float = 5.0,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.keyspace = keyspace
        self.content_service = content_service
        self.progress_service = progress_service
        self.exam_time_limit_minutes = exam_time_limit_minutes
        self.exam_passing_score = exam_passing_score
        self.quiz_passing_score = quiz_passing_score
        self.grace_seconds = grace_seconds
        self.timeout = timeout
        self.clock = clock
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._list_attempts = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.attempts
            WHERE user_id = ? AND content_block_id = ?
        """)

        # Atomic guard: one row per (user, block, attempt_number)
        self._insert_attempt = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.attempts
            (user_id, content_block_id, attempt_number, id, block_type, state,
             answers, passing_score, time_limit_minutes, time_spent_seconds,
             started_at, deadline_at, auto_submitted)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._set_answer = self.session.prepare(f"""
            UPDATE {self.keyspace}.attempts SET answers[?] = ?
            WHERE user_id = ? AND content_block_id = ? AND attempt_number = ?
            IF state = ?
        """)

        # Only one terminal path (explicit submit or auto-submit) can win
        self._finish_attempt = self.session.prepare(f"""
            UPDATE {self.keyspace}.attempts
            SET state = ?, answers = ?, score = ?, max_score = ?, percentage = ?,
                is_passed = ?, time_spent_seconds = ?, completed_at = ?,
                auto_submitted = ?
            WHERE user_id = ? AND content_block_id = ? AND attempt_number = ?
            IF state = ?
        """)

    async def _execute(self, statement: Any, parameters: list[Any] | None = None) -> Any:
        return await execute_bounded(self.session, statement, parameters, self.timeout)

    # ==========================================================================
    # Policy
    # ==========================================================================

    def policy_for(self, block: ContentBlock) -> AttemptPolicy:
        """Resolve attempt limits for a quiz or examination block.

        Raises:
            InvalidBlockTypeError: For any other block type
        """
        data = block.content_data
        if isinstance(data, ExaminationData):
            return AttemptPolicy(
                passing_score=(
                    data.passing_score
                    if data.passing_score is not None
                    else self.exam_passing_score
                ),
                time_limit_minutes=data.time_limit_minutes or self.exam_time_limit_minutes,
                max_attempts=1,
            )
        if isinstance(data, QuizData):
            return AttemptPolicy(
                passing_score=(
                    data.passing_score
                    if data.passing_score is not None
                    else self.quiz_passing_score
                ),
                time_limit_minutes=data.time_limit_minutes,
                max_attempts=data.max_attempts if data.allow_retry else 1,
            )
        raise InvalidBlockTypeError(
            f"Attempts are only available for quizzes and examinations, not {block.type}"
        )

    @staticmethod
    def _can_start(policy: AttemptPolicy, attempts: list[Attempt]) -> bool:
        if attempts and attempts[0].is_in_progress:
            return True
        return policy.max_attempts is None or len(attempts) < policy.max_attempts

    # ==========================================================================
    # Loading
    # ==========================================================================

    async def _load(
        self, user_id: UUID, block_id: UUID
    ) -> tuple[ContentBlock, AttemptPolicy, list[Question], list[Attempt]]:
        block = await self.content_service.get_block(block_id)
        policy = self.policy_for(block)
        questions = await self.content_service.get_questions(block.id)
        attempts = await self._get_attempts(user_id, block.id)
        return block, policy, questions, attempts

    async def _get_attempts(self, user_id: UUID, block_id: UUID) -> list[Attempt]:
        """Attempts of a user on a block, newest first."""
        result = await self._execute(self._list_attempts, [user_id, block_id])
        attempts = [Attempt.from_row(row) for row in result]
        return sorted(attempts, key=lambda a: a.attempt_number, reverse=True)

    def _machine(self, attempt: Attempt, questions: list[Question]) -> AttemptStateMachine:
        return AttemptStateMachine(attempt, questions, self.grace_seconds)

    async def _settle_overdue(
        self,
        block: ContentBlock,
        questions: list[Question],
        attempts: list[Attempt],
    ) -> list[Attempt]:
        """Auto-submit the latest attempt if its deadline has passed."""
        if not attempts or not attempts[0].is_in_progress:
            return attempts

        machine = self._machine(attempts[0], questions)
        if machine.check_deadline(self.clock()):
            attempts[0] = await self._finish(block, attempts[0])
        return attempts

    # ==========================================================================
    # Operations
    # ==========================================================================

    async def get_attempt_questions(self, user_id: UUID, block_id: UUID) -> AttemptOverview:
        """Questions (without answers), attempt count and whether a new attempt is allowed."""
        block, policy, questions, attempts = await self._load(user_id, block_id)
        attempts = await self._settle_overdue(block, questions, attempts)

        in_progress = attempts[0] if attempts and attempts[0].is_in_progress else None
        finished = [a for a in attempts if a.is_finished]

        return AttemptOverview(
            block=block,
            questions=questions,
            policy=policy,
            attempt_count=len(finished),
            can_attempt=self._can_start(policy, attempts),
            in_progress=in_progress,
            last_result=finished[0] if finished else None,
            attempts=attempts,
        )

    async def start_attempt(self, user_id: UUID, block_id: UUID) -> Attempt:
        """Start a new attempt or resume the one in progress.

        Raises:
            InvalidBlockTypeError: Block is not a quiz or examination
            AlreadyAttemptedError: Examination already attempted
            AttemptLimitReachedError: Quiz has no attempts left
        """
        block, policy, questions, attempts = await self._load(user_id, block_id)
        attempts = await self._settle_overdue(block, questions, attempts)

        if attempts and attempts[0].is_in_progress:
            logger.info(
                "attempt_resumed",
                user_id=str(user_id),
                content_block_id=str(block.id),
                attempt_number=attempts[0].attempt_number,
            )
            return attempts[0]

        return await self._create_attempt(
            user_id, block, policy, questions, attempts, self.clock()
        )

    async def _create_attempt(
        self,
        user_id: UUID,
        block: ContentBlock,
        policy: AttemptPolicy,
        questions: list[Question],
        attempts: list[Attempt],
        started_at: datetime,
    ) -> Attempt:
        self._enforce_policy(block, policy, attempts)

        attempt = Attempt(
            user_id=user_id,
            content_block_id=block.id,
            attempt_number=attempts[0].attempt_number + 1 if attempts else 1,
            block_type=block.type,
            passing_score=policy.passing_score,
            time_limit_minutes=policy.time_limit_minutes,
        )
        self._machine(attempt, questions).start(started_at)

        result = await self._execute(
            self._insert_attempt,
            [
                attempt.user_id,
                attempt.content_block_id,
                attempt.attempt_number,
                attempt.id,
                attempt.block_type,
                attempt.state,
                attempt.encoded_answers(),
                attempt.passing_score,
                attempt.time_limit_minutes,
                attempt.time_spent_seconds,
                attempt.started_at,
                attempt.deadline_at,
                attempt.auto_submitted,
            ],
        )

        if not result.was_applied:
            # Another request created this attempt number first
            if block.block_type is ContentBlockType.EXAMINATION:
                logger.warning(
                    "examination_attempt_rejected",
                    user_id=str(user_id),
                    content_block_id=str(block.id),
                )
                raise AlreadyAttemptedError
            latest = await self._get_attempts(user_id, block.id)
            if latest and latest[0].is_in_progress:
                return latest[0]
            raise AttemptLimitReachedError

        logger.info(
            "attempt_started",
            user_id=str(user_id),
            content_block_id=str(block.id),
            block_type=block.type,
            attempt_number=attempt.attempt_number,
            deadline_at=attempt.deadline_at.isoformat() if attempt.deadline_at else None,
        )
        return attempt

    @staticmethod
    def _enforce_policy(
        block: ContentBlock, policy: AttemptPolicy, attempts: list[Attempt]
    ) -> None:
        if block.block_type is ContentBlockType.EXAMINATION:
            if attempts:
                prior = attempts[0]
                raise AlreadyAttemptedError(
                    details={
                        "attempt_id": str(prior.id),
                        "percentage": prior.percentage,
                        "is_passed": prior.is_passed,
                    }
                )
            return

        if policy.max_attempts is not None and len(attempts) >= policy.max_attempts:
            raise AttemptLimitReachedError(
                details={"max_attempts": policy.max_attempts, "attempt_count": len(attempts)}
            )

    async def record_answer(
        self,
        user_id: UUID,
        block_id: UUID,
        question_id: str,
        answer: Any,
    ) -> Attempt:
        """Record (or overwrite) one answer of the in-progress attempt.

        Raises:
            AttemptNotInProgressError: No attempt in progress
            MalformedAnswerError: Unknown question or wrong answer shape
            TimeoutExpiredError: Deadline passed; the attempt was auto-submitted
                and is carried in ``details["attempt"]``
        """
        block, _, questions, attempts = await self._load(user_id, block_id)
        if not attempts or not attempts[0].is_in_progress:
            raise AttemptNotInProgressError

        attempt = attempts[0]
        machine = self._machine(attempt, questions)
        if machine.check_deadline(self.clock()):
            attempt = await self._finish(block, attempt)
            raise TimeoutExpiredError(details={"attempt": attempt})

        machine.record_answer(question_id, answer)
        qid = str(question_id)

        result = await self._execute(
            self._set_answer,
            [
                qid,
                Attempt.encode_answer(attempt.answers[qid]),
                attempt.user_id,
                attempt.content_block_id,
                attempt.attempt_number,
                AttemptState.IN_PROGRESS.value,
            ],
        )
        if not result.was_applied:
            raise AttemptNotInProgressError

        logger.debug(
            "answer_recorded",
            user_id=str(user_id),
            content_block_id=str(block.id),
            question_id=qid,
        )
        return attempt

    async def submit_attempt(
        self,
        user_id: UUID,
        block_id: UUID,
        answers: dict[str, Any] | None = None,
        time_spent_seconds: int | None = None,
        allow_unanswered: bool = False,
        auto_submitted: bool = False,
    ) -> Attempt:
        """Submit and grade the attempt.

        Creates and submits an attempt in one step when none is in progress.
        Past the deadline the recorded answers are graded as an auto-submission
        and the late payload is discarded. ``auto_submitted`` from the client is
        honoured only within the grace window of the deadline; earlier it is an
        explicit submit.

        Raises:
            InvalidBlockTypeError: Block is not a quiz or examination
            AlreadyAttemptedError: Examination already attempted
            AttemptLimitReachedError: Quiz has no attempts left
            MalformedAnswerError: Unknown question or wrong answer shape
            UnansweredQuestionsError: Gaps on an explicit submit without override
        """
        block, policy, questions, attempts = await self._load(user_id, block_id)
        now = self.clock()

        if attempts and attempts[0].is_in_progress:
            attempt = attempts[0]
            machine = self._machine(attempt, questions)
            if machine.check_deadline(now):
                return await self._finish(block, attempt)
        else:
            started_at = now - timedelta(seconds=time_spent_seconds or 0)
            attempt = await self._create_attempt(
                user_id, block, policy, questions, attempts, started_at
            )
            machine = self._machine(attempt, questions)

        # A client timer only counts near the server-side deadline
        auto = auto_submitted and machine.is_due(now)
        if auto_submitted and not auto:
            logger.warning(
                "early_auto_submit_treated_as_explicit",
                user_id=str(user_id),
                content_block_id=str(block.id),
                attempt_id=str(attempt.id),
            )

        machine.record_answers(answers or {})
        machine.submit(
            now,
            allow_unanswered=allow_unanswered,
            time_spent_seconds=time_spent_seconds,
            auto=auto,
        )
        return await self._finish(block, attempt)

    async def expire_attempt(self, user_id: UUID, block_id: UUID) -> Attempt | None:
        """Auto-submit an overdue attempt with whatever answers were recorded.

        Returns the graded attempt, or None when nothing was overdue.
        """
        block, _, questions, attempts = await self._load(user_id, block_id)
        if not attempts or not attempts[0].is_in_progress:
            return None
        if not self._machine(attempts[0], questions).check_deadline(self.clock()):
            return None
        return await self._finish(block, attempts[0])

    async def _finish(self, block: ContentBlock, attempt: Attempt) -> Attempt:
        """Persist a graded attempt and emit completion on a pass."""
        result = await self._execute(
            self._finish_attempt,
            [
                attempt.state,
                attempt.encoded_answers(),
                attempt.score,
                attempt.max_score,
                attempt.percentage,
                attempt.is_passed,
                attempt.time_spent_seconds,
                attempt.completed_at,
                attempt.auto_submitted,
                attempt.user_id,
                attempt.content_block_id,
                attempt.attempt_number,
                AttemptState.IN_PROGRESS.value,
            ],
        )

        if not result.was_applied:
            # The other terminal path already graded this attempt
            stored = await self._get_attempts(attempt.user_id, attempt.content_block_id)
            for candidate in stored:
                if candidate.attempt_number == attempt.attempt_number:
                    return candidate
            raise AttemptNotInProgressError

        logger.info(
            "attempt_auto_submitted" if attempt.auto_submitted else "attempt_submitted",
            user_id=str(attempt.user_id),
            content_block_id=str(block.id),
            attempt_number=attempt.attempt_number,
            score=attempt.score,
            max_score=attempt.max_score,
            percentage=attempt.percentage,
            is_passed=attempt.is_passed,
        )

        if attempt.is_passed:
            await self.progress_service.record_assessment_completion(
                attempt.user_id, block, attempt.to_completion_data()
            )
        return attempt
