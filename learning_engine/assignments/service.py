"""Assignment submission and grading service layer.

Business logic for:
- Learner submission checked against the block's submission format
- Staff grading with percentage threshold pass/fail
- Completion events to the progress ledger on passing grades
- Submission status and staff grading queues
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

import structlog

from learning_engine.auth.permissions import UserRole, is_staff
from learning_engine.content.models import AssignmentData, ContentBlock, SubmissionFormat
from learning_engine.content.service import ContentService
from learning_engine.core.database.execute import execute_bounded, json_dumps
from learning_engine.core.exceptions import (
    AlreadyGradedError,
    AlreadySubmittedError,
    AuthorizationError,
    InvalidBlockTypeError,
    NotFoundError,
    ValidationError,
)
from learning_engine.progress.service import ProgressService
from learning_engine.utils.rounding import percent_of, round_half_up

from .models import AssignmentSubmission, SubmissionStatus


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


@dataclass
class BlockSubmissions:
    """Grading queue of one assignment block."""

    content_block_id: UUID
    submissions: list[AssignmentSubmission] = field(default_factory=list)

    @property
    def pending_count(self) -> int:
        return sum(1 for s in self.submissions if not s.is_graded)

    @property
    def graded_count(self) -> int:
        return sum(1 for s in self.submissions if s.is_graded)


class AssignmentService:
    """Service for assignment submissions and grading."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        content_service: ContentService,
        progress_service: ProgressService,
        passing_percentage: int = 50,
        timeout: float = 5.0,
    ):
        self.session = session
        self.keyspace = keyspace
        self.content_service = content_service
        self.progress_service = progress_service
        self.passing_percentage = Decimal(passing_percentage)
        self.timeout = timeout
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_submission = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.assignment_submissions
            WHERE user_id = ? AND content_block_id = ?
        """)

        # Rejects a second submission for the same (user, block)
        self._insert_submission = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.assignment_submissions
            (user_id, content_block_id, id, submission_text, submission_files,
             submitted_at, status)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._insert_by_id = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.assignment_submissions_by_id
            (id, user_id, content_block_id)
            VALUES (?, ?, ?)
        """)

        self._insert_by_block = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.assignment_submissions_by_block
            (content_block_id, submitted_at, user_id, id)
            VALUES (?, ?, ?, ?)
        """)

        self._get_by_id = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.assignment_submissions_by_id
            WHERE id = ?
        """)

        self._get_by_block = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.assignment_submissions_by_block
            WHERE content_block_id = ?
        """)

        # Grading happens at most once
        self._grade_submission = self.session.prepare(f"""
            UPDATE {self.keyspace}.assignment_submissions
            SET status = ?, graded_by = ?, graded_at = ?, score = ?, max_score = ?,
                percentage = ?, is_passed = ?, feedback = ?, rubric_scores = ?
            WHERE user_id = ? AND content_block_id = ?
            IF status = ?
        """)

    async def _execute(self, statement: Any, parameters: list[Any] | None = None) -> Any:
        return await execute_bounded(self.session, statement, parameters, self.timeout)

    async def _get_assignment_block(self, block_id: UUID) -> ContentBlock:
        block = await self.content_service.get_block(block_id)
        if not isinstance(block.content_data, AssignmentData):
            raise InvalidBlockTypeError(f"Block {block_id} is not an assignment")
        return block

    async def _read(self, user_id: UUID, block_id: UUID) -> AssignmentSubmission | None:
        result = await self._execute(self._get_submission, [user_id, block_id])
        row = result.one()
        return AssignmentSubmission.from_row(row) if row else None

    # ==========================================================================
    # Submission
    # ==========================================================================

    @staticmethod
    def _check_format(
        submission_format: SubmissionFormat,
        text: str | None,
        files: list[dict[str, Any]] | None,
    ) -> None:
        has_text = bool(text and text.strip())
        has_files = bool(files)

        if submission_format is SubmissionFormat.TEXT and not has_text:
            raise ValidationError("This assignment requires a text submission")
        if submission_format is SubmissionFormat.FILE and not has_files:
            raise ValidationError("This assignment requires at least one file")
        if submission_format is SubmissionFormat.BOTH and not (has_text or has_files):
            raise ValidationError("Provide a text answer or at least one file")

    async def submit(
        self,
        user_id: UUID,
        block_id: UUID,
        text: str | None = None,
        files: list[dict[str, Any]] | None = None,
    ) -> AssignmentSubmission:
        """Submit an assignment.

        Raises:
            NotFoundError: Unknown block
            InvalidBlockTypeError: Block is not an assignment
            ValidationError: Payload does not fit the submission format
            AlreadySubmittedError: A submission already exists
        """
        block = await self._get_assignment_block(block_id)
        self._check_format(block.content_data.submission_format, text, files)

        submission = AssignmentSubmission(
            user_id=user_id,
            content_block_id=block.id,
            submission_text=text if text and text.strip() else None,
            submission_files=files or None,
        )

        result = await self._execute(
            self._insert_submission,
            [
                submission.user_id,
                submission.content_block_id,
                submission.id,
                submission.submission_text,
                json_dumps(submission.submission_files),
                submission.submitted_at,
                submission.status,
            ],
        )
        if not result.was_applied:
            raise AlreadySubmittedError

        await self._execute(
            self._insert_by_id,
            [submission.id, submission.user_id, submission.content_block_id],
        )
        await self._execute(
            self._insert_by_block,
            [
                submission.content_block_id,
                submission.submitted_at,
                submission.user_id,
                submission.id,
            ],
        )

        logger.info(
            "assignment_submitted",
            user_id=str(user_id),
            content_block_id=str(block.id),
            submission_id=str(submission.id),
            has_text=submission.submission_text is not None,
            file_count=len(submission.submission_files or []),
        )
        return submission

    # ==========================================================================
    # Grading
    # ==========================================================================

    async def get_submission(self, submission_id: UUID) -> AssignmentSubmission:
        """Get a submission by id.

        Raises:
            NotFoundError: Unknown submission
        """
        result = await self._execute(self._get_by_id, [submission_id])
        row = result.one()
        if not row:
            raise NotFoundError("Submission not found")

        submission = await self._read(row.user_id, row.content_block_id)
        if submission is None or submission.id != submission_id:
            raise NotFoundError("Submission not found")
        return submission

    async def grade(
        self,
        submission_id: UUID,
        grader_id: UUID,
        grader_role: UserRole | str,
        score: Decimal | float | int,
        max_score: Decimal | float | int | None = None,
        feedback: str | None = None,
        rubric_scores: list[dict[str, Any]] | None = None,
    ) -> AssignmentSubmission:
        """Grade a submission (staff only).

        ``max_score`` defaults to the block's configured points. The pass
        decision uses the unrounded percentage; the stored percentage is
        rounded to two decimals.

        Raises:
            AuthorizationError: Grader is not staff
            ValidationError: Score outside 0..max_score or max_score <= 0
            NotFoundError: Unknown submission
            AlreadyGradedError: Submission is not in submitted status
        """
        if not is_staff(grader_role):
            logger.warning(
                "grading_forbidden",
                submission_id=str(submission_id),
                grader_id=str(grader_id),
                grader_role=str(grader_role),
            )
            raise AuthorizationError("Only staff can grade assignments")

        submission = await self.get_submission(submission_id)
        if submission.is_graded:
            raise AlreadyGradedError

        block = await self._get_assignment_block(submission.content_block_id)
        if max_score is None:
            max_score = block.content_data.max_points

        score = Decimal(str(score))
        max_score = Decimal(str(max_score))
        if max_score <= 0:
            raise ValidationError("max_score must be greater than zero")
        if score < 0 or score > max_score:
            raise ValidationError("score must be between 0 and max_score")

        percentage = percent_of(score, max_score)
        submission.status = SubmissionStatus.GRADED.value
        submission.graded_by = grader_id
        submission.graded_at = datetime.now(UTC)
        submission.score = score
        submission.max_score = max_score
        submission.percentage = round_half_up(percentage, 2)
        submission.is_passed = percentage >= self.passing_percentage
        submission.feedback = feedback
        submission.rubric_scores = rubric_scores

        result = await self._execute(
            self._grade_submission,
            [
                submission.status,
                submission.graded_by,
                submission.graded_at,
                submission.score,
                submission.max_score,
                submission.percentage,
                submission.is_passed,
                submission.feedback,
                json_dumps(submission.rubric_scores),
                submission.user_id,
                submission.content_block_id,
                SubmissionStatus.SUBMITTED.value,
            ],
        )
        if not result.was_applied:
            raise AlreadyGradedError

        logger.info(
            "assignment_graded",
            submission_id=str(submission.id),
            content_block_id=str(submission.content_block_id),
            grader_id=str(grader_id),
            percentage=str(submission.percentage),
            is_passed=submission.is_passed,
        )

        if submission.is_passed:
            await self.progress_service.record_assessment_completion(
                submission.user_id, block, submission.to_completion_data()
            )
        return submission

    # ==========================================================================
    # Queries
    # ==========================================================================

    async def get_submission_status(
        self, user_id: UUID, block_id: UUID
    ) -> tuple[bool, AssignmentSubmission | None]:
        """Whether the learner has submitted, and the submission if so."""
        block = await self._get_assignment_block(block_id)
        submission = await self._read(user_id, block.id)
        return submission is not None, submission

    async def list_block_submissions(self, block_id: UUID) -> BlockSubmissions:
        """All submissions of an assignment block, oldest first."""
        block = await self._get_assignment_block(block_id)
        result = await self._execute(self._get_by_block, [block.id])

        queue = BlockSubmissions(content_block_id=block.id)
        for row in result:
            submission = await self._read(row.user_id, block.id)
            if submission is not None:
                queue.submissions.append(submission)
        return queue
