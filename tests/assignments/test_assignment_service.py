"""Tests for AssignmentService.

TDD implementation of:
- submit (format checks, duplicate rejection)
- grade (staff only, threshold, single grading)
- get_submission_status
- list_block_submissions
"""

from decimal import Decimal
from unittest.mock import Mock
from uuid import uuid4

import pytest

from fakes import AssignmentTables, FakeCassandra, fake_content_service, make_block
from learning_engine.assignments.models import SubmissionStatus
from learning_engine.assignments.service import AssignmentService
from learning_engine.auth.permissions import UserRole
from learning_engine.core.exceptions import (
    AlreadyGradedError,
    AlreadySubmittedError,
    AuthorizationError,
    InvalidBlockTypeError,
    NotFoundError,
    ValidationError,
)
from learning_engine.progress.service import ProgressService


@pytest.fixture
def essay():
    return make_block("assignment", max_points=100, submission_format="text")


@pytest.fixture
def upload():
    return make_block("assignment", max_points=10, submission_format="file")


@pytest.fixture
def open_format():
    return make_block("assignment")


@pytest.fixture
def video():
    return make_block("video")


@pytest.fixture
def db() -> FakeCassandra:
    return FakeCassandra()


@pytest.fixture
def mock_progress() -> Mock:
    return Mock(spec=ProgressService)


@pytest.fixture
def assignment_service(db, essay, upload, open_format, video, mock_progress):
    return AssignmentService(
        session=db.session,
        keyspace="test_keyspace",
        content_service=fake_content_service([essay, upload, open_format, video]),
        progress_service=mock_progress,
    )


@pytest.fixture
def tables(db, assignment_service) -> AssignmentTables:
    return AssignmentTables(db, assignment_service)


FILE = {"file_name": "report.pdf", "file_url": "https://files.example/r.pdf", "file_size": 2048}


class TestSubmit:
    """Tests for submit."""

    @pytest.mark.asyncio
    async def test_text_submission(self, assignment_service, tables, user_id, essay):
        submission = await assignment_service.submit(user_id, essay.id, text="My essay")

        assert submission.status == SubmissionStatus.SUBMITTED.value
        assert submission.submission_text == "My essay"
        assert tables.by_id[submission.id].user_id == user_id
        assert [r.id for r in tables.by_block] == [submission.id]

    @pytest.mark.asyncio
    async def test_text_format_rejects_blank(self, assignment_service, tables, user_id, essay):
        with pytest.raises(ValidationError):
            await assignment_service.submit(user_id, essay.id, text="   ", files=[FILE])

    @pytest.mark.asyncio
    async def test_file_format_requires_file(self, assignment_service, tables, user_id, upload):
        with pytest.raises(ValidationError):
            await assignment_service.submit(user_id, upload.id, text="see attached")

    @pytest.mark.asyncio
    async def test_both_format_accepts_either(
        self, assignment_service, tables, user_id, open_format
    ):
        submission = await assignment_service.submit(user_id, open_format.id, files=[FILE])
        assert submission.submission_files == [FILE]
        assert submission.submission_text is None

    @pytest.mark.asyncio
    async def test_both_format_rejects_empty(
        self, assignment_service, tables, user_id, open_format
    ):
        with pytest.raises(ValidationError):
            await assignment_service.submit(user_id, open_format.id)

    @pytest.mark.asyncio
    async def test_duplicate_submission(self, assignment_service, tables, user_id, essay):
        await assignment_service.submit(user_id, essay.id, text="first")

        with pytest.raises(AlreadySubmittedError):
            await assignment_service.submit(user_id, essay.id, text="second")
        assert len(tables.by_block) == 1

    @pytest.mark.asyncio
    async def test_non_assignment_block(self, assignment_service, tables, user_id, video):
        with pytest.raises(InvalidBlockTypeError):
            await assignment_service.submit(user_id, video.id, text="x")


class TestGrade:
    """Tests for grade."""

    @pytest.mark.asyncio
    async def test_exactly_half_passes(
        self, assignment_service, tables, mock_progress, user_id, staff_id, essay
    ):
        submission = await assignment_service.submit(user_id, essay.id, text="essay")

        graded = await assignment_service.grade(
            submission.id, staff_id, UserRole.STAFF, score=Decimal("50.0")
        )

        assert graded.is_passed is True
        assert graded.percentage == Decimal("50.00")
        assert graded.status == SubmissionStatus.GRADED.value
        mock_progress.record_assessment_completion.assert_awaited_once()
        args = mock_progress.record_assessment_completion.await_args.args
        assert args[0] == user_id
        assert args[1].id == essay.id
        assert args[2]["submission_id"] == str(submission.id)

    @pytest.mark.asyncio
    async def test_just_below_half_fails(
        self, assignment_service, tables, mock_progress, user_id, staff_id, essay
    ):
        submission = await assignment_service.submit(user_id, essay.id, text="essay")

        graded = await assignment_service.grade(
            submission.id, staff_id, "staff", score=Decimal("49.9")
        )

        assert graded.is_passed is False
        assert graded.percentage == Decimal("49.90")
        mock_progress.record_assessment_completion.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_pass_decision_uses_unrounded_percentage(
        self, assignment_service, tables, user_id, staff_id, essay
    ):
        """49.996 is stored as 50.00 but still fails."""
        submission = await assignment_service.submit(user_id, essay.id, text="essay")

        graded = await assignment_service.grade(
            submission.id, staff_id, "staff", score=Decimal("49.996")
        )

        assert graded.percentage == Decimal("50.00")
        assert graded.is_passed is False

    @pytest.mark.asyncio
    async def test_max_score_defaults_to_block_points(
        self, assignment_service, tables, user_id, staff_id, upload
    ):
        submission = await assignment_service.submit(user_id, upload.id, files=[FILE])

        graded = await assignment_service.grade(submission.id, staff_id, "hod", score=7)

        assert graded.max_score == Decimal("10")
        assert graded.percentage == Decimal("70.00")
        assert graded.is_passed is True

    @pytest.mark.asyncio
    async def test_student_cannot_grade(
        self, assignment_service, tables, db, user_id, essay
    ):
        submission = await assignment_service.submit(user_id, essay.id, text="essay")
        db.session.aexecute.reset_mock()

        with pytest.raises(AuthorizationError):
            await assignment_service.grade(submission.id, user_id, UserRole.STUDENT, 100)

        db.session.aexecute.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("score,max_score", [(-1, 100), (101, 100), (5, 0)])
    async def test_score_bounds(
        self, assignment_service, tables, user_id, staff_id, essay, score, max_score
    ):
        submission = await assignment_service.submit(user_id, essay.id, text="essay")

        with pytest.raises(ValidationError):
            await assignment_service.grade(
                submission.id, staff_id, "staff", score=score, max_score=max_score
            )

    @pytest.mark.asyncio
    async def test_cannot_grade_twice(
        self, assignment_service, tables, user_id, staff_id, essay
    ):
        submission = await assignment_service.submit(user_id, essay.id, text="essay")
        await assignment_service.grade(submission.id, staff_id, "staff", score=80)

        with pytest.raises(AlreadyGradedError):
            await assignment_service.grade(submission.id, staff_id, "staff", score=90)

        assert tables.submissions[(user_id, essay.id)].score == Decimal("80")

    @pytest.mark.asyncio
    async def test_concurrent_grade_loses_conditional_update(
        self, assignment_service, tables, db, user_id, staff_id, essay
    ):
        submission = await assignment_service.submit(user_id, essay.id, text="essay")
        tables.submissions[(user_id, essay.id)].status = SubmissionStatus.GRADED.value
        # Status read as submitted, then graded elsewhere before the update
        original = assignment_service.get_submission

        async def stale_read(submission_id):
            found = await original(submission_id)
            found.status = SubmissionStatus.SUBMITTED.value
            return found

        assignment_service.get_submission = stale_read

        with pytest.raises(AlreadyGradedError):
            await assignment_service.grade(submission.id, staff_id, "staff", score=60)

    @pytest.mark.asyncio
    async def test_unknown_submission(self, assignment_service, tables, staff_id):
        with pytest.raises(NotFoundError):
            await assignment_service.grade(uuid4(), staff_id, "staff", score=10)


class TestQueries:
    """Tests for status and grading queue reads."""

    @pytest.mark.asyncio
    async def test_status_before_and_after_submit(
        self, assignment_service, tables, user_id, essay
    ):
        assert await assignment_service.get_submission_status(user_id, essay.id) == (
            False,
            None,
        )

        await assignment_service.submit(user_id, essay.id, text="done")
        has_submitted, submission = await assignment_service.get_submission_status(
            user_id, essay.id
        )

        assert has_submitted is True
        assert submission.submission_text == "done"

    @pytest.mark.asyncio
    async def test_block_queue_counts(
        self, assignment_service, tables, staff_id, essay
    ):
        learners = [uuid4() for _ in range(3)]
        submissions = [
            await assignment_service.submit(learner, essay.id, text="answer")
            for learner in learners
        ]
        await assignment_service.grade(submissions[0].id, staff_id, "staff", score=60)

        queue = await assignment_service.list_block_submissions(essay.id)

        assert len(queue.submissions) == 3
        assert queue.graded_count == 1
        assert queue.pending_count == 2
