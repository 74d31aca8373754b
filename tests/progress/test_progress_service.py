"""Tests for ProgressService.

Covers:
- completion toggles (completed_at stamping, history on un-completion)
- additive time through the counter table
- assessable blocks keeping their ledger state
- interleaved writes to one (user, block) key
- session and subject reads
"""

import asyncio
from unittest.mock import AsyncMock
from uuid import UUID, uuid4

import pytest

from fakes import FakeCassandra, ProgressTables, fake_content_service, make_block, row
from learning_engine.content.models import CourseSession
from learning_engine.core.exceptions import NotFoundError, ValidationError
from learning_engine.progress.service import ProgressService


@pytest.fixture
def session_id() -> UUID:
    return uuid4()


@pytest.fixture
def video(session_id):
    return make_block("video", session_id=session_id, order_index=0)


@pytest.fixture
def quiz(session_id):
    return make_block("quiz", session_id=session_id, order_index=1)


@pytest.fixture
def reading(session_id):
    return make_block("text", session_id=session_id, order_index=2)


@pytest.fixture
def content_service(video, quiz, reading):
    return fake_content_service([video, quiz, reading])


@pytest.fixture
def db() -> FakeCassandra:
    return FakeCassandra()


@pytest.fixture
def progress_service(db, content_service) -> ProgressService:
    return ProgressService(
        session=db.session, keyspace="test_keyspace", content_service=content_service
    )


@pytest.fixture
def tables(db, progress_service) -> ProgressTables:
    return ProgressTables(db, progress_service)


class TestUpsertProgress:
    """Tests for upsert_progress."""

    @pytest.mark.asyncio
    async def test_time_is_additive(self, progress_service, tables, user_id, video):
        """Two 30 second updates leave 60 seconds, not 30."""
        await progress_service.upsert_progress(user_id, video.id, False, 30)
        record = await progress_service.upsert_progress(user_id, video.id, False, 30)

        assert record.time_spent_seconds == 60
        assert tables.times[(user_id, video.session_id, video.id)] == 60

    @pytest.mark.asyncio
    async def test_zero_time_skips_counter_write(
        self, progress_service, tables, db, user_id, video
    ):
        await progress_service.upsert_progress(user_id, video.id, True, 0)

        statements = [c.args[0] for c in db.session.aexecute.call_args_list]
        assert progress_service._add_time not in statements
        assert (user_id, video.session_id, video.id) not in tables.times

    @pytest.mark.asyncio
    async def test_completion_stamps_completed_at(
        self, progress_service, tables, user_id, video
    ):
        record = await progress_service.upsert_progress(
            user_id, video.id, True, 10, completion_data={"watched": 1.0}
        )

        assert record.is_completed is True
        assert record.completed_at is not None
        assert record.completion_data == {"watched": 1.0}
        assert tables.record(user_id, video).is_completed is True

    @pytest.mark.asyncio
    async def test_repeated_completion_keeps_first_completed_at(
        self, progress_service, tables, user_id, video
    ):
        first = await progress_service.upsert_progress(user_id, video.id, True)
        second = await progress_service.upsert_progress(user_id, video.id, True, 5)

        assert second.completed_at == first.completed_at

    @pytest.mark.asyncio
    async def test_uncompletion_clears_completed_at_and_keeps_history(
        self, progress_service, tables, user_id, video
    ):
        await progress_service.upsert_progress(
            user_id, video.id, True, completion_data={"watched": 1.0}
        )
        record = await progress_service.upsert_progress(user_id, video.id, False)

        assert record.is_completed is False
        assert record.completed_at is None
        assert record.completion_data == {"previous": {"watched": 1.0}}

    @pytest.mark.asyncio
    async def test_negative_time_is_rejected(self, progress_service, db, user_id, video):
        with pytest.raises(ValidationError):
            await progress_service.upsert_progress(user_id, video.id, False, -5)

        db.session.aexecute.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_block(self, progress_service, tables, user_id):
        with pytest.raises(NotFoundError):
            await progress_service.upsert_progress(user_id, uuid4(), True)

    @pytest.mark.asyncio
    async def test_direct_toggle_on_quiz_is_ignored(
        self, progress_service, tables, user_id, quiz
    ):
        """A quiz only completes through a passing attempt; time still counts."""
        record = await progress_service.upsert_progress(user_id, quiz.id, True, 40)

        assert record.is_completed is False
        assert record.completed_at is None
        assert record.time_spent_seconds == 40

    @pytest.mark.asyncio
    async def test_direct_untoggle_keeps_graded_completion(
        self, progress_service, tables, user_id, quiz
    ):
        await progress_service.record_assessment_completion(
            user_id, quiz, {"source": "quiz", "percentage": 80}
        )

        record = await progress_service.upsert_progress(user_id, quiz.id, False, 15)

        assert record.is_completed is True
        assert record.completion_data == {"source": "quiz", "percentage": 80}
        assert record.time_spent_seconds == 15


class TestConcurrentWrites:
    """Interleaved writes to one (user, block) key."""

    @pytest.mark.asyncio
    async def test_time_update_racing_completion_keeps_completion(
        self, progress_service, tables, db, user_id, quiz
    ):
        """A time update that read before a passing attempt must not undo it."""
        # An incomplete row left by an earlier failing attempt
        tables.records[(user_id, quiz.session_id, quiz.id)] = row(
            user_id=user_id,
            session_id=quiz.session_id,
            content_block_id=quiz.id,
            enrollment_id=None,
            is_completed=False,
            completion_data=None,
            completed_at=None,
            created_at=None,
            updated_at=None,
        )
        tables.times[(user_id, quiz.session_id, quiz.id)] = 10

        reached, release = db.pause_after(progress_service._get_record)
        update = asyncio.create_task(
            progress_service.upsert_progress(user_id, quiz.id, False, 15)
        )
        await reached.wait()
        await progress_service.record_assessment_completion(
            user_id, quiz, {"source": "quiz", "attempt_number": 2}
        )
        assert not update.done()
        release.set()
        await update

        stored = tables.record(user_id, quiz)
        assert stored.is_completed is True
        assert stored.completed_at is not None
        assert tables.times[(user_id, quiz.session_id, quiz.id)] == 25

    @pytest.mark.asyncio
    async def test_time_update_never_writes_completion_columns(
        self, progress_service, tables, db, user_id, quiz
    ):
        await progress_service.record_assessment_completion(user_id, quiz, {"p": 90})
        db.session.aexecute.reset_mock()

        await progress_service.upsert_progress(user_id, quiz.id, False, 5)

        statements = [c.args[0] for c in db.session.aexecute.call_args_list]
        assert progress_service._upsert_record not in statements
        assert progress_service._touch_record in statements

    @pytest.mark.asyncio
    async def test_concurrent_time_increments_both_count(
        self, progress_service, tables, db, user_id, video
    ):
        reached, release = db.pause_after(progress_service._get_record)
        first = asyncio.create_task(
            progress_service.upsert_progress(user_id, video.id, False, 30)
        )
        await reached.wait()
        await progress_service.upsert_progress(user_id, video.id, False, 45)
        release.set()
        await first

        assert tables.times[(user_id, video.session_id, video.id)] == 75

    @pytest.mark.asyncio
    async def test_gathered_time_increments(self, progress_service, tables, user_id, video):
        await asyncio.gather(
            *(
                progress_service.upsert_progress(user_id, video.id, False, 10)
                for _ in range(5)
            )
        )

        assert tables.times[(user_id, video.session_id, video.id)] == 50


class TestRecordAssessmentCompletion:
    """Tests for record_assessment_completion."""

    @pytest.mark.asyncio
    async def test_marks_block_complete_and_keeps_time(
        self, progress_service, tables, user_id, quiz
    ):
        await progress_service.upsert_progress(user_id, quiz.id, False, 90)

        record = await progress_service.record_assessment_completion(
            user_id, quiz, {"source": "quiz", "attempt_number": 1}
        )

        assert record.is_completed is True
        assert record.completed_at is not None
        assert record.time_spent_seconds == 90
        assert tables.record(user_id, quiz).is_completed is True


class TestReads:
    """Tests for session and subject progress reads."""

    @pytest.mark.asyncio
    async def test_session_progress_counts_required_blocks(
        self, progress_service, tables, user_id, session_id, video, quiz
    ):
        await progress_service.upsert_progress(user_id, video.id, True, 60)
        await progress_service.upsert_progress(user_id, quiz.id, False, 20)

        progress = await progress_service.get_progress(user_id, session_id)

        assert progress.stats.required_blocks == 3
        assert progress.stats.completed_required_blocks == 1
        assert progress.stats.completion_percentage == 33
        assert progress.stats.total_time_spent_seconds == 80
        assert {r.content_block_id for r in progress.records} == {video.id, quiz.id}

    @pytest.mark.asyncio
    async def test_time_without_record_row_is_reported(
        self, progress_service, tables, user_id, session_id, reading
    ):
        """A counter row with no record row still shows up as incomplete."""
        tables.times[(user_id, session_id, reading.id)] = 25

        records = await progress_service.get_session_records(user_id, session_id)

        assert len(records) == 1
        assert records[0].content_block_id == reading.id
        assert records[0].is_completed is False
        assert records[0].time_spent_seconds == 25

    @pytest.mark.asyncio
    async def test_subject_progress_spans_sessions(
        self, progress_service, content_service, tables, user_id, session_id, video
    ):
        subject_id = uuid4()
        other_session = uuid4()
        other_block = make_block("video", session_id=other_session)
        content_service.get_subject_blocks = AsyncMock(
            return_value=[
                (
                    CourseSession(id=session_id, subject_id=subject_id),
                    await content_service.get_session_blocks(session_id),
                ),
                (
                    CourseSession(id=other_session, subject_id=subject_id, order_index=1),
                    [other_block],
                ),
            ]
        )
        await progress_service.upsert_progress(user_id, video.id, True)

        progress = await progress_service.get_subject_progress(user_id, subject_id)

        assert progress.stats.required_blocks == 4
        assert progress.stats.completed_required_blocks == 1
        assert progress.stats.completion_percentage == 25
        assert [s.session_id for s in progress.sessions] == [session_id, other_session]
