"""Tests for ContentService and content models."""

from uuid import uuid4

import pytest
from pydantic import ValidationError as PydanticValidationError

from fakes import FakeCassandra, FakeResult, row
from learning_engine.content.models import (
    AssignmentData,
    ContentBlock,
    QuizData,
    SubmissionFormat,
    parse_content_data,
)
from learning_engine.content.service import ContentService
from learning_engine.core.exceptions import NotFoundError


def block_row(session_id, block_type="video", content_data="{}", **overrides):
    fields = {
        "id": uuid4(),
        "session_id": session_id,
        "type": block_type,
        "title": f"{block_type} block",
        "content_data": content_data,
        "order_index": 0,
        "is_required": True,
        "estimated_time": None,
        "is_active": True,
        "created_at": None,
        "updated_at": None,
    }
    fields.update(overrides)
    return row(**fields)


@pytest.fixture
def db() -> FakeCassandra:
    return FakeCassandra()


@pytest.fixture
def content_service(db) -> ContentService:
    return ContentService(session=db.session, keyspace="test_keyspace")


class TestContentData:
    """Per-type configuration parsing."""

    def test_quiz_aliases(self) -> None:
        data = parse_content_data(
            "quiz", '{"timeLimit": 10, "passingScore": 60, "allowRetry": false}'
        )

        assert isinstance(data, QuizData)
        assert data.time_limit_minutes == 10
        assert data.passing_score == 60
        assert data.allow_retry is False

    def test_assignment_defaults(self) -> None:
        data = parse_content_data("assignment", None)

        assert isinstance(data, AssignmentData)
        assert data.max_points == 100
        assert data.submission_format is SubmissionFormat.BOTH

    def test_passing_score_bounds(self) -> None:
        with pytest.raises(PydanticValidationError):
            parse_content_data("examination", {"passingScore": 120})

    def test_block_kinds(self) -> None:
        session_id = uuid4()
        quiz = ContentBlock(id=uuid4(), session_id=session_id, type="quiz")
        assignment = ContentBlock(id=uuid4(), session_id=session_id, type="assignment")
        video = ContentBlock(id=uuid4(), session_id=session_id, type="video")

        assert quiz.is_attemptable and quiz.is_assessable
        assert not assignment.is_attemptable and assignment.is_assessable
        assert not video.is_assessable


class TestContentService:
    """Lookups over the content tables."""

    @pytest.mark.asyncio
    async def test_get_block(self, content_service, db):
        stored = block_row(uuid4(), "quiz", '{"passingScore": 80}')
        db.on(content_service._get_block, lambda p: FakeResult([stored]))

        block = await content_service.get_block(stored.id)

        assert block.id == stored.id
        assert block.content_data.passing_score == 80

    @pytest.mark.asyncio
    async def test_inactive_block_is_not_found(self, content_service, db):
        stored = block_row(uuid4(), is_active=False)
        db.on(content_service._get_block, lambda p: FakeResult([stored]))

        with pytest.raises(NotFoundError):
            await content_service.get_block(stored.id)

    @pytest.mark.asyncio
    async def test_missing_block(self, content_service):
        with pytest.raises(NotFoundError):
            await content_service.get_block(uuid4())

    @pytest.mark.asyncio
    async def test_session_blocks_sorted_and_active(self, content_service, db):
        session_id = uuid4()
        rows = [
            block_row(session_id, "text", order_index=2),
            block_row(session_id, "video", order_index=1),
            block_row(session_id, "pdf", order_index=0, is_active=False),
        ]
        db.on(content_service._get_session_blocks, lambda p: FakeResult(rows))

        blocks = await content_service.get_session_blocks(session_id)
        everything = await content_service.get_session_blocks(
            session_id, include_inactive=True
        )

        assert [b.type for b in blocks] == ["video", "text"]
        assert len(everything) == 3

    @pytest.mark.asyncio
    async def test_unknown_subject(self, content_service):
        with pytest.raises(NotFoundError):
            await content_service.get_subject_blocks(uuid4())

    @pytest.mark.asyncio
    async def test_subject_blocks(self, content_service, db):
        subject_id = uuid4()
        first, second = uuid4(), uuid4()
        db.on(
            content_service._get_subject_sessions,
            lambda p: FakeResult(
                [
                    row(session_id=first, subject_id=subject_id, title="One",
                        order_index=0, is_active=True),
                    row(session_id=second, subject_id=subject_id, title="Two",
                        order_index=1, is_active=True),
                ]
            ),
        )
        db.on(
            content_service._get_session_blocks,
            lambda p: FakeResult([block_row(p[0], "video")]),
        )

        sessions = await content_service.get_subject_blocks(subject_id)

        assert [s.id for s, _ in sessions] == [first, second]
        assert all(blocks[0].session_id == s.id for s, blocks in sessions)

    @pytest.mark.asyncio
    async def test_questions_decode_json(self, content_service, db):
        block_id = uuid4()
        db.on(
            content_service._get_questions,
            lambda p: FakeResult(
                [
                    row(id=uuid4(), content_block_id=block_id, question_text="Pick",
                        question_type="multiple_select", options='["a", "b", "c"]',
                        correct_answer='["a", "c"]', explanation=None, points=2,
                        difficulty=None, order_index=0),
                ]
            ),
        )

        [question] = await content_service.get_questions(block_id)

        assert question.options == ["a", "b", "c"]
        assert question.correct_answer == ["a", "c"]
        assert question.points == 2
        assert question.difficulty == "medium"
