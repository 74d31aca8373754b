"""Read-only access to the content hierarchy.

Subject -> Session -> ContentBlock, plus the question bank of quiz and
examination blocks. Only the engine's lookups live here; authoring is
handled elsewhere.
"""

from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from learning_engine.core.database.execute import execute_bounded
from learning_engine.core.exceptions import NotFoundError

from .models import ContentBlock, CourseSession, Question


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


class ContentService:
    """Lookups over sessions, content blocks and questions."""

    def __init__(self, session: "Session", keyspace: str, timeout: float = 5.0):
        self.session = session
        self.keyspace = keyspace
        self.timeout = timeout
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_block = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.content_blocks WHERE id = ?
        """)

        self._get_session_blocks = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.content_blocks_by_session
            WHERE session_id = ?
        """)

        self._get_subject_sessions = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.sessions_by_subject
            WHERE subject_id = ?
        """)

        self._get_questions = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.assessment_questions
            WHERE content_block_id = ?
        """)

    async def _execute(self, statement, parameters=None):
        return await execute_bounded(self.session, statement, parameters, self.timeout)

    async def get_block(self, block_id: UUID) -> ContentBlock:
        """Get an active content block.

        Raises:
            NotFoundError: If the block does not exist or is inactive
        """
        result = await self._execute(self._get_block, [block_id])
        row = result.one()
        if not row:
            raise NotFoundError("Content block not found")

        block = ContentBlock.from_row(row)
        if not block.is_active:
            raise NotFoundError("Content block not found")
        return block

    async def get_session_blocks(
        self, session_id: UUID, include_inactive: bool = False
    ) -> list[ContentBlock]:
        """Get the blocks of a session in play order."""
        result = await self._execute(self._get_session_blocks, [session_id])
        blocks = [ContentBlock.from_row(row) for row in result]
        if not include_inactive:
            blocks = [b for b in blocks if b.is_active]
        return sorted(blocks, key=lambda b: b.order_index)

    async def get_subject_sessions(self, subject_id: UUID) -> list[CourseSession]:
        """Get the active sessions of a subject.

        Raises:
            NotFoundError: If the subject has no sessions
        """
        result = await self._execute(self._get_subject_sessions, [subject_id])
        sessions = [CourseSession.from_row(row) for row in result]
        if not sessions:
            raise NotFoundError("Subject not found")
        return [s for s in sessions if s.is_active]

    async def get_subject_blocks(
        self, subject_id: UUID
    ) -> list[tuple[CourseSession, list[ContentBlock]]]:
        """Get every session of a subject together with its active blocks."""
        sessions = await self.get_subject_sessions(subject_id)
        return [(s, await self.get_session_blocks(s.id)) for s in sessions]

    async def get_questions(self, block_id: UUID) -> list[Question]:
        """Get the question bank of a quiz or examination block."""
        result = await self._execute(self._get_questions, [block_id])
        questions = [Question.from_row(row) for row in result]
        logger.debug(
            "questions_loaded",
            content_block_id=str(block_id),
            count=len(questions),
        )
        return sorted(questions, key=lambda q: q.order_index)
