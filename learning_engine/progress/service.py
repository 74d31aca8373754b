"""Progress ledger service layer.

Business logic for:
- Completion toggles with completed_at stamping and history retention
- Additive time tracking through a store-side counter
- Completion events from the attempt engine and grading workflow
- Session and subject progress reads fed to the aggregator
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

import structlog

from learning_engine.content.models import ContentBlock
from learning_engine.content.service import ContentService
from learning_engine.core.database.execute import execute_bounded, json_dumps
from learning_engine.core.exceptions import ValidationError

from .aggregator import (
    SessionProgress,
    SubjectProgress,
    aggregate_session,
    aggregate_subject,
)
from .models import ProgressRecord


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


class ProgressService:
    """Service for the per-user, per-block progress ledger."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        content_service: ContentService,
        timeout: float = 5.0,
    ):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self.content_service = content_service
        self.timeout = timeout
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_record = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.progress_records
            WHERE user_id = ? AND session_id = ? AND content_block_id = ?
        """)

        self._get_session_records = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.progress_records
            WHERE user_id = ? AND session_id = ?
        """)

        self._upsert_record = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.progress_records
            (user_id, session_id, content_block_id, enrollment_id, is_completed,
             completion_data, completed_at, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)

        # Column-level write; completion columns are left to completion events
        self._touch_record = self.session.prepare(f"""
            UPDATE {self.keyspace}.progress_records
            SET updated_at = ?
            WHERE user_id = ? AND session_id = ? AND content_block_id = ?
        """)

        # Counter table: store-side increment, never read-modify-write here
        self._add_time = self.session.prepare(f"""
            UPDATE {self.keyspace}.progress_time
            SET time_spent_seconds = time_spent_seconds + ?
            WHERE user_id = ? AND session_id = ? AND content_block_id = ?
        """)

        self._get_time = self.session.prepare(f"""
            SELECT time_spent_seconds FROM {self.keyspace}.progress_time
            WHERE user_id = ? AND session_id = ? AND content_block_id = ?
        """)

        self._get_session_time = self.session.prepare(f"""
            SELECT content_block_id, time_spent_seconds
            FROM {self.keyspace}.progress_time
            WHERE user_id = ? AND session_id = ?
        """)

    async def _execute(self, statement: Any, parameters: list[Any] | None = None) -> Any:
        return await execute_bounded(self.session, statement, parameters, self.timeout)

    # ==========================================================================
    # Reads
    # ==========================================================================

    async def _read_record(
        self, user_id: UUID, session_id: UUID, block_id: UUID
    ) -> ProgressRecord | None:
        result = await self._execute(self._get_record, [user_id, session_id, block_id])
        row = result.one()
        if not row:
            return None
        return ProgressRecord.from_row(
            row, await self._read_time(user_id, session_id, block_id)
        )

    async def _read_time(self, user_id: UUID, session_id: UUID, block_id: UUID) -> int:
        result = await self._execute(self._get_time, [user_id, session_id, block_id])
        row = result.one()
        return int(row.time_spent_seconds or 0) if row else 0

    async def get_session_records(
        self, user_id: UUID, session_id: UUID
    ) -> list[ProgressRecord]:
        """All ledger records of a user within one session."""
        time_result = await self._execute(self._get_session_time, [user_id, session_id])
        time_by_block = {
            row.content_block_id: int(row.time_spent_seconds or 0) for row in time_result
        }

        result = await self._execute(self._get_session_records, [user_id, session_id])
        records = []
        for row in result:
            records.append(
                ProgressRecord.from_row(row, time_by_block.pop(row.content_block_id, 0))
            )

        # Time recorded before the first completion toggle has no record row yet
        for block_id, seconds in time_by_block.items():
            records.append(
                ProgressRecord(
                    user_id=user_id,
                    content_block_id=block_id,
                    session_id=session_id,
                    time_spent_seconds=seconds,
                )
            )
        return records

    async def get_progress(self, user_id: UUID, session_id: UUID) -> SessionProgress:
        """Session statistics plus per-block records."""
        blocks = await self.content_service.get_session_blocks(session_id)
        records = await self.get_session_records(user_id, session_id)
        return aggregate_session(session_id, blocks, records)

    async def get_subject_progress(
        self, user_id: UUID, subject_id: UUID
    ) -> SubjectProgress:
        """Whole-subject statistics over the flattened required-block set.

        Raises:
            NotFoundError: If the subject has no sessions
        """
        sessions = await self.content_service.get_subject_blocks(subject_id)
        records: list[ProgressRecord] = []
        for course_session, _ in sessions:
            records.extend(await self.get_session_records(user_id, course_session.id))

        progress = aggregate_subject(
            subject_id,
            [(s.id, blocks) for s, blocks in sessions],
            records,
        )
        logger.debug(
            "subject_progress_computed",
            user_id=str(user_id),
            subject_id=str(subject_id),
            completion_percentage=progress.stats.completion_percentage,
        )
        return progress

    # ==========================================================================
    # Writes
    # ==========================================================================

    async def upsert_progress(
        self,
        user_id: UUID,
        content_block_id: UUID,
        is_completed: bool,
        time_spent_seconds: int = 0,
        completion_data: dict[str, Any] | None = None,
        enrollment_id: UUID | None = None,
    ) -> ProgressRecord:
        """Record a completion toggle and/or incremental time for a block.

        ``time_spent_seconds`` is the time spent since the last update and is
        added to the stored total. Quiz, examination and assignment blocks only
        complete through their own workflows, so a direct toggle on them keeps
        the ledger's completion state and only adds time.

        Raises:
            ValidationError: If time_spent_seconds is negative
            NotFoundError: If the content block does not exist
        """
        if time_spent_seconds < 0:
            raise ValidationError("time_spent_seconds must not be negative")

        block = await self.content_service.get_block(content_block_id)

        if block.is_assessable:
            record = await self._touch_assessable(
                user_id, block, is_completed, time_spent_seconds
            )
        else:
            existing = await self._read_record(user_id, block.session_id, block.id)
            record = await self._write(
                user_id, block, existing, is_completed, completion_data, enrollment_id
            )
            await self._increment_time(user_id, block, time_spent_seconds)
            record.time_spent_seconds = await self._read_time(
                user_id, block.session_id, block.id
            )

        logger.info(
            "progress_upserted",
            user_id=str(user_id),
            content_block_id=str(block.id),
            is_completed=record.is_completed,
            time_added=time_spent_seconds,
            time_spent_seconds=record.time_spent_seconds,
        )
        return record

    async def record_assessment_completion(
        self,
        user_id: UUID,
        block: ContentBlock,
        completion_data: dict[str, Any],
    ) -> ProgressRecord:
        """Mark an assessable block complete after a passing attempt or grade."""
        existing = await self._read_record(user_id, block.session_id, block.id)
        record = await self._write(
            user_id,
            block,
            existing,
            True,
            completion_data,
            existing.enrollment_id if existing else None,
        )
        record.time_spent_seconds = await self._read_time(
            user_id, block.session_id, block.id
        )

        logger.info(
            "assessment_completion_recorded",
            user_id=str(user_id),
            content_block_id=str(block.id),
            block_type=block.type,
        )
        return record

    async def _touch_assessable(
        self,
        user_id: UUID,
        block: ContentBlock,
        requested: bool,
        time_spent_seconds: int,
    ) -> ProgressRecord:
        """Time-only update for a block that completes through its own workflow.

        Never writes is_completed, completed_at or completion_data, so a
        completion event landing concurrently is not overwritten.
        """
        await self._increment_time(user_id, block, time_spent_seconds)

        record = await self._read_record(user_id, block.session_id, block.id)
        if record is None:
            record = ProgressRecord(
                user_id=user_id,
                content_block_id=block.id,
                session_id=block.session_id,
                time_spent_seconds=await self._read_time(
                    user_id, block.session_id, block.id
                ),
            )
        else:
            record.updated_at = datetime.now(UTC)
            await self._execute(
                self._touch_record,
                [record.updated_at, user_id, block.session_id, block.id],
            )

        if requested != record.is_completed:
            logger.info(
                "assessment_completion_ignored",
                user_id=str(user_id),
                content_block_id=str(block.id),
                block_type=block.type,
                requested=requested,
            )
        return record

    async def _increment_time(
        self, user_id: UUID, block: ContentBlock, seconds: int
    ) -> None:
        if seconds:
            await self._execute(
                self._add_time, [seconds, user_id, block.session_id, block.id]
            )

    async def _write(
        self,
        user_id: UUID,
        block: ContentBlock,
        existing: ProgressRecord | None,
        is_completed: bool,
        completion_data: dict[str, Any] | None,
        enrollment_id: UUID | None,
    ) -> ProgressRecord:
        """Apply the completion transition and persist the record row."""
        now = datetime.now(UTC)
        was_completed = existing.is_completed if existing else False
        previous_data = existing.completion_data if existing else None

        if is_completed and not was_completed:
            completed_at = now
            data = completion_data if completion_data is not None else previous_data
        elif is_completed:
            completed_at = existing.completed_at or now
            data = completion_data if completion_data is not None else previous_data
        elif was_completed:
            # Un-completion keeps the old payload as history
            completed_at = None
            data = dict(completion_data or {})
            if previous_data is not None:
                data["previous"] = previous_data
        else:
            completed_at = None
            data = completion_data if completion_data is not None else previous_data

        record = ProgressRecord(
            user_id=user_id,
            content_block_id=block.id,
            session_id=block.session_id,
            is_completed=is_completed,
            completion_data=data,
            completed_at=completed_at,
            enrollment_id=enrollment_id or (existing.enrollment_id if existing else None),
            created_at=existing.created_at if existing else now,
            updated_at=now,
        )

        await self._execute(
            self._upsert_record,
            [
                record.user_id,
                record.session_id,
                record.content_block_id,
                record.enrollment_id,
                record.is_completed,
                json_dumps(record.completion_data),
                record.completed_at,
                record.created_at,
                record.updated_at,
            ],
        )
        return record
