"""Database models for the progress ledger.

Cassandra table definitions for:
- Progress records: completion state per (user, content block)
- Progress time: cumulative time spent, as a counter column

Both tables share the ``((user_id, session_id), content_block_id)`` key so a
session's ledger is one partition read. Time lives in its own counter table
because Cassandra counters cannot share a table with regular columns; the
store serializes ``time_spent_seconds = time_spent_seconds + ?`` per key.
"""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from learning_engine.core.database.execute import json_loads
from learning_engine.utils.timestamps import ensure_utc_aware


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

PROGRESS_RECORDS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.progress_records (
    user_id UUID,
    session_id UUID,
    content_block_id UUID,
    enrollment_id UUID,
    is_completed BOOLEAN,
    completion_data TEXT,
    completed_at TIMESTAMP,
    created_at TIMESTAMP,
    updated_at TIMESTAMP,
    PRIMARY KEY ((user_id, session_id), content_block_id)
)
"""

PROGRESS_TIME_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.progress_time (
    user_id UUID,
    session_id UUID,
    content_block_id UUID,
    time_spent_seconds COUNTER,
    PRIMARY KEY ((user_id, session_id), content_block_id)
)
"""

PROGRESS_TABLES_CQL = [
    PROGRESS_RECORDS_TABLE_CQL,
    PROGRESS_TIME_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class ProgressRecord:
    """Completion state of one content block for one user.

    Attributes:
        user_id: Learner UUID
        content_block_id: Content block UUID
        session_id: Session owning the block (partition component)
        is_completed: Done / not done
        time_spent_seconds: Cumulative time, read from the counter table
        completion_data: Opaque metadata (e.g. the attempt that satisfied it)
        completed_at: Set while completed, cleared on un-completion
    """

    def __init__(
        self,
        user_id: UUID,
        content_block_id: UUID,
        session_id: UUID,
        is_completed: bool = False,
        time_spent_seconds: int = 0,
        completion_data: dict[str, Any] | None = None,
        completed_at: datetime | None = None,
        enrollment_id: UUID | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.user_id = user_id
        self.content_block_id = content_block_id
        self.session_id = session_id
        self.is_completed = is_completed
        self.time_spent_seconds = time_spent_seconds
        self.completion_data = completion_data
        self.completed_at = completed_at
        self.enrollment_id = enrollment_id
        self.created_at = created_at or datetime.now(UTC)
        self.updated_at = updated_at or self.created_at

    @classmethod
    def from_row(cls, row: Any, time_spent_seconds: int = 0) -> "ProgressRecord":
        """Create ProgressRecord from a progress_records row."""
        return cls(
            user_id=row.user_id,
            content_block_id=row.content_block_id,
            session_id=row.session_id,
            is_completed=bool(row.is_completed),
            time_spent_seconds=time_spent_seconds,
            completion_data=json_loads(row.completion_data),
            completed_at=ensure_utc_aware(row.completed_at),
            enrollment_id=row.enrollment_id,
            created_at=ensure_utc_aware(row.created_at),
            updated_at=ensure_utc_aware(row.updated_at),
        )

    def __repr__(self) -> str:
        return (
            f"<ProgressRecord user={self.user_id} block={self.content_block_id} "
            f"completed={self.is_completed}>"
        )
