"""Pydantic schemas for the progress ledger.

Request and response models for:
- Completion toggles and time updates
- Session and subject progress queries
- Certificate eligibility
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .aggregator import ProgressStats, SessionProgress, SubjectProgress
from .models import ProgressRecord


# ==============================================================================
# Ledger Schemas
# ==============================================================================


class UpdateProgressRequest(BaseModel):
    """Completion toggle and/or time spent since the previous update."""

    content_block_id: UUID = Field(..., description="Content block UUID")
    is_completed: bool = Field(..., description="Requested completion state")
    time_spent_seconds: int = Field(
        default=0, description="Seconds spent since the last update (added, not replaced)"
    )
    completion_data: dict[str, Any] | None = Field(
        default=None, description="Opaque completion metadata"
    )
    enrollment_id: UUID | None = None


class ProgressRecordResponse(BaseModel):
    """Ledger record response."""

    model_config = ConfigDict(from_attributes=True)

    content_block_id: UUID
    session_id: UUID
    is_completed: bool
    time_spent_seconds: int
    completion_data: dict[str, Any] | None = None
    completed_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_entity(cls, entity: ProgressRecord) -> "ProgressRecordResponse":
        """Create response from entity."""
        return cls(
            content_block_id=entity.content_block_id,
            session_id=entity.session_id,
            is_completed=entity.is_completed,
            time_spent_seconds=entity.time_spent_seconds,
            completion_data=entity.completion_data,
            completed_at=entity.completed_at,
            updated_at=entity.updated_at,
        )


# ==============================================================================
# Aggregated Progress Schemas
# ==============================================================================


class ProgressStatsResponse(BaseModel):
    """Completion figures over required blocks."""

    model_config = ConfigDict(from_attributes=True)

    total_blocks: int
    required_blocks: int
    completed_blocks: int
    completed_required_blocks: int
    completion_percentage: int = Field(description="0-100, required blocks only")
    total_time_spent_seconds: int

    @classmethod
    def from_stats(cls, stats: ProgressStats) -> "ProgressStatsResponse":
        return cls.model_validate(stats)


class SessionProgressResponse(BaseModel):
    """Statistics and records of one session."""

    session_id: UUID
    statistics: ProgressStatsResponse
    records: list[ProgressRecordResponse]

    @classmethod
    def from_progress(cls, progress: SessionProgress) -> "SessionProgressResponse":
        return cls(
            session_id=progress.session_id,
            statistics=ProgressStatsResponse.from_stats(progress.stats),
            records=[ProgressRecordResponse.from_entity(r) for r in progress.records],
        )


class SubjectProgressResponse(BaseModel):
    """Whole-subject statistics with a per-session breakdown."""

    subject_id: UUID
    statistics: ProgressStatsResponse
    sessions: list[SessionProgressResponse]

    @classmethod
    def from_progress(cls, progress: SubjectProgress) -> "SubjectProgressResponse":
        return cls(
            subject_id=progress.subject_id,
            statistics=ProgressStatsResponse.from_stats(progress.stats),
            sessions=[SessionProgressResponse.from_progress(s) for s in progress.sessions],
        )


class CertificateEligibilityResponse(BaseModel):
    """Certificate gate for a subject."""

    subject_id: UUID
    is_eligible: bool
    completion_percentage: int
    required_blocks: int
    completed_required_blocks: int
