"""Completion statistics derived from the ledger.

Pure functions over the content hierarchy and a ledger snapshot. Nothing
here touches the store. Only required, active blocks count toward the
completion percentage, and course figures come from the flattened
required-block set, never from averaging session percentages.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from uuid import UUID

from learning_engine.content.models import ContentBlock
from learning_engine.utils.rounding import percent_of, round_half_up

from .models import ProgressRecord


@dataclass
class ProgressStats:
    """Rolled-up completion figures for a session or a whole subject."""

    total_blocks: int = 0
    required_blocks: int = 0
    completed_blocks: int = 0
    completed_required_blocks: int = 0
    total_time_spent_seconds: int = 0
    completion_percentage: int = 100

    @property
    def is_complete(self) -> bool:
        return self.completed_required_blocks >= self.required_blocks


@dataclass
class SessionProgress:
    session_id: UUID
    stats: ProgressStats
    records: list[ProgressRecord] = field(default_factory=list)


@dataclass
class SubjectProgress:
    subject_id: UUID
    stats: ProgressStats
    sessions: list[SessionProgress] = field(default_factory=list)


def completion_percentage(completed_required: int, total_required: int) -> int:
    """100 when nothing is required, else round-half-up of the ratio.

    An incomplete set never rounds up to 100.
    """
    if total_required == 0:
        return 100
    percentage = int(round_half_up(percent_of(completed_required, total_required)))
    if completed_required < total_required:
        return min(percentage, 99)
    return percentage


def _index(records: Iterable[ProgressRecord]) -> dict[UUID, ProgressRecord]:
    if isinstance(records, Mapping):
        return dict(records)
    return {r.content_block_id: r for r in records}


def compute_stats(
    blocks: Iterable[ContentBlock],
    records: Iterable[ProgressRecord] | Mapping[UUID, ProgressRecord],
) -> ProgressStats:
    """Count blocks and completions over the active blocks given."""
    by_block = _index(records)
    stats = ProgressStats()

    for block in blocks:
        if not block.is_active:
            continue
        record = by_block.get(block.id)
        done = record is not None and record.is_completed

        stats.total_blocks += 1
        if record is not None:
            stats.total_time_spent_seconds += record.time_spent_seconds
        if done:
            stats.completed_blocks += 1
        if block.is_required:
            stats.required_blocks += 1
            if done:
                stats.completed_required_blocks += 1

    stats.completion_percentage = completion_percentage(
        stats.completed_required_blocks, stats.required_blocks
    )
    return stats


def aggregate_session(
    session_id: UUID,
    blocks: list[ContentBlock],
    records: Iterable[ProgressRecord],
) -> SessionProgress:
    """Statistics and per-block records for one session."""
    by_block = _index(records)
    active_ids = {b.id for b in blocks if b.is_active}
    return SessionProgress(
        session_id=session_id,
        stats=compute_stats(blocks, by_block),
        records=[r for bid, r in by_block.items() if bid in active_ids],
    )


def aggregate_subject(
    subject_id: UUID,
    sessions: list[tuple[UUID, list[ContentBlock]]],
    records: Iterable[ProgressRecord],
) -> SubjectProgress:
    """Statistics for a whole subject over the flattened block set."""
    by_block = _index(records)
    session_progress = [
        aggregate_session(session_id, blocks, by_block)
        for session_id, blocks in sessions
    ]
    all_blocks = [b for _, blocks in sessions for b in blocks]
    return SubjectProgress(
        subject_id=subject_id,
        stats=compute_stats(all_blocks, by_block),
        sessions=session_progress,
    )


def is_certificate_eligible(stats: ProgressStats) -> bool:
    """Every required block completed, compared by count rather than percentage."""
    return stats.is_complete
