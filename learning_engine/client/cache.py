"""Client-held mirror of the progress ledger.

Reconciliation protocol for a completion toggle:

1. ``apply_optimistic`` writes the guess and returns a ``Snapshot`` of the
   previous entry.
2. On success ``reconcile`` replaces the entry with the server record, which
   may differ from the guess (assessment blocks keep the ledger's state).
3. On failure ``rollback`` restores the snapshot.

Each entry carries a version. Reconcile and rollback only touch an entry
whose version is still the snapshot's, so a late response to an older
toggle never overwrites a newer one.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any
from uuid import UUID


@dataclass
class CachedProgress:
    content_block_id: UUID
    is_completed: bool = False
    time_spent_seconds: int = 0
    completion_data: dict[str, Any] | None = None
    completed_at: datetime | None = None
    pending: bool = False
    version: int = 0

    @classmethod
    def from_server(cls, record: dict[str, Any]) -> "CachedProgress":
        """Build an entry from a ledger record as returned by the API."""
        completed_at = record.get("completed_at")
        if isinstance(completed_at, str):
            completed_at = datetime.fromisoformat(completed_at)
        return cls(
            content_block_id=UUID(str(record["content_block_id"])),
            is_completed=bool(record.get("is_completed")),
            time_spent_seconds=int(record.get("time_spent_seconds") or 0),
            completion_data=record.get("completion_data"),
            completed_at=completed_at,
        )


@dataclass(frozen=True)
class Snapshot:
    """Pre-optimistic state of one entry."""

    content_block_id: UUID
    previous: CachedProgress | None
    version: int


@dataclass
class ProgressCache:
    """Optimistic progress entries keyed by content block id."""

    user_id: UUID | None = None
    _entries: dict[UUID, CachedProgress] = field(default_factory=dict, init=False, repr=False)
    _confirmed: dict[UUID, CachedProgress] = field(default_factory=dict, init=False, repr=False)
    _version: int = field(default=0, init=False, repr=False)

    def get(self, block_id: UUID) -> CachedProgress | None:
        return self._entries.get(block_id)

    def is_completed(self, block_id: UUID) -> bool:
        entry = self._entries.get(block_id)
        return entry is not None and entry.is_completed

    def entries(self) -> list[CachedProgress]:
        return list(self._entries.values())

    def load(self, records: list[dict[str, Any]]) -> None:
        """Hydrate from server records (e.g. a session progress response)."""
        for record in records:
            entry = CachedProgress.from_server(record)
            self._confirmed[entry.content_block_id] = entry
            current = self._entries.get(entry.content_block_id)
            if current is not None and current.pending:
                continue
            self._entries[entry.content_block_id] = entry

    def _next_version(self) -> int:
        self._version += 1
        return self._version

    def apply_optimistic(
        self,
        block_id: UUID,
        is_completed: bool,
        time_spent_seconds: int = 0,
    ) -> Snapshot:
        """Write the guessed state immediately; time is added to the cached total."""
        previous = self._entries.get(block_id)
        base = previous or CachedProgress(content_block_id=block_id)
        version = self._next_version()

        self._entries[block_id] = replace(
            base,
            is_completed=is_completed,
            time_spent_seconds=base.time_spent_seconds + max(time_spent_seconds, 0),
            completed_at=base.completed_at if is_completed else None,
            pending=True,
            version=version,
        )
        return Snapshot(
            content_block_id=block_id,
            previous=replace(previous) if previous is not None else None,
            version=version,
        )

    def reconcile(self, snapshot: Snapshot, server_record: dict[str, Any]) -> CachedProgress:
        """Replace the optimistic entry with the authoritative record."""
        confirmed = CachedProgress.from_server(server_record)
        current = self._entries.get(snapshot.content_block_id)

        if current is not None and current.version != snapshot.version:
            # A newer toggle is in flight; its own response settles the entry
            return current

        confirmed.version = snapshot.version
        self._entries[snapshot.content_block_id] = confirmed
        self._confirmed[snapshot.content_block_id] = confirmed
        return confirmed

    def rollback(self, snapshot: Snapshot) -> CachedProgress | None:
        """Restore the entry as it was before ``apply_optimistic``."""
        current = self._entries.get(snapshot.content_block_id)
        if current is not None and current.version != snapshot.version:
            return current

        restored = snapshot.previous
        if restored is not None and restored.pending:
            # Stacked toggles: fall back to the last server-confirmed entry
            restored = self._confirmed.get(snapshot.content_block_id)

        if restored is None:
            self._entries.pop(snapshot.content_block_id, None)
            return None
        self._entries[snapshot.content_block_id] = restored
        return restored
