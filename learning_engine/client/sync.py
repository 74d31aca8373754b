"""Optimistic completion toggles against the engine API."""

from typing import Any
from uuid import UUID

import structlog

from .api_client import EngineClient
from .cache import CachedProgress, ProgressCache


logger = structlog.get_logger(__name__)


class ProgressSyncController:
    """Runs the apply / reconcile / rollback protocol around progress writes."""

    def __init__(self, cache: ProgressCache, client: EngineClient):
        self.cache = cache
        self.client = client

    async def toggle_completion(
        self,
        block_id: UUID,
        is_completed: bool,
        time_spent_seconds: int = 0,
        completion_data: dict[str, Any] | None = None,
    ) -> CachedProgress:
        """Toggle a block, showing the change before the server confirms it.

        The server record replaces the guess on success. Any failure restores
        the previous entry and re-raises.
        """
        snapshot = self.cache.apply_optimistic(block_id, is_completed, time_spent_seconds)
        try:
            record = await self.client.update_progress(
                block_id,
                is_completed,
                time_spent_seconds=time_spent_seconds,
                completion_data=completion_data,
            )
        except BaseException as e:
            # Cancellation rolls back too
            self.cache.rollback(snapshot)
            logger.warning(
                "progress_toggle_rolled_back",
                content_block_id=str(block_id),
                error_type=type(e).__name__,
                retryable=getattr(e, "retryable", False),
            )
            raise

        entry = self.cache.reconcile(snapshot, record)
        if entry.is_completed != is_completed:
            logger.info(
                "progress_toggle_overridden",
                content_block_id=str(block_id),
                requested=is_completed,
                confirmed=entry.is_completed,
            )
        return entry

    async def record_time(self, block_id: UUID, time_spent_seconds: int) -> CachedProgress:
        """Report time spent without changing the completion state."""
        return await self.toggle_completion(
            block_id,
            self.cache.is_completed(block_id),
            time_spent_seconds=time_spent_seconds,
        )

    async def refresh_session(self, session_id: UUID) -> dict[str, Any]:
        """Reload a session's records from the server into the cache."""
        progress = await self.client.get_session_progress(session_id)
        self.cache.load(progress.get("records", []))
        return progress
