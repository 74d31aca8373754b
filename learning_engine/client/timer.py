"""One-shot attempt deadline timer.

A single scheduled check at the server-recorded deadline, never a recurring
tick. Once the attempt reaches a terminal state the timer is finished and the
check is simply not run.
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any

import structlog

from learning_engine.utils.timestamps import utcnow


logger = structlog.get_logger(__name__)


class AttemptTimer:
    """Fires ``on_expire`` once when ``deadline_at`` is reached."""

    def __init__(
        self,
        deadline_at: datetime,
        on_expire: Callable[[], Awaitable[Any]],
        clock: Callable[[], datetime] = utcnow,
    ):
        self.deadline_at = deadline_at
        self.on_expire = on_expire
        self.clock = clock
        self._task: asyncio.Task | None = None
        self._terminal = False
        self._fired = False

    @property
    def fired(self) -> bool:
        return self._fired

    @property
    def is_terminal(self) -> bool:
        return self._terminal

    def remaining_seconds(self) -> float:
        return max(0.0, (self.deadline_at - self.clock()).total_seconds())

    def start(self) -> asyncio.Task:
        """Schedule the deadline check (idempotent)."""
        if self._task is None:
            self._task = asyncio.create_task(self._run())
        return self._task

    async def _run(self) -> None:
        delay = self.remaining_seconds()
        if delay > 0:
            await asyncio.sleep(delay)
        if self._terminal:
            return

        self._terminal = True
        self._fired = True
        logger.info("attempt_timer_expired", deadline_at=self.deadline_at.isoformat())
        await self.on_expire()

    def finish(self) -> None:
        """Mark the attempt terminal; a pending check will not fire."""
        self._terminal = True
        if self._task is not None and not self._fired and not self._task.done():
            self._task.cancel()
