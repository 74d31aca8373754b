"""Client-side attempt session with deadline auto-submit."""

from collections.abc import Callable
from datetime import datetime
from typing import Any
from uuid import UUID

import structlog

from learning_engine.utils.timestamps import utcnow

from .api_client import EngineClient
from .timer import AttemptTimer


logger = structlog.get_logger(__name__)

_TERMINAL_STATES = frozenset({"submitted", "graded"})


class AttemptSession:
    """Tracks one quiz/examination attempt from the learner's side.

    Answers are mirrored locally so that the deadline auto-submit sends
    exactly what the learner had entered at that instant.
    """

    def __init__(
        self,
        client: EngineClient,
        block_id: UUID,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.client = client
        self.block_id = block_id
        self.clock = clock
        self.answers: dict[str, Any] = {}
        self.attempt: dict[str, Any] | None = None
        self.result: dict[str, Any] | None = None
        self.timer: AttemptTimer | None = None

    @property
    def is_finished(self) -> bool:
        return self.result is not None

    async def start(self) -> dict[str, Any]:
        """Start or resume the attempt and arm the deadline timer."""
        attempt = await self.client.start_attempt(self.block_id)
        self.attempt = attempt
        self.answers = dict(attempt.get("answers") or {})

        if attempt.get("state") in _TERMINAL_STATES:
            self._settle(attempt)
            return attempt

        deadline = attempt.get("deadline_at")
        if deadline:
            self.timer = AttemptTimer(
                datetime.fromisoformat(deadline), self.auto_submit, clock=self.clock
            )
            self.timer.start()
        return attempt

    async def answer(self, question_id: str, answer: Any) -> dict[str, Any]:
        """Record an answer; a response past the deadline ends the session."""
        self.answers[str(question_id)] = answer
        response = await self.client.record_answer(self.block_id, question_id, answer)
        if response.get("time_expired") or response.get("state") in _TERMINAL_STATES:
            self._settle(response)
        return response

    async def submit(self, allow_unanswered: bool = False) -> dict[str, Any]:
        """Explicit submission; raises UnansweredQuestionsError without override."""
        if self.result is not None:
            return self.result
        result = await self.client.submit_attempt(
            self.block_id, self.answers, allow_unanswered=allow_unanswered
        )
        self._settle(result)
        return result

    async def auto_submit(self) -> dict[str, Any]:
        """Deadline submission with the answers recorded so far."""
        if self.result is not None:
            return self.result
        logger.info("attempt_auto_submitting", content_block_id=str(self.block_id))
        result = await self.client.submit_attempt(
            self.block_id, self.answers, auto_submitted=True
        )
        self._settle(result)
        return result

    def _settle(self, result: dict[str, Any]) -> None:
        self.result = result
        if self.timer is not None:
            self.timer.finish()
