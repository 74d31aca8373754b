"""Async HTTP client for the engine API.

Every call has a bounded timeout. Error responses are turned back into the
same typed errors the server raised (by ``code``); timeouts and connection
failures surface as the retryable ``StoreTimeoutError``.
"""

from typing import Any
from uuid import UUID

import httpx
import structlog

from learning_engine.config import get_settings
from learning_engine.core.exceptions import (
    AuthorizationError,
    EngineError,
    NotFoundError,
    StoreTimeoutError,
    ValidationError,
    error_from_payload,
)


logger = structlog.get_logger(__name__)

# Fallback when an error body carries no engine error code
_ERRORS_BY_STATUS: dict[int, type[EngineError]] = {
    httpx.codes.UNAUTHORIZED: AuthorizationError,
    httpx.codes.FORBIDDEN: AuthorizationError,
    httpx.codes.NOT_FOUND: NotFoundError,
    httpx.codes.UNPROCESSABLE_ENTITY: ValidationError,
    httpx.codes.SERVICE_UNAVAILABLE: StoreTimeoutError,
}


class EngineClient:
    """Client for the progress, attempt and assignment endpoints."""

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, base_url: str, token: str | None = None) -> "EngineClient":
        """Client using the configured ``client_timeout_seconds``."""
        return cls(base_url, token=token, timeout=get_settings().client_timeout_seconds)

    async def __aenter__(self) -> "EngineClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
    ) -> Any:
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.TimeoutException as e:
            logger.warning("engine_request_timed_out", method=method, path=path)
            raise StoreTimeoutError("Engine did not respond in time") from e
        except httpx.RequestError as e:
            logger.warning(
                "engine_request_failed",
                method=method,
                path=path,
                error=str(e),
            )
            raise StoreTimeoutError("Engine unreachable") from e

        if response.is_error:
            raise self._to_error(response)
        return response.json()

    @staticmethod
    def _to_error(response: httpx.Response) -> EngineError:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        message = body.get("message") or body.get("detail") or response.reason_phrase
        code = body.get("code")
        if code:
            return error_from_payload(code, str(message), body.get("details"))

        cls = _ERRORS_BY_STATUS.get(response.status_code)
        if cls is None:
            return EngineError(str(message), code=f"http_{response.status_code}")
        return cls(str(message))

    # ==========================================================================
    # Progress
    # ==========================================================================

    async def update_progress(
        self,
        content_block_id: UUID,
        is_completed: bool,
        time_spent_seconds: int = 0,
        completion_data: dict[str, Any] | None = None,
        enrollment_id: UUID | None = None,
    ) -> dict[str, Any]:
        """Send a completion toggle / time update; returns the server record."""
        payload: dict[str, Any] = {
            "content_block_id": str(content_block_id),
            "is_completed": is_completed,
            "time_spent_seconds": time_spent_seconds,
            "completion_data": completion_data,
        }
        if enrollment_id is not None:
            payload["enrollment_id"] = str(enrollment_id)
        return await self._request("POST", "/v1/progress", json=payload)

    async def get_session_progress(self, session_id: UUID) -> dict[str, Any]:
        return await self._request("GET", f"/v1/progress/session/{session_id}")

    async def get_subject_progress(self, subject_id: UUID) -> dict[str, Any]:
        return await self._request("GET", f"/v1/progress/subject/{subject_id}")

    async def get_certificate_eligibility(self, subject_id: UUID) -> dict[str, Any]:
        return await self._request(
            "GET", f"/v1/progress/subject/{subject_id}/certificate"
        )

    # ==========================================================================
    # Attempts
    # ==========================================================================

    async def get_attempt_questions(self, block_id: UUID) -> dict[str, Any]:
        return await self._request("GET", f"/v1/attempts/{block_id}/questions")

    async def start_attempt(self, block_id: UUID) -> dict[str, Any]:
        return await self._request("POST", f"/v1/attempts/{block_id}/start")

    async def record_answer(
        self, block_id: UUID, question_id: str, answer: Any
    ) -> dict[str, Any]:
        return await self._request(
            "PUT",
            f"/v1/attempts/{block_id}/answers",
            json={"question_id": str(question_id), "answer": answer},
        )

    async def submit_attempt(
        self,
        block_id: UUID,
        answers: dict[str, Any],
        time_spent_seconds: int | None = None,
        allow_unanswered: bool = False,
        auto_submitted: bool = False,
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            f"/v1/attempts/{block_id}/submit",
            json={
                "answers": answers,
                "time_spent_seconds": time_spent_seconds,
                "allow_unanswered": allow_unanswered,
                "auto_submitted": auto_submitted,
            },
        )

    # ==========================================================================
    # Assignments
    # ==========================================================================

    async def submit_assignment(
        self,
        block_id: UUID,
        text: str | None = None,
        files: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            f"/v1/assignments/{block_id}/submit",
            json={"text": text, "files": files},
        )

    async def get_submission_status(self, block_id: UUID) -> dict[str, Any]:
        return await self._request("GET", f"/v1/assignments/{block_id}/status")

    async def grade_submission(
        self,
        submission_id: UUID,
        score: float,
        max_score: float | None = None,
        feedback: str | None = None,
        rubric_scores: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            f"/v1/assignments/submissions/{submission_id}/grade",
            json={
                "score": score,
                "max_score": max_score,
                "feedback": feedback,
                "rubric_scores": rubric_scores,
            },
        )

    async def list_block_submissions(self, block_id: UUID) -> dict[str, Any]:
        return await self._request("GET", f"/v1/assignments/{block_id}/submissions")
