"""Error taxonomy shared by the engine services, the HTTP layer and the client.

Every error carries a stable ``code`` that the HTTP layer maps to a status code
and the client maps back to the same exception class.
"""

from typing import Any


class EngineError(Exception):
    """Base engine error."""

    code: str = "engine_error"
    retryable: bool = False

    def __init__(
        self,
        message: str = "Engine error",
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        if code is not None:
            self.code = code
        self.details = details or {}
        super().__init__(message)


class ValidationError(EngineError):
    """Malformed input (missing payload, negative time, bad answer shape)."""

    code = "validation_error"

    def __init__(self, message: str = "Invalid input", code: str | None = None, **kw):
        super().__init__(message, code, **kw)


class MalformedAnswerError(ValidationError):
    """Answer payload does not match the question it targets."""

    code = "malformed_answer"


class UnansweredQuestionsError(ValidationError):
    """Explicit submission with unanswered questions and no override."""

    code = "unanswered_questions"

    def __init__(self, question_ids: list[str]):
        super().__init__(
            f"{len(question_ids)} question(s) left unanswered",
            details={"unanswered_question_ids": question_ids},
        )
        self.question_ids = question_ids


class NotFoundError(EngineError):
    """Unknown block, session, subject or submission."""

    code = "not_found"

    def __init__(self, message: str = "Resource not found", **kw):
        super().__init__(message, **kw)


class InvalidBlockTypeError(EngineError):
    """Operation invoked on a content block of the wrong type."""

    code = "invalid_block_type"

    def __init__(self, message: str = "Operation not supported for this content type", **kw):
        super().__init__(message, **kw)


class AlreadyAttemptedError(EngineError):
    """Examination already attempted (single attempt policy)."""

    code = "already_attempted"

    def __init__(self, message: str = "Examination already attempted", **kw):
        super().__init__(message, **kw)


class AttemptLimitReachedError(EngineError):
    """Quiz has no attempts left under its retry policy."""

    code = "attempt_limit_reached"

    def __init__(self, message: str = "No attempts left for this quiz", **kw):
        super().__init__(message, **kw)


class AttemptNotInProgressError(EngineError):
    """Answer recorded outside an in-progress attempt."""

    code = "attempt_not_in_progress"

    def __init__(self, message: str = "No attempt in progress", **kw):
        super().__init__(message, **kw)


class AlreadySubmittedError(EngineError):
    """Duplicate assignment submission."""

    code = "already_submitted"

    def __init__(self, message: str = "Assignment already submitted", **kw):
        super().__init__(message, **kw)


class AlreadyGradedError(EngineError):
    """Submission is no longer in ``submitted`` status."""

    code = "already_graded"

    def __init__(self, message: str = "Submission already graded", **kw):
        super().__init__(message, **kw)


class AuthorizationError(EngineError):
    """Caller lacks the role required for the operation."""

    code = "forbidden"

    def __init__(self, message: str = "Insufficient permission", **kw):
        super().__init__(message, **kw)


class TimeoutExpiredError(EngineError):
    """Attempt time budget ran out; the attempt was auto-submitted.

    Informational: ``details["attempt"]`` holds the graded attempt.
    """

    code = "time_expired"

    def __init__(self, message: str = "Time limit reached, attempt submitted", **kw):
        super().__init__(message, **kw)


class StoreTimeoutError(EngineError):
    """A store or remote call did not finish within its time bound."""

    code = "store_timeout"
    retryable = True

    def __init__(self, message: str = "Storage did not respond in time", **kw):
        super().__init__(message, **kw)


ERRORS_BY_CODE: dict[str, type[EngineError]] = {
    cls.code: cls
    for cls in (
        EngineError,
        ValidationError,
        MalformedAnswerError,
        UnansweredQuestionsError,
        NotFoundError,
        InvalidBlockTypeError,
        AlreadyAttemptedError,
        AttemptLimitReachedError,
        AttemptNotInProgressError,
        AlreadySubmittedError,
        AlreadyGradedError,
        AuthorizationError,
        TimeoutExpiredError,
        StoreTimeoutError,
    )
}


def error_from_payload(
    code: str | None,
    message: str,
    details: dict[str, Any] | None = None,
) -> EngineError:
    """Rebuild the typed error described by an error response body."""
    details = details or {}
    cls = ERRORS_BY_CODE.get(code or "", EngineError)
    if cls is UnansweredQuestionsError:
        return UnansweredQuestionsError(details.get("unanswered_question_ids", []))
    if cls is EngineError:
        return EngineError(message, code=code, details=details)
    return cls(message, details=details)
