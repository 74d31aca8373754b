"""Tests for bounded store calls and the error taxonomy."""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest
from cassandra import OperationTimedOut
from cassandra.cluster import Session

from learning_engine.core.database.execute import execute_bounded, json_dumps, json_loads
from learning_engine.core.exceptions import (
    EngineError,
    MalformedAnswerError,
    NotFoundError,
    StoreTimeoutError,
    UnansweredQuestionsError,
    error_from_payload,
)


@pytest.fixture
def mock_session():
    """Mock Cassandra session."""
    return Mock(spec=Session)


@pytest.mark.asyncio
async def test_slow_call_becomes_store_timeout(mock_session):
    async def slow(statement, parameters):
        await asyncio.sleep(1)

    mock_session.aexecute = AsyncMock(side_effect=slow)

    with pytest.raises(StoreTimeoutError) as exc_info:
        await execute_bounded(mock_session, "SELECT 1", None, timeout=0.01)

    assert exc_info.value.retryable is True


@pytest.mark.asyncio
async def test_driver_timeout_becomes_store_timeout(mock_session):
    mock_session.aexecute = AsyncMock(side_effect=OperationTimedOut("no response"))

    with pytest.raises(StoreTimeoutError):
        await execute_bounded(mock_session, "SELECT 1", [1])


@pytest.mark.asyncio
async def test_other_errors_propagate(mock_session):
    mock_session.aexecute = AsyncMock(side_effect=RuntimeError("boom"))

    with pytest.raises(RuntimeError):
        await execute_bounded(mock_session, "SELECT 1")


@pytest.mark.asyncio
async def test_result_is_returned(mock_session):
    result = Mock()
    mock_session.aexecute = AsyncMock(return_value=result)

    assert await execute_bounded(mock_session, "SELECT 1", [1]) is result
    mock_session.aexecute.assert_awaited_once_with("SELECT 1", [1])


def test_json_columns() -> None:
    assert json_dumps(None) is None
    assert json_loads(None, default={}) == {}
    assert json_loads(json_dumps({"a": [1, 2]})) == {"a": [1, 2]}


class TestErrorFromPayload:
    """Rebuilding typed errors from response bodies."""

    def test_known_code(self) -> None:
        error = error_from_payload("not_found", "Submission not found")
        assert isinstance(error, NotFoundError)
        assert error.message == "Submission not found"

    def test_subclass_code(self) -> None:
        error = error_from_payload("malformed_answer", "bad shape")
        assert isinstance(error, MalformedAnswerError)
        assert error.code == "malformed_answer"

    def test_unanswered_ids(self) -> None:
        error = error_from_payload(
            "unanswered_questions", "x", {"unanswered_question_ids": ["a", "b"]}
        )
        assert isinstance(error, UnansweredQuestionsError)
        assert error.question_ids == ["a", "b"]

    def test_unknown_code_is_kept(self) -> None:
        error = error_from_payload("rate_limited", "slow down")
        assert type(error) is EngineError
        assert error.code == "rate_limited"
