"""Bounded statement execution and JSON column helpers.

Every store call goes through ``execute_bounded`` so that no request waits on
Cassandra indefinitely: slow calls surface as a retryable ``StoreTimeoutError``.
"""

import asyncio
from typing import Any

import orjson
import structlog
from cassandra import OperationTimedOut, Timeout

from learning_engine.core.exceptions import StoreTimeoutError


logger = structlog.get_logger(__name__)


async def execute_bounded(
    session: Any,
    statement: Any,
    parameters: list[Any] | None = None,
    timeout: float = 5.0,
) -> Any:
    """Run ``session.aexecute`` with an upper time bound.

    Raises:
        StoreTimeoutError: If the call exceeds ``timeout`` or Cassandra
            reports a read/write/operation timeout.
    """
    try:
        return await asyncio.wait_for(session.aexecute(statement, parameters), timeout)
    except (TimeoutError, OperationTimedOut, Timeout) as e:
        logger.warning(
            "store_call_timed_out",
            timeout_seconds=timeout,
            error_type=type(e).__name__,
        )
        raise StoreTimeoutError from e


def json_dumps(value: Any) -> str | None:
    """Serialize a JSON column value (None stays NULL)."""
    if value is None:
        return None
    return orjson.dumps(value).decode()


def json_loads(raw: str | bytes | None, default: Any = None) -> Any:
    """Deserialize a JSON column value."""
    if not raw:
        return default
    return orjson.loads(raw)
