"""Database helpers for the learning engine.

Connection lifecycle lives in ``async_cassandra`` (it imports every
component's table definitions, so it is imported by the app factory only).
"""

from learning_engine.core.database.execute import execute_bounded, json_dumps, json_loads


__all__ = [
    "execute_bounded",
    "json_dumps",
    "json_loads",
]
