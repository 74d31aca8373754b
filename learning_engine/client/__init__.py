"""Client-side progress cache, API client and attempt timer."""

from .api_client import EngineClient
from .attempts import AttemptSession
from .cache import CachedProgress, ProgressCache, Snapshot
from .sync import ProgressSyncController
from .timer import AttemptTimer


__all__ = [
    "AttemptSession",
    "AttemptTimer",
    "CachedProgress",
    "EngineClient",
    "ProgressCache",
    "ProgressSyncController",
    "Snapshot",
]
