"""Utility modules for the learning engine."""

from learning_engine.utils.rounding import percent_of, round_half_up
from learning_engine.utils.timestamps import ensure_utc_aware, utcnow


__all__ = ["ensure_utc_aware", "percent_of", "round_half_up", "utcnow"]
