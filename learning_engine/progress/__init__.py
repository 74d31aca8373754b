"""Progress ledger and aggregation."""

from .aggregator import (
    ProgressStats,
    SessionProgress,
    SubjectProgress,
    aggregate_session,
    aggregate_subject,
    is_certificate_eligible,
)
from .models import ProgressRecord
from .service import ProgressService


__all__ = [
    "ProgressRecord",
    "ProgressService",
    "ProgressStats",
    "SessionProgress",
    "SubjectProgress",
    "aggregate_session",
    "aggregate_subject",
    "is_certificate_eligible",
]
