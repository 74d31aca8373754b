"""Assignment submission and grading workflow."""

from .models import AssignmentSubmission, SubmissionStatus
from .service import AssignmentService, BlockSubmissions


__all__ = [
    "AssignmentService",
    "AssignmentSubmission",
    "BlockSubmissions",
    "SubmissionStatus",
]
