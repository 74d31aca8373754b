"""Content hierarchy (subjects, sessions, blocks, questions)."""

from .models import (
    ContentBlock,
    ContentBlockType,
    CourseSession,
    Question,
    QuestionType,
    SubmissionFormat,
)
from .service import ContentService


__all__ = [
    "ContentBlock",
    "ContentBlockType",
    "ContentService",
    "CourseSession",
    "Question",
    "QuestionType",
    "SubmissionFormat",
]
