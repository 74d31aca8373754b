"""Content hierarchy models (read-only from the engine's point of view).

Cassandra table definitions and entities for:
- Sessions of a subject (course)
- Content blocks of a session, with per-type configuration
- Question banks of quiz/examination blocks

``content_data`` is a tagged union keyed by the block ``type``; the
assessment components only ever look at the quiz, examination and
assignment variants.
"""

from datetime import UTC, date, datetime
from enum import Enum
from typing import Annotated, Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from learning_engine.core.database.execute import json_loads


class ContentBlockType(str, Enum):
    """Kinds of content a session can hold."""

    VIDEO = "video"
    TEXT = "text"
    PDF = "pdf"
    IMAGE = "image"
    AUDIO = "audio"
    CODE = "code"
    QUIZ = "quiz"
    ASSIGNMENT = "assignment"
    EXAMINATION = "examination"


ATTEMPTABLE_TYPES = frozenset({ContentBlockType.QUIZ, ContentBlockType.EXAMINATION})

# Blocks that only become complete through grading, never by a direct toggle
ASSESSABLE_TYPES = ATTEMPTABLE_TYPES | {ContentBlockType.ASSIGNMENT}


class QuestionType(str, Enum):
    """Question kinds with their answer-equality rule."""

    SINGLE_CHOICE = "single_choice"  # exact string
    MULTIPLE_CHOICE = "multiple_choice"  # exact string (one option picked)
    MULTIPLE_SELECT = "multiple_select"  # set equality
    TRUE_FALSE = "true_false"  # boolean equality
    FILL_IN_BLANK = "fill_in_blank"  # exact string


class SubmissionFormat(str, Enum):
    """Payload an assignment accepts."""

    TEXT = "text"
    FILE = "file"
    BOTH = "both"


# ==============================================================================
# Content Data Variants
# ==============================================================================


class _ContentData(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class VideoData(_ContentData):
    type: Literal["video"] = "video"
    url: str = ""
    duration: int = 0
    thumbnail: str | None = None
    subtitles: str | None = None


class TextData(_ContentData):
    type: Literal["text"] = "text"
    content: str = ""
    format: Literal["html", "markdown"] = "markdown"


class PdfData(_ContentData):
    type: Literal["pdf"] = "pdf"
    url: str = ""
    pages: int = 0


class ImageData(_ContentData):
    type: Literal["image"] = "image"
    url: str = ""
    alt_text: str | None = Field(default=None, alias="altText")


class AudioData(_ContentData):
    type: Literal["audio"] = "audio"
    url: str = ""
    duration: int = 0


class CodeData(_ContentData):
    type: Literal["code"] = "code"
    language: str = ""
    source: str = ""


class QuizData(_ContentData):
    """Quiz configuration; ``passing_score`` None means the configured default."""

    type: Literal["quiz"] = "quiz"
    instructions: str = ""
    time_limit_minutes: int | None = Field(default=None, alias="timeLimit", ge=1)
    passing_score: int | None = Field(default=None, alias="passingScore", ge=0, le=100)
    allow_retry: bool = Field(default=True, alias="allowRetry")
    max_attempts: int | None = Field(default=None, alias="maxAttempts", ge=1)


class ExaminationData(_ContentData):
    type: Literal["examination"] = "examination"
    instructions: str = ""
    time_limit_minutes: int | None = Field(default=None, alias="timeLimit", ge=1)
    passing_score: int | None = Field(default=None, alias="passingScore", ge=0, le=100)


class AssignmentData(_ContentData):
    type: Literal["assignment"] = "assignment"
    instructions: str = ""
    max_points: int = Field(default=100, alias="maxPoints", gt=0)
    submission_format: SubmissionFormat = Field(
        default=SubmissionFormat.BOTH, alias="submissionFormat"
    )
    due_date: date | None = Field(default=None, alias="dueDate")


ContentData = Annotated[
    VideoData
    | TextData
    | PdfData
    | ImageData
    | AudioData
    | CodeData
    | QuizData
    | ExaminationData
    | AssignmentData,
    Field(discriminator="type"),
]

_content_data_adapter: TypeAdapter[ContentData] = TypeAdapter(ContentData)


def parse_content_data(block_type: str, raw: Any) -> ContentData:
    """Build the ``content_data`` variant for ``block_type`` from a JSON blob."""
    data = json_loads(raw, default={}) if not isinstance(raw, dict) else dict(raw)
    data["type"] = block_type
    return _content_data_adapter.validate_python(data)


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# Sessions of a subject, in play order
SESSIONS_BY_SUBJECT_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.sessions_by_subject (
    subject_id UUID,
    order_index INT,
    session_id UUID,
    title TEXT,
    is_active BOOLEAN,
    PRIMARY KEY (subject_id, order_index, session_id)
) WITH CLUSTERING ORDER BY (order_index ASC, session_id ASC)
"""

# Content block by id (point lookups)
CONTENT_BLOCKS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.content_blocks (
    id UUID PRIMARY KEY,
    session_id UUID,
    title TEXT,
    type TEXT,
    content_data TEXT,
    order_index INT,
    is_required BOOLEAN,
    estimated_time TEXT,
    is_active BOOLEAN,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

# Same rows partitioned by session for one-read session loads
CONTENT_BLOCKS_BY_SESSION_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.content_blocks_by_session (
    session_id UUID,
    order_index INT,
    id UUID,
    title TEXT,
    type TEXT,
    content_data TEXT,
    is_required BOOLEAN,
    estimated_time TEXT,
    is_active BOOLEAN,
    created_at TIMESTAMP,
    updated_at TIMESTAMP,
    PRIMARY KEY (session_id, order_index, id)
) WITH CLUSTERING ORDER BY (order_index ASC, id ASC)
"""

ASSESSMENT_QUESTIONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.assessment_questions (
    content_block_id UUID,
    order_index INT,
    id UUID,
    question_text TEXT,
    question_type TEXT,
    options TEXT,
    correct_answer TEXT,
    explanation TEXT,
    points INT,
    difficulty TEXT,
    PRIMARY KEY (content_block_id, order_index, id)
) WITH CLUSTERING ORDER BY (order_index ASC, id ASC)
"""

CONTENT_TABLES_CQL = [
    SESSIONS_BY_SUBJECT_TABLE_CQL,
    CONTENT_BLOCKS_TABLE_CQL,
    CONTENT_BLOCKS_BY_SESSION_TABLE_CQL,
    ASSESSMENT_QUESTIONS_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class CourseSession:
    """A session (unit of play) within a subject."""

    def __init__(
        self,
        id: UUID,
        subject_id: UUID,
        title: str = "",
        order_index: int = 0,
        is_active: bool = True,
    ):
        self.id = id
        self.subject_id = subject_id
        self.title = title
        self.order_index = order_index
        self.is_active = is_active

    @classmethod
    def from_row(cls, row: Any) -> "CourseSession":
        """Create CourseSession from a sessions_by_subject row."""
        return cls(
            id=row.session_id,
            subject_id=row.subject_id,
            title=row.title or "",
            order_index=row.order_index or 0,
            is_active=row.is_active is not False,
        )

    def __repr__(self) -> str:
        return f"<CourseSession {self.id} subject={self.subject_id}>"


class ContentBlock:
    """Atomic unit of course content within a session.

    Attributes:
        id: Block UUID
        session_id: Owning session UUID
        title: Display title
        type: ContentBlockType value
        content_data: Per-type configuration variant
        order_index: Position inside the session
        is_required: Counts toward completion percentage
        estimated_time: Free-form estimate ("15 min")
        is_active: Inactive blocks are ignored everywhere
    """

    def __init__(
        self,
        id: UUID,
        session_id: UUID,
        type: str,
        title: str = "",
        content_data: ContentData | dict | None = None,
        order_index: int = 0,
        is_required: bool = True,
        estimated_time: str | None = None,
        is_active: bool = True,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = id
        self.session_id = session_id
        self.type = ContentBlockType(type).value
        self.title = title
        if content_data is None or isinstance(content_data, dict):
            content_data = parse_content_data(self.type, content_data or {})
        self.content_data = content_data
        self.order_index = order_index
        self.is_required = is_required
        self.estimated_time = estimated_time
        self.is_active = is_active
        self.created_at = created_at or datetime.now(UTC)
        self.updated_at = updated_at

    @property
    def block_type(self) -> ContentBlockType:
        return ContentBlockType(self.type)

    @property
    def is_attemptable(self) -> bool:
        """Quiz or examination."""
        return self.block_type in ATTEMPTABLE_TYPES

    @property
    def is_assessable(self) -> bool:
        """Completion is owned by grading, not by the learner."""
        return self.block_type in ASSESSABLE_TYPES

    @classmethod
    def from_row(cls, row: Any) -> "ContentBlock":
        """Create ContentBlock from a content_blocks(_by_session) row."""
        return cls(
            id=row.id,
            session_id=row.session_id,
            type=row.type,
            title=row.title or "",
            content_data=parse_content_data(row.type, row.content_data),
            order_index=row.order_index or 0,
            is_required=row.is_required is not False,
            estimated_time=row.estimated_time,
            is_active=row.is_active is not False,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def __repr__(self) -> str:
        return f"<ContentBlock {self.id} {self.type} required={self.is_required}>"


class Question:
    """A question of a quiz or examination block.

    ``correct_answer`` is a string for single/multiple choice and
    fill-in-blank, a list of strings for multiple select and a bool for
    true/false. It never leaves the server.
    """

    def __init__(
        self,
        id: UUID,
        content_block_id: UUID,
        question_text: str,
        question_type: str,
        correct_answer: Any,
        options: Any = None,
        explanation: str | None = None,
        points: int = 1,
        difficulty: str = "medium",
        order_index: int = 0,
    ):
        self.id = id
        self.content_block_id = content_block_id
        self.question_text = question_text
        self.question_type = QuestionType(question_type).value
        self.correct_answer = correct_answer
        self.options = options
        self.explanation = explanation
        self.points = points
        self.difficulty = difficulty
        self.order_index = order_index

    @classmethod
    def from_row(cls, row: Any) -> "Question":
        """Create Question from an assessment_questions row."""
        return cls(
            id=row.id,
            content_block_id=row.content_block_id,
            question_text=row.question_text or "",
            question_type=row.question_type,
            correct_answer=json_loads(row.correct_answer),
            options=json_loads(row.options),
            explanation=row.explanation,
            points=row.points if row.points is not None else 1,
            difficulty=row.difficulty or "medium",
            order_index=row.order_index or 0,
        )

    def __repr__(self) -> str:
        return f"<Question {self.id} {self.question_type} points={self.points}>"
