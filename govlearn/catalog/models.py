"""Database models for the course catalog.

Cassandra table definitions for:
- Courses: ordered within their level
- Lessons: ordered within their course
- Quiz questions: ordered within their lesson

Order indices are dense (0..n-1) inside their scope. Every write that would
shift more than one index is issued as a single logged batch by the service
layer.
"""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from govlearn.utils.time import ensure_utc_aware, utc_now


class CourseLevel(str, Enum):
    """Catalog-wide gating tier, totally ordered."""

    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"

    @property
    def rank(self) -> int:
        return LEVEL_ORDER.index(self)

    @property
    def previous(self) -> "CourseLevel | None":
        """The level that gates this one, None for the entry level."""
        return LEVEL_ORDER[self.rank - 1] if self.rank > 0 else None


LEVEL_ORDER: list[CourseLevel] = [
    CourseLevel.BEGINNER,
    CourseLevel.INTERMEDIATE,
    CourseLevel.ADVANCED,
]


class LessonType(str, Enum):
    """Lesson content type."""

    VIDEO = "video"
    TEXT = "text"
    QUIZ = "quiz"
    PDF = "pdf"
    PRESENTATION = "presentation"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.courses (
    id UUID PRIMARY KEY,
    title TEXT,
    description TEXT,
    thumbnail_url TEXT,
    level TEXT,
    total_duration TEXT,
    is_published BOOLEAN,
    order_index INT,
    created_by UUID,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

# Catalog listing and per-level ordering
COURSE_LEVEL_INDEX_CQL = """
CREATE INDEX IF NOT EXISTS courses_level_idx ON {keyspace}.courses (level)
"""

LESSON_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lessons (
    id UUID PRIMARY KEY,
    course_id UUID,
    title TEXT,
    description TEXT,
    type TEXT,
    duration_min INT,
    video_url TEXT,
    video_source TEXT,
    file_url TEXT,
    file_name TEXT,
    page_count INT,
    content TEXT,
    is_external_link BOOLEAN,
    order_index INT,
    is_published BOOLEAN,
    passing_score INT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

LESSON_COURSE_INDEX_CQL = """
CREATE INDEX IF NOT EXISTS lessons_course_idx ON {keyspace}.lessons (course_id)
"""

QUIZ_QUESTION_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.quiz_questions (
    id UUID PRIMARY KEY,
    lesson_id UUID,
    question TEXT,
    options LIST<TEXT>,
    correct_answer_index INT,
    explanation TEXT,
    order_index INT,
    created_at TIMESTAMP
)
"""

QUIZ_QUESTION_LESSON_INDEX_CQL = """
CREATE INDEX IF NOT EXISTS quiz_questions_lesson_idx
ON {keyspace}.quiz_questions (lesson_id)
"""

CATALOG_TABLES_CQL = [
    COURSE_TABLE_CQL,
    COURSE_LEVEL_INDEX_CQL,
    LESSON_TABLE_CQL,
    LESSON_COURSE_INDEX_CQL,
    QUIZ_QUESTION_TABLE_CQL,
    QUIZ_QUESTION_LESSON_INDEX_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class Course:
    """Course entity.

    Attributes:
        id: Unique identifier (UUID)
        title: Course title
        description: Course description
        thumbnail_url: Cover image URL (opaque, from the upload service)
        level: CourseLevel value
        total_duration: Human readable duration label, e.g. "4h 30m"
        is_published: Whether learners can see the course
        order_index: Position inside its level (dense, zero based)
        created_by: Author id
        created_at: Creation timestamp
        updated_at: Last update timestamp
    """

    def __init__(
        self,
        id: UUID | None = None,
        title: str = "",
        description: str | None = None,
        thumbnail_url: str | None = None,
        level: str = CourseLevel.BEGINNER.value,
        total_duration: str | None = None,
        is_published: bool = True,
        order_index: int = 0,
        created_by: UUID | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.title = title.strip()
        self.description = description
        self.thumbnail_url = thumbnail_url
        self.level = level
        self.total_duration = total_duration
        self.is_published = is_published
        self.order_index = order_index
        self.created_by = created_by
        self.created_at = ensure_utc_aware(created_at) or utc_now()
        self.updated_at = ensure_utc_aware(updated_at)

    @classmethod
    def from_row(cls, row: Any) -> "Course":
        """Create Course instance from Cassandra row."""
        return cls(
            id=row.id,
            title=row.title or "",
            description=row.description,
            thumbnail_url=row.thumbnail_url,
            level=row.level or CourseLevel.BEGINNER.value,
            total_duration=row.total_duration,
            is_published=row.is_published if row.is_published is not None else True,
            order_index=row.order_index or 0,
            created_by=row.created_by,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "thumbnail_url": self.thumbnail_url,
            "level": self.level,
            "total_duration": self.total_duration,
            "is_published": self.is_published,
            "order_index": self.order_index,
            "created_by": self.created_by,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return f"<Course {self.title} ({self.level} #{self.order_index})>"


class Lesson:
    """Lesson entity, the atomic content unit of a course.

    Media fields (video_url, file_url, ...) are opaque references from the
    upload service and are stored unvalidated.
    """

    def __init__(
        self,
        course_id: UUID,
        id: UUID | None = None,
        title: str = "",
        description: str | None = None,
        type: str = LessonType.TEXT.value,  # noqa: A002
        duration_min: int = 0,
        video_url: str | None = None,
        video_source: str | None = None,
        file_url: str | None = None,
        file_name: str | None = None,
        page_count: int | None = None,
        content: str | None = None,
        is_external_link: bool = False,
        order_index: int = 0,
        is_published: bool = True,
        passing_score: int = 70,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.course_id = course_id
        self.title = title.strip()
        self.description = description
        self.type = type
        self.duration_min = duration_min
        self.video_url = video_url
        self.video_source = video_source
        self.file_url = file_url
        self.file_name = file_name
        self.page_count = page_count
        self.content = content
        self.is_external_link = is_external_link
        self.order_index = order_index
        self.is_published = is_published
        self.passing_score = passing_score
        self.created_at = ensure_utc_aware(created_at) or utc_now()
        self.updated_at = ensure_utc_aware(updated_at)

    @classmethod
    def from_row(cls, row: Any) -> "Lesson":
        """Create Lesson instance from Cassandra row."""
        return cls(
            id=row.id,
            course_id=row.course_id,
            title=row.title or "",
            description=row.description,
            type=row.type or LessonType.TEXT.value,
            duration_min=row.duration_min or 0,
            video_url=row.video_url,
            video_source=row.video_source,
            file_url=row.file_url,
            file_name=row.file_name,
            page_count=row.page_count,
            content=row.content,
            is_external_link=bool(row.is_external_link),
            order_index=row.order_index or 0,
            is_published=row.is_published if row.is_published is not None else True,
            passing_score=row.passing_score if row.passing_score is not None else 70,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "course_id": self.course_id,
            "title": self.title,
            "description": self.description,
            "type": self.type,
            "duration_min": self.duration_min,
            "video_url": self.video_url,
            "video_source": self.video_source,
            "file_url": self.file_url,
            "file_name": self.file_name,
            "page_count": self.page_count,
            "content": self.content,
            "is_external_link": self.is_external_link,
            "order_index": self.order_index,
            "is_published": self.is_published,
            "passing_score": self.passing_score,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return f"<Lesson {self.title} ({self.type} #{self.order_index})>"


class QuizQuestion:
    """Multiple-choice question attached to a lesson."""

    def __init__(
        self,
        lesson_id: UUID,
        question: str,
        options: list[str],
        correct_answer_index: int = 0,
        id: UUID | None = None,
        explanation: str | None = None,
        order_index: int = 0,
        created_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.lesson_id = lesson_id
        self.question = question
        self.options = list(options)
        self.correct_answer_index = correct_answer_index
        self.explanation = explanation
        self.order_index = order_index
        self.created_at = ensure_utc_aware(created_at) or utc_now()

    @classmethod
    def from_row(cls, row: Any) -> "QuizQuestion":
        """Create QuizQuestion instance from Cassandra row."""
        return cls(
            id=row.id,
            lesson_id=row.lesson_id,
            question=row.question or "",
            options=list(row.options or []),
            correct_answer_index=row.correct_answer_index or 0,
            explanation=row.explanation,
            order_index=row.order_index or 0,
            created_at=row.created_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "lesson_id": self.lesson_id,
            "question": self.question,
            "options": list(self.options),
            "correct_answer_index": self.correct_answer_index,
            "explanation": self.explanation,
            "order_index": self.order_index,
            "created_at": self.created_at,
        }

    def __repr__(self) -> str:
        return f"<QuizQuestion {self.id} lesson={self.lesson_id} #{self.order_index}>"
