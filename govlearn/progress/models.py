"""Database models for learner progress.

Cassandra table definitions for:
- Enrollments: one row per (user, course), partitioned by user
- Enrollments by course: lookup for counts and cascade deletes
- Lesson progress: one row per (user, lesson), partitioned by user

Enrollment uniqueness and monotonic completion rely on lightweight
transactions (IF NOT EXISTS / IF completed_at = null); progress rows are
plain primary-key upserts so racing writers converge on one row.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from govlearn.utils.time import ensure_utc_aware, utc_now


class LessonProgressStatus(str, Enum):
    """Per-lesson state machine: NOT_STARTED -> IN_PROGRESS -> COMPLETED."""

    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# Partitioned by user: "which courses is this user enrolled in?"
ENROLLMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments (
    user_id UUID,
    course_id UUID,
    enrolled_at TIMESTAMP,
    completed_at TIMESTAMP,
    PRIMARY KEY ((user_id), course_id)
)
"""

# Lookup: "who is enrolled in this course?"
ENROLLMENTS_BY_COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments_by_course (
    course_id UUID,
    user_id UUID,
    enrolled_at TIMESTAMP,
    PRIMARY KEY ((course_id), user_id)
)
"""

LESSON_PROGRESS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lesson_progress (
    user_id UUID,
    course_id UUID,
    lesson_id UUID,
    status TEXT,
    progress_percent INT,
    quiz_score INT,
    quiz_attempts INT,
    started_at TIMESTAMP,
    completed_at TIMESTAMP,
    last_accessed_at TIMESTAMP,
    PRIMARY KEY ((user_id), course_id, lesson_id)
) WITH CLUSTERING ORDER BY (course_id ASC, lesson_id ASC)
"""

# Cascade lookups when a lesson or a course is deleted
LESSON_PROGRESS_BY_LESSON_INDEX_CQL = """
CREATE INDEX IF NOT EXISTS lesson_progress_lesson_idx
ON {keyspace}.lesson_progress (lesson_id)
"""

LESSON_PROGRESS_BY_COURSE_INDEX_CQL = """
CREATE INDEX IF NOT EXISTS lesson_progress_course_idx
ON {keyspace}.lesson_progress (course_id)
"""

PROGRESS_TABLES_CQL = [
    ENROLLMENTS_TABLE_CQL,
    ENROLLMENTS_BY_COURSE_TABLE_CQL,
    LESSON_PROGRESS_TABLE_CQL,
    LESSON_PROGRESS_BY_LESSON_INDEX_CQL,
    LESSON_PROGRESS_BY_COURSE_INDEX_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class Enrollment:
    """A user's registration in a course.

    Attributes:
        user_id: Learner id (owned by Auth)
        course_id: Course id
        enrolled_at: Enrollment timestamp
        completed_at: Set once every published lesson is completed, never
            cleared afterwards
    """

    def __init__(
        self,
        user_id: UUID,
        course_id: UUID,
        enrolled_at: datetime | None = None,
        completed_at: datetime | None = None,
    ):
        self.user_id = user_id
        self.course_id = course_id
        self.enrolled_at = ensure_utc_aware(enrolled_at) or utc_now()
        self.completed_at = ensure_utc_aware(completed_at)

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    @classmethod
    def from_row(cls, row: Any) -> "Enrollment":
        """Create Enrollment instance from Cassandra row."""
        return cls(
            user_id=row.user_id,
            course_id=row.course_id,
            enrolled_at=row.enrolled_at,
            completed_at=row.completed_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "user_id": self.user_id,
            "course_id": self.course_id,
            "enrolled_at": self.enrolled_at,
            "completed_at": self.completed_at,
        }

    def __repr__(self) -> str:
        return f"<Enrollment user={self.user_id} course={self.course_id}>"


class LessonProgress:
    """Progress of one user on one lesson.

    Invariant: status is COMPLETED exactly when progress_percent is 100 and
    completed_at is set.
    """

    def __init__(
        self,
        user_id: UUID,
        course_id: UUID,
        lesson_id: UUID,
        status: str = LessonProgressStatus.NOT_STARTED.value,
        progress_percent: int = 0,
        quiz_score: int | None = None,
        quiz_attempts: int = 0,
        started_at: datetime | None = None,
        completed_at: datetime | None = None,
        last_accessed_at: datetime | None = None,
    ):
        self.user_id = user_id
        self.course_id = course_id
        self.lesson_id = lesson_id
        self.status = status
        self.progress_percent = progress_percent
        self.quiz_score = quiz_score
        self.quiz_attempts = quiz_attempts
        self.started_at = ensure_utc_aware(started_at)
        self.completed_at = ensure_utc_aware(completed_at)
        self.last_accessed_at = ensure_utc_aware(last_accessed_at) or utc_now()

    @property
    def is_completed(self) -> bool:
        """Check if lesson is completed."""
        return self.status == LessonProgressStatus.COMPLETED.value

    @classmethod
    def from_row(cls, row: Any) -> "LessonProgress":
        """Create LessonProgress instance from Cassandra row."""
        return cls(
            user_id=row.user_id,
            course_id=row.course_id,
            lesson_id=row.lesson_id,
            status=row.status or LessonProgressStatus.NOT_STARTED.value,
            progress_percent=row.progress_percent or 0,
            quiz_score=row.quiz_score,
            quiz_attempts=row.quiz_attempts or 0,
            started_at=row.started_at,
            completed_at=row.completed_at,
            last_accessed_at=row.last_accessed_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "user_id": self.user_id,
            "course_id": self.course_id,
            "lesson_id": self.lesson_id,
            "status": self.status,
            "progress_percent": self.progress_percent,
            "quiz_score": self.quiz_score,
            "quiz_attempts": self.quiz_attempts,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "last_accessed_at": self.last_accessed_at,
        }

    def __repr__(self) -> str:
        return (
            f"<LessonProgress user={self.user_id} lesson={self.lesson_id} "
            f"{self.status} {self.progress_percent}%>"
        )


# ==============================================================================
# Patch Type
# ==============================================================================


class _Unset:
    """Marker for a patch field that was not supplied."""

    _instance: "_Unset | None" = None

    def __new__(cls) -> "_Unset":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


@dataclass(frozen=True)
class LessonProgressPatch:
    """Fields to overwrite on a progress row.

    A field left as UNSET keeps the stored value; there is no way to clear a
    field through a patch.
    """

    status: LessonProgressStatus | Any = UNSET
    progress_percent: int | Any = UNSET
    quiz_score: int | Any = UNSET

    @staticmethod
    def is_set(value: Any) -> bool:
        return value is not UNSET
