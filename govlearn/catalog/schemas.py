"""Pydantic schemas for the course catalog.

Request and response models for:
- Courses: CRUD and per-level reordering
- Lessons: CRUD with embedded quiz, reordering
- Quiz questions: standalone CRUD
- Catalog listing with learner progress overlay
"""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from govlearn.catalog.models import Course, CourseLevel, Lesson, LessonType, QuizQuestion
from govlearn.catalog.quiz import QuizQuestionInput
from govlearn.core.schemas import CamelModel


# ==============================================================================
# Quiz Schemas
# ==============================================================================


class QuizQuestionPayload(CamelModel):
    """Quiz question as sent by the lesson editor.

    Option count and answer index are checked by the service so the error
    can name the question's position in the submitted list.
    """

    id: str | None = Field(None, description="Persisted id, draft id (q-...) or null")
    question: str = Field("", max_length=2000)
    options: list[str] = Field(default_factory=list)
    correct_answer: int = Field(0, description="Index of the correct option")
    explanation: str | None = Field(None, max_length=2000)

    def to_input(self) -> QuizQuestionInput:
        return QuizQuestionInput(
            id=self.id,
            question=self.question,
            options=list(self.options),
            correct_answer_index=self.correct_answer,
            explanation=self.explanation,
        )


class UpdateQuizQuestionRequest(CamelModel):
    """Partial update of a single question."""

    question: str | None = Field(None, max_length=2000)
    options: list[str] | None = None
    correct_answer: int | None = None
    explanation: str | None = Field(None, max_length=2000)


class QuizQuestionResponse(CamelModel):
    id: UUID
    lesson_id: UUID
    question: str
    options: list[str]
    correct_answer: int
    explanation: str | None = None
    order_index: int

    @classmethod
    def from_entity(cls, entity: QuizQuestion) -> "QuizQuestionResponse":
        return cls(
            id=entity.id,
            lesson_id=entity.lesson_id,
            question=entity.question,
            options=entity.options,
            correct_answer=entity.correct_answer_index,
            explanation=entity.explanation,
            order_index=entity.order_index,
        )


# ==============================================================================
# Lesson Schemas
# ==============================================================================


class CreateLessonRequest(CamelModel):
    """Lesson creation request, optionally with its full quiz."""

    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=5000)
    type: LessonType = LessonType.TEXT
    duration_min: int = Field(0, ge=0)
    video_url: str | None = None
    video_source: str | None = None
    file_url: str | None = None
    file_name: str | None = None
    page_count: int | None = Field(None, ge=0)
    content: str | None = None
    is_external_link: bool = False
    is_published: bool = True
    passing_score: int | None = Field(None, description="0-100, defaults from settings")
    quiz: list[QuizQuestionPayload] | None = None


class UpdateLessonRequest(CamelModel):
    """Lesson patch; `quiz`, when present, replaces the whole quiz."""

    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, max_length=5000)
    type: LessonType | None = None
    duration_min: int | None = Field(None, ge=0)
    video_url: str | None = None
    video_source: str | None = None
    file_url: str | None = None
    file_name: str | None = None
    page_count: int | None = Field(None, ge=0)
    content: str | None = None
    is_external_link: bool | None = None
    is_published: bool | None = None
    passing_score: int | None = None
    quiz: list[QuizQuestionPayload] | None = None


class ReorderLessonsRequest(CamelModel):
    ordered_ids: list[UUID]


class LessonResponse(CamelModel):
    """Lesson with its quiz and, for an authenticated learner, progress."""

    id: UUID
    course_id: UUID
    title: str
    description: str | None = None
    type: LessonType
    duration_min: int
    video_url: str | None = None
    video_source: str | None = None
    file_url: str | None = None
    file_name: str | None = None
    page_count: int | None = None
    content: str | None = None
    is_external_link: bool = False
    order_index: int
    is_published: bool
    passing_score: int
    quiz: list[QuizQuestionResponse] = Field(default_factory=list)

    # Learner overlay
    is_completed: bool = False
    progress_percent: int = 0
    quiz_score: int | None = None
    passed: bool | None = None

    @classmethod
    def from_entity(
        cls, entity: Lesson, quiz: list[QuizQuestion] | None = None
    ) -> "LessonResponse":
        return cls(
            id=entity.id,
            course_id=entity.course_id,
            title=entity.title,
            description=entity.description,
            type=LessonType(entity.type),
            duration_min=entity.duration_min,
            video_url=entity.video_url,
            video_source=entity.video_source,
            file_url=entity.file_url,
            file_name=entity.file_name,
            page_count=entity.page_count,
            content=entity.content,
            is_external_link=entity.is_external_link,
            order_index=entity.order_index,
            is_published=entity.is_published,
            passing_score=entity.passing_score,
            quiz=[QuizQuestionResponse.from_entity(q) for q in quiz or []],
        )


# ==============================================================================
# Course Schemas
# ==============================================================================


class CreateCourseRequest(CamelModel):
    """Course creation request."""

    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=5000)
    thumbnail_url: str | None = Field(None, max_length=1000)
    level: CourseLevel = CourseLevel.BEGINNER
    total_duration: str | None = Field(None, max_length=50)
    is_published: bool = True


class UpdateCourseRequest(CamelModel):
    """Course patch. Changing `level` moves the course to the end of that level."""

    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, max_length=5000)
    thumbnail_url: str | None = Field(None, max_length=1000)
    level: CourseLevel | None = None
    total_duration: str | None = Field(None, max_length=50)
    is_published: bool | None = None


class ReorderCoursesRequest(CamelModel):
    """Full ordering of one level's courses.

    `level` is kept as a plain string so an unknown level is reported as a
    domain error rather than a schema error.
    """

    level: str
    ordered_ids: list[UUID]


class CourseResponse(CamelModel):
    """Course with lessons and, for an authenticated learner, progress."""

    id: UUID
    title: str
    description: str | None = None
    thumbnail_url: str | None = None
    level: CourseLevel
    total_duration: str | None = None
    is_published: bool
    order_index: int
    created_by: UUID | None = None
    created_at: datetime
    updated_at: datetime | None = None
    lessons: list[LessonResponse] = Field(default_factory=list)

    enrolled_count: int = 0
    # Learner overlay
    progress: int = 0
    status: str = "NOT_STARTED"
    is_enrolled: bool = False
    is_unlocked: bool = True

    @classmethod
    def from_entity(
        cls, entity: Course, lessons: list[LessonResponse] | None = None
    ) -> "CourseResponse":
        return cls(
            id=entity.id,
            title=entity.title,
            description=entity.description,
            thumbnail_url=entity.thumbnail_url,
            level=CourseLevel(entity.level),
            total_duration=entity.total_duration,
            is_published=entity.is_published,
            order_index=entity.order_index,
            created_by=entity.created_by,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
            lessons=lessons or [],
        )


class LevelAccessResponse(CamelModel):
    level: CourseLevel
    is_unlocked: bool


class CatalogResponse(CamelModel):
    """Catalog ordered by level, then by position inside the level."""

    courses: list[CourseResponse]
    levels: list[LevelAccessResponse]
