"""Pydantic schemas for learner progress.

Request and response models for:
- Enrollment
- Lesson progress updates and completion
- Course progress, dashboard and level access queries
"""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from govlearn.catalog.models import CourseLevel, LessonType
from govlearn.core.schemas import CamelModel
from govlearn.progress.models import (
    UNSET,
    Enrollment,
    LessonProgress,
    LessonProgressPatch,
    LessonProgressStatus,
)
from govlearn.progress.service import (
    DashboardStats,
    EnrolledCourse,
    LessonProgressEntry,
)


# ==============================================================================
# Enrollment Schemas
# ==============================================================================


class EnrollResponse(CamelModel):
    enrolled: bool = True
    message: str = "Successfully enrolled in course"
    course_id: UUID
    enrolled_at: datetime
    completed_at: datetime | None = None

    @classmethod
    def from_entity(cls, entity: Enrollment) -> "EnrollResponse":
        return cls(
            course_id=entity.course_id,
            enrolled_at=entity.enrolled_at,
            completed_at=entity.completed_at,
        )


class EnrollmentResponse(CamelModel):
    """Enrollment with its course and derived percent."""

    course_id: UUID
    title: str
    thumbnail_url: str | None = None
    level: CourseLevel
    enrolled_at: datetime
    completed_at: datetime | None = None
    completed_lessons: int
    total_lessons: int
    progress: int

    @classmethod
    def from_view(cls, view: EnrolledCourse) -> "EnrollmentResponse":
        return cls(
            course_id=view.course.id,
            title=view.course.title,
            thumbnail_url=view.course.thumbnail_url,
            level=CourseLevel(view.course.level),
            enrolled_at=view.enrollment.enrolled_at,
            completed_at=view.enrollment.completed_at,
            completed_lessons=view.completed_lessons,
            total_lessons=view.total_lessons,
            progress=view.percent,
        )


class EnrollmentListResponse(CamelModel):
    enrollments: list[EnrollmentResponse]
    total: int


# ==============================================================================
# Lesson Progress Schemas
# ==============================================================================


class UpdateLessonProgressRequest(CamelModel):
    """Progress patch; only keys present in the body are applied."""

    status: LessonProgressStatus | None = None
    progress_percent: int | None = Field(None, ge=0, le=100)
    quiz_score: int | None = Field(None, ge=0, le=100)

    def to_patch(self) -> LessonProgressPatch:
        """Map sent keys to a patch; an explicit null counts as not sent."""
        sent = self.model_fields_set

        def pick(name: str) -> object:
            value = getattr(self, name)
            return value if name in sent and value is not None else UNSET

        return LessonProgressPatch(
            status=pick("status"),
            progress_percent=pick("progress_percent"),
            quiz_score=pick("quiz_score"),
        )


class CompleteLessonRequest(CamelModel):
    quiz_score: int | None = Field(None, ge=0, le=100)


class LessonProgressResponse(CamelModel):
    """Lesson progress response."""

    lesson_id: UUID
    course_id: UUID
    status: LessonProgressStatus
    progress_percent: int = Field(description="0-100 percentage")
    quiz_score: int | None = None
    quiz_attempts: int = 0
    passed: bool | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    last_accessed_at: datetime | None = None

    @classmethod
    def from_entity(
        cls, entity: LessonProgress, passing_score: int | None = None
    ) -> "LessonProgressResponse":
        """Create response from entity."""
        passed = None
        if entity.quiz_score is not None and passing_score is not None:
            passed = entity.quiz_score >= passing_score
        return cls(
            lesson_id=entity.lesson_id,
            course_id=entity.course_id,
            status=LessonProgressStatus(entity.status),
            progress_percent=entity.progress_percent,
            quiz_score=entity.quiz_score,
            quiz_attempts=entity.quiz_attempts,
            passed=passed,
            started_at=entity.started_at,
            completed_at=entity.completed_at,
            last_accessed_at=entity.last_accessed_at,
        )


class UpdateLessonProgressResponse(CamelModel):
    progress: LessonProgressResponse
    course_progress: int
    course_completed: bool = False


class CompleteLessonResponse(CamelModel):
    message: str = "Lesson completed successfully"
    progress: LessonProgressResponse
    course_progress: int
    course_completed: bool = False


# ==============================================================================
# Query Schemas
# ==============================================================================


class LessonProgressDetail(LessonProgressResponse):
    """Progress row joined with its lesson."""

    lesson_title: str
    lesson_type: LessonType
    order_index: int

    @classmethod
    def from_entry(cls, entry: LessonProgressEntry) -> "LessonProgressDetail":
        base = LessonProgressResponse.from_entity(
            entry.progress, entry.lesson.passing_score
        )
        return cls(
            **base.model_dump(),
            lesson_title=entry.lesson.title,
            lesson_type=LessonType(entry.lesson.type),
            order_index=entry.lesson.order_index,
        )


class CourseProgressResponse(CamelModel):
    course_id: UUID
    course_progress: int
    lessons: list[LessonProgressDetail]


class CurrentCourseResponse(CamelModel):
    id: UUID
    title: str
    thumbnail_url: str | None = None
    enrolled_at: datetime
    completed_lessons: int
    total_lessons: int
    progress: int

    @classmethod
    def from_view(cls, view: EnrolledCourse) -> "CurrentCourseResponse":
        return cls(
            id=view.course.id,
            title=view.course.title,
            thumbnail_url=view.course.thumbnail_url,
            enrolled_at=view.enrollment.enrolled_at,
            completed_lessons=view.completed_lessons,
            total_lessons=view.total_lessons,
            progress=view.percent,
        )


class DashboardStatsResponse(CamelModel):
    enrolled_courses: int
    completed_courses: int
    lessons_completed: int
    average_quiz_score: int


class DashboardResponse(CamelModel):
    stats: DashboardStatsResponse
    current_courses: list[CurrentCourseResponse]

    @classmethod
    def from_stats(cls, stats: DashboardStats) -> "DashboardResponse":
        return cls(
            stats=DashboardStatsResponse(
                enrolled_courses=stats.enrolled_courses,
                completed_courses=stats.completed_courses,
                lessons_completed=stats.lessons_completed,
                average_quiz_score=stats.average_quiz_score,
            ),
            current_courses=[
                CurrentCourseResponse.from_view(c) for c in stats.current_courses
            ],
        )
