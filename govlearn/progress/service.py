"""Learner progress service.

Business logic for:
- Enrollment (delegated to the ledger)
- Lesson progress updates and completion, each followed by a synchronous
  course completion evaluation
- Read models: course progress, dashboard stats, enrollments, level access
  and the learner overlay of the catalog

Nothing is cached between calls; every read recomputes from stored rows.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from govlearn.catalog.models import Course, CourseLevel, Lesson
from govlearn.progress.evaluator import (
    CourseCompletion,
    calculate_course_percent,
    count_completed,
    course_percent,
    course_status,
    round_half_up,
)
from govlearn.progress.levels import compute_level_access
from govlearn.progress.models import Enrollment, LessonProgress, LessonProgressPatch
from govlearn.progress.tracker import apply_completion, apply_patch
from govlearn.utils.time import utc_now


if TYPE_CHECKING:
    from govlearn.catalog.service import CourseOutline, CourseService, LessonService
    from govlearn.progress.evaluator import CompletionEvaluator
    from govlearn.progress.ledger import EnrollmentLedger
    from govlearn.progress.tracker import ProgressTracker

logger = structlog.get_logger(__name__)

CURRENT_COURSES_LIMIT = 5


# ==============================================================================
# Read Models
# ==============================================================================


@dataclass
class LessonProgressEntry:
    """Stored progress row joined with its lesson."""

    lesson: Lesson
    progress: LessonProgress


@dataclass
class ProgressUpdate:
    """Outcome of a progress write."""

    lesson: Lesson
    progress: LessonProgress
    completion: CourseCompletion


@dataclass
class CourseProgressView:
    course_id: UUID
    percent: int
    lessons: list[LessonProgressEntry] = field(default_factory=list)


@dataclass
class EnrolledCourse:
    """An enrollment with the course it points to and the derived percent."""

    enrollment: Enrollment
    course: Course
    completed_lessons: int
    total_lessons: int

    @property
    def percent(self) -> int:
        return calculate_course_percent(self.completed_lessons, self.total_lessons)


@dataclass
class DashboardStats:
    enrolled_courses: int
    completed_courses: int
    lessons_completed: int
    average_quiz_score: int
    current_courses: list[EnrolledCourse] = field(default_factory=list)


@dataclass
class LearnerCourseState:
    percent: int = 0
    status: str = course_status(0)
    is_enrolled: bool = False


@dataclass
class CatalogOverlay:
    """Per-user view data laid over catalog outlines."""

    enrolled_counts: dict[UUID, int] = field(default_factory=dict)
    courses: dict[UUID, LearnerCourseState] = field(default_factory=dict)
    lessons: dict[UUID, LessonProgress] = field(default_factory=dict)
    level_access: dict[CourseLevel, bool] = field(default_factory=dict)


class ProgressService:
    """Service for learner progress."""

    def __init__(
        self,
        tracker: "ProgressTracker",
        ledger: "EnrollmentLedger",
        evaluator: "CompletionEvaluator",
        course_service: "CourseService",
        lesson_service: "LessonService",
    ):
        self.tracker = tracker
        self.ledger = ledger
        self.evaluator = evaluator
        self.course_service = course_service
        self.lesson_service = lesson_service

    # ==========================================================================
    # Commands
    # ==========================================================================

    async def enroll(self, user_id: UUID, course_id: UUID) -> Enrollment:
        """Enroll a user in a course.

        Progress recorded before enrolling counts: if every published lesson
        is already completed the new enrollment is stamped completed.

        Raises:
            CourseNotFoundError: If the course doesn't exist
            AlreadyEnrolledError: If already enrolled
        """
        enrollment = await self.ledger.enroll(user_id, course_id)

        completion = await self.evaluator.evaluate(user_id, course_id)
        if completion.completed_now:
            enrollment = await self.ledger.get_enrollment(user_id, course_id) or enrollment
        return enrollment

    async def update_lesson_progress(
        self, user_id: UUID, lesson_id: UUID, patch: LessonProgressPatch
    ) -> ProgressUpdate:
        """Upsert a progress row from a patch, then re-evaluate the course.

        Raises:
            LessonNotFoundError: If lesson doesn't exist
        """
        lesson = await self.lesson_service.require_lesson(lesson_id)
        current = await self.tracker.get(user_id, lesson.course_id, lesson_id)

        progress = apply_patch(
            current, patch, user_id, lesson.course_id, lesson_id, utc_now()
        )
        await self.tracker.save(progress)

        completion = await self.evaluator.evaluate(user_id, lesson.course_id)
        logger.info(
            "lesson_progress_updated",
            user_id=str(user_id),
            lesson_id=str(lesson_id),
            status=progress.status,
            progress_percent=progress.progress_percent,
            course_percent=completion.percent,
        )
        return ProgressUpdate(lesson=lesson, progress=progress, completion=completion)

    async def complete_lesson(
        self, user_id: UUID, lesson_id: UUID, quiz_score: int | None = None
    ) -> ProgressUpdate:
        """Mark a lesson completed, then re-evaluate the course.

        Safe to repeat: the row stays COMPLETED and attempts only grow when a
        quiz score is supplied.

        Raises:
            LessonNotFoundError: If lesson doesn't exist
        """
        lesson = await self.lesson_service.require_lesson(lesson_id)
        current = await self.tracker.get(user_id, lesson.course_id, lesson_id)

        progress = apply_completion(
            current, user_id, lesson.course_id, lesson_id, utc_now(), quiz_score
        )
        await self.tracker.save(progress)

        completion = await self.evaluator.evaluate(user_id, lesson.course_id)
        logger.info(
            "lesson_completed",
            user_id=str(user_id),
            lesson_id=str(lesson_id),
            quiz_score=quiz_score,
            course_percent=completion.percent,
        )
        return ProgressUpdate(lesson=lesson, progress=progress, completion=completion)

    # ==========================================================================
    # Queries
    # ==========================================================================

    async def get_course_progress(self, user_id: UUID, course_id: UUID) -> CourseProgressView:
        """Course percent and the user's stored rows in lesson order.

        Raises:
            CourseNotFoundError: If the course doesn't exist
        """
        await self.course_service.require_course(course_id)
        lessons = await self.lesson_service.list_course_lessons(course_id)
        rows = await self.tracker.list_course(user_id, course_id)

        by_lesson = {row.lesson_id: row for row in rows}
        entries = [
            LessonProgressEntry(lesson=lesson, progress=by_lesson[lesson.id])
            for lesson in lessons
            if lesson.id in by_lesson
        ]
        return CourseProgressView(
            course_id=course_id,
            percent=course_percent(lessons, rows),
            lessons=entries,
        )

    async def list_enrolled_courses(self, user_id: UUID) -> list[EnrolledCourse]:
        """The user's enrollments with course and percent, newest first."""
        enrollments = await self.ledger.get_user_enrollments(user_id)
        rows_by_course: dict[UUID, list[LessonProgress]] = defaultdict(list)
        for row in await self.tracker.list_user(user_id):
            rows_by_course[row.course_id].append(row)

        result = []
        for enrollment in enrollments:
            course = await self.course_service.get_course(enrollment.course_id)
            if course is None:
                continue
            lessons = await self.lesson_service.list_published_lessons(course.id)
            completed, total = count_completed(lessons, rows_by_course[course.id])
            result.append(
                EnrolledCourse(
                    enrollment=enrollment,
                    course=course,
                    completed_lessons=completed,
                    total_lessons=total,
                )
            )
        return result

    async def get_level_access(self, user_id: UUID) -> dict[CourseLevel, bool]:
        """Unlock status per level, derived from current enrollments."""
        percents: dict[CourseLevel, list[int]] = defaultdict(list)
        for enrolled in await self.list_enrolled_courses(user_id):
            percents[CourseLevel(enrolled.course.level)].append(enrolled.percent)
        return compute_level_access(percents)

    async def get_dashboard_stats(self, user_id: UUID) -> DashboardStats:
        enrolled = await self.list_enrolled_courses(user_id)
        rows = await self.tracker.list_user(user_id)

        scores = [row.quiz_score for row in rows if row.quiz_score is not None]
        average = round_half_up(Decimal(sum(scores)) / len(scores)) if scores else 0

        return DashboardStats(
            enrolled_courses=len(enrolled),
            completed_courses=sum(1 for e in enrolled if e.enrollment.is_completed),
            lessons_completed=sum(1 for row in rows if row.is_completed),
            average_quiz_score=average,
            current_courses=[e for e in enrolled if not e.enrollment.is_completed][
                :CURRENT_COURSES_LIMIT
            ],
        )

    async def catalog_overlay(
        self, user_id: UUID | None, outlines: list["CourseOutline"]
    ) -> CatalogOverlay:
        """Enrollment counts for everyone, learner state for a signed-in user."""
        overlay = CatalogOverlay()
        for outline in outlines:
            overlay.enrolled_counts[outline.course.id] = (
                await self.ledger.count_course_enrollments(outline.course.id)
            )

        if user_id is None:
            overlay.level_access = compute_level_access({})
            return overlay

        enrolled_ids = {
            e.course_id for e in await self.ledger.get_user_enrollments(user_id)
        }
        rows_by_course: dict[UUID, list[LessonProgress]] = defaultdict(list)
        for row in await self.tracker.list_user(user_id):
            rows_by_course[row.course_id].append(row)
            overlay.lessons[row.lesson_id] = row

        for outline in outlines:
            course_id = outline.course.id
            percent = course_percent(
                (x.lesson for x in outline.lessons), rows_by_course[course_id]
            )
            overlay.courses[course_id] = LearnerCourseState(
                percent=percent,
                status=course_status(percent),
                is_enrolled=course_id in enrolled_ids,
            )

        overlay.level_access = await self.get_level_access(user_id)
        return overlay
