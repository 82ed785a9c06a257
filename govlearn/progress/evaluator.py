"""Course completion percent.

The percent is never stored: every call recomputes it from the published
lessons of the course and the user's progress rows.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from govlearn.catalog.models import Lesson
from govlearn.progress.models import LessonProgress, LessonProgressStatus


if TYPE_CHECKING:
    from govlearn.catalog.service import LessonService
    from govlearn.progress.ledger import EnrollmentLedger
    from govlearn.progress.tracker import ProgressTracker

logger = structlog.get_logger(__name__)

FULL = 100


def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def calculate_course_percent(completed: int, total: int) -> int:
    """round(100 * completed / total), halves rounded up; 0 for an empty course."""
    if total <= 0:
        return 0
    return round_half_up(Decimal(100) * Decimal(completed) / Decimal(total))


def count_completed(
    published_lessons: Iterable[Lesson], rows: Iterable[LessonProgress]
) -> tuple[int, int]:
    """(completed, total) counted over published lessons only.

    Rows for unpublished or deleted lessons are ignored.
    """
    published = {lesson.id for lesson in published_lessons if lesson.is_published}
    completed = {
        row.lesson_id
        for row in rows
        if row.lesson_id in published and row.is_completed
    }
    return len(completed), len(published)


def course_percent(
    published_lessons: Iterable[Lesson], rows: Iterable[LessonProgress]
) -> int:
    return calculate_course_percent(*count_completed(published_lessons, rows))


def course_status(percent: int) -> str:
    """Course-level status shown in catalog projections."""
    if percent >= FULL:
        return LessonProgressStatus.COMPLETED.value
    if percent > 0:
        return LessonProgressStatus.IN_PROGRESS.value
    return LessonProgressStatus.NOT_STARTED.value


@dataclass
class CourseCompletion:
    """Result of one evaluation.

    Attributes:
        percent: Course percent after the triggering write
        completed_now: True when this evaluation stamped the enrollment
    """

    course_id: UUID
    percent: int
    completed_now: bool = False


class CompletionEvaluator:
    """Recomputes a course percent and records completion on the enrollment."""

    def __init__(
        self,
        tracker: "ProgressTracker",
        lesson_service: "LessonService",
        ledger: "EnrollmentLedger",
    ):
        self.tracker = tracker
        self.lesson_service = lesson_service
        self.ledger = ledger

    async def percent(self, user_id: UUID, course_id: UUID) -> int:
        lessons = await self.lesson_service.list_published_lessons(course_id)
        rows = await self.tracker.list_course(user_id, course_id)
        return course_percent(lessons, rows)

    async def evaluate(self, user_id: UUID, course_id: UUID) -> CourseCompletion:
        """Recompute the percent; at 100 mark the enrollment completed.

        Marking is conditional on the stored completed_at being null, so a
        completed enrollment is never touched again.
        """
        percent = await self.percent(user_id, course_id)
        completed_now = False
        if percent == FULL:
            completed_now = await self.ledger.mark_completed_if_eligible(
                user_id, course_id
            )
            if completed_now:
                logger.info(
                    "course_completed",
                    user_id=str(user_id),
                    course_id=str(course_id),
                )
        return CourseCompletion(
            course_id=course_id, percent=percent, completed_now=completed_now
        )
