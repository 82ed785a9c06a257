"""Per-lesson progress rows.

`apply_patch` and `apply_completion` are pure: they take the stored row (or
None) and return the row to upsert. `ProgressTracker` only reads and writes
rows; it never decides state.
"""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from govlearn.progress.exceptions import InvalidProgressTransitionError
from govlearn.progress.models import (
    LessonProgress,
    LessonProgressPatch,
    LessonProgressStatus,
)


if TYPE_CHECKING:
    from cassandra.cluster import Session


COMPLETE_PERCENT = 100


def _fresh_row(
    user_id: UUID, course_id: UUID, lesson_id: UUID, now: datetime
) -> LessonProgress:
    return LessonProgress(
        user_id=user_id,
        course_id=course_id,
        lesson_id=lesson_id,
        started_at=now,
        last_accessed_at=now,
    )


def _copy(row: LessonProgress) -> LessonProgress:
    return LessonProgress(**row.to_dict())


def apply_patch(
    current: LessonProgress | None,
    patch: LessonProgressPatch,
    user_id: UUID,
    course_id: UUID,
    lesson_id: UUID,
    now: datetime,
) -> LessonProgress:
    """Merge a patch onto the stored row and restore the status invariant.

    Supplied fields overwrite, the rest keep their stored value. Afterwards:
    - explicit COMPLETED forces 100% and stamps completed_at;
    - explicit IN_PROGRESS clears completed_at;
    - explicit NOT_STARTED is only accepted while the lesson has not
      started (stored status NOT_STARTED and no progress);
    - without a status, the percent drives it (100 completes, less than
      100 reopens a completed row, above 0 starts a fresh one).

    A supplied quiz score counts as one more attempt.

    Raises:
        InvalidProgressTransitionError: If NOT_STARTED is requested for a
            lesson that already has progress
    """
    row = _copy(current) if current else _fresh_row(user_id, course_id, lesson_id, now)
    explicit_status = patch.is_set(patch.status)

    if explicit_status and LessonProgressStatus(patch.status) is LessonProgressStatus.NOT_STARTED:
        merged_percent = (
            patch.progress_percent
            if patch.is_set(patch.progress_percent)
            else row.progress_percent
        )
        if row.status != LessonProgressStatus.NOT_STARTED.value or merged_percent > 0:
            raise InvalidProgressTransitionError

    if patch.is_set(patch.progress_percent):
        row.progress_percent = patch.progress_percent
    if patch.is_set(patch.quiz_score):
        row.quiz_score = patch.quiz_score
        row.quiz_attempts += 1

    if explicit_status:
        status = LessonProgressStatus(patch.status)
        if status is LessonProgressStatus.COMPLETED:
            row.progress_percent = COMPLETE_PERCENT
            row.completed_at = now
        else:
            row.completed_at = None
            if row.progress_percent >= COMPLETE_PERCENT:
                # 100% is reserved for completed rows
                row.progress_percent = COMPLETE_PERCENT - 1
        row.status = status.value
    elif row.progress_percent >= COMPLETE_PERCENT:
        row.status = LessonProgressStatus.COMPLETED.value
        row.completed_at = row.completed_at or now
    elif row.is_completed:
        row.status = LessonProgressStatus.IN_PROGRESS.value
        row.completed_at = None
    elif row.progress_percent > 0:
        row.status = LessonProgressStatus.IN_PROGRESS.value

    row.started_at = row.started_at or now
    row.last_accessed_at = now
    return row


def apply_completion(
    current: LessonProgress | None,
    user_id: UUID,
    course_id: UUID,
    lesson_id: UUID,
    now: datetime,
    quiz_score: int | None = None,
) -> LessonProgress:
    """Unconditionally complete a lesson.

    Repeating the call keeps the row COMPLETED; attempts only grow when a
    score is supplied again.
    """
    row = _copy(current) if current else _fresh_row(user_id, course_id, lesson_id, now)
    row.status = LessonProgressStatus.COMPLETED.value
    row.progress_percent = COMPLETE_PERCENT
    row.completed_at = now
    if quiz_score is not None:
        row.quiz_score = quiz_score
        row.quiz_attempts += 1
    row.started_at = row.started_at or now
    row.last_accessed_at = now
    return row


class ProgressTracker:
    """Reads and upserts lesson progress rows."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements."""
        ks = self.keyspace

        self._get_progress = self.session.prepare(f"""
            SELECT * FROM {ks}.lesson_progress
            WHERE user_id = ? AND course_id = ? AND lesson_id = ?
        """)
        self._get_course_progress = self.session.prepare(f"""
            SELECT * FROM {ks}.lesson_progress
            WHERE user_id = ? AND course_id = ?
        """)
        self._get_user_progress = self.session.prepare(
            f"SELECT * FROM {ks}.lesson_progress WHERE user_id = ?"
        )
        self._upsert_progress = self.session.prepare(f"""
            INSERT INTO {ks}.lesson_progress
            (user_id, course_id, lesson_id, status, progress_percent, quiz_score,
             quiz_attempts, started_at, completed_at, last_accessed_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)

    async def get(
        self, user_id: UUID, course_id: UUID, lesson_id: UUID
    ) -> LessonProgress | None:
        result = await self.session.aexecute(
            self._get_progress, [user_id, course_id, lesson_id]
        )
        row = result.one()
        return LessonProgress.from_row(row) if row else None

    async def list_course(self, user_id: UUID, course_id: UUID) -> list[LessonProgress]:
        """All progress rows of a user inside one course."""
        rows = await self.session.aexecute(
            self._get_course_progress, [user_id, course_id]
        )
        return [LessonProgress.from_row(row) for row in rows]

    async def list_user(self, user_id: UUID) -> list[LessonProgress]:
        """All progress rows of a user."""
        rows = await self.session.aexecute(self._get_user_progress, [user_id])
        return [LessonProgress.from_row(row) for row in rows]

    async def save(self, progress: LessonProgress) -> None:
        """Upsert by (user_id, course_id, lesson_id)."""
        await self.session.aexecute(
            self._upsert_progress,
            [
                progress.user_id,
                progress.course_id,
                progress.lesson_id,
                progress.status,
                progress.progress_percent,
                progress.quiz_score,
                progress.quiz_attempts,
                progress.started_at,
                progress.completed_at,
                progress.last_accessed_at,
            ],
        )
