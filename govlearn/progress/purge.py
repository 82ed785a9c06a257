"""Learner data removal for catalog cascades.

Enrollments and progress rows grow with the audience of a course, so they
are deleted in fixed-size logged batches before the catalog rows go. A
failed delete can be repeated: every statement here is idempotent and the
course or lesson is still present to retry against.
"""

from typing import TYPE_CHECKING, Any
from uuid import UUID

import structlog

from govlearn.catalog.service import execute_statements


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)

DEFAULT_BATCH_SIZE = 100


def chunked(items: list[Any], size: int) -> list[list[Any]]:
    return [items[start : start + size] for start in range(0, len(items), size)]


class ProgressPurger:
    """Deletes progress rows and enrollments of removed lessons and courses."""

    def __init__(
        self, session: "Session", keyspace: str, batch_size: int = DEFAULT_BATCH_SIZE
    ):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self.batch_size = batch_size
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements."""
        ks = self.keyspace

        self._progress_by_lesson = self.session.prepare(
            f"SELECT user_id, course_id, lesson_id FROM {ks}.lesson_progress WHERE lesson_id = ?"
        )
        self._progress_by_course = self.session.prepare(
            f"SELECT user_id FROM {ks}.lesson_progress WHERE course_id = ?"
        )
        self._enrolled_users = self.session.prepare(
            f"SELECT user_id FROM {ks}.enrollments_by_course WHERE course_id = ?"
        )
        self._delete_lesson_progress = self.session.prepare(f"""
            DELETE FROM {ks}.lesson_progress
            WHERE user_id = ? AND course_id = ? AND lesson_id = ?
        """)
        self._delete_course_progress = self.session.prepare(
            f"DELETE FROM {ks}.lesson_progress WHERE user_id = ? AND course_id = ?"
        )
        self._delete_enrollment = self.session.prepare(
            f"DELETE FROM {ks}.enrollments WHERE user_id = ? AND course_id = ?"
        )
        self._delete_course_enrollments = self.session.prepare(
            f"DELETE FROM {ks}.enrollments_by_course WHERE course_id = ?"
        )

    async def lesson_statements(self, lesson_id: UUID) -> list[tuple[Any, list[Any]]]:
        """Deletes for every progress row on a lesson."""
        rows = await self.session.aexecute(self._progress_by_lesson, [lesson_id])
        return [
            (self._delete_lesson_progress, [row.user_id, row.course_id, row.lesson_id])
            for row in rows
        ]

    async def course_statements(self, course_id: UUID) -> list[tuple[Any, list[Any]]]:
        """Deletes for every enrollment and progress row of a course."""
        statements: list[tuple[Any, list[Any]]] = []

        enrolled = await self.session.aexecute(self._enrolled_users, [course_id])
        for row in enrolled:
            statements.append((self._delete_enrollment, [row.user_id, course_id]))
        statements.append((self._delete_course_enrollments, [course_id]))

        # Learners may have progress without being enrolled
        progress = await self.session.aexecute(self._progress_by_course, [course_id])
        for user_id in dict.fromkeys(row.user_id for row in progress):
            statements.append((self._delete_course_progress, [user_id, course_id]))

        return statements

    async def purge_lesson(self, lesson_id: UUID) -> int:
        """Delete all progress on a lesson; returns the number of deletes."""
        return await self._run(await self.lesson_statements(lesson_id), lesson_id=lesson_id)

    async def purge_course(self, course_id: UUID) -> int:
        """Delete all enrollments and progress of a course."""
        return await self._run(await self.course_statements(course_id), course_id=course_id)

    async def _run(self, statements: list[tuple[Any, list[Any]]], **context: UUID) -> int:
        chunks = chunked(statements, self.batch_size)
        for chunk in chunks:
            await execute_statements(self.session, chunk)
        if statements:
            logger.info(
                "learner_data_purged",
                deletes=len(statements),
                batches=len(chunks),
                **{key: str(value) for key, value in context.items()},
            )
        return len(statements)
