"""Enrollment ledger.

One enrollment per (user, course), created with a lightweight transaction so
two racing enroll calls cannot both succeed. After creation only
`completed_at` changes, and only from null to a timestamp.
"""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog
from cassandra import DriverException

from govlearn.progress.exceptions import AlreadyEnrolledError
from govlearn.progress.models import Enrollment
from govlearn.utils.time import utc_now


if TYPE_CHECKING:
    from cassandra.cluster import Session

    from govlearn.catalog.service import CourseService

logger = structlog.get_logger(__name__)


class EnrollmentLedger:
    """Service for enrollments."""

    def __init__(self, session: "Session", keyspace: str, course_service: "CourseService"):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self.course_service = course_service
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements."""
        ks = self.keyspace

        self._insert_enrollment = self.session.prepare(f"""
            INSERT INTO {ks}.enrollments (user_id, course_id, enrolled_at, completed_at)
            VALUES (?, ?, ?, null)
            IF NOT EXISTS
        """)
        self._insert_enrollment_by_course = self.session.prepare(f"""
            INSERT INTO {ks}.enrollments_by_course (course_id, user_id, enrolled_at)
            VALUES (?, ?, ?)
        """)
        self._get_enrollment = self.session.prepare(
            f"SELECT * FROM {ks}.enrollments WHERE user_id = ? AND course_id = ?"
        )
        self._get_user_enrollments = self.session.prepare(
            f"SELECT * FROM {ks}.enrollments WHERE user_id = ?"
        )
        self._count_course_enrollments = self.session.prepare(
            f"SELECT COUNT(*) AS count FROM {ks}.enrollments_by_course WHERE course_id = ?"
        )
        # enrolled_at guard keeps the LWT from creating a row for a deleted
        # or never-made enrollment
        self._mark_completed = self.session.prepare(f"""
            UPDATE {ks}.enrollments SET completed_at = ?
            WHERE user_id = ? AND course_id = ?
            IF enrolled_at != null AND completed_at = null
        """)

    async def enroll(self, user_id: UUID, course_id: UUID) -> Enrollment:
        """Register a user in a course.

        The by-course lookup row is written after the LWT. A conflicting
        call rewrites it from the stored enrollment, so retrying an enroll
        whose lookup write failed repairs the lookup.

        Raises:
            CourseNotFoundError: If the course doesn't exist
            AlreadyEnrolledError: If the (user, course) enrollment exists
        """
        await self.course_service.require_course(course_id)

        enrollment = Enrollment(user_id=user_id, course_id=course_id)
        result = await self.session.aexecute(
            self._insert_enrollment, [user_id, course_id, enrollment.enrolled_at]
        )
        if not result.was_applied:
            existing = result.one()
            if existing is not None and existing.enrolled_at is not None:
                await self._index_enrollment(user_id, course_id, existing.enrolled_at)
            raise AlreadyEnrolledError

        await self._index_enrollment(user_id, course_id, enrollment.enrolled_at)

        logger.info("user_enrolled", user_id=str(user_id), course_id=str(course_id))
        return enrollment

    async def _index_enrollment(
        self, user_id: UUID, course_id: UUID, enrolled_at: datetime
    ) -> None:
        try:
            await self.session.aexecute(
                self._insert_enrollment_by_course, [course_id, user_id, enrolled_at]
            )
        except DriverException:
            logger.exception(
                "enrollment_index_write_failed",
                user_id=str(user_id),
                course_id=str(course_id),
            )
            raise

    async def get_enrollment(self, user_id: UUID, course_id: UUID) -> Enrollment | None:
        result = await self.session.aexecute(self._get_enrollment, [user_id, course_id])
        row = result.one()
        return Enrollment.from_row(row) if row else None

    async def get_user_enrollments(self, user_id: UUID) -> list[Enrollment]:
        """Enrollments of a user, newest first."""
        rows = await self.session.aexecute(self._get_user_enrollments, [user_id])
        return sorted(
            (Enrollment.from_row(row) for row in rows),
            key=lambda e: e.enrolled_at,
            reverse=True,
        )

    async def count_course_enrollments(self, course_id: UUID) -> int:
        result = await self.session.aexecute(self._count_course_enrollments, [course_id])
        row = result.one()
        return int(row.count) if row else 0

    async def mark_completed_if_eligible(self, user_id: UUID, course_id: UUID) -> bool:
        """Stamp completed_at if the user is enrolled and it is still null.

        The caller decides eligibility (course percent is 100).

        Returns:
            True if this call set completed_at
        """
        result = await self.session.aexecute(
            self._mark_completed, [utc_now(), user_id, course_id]
        )
        return bool(result.was_applied)
