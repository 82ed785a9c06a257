"""Learner progress API endpoints.

Provides routes for:
- Course enrollment
- Lesson progress updates and completion
- Course progress, dashboard, enrollments and level access queries

All routes act on the calling principal's own data.
"""

from uuid import UUID

from fastapi import APIRouter, status

from govlearn.auth.dependencies import CurrentUser
from govlearn.catalog.exceptions import CatalogError
from govlearn.catalog.schemas import LevelAccessResponse
from govlearn.progress.dependencies import ProgressServiceDep, handle_progress_error
from govlearn.progress.exceptions import ProgressError
from govlearn.progress.schemas import (
    CompleteLessonRequest,
    CompleteLessonResponse,
    CourseProgressResponse,
    DashboardResponse,
    EnrollmentListResponse,
    EnrollmentResponse,
    EnrollResponse,
    LessonProgressDetail,
    LessonProgressResponse,
    UpdateLessonProgressRequest,
    UpdateLessonProgressResponse,
)


router = APIRouter(prefix="/v1/progress", tags=["progress"])


# ==============================================================================
# Enrollment Endpoints
# ==============================================================================


@router.post(
    "/enroll/{course_id}",
    response_model=EnrollResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enroll in course",
)
async def enroll(
    course_id: UUID,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> EnrollResponse:
    """Enroll the current user; a second call answers 409."""
    try:
        enrollment = await progress_service.enroll(user.id, course_id)
    except (ProgressError, CatalogError) as e:
        raise handle_progress_error(e) from e
    return EnrollResponse.from_entity(enrollment)


@router.get(
    "/enrollments",
    response_model=EnrollmentListResponse,
    summary="List my enrollments",
)
async def list_my_enrollments(
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> EnrollmentListResponse:
    """Enrollments of the current user, newest first, with course percent."""
    enrolled = await progress_service.list_enrolled_courses(user.id)
    return EnrollmentListResponse(
        enrollments=[EnrollmentResponse.from_view(e) for e in enrolled],
        total=len(enrolled),
    )


# ==============================================================================
# Lesson Progress Endpoints
# ==============================================================================


@router.put(
    "/lesson/{lesson_id}",
    response_model=UpdateLessonProgressResponse,
    summary="Update lesson progress",
)
async def update_lesson_progress(
    lesson_id: UUID,
    data: UpdateLessonProgressRequest,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> UpdateLessonProgressResponse:
    """Apply the sent fields to the lesson progress row.

    Fields missing from the body keep their stored value. The response carries
    the course percent recomputed after the write.
    """
    try:
        result = await progress_service.update_lesson_progress(
            user.id, lesson_id, data.to_patch()
        )
    except (ProgressError, CatalogError) as e:
        raise handle_progress_error(e) from e

    return UpdateLessonProgressResponse(
        progress=LessonProgressResponse.from_entity(
            result.progress, result.lesson.passing_score
        ),
        course_progress=result.completion.percent,
        course_completed=result.completion.completed_now,
    )


@router.post(
    "/lesson/{lesson_id}/complete",
    response_model=CompleteLessonResponse,
    summary="Complete lesson",
)
async def complete_lesson(
    lesson_id: UUID,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
    data: CompleteLessonRequest | None = None,
) -> CompleteLessonResponse:
    """Mark a lesson completed, optionally recording a quiz score."""
    quiz_score = data.quiz_score if data else None
    try:
        result = await progress_service.complete_lesson(user.id, lesson_id, quiz_score)
    except (ProgressError, CatalogError) as e:
        raise handle_progress_error(e) from e

    return CompleteLessonResponse(
        progress=LessonProgressResponse.from_entity(
            result.progress, result.lesson.passing_score
        ),
        course_progress=result.completion.percent,
        course_completed=result.completion.completed_now,
    )


# ==============================================================================
# Query Endpoints
# ==============================================================================


@router.get(
    "/course/{course_id}",
    response_model=CourseProgressResponse,
    summary="Get course progress",
)
async def get_course_progress(
    course_id: UUID,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> CourseProgressResponse:
    try:
        view = await progress_service.get_course_progress(user.id, course_id)
    except (ProgressError, CatalogError) as e:
        raise handle_progress_error(e) from e

    return CourseProgressResponse(
        course_id=view.course_id,
        course_progress=view.percent,
        lessons=[LessonProgressDetail.from_entry(entry) for entry in view.lessons],
    )


@router.get(
    "/dashboard",
    response_model=DashboardResponse,
    summary="Get dashboard stats",
)
async def get_dashboard(
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> DashboardResponse:
    """Counts, average quiz score and up to five courses in progress."""
    stats = await progress_service.get_dashboard_stats(user.id)
    return DashboardResponse.from_stats(stats)


@router.get(
    "/levels",
    response_model=list[LevelAccessResponse],
    summary="Get level access",
)
async def get_level_access(
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> list[LevelAccessResponse]:
    access = await progress_service.get_level_access(user.id)
    return [
        LevelAccessResponse(level=level, is_unlocked=unlocked)
        for level, unlocked in access.items()
    ]
