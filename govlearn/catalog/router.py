"""Course catalog API endpoints.

Provides routes for:
- Catalog listing with the learner overlay and level access
- Courses: CRUD and per-level reordering
- Lessons: CRUD with embedded quiz, reordering
- Quiz questions: standalone editing
"""

from uuid import UUID

from fastapi import APIRouter, status

from govlearn.auth.dependencies import CatalogEditor, OptionalUser
from govlearn.catalog.dependencies import (
    CourseServiceDep,
    LessonServiceDep,
    handle_catalog_error,
)
from govlearn.catalog.exceptions import CatalogError, CourseNotFoundError
from govlearn.catalog.schemas import (
    CatalogResponse,
    CourseResponse,
    CreateCourseRequest,
    CreateLessonRequest,
    LessonResponse,
    LevelAccessResponse,
    QuizQuestionPayload,
    QuizQuestionResponse,
    ReorderCoursesRequest,
    ReorderLessonsRequest,
    UpdateCourseRequest,
    UpdateLessonRequest,
    UpdateQuizQuestionRequest,
)
from govlearn.catalog.service import CourseOutline
from govlearn.core.schemas import OkResponse
from govlearn.progress.dependencies import ProgressServiceDep
from govlearn.progress.models import LessonProgress
from govlearn.progress.service import CatalogOverlay


router = APIRouter(prefix="/v1/courses", tags=["courses"])


def lesson_progress_fields(progress: LessonProgress, passing_score: int) -> dict[str, object]:
    return {
        "is_completed": progress.is_completed,
        "progress_percent": progress.progress_percent,
        "quiz_score": progress.quiz_score,
        "passed": (
            progress.quiz_score >= passing_score
            if progress.quiz_score is not None
            else None
        ),
    }


def build_course_response(
    outline: CourseOutline, overlay: CatalogOverlay | None = None
) -> CourseResponse:
    """Project an outline, with learner state when an overlay is given."""
    lessons = []
    for item in outline.lessons:
        lesson = LessonResponse.from_entity(item.lesson, item.quiz)
        progress = overlay.lessons.get(item.lesson.id) if overlay else None
        if progress is not None:
            lesson = lesson.model_copy(
                update=lesson_progress_fields(progress, item.lesson.passing_score)
            )
        lessons.append(lesson)

    response = CourseResponse.from_entity(outline.course, lessons)
    if overlay is None:
        return response

    update: dict[str, object] = {
        "enrolled_count": overlay.enrolled_counts.get(outline.course.id, 0)
    }
    state = overlay.courses.get(outline.course.id)
    if state is not None:
        update.update(
            progress=state.percent,
            status=state.status,
            is_enrolled=state.is_enrolled,
        )
    if overlay.level_access:
        update["is_unlocked"] = overlay.level_access.get(response.level, False)
    return response.model_copy(update=update)


# ==============================================================================
# Catalog Reads
# ==============================================================================


@router.get(
    "",
    response_model=CatalogResponse,
    summary="List catalog",
)
async def list_catalog(
    course_service: CourseServiceDep,
    progress_service: ProgressServiceDep,
    user: OptionalUser,
) -> CatalogResponse:
    """Courses ordered by level, then position.

    Anonymous callers get published content with enrollment counts; signed-in
    learners also get their progress and the unlock status of each level.
    Catalog editors see unpublished content.
    """
    include_unpublished = bool(user and user.can_edit_catalog)
    outlines = await course_service.list_catalog(include_unpublished)
    overlay = await progress_service.catalog_overlay(user.id if user else None, outlines)

    return CatalogResponse(
        courses=[build_course_response(o, overlay) for o in outlines],
        levels=[
            LevelAccessResponse(level=level, is_unlocked=unlocked)
            for level, unlocked in overlay.level_access.items()
        ],
    )


@router.get(
    "/{course_id}",
    response_model=CourseResponse,
    summary="Get course",
)
async def get_course(
    course_id: UUID,
    course_service: CourseServiceDep,
    progress_service: ProgressServiceDep,
    user: OptionalUser,
) -> CourseResponse:
    """Course with its lessons and quizzes."""
    editor = bool(user and user.can_edit_catalog)
    try:
        course = await course_service.require_course(course_id)
        if not course.is_published and not editor:
            raise CourseNotFoundError
        outline = await course_service.get_outline(course, include_unpublished=editor)
    except CatalogError as e:
        raise handle_catalog_error(e) from e

    overlay = await progress_service.catalog_overlay(
        user.id if user else None, [outline]
    )
    return build_course_response(outline, overlay)


# ==============================================================================
# Course Authoring
# ==============================================================================


@router.post(
    "",
    response_model=CourseResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create course",
)
async def create_course(
    data: CreateCourseRequest,
    course_service: CourseServiceDep,
    user: CatalogEditor,
) -> CourseResponse:
    """Create a course at the end of its level (ADMIN or SUBADMIN)."""
    course = await course_service.create_course(data, created_by=user.id)
    return CourseResponse.from_entity(course)


@router.put(
    "/{course_id}",
    response_model=CourseResponse,
    summary="Update course",
)
async def update_course(
    course_id: UUID,
    data: UpdateCourseRequest,
    course_service: CourseServiceDep,
    _user: CatalogEditor,
) -> CourseResponse:
    """Patch a course; a new level appends it to that level."""
    try:
        course = await course_service.update_course(course_id, data)
        outline = await course_service.get_outline(course, include_unpublished=True)
    except CatalogError as e:
        raise handle_catalog_error(e) from e
    return build_course_response(outline)


@router.delete(
    "/{course_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete course",
)
async def delete_course(
    course_id: UUID,
    course_service: CourseServiceDep,
    _user: CatalogEditor,
) -> None:
    """Delete a course with its lessons, quizzes, enrollments and progress."""
    try:
        await course_service.delete_course(course_id)
    except CatalogError as e:
        raise handle_catalog_error(e) from e


@router.post(
    "/reorder",
    response_model=OkResponse,
    summary="Reorder courses within a level",
)
async def reorder_courses(
    data: ReorderCoursesRequest,
    course_service: CourseServiceDep,
    _user: CatalogEditor,
) -> OkResponse:
    """Set the order of every course in a level; all or nothing."""
    try:
        await course_service.reorder_courses(data.level, data.ordered_ids)
    except CatalogError as e:
        raise handle_catalog_error(e) from e
    return OkResponse()


# ==============================================================================
# Lesson Authoring
# ==============================================================================


@router.post(
    "/{course_id}/lessons",
    response_model=LessonResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add lesson",
)
async def add_lesson(
    course_id: UUID,
    data: CreateLessonRequest,
    lesson_service: LessonServiceDep,
    _user: CatalogEditor,
) -> LessonResponse:
    """Append a lesson, optionally with its full quiz."""
    try:
        outline = await lesson_service.add_lesson(course_id, data)
    except CatalogError as e:
        raise handle_catalog_error(e) from e
    return LessonResponse.from_entity(outline.lesson, outline.quiz)


@router.post(
    "/{course_id}/lessons/reorder",
    response_model=OkResponse,
    summary="Reorder lessons of a course",
)
async def reorder_lessons(
    course_id: UUID,
    data: ReorderLessonsRequest,
    lesson_service: LessonServiceDep,
    _user: CatalogEditor,
) -> OkResponse:
    try:
        await lesson_service.reorder_lessons(course_id, data.ordered_ids)
    except CatalogError as e:
        raise handle_catalog_error(e) from e
    return OkResponse()


@router.put(
    "/lessons/{lesson_id}",
    response_model=LessonResponse,
    summary="Update lesson",
)
async def update_lesson(
    lesson_id: UUID,
    data: UpdateLessonRequest,
    lesson_service: LessonServiceDep,
    _user: CatalogEditor,
) -> LessonResponse:
    """Patch a lesson; a submitted quiz replaces the stored one."""
    try:
        outline = await lesson_service.update_lesson(lesson_id, data)
    except CatalogError as e:
        raise handle_catalog_error(e) from e
    return LessonResponse.from_entity(outline.lesson, outline.quiz)


@router.delete(
    "/lessons/{lesson_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete lesson",
)
async def delete_lesson(
    lesson_id: UUID,
    lesson_service: LessonServiceDep,
    _user: CatalogEditor,
) -> None:
    try:
        await lesson_service.delete_lesson(lesson_id)
    except CatalogError as e:
        raise handle_catalog_error(e) from e


# ==============================================================================
# Quiz Authoring
# ==============================================================================


@router.post(
    "/lessons/{lesson_id}/quiz",
    response_model=QuizQuestionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add quiz question",
)
async def add_quiz_question(
    lesson_id: UUID,
    data: QuizQuestionPayload,
    lesson_service: LessonServiceDep,
    _user: CatalogEditor,
) -> QuizQuestionResponse:
    try:
        question = await lesson_service.add_quiz_question(lesson_id, data.to_input())
    except CatalogError as e:
        raise handle_catalog_error(e) from e
    return QuizQuestionResponse.from_entity(question)


@router.put(
    "/quiz/{question_id}",
    response_model=QuizQuestionResponse,
    summary="Update quiz question",
)
async def update_quiz_question(
    question_id: UUID,
    data: UpdateQuizQuestionRequest,
    lesson_service: LessonServiceDep,
    _user: CatalogEditor,
) -> QuizQuestionResponse:
    try:
        question = await lesson_service.update_quiz_question(question_id, data)
    except CatalogError as e:
        raise handle_catalog_error(e) from e
    return QuizQuestionResponse.from_entity(question)


@router.delete(
    "/quiz/{question_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete quiz question",
)
async def delete_quiz_question(
    question_id: UUID,
    lesson_service: LessonServiceDep,
    _user: CatalogEditor,
) -> None:
    try:
        await lesson_service.delete_quiz_question(question_id)
    except CatalogError as e:
        raise handle_catalog_error(e) from e
