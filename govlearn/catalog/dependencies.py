"""FastAPI dependencies for the course catalog.

Provides dependency injection for:
- Course and lesson services
- Error handlers
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from govlearn.catalog.exceptions import CatalogError
from govlearn.catalog.service import CourseService, LessonService


async def get_course_service(request: Request) -> CourseService:
    """Get course service from app state."""
    service = getattr(request.app.state, "course_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Catalog service not available",
        )
    return service


async def get_lesson_service(request: Request) -> LessonService:
    """Get lesson service from app state."""
    service = getattr(request.app.state, "lesson_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Catalog service not available",
        )
    return service


# Type aliases for dependency injection
CourseServiceDep = Annotated[CourseService, Depends(get_course_service)]
LessonServiceDep = Annotated[LessonService, Depends(get_lesson_service)]


CATALOG_STATUS_MAP = {
    "course_not_found": status.HTTP_404_NOT_FOUND,
    "lesson_not_found": status.HTTP_404_NOT_FOUND,
    "question_not_found": status.HTTP_404_NOT_FOUND,
    "quiz_validation": status.HTTP_400_BAD_REQUEST,
    "invalid_level": status.HTTP_400_BAD_REQUEST,
    "empty_reorder": status.HTTP_400_BAD_REQUEST,
    "invalid_reorder": status.HTTP_400_BAD_REQUEST,
    "invalid_lesson": status.HTTP_400_BAD_REQUEST,
    "reorder_failed": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def handle_catalog_error(error: CatalogError) -> HTTPException:
    """Convert catalog errors to HTTP exceptions.

    Args:
        error: Catalog error

    Returns:
        HTTPException with appropriate status code
    """
    status_code = CATALOG_STATUS_MAP.get(
        error.code, status.HTTP_500_INTERNAL_SERVER_ERROR
    )
    return HTTPException(status_code=status_code, detail=error.message)
