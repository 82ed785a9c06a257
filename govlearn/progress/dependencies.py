"""FastAPI dependencies for progress tracking.

Provides dependency injection for:
- Progress service
- Error handlers
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from govlearn.catalog.dependencies import handle_catalog_error
from govlearn.catalog.exceptions import CatalogError
from govlearn.progress.exceptions import ProgressError
from govlearn.progress.service import ProgressService


async def get_progress_service(request: Request) -> ProgressService:
    """Get progress service from app state.

    Args:
        request: FastAPI request

    Returns:
        ProgressService instance
    """
    service = getattr(request.app.state, "progress_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Progress service not available",
        )
    return service


# Type alias for dependency injection
ProgressServiceDep = Annotated[ProgressService, Depends(get_progress_service)]


def handle_progress_error(error: ProgressError | CatalogError) -> HTTPException:
    """Convert progress errors to HTTP exceptions.

    Catalog lookups made on behalf of a learner (missing course or lesson)
    map through the catalog table.
    """
    if isinstance(error, CatalogError):
        return handle_catalog_error(error)

    status_map = {
        "already_enrolled": status.HTTP_409_CONFLICT,
        "invalid_progress_transition": status.HTTP_400_BAD_REQUEST,
    }
    status_code = status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    return HTTPException(
        status_code=status_code,
        detail=error.message,
    )
