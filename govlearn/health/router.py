"""Health check endpoints.

`/health/live` only says the process answers. `/health/ready` also runs a
trivial query on the Cassandra session the app serves requests with, and
answers 503 while there is none or it fails.
"""

from cassandra import DriverException
from fastapi import APIRouter, Request, Response, status

from govlearn.config import get_settings
from govlearn.core.logging import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/health", tags=["health"])

READINESS_QUERY = "SELECT release_version FROM system.local"


async def database_reachable(request: Request) -> bool:
    session = getattr(request.app.state, "cassandra_session", None)
    if session is None:
        return False
    try:
        await session.aexecute(READINESS_QUERY)
    except DriverException as e:
        logger.warning("readiness_query_failed", error=str(e))
        return False
    return True


@router.get("/live")
async def liveness() -> dict[str, str]:
    """Liveness probe - the process is up."""
    return {"status": "alive"}


@router.get("/ready")
async def readiness(request: Request, response: Response) -> dict[str, str | bool]:
    """Readiness probe - Cassandra answers on the app's session."""
    settings = get_settings()
    database = await database_reachable(request)
    if not database:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return {
        "status": "ready" if database else "unavailable",
        "database": database,
        "environment": settings.environment,
        "debug": settings.debug,
    }


@router.get("")
async def health() -> dict[str, str]:
    """General health check endpoint."""
    settings = get_settings()
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }
