"""GovLearn API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from govlearn.catalog.quiz import QuizRules
from govlearn.catalog.router import router as courses_router
from govlearn.catalog.service import CourseService, LessonService
from govlearn.config import Settings, get_settings
from govlearn.core.context import get_request_id
from govlearn.core.database import init_async_cassandra, shutdown_async_cassandra
from govlearn.core.logging import configure_structlog, get_logger
from govlearn.core.middleware import RequestContextMiddleware
from govlearn.health import router as health_router
from govlearn.progress.evaluator import CompletionEvaluator
from govlearn.progress.ledger import EnrollmentLedger
from govlearn.progress.purge import ProgressPurger
from govlearn.progress.router import router as progress_router
from govlearn.progress.service import ProgressService
from govlearn.progress.tracker import ProgressTracker


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir))

logger = get_logger(__name__)


@dataclass
class AppServices:
    """Services shared by all requests, exposed on app.state."""

    session: Any
    course_service: CourseService
    lesson_service: LessonService
    progress_service: ProgressService

    def install(self, app: FastAPI) -> None:
        app.state.cassandra_session = self.session
        app.state.course_service = self.course_service
        app.state.lesson_service = self.lesson_service
        app.state.progress_service = self.progress_service


def build_services(session: Any, settings: Settings) -> AppServices:
    """Wire catalog and progress services over one Cassandra session."""
    keyspace = settings.cassandra_keyspace
    purger = ProgressPurger(
        session=session, keyspace=keyspace, batch_size=settings.purge_batch_size
    )

    lesson_service = LessonService(
        session=session,
        keyspace=keyspace,
        rules=QuizRules.from_settings(settings),
        default_passing_score=settings.quiz_default_passing_score,
        purger=purger,
    )
    course_service = CourseService(
        session=session,
        keyspace=keyspace,
        lesson_service=lesson_service,
        purger=purger,
    )

    tracker = ProgressTracker(session=session, keyspace=keyspace)
    ledger = EnrollmentLedger(
        session=session, keyspace=keyspace, course_service=course_service
    )
    evaluator = CompletionEvaluator(
        tracker=tracker, lesson_service=lesson_service, ledger=ledger
    )
    progress_service = ProgressService(
        tracker=tracker,
        ledger=ledger,
        evaluator=evaluator,
        course_service=course_service,
        lesson_service=lesson_service,
    )

    return AppServices(
        session=session,
        course_service=course_service,
        lesson_service=lesson_service,
        progress_service=progress_service,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings = get_settings()
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    try:
        session = await init_async_cassandra()
        logger.info("cassandra_initialized")

        build_services(session, settings).install(app)
        logger.info("services_initialized")
    except Exception as e:
        # Routes answer 503 until the database is reachable
        logger.warning(
            "database_init_skipped",
            error=str(e),
            message="Running without database connection",
        )

    yield

    # Shutdown
    logger.info("shutting_down_application")
    await shutdown_async_cassandra()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    # Starlette's debug pages would expose stack traces; the handlers below
    # log details and return safe messages instead.
    app = FastAPI(
        title="GovLearn API",
        version=settings.app_version,
        description="Course progression and completion engine",
        debug=False,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
    )

    # Request context middleware (must be added first - outermost)
    app.add_middleware(
        RequestContextMiddleware,
        log_requests=settings.log_requests,
        exclude_paths=settings.log_exclude_paths,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        max_age=settings.cors_max_age,
    )

    def _get_request_id_safe(request: Request) -> str | None:
        """Get request_id from request state or context."""
        if hasattr(request.state, "request_id"):
            return request.state.request_id
        return get_request_id()

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> ORJSONResponse:
        """Handle HTTP exceptions with safe error messages."""
        request_id = _get_request_id_safe(request)

        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            detail=str(exc.detail),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=exc.status_code,
            content={
                "error": True,
                "message": str(exc.detail),
                "status_code": exc.status_code,
                "request_id": request_id,
            },
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        """Handle validation errors with per-field details."""
        request_id = _get_request_id_safe(request)

        logger.warning(
            "validation_error",
            errors=exc.errors(),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": True,
                "message": "Validation error",
                "status_code": 422,
                "request_id": request_id,
                "details": [
                    {
                        "field": ".".join(str(loc) for loc in err.get("loc", [])),
                        "message": err.get("msg", "Invalid value"),
                    }
                    for err in exc.errors()
                ],
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> ORJSONResponse:
        """Catch-all handler for unhandled exceptions.

        Stack traces and internal details are logged, never returned.
        """
        request_id = _get_request_id_safe(request)

        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            error_message=str(exc),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": True,
                "message": "An unexpected error occurred. Please try again later.",
                "status_code": 500,
                "request_id": request_id,
            },
        )

    app.include_router(health_router)
    app.include_router(courses_router)
    app.include_router(progress_router)

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": "GovLearn API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


app = create_app()
