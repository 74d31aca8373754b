"""Learning Engine API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from learning_engine.assignments.router import router as assignments_router
from learning_engine.assignments.service import AssignmentService
from learning_engine.attempts.router import router as attempts_router
from learning_engine.attempts.service import AttemptService
from learning_engine.config import Settings, get_settings
from learning_engine.content.service import ContentService
from learning_engine.core.context import get_request_id
from learning_engine.core.database.async_cassandra import (
    init_async_cassandra,
    shutdown_async_cassandra,
)
from learning_engine.core.exceptions import EngineError
from learning_engine.core.logging import configure_structlog, get_logger
from learning_engine.core.middleware import RequestContextMiddleware
from learning_engine.health import router as health_router
from learning_engine.progress.router import router as progress_router
from learning_engine.progress.service import ProgressService


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir))

logger = get_logger(__name__)


# Engine error code -> HTTP status
ERROR_STATUS_MAP: dict[str, int] = {
    "validation_error": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "malformed_answer": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "unanswered_questions": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "not_found": status.HTTP_404_NOT_FOUND,
    "already_attempted": status.HTTP_409_CONFLICT,
    "attempt_limit_reached": status.HTTP_409_CONFLICT,
    "attempt_not_in_progress": status.HTTP_409_CONFLICT,
    "already_submitted": status.HTTP_409_CONFLICT,
    "already_graded": status.HTTP_409_CONFLICT,
    "invalid_block_type": status.HTTP_400_BAD_REQUEST,
    "forbidden": status.HTTP_403_FORBIDDEN,
    "time_expired": status.HTTP_200_OK,
    "store_timeout": status.HTTP_503_SERVICE_UNAVAILABLE,
}


def build_services(app: FastAPI, session, settings: Settings) -> None:
    """Create the engine services on ``app.state``."""
    keyspace = settings.cassandra_keyspace
    timeout = settings.store_timeout_seconds

    content_service = ContentService(session=session, keyspace=keyspace, timeout=timeout)
    progress_service = ProgressService(
        session=session,
        keyspace=keyspace,
        content_service=content_service,
        timeout=timeout,
    )
    app.state.content_service = content_service
    app.state.progress_service = progress_service
    logger.info("progress_service_initialized")

    app.state.attempt_service = AttemptService(
        session=session,
        keyspace=keyspace,
        content_service=content_service,
        progress_service=progress_service,
        exam_time_limit_minutes=settings.exam_default_time_limit_minutes,
        exam_passing_score=settings.exam_passing_score,
        quiz_passing_score=settings.quiz_default_passing_score,
        grace_seconds=settings.attempt_deadline_grace_seconds,
        timeout=timeout,
    )
    logger.info("attempt_service_initialized")

    app.state.assignment_service = AssignmentService(
        session=session,
        keyspace=keyspace,
        content_service=content_service,
        progress_service=progress_service,
        passing_percentage=settings.assignment_passing_percentage,
        timeout=timeout,
    )
    logger.info("assignment_service_initialized")


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
        build_services(app, session, settings)
    except Exception as e:
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

    # Never expose stack traces; the handlers below log details internally
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Assessment & Progress Engine - API",
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
    )

    def _get_request_id_safe(request: Request) -> str | None:
        """Get request_id from request state or context."""
        if hasattr(request.state, "request_id"):
            return request.state.request_id
        return get_request_id()

    @app.exception_handler(EngineError)
    async def engine_error_handler(request: Request, exc: EngineError) -> ORJSONResponse:
        """Map engine errors to HTTP status by their stable code."""
        status_code = ERROR_STATUS_MAP.get(
            exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR
        )

        log_method = (
            logger.error
            if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR
            else logger.info
        )
        log_method(
            "engine_error",
            code=exc.code,
            status_code=status_code,
            retryable=exc.retryable,
            path=request.url.path,
            method=request.method,
        )

        content = {
            "error": True,
            "code": exc.code,
            "message": exc.message,
            "status_code": status_code,
            "request_id": _get_request_id_safe(request),
            "retryable": exc.retryable,
        }
        # time_expired details hold the attempt entity, not a JSON payload
        if exc.details and exc.code != "time_expired":
            content["details"] = exc.details
        return ORJSONResponse(status_code=status_code, content=content)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> ORJSONResponse:
        """Handle HTTP exceptions with safe error messages."""
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
                "message": str(exc.detail)
                if exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR
                else "Internal server error",
                "status_code": exc.status_code,
                "request_id": _get_request_id_safe(request),
                "retryable": exc.status_code == status.HTTP_503_SERVICE_UNAVAILABLE,
            },
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        """Handle request validation errors."""
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
                "code": "validation_error",
                "message": "Validation error",
                "status_code": 422,
                "request_id": _get_request_id_safe(request),
                "retryable": False,
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
        """Catch-all handler; details are logged, never returned."""
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
                "request_id": _get_request_id_safe(request),
                "retryable": False,
            },
        )

    app.include_router(health_router)
    app.include_router(progress_router)
    app.include_router(attempts_router)
    app.include_router(assignments_router)

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": "Learning Engine API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


app = create_app()
