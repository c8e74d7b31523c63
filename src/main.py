"""Learning Hub API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.catalog.repository import CatalogRepository
from src.catalog.router import router as catalog_router
from src.catalog.service import PathValidationService
from src.config import get_settings
from src.core.context import get_request_id
from src.core.database import init_async_cassandra, shutdown_async_cassandra
from src.core.exceptions import LearningHubError
from src.core.http_errors import status_for
from src.core.logging import configure_structlog, get_logger
from src.core.middleware import RequestContextMiddleware
from src.core.redis import init_redis, shutdown_redis
from src.enrollments.repository import EnrollmentRepository
from src.enrollments.router import router as enrollments_router
from src.enrollments.service import EnrollmentManager
from src.events.bus import CompletionEventBus
from src.gamification.repository import GamificationRepository
from src.gamification.router import router as gamification_router
from src.gamification.service import GamificationLedger
from src.health import router as health_router
from src.leaderboard.router import router as leaderboard_router
from src.leaderboard.service import LeaderboardAggregator
from src.leaderboard.store import LeaderboardStore
from src.progress.prerequisites import PrerequisiteResolver
from src.progress.repository import ModuleProgressRepository
from src.progress.router import router as progress_router
from src.progress.service import ModuleProgressTracker
from src.quizzes.repository import QuizAttemptRepository
from src.quizzes.router import router as quizzes_router
from src.quizzes.service import QuizGrader
from src.users.repository import UserDirectory


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir))

logger = get_logger(__name__)


# Application state for shutdown ordering
class AppState:
    """Application state container."""

    cassandra_session: Any = None
    event_bus: CompletionEventBus | None = None
    leaderboard_aggregator: LeaderboardAggregator | None = None


app_state = AppState()


def build_services(app: FastAPI, session: Any, redis_client: Any, keyspace: str) -> None:
    """Wire repositories and services onto ``app.state``."""
    settings = get_settings()

    catalog = CatalogRepository(
        session=session,
        keyspace=keyspace,
        default_passing_score=settings.quiz_default_passing_score,
    )
    directory = UserDirectory(session=session, keyspace=keyspace)
    enrollments = EnrollmentRepository(session=session, keyspace=keyspace)
    progress = ModuleProgressRepository(session=session, keyspace=keyspace)
    attempts = QuizAttemptRepository(session=session, keyspace=keyspace)
    gamification = GamificationRepository(session=session, keyspace=keyspace)

    resolver = PrerequisiteResolver()

    grader = QuizGrader(
        catalog=catalog,
        attempts=attempts,
        enrollments=enrollments,
        default_max_attempts=settings.quiz_default_max_attempts,
        max_retries=settings.gamification_max_cas_retries,
        retry_base_delay=settings.gamification_retry_base_delay,
    )

    event_bus = CompletionEventBus(
        redelivery_attempts=settings.events_redelivery_attempts,
        redelivery_base_delay=settings.events_redelivery_base_delay,
    )

    aggregator = LeaderboardAggregator(
        store=LeaderboardStore(redis_client) if redis_client is not None else None,
        directory=directory,
        week_start_day=settings.leaderboard_week_start_day,
        reset_hour=settings.leaderboard_reset_hour,
        default_limit=settings.leaderboard_default_limit,
        max_limit=settings.leaderboard_max_limit,
        queue_size=settings.leaderboard_queue_size,
    )

    ledger = GamificationLedger(
        repository=gamification,
        points_per_level=settings.gamification_points_per_level,
        max_level=settings.gamification_max_level,
        max_retries=settings.gamification_max_cas_retries,
        retry_base_delay=settings.gamification_retry_base_delay,
        on_points_credited=aggregator.notify,
    )

    manager = EnrollmentManager(
        catalog=catalog,
        enrollments=enrollments,
        progress=progress,
        resolver=resolver,
        slot_stale_after=settings.enrollment_slot_stale_after_seconds,
    )

    tracker = ModuleProgressTracker(
        catalog=catalog,
        progress=progress,
        enrollments=enrollments,
        grader=grader,
        event_bus=event_bus,
        resolver=resolver,
        enrollment_manager=manager,
    )

    # Points first, then the enrollment roll-up
    event_bus.subscribe("gamification_ledger", ledger.credit_completion)
    event_bus.subscribe("enrollment_progress", manager.handle_completion)

    app.state.user_directory = directory
    app.state.quiz_grader = grader
    app.state.gamification_ledger = ledger
    app.state.leaderboard_aggregator = aggregator
    app.state.enrollment_manager = manager
    app.state.progress_tracker = tracker
    app.state.path_validation_service = PathValidationService(catalog, resolver)

    app_state.event_bus = event_bus
    app_state.leaderboard_aggregator = aggregator


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

    # Initialize Redis (non-critical - leaderboards are disabled without it)
    redis_client = None
    try:
        redis_client = await init_redis()
        logger.info("redis_initialized")
    except Exception as e:
        logger.warning(
            "redis_init_skipped",
            error=str(e),
            message="Running without Redis - leaderboards disabled",
        )

    # Initialize Cassandra (async)
    try:
        app_state.cassandra_session = await init_async_cassandra()
        logger.info("cassandra_initialized")

        build_services(
            app,
            session=app_state.cassandra_session,
            redis_client=redis_client,
            keyspace=settings.cassandra_keyspace,
        )
        logger.info("learning_services_initialized", redis_enabled=redis_client is not None)

        await app_state.leaderboard_aggregator.start()
    except Exception as e:
        logger.warning(
            "database_init_skipped",
            error=str(e),
            message="Running without database connection",
        )

    yield

    # Shutdown
    logger.info("shutting_down_application")
    if app_state.leaderboard_aggregator is not None:
        await app_state.leaderboard_aggregator.stop()
    if app_state.event_bus is not None:
        await app_state.event_bus.drain()
    await shutdown_redis()
    await shutdown_async_cassandra()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    # Stack traces stay in the logs; handlers below return safe messages
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Learning Hub - progress, prerequisites and gamification API",
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

    @app.exception_handler(LearningHubError)
    async def learning_error_handler(
        request: Request, exc: LearningHubError
    ) -> ORJSONResponse:
        """Render domain errors that escaped a router."""
        status_code = status_for(exc)
        logger.info(
            "domain_error",
            code=exc.code,
            status_code=status_code,
            path=request.url.path,
            method=request.method,
        )
        return ORJSONResponse(
            status_code=status_code,
            content={
                "error": True,
                "message": exc.message,
                "code": exc.code,
                "status_code": status_code,
                "request_id": _get_request_id_safe(request),
                "details": exc.details(),
            },
        )

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

        content: dict[str, Any] = {
            "error": True,
            "status_code": exc.status_code,
            "request_id": request_id,
        }
        if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            content["message"] = "Internal server error"
        elif isinstance(exc.detail, dict):
            # Structured domain error from handle_learning_error
            content["message"] = exc.detail.get("message")
            content["code"] = exc.detail.get("code")
            content["details"] = exc.detail.get("details", {})
        else:
            content["message"] = str(exc.detail)

        return ORJSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        """Handle validation errors with safe error messages."""
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
                "code": "validation_error",
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

        Full details go to the log; the response carries a generic message.
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
    app.include_router(catalog_router)
    app.include_router(enrollments_router)
    app.include_router(progress_router)
    app.include_router(quizzes_router)
    app.include_router(gamification_router)
    app.include_router(leaderboard_router)

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": "Learning Hub API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


app = create_app()
