"""
Cupid: FastAPI Application Entry Point

Application factory with:
- Async lifespan management (database handle startup ping and disposal)
- CORS, timeout, and structured-logging middleware
- Health-check endpoints (liveness + deep readiness)
- Active-request tracking for graceful shutdown
- Static serving of locally stored avatars
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from app.api.router import router as api_router
from app.config import Settings, get_settings
from app.database import Database
from app.errors import install_error_handlers
from app.services.account_service import AccountService
from app.services.matchmaking_service import MatchmakingService
from app.utils.storage import check_storage

logger: structlog.stdlib.BoundLogger = structlog.get_logger("cupid")

DRAIN_TIMEOUT_SECONDS = 15


# ---------------------------------------------------------------------------
# Structured logging configuration
# ---------------------------------------------------------------------------

def configure_logging(level_name: str) -> None:
    level = getattr(logging, level_name.upper(), logging.INFO)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Active request counter for graceful shutdown
# ---------------------------------------------------------------------------

class ActiveRequests:
    """In-flight request counter; all access happens on the event loop."""

    def __init__(self) -> None:
        self.count = 0

    async def drain(self, timeout: float = DRAIN_TIMEOUT_SECONDS) -> None:
        """Wait until all in-flight requests complete or timeout expires."""
        deadline = time.monotonic() + timeout
        while self.count > 0:
            if time.monotonic() >= deadline:
                logger.warning("drain_timeout_exceeded", remaining_requests=self.count)
                break
            await asyncio.sleep(0.25)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage startup and shutdown of long-lived resources."""
    settings: Settings = app.state.settings
    database: Database = app.state.database

    # -- Startup --------------------------------------------------------- #
    logger.info(
        "startup_begin",
        environment=settings.ENVIRONMENT,
        log_level=settings.LOG_LEVEL,
    )

    await database.ping()
    logger.info("database_pool_initialised", dialect=database.dialect_name)

    if settings.DB_AUTO_CREATE:
        await database.create_all()
        logger.info("database_tables_created")

    logger.info("startup_complete")

    yield

    # -- Shutdown -------------------------------------------------------- #
    logger.info("shutdown_begin")

    await app.state.active_requests.drain()
    await database.dispose()
    logger.info("database_pool_closed")

    logger.info("shutdown_complete")


# ---------------------------------------------------------------------------
# Middleware classes
# ---------------------------------------------------------------------------

class TimeoutMiddleware(BaseHTTPMiddleware):
    """Abort requests that exceed a configurable wall-clock timeout."""

    def __init__(self, app, timeout_seconds: float = 30.0) -> None:
        super().__init__(app)
        self.timeout_seconds = timeout_seconds

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await asyncio.wait_for(
                call_next(request),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "request_timeout",
                method=request.method,
                path=request.url.path,
                timeout=self.timeout_seconds,
            )
            return JSONResponse(
                status_code=504,
                content={"message": "Request timed out"},
            )


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with method, path, status code, and duration."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.perf_counter()
        active: ActiveRequests = request.app.state.active_requests

        active.count += 1
        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.exception(
                "request_error",
                method=request.method,
                path=request.url.path,
                duration_ms=round(duration_ms, 2),
            )
            raise
        finally:
            active.count -= 1

        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "request_handled",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round(duration_ms, 2),
        )
        return response


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app(
    settings: Settings | None = None,
    database: Database | None = None,
) -> FastAPI:
    """Build the application.

    ``settings`` and ``database`` default to the environment-driven
    configuration; tests pass their own to run against SQLite.
    """
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title="Cupid",
        description="Dating backend: discovery, likes and mutual matches",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
    )

    app.state.settings = settings
    app.state.database = database or Database.from_settings(settings)
    app.state.account_service = AccountService(settings)
    app.state.matchmaking_service = MatchmakingService(settings)
    app.state.active_requests = ActiveRequests()

    # -- Middleware (applied in reverse order: last added runs first) ------ #

    app.add_middleware(StructuredLoggingMiddleware)
    app.add_middleware(
        TimeoutMiddleware, timeout_seconds=settings.REQUEST_TIMEOUT_SECONDS
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    install_error_handlers(app)

    # -- Health-check endpoints -------------------------------------------- #

    @app.get("/health", tags=["health"])
    async def health_liveness() -> dict:
        """Lightweight liveness probe; healthy whenever the process runs."""
        return {"status": "healthy"}

    @app.get("/health/deep", tags=["health"])
    async def health_deep(request: Request) -> dict:
        """Deep readiness probe: verifies database and avatar storage."""
        result: dict = {
            "status": "healthy",
            "database": "connected",
            "storage": "accessible",
        }

        try:
            await request.app.state.database.ping()
        except Exception as exc:
            logger.error("health_db_failure", error=str(exc))
            result["database"] = "error"
            result["status"] = "degraded"

        try:
            result["storage"] = await asyncio.to_thread(
                check_storage, request.app.state.settings
            )
        except Exception as exc:
            logger.error("health_storage_failure", error=str(exc))
            result["storage"] = "error"
            result["status"] = "degraded"

        return result

    # -- API router and uploaded avatars ------------------------------------ #

    app.include_router(api_router, prefix="/api")

    if not settings.uses_gcs:
        upload_dir = Path(settings.UPLOAD_DIR)
        upload_dir.mkdir(parents=True, exist_ok=True)
        app.mount(
            settings.UPLOAD_URL_PREFIX,
            StaticFiles(directory=upload_dir),
            name="uploads",
        )

    return app


app = create_app()
