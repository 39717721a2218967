"""FastAPI application factory."""

import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Annotated, AsyncGenerator

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from meeting_minutes.api.v1.router import api_router
from meeting_minutes.config import settings
from meeting_minutes.core.database import async_session_factory, engine, get_db
from meeting_minutes.core.database.migration_check import require_migrations
from meeting_minutes.core.errors import (
    AppError,
    PersistenceError,
    app_error_handler,
    persistence_error_handler,
)
from meeting_minutes.core.logging import LoggingMiddleware, get_logger, setup_logging
from meeting_minutes.core.results import settle
from meeting_minutes.transcription.dependencies import build_services
from meeting_minutes.transcription.repository import SqlTranscriptionRepository

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifecycle management."""

    # === STARTUP ===
    # Initialize structured logging FIRST
    setup_logging(
        log_level=settings.log_level,
        log_format=settings.log_format,
        is_development=settings.is_development,
        logs_dir=settings.logs_dir,
        log_to_file=settings.log_to_file,
        log_file_max_bytes=settings.log_file_max_bytes,
        log_file_backup_count=settings.log_file_backup_count,
    )

    logger = get_logger(__name__)
    logger.info("application_starting", app_name=settings.app_name, environment=settings.app_env)

    # Check database migrations before starting
    try:
        await require_migrations(engine, fail_on_outdated=settings.require_migrations_on_startup)
    except RuntimeError as e:
        logger.error("migration_check_failed", error=str(e))
        raise  # Stop application startup

    # Build the transcription service graph
    services = build_services(settings, SqlTranscriptionRepository(async_session_factory))
    if not services.orchestrator.speech_to_text.is_configured:
        logger.warning("speech_to_text_credentials_missing")
    if not services.minutes.is_configured:
        logger.warning("text_generation_credentials_missing")

    # Seed tier limits; failure stops startup
    settle(await services.recorder.ensure_default_tier_limits(), "bootstrap")

    app.state.services = services
    app.state._start_time = time.time()

    logger.info("application_started_successfully", app_name=settings.app_name)

    yield

    # === SHUTDOWN ===
    logger.info("application_shutting_down", app_name=settings.app_name)
    await engine.dispose()
    logger.info(
        "application_shutdown_complete",
        app_name=settings.app_name,
        uptime_seconds=round(time.time() - app.state._start_time, 2),
    )


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        version=VERSION,
        description="Meeting transcription with speaker diarization and AI-written minutes",
        lifespan=lifespan,
        docs_url="/api/docs" if settings.debug else None,
        redoc_url="/api/redoc" if settings.debug else None,
        openapi_url="/api/openapi.json" if settings.debug else None,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Logging middleware (adds correlation IDs and request context)
    app.add_middleware(LoggingMiddleware)

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(PersistenceError, persistence_error_handler)

    # Core API routes
    app.include_router(api_router, prefix="/api/v1")

    @app.get("/health")
    async def health_check(db: Annotated[AsyncSession, Depends(get_db)]) -> dict:
        """
        Health check endpoint - NO AUTH REQUIRED.

        Returns: database status and uptime.
        """
        logger = get_logger(__name__)

        db_status = "unknown"
        db_latency = None
        try:
            db_start = time.time()
            await db.execute(text("SELECT 1"))
            db_latency = round((time.time() - db_start) * 1000, 2)
            db_status = "connected"
        except (SQLAlchemyError, OSError) as e:
            db_status = "error"
            logger.error("database_health_check_failed", error=str(e))

        start_time = getattr(app.state, "_start_time", None)
        uptime = round(time.time() - start_time, 2) if start_time else None

        return {
            "status": "healthy" if db_status == "connected" else "degraded",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime_seconds": uptime,
            "version": VERSION,
            "environment": settings.app_env,
            "database": {
                "status": db_status,
                "latency_ms": db_latency,
            },
        }

    return app


app = create_app()
