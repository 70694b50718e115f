"""
ExamForge Assessment Platform

This module serves as the main entry point for the ExamForge backend, the
attempt lifecycle and scoring engine of a role-based quiz platform.

The platform features:
1. Eligibility checks and attempt limits per assessment
2. An attempt state machine with optimistic concurrency
3. Per-question grading and attempt scoring
4. Per-attempt analytics and cross-attempt performance reports
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from backend.common.logger import app_logger
from backend.config import Settings, StorageBackend, settings as default_settings

logger = app_logger.getChild("app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI application lifespan context manager.

    Builds the service container for the configured storage backend unless
    one was supplied to ``create_app``, and disposes of the database engine on
    shutdown.
    """
    from backend.container import build_memory_container, build_sql_container
    from backend.database.init_db import close_database, get_session_factory, initialize_database

    settings: Settings = app.state.settings
    owns_database = False

    logger.info("Application startup sequence initiated.")
    if getattr(app.state, "container", None) is None:
        if settings.STORAGE_BACKEND == StorageBackend.SQL:
            await initialize_database(
                database_url=settings.DATABASE_URL,
                echo=settings.SQL_ECHO,
                pool_size=settings.DB_POOL_SIZE,
                max_overflow=settings.DB_MAX_OVERFLOW,
                pool_timeout=settings.DB_POOL_TIMEOUT,
                create_schema=settings.AUTO_DB_INIT,
            )
            owns_database = True
            app.state.container = build_sql_container(get_session_factory(), settings)
        else:
            app.state.container = build_memory_container(settings)
    logger.info(f"Application startup complete ({settings.STORAGE_BACKEND.value} storage)")

    yield

    logger.info("Application shutdown sequence initiated.")
    if owns_database:
        await close_database()
    logger.info("Application shutdown sequence complete.")


def create_app(
    settings: Optional[Settings] = None,
    container=None,
    app_description: str = "Attempt lifecycle, scoring and analytics for role-based assessments"
) -> FastAPI:
    """
    Create and configure a FastAPI application instance.

    Args:
        settings: Application settings, the global settings by default
        container: Prebuilt ServiceContainer; when given the lifespan leaves
            storage alone (used by tests)
        app_description: Description of the application

    Returns:
        Configured FastAPI application
    """
    settings = settings or default_settings

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description=app_description,
        version="0.1.0",
        lifespan=lifespan
    )
    app.state.settings = settings
    app.state.container = container

    from fastapi.exceptions import RequestValidationError
    from fastapi.middleware.cors import CORSMiddleware
    from backend.api import main_router, platform_exception_handler, validation_exception_handler
    from backend.common.error_handling import PlatformError

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(main_router, prefix=settings.API_PREFIX)

    app.add_exception_handler(PlatformError, platform_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    logger.info(f"Application created with {len(app.routes)} routes")
    return app
