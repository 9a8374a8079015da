"""
Chatbridge application.

FastAPI relay in front of Ollama with encrypted chat history, structured
logging, and error handling.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chatbridge import __version__
from chatbridge.api import chat_router, status_router
from chatbridge.auth import PASSWORD_HEADER
from chatbridge.config import get_settings
from chatbridge.core import (
    RequestContextMiddleware,
    RequestSizeLimitMiddleware,
    get_logger,
    setup_exception_handlers,
    setup_logging,
)
from chatbridge.db import dispose_engine, run_migrations, verify_database_connection
from chatbridge.providers import BackendSelector
from chatbridge.security import get_cipher

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    settings = get_settings()

    # Startup
    setup_logging(
        level=settings.log_level,
        json_output=settings.is_production or not settings.debug,
        log_file=settings.log_file or None,
    )
    logger.info(
        "Starting chatbridge",
        data={
            "host": settings.host,
            "port": settings.port,
            "mode": settings.mode,
            "auth_required": settings.auth_required,
        },
    )

    if settings.auto_migrate:
        try:
            run_migrations(settings.database_url)
        except Exception as exc:
            logger.error("Database migration failed", data={"error": str(exc)})

    if verify_database_connection():
        logger.info("Database connection verified")
    else:
        logger.warning("Database connection failed - chat history will not be saved")

    if get_cipher().uses_fallback_key:
        logger.warning("ENCRYPTION_KEY not set - using the built-in fallback key")

    # Tests may install their own selector
    backends_created = False
    if not hasattr(_app.state, "backends"):
        _app.state.backends = BackendSelector(settings)
        backends_created = True
        await _app.state.backends.detect()

    yield

    # Shutdown
    logger.info("Shutting down chatbridge")
    dispose_engine()
    if backends_created:
        await _app.state.backends.aclose()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Chatbridge",
        description="Ollama chat relay with encrypted chat history",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    # Setup exception handlers (must be before middleware)
    setup_exception_handlers(app)

    # Last added runs first
    app.add_middleware(RequestSizeLimitMiddleware, max_bytes=settings.max_request_bytes)
    app.add_middleware(RequestContextMiddleware)

    allow_origins = settings.cors_origins_list or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials="*" not in allow_origins,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", PASSWORD_HEADER],
        expose_headers=["X-Request-ID"],
    )

    app.include_router(status_router)
    app.include_router(chat_router)

    return app


def run() -> None:
    """Console entry point."""
    settings = get_settings()
    uvicorn.run(
        "chatbridge.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


# Create application instance
app = create_app()
