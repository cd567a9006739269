"""
WeepHub - Main Application Entry Point

FastAPI application wiring the routine scheduler, credential sources and the
device-control dispatcher.
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .config import settings
from .core.credentials import CredentialStore
from .core.database import ActivityLogger, Database
from .core.errors import (
    IntegrityError,
    NoCredentialAvailable,
    NotFoundError,
    PersistenceError,
    RemoteCommandError,
    ValidationError,
    WeepHubError,
)
from .core.routines import RoutineStore
from .core.settings_store import RuntimeSettingsStore
from .core.vault import get_vault
from .api import api_router
from .devices import CommandDispatcher, DeviceControlClient
from .scheduler import RoutineScheduler

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout),
    ]
)

# Add file handler if log directory exists
if settings.log_file:
    try:
        log_path = settings.log_full_path
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        logging.getLogger().addHandler(file_handler)
    except Exception as e:
        logging.warning(f"Could not set up file logging: {e}")

logger = logging.getLogger(__name__)

# Global instances
db: Database | None = None
remote_client: DeviceControlClient | None = None
scheduler: RoutineScheduler | None = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup and shutdown."""
    global db, remote_client, scheduler

    logger.info("=" * 60)
    logger.info("WeepHub Starting...")
    logger.info("=" * 60)

    settings.ensure_directories()

    # Initialize activity database
    logger.info(f"Initializing database: {settings.activity_db_path}")
    db = Database(str(settings.activity_db_path))
    await db.connect()
    activity = ActivityLogger(db)

    # Load persisted state
    vault = get_vault()
    credentials = CredentialStore(
        settings.sources_path,
        vault,
        fallback_token=settings.smartthings_token
    )
    routines = RoutineStore(settings.routines_path)
    runtime_settings = RuntimeSettingsStore(
        settings.settings_path,
        default_interval_ms=settings.routine_check_interval_ms
    )

    if not credentials.list_enabled_sources() and not settings.smartthings_token:
        logger.warning("No enabled credential source and no SMARTTHINGS_TOKEN configured")

    remote_client = DeviceControlClient()
    dispatcher = CommandDispatcher(credentials, remote_client)

    # Start scheduler
    logger.info("Starting scheduler...")
    scheduler = RoutineScheduler(
        routines,
        dispatcher,
        activity,
        interval_ms=runtime_settings.routine_check_interval_ms,
        max_concurrent=settings.max_concurrent_routines
    )
    await scheduler.start()

    # Store in app state for dependency injection
    app.state.db = db
    app.state.activity = activity
    app.state.credentials = credentials
    app.state.routines = routines
    app.state.runtime_settings = runtime_settings
    app.state.dispatcher = dispatcher
    app.state.scheduler = scheduler

    logger.info(f"API server ready on {settings.api_host}:{settings.api_port}")
    logger.info("=" * 60)

    yield

    # Shutdown
    logger.info("Shutting down...")

    # Stop scheduler first so in-flight routine runs can finish
    if scheduler:
        await scheduler.stop()

    if remote_client:
        await remote_client.close()
        logger.info("Remote client closed")

    if db:
        await db.close()
        logger.info("Database closed")

    logger.info("Goodbye!")


# Create FastAPI application
app = FastAPI(
    title="WeepHub",
    description="Home automation routines and multi-account device control",
    version=__version__,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allow all origins for local network access
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Include API routes
app.include_router(api_router)


ERROR_STATUS = {
    ValidationError: 400,
    NotFoundError: 404,
    NoCredentialAvailable: 409,
    RemoteCommandError: 502,
    IntegrityError: 500,
    PersistenceError: 500,
}


@app.exception_handler(WeepHubError)
async def weephub_exception_handler(request: Request, exc: WeepHubError):
    """Map domain errors onto HTTP status codes"""
    status_code = next(
        (code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)),
        500
    )
    if status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc}")
    content = {"success": False, "error": str(exc)}
    if isinstance(exc, RemoteCommandError):
        content["statusCode"] = exc.status_code
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled errors"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "error": str(exc)}
    )


def run():
    """Run the application with uvicorn"""
    import uvicorn

    logger.info(f"Starting server on {settings.api_host}:{settings.api_port}")

    uvicorn.run(
        "weephub.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
