"""FastAPI application: public lead intake and the admin CRM API."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

import structlog
from alembic import script
from alembic.config import Config
from alembic.runtime import migration
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from opentelemetry import trace
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from sqlalchemy import text
from sqlalchemy.engine import Connection

from contractor_crm import __version__
from contractor_crm.api import clients, crm_settings, deals, leads, public_leads
from contractor_crm.core.config import settings
from contractor_crm.core.database import dispose_engine, get_engine, get_session_factory
from contractor_crm.core.logging import configure_logging
from contractor_crm.core.telemetry import get_tracer_provider, shutdown_tracer_provider
from contractor_crm.middleware import AccessLoggingMiddleware
from contractor_crm.services.crm_settings_service import CrmValidationError
from contractor_crm.services.lead_intake_service import IntakeError

# Before the app exists, so uvicorn's own startup lines use the structlog format
configure_logging(log_level=settings.LOG_LEVEL)

logger = structlog.get_logger(__name__)


def _check_alembic_migrations(sync_conn: Connection) -> str | None:
    """
    Compare the database revision with the newest migration script.

    Args:
        sync_conn: Synchronous connection (run via ``AsyncConnection.run_sync``)

    Returns:
        The database's current revision

    Raises:
        RuntimeError: Schema missing or behind the latest migration
    """
    current = migration.MigrationContext.configure(sync_conn).get_current_revision()

    ini_path = Path(settings.ALEMBIC_INI_PATH)
    if not ini_path.exists():
        logger.warning("alembic_ini_not_found", path=str(ini_path), action="skipping migration validation")
        return current

    head = script.ScriptDirectory.from_config(Config(str(ini_path))).get_current_head()
    if current is None:
        msg = "Database has not been initialized; run `alembic upgrade head`"
        raise RuntimeError(msg)
    if current != head:
        msg = f"Database migration required: database is at {current}, latest is {head}; run `alembic upgrade head`"
        raise RuntimeError(msg)
    return current


async def _validate_database() -> None:
    """Ping the database and refuse to start on a stale schema."""
    try:
        async with get_engine().begin() as conn:
            await conn.execute(text("SELECT 1"))
            revision = await conn.run_sync(_check_alembic_migrations)
    except Exception as e:
        logger.error("startup_database_check_failed", error_type=type(e).__name__, error=str(e))
        raise
    logger.info("database_ready", revision=revision)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Install tracing, check the schema (outside DEBUG), and clean up on shutdown."""
    # Built here, after uvicorn forks, so each worker has its own span exporter
    if settings.OTEL_ENABLED and (provider := get_tracer_provider()):
        trace.set_tracer_provider(provider)
        logger.info("otel_tracer_provider_initialized")

    if settings.DEBUG:
        logger.info("debug_mode_startup", message="skipping database validation")
    else:
        await _validate_database()
    logger.info("startup_complete", environment=settings.ENVIRONMENT, debug=settings.DEBUG)

    try:
        yield
    finally:
        if settings.OTEL_ENABLED:
            shutdown_tracer_provider()
        if not settings.DEBUG:
            await dispose_engine()
        logger.info("shutdown_complete")


app = FastAPI(
    title="Contractor CRM API",
    description="Lead intake and CRM backend for a contracting business",
    version=__version__,
    lifespan=lifespan,
)

# Wraps the ASGI app for HTTP request spans; the provider is set later in lifespan
if settings.OTEL_ENABLED:
    FastAPIInstrumentor().instrument_app(
        app,
        excluded_urls=",".join(settings.OTEL_EXCLUDED_URLS),
    )
    logger.info("otel_fastapi_instrumented", excluded_urls=settings.OTEL_EXCLUDED_URLS)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# One structured http_request event per request instead of uvicorn.access
app.add_middleware(AccessLoggingMiddleware)


# ==================== Exception Handlers ====================


@app.exception_handler(IntakeError)
async def intake_error_handler(request: Request, exc: IntakeError) -> JSONResponse:
    """Render public intake failures as ``{"error": ...}`` with their status and headers."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_body(), headers=exc.headers)


@app.exception_handler(CrmValidationError)
async def crm_validation_error_handler(request: Request, exc: CrmValidationError) -> JSONResponse:
    """Render settings-driven validation failures as 400."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Validation failed", "details": exc.details},
    )


# Include routers
app.include_router(public_leads.router, prefix=settings.API_V1_PREFIX)
app.include_router(leads.router, prefix=settings.API_V1_PREFIX)
app.include_router(clients.router, prefix=settings.API_V1_PREFIX)
app.include_router(deals.router, prefix=settings.API_V1_PREFIX)
app.include_router(crm_settings.router, prefix=settings.API_V1_PREFIX)


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "Contractor CRM API", "version": __version__}


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/ready", response_model=None)
async def readiness_check() -> dict[str, str] | JSONResponse:
    """Readiness check endpoint - verify the database answers."""
    try:
        async with get_session_factory()() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("readiness_check_failed", error_type=type(e).__name__, error=str(e))
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unavailable"},
        )
    return {"status": "ready"}
