"""FastAPI application entry point for the Intelligence Layer."""

import structlog
from fastapi import FastAPI
from sqlalchemy import text

from intellayer.api.errors import register_error_handlers
from intellayer.api.intelligence import router as intelligence_router
from intellayer.api.processes import router as processes_router
from intellayer.config.settings import get_settings
from intellayer.observability.logging import configure_logging

APP_VERSION = "0.1.0"

settings = get_settings()

configure_logging(settings)

logger: structlog.stdlib.BoundLogger = structlog.get_logger()

# --- FastAPI app ---
app = FastAPI(
    title="Intelligence Layer API",
    description="Versioned, cached intelligence endpoints with sandbox and production environments.",
    version=APP_VERSION,
)

register_error_handlers(app)

# --- Routers ---
app.include_router(intelligence_router)
app.include_router(processes_router)


# --- Infrastructure Endpoints ---


@app.get("/health")
async def health_check() -> dict:
    """Liveness probe with a database connectivity check.

    Returns 200 always (degraded status if a component is down).
    """
    checks: dict[str, bool] = {"api": True}

    try:
        from intellayer.db.session import async_session_factory
        async with async_session_factory() as session:
            await session.execute(text("SELECT 1"))
        checks["database"] = True
    except Exception:
        logger.warning("health_check_database_unreachable")
        checks["database"] = False

    all_ok = all(checks.values())

    return {
        "status": "ok" if all_ok else "degraded",
        "version": APP_VERSION,
        "environment": settings.ENVIRONMENT.value,
        "checks": checks,
    }


@app.get("/api/version")
async def get_version() -> dict[str, str]:
    """Return application name, version, and environment."""
    return {
        "name": "Intelligence Layer",
        "version": APP_VERSION,
        "environment": settings.ENVIRONMENT.value,
    }
