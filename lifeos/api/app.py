"""FastAPI server for the LifeOS dashboard backend"""

from __future__ import annotations

import sqlite3
import threading
import time
from typing import Any

from lifeos.infrastructure.env import ensure_env_loaded

# Load .env before configuration is read
ensure_env_loaded()

from fastapi import FastAPI, Request, status  # noqa: E402
from fastapi.exceptions import RequestValidationError  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402
from fastapi.responses import JSONResponse  # noqa: E402

from lifeos.api.middleware.rate_limit import RateLimitMiddleware  # noqa: E402
from lifeos.api.routes.ai import router as ai_router  # noqa: E402
from lifeos.api.routes.data import router as data_router  # noqa: E402
from lifeos.api.routes.health import router as health_router  # noqa: E402
from lifeos.api.routes.process_task import router as process_task_router  # noqa: E402
from lifeos.api.routes.unsplash import router as unsplash_router  # noqa: E402
from lifeos.appdata.repository import get_store  # noqa: E402
from lifeos.config import (  # noqa: E402
    APP_ENV,
    APP_VERSION,
    AUTOMATION_ALLOWED_ORIGINS,
    RATE_LIMIT_AI_PH,
    RATE_LIMIT_AI_PM,
    RATE_LIMIT_RPH,
    RATE_LIMIT_RPM,
)
from lifeos.infrastructure.database import init_database  # noqa: E402
from lifeos.observability.logging import get_logger  # noqa: E402
from lifeos.observability.telemetry import counter, log_event  # noqa: E402

app = FastAPI(title="LifeOS API", version=APP_VERSION)
logger = get_logger(__name__)


# Custom validation error handler to prevent information leakage
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Return field names only, never the validation rules.

    Side Effects:
        - Logs the full validation errors
        - Increments the validation error counter
    """
    logger.warning("Validation error on %s: %s", request.url.path, exc.errors())
    counter("api.validation_errors")

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": "Invalid request format. Please check your request and try again.",
            "error_count": len(exc.errors()),
            "invalid_fields": [str(err["loc"][-1]) for err in exc.errors() if err.get("loc")],
        },
    )


# CORS - the dashboard's own origins, plus local dev servers in development
ALLOWED_ORIGINS = list(AUTOMATION_ALLOWED_ORIGINS)
if APP_ENV == "development":
    ALLOWED_ORIGINS.extend(["http://127.0.0.1:3000", "http://127.0.0.1:9002"])

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-User-ID", "X-Request-ID"],
)

# Rate limiting - all requests, and a tighter bucket for AI calls (cost)
app.add_middleware(
    RateLimitMiddleware,
    requests_per_minute=RATE_LIMIT_RPM,
    requests_per_hour=RATE_LIMIT_RPH,
    ai_calls_per_minute=RATE_LIMIT_AI_PM,
    ai_calls_per_hour=RATE_LIMIT_AI_PH,
)

# Initialize database schema (idempotent - safe to run on every startup)
try:
    logger.info("Initializing database schema...")
    init_database()
    logger.info("Database initialization complete")
except sqlite3.OperationalError as e:
    logger.critical("Database schema error: %s", e)
    logger.critical("Database may be corrupted or locked by another process")
    raise RuntimeError(f"Database initialization failed: {e}") from e
except Exception as e:
    logger.critical("Unexpected database initialization error: %s", e)
    raise RuntimeError(f"Database initialization failed: {e}") from e

# Include routers (process-task before the catch-all /api/ai/{flow})
app.include_router(health_router)
app.include_router(data_router)
app.include_router(process_task_router)
app.include_router(ai_router)
app.include_router(unsplash_router)

log_event("api.startup", service="lifeos", version=APP_VERSION)


# ============================================================================
# WAL CHECKPOINT BACKGROUND TASK
# ============================================================================
def _wal_checkpoint_loop():
    """Background thread that periodically checkpoints the WAL file

    Side Effects:
        - Calls checkpoint_wal() which writes to the database file
        - Runs indefinitely until process termination
    """
    from lifeos.infrastructure.database import checkpoint_wal

    time.sleep(300)

    while True:
        try:
            stats = checkpoint_wal()
            if stats["bytes_freed"] > 1024 * 1024:
                logger.info("WAL checkpoint freed %d MB", stats["bytes_freed"] // (1024 * 1024))
        except Exception as e:
            logger.error("WAL checkpoint failed: %s", e)

        time.sleep(300)


_checkpoint_thread = threading.Thread(target=_wal_checkpoint_loop, daemon=True)
_checkpoint_thread.start()
logger.info("WAL checkpoint background task started (5-minute interval)")


# ============================================================================
# STARTUP / SHUTDOWN
# ============================================================================
@app.on_event("startup")
async def validate_database_schema() -> None:
    """Validate database schema on startup (fail fast if database is broken)

    Side Effects:
        - May raise RuntimeError on validation failure (crashes the app)
    """
    from lifeos.infrastructure.database import validate_schema

    try:
        validate_schema()
        logger.info("Database schema validation passed")
    except ValueError as e:
        logger.critical("Database schema invalid: %s", e)
        raise RuntimeError(f"Database schema validation failed: {e}") from e


@app.on_event("shutdown")
def flush_pending_writes() -> None:
    """Write every debounced document before the process exits."""
    flushed = get_store().flush()
    log_event("api.shutdown", flushed=flushed)


# ============================================================================
# CORE ENDPOINTS
# ============================================================================


@app.get("/")
def root() -> dict[str, Any]:
    return {
        "service": "LifeOS API",
        "version": APP_VERSION,
        "status": "running",
        "endpoints": {
            "data": "/api/data",
            "overview": "/api/data/overview",
            "flows": "/api/ai",
            "run_flow": "/api/ai/{flow}",
            "critical_steps": "/api/ai/critical-steps/refresh",
            "process_task": "/api/ai/process-task",
            "daily_job_check": "/api/jobs/daily-check",
            "unsplash": "/api/unsplash?query=",
            "health": "/health",
        },
    }


def main() -> None:
    """Console entry point: serve the API with uvicorn."""
    import os

    import uvicorn

    uvicorn.run(
        "lifeos.api.app:app",
        host=os.getenv("LIFEOS_HOST", "0.0.0.0"),
        port=int(os.getenv("LIFEOS_PORT", "8000")),
    )


if __name__ == "__main__":
    main()
