"""Health check endpoints for the LifeOS API.

- /health - Service health including LLM credential presence
- /health/db - Database connection pool health
- /debug/stats - Aggregate usage statistics (no document content)
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter

from lifeos.config import APP_ENV, APP_VERSION
from lifeos.llm.gemini import gemini_backend, get_api_key

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check() -> dict[str, Any]:
    """Health check endpoint.

    Returns service status, version, and Gemini credential readiness
    (does not make an API call, only checks presence).
    """
    backend = gemini_backend()

    return {
        "status": "healthy",
        "service": "LifeOS API",
        "version": APP_VERSION,
        "environment": APP_ENV,
        "timestamp": datetime.now(UTC).isoformat(),
        "llm": {
            "ready": backend is not None,
            "backend": backend,
            "api_key": bool(get_api_key()),
        },
    }


@router.get("/health/db")
async def database_health() -> dict[str, Any]:
    """
    Database health check endpoint.

    Returns connection pool health metrics for monitoring.
    Alerts if pool usage exceeds 80%.
    """
    from lifeos.infrastructure.database import get_pool_stats

    stats = get_pool_stats()
    usage_percent = stats["usage_percent"]

    return {
        "status": "degraded" if usage_percent > 80 else "healthy",
        "pool": stats,
        "warning": "Pool usage high" if usage_percent > 80 else None,
    }


@router.get("/debug/stats")
async def debug_stats() -> dict[str, Any]:
    """Aggregate system statistics for debugging. Contains no user data."""
    from lifeos.appdata.repository import get_store
    from lifeos.infrastructure.database import get_db_connection, get_pool_stats
    from lifeos.infrastructure.llm_budget import get_daily_usage_report

    with get_db_connection() as conn:
        total_users = conn.execute("SELECT COUNT(*) FROM users").fetchone()[0]

    return {
        "users": {"total": total_users},
        "store": get_store().stats(),
        "llm": get_daily_usage_report(),
        "database": get_pool_stats(),
        "timestamp": datetime.now(UTC).isoformat(),
    }
