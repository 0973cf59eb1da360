# app/routes/health.py
"""
Health check endpoints for the sync service.
/readyz reports the database pool and the configuration the sync jobs need.
"""

import time
from typing import Any

from fastapi import APIRouter

from app.config import settings
from app.db.pool import db_health_check
from app.infrastructure.observability.logging import log_health_check

router = APIRouter()


async def _database_check() -> dict[str, Any]:
    t0 = time.time()
    try:
        db_health = await db_health_check()
    except Exception as e:
        check = {
            "ok": False,
            "error": f"{type(e).__name__}: {e}",
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }
        log_health_check("database", False, check["latency_ms"], error=check["error"])
        return check

    is_healthy = db_health.get("healthy", False)
    check: dict[str, Any] = {
        "ok": is_healthy,
        "latency_ms": round((time.time() - t0) * 1000, 1),
    }

    pool_stats = db_health.get("pool_stats")
    if pool_stats:
        check.update(
            {
                "pool_size": pool_stats.get("pool_size", 0),
                "pool_available": pool_stats.get("pool_available", 0),
                "pool_utilization_percent": pool_stats.get("pool_utilization_percent", 0),
                "connection_time_ms": db_health.get("connection_time_ms", 0),
            }
        )

    if not is_healthy:
        check["error"] = db_health.get("error", "Database unhealthy")
        if "error_type" in db_health:
            check["error_type"] = db_health["error_type"]

    log_health_check("database", is_healthy, check["latency_ms"], error=check.get("error"))
    return check


def _configuration_check() -> dict[str, Any]:
    issues = []
    warnings = []

    if not settings.SUPABASE_DB_URL:
        issues.append("SUPABASE_DB_URL not set")

    # Token refresh is impossible without these
    if not settings.GOOGLE_CLIENT_ID or not settings.GOOGLE_CLIENT_SECRET:
        issues.append("Google OAuth client credentials not set")

    if not settings.CRON_SECRET:
        warnings.append("CRON_SECRET not set, scheduled routes accept the service role key")

    return {
        "ok": not issues,
        "issues": issues or None,
        "warnings": warnings or None,
        "environment": settings.environment,
    }


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "calendar-sync"}


@router.get("/readyz")
async def readyz():
    checks = {
        "database": await _database_check(),
        "configuration": _configuration_check(),
    }
    overall_ok = all(check["ok"] for check in checks.values())

    return {"overall_ok": overall_ok, "checks": checks, "timestamp": time.time()}


@router.get("/health/database")
async def database_health():
    """Detailed database pool health information."""
    return await db_health_check()
