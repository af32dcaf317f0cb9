# app/routes/health.py
"""
Health check endpoints.
"""

import time

from fastapi import APIRouter

from app.config import settings

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "ops-integration-proxy"}


@router.get("/readyz")
async def readyz():
    """
    Readiness check: which integrations have the configuration they need.

    Reports every integration; ``overall_ok`` is true only when all of them are
    fully configured. Nothing here calls a remote service.
    """
    checks = {}
    overall_ok = True

    for integration, missing in settings.integration_status().items():
        checks[integration] = {"ok": not missing, "missing": missing or None}
        overall_ok = overall_ok and not missing

    checks["configuration"] = {
        "ok": True,
        "environment": settings.environment,
        "reminder_run_hour_utc": settings.REMINDER_RUN_HOUR_UTC,
    }

    return {"overall_ok": overall_ok, "checks": checks, "timestamp": time.time()}
