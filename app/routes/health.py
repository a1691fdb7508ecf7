# app/routes/health.py
"""
Health check endpoints with database pool and poller monitoring.
"""

import time

from fastapi import APIRouter

from app.db.pool import db_health_check
from app.jobs.screening_poll_job import screening_poll_job_health

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "screening-monitor"}


@router.get("/readyz")
async def readyz():
    """
    Readiness check covering the database pool and the screening poller.
    """
    checks = {}
    overall_ok = True

    # 1) Database pool
    t0 = time.time()
    try:
        db_health = await db_health_check()
        is_healthy = bool(db_health.get("healthy", False))
        checks["database"] = {
            "ok": is_healthy,
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }
        if not is_healthy:
            checks["database"]["error"] = db_health.get("error")
        overall_ok = overall_ok and is_healthy
    except Exception as e:
        checks["database"] = {"ok": False, "error": f"{type(e).__name__}: {e}"}
        overall_ok = False

    # 2) Screening poller (overdue means stalled scheduler)
    poller = screening_poll_job_health()
    checks["screening_poller"] = {
        "ok": poller["healthy"],
        "is_running": poller["is_running"],
        "last_run_time": poller["last_run_time"],
    }
    if "warning" in poller:
        checks["screening_poller"]["warning"] = poller["warning"]
    overall_ok = overall_ok and poller["healthy"]

    return {"overall_ok": overall_ok, "checks": checks}
