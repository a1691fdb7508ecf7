"""
Admin endpoints for background monitoring jobs.

Read-only lock status for the operations dashboard, plus manual triggers
used by cron and operators. All routes require the X-Cron-Secret header.
"""

import hmac

from fastapi import APIRouter, Depends, Header, HTTPException, status
from fastapi.responses import JSONResponse

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.jobs import legislative_monitoring_job, screening_poll_job
from app.jobs.job_lock import JobConflictError, get_all_lock_statuses, get_job_lock
from app.jobs.legislative_monitoring_job import LegislativeMonitoringJobError
from app.jobs.screening_poll_job import ScreeningPollJobError

logger = get_logger(__name__)

router = APIRouter(prefix="/admin/jobs", tags=["admin-jobs"])

RUNNABLE_JOBS = {
    screening_poll_job.JOB_NAME: screening_poll_job.run_screening_poll_job,
    legislative_monitoring_job.JOB_NAME: legislative_monitoring_job.run_legislative_monitoring_job,
}


def require_cron_secret(x_cron_secret: str | None = Header(default=None)) -> None:
    if not settings.CRON_SECRET:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="CRON_SECRET not configured",
        )

    if not x_cron_secret or not hmac.compare_digest(x_cron_secret, settings.CRON_SECRET):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid cron secret")


def _require_known_job(job_name: str) -> str:
    if job_name not in RUNNABLE_JOBS:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown job '{job_name}'")
    return job_name


@router.get("/locks", dependencies=[Depends(require_cron_secret)])
async def list_job_locks():
    """Status of every job lock created in this process."""
    locks = get_all_lock_statuses()
    for job_name in RUNNABLE_JOBS:
        locks.setdefault(job_name, get_job_lock(job_name).status().to_dict())
    return {"locks": locks}


@router.get("/screening_poll/status", dependencies=[Depends(require_cron_secret)])
async def get_screening_poll_status():
    """Last run time, running flag, lock holder and last cycle metrics of the poller."""
    return screening_poll_job.get_screening_poll_job_status()


@router.get("/{job_name}/lock", dependencies=[Depends(require_cron_secret)])
async def get_job_lock_status(job_name: str):
    _require_known_job(job_name)
    return {"job_name": job_name, **get_job_lock(job_name).status().to_dict()}


@router.post("/{job_name}/run", dependencies=[Depends(require_cron_secret)])
async def run_job(job_name: str):
    """Run one job now; 409 if it is already running."""
    _require_known_job(job_name)

    try:
        result = await RUNNABLE_JOBS[job_name]()
    except JobConflictError as e:
        logger.info("Manual job trigger rejected", job=job_name, current_job=e.current_job)
        return JSONResponse(status_code=e.status_code, content=e.to_dict())
    except (ScreeningPollJobError, LegislativeMonitoringJobError) as e:
        logger.error("Manual job run failed", job=job_name, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY
            if isinstance(e, LegislativeMonitoringJobError)
            else status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e),
        ) from e

    return {"job_name": job_name, "success": True, "result": result}
