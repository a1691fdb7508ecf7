"""
Legislative monitoring trigger.

The legislative content pipeline lives in another service; this job kicks off
one monitoring run over HTTP and holds its own named job lock meanwhile, so
a scheduler and a manual trigger cannot start two runs at once.
"""

import time

import httpx

from app.config import settings
from app.infrastructure.observability.logging import get_logger, log_job_cycle
from app.jobs.job_lock import JobLock, get_job_lock

logger = get_logger(__name__)

JOB_NAME = "legislative_monitoring"


class LegislativeMonitoringJobError(Exception):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


async def _trigger_monitoring_run(transport: httpx.AsyncBaseTransport | None = None) -> dict:
    if not settings.LEGISLATIVE_MONITORING_URL:
        raise LegislativeMonitoringJobError("LEGISLATIVE_MONITORING_URL not configured")
    if not settings.CRON_SECRET:
        raise LegislativeMonitoringJobError("CRON_SECRET not configured")

    started = time.time()
    try:
        async with httpx.AsyncClient(
            timeout=settings.LEGISLATIVE_MONITORING_TIMEOUT_SECONDS, transport=transport
        ) as client:
            response = await client.post(
                settings.LEGISLATIVE_MONITORING_URL,
                headers={"X-Cron-Secret": settings.CRON_SECRET},
                json={},
            )
    except httpx.RequestError as e:
        raise LegislativeMonitoringJobError(f"Monitoring request failed: {e}") from e

    try:
        body = response.json()
    except ValueError:
        body = {"raw": response.text[:500]}

    if not response.is_success:
        raise LegislativeMonitoringJobError(
            f"Monitoring failed with HTTP {response.status_code}: {body}",
            status_code=response.status_code,
        )

    log_job_cycle(
        JOB_NAME,
        {"duration_ms": round((time.time() - started) * 1000, 2), "status_code": response.status_code},
    )
    return body


async def run_legislative_monitoring_job(
    lock: JobLock | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict:
    """
    Trigger one legislative monitoring run.

    Raises:
        JobConflictError: If a run is already in progress in this process
        LegislativeMonitoringJobError: If the pipeline call fails
    """
    lock = lock or get_job_lock(JOB_NAME)
    logger.info("Starting legislative monitoring run")
    return await lock.run(JOB_NAME, lambda: _trigger_monitoring_run(transport))
