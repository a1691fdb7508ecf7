"""
Generic background worker runner.

Reads the desired job name from CLI args or the WORKER_JOB environment
variable, opens the database pool, and delegates to the job.

The job lock is per process. Run the screening_poll scheduler either inside
the API (SCREENING_POLLER_ENABLED=true) or here, never both; the worker
refuses to start it while the in-API poller is enabled.
"""

import asyncio
import os
import sys
from collections.abc import Awaitable, Callable

from app.config import settings
from app.db.pool import db_pool
from app.infrastructure.observability.logging import get_logger, setup_logging
from app.jobs.legislative_monitoring_job import run_legislative_monitoring_job
from app.jobs.screening_poll_job import run_screening_poll_job, start_screening_poll_scheduler

logger = get_logger(__name__)

JobCoroutine = Callable[[], Awaitable[object]]

JOB_REGISTRY: dict[str, JobCoroutine] = {
    "screening_poll": start_screening_poll_scheduler,
    "screening_poll_once": run_screening_poll_job,
    "legislative_monitoring": run_legislative_monitoring_job,
}

# Jobs that only talk HTTP and never touch Postgres
NO_DATABASE_JOBS = {"legislative_monitoring"}

# Long-running loops that must not also run inside the API process
IN_API_SCHEDULED_JOBS = {"screening_poll"}


def _resolve_job_name() -> str:
    """Pick the target job from CLI args or WORKER_JOB env variable."""
    if len(sys.argv) > 1:
        return sys.argv[1].strip().lower()
    return os.getenv("WORKER_JOB", "screening_poll").strip().lower()


async def run_worker(job_name: str | None = None) -> None:
    """Run the requested background job."""
    name = (job_name or _resolve_job_name()).strip().lower()
    if name not in JOB_REGISTRY:
        raise ValueError(
            f"Unknown worker job '{name}'. "
            f"Available jobs: {', '.join(sorted(JOB_REGISTRY.keys()))}"
        )

    if name in IN_API_SCHEDULED_JOBS and settings.SCREENING_POLLER_ENABLED:
        logger.error("Screening poller already runs in the API process, refusing to start", job=name)
        raise RuntimeError(
            f"Job '{name}' needs SCREENING_POLLER_ENABLED=false so only one process polls"
        )

    needs_database = name not in NO_DATABASE_JOBS

    logger.info("Starting background worker", job=name)
    if needs_database:
        await db_pool.initialize()
    try:
        result = await JOB_REGISTRY[name]()
        if result is not None:
            logger.info("Background job finished", job=name, result=result)
    finally:
        if needs_database:
            await db_pool.close()


def main() -> None:
    """CLI entrypoint."""
    setup_logging(log_level=settings.LOG_LEVEL)
    job_name = _resolve_job_name()
    asyncio.run(run_worker(job_name))


if __name__ == "__main__":
    main()
