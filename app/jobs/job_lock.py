"""
Single-flight lock for background monitoring jobs.

A JobLock allows one holder at a time and rejects a second caller immediately
instead of queueing it. State lives in the lock object and is never persisted,
so a process restart always starts unlocked. acquire() and release() contain
no await, which keeps check-and-set atomic on the event loop.
"""

import inspect
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, TypeVar

from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class JobConflictError(Exception):
    """Raised when a job is started while another holds the lock."""

    status_code = 409

    def __init__(self, job_name: str, current_job: str | None, locked_since: datetime | None):
        super().__init__(f'Job "{job_name}" cannot start: "{current_job}" is already running')
        self.job_name = job_name
        self.current_job = current_job
        self.locked_since = locked_since

    def to_dict(self) -> dict:
        return {
            "error": "job_conflict",
            "job": self.job_name,
            "current_job": self.current_job,
            "locked_since": self.locked_since.isoformat() if self.locked_since else None,
        }


@dataclass(slots=True, frozen=True)
class JobLockStatus:
    locked: bool
    job: str | None
    since: datetime | None

    def to_dict(self) -> dict:
        return {
            "locked": self.locked,
            "job": self.job,
            "since": self.since.isoformat() if self.since else None,
        }


class JobLock:
    """In-process advisory mutex reporting who holds it and since when."""

    def __init__(self, name: str = "default"):
        self.name = name
        self._holder: str | None = None
        self._since: datetime | None = None
        self._started_at: float | None = None

    @property
    def locked(self) -> bool:
        return self._holder is not None

    def acquire(self, job_name: str) -> None:
        """
        Take the lock for job_name.

        Raises:
            JobConflictError: If any job already holds it
        """
        if self._holder is not None:
            raise JobConflictError(job_name, self._holder, self._since)

        self._holder = job_name
        self._since = datetime.now(UTC)
        self._started_at = time.monotonic()

        logger.info("Job lock acquired", lock=self.name, job=job_name)

    def release(self, job_name: str) -> None:
        """Release the lock if job_name holds it; releasing a lock held by another job is refused."""
        if self._holder is None:
            logger.warning("Job lock release without holder", lock=self.name, job=job_name)
            return

        if self._holder != job_name:
            logger.error(
                "Job lock release by non-holder ignored",
                lock=self.name,
                job=job_name,
                holder=self._holder,
            )
            return

        duration_ms = round((time.monotonic() - self._started_at) * 1000, 2)
        self._holder = None
        self._since = None
        self._started_at = None

        logger.info("Job lock released", lock=self.name, job=job_name, duration_ms=duration_ms)

    def status(self) -> JobLockStatus:
        return JobLockStatus(locked=self.locked, job=self._holder, since=self._since)

    async def run(self, job_name: str, fn: Callable[[], Awaitable[T] | T]) -> T:
        """
        Run fn while holding the lock, releasing it however fn exits.

        Raises:
            JobConflictError: If the lock is already held (fn is not called)
        """
        self.acquire(job_name)
        try:
            result = fn()
            if inspect.isawaitable(result):
                result = await result
            return result
        finally:
            self.release(job_name)


_job_locks: dict[str, JobLock] = {}


def get_job_lock(name: str) -> JobLock:
    """Process-wide lock for a named job; created on first use."""
    lock = _job_locks.get(name)
    if lock is None:
        lock = _job_locks[name] = JobLock(name)
    return lock


def get_all_lock_statuses() -> dict[str, dict[str, Any]]:
    return {name: lock.status().to_dict() for name, lock in sorted(_job_locks.items())}
