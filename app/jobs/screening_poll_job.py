"""
Screening Poll Job.
Re-checks in-flight tenant screening orders with the provider, records
completions, and emails the property owner once per completed report.
"""

import asyncio
from collections import defaultdict
from datetime import UTC, datetime, timedelta

from app.config import settings
from app.infrastructure.observability.logging import get_logger, log_job_cycle
from app.jobs.job_lock import JobConflictError, JobLock, get_job_lock
from app.jobs.rate_limit import IntervalRateLimiter
from app.models.domain.screening_domain import (
    EmailRecipient,
    ScreeningCredentials,
    ScreeningOrderStatus,
    ScreeningOrderWithContext,
)
from app.repositories.screening_repository import ScreeningRepository, screening_repository
from app.services.email_service import EmailService, email_service
from app.services.screening.credential_resolver import CredentialResolver
from app.services.screening.status_checker import ScreeningStatusChecker, screening_status_checker

logger = get_logger(__name__)

JOB_NAME = "screening_poll"


def _utcnow() -> datetime:
    return datetime.now(UTC)


def submission_report_path(submission_id: str) -> str:
    return f"/rental-submissions/{submission_id}"


class ScreeningPollJobError(Exception):
    """Custom exception for screening poll job operations."""

    def __init__(self, message: str, operation: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.operation = operation
        self.recoverable = recoverable


class ScreeningPollMetrics:
    """Metrics tracking for one poll cycle."""

    def __init__(self):
        self.reset()

    def reset(self):
        """Reset all metrics for new job run."""
        self.start_time = _utcnow()
        self.orders_seen = 0
        self.owners_seen = 0
        self.owners_skipped = 0
        self.orders_skipped = 0
        self.orders_checked = 0
        self.orders_completed = 0
        self.notifications_sent = 0
        self.notifications_failed = 0
        self.processing_errors = 0
        self.total_duration_seconds = 0.0
        self.errors: list[dict] = []

    def record_owner_skipped(self, owner_id: str, order_count: int):
        self.owners_skipped += 1
        self.orders_skipped += order_count

    def record_notification_failure(self, order_id: str, owner_email: str):
        self.notifications_failed += 1
        self.errors.append(
            {
                "order_id": order_id,
                "owner_email": owner_email,
                "error_type": "notification",
                "timestamp": _utcnow().isoformat(),
            }
        )

    def record_processing_error(self, order_id: str, error: str):
        self.processing_errors += 1
        self.errors.append(
            {
                "order_id": order_id,
                "error": error,
                "error_type": "processing",
                "timestamp": _utcnow().isoformat(),
            }
        )

    def finalize(self):
        self.total_duration_seconds = (_utcnow() - self.start_time).total_seconds()

    def to_dict(self) -> dict:
        return {
            "job_run": JOB_NAME,
            "start_time": self.start_time.isoformat(),
            "total_duration_seconds": round(self.total_duration_seconds, 2),
            "orders_seen": self.orders_seen,
            "owners_seen": self.owners_seen,
            "owners_skipped": self.owners_skipped,
            "orders_skipped": self.orders_skipped,
            "orders_checked": self.orders_checked,
            "orders_completed": self.orders_completed,
            "notifications_sent": self.notifications_sent,
            "notifications_failed": self.notifications_failed,
            "processing_errors": self.processing_errors,
            "errors_count": len(self.errors),
        }


class ScreeningPollJob:
    """
    Background job polling the screening provider for finished reports.

    Orders are grouped by owner so credentials are decrypted once per owner
    per cycle, and provider calls go out one at a time through the rate
    limiter. A report that is complete but whose owner email failed stays
    un-notified and is retried on the next cycle without another provider call.
    """

    def __init__(
        self,
        repository: ScreeningRepository | None = None,
        credential_resolver: CredentialResolver | None = None,
        status_checker: ScreeningStatusChecker | None = None,
        notifier: EmailService | None = None,
        rate_limiter: IntervalRateLimiter | None = None,
        lock: JobLock | None = None,
    ):
        self.repository = repository or screening_repository
        self.credential_resolver = credential_resolver or CredentialResolver(self.repository)
        self.status_checker = status_checker or screening_status_checker
        self.notifier = notifier or email_service
        self.rate_limiter = rate_limiter or IntervalRateLimiter(
            settings.SCREENING_PROVIDER_CALL_INTERVAL_SECONDS
        )
        self.lock = lock or get_job_lock(JOB_NAME)

        self.is_running = False
        self.last_run_time: datetime | None = None
        self.job_metrics = ScreeningPollMetrics()

    async def run_once(self) -> dict:
        """
        Run a single poll cycle under the job lock.

        Returns:
            dict: Cycle metrics

        Raises:
            JobConflictError: If a cycle is already running
            ScreeningPollJobError: If the cycle could not load its orders
        """
        return await self.lock.run(JOB_NAME, self._run_cycle)

    async def _run_cycle(self) -> dict:
        self.is_running = True
        self.job_metrics.reset()

        try:
            logger.info("Starting screening status poll")

            orders = await self._load_orders()
            self.job_metrics.orders_seen = len(orders)

            if not orders:
                logger.info("No in-flight screening orders to check")
            else:
                by_owner = self._group_by_owner(orders)
                self.job_metrics.owners_seen = len(by_owner)

                logger.info(
                    "Found in-flight screening orders",
                    order_count=len(orders),
                    owner_count=len(by_owner),
                )

                for owner_id, owner_orders in by_owner.items():
                    await self._process_owner(owner_id, owner_orders)

            self.job_metrics.finalize()
            self.last_run_time = _utcnow()

            metrics = self.job_metrics.to_dict()
            log_job_cycle(JOB_NAME, metrics)
            return metrics

        except ScreeningPollJobError as e:
            self.job_metrics.finalize()
            log_job_cycle(JOB_NAME, self.job_metrics.to_dict(), error=str(e))
            raise
        except Exception as e:
            self.job_metrics.finalize()
            log_job_cycle(JOB_NAME, self.job_metrics.to_dict(), error=str(e))
            raise ScreeningPollJobError(
                f"Screening poll cycle failed: {e}", operation="run_cycle"
            ) from e

        finally:
            self.is_running = False

    async def _load_orders(self) -> list[ScreeningOrderWithContext]:
        try:
            return await self.repository.get_in_flight_orders_with_context()
        except Exception as e:
            logger.error("Failed to load in-flight screening orders", error=str(e))
            raise ScreeningPollJobError(
                f"Failed to load in-flight orders: {e}", operation="load_orders"
            ) from e

    @staticmethod
    def _group_by_owner(
        orders: list[ScreeningOrderWithContext],
    ) -> dict[str, list[ScreeningOrderWithContext]]:
        grouped: dict[str, list[ScreeningOrderWithContext]] = defaultdict(list)
        for item in orders:
            grouped[item.owner_id].append(item)
        return dict(grouped)

    async def _process_owner(self, owner_id: str, orders: list[ScreeningOrderWithContext]):
        try:
            credentials = await self.credential_resolver.resolve(owner_id)
        except Exception as e:
            logger.error(
                "Error resolving screening credentials, skipping owner",
                owner_id=owner_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            credentials = None

        if credentials is None:
            logger.info(
                "No screening credentials for owner, skipping",
                owner_id=owner_id,
                order_count=len(orders),
            )
            self.job_metrics.record_owner_skipped(owner_id, len(orders))
            return

        logger.debug("Checking orders for owner", owner_id=owner_id, order_count=len(orders))

        for item in orders:
            try:
                await self._process_order(item, credentials)
            except Exception as e:
                logger.error(
                    "Error processing screening order",
                    order_id=item.order.id,
                    owner_id=owner_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                self.job_metrics.record_processing_error(item.order.id, f"{type(e).__name__}: {e}")

    async def _process_order(self, item: ScreeningOrderWithContext, credentials: ScreeningCredentials):
        order = item.order

        if order.is_complete:
            if order.is_notified:
                logger.debug("Screening order already complete and notified", order_id=order.id)
                return
            logger.info("Screening order already complete, retrying notification", order_id=order.id)
        else:
            await self.rate_limiter.wait()
            result = await self.status_checker.check(order, credentials)
            self.job_metrics.orders_checked += 1
            checked_at = _utcnow()

            if not result.complete:
                await self.repository.update_order(order.id, last_status_check_at=checked_at)
                order.last_status_check_at = checked_at
                return

            await self.repository.update_order(
                order.id,
                status=ScreeningOrderStatus.COMPLETE,
                report_url=result.report_location,
                last_status_check_at=checked_at,
            )
            order.status = ScreeningOrderStatus.COMPLETE
            order.report_url = result.report_location
            order.last_status_check_at = checked_at
            self.job_metrics.orders_completed += 1

            logger.info("Screening order is now complete", order_id=order.id)

        await self._notify_owner(item)

    async def _notify_owner(self, item: ScreeningOrderWithContext):
        order, context = item.order, item.context

        if not context.owner_email:
            logger.info("Owner has no email on file, marking notified", order_id=order.id)
            await self._mark_notified(item)
            return

        try:
            sent = await self.notifier.send_screening_complete_notification(
                EmailRecipient(email=context.owner_email, first_name=context.owner_first_name),
                context.applicant_name,
                context.property_name,
                context.unit_name,
                submission_report_path(order.submission_id),
            )
        except Exception as e:
            logger.error(
                "Screening notification raised",
                order_id=order.id,
                owner_email=context.owner_email,
                error=str(e),
            )
            sent = False

        if sent:
            await self._mark_notified(item)
            self.job_metrics.notifications_sent += 1
            logger.info(
                "Sent screening completion notification",
                order_id=order.id,
                owner_email=context.owner_email,
            )
        else:
            self.job_metrics.record_notification_failure(order.id, context.owner_email)
            logger.warning(
                "Failed to send screening completion notification, will retry next cycle",
                order_id=order.id,
                owner_email=context.owner_email,
            )

    async def _mark_notified(self, item: ScreeningOrderWithContext):
        notified_at = _utcnow()
        await self.repository.update_order(item.order.id, completion_notified_at=notified_at)
        item.order.completion_notified_at = notified_at

    def get_job_status(self) -> dict:
        return {
            "job_name": JOB_NAME,
            "is_running": self.is_running,
            "last_run_time": self.last_run_time.isoformat() if self.last_run_time else None,
            "interval_seconds": settings.SCREENING_POLL_INTERVAL_SECONDS,
            "provider_call_interval_seconds": self.rate_limiter.min_interval_seconds,
            "lock": self.lock.status().to_dict(),
            "last_run_metrics": self.job_metrics.to_dict() if self.last_run_time else None,
        }

    def health_check(self) -> dict:
        """
        Health check for the poll job.

        Overdue means no completed cycle within two polling intervals.
        """
        now = _utcnow()
        overdue_threshold = timedelta(seconds=settings.SCREENING_POLL_INTERVAL_SECONDS * 2)
        is_overdue = self.last_run_time is not None and (now - self.last_run_time) > overdue_threshold

        health_status = {
            "healthy": not is_overdue,
            "service": "screening_poll_job",
            "is_running": self.is_running,
            "last_run_time": self.last_run_time.isoformat() if self.last_run_time else None,
            "is_overdue": is_overdue,
        }

        if is_overdue:
            health_status["warning"] = (
                f"Job overdue by {(now - self.last_run_time).total_seconds() / 60:.1f} minutes"
            )

        return health_status


# Singleton instance for application use
screening_poll_job = ScreeningPollJob()


async def run_screening_poll_job() -> dict:
    """Run a single iteration of the screening poll job."""
    return await screening_poll_job.run_once()


def get_screening_poll_job_status() -> dict:
    return screening_poll_job.get_job_status()


def screening_poll_job_health() -> dict:
    return screening_poll_job.health_check()


async def start_screening_poll_scheduler(
    job: ScreeningPollJob | None = None,
    *,
    initial_delay_seconds: float | None = None,
    interval_seconds: float | None = None,
    max_cycles: int | None = None,
):
    """
    Run the poll job forever on a fixed interval after an initial delay.

    A lock conflict skips the tick; any other failure is logged and the next
    tick still fires.
    """
    job = job or screening_poll_job
    initial_delay = (
        initial_delay_seconds
        if initial_delay_seconds is not None
        else settings.SCREENING_POLL_INITIAL_DELAY_SECONDS
    )
    interval = (
        interval_seconds if interval_seconds is not None else settings.SCREENING_POLL_INTERVAL_SECONDS
    )

    logger.info(
        "Starting screening poll scheduler",
        initial_delay_seconds=initial_delay,
        interval_seconds=interval,
    )

    await asyncio.sleep(initial_delay)

    cycles = 0
    while max_cycles is None or cycles < max_cycles:
        cycles += 1
        try:
            await job.run_once()

        except JobConflictError as e:
            logger.warning(
                "Screening poll already running, skipping tick",
                current_job=e.current_job,
                locked_since=e.locked_since.isoformat() if e.locked_since else None,
            )
        except Exception as e:
            logger.error(
                "Error in screening poll scheduler", error=str(e), error_type=type(e).__name__
            )

        if max_cycles is None or cycles < max_cycles:
            await asyncio.sleep(interval)

    logger.info("Screening poll scheduler stopped", cycles=cycles)
