import dataclasses
import os

os.environ.setdefault("SCREENING_CREDENTIALS_KEY", "0123456789abcdef" * 4)
os.environ.setdefault("SCREENING_POLLER_ENABLED", "false")
os.environ.setdefault("RESEND_API_KEY", "re_test_key")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")

import pytest  # noqa: E402

from app.jobs.job_lock import JobLock  # noqa: E402
from app.models.domain.screening_domain import (  # noqa: E402
    OrderComplete,
    OrderNotComplete,
    OwnerCredentialRecord,
    OwnershipContext,
    ScreeningCredentials,
    ScreeningOrder,
    ScreeningOrderStatus,
    ScreeningOrderWithContext,
)


def make_order(
    order_id: str,
    owner_id: str,
    *,
    status: ScreeningOrderStatus = ScreeningOrderStatus.IN_PROGRESS,
    owner_email: str | None = "owner@example.com",
    report_url: str | None = None,
    completion_notified_at=None,
) -> ScreeningOrderWithContext:
    return ScreeningOrderWithContext(
        order=ScreeningOrder(
            id=order_id,
            submission_id=f"sub-{order_id}",
            reference_number=f"REF-{order_id}",
            status=status,
            report_url=report_url,
            completion_notified_at=completion_notified_at,
        ),
        context=OwnershipContext(
            owner_id=owner_id,
            owner_email=owner_email,
            owner_first_name="Pat",
            property_name="Maple Court",
            unit_name="Unit 2",
            applicant_name="Jordan Smith",
        ),
    )


class FakeScreeningRepository:
    """
    In-memory stand-in for ScreeningRepository.

    Mirrors the in-flight query: returns in-progress orders and completed
    orders that were never notified.
    """

    def __init__(self, orders: list[ScreeningOrderWithContext] | None = None):
        self.orders = {item.order.id: item for item in orders or []}
        self.credentials: dict[str, OwnerCredentialRecord] = {}
        self.updates: list[tuple[str, dict]] = []
        self.load_error: Exception | None = None

    async def get_in_flight_orders_with_context(self):
        if self.load_error:
            raise self.load_error
        return [
            ScreeningOrderWithContext(
                order=dataclasses.replace(item.order),
                context=item.context,
            )
            for item in self.orders.values()
            if item.order.status is ScreeningOrderStatus.IN_PROGRESS
            or item.order.completion_notified_at is None
        ]

    async def get_owner_credentials(self, owner_id: str):
        return self.credentials.get(owner_id)

    async def update_order(self, order_id: str, **changes):
        self.updates.append((order_id, changes))
        order = self.orders[order_id].order
        for field, value in changes.items():
            setattr(order, field, value)
        return 1

    def updates_for(self, order_id: str) -> list[dict]:
        return [changes for oid, changes in self.updates if oid == order_id]


class FakeCredentialResolver:
    def __init__(self, owners_with_credentials: set[str]):
        self.owners_with_credentials = owners_with_credentials
        self.calls: list[str] = []

    async def resolve(self, owner_id: str):
        self.calls.append(owner_id)
        if owner_id in self.owners_with_credentials:
            return ScreeningCredentials(username=f"{owner_id}-user", password="secret")
        return None


class FakeStatusChecker:
    def __init__(self, completed: dict[str, str] | None = None):
        self.completed = completed or {}
        self.calls: list[str] = []

    async def check(self, order, credentials):
        self.calls.append(order.id)
        if order.id in self.completed:
            return OrderComplete(report_location=self.completed[order.id])
        return OrderNotComplete()


class FakeNotifier:
    def __init__(self, results: list[bool] | None = None):
        self.results = list(results or [])
        self.calls: list[dict] = []

    async def send_screening_complete_notification(
        self, owner, applicant_name, property_name, unit_name, report_path
    ):
        self.calls.append(
            {
                "email": owner.email,
                "applicant_name": applicant_name,
                "property_name": property_name,
                "unit_name": unit_name,
                "report_path": report_path,
            }
        )
        return self.results.pop(0) if self.results else True


class FakeRateLimiter:
    min_interval_seconds = 0.0

    def __init__(self):
        self.waits = 0

    async def wait(self) -> float:
        self.waits += 1
        return 0.0


@pytest.fixture
def fresh_lock():
    return JobLock("test")


@pytest.fixture
def fake_rate_limiter():
    return FakeRateLimiter()
