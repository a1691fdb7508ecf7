"""
Domain models for tenant-screening orders and owner credentials.

Lightweight dataclasses shared by the repository, the screening services and
the poll job. Rows are mapped into these at the repository boundary.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class ScreeningOrderStatus(str, Enum):
    """Order states the poller reads and writes."""

    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


@dataclass(slots=True)
class ScreeningOrder:
    """Represents a rental_screening_orders row."""

    id: str
    submission_id: str
    reference_number: str
    status: ScreeningOrderStatus
    report_url: str | None = None
    last_status_check_at: datetime | None = None
    completion_notified_at: datetime | None = None

    @property
    def is_complete(self) -> bool:
        return self.status is ScreeningOrderStatus.COMPLETE

    @property
    def is_notified(self) -> bool:
        return self.completion_notified_at is not None


@dataclass(slots=True)
class OwnershipContext:
    """Who owns the order and what the notification should mention."""

    owner_id: str
    owner_email: str | None
    owner_first_name: str | None
    property_name: str
    unit_name: str
    applicant_name: str


@dataclass(slots=True)
class ScreeningOrderWithContext:
    order: ScreeningOrder
    context: OwnershipContext

    @property
    def owner_id(self) -> str:
        return self.context.owner_id


@dataclass(slots=True)
class OwnerCredentialRecord:
    """Represents a landlord_screening_credentials row (still encrypted)."""

    user_id: str
    encrypted_username: str | None
    encrypted_password: str | None
    encryption_iv: str | None

    @property
    def is_complete(self) -> bool:
        return bool(self.encrypted_username and self.encrypted_password and self.encryption_iv)


@dataclass(slots=True, repr=False)
class ScreeningCredentials:
    """Decrypted provider login for one owner."""

    username: str
    password: str

    def __repr__(self) -> str:
        return "ScreeningCredentials(username=***, password=***)"


@dataclass(slots=True, frozen=True)
class OrderComplete:
    """The provider confirmed the report is ready."""

    report_location: str
    complete: bool = field(default=True, init=False)


@dataclass(slots=True, frozen=True)
class OrderNotComplete:
    """Anything short of an explicit ready signal."""

    reason: str = "pending"
    complete: bool = field(default=False, init=False)


OrderCheckResult = OrderComplete | OrderNotComplete


@dataclass(slots=True)
class EmailRecipient:
    email: str
    first_name: str | None = None
