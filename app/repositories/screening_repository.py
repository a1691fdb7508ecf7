"""
Persistence layer for screening orders and landlord credentials.

Keeps the ownership join and the partial order updates in one place so the
poll job can stay focused on orchestration.
"""

from datetime import datetime
from typing import Any

from psycopg import sql

from app.db.helpers import DatabaseError, execute_query, fetch_all, fetch_one, with_db_retry
from app.infrastructure.observability.logging import get_logger
from app.models.domain.screening_domain import (
    OwnerCredentialRecord,
    OwnershipContext,
    ScreeningOrder,
    ScreeningOrderStatus,
    ScreeningOrderWithContext,
)

logger = get_logger(__name__)

_UNSET: Any = object()


class ScreeningRepositoryError(DatabaseError):
    """More specific exception for repository failures."""


class ScreeningRepository:
    """Storage contract consumed by the screening poll job."""

    # In-progress orders, plus completed ones still waiting on an owner email
    IN_FLIGHT_ORDERS_QUERY = """
        SELECT
            o.id,
            o.submission_id,
            o.reference_number,
            o.status,
            o.report_url,
            o.last_status_check_at,
            o.completion_notified_at,
            p.user_id AS owner_id,
            u.email AS owner_email,
            u.first_name AS owner_first_name,
            p.name AS property_name,
            un.unit_label AS unit_name,
            NULLIF(TRIM(CONCAT_WS(' ', sp.first_name, sp.last_name)), '') AS applicant_name
        FROM rental_screening_orders o
        JOIN rental_submissions s ON s.id = o.submission_id
        JOIN rental_application_links l ON l.id = s.application_link_id
        JOIN rental_units un ON un.id = l.unit_id
        JOIN rental_properties p ON p.id = un.property_id
        JOIN users u ON u.id = p.user_id
        LEFT JOIN rental_submission_people sp ON sp.id = o.person_id
        WHERE s.deleted_at IS NULL
          AND (
                o.status = 'in_progress'
             OR (o.status = 'complete' AND o.completion_notified_at IS NULL)
          )
        ORDER BY p.user_id, o.created_at, o.id
    """

    CREDENTIALS_QUERY = """
        SELECT user_id, encrypted_username, encrypted_password, encryption_iv
        FROM landlord_screening_credentials
        WHERE user_id = %s
    """

    @staticmethod
    def _row_to_order_with_context(row: dict) -> ScreeningOrderWithContext:
        order = ScreeningOrder(
            id=str(row["id"]),
            submission_id=str(row["submission_id"]),
            reference_number=row["reference_number"],
            status=ScreeningOrderStatus(row["status"]),
            report_url=row.get("report_url"),
            last_status_check_at=row.get("last_status_check_at"),
            completion_notified_at=row.get("completion_notified_at"),
        )
        context = OwnershipContext(
            owner_id=str(row["owner_id"]),
            owner_email=row.get("owner_email") or None,
            owner_first_name=row.get("owner_first_name"),
            property_name=row.get("property_name") or "your property",
            unit_name=row.get("unit_name") or "",
            applicant_name=row.get("applicant_name") or "Applicant",
        )
        return ScreeningOrderWithContext(order=order, context=context)

    @with_db_retry(max_retries=2)
    async def get_in_flight_orders_with_context(self) -> list[ScreeningOrderWithContext]:
        """Load every order the poller should look at this cycle."""
        try:
            rows = await fetch_all(self.IN_FLIGHT_ORDERS_QUERY)
        except DatabaseError as e:
            raise ScreeningRepositoryError(
                f"Failed to load in-flight screening orders: {e}",
                operation="get_in_flight_orders",
            ) from e.__cause__

        return [self._row_to_order_with_context(row) for row in rows]

    async def get_owner_credentials(self, owner_id: str) -> OwnerCredentialRecord | None:
        try:
            row = await fetch_one(self.CREDENTIALS_QUERY, (owner_id,))
        except DatabaseError as e:
            raise ScreeningRepositoryError(
                f"Failed to load screening credentials: {e}",
                operation="get_owner_credentials",
            ) from e

        if not row:
            return None

        return OwnerCredentialRecord(
            user_id=str(row["user_id"]),
            encrypted_username=row.get("encrypted_username"),
            encrypted_password=row.get("encrypted_password"),
            encryption_iv=row.get("encryption_iv"),
        )

    async def update_order(
        self,
        order_id: str,
        *,
        status: ScreeningOrderStatus = _UNSET,
        report_url: str | None = _UNSET,
        last_status_check_at: datetime | None = _UNSET,
        completion_notified_at: datetime | None = _UNSET,
    ) -> int:
        """
        Partially update one order row. Only the fields passed are written.

        Returns:
            int: Number of rows updated (0 or 1)
        """
        fields = {
            "status": status.value if isinstance(status, ScreeningOrderStatus) else status,
            "report_url": report_url,
            "last_status_check_at": last_status_check_at,
            "completion_notified_at": completion_notified_at,
        }
        changes = {column: value for column, value in fields.items() if value is not _UNSET}

        if not changes:
            return 0

        assignments = [
            sql.SQL("{} = %s").format(sql.Identifier(column)) for column in changes
        ]
        assignments.append(sql.SQL("updated_at = NOW()"))

        query = sql.SQL("UPDATE rental_screening_orders SET {} WHERE id = %s").format(
            sql.SQL(", ").join(assignments)
        )

        try:
            updated = await execute_query(query, (*changes.values(), order_id))
        except DatabaseError as e:
            raise ScreeningRepositoryError(
                f"Failed to update screening order: {e}",
                operation="update_order",
            ) from e

        logger.debug(
            "Screening order updated",
            order_id=order_id,
            columns=list(changes),
            rows=updated,
        )
        return updated


screening_repository = ScreeningRepository()
