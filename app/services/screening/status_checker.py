"""Completion check for a single screening order."""

import asyncio

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.models.domain.screening_domain import (
    OrderCheckResult,
    OrderComplete,
    OrderNotComplete,
    ScreeningCredentials,
    ScreeningOrder,
)
from app.services.screening.provider_client import (
    ScreeningProviderClient,
    ScreeningProviderError,
    screening_provider_client,
)

logger = get_logger(__name__)


class ScreeningStatusChecker:
    """
    Turn one provider lookup into OrderComplete or OrderNotComplete.

    Completion is only reported on an explicit report location. Timeouts,
    transport errors and odd payloads all come back as OrderNotComplete and
    are retried on the next cycle.
    """

    def __init__(
        self,
        client: ScreeningProviderClient | None = None,
        timeout_seconds: float | None = None,
    ):
        self.client = client or screening_provider_client
        self.timeout_seconds = (
            timeout_seconds
            if timeout_seconds is not None
            else settings.SCREENING_PROVIDER_TIMEOUT_SECONDS
        )

    async def check(
        self, order: ScreeningOrder, credentials: ScreeningCredentials
    ) -> OrderCheckResult:
        try:
            response = await asyncio.wait_for(
                self.client.view_report_by_reference(order.reference_number, credentials),
                timeout=self.timeout_seconds,
            )
        except TimeoutError:
            logger.warning(
                "Screening status check timed out",
                order_id=order.id,
                timeout_seconds=self.timeout_seconds,
            )
            return OrderNotComplete(reason="timeout")
        except ScreeningProviderError as e:
            logger.warning("Screening status check failed", order_id=order.id, error=str(e))
            return OrderNotComplete(reason="provider_error")
        except Exception as e:
            logger.error(
                "Unexpected error checking screening order",
                order_id=order.id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return OrderNotComplete(reason="unexpected_error")

        if response.success and response.redirect_url:
            return OrderComplete(report_location=response.redirect_url)

        return OrderNotComplete(reason=response.error or "pending")


screening_status_checker = ScreeningStatusChecker()
