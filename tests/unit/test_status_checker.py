import asyncio

import pytest

from app.models.domain.screening_domain import (
    OrderComplete,
    OrderNotComplete,
    ScreeningCredentials,
    ScreeningOrder,
    ScreeningOrderStatus,
)
from app.services.screening.provider_client import ReportLookupResponse, ScreeningProviderError
from app.services.screening.status_checker import ScreeningStatusChecker

ORDER = ScreeningOrder(
    id="order-1",
    submission_id="sub-1",
    reference_number="REF-1",
    status=ScreeningOrderStatus.IN_PROGRESS,
)
CREDENTIALS = ScreeningCredentials(username="user", password="pass")


class StubClient:
    def __init__(self, response=None, error: Exception | None = None, delay: float = 0):
        self.response = response
        self.error = error
        self.delay = delay
        self.calls: list[str] = []

    async def view_report_by_reference(self, reference_number, credentials):
        self.calls.append(reference_number)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.response


@pytest.mark.asyncio
async def test_success_with_location_is_complete():
    client = StubClient(ReportLookupResponse(True, 200, redirect_url="https://wv.example/r/1"))

    result = await ScreeningStatusChecker(client).check(ORDER, CREDENTIALS)

    assert result == OrderComplete(report_location="https://wv.example/r/1")
    assert result.complete is True
    assert client.calls == ["REF-1"]


@pytest.mark.asyncio
async def test_unsuccessful_response_is_not_complete():
    client = StubClient(ReportLookupResponse(False, 200, error="Report not ready"))

    result = await ScreeningStatusChecker(client).check(ORDER, CREDENTIALS)

    assert isinstance(result, OrderNotComplete)
    assert result.complete is False
    assert result.reason == "Report not ready"


@pytest.mark.asyncio
async def test_success_flag_without_location_is_not_complete():
    client = StubClient(ReportLookupResponse(True, 200, redirect_url=None))

    result = await ScreeningStatusChecker(client).check(ORDER, CREDENTIALS)

    assert result.complete is False


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error, reason",
    [
        (ScreeningProviderError("connection refused"), "provider_error"),
        (ValueError("bad payload"), "unexpected_error"),
    ],
)
async def test_errors_never_leak(error, reason):
    result = await ScreeningStatusChecker(StubClient(error=error)).check(ORDER, CREDENTIALS)

    assert result == OrderNotComplete(reason=reason)


@pytest.mark.asyncio
async def test_stalled_call_times_out_as_not_complete():
    checker = ScreeningStatusChecker(StubClient(delay=1.0), timeout_seconds=0.01)

    result = await checker.check(ORDER, CREDENTIALS)

    assert result == OrderNotComplete(reason="timeout")
