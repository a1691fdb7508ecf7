import json

import httpx
import pytest

from app.models.domain.screening_domain import EmailRecipient
from app.services.email_service import EmailService, build_screening_complete_email

OWNER = EmailRecipient(email="owner@example.com", first_name="Pat")


def _service(handler) -> EmailService:
    return EmailService(api_key="re_test", transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_sends_one_email_with_dashboard_link():
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"id": "email-1"})

    sent = await _service(handler).send_screening_complete_notification(
        OWNER, "Jordan Smith", "Maple Court", "Unit 2", "/rental-submissions/sub-1"
    )

    assert sent is True
    assert len(requests) == 1
    payload = json.loads(requests[0].content)
    assert requests[0].headers["authorization"] == "Bearer re_test"
    assert payload["to"] == ["owner@example.com"]
    assert payload["subject"] == "Screening Complete: Jordan Smith - Maple Court"
    assert "/rental-submissions/sub-1" in payload["text"]
    assert payload["text"].startswith("Hi Pat,")


@pytest.mark.asyncio
async def test_rejected_send_returns_false():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(422, json={"message": "invalid from"})

    sent = await _service(handler).send_screening_complete_notification(
        OWNER, "Jordan Smith", "Maple Court", "Unit 2", "/rental-submissions/sub-1"
    )

    assert sent is False


@pytest.mark.asyncio
async def test_transport_error_returns_false():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("down", request=request)

    sent = await _service(handler).send_screening_complete_notification(
        OWNER, "Jordan Smith", "Maple Court", "Unit 2", "/rental-submissions/sub-1"
    )

    assert sent is False


@pytest.mark.asyncio
async def test_missing_email_or_api_key_does_not_send():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    no_email = await _service(handler).send_screening_complete_notification(
        EmailRecipient(email=""), "Jordan Smith", "Maple Court", "Unit 2", "/x"
    )
    unconfigured = await EmailService(
        api_key="", transport=httpx.MockTransport(handler)
    ).send_screening_complete_notification(OWNER, "Jordan Smith", "Maple Court", "Unit 2", "/x")

    assert no_email is False
    assert unconfigured is False


def test_html_body_escapes_names():
    template = build_screening_complete_email(
        None, "<script>x</script>", "Maple & Oak", "", "https://app.example/r"
    )

    assert "<script>x</script>" not in template.html_body
    assert "Maple &amp; Oak" in template.html_body
    assert template.text_body.startswith("Hi there,")
    assert "at Maple & Oak is now complete" in template.text_body
