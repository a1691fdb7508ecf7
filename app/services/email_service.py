"""
Transactional email for property owners.
Sends through the Resend HTTP API; every send reports success as a bool so
callers can decide whether to record the notification.
"""

from dataclasses import dataclass
from html import escape

import httpx

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.models.domain.screening_domain import EmailRecipient

logger = get_logger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"
REQUEST_TIMEOUT = 15.0


@dataclass(slots=True)
class EmailTemplate:
    subject: str
    text_body: str
    html_body: str


def build_screening_complete_email(
    first_name: str | None,
    applicant_name: str,
    property_name: str,
    unit_name: str,
    report_url: str,
) -> EmailTemplate:
    """Render the "screening complete" email."""
    greeting_name = first_name or "there"
    location = f"{property_name} ({unit_name})" if unit_name else property_name

    text_body = (
        f"Hi {greeting_name},\n\n"
        f"Great news! The tenant screening for {applicant_name} at {location} is now complete.\n\n"
        "You can now view the screening results in your LeaseShield dashboard:\n\n"
        f"{report_url}\n\n"
        "The report includes background check information to help you make an informed "
        "decision on this rental application.\n\n"
        "Best regards,\n"
        "The LeaseShield App Team\n"
    )

    html_body = f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body style="font-family: -apple-system, 'Segoe UI', Roboto, sans-serif; color: #334155;">
  <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
    <h1 style="color: #0d9488;">Screening Complete</h1>
    <p>Hi {escape(greeting_name)},</p>
    <p><strong>Good news!</strong> The tenant screening results are now available.</p>
    <div style="background: #f0fdfa; padding: 20px; border-left: 4px solid #14b8a6;">
      <p><strong>Applicant:</strong> {escape(applicant_name)}</p>
      <p><strong>Property:</strong> {escape(property_name)}</p>
      <p><strong>Unit:</strong> {escape(unit_name)}</p>
    </div>
    <p><a href="{escape(report_url, quote=True)}"
          style="display: inline-block; background: #14b8a6; color: white; padding: 12px 24px;
                 text-decoration: none; border-radius: 6px;">View Screening Results</a></p>
    <p style="color: #64748b; font-size: 14px;">The LeaseShield App Team</p>
  </div>
</body>
</html>"""

    return EmailTemplate(
        subject=f"Screening Complete: {applicant_name} - {property_name}",
        text_body=text_body,
        html_body=html_body,
    )


class EmailService:
    """Resend-backed email sender."""

    def __init__(
        self,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._api_key = api_key
        self._transport = transport

    @property
    def api_key(self) -> str | None:
        return self._api_key if self._api_key is not None else settings.RESEND_API_KEY

    async def send_email(self, to: EmailRecipient, template: EmailTemplate) -> bool:
        """
        Send one email.

        Returns:
            bool: True only when Resend accepted the message
        """
        if not to.email:
            return False

        if not self.api_key:
            logger.warning(
                "Resend not configured - email not sent",
                to=to.email,
                subject=template.subject,
                body_preview=template.text_body[:100],
            )
            return False

        payload = {
            "from": f"{settings.EMAIL_FROM_NAME} <{settings.EMAIL_FROM_ADDRESS}>",
            "to": [to.email],
            "subject": template.subject,
            "html": template.html_body,
            "text": template.text_body,
        }

        try:
            async with httpx.AsyncClient(
                timeout=REQUEST_TIMEOUT, transport=self._transport
            ) as client:
                response = await client.post(
                    RESEND_API_URL,
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
        except httpx.RequestError as e:
            logger.error(
                "Email send request failed",
                to=to.email,
                subject=template.subject,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        if response.is_success:
            logger.info("Email sent", to=to.email, subject=template.subject)
            return True

        logger.error(
            "Email provider rejected message",
            to=to.email,
            subject=template.subject,
            status_code=response.status_code,
            response_preview=response.text[:200],
        )
        return False

    async def send_screening_complete_notification(
        self,
        owner: EmailRecipient,
        applicant_name: str,
        property_name: str,
        unit_name: str,
        report_path: str,
    ) -> bool:
        """Tell a property owner that an applicant's screening report is ready."""
        if not owner.email:
            return False

        template = build_screening_complete_email(
            owner.first_name,
            applicant_name,
            property_name,
            unit_name,
            settings.app_url(report_path),
        )
        return await self.send_email(owner, template)


email_service = EmailService()
