"""
Western Verify (DigitalDelve) SSO client.

The SSO listener takes an XML document over HTTP POST and answers with an XML
document, or with a redirect to the report viewer once a report exists.
Only the report lookup used by the poller is implemented here.
"""

import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from xml.sax.saxutils import escape

import httpx

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.models.domain.screening_domain import ScreeningCredentials

logger = get_logger(__name__)

VIEW_REPORT_BY_REF_FUNCTION = "ViewReportByClientRef"
REDIRECT_STATUS_CODES = {301, 302, 303, 307}

_REDIRECT_URL_PATTERN = re.compile(r"<RedirectURL>\s*([^<]*?)\s*</RedirectURL>", re.IGNORECASE)


class ScreeningProviderError(Exception):
    """Raised when the provider cannot be reached or answers unusably."""

    def __init__(self, message: str, status_code: int | None = None, recoverable: bool = True):
        super().__init__(message)
        self.status_code = status_code
        self.recoverable = recoverable


@dataclass(slots=True)
class ReportLookupResponse:
    success: bool
    status_code: int
    redirect_url: str | None = None
    error: str | None = None


def build_view_report_request(reference_number: str, credentials: ScreeningCredentials) -> str:
    """Build the SSO XML document for a report lookup by our reference number."""
    return (
        '<?xml version="1.0"?>\n'
        "<SSO>\n"
        "  <Authentication>\n"
        f"    <UserName>{escape(credentials.username)}</UserName>\n"
        f"    <Password>{escape(credentials.password)}</Password>\n"
        "  </Authentication>\n"
        f"  <Function>{VIEW_REPORT_BY_REF_FUNCTION}</Function>\n"
        f"  <ReportId>{escape(reference_number)}</ReportId>\n"
        "</SSO>"
    )


def _find_text(root: ET.Element, *tags: str) -> str | None:
    wanted = {tag.lower() for tag in tags}
    for element in root.iter():
        if element.tag.lower() in wanted and element.text and element.text.strip():
            return element.text.strip()
    return None


def parse_report_lookup(status_code: int, body: str, location: str | None = None) -> ReportLookupResponse:
    """
    Interpret a report lookup response.

    Success requires an explicit report location: a RedirectURL element in the
    body, or a Location header on a redirect. A body that reports an error
    status is never a success even when it carries a URL.
    """
    if status_code in REDIRECT_STATUS_CODES and location:
        return ReportLookupResponse(success=True, status_code=status_code, redirect_url=location)

    if status_code != 200:
        return ReportLookupResponse(
            success=False, status_code=status_code, error=f"Unexpected HTTP status {status_code}"
        )

    if not body or not body.strip():
        return ReportLookupResponse(success=False, status_code=status_code, error="Empty response body")

    error_text = None
    status_text = None
    try:
        root = ET.fromstring(body.strip())
        status_text = _find_text(root, "Status")
        error_text = _find_text(root, "Error", "ErrorMessage")
        redirect_url = _find_text(root, "RedirectURL")
    except ET.ParseError:
        # Some listener errors come back as loose HTML; fall back to a plain scan
        match = _REDIRECT_URL_PATTERN.search(body)
        redirect_url = match.group(1) if match and match.group(1) else None

    if error_text or (status_text and status_text.lower() not in ("success", "complete")):
        return ReportLookupResponse(
            success=False,
            status_code=status_code,
            error=error_text or f"Provider status: {status_text}",
        )

    if not redirect_url:
        return ReportLookupResponse(success=False, status_code=status_code, error="Report not ready")

    return ReportLookupResponse(success=True, status_code=status_code, redirect_url=redirect_url)


class ScreeningProviderClient:
    """Async HTTP client for the SSO listener."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url or settings.SCREENING_PROVIDER_URL
        self.timeout = timeout if timeout is not None else settings.SCREENING_PROVIDER_TIMEOUT_SECONDS
        self._transport = transport

    async def view_report_by_reference(
        self, reference_number: str, credentials: ScreeningCredentials
    ) -> ReportLookupResponse:
        """
        Ask the provider for the report viewer URL of one order.

        Raises:
            ScreeningProviderError: On transport failures and timeouts
        """
        payload = build_view_report_request(reference_number, credentials)

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=False,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    self.base_url,
                    content=payload.encode("utf-8"),
                    headers={"Content-Type": "application/xml"},
                )
        except httpx.TimeoutException as e:
            raise ScreeningProviderError(
                f"Screening provider timed out after {self.timeout}s"
            ) from e
        except httpx.RequestError as e:
            raise ScreeningProviderError(f"Screening provider request failed: {e}") from e

        result = parse_report_lookup(
            response.status_code, response.text, response.headers.get("location")
        )

        logger.debug(
            "Screening provider report lookup",
            reference_number=reference_number,
            status_code=response.status_code,
            success=result.success,
            error=result.error,
        )

        return result


screening_provider_client = ScreeningProviderClient()
