"""Mail dispatch through the Resend HTTP API."""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from app.config import DEFAULT_EMAIL_FROM

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com"

# Provider messages that mean the account may only mail its own verified address.
SANDBOX_MARKERS = ("onboarding", "only send testing emails")


@dataclass
class DispatchResult:
    """
    Outcome of one send attempt.

    Attributes:
        ok: True if the provider accepted the message
        provider_id: Provider message id on success
        error: Provider message (or a fallback) on failure
        sandbox_restricted: True if the provider refused because of sandbox/allow-list limits
        status_code: Provider HTTP status, if a response was received
    """
    ok: bool
    provider_id: Optional[str] = None
    error: Optional[str] = None
    sandbox_restricted: bool = False
    status_code: Optional[int] = None


class Mailer:
    """
    Sends HTML email via Resend.

    Unconfigured (no API key) mailers must not be asked to send; callers check
    `is_configured` and report a simulated delivery instead.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        from_address: str = DEFAULT_EMAIL_FROM,
        base_url: str = RESEND_API_URL,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.from_address = from_address
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def send(self, to: str, subject: str, html: str) -> DispatchResult:
        """
        Send one message.

        Args:
            to: Recipient address
            subject: Subject line
            html: HTML body

        Returns:
            DispatchResult; transport and provider failures are reported, not raised
        """
        payload = {
            "from": self.from_address,
            "to": [to],
            "subject": subject,
            "html": html,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post("/emails", json=payload, headers=headers)
        except httpx.RequestError as e:
            logger.error("Notification error: %s", e)
            return DispatchResult(ok=False, error="Internal server error")

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if response.is_success:
            return DispatchResult(ok=True, provider_id=body.get("id"), status_code=response.status_code)

        message = str(body.get("message") or "Failed to send email")
        logger.error("Resend error: %s %s", response.status_code, message)
        restricted = any(marker in message.lower() for marker in SANDBOX_MARKERS)
        return DispatchResult(
            ok=False,
            error=message,
            sandbox_restricted=restricted,
            status_code=response.status_code,
        )
