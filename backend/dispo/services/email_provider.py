"""
Email providers — the dispatch boundary of the notification service.

Every provider implements ``send_email(EmailMessage) -> SendResult`` and
raises EmailDeliveryError when a message could not be handed over.

- MockEmailProvider keeps sent mails in memory (development, tests)
- BrevoEmailProvider posts to the Brevo transactional email API via httpx
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Protocol

import httpx

from dispo.config import Settings
from dispo.schemas.notifications import EmailMessage, SendResult, SentEmail

logger = logging.getLogger(__name__)


class NotificationError(Exception):
    """Base class for notification subsystem failures."""


class EmailDeliveryError(NotificationError):
    """The email provider did not accept a message."""


class EmailProvider(Protocol):
    async def send_email(self, email: EmailMessage) -> SendResult: ...

    async def aclose(self) -> None: ...


class MockEmailProvider:
    """Records mails instead of sending them."""

    def __init__(self):
        self.sent_emails: list[SentEmail] = []

    async def send_email(self, email: EmailMessage) -> SendResult:
        logger.info("[MockEmail] Sending to %s: %s", email.to, email.subject)
        self.sent_emails.append(
            SentEmail(**email.model_dump(), sent_at=datetime.now(timezone.utc))
        )
        return SendResult(success=True, message_id=f"mock_{int(time.time() * 1000)}")

    def get_sent_emails(self) -> list[SentEmail]:
        return self.sent_emails

    def clear(self) -> None:
        self.sent_emails = []

    async def aclose(self) -> None:
        return None


class BrevoEmailProvider:
    """Brevo (ex Sendinblue) SMTP API client."""

    def __init__(
        self,
        api_key: str,
        *,
        api_url: str = "https://api.brevo.com/v3/smtp/email",
        sender_address: str,
        sender_name: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.api_url = api_url
        self.sender = {"email": sender_address, "name": sender_name}
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            headers={
                "api-key": api_key,
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
        )

    async def send_email(self, email: EmailMessage) -> SendResult:
        payload = {
            "sender": self.sender,
            "to": [{"email": email.to}],
            "subject": email.subject,
            "htmlContent": email.html,
            "textContent": email.text,
        }
        try:
            resp = await self._client.post(self.api_url, json=payload)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise EmailDeliveryError(
                f"Email API returned {e.response.status_code}: {e.response.text}"
            ) from e
        except httpx.HTTPError as e:
            raise EmailDeliveryError(f"Email API request failed: {e}") from e

        message_id = resp.json().get("messageId")
        logger.info("Email sent to %s (messageId=%s)", email.to, message_id)
        return SendResult(success=True, message_id=message_id)

    async def aclose(self) -> None:
        await self._client.aclose()


def build_email_provider(settings: Settings) -> EmailProvider:
    """Instantiate the provider selected by EMAIL_PROVIDER."""
    if settings.email_provider == "mock":
        return MockEmailProvider()
    if settings.email_provider == "brevo":
        return BrevoEmailProvider(
            settings.brevo_api_key,
            api_url=settings.brevo_api_url,
            sender_address=settings.email_sender_address,
            sender_name=settings.email_sender_name,
            timeout=settings.email_send_timeout_seconds,
        )
    raise ValueError(f"Unknown email provider: {settings.email_provider!r}")
