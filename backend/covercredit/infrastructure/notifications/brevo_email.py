"""
Brevo Email Channel
Transactional email through the Brevo (Sendinblue) HTTP API.
"""
import logging
from typing import List, Optional

import httpx

from covercredit.domain.models.notification import RenderedMessage
from covercredit.infrastructure.notifications.base import DeliveryResult, NotificationChannel
from covercredit.utils.time import utc_now

logger = logging.getLogger(__name__)


class BrevoEmailChannel(NotificationChannel):
    """
    Email channel using Brevo's /v3/smtp/email endpoint.

    Uses:
    - BREVO_API_KEY
    - EMAIL_FROM / EMAIL_FROM_NAME (sender)
    - EMAIL_TO (comma separated admin recipients for alerts and reminders)
    """

    API_URL = "https://api.brevo.com/v3/smtp/email"
    TIMEOUT_SECONDS = 10.0

    def __init__(
        self,
        api_key: str,
        sender_email: str,
        sender_name: str = "Cover Credit",
        admin_recipients: Optional[List[str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self._api_key = api_key
        self._sender_email = sender_email or "leads@covercredit.in"
        self._sender_name = sender_name
        self._admin_recipients = admin_recipients or []
        self._transport = transport

    @property
    def provider_name(self) -> str:
        return "brevo"

    @property
    def channel_type(self) -> str:
        return "email"

    def is_configured(self) -> bool:
        return bool(self._api_key)

    def default_recipients(self) -> List[str]:
        return list(self._admin_recipients)

    async def send(self, recipients: List[str], message: RenderedMessage) -> DeliveryResult:
        recipients = [r for r in recipients if r]
        if not self.is_configured():
            return DeliveryResult(
                success=False, channel=self.provider_name, recipients=recipients,
                skipped=True, error="BREVO_API_KEY not configured"
            )
        if not recipients:
            return DeliveryResult(
                success=False, channel=self.provider_name,
                skipped=True, error="No email recipients"
            )

        payload = {
            "sender": {"name": self._sender_name, "email": self._sender_email},
            "to": [{"email": r} for r in recipients],
            "subject": message.subject,
            "htmlContent": message.html or f"<pre>{message.text}</pre>",
            "textContent": message.text,
        }
        headers = {
            "api-key": self._api_key,
            "accept": "application/json",
            "content-type": "application/json",
        }

        try:
            async with httpx.AsyncClient(timeout=self.TIMEOUT_SECONDS, transport=self._transport) as client:
                response = await client.post(self.API_URL, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Brevo request failed for '{message.template}': {e}")
            return DeliveryResult(
                success=False, channel=self.provider_name, recipients=recipients, error=str(e)
            )

        if response.status_code >= 300:
            logger.error(f"Brevo rejected '{message.template}': {response.status_code} {response.text}")
            return DeliveryResult(
                success=False, channel=self.provider_name, recipients=recipients,
                error=f"HTTP {response.status_code}: {response.text[:200]}"
            )

        is_json = response.headers.get("content-type", "").startswith("application/json")
        message_id = response.json().get("messageId") if is_json else None

        logger.info(f"Email '{message.template}' sent to {len(recipients)} recipient(s)")
        return DeliveryResult(
            success=True, channel=self.provider_name, recipients=recipients,
            message_id=message_id, sent_at=utc_now()
        )
