"""
CallMeBot WhatsApp Channel
Free WhatsApp messages to the admin's own number.

Setup: message "I allow callmebot to send me messages" to the CallMeBot
number from WhatsApp, then put the returned key in CALLMEBOT_API_KEY and
your number (country code, no +) in WHATSAPP_TO.
"""
import logging
from typing import List, Optional

import httpx

from covercredit.domain.models.notification import RenderedMessage
from covercredit.infrastructure.notifications.base import DeliveryResult, NotificationChannel
from covercredit.utils.time import utc_now

logger = logging.getLogger(__name__)


class CallMeBotWhatsAppChannel(NotificationChannel):
    """
    WhatsApp channel using CallMeBot's GET API.

    Uses:
    - CALLMEBOT_API_KEY
    - WHATSAPP_TO (the admin number the key was issued for)

    CallMeBot only delivers to the number that registered the key, so
    visitor confirmations are never sent over this channel.
    """

    API_URL = "https://api.callmebot.com/whatsapp.php"
    TIMEOUT_SECONDS = 15.0

    def __init__(
        self,
        api_key: str,
        phone: str,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self._api_key = api_key
        self._phone = self._normalize_number(phone or "")
        self._transport = transport

    @property
    def provider_name(self) -> str:
        return "callmebot"

    @property
    def channel_type(self) -> str:
        return "whatsapp"

    def is_configured(self) -> bool:
        return bool(self._api_key and self._phone)

    def default_recipients(self) -> List[str]:
        return [self._phone] if self._phone else []

    @staticmethod
    def _normalize_number(number: str) -> str:
        """Strip formatting characters; CallMeBot expects digits with an optional leading +"""
        return number.replace(" ", "").replace("-", "").replace("(", "").replace(")", "")

    async def send(self, recipients: List[str], message: RenderedMessage) -> DeliveryResult:
        if not self.is_configured():
            return DeliveryResult(
                success=False, channel=self.provider_name, skipped=True,
                error="WhatsApp not configured (WHATSAPP_TO or CALLMEBOT_API_KEY missing)"
            )

        # A CallMeBot key is bound to one phone, so only that number can be messaged
        phones = [self._normalize_number(r) for r in recipients if r] or [self._phone]
        failures = []

        async with httpx.AsyncClient(timeout=self.TIMEOUT_SECONDS, transport=self._transport) as client:
            for phone in phones:
                params = {"phone": phone, "text": message.text, "apikey": self._api_key}
                try:
                    response = await client.get(self.API_URL, params=params)
                except httpx.HTTPError as e:
                    logger.error(f"WhatsApp request failed: {e}")
                    failures.append(str(e))
                    continue

                if response.status_code != 200:
                    logger.warning(f"WhatsApp response: {response.status_code} {response.text[:200]}")
                    failures.append(f"HTTP {response.status_code}")

        if failures:
            return DeliveryResult(
                success=False, channel=self.provider_name, recipients=phones,
                error="; ".join(failures)
            )

        logger.info(f"WhatsApp '{message.template}' sent")
        return DeliveryResult(
            success=True, channel=self.provider_name, recipients=phones, sent_at=utc_now()
        )
