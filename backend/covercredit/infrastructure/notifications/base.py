"""
Notification Channel Base Classes
Abstract base class for outbound notification channels.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from covercredit.domain.models.notification import RenderedMessage


@dataclass
class DeliveryResult:
    """Result of a single channel send."""
    success: bool
    channel: str = ""
    recipients: List[str] = field(default_factory=list)
    message_id: Optional[str] = None
    error: Optional[str] = None
    skipped: bool = False
    sent_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "success": self.success,
            "channel": self.channel,
            "recipients": self.recipients,
            "message_id": self.message_id,
            "error": self.error,
            "skipped": self.skipped,
            "sent_at": self.sent_at.isoformat() if self.sent_at else None,
        }


class NotificationChannel(ABC):
    """
    Abstract base class for notification channels.

    All channels must implement:
    - send(): Deliver one rendered message to one or more recipients
    - is_configured(): Check if the channel has credentials
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Channel identifier (e.g., 'brevo', 'callmebot')."""
        pass

    @property
    @abstractmethod
    def channel_type(self) -> str:
        """'email' or 'whatsapp'"""
        pass

    @abstractmethod
    def is_configured(self) -> bool:
        pass

    @abstractmethod
    async def send(self, recipients: List[str], message: RenderedMessage) -> DeliveryResult:
        """
        Deliver a message.

        Implementations return a failed DeliveryResult instead of raising.
        """
        pass

    def default_recipients(self) -> List[str]:
        """Admin recipients used for internal alerts and reminders"""
        return []
