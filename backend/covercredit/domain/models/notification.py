"""
Notification Models
A message rendered once and delivered over any channel.
"""
from dataclasses import dataclass
from enum import Enum


class ChannelType(str, Enum):
    EMAIL = "email"
    WHATSAPP = "whatsapp"


class ReminderKind(str, Enum):
    """Which reminder notification is being sent"""
    SCHEDULED = "scheduled"
    DUE = "due"


@dataclass(frozen=True)
class RenderedMessage:
    """
    Output of a notification template.

    Email channels send `html` (with `text` as the plain alternative);
    WhatsApp sends `text` only.
    """
    template: str
    subject: str
    text: str
    html: str = ""
