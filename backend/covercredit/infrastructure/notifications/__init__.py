"""
Notification Channels Package
Outbound email and WhatsApp delivery.
"""
from .base import NotificationChannel, DeliveryResult
from .brevo_email import BrevoEmailChannel
from .callmebot_whatsapp import CallMeBotWhatsAppChannel

__all__ = [
    "NotificationChannel",
    "DeliveryResult",
    "BrevoEmailChannel",
    "CallMeBotWhatsAppChannel",
]
