"""
Notification Service
Renders lead notifications and delivers them over every configured channel.

Delivery is best-effort: nothing here raises into the request path or the
reminder worker. Failures come back as DeliveryResult/DeliveryReport values
and are logged.
"""
import asyncio
import functools
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Dict, List, Optional, Set

from covercredit.core.config import Settings, get_settings
from covercredit.domain.errors import GatewayFailure
from covercredit.domain.models.lead import BookingLead, ContactLead, Lead
from covercredit.domain.models.notification import ChannelType, ReminderKind, RenderedMessage
from covercredit.domain.services.notification_templates import (
    NotificationTemplateManager,
    get_notification_template_manager,
)
from covercredit.infrastructure.notifications import (
    BrevoEmailChannel,
    CallMeBotWhatsAppChannel,
    DeliveryResult,
    NotificationChannel,
)

logger = logging.getLogger(__name__)


@dataclass
class DeliveryReport:
    """Outcome of one notification across all channels."""
    template: str
    lead_id: str
    results: List[DeliveryResult] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def attempted(self) -> List[DeliveryResult]:
        return [r for r in self.results if not r.skipped]

    @property
    def success(self) -> bool:
        """At least one channel delivered, or no channel was configured to try."""
        if self.error:
            return False
        attempted = self.attempted
        return not attempted or any(r.success for r in attempted)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "template": self.template,
            "lead_id": self.lead_id,
            "success": self.success,
            "error": self.error,
            "results": [r.to_dict() for r in self.results],
        }


class NotificationService:
    """
    Notification gateway used by request handlers and the reminder worker.

    Integration Points:
    - Public submissions: admin alert + visitor confirmation (detached)
    - Admin set-reminder: "reminder scheduled" notice (detached)
    - ReminderWorker: "reminder due" notice (awaited per lead)
    """

    def __init__(
        self,
        channels: List[NotificationChannel],
        template_manager: Optional[NotificationTemplateManager] = None
    ):
        self.channels = channels
        self.template_manager = template_manager or get_notification_template_manager()

    def configured_channels(self) -> List[str]:
        return [c.provider_name for c in self.channels if c.is_configured()]

    async def notify(
        self,
        channel: NotificationChannel,
        recipients: List[str],
        message: RenderedMessage
    ) -> DeliveryResult:
        """Send through one channel. Never raises."""
        try:
            return await channel.send(recipients, message)
        except Exception as e:
            logger.error(
                f"{channel.provider_name} raised while sending '{message.template}': {e}",
                exc_info=True
            )
            return DeliveryResult(success=False, channel=channel.provider_name, error=str(e))

    async def _broadcast(
        self,
        template_name: str,
        lead: Lead,
        channel_types: Optional[List[str]] = None,
        recipients: Optional[List[str]] = None
    ) -> DeliveryReport:
        report = DeliveryReport(template=template_name, lead_id=lead.id)
        try:
            message = self.template_manager.render_for_lead(template_name, lead)
        except Exception as e:
            logger.error(f"Failed to render '{template_name}' for lead {lead.id}: {e}", exc_info=True)
            report.error = f"Render failed: {e}"
            return report

        for channel in self.channels:
            if channel_types and channel.channel_type not in channel_types:
                continue
            targets = recipients if recipients is not None else channel.default_recipients()
            report.results.append(await self.notify(channel, targets, message))

        if not report.success:
            failure = GatewayFailure(
                f"'{template_name}' for lead {lead.id} failed on every channel: "
                + "; ".join(r.error or "unknown error" for r in report.attempted)
            )
            logger.warning(failure.message)
        return report

    async def notify_new_contact(self, lead: ContactLead) -> DeliveryReport:
        return await self._broadcast("contact_alert", lead)

    async def notify_new_booking(self, lead: BookingLead) -> DeliveryReport:
        return await self._broadcast("booking_alert", lead)

    async def send_user_confirmation(self, lead: Lead) -> DeliveryReport:
        """Email the visitor, if they left an address."""
        template_name = "booking_confirmation" if isinstance(lead, BookingLead) else "contact_confirmation"
        if not lead.email:
            return DeliveryReport(template=template_name, lead_id=lead.id)
        return await self._broadcast(
            template_name, lead,
            channel_types=[ChannelType.EMAIL.value],
            recipients=[lead.email],
        )

    async def notify_submission(self, lead: Lead) -> List[DeliveryReport]:
        """Admin alert and visitor confirmation for a fresh public submission"""
        if isinstance(lead, BookingLead):
            alert = await self.notify_new_booking(lead)
        else:
            alert = await self.notify_new_contact(lead)
        confirmation = await self.send_user_confirmation(lead)
        return [alert, confirmation]

    async def send_reminder(self, lead: Lead, kind: ReminderKind = ReminderKind.DUE) -> DeliveryReport:
        """Reminder notice to the admin recipients of every channel."""
        kind = ReminderKind(kind)
        return await self._broadcast(f"reminder_{kind.value}", lead)


# =============================================================================
# Detached dispatch
# =============================================================================

# Strong references so pending notification tasks are not garbage collected
_background_tasks: Set[asyncio.Task] = set()


def _on_detached_done(description: str, task: asyncio.Task) -> None:
    _background_tasks.discard(task)

    if task.cancelled():
        logger.warning(f"Detached notification cancelled: {description}")
        return

    exc = task.exception()
    if exc is not None:
        logger.error(f"Detached notification failed: {description}: {exc}", exc_info=exc)
        return

    result = task.result()
    reports = result if isinstance(result, list) else [result]
    failed = [r for r in reports if isinstance(r, DeliveryReport) and not r.success]
    if failed:
        logger.warning(f"Detached notification undelivered: {description} ({len(failed)} failed)")
    else:
        logger.info(f"Detached notification done: {description}")


def dispatch_detached(coro: Awaitable, description: str) -> asyncio.Task:
    """
    Start a fire-and-forget notification.

    The caller never awaits the task, so cancelling the caller does not
    cancel the notification. The outcome is only logged.
    """
    task = asyncio.ensure_future(coro)
    _background_tasks.add(task)
    task.add_done_callback(functools.partial(_on_detached_done, description))
    return task


def pending_detached_tasks() -> Set[asyncio.Task]:
    return set(_background_tasks)


# =============================================================================
# Factory
# =============================================================================

def build_channels(settings: Settings) -> List[NotificationChannel]:
    return [
        BrevoEmailChannel(
            api_key=settings.brevo_api_key,
            sender_email=settings.email_from,
            sender_name=settings.email_from_name,
            admin_recipients=settings.admin_emails,
        ),
        CallMeBotWhatsAppChannel(
            api_key=settings.callmebot_api_key,
            phone=settings.whatsapp_to,
        ),
    ]


_notification_service: Optional[NotificationService] = None


def get_notification_service() -> NotificationService:
    """Get or create NotificationService singleton."""
    global _notification_service
    if _notification_service is None:
        _notification_service = NotificationService(build_channels(get_settings()))
        logger.info(
            f"NotificationService ready (channels: {_notification_service.configured_channels() or 'none'})"
        )
    return _notification_service
