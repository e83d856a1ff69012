"""
Unit Tests for Notification Delivery
Channels are exercised against httpx.MockTransport; the service against stub channels.
"""
import asyncio
import logging
from datetime import datetime
from typing import List
from unittest.mock import MagicMock

import httpx
import pytest

from covercredit.core.config import Settings
from covercredit.domain.models.lead import BookingLead, ContactLead
from covercredit.domain.models.notification import ReminderKind, RenderedMessage
from covercredit.infrastructure.notifications import (
    BrevoEmailChannel,
    CallMeBotWhatsAppChannel,
    DeliveryResult,
    NotificationChannel,
)
from covercredit.services.notification_service import (
    DeliveryReport,
    NotificationService,
    build_channels,
    dispatch_detached,
    pending_detached_tasks,
)


CREATED = datetime(2026, 10, 19, 9, 0, 0)

MESSAGE = RenderedMessage(
    template="contact_alert",
    subject="New Lead: Asha",
    text="New contact lead",
    html="<p>New contact lead</p>",
)


def make_contact(**overrides) -> ContactLead:
    data = dict(id="c-1", first_name="Asha", phone="9876543210", created_at=CREATED, updated_at=CREATED)
    data.update(overrides)
    return ContactLead(**data)


def make_booking(**overrides) -> BookingLead:
    data = dict(
        id="b-1", name="Ravi Kumar", phone="9876543210", department="bike",
        reference="CC-2026-ABCD", created_at=CREATED, updated_at=CREATED,
    )
    data.update(overrides)
    return BookingLead(**data)


class StubChannel(NotificationChannel):
    """In-memory channel that records what it was asked to send."""

    def __init__(self, name="stub", channel_type="email", configured=True, succeed=True,
                 recipients=None, raises=None):
        self._name = name
        self._type = channel_type
        self._configured = configured
        self._succeed = succeed
        self._recipients = recipients if recipients is not None else ["admin@covercredit.in"]
        self._raises = raises
        self.sent: List[tuple] = []

    @property
    def provider_name(self) -> str:
        return self._name

    @property
    def channel_type(self) -> str:
        return self._type

    def is_configured(self) -> bool:
        return self._configured

    def default_recipients(self) -> List[str]:
        return list(self._recipients)

    async def send(self, recipients, message):
        if self._raises:
            raise self._raises
        if not self._configured:
            return DeliveryResult(success=False, channel=self._name, skipped=True, error="not configured")
        self.sent.append((recipients, message))
        if self._succeed:
            return DeliveryResult(success=True, channel=self._name, recipients=recipients)
        return DeliveryResult(success=False, channel=self._name, recipients=recipients, error="HTTP 500")


class TestBrevoEmailChannel:
    """Tests for the Brevo transactional email channel."""

    @pytest.mark.asyncio
    async def test_send_success(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["api_key"] = request.headers["api-key"]
            seen["body"] = request.read()
            return httpx.Response(201, json={"messageId": "<201@smtp-relay.brevo.com>"})

        channel = BrevoEmailChannel(
            api_key="xkeysib-test",
            sender_email="leads@covercredit.in",
            transport=httpx.MockTransport(handler),
        )
        result = await channel.send(["admin@covercredit.in"], MESSAGE)

        assert result.success is True
        assert result.message_id == "<201@smtp-relay.brevo.com>"
        assert result.recipients == ["admin@covercredit.in"]
        assert result.sent_at is not None
        assert seen["url"] == BrevoEmailChannel.API_URL
        assert seen["api_key"] == "xkeysib-test"
        assert b"admin@covercredit.in" in seen["body"]
        assert b"New Lead: Asha" in seen["body"]

    @pytest.mark.asyncio
    async def test_rejected_request(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(401, text="Key not found"))
        channel = BrevoEmailChannel(api_key="bad", sender_email="", transport=transport)

        result = await channel.send(["admin@covercredit.in"], MESSAGE)

        assert result.success is False
        assert result.skipped is False
        assert result.error.startswith("HTTP 401")

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        channel = BrevoEmailChannel(api_key="k", sender_email="", transport=httpx.MockTransport(handler))

        result = await channel.send(["admin@covercredit.in"], MESSAGE)

        assert result.success is False
        assert "connection refused" in result.error

    @pytest.mark.asyncio
    async def test_unconfigured_is_skipped(self):
        channel = BrevoEmailChannel(api_key="", sender_email="")

        result = await channel.send(["admin@covercredit.in"], MESSAGE)

        assert result.skipped is True
        assert result.success is False

    @pytest.mark.asyncio
    async def test_no_recipients_is_skipped(self):
        channel = BrevoEmailChannel(api_key="k", sender_email="")

        result = await channel.send(["", ""], MESSAGE)

        assert result.skipped is True

    def test_default_recipients(self):
        channel = BrevoEmailChannel(api_key="k", sender_email="", admin_recipients=["a@x.in", "b@x.in"])

        assert channel.default_recipients() == ["a@x.in", "b@x.in"]


class TestCallMeBotWhatsAppChannel:
    """Tests for the CallMeBot WhatsApp channel."""

    @pytest.mark.asyncio
    async def test_send_success(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, text="Message queued")

        channel = CallMeBotWhatsAppChannel(
            api_key="123456", phone="+91 98765-43210", transport=httpx.MockTransport(handler)
        )
        result = await channel.send(channel.default_recipients(), MESSAGE)

        assert result.success is True
        assert seen["params"] == {"phone": "+919876543210", "text": "New contact lead", "apikey": "123456"}

    def test_numbers_are_normalized(self):
        channel = CallMeBotWhatsAppChannel(api_key="123456", phone="(+91) 98765-43210")

        assert channel.default_recipients() == ["+919876543210"]

    @pytest.mark.asyncio
    async def test_non_200_is_failure(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(203, text="APIKey is invalid"))
        channel = CallMeBotWhatsAppChannel(api_key="bad", phone="919876543210", transport=transport)

        result = await channel.send([], MESSAGE)

        assert result.success is False
        assert result.error == "HTTP 203"

    @pytest.mark.asyncio
    async def test_unconfigured_is_skipped(self):
        channel = CallMeBotWhatsAppChannel(api_key="", phone="919876543210")

        result = await channel.send([], MESSAGE)

        assert result.skipped is True
        assert channel.is_configured() is False


class TestDeliveryReport:
    """A report succeeds when any attempted channel delivered, or none was attempted."""

    def test_any_success(self):
        report = DeliveryReport(template="t", lead_id="x", results=[
            DeliveryResult(success=False, channel="brevo", error="HTTP 500"),
            DeliveryResult(success=True, channel="callmebot"),
        ])
        assert report.success is True

    def test_all_failed(self):
        report = DeliveryReport(template="t", lead_id="x", results=[
            DeliveryResult(success=False, channel="brevo", error="HTTP 500"),
            DeliveryResult(success=False, channel="callmebot", skipped=True),
        ])
        assert report.success is False
        assert len(report.attempted) == 1

    def test_nothing_attempted(self):
        report = DeliveryReport(template="t", lead_id="x", results=[
            DeliveryResult(success=False, channel="brevo", skipped=True),
        ])
        assert report.success is True

    def test_render_error(self):
        report = DeliveryReport(template="t", lead_id="x", error="Render failed")
        assert report.success is False
        assert report.to_dict()["success"] is False


class TestNotificationService:
    """Tests for rendering and broadcasting lead notifications."""

    @pytest.mark.asyncio
    async def test_contact_alert_goes_to_every_channel(self):
        email = StubChannel("brevo", "email")
        whatsapp = StubChannel("callmebot", "whatsapp", recipients=["919876543210"])
        service = NotificationService([email, whatsapp])

        report = await service.notify_new_contact(make_contact(interest="Health Insurance"))

        assert report.success is True
        assert report.template == "contact_alert"
        assert email.sent[0][0] == ["admin@covercredit.in"]
        assert whatsapp.sent[0][0] == ["919876543210"]
        assert "Health Insurance" in email.sent[0][1].subject

    @pytest.mark.asyncio
    async def test_one_channel_failing_still_succeeds(self):
        service = NotificationService([
            StubChannel("brevo", succeed=False),
            StubChannel("callmebot", "whatsapp"),
        ])

        report = await service.notify_new_booking(make_booking())

        assert report.success is True

    @pytest.mark.asyncio
    async def test_channel_exception_is_contained(self):
        service = NotificationService([StubChannel("brevo", raises=RuntimeError("socket closed"))])

        report = await service.send_reminder(make_contact())

        assert report.success is False
        assert report.results[0].error == "socket closed"

    @pytest.mark.asyncio
    async def test_render_failure_is_reported(self):
        templates = MagicMock()
        templates.render_for_lead.side_effect = KeyError("missing")
        channel = StubChannel()
        service = NotificationService([channel], template_manager=templates)

        report = await service.notify_new_contact(make_contact())

        assert report.success is False
        assert report.error.startswith("Render failed")
        assert channel.sent == []

    @pytest.mark.asyncio
    async def test_user_confirmation_uses_email_only(self):
        email = StubChannel("brevo", "email")
        whatsapp = StubChannel("callmebot", "whatsapp")
        service = NotificationService([email, whatsapp])

        report = await service.send_user_confirmation(make_booking(email="ravi@example.com"))

        assert report.template == "booking_confirmation"
        assert email.sent[0][0] == ["ravi@example.com"]
        assert whatsapp.sent == []

    @pytest.mark.asyncio
    async def test_user_confirmation_without_email(self):
        email = StubChannel("brevo", "email")
        service = NotificationService([email])

        report = await service.send_user_confirmation(make_contact())

        assert report.results == []
        assert report.success is True
        assert email.sent == []

    @pytest.mark.asyncio
    async def test_notify_submission(self):
        email = StubChannel("brevo", "email")
        service = NotificationService([email])

        alert, confirmation = await service.notify_submission(make_contact(email="asha@example.com"))

        assert alert.template == "contact_alert"
        assert confirmation.template == "contact_confirmation"
        assert len(email.sent) == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind,template", [
        (ReminderKind.DUE, "reminder_due"),
        (ReminderKind.SCHEDULED, "reminder_scheduled"),
        ("scheduled", "reminder_scheduled"),
    ])
    async def test_reminder_templates(self, kind, template):
        channel = StubChannel()
        service = NotificationService([channel])

        report = await service.send_reminder(make_booking(), kind)

        assert report.template == template
        assert channel.sent[0][1].template == template

    def test_configured_channels(self):
        service = NotificationService([StubChannel("brevo"), StubChannel("callmebot", configured=False)])

        assert service.configured_channels() == ["brevo"]

    def test_build_channels_from_settings(self):
        settings = Settings(
            brevo_api_key="k", email_to="a@x.in, b@x.in", callmebot_api_key="", whatsapp_to=""
        )
        email, whatsapp = build_channels(settings)

        assert email.is_configured() is True
        assert email.default_recipients() == ["a@x.in", "b@x.in"]
        assert whatsapp.is_configured() is False


class TestDetachedDispatch:
    """Fire-and-forget notifications only log their outcome."""

    @pytest.mark.asyncio
    async def test_success_is_logged(self, caplog):
        async def deliver():
            return [DeliveryReport(template="contact_alert", lead_id="c-1")]

        with caplog.at_level(logging.INFO, logger="covercredit.services.notification_service"):
            task = dispatch_detached(deliver(), "contact alerts for c-1")
            assert task in pending_detached_tasks()
            await asyncio.gather(task)
            await asyncio.sleep(0)

        assert task not in pending_detached_tasks()
        assert "Detached notification done: contact alerts for c-1" in caplog.text

    @pytest.mark.asyncio
    async def test_exception_is_logged_not_raised(self, caplog):
        async def explode():
            raise RuntimeError("template blew up")

        with caplog.at_level(logging.ERROR, logger="covercredit.services.notification_service"):
            task = dispatch_detached(explode(), "booking alerts for b-1")
            await asyncio.gather(task, return_exceptions=True)
            await asyncio.sleep(0)

        assert "Detached notification failed: booking alerts for b-1" in caplog.text

    @pytest.mark.asyncio
    async def test_undelivered_is_logged(self, caplog):
        async def undelivered():
            return DeliveryReport(template="reminder_scheduled", lead_id="c-1", error="Render failed")

        with caplog.at_level(logging.WARNING, logger="covercredit.services.notification_service"):
            task = dispatch_detached(undelivered(), "reminder scheduled for contact c-1")
            await asyncio.gather(task)
            await asyncio.sleep(0)

        assert "Detached notification undelivered" in caplog.text
