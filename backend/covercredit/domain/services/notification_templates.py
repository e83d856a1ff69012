"""
Notification Template Manager
Jinja2 templates for lead alerts, user confirmations and reminders.

Each template renders a subject, a plain-text body (WhatsApp, email text
part) and an HTML body (email). Times are shown in the catalog's display
timezone (IST).
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import pytz
from jinja2 import BaseLoader, Environment
from pydantic import BaseModel, Field

from covercredit.core.config import ConfigManager, get_config_manager
from covercredit.domain.models.lead import BookingLead, Lead
from covercredit.domain.models.notification import RenderedMessage
from covercredit.utils.time import utc_now

logger = logging.getLogger(__name__)


class NotificationTemplate(BaseModel):
    """Single notification template definition."""
    name: str = Field(..., description="Template identifier")
    subject_template: str = Field(..., description="Jinja2 subject template")
    text_template: str = Field(..., description="Jinja2 plain text template")
    html_template: Optional[str] = Field(None, description="Jinja2 HTML template")
    description: str = Field("", description="When the template is sent")

    class Config:
        extra = "allow"


_HTML_HEADER = """<div style="font-family:Arial,sans-serif;max-width:560px;margin:0 auto;">
<div style="background:#1a3c5e;padding:20px 24px;border-radius:12px 12px 0 0;">
<p style="margin:0;font-size:20px;font-weight:700;color:#fff;">Cover<span style="color:#f5a623;">Credit</span></p>
<p style="margin:4px 0 0;font-size:12px;color:#c9d3de;">{{ business_tagline }}</p>
</div>
<div style="background:#fff;padding:24px;border:1px solid #e5e0d8;border-top:3px solid #e8622a;border-radius:0 0 12px 12px;">
"""

_HTML_FOOTER = """<p style="color:#999;font-size:12px;margin:20px 0 0;">{{ generated_at }}</p>
</div>
</div>"""

_HTML_ROWS = """<table style="border-collapse:collapse;width:100%;font-size:14px;">
{% for label, value in rows %}<tr><td style="padding:6px 0;color:#777;width:40%;">{{ label }}</td><td style="padding:6px 0;color:#1a3c5e;font-weight:600;">{{ value }}</td></tr>
{% endfor %}</table>
"""


class NotificationTemplateManager:
    """
    Manages notification templates and rendering.

    Text templates render without escaping; HTML templates autoescape
    every value since names, notes and messages come from public forms.
    """

    def __init__(self, catalog: Optional[ConfigManager] = None):
        self.catalog = catalog or get_config_manager()
        self.templates: Dict[str, NotificationTemplate] = {}
        self.text_env = Environment(loader=BaseLoader())
        self.html_env = Environment(loader=BaseLoader(), autoescape=True)
        self._load_default_templates()

    def _load_default_templates(self):
        self.templates["contact_alert"] = NotificationTemplate(
            name="contact_alert",
            description="Internal alert for a new contact-form lead",
            subject_template="📩 New Lead: {{ name }} - {{ interest }}",
            text_template="""🔔 *New Contact Lead - {{ business_name }}*
👤 *Name:* {{ name }}
📞 *Phone:* {{ phone }}
✉️ *Email:* {{ email or 'Not provided' }}
📋 *Interest:* {{ interest }}
💬 *Message:* {{ message or 'None' }}
🕐 {{ generated_at }}""",
            html_template=_HTML_HEADER + """<p style="font-size:17px;color:#1a3c5e;margin:0 0 12px;">New contact lead</p>
""" + _HTML_ROWS + """{% if message %}<p style="color:#555;line-height:1.6;"><strong>Message:</strong> {{ message }}</p>{% endif %}
""" + _HTML_FOOTER,
        )

        self.templates["booking_alert"] = NotificationTemplate(
            name="booking_alert",
            description="Internal alert for a new consultation booking",
            subject_template="📅 New Booking: {{ name }} - {{ dept_icon }} {{ dept_label }}{% if city %} - {{ city }}{% endif %}",
            text_template="""📅 *New Booking - {{ business_name }}*
🔖 *Ref:* {{ reference }}
👤 *Name:* {{ name }}
📞 *Phone:* {{ phone }}
✉️ *Email:* {{ email or 'Not provided' }}
{{ dept_icon }} *Department:* {{ dept_label }}
📍 *City:* {{ city or 'Not provided' }}
🗣️ *Language:* {{ preferred_language }}
🕐 *Time Slot:* {{ time_slot }}
📲 *Contact via:* {{ contact_method }}
{% for label, value in detail_rows %}• {{ label }}: {{ value }}
{% endfor %}📝 *Notes:* {{ notes or 'None' }}
⏰ {{ generated_at }}""",
            html_template=_HTML_HEADER + """<p style="font-size:17px;color:#1a3c5e;margin:0 0 12px;">{{ dept_icon }} New {{ dept_label }} booking <span style="color:#e8622a;">{{ reference }}</span></p>
""" + _HTML_ROWS + """{% if detail_rows %}<p style="margin:16px 0 6px;color:#c94f00;font-weight:700;">Details</p>
<table style="border-collapse:collapse;width:100%;font-size:14px;">
{% for label, value in detail_rows %}<tr><td style="padding:6px 0;color:#777;width:40%;">{{ label }}</td><td style="padding:6px 0;color:#1a3c5e;">{{ value }}</td></tr>
{% endfor %}</table>{% endif %}
{% if notes %}<p style="color:#555;line-height:1.6;"><strong>Notes:</strong> {{ notes }}</p>{% endif %}
""" + _HTML_FOOTER,
        )

        self.templates["contact_confirmation"] = NotificationTemplate(
            name="contact_confirmation",
            description="Sent to the visitor after a contact-form submission",
            subject_template="We received your message - {{ business_name }}",
            text_template="""Hi {{ first_name }},

We have received your message and will get back to you within 24 hours.
For immediate help call {{ support_phone }}.

- The {{ business_name }} Team""",
            html_template=_HTML_HEADER + """<p style="font-size:16px;color:#1a3c5e;">Hi {{ first_name }},</p>
<p style="color:#555;line-height:1.7;">We have received your message and will get back to you within 24 hours.</p>
<p style="color:#555;">For immediate help call <strong style="color:#e8622a;">{{ support_phone }}</strong></p>
<p style="color:#555;">- The {{ business_name }} Team</p>
""" + _HTML_FOOTER,
        )

        self.templates["booking_confirmation"] = NotificationTemplate(
            name="booking_confirmation",
            description="Sent to the visitor after booking a consultation",
            subject_template="Your consultation is booked - {{ business_name }}",
            text_template="""Hi {{ name }}, you're all set!

We've received your consultation request for {{ dept_icon }} {{ dept_label }} (ref {{ reference }}).
Our specialist will call you at your preferred time, usually within 2 business hours.

Need to reach us sooner? Call or WhatsApp {{ support_phone }}.

- The {{ business_name }} Team""",
            html_template=_HTML_HEADER + """<p style="font-size:17px;color:#1a3c5e;margin:0 0 8px;">Hi {{ name }}, you're all set! ✅</p>
<p style="color:#555;line-height:1.7;">We've received your consultation request for <strong>{{ dept_icon }} {{ dept_label }}</strong>.
Our specialist will call you at your preferred time, usually within 2 business hours.</p>
<p style="color:#555;font-size:13px;">Your reference: <strong>{{ reference }}</strong></p>
<p style="color:#555;font-size:13px;">Need to reach us sooner? Call or WhatsApp <strong style="color:#e8622a;">{{ support_phone }}</strong></p>
<p style="color:#999;font-size:12px;">- The {{ business_name }} Team</p>
""" + _HTML_FOOTER,
        )

        self.templates["reminder_scheduled"] = NotificationTemplate(
            name="reminder_scheduled",
            description="Confirms to the admins that a follow-up reminder was set",
            subject_template="⏰ Reminder set: {{ name }} at {{ reminder_time }}",
            text_template="""⏰ *Reminder set*
👤 {{ name }} ({{ lead_label }})
📞 {{ phone }}
🕐 {{ reminder_time }}
{% if reminder_note %}📝 {{ reminder_note }}
{% endif %}""",
            html_template=_HTML_HEADER + """<p style="font-size:17px;color:#1a3c5e;margin:0 0 12px;">⏰ Follow-up reminder set for {{ reminder_time }}</p>
""" + _HTML_ROWS + """{% if reminder_note %}<p style="color:#555;line-height:1.6;"><strong>Note:</strong> {{ reminder_note }}</p>{% endif %}
""" + _HTML_FOOTER,
        )

        self.templates["reminder_due"] = NotificationTemplate(
            name="reminder_due",
            description="Fired by the reminder worker when a follow-up is due",
            subject_template="🔔 Call now: {{ name }} ({{ phone }})",
            text_template="""🔔 *Follow-up due now*
👤 {{ name }} ({{ lead_label }})
📞 {{ phone }}
🕐 Scheduled for {{ reminder_time }}
{% if reminder_note %}📝 {{ reminder_note }}
{% endif %}{% if last_note %}🗒️ Last call note: {{ last_note }}
{% endif %}""",
            html_template=_HTML_HEADER + """<p style="font-size:17px;color:#1a3c5e;margin:0 0 12px;">🔔 Time to call <strong>{{ name }}</strong></p>
""" + _HTML_ROWS + """{% if reminder_note %}<p style="color:#555;line-height:1.6;"><strong>Reminder note:</strong> {{ reminder_note }}</p>{% endif %}
{% if last_note %}<p style="color:#555;line-height:1.6;"><strong>Last call note:</strong> {{ last_note }}</p>{% endif %}
""" + _HTML_FOOTER,
        )

        logger.info(f"Loaded {len(self.templates)} notification templates")

    # =========================================================================
    # Formatting helpers
    # =========================================================================

    def format_time(self, value: Optional[datetime]) -> str:
        """Naive UTC -> display timezone string, e.g. '19 Oct 2026, 03:30 PM IST'"""
        if value is None:
            return ""
        tz = pytz.timezone(self.catalog.get("display.timezone", "Asia/Kolkata"))
        fmt = self.catalog.get("display.datetime_format", "%d %b %Y, %I:%M %p")
        if value.tzinfo is None:
            value = pytz.utc.localize(value)
        return value.astimezone(tz).strftime(fmt)

    def lead_context(self, lead: Lead, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Template variables for a lead of either variant"""
        context: Dict[str, Any] = {
            "business_name": self.catalog.get("business.name", "Cover Credit"),
            "business_tagline": self.catalog.get("business.tagline", ""),
            "support_phone": self.catalog.get("business.support_phone", ""),
            "generated_at": self.format_time(now or utc_now()),
            "lead_id": lead.id,
            "name": lead.display_name,
            "phone": lead.phone,
            "email": lead.email,
            "status": lead.status,
            "created_at": self.format_time(lead.created_at),
            "last_note": lead.admin_notes[-1].text if lead.admin_notes else "",
            "reminder_time": "",
            "reminder_note": "",
        }

        if lead.reminder is not None:
            context["reminder_time"] = self.format_time(lead.reminder.scheduled_at)
            context["reminder_note"] = lead.reminder.note

        rows: List[tuple] = [("Name", lead.display_name), ("Phone", lead.phone)]
        if lead.email:
            rows.append(("Email", lead.email))

        if isinstance(lead, BookingLead):
            dept = self.catalog.department_meta(lead.department)
            method = self.catalog.get(f"contact_methods.{lead.contact_method}", lead.contact_method)
            context.update({
                "lead_label": f"{dept['label']} booking {lead.reference}",
                "reference": lead.reference,
                "dept_label": dept["label"],
                "dept_icon": dept["icon"],
                "city": lead.city,
                "time_slot": lead.time_slot,
                "preferred_language": lead.preferred_language,
                "contact_method": method,
                "notes": lead.notes,
                "detail_rows": [
                    (self.catalog.detail_label(key), value)
                    for key, value in lead.details.items()
                ],
            })
            rows.extend([
                ("Department", f"{dept['icon']} {dept['label']}"),
                ("City", lead.city or "Not provided"),
                ("Time Slot", lead.time_slot),
                ("Language", lead.preferred_language),
                ("Contact via", method),
            ])
        else:
            context.update({
                "lead_label": f"{lead.interest} enquiry",
                "first_name": lead.first_name,
                "interest": lead.interest,
                "message": lead.message,
            })
            rows.append(("Interest", lead.interest))

        context["rows"] = rows
        return context

    # =========================================================================
    # Rendering
    # =========================================================================

    def render(self, template_name: str, **context) -> RenderedMessage:
        """
        Render a template with provided context.

        Raises:
            KeyError: If template not found
        """
        if template_name not in self.templates:
            available = ", ".join(self.templates.keys())
            raise KeyError(f"Template '{template_name}' not found. Available: {available}")

        template = self.templates[template_name]
        subject = self.text_env.from_string(template.subject_template).render(**context)
        text = self.text_env.from_string(template.text_template).render(**context)

        html = ""
        if template.html_template:
            html = self.html_env.from_string(template.html_template).render(**context)

        logger.debug(f"Rendered notification template '{template_name}'")
        return RenderedMessage(
            template=template_name,
            subject=subject.strip(),
            text=text.strip(),
            html=html,
        )

    def render_for_lead(self, template_name: str, lead: Lead, now: Optional[datetime] = None) -> RenderedMessage:
        return self.render(template_name, **self.lead_context(lead, now))

    def list_templates(self) -> List[str]:
        return list(self.templates.keys())


# Singleton instance
_template_manager: Optional[NotificationTemplateManager] = None


def get_notification_template_manager() -> NotificationTemplateManager:
    """Get or create NotificationTemplateManager singleton."""
    global _template_manager
    if _template_manager is None:
        _template_manager = NotificationTemplateManager()
    return _template_manager
