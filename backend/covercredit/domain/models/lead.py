"""
Lead Domain Models
Contact and Booking leads, their call-note log and the single follow-up reminder.
"""
import re
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel


PHONE_PATTERN = re.compile(r"^[+\d][\d\s\-]{7,15}$", re.ASCII)
EMAIL_PATTERN = re.compile(r"^\S+@\S+\.\S+$")

NAME_MAX_LENGTH = 50
BOOKING_NAME_MAX_LENGTH = 100
FREE_TEXT_MAX_LENGTH = 1000
CALL_NOTE_MAX_LENGTH = 2000
REMINDER_NOTE_MAX_LENGTH = 500
DETAILS_MAX_KEYS = 30
DETAIL_VALUE_MAX_LENGTH = 200


class ContactStatus(str, Enum):
    """Lifecycle of a contact-form lead"""
    NEW = "new"
    CONTACTED = "contacted"
    CONVERTED = "converted"
    CLOSED = "closed"


class BookingStatus(str, Enum):
    """Lifecycle of a consultation booking"""
    NEW = "new"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"


class ContactInterest(str, Enum):
    """Product a contact-form visitor is interested in"""
    HEALTH = "Health Insurance"
    LIFE = "Life Insurance"
    BIKE = "Bike Insurance"
    CAR = "Car Insurance"
    COMMERCIAL = "Commercial Vehicle Insurance"
    LOANS = "Loans"
    CLAIM_SUPPORT = "Claim Support"
    OTHER = "Other"


class Department(str, Enum):
    """Department a booking is routed to"""
    LOAN = "loan"
    HEALTH = "health"
    LIFE = "life"
    BIKE = "bike"
    CAR = "car"
    COMMERCIAL = "commercial"


class ContactMethod(str, Enum):
    CALL = "call"
    WHATSAPP = "whatsapp"
    EMAIL = "email"


class PreferredLanguage(str, Enum):
    TELUGU = "Telugu"
    ENGLISH = "English"
    MIXED = "Telugu + English (mix)"


# =============================================================================
# Field checks shared by submission models and admin mutations
# =============================================================================

def clean_text(value: Any, label: str) -> str:
    """Coerce None to "" and strip; reject non-text values."""
    if value is None:
        return ""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str):
        raise ValueError(f"{label} must be text")
    return value.strip()


def required_text(value: Any, label: str, max_length: int) -> str:
    text = clean_text(value, label)
    if not text:
        raise ValueError(f"{label} is required")
    if len(text) > max_length:
        raise ValueError(f"{label} too long (max {max_length} chars)")
    return text


def optional_text(value: Any, label: str, max_length: int) -> str:
    text = clean_text(value, label)
    if len(text) > max_length:
        raise ValueError(f"{label} too long (max {max_length} chars)")
    return text


def check_phone(value: Any) -> str:
    phone = clean_text(value, "Phone number")
    if not phone:
        raise ValueError("Phone number is required")
    if not PHONE_PATTERN.match(phone):
        raise ValueError("Invalid phone number")
    return phone


def check_email(value: Any) -> str:
    email = clean_text(value, "Email").lower()
    if email and not EMAIL_PATTERN.match(email):
        raise ValueError("Invalid email address")
    return email


def check_choice(value: Any, choices: type, label: str, default: Optional[str] = None) -> str:
    text = clean_text(value, label)
    if not text:
        if default is None:
            raise ValueError(f"Please select a {label.lower()}")
        return default
    allowed = [member.value for member in choices]
    if text not in allowed:
        raise ValueError(f"Invalid {label.lower()}: {text}")
    return text


# =============================================================================
# Public submissions
# =============================================================================

class SubmissionModel(BaseModel):
    """Base for public form payloads. Unknown and admin-only keys are ignored."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        extra = "ignore"


class ContactSubmission(SubmissionModel):
    """Payload of the contact page form"""
    first_name: Optional[str] = Field(None, validate_default=True)
    last_name: Optional[str] = Field("", validate_default=True)
    phone: Optional[str] = Field(None, validate_default=True)
    email: Optional[str] = Field("", validate_default=True)
    interest: Optional[str] = Field(None, validate_default=True)
    message: Optional[str] = Field("", validate_default=True)

    @field_validator("first_name", mode="before")
    @classmethod
    def validate_first_name(cls, v: Any) -> str:
        return required_text(v, "First name", NAME_MAX_LENGTH)

    @field_validator("last_name", mode="before")
    @classmethod
    def validate_last_name(cls, v: Any) -> str:
        return optional_text(v, "Last name", NAME_MAX_LENGTH)

    @field_validator("phone", mode="before")
    @classmethod
    def validate_phone(cls, v: Any) -> str:
        return check_phone(v)

    @field_validator("email", mode="before")
    @classmethod
    def validate_email(cls, v: Any) -> str:
        return check_email(v)

    @field_validator("interest", mode="before")
    @classmethod
    def validate_interest(cls, v: Any) -> str:
        return check_choice(v, ContactInterest, "Interest", default=ContactInterest.OTHER.value)

    @field_validator("message", mode="before")
    @classmethod
    def validate_message(cls, v: Any) -> str:
        return optional_text(v, "Message", FREE_TEXT_MAX_LENGTH)


class BookingSubmission(SubmissionModel):
    """Payload of the department-based consultation booking form"""
    name: Optional[str] = Field(None, validate_default=True)
    phone: Optional[str] = Field(None, validate_default=True)
    email: Optional[str] = Field("", validate_default=True)
    department: Optional[str] = Field(None, validate_default=True)
    city: Optional[str] = Field("", validate_default=True)
    details: Optional[Dict[str, Any]] = Field(None, validate_default=True)
    contact_method: Optional[str] = Field(None, validate_default=True)
    time_slot: Optional[str] = Field(None, validate_default=True)
    preferred_language: Optional[str] = Field(None, validate_default=True)
    notes: Optional[str] = Field("", validate_default=True)
    referred_from: Optional[str] = Field("", validate_default=True)

    @field_validator("name", mode="before")
    @classmethod
    def validate_name(cls, v: Any) -> str:
        return required_text(v, "Name", BOOKING_NAME_MAX_LENGTH)

    @field_validator("phone", mode="before")
    @classmethod
    def validate_phone(cls, v: Any) -> str:
        return check_phone(v)

    @field_validator("email", mode="before")
    @classmethod
    def validate_email(cls, v: Any) -> str:
        return check_email(v)

    @field_validator("department", mode="before")
    @classmethod
    def validate_department(cls, v: Any) -> str:
        return check_choice(v, Department, "Department")

    @field_validator("city", mode="before")
    @classmethod
    def validate_city(cls, v: Any) -> str:
        return optional_text(v, "City", BOOKING_NAME_MAX_LENGTH)

    @field_validator("details", mode="before")
    @classmethod
    def validate_details(cls, v: Any) -> Dict[str, str]:
        """Department-specific answers, flattened to a string map."""
        if v is None:
            return {}
        if not isinstance(v, dict):
            raise ValueError("Details must be an object")
        if len(v) > DETAILS_MAX_KEYS:
            raise ValueError(f"Too many details (max {DETAILS_MAX_KEYS})")

        details = {}
        for key, value in v.items():
            if isinstance(value, list):
                value = ", ".join(str(item) for item in value)
            text = optional_text(value, f"Detail '{key}'", DETAIL_VALUE_MAX_LENGTH)
            if text:
                details[str(key)] = text
        return details

    @field_validator("contact_method", mode="before")
    @classmethod
    def validate_contact_method(cls, v: Any) -> str:
        return check_choice(v, ContactMethod, "Contact method", default=ContactMethod.CALL.value)

    @field_validator("time_slot", mode="before")
    @classmethod
    def validate_time_slot(cls, v: Any) -> str:
        return optional_text(v, "Time slot", 100) or "Any time is fine"

    @field_validator("preferred_language", mode="before")
    @classmethod
    def validate_preferred_language(cls, v: Any) -> str:
        return check_choice(
            v, PreferredLanguage, "Preferred language", default=PreferredLanguage.TELUGU.value
        )

    @field_validator("notes", mode="before")
    @classmethod
    def validate_notes(cls, v: Any) -> str:
        return optional_text(v, "Notes", FREE_TEXT_MAX_LENGTH)

    @field_validator("referred_from", mode="before")
    @classmethod
    def validate_referred_from(cls, v: Any) -> str:
        return optional_text(v, "Referred from", 200)


# =============================================================================
# Stored leads
# =============================================================================

class CallNote(BaseModel):
    """One entry of the append-only admin call log"""
    text: str
    added_at: datetime


class Reminder(BaseModel):
    """Single follow-up reminder attached to a lead; replaced wholesale on every set"""
    id: str
    scheduled_at: datetime
    note: str = ""
    sent: bool = False
    sent_at: Optional[datetime] = None

    @property
    def state(self) -> str:
        return "sent" if self.sent else "pending"

    def is_due(self, now: datetime) -> bool:
        return not self.sent and self.scheduled_at <= now


class LeadBase(BaseModel):
    """Fields shared by every lead variant"""
    id: str
    phone: str
    email: str = ""
    status: str = "new"
    admin_notes: List[CallNote] = Field(default_factory=list)
    reminder: Optional[Reminder] = None
    source: str = ""
    ip_address: str = ""
    created_at: datetime
    updated_at: datetime


class ContactLead(LeadBase):
    """Lead captured from the contact page"""
    kind: str = "contact"
    first_name: str
    last_name: str = ""
    interest: str = ContactInterest.OTHER.value
    message: str = ""
    contacted_at: Optional[datetime] = None
    converted_at: Optional[datetime] = None

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class BookingLead(LeadBase):
    """Consultation booking routed to a department"""
    kind: str = "booking"
    reference: str = ""
    name: str
    department: str
    city: str = ""
    details: Dict[str, str] = Field(default_factory=dict)
    contact_method: str = ContactMethod.CALL.value
    time_slot: str = "Any time is fine"
    preferred_language: str = PreferredLanguage.TELUGU.value
    notes: str = ""
    referred_from: str = ""
    scheduled_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def display_name(self) -> str:
        return self.name


Lead = Union[ContactLead, BookingLead]


def booking_reference(lead_id: str, created_at: datetime) -> str:
    """Human-readable booking reference, e.g. CC-2026-3F9A"""
    suffix = lead_id.replace("-", "")[-4:].upper()
    return f"CC-{created_at.year}-{suffix}"
