"""
Unit Tests for Lead Validation
Public submission checks, admin PATCH allow-lists, call notes and reminders.
"""
from datetime import datetime

import pytest

from covercredit.domain.errors import ValidationError
from covercredit.domain.models.variants import BOOKING, CONTACT
from covercredit.domain.services.lead_validation import (
    validate_note_text,
    validate_reminder,
    validate_submission,
    validate_update,
)


NOW = datetime(2026, 10, 19, 9, 0, 0)


class TestPhoneValidation:
    """Phone numbers: leading + or digit, then 7-15 digits, spaces or hyphens."""

    @pytest.mark.parametrize("phone", [
        "9876543210",
        "+91 98765 43210",
        "98765-43210",
        "+919876543210",
        "040 2345 6789",
    ])
    def test_accepts_valid_phone(self, phone):
        outcome = validate_submission(CONTACT, {"firstName": "Asha", "phone": phone})

        assert outcome.ok, outcome.errors
        assert outcome.value["phone"] == phone

    @pytest.mark.parametrize("phone", [
        "12345",
        "abc1234567",
        "98765_43210",
        "+91 98765 43210 1234",
        "(040) 23456789",
        "+٩١٩٨٧٦٥٤٣٢١",
        "９８７６５４３２１０",
    ])
    def test_rejects_invalid_phone(self, phone):
        outcome = validate_submission(CONTACT, {"firstName": "Asha", "phone": phone})

        assert not outcome.ok
        assert outcome.first_error == {"field": "phone", "message": "Invalid phone number"}

    def test_missing_phone_is_required(self):
        outcome = validate_submission(CONTACT, {"firstName": "Asha"})

        assert outcome.first_error == {"field": "phone", "message": "Phone number is required"}

    def test_phone_is_trimmed(self):
        outcome = validate_submission(CONTACT, {"firstName": "Asha", "phone": "  9876543210  "})

        assert outcome.value["phone"] == "9876543210"


class TestContactSubmission:
    """Tests for contact form payloads."""

    def test_camel_case_payload_is_accepted(self, contact_payload):
        outcome = validate_submission(CONTACT, contact_payload)

        assert outcome.ok
        assert outcome.value["first_name"] == "Asha"
        assert outcome.value["last_name"] == "Reddy"
        assert outcome.value["interest"] == "Health Insurance"

    def test_snake_case_payload_is_accepted(self):
        outcome = validate_submission(CONTACT, {"first_name": "Asha", "phone": "9876543210"})

        assert outcome.ok
        assert outcome.value["first_name"] == "Asha"

    def test_email_is_lower_cased(self, contact_payload):
        outcome = validate_submission(CONTACT, contact_payload)

        assert outcome.value["email"] == "asha@example.com"

    def test_defaults_applied(self):
        outcome = validate_submission(CONTACT, {"firstName": "Asha", "phone": "9876543210"})

        assert outcome.value["interest"] == "Other"
        assert outcome.value["email"] == ""
        assert outcome.value["message"] == ""

    def test_admin_fields_are_ignored(self, contact_payload):
        payload = dict(
            contact_payload,
            status="converted",
            adminNotes=[{"text": "forged"}],
            reminder={"scheduledAt": "2030-01-01T00:00:00Z"},
            source="admin",
        )
        outcome = validate_submission(CONTACT, payload)

        assert outcome.ok
        for key in ("status", "admin_notes", "reminder", "source"):
            assert key not in outcome.value

    def test_first_error_names_first_failing_field(self):
        outcome = validate_submission(CONTACT, {"phone": "123", "email": "nope"})

        assert not outcome.ok
        assert outcome.first_error == {"field": "first_name", "message": "First name is required"}
        fields = [e["field"] for e in outcome.errors]
        assert fields == ["first_name", "phone", "email"]

    def test_to_error_carries_every_failure(self):
        outcome = validate_submission(CONTACT, {"phone": "123"})
        error = outcome.to_error()

        assert isinstance(error, ValidationError)
        assert error.field == "first_name"
        assert error.message == "First name is required"
        assert len(error.errors) == 2

    def test_name_too_long(self):
        outcome = validate_submission(CONTACT, {"firstName": "A" * 51, "phone": "9876543210"})

        assert outcome.first_error["field"] == "first_name"
        assert "too long" in outcome.first_error["message"]

    def test_invalid_interest(self):
        outcome = validate_submission(
            CONTACT, {"firstName": "Asha", "phone": "9876543210", "interest": "Boat Insurance"}
        )

        assert outcome.first_error == {"field": "interest", "message": "Invalid interest: Boat Insurance"}

    def test_non_object_body(self):
        outcome = validate_submission(CONTACT, ["Asha", "9876543210"])

        assert outcome.first_error == {"field": "body", "message": "Request body must be a JSON object"}


class TestBookingSubmission:
    """Tests for department booking payloads."""

    def test_valid_booking(self, booking_payload):
        outcome = validate_submission(BOOKING, booking_payload)

        assert outcome.ok
        assert outcome.value["department"] == "bike"
        assert outcome.value["contact_method"] == "whatsapp"
        assert outcome.value["preferred_language"] == "English"

    def test_defaults_applied(self):
        outcome = validate_submission(
            BOOKING, {"name": "Ravi", "phone": "9876543210", "department": "loan"}
        )

        assert outcome.value["contact_method"] == "call"
        assert outcome.value["time_slot"] == "Any time is fine"
        assert outcome.value["preferred_language"] == "Telugu"
        assert outcome.value["details"] == {}

    def test_details_flattened_to_strings(self, booking_payload):
        booking_payload["details"] = {"addOns": ["Zero Dep", "RSA"], "year": 2019, "smoker": ""}
        outcome = validate_submission(BOOKING, booking_payload)

        assert outcome.value["details"] == {"addOns": "Zero Dep, RSA", "year": "2019"}

    def test_details_must_be_object(self, booking_payload):
        booking_payload["details"] = "bike"
        outcome = validate_submission(BOOKING, booking_payload)

        assert outcome.first_error == {"field": "details", "message": "Details must be an object"}

    def test_missing_department(self):
        outcome = validate_submission(BOOKING, {"name": "Ravi", "phone": "9876543210"})

        assert outcome.first_error == {"field": "department", "message": "Please select a department"}

    def test_unknown_department(self):
        outcome = validate_submission(
            BOOKING, {"name": "Ravi", "phone": "9876543210", "department": "boat"}
        )

        assert outcome.first_error == {"field": "department", "message": "Invalid department: boat"}

    def test_missing_name(self):
        outcome = validate_submission(BOOKING, {"phone": "9876543210", "department": "car"})

        assert outcome.first_error == {"field": "name", "message": "Name is required"}


class TestValidateUpdate:
    """Admin PATCH bodies are checked against the variant allow-list."""

    def test_contact_status_update(self):
        assert validate_update(CONTACT, {"status": "contacted"}) == {"status": "contacted"}

    def test_booking_accepts_camel_case_scheduled_at(self):
        cleaned = validate_update(BOOKING, {"scheduledAt": "2026-10-20T10:00:00Z"})

        assert cleaned == {"scheduled_at": datetime(2026, 10, 20, 10, 0, 0)}

    def test_booking_scheduled_at_converted_to_utc(self):
        cleaned = validate_update(BOOKING, {"scheduled_at": "2026-10-20T15:30:00+05:30"})

        assert cleaned["scheduled_at"] == datetime(2026, 10, 20, 10, 0, 0)

    def test_booking_scheduled_at_can_be_cleared(self):
        assert validate_update(BOOKING, {"scheduled_at": None}) == {"scheduled_at": None}

    @pytest.mark.parametrize("variant,fields,bad_field", [
        (CONTACT, {"scheduled_at": "2026-10-20T10:00:00Z"}, "scheduled_at"),
        (CONTACT, {"status": "contacted", "phone": "1"}, "phone"),
        (BOOKING, {"name": "Someone else"}, "name"),
        (BOOKING, {"reminder": {}}, "reminder"),
        (BOOKING, {"adminNotes": []}, "adminNotes"),
    ])
    def test_rejects_fields_outside_allow_list(self, variant, fields, bad_field):
        with pytest.raises(ValidationError) as exc_info:
            validate_update(variant, fields)

        assert exc_info.value.field == bad_field
        assert exc_info.value.message == f"Field '{bad_field}' cannot be updated"

    def test_allowed_narrows_allow_list(self):
        with pytest.raises(ValidationError, match="cannot be updated"):
            validate_update(BOOKING, {"scheduled_at": None}, allowed=frozenset({"status"}))

    def test_invalid_status(self):
        with pytest.raises(ValidationError, match="Invalid status: converted"):
            validate_update(BOOKING, {"status": "converted"})

    def test_invalid_scheduled_at(self):
        with pytest.raises(ValidationError, match="Invalid date/time"):
            validate_update(BOOKING, {"scheduled_at": "next tuesday"})

    def test_scheduled_at_out_of_range(self):
        with pytest.raises(ValidationError, match="out of range"):
            validate_update(BOOKING, {"scheduledAt": "9999-12-31T23:00:00-05:00"})

    def test_empty_body(self):
        with pytest.raises(ValidationError, match="No updatable fields supplied"):
            validate_update(CONTACT, {})


class TestNotesAndReminders:
    """Tests for call note text and reminder requests."""

    def test_note_is_trimmed(self):
        assert validate_note_text("  Called, wants a quote  ") == "Called, wants a quote"

    @pytest.mark.parametrize("text", ["", "   ", None])
    def test_empty_note_rejected(self, text):
        with pytest.raises(ValidationError, match="Note text is required"):
            validate_note_text(text)

    def test_long_note_rejected(self):
        with pytest.raises(ValidationError, match="Note too long"):
            validate_note_text("x" * 2001)

    def test_future_reminder(self):
        when, note = validate_reminder("2026-10-19T10:00:00Z", "  Call back  ", NOW)

        assert when == datetime(2026, 10, 19, 10, 0, 0)
        assert when.tzinfo is None
        assert note == "Call back"

    @pytest.mark.parametrize("scheduled_at", [
        "2026-10-19T08:00:00Z",
        "2026-10-19T09:00:00Z",
        "2026-10-19T14:30:00+05:30",
    ])
    def test_reminder_not_in_future_rejected(self, scheduled_at):
        with pytest.raises(ValidationError) as exc_info:
            validate_reminder(scheduled_at, "", NOW)

        assert exc_info.value.field == "scheduled_at"
        assert exc_info.value.message == "Reminder time must be in the future"

    @pytest.mark.parametrize("scheduled_at", [None, "", "tomorrow", "9999-12-31T23:00:00-05:00"])
    def test_reminder_time_must_parse(self, scheduled_at):
        with pytest.raises(ValidationError) as exc_info:
            validate_reminder(scheduled_at, "", NOW)

        assert exc_info.value.field == "scheduled_at"

    def test_reminder_note_too_long(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_reminder("2026-10-20T10:00:00Z", "x" * 501, NOW)

        assert exc_info.value.field == "note"
