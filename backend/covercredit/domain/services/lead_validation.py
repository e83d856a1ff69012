"""
Lead Validation
Pure checks applied before anything reaches the store. Submissions return a
ValidationOutcome; admin mutation helpers raise ValidationError directly.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_snake

from covercredit.domain.errors import ValidationError
from covercredit.domain.models.lead import (
    CALL_NOTE_MAX_LENGTH,
    REMINDER_NOTE_MAX_LENGTH,
    clean_text,
)
from covercredit.domain.models.variants import LeadVariant
from covercredit.utils.time import parse_instant


@dataclass
class ValidationOutcome:
    """Result of validating a public submission: either `value` or `errors`."""
    ok: bool
    value: Optional[Dict[str, Any]] = None
    errors: List[Dict[str, str]] = field(default_factory=list)

    @property
    def first_error(self) -> Optional[Dict[str, str]]:
        return self.errors[0] if self.errors else None

    def to_error(self) -> ValidationError:
        first = self.first_error or {"field": "body", "message": "Invalid submission"}
        return ValidationError(first["field"], first["message"], self.errors)


def _collect_errors(model: type, exc: PydanticValidationError) -> List[Dict[str, str]]:
    aliases = {
        (info.alias or name): name
        for name, info in model.model_fields.items()
    }
    errors = []
    for err in exc.errors():
        loc = err.get("loc") or ("body",)
        head = aliases.get(str(loc[0]), str(loc[0]))
        field_name = ".".join([head] + [str(part) for part in loc[1:]])

        message = err.get("msg", "Invalid value")
        if err.get("type") == "value_error":
            cause = (err.get("ctx") or {}).get("error")
            if cause is not None:
                message = str(cause)

        errors.append({"field": field_name, "message": message})
    return errors


def validate_submission(variant: LeadVariant, payload: Any) -> ValidationOutcome:
    """
    Validate a public form payload for the given variant.

    Client-supplied admin fields (status, timestamps, provenance, notes,
    reminder) are dropped; defaults are applied here.
    """
    if not isinstance(payload, dict):
        return ValidationOutcome(
            ok=False,
            errors=[{"field": "body", "message": "Request body must be a JSON object"}],
        )

    model = variant.submission_model
    try:
        record = model.model_validate(payload)
    except PydanticValidationError as e:
        return ValidationOutcome(ok=False, errors=_collect_errors(model, e))

    return ValidationOutcome(ok=True, value=record.model_dump())


def validate_update(
    variant: LeadVariant,
    fields: Any,
    allowed: Optional[FrozenSet[str]] = None
) -> Dict[str, Any]:
    """
    Check an admin PATCH body against the variant's allow-list, optionally
    narrowed further by `allowed` for a specific mutation.

    Keys may be snake_case or camelCase. Any key outside the allow-list is
    rejected, not ignored.

    Raises:
        ValidationError: On unknown fields, an empty body or invalid values
    """
    if not isinstance(fields, dict) or not fields:
        raise ValidationError("body", "No updatable fields supplied")

    permitted = variant.update_fields if allowed is None else allowed & variant.update_fields
    cleaned: Dict[str, Any] = {}
    for raw_key, value in fields.items():
        key = to_snake(str(raw_key))
        if key not in permitted:
            raise ValidationError(raw_key, f"Field '{raw_key}' cannot be updated")

        if key == "status":
            status = clean_text(value, "Status") if isinstance(value, str) else value
            if not isinstance(status, str) or not variant.is_status(status):
                raise ValidationError("status", f"Invalid status: {value}")
            cleaned["status"] = status

        elif key == "scheduled_at":
            if value is None or value == "":
                cleaned["scheduled_at"] = None
            else:
                try:
                    cleaned["scheduled_at"] = parse_instant(value)
                except ValueError as e:
                    raise ValidationError("scheduled_at", str(e))

    return cleaned


def validate_note_text(text: Any) -> str:
    """
    Raises:
        ValidationError: If the note is empty after trimming or too long
    """
    try:
        note = clean_text(text, "Note")
    except ValueError as e:
        raise ValidationError("text", str(e))

    if not note:
        raise ValidationError("text", "Note text is required")
    if len(note) > CALL_NOTE_MAX_LENGTH:
        raise ValidationError("text", f"Note too long (max {CALL_NOTE_MAX_LENGTH} chars)")
    return note


def validate_reminder(scheduled_at: Any, note: Any, now: datetime) -> Tuple[datetime, str]:
    """
    Parse a reminder request. The time must be strictly after `now`.

    Raises:
        ValidationError: On an unparseable or non-future time, or an oversized note
    """
    try:
        when = parse_instant(scheduled_at)
    except ValueError as e:
        raise ValidationError("scheduled_at", str(e))

    if when <= now:
        raise ValidationError("scheduled_at", "Reminder time must be in the future")

    try:
        text = clean_text(note, "Reminder note")
    except ValueError as e:
        raise ValidationError("note", str(e))

    if len(text) > REMINDER_NOTE_MAX_LENGTH:
        raise ValidationError(
            "note", f"Reminder note too long (max {REMINDER_NOTE_MAX_LENGTH} chars)"
        )
    return when, text
