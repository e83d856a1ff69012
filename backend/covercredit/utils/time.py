"""
Time helpers
All instants are handled as naive UTC datetimes, matching what the storage layer returns.
"""
from datetime import datetime, timezone
from typing import Any


def utc_now() -> datetime:
    """Current time as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value: datetime) -> datetime:
    """Normalize an aware datetime to naive UTC; naive values are assumed UTC already."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_instant(value: Any) -> datetime:
    """
    Parse an ISO-8601 string (or datetime) into naive UTC.

    Raises:
        ValueError: If the value is empty or not a valid instant
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = _parse_iso(value)

    try:
        return to_utc_naive(parsed)
    except OverflowError:
        raise ValueError(f"Date/time out of range: {value}")


def _parse_iso(value: Any) -> datetime:
    if not isinstance(value, str) or not value.strip():
        raise ValueError("A valid date/time is required")

    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"

    try:
        return datetime.fromisoformat(text)
    except ValueError:
        raise ValueError(f"Invalid date/time: {value}")
