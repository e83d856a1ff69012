"""
Lead Variants
Per-variant rules that the store, query layer and lifecycle manager share:
statuses, the categorical filter, searchable fields, the PATCH allow-list
and the one-way status stamps.
"""
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Tuple, Type

from pydantic import BaseModel

from covercredit.domain.models.lead import (
    BookingLead,
    BookingStatus,
    BookingSubmission,
    ContactInterest,
    ContactLead,
    ContactStatus,
    ContactSubmission,
    Department,
)


@dataclass(frozen=True)
class LeadVariant:
    kind: str
    collection: str
    label: str
    submission_model: Type[BaseModel]
    lead_model: Type[BaseModel]
    statuses: Tuple[str, ...]
    category_field: str
    categories: Tuple[str, ...]
    searchable_fields: Tuple[str, ...]
    update_fields: FrozenSet[str]
    status_stamps: Dict[str, str] = field(default_factory=dict)
    default_source: str = ""
    initial_status: str = "new"

    def is_status(self, value: str) -> bool:
        return value in self.statuses


CONTACT = LeadVariant(
    kind="contact",
    collection="contacts",
    label="Contact",
    submission_model=ContactSubmission,
    lead_model=ContactLead,
    statuses=tuple(s.value for s in ContactStatus),
    category_field="interest",
    categories=tuple(i.value for i in ContactInterest),
    searchable_fields=("first_name", "last_name", "phone", "email"),
    update_fields=frozenset({"status"}),
    status_stamps={
        ContactStatus.CONTACTED.value: "contacted_at",
        ContactStatus.CONVERTED.value: "converted_at",
    },
    default_source="contact-form",
)

BOOKING = LeadVariant(
    kind="booking",
    collection="bookings",
    label="Booking",
    submission_model=BookingSubmission,
    lead_model=BookingLead,
    statuses=tuple(s.value for s in BookingStatus),
    category_field="department",
    categories=tuple(d.value for d in Department),
    searchable_fields=("name", "phone", "email", "city", "department"),
    update_fields=frozenset({"status", "scheduled_at"}),
    status_stamps={
        BookingStatus.CONFIRMED.value: "confirmed_at",
        BookingStatus.COMPLETED.value: "completed_at",
    },
    default_source="book-form",
)

VARIANTS: Dict[str, LeadVariant] = {
    CONTACT.collection: CONTACT,
    BOOKING.collection: BOOKING,
}


def get_variant(collection: str) -> LeadVariant:
    """
    Look up a variant by its collection name ("contacts" / "bookings").

    Raises:
        KeyError: If the collection is unknown
    """
    if collection not in VARIANTS:
        raise KeyError(f"Unknown lead collection: {collection}")
    return VARIANTS[collection]
