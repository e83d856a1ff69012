"""Domain models"""

# Lead records and public submissions
from .lead import (
    ContactStatus,
    BookingStatus,
    ContactInterest,
    Department,
    ContactMethod,
    PreferredLanguage,
    ContactSubmission,
    BookingSubmission,
    CallNote,
    Reminder,
    ContactLead,
    BookingLead,
    Lead,
    booking_reference,
)

# Variant rules
from .variants import (
    LeadVariant,
    CONTACT,
    BOOKING,
    VARIANTS,
    get_variant,
)
