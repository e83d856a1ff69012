"""
SQLAlchemy Database Models
One table per lead variant plus an insert-only call note log
"""
from sqlalchemy import JSON, Boolean, Column, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class LeadColumns:
    """Columns shared by every lead table"""
    id = Column(String(36), primary_key=True)
    phone = Column(String(20), nullable=False, index=True)
    email = Column(String(255), nullable=False, default="")
    status = Column(String(20), nullable=False, default="new", index=True)
    source = Column(String(50), nullable=False, default="")
    ip_address = Column(String(64), nullable=False, default="")
    created_at = Column(DateTime, nullable=False, index=True)
    updated_at = Column(DateTime, nullable=False)

    # Single follow-up reminder; reminder_id changes on every set
    reminder_id = Column(String(36))
    reminder_scheduled_at = Column(DateTime)
    reminder_note = Column(String(500))
    reminder_sent = Column(Boolean)
    reminder_sent_at = Column(DateTime)


class ContactRecord(LeadColumns, Base):
    """Contact model - maps to contacts table"""
    __tablename__ = "contacts"

    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False, default="")
    interest = Column(String(50), nullable=False, default="Other", index=True)
    message = Column(Text, nullable=False, default="")
    contacted_at = Column(DateTime)
    converted_at = Column(DateTime)

    __table_args__ = (
        Index("ix_contacts_reminder_due", "reminder_sent", "reminder_scheduled_at"),
    )


class BookingRecord(LeadColumns, Base):
    """Booking model - maps to bookings table"""
    __tablename__ = "bookings"

    name = Column(String(100), nullable=False)
    department = Column(String(20), nullable=False, index=True)
    city = Column(String(100), nullable=False, default="")
    details = Column(JSON, nullable=False, default=dict)
    contact_method = Column(String(20), nullable=False, default="call")
    time_slot = Column(String(100), nullable=False, default="Any time is fine")
    preferred_language = Column(String(50), nullable=False, default="Telugu")
    notes = Column(Text, nullable=False, default="")
    referred_from = Column(String(200), nullable=False, default="")
    scheduled_at = Column(DateTime)
    confirmed_at = Column(DateTime)
    completed_at = Column(DateTime)

    __table_args__ = (
        Index("ix_bookings_reminder_due", "reminder_sent", "reminder_scheduled_at"),
    )


class CallNoteRecord(Base):
    """Admin call log entry - rows are only ever inserted"""
    __tablename__ = "call_notes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    lead_kind = Column(String(20), nullable=False)
    lead_id = Column(String(36), nullable=False)
    text = Column(Text, nullable=False)
    added_at = Column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_call_notes_lead", "lead_kind", "lead_id", "id"),
    )


RECORDS = {
    "contact": ContactRecord,
    "booking": BookingRecord,
}
