"""
Lead Store
Durable storage of contact and booking leads on SQLAlchemy.

Every mutation is a single UPDATE/INSERT statement so concurrent admin
requests and the reminder worker never lose each other's writes. The one
optimistic-concurrency check is mark_reminder_sent, which only flips the
exact reminder instance that was read as due.
"""
import logging
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Dict, FrozenSet, Iterable, Iterator, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import delete, desc, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from covercredit.domain.errors import ConflictIgnored, NotFound, StoreFailure
from covercredit.domain.models.lead import CallNote, Lead, Reminder, booking_reference
from covercredit.domain.models.variants import BOOKING, CONTACT, LeadVariant
from covercredit.domain.services.lead_query import LeadFilter, MAX_LIMIT, MAX_PAGE
from covercredit.domain.services.lead_validation import (
    validate_note_text,
    validate_reminder,
    validate_submission,
    validate_update,
)
from covercredit.infrastructure.storage.database import SessionFactory, get_db
from covercredit.infrastructure.storage.models import RECORDS, CallNoteRecord
from covercredit.utils.time import utc_now

logger = logging.getLogger(__name__)

# Criteria UPDATE/DELETE statements never touch objects already in the session
BULK_OPTIONS = {"synchronize_session": False}

REMINDER_COLUMNS = (
    "reminder_id",
    "reminder_scheduled_at",
    "reminder_note",
    "reminder_sent",
    "reminder_sent_at",
)


class LeadStore:
    """
    Keyed storage of Lead records for every variant.

    Args:
        session_factory: Callable returning a new SQLAlchemy Session
        clock: Returns the current time as naive UTC
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        clock: Callable[[], datetime] = utc_now
    ):
        self._session_factory = session_factory
        self._clock = clock

    @property
    def clock(self) -> Callable[[], datetime]:
        return self._clock

    @contextmanager
    def _db(self) -> Iterator[Session]:
        try:
            with get_db(self._session_factory) as db:
                yield db
        except SQLAlchemyError as e:
            logger.error(f"Lead store operation failed: {e}", exc_info=True)
            raise StoreFailure(f"Storage unavailable ({e.__class__.__name__})") from e

    # =========================================================================
    # Mapping
    # =========================================================================

    def _notes_for(self, db: Session, variant: LeadVariant, ids: List[str]) -> Dict[str, List[CallNote]]:
        notes: Dict[str, List[CallNote]] = {lead_id: [] for lead_id in ids}
        if not ids:
            return notes

        rows = db.execute(
            select(CallNoteRecord)
            .where(CallNoteRecord.lead_kind == variant.kind, CallNoteRecord.lead_id.in_(ids))
            .order_by(CallNoteRecord.id)
        ).scalars()
        for row in rows:
            notes[row.lead_id].append(CallNote(text=row.text, added_at=row.added_at))
        return notes

    def _to_lead(self, variant: LeadVariant, record: Any, notes: List[CallNote]) -> Lead:
        data = {column.name: getattr(record, column.name) for column in record.__table__.columns}
        reminder_values = {name: data.pop(name) for name in REMINDER_COLUMNS}

        if reminder_values["reminder_id"]:
            data["reminder"] = Reminder(
                id=reminder_values["reminder_id"],
                scheduled_at=reminder_values["reminder_scheduled_at"],
                note=reminder_values["reminder_note"] or "",
                sent=bool(reminder_values["reminder_sent"]),
                sent_at=reminder_values["reminder_sent_at"],
            )

        if variant is BOOKING:
            data["reference"] = booking_reference(record.id, record.created_at)
            data["details"] = data.get("details") or {}

        data["admin_notes"] = notes
        return variant.lead_model.model_validate(data)

    def _hydrate(self, db: Session, variant: LeadVariant, records: List[Any]) -> List[Lead]:
        notes = self._notes_for(db, variant, [r.id for r in records])
        return [self._to_lead(variant, r, notes[r.id]) for r in records]

    def _load(self, db: Session, variant: LeadVariant, lead_id: str) -> Lead:
        model = RECORDS[variant.kind]
        record = db.get(model, lead_id)
        if record is None:
            raise NotFound(variant.label, lead_id)
        return self._hydrate(db, variant, [record])[0]

    def _apply_filter(self, stmt, variant: LeadVariant, lead_filter: Optional[LeadFilter]):
        if lead_filter is None:
            return stmt

        model = RECORDS[variant.kind]
        if lead_filter.status:
            stmt = stmt.where(model.status == lead_filter.status)
        if lead_filter.category:
            stmt = stmt.where(getattr(model, variant.category_field) == lead_filter.category)
        if lead_filter.search:
            term = lead_filter.search.lower()
            stmt = stmt.where(or_(*[
                func.lower(getattr(model, name)).contains(term, autoescape=True)
                for name in variant.searchable_fields
            ]))
        return stmt

    # =========================================================================
    # Reads
    # =========================================================================

    def find_by_id(self, variant: LeadVariant, lead_id: str) -> Lead:
        """
        Raises:
            NotFound: If no lead with this id exists
        """
        with self._db() as db:
            return self._load(db, variant, lead_id)

    def list(
        self,
        variant: LeadVariant,
        lead_filter: Optional[LeadFilter] = None,
        page: int = 1,
        page_size: int = 20
    ) -> Tuple[List[Lead], int]:
        """
        One page of leads, newest first, plus the total matching count.

        page is 1-based and capped at MAX_PAGE; page_size is clamped to 1..100.
        """
        page = min(MAX_PAGE, max(1, page))
        page_size = min(MAX_LIMIT, max(1, page_size))
        model = RECORDS[variant.kind]

        with self._db() as db:
            count_stmt = self._apply_filter(select(func.count()).select_from(model), variant, lead_filter)
            total = db.execute(count_stmt).scalar_one()

            stmt = self._apply_filter(select(model), variant, lead_filter)
            stmt = (
                stmt.order_by(desc(model.created_at), desc(model.id))
                .offset((page - 1) * page_size)
                .limit(page_size)
            )
            records = list(db.execute(stmt).scalars())
            return self._hydrate(db, variant, records), total

    def count(self, variant: LeadVariant, lead_filter: Optional[LeadFilter] = None) -> int:
        model = RECORDS[variant.kind]
        with self._db() as db:
            stmt = self._apply_filter(select(func.count()).select_from(model), variant, lead_filter)
            return db.execute(stmt).scalar_one()

    def count_by_category(self, variant: LeadVariant) -> List[Dict[str, Any]]:
        """Lead counts grouped by the variant's categorical field, largest first"""
        model = RECORDS[variant.kind]
        column = getattr(model, variant.category_field)
        with self._db() as db:
            rows = db.execute(
                select(column, func.count().label("count"))
                .group_by(column)
                .order_by(desc("count"), column)
            ).all()
        return [{variant.category_field: value, "count": count} for value, count in rows]

    def count_pending_reminders(self, variant: LeadVariant) -> int:
        model = RECORDS[variant.kind]
        with self._db() as db:
            return db.execute(
                select(func.count()).select_from(model).where(model.reminder_sent == False)  # noqa: E712
            ).scalar_one()

    def recent(self, variant: LeadVariant, limit: int = 5) -> List[Lead]:
        items, _ = self.list(variant, None, page=1, page_size=limit)
        return items

    def find_due_unsent_reminders(
        self,
        now: datetime,
        variants: Iterable[LeadVariant] = (CONTACT, BOOKING)
    ) -> List[Lead]:
        """
        Every lead whose reminder is unsent and scheduled at or before `now`.

        Backed by the (reminder_sent, reminder_scheduled_at) index on each table.
        A row that no longer maps onto its lead model is logged and skipped.
        """
        due: List[Lead] = []
        with self._db() as db:
            for variant in variants:
                model = RECORDS[variant.kind]
                records = list(db.execute(
                    select(model)
                    .where(
                        model.reminder_sent == False,  # noqa: E712
                        model.reminder_scheduled_at <= now,
                    )
                    .order_by(model.reminder_scheduled_at)
                ).scalars())
                notes = self._notes_for(db, variant, [r.id for r in records])
                for record in records:
                    try:
                        due.append(self._to_lead(variant, record, notes[record.id]))
                    except PydanticValidationError as e:
                        logger.error(
                            f"Skipping unreadable {variant.kind} {record.id} with a due reminder: {e}"
                        )
        return due

    # =========================================================================
    # Writes
    # =========================================================================

    def insert(
        self,
        variant: LeadVariant,
        data: Any,
        ip_address: str = "",
        source: Optional[str] = None
    ) -> Lead:
        """
        Validate and store a new lead. Status starts at the variant's initial value.

        Raises:
            ValidationError: Naming the first failing field
        """
        outcome = validate_submission(variant, data)
        if not outcome.ok:
            raise outcome.to_error()

        now = self._clock()
        model = RECORDS[variant.kind]
        record = model(
            id=str(uuid.uuid4()),
            status=variant.initial_status,
            source=(source or variant.default_source)[:50],
            ip_address=(ip_address or "")[:64],
            created_at=now,
            updated_at=now,
            **outcome.value,
        )

        with self._db() as db:
            db.add(record)
            db.flush()
            lead = self._to_lead(variant, record, [])

        logger.info(f"{variant.label} {lead.id} created")
        return lead

    def update_fields(
        self,
        variant: LeadVariant,
        lead_id: str,
        fields: Any,
        allowed: Optional[FrozenSet[str]] = None
    ) -> Lead:
        """
        Apply allow-listed field changes in one UPDATE.

        Status values with a one-way stamp set that stamp only if it is still empty.

        Raises:
            ValidationError: On a disallowed field or an invalid value
            NotFound: If the lead does not exist
        """
        cleaned = validate_update(variant, fields, allowed)
        now = self._clock()
        model = RECORDS[variant.kind]

        values: Dict[str, Any] = dict(cleaned)
        values["updated_at"] = now
        stamp = variant.status_stamps.get(cleaned.get("status"))
        if stamp:
            values[stamp] = func.coalesce(getattr(model, stamp), now)

        with self._db() as db:
            result = db.execute(
                update(model).where(model.id == lead_id).values(**values),
                execution_options=BULK_OPTIONS,
            )
            if result.rowcount == 0:
                raise NotFound(variant.label, lead_id)
            return self._load(db, variant, lead_id)

    def append_note(self, variant: LeadVariant, lead_id: str, text: Any) -> Lead:
        """
        Append {text, added_at: now} to the lead's call log.

        Raises:
            ValidationError: If the text is empty after trimming or too long
            NotFound: If the lead does not exist
        """
        note = validate_note_text(text)
        now = self._clock()
        model = RECORDS[variant.kind]

        with self._db() as db:
            result = db.execute(
                update(model).where(model.id == lead_id).values(updated_at=now),
                execution_options=BULK_OPTIONS,
            )
            if result.rowcount == 0:
                raise NotFound(variant.label, lead_id)
            db.add(CallNoteRecord(lead_kind=variant.kind, lead_id=lead_id, text=note, added_at=now))
            db.flush()
            return self._load(db, variant, lead_id)

    def set_reminder(self, variant: LeadVariant, lead_id: str, scheduled_at: Any, note: Any = "") -> Lead:
        """
        Replace the lead's reminder wholesale with a fresh pending one.

        Raises:
            ValidationError: If scheduled_at is not strictly in the future
            NotFound: If the lead does not exist
        """
        now = self._clock()
        when, text = validate_reminder(scheduled_at, note, now)
        model = RECORDS[variant.kind]

        with self._db() as db:
            result = db.execute(
                update(model)
                .where(model.id == lead_id)
                .values(
                    reminder_id=str(uuid.uuid4()),
                    reminder_scheduled_at=when,
                    reminder_note=text,
                    reminder_sent=False,
                    reminder_sent_at=None,
                    updated_at=now,
                ),
                execution_options=BULK_OPTIONS,
            )
            if result.rowcount == 0:
                raise NotFound(variant.label, lead_id)
            lead = self._load(db, variant, lead_id)

        logger.info(f"Reminder set for {variant.kind} {lead_id} at {when.isoformat()}")
        return lead

    def mark_reminder_sent(
        self,
        variant: LeadVariant,
        lead_id: str,
        reminder: Reminder,
        sent_at: datetime
    ) -> bool:
        """
        Flip the reminder to sent only if it is still the instance read as due.

        Returns:
            True if marked, False if the reminder was replaced, removed or already sent
        """
        model = RECORDS[variant.kind]
        with self._db() as db:
            result = db.execute(
                update(model)
                .where(
                    model.id == lead_id,
                    model.reminder_id == reminder.id,
                    model.reminder_scheduled_at == reminder.scheduled_at,
                    model.reminder_sent == False,  # noqa: E712
                )
                .values(reminder_sent=True, reminder_sent_at=sent_at, updated_at=self._clock()),
                execution_options=BULK_OPTIONS,
            )
            marked = result.rowcount > 0

        if not marked:
            conflict = ConflictIgnored(
                f"Reminder {reminder.id} on {variant.kind} {lead_id} changed before it was marked sent"
            )
            logger.info(conflict.message)
        return marked

    def delete_by_id(self, variant: LeadVariant, lead_id: str) -> bool:
        """
        Hard delete a lead and its call log. Idempotent.

        Returns:
            True if a lead was removed
        """
        model = RECORDS[variant.kind]
        with self._db() as db:
            db.execute(
                delete(CallNoteRecord).where(
                    CallNoteRecord.lead_kind == variant.kind,
                    CallNoteRecord.lead_id == lead_id,
                ),
                execution_options=BULK_OPTIONS,
            )
            result = db.execute(
                delete(model).where(model.id == lead_id),
                execution_options=BULK_OPTIONS,
            )
            deleted = result.rowcount > 0

        if deleted:
            logger.info(f"{variant.label} {lead_id} deleted")
        return deleted
