"""
Lead Lifecycle Manager
Validates and dispatches public submissions and admin mutations to the Lead Store.

Store calls are synchronous SQLAlchemy work and run in a worker thread so
request handling never blocks the event loop. Notifications triggered here
are detached: the response never waits for them.
"""
import asyncio
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from covercredit.domain.models.lead import Lead
from covercredit.domain.models.notification import ReminderKind
from covercredit.domain.models.variants import BOOKING, CONTACT, LeadVariant
from covercredit.domain.services.lead_query import LeadQuery, build_lead_query
from covercredit.infrastructure.storage.lead_store import LeadStore
from covercredit.services.notification_service import NotificationService, dispatch_detached

logger = logging.getLogger(__name__)


class LeadLifecycleManager:
    """
    Single entry point for everything that creates or changes a lead.

    Args:
        store: Lead Store shared with the reminder worker
        notifications: Gateway for alerts; None disables them
        dispatch: Starts a detached task (injectable for tests)
    """

    RECENT_LIMIT = 5

    def __init__(
        self,
        store: LeadStore,
        notifications: Optional[NotificationService] = None,
        dispatch: Callable = dispatch_detached
    ):
        self.store = store
        self.notifications = notifications
        self._dispatch = dispatch

    # =========================================================================
    # Public submissions
    # =========================================================================

    async def submit(
        self,
        variant: LeadVariant,
        payload: Any,
        ip_address: str = "",
        source: Optional[str] = None
    ) -> Lead:
        """
        Store a public form submission and fire its alerts.

        Raises:
            ValidationError: Naming the first failing field
        """
        lead = await asyncio.to_thread(self.store.insert, variant, payload, ip_address, source)

        if self.notifications is not None:
            self._dispatch(
                self.notifications.notify_submission(lead),
                f"{variant.kind} alerts for {lead.id}",
            )
        return lead

    # =========================================================================
    # Admin reads
    # =========================================================================

    async def get(self, variant: LeadVariant, lead_id: str) -> Lead:
        return await asyncio.to_thread(self.store.find_by_id, variant, lead_id)

    async def list(
        self,
        variant: LeadVariant,
        params: Mapping[str, Any]
    ) -> Tuple[List[Lead], int, LeadQuery]:
        query = build_lead_query(variant, params)
        items, total = await asyncio.to_thread(
            self.store.list, variant, query.filter, query.page, query.limit
        )
        return items, total, query

    def _stats_sync(self) -> Dict[str, Any]:
        store = self.store
        total_contacts = store.count(CONTACT)
        total_bookings = store.count(BOOKING)
        new_contacts = store.count(CONTACT, build_lead_query(CONTACT, {"status": "new"}).filter)
        new_bookings = store.count(BOOKING, build_lead_query(BOOKING, {"status": "new"}).filter)

        return {
            "stats": {
                "total_contacts": total_contacts,
                "total_bookings": total_bookings,
                "total_leads": total_contacts + total_bookings,
                "new_contacts": new_contacts,
                "new_bookings": new_bookings,
                "new_leads": new_contacts + new_bookings,
                "pending_reminders": (
                    store.count_pending_reminders(CONTACT) + store.count_pending_reminders(BOOKING)
                ),
            },
            "contacts_by_interest": store.count_by_category(CONTACT),
            "bookings_by_department": store.count_by_category(BOOKING),
            "recent_contacts": store.recent(CONTACT, self.RECENT_LIMIT),
            "recent_bookings": store.recent(BOOKING, self.RECENT_LIMIT),
        }

    async def stats(self) -> Dict[str, Any]:
        """Dashboard counters, category breakdowns and the latest leads"""
        return await asyncio.to_thread(self._stats_sync)

    # =========================================================================
    # Admin mutations
    # =========================================================================

    async def update(self, variant: LeadVariant, lead_id: str, fields: Any) -> Lead:
        """
        Apply an allow-listed PATCH.

        Raises:
            ValidationError: On a field outside the allow-list or an invalid value
            NotFound: If the lead does not exist
        """
        lead = await asyncio.to_thread(self.store.update_fields, variant, lead_id, fields)
        logger.info(f"{variant.label} {lead_id} updated: {sorted(fields)}")
        return lead

    async def append_note(self, variant: LeadVariant, lead_id: str, text: Any) -> Lead:
        return await asyncio.to_thread(self.store.append_note, variant, lead_id, text)

    async def set_reminder(
        self,
        variant: LeadVariant,
        lead_id: str,
        scheduled_at: Any,
        note: Any = ""
    ) -> Lead:
        """
        Replace the lead's reminder and notify the admins that it was scheduled.

        Raises:
            ValidationError: If scheduled_at is not strictly in the future
            NotFound: If the lead does not exist
        """
        lead = await asyncio.to_thread(self.store.set_reminder, variant, lead_id, scheduled_at, note)

        if self.notifications is not None:
            self._dispatch(
                self.notifications.send_reminder(lead, ReminderKind.SCHEDULED),
                f"reminder scheduled for {variant.kind} {lead_id}",
            )
        return lead

    async def delete(self, variant: LeadVariant, lead_id: str) -> bool:
        return await asyncio.to_thread(self.store.delete_by_id, variant, lead_id)
