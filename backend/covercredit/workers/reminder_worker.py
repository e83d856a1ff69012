"""
Reminder Worker
Background worker that fires due follow-up reminders.

Runs inside the API process (started by the FastAPI lifespan) or as a
separate process:
    python -m covercredit.workers.reminder_worker

Each tick fetches every due, unsent reminder as of the tick's start time,
sends a "reminder due" notification for each lead in turn, and then marks
that exact reminder instance sent. Delivery is at-least-once: a crash
between the send and the mark leaves the reminder pending for the next tick.
"""
import asyncio
import logging
import signal
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from covercredit.domain.errors import StoreFailure
from covercredit.domain.models.lead import Lead
from covercredit.domain.models.notification import ReminderKind
from covercredit.domain.models.variants import BOOKING, CONTACT
from covercredit.infrastructure.storage.lead_store import LeadStore
from covercredit.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

VARIANTS_BY_KIND = {CONTACT.kind: CONTACT, BOOKING.kind: BOOKING}


@dataclass
class TickResult:
    """Counters for one pass over the due reminders."""
    started_at: datetime
    fetched: int = 0
    sent: int = 0
    failed: int = 0
    conflicts: int = 0
    errors: int = 0
    interrupted: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "fetched": self.fetched,
            "sent": self.sent,
            "failed": self.failed,
            "conflicts": self.conflicts,
            "errors": self.errors,
            "interrupted": self.interrupted,
        }


class ReminderWorker:
    """
    Background worker for firing due reminders.

    Responsibilities:
    - Scan both lead tables for due, unsent reminders
    - Send the "reminder due" notification, one lead at a time
    - Mark the reminder sent with a compare-and-set on the instance read as due
    - Leave the reminder pending when every channel failed

    Ticks never overlap: the next scan starts only after the previous
    tick's loop body has finished and the poll interval has elapsed.
    """

    POLL_INTERVAL = 60.0  # Seconds between scans
    MAX_ERROR_BACKOFF = 30.0  # Seconds; repeated failures never stop the loop

    def __init__(
        self,
        store: LeadStore,
        notifications: NotificationService,
        clock: Optional[Callable[[], datetime]] = None,
        poll_interval: Optional[float] = None
    ):
        self.store = store
        self.notifications = notifications
        self.clock = clock or store.clock
        self.poll_interval = poll_interval if poll_interval is not None else self.POLL_INTERVAL

        self.running = False
        self._stop_event = asyncio.Event()

        # Stats
        self._ticks = 0
        self._reminders_sent = 0
        self._reminders_failed = 0
        self._conflicts = 0
        self._errors = 0
        self._last_tick: Optional[TickResult] = None

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    async def run(self) -> None:
        """
        Main worker loop.

        Continuously:
        1. Run one tick against a fresh "now"
        2. Sleep for the poll interval, waking early if stop() is called
        """
        self.running = True
        consecutive_errors = 0

        logger.info(f"Reminder Worker started - scanning every {self.poll_interval:g}s")

        try:
            while not self.stop_requested:
                delay = self.poll_interval
                try:
                    await self.run_tick()
                    consecutive_errors = 0
                except Exception as e:
                    consecutive_errors += 1
                    logger.error(f"Worker error ({consecutive_errors}): {e}", exc_info=True)

                    delay = min(5 * consecutive_errors, self.MAX_ERROR_BACKOFF, self.poll_interval)

                await self._sleep(delay)
        except asyncio.CancelledError:
            logger.info("Worker received cancellation signal")
            raise
        finally:
            await self.shutdown()

    async def _sleep(self, seconds: float) -> None:
        """Wait for the next tick or an early stop()."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return

    async def run_tick(self, now: Optional[datetime] = None) -> TickResult:
        """
        One pass over the due reminders.

        A failed fetch abandons the tick; every lead it would have returned is
        picked up next time. A failure on one lead never stops the others.
        """
        now = now or self.clock()
        result = TickResult(started_at=now)

        try:
            due = await asyncio.to_thread(self.store.find_due_unsent_reminders, now)
        except StoreFailure as e:
            logger.error(f"Could not fetch due reminders: {e.message}")
            result.errors += 1
            self._record(result)
            return result

        result.fetched = len(due)
        for index, lead in enumerate(due):
            if self.stop_requested:
                result.interrupted = True
                logger.info(f"Stop requested - leaving {len(due) - index} reminder(s) for the next run")
                break
            await self._process_reminder(lead, now, result)

        if result.fetched:
            logger.info(
                f"Reminder tick: {result.fetched} due, {result.sent} sent, "
                f"{result.failed} failed, {result.conflicts} conflicts, {result.errors} errors"
            )
        self._record(result)
        return result

    async def _process_reminder(self, lead: Lead, now: datetime, result: TickResult) -> None:
        variant = VARIANTS_BY_KIND[lead.kind]
        reminder = lead.reminder
        if reminder is None or not reminder.is_due(now):
            return

        try:
            report = await self.notifications.send_reminder(lead, ReminderKind.DUE)
        except Exception as e:
            logger.error(f"Reminder notification for {lead.kind} {lead.id} raised: {e}", exc_info=True)
            result.failed += 1
            return

        if not report.success:
            result.failed += 1
            logger.warning(f"Reminder for {lead.kind} {lead.id} not delivered - left pending")
            return

        try:
            marked = await asyncio.to_thread(
                self.store.mark_reminder_sent, variant, lead.id, reminder, now
            )
        except StoreFailure as e:
            result.errors += 1
            logger.error(f"Could not mark reminder sent for {lead.kind} {lead.id}: {e.message}")
            return

        if marked:
            result.sent += 1
            logger.info(f"⏰ Reminder fired for: {lead.display_name} ({lead.id})")
        else:
            result.conflicts += 1

    def _record(self, result: TickResult) -> None:
        self._ticks += 1
        self._reminders_sent += result.sent
        self._reminders_failed += result.failed
        self._conflicts += result.conflicts
        self._errors += result.errors
        self._last_tick = result

    def stop(self) -> None:
        """
        Ask the loop to finish. A lead already being processed completes
        its notification and mark before the loop exits.
        """
        if not self.stop_requested:
            logger.info("Reminder Worker stop requested")
        self._stop_event.set()

    async def shutdown(self) -> None:
        """Graceful shutdown."""
        logger.info("Shutting down Reminder Worker...")
        self.running = False
        self._stop_event.set()

        logger.info(
            f"Reminder Worker shutdown complete. "
            f"Ticks: {self._ticks}, "
            f"Sent: {self._reminders_sent}, "
            f"Failed: {self._reminders_failed}, "
            f"Conflicts: {self._conflicts}"
        )

    def get_stats(self) -> dict:
        """Get worker statistics."""
        return {
            "running": self.running,
            "poll_interval_seconds": self.poll_interval,
            "ticks": self._ticks,
            "reminders_sent": self._reminders_sent,
            "reminders_failed": self._reminders_failed,
            "conflicts": self._conflicts,
            "errors": self._errors,
            "last_tick": self._last_tick.to_dict() if self._last_tick else None,
        }


async def main():
    """Entry point for running reminder worker as separate process."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    from covercredit.core.config import get_settings
    from covercredit.infrastructure.storage.database import get_engine, get_session_factory, init_db
    from covercredit.services.notification_service import get_notification_service

    settings = get_settings()
    init_db(get_engine())

    worker = ReminderWorker(
        store=LeadStore(get_session_factory()),
        notifications=get_notification_service(),
        poll_interval=settings.reminder_poll_interval_seconds,
    )

    # Handle shutdown signals
    loop = asyncio.get_running_loop()

    def signal_handler():
        logger.info("Received shutdown signal")
        worker.stop()

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, signal_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    try:
        await worker.run()
    except KeyboardInterrupt:
        logger.info("Worker interrupted by user")


if __name__ == "__main__":
    asyncio.run(main())
