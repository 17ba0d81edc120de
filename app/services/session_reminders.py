"""
Session Reminder Scheduler
Sends one reminder email per scheduled session ahead of its start time.

The reminder_sent_at stamp is the only de-duplication: a session is selected
while it is scheduled, starts within the lookahead window and has no stamp. A
failed send leaves the stamp unset so the next sweep retries it.
"""

import asyncio
import contextlib
import logging
from datetime import datetime, timedelta
from typing import Callable, NamedTuple, Optional

from sqlalchemy.orm import Session

from ..config import SESSION_REMINDER_INTERVAL_SECONDS, SESSION_REMINDER_LOOKAHEAD_HOURS
from ..database import SessionLocal
from ..domain.sessions.repository import SessionRepository
from ..domain.sessions.time_utils import format_session_time, utcnow
from .notification_service import notify_session_reminder, recipients_for

logger = logging.getLogger(__name__)


class ReminderSweepResult(NamedTuple):
    processed: int
    sent: int
    errors: int


async def run_session_reminders(
    db: Session,
    now: Optional[datetime] = None,
    lookahead: timedelta = timedelta(hours=SESSION_REMINDER_LOOKAHEAD_HOURS),
) -> ReminderSweepResult:
    """
    One reminder sweep

    Args:
        db: Database session
        now: Naive UTC reference time, defaults to the current time
        lookahead: Window after ``now`` in which sessions are reminded

    Returns:
        ReminderSweepResult with processed, sent and errors counts
    """
    from ..email_service import send_session_reminder_email

    now = now or utcnow()
    window_end = now + lookahead

    try:
        sessions = SessionRepository.get_sessions_due_for_reminder(db, now, window_end)
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Error querying sessions due for reminder: {e}")
        return ReminderSweepResult(0, 0, 1)

    if not sessions:
        logger.info("🔔 No sessions need reminders")
        return ReminderSweepResult(0, 0, 0)

    logger.info(f"🔔 Found {len(sessions)} sessions needing reminders")

    processed = sent = errors = 0
    for session in sessions:
        processed += 1
        session_id = session.id
        try:
            # A cancellation may have landed since the query ran
            db.refresh(session)
            if session.status != "scheduled" or session.reminder_sent_at is not None:
                logger.info(f"⏭️ Skipping reminder for session {session_id} (status: {session.status})")
                continue

            users = recipients_for(db, session, "client")
            user = users[0] if users else None
            if not user or not user.email:
                logger.error(f"❌ No client email for session {session_id}")
                errors += 1
                continue

            # Send first, stamp after: a failed stamp repeats the email next sweep, never drops it
            await send_session_reminder_email(
                to=user.email,
                recipient_name=user.display_name,
                title=session.title,
                scheduled_at=format_session_time(session.scheduled_at, user.timezone),
                duration=session.duration or 60,
                meeting_link=session.meeting_link,
            )

            if not SessionRepository.mark_reminder_sent(db, session_id, now):
                logger.warning(f"⚠️ Reminder for session {session_id} was already stamped")

            await notify_session_reminder(db, session, user)

            sent += 1
            logger.info(f"✅ Sent reminder for session {session_id} to {user.email}")

        except Exception as e:
            db.rollback()
            errors += 1
            logger.error(f"❌ Failed to send reminder for session {session_id}: {e}")

    logger.info(f"🔔 Session reminders complete: {processed} processed, {sent} sent, {errors} errors")
    return ReminderSweepResult(processed, sent, errors)


class SessionReminderScheduler:
    """
    Periodic reminder sweep owned by whoever constructs it.

    ``start()`` runs one sweep immediately and then one every ``interval_seconds``
    on an asyncio task. ``stop()`` cancels that task.
    """

    def __init__(
        self,
        interval_seconds: int = SESSION_REMINDER_INTERVAL_SECONDS,
        lookahead_hours: int = SESSION_REMINDER_LOOKAHEAD_HOURS,
        session_factory: Callable[[], Session] = SessionLocal,
    ):
        self.interval_seconds = interval_seconds
        self.lookahead = timedelta(hours=lookahead_hours)
        self.session_factory = session_factory
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.is_running:
            logger.warning("⚠️ Session reminder scheduler already running")
            return
        logger.info(f"🔔 Starting session reminder scheduler (every {self.interval_seconds}s)")
        self._task = asyncio.create_task(self.run_forever())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("🔔 Session reminder scheduler stopped")

    async def run_once(self) -> ReminderSweepResult:
        db = self.session_factory()
        try:
            return await run_session_reminders(db, lookahead=self.lookahead)
        finally:
            db.close()

    async def run_forever(self) -> None:
        """Sweep, sleep, repeat. A failed sweep is logged and the loop carries on."""
        while True:
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"❌ Error in session reminder loop: {e}")
            await asyncio.sleep(self.interval_seconds)
