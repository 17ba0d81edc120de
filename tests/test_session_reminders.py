"""Tests for the reminder sweep and its scheduler."""

import asyncio
import logging
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.domain.sessions.repository import SessionRepository
from app.email_service import EmailDeliveryError
from app.models import Notification
from app.services.session_reminders import (
    ReminderSweepResult,
    SessionReminderScheduler,
    run_session_reminders,
)

NOW = datetime(2030, 2, 28, 15, 0)


class TestReminderSweep:
    @pytest.mark.asyncio
    async def test_window_boundary(self, db, make_session, mock_send_email):
        inside = make_session(scheduled_at=NOW + timedelta(hours=23))
        outside = make_session(scheduled_at=NOW + timedelta(hours=25))

        result = await run_session_reminders(db, now=NOW)

        assert result == ReminderSweepResult(processed=1, sent=1, errors=0)
        db.refresh(inside)
        db.refresh(outside)
        assert inside.reminder_sent_at == NOW
        assert outside.reminder_sent_at is None
        assert mock_send_email.await_count == 1

    @pytest.mark.asyncio
    async def test_window_edges_are_inclusive(self, db, make_session):
        make_session(scheduled_at=NOW)
        make_session(scheduled_at=NOW + timedelta(hours=24))
        make_session(scheduled_at=NOW - timedelta(minutes=1))

        result = await run_session_reminders(db, now=NOW)

        assert result.sent == 2

    @pytest.mark.asyncio
    async def test_second_sweep_sends_nothing(self, db, make_session, mock_send_email):
        make_session(scheduled_at=NOW + timedelta(hours=2))

        first = await run_session_reminders(db, now=NOW)
        second = await run_session_reminders(db, now=NOW + timedelta(hours=1))

        assert first.sent == 1
        assert second == ReminderSweepResult(0, 0, 0)
        assert mock_send_email.await_count == 1

    @pytest.mark.asyncio
    async def test_reminder_email_contents(self, db, make_session, mock_send_email):
        make_session(
            scheduled_at=datetime(2030, 3, 1, 14, 0),
            meeting_link="https://meet.example.com/abc",
        )

        await run_session_reminders(db, now=NOW)

        kwargs = mock_send_email.call_args.kwargs
        assert kwargs["to"] == "client@example.com"
        assert "Weekly check-in" in kwargs["subject"]
        assert "Friday, March 1, 2030 at 2:00 PM (UTC)" in kwargs["mjml_content"]
        assert "60 minutes" in kwargs["mjml_content"]
        assert "https://meet.example.com/abc" in kwargs["mjml_content"]

    @pytest.mark.asyncio
    async def test_only_scheduled_sessions(self, db, make_session):
        for status in ("pending_confirmation", "completed", "cancelled"):
            make_session(status=status, scheduled_at=NOW + timedelta(hours=3))

        assert await run_session_reminders(db, now=NOW) == ReminderSweepResult(0, 0, 0)

    @pytest.mark.asyncio
    async def test_send_failure_leaves_stamp_for_retry(self, db, make_session, mock_send_email):
        session = make_session(scheduled_at=NOW + timedelta(hours=5))
        mock_send_email.side_effect = EmailDeliveryError("provider down")

        result = await run_session_reminders(db, now=NOW)

        assert result == ReminderSweepResult(processed=1, sent=0, errors=1)
        db.refresh(session)
        assert session.reminder_sent_at is None

        mock_send_email.side_effect = None
        retry = await run_session_reminders(db, now=NOW + timedelta(hours=1))
        assert retry.sent == 1
        db.refresh(session)
        assert session.reminder_sent_at == NOW + timedelta(hours=1)

    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_the_sweep(self, db, make_session, mock_send_email):
        make_session(scheduled_at=NOW + timedelta(hours=1))
        make_session(scheduled_at=NOW + timedelta(hours=2))
        mock_send_email.side_effect = [EmailDeliveryError("bounce"), {"id": "ok"}]

        result = await run_session_reminders(db, now=NOW)

        assert result == ReminderSweepResult(processed=2, sent=1, errors=1)

    @pytest.mark.asyncio
    async def test_missing_client_email_is_an_error(self, db, client_user, make_session, mock_send_email):
        client_user.email = None
        db.commit()
        make_session(scheduled_at=NOW + timedelta(hours=1))

        result = await run_session_reminders(db, now=NOW)

        assert result == ReminderSweepResult(processed=1, sent=0, errors=1)
        mock_send_email.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_creates_in_app_reminder(self, db, client_user, make_session):
        session = make_session(scheduled_at=NOW + timedelta(hours=1))

        await run_session_reminders(db, now=NOW)

        notification = db.query(Notification).filter(Notification.user_id == client_user.id).one()
        assert notification.type == "session_reminder"
        assert notification.related_id == str(session.id)

    @pytest.mark.asyncio
    async def test_session_cancelled_after_selection_is_skipped(self, db, make_session, mock_send_email):
        session = make_session(scheduled_at=NOW + timedelta(hours=1), status="cancelled")

        with patch.object(SessionRepository, "get_sessions_due_for_reminder", return_value=[session]):
            result = await run_session_reminders(db, now=NOW)

        assert result == ReminderSweepResult(processed=1, sent=0, errors=0)
        mock_send_email.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_query_failure(self, db):
        with patch.object(
            SessionRepository, "get_sessions_due_for_reminder", side_effect=RuntimeError("db gone")
        ):
            result = await run_session_reminders(db, now=NOW)

        assert result == ReminderSweepResult(0, 0, 1)

    @pytest.mark.asyncio
    async def test_failed_stamp_resends_next_sweep(self, db, make_session, mock_send_email):
        session = make_session(scheduled_at=NOW + timedelta(hours=3))

        with patch.object(SessionRepository, "mark_reminder_sent", side_effect=RuntimeError("commit failed")):
            first = await run_session_reminders(db, now=NOW)

        assert first == ReminderSweepResult(processed=1, sent=0, errors=1)
        db.refresh(session)
        assert session.reminder_sent_at is None

        second = await run_session_reminders(db, now=NOW + timedelta(hours=1))
        assert second.sent == 1
        assert mock_send_email.await_count == 2

    @pytest.mark.asyncio
    async def test_bad_stored_timezone_falls_back_to_utc(self, db, client_user, make_session, mock_send_email):
        client_user.timezone = "America"
        db.commit()
        make_session(scheduled_at=datetime(2030, 3, 1, 14, 0))

        result = await run_session_reminders(db, now=NOW)

        assert result.sent == 1
        assert "2:00 PM (UTC)" in mock_send_email.call_args.kwargs["mjml_content"]

    def test_stamp_is_written_once(self, db, make_session):
        session = make_session()
        first = datetime(2030, 2, 28, 15, 0)

        assert SessionRepository.mark_reminder_sent(db, session.id, first) is True
        assert SessionRepository.mark_reminder_sent(db, session.id, first + timedelta(hours=1)) is False

        db.refresh(session)
        assert session.reminder_sent_at == first


class TestSessionReminderScheduler:
    @pytest.mark.asyncio
    async def test_start_runs_immediately_and_stop_cancels(self):
        sweep = AsyncMock(return_value=ReminderSweepResult(0, 0, 0))
        scheduler = SessionReminderScheduler(interval_seconds=3600, session_factory=MagicMock())

        with patch("app.services.session_reminders.run_session_reminders", sweep):
            scheduler.start()
            assert scheduler.is_running
            await asyncio.sleep(0.05)
            await scheduler.stop()

        assert sweep.await_count == 1
        assert not scheduler.is_running

    @pytest.mark.asyncio
    async def test_double_start_is_a_noop(self, caplog):
        sweep = AsyncMock(return_value=ReminderSweepResult(0, 0, 0))
        scheduler = SessionReminderScheduler(interval_seconds=3600, session_factory=MagicMock())

        with patch("app.services.session_reminders.run_session_reminders", sweep):
            scheduler.start()
            task = scheduler._task
            with caplog.at_level(logging.WARNING):
                scheduler.start()
            assert scheduler._task is task
            assert "already running" in caplog.text
            await scheduler.stop()

    @pytest.mark.asyncio
    async def test_loop_survives_a_failed_sweep(self):
        sweep = AsyncMock(side_effect=[RuntimeError("boom")] + [ReminderSweepResult(0, 0, 0)] * 50)
        session_factory = MagicMock()
        scheduler = SessionReminderScheduler(interval_seconds=0.01, session_factory=session_factory)

        with patch("app.services.session_reminders.run_session_reminders", sweep):
            scheduler.start()
            await asyncio.sleep(0.1)
            await scheduler.stop()

        assert sweep.await_count >= 2
        assert session_factory.return_value.close.called

    @pytest.mark.asyncio
    async def test_stop_without_start(self):
        scheduler = SessionReminderScheduler(session_factory=MagicMock())
        await scheduler.stop()
        assert not scheduler.is_running

    @pytest.mark.asyncio
    async def test_run_once_uses_lookahead(self):
        sweep = AsyncMock(return_value=ReminderSweepResult(1, 1, 0))
        scheduler = SessionReminderScheduler(lookahead_hours=48, session_factory=MagicMock())

        with patch("app.services.session_reminders.run_session_reminders", sweep):
            result = await scheduler.run_once()

        assert result.sent == 1
        assert sweep.call_args.kwargs["lookahead"] == timedelta(hours=48)


class TestWorkerTask:
    @pytest.mark.asyncio
    async def test_cron_task_returns_counts(self):
        from app.worker import WorkerSettings, session_reminders_task

        sweep = AsyncMock(return_value=ReminderSweepResult(3, 2, 1))
        with patch("app.services.session_reminders.run_session_reminders", sweep):
            result = await session_reminders_task({})

        assert result == {"processed": 3, "sent": 2, "errors": 1}
        assert sweep.call_args.kwargs["lookahead"] == timedelta(hours=24)
        assert session_reminders_task in WorkerSettings.functions
