"""Tests for the notification collaborator."""

from unittest.mock import AsyncMock, patch

import pytest

from app.domain.sessions.repository import SessionRepository
from app.models import Notification
from app.services.notification_service import notify_user


class TestNotifyUser:
    @pytest.mark.asyncio
    async def test_creates_record_and_sends_email(self, db, client_user):
        email_func = AsyncMock(return_value={"id": "email_1"})

        result = await notify_user(
            db,
            client_user,
            "session_scheduled",
            "New Session Request",
            "Please confirm",
            related_id="7",
            email_func=email_func,
            email_kwargs={"title": "Kickoff"},
        )

        assert result == {
            "notification_created": True,
            "email_sent": True,
            "notification_error": None,
            "email_error": None,
        }
        email_func.assert_awaited_once_with(to="client@example.com", title="Kickoff")
        notification = db.query(Notification).one()
        assert notification.related_id == "7"
        assert notification.is_read is False

    @pytest.mark.asyncio
    async def test_email_failure_is_reported_not_raised(self, db, client_user):
        email_func = AsyncMock(side_effect=RuntimeError("smtp timeout"))

        result = await notify_user(
            db, client_user, "session_cancelled", "Cancelled", "Gone", email_func=email_func
        )

        assert result["notification_created"] is True
        assert result["email_sent"] is False
        assert "smtp timeout" in result["email_error"]

    @pytest.mark.asyncio
    async def test_notification_failure_still_sends_email(self, db, client_user):
        email_func = AsyncMock()

        with patch.object(SessionRepository, "create_notification", side_effect=RuntimeError("insert failed")):
            result = await notify_user(
                db, client_user, "session_reminder", "Soon", "Tomorrow", email_func=email_func
            )

        assert result["notification_created"] is False
        assert "insert failed" in result["notification_error"]
        assert result["email_sent"] is True

    @pytest.mark.asyncio
    async def test_user_without_email_gets_in_app_only(self, db, client_user):
        client_user.email = None
        db.commit()
        email_func = AsyncMock()

        result = await notify_user(
            db, client_user, "session_scheduled", "New", "Confirm", email_func=email_func
        )

        assert result["notification_created"] is True
        assert result["email_sent"] is False
        email_func.assert_not_awaited()
