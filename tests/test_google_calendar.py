"""Tests for the Google Calendar collaborator."""

from datetime import datetime
from unittest.mock import AsyncMock, Mock, patch

import pytest

from app.domain.sessions.service import SessionLifecycleService
from app.services.google_calendar_service import (
    build_event_body,
    create_calendar_event,
    decrypt_token,
    delete_calendar_event,
    find_calendar_owner,
    get_integration,
    save_integration,
    update_calendar_event,
)


@pytest.fixture
def connected_coach(db, coach):
    save_integration(
        db,
        coach,
        {
            "access_token": "ya29.access",
            "refresh_token": "1//refresh",
            "expires_in": 3600,
            "email": "coach@gmail.com",
            "calendar_id": "primary",
        },
    )
    return coach


def _http_client(response: Mock):
    """Patch httpx.AsyncClient so every verb returns ``response``."""
    client = AsyncMock()
    client.post.return_value = response
    client.put.return_value = response
    client.delete.return_value = response
    patcher = patch("app.services.google_calendar_service.httpx.AsyncClient")
    client_cls = patcher.start()
    client_cls.return_value.__aenter__.return_value = client
    return patcher, client


class TestNotConnected:
    @pytest.mark.asyncio
    async def test_create_returns_none(self, db, coach, make_session):
        session = make_session()
        assert await create_calendar_event(db, coach, session) is None
        assert session.google_calendar_event_id is None

    @pytest.mark.asyncio
    async def test_update_and_delete_return_false(self, db, coach, make_session):
        session = make_session(google_calendar_event_id="evt_1")
        assert await update_calendar_event(db, coach, session) is False
        assert await delete_calendar_event(db, coach, session) is False
        db.refresh(session)
        assert session.google_calendar_event_id == "evt_1"

    def test_no_owner(self, db, coach, make_session):
        assert find_calendar_owner(db, make_session()) is None


class TestConnected:
    def test_tokens_are_stored_encrypted(self, db, connected_coach):
        integration = get_integration(db, connected_coach)
        assert integration.access_token != "ya29.access"
        assert decrypt_token(integration.access_token) == "ya29.access"
        assert decrypt_token(integration.refresh_token) == "1//refresh"

    def test_owner_is_connected_coach(self, db, connected_coach, make_session):
        assert find_calendar_owner(db, make_session()).id == connected_coach.id

    @pytest.mark.asyncio
    async def test_create_stamps_event_id(self, db, connected_coach, make_session):
        session = make_session()
        patcher, client = _http_client(Mock(status_code=200, json=Mock(return_value={"id": "evt_123"}), text=""))
        try:
            event_id = await create_calendar_event(db, connected_coach, session)
        finally:
            patcher.stop()

        assert event_id == "evt_123"
        db.refresh(session)
        assert session.google_calendar_event_id == "evt_123"
        assert session.calendar_synced_at is not None
        assert client.post.call_args.kwargs["headers"] == {"Authorization": "Bearer ya29.access"}

    @pytest.mark.asyncio
    async def test_provider_error_returns_none(self, db, connected_coach, make_session):
        session = make_session()
        patcher, _ = _http_client(Mock(status_code=403, text="forbidden"))
        try:
            assert await create_calendar_event(db, connected_coach, session) is None
        finally:
            patcher.stop()
        assert session.google_calendar_event_id is None

    @pytest.mark.asyncio
    async def test_delete_clears_sync_fields(self, db, connected_coach, make_session):
        session = make_session(google_calendar_event_id="evt_9", calendar_synced_at=datetime(2030, 1, 1))
        patcher, client = _http_client(Mock(status_code=204, text=""))
        try:
            assert await delete_calendar_event(db, connected_coach, session) is True
        finally:
            patcher.stop()

        db.refresh(session)
        assert session.google_calendar_event_id is None
        assert session.calendar_synced_at is None
        assert client.delete.call_args.args[0].endswith("/calendars/primary/events/evt_9")


class TestEventBody:
    def test_body(self, make_session):
        session = make_session(
            scheduled_at=datetime(2030, 3, 1, 14, 0),
            duration=90,
            description="Quarterly goals",
            meeting_link="https://meet.example.com/q1",
        )

        body = build_event_body(session)

        assert body["summary"] == "Weekly check-in"
        assert body["start"] == {"dateTime": "2030-03-01T14:00:00", "timeZone": "UTC"}
        assert body["end"] == {"dateTime": "2030-03-01T15:30:00", "timeZone": "UTC"}
        assert "https://meet.example.com/q1" in body["description"]
        assert body["description"].startswith("Quarterly goals")
        assert body["reminders"]["overrides"] == [
            {"method": "email", "minutes": 1440},
            {"method": "popup", "minutes": 30},
        ]


class TestCalendarOwner:
    """The event stays tied to the calendar it was created in."""

    TOKENS = {
        "access_token": "ya29.client",
        "refresh_token": "1//client",
        "expires_in": 3600,
        "email": "client@gmail.com",
        "calendar_id": "primary",
    }

    @pytest.mark.asyncio
    async def test_create_records_owner_and_delete_clears_it(self, db, connected_coach, make_session):
        session = make_session()
        patcher, _ = _http_client(Mock(status_code=200, json=Mock(return_value={"id": "evt_5"}), text=""))
        try:
            await create_calendar_event(db, connected_coach, session)
            db.refresh(session)
            assert session.calendar_owner_id == connected_coach.id
        finally:
            patcher.stop()

        patcher, _ = _http_client(Mock(status_code=204, text=""))
        try:
            assert await delete_calendar_event(db, connected_coach, session) is True
        finally:
            patcher.stop()
        db.refresh(session)
        assert session.calendar_owner_id is None

    def test_recorded_owner_wins_over_connected_coach(self, db, connected_coach, client_user, make_session):
        save_integration(db, client_user, self.TOKENS)
        session = make_session(google_calendar_event_id="evt_c", calendar_owner_id=client_user.id)

        assert find_calendar_owner(db, session).id == client_user.id

    def test_disconnected_owner_has_no_fallback(self, db, connected_coach, client_user, make_session):
        session = make_session(google_calendar_event_id="evt_c", calendar_owner_id=client_user.id)
        assert find_calendar_owner(db, session) is None

    @pytest.mark.asyncio
    async def test_coach_cancel_removes_event_from_client_calendar(
        self, db, connected_coach, client_user, make_session
    ):
        save_integration(db, client_user, self.TOKENS)
        session = make_session(google_calendar_event_id="evt_c", calendar_owner_id=client_user.id)

        with patch("app.services.google_calendar_service.delete_calendar_event", new_callable=AsyncMock) as delete:
            await SessionLifecycleService(db).cancel_session(session.id, connected_coach)

        assert delete.await_args.args[1].id == client_user.id
