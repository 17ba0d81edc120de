"""Configuration for pytest tests.

Sets a throwaway in-memory database and switches the in-process reminder
scheduler off before the application is imported.
"""

import os
from datetime import datetime
from typing import Generator
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

# Set test environment before any app module reads it
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SESSION_REMINDERS_ENABLED"] = "false"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["FIREBASE_PROJECT_ID"] = "test-project"
os.environ["RESEND_API_KEY"] = "re_test_key"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"

from app.auth import get_current_user  # noqa: E402
from app.database import Base, SessionLocal, engine, get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models import ClientProfile, CoachingSession, User  # noqa: E402


@pytest.fixture
def database() -> Generator[None, None, None]:
    """Fresh schema for every test."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(database):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def mock_send_email():
    """No test talks to Resend; every session email ends up here."""
    with patch("app.email_service.send_email", new_callable=AsyncMock) as mock_send:
        mock_send.return_value = {"id": "email_test"}
        yield mock_send


def _add(db, obj):
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj


@pytest.fixture
def coach(db) -> User:
    return _add(
        db,
        User(
            firebase_uid="coach-uid",
            email="coach@example.com",
            first_name="Casey",
            last_name="Coach",
            role="coach",
        ),
    )


@pytest.fixture
def client_user(db) -> User:
    return _add(
        db,
        User(
            firebase_uid="client-uid",
            email="client@example.com",
            first_name="Jordan",
            last_name="Client",
            role="client",
        ),
    )


@pytest.fixture
def client_profile(db, client_user) -> ClientProfile:
    return _add(db, ClientProfile(user_id=client_user.id, goals="Run a marathon"))


@pytest.fixture
def other_client(db) -> User:
    user = _add(
        db,
        User(firebase_uid="other-uid", email="other@example.com", first_name="Sam", role="client"),
    )
    _add(db, ClientProfile(user_id=user.id))
    return user


@pytest.fixture
def make_session(db, client_profile):
    """Insert a session row directly, bypassing the lifecycle rules."""

    def _make(**overrides) -> CoachingSession:
        data = {
            "client_id": client_profile.id,
            "title": "Weekly check-in",
            "scheduled_at": datetime(2030, 3, 1, 14, 0),
            "duration": 60,
            "status": "scheduled",
            "requested_by": "coach",
        }
        data.update(overrides)
        return _add(db, CoachingSession(**data))

    return _make


@pytest.fixture
def api_client(db) -> Generator[TestClient, None, None]:
    """TestClient bound to the test database session."""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def act_as():
    """Make the API treat the given user as the authenticated caller."""

    def _act_as(user: User) -> None:
        app.dependency_overrides[get_current_user] = lambda: user

    return _act_as
