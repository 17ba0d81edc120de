"""
Google Calendar Service
Handles OAuth token storage and calendar event creation, updates, and deletion
for coaching sessions
"""

import base64
import hashlib
import logging
from datetime import timedelta
from typing import Any, Optional

import httpx
from cryptography.fernet import Fernet
from sqlalchemy.orm import Session

from ..config import GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET, GOOGLE_REDIRECT_URI, SECRET_KEY
from ..domain.sessions.time_utils import utcnow
from ..models import CoachingSession, User
from ..models_google_calendar import GoogleCalendarIntegration

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"  # noqa: S105 - OAuth endpoint URL
GOOGLE_REVOKE_URL = "https://oauth2.googleapis.com/revoke"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"
GOOGLE_CALENDAR_SCOPES = [
    "https://www.googleapis.com/auth/calendar.events",
    "https://www.googleapis.com/auth/userinfo.email",
]


class CalendarAuthError(Exception):
    """OAuth exchange with Google failed"""


def get_cipher() -> Fernet:
    # Fernet needs 32 url-safe base64 bytes; derive them from SECRET_KEY
    key = base64.urlsafe_b64encode(hashlib.sha256(SECRET_KEY.encode()).digest())
    return Fernet(key)


def encrypt_token(token: str) -> str:
    return get_cipher().encrypt(token.encode()).decode()


def decrypt_token(token: str) -> str:
    return get_cipher().decrypt(token.encode()).decode()


def get_integration(db: Session, user: User) -> Optional[GoogleCalendarIntegration]:
    return (
        db.query(GoogleCalendarIntegration)
        .filter(GoogleCalendarIntegration.user_id == user.id)
        .first()
    )


def find_calendar_owner(db: Session, session: CoachingSession) -> Optional[User]:
    """
    The user whose calendar holds the session's event. That is the user who
    synced it; sessions without a recorded owner fall back to the first coach
    with a connected calendar, then the session's client if connected.
    """
    from ..domain.sessions.repository import SessionRepository

    if session.calendar_owner_id:
        owner = SessionRepository.get_user(db, session.calendar_owner_id)
        if owner and get_integration(db, owner):
            return owner
        logger.info(f"ℹ️ Calendar owner for session {session.id} is no longer connected")
        return None

    candidates = SessionRepository.get_users_by_role(db, "coach")
    profile = SessionRepository.get_client_profile(db, session.client_id)
    if profile:
        client_user = SessionRepository.get_user(db, profile.user_id)
        if client_user:
            candidates.append(client_user)

    for user in candidates:
        if get_integration(db, user):
            return user
    logger.info(f"ℹ️ No connected calendar found for session {session.id}")
    return None


def build_authorization_url(user: User) -> str:
    params = {
        "client_id": GOOGLE_CLIENT_ID,
        "redirect_uri": GOOGLE_REDIRECT_URI,
        "response_type": "code",
        "scope": " ".join(GOOGLE_CALENDAR_SCOPES),
        "access_type": "offline",
        "prompt": "consent",
        "state": user.firebase_uid,
    }
    return str(httpx.URL(GOOGLE_AUTH_URL, params=params))


async def exchange_code_for_tokens(code: str) -> dict[str, Any]:
    """
    Exchange an authorization code for tokens and look up the Google account

    Returns:
        Dict with access_token, refresh_token, expires_in, email and calendar_id

    Raises:
        CalendarAuthError: Google rejected the code or returned no access token
    """
    async with httpx.AsyncClient() as client:
        token_response = await client.post(
            GOOGLE_TOKEN_URL,
            data={
                "code": code,
                "client_id": GOOGLE_CLIENT_ID,
                "client_secret": GOOGLE_CLIENT_SECRET,
                "redirect_uri": GOOGLE_REDIRECT_URI,
                "grant_type": "authorization_code",
            },
        )
        if token_response.status_code != 200:
            logger.error(f"❌ Token exchange failed: {token_response.text}")
            raise CalendarAuthError("Failed to exchange authorization code")

        tokens = token_response.json()
        access_token = tokens.get("access_token")
        if not access_token:
            raise CalendarAuthError("Invalid token response")

        headers = {"Authorization": f"Bearer {access_token}"}
        user_info_response = await client.get(GOOGLE_USERINFO_URL, headers=headers)
        google_email = None
        if user_info_response.status_code == 200:
            google_email = user_info_response.json().get("email")
        else:
            logger.warning(f"⚠️ Failed to get Google user info: {user_info_response.text}")

        calendar_id = "primary"
        calendar_response = await client.get(
            f"{GOOGLE_CALENDAR_API}/users/me/calendarList/primary", headers=headers
        )
        if calendar_response.status_code == 200:
            calendar_id = calendar_response.json().get("id", "primary")

    return {
        "access_token": access_token,
        "refresh_token": tokens.get("refresh_token"),
        "expires_in": tokens.get("expires_in", 3600),
        "email": google_email,
        "calendar_id": calendar_id,
    }


def save_integration(db: Session, user: User, tokens: dict[str, Any]) -> GoogleCalendarIntegration:
    """Create or update the user's integration row with freshly encrypted tokens"""
    integration = get_integration(db, user)
    expires_at = utcnow() + timedelta(seconds=tokens.get("expires_in", 3600))
    refresh_token = tokens.get("refresh_token")

    if integration:
        integration.access_token = encrypt_token(tokens["access_token"])
        # Google only returns a refresh token on first consent
        if refresh_token:
            integration.refresh_token = encrypt_token(refresh_token)
        integration.token_expires_at = expires_at
        integration.google_user_email = tokens.get("email")
        integration.google_calendar_id = tokens.get("calendar_id") or "primary"
        integration.updated_at = utcnow()
    else:
        integration = GoogleCalendarIntegration(
            user_id=user.id,
            access_token=encrypt_token(tokens["access_token"]),
            refresh_token=encrypt_token(refresh_token) if refresh_token else None,
            token_expires_at=expires_at,
            google_user_email=tokens.get("email"),
            google_calendar_id=tokens.get("calendar_id") or "primary",
            auto_sync_enabled=True,
        )
        db.add(integration)

    db.commit()
    db.refresh(integration)
    return integration


async def revoke_and_delete_integration(db: Session, integration: GoogleCalendarIntegration) -> None:
    try:
        access_token = decrypt_token(integration.access_token)
        async with httpx.AsyncClient() as client:
            await client.post(GOOGLE_REVOKE_URL, params={"token": access_token})
    except Exception as e:
        logger.warning(f"⚠️ Failed to revoke Google tokens: {str(e)}")

    db.delete(integration)
    db.commit()


async def get_valid_access_token(integration: GoogleCalendarIntegration, db: Session) -> Optional[str]:
    """
    Get a valid access token, refreshing if necessary
    Returns None if refresh fails
    """
    try:
        expires_at = integration.token_expires_at
        if expires_at is None or expires_at <= utcnow() + timedelta(minutes=5):
            if not integration.refresh_token:
                logger.error("❌ Google Calendar token expired and no refresh token stored")
                return None

            logger.info("🔄 Google Calendar token expired, refreshing...")
            refresh_token = decrypt_token(integration.refresh_token)

            async with httpx.AsyncClient() as client:
                response = await client.post(
                    GOOGLE_TOKEN_URL,
                    data={
                        "client_id": GOOGLE_CLIENT_ID,
                        "client_secret": GOOGLE_CLIENT_SECRET,
                        "refresh_token": refresh_token,
                        "grant_type": "refresh_token",
                    },
                )

            if response.status_code != 200:
                logger.error(f"❌ Token refresh failed: {response.text}")
                return None

            tokens = response.json()
            new_access_token = tokens.get("access_token")
            if not new_access_token:
                logger.error("❌ No access token in refresh response")
                return None

            integration.access_token = encrypt_token(new_access_token)
            integration.token_expires_at = utcnow() + timedelta(seconds=tokens.get("expires_in", 3600))
            db.commit()

            logger.info("✅ Google Calendar token refreshed successfully")
            return new_access_token

        return decrypt_token(integration.access_token)

    except Exception as e:
        logger.error(f"❌ Error getting valid access token: {str(e)}")
        return None


def build_event_body(session: CoachingSession) -> dict[str, Any]:
    """Event payload: start/end in UTC, end = start + duration"""
    start = session.scheduled_at
    end = start + timedelta(minutes=session.duration or 60)

    description = session.description or ""
    if session.meeting_link:
        description = f"{description}\n\nMeeting Link: {session.meeting_link}".strip()

    return {
        "summary": session.title,
        "description": description,
        "start": {"dateTime": start.isoformat(), "timeZone": "UTC"},
        "end": {"dateTime": end.isoformat(), "timeZone": "UTC"},
        "reminders": {
            "useDefault": False,
            "overrides": [
                {"method": "email", "minutes": 24 * 60},
                {"method": "popup", "minutes": 30},
            ],
        },
    }


async def _connected_token(db: Session, user: User) -> tuple[Optional[GoogleCalendarIntegration], Optional[str]]:
    integration = get_integration(db, user)
    if not integration or not integration.auto_sync_enabled:
        logger.info(f"ℹ️ Google Calendar not connected or auto-sync disabled for user {user.id}")
        return None, None

    access_token = await get_valid_access_token(integration, db)
    if not access_token:
        logger.error(f"❌ Failed to get valid access token for user {user.id}")
        return integration, None
    return integration, access_token


async def create_calendar_event(db: Session, user: User, session: CoachingSession) -> Optional[str]:
    """
    Create a Google Calendar event for a session
    Returns the Google Calendar event ID if successful, None otherwise
    """
    try:
        integration, access_token = await _connected_token(db, user)
        if not access_token:
            return None

        calendar_id = integration.google_calendar_id or "primary"
        async with httpx.AsyncClient() as client:
            response = await client.post(
                f"{GOOGLE_CALENDAR_API}/calendars/{calendar_id}/events",
                headers={"Authorization": f"Bearer {access_token}"},
                json=build_event_body(session),
            )

        if response.status_code not in (200, 201):
            logger.error(f"❌ Failed to create calendar event for session {session.id}: {response.text}")
            return None

        event_id = response.json().get("id")
        session.google_calendar_event_id = event_id
        session.calendar_owner_id = user.id
        session.calendar_synced_at = utcnow()
        db.commit()

        logger.info(f"📅 Google Calendar event created for session {session.id}: {event_id}")
        return event_id

    except Exception as e:
        db.rollback()
        logger.error(f"❌ Error creating calendar event for session {session.id}: {str(e)}")
        return None


async def update_calendar_event(db: Session, user: User, session: CoachingSession) -> bool:
    """
    Update the session's existing Google Calendar event
    Returns True if successful, False otherwise
    """
    if not session.google_calendar_event_id:
        return False

    try:
        integration, access_token = await _connected_token(db, user)
        if not access_token:
            return False

        calendar_id = integration.google_calendar_id or "primary"
        async with httpx.AsyncClient() as client:
            response = await client.put(
                f"{GOOGLE_CALENDAR_API}/calendars/{calendar_id}/events/{session.google_calendar_event_id}",
                headers={"Authorization": f"Bearer {access_token}"},
                json=build_event_body(session),
            )

        if response.status_code != 200:
            logger.error(f"❌ Failed to update calendar event for session {session.id}: {response.text}")
            return False

        session.calendar_synced_at = utcnow()
        db.commit()

        logger.info(f"📅 Google Calendar event updated: {session.google_calendar_event_id}")
        return True

    except Exception as e:
        db.rollback()
        logger.error(f"❌ Error updating calendar event for session {session.id}: {str(e)}")
        return False


async def delete_calendar_event(db: Session, user: User, session: CoachingSession) -> bool:
    """
    Delete the session's Google Calendar event and clear the sync fields
    Returns True if successful, False otherwise
    """
    if not session.google_calendar_event_id:
        return False

    try:
        integration = get_integration(db, user)
        if not integration:
            logger.info(f"ℹ️ Google Calendar not connected for user {user.id}")
            return False

        access_token = await get_valid_access_token(integration, db)
        if not access_token:
            logger.error(f"❌ Failed to get valid access token for user {user.id}")
            return False

        calendar_id = integration.google_calendar_id or "primary"
        async with httpx.AsyncClient() as client:
            response = await client.delete(
                f"{GOOGLE_CALENDAR_API}/calendars/{calendar_id}/events/{session.google_calendar_event_id}",
                headers={"Authorization": f"Bearer {access_token}"},
            )

        # 410 Gone: already deleted on Google's side
        if response.status_code not in (200, 204, 410):
            logger.error(f"❌ Failed to delete calendar event for session {session.id}: {response.text}")
            return False

        event_id = session.google_calendar_event_id
        session.google_calendar_event_id = None
        session.calendar_owner_id = None
        session.calendar_synced_at = None
        db.commit()

        logger.info(f"📅 Google Calendar event deleted: {event_id}")
        return True

    except Exception as e:
        db.rollback()
        logger.error(f"❌ Error deleting calendar event for session {session.id}: {str(e)}")
        return False
