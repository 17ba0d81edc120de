"""
Unified Notification Service
Creates the in-app notification record and sends the matching email for every
session lifecycle event. Both channels are best-effort: failures are logged and
reported in the result dict, never raised to the caller.
"""

import logging
from typing import Awaitable, Callable, Optional

from sqlalchemy.orm import Session

from ..domain.sessions.repository import SessionRepository
from ..domain.sessions.time_utils import format_session_time
from ..models import CoachingSession, User

logger = logging.getLogger(__name__)

NOTIFICATION_TYPES = (
    "session_request",
    "session_scheduled",
    "session_reminder",
    "session_cancelled",
)


async def notify_user(
    db: Session,
    user: User,
    notification_type: str,
    title: str,
    message: str,
    related_id: Optional[str] = None,
    email_func: Optional[Callable[..., Awaitable[dict]]] = None,
    email_kwargs: Optional[dict] = None,
) -> dict:
    """
    Unified notification sender for in-app records and email

    Args:
        db: Database session
        user: Recipient
        notification_type: One of NOTIFICATION_TYPES
        title: Notification title
        message: Notification body
        related_id: Id of the related entity (the session)
        email_func: Email function to call, skipped when None
        email_kwargs: Kwargs for email function, ``to`` is filled in here

    Returns:
        Dict with notification_created and email_sent status
    """
    result = {
        "notification_created": False,
        "email_sent": False,
        "notification_error": None,
        "email_error": None,
    }

    try:
        SessionRepository.create_notification(
            db,
            user_id=user.id,
            notification_type=notification_type,
            title=title,
            message=message,
            related_id=related_id,
        )
        result["notification_created"] = True
    except Exception as e:
        db.rollback()
        result["notification_error"] = str(e)
        logger.error(f"❌ Failed to create {notification_type} notification for user {user.id}: {e}")

    if email_func is None:
        return result

    if not user.email:
        logger.debug(f"⚠️ No email address for {notification_type} notification to user {user.id}")
        return result

    try:
        logger.info(f"📧 Sending {notification_type} email to {user.email}")
        await email_func(to=user.email, **(email_kwargs or {}))
        result["email_sent"] = True
        logger.info(f"✅ {notification_type} email sent successfully to {user.email}")
    except Exception as e:
        result["email_error"] = str(e)
        logger.error(f"❌ Failed to send {notification_type} email to {user.email}: {e}")

    return result


def _coaches(db: Session) -> list[User]:
    coaches = SessionRepository.get_users_by_role(db, "coach")
    if not coaches:
        logger.warning("⚠️ No coach account found - coach notifications skipped")
    return coaches


def _client_user(db: Session, session: CoachingSession) -> Optional[User]:
    profile = SessionRepository.get_client_profile(db, session.client_id)
    if not profile:
        logger.warning(f"⚠️ No client profile {session.client_id} for session {session.id}")
        return None
    user = SessionRepository.get_user(db, profile.user_id)
    if not user:
        logger.warning(f"⚠️ No user for client profile {profile.id} (session {session.id})")
    return user


def recipients_for(db: Session, session: CoachingSession, party: str) -> list[User]:
    """Users standing for ``party`` on this session: the client's user, or every coach"""
    if party == "coach":
        return _coaches(db)
    user = _client_user(db, session)
    return [user] if user else []


async def notify_session_requested(db: Session, session: CoachingSession) -> list[dict]:
    """Tell the party that did not request the session that it awaits their confirmation"""
    from ..email_service import send_session_scheduled_email

    results = []
    if session.requested_by == "coach":
        for user in recipients_for(db, session, "client"):
            results.append(
                await notify_user(
                    db,
                    user,
                    "session_scheduled",
                    "New Session Request",
                    f'Your coach has proposed a session "{session.title}". Please confirm.',
                    related_id=str(session.id),
                    email_func=send_session_scheduled_email,
                    email_kwargs=_scheduled_email_kwargs(session, user, is_client=True),
                )
            )
    else:
        for user in recipients_for(db, session, "coach"):
            results.append(
                await notify_user(
                    db,
                    user,
                    "session_request",
                    "New Session Request",
                    f'A client has requested a session: "{session.title}". Please review and confirm.',
                    related_id=str(session.id),
                    email_func=send_session_scheduled_email,
                    email_kwargs=_scheduled_email_kwargs(session, user, is_client=False),
                )
            )
    return results


async def notify_session_confirmed(db: Session, session: CoachingSession, confirmed_by: str) -> list[dict]:
    """Tell the original requester their session is confirmed"""
    from ..email_service import send_session_confirmed_email

    results = []
    for user in recipients_for(db, session, session.requested_by):
        results.append(
            await notify_user(
                db,
                user,
                "session_scheduled",
                "Session Confirmed",
                f'Your session "{session.title}" has been confirmed by your {confirmed_by}.',
                related_id=str(session.id),
                email_func=send_session_confirmed_email,
                email_kwargs={
                    "recipient_name": user.display_name,
                    "title": session.title,
                    "scheduled_at": format_session_time(session.scheduled_at, user.timezone),
                    "duration": session.duration or 60,
                    "meeting_link": session.meeting_link,
                    "confirmed_by": confirmed_by,
                },
            )
        )
    return results


async def notify_session_cancelled(db: Session, session: CoachingSession, cancelled_by: str) -> list[dict]:
    """Tell the other party that the session was cancelled"""
    from ..email_service import send_session_cancelled_email

    other_party = "client" if cancelled_by == "coach" else "coach"
    results = []
    for user in recipients_for(db, session, other_party):
        results.append(
            await notify_user(
                db,
                user,
                "session_cancelled",
                "Session Cancelled",
                f'The session "{session.title}" has been cancelled by your {cancelled_by}.',
                related_id=str(session.id),
                email_func=send_session_cancelled_email,
                email_kwargs={
                    "recipient_name": user.display_name,
                    "title": session.title,
                    "scheduled_at": format_session_time(session.scheduled_at, user.timezone),
                    "cancelled_by": cancelled_by.capitalize(),
                },
            )
        )
    return results


async def notify_session_reminder(db: Session, session: CoachingSession, user: User) -> dict:
    """In-app half of the reminder; the email is sent by the reminder sweep itself"""
    return await notify_user(
        db,
        user,
        "session_reminder",
        "Upcoming Session",
        f'Reminder: your session "{session.title}" starts '
        f"{format_session_time(session.scheduled_at, user.timezone)}.",
        related_id=str(session.id),
    )


def _scheduled_email_kwargs(session: CoachingSession, user: User, is_client: bool) -> dict:
    return {
        "recipient_name": user.display_name,
        "title": session.title,
        "scheduled_at": format_session_time(session.scheduled_at, user.timezone),
        "duration": session.duration or 60,
        "meeting_link": session.meeting_link,
        "is_client": is_client,
    }
