"""Session routers - FastAPI endpoints for the client portal, the coach dashboard
and session-level integrations (calendar sync, reminder sweep)"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_client, require_coach
from ...database import get_db
from ...models import User
from .schemas import (
    CalendarSyncResponse,
    ReflectionUpdate,
    ReminderSweepResponse,
    SessionCreate,
    SessionParty,
    SessionResponse,
    SessionUpdate,
)
from .service import SessionLifecycleService

logger = logging.getLogger(__name__)

client_router = APIRouter(prefix="/client/sessions", tags=["Client Sessions"])
coach_router = APIRouter(prefix="/coach/sessions", tags=["Coach Sessions"])
router = APIRouter(prefix="/sessions", tags=["Sessions"])


def get_session_service(db: Session = Depends(get_db)) -> SessionLifecycleService:
    """Dependency injection for SessionLifecycleService"""
    return SessionLifecycleService(db)


def _for_client(session) -> SessionResponse:
    return SessionResponse.from_model(session, hide_private_notes=True)


def _ensure_calendar_owner(session, user: User) -> None:
    if session.calendar_owner_id and session.calendar_owner_id != user.id:
        raise HTTPException(status_code=409, detail="Session is synced to another user's Google Calendar")


# ============================================================================
# CLIENT PORTAL
# ============================================================================


@client_router.get("", response_model=list[SessionResponse])
async def list_client_sessions(
    current_user: User = Depends(require_client),
    service: SessionLifecycleService = Depends(get_session_service),
):
    """Sessions belonging to the signed-in client, newest first"""
    return [_for_client(s) for s in service.list_sessions_for(current_user)]


@client_router.get("/{session_id}", response_model=SessionResponse)
async def get_client_session(
    session_id: int,
    current_user: User = Depends(require_client),
    service: SessionLifecycleService = Depends(get_session_service),
):
    return _for_client(service.get_session_for(current_user, session_id))


@client_router.post("", response_model=SessionResponse, status_code=201)
async def request_client_session(
    data: SessionCreate,
    current_user: User = Depends(require_client),
    service: SessionLifecycleService = Depends(get_session_service),
):
    """Client requests a session; the coach confirms it"""
    session = await service.request_session(SessionParty.CLIENT, data, current_user)
    return _for_client(session)


@client_router.patch("/{session_id}/confirm", response_model=SessionResponse)
async def confirm_client_session(
    session_id: int,
    current_user: User = Depends(require_client),
    service: SessionLifecycleService = Depends(get_session_service),
):
    """Client confirms a session the coach proposed"""
    session = await service.confirm_session(SessionParty.CLIENT, session_id, current_user)
    return _for_client(session)


@client_router.patch("/{session_id}/cancel", response_model=SessionResponse)
async def cancel_client_session(
    session_id: int,
    current_user: User = Depends(require_client),
    service: SessionLifecycleService = Depends(get_session_service),
):
    session = await service.cancel_session(session_id, current_user)
    return _for_client(session)


@client_router.patch("/{session_id}/reflection", response_model=SessionResponse)
async def record_client_reflection(
    session_id: int,
    data: ReflectionUpdate,
    current_user: User = Depends(require_client),
    service: SessionLifecycleService = Depends(get_session_service),
):
    session = await service.record_reflection(current_user, session_id, data.reflection)
    return _for_client(session)


# ============================================================================
# COACH DASHBOARD
# ============================================================================


@coach_router.get("", response_model=list[SessionResponse])
async def list_coach_sessions(
    current_user: User = Depends(require_coach),
    service: SessionLifecycleService = Depends(get_session_service),
):
    return [SessionResponse.from_model(s) for s in service.list_sessions_for(current_user)]


@coach_router.get("/{session_id}", response_model=SessionResponse)
async def get_coach_session(
    session_id: int,
    current_user: User = Depends(require_coach),
    service: SessionLifecycleService = Depends(get_session_service),
):
    return SessionResponse.from_model(service.get_session_for(current_user, session_id))


@coach_router.post("", response_model=SessionResponse, status_code=201)
async def request_coach_session(
    data: SessionCreate,
    current_user: User = Depends(require_coach),
    service: SessionLifecycleService = Depends(get_session_service),
):
    """Coach proposes a session for a client; the client confirms it"""
    session = await service.request_session(SessionParty.COACH, data, current_user)
    return SessionResponse.from_model(session)


@coach_router.patch("/{session_id}/confirm", response_model=SessionResponse)
async def confirm_coach_session(
    session_id: int,
    current_user: User = Depends(require_coach),
    service: SessionLifecycleService = Depends(get_session_service),
):
    """Coach confirms a session the client requested"""
    session = await service.confirm_session(SessionParty.COACH, session_id, current_user)
    return SessionResponse.from_model(session)


@coach_router.patch("/{session_id}/complete", response_model=SessionResponse)
async def complete_coach_session(
    session_id: int,
    current_user: User = Depends(require_coach),
    service: SessionLifecycleService = Depends(get_session_service),
):
    session = await service.complete_session(session_id, current_user)
    return SessionResponse.from_model(session)


@coach_router.patch("/{session_id}/cancel", response_model=SessionResponse)
async def cancel_coach_session(
    session_id: int,
    current_user: User = Depends(require_coach),
    service: SessionLifecycleService = Depends(get_session_service),
):
    session = await service.cancel_session(session_id, current_user)
    return SessionResponse.from_model(session)


@coach_router.patch("/{session_id}", response_model=SessionResponse)
async def update_coach_session(
    session_id: int,
    data: SessionUpdate,
    current_user: User = Depends(require_coach),
    service: SessionLifecycleService = Depends(get_session_service),
):
    """Edit session details. A status change follows the same rules as cancel/complete."""
    session = await service.update_session_details(session_id, data, current_user)
    return SessionResponse.from_model(session)


# ============================================================================
# CALENDAR SYNC & REMINDERS
# ============================================================================


@router.post("/reminders/run", response_model=ReminderSweepResponse)
async def run_reminder_sweep(
    current_user: User = Depends(require_coach),
    db: Session = Depends(get_db),
):
    """Run one reminder sweep now instead of waiting for the scheduler"""
    from ...services.session_reminders import run_session_reminders

    logger.info(f"🔔 Manual reminder sweep triggered by user {current_user.id}")
    result = await run_session_reminders(db)
    return ReminderSweepResponse(**result._asdict())


@router.post("/{session_id}/sync-calendar", response_model=CalendarSyncResponse)
async def sync_session_to_calendar(
    session_id: int,
    current_user: User = Depends(get_current_user),
    service: SessionLifecycleService = Depends(get_session_service),
    db: Session = Depends(get_db),
):
    """Create the session's Google Calendar event, or update it if it already exists"""
    from ...services.google_calendar_service import (
        create_calendar_event,
        get_integration,
        update_calendar_event,
    )

    session = service.get_session_for(current_user, session_id)
    _ensure_calendar_owner(session, current_user)
    if not get_integration(db, current_user):
        raise HTTPException(status_code=400, detail="Google Calendar not connected")

    if session.google_calendar_event_id:
        success = await update_calendar_event(db, current_user, session)
    else:
        success = await create_calendar_event(db, current_user, session) is not None

    if not success:
        raise HTTPException(status_code=502, detail="Failed to sync session to Google Calendar")

    return CalendarSyncResponse(success=True, eventId=session.google_calendar_event_id)


@router.delete("/{session_id}/sync-calendar", response_model=CalendarSyncResponse)
async def unsync_session_from_calendar(
    session_id: int,
    current_user: User = Depends(get_current_user),
    service: SessionLifecycleService = Depends(get_session_service),
    db: Session = Depends(get_db),
):
    from ...services.google_calendar_service import delete_calendar_event

    session = service.get_session_for(current_user, session_id)
    if not session.google_calendar_event_id:
        raise HTTPException(status_code=400, detail="Session is not synced to Google Calendar")
    _ensure_calendar_owner(session, current_user)

    if not await delete_calendar_event(db, current_user, session):
        raise HTTPException(status_code=502, detail="Failed to remove Google Calendar event")

    return CalendarSyncResponse(success=True, eventId=None)
