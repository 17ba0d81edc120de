"""Session service - Lifecycle state machine and confirmation protocol

A session is created in ``pending_confirmation`` by either party and moves to
``scheduled`` only when the *other* party confirms it. From ``scheduled`` the
coach may complete it and either party may cancel it. ``completed`` and
``cancelled`` are terminal while ENFORCE_TERMINAL_STATES is on.

Every status change is a conditional UPDATE on the current status, so two
requests racing on one row cannot both apply. Notifications, emails and
calendar sync run after the change is committed and never fail the operation.
"""

import logging
from typing import Awaitable, Optional, Union

from sqlalchemy.orm import Session

from ...config import DEFAULT_SESSION_DURATION, ENFORCE_TERMINAL_STATES
from ...models import SESSION_STATUSES, ClientProfile, CoachingSession, User
from ...utils.sanitization import clean_text
from .exceptions import Forbidden, InvalidTransition, NotFound, ValidationError, WrongParty
from .repository import SessionRepository
from .schemas import SessionCreate, SessionParty, SessionStatus, SessionUpdate
from .time_utils import ensure_not_in_past, resolve_scheduled_at, validate_duration

logger = logging.getLogger(__name__)

MIN_REFLECTION_LENGTH = 10

TERMINAL_STATUSES = {"completed", "cancelled"}

# pending_confirmation -> scheduled only happens through confirm_session
ALLOWED_TRANSITIONS = {
    "pending_confirmation": {"cancelled"},
    "scheduled": {"completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}

# Patch keys that edit metadata, mapped to their columns
_DETAIL_FIELDS = {
    "title": "title",
    "description": "description",
    "meetingLink": "meeting_link",
    "prepNotes": "prep_notes",
    "sessionNotes": "session_notes",
    "notesVisibleToClient": "notes_visible_to_client",
}
_CALENDAR_FIELDS = {"title", "description", "scheduled_at", "duration", "meeting_link"}


def party_of(user: User) -> SessionParty:
    try:
        return SessionParty(user.role)
    except ValueError as e:
        raise Forbidden(f"Role '{user.role}' cannot take part in sessions") from e


class SessionLifecycleService:
    """Service layer for session lifecycle business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = SessionRepository()

    # ------------------------------------------------------------------
    # Lookups and visibility
    # ------------------------------------------------------------------

    def _get_session(self, session_id: int) -> CoachingSession:
        session = self.repo.get_session(self.db, session_id)
        if not session:
            raise NotFound("Session not found")
        return session

    def _client_profile_for(self, user: User) -> Optional[ClientProfile]:
        return self.repo.get_client_profile_by_user(self.db, user.id)

    def _ensure_party(self, session: CoachingSession, actor: User) -> SessionParty:
        """Coaches are party to every session, clients only to their own"""
        party = party_of(actor)
        if party is SessionParty.CLIENT:
            profile = self._client_profile_for(actor)
            if not profile or profile.id != session.client_id:
                raise Forbidden("You do not have access to this session")
        return party

    def get_session_for(self, actor: User, session_id: int) -> CoachingSession:
        session = self._get_session(session_id)
        self._ensure_party(session, actor)
        return session

    def list_sessions_for(self, actor: User) -> list[CoachingSession]:
        if party_of(actor) is SessionParty.COACH:
            return self.repo.get_all_sessions(self.db)
        profile = self._client_profile_for(actor)
        if not profile:
            return []
        return self.repo.get_sessions_by_client(self.db, profile.id)

    # ------------------------------------------------------------------
    # Request / confirm
    # ------------------------------------------------------------------

    async def request_session(
        self, initiator: Union[SessionParty, str], details: SessionCreate, actor: User
    ) -> CoachingSession:
        """
        Create a session in pending_confirmation on behalf of ``initiator``.

        A client always requests for their own profile. A coach must name the
        client profile in ``details.clientId``. The other party is notified.
        """
        initiator = SessionParty(initiator)
        if party_of(actor) is not initiator:
            raise Forbidden(f"Only a {initiator.value} can request a session here")

        if initiator is SessionParty.CLIENT:
            profile = self._client_profile_for(actor)
            if not profile:
                raise NotFound("Client profile not found")
        else:
            if details.clientId is None:
                raise ValidationError("clientId is required")
            profile = self.repo.get_client_profile(self.db, details.clientId)
            if not profile:
                raise NotFound("Client not found")

        title = clean_text(details.title)
        if not title:
            raise ValidationError("Title is required")

        scheduled_at = resolve_scheduled_at(details.scheduledAt, details.timezone or actor.timezone)
        ensure_not_in_past(scheduled_at)
        duration = validate_duration(
            details.duration if details.duration is not None else DEFAULT_SESSION_DURATION
        )

        session = self.repo.create_session(
            self.db,
            client_id=profile.id,
            title=title,
            description=clean_text(details.description) or None,
            scheduled_at=scheduled_at,
            duration=duration,
            status=SessionStatus.PENDING_CONFIRMATION.value,
            requested_by=initiator.value,
            meeting_link=clean_text(details.meetingLink) or None,
            prep_notes=clean_text(details.prepNotes) or None,
        )
        logger.info(
            f"✅ Session {session.id} requested by {initiator.value} for client {profile.id} "
            f"at {scheduled_at.isoformat()}Z"
        )

        from ...services.notification_service import notify_session_requested

        await self._side_effect("session request notification", session, notify_session_requested(self.db, session))
        return session

    async def confirm_session(
        self, confirmer: Union[SessionParty, str], session_id: int, actor: User
    ) -> CoachingSession:
        """
        Move a pending session to scheduled. Only the party that did not
        request the session may confirm it.
        """
        confirmer = SessionParty(confirmer)
        session = self._get_session(session_id)
        if self._ensure_party(session, actor) is not confirmer:
            raise Forbidden(f"Only a {confirmer.value} can confirm here")

        if session.status != SessionStatus.PENDING_CONFIRMATION.value:
            raise InvalidTransition(
                f"Session cannot be confirmed from status '{session.status}'",
                current_status=session.status,
                target_status=SessionStatus.SCHEDULED.value,
            )
        if session.requested_by == confirmer.value:
            raise WrongParty(
                "You cannot confirm a session you requested",
                current_status=session.status,
                target_status=SessionStatus.SCHEDULED.value,
            )

        changed = self.repo.transition_status(
            self.db,
            session.id,
            [SessionStatus.PENDING_CONFIRMATION.value],
            SessionStatus.SCHEDULED.value,
        )
        self.db.refresh(session)
        if not changed:
            logger.warning(f"⚠️ Confirm lost race on session {session.id} (now {session.status})")
            raise InvalidTransition(
                "Session is no longer pending confirmation",
                current_status=session.status,
                target_status=SessionStatus.SCHEDULED.value,
            )

        logger.info(f"✅ Session {session.id} confirmed by {confirmer.value}")

        from ...services.notification_service import notify_session_confirmed

        await self._side_effect(
            "session confirmation notification",
            session,
            notify_session_confirmed(self.db, session, confirmed_by=confirmer.value),
        )
        return session

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    def _check_transition(self, current: str, target: str) -> None:
        if target not in SESSION_STATUSES:
            raise ValidationError(f"Invalid status: {target}")
        if current == target:
            raise InvalidTransition(
                f"Session is already {current}", current_status=current, target_status=target
            )
        if current == "pending_confirmation" and target == "scheduled":
            raise InvalidTransition(
                "A pending session is scheduled by the other party confirming it",
                current_status=current,
                target_status=target,
            )
        if current in TERMINAL_STATUSES and not ENFORCE_TERMINAL_STATES:
            return
        if target not in ALLOWED_TRANSITIONS.get(current, set()):
            raise InvalidTransition(
                f"Cannot change session status from '{current}' to '{target}'",
                current_status=current,
                target_status=target,
            )

    async def transition(
        self, session_id: int, target_status: Union[SessionStatus, str], actor: User
    ) -> CoachingSession:
        """
        Invariant-checked status change used by cancel, complete and the
        status key of the coach's edit endpoint. Clients may only cancel.
        """
        target = getattr(target_status, "value", target_status)
        session = self._get_session(session_id)
        party = self._ensure_party(session, actor)
        if party is SessionParty.CLIENT and target != SessionStatus.CANCELLED.value:
            raise Forbidden("Clients can only cancel sessions")

        self._check_transition(session.status, target)
        return await self._apply_transition(session, target, party)

    async def _apply_transition(
        self, session: CoachingSession, target: str, party: SessionParty, updates: Optional[dict] = None
    ) -> CoachingSession:
        previous = session.status
        changed = self.repo.transition_status(self.db, session.id, [previous], target, **(updates or {}))
        self.db.refresh(session)
        if not changed:
            logger.warning(f"⚠️ Transition {previous} -> {target} lost race on session {session.id}")
            raise InvalidTransition(
                f"Session status changed to '{session.status}' before the update was applied",
                current_status=session.status,
                target_status=target,
            )

        logger.info(f"✅ Session {session.id} moved {previous} -> {target} by {party.value}")

        if target == SessionStatus.CANCELLED.value:
            from ...services.notification_service import notify_session_cancelled

            await self._side_effect(
                "cancellation notification",
                session,
                notify_session_cancelled(self.db, session, cancelled_by=party.value),
            )
            if session.google_calendar_event_id:
                await self._remove_calendar_event(session)

        return session

    async def cancel_session(self, session_id: int, actor: User) -> CoachingSession:
        return await self.transition(session_id, SessionStatus.CANCELLED, actor)

    async def complete_session(self, session_id: int, actor: User) -> CoachingSession:
        if party_of(actor) is not SessionParty.COACH:
            raise Forbidden("Only the coach can complete a session")
        return await self.transition(session_id, SessionStatus.COMPLETED, actor)

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    async def update_session_details(
        self, session_id: int, patch: SessionUpdate, actor: User
    ) -> CoachingSession:
        """
        Coach edit of session metadata. A status in the patch goes through the
        same transition rules as cancel/complete. Moving the start time clears
        reminder_sent_at so the new time gets its own reminder.
        """
        if party_of(actor) is not SessionParty.COACH:
            raise Forbidden("Only the coach can edit session details")

        session = self._get_session(session_id)
        data = patch.model_dump(exclude_unset=True)
        updates = {}

        for key, column in _DETAIL_FIELDS.items():
            if key not in data:
                continue
            value = data[key]
            if column == "notes_visible_to_client":
                if value is not None:
                    updates[column] = bool(value)
                continue
            value = clean_text(value)
            if column == "title" and not value:
                raise ValidationError("Title is required")
            updates[column] = value or None

        if "duration" in data:
            updates["duration"] = validate_duration(data["duration"])

        if "scheduledAt" in data:
            scheduled_at = resolve_scheduled_at(data["scheduledAt"], data.get("timezone") or actor.timezone)
            if scheduled_at != session.scheduled_at:
                ensure_not_in_past(scheduled_at)
                updates["scheduled_at"] = scheduled_at
                updates["reminder_sent_at"] = None

        target = None
        if data.get("status") is not None:
            target = getattr(data["status"], "value", data["status"])
            if target == session.status:
                target = None
            else:
                self._check_transition(session.status, target)

        if target:
            # Metadata rides on the conditional status update, so a lost race writes nothing
            session = await self._apply_transition(session, target, SessionParty.COACH, updates)
        elif updates:
            session = self.repo.update_session(self.db, session, **updates)
        if updates:
            logger.info(f"✅ Session {session.id} updated: {sorted(updates)}")

        if (
            session.google_calendar_event_id
            and session.status != SessionStatus.CANCELLED.value
            and _CALENDAR_FIELDS & updates.keys()
        ):
            await self._refresh_calendar_event(session)

        return session

    async def record_reflection(self, client_user: User, session_id: int, text: Optional[str]) -> CoachingSession:
        reflection = clean_text(text) or ""
        if len(reflection) < MIN_REFLECTION_LENGTH:
            raise ValidationError(f"Reflection must be at least {MIN_REFLECTION_LENGTH} characters")

        if party_of(client_user) is not SessionParty.CLIENT:
            raise Forbidden("Only the client can record a reflection")
        session = self._get_session(session_id)
        self._ensure_party(session, client_user)

        session = self.repo.update_session(self.db, session, client_reflection=reflection)
        logger.info(f"✅ Reflection recorded for session {session.id}")
        return session

    # ------------------------------------------------------------------
    # Side effects
    # ------------------------------------------------------------------

    async def _side_effect(self, label: str, session: CoachingSession, effect: Awaitable) -> None:
        try:
            await effect
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ {label} failed for session {session.id}: {e}")

    async def _remove_calendar_event(self, session: CoachingSession) -> None:
        from ...services.google_calendar_service import delete_calendar_event, find_calendar_owner

        try:
            owner = find_calendar_owner(self.db, session)
            if owner:
                await delete_calendar_event(self.db, owner, session)
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Calendar cleanup failed for session {session.id}: {e}")

    async def _refresh_calendar_event(self, session: CoachingSession) -> None:
        from ...services.google_calendar_service import find_calendar_owner, update_calendar_event

        try:
            owner = find_calendar_owner(self.db, session)
            if owner:
                await update_calendar_event(self.db, owner, session)
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Calendar update failed for session {session.id}: {e}")
