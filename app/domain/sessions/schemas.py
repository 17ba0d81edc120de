"""Session domain schemas - Pydantic models for validation"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class SessionStatus(str, Enum):
    PENDING_CONFIRMATION = "pending_confirmation"
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class SessionParty(str, Enum):
    CLIENT = "client"
    COACH = "coach"

    @property
    def other(self) -> "SessionParty":
        return SessionParty.COACH if self is SessionParty.CLIENT else SessionParty.CLIENT


class SessionCreate(BaseModel):
    """Schema for requesting a session. clientId is required when a coach proposes one."""

    clientId: Optional[int] = None
    title: str
    description: Optional[str] = None
    scheduledAt: str  # ISO 8601, or datetime-local resolved against timezone
    duration: Optional[int] = None
    meetingLink: Optional[str] = None
    prepNotes: Optional[str] = None
    timezone: Optional[str] = None


class SessionUpdate(BaseModel):
    """Schema for the coach's edit endpoint"""

    title: Optional[str] = None
    description: Optional[str] = None
    scheduledAt: Optional[str] = None
    duration: Optional[int] = None
    status: Optional[SessionStatus] = None
    meetingLink: Optional[str] = None
    prepNotes: Optional[str] = None
    sessionNotes: Optional[str] = None
    notesVisibleToClient: Optional[bool] = None
    timezone: Optional[str] = None


class ReflectionUpdate(BaseModel):
    reflection: str


class SessionResponse(BaseModel):
    id: int
    clientId: int
    title: str
    description: Optional[str] = None
    scheduledAt: datetime
    duration: int
    status: SessionStatus
    requestedBy: SessionParty
    meetingLink: Optional[str] = None
    prepNotes: Optional[str] = None
    sessionNotes: Optional[str] = None
    notesVisibleToClient: bool = False
    clientReflection: Optional[str] = None
    googleCalendarEventId: Optional[str] = None
    calendarOwnerId: Optional[int] = None
    calendarSyncedAt: Optional[datetime] = None
    reminderSentAt: Optional[datetime] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    @classmethod
    def from_model(cls, s, hide_private_notes: bool = False) -> "SessionResponse":
        return cls(
            id=s.id,
            clientId=s.client_id,
            title=s.title,
            description=s.description,
            scheduledAt=s.scheduled_at,
            duration=s.duration,
            status=s.status,
            requestedBy=s.requested_by,
            meetingLink=s.meeting_link,
            prepNotes=s.prep_notes,
            sessionNotes=None if hide_private_notes and not s.notes_visible_to_client else s.session_notes,
            notesVisibleToClient=bool(s.notes_visible_to_client),
            clientReflection=s.client_reflection,
            googleCalendarEventId=s.google_calendar_event_id,
            calendarOwnerId=s.calendar_owner_id,
            calendarSyncedAt=s.calendar_synced_at,
            reminderSentAt=s.reminder_sent_at,
            createdAt=s.created_at,
            updatedAt=s.updated_at,
        )


class ReminderSweepResponse(BaseModel):
    processed: int
    sent: int
    errors: int


class CalendarSyncResponse(BaseModel):
    success: bool
    eventId: Optional[str] = None
