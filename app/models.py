from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

SESSION_STATUSES = ("pending_confirmation", "scheduled", "completed", "cancelled")
SESSION_PARTIES = ("client", "coach")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    firebase_uid = Column(String(255), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=True)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    role = Column(String(20), default="client", nullable=False)  # client, coach
    timezone = Column(String(64), default="UTC", nullable=False)  # IANA name e.g. America/New_York
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    client_profile = relationship("ClientProfile", back_populates="user", uselist=False)
    notifications = relationship(
        "Notification", back_populates="user", cascade="all, delete-orphan"
    )

    @property
    def display_name(self) -> str:
        name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return name or ("Coach" if self.role == "coach" else "Client")


class ClientProfile(Base):
    __tablename__ = "client_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    goals = Column(Text, nullable=True)
    status = Column(String(50), default="active")
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="client_profile")
    sessions = relationship(
        "CoachingSession", back_populates="client", cascade="all, delete-orphan"
    )


class CoachingSession(Base):
    __tablename__ = "coaching_sessions"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending_confirmation', 'scheduled', 'completed', 'cancelled')",
            name="ck_coaching_sessions_status",
        ),
        CheckConstraint(
            "requested_by IN ('client', 'coach')", name="ck_coaching_sessions_requested_by"
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("client_profiles.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    scheduled_at = Column(DateTime, nullable=False, index=True)  # Naive UTC
    duration = Column(Integer, default=60, nullable=False)  # Minutes
    status = Column(String(50), default="pending_confirmation", nullable=False, index=True)
    requested_by = Column(String(20), nullable=False)  # client or coach
    meeting_link = Column(String(500), nullable=True)
    prep_notes = Column(Text, nullable=True)  # Always visible to the client
    session_notes = Column(Text, nullable=True)  # Visible to the client only when flagged
    notes_visible_to_client = Column(Boolean, default=False, nullable=False)
    client_reflection = Column(Text, nullable=True)

    # Calendar bookkeeping
    google_calendar_event_id = Column(String(500), nullable=True, index=True)
    calendar_owner_id = Column(Integer, ForeignKey("users.id"), nullable=True)  # Whose calendar holds the event
    calendar_synced_at = Column(DateTime, nullable=True)
    reminder_sent_at = Column(DateTime, nullable=True)  # Set once by the reminder sweep

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    client = relationship("ClientProfile", back_populates="sessions")


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    # session_request, session_scheduled, session_reminder, session_cancelled
    type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)
    related_id = Column(String(255), nullable=True)  # e.g. the session id
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", back_populates="notifications")
