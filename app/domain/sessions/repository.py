"""Session repository - Database operations for coaching sessions"""

from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from ...models import ClientProfile, CoachingSession, Notification, User
from .time_utils import utcnow


class SessionRepository:
    """Repository for session database operations"""

    @staticmethod
    def get_session(db: Session, session_id: int) -> Optional[CoachingSession]:
        return db.query(CoachingSession).filter(CoachingSession.id == session_id).first()

    @staticmethod
    def create_session(db: Session, **session_data) -> CoachingSession:
        session = CoachingSession(**session_data)
        db.add(session)
        db.commit()
        db.refresh(session)
        return session

    @staticmethod
    def update_session(db: Session, session: CoachingSession, **updates) -> CoachingSession:
        """Apply updates; a None value clears the column"""
        for key, value in updates.items():
            if hasattr(session, key):
                setattr(session, key, value)
        session.updated_at = utcnow()

        db.commit()
        db.refresh(session)
        return session

    @staticmethod
    def get_sessions_by_client(db: Session, client_id: int) -> list[CoachingSession]:
        return (
            db.query(CoachingSession)
            .filter(CoachingSession.client_id == client_id)
            .order_by(CoachingSession.scheduled_at.desc())
            .all()
        )

    @staticmethod
    def get_all_sessions(db: Session) -> list[CoachingSession]:
        return db.query(CoachingSession).order_by(CoachingSession.scheduled_at.desc()).all()

    @staticmethod
    def transition_status(
        db: Session, session_id: int, from_statuses: Iterable[str], to_status: str, **updates
    ) -> bool:
        """
        Conditional status update. Returns False when the row was no longer in
        one of ``from_statuses``, i.e. another request got there first.

        ``updates`` are column values written in the same statement, so they
        land only if the status change does.
        """
        values = {getattr(CoachingSession, column): value for column, value in updates.items()}
        values.update({CoachingSession.status: to_status, CoachingSession.updated_at: utcnow()})
        changed = (
            db.query(CoachingSession)
            .filter(
                CoachingSession.id == session_id,
                CoachingSession.status.in_(list(from_statuses)),
            )
            .update(values, synchronize_session=False)
        )
        db.commit()
        return changed == 1

    # Reminder bookkeeping
    @staticmethod
    def get_sessions_due_for_reminder(
        db: Session, window_start: datetime, window_end: datetime
    ) -> list[CoachingSession]:
        return (
            db.query(CoachingSession)
            .filter(
                CoachingSession.status == "scheduled",
                CoachingSession.scheduled_at >= window_start,
                CoachingSession.scheduled_at <= window_end,
                CoachingSession.reminder_sent_at.is_(None),
            )
            .order_by(CoachingSession.scheduled_at.asc())
            .all()
        )

    @staticmethod
    def mark_reminder_sent(db: Session, session_id: int, sent_at: datetime) -> bool:
        """Stamp reminder_sent_at once; never overwrites an existing stamp"""
        changed = (
            db.query(CoachingSession)
            .filter(
                CoachingSession.id == session_id,
                CoachingSession.status == "scheduled",
                CoachingSession.reminder_sent_at.is_(None),
            )
            .update(
                {CoachingSession.reminder_sent_at: sent_at, CoachingSession.updated_at: sent_at},
                synchronize_session=False,
            )
        )
        db.commit()
        return changed == 1

    # Parties
    @staticmethod
    def get_client_profile(db: Session, profile_id: int) -> Optional[ClientProfile]:
        return db.query(ClientProfile).filter(ClientProfile.id == profile_id).first()

    @staticmethod
    def get_client_profile_by_user(db: Session, user_id: int) -> Optional[ClientProfile]:
        return db.query(ClientProfile).filter(ClientProfile.user_id == user_id).first()

    @staticmethod
    def get_user(db: Session, user_id: int) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_users_by_role(db: Session, role: str) -> list[User]:
        return db.query(User).filter(User.role == role).order_by(User.id.asc()).all()

    # Notifications
    @staticmethod
    def create_notification(
        db: Session,
        user_id: int,
        notification_type: str,
        title: str,
        message: str,
        related_id: Optional[str] = None,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            type=notification_type,
            title=title,
            message=message,
            related_id=related_id,
        )
        db.add(notification)
        db.commit()
        db.refresh(notification)
        return notification

    @staticmethod
    def get_notifications_by_user(db: Session, user_id: int, unread_only: bool = False) -> list[Notification]:
        query = db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))
        return query.order_by(Notification.created_at.desc(), Notification.id.desc()).all()

    @staticmethod
    def mark_notification_read(db: Session, notification_id: int, user_id: int) -> Optional[Notification]:
        notification = (
            db.query(Notification)
            .filter(Notification.id == notification_id, Notification.user_id == user_id)
            .first()
        )
        if not notification:
            return None
        notification.is_read = True
        db.commit()
        db.refresh(notification)
        return notification

    @staticmethod
    def mark_all_notifications_read(db: Session, user_id: int) -> int:
        count = (
            db.query(Notification)
            .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
            .update({Notification.is_read: True}, synchronize_session=False)
        )
        db.commit()
        return count
