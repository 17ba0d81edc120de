from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..domain.sessions.repository import SessionRepository
from ..models import User

router = APIRouter(prefix="/notifications", tags=["Notifications"])


class NotificationResponse(BaseModel):
    id: int
    type: str
    title: str
    message: str
    isRead: bool
    relatedId: Optional[str] = None
    createdAt: Optional[datetime] = None


def _to_response(n) -> NotificationResponse:
    return NotificationResponse(
        id=n.id,
        type=n.type,
        title=n.title,
        message=n.message,
        isRead=n.is_read,
        relatedId=n.related_id,
        createdAt=n.created_at,
    )


@router.get("", response_model=list[NotificationResponse])
async def get_notifications(
    unread_only: bool = Query(False, alias="unreadOnly"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get the current user's notifications, newest first"""
    notifications = SessionRepository.get_notifications_by_user(db, current_user.id, unread_only)
    return [_to_response(n) for n in notifications]


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    notification = SessionRepository.mark_notification_read(db, notification_id, current_user.id)
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")
    return _to_response(notification)


@router.post("/read-all")
async def mark_all_notifications_read(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Mark every unread notification as read"""
    count = SessionRepository.mark_all_notifications_read(db, current_user.id)
    return {"message": "Notifications marked as read", "updated": count}
