"""
Google Calendar Integration Routes
Handles OAuth connection; per-session sync lives on the sessions router
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..config import GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET
from ..database import get_db
from ..models import User
from ..services.google_calendar_service import (
    CalendarAuthError,
    build_authorization_url,
    exchange_code_for_tokens,
    get_integration,
    revoke_and_delete_integration,
    save_integration,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/google-calendar", tags=["google-calendar"])


@router.get("/status")
async def get_google_calendar_status(
    current_user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    """Get Google Calendar connection status"""
    integration = get_integration(db, current_user)

    if not integration:
        return {
            "connected": False,
            "user_email": None,
            "calendar_id": None,
            "auto_sync_enabled": None,
        }

    return {
        "connected": True,
        "user_email": integration.google_user_email,
        "calendar_id": integration.google_calendar_id,
        "auto_sync_enabled": integration.auto_sync_enabled,
    }


@router.get("/connect")
async def initiate_google_calendar_oauth(current_user: User = Depends(get_current_user)):
    """Initiate Google Calendar OAuth flow"""
    if not GOOGLE_CLIENT_ID or not GOOGLE_CLIENT_SECRET:
        raise HTTPException(status_code=500, detail="Google Calendar not configured")

    logger.info(f"📅 Google Calendar OAuth initiated for user: {current_user.email}")

    return {"authorization_url": build_authorization_url(current_user)}


@router.post("/callback")
async def handle_google_calendar_callback(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Handle Google Calendar OAuth callback; the frontend posts the code here"""
    body = await request.json()
    code = body.get("code")
    if not code:
        raise HTTPException(status_code=400, detail="No authorization code provided")

    try:
        tokens = await exchange_code_for_tokens(code)
        integration = save_integration(db, current_user, tokens)
    except CalendarAuthError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except Exception as e:
        logger.error(f"❌ Google Calendar callback error: {str(e)}")
        db.rollback()
        raise HTTPException(
            status_code=500, detail=f"Failed to connect Google Calendar: {str(e)}"
        ) from e

    logger.info(f"✅ Google Calendar connected for user: {current_user.email}")

    return {
        "success": True,
        "message": "Google Calendar connected successfully",
        "user_email": integration.google_user_email,
    }


@router.delete("/disconnect")
async def disconnect_google_calendar(
    current_user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    """Disconnect Google Calendar integration"""
    integration = get_integration(db, current_user)
    if not integration:
        raise HTTPException(status_code=404, detail="Google Calendar not connected")

    await revoke_and_delete_integration(db, integration)

    logger.info(f"✅ Google Calendar disconnected for user: {current_user.email}")

    return {"success": True, "message": "Google Calendar disconnected"}
