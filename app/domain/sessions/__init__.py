"""Sessions Domain - Coaching session lifecycle, confirmation protocol and reminders"""

from .router import client_router, coach_router, router

__all__ = ["router", "client_router", "coach_router"]
