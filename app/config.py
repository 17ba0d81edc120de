import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./coaching.db")

# Firebase Configuration
FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID")

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

# Public URLs used in emails and OAuth redirects
APP_URL = os.getenv("APP_URL", "http://localhost:5000")
FRONTEND_URL = os.getenv("FRONTEND_URL", APP_URL)

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "Coaching Portal <noreply@coachingportal.app>")

# Google Calendar OAuth Configuration
# OAuth flow: Google → Frontend → Frontend sends code to Backend API
GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CALENDAR_CLIENT_ID") or os.getenv("GOOGLE_CLIENT_ID")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CALENDAR_CLIENT_SECRET") or os.getenv("GOOGLE_CLIENT_SECRET")
GOOGLE_REDIRECT_URI = os.getenv("GOOGLE_REDIRECT_URI", f"{FRONTEND_URL}/auth/google-calendar")

# Session reminders
SESSION_REMINDERS_ENABLED = _env_bool("SESSION_REMINDERS_ENABLED", "true")
SESSION_REMINDER_INTERVAL_SECONDS = int(os.getenv("SESSION_REMINDER_INTERVAL_SECONDS", "3600"))
SESSION_REMINDER_LOOKAHEAD_HOURS = int(os.getenv("SESSION_REMINDER_LOOKAHEAD_HOURS", "24"))

# Session lifecycle rules
# completed/cancelled are final unless this is switched off (legacy "edit anything" behaviour)
ENFORCE_TERMINAL_STATES = _env_bool("ENFORCE_TERMINAL_STATES", "true")
REJECT_PAST_SESSIONS = _env_bool("REJECT_PAST_SESSIONS", "true")
PAST_SESSION_GRACE_MINUTES = int(os.getenv("PAST_SESSION_GRACE_MINUTES", "5"))
SESSION_MIN_DURATION = int(os.getenv("SESSION_MIN_DURATION", "15"))
SESSION_MAX_DURATION = int(os.getenv("SESSION_MAX_DURATION", "180"))
DEFAULT_SESSION_DURATION = 60
