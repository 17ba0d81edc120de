"""Time parsing and validation for session scheduling

Session start times are stored as naive UTC datetimes. Clients submit
``datetime-local`` values ("2025-03-01T14:00") which only mean something
together with a timezone, so every inbound value goes through
``resolve_scheduled_at`` before it reaches the database.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ...config import (
    PAST_SESSION_GRACE_MINUTES,
    REJECT_PAST_SESSIONS,
    SESSION_MAX_DURATION,
    SESSION_MIN_DURATION,
)
from .exceptions import ValidationError


def utcnow() -> datetime:
    """Current time as naive UTC, matching what the DateTime columns hold"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def get_zone(timezone_name: Optional[str]) -> ZoneInfo:
    # Directory names ("America") and overlong names surface as OSError
    try:
        return ZoneInfo(timezone_name or "UTC")
    except (ZoneInfoNotFoundError, ValueError, OSError) as e:
        raise ValidationError(f"Unknown timezone: {timezone_name}") from e


def resolve_scheduled_at(value: Union[str, datetime], timezone_name: Optional[str] = None) -> datetime:
    """
    Resolve a client-supplied start time to a naive UTC datetime.

    Values with an offset ("...Z", "...+02:00") are converted directly.
    Naive values are interpreted as wall-clock time in ``timezone_name``.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        raw = (value or "").strip()
        if not raw:
            raise ValidationError("Date and time is required")
        try:
            parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError as e:
            raise ValidationError(f"Invalid date/time: {raw}") from e

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=get_zone(timezone_name))

    try:
        return parsed.astimezone(timezone.utc).replace(tzinfo=None)
    except OverflowError as e:
        raise ValidationError(f"Invalid date/time: {value}") from e


def validate_duration(minutes: Optional[int]) -> int:
    if minutes is None:
        raise ValidationError("Duration is required")
    if not SESSION_MIN_DURATION <= minutes <= SESSION_MAX_DURATION:
        raise ValidationError(
            f"Duration must be between {SESSION_MIN_DURATION} and {SESSION_MAX_DURATION} minutes"
        )
    return minutes


def ensure_not_in_past(scheduled_at: datetime, now: Optional[datetime] = None) -> None:
    if not REJECT_PAST_SESSIONS:
        return
    now = now or utcnow()
    if scheduled_at < now - timedelta(minutes=PAST_SESSION_GRACE_MINUTES):
        raise ValidationError("Session cannot be scheduled in the past")


def format_session_time(scheduled_at: datetime, timezone_name: Optional[str] = None) -> str:
    """Human readable local time for emails, e.g. 'Saturday, March 1, 2025 at 2:00 PM (UTC)'"""
    try:
        zone = get_zone(timezone_name)
    except ValidationError:
        zone = ZoneInfo("UTC")
    local = scheduled_at.replace(tzinfo=timezone.utc).astimezone(zone)
    hour = local.strftime("%I").lstrip("0") or "12"
    return f"{local:%A}, {local:%B} {local.day}, {local.year} at {hour}:{local:%M %p} ({zone.key})"
