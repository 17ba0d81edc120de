"""Tests for scheduling time resolution and validation."""

from datetime import datetime, timedelta

import pytest

from app.domain.sessions.exceptions import ValidationError
from app.domain.sessions.time_utils import (
    ensure_not_in_past,
    format_session_time,
    resolve_scheduled_at,
    validate_duration,
)


class TestResolveScheduledAt:
    def test_utc_suffix(self):
        assert resolve_scheduled_at("2025-03-01T14:00Z") == datetime(2025, 3, 1, 14, 0)

    def test_offset_is_converted(self):
        assert resolve_scheduled_at("2025-03-01T14:00:00+02:00") == datetime(2025, 3, 1, 12, 0)

    def test_offset_wins_over_timezone(self):
        assert resolve_scheduled_at("2025-03-01T14:00:00Z", "Asia/Tokyo") == datetime(2025, 3, 1, 14, 0)

    def test_naive_value_uses_timezone(self):
        # EST in January, EDT in July
        assert resolve_scheduled_at("2025-01-15T09:00", "America/New_York") == datetime(2025, 1, 15, 14, 0)
        assert resolve_scheduled_at("2025-07-15T09:00", "America/New_York") == datetime(2025, 7, 15, 13, 0)

    def test_naive_value_defaults_to_utc(self):
        assert resolve_scheduled_at("2025-03-01T14:00") == datetime(2025, 3, 1, 14, 0)

    def test_datetime_input(self):
        assert resolve_scheduled_at(datetime(2025, 3, 1, 9, 30), "Europe/Berlin") == datetime(2025, 3, 1, 8, 30)

    @pytest.mark.parametrize("value", ["", "   ", "tomorrow at noon", "2025-13-40T10:00"])
    def test_unparseable(self, value):
        with pytest.raises(ValidationError):
            resolve_scheduled_at(value)

    @pytest.mark.parametrize("zone", ["Not/AZone", "America", "x" * 300])
    def test_unknown_timezone(self, zone):
        with pytest.raises(ValidationError):
            resolve_scheduled_at("2025-03-01T14:00", zone)

    @pytest.mark.parametrize(
        "value, zone",
        [("9999-12-31T23:00", "America/New_York"), ("0001-01-01T00:30+05:00", None)],
    )
    def test_out_of_range_after_conversion(self, value, zone):
        with pytest.raises(ValidationError):
            resolve_scheduled_at(value, zone)


class TestValidateDuration:
    @pytest.mark.parametrize("minutes", [15, 60, 180])
    def test_in_range(self, minutes):
        assert validate_duration(minutes) == minutes

    @pytest.mark.parametrize("minutes", [None, 0, 14, 181, -30])
    def test_out_of_range(self, minutes):
        with pytest.raises(ValidationError):
            validate_duration(minutes)


class TestEnsureNotInPast:
    def test_future_is_fine(self):
        now = datetime(2025, 3, 1, 12, 0)
        ensure_not_in_past(now + timedelta(hours=1), now=now)

    def test_grace_period(self):
        now = datetime(2025, 3, 1, 12, 0)
        ensure_not_in_past(now - timedelta(minutes=4), now=now)
        with pytest.raises(ValidationError):
            ensure_not_in_past(now - timedelta(minutes=6), now=now)

    def test_can_be_disabled(self, monkeypatch):
        monkeypatch.setattr("app.domain.sessions.time_utils.REJECT_PAST_SESSIONS", False)
        ensure_not_in_past(datetime(2000, 1, 1), now=datetime(2025, 1, 1))


class TestFormatSessionTime:
    def test_utc(self):
        assert format_session_time(datetime(2025, 3, 1, 14, 0), "UTC") == "Saturday, March 1, 2025 at 2:00 PM (UTC)"

    def test_local_zone(self):
        assert (
            format_session_time(datetime(2025, 3, 1, 14, 0), "America/New_York")
            == "Saturday, March 1, 2025 at 9:00 AM (America/New_York)"
        )

    @pytest.mark.parametrize("zone", ["Nowhere/Land", "America", "x" * 300])
    def test_bad_zone_falls_back_to_utc(self, zone):
        assert format_session_time(datetime(2025, 3, 1, 0, 5), zone).endswith("12:05 AM (UTC)")
