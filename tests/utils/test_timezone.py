"""Tests for utils/timezone.py - UTC-everywhere time handling."""

from datetime import datetime, timedelta, timezone

import pytest

from utils.timezone import now_utc, seconds_until, to_utc

BASE = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestNowUtc:
    """Tests for now_utc()."""

    def test_returns_timezone_aware(self):
        """Result must have tzinfo set (not naive)."""
        assert now_utc().tzinfo is not None

    def test_is_utc(self):
        assert now_utc().tzinfo == timezone.utc


class TestToUtc:
    """Tests for to_utc()."""

    def test_raises_on_naive(self):
        """Naive datetime must raise ValueError."""
        with pytest.raises(ValueError, match="naive"):
            to_utc(datetime(2024, 1, 1, 12, 0, 0))

    def test_converts_other_offset(self):
        """12:00 at UTC-6 becomes 18:00 UTC."""
        minus_six = timezone(timedelta(hours=-6))
        result = to_utc(datetime(2024, 1, 1, 12, 0, 0, tzinfo=minus_six))
        assert result.tzinfo == timezone.utc
        assert result.hour == 18


class TestSecondsUntil:
    """Tests for seconds_until() - countdown arithmetic."""

    def test_whole_seconds(self):
        assert seconds_until(BASE + timedelta(seconds=60), BASE) == 60

    def test_rounds_up_partial_second(self):
        assert seconds_until(BASE + timedelta(seconds=59, milliseconds=1), BASE) == 60

    def test_last_partial_second_shows_one(self):
        assert seconds_until(BASE + timedelta(milliseconds=200), BASE) == 1

    def test_at_deadline_is_zero(self):
        assert seconds_until(BASE, BASE) == 0

    def test_past_deadline_never_negative(self):
        assert seconds_until(BASE, BASE + timedelta(minutes=5)) == 0
