"""UTC-everywhere time handling plus an injectable clock for TTL logic."""

import math
from datetime import datetime, timezone
from typing import Callable

# Anything returning an aware UTC datetime. Tests inject a controllable one.
Clock = Callable[[], datetime]


def now_utc() -> datetime:
    """
    Current time in UTC.

    Use this instead of datetime.now() everywhere.
    """
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime to UTC.

    Raises ValueError if datetime is naive (no timezone).
    """
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot convert naive datetime to UTC. Datetime must be timezone-aware."
        )
    return dt.astimezone(timezone.utc)


def seconds_until(deadline: datetime, now: datetime) -> int:
    """
    Whole seconds left until deadline, rounded up, never negative.

    Rounding up means a countdown shows 1 until the deadline has fully
    passed, never 0 while time remains.
    """
    remaining = (deadline - now).total_seconds()
    if remaining <= 0:
        return 0
    return math.ceil(remaining)
