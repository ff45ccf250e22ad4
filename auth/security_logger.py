"""Security event logging for the auth audit trail.

Events go to the 'auth.security' logger with structured extra fields and
into a bounded in-memory buffer for inspection. Codes and passwords are
never passed in.
"""

import logging
from collections import deque
from enum import Enum
from typing import Any

from utils.timezone import Clock, now_utc

_security_log = logging.getLogger("auth.security")


class SecurityEvent(Enum):
    """Auth security event types."""

    LOGIN_SUCCEEDED = "login_succeeded"
    LOGIN_FAILED = "login_failed"
    SECOND_FACTOR_REQUIRED = "second_factor_required"
    SECOND_FACTOR_PASSED = "second_factor_passed"
    SECOND_FACTOR_FAILED = "second_factor_failed"
    SECOND_FACTOR_STATUS_UNAVAILABLE = "second_factor_status_unavailable"
    TRUSTED_DEVICE_RECOGNIZED = "trusted_device_recognized"
    TRUSTED_DEVICE_GRANTED = "trusted_device_granted"
    TRUSTED_DEVICE_DENIED = "trusted_device_denied"
    TRUSTED_DEVICE_EXPIRED = "trusted_device_expired"
    TRUSTED_DEVICE_REVOKED = "trusted_device_revoked"
    CODE_ISSUED = "code_issued"
    CODE_DELIVERY_FAILED = "code_delivery_failed"
    CODE_MISMATCH = "code_mismatch"
    USER_REGISTERED = "user_registered"
    REGISTRATION_FAILED = "registration_failed"
    PASSWORD_RESET_REQUESTED = "password_reset_requested"
    SIGNED_OUT = "signed_out"


class SecurityLogger:
    """Structured security event logger with a bounded recent-events buffer."""

    def __init__(self, max_events: int = 500, clock: Clock = now_utc):
        self._events: deque[dict[str, Any]] = deque(maxlen=max_events)
        self._clock = clock

    def log(
        self,
        event: SecurityEvent,
        email: str | None = None,
        user_id: str | None = None,
        device_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Record security event."""
        record = {
            "event_type": event.value,
            "email": email,
            "user_id": user_id,
            "device_id": device_id,
            "details": details,
            "created_at": self._clock(),
        }
        self._events.append(record)

        level = logging.WARNING if event in _WARNING_EVENTS else logging.INFO
        _security_log.log(
            level,
            f"security event: {event.value}",
            extra={
                "event_type": event.value,
                "email": email,
                "user_id": user_id,
                "device_id": device_id,
                "details": details,
            },
        )

    def get_recent_events(
        self,
        email: str | None = None,
        user_id: str | None = None,
        event_type: SecurityEvent | None = None,
        limit: int = 100,
    ) -> list[dict]:
        """Recent events with optional filters, newest first."""
        matches = []
        for record in reversed(self._events):
            if email and record["email"] != email:
                continue
            if user_id and record["user_id"] != user_id:
                continue
            if event_type and record["event_type"] != event_type.value:
                continue
            matches.append(record)
            if len(matches) >= limit:
                break
        return matches


_WARNING_EVENTS = frozenset(
    {
        SecurityEvent.LOGIN_FAILED,
        SecurityEvent.SECOND_FACTOR_FAILED,
        SecurityEvent.SECOND_FACTOR_STATUS_UNAVAILABLE,
        SecurityEvent.TRUSTED_DEVICE_DENIED,
        SecurityEvent.CODE_DELIVERY_FAILED,
    }
)
