"""One-time numeric codes for out-of-band verification.

Codes live in memory for the active flow only. A new issuance supersedes
the previous code. Resend is gated by a cooldown derived from issue time.
"""

import hmac
import logging
import secrets
from datetime import datetime, timedelta
from enum import Enum

from auth.config import AuthFlowConfig
from utils.timezone import Clock, now_utc, seconds_until

logger = logging.getLogger(__name__)


class CodeValidationPolicy(Enum):
    """How candidate codes are matched."""

    STRICT = "strict"
    # Any complete code is accepted. Development/testing only.
    ACCEPT_ANY = "accept_any"

    @classmethod
    def from_config(cls, config: AuthFlowConfig) -> "CodeValidationPolicy":
        if config.bypass_code_validation:
            logger.warning("One-time code validation bypass is active")
            return cls.ACCEPT_ANY
        return cls.STRICT


def digits_only(candidate: str) -> str:
    """Drop every non-digit character."""
    return "".join(ch for ch in candidate if ch.isdigit())


class OneTimeCodeIssuer:
    """Issues and validates 6-digit codes with a resend cooldown."""

    def __init__(
        self,
        config: AuthFlowConfig,
        policy: CodeValidationPolicy = CodeValidationPolicy.STRICT,
        clock: Clock = now_utc,
    ):
        self._config = config
        self._policy = policy
        self._clock = clock
        self._cooldown = timedelta(seconds=config.resend_cooldown_seconds)
        self._code: str | None = None
        self._issued_at: datetime | None = None

    @property
    def policy(self) -> CodeValidationPolicy:
        return self._policy

    @property
    def issued_at(self) -> datetime | None:
        return self._issued_at

    @property
    def has_active_code(self) -> bool:
        return self._code is not None

    def issue(self) -> str:
        """Generate a fresh code, replacing any previous one, and start the cooldown.

        The returned value should go straight to delivery. The issuer keeps
        its own copy only for validation.
        """
        low = 10 ** (self._config.code_length - 1)
        high = 10 ** self._config.code_length
        code = str(low + secrets.randbelow(high - low))

        self._code = code
        self._issued_at = self._clock()
        logger.debug("Issued one-time code")
        return code

    def validate(self, candidate: str) -> bool:
        """Check candidate against the most recent code.

        A mismatch leaves the code and cooldown untouched so the user can retry.
        """
        cleaned = digits_only(candidate)
        if len(cleaned) != self._config.code_length:
            return False

        if self._policy is CodeValidationPolicy.ACCEPT_ANY:
            return True

        if self._code is None:
            return False
        return hmac.compare_digest(cleaned, self._code)

    def invalidate(self) -> None:
        """Forget the active code and its cooldown (flow abandoned or code never sent)."""
        self._code = None
        self._issued_at = None

    def seconds_remaining(self) -> int:
        """Seconds until resend is allowed, derived from issue time."""
        if self._issued_at is None:
            return 0
        return seconds_until(self._issued_at + self._cooldown, self._clock())

    def can_resend(self) -> bool:
        return self.seconds_remaining() == 0
