"""Pydantic models for the auth flow domain."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, model_validator

from utils.timezone import to_utc


class AuthStage(str, Enum):
    """Screens of the sign-in/sign-up flow."""

    LOGIN = "login"
    REGISTER = "register"
    VERIFY_CODE = "verify-code"
    SECOND_FACTOR = "second-factor"
    RESET_PASSWORD = "reset-password"


class AuthenticatedUser(BaseModel):
    """User returned by the credential store after a password sign-in."""

    user_id: str = Field(..., min_length=1)
    email: str
    display_name: str | None = None


class SecondFactorStatus(BaseModel):
    """Whether the account requires a second factor."""

    enabled: bool


class TrustedDeviceGrant(BaseModel):
    """A time-boxed exemption from the second-factor challenge."""

    device_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    label: str = ""
    created_at: datetime
    expires_at: datetime
    last_verified_at: datetime | None = None

    @model_validator(mode="after")
    def normalize_to_utc(self) -> "TrustedDeviceGrant":
        """Timestamps are kept in UTC. Naive datetimes are rejected."""
        self.created_at = to_utc(self.created_at)
        self.expires_at = to_utc(self.expires_at)
        if self.last_verified_at is not None:
            self.last_verified_at = to_utc(self.last_verified_at)
        return self

    def is_active(self, now: datetime) -> bool:
        """True while now is strictly before expiry."""
        return now < self.expires_at


class PendingRegistration(BaseModel):
    """Registration fields kept across the verify-code step."""

    email: str = ""
    username: str = ""
    password: str = Field(default="", repr=False)
    confirm_password: str = Field(default="", repr=False)
    destination: str = ""


class FlowError(BaseModel):
    """User-facing failure description."""

    kind: str
    message: str
    retryable: bool


class FlowResult(BaseModel):
    """Outcome of one controller action."""

    ok: bool
    stage: AuthStage
    message: str | None = None
    error: FlowError | None = None
    authenticated: AuthenticatedUser | None = None
    # Response arrived after the user navigated away; nothing was applied.
    stale: bool = False
