"""Post-login decision: establish the session now, or challenge for a second factor."""

import logging
from dataclasses import dataclass
from enum import Enum

from auth.interfaces import CredentialStore
from auth.security_logger import SecurityEvent, SecurityLogger
from auth.trusted_devices import TrustedDeviceRegistry

logger = logging.getLogger(__name__)


class BootstrapOutcome(Enum):
    ESTABLISH_SESSION = "establish_session"
    REQUIRE_SECOND_FACTOR = "require_second_factor"


@dataclass
class BootstrapDecision:
    """Result of bootstrapping after primary credentials succeeded."""

    outcome: BootstrapOutcome
    second_factor_enabled: bool
    trusted_device: bool


class SessionBootstrapper:
    """Decides the step after a successful password sign-in.

    | 2FA enabled | Trusted device | Outcome                 |
    |-------------|----------------|-------------------------|
    | no          | any            | establish session       |
    | yes         | yes            | establish session       |
    | yes         | no             | second-factor challenge |

    Recomputed on every login. Nothing is cached besides the trust grant.
    """

    def __init__(
        self,
        credential_store: CredentialStore,
        trusted_devices: TrustedDeviceRegistry,
        security_logger: SecurityLogger,
    ):
        self._credential_store = credential_store
        self._trusted_devices = trusted_devices
        self._security_logger = security_logger

    async def _second_factor_enabled(self, user_id: str) -> bool:
        """Second-factor status, treating any lookup failure as disabled."""
        try:
            status = await self._credential_store.get_second_factor_status(user_id)
        except Exception as e:
            # Fail open
            logger.warning(f"2FA status check failed for user {user_id}, continuing without 2FA: {e}")
            self._security_logger.log(
                SecurityEvent.SECOND_FACTOR_STATUS_UNAVAILABLE,
                user_id=user_id,
                details={"error": type(e).__name__},
            )
            return False
        return status.enabled

    async def decide(self, user_id: str) -> BootstrapDecision:
        enabled = await self._second_factor_enabled(user_id)
        if not enabled:
            return BootstrapDecision(
                outcome=BootstrapOutcome.ESTABLISH_SESSION,
                second_factor_enabled=False,
                trusted_device=False,
            )

        if self._trusted_devices.is_trusted(user_id):
            self._security_logger.log(SecurityEvent.TRUSTED_DEVICE_RECOGNIZED, user_id=user_id)
            return BootstrapDecision(
                outcome=BootstrapOutcome.ESTABLISH_SESSION,
                second_factor_enabled=True,
                trusted_device=True,
            )

        self._security_logger.log(SecurityEvent.SECOND_FACTOR_REQUIRED, user_id=user_id)
        return BootstrapDecision(
            outcome=BootstrapOutcome.REQUIRE_SECOND_FACTOR,
            second_factor_enabled=True,
            trusted_device=False,
        )
