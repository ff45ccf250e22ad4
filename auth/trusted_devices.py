"""Trusted device grants: bounded-duration exemptions from the second factor.

Each user has two records in the store that must stay consistent:
- a single fast-lookup grant used by is_trusted(), holding the grant of
  whichever device last granted or was checked
- an ordered list of every grant, used for display and revocation

TTL is enforced on read. Expired grants are deleted the moment a reader
notices them.
"""

import logging
from dataclasses import asdict
from datetime import datetime, timedelta

from pydantic import ValidationError as ModelValidationError

from auth.config import AuthFlowConfig
from auth.device import DeviceIdentity
from auth.exceptions import TrustDeniedError
from auth.security_logger import SecurityEvent, SecurityLogger
from auth.storage import KeyValueStore, get_json, set_json
from auth.types import TrustedDeviceGrant
from utils.timezone import Clock, now_utc

logger = logging.getLogger(__name__)


class TrustedDeviceRegistry:
    """Grant, check and revoke device trust per user.

    The store has no authorization of its own. Only the flow controller
    calls grant/revoke, and only after explicit user confirmation.
    """

    def __init__(
        self,
        store: KeyValueStore,
        device: DeviceIdentity,
        config: AuthFlowConfig,
        security_logger: SecurityLogger,
        clock: Clock = now_utc,
    ):
        self._store = store
        self._device = device
        self._config = config
        self._security_logger = security_logger
        self._clock = clock
        self._ttl = timedelta(days=config.trusted_device_ttl_days)

    def _grant_key(self, user_id: str) -> str:
        """Fast-lookup key holding the single active grant."""
        return f"{self._config.storage_prefix}_2fa_trusted_{user_id}"

    def _list_key(self, user_id: str) -> str:
        """Key holding the ordered list of all grants."""
        return f"{self._config.storage_prefix}_2fa_trusted_devices_{user_id}"

    def _load_grant(self, user_id: str) -> TrustedDeviceGrant | None:
        data = get_json(self._store, self._grant_key(user_id))
        if data is None:
            return None
        try:
            return TrustedDeviceGrant.model_validate(data)
        except ModelValidationError:
            logger.warning(f"Discarding malformed trusted device record for user {user_id}")
            self._store.remove(self._grant_key(user_id))
            return None

    def _load_list(self, user_id: str) -> list[TrustedDeviceGrant]:
        data = get_json(self._store, self._list_key(user_id))
        if not isinstance(data, list):
            return []

        grants = []
        for item in data:
            try:
                grants.append(TrustedDeviceGrant.model_validate(item))
            except ModelValidationError:
                logger.warning(f"Dropping malformed trusted device entry for user {user_id}")
        return grants

    def _save_list(self, user_id: str, grants: list[TrustedDeviceGrant]) -> None:
        if not grants:
            self._store.remove(self._list_key(user_id))
            return
        set_json(
            self._store,
            self._list_key(user_id),
            [grant.model_dump(mode="json") for grant in grants],
        )

    def _purge_expired(self, user_id: str, now: datetime) -> list[TrustedDeviceGrant]:
        """Drop expired grants from both records. Returns the active list."""
        grants = self._load_list(user_id)
        active = [grant for grant in grants if grant.is_active(now)]
        if len(active) != len(grants):
            self._save_list(user_id, active)
            for grant in grants:
                if not grant.is_active(now):
                    self._security_logger.log(
                        SecurityEvent.TRUSTED_DEVICE_EXPIRED,
                        user_id=user_id,
                        device_id=grant.device_id,
                    )

        fast = self._load_grant(user_id)
        if fast is not None and not fast.is_active(now):
            self._store.remove(self._grant_key(user_id))

        return active

    def is_trusted(self, user_id: str) -> bool:
        """True iff a non-expired grant exists for this device on user_id.

        The fast record answers when it names this device. Otherwise the
        list decides, and a matching grant found there becomes the fast
        record again. Expired grants are deleted along the way.
        """
        now = self._clock()
        device_id = self._device.device_id

        fast = self._load_grant(user_id)
        if fast is not None and fast.device_id == device_id and fast.is_active(now):
            return True

        for grant in self._purge_expired(user_id, now):
            if grant.device_id == device_id:
                set_json(self._store, self._grant_key(user_id), grant.model_dump(mode="json"))
                return True
        return False

    def grant(self, user_id: str, *, confirmed_intent: bool) -> TrustedDeviceGrant:
        """Create or replace the grant for this device.

        confirmed_intent must be True, meaning the caller has verified that
        the user re-entered the account password after a successful
        second-factor check.

        Raises:
            TrustDeniedError: If intent was not confirmed.
        """
        device_id = self._device.device_id
        if not confirmed_intent:
            self._security_logger.log(
                SecurityEvent.TRUSTED_DEVICE_DENIED,
                user_id=user_id,
                device_id=device_id,
                details={"reason": "intent_not_confirmed"},
            )
            raise TrustDeniedError("Password confirmation is required to trust this device")

        now = self._clock()
        grant = TrustedDeviceGrant(
            device_id=device_id,
            user_id=user_id,
            label=self._device.label,
            created_at=now,
            expires_at=now + self._ttl,
            last_verified_at=now,
        )

        # Fast record and list are written together
        set_json(self._store, self._grant_key(user_id), grant.model_dump(mode="json"))
        others = [
            existing
            for existing in self._purge_expired(user_id, now)
            if existing.device_id != device_id
        ]
        others.append(grant)
        self._save_list(user_id, others)

        self._security_logger.log(
            SecurityEvent.TRUSTED_DEVICE_GRANTED,
            user_id=user_id,
            device_id=device_id,
            details={
                "expires_at": grant.expires_at.isoformat(),
                **asdict(self._device.describe()),
            },
        )
        return grant

    def revoke(self, user_id: str, device_id: str) -> None:
        """Remove one grant. Clears the fast record if it names the same device.

        Safe to call for a device that isn't trusted.
        """
        grants = self._load_list(user_id)
        remaining = [grant for grant in grants if grant.device_id != device_id]
        if len(remaining) != len(grants):
            self._save_list(user_id, remaining)

        fast = self._load_grant(user_id)
        if fast is not None and fast.device_id == device_id:
            self._store.remove(self._grant_key(user_id))

        self._security_logger.log(
            SecurityEvent.TRUSTED_DEVICE_REVOKED,
            user_id=user_id,
            device_id=device_id,
        )

    def revoke_all(self, user_id: str) -> None:
        """Clear every grant for user_id."""
        self._store.remove(self._list_key(user_id))
        self._store.remove(self._grant_key(user_id))
        self._security_logger.log(
            SecurityEvent.TRUSTED_DEVICE_REVOKED,
            user_id=user_id,
            details={"scope": "all"},
        )

    def list(self, user_id: str) -> list[TrustedDeviceGrant]:
        """Active grants in the order they were created. Expired ones are pruned first."""
        return self._purge_expired(user_id, self._clock())
