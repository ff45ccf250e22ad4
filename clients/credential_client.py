"""
CredentialStore over a Supabase-style backend.

Password sign-in, sign-out and password recovery go to the GoTrue auth
endpoints. Second-factor status/verification and account creation go to
edge functions. Blocking HTTP runs in a worker thread so the event loop
stays responsive.
"""

import asyncio
import logging
from typing import Any

import requests

from auth.exceptions import ConflictError, NetworkFailureError, UnauthorizedError
from auth.types import AuthenticatedUser, SecondFactorStatus

logger = logging.getLogger(__name__)


class SupabaseCredentialStore:
    """CredentialStore backed by Supabase auth and edge functions."""

    def __init__(
        self,
        project_url: str,
        anon_key: str,
        signup_function: str = "signup",
        twofa_function: str = "twofa",
        timeout: float = 10,
    ):
        """
        Args:
            project_url: e.g. https://<project>.supabase.co
            anon_key: Public anon key (apikey header)
            signup_function: Edge function path that creates accounts
            twofa_function: Edge function handling 2FA actions
            timeout: Request timeout in seconds

        Raises:
            ValueError: If project_url or anon_key is empty
        """
        if not project_url:
            raise ValueError("project_url is required")
        if not anon_key:
            raise ValueError("anon_key is required")

        self.base_url = project_url.rstrip("/")
        self.anon_key = anon_key
        self.signup_function = signup_function
        self.twofa_function = twofa_function
        self.timeout = timeout
        self._session = requests.Session()
        self._access_token: str | None = None

    @property
    def signed_in(self) -> bool:
        return self._access_token is not None

    def _headers(self, bearer: str | None = None) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "apikey": self.anon_key,
            "Authorization": f"Bearer {bearer or self.anon_key}",
        }

    def _post(
        self,
        path: str,
        payload: dict[str, Any],
        bearer: str | None = None,
        params: dict[str, str] | None = None,
    ) -> requests.Response:
        """POST JSON. Transport failures become NetworkFailureError."""
        try:
            return self._session.post(
                f"{self.base_url}{path}",
                json=payload,
                params=params,
                headers=self._headers(bearer),
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Auth backend request to {path} failed: {type(e).__name__}")
            raise NetworkFailureError("Unable to reach authentication server") from e

    @staticmethod
    def _body(response: requests.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    @staticmethod
    def _error_text(body: dict[str, Any]) -> str:
        for field in ("error_description", "error", "msg", "message"):
            value = body.get(field)
            if isinstance(value, str) and value:
                return value
        return ""

    def _require_token(self) -> str:
        if self._access_token is None:
            raise UnauthorizedError("Not signed in")
        return self._access_token

    # ------------------------------------------------------------------
    # Blocking implementations
    # ------------------------------------------------------------------

    def sign_in_sync(self, identifier: str, secret: str) -> AuthenticatedUser:
        response = self._post(
            "/auth/v1/token",
            {"email": identifier, "password": secret},
            params={"grant_type": "password"},
        )
        body = self._body(response)

        if response.status_code in (400, 401, 403):
            raise UnauthorizedError("Credentials rejected")
        if response.status_code != 200:
            logger.error(f"Sign-in failed with status {response.status_code}")
            raise NetworkFailureError(f"Auth backend error: {response.status_code}")

        token = body.get("access_token")
        user = body.get("user")
        if not token or not isinstance(user, dict) or not user.get("id"):
            raise NetworkFailureError("Malformed sign-in response")

        self._access_token = token
        metadata = user.get("user_metadata")
        if not isinstance(metadata, dict):
            metadata = {}
        return AuthenticatedUser(
            user_id=user["id"],
            email=user.get("email") or identifier,
            display_name=metadata.get("name") or metadata.get("username"),
        )

    def _twofa(self, payload: dict[str, Any]) -> requests.Response:
        return self._post(
            f"/functions/v1/{self.twofa_function}",
            payload,
            bearer=self._require_token(),
        )

    def get_second_factor_status_sync(self, user_id: str) -> SecondFactorStatus:
        response = self._twofa({"action": "status"})
        if response.status_code != 200:
            raise NetworkFailureError(f"2FA status unavailable: {response.status_code}")
        return SecondFactorStatus(enabled=self._body(response).get("enabled") is True)

    def verify_second_factor_sync(self, user_id: str, code: str) -> None:
        response = self._twofa({"action": "verify", "code": code})
        if response.status_code in (400, 401):
            raise UnauthorizedError("Second-factor code rejected")
        if response.status_code != 200 or self._body(response).get("valid") is not True:
            raise NetworkFailureError(f"2FA verification failed: {response.status_code}")

    def register_sync(self, identifier: str, secret: str, display_name: str) -> None:
        response = self._post(
            f"/functions/v1/{self.signup_function}",
            {"email": identifier, "password": secret, "name": display_name},
        )
        if response.ok:
            return

        error_text = self._error_text(self._body(response))
        if response.status_code == 409 or "already" in error_text.lower():
            raise ConflictError("Account already exists")
        logger.error(f"Registration failed with status {response.status_code}: {error_text}")
        raise NetworkFailureError(f"Server error: {response.status_code}")

    def request_password_reset_sync(self, identifier: str) -> None:
        response = self._post("/auth/v1/recover", {"email": identifier})
        # Unknown emails must look like success
        if response.status_code == 429 or response.status_code >= 500:
            raise NetworkFailureError(f"Password reset unavailable: {response.status_code}")

    def sign_out_sync(self) -> None:
        token = self._access_token
        self._access_token = None
        if token is None:
            return
        try:
            self._post("/auth/v1/logout", {}, bearer=token)
        except NetworkFailureError:
            # Local token already cleared
            logger.warning("Sign-out request failed, local session cleared")

    # ------------------------------------------------------------------
    # CredentialStore
    # ------------------------------------------------------------------

    async def sign_in(self, identifier: str, secret: str) -> AuthenticatedUser:
        return await asyncio.to_thread(self.sign_in_sync, identifier, secret)

    async def get_second_factor_status(self, user_id: str) -> SecondFactorStatus:
        return await asyncio.to_thread(self.get_second_factor_status_sync, user_id)

    async def verify_second_factor(self, user_id: str, code: str) -> None:
        await asyncio.to_thread(self.verify_second_factor_sync, user_id, code)

    async def register(self, identifier: str, secret: str, display_name: str) -> None:
        await asyncio.to_thread(self.register_sync, identifier, secret, display_name)

    async def request_password_reset(self, identifier: str) -> None:
        await asyncio.to_thread(self.request_password_reset_sync, identifier)

    async def sign_out(self) -> None:
        await asyncio.to_thread(self.sign_out_sync)

    def close(self) -> None:
        self._session.close()
