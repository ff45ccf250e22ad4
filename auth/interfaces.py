"""Collaborator contracts consumed by the auth flow.

Implementations raise the typed errors from auth.exceptions. Concrete
HTTP adapters live in the clients package.
"""

from typing import Protocol

from auth.types import AuthenticatedUser, SecondFactorStatus


class CredentialStore(Protocol):
    """Backend owning user records and credential verification."""

    async def sign_in(self, identifier: str, secret: str) -> AuthenticatedUser:
        """
        Raises:
            UnauthorizedError: Credentials rejected.
            NetworkFailureError: Backend unreachable.
        """
        ...

    async def get_second_factor_status(self, user_id: str) -> SecondFactorStatus:
        """May raise anything. Callers treat failure as 'disabled'."""
        ...

    async def verify_second_factor(self, user_id: str, code: str) -> None:
        """
        Raises:
            UnauthorizedError: Code rejected.
            NetworkFailureError: Backend unreachable.
        """
        ...

    async def register(self, identifier: str, secret: str, display_name: str) -> None:
        """
        Raises:
            ConflictError: Account already exists.
            NetworkFailureError: Backend unreachable.
        """
        ...

    async def request_password_reset(self, identifier: str) -> None:
        """
        Must succeed for unknown identifiers too.

        Raises:
            NetworkFailureError: Backend unreachable.
        """
        ...

    async def sign_out(self) -> None:
        ...


class CodeDelivery(Protocol):
    """Out-of-band channel for one-time codes."""

    async def send(self, destination: str, code: str) -> None:
        """
        Raises:
            DeliveryFailedError: Message was not delivered.
        """
        ...
