"""Typed exceptions for auth flow failures.

Retryable failures (network, delivery) tell the user to try again.
Corrective failures (bad credentials, duplicate account, trust denied)
tell the user to change what they entered.
"""


class AuthError(Exception):
    """Base class for authentication flow errors."""

    kind = "auth_error"
    retryable = False


class ValidationError(AuthError):
    """
    Local input check failed before any external call.

    Bad email shape, short password, mismatched confirmation,
    incomplete code digits.
    """

    kind = "validation"


class UnauthorizedError(AuthError):
    """
    Credentials or code were rejected.

    Note: Never say which part of the credential was wrong.
    """

    kind = "unauthorized"


class ConflictError(AuthError):
    """Account already exists for this identifier."""

    kind = "conflict"


class DeliveryFailedError(AuthError):
    """Out-of-band code could not be sent. The code is not considered sent."""

    kind = "delivery_failed"
    retryable = True


class NetworkFailureError(AuthError):
    """Backend unreachable (transport-level failure)."""

    kind = "network_failure"
    retryable = True


class TrustDeniedError(AuthError):
    """Device trust refused: password re-confirmation missing or mismatched."""

    kind = "trust_denied"
