"""Auth flow state machine - drives login, registration, code verification,
second-factor challenge and password reset.

Stages:
    login          -> register | reset-password | second-factor | (session)
    register       -> verify-code
    verify-code    -> login
    second-factor  -> (session) | login
    reset-password -> login

Every stage change bumps the flow epoch. A collaborator response that
arrives after the epoch moved on is discarded (FlowResult.stale) and
never applied to the newer state.
"""

import logging
import re

from auth.bootstrap import BootstrapOutcome, SessionBootstrapper
from auth.codes import OneTimeCodeIssuer, digits_only
from auth.config import AuthFlowConfig
from auth.countdown import ResendCountdown, TickCallback
from auth.exceptions import (
    AuthError,
    ConflictError,
    DeliveryFailedError,
    NetworkFailureError,
    TrustDeniedError,
    UnauthorizedError,
    ValidationError,
)
from auth.interfaces import CodeDelivery, CredentialStore
from auth.security_logger import SecurityEvent, SecurityLogger
from auth.storage import KeyValueStore
from auth.trusted_devices import TrustedDeviceRegistry
from auth.types import (
    AuthenticatedUser,
    AuthStage,
    FlowError,
    FlowResult,
    PendingRegistration,
    TrustedDeviceGrant,
)

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# User-facing messages. None of them reveal whether an account exists.
MSG_NETWORK = "Unable to reach the authentication server. Check your connection and try again."
MSG_BAD_CREDENTIALS = "Invalid email or password."
MSG_MISSING_CREDENTIALS = "Enter your email and password."
MSG_DESTINATION_REQUIRED = "Enter the chat ID where we should send your verification code."
MSG_INVALID_EMAIL = "Please enter a valid email address."
MSG_PASSWORD_MISMATCH = "Passwords do not match."
MSG_PASSWORD_TOO_SHORT = "Password must be at least {length} characters."
MSG_DELIVERY_FAILED = "We couldn't send your verification code. Check the chat ID and try again."
MSG_CODE_INCOMPLETE = "Please enter all {length} digits."
MSG_CODE_INVALID = "Invalid verification code. Please check the code and try again."
MSG_SECOND_FACTOR_INVALID = "Invalid 2FA code. Please try again."
MSG_ACCOUNT_CONFLICT = "An account with this email already exists."
MSG_TRUST_DENIED = "Confirm your password to trust this device."
MSG_CODE_SENT = "Check your chat. We sent you a {length}-digit verification code."
MSG_CODE_RESENT = "New code sent."
MSG_ACCOUNT_CREATED = "Account created. You can now sign in."
MSG_RESET_SENT = "If an account exists for this email, you'll receive reset instructions shortly."
MSG_WELCOME = "Welcome back!"
MSG_WELCOME_TRUSTED = "Welcome back! Trusted device recognized."


class _StaleResponse(Exception):
    """Collaborator answered after the flow moved on.

    result holds the late value when the call itself succeeded.
    """

    def __init__(self, result=None):
        super().__init__()
        self.result = result


class AuthFlowController:
    """State machine for the sign-in/sign-up flow.

    Holds only transient form state. The authenticated application session
    it hands back on success is owned by the caller.
    """

    def __init__(
        self,
        config: AuthFlowConfig,
        credential_store: CredentialStore,
        code_delivery: CodeDelivery,
        code_issuer: OneTimeCodeIssuer,
        trusted_devices: TrustedDeviceRegistry,
        bootstrapper: SessionBootstrapper,
        store: KeyValueStore,
        security_logger: SecurityLogger,
        on_countdown_tick: TickCallback | None = None,
        countdown_interval: float = 1.0,
    ):
        self._config = config
        self._credential_store = credential_store
        self._code_delivery = code_delivery
        self._issuer = code_issuer
        self._trusted_devices = trusted_devices
        self._bootstrapper = bootstrapper
        self._store = store
        self._security_logger = security_logger
        self._countdown = ResendCountdown(
            self._issuer.seconds_remaining,
            on_tick=on_countdown_tick,
            interval=countdown_interval,
        )

        self._stage = AuthStage.LOGIN
        self._epoch = 0

        # Login form
        self._email = self.remembered_email or ""
        self._password = ""
        self._remember_me = False
        self._pending_user: AuthenticatedUser | None = None

        # Registration / verification
        self._registration = PendingRegistration()
        self._code_input = ""
        self._second_factor_input = ""
        self._delivery_in_flight = False

        # Password reset
        self._reset_email = ""

    # ------------------------------------------------------------------
    # Read-only view state
    # ------------------------------------------------------------------

    @property
    def stage(self) -> AuthStage:
        return self._stage

    @property
    def email(self) -> str:
        """Login email. Survives failed submits."""
        return self._email

    @property
    def registration(self) -> PendingRegistration:
        return self._registration.model_copy()

    @property
    def reset_email(self) -> str:
        return self._reset_email

    @property
    def code_input(self) -> str:
        """Verification digits entered so far. Cleared on mismatch."""
        return self._code_input

    @property
    def second_factor_input(self) -> str:
        return self._second_factor_input

    @property
    def seconds_remaining(self) -> int:
        """Resend cooldown for display, derived from issue time."""
        return self._issuer.seconds_remaining()

    def can_resend(self) -> bool:
        return self._issuer.can_resend()

    @property
    def remembered_email(self) -> str | None:
        """Email saved by 'remember me', for prefilling the login form."""
        prefix = self._config.storage_prefix
        if self._store.get(f"{prefix}_remembered") != "true":
            return None
        return self._store.get(f"{prefix}_user_email")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _transition(self, stage: AuthStage) -> None:
        if stage != self._stage:
            logger.debug(f"Auth flow {self._stage.value} -> {stage.value}")
        self._stage = stage
        self._epoch += 1

    def _require_stage(self, *stages: AuthStage) -> None:
        if self._stage not in stages:
            names = ", ".join(s.value for s in stages)
            raise RuntimeError(
                f"Action not available in stage '{self._stage.value}' (expected {names})"
            )

    async def _await_current(self, epoch: int, awaitable):
        """Await a collaborator call, raising _StaleResponse if the flow moved on."""
        try:
            result = await awaitable
        except AuthError:
            if epoch != self._epoch:
                raise _StaleResponse() from None
            raise
        if epoch != self._epoch:
            raise _StaleResponse(result)
        return result

    def _stale(self) -> FlowResult:
        logger.debug("Discarding response for abandoned auth flow step")
        return FlowResult(ok=False, stage=self._stage, stale=True)

    def _fail(self, error: AuthError, message: str) -> FlowResult:
        return FlowResult(
            ok=False,
            stage=self._stage,
            error=FlowError(kind=error.kind, message=message, retryable=error.retryable),
        )

    def _invalid(self, message: str) -> FlowResult:
        return self._fail(ValidationError(message), message)

    async def _sign_out(self, user: AuthenticatedUser | None, reason: str) -> None:
        """End the backend session. Failures are logged, never raised."""
        try:
            await self._credential_store.sign_out()
        except AuthError as e:
            logger.warning(f"Sign out failed ({reason}): {e}")
        self._security_logger.log(
            SecurityEvent.SIGNED_OUT,
            email=user.email if user else None,
            user_id=user.user_id if user else None,
            details={"reason": reason},
        )

    def _persist_remember_me(self, email: str) -> None:
        prefix = self._config.storage_prefix
        if self._remember_me:
            self._store.set(f"{prefix}_remembered", "true")
            self._store.set(f"{prefix}_user_email", email)
        else:
            self._store.remove(f"{prefix}_remembered")
            self._store.remove(f"{prefix}_user_email")

    def _establish_session(self, user: AuthenticatedUser, message: str) -> FlowResult:
        """Hand the authenticated user to the caller and reset the flow."""
        self._persist_remember_me(user.email or self._email)
        self._security_logger.log(
            SecurityEvent.LOGIN_SUCCEEDED, email=user.email, user_id=user.user_id
        )

        self._countdown.cancel()
        self._pending_user = None
        self._password = ""
        self._second_factor_input = ""
        self._transition(AuthStage.LOGIN)
        return FlowResult(ok=True, stage=self._stage, message=message, authenticated=user)

    def _check_registration(self, form: PendingRegistration) -> None:
        """Local checks, cheapest first. Raises ValidationError."""
        if not form.destination.strip():
            raise ValidationError(MSG_DESTINATION_REQUIRED)
        if not EMAIL_PATTERN.match(form.email):
            raise ValidationError(MSG_INVALID_EMAIL)
        if form.password != form.confirm_password:
            raise ValidationError(MSG_PASSWORD_MISMATCH)
        if len(form.password) < self._config.min_password_length:
            raise ValidationError(
                MSG_PASSWORD_TOO_SHORT.format(length=self._config.min_password_length)
            )

    def _complete_digits(self, digits: str) -> str:
        """Digit-filtered code, or ValidationError if not every slot is filled."""
        cleaned = digits_only(digits)
        if len(cleaned) != self._config.code_length:
            raise ValidationError(MSG_CODE_INCOMPLETE.format(length=self._config.code_length))
        return cleaned

    async def _deliver_code(self, epoch: int, destination: str) -> None:
        """Issue a fresh code and send it. On failure the code is withdrawn.

        Raises:
            DeliveryFailedError: Code was not delivered.
            _StaleResponse: Flow moved on during delivery.
        """
        code = self._issuer.issue()
        self._security_logger.log(
            SecurityEvent.CODE_ISSUED,
            email=self._registration.email,
            details={"destination": destination},
        )
        try:
            await self._await_current(epoch, self._code_delivery.send(destination, code))
        except DeliveryFailedError as e:
            self._issuer.invalidate()
            logger.warning(f"Verification code delivery failed: {e}")
            self._security_logger.log(
                SecurityEvent.CODE_DELIVERY_FAILED,
                email=self._registration.email,
                details={"destination": destination},
            )
            raise

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def go_to_register(self) -> FlowResult:
        self._require_stage(AuthStage.LOGIN)
        if not self._registration.email and self._email:
            self._registration.email = self._email
        self._transition(AuthStage.REGISTER)
        return FlowResult(ok=True, stage=self._stage)

    def go_to_reset_password(self) -> FlowResult:
        self._require_stage(AuthStage.LOGIN)
        self._reset_email = self._reset_email or self._email
        self._transition(AuthStage.RESET_PASSWORD)
        return FlowResult(ok=True, stage=self._stage)

    async def back_to_login(self) -> FlowResult:
        """Abandon the current step.

        Leaving verify-code cancels the resend timer and withdraws the code.
        Leaving second-factor also signs out with the backend so the
        challenge can't be resumed without re-authenticating.
        """
        previous = self._stage
        self._transition(AuthStage.LOGIN)
        self._countdown.cancel()
        self._issuer.invalidate()
        self._code_input = ""
        self._second_factor_input = ""

        if previous in (AuthStage.REGISTER, AuthStage.VERIFY_CODE):
            self._registration = PendingRegistration()

        if previous == AuthStage.SECOND_FACTOR:
            user = self._pending_user
            self._pending_user = None
            self._password = ""
            await self._sign_out(user, "second_factor_abandoned")

        return FlowResult(ok=True, stage=self._stage)

    def dispose(self) -> None:
        """Tear down: no timer may fire and no pending response may apply afterwards."""
        self._countdown.cancel()
        self._issuer.invalidate()
        self._epoch += 1

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    async def submit_login(
        self, email: str, password: str, remember_me: bool = False
    ) -> FlowResult:
        """Check primary credentials, then follow the bootstrap decision."""
        self._require_stage(AuthStage.LOGIN)
        self._email = email.strip()
        self._password = password
        self._remember_me = remember_me

        if not self._email or not password:
            return self._invalid(MSG_MISSING_CREDENTIALS)

        epoch = self._epoch
        user = None
        try:
            user = await self._await_current(
                epoch, self._credential_store.sign_in(self._email, password)
            )
            decision = await self._await_current(epoch, self._bootstrapper.decide(user.user_id))
        except _StaleResponse as stale:
            opened = user if user is not None else stale.result
            if opened is not None:
                # Nobody owns the session this abandoned login opened
                await self._sign_out(opened, "login_abandoned")
            return self._stale()
        except UnauthorizedError as e:
            self._security_logger.log(SecurityEvent.LOGIN_FAILED, email=self._email)
            return self._fail(e, MSG_BAD_CREDENTIALS)
        except NetworkFailureError as e:
            logger.warning(f"Login failed, backend unreachable: {e}")
            return self._fail(e, MSG_NETWORK)

        if decision.outcome is BootstrapOutcome.ESTABLISH_SESSION:
            message = MSG_WELCOME_TRUSTED if decision.trusted_device else MSG_WELCOME
            return self._establish_session(user, message)

        self._pending_user = user
        self._second_factor_input = ""
        self._transition(AuthStage.SECOND_FACTOR)
        return FlowResult(ok=True, stage=self._stage)

    # ------------------------------------------------------------------
    # Registration and code verification
    # ------------------------------------------------------------------

    async def submit_registration(
        self,
        email: str,
        username: str,
        password: str,
        confirm_password: str,
        destination: str,
    ) -> FlowResult:
        """Validate locally, then send a verification code out-of-band.

        Only a delivered code moves the flow to verify-code. Entered fields
        are kept on every failure.
        A submit while a code is still being delivered is a no-op.
        """
        self._require_stage(AuthStage.REGISTER)
        if self._delivery_in_flight:
            return FlowResult(ok=False, stage=self._stage)

        self._registration = PendingRegistration(
            email=email.strip(),
            username=username.strip(),
            password=password,
            confirm_password=confirm_password,
            destination=destination.strip(),
        )

        try:
            self._check_registration(self._registration)
        except ValidationError as e:
            return self._fail(e, str(e))

        epoch = self._epoch
        self._delivery_in_flight = True
        try:
            await self._deliver_code(epoch, self._registration.destination)
        except _StaleResponse:
            return self._stale()
        except DeliveryFailedError as e:
            return self._fail(e, MSG_DELIVERY_FAILED)
        finally:
            self._delivery_in_flight = False

        self._code_input = ""
        self._transition(AuthStage.VERIFY_CODE)
        self._countdown.start()
        return FlowResult(
            ok=True,
            stage=self._stage,
            message=MSG_CODE_SENT.format(length=self._config.code_length),
        )

    async def submit_verification_code(self, digits: str) -> FlowResult:
        """Match the code, then create the account."""
        self._require_stage(AuthStage.VERIFY_CODE)
        self._code_input = digits_only(digits)

        try:
            code = self._complete_digits(digits)
        except ValidationError as e:
            return self._fail(e, str(e))

        if not self._issuer.validate(code):
            self._code_input = ""
            self._security_logger.log(SecurityEvent.CODE_MISMATCH, email=self._registration.email)
            return self._fail(UnauthorizedError(), MSG_CODE_INVALID)

        form = self._registration
        epoch = self._epoch
        try:
            await self._await_current(
                epoch,
                self._credential_store.register(form.email, form.password, form.username),
            )
        except _StaleResponse:
            return self._stale()
        except ConflictError as e:
            self._security_logger.log(
                SecurityEvent.REGISTRATION_FAILED, email=form.email, details={"reason": "conflict"}
            )
            return self._fail(e, MSG_ACCOUNT_CONFLICT)
        except NetworkFailureError as e:
            logger.warning(f"Registration failed, backend unreachable: {e}")
            return self._fail(e, MSG_NETWORK)

        self._security_logger.log(SecurityEvent.USER_REGISTERED, email=form.email)
        self._countdown.cancel()
        self._issuer.invalidate()
        self._email = form.email
        self._password = ""
        self._registration = PendingRegistration()
        self._code_input = ""
        self._transition(AuthStage.LOGIN)
        return FlowResult(ok=True, stage=self._stage, message=MSG_ACCOUNT_CREATED)

    async def resend_code(self) -> FlowResult:
        """Reissue and redeliver the code once the cooldown has fully elapsed.

        While the cooldown runs this is a no-op: nothing is issued and the
        timer is not touched.
        """
        self._require_stage(AuthStage.VERIFY_CODE)
        if not self._issuer.can_resend():
            return FlowResult(ok=False, stage=self._stage)

        epoch = self._epoch
        try:
            await self._deliver_code(epoch, self._registration.destination)
        except _StaleResponse:
            return self._stale()
        except DeliveryFailedError as e:
            return self._fail(e, MSG_DELIVERY_FAILED)

        self._code_input = ""
        self._countdown.start()
        return FlowResult(ok=True, stage=self._stage, message=MSG_CODE_RESENT)

    # ------------------------------------------------------------------
    # Second factor
    # ------------------------------------------------------------------

    async def submit_second_factor(
        self,
        digits: str,
        remember_device: bool = False,
        confirm_password: str | None = None,
    ) -> FlowResult:
        """Verify the second-factor code; optionally trust this device.

        Trust requires re-entering the login password. Any mismatch fails
        the submit without granting trust and without completing login.
        """
        self._require_stage(AuthStage.SECOND_FACTOR)
        user = self._pending_user
        if user is None:
            raise RuntimeError("Second-factor stage entered without a signed-in user")

        self._second_factor_input = digits_only(digits)
        try:
            code = self._complete_digits(digits)
        except ValidationError as e:
            return self._fail(e, str(e))

        if remember_device and (not confirm_password or confirm_password != self._password):
            self._security_logger.log(
                SecurityEvent.TRUSTED_DEVICE_DENIED,
                email=user.email,
                user_id=user.user_id,
                details={"reason": "password_mismatch"},
            )
            return self._fail(TrustDeniedError(), MSG_TRUST_DENIED)

        epoch = self._epoch
        try:
            await self._await_current(
                epoch, self._credential_store.verify_second_factor(user.user_id, code)
            )
        except _StaleResponse:
            return self._stale()
        except UnauthorizedError as e:
            self._second_factor_input = ""
            self._security_logger.log(
                SecurityEvent.SECOND_FACTOR_FAILED, email=user.email, user_id=user.user_id
            )
            return self._fail(e, MSG_SECOND_FACTOR_INVALID)
        except NetworkFailureError as e:
            logger.warning(f"2FA verification failed, backend unreachable: {e}")
            return self._fail(e, MSG_NETWORK)

        self._security_logger.log(
            SecurityEvent.SECOND_FACTOR_PASSED, email=user.email, user_id=user.user_id
        )

        if remember_device:
            self._trusted_devices.grant(user.user_id, confirmed_intent=True)

        return self._establish_session(user, MSG_WELCOME)

    # ------------------------------------------------------------------
    # Password reset
    # ------------------------------------------------------------------

    async def submit_password_reset(self, email: str) -> FlowResult:
        """Request an out-of-band reset. The outcome never reveals whether the account exists."""
        self._require_stage(AuthStage.RESET_PASSWORD)
        self._reset_email = email.strip()

        if not EMAIL_PATTERN.match(self._reset_email):
            return self._invalid(MSG_INVALID_EMAIL)

        epoch = self._epoch
        try:
            await self._await_current(
                epoch, self._credential_store.request_password_reset(self._reset_email)
            )
        except _StaleResponse:
            return self._stale()
        except NetworkFailureError as e:
            logger.warning(f"Password reset request failed, backend unreachable: {e}")
            return self._fail(e, MSG_NETWORK)

        self._security_logger.log(SecurityEvent.PASSWORD_RESET_REQUESTED, email=self._reset_email)
        self._reset_email = ""
        self._transition(AuthStage.LOGIN)
        return FlowResult(ok=True, stage=self._stage, message=MSG_RESET_SENT)

    # ------------------------------------------------------------------
    # Trusted device management
    # ------------------------------------------------------------------

    def trusted_devices(self, user_id: str) -> list[TrustedDeviceGrant]:
        """Active trust grants for user_id, oldest first."""
        return self._trusted_devices.list(user_id)

    def revoke_trusted_device(self, user_id: str, device_id: str) -> None:
        """Stop one device from skipping the second factor."""
        self._trusted_devices.revoke(user_id, device_id)

    def revoke_all_trusted_devices(self, user_id: str) -> None:
        """Every device must pass the second factor again, this one included."""
        self._trusted_devices.revoke_all(user_id)
