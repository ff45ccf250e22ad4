"""Authentication flow: login, registration, one-time codes and device trust."""

from auth.exceptions import (
    AuthError,
    ValidationError,
    UnauthorizedError,
    ConflictError,
    DeliveryFailedError,
    NetworkFailureError,
    TrustDeniedError,
)
from auth.types import (
    AuthStage,
    AuthenticatedUser,
    SecondFactorStatus,
    TrustedDeviceGrant,
    PendingRegistration,
    FlowError,
    FlowResult,
)
from auth.config import AuthFlowConfig, load_flow_config
from auth.storage import KeyValueStore, InMemoryKeyValueStore
from auth.device import DeviceIdentity, DeviceDescription, describe_user_agent
from auth.codes import OneTimeCodeIssuer, CodeValidationPolicy
from auth.countdown import ResendCountdown
from auth.security_logger import SecurityLogger, SecurityEvent
from auth.trusted_devices import TrustedDeviceRegistry
from auth.bootstrap import SessionBootstrapper, BootstrapDecision, BootstrapOutcome
from auth.interfaces import CredentialStore, CodeDelivery
from auth.controller import AuthFlowController
from auth.factory import create_auth_flow
