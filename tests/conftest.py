"""Shared test fixtures for the auth flow test suite."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, Mock

import pytest

from auth.config import AuthFlowConfig
from auth.device import DeviceIdentity
from auth.security_logger import SecurityLogger
from auth.storage import InMemoryKeyValueStore
from auth.trusted_devices import TrustedDeviceRegistry
from auth.types import AuthenticatedUser, SecondFactorStatus


# =============================================================================
# TEST USER CONSTANTS
# =============================================================================

TEST_USER_ID = "00000000-0000-0000-0000-000000000001"
TEST_USER_EMAIL = "testuser@test.local"
TEST_USER_PASSWORD = "correct-horse-battery"

TEST_USER_B_ID = "00000000-0000-0000-0000-000000000002"

TEST_PLATFORM = "Linux x86_64"
TEST_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

START_TIME = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# CLOCK
# =============================================================================


class FakeClock:
    """Controllable UTC clock."""

    def __init__(self, start: datetime = START_TIME):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# =============================================================================
# CORE FIXTURES
# =============================================================================


@pytest.fixture
def config() -> AuthFlowConfig:
    return AuthFlowConfig()


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def security_logger(clock) -> SecurityLogger:
    return SecurityLogger(clock=clock)


@pytest.fixture
def device(store, config) -> DeviceIdentity:
    return DeviceIdentity(store, config, platform=TEST_PLATFORM, user_agent=TEST_USER_AGENT)


@pytest.fixture
def registry(store, device, config, security_logger, clock) -> TrustedDeviceRegistry:
    return TrustedDeviceRegistry(
        store=store,
        device=device,
        config=config,
        security_logger=security_logger,
        clock=clock,
    )


# =============================================================================
# COLLABORATOR FAKES
# =============================================================================


@pytest.fixture
def test_user() -> AuthenticatedUser:
    return AuthenticatedUser(user_id=TEST_USER_ID, email=TEST_USER_EMAIL, display_name="tester")


@pytest.fixture
def mock_credential_store(test_user):
    """CredentialStore double: valid credentials, 2FA disabled by default."""
    mock = Mock()
    mock.sign_in = AsyncMock(return_value=test_user)
    mock.get_second_factor_status = AsyncMock(return_value=SecondFactorStatus(enabled=False))
    mock.verify_second_factor = AsyncMock(return_value=None)
    mock.register = AsyncMock(return_value=None)
    mock.request_password_reset = AsyncMock(return_value=None)
    mock.sign_out = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def mock_code_delivery():
    """CodeDelivery double - no messages actually sent."""
    mock = Mock()
    mock.send = AsyncMock(return_value=None)
    return mock


def last_sent_code(mock_code_delivery) -> str:
    """Code passed to the most recent send() call."""
    return mock_code_delivery.send.call_args.args[1]
