"""Tests for SessionBootstrapper - post-login decision table."""

import logging

import pytest

from auth.bootstrap import BootstrapOutcome, SessionBootstrapper
from auth.exceptions import NetworkFailureError
from auth.security_logger import SecurityEvent
from auth.types import SecondFactorStatus
from conftest import TEST_USER_ID


@pytest.fixture
def bootstrapper(mock_credential_store, registry, security_logger):
    return SessionBootstrapper(mock_credential_store, registry, security_logger)


@pytest.mark.asyncio
class TestDecisionTable:
    async def test_disabled_untrusted_establishes_session(self, bootstrapper):
        decision = await bootstrapper.decide(TEST_USER_ID)

        assert decision.outcome is BootstrapOutcome.ESTABLISH_SESSION
        assert decision.second_factor_enabled is False

    async def test_disabled_trusted_establishes_session(self, bootstrapper, registry):
        """2FA off with a leftover grant is still a plain login, never an error."""
        registry.grant(TEST_USER_ID, confirmed_intent=True)

        decision = await bootstrapper.decide(TEST_USER_ID)

        assert decision.outcome is BootstrapOutcome.ESTABLISH_SESSION

    async def test_enabled_trusted_establishes_session(
        self, bootstrapper, registry, mock_credential_store
    ):
        mock_credential_store.get_second_factor_status.return_value = SecondFactorStatus(enabled=True)
        registry.grant(TEST_USER_ID, confirmed_intent=True)

        decision = await bootstrapper.decide(TEST_USER_ID)

        assert decision.outcome is BootstrapOutcome.ESTABLISH_SESSION
        assert decision.trusted_device is True

    async def test_enabled_untrusted_requires_second_factor(
        self, bootstrapper, mock_credential_store
    ):
        mock_credential_store.get_second_factor_status.return_value = SecondFactorStatus(enabled=True)

        decision = await bootstrapper.decide(TEST_USER_ID)

        assert decision.outcome is BootstrapOutcome.REQUIRE_SECOND_FACTOR
        assert decision.trusted_device is False

    async def test_enabled_expired_trust_requires_second_factor(
        self, bootstrapper, registry, mock_credential_store, clock
    ):
        mock_credential_store.get_second_factor_status.return_value = SecondFactorStatus(enabled=True)
        registry.grant(TEST_USER_ID, confirmed_intent=True)
        clock.advance(days=31)

        decision = await bootstrapper.decide(TEST_USER_ID)

        assert decision.outcome is BootstrapOutcome.REQUIRE_SECOND_FACTOR


@pytest.mark.asyncio
class TestStatusFailure:
    async def test_status_failure_treated_as_disabled(
        self, bootstrapper, mock_credential_store, caplog
    ):
        mock_credential_store.get_second_factor_status.side_effect = NetworkFailureError("down")

        with caplog.at_level(logging.WARNING, logger="auth.bootstrap"):
            decision = await bootstrapper.decide(TEST_USER_ID)

        assert decision.outcome is BootstrapOutcome.ESTABLISH_SESSION
        assert "2FA status check failed" in caplog.text

    async def test_unexpected_error_also_degrades(self, bootstrapper, mock_credential_store):
        mock_credential_store.get_second_factor_status.side_effect = RuntimeError("boom")

        decision = await bootstrapper.decide(TEST_USER_ID)

        assert decision.outcome is BootstrapOutcome.ESTABLISH_SESSION

    async def test_status_failure_logged_as_security_event(
        self, bootstrapper, mock_credential_store, security_logger
    ):
        mock_credential_store.get_second_factor_status.side_effect = NetworkFailureError("down")

        await bootstrapper.decide(TEST_USER_ID)

        events = security_logger.get_recent_events(
            event_type=SecurityEvent.SECOND_FACTOR_STATUS_UNAVAILABLE
        )
        assert len(events) == 1


@pytest.mark.asyncio
class TestNoCaching:
    async def test_status_fetched_on_every_decision(self, bootstrapper, mock_credential_store):
        await bootstrapper.decide(TEST_USER_ID)
        await bootstrapper.decide(TEST_USER_ID)

        assert mock_credential_store.get_second_factor_status.await_count == 2

    async def test_decision_follows_status_changes(self, bootstrapper, mock_credential_store):
        first = await bootstrapper.decide(TEST_USER_ID)
        mock_credential_store.get_second_factor_status.return_value = SecondFactorStatus(enabled=True)
        second = await bootstrapper.decide(TEST_USER_ID)

        assert first.outcome is BootstrapOutcome.ESTABLISH_SESSION
        assert second.outcome is BootstrapOutcome.REQUIRE_SECOND_FACTOR
