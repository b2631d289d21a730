"""Shared fixtures for the relay test suite."""

import pytest

from mocks import (
    MOCK_CHAIN_ID,
    MOCK_CURRENT_TIME,
    MOCK_DESTINATION_DOMAIN,
    MOCK_SOURCE_DOMAIN,
    MOCK_USDC,
    FakeClock,
    MockDestinationAdapter,
    MockSourceAdapter,
    ScriptedAttestationService,
    create_mock_attestation,
)
from cctp_relay.engine.orchestrator import TransferOrchestrator


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def source_adapter():
    return MockSourceAdapter()


@pytest.fixture
def destination_adapter():
    return MockDestinationAdapter()


@pytest.fixture
def attestation_service():
    """Attestation service answering with a complete attestation right away."""
    return ScriptedAttestationService([create_mock_attestation()])


@pytest.fixture
def make_orchestrator(source_adapter, destination_adapter, attestation_service, fake_clock):
    """
    Factory building a TransferOrchestrator over the in-memory adapters.

    Keyword arguments override the defaults, e.g.
    ``make_orchestrator(attestation_service=ScriptedAttestationService([...]))``.
    """
    def _make(**kwargs):
        params = dict(
            source=source_adapter,
            destination=destination_adapter,
            attestation_service=attestation_service,
            source_domain=MOCK_SOURCE_DOMAIN,
            destination_domain=MOCK_DESTINATION_DOMAIN,
            burn_token=MOCK_USDC,
            chain_id=MOCK_CHAIN_ID,
            clock=fake_clock.time,
            sleep=fake_clock.sleep,
            now=lambda: MOCK_CURRENT_TIME,
        )
        params.update(kwargs)
        return TransferOrchestrator(
            params.pop("source"),
            params.pop("destination"),
            params.pop("attestation_service"),
            **params,
        )

    return _make
