"""
Attestation Poller Test Suite

Tests the bounded exponential backoff loop with an injected clock: retry
intervals, overall timeout, per-attempt timeout and error propagation.
"""

import asyncio
import time

import pytest

from mocks import (
    MOCK_SOURCE_DOMAIN,
    MOCK_SOURCE_TX,
    FakeClock,
    ScriptedAttestationService,
    create_mock_attestation,
)
from cctp_relay.adapters.bases import AttestationService
from cctp_relay.engine.exceptions import AttestationServiceError, AttestationTimeout
from cctp_relay.engine.poller import AttestationPoller, PollingPolicy
from cctp_relay.schemas.transfers import AttestationRequest, NotYetAvailable


REQUEST = AttestationRequest(source_domain=MOCK_SOURCE_DOMAIN, transaction_hash=MOCK_SOURCE_TX)


def create_poller(service, clock: FakeClock, policy: PollingPolicy = None) -> AttestationPoller:
    return AttestationPoller(service, policy, clock=clock.time, sleep=clock.sleep)


class SlowThenReadyService(AttestationService):
    """Hangs on the first query, answers immediately afterwards."""

    def __init__(self):
        self.calls = 0

    async def query(self, request, per_attempt_timeout):
        self.calls += 1
        if self.calls == 1:
            await asyncio.sleep(5)
        return create_mock_attestation()


class ClockConsumingService(AttestationService):
    """Never ready; every query uses up the whole time budget it is given."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.timeouts = []

    async def query(self, request, per_attempt_timeout):
        self.timeouts.append(per_attempt_timeout)
        self.clock.now += per_attempt_timeout
        return NotYetAvailable(reason="pending")


class HangingService(AttestationService):
    """Never answers."""

    async def query(self, request, per_attempt_timeout):
        await asyncio.sleep(60)


# ========================================================================
# Test Classes
# ========================================================================

class TestPollingPolicy:
    """Test default timing parameters."""

    def test_defaults(self):
        policy = PollingPolicy()
        assert policy.overall_timeout == 180.0
        assert policy.initial_interval == 2.0
        assert policy.backoff_factor == 1.5
        assert policy.max_interval == 30.0
        assert policy.per_attempt_timeout == 10.0


class TestAttestationPoller:
    """Test the attestation wait loop."""

    @pytest.mark.asyncio
    async def test_immediate_attestation(self, fake_clock):
        """Test an available attestation is returned without sleeping."""
        service = ScriptedAttestationService([create_mock_attestation()])
        poller = create_poller(service, fake_clock)

        attestation = await poller.wait_for(REQUEST)

        assert attestation.event_nonce == "42"
        assert poller.attempts == 1
        assert poller.intervals == []
        assert service.requests == [REQUEST]

    @pytest.mark.asyncio
    async def test_passes_per_attempt_timeout(self, fake_clock):
        """Test every query is told the per-attempt timeout."""
        service = ScriptedAttestationService([create_mock_attestation()])
        await create_poller(service, fake_clock).wait_for(REQUEST)

        assert service.timeouts == [10.0]

    @pytest.mark.asyncio
    async def test_backoff_until_available(self, fake_clock):
        """Test intervals grow by the backoff factor between retries."""
        service = ScriptedAttestationService(
            [NotYetAvailable(), NotYetAvailable(), NotYetAvailable(), create_mock_attestation()]
        )
        poller = create_poller(service, fake_clock)

        await poller.wait_for(REQUEST)

        assert poller.intervals == [2.0, 3.0, 4.5]
        assert fake_clock.sleeps == [2.0, 3.0, 4.5]
        assert poller.attempts == 4

    @pytest.mark.asyncio
    async def test_timeout_after_overall_deadline(self, fake_clock):
        """Test the full backoff schedule and the timeout error."""
        service = ScriptedAttestationService([NotYetAvailable()])
        poller = create_poller(service, fake_clock)

        with pytest.raises(AttestationTimeout, match="180 seconds") as exc_info:
            await poller.wait_for(REQUEST)

        assert poller.intervals == [
            2.0, 3.0, 4.5, 6.75, 10.125, 15.1875, 22.78125, 30.0, 30.0, 30.0, 25.65625,
        ]
        assert sum(poller.intervals) == 180.0
        assert exc_info.value.timeout == 180.0
        assert poller.attempts == 11

    @pytest.mark.asyncio
    async def test_interval_capped_by_remaining_time(self, fake_clock):
        """Test the last sleep never overshoots the overall deadline."""
        policy = PollingPolicy(overall_timeout=10.0, initial_interval=2.0, backoff_factor=2.0)
        poller = create_poller(ScriptedAttestationService([NotYetAvailable()]), fake_clock, policy)

        with pytest.raises(AttestationTimeout):
            await poller.wait_for(REQUEST)

        assert poller.intervals == [2.0, 4.0, 4.0]
        assert fake_clock.now == 10.0

    @pytest.mark.asyncio
    async def test_service_error_propagates_immediately(self, fake_clock):
        """Test non-retryable errors skip the backoff."""
        service = ScriptedAttestationService([AttestationServiceError("HTTP 400", status_code=400)])
        poller = create_poller(service, fake_clock)

        with pytest.raises(AttestationServiceError, match="HTTP 400"):
            await poller.wait_for(REQUEST)

        assert poller.attempts == 1
        assert fake_clock.sleeps == []

    @pytest.mark.asyncio
    async def test_unexpected_exception_propagates(self, fake_clock):
        """Test arbitrary service exceptions are not swallowed."""
        poller = create_poller(ScriptedAttestationService([RuntimeError("boom")]), fake_clock)

        with pytest.raises(RuntimeError, match="boom"):
            await poller.wait_for(REQUEST)

    @pytest.mark.asyncio
    async def test_unexpected_answer_type(self, fake_clock):
        """Test an answer that is neither attestation nor not-yet is an error."""
        poller = create_poller(ScriptedAttestationService(["garbage"]), fake_clock)

        with pytest.raises(AttestationServiceError, match="Unexpected"):
            await poller.wait_for(REQUEST)

    @pytest.mark.asyncio
    async def test_per_attempt_timeout_is_retried(self, fake_clock):
        """Test a hanging query counts as not yet available."""
        policy = PollingPolicy(per_attempt_timeout=0.01)
        service = SlowThenReadyService()
        poller = create_poller(service, fake_clock, policy)

        attestation = await poller.wait_for(REQUEST)

        assert attestation.event_nonce == "42"
        assert service.calls == 2
        assert poller.intervals == [2.0]

    @pytest.mark.asyncio
    async def test_slow_queries_do_not_overrun_deadline(self, fake_clock):
        """Test the last query only gets the time left before the deadline."""
        service = ClockConsumingService(fake_clock)
        poller = create_poller(service, fake_clock)

        with pytest.raises(AttestationTimeout):
            await poller.wait_for(REQUEST)

        assert fake_clock.now == pytest.approx(180.0)
        assert service.timeouts[:-1] == [10.0] * (len(service.timeouts) - 1)
        assert 0 < service.timeouts[-1] < 10.0

    @pytest.mark.asyncio
    async def test_hanging_service_is_cut_off_at_deadline(self):
        """Test a query hanging past the overall deadline is abandoned in time."""
        policy = PollingPolicy(overall_timeout=0.05, per_attempt_timeout=10.0)
        poller = AttestationPoller(HangingService(), policy)

        started = time.monotonic()
        with pytest.raises(AttestationTimeout):
            await poller.wait_for(REQUEST)

        assert time.monotonic() - started < 1.0
