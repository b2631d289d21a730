"""
Attestation polling with bounded exponential backoff.

Two timeouts apply: every query is capped by a short per-attempt timeout so a
hanging service cannot stall the loop, and the whole wait is capped by an
overall deadline. Only "not yet available" answers (and per-attempt timeouts)
are retried; every other failure propagates immediately.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from ..adapters.bases import AttestationService
from ..schemas.transfers import Attestation, AttestationRequest, NotYetAvailable
from .exceptions import AttestationServiceError, AttestationTimeout

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PollingPolicy:
    """
    Timing parameters of an attestation wait (all in seconds).

    Attributes:
        overall_timeout: Total time allowed before giving up.
        initial_interval: First backoff interval.
        max_interval: Upper bound of the backoff interval.
        backoff_factor: Growth factor applied after every retry.
        per_attempt_timeout: Cap on a single service query.
    """
    overall_timeout: float = 180.0
    initial_interval: float = 2.0
    max_interval: float = 30.0
    backoff_factor: float = 1.5
    per_attempt_timeout: float = 10.0


class AttestationPoller:
    """
    Wait for the attestation of one burn.

    State machine: WAITING on entry, then RECEIVED (``wait_for`` returns) or
    TIMED_OUT (``AttestationTimeout`` is raised). A poller instance serves a
    single wait; create one per transfer.

    Args:
        service: Attestation service to query.
        policy:  Timing parameters.
        clock:   Monotonic clock in seconds (injectable for tests).
        sleep:   Async sleep function (injectable for tests).

    Attributes:
        intervals: Backoff delays actually slept, in order.
        attempts: Number of queries issued.

    Example::

        poller = AttestationPoller(iris_client)
        attestation = await poller.wait_for(
            AttestationRequest(source_domain=6, transaction_hash=burn_tx)
        )
    """

    def __init__(
        self,
        service: AttestationService,
        policy: Optional[PollingPolicy] = None,
        *,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ) -> None:
        self.service = service
        self.policy = policy or PollingPolicy()
        self._clock = clock or time.monotonic
        self._sleep = sleep or asyncio.sleep
        self.intervals: List[float] = []
        self.attempts = 0

    async def wait_for(self, request: AttestationRequest) -> Attestation:
        """
        Poll until the attestation for ``request`` is available.

        Args:
            request: Burn to wait for.

        Returns:
            Attestation: The first non-empty attestation returned.

        Raises:
            AttestationTimeout: The overall deadline elapsed first.
            AttestationServiceError: The service returned an unexpected answer.
            Exception: Any non-retryable error raised by the service is
                propagated unchanged.
        """
        policy = self.policy
        start = self._clock()
        interval = policy.initial_interval

        while True:
            elapsed = self._clock() - start
            if elapsed >= policy.overall_timeout:
                raise self._timeout(elapsed)

            # never let a single attempt run past the overall deadline
            attempt_timeout = min(policy.per_attempt_timeout, policy.overall_timeout - elapsed)
            self.attempts += 1
            answer = await self._query_once(request, attempt_timeout)

            if isinstance(answer, Attestation):
                if answer.attestation and answer.message:
                    logger.info(
                        "Attestation received for %s after %.0fs (%d attempts)",
                        request.transaction_hash, self._clock() - start, self.attempts,
                    )
                    return answer
                answer = NotYetAvailable(reason="empty attestation")

            if not isinstance(answer, NotYetAvailable):
                raise AttestationServiceError(
                    f"Unexpected attestation service answer: {type(answer).__name__}"
                )

            elapsed = self._clock() - start
            remaining = policy.overall_timeout - elapsed
            if remaining <= 0:
                raise self._timeout(elapsed)

            delay = min(interval, remaining)
            logger.info(
                "Attestation not ready yet (%s), waiting %.1fs (elapsed: %.0fs)",
                answer.reason, delay, elapsed,
            )
            self.intervals.append(delay)
            await self._sleep(delay)
            interval = min(interval * policy.backoff_factor, policy.max_interval)

    async def _query_once(self, request: AttestationRequest, timeout: float) -> Attestation | NotYetAvailable:
        try:
            return await asyncio.wait_for(
                self.service.query(request, per_attempt_timeout=timeout),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            return NotYetAvailable(reason=f"timeout after {timeout:g}s")

    def _timeout(self, elapsed: float) -> AttestationTimeout:
        timeout = self.policy.overall_timeout
        logger.error("Attestation not received within %.0fs", timeout)
        return AttestationTimeout(
            f"Attestation not received after {timeout:.0f} seconds "
            f"(elapsed {elapsed:.0f}s, {self.attempts} attempts). "
            "Circle's attestation service may be slow.",
            elapsed=elapsed,
            timeout=timeout,
        )
