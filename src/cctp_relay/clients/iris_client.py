"""
Circle Iris Attestation Client

httpx-based implementation of ``AttestationService`` for Circle's Iris API
(``GET /v2/messages/{sourceDomain}?transactionHash=...``).
"""

import logging
from typing import Any, Dict

import httpx

from ..adapters.bases import AttestationService
from ..adapters.evm.constants import IRIS_API_TESTNET
from ..engine.exceptions import AttestationServiceError
from ..schemas.transfers import Attestation, AttestationRequest, NotYetAvailable

logger = logging.getLogger(__name__)

#: Status codes Iris uses for "nothing yet" or transient trouble.
_RETRYABLE_STATUS_CODES = frozenset({404, 408, 425, 429})


class IrisClient(httpx.AsyncClient, AttestationService):
    """
    Extended httpx.AsyncClient answering attestation queries.

    Every query maps to exactly one of three outcomes:

    1. ``Attestation``: the first message is ``complete`` and signed
    2. ``NotYetAvailable``: 404, empty message list, pending status,
       rate limiting (429), server errors (5xx) or network trouble
    3. ``AttestationServiceError``: any other client error or a payload that
       cannot be parsed; the poller does not retry these

    Fully compatible with httpx.AsyncClient and usable as an async context
    manager.

    Usage:
        ```python
        async with IrisClient(base_url=IRIS_API_TESTNET) as iris:
            poller = AttestationPoller(iris)
            attestation = await poller.wait_for(request)
        ```
    """

    def __init__(self, base_url: str = IRIS_API_TESTNET, **kwargs):
        """
        Initialize the client.

        Args:
            base_url: Iris API root (sandbox for testnets).
            **kwargs: All standard httpx.AsyncClient arguments (timeout, transport, etc.)
        """
        kwargs.setdefault("headers", {"Accept": "application/json"})
        super().__init__(base_url=base_url, **kwargs)

    # =========================================================================
    # AttestationService
    # =========================================================================

    async def query(
        self,
        request: AttestationRequest,
        per_attempt_timeout: float,
    ) -> Attestation | NotYetAvailable:
        """
        Ask Iris once for the attestation of ``request``.

        Args:
            request: Burn to look up.
            per_attempt_timeout: Seconds this HTTP request may take.

        Returns:
            Attestation or NotYetAvailable.

        Raises:
            AttestationServiceError: Non-retryable HTTP status or malformed body.
        """
        try:
            response = await self.get(
                f"/v2/messages/{request.source_domain}",
                params={"transactionHash": request.transaction_hash},
                timeout=per_attempt_timeout,
            )
        except httpx.TimeoutException:
            return NotYetAvailable(reason=f"request timed out after {per_attempt_timeout:g}s")
        except httpx.TransportError as e:
            return NotYetAvailable(reason=f"network error: {e}")

        status_code = response.status_code
        if status_code in _RETRYABLE_STATUS_CODES or status_code >= 500:
            return NotYetAvailable(reason=f"HTTP {status_code}")
        if status_code >= 400:
            raise AttestationServiceError(
                f"Attestation service rejected the query with HTTP {status_code}: {response.text[:200]}",
                status_code=status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise AttestationServiceError(
                f"Attestation service returned malformed JSON: {e}", status_code=status_code
            ) from e

        return self._parse_messages(payload, status_code)

    # =========================================================================
    # Response parsing
    # =========================================================================

    @staticmethod
    def _parse_messages(payload: Any, status_code: int) -> Attestation | NotYetAvailable:
        if not isinstance(payload, dict):
            raise AttestationServiceError(
                f"Unexpected attestation payload type: {type(payload).__name__}", status_code=status_code
            )

        messages = payload.get("messages")
        if not messages:
            return NotYetAvailable(reason="no messages yet")
        if not isinstance(messages, list) or not isinstance(messages[0], dict):
            raise AttestationServiceError("Unexpected 'messages' layout in attestation payload", status_code=status_code)

        entry: Dict[str, Any] = messages[0]
        status = entry.get("status")
        if status != "complete":
            return NotYetAvailable(reason=f"status {status or 'unknown'}")

        message = entry.get("message")
        attestation = entry.get("attestation")
        if not message or not attestation or attestation == "PENDING":
            return NotYetAvailable(reason="attestation not signed yet")

        event_nonce = entry.get("eventNonce")
        logger.debug("Iris returned complete attestation (nonce=%s)", event_nonce)
        try:
            return Attestation(
                message=message,
                attestation=attestation,
                event_nonce=str(event_nonce) if event_nonce is not None else None,
                status=status,
            )
        except ValueError as e:
            raise AttestationServiceError(f"Malformed attestation entry: {e}", status_code=status_code) from e
