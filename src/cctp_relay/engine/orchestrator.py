"""
Transfer Orchestrator

Drives one burn/attest/mint transfer end to end:

    VALIDATION -> AUTHORIZATION (delegated mode only) -> SOURCE_SUBMISSION
    -> ATTESTATION -> DESTINATION_SUBMISSION -> COMPLETED

``execute`` never raises. Every failure becomes a ``TransferResult`` whose
``error`` names the failed phase and, once the burn is on chain, the source
transaction needed for manual recovery.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Callable, Dict, Optional

from eth_utils import is_address

from ..adapters.aptos import AptosDestinationAdapter
from ..adapters.bases import AttestationService, DestinationChainAdapter, SourceChainAdapter
from ..adapters.evm.adapter import EVMDestinationAdapter, EVMSourceAdapter
from ..adapters.evm.constants import (
    FINALITY_THRESHOLD_STANDARD,
    USDC_DECIMALS,
    amount_to_value,
    domain_name,
)
from ..adapters.evm.schemas import PermitVerificationResult
from ..adapters.evm.verifies import AuthorizationVerifier
from ..config import RelayConfig
from ..schemas.authorization import Authenticated, Unauthenticated
from ..schemas.bases import VerificationStatus
from ..schemas.transfers import (
    AttestationRequest,
    BurnInstruction,
    TransferPhase,
    TransferRequest,
    TransferResult,
    normalize_recipient,
)
from .events import (
    AttestationReceivedEvent,
    AuthorizationVerifiedEvent,
    DestinationSubmittedEvent,
    EventBus,
    SourceSubmittedEvent,
    TransferFailedEvent,
    TransferStartedEvent,
)
from .exceptions import (
    AuthorizationError,
    ConfigurationError,
    PermitExpiredError,
    SignatureVerificationError,
    ValidationError,
)
from .poller import AttestationPoller, PollingPolicy

logger = logging.getLogger(__name__)


_PHASE_LABELS: Dict[TransferPhase, str] = {
    TransferPhase.VALIDATION: "Invalid transfer request",
    TransferPhase.AUTHORIZATION: "Authorization failed",
    TransferPhase.SOURCE_SUBMISSION: "Source chain submission failed",
    TransferPhase.ATTESTATION: "Attestation failed",
    TransferPhase.DESTINATION_SUBMISSION: "Destination chain submission failed",
}


class _AddressLock:
    """Lock of one debited address and the number of transfers holding or awaiting it."""

    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.users = 0


def authorization_error(result: PermitVerificationResult) -> AuthorizationError:
    """Map a rejected verification result onto the exception taxonomy."""
    message = result.message
    details = result.error_details or {}
    if result.status == VerificationStatus.EXPIRED:
        return PermitExpiredError(
            message,
            deadline=details.get("deadline"),
            current_time=details.get("current_time"),
        )
    if result.status == VerificationStatus.INVALID_SIGNATURE:
        return SignatureVerificationError(message, owner=result.owner)
    return AuthorizationError(message)


class TransferOrchestrator:
    """
    Run CCTP transfers against pluggable chain adapters.

    The orchestrator holds no per-transfer state; many ``execute`` calls may
    run concurrently. Transfers debiting the same address are serialized
    around their source submission unless ``serialize_per_address`` is off.

    Args:
        source:               Source-chain adapter (burns).
        destination:          Destination-chain adapter (mints).
        attestation_service:  Attestation service queried by the poller.
        source_domain:        CCTP domain of the source chain.
        destination_domain:   CCTP domain of the destination chain.
        burn_token:           Token burned on the source chain (native USDC).
        chain_id:             Source chain id, used for permit verification.
        verifier:             Delegated-authorization verifier; defaults to
                              one bound to ``source.address`` and ``burn_token``.
        policy:               Attestation polling policy.
        event_bus:            Optional bus receiving phase events.
        clock / sleep:        Injected into every poller (tests).
        now:                  Wall clock (unix seconds) for permit expiry.
        serialize_per_address: Enable the per-address lock registry.
        max_fee:              ``depositForBurn`` max fee in smallest units.
        min_finality_threshold: ``depositForBurn`` finality threshold.

    Example:
        orchestrator = TransferOrchestrator.from_config(config, iris_client)
        result = await orchestrator.execute(TransferRequest(amount="1.0"))
        if not result.success:
            print(result.error)
    """

    def __init__(
        self,
        source: SourceChainAdapter,
        destination: DestinationChainAdapter,
        attestation_service: AttestationService,
        *,
        source_domain: int,
        destination_domain: int,
        burn_token: str,
        chain_id: Optional[int],
        verifier: Optional[AuthorizationVerifier] = None,
        policy: Optional[PollingPolicy] = None,
        event_bus: Optional[EventBus] = None,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable] = None,
        now: Optional[Callable[[], float]] = None,
        serialize_per_address: bool = True,
        max_fee: int = 0,
        min_finality_threshold: int = FINALITY_THRESHOLD_STANDARD,
    ) -> None:
        self.source = source
        self.destination = destination
        self.attestation_service = attestation_service
        self.source_domain = source_domain
        self.destination_domain = destination_domain
        self.burn_token = burn_token
        self.chain_id = chain_id
        self.verifier = verifier or AuthorizationVerifier(spender=source.address, token=burn_token)
        self.policy = policy or PollingPolicy()
        self.event_bus = event_bus
        self.max_fee = max_fee
        self.min_finality_threshold = min_finality_threshold
        self._clock = clock
        self._sleep = sleep
        self._now = now or time.time
        self._serialize = serialize_per_address
        self._locks: Dict[str, _AddressLock] = {}

    @classmethod
    def from_config(
        cls,
        config: RelayConfig,
        attestation_service: AttestationService,
        **kwargs,
    ) -> "TransferOrchestrator":
        """
        Wire the source adapter, the destination adapter matching
        ``config.destination_domain`` (EVM or Aptos) and a verifier from a
        ``RelayConfig``.

        The attestation service is passed in so the caller controls its
        lifetime (``async with IrisClient(...)``).

        Raises:
            ConfigurationError: A key cannot be loaded or the Aptos script
                cannot be read.
        """
        try:
            source = EVMSourceAdapter(
                config.source_private_key,
                config.source_rpc_url,
                token_messenger=config.token_messenger_address,
                usdc=config.usdc_address,
                permit2_address=config.permit2_address,
                cctp_version=config.cctp_version,
            )
            if config.destination_is_aptos:
                destination = AptosDestinationAdapter(
                    config.destination_private_key,
                    config.destination_rpc_url,
                    receive_message_script=Path(config.aptos_receive_message_script).read_bytes(),
                )
            else:
                destination = EVMDestinationAdapter(
                    config.destination_private_key,
                    config.destination_rpc_url,
                    message_transmitter=config.destination_message_transmitter_address,
                )
        except Exception as e:
            raise ConfigurationError(f"Cannot set up chain adapters: {e}") from e

        verifier = AuthorizationVerifier(
            spender=source.address,
            token=config.usdc_address,
            permit2_address=config.permit2_address,
            allow_reconstruction=config.allow_permit_reconstruction,
        )
        return cls(
            source,
            destination,
            attestation_service,
            source_domain=config.source_domain,
            destination_domain=config.destination_domain,
            burn_token=config.usdc_address,
            chain_id=config.source_chain_id,
            verifier=verifier,
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def execute(self, request: TransferRequest) -> TransferResult:
        """
        Execute one transfer.

        Args:
            request: Caller input.

        Returns:
            TransferResult: ``success=True`` with all three identifiers, or
            ``success=False`` with a phase-prefixed ``error``. Never raises.
        """
        phase = TransferPhase.VALIDATION
        source_tx: Optional[str] = None
        attestation_id: Optional[str] = None

        try:
            # -- validation ------------------------------------------------
            value = self._parse_amount(request.amount)
            mint_recipient = self._resolve_recipient(request.destination_address)
            delegated = request.is_delegated
            if delegated:
                if not is_address(request.source_address):
                    raise ValidationError(f"Invalid source address: {request.source_address!r}")
                debited = request.source_address
            else:
                debited = self.source.address

            logger.info(
                "Transfer %s smallest units %s -> %s (%s mode, debiting %s)",
                value,
                domain_name(self.source_domain),
                domain_name(self.destination_domain),
                "delegated" if delegated else "direct",
                debited,
            )
            # no permit to redeem: the burn comes out of the relayer's own USDC
            funded_by_relayer = delegated and isinstance(request.authorization, Unauthenticated)
            if funded_by_relayer:
                logger.warning(
                    "Unauthenticated transfer for %s is funded from the relayer balance (%s)",
                    debited,
                    self.source.address,
                )
            await self._publish(TransferStartedEvent(
                amount=value,
                debited_address=debited,
                mint_recipient=mint_recipient,
                delegated=delegated,
                funded_by_relayer=funded_by_relayer,
                relayer_address=self.source.address,
            ))

            # -- authorization ---------------------------------------------
            permit = None
            signature = None
            if delegated:
                phase = TransferPhase.AUTHORIZATION
                result = self.verifier.verify(
                    owner=debited,
                    amount=value,
                    authorization=request.authorization,
                    permit=request.permit,
                    chain_id=self.chain_id,
                    current_time=int(self._now()),
                )
                if not result.is_success():
                    raise authorization_error(result)

                if isinstance(request.authorization, Authenticated):
                    permit = result.permit
                    signature = request.authorization.signature
                await self._publish(AuthorizationVerifiedEvent(
                    owner=debited,
                    unauthenticated=isinstance(request.authorization, Unauthenticated),
                    reconstructed_permit=result.reconstructed,
                ))

            instruction = BurnInstruction(
                amount=value,
                source_domain=self.source_domain,
                destination_domain=self.destination_domain,
                debited_address=debited,
                mint_recipient=mint_recipient,
                burn_token=self.burn_token,
                permit=permit,
                signature=signature,
                max_fee=self.max_fee,
                min_finality_threshold=self.min_finality_threshold,
            )

            # -- source submission -----------------------------------------
            phase = TransferPhase.SOURCE_SUBMISSION
            source_tx = await self._submit_source(instruction)
            logger.info("Source transaction submitted: %s", source_tx)
            await self._publish(SourceSubmittedEvent(source_tx=source_tx))

            # -- attestation -----------------------------------------------
            phase = TransferPhase.ATTESTATION
            poller = AttestationPoller(
                self.attestation_service, self.policy, clock=self._clock, sleep=self._sleep
            )
            attestation = await poller.wait_for(
                AttestationRequest(source_domain=self.source_domain, transaction_hash=source_tx)
            )
            attestation_id = attestation.attestation_id
            await self._publish(AttestationReceivedEvent(attestation=attestation))

            # -- destination submission ------------------------------------
            phase = TransferPhase.DESTINATION_SUBMISSION
            destination_tx = await self.destination.submit_completion(attestation)
            logger.info("Destination transaction submitted: %s", destination_tx)

        except Exception as e:
            result = self._failure(phase, e, source_tx, attestation_id)
            await self._publish(TransferFailedEvent(phase=phase, result=result))
            return result

        result = TransferResult(
            success=True,
            source_tx=source_tx,
            attestation_id=attestation_id,
            destination_tx=destination_tx,
            phase=TransferPhase.COMPLETED,
        )
        await self._publish(DestinationSubmittedEvent(result=result))
        return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_amount(amount: str) -> int:
        try:
            return amount_to_value(amount=amount, decimals=USDC_DECIMALS)
        except ValueError as e:
            raise ValidationError(str(e)) from e

    def _resolve_recipient(self, destination_address: Optional[str]) -> str:
        recipient = destination_address if destination_address else self.destination.identity
        try:
            return normalize_recipient(recipient)
        except ValueError as e:
            raise ValidationError(str(e)) from e

    @asynccontextmanager
    async def _address_lock(self, address: str) -> AsyncIterator[None]:
        """Hold the lock of ``address``; the entry is dropped once no transfer uses it."""
        key = address.lower()
        entry = self._locks.get(key)
        if entry is None:
            entry = self._locks[key] = _AddressLock()
        if entry.lock.locked():
            logger.info("Waiting for in-flight transfer debiting %s", address)
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[key]

    async def _submit_source(self, instruction: BurnInstruction) -> str:
        if not self._serialize:
            return await self.source.submit(instruction)
        async with self._address_lock(instruction.debited_address):
            return await self.source.submit(instruction)

    async def _publish(self, event) -> None:
        if self.event_bus is not None:
            await self.event_bus.dispatch(event)

    @staticmethod
    def _failure(
        phase: TransferPhase,
        error: Exception,
        source_tx: Optional[str],
        attestation_id: Optional[str],
    ) -> TransferResult:
        message = f"{_PHASE_LABELS.get(phase, 'Transfer failed')}: {error}"
        if source_tx:
            message += (
                f" (source transaction {source_tx} was already submitted and is not "
                "rolled back; complete or reconcile it manually)"
            )
        logger.error(message)
        return TransferResult(
            success=False,
            source_tx=source_tx,
            attestation_id=attestation_id,
            error=message,
            phase=phase,
        )
