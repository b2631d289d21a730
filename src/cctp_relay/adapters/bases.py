"""
Abstract Base Classes for Chain Adapters

Defines the narrow interfaces through which the transfer orchestrator talks
to ledgers and to the attestation service. Any chain library can be plugged
in behind them without touching the orchestrator.

Core Classes:
    - SourceChainAdapter: Burns tokens on the source chain
    - DestinationChainAdapter: Completes (mints) transfers on the destination chain
    - AttestationService: Answers attestation queries for burned messages
"""

from abc import ABC, abstractmethod

from ..schemas.transfers import (
    Attestation,
    AttestationRequest,
    BurnInstruction,
    NotYetAvailable,
)


class SourceChainAdapter(ABC):
    """
    Abstract base class for source-chain adapters.

    A source adapter owns the relayer's signing key on the source chain and
    everything needed to broadcast transactions with it: RPC client, fee
    estimation and account nonce tracking.

    Key Responsibilities:
    1. address: The relayer account that pays network fees
    2. submit: Broadcast the burn described by a BurnInstruction
    3. get_pending_nonce: Report an account's next transaction nonce

    Example Implementation:
        class EVMSourceAdapter(SourceChainAdapter):
            # AsyncWeb3-based implementation
            pass
    """

    @property
    @abstractmethod
    def address(self) -> str:
        """
        Relayer account on the source chain.

        Returns:
            str: Address that signs and pays for source transactions.
        """
        pass

    @abstractmethod
    async def submit(self, instruction: BurnInstruction) -> str:
        """
        Broadcast the burn described by ``instruction``.

        Must either return the id of a broadcast, confirmed transaction or
        raise. Fee and nonce conflicts are the adapter's concern; the
        orchestrator never retries this call.

        Args:
            instruction: Transfer descriptor built by the orchestrator.

        Returns:
            str: Transaction identifier of the burn.

        Raises:
            ChainSubmissionError: If the transaction cannot be broadcast or reverts.
        """
        pass

    @abstractmethod
    async def get_pending_nonce(self, address: str) -> int:
        """
        Return the next transaction nonce of ``address``, counting pending
        transactions.

        Args:
            address: Account to query.

        Returns:
            int: Pending nonce.
        """
        pass


class DestinationChainAdapter(ABC):
    """
    Abstract base class for destination-chain adapters.

    Key Responsibilities:
    1. identity: Default recipient of minted tokens (the relayer's account)
    2. submit_completion: Redeem an attestation to mint on the destination chain
    """

    @property
    @abstractmethod
    def identity(self) -> str:
        """
        Relayer account on the destination chain.

        Returns:
            str: Address used as recipient when a request names none.
        """
        pass

    @abstractmethod
    async def submit_completion(self, attestation: Attestation) -> str:
        """
        Submit the completion (mint) transaction for ``attestation``.

        Args:
            attestation: Signed attestation of the burn message.

        Returns:
            str: Transaction identifier of the mint.

        Raises:
            ChainSubmissionError: If the transaction cannot be broadcast or reverts.
        """
        pass


class AttestationService(ABC):
    """
    Abstract base class for attestation services.

    Implementations must distinguish "not yet available" (returned as
    ``NotYetAvailable``, retried by the poller) from real failures (raised,
    never retried).
    """

    @abstractmethod
    async def query(
        self,
        request: AttestationRequest,
        per_attempt_timeout: float,
    ) -> Attestation | NotYetAvailable:
        """
        Ask once for the attestation of ``request``.

        Args:
            request: Burn to look up.
            per_attempt_timeout: Seconds this single query may take.

        Returns:
            Attestation when signed, NotYetAvailable otherwise.

        Raises:
            AttestationServiceError: On non-retryable service failures.
        """
        pass
