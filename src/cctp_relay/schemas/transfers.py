"""
Transfer Data Model

Models exchanged between the orchestrator, the chain adapters and the
attestation service during one burn/attest/mint transfer.

Classes:
    - TransferRequest: Immutable caller input for one transfer.
    - BurnInstruction: Source-side transfer descriptor built by the orchestrator.
    - AttestationRequest: Identifies a burn awaiting its attestation.
    - Attestation / NotYetAvailable: Answers of the attestation service.
    - TransferPhase: Phases a transfer moves through.
    - TransferResult: Terminal, immutable outcome returned once per request.

Functions:
    - normalize_recipient: Convert a destination address to 32-byte hex.
"""

from enum import Enum
from typing import Optional

from pydantic import ConfigDict, Field

from .bases import CanonicalModel
from .authorization import Authorization
from ..adapters.evm.schemas import Permit


class TransferPhase(str, Enum):
    """
    Phases of a transfer, in execution order.

    Attributes:
        VALIDATION: Amount and address parsing
        AUTHORIZATION: Delegated-mode permit verification
        SOURCE_SUBMISSION: Burn on the source chain
        ATTESTATION: Waiting for the off-chain attestation
        DESTINATION_SUBMISSION: Mint on the destination chain
        COMPLETED: All phases succeeded
    """
    VALIDATION = "validation"
    AUTHORIZATION = "authorization"
    SOURCE_SUBMISSION = "source_submission"
    ATTESTATION = "attestation"
    DESTINATION_SUBMISSION = "destination_submission"
    COMPLETED = "completed"


class TransferRequest(CanonicalModel):
    """
    Caller input for one transfer. Frozen once constructed.

    Delegated mode applies when both ``source_address`` and
    ``authorization`` are set; otherwise the relayer's own account is debited.

    Attributes:
        amount: Decimal string in whole tokens (e.g. ``"1.0"``).
        destination_address: Recipient on the destination chain; defaults to
            the relayer's destination identity.
        source_address: Owner account to debit in delegated mode.
        authorization: ``Authenticated`` or ``Unauthenticated``.
        permit: Permit the owner signed (strongly recommended with a real
            signature).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    amount: str = Field(..., description="Amount as a decimal string, e.g. '1.0'")
    destination_address: Optional[str] = Field(None, description="Recipient on the destination chain")
    source_address: Optional[str] = Field(None, description="Owner account in delegated mode")
    authorization: Optional[Authorization] = Field(None, description="Owner authorization in delegated mode")
    permit: Optional[Permit] = Field(None, description="Permit the authorization signature covers")

    @property
    def is_delegated(self) -> bool:
        return self.source_address is not None and self.authorization is not None

    def __repr__(self) -> str:
        return (
            f"TransferRequest(amount={self.amount!r}, destination={self.destination_address!r}, "
            f"source={self.source_address!r}, delegated={self.is_delegated})"
        )


class BurnInstruction(CanonicalModel):
    """
    Source-side transfer descriptor handed to ``SourceChainAdapter.submit``.

    Attributes:
        amount: Amount to burn in smallest units.
        source_domain: CCTP domain of the source chain.
        destination_domain: CCTP domain of the destination chain.
        debited_address: Account whose tokens are burned (relayer or owner).
        mint_recipient: Destination recipient as a 0x-prefixed 32-byte hex.
        burn_token: Token burned on the source chain (native USDC).
        permit: Permit to redeem before burning (delegated mode only).
        signature: Owner signature over ``permit``.
        max_fee: Maximum CCTP fee in smallest units (0 for standard transfers).
        min_finality_threshold: CCTP finality threshold.
    """

    model_config = ConfigDict(frozen=True)

    amount: int = Field(..., gt=0, description="Amount to burn in smallest units")
    source_domain: int = Field(..., ge=0, description="CCTP domain of the source chain")
    destination_domain: int = Field(..., ge=0, description="CCTP domain of the destination chain")
    debited_address: str = Field(..., description="Account whose tokens are burned")
    mint_recipient: str = Field(..., description="Recipient as 0x-prefixed 32-byte hex")
    burn_token: str = Field(..., description="Token burned on the source chain")
    permit: Optional[Permit] = Field(None, description="Permit redeemed before the burn")
    signature: Optional[str] = Field(None, description="Owner signature over the permit")
    max_fee: int = Field(default=0, ge=0, description="Maximum CCTP fee in smallest units")
    min_finality_threshold: int = Field(default=2000, ge=0, description="CCTP finality threshold")

    @property
    def is_delegated(self) -> bool:
        return self.permit is not None and self.signature is not None


class AttestationRequest(CanonicalModel):
    """Identifies a source-chain burn awaiting its attestation."""
    source_domain: int = Field(..., ge=0, description="CCTP domain of the source chain")
    transaction_hash: str = Field(..., description="Source transaction hash (0x-prefixed)")


class Attestation(CanonicalModel):
    """
    Signed attestation for a burn message.

    Attributes:
        message: CCTP message bytes as 0x-prefixed hex.
        attestation: Attester signatures as 0x-prefixed hex.
        event_nonce: CCTP nonce of the message, when reported.
        status: Status string reported by the service (``"complete"``).
    """
    message: str = Field(..., min_length=3, description="CCTP message bytes (hex)")
    attestation: str = Field(..., min_length=3, description="Attestation signatures (hex)")
    event_nonce: Optional[str] = Field(None, description="CCTP message nonce")
    status: str = Field(default="complete", description="Service status string")

    @property
    def attestation_id(self) -> str:
        """Identifier reported back to callers (the nonce when known)."""
        return self.event_nonce or self.attestation

    def __repr__(self) -> str:
        return f"Attestation(id={self.attestation_id[:18]}..., status={self.status})"


class NotYetAvailable(CanonicalModel):
    """The attestation service has nothing for this burn yet; retry later."""
    reason: str = Field(default="not found", description="Why the attestation is not available")


def normalize_recipient(address: str) -> str:
    """
    Normalize a destination recipient to a 0x-prefixed 32-byte hex string.

    Accepts a 20-byte EVM address (``0x`` + 40 hex), which is left-padded
    with zeros, or a 32-byte address (64 hex, ``0x`` prefix optional) as used
    by non-EVM ledgers such as Aptos.

    Args:
        address: Recipient as supplied by the caller.

    Returns:
        str: Lower-case ``0x`` + 64 hex characters.

    Raises:
        ValueError: If the address is neither form or is not valid hex.

    Example:
        normalize_recipient("0x" + "ab" * 20)  # "0x000000000000000000000000abab...ab"
    """
    if not isinstance(address, str):
        raise ValueError(f"Recipient must be a string, got {type(address).__name__}")

    candidate = address.strip()
    has_prefix = candidate[:2] in ("0x", "0X")
    hex_str = candidate[2:] if has_prefix else candidate

    if not ((len(hex_str) == 40 and has_prefix) or len(hex_str) == 64):
        raise ValueError(
            f"Invalid recipient address {address!r}: expected 0x + 40 hex characters "
            "or a 64-hex-character 32-byte address"
        )

    try:
        bytes.fromhex(hex_str)
    except ValueError:
        raise ValueError(f"Invalid recipient address {address!r}: not valid hexadecimal")

    return "0x" + hex_str.lower().rjust(64, "0")


class TransferResult(CanonicalModel):
    """
    Terminal outcome of a transfer, returned exactly once per request.

    Attributes:
        success: Whether every phase completed.
        source_tx: Burn transaction hash, set as soon as the burn was broadcast.
        attestation_id: Attestation identifier.
        destination_tx: Mint transaction hash.
        error: Human-readable failure message naming the failed phase.
        phase: Last phase reached (the failed phase on failure).
    """

    model_config = ConfigDict(frozen=True)

    success: bool
    source_tx: Optional[str] = None
    attestation_id: Optional[str] = None
    destination_tx: Optional[str] = None
    error: Optional[str] = None
    phase: Optional[TransferPhase] = None
