"""
EVM Adapter Schema Models

Pydantic models for Permit2 authorizations and EVM transaction receipts.
All classes inherit from the base schema hierarchy in ``schemas.bases``.

Classes:
    - EVMECDSASignature: v/r/s decomposition of a 65-byte ECDSA signature.
    - Permit: Permit2 ``PermitSingle`` authorization record as the owner
      intended it (values are stored unclamped).
    - PermitVerificationResult: Outcome of AuthorizationVerifier.verify.
    - EVMTransactionConfirmation: Receipt summary of a broadcast transaction.
"""

from typing import Optional

from eth_utils import is_address
from pydantic import Field, ValidationInfo, field_validator

from ...schemas.bases import (
    CanonicalModel,
    BaseSignature,
    BaseVerificationResult,
    BaseTransactionConfirmation,
)


def _strip_hex_prefix(value: str) -> str:
    return value[2:] if value[:2] in ("0x", "0X") else value


class EVMECDSASignature(BaseSignature):
    """
    EVM ECDSA signature split into its (v, r, s) components.

    Produced by ``split_signature`` for transport formats that cannot carry a
    single opaque signature blob.

    Attributes:
        v: ECDSA recovery ID (27 or 28).
        r: r component, 32 bytes as a 64-char hex string (0x prefix optional).
        s: s component, 32 bytes as a 64-char hex string (0x prefix optional).

    Example::

        sig = EVMECDSASignature(v=27, r="0x" + "a" * 64, s="0x" + "b" * 64)
        sig.to_packed_hex()  # "0xaaaa...bbbb1b"
    """

    v: int = Field(..., ge=27, le=28, description="ECDSA recovery ID (27 or 28)")
    r: str = Field(..., description="Signature r component (32 bytes, 64-char hex, 0x prefix optional)")
    s: str = Field(..., description="Signature s component (32 bytes, 64-char hex, 0x prefix optional)")

    def validate_format(self) -> bool:
        """
        Validate v/r/s components.

        Returns:
            True when all components pass.

        Raises:
            ValueError: Descriptive message on the first failed check.
        """
        if self.v not in (27, 28):
            raise ValueError(f"Invalid recovery ID: {self.v}. Must be 27 or 28")

        for name, val in [("r", self.r), ("s", self.s)]:
            hex_str = _strip_hex_prefix(val)
            if len(hex_str) != 64:
                raise ValueError(f"Invalid {name}: expected 64 hex chars, got {len(hex_str)}")
            try:
                int(hex_str, 16)
            except ValueError:
                raise ValueError(f"Invalid {name}: not valid hexadecimal")

        return True

    def to_packed_hex(self) -> str:
        """
        Encode v/r/s into a packed 65-byte hex string (``r || s || v``).

        This is the ``bytes signature`` argument expected by Permit2's
        ``permit(owner, permitSingle, signature)``.

        Returns:
            0x-prefixed 132-character hex string.
        """
        self.validate_format()
        r = _strip_hex_prefix(self.r).lower()
        s = _strip_hex_prefix(self.s).lower()
        return "0x" + r + s + format(self.v, "02x")

    def to_vrs(self) -> tuple[int, int, int]:
        """Return ``(v, r, s)`` as integers for ``Account.recover_message``."""
        self.validate_format()
        return self.v, int(_strip_hex_prefix(self.r), 16), int(_strip_hex_prefix(self.s), 16)


class Permit(CanonicalModel):
    """
    Permit2 ``PermitSingle`` authorization record.

    Values are the caller's true intent and are never clamped here; the
    uint160 / uint48 clamping happens only when the EIP-712 payload is built
    (see ``standards.PermitDetails.from_values``).

    Attributes:
        owner: Token owner address that signs the permit.
        spender: Address allowed to pull the tokens (the relayer).
        token: ERC-20 token contract address.
        value: Authorized amount in the token's smallest unit.
        nonce: Permit2 allowance nonce for (owner, token, spender).
        deadline: Unix timestamp after which the permit is invalid. Used as
            both the allowance expiration and the signature deadline.

    Example::

        permit = Permit(
            owner="0xAbCd...1234", spender="0xRelayer...Addr",
            token="0x036CbD53842c5426634e7929541eC2318f3dCF7e",
            value=1_000_000, nonce=0, deadline=1_900_000_000,
        )
    """

    owner: str = Field(..., description="Token owner address (0x-prefixed, 42 chars)")
    spender: str = Field(..., description="Address authorized to pull the tokens")
    token: str = Field(..., description="ERC-20 token contract address")
    value: int = Field(..., ge=0, description="Authorized amount in the token's smallest unit")
    nonce: int = Field(..., ge=0, description="Permit2 allowance nonce")
    deadline: int = Field(..., ge=0, description="Unix timestamp after which this permit is invalid")

    @field_validator("owner", "spender", "token")
    @classmethod
    def _check_address(cls, value: str, info: ValidationInfo) -> str:
        if not value.startswith("0x"):
            raise ValueError(f"'{info.field_name}' must be 0x-prefixed, got: {value!r}")
        if not is_address(value):
            raise ValueError(f"'{info.field_name}' is not a 20-byte hex address: {value!r}")
        return value


class PermitVerificationResult(BaseVerificationResult):
    """
    Outcome of ``AuthorizationVerifier.verify``.

    Attributes:
        owner: Debited account the authorization was checked against.
        authorized_amount: Transfer amount in the token's smallest unit.
        permit: The permit the signature was checked against; either the one
            supplied by the caller or a reconstructed best-effort permit.
        reconstructed: True when ``permit`` was rebuilt with default nonce and
            deadline because the caller did not supply one.
    """

    owner: Optional[str] = Field(None, description="Debited account")
    authorized_amount: Optional[int] = Field(None, ge=0, description="Transfer amount in smallest units")
    permit: Optional[Permit] = Field(None, description="Permit the signature was checked against")
    reconstructed: bool = Field(default=False, description="Whether the permit was rebuilt with defaults")


class EVMTransactionConfirmation(BaseTransactionConfirmation):
    """
    EVM transaction receipt summary returned by the adapters' send helper.

    Attributes:
        tx_hash: Transaction hash (0x-prefixed hex string)
        block_number: Block number containing the transaction
        gas_used: Gas consumed by the transaction
    """

    tx_hash: str = Field(..., description="Transaction hash (0x-prefixed hex string)")
    block_number: Optional[int] = Field(None, ge=0, description="Block number containing transaction")
    gas_used: Optional[int] = Field(None, ge=0, description="Actual gas consumed by transaction")
