from dataclasses import dataclass, field
from typing import Dict, Any, List

from .constants import MAX_UINT160, MAX_UINT48


def clamp_uint(value: int, maximum: int) -> int:
    """Clamp a non-negative integer into a fixed-width unsigned domain."""
    return maximum if value > maximum else value


# -----------------------------
# EIP-712 Domain
# -----------------------------

@dataclass
class EIP712Domain:
    """
    EIP-712 domain separator.
    Used to prevent signature replay across domains.
    """
    name: str
    version: str
    chainId: int
    verifyingContract: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "chainId": self.chainId,
            "verifyingContract": self.verifyingContract,
        }


# -----------------------------
# Permit2: PermitSingle (AllowanceTransfer)
# -----------------------------

@dataclass
class PermitDetails:
    """
    Inner ``PermitDetails`` record of a Permit2 ``PermitSingle``.

    Field widths follow the Permit2 contract: ``amount`` is a uint160,
    ``expiration`` and ``nonce`` are uint48. Use ``from_values`` to build an
    instance with the clamping already applied.
    """
    token: str
    amount: int
    expiration: int
    nonce: int

    @classmethod
    def from_values(cls, *, token: str, amount: int, expiration: int, nonce: int) -> "PermitDetails":
        return cls(
            token=token,
            amount=clamp_uint(int(amount), MAX_UINT160),
            expiration=clamp_uint(int(expiration), MAX_UINT48),
            nonce=clamp_uint(int(nonce), MAX_UINT48),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "token": self.token,
            "amount": self.amount,
            "expiration": self.expiration,
            "nonce": self.nonce,
        }


@dataclass
class PermitSingleMessage:
    """
    Outer ``PermitSingle`` record: details, spender and the raw signature
    deadline. ``sigDeadline`` is a uint256 and is never clamped.
    """
    details: PermitDetails
    spender: str
    sigDeadline: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "details": self.details.to_dict(),
            "spender": self.spender,
            "sigDeadline": self.sigDeadline,
        }


@dataclass
class PermitSingleTypedData:
    """
    Container for Permit2 ``PermitSingle`` typed data.

    ``to_dict()`` returns the ``{types, primaryType, domain, message}``
    layout consumed by ``eth_account.Account.sign_typed_data`` and
    ``eth_account.messages.encode_typed_data``.

    Attributes:
        domain: Permit2 EIP712Domain (name "Permit2", version "1").
        message: PermitSingleMessage carrying the clamped payload.
        primary_type: Always "PermitSingle".
        types: The EIP-712 type definitions (automatically set).
    """
    domain: EIP712Domain
    message: PermitSingleMessage

    primary_type: str = "PermitSingle"

    types: Dict[str, List[Dict[str, str]]] = field(
        default_factory=lambda: {
            "EIP712Domain": [
                {"name": "name", "type": "string"},
                {"name": "version", "type": "string"},
                {"name": "chainId", "type": "uint256"},
                {"name": "verifyingContract", "type": "address"},
            ],
            "PermitSingle": [
                {"name": "details", "type": "PermitDetails"},
                {"name": "spender", "type": "address"},
                {"name": "sigDeadline", "type": "uint256"},
            ],
            "PermitDetails": [
                {"name": "token", "type": "address"},
                {"name": "amount", "type": "uint160"},
                {"name": "expiration", "type": "uint48"},
                {"name": "nonce", "type": "uint48"},
            ],
        }
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "types": self.types,
            "primaryType": self.primary_type,
            "domain": self.domain.to_dict(),
            "message": self.message.to_dict(),
        }
