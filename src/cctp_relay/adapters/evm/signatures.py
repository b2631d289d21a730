"""
EVM Off-Chain Signing Utilities

Local EIP-712 helpers for Permit2 ``PermitSingle`` authorizations. All
cryptographic operations are performed in-process using ``eth_account``; no
RPC calls or on-chain state queries are made.

Exported helpers
----------------
create_permit
    Build a deadline-bounded ``Permit`` record from owner/spender/token/value/
    nonce inputs. Values are stored exactly as given.

build_permit_single_typed_data
    Wrap a ``Permit`` in a ``PermitSingleTypedData`` envelope, applying the
    uint160 / uint48 clamping required by the Permit2 contract. Useful when
    signing happens elsewhere (browser wallet, hardware wallet).

sign_permit_single
    Sign a ``Permit`` with the owner's private key and return the serialized
    65-byte signature (``r || s || v``).

split_signature
    Decompose a serialized signature into an ``EVMECDSASignature`` (v, r, s).
"""

import time
from typing import Optional

from eth_account import Account
from eth_utils import to_checksum_address

from .standards import (
    EIP712Domain,
    PermitDetails,
    PermitSingleMessage,
    PermitSingleTypedData,
)
from .schemas import EVMECDSASignature, Permit
from .constants import (
    PERMIT2_ADDRESS,
    PERMIT2_DOMAIN_NAME,
    PERMIT2_DOMAIN_VERSION,
    DEFAULT_PERMIT_LIFETIME,
)

# ---------------------------------------------------------------------------
# Permit construction
# ---------------------------------------------------------------------------

def create_permit(
    owner: str,
    spender: str,
    token: str,
    value: int,
    nonce: int,
    deadline_offset_seconds: int = DEFAULT_PERMIT_LIFETIME,
    *,
    now: Optional[int] = None,
) -> Permit:
    """
    Create a ``Permit`` whose deadline lies ``deadline_offset_seconds`` in the
    future.

    No clamping is applied: the stored permit always carries the caller's
    true ``value`` and ``nonce``. Clamping happens only when the EIP-712
    payload is built.

    Args:
        owner:   Token owner address.
        spender: Address allowed to pull the tokens.
        token:   ERC-20 token address.
        value:   Amount in the token's smallest unit.
        nonce:   Permit2 allowance nonce.
        deadline_offset_seconds: Lifetime of the permit (default one hour).
        now:     Optional unix timestamp used instead of ``time.time()``.

    Returns:
        Permit: The new permit record.

    Example::

        permit = create_permit(owner, relayer, BASE_SEPOLIA_USDC, 1_000_000, 0)
    """
    current = int(now) if now is not None else int(time.time())
    return Permit(
        owner=owner,
        spender=spender,
        token=token,
        value=int(value),
        nonce=int(nonce),
        deadline=current + int(deadline_offset_seconds),
    )


# ---------------------------------------------------------------------------
# Typed-data builder
# ---------------------------------------------------------------------------

def build_permit_single_typed_data(
    permit: Permit,
    *,
    chain_id: int,
    permit2_address: str = PERMIT2_ADDRESS,
) -> PermitSingleTypedData:
    """
    Wrap a ``Permit`` in a Permit2 ``PermitSingle`` EIP-712 envelope.

    ``value`` is clamped to uint160, ``deadline`` (as ``expiration``) and
    ``nonce`` to uint48. ``sigDeadline`` carries the raw deadline.

    Args:
        permit:          The permit to encode.
        chain_id:        Chain the permit will be redeemed on. A wrong id
                         yields a digest the contract cannot verify.
        permit2_address: Permit2 contract used as ``verifyingContract``.

    Returns:
        ``PermitSingleTypedData`` whose ``to_dict()`` is compatible with
        ``eth_account`` typed-data signing and ``eth_signTypedData_v4``.
    """
    domain = EIP712Domain(
        name=PERMIT2_DOMAIN_NAME,
        version=PERMIT2_DOMAIN_VERSION,
        chainId=int(chain_id),
        verifyingContract=to_checksum_address(permit2_address),
    )
    details = PermitDetails.from_values(
        token=to_checksum_address(permit.token),
        amount=permit.value,
        expiration=permit.deadline,
        nonce=permit.nonce,
    )
    message = PermitSingleMessage(
        details=details,
        spender=to_checksum_address(permit.spender),
        sigDeadline=int(permit.deadline),
    )
    return PermitSingleTypedData(domain=domain, message=message)


# ---------------------------------------------------------------------------
# Signer
# ---------------------------------------------------------------------------

def sign_permit_single(
    private_key: str,
    permit: Permit,
    chain_id: int,
    *,
    permit2_address: str = PERMIT2_ADDRESS,
) -> str:
    """
    Sign a Permit2 ``PermitSingle`` and return the serialized signature.

    Args:
        private_key:     Hex-encoded secp256k1 key of the permit owner (with
                         or without ``0x`` prefix).
        permit:          Permit to sign. ``permit.owner`` should be the
                         address of ``private_key``; this is not enforced
                         here, verification will simply fail otherwise.
        chain_id:        Chain the permit will be redeemed on.
        permit2_address: Permit2 contract address.

    Returns:
        str: 0x-prefixed 65-byte signature (``r || s || v``, 132 hex chars).

    Raises:
        ValueError: If the private key or permit fields cannot be encoded.

    Example::

        signature = sign_permit_single(owner_key, permit, BASE_SEPOLIA_CHAIN_ID)
        components = split_signature(signature)
    """
    typed_data = build_permit_single_typed_data(
        permit, chain_id=chain_id, permit2_address=permit2_address
    )
    signed = Account.sign_typed_data(private_key, full_message=typed_data.to_dict())

    return EVMECDSASignature(
        v=signed.v,
        r="0x" + format(signed.r, "064x"),
        s="0x" + format(signed.s, "064x"),
    ).to_packed_hex()


def split_signature(signature: str) -> EVMECDSASignature:
    """
    Decompose a serialized 65-byte signature into (v, r, s).

    Accepts a recovery byte of 0/1 as well as 27/28 and normalizes it to
    27/28.

    Args:
        signature: 0x-prefixed (or bare) 130-hex-char signature.

    Returns:
        EVMECDSASignature: The split components.

    Raises:
        ValueError: If the signature is not 65 bytes of valid hex or the
            recovery byte is out of range.
    """
    hex_str = signature[2:] if signature[:2] in ("0x", "0X") else signature
    if len(hex_str) != 130:
        raise ValueError(f"Invalid signature length: expected 65 bytes, got {len(hex_str) / 2:g}")
    try:
        raw = bytes.fromhex(hex_str)
    except ValueError:
        raise ValueError("Invalid signature: not valid hexadecimal")

    v = raw[64]
    if v in (0, 1):
        v += 27
    if v not in (27, 28):
        raise ValueError(f"Invalid signature recovery byte: {raw[64]}")

    return EVMECDSASignature(
        v=v,
        r="0x" + raw[:32].hex(),
        s="0x" + raw[32:64].hex(),
    )
