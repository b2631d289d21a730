"""
EVM Signature Verification Helpers

Off-chain verification for Permit2 ``PermitSingle`` authorizations. All
cryptographic operations are performed in-process using ``eth_account``.

Current coverage
----------------
verify_permit_single
    Recompute the Permit2 EIP-712 digest for a permit, recover the signer from
    the serialized signature and compare it (case-insensitively) against the
    expected owner. Never raises: any failure is a ``False`` result.

AuthorizationVerifier
    Checks that a delegated-mode authorization matches the transfer it is
    attached to (owner, token, spender, amount, expiry) before delegating the
    cryptographic check to ``verify_permit_single``. Returns a structured
    ``PermitVerificationResult``.
"""

import logging
import time
from typing import Any, Dict, Optional

from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_utils import is_address

from .signatures import build_permit_single_typed_data, create_permit, split_signature
from .schemas import Permit, PermitVerificationResult
from .constants import PERMIT2_ADDRESS, DEFAULT_PERMIT_LIFETIME
from ...schemas.bases import VerificationStatus
from ...schemas.authorization import Authenticated, Unauthenticated

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _recover_permit_signer(
    permit: Permit,
    signature: str,
    *,
    chain_id: int,
    permit2_address: str,
) -> str:
    """
    Recover the address that signed ``permit``.

    Raises:
        ValueError: If the signature is malformed or the permit cannot be
            encoded (e.g. an invalid address field).
    """
    typed_data = build_permit_single_typed_data(
        permit, chain_id=chain_id, permit2_address=permit2_address
    )
    signable = encode_typed_data(full_message=typed_data.to_dict())
    return Account.recover_message(signable, vrs=split_signature(signature).to_vrs())


def _is_valid_evm_address(addr: Optional[str]) -> bool:
    """Return True if ``addr`` is a 0x-prefixed 20-byte hex address."""
    return isinstance(addr, str) and addr.startswith("0x") and is_address(addr)


# ---------------------------------------------------------------------------
# Permit2 PermitSingle verification
# ---------------------------------------------------------------------------

def verify_permit_single(
    permit: Permit,
    signature: str,
    chain_id: int,
    expected_owner: str,
    *,
    permit2_address: str = PERMIT2_ADDRESS,
) -> bool:
    """
    Verify a Permit2 ``PermitSingle`` signature against ``expected_owner``.

    Rebuilds the exact typed data used for signing (same clamping rules),
    recovers the signer and compares addresses case-insensitively.

    Args:
        permit:          The permit the signature claims to cover.
        signature:       Serialized 65-byte signature.
        chain_id:        Chain the permit is redeemed on.
        expected_owner:  Address that must have produced the signature.
        permit2_address: Permit2 contract used as ``verifyingContract``.

    Returns:
        bool: True only when the recovered signer equals ``expected_owner``.
            Encoding or recovery errors are logged and reported as False.
    """
    try:
        recovered = _recover_permit_signer(
            permit, signature, chain_id=chain_id, permit2_address=permit2_address
        )
    except Exception as exc:
        logger.warning("Permit2 signature could not be verified: %s", exc)
        return False

    matches = recovered.lower() == str(expected_owner).lower()
    if not matches:
        logger.warning(
            "Permit2 signature mismatch: recovered %s, expected %s", recovered, expected_owner
        )
    return matches


# ---------------------------------------------------------------------------
# Delegated-authorization verifier
# ---------------------------------------------------------------------------

class AuthorizationVerifier:
    """
    Validate delegated-mode authorizations before any chain interaction.

    The verifier is bound to the spender (the relayer's source address) and
    token a permit must name. It never mutates the permits it reads.

    Args:
        spender:              Address permits must authorize (the relayer).
        token:                Token address permits must cover (USDC).
        permit2_address:      Permit2 contract used in the EIP-712 domain.
        allow_reconstruction: When True (default) a missing permit is rebuilt
            with nonce 0 and a one-hour deadline and the signature is checked
            against that guess. When False, a missing permit is rejected.

    Example::

        verifier = AuthorizationVerifier(spender=relayer, token=BASE_SEPOLIA_USDC)
        result = verifier.verify(
            owner=user, amount=1_000_000,
            authorization=Authenticated(signature=sig),
            permit=permit, chain_id=BASE_SEPOLIA_CHAIN_ID,
        )
        if not result.is_success():
            ...
    """

    def __init__(
        self,
        spender: str,
        token: str,
        *,
        permit2_address: str = PERMIT2_ADDRESS,
        allow_reconstruction: bool = True,
    ) -> None:
        self.spender = spender
        self.token = token
        self.permit2_address = permit2_address
        self.allow_reconstruction = allow_reconstruction

    def verify(
        self,
        owner: str,
        amount: int,
        authorization: Authenticated | Unauthenticated,
        permit: Optional[Permit] = None,
        chain_id: Optional[int] = None,
        *,
        current_time: Optional[int] = None,
    ) -> PermitVerificationResult:
        """
        Verify that ``authorization`` lets the relayer debit ``amount`` from
        ``owner``.

        Performs checks in order, returning on the first failure:

        1. **Bypass** -- ``Unauthenticated`` is accepted without any check
           and reported with status ``UNAUTHENTICATED``.
        2. **Chain id** -- required for real signatures.
        3. **Permit match** -- owner, token and spender (case-insensitive),
           value and deadline of a supplied permit. A deadline before ``current_time`` is
           reported as ``EXPIRED``.
        4. **Reconstruction** -- without a permit, a best-effort permit with
           nonce 0 and a one-hour deadline is rebuilt (or the request is
           rejected when reconstruction is disabled).
        5. **Signature** -- ``verify_permit_single`` against ``owner``.

        Args:
            owner:         Account to be debited.
            amount:        Transfer amount in smallest units.
            authorization: ``Authenticated`` or ``Unauthenticated``.
            permit:        Permit the owner signed, if supplied.
            chain_id:      Chain the permit is redeemed on.
            current_time:  Optional unix timestamp for the deadline check.

        Returns:
            PermitVerificationResult: ``is_success()`` tells whether the
            authorization is accepted.
        """
        now = int(current_time) if current_time is not None else int(time.time())

        def _fail(
            status: VerificationStatus,
            message: str,
            error_details: Optional[Dict[str, Any]] = None,
            resolved: Optional[Permit] = None,
            reconstructed: bool = False,
        ) -> PermitVerificationResult:
            logger.warning("Authorization rejected for %s: %s", owner, message)
            return PermitVerificationResult(
                status=status,
                is_valid=False,
                message=message,
                error_details=error_details,
                owner=owner,
                authorized_amount=amount,
                permit=resolved,
                reconstructed=reconstructed,
            )

        # ------------------------------------------------------------------
        # 1. Explicit testing bypass
        # ------------------------------------------------------------------
        if isinstance(authorization, Unauthenticated):
            logger.warning(
                "UNAUTHENTICATED authorization accepted for %s: signature verification skipped "
                "(testing only, never use in production)",
                owner,
            )
            return PermitVerificationResult(
                status=VerificationStatus.UNAUTHENTICATED,
                is_valid=True,
                message="UNAUTHENTICATED (testing only): signature verification skipped.",
                owner=owner,
                authorized_amount=amount,
                permit=permit,
            )

        # ------------------------------------------------------------------
        # 2. Chain id
        # ------------------------------------------------------------------
        if chain_id is None:
            return _fail(
                VerificationStatus.MISSING_CHAIN_ID,
                "chain_id is required to verify a Permit2 signature.",
            )

        if not _is_valid_evm_address(owner):
            return _fail(
                VerificationStatus.OWNER_MISMATCH,
                f"Invalid owner address format: {owner!r}.",
                {"owner": owner},
            )

        # ------------------------------------------------------------------
        # 3. Supplied permit must describe this transfer
        # ------------------------------------------------------------------
        reconstructed = False
        if permit is not None:
            if permit.owner.lower() != owner.lower():
                return _fail(
                    VerificationStatus.OWNER_MISMATCH,
                    f"Permit owner {permit.owner} does not match source address {owner}.",
                    {"permit_owner": permit.owner, "owner": owner},
                    permit,
                )
            if permit.token.lower() != self.token.lower():
                return _fail(
                    VerificationStatus.TOKEN_MISMATCH,
                    f"Permit token {permit.token} is not the burn token {self.token}.",
                    {"permit_token": permit.token, "token": self.token},
                    permit,
                )
            if permit.spender.lower() != self.spender.lower():
                return _fail(
                    VerificationStatus.SPENDER_MISMATCH,
                    f"Permit spender {permit.spender} is not the relayer {self.spender}.",
                    {"permit_spender": permit.spender, "spender": self.spender},
                    permit,
                )
            if permit.value != amount:
                return _fail(
                    VerificationStatus.AMOUNT_MISMATCH,
                    f"Permit value {permit.value} does not match transfer amount {amount}.",
                    {"permit_value": permit.value, "amount": amount},
                    permit,
                )
            if permit.deadline < now:
                return _fail(
                    VerificationStatus.EXPIRED,
                    f"Permit has expired: deadline={permit.deadline} < current_time={now}.",
                    {"deadline": permit.deadline, "current_time": now},
                    permit,
                )
            resolved = permit

        # ------------------------------------------------------------------
        # 4. Best-effort reconstruction
        # ------------------------------------------------------------------
        else:
            if not self.allow_reconstruction:
                return _fail(
                    VerificationStatus.MISSING_PERMIT,
                    "A permit is required with the signature; reconstruction is disabled.",
                )
            resolved = create_permit(
                owner,
                self.spender,
                self.token,
                amount,
                0,
                DEFAULT_PERMIT_LIFETIME,
                now=now,
            )
            reconstructed = True
            logger.warning(
                "No permit supplied for %s; checking signature against a reconstructed permit "
                "(nonce=0, deadline=%s). A match is not a reliable signal.",
                owner,
                resolved.deadline,
            )

        # ------------------------------------------------------------------
        # 5. Signature
        # ------------------------------------------------------------------
        if not verify_permit_single(
            resolved,
            authorization.signature,
            chain_id,
            owner,
            permit2_address=self.permit2_address,
        ):
            return _fail(
                VerificationStatus.INVALID_SIGNATURE,
                "Permit2 signature invalid: signer does not match source address.",
                {"expected": owner},
                resolved,
                reconstructed,
            )

        return PermitVerificationResult(
            status=VerificationStatus.SUCCESS,
            is_valid=True,
            message=(
                "Permit2 signature valid (checked against a reconstructed permit)."
                if reconstructed
                else "Permit2 signature valid: signer verified as owner."
            ),
            owner=owner,
            authorized_amount=amount,
            permit=resolved,
            reconstructed=reconstructed,
        )
