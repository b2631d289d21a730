"""
EVM Chain Adapters

AsyncWeb3 implementations of the source and destination adapter interfaces
for CCTP V2, plus V1 burns for destinations that only speak V1 (Aptos).

Key Features:
    - Direct burns from the relayer's own USDC balance
    - Delegated burns: Permit2 ``permit`` + ``transferFrom`` pull from the
      owner, then burn on the owner's behalf
    - Automatic TokenMessengerV2 allowance top-up
    - Mints via MessageTransmitterV2 ``receiveMessage``
    - EIP-1559 fees with legacy gas price fallback

Dependencies:
    - web3.py: For blockchain RPC interaction
    - eth_account: For transaction signing
"""

from typing import Optional, Dict, Any
import asyncio
import logging

from web3 import AsyncWeb3
from eth_account import Account
from web3.exceptions import TransactionNotFound

from ..bases import SourceChainAdapter, DestinationChainAdapter
from .CCTP_ABI import (
    get_usdc_abi,
    get_permit2_allowance_abi,
    get_deposit_for_burn_abi,
    get_deposit_for_burn_v1_abi,
    get_receive_message_abi,
)
from .constants import PERMIT2_ADDRESS, MAX_UINT256
from .schemas import EVMTransactionConfirmation
from .signatures import split_signature
from .standards import PermitDetails
from ...schemas.bases import TransactionStatus
from ...schemas.transfers import Attestation, BurnInstruction
from ...engine.exceptions import ChainSubmissionError

logger = logging.getLogger(__name__)

#: Gas limit used when ``estimate_gas`` fails (e.g. state not yet mined).
_FALLBACK_GAS_LIMIT = 300_000

#: bytes32(0): any address may relay the destination mint.
_ANY_DESTINATION_CALLER = b"\x00" * 32


def _hex_to_bytes(value: str) -> bytes:
    return bytes.fromhex(value[2:] if value[:2] in ("0x", "0X") else value)


class _EVMTransactor:
    """
    Relayer account bound to one RPC endpoint.

    Shared by both adapters: builds, signs, broadcasts and confirms contract
    calls, turning every failure into ``ChainSubmissionError``.

    Attributes:
        account: Relayer account (from the sponsor private key)
        wallet_address: Checksum-formatted relayer address
        web3: AsyncWeb3 instance for the chain
    """

    def __init__(
        self,
        private_key: str,
        rpc_url: Optional[str] = None,
        *,
        request_timeout: int = 60,
        receipt_attempts: int = 60,
        receipt_poll_interval: float = 2.0,
        web3: Optional[AsyncWeb3] = None,
    ):
        if not private_key:
            raise ValueError("Private key not provided for the relayer account.")
        if web3 is None and not rpc_url:
            raise ValueError("Either 'rpc_url' or a configured 'web3' instance is required.")

        self.account = Account.from_key(private_key)
        self.wallet_address = AsyncWeb3.to_checksum_address(self.account.address)
        self.web3 = web3 or AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(
            rpc_url,
            request_kwargs={"timeout": request_timeout},
        ))
        self._receipt_attempts = receipt_attempts
        self._receipt_poll_interval = receipt_poll_interval
        # Serializes nonce assignment for this account within the process.
        self._send_lock = asyncio.Lock()

    async def get_pending_nonce(self, address: str) -> int:
        """Next nonce of ``address``, counting transactions still in the mempool."""
        return await self.web3.eth.get_transaction_count(
            AsyncWeb3.to_checksum_address(address), "pending"
        )

    async def _fee_params(self) -> Dict[str, Any]:
        """EIP-1559 fee fields, or a legacy ``gasPrice`` when fee history is unavailable."""
        try:
            fee_history = await self.web3.eth.fee_history(1, "latest", [25.0])
            base_fee = fee_history["baseFeePerGas"][-1]
            priority_fee = fee_history["reward"][0][0]
            return {
                "maxPriorityFeePerGas": priority_fee,
                "maxFeePerGas": (base_fee * 2) + priority_fee,
            }
        except Exception:
            return {"gasPrice": await self.web3.eth.gas_price}

    async def _transact(self, tx_fn, label: str) -> EVMTransactionConfirmation:
        """
        Build, sign, broadcast and confirm a contract call.

        Args:
            tx_fn: Bound contract function (``contract.functions.X(...)``).
            label: Name used in logs and error messages.

        Returns:
            EVMTransactionConfirmation: Successful confirmation.

        Raises:
            ChainSubmissionError: If building, broadcasting or confirmation
                fails, or the transaction reverts.
        """
        async with self._send_lock:
            try:
                tx_params: Dict[str, Any] = {"from": self.wallet_address}
                try:
                    gas_estimate = await tx_fn.estimate_gas({"from": self.wallet_address})
                    tx_params["gas"] = int(gas_estimate * 1.1)
                except Exception as e:
                    logger.warning("%s: gas estimation failed (%s), using %d", label, e, _FALLBACK_GAS_LIMIT)
                    tx_params["gas"] = _FALLBACK_GAS_LIMIT

                tx_params.update(await self._fee_params())
                tx_params["nonce"] = await self.get_pending_nonce(self.wallet_address)

                tx_dict = await tx_fn.build_transaction(tx_params)
                signed_tx = self.account.sign_transaction(tx_dict)
            except Exception as e:
                raise ChainSubmissionError(f"{label}: could not build transaction: {e}") from e

            confirmation = await self._send_and_confirm(signed_tx.raw_transaction, label)

        if not confirmation.is_success():
            raise ChainSubmissionError(
                f"{label}: {confirmation.error_message} (tx {confirmation.tx_hash})",
                tx_hash=None if confirmation.tx_hash == "0x" else confirmation.tx_hash,
            )
        logger.info("%s confirmed: %s (block %s)", label, confirmation.tx_hash, confirmation.block_number)
        return confirmation

    async def _send_and_confirm(self, raw_transaction: bytes, label: str) -> EVMTransactionConfirmation:
        """
        Broadcast a signed transaction and poll for its receipt.

        Returns:
            EVMTransactionConfirmation with ``SUCCESS``, ``FAILED``, ``TIMEOUT``
            or ``NETWORK_ERROR`` status.
        """
        try:
            tx_hash = await self.web3.eth.send_raw_transaction(raw_transaction)
            tx_hash_hex = AsyncWeb3.to_hex(tx_hash)
        except Exception as e:
            return EVMTransactionConfirmation(
                status=TransactionStatus.NETWORK_ERROR,
                tx_hash="0x",
                error_message=f"Failed to broadcast transaction: {e}",
            )
        logger.info("%s broadcast: %s", label, tx_hash_hex)

        receipt = None
        for _ in range(self._receipt_attempts):
            try:
                receipt = await self.web3.eth.get_transaction_receipt(tx_hash_hex)
                if receipt:
                    break
            except TransactionNotFound:
                pass  # still pending
            await self._sleep_async(self._receipt_poll_interval)

        if not receipt:
            return EVMTransactionConfirmation(
                status=TransactionStatus.TIMEOUT,
                tx_hash=tx_hash_hex,
                error_message="Transaction confirmation timed out",
            )

        if receipt.get("status") == 1:
            return EVMTransactionConfirmation(
                status=TransactionStatus.SUCCESS,
                tx_hash=tx_hash_hex,
                block_number=receipt.get("blockNumber"),
                gas_used=receipt.get("gasUsed"),
            )
        return EVMTransactionConfirmation(
            status=TransactionStatus.FAILED,
            tx_hash=tx_hash_hex,
            block_number=receipt.get("blockNumber"),
            gas_used=receipt.get("gasUsed"),
            error_message="Transaction reverted on-chain",
        )

    @staticmethod
    async def _sleep_async(seconds: float):
        """Simple async sleep utility."""
        await asyncio.sleep(seconds)


class EVMSourceAdapter(_EVMTransactor, SourceChainAdapter):
    """
    Source-chain adapter burning USDC through TokenMessengerV2 (or the V1
    TokenMessenger when ``cctp_version`` is 1, for V1-only destinations such
    as Aptos).

    Direct mode burns from the relayer's balance. Delegated mode (instruction
    carries a permit and signature) first redeems the owner's Permit2
    ``PermitSingle`` and pulls the tokens to the relayer, then burns them.
    Either way the relayer pays the gas.

    Args:
        private_key:     Relayer (sponsor) private key on the source chain.
        rpc_url:         Source chain RPC endpoint.
        token_messenger: TokenMessenger address matching ``cctp_version``.
        usdc:            Native USDC address (the burn token).
        permit2_address: Permit2 singleton address.
        cctp_version:    2 (default) or 1. V1 burns take no fee or
                         finality arguments.

    Example:
        adapter = EVMSourceAdapter(
            private_key=config.source_private_key,
            rpc_url=config.source_rpc_url,
            token_messenger=config.token_messenger_address,
            usdc=config.usdc_address,
        )
        tx_hash = await adapter.submit(instruction)
    """

    def __init__(
        self,
        private_key: str,
        rpc_url: Optional[str] = None,
        *,
        token_messenger: str,
        usdc: str,
        permit2_address: str = PERMIT2_ADDRESS,
        cctp_version: int = 2,
        **kwargs,
    ):
        if cctp_version not in (1, 2):
            raise ValueError(f"Unsupported CCTP version: {cctp_version}")
        super().__init__(private_key, rpc_url, **kwargs)
        self.token_messenger = AsyncWeb3.to_checksum_address(token_messenger)
        self.usdc = AsyncWeb3.to_checksum_address(usdc)
        self.permit2_address = AsyncWeb3.to_checksum_address(permit2_address)
        self.cctp_version = cctp_version

    @property
    def address(self) -> str:
        return self.wallet_address

    async def submit(self, instruction: BurnInstruction) -> str:
        """
        Burn ``instruction.amount`` and return the ``depositForBurn`` tx hash.

        Raises:
            ChainSubmissionError: On any failed step. A failure after the
                Permit2 pull leaves the tokens with the relayer.
        """
        if instruction.is_delegated:
            await self._pull_with_permit2(instruction)
        elif instruction.debited_address.lower() != self.wallet_address.lower():
            # Unauthenticated delegated transfers carry no redeemable signature.
            logger.warning(
                "No Permit2 signature for %s: burning from the relayer balance instead",
                instruction.debited_address,
            )

        await self._ensure_burn_allowance(instruction.burn_token, instruction.amount)

        try:
            args = [
                instruction.amount,
                instruction.destination_domain,
                _hex_to_bytes(instruction.mint_recipient),
                AsyncWeb3.to_checksum_address(instruction.burn_token),
            ]
            if self.cctp_version == 1:
                abi = get_deposit_for_burn_v1_abi()
            else:
                abi = get_deposit_for_burn_abi()
                args += [_ANY_DESTINATION_CALLER, instruction.max_fee, instruction.min_finality_threshold]
            messenger = self.web3.eth.contract(address=self.token_messenger, abi=abi)
            tx_fn = messenger.functions.depositForBurn(*args)
        except Exception as e:
            raise ChainSubmissionError(f"depositForBurn: invalid call arguments: {e}") from e

        confirmation = await self._transact(tx_fn, "depositForBurn")
        return confirmation.tx_hash

    async def _pull_with_permit2(self, instruction: BurnInstruction) -> None:
        """Redeem the owner's PermitSingle and move the tokens to the relayer."""
        permit = instruction.permit
        if permit.spender.lower() != self.wallet_address.lower():
            raise ChainSubmissionError(
                f"Permit spender {permit.spender} is not the relayer {self.wallet_address}"
            )
        if permit.token.lower() != instruction.burn_token.lower():
            raise ChainSubmissionError(
                f"Permit token {permit.token} is not the burn token {instruction.burn_token}"
            )

        try:
            owner = AsyncWeb3.to_checksum_address(instruction.debited_address)
            token = AsyncWeb3.to_checksum_address(permit.token)
            details = PermitDetails.from_values(
                token=token,
                amount=permit.value,
                expiration=permit.deadline,
                nonce=permit.nonce,
            )
            permit_single = (
                (details.token, details.amount, details.expiration, details.nonce),
                self.wallet_address,
                permit.deadline,
            )
            sig_bytes = _hex_to_bytes(split_signature(instruction.signature).to_packed_hex())
            permit2 = self.web3.eth.contract(address=self.permit2_address, abi=get_permit2_allowance_abi())
        except Exception as e:
            raise ChainSubmissionError(f"Permit2: invalid permit data: {e}") from e

        await self._transact(permit2.functions.permit(owner, permit_single, sig_bytes), "Permit2.permit")
        await self._transact(
            permit2.functions.transferFrom(owner, self.wallet_address, instruction.amount, token),
            "Permit2.transferFrom",
        )

    async def _ensure_burn_allowance(self, token: str, amount: int) -> None:
        """Approve TokenMessengerV2 for the relayer's USDC when the allowance is too low."""
        usdc = self.web3.eth.contract(address=AsyncWeb3.to_checksum_address(token), abi=get_usdc_abi())
        try:
            allowance = await usdc.functions.allowance(self.wallet_address, self.token_messenger).call()
        except Exception as e:
            raise ChainSubmissionError(f"USDC allowance query failed: {e}") from e

        if int(allowance) >= amount:
            return
        logger.info("TokenMessenger allowance %s < %s, approving", allowance, amount)
        await self._transact(usdc.functions.approve(self.token_messenger, MAX_UINT256), "USDC.approve")


class EVMDestinationAdapter(_EVMTransactor, DestinationChainAdapter):
    """
    Destination-chain adapter minting through MessageTransmitterV2.

    ``identity`` is the relayer's address as a 32-byte hex, the default mint
    recipient when a transfer names none.

    Args:
        private_key:         Relayer (sponsor) private key on the destination chain.
        rpc_url:             Destination chain RPC endpoint.
        message_transmitter: MessageTransmitterV2 address.
    """

    def __init__(
        self,
        private_key: str,
        rpc_url: Optional[str] = None,
        *,
        message_transmitter: str,
        **kwargs,
    ):
        super().__init__(private_key, rpc_url, **kwargs)
        self.message_transmitter = AsyncWeb3.to_checksum_address(message_transmitter)

    @property
    def identity(self) -> str:
        return "0x" + self.wallet_address[2:].lower().rjust(64, "0")

    async def submit_completion(self, attestation: Attestation) -> str:
        try:
            transmitter = self.web3.eth.contract(
                address=self.message_transmitter, abi=get_receive_message_abi()
            )
            tx_fn = transmitter.functions.receiveMessage(
                _hex_to_bytes(attestation.message),
                _hex_to_bytes(attestation.attestation),
            )
        except Exception as e:
            raise ChainSubmissionError(f"receiveMessage: invalid attestation payload: {e}") from e

        confirmation = await self._transact(tx_fn, "receiveMessage")
        return confirmation.tx_hash
