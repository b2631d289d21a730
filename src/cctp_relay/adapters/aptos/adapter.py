"""
Aptos Destination Adapter

Completes CCTP V1 transfers on Aptos with the ``aptos-sdk`` REST client.

Aptos has no ``receiveMessage`` entry function a relayer can call directly:
minting goes through Circle's compiled ``handle_receive_message`` Move script,
which calls ``message_transmitter::receive_message`` and then
``token_messenger_minter::handle_receive_message``. The adapter submits that
script with the message and attestation bytes as its two ``vector<u8>``
arguments.

Dependencies:
    - aptos-sdk: For account keys, BCS transaction building and the REST client
"""

from typing import Optional
import logging

from aptos_sdk.account import Account
from aptos_sdk.async_client import RestClient
from aptos_sdk.transactions import Script, ScriptArgument, TransactionPayload

from ..bases import DestinationChainAdapter
from ...schemas.transfers import Attestation
from ...engine.exceptions import ChainSubmissionError

logger = logging.getLogger(__name__)

#: AIP-80 prefix some wallets export Ed25519 keys with.
_ED25519_KEY_PREFIX = "ed25519-priv-"


def _hex_to_bytes(value: str) -> bytes:
    return bytes.fromhex(value[2:] if value[:2] in ("0x", "0X") else value)


class AptosDestinationAdapter(DestinationChainAdapter):
    """
    Destination-chain adapter minting on Aptos.

    ``identity`` is the relayer's 32-byte account address, the default mint
    recipient when a transfer names none.

    Args:
        private_key:            Relayer (sponsor) Ed25519 key, hex.
        rpc_url:                Aptos fullnode REST endpoint (``.../v1``).
        receive_message_script: Compiled ``handle_receive_message`` script bytecode.
        client:                 Preconfigured RestClient (tests).

    Example:
        adapter = AptosDestinationAdapter(
            config.destination_private_key,
            config.destination_rpc_url,
            receive_message_script=Path(config.aptos_receive_message_script).read_bytes(),
        )
        tx_hash = await adapter.submit_completion(attestation)
    """

    def __init__(
        self,
        private_key: str,
        rpc_url: Optional[str] = None,
        *,
        receive_message_script: bytes,
        client: Optional[RestClient] = None,
    ):
        if not private_key:
            raise ValueError("Private key not provided for the relayer account.")
        if client is None and not rpc_url:
            raise ValueError("Either 'rpc_url' or a configured 'client' is required.")
        if not receive_message_script:
            raise ValueError("The handle_receive_message script bytecode is empty.")

        if private_key.startswith(_ED25519_KEY_PREFIX):
            private_key = private_key[len(_ED25519_KEY_PREFIX):]
        self.account = Account.load_key(private_key)
        self.client = client or RestClient(rpc_url)
        self.receive_message_script = receive_message_script

    @property
    def identity(self) -> str:
        return "0x" + self.account.address().address.hex()

    async def submit_completion(self, attestation: Attestation) -> str:
        """
        Run ``handle_receive_message`` and wait for it to commit.

        Raises:
            ChainSubmissionError: The payload is not hex, the transaction
                cannot be submitted, or it fails on chain (then carrying the
                transaction hash).
        """
        label = "handle_receive_message"
        try:
            script = Script(
                self.receive_message_script,
                [],
                [
                    ScriptArgument(ScriptArgument.U8_VECTOR, _hex_to_bytes(attestation.message)),
                    ScriptArgument(ScriptArgument.U8_VECTOR, _hex_to_bytes(attestation.attestation)),
                ],
            )
        except ValueError as e:
            raise ChainSubmissionError(f"{label}: invalid attestation payload: {e}") from e

        try:
            signed = await self.client.create_bcs_signed_transaction(self.account, TransactionPayload(script))
            tx_hash = await self.client.submit_bcs_transaction(signed)
        except Exception as e:
            raise ChainSubmissionError(f"{label}: could not submit transaction: {e}") from e
        logger.info("%s broadcast: %s", label, tx_hash)

        try:
            await self.client.wait_for_transaction(tx_hash)
        except Exception as e:
            raise ChainSubmissionError(f"{label}: transaction failed: {e} (tx {tx_hash})", tx_hash=tx_hash) from e

        logger.info("%s confirmed: %s", label, tx_hash)
        return tx_hash
