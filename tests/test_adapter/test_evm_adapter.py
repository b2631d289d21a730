"""
EVM Adapter Test Suite

Tests for the AsyncWeb3 source and destination adapters:
- Initialization and relayer identity
- Direct burns through TokenMessengerV2 ``depositForBurn``
- Delegated burns via Permit2 ``permit`` + ``transferFrom``
- Allowance top-up, fee selection and gas estimation fallback
- Broadcast, revert and receipt timeout handling
- Mints via MessageTransmitterV2 ``receiveMessage``

All RPC interaction goes through MockWeb3Provider; no network is used.
"""

import logging
from unittest.mock import AsyncMock, patch

import pytest
from web3.exceptions import TransactionNotFound

from mocks import (
    MOCK_AMOUNT_1_USDC,
    MOCK_APTOS_RECIPIENT,
    MOCK_BROADCAST_TX,
    MOCK_DEADLINE_FUTURE,
    MOCK_DESTINATION_DOMAIN,
    MOCK_OTHER_ADDRESS,
    MOCK_OWNER_ADDRESS,
    MOCK_PENDING_NONCE,
    MOCK_RELAYER_ADDRESS,
    MOCK_RELAYER_IDENTITY,
    MOCK_RELAYER_PRIVATE_KEY,
    MOCK_SOURCE_DOMAIN,
    MOCK_USDC,
    MockWeb3Provider,
    create_mock_attestation,
    create_mock_permit,
    create_mock_receipt,
    create_mock_signer,
    create_mock_tx_fn,
    create_mock_usdc_contract,
    create_real_signature,
)
from cctp_relay.adapters.evm.adapter import EVMDestinationAdapter, EVMSourceAdapter
from cctp_relay.adapters.evm.constants import (
    MAX_UINT256,
    MESSAGE_TRANSMITTER_V2_TESTNET,
    PERMIT2_ADDRESS,
    TOKEN_MESSENGER_V1_BASE_SEPOLIA,
    TOKEN_MESSENGER_V2_TESTNET,
)
from cctp_relay.engine.exceptions import ChainSubmissionError
from cctp_relay.schemas.transfers import BurnInstruction


# ========================================================================
# Test Fixtures
# ========================================================================

@pytest.fixture
def mock_web3():
    """Provide a mock Web3 instance with a successful receipt."""
    return MockWeb3Provider()


@pytest.fixture
def usdc_contract(mock_web3):
    """USDC mock whose allowance already covers the burn."""
    return create_mock_usdc_contract(mock_web3, MOCK_USDC, allowance=MAX_UINT256)


@pytest.fixture
def messenger_contract(mock_web3):
    messenger = mock_web3.add_contract(TOKEN_MESSENGER_V2_TESTNET)
    messenger.functions.depositForBurn.return_value = create_mock_tx_fn()
    return messenger


@pytest.fixture
def permit2_contract(mock_web3):
    permit2 = mock_web3.add_contract(PERMIT2_ADDRESS)
    permit2.functions.permit.return_value = create_mock_tx_fn()
    permit2.functions.transferFrom.return_value = create_mock_tx_fn()
    return permit2


@pytest.fixture
def source_adapter(mock_web3, usdc_contract, messenger_contract, permit2_contract):
    """Provide an EVMSourceAdapter with a mock signer and fast receipt polling."""
    adapter = EVMSourceAdapter(
        MOCK_RELAYER_PRIVATE_KEY,
        web3=mock_web3,
        token_messenger=TOKEN_MESSENGER_V2_TESTNET,
        usdc=MOCK_USDC,
        receipt_attempts=3,
        receipt_poll_interval=0,
    )
    adapter.account = create_mock_signer()
    return adapter


@pytest.fixture
def destination_adapter(mock_web3):
    adapter = EVMDestinationAdapter(
        MOCK_RELAYER_PRIVATE_KEY,
        web3=mock_web3,
        message_transmitter=MESSAGE_TRANSMITTER_V2_TESTNET,
        receipt_attempts=3,
        receipt_poll_interval=0,
    )
    adapter.account = create_mock_signer()
    transmitter = mock_web3.add_contract(MESSAGE_TRANSMITTER_V2_TESTNET)
    transmitter.functions.receiveMessage.return_value = create_mock_tx_fn()
    return adapter


def create_instruction(**kwargs) -> BurnInstruction:
    params = dict(
        amount=MOCK_AMOUNT_1_USDC,
        source_domain=MOCK_SOURCE_DOMAIN,
        destination_domain=MOCK_DESTINATION_DOMAIN,
        debited_address=MOCK_RELAYER_ADDRESS,
        mint_recipient=MOCK_RELAYER_IDENTITY,
        burn_token=MOCK_USDC,
    )
    params.update(kwargs)
    return BurnInstruction(**params)


# ========================================================================
# Test Classes
# ========================================================================

class TestEVMAdapterInitialization:
    """Test adapter initialization and identity."""

    def test_init_with_private_key(self, mock_web3):
        """Test the relayer address is derived from the private key."""
        adapter = EVMSourceAdapter(
            MOCK_RELAYER_PRIVATE_KEY, web3=mock_web3, token_messenger=TOKEN_MESSENGER_V2_TESTNET, usdc=MOCK_USDC
        )
        assert adapter.address == MOCK_RELAYER_ADDRESS
        assert adapter.permit2_address == PERMIT2_ADDRESS

    def test_init_with_rpc_url(self):
        """Test an AsyncWeb3 instance is created from the RPC URL."""
        adapter = EVMSourceAdapter(
            MOCK_RELAYER_PRIVATE_KEY,
            "https://sepolia.base.org",
            token_messenger=TOKEN_MESSENGER_V2_TESTNET,
            usdc=MOCK_USDC,
        )
        assert adapter.web3 is not None

    def test_init_without_private_key_raises(self, mock_web3):
        """Test that initialization without private key raises ValueError."""
        with pytest.raises(ValueError, match="Private key not provided"):
            EVMSourceAdapter("", web3=mock_web3, token_messenger=TOKEN_MESSENGER_V2_TESTNET, usdc=MOCK_USDC)

    def test_init_without_endpoint_raises(self):
        """Test an RPC URL or web3 instance is required."""
        with pytest.raises(ValueError, match="rpc_url"):
            EVMDestinationAdapter(MOCK_RELAYER_PRIVATE_KEY, message_transmitter=MESSAGE_TRANSMITTER_V2_TESTNET)

    def test_destination_identity_is_padded_address(self, destination_adapter):
        """Test the identity is the relayer address left-padded to 32 bytes."""
        identity = destination_adapter.identity
        assert identity == MOCK_RELAYER_IDENTITY
        assert len(identity) == 66
        assert identity.endswith(MOCK_RELAYER_ADDRESS[2:].lower())

    @pytest.mark.asyncio
    async def test_get_pending_nonce(self, source_adapter, mock_web3):
        """Test the pending nonce is read with the "pending" block tag."""
        nonce = await source_adapter.get_pending_nonce(MOCK_RELAYER_ADDRESS.lower())

        assert nonce == MOCK_PENDING_NONCE
        mock_web3.eth.get_transaction_count.assert_awaited_once_with(MOCK_RELAYER_ADDRESS, "pending")


class TestDirectBurn:
    """Test burns from the relayer's own balance."""

    @pytest.mark.asyncio
    async def test_deposit_for_burn_arguments(self, source_adapter, messenger_contract, usdc_contract):
        """Test depositForBurn receives the instruction fields."""
        tx_hash = await source_adapter.submit(create_instruction())

        assert tx_hash == MOCK_BROADCAST_TX
        messenger_contract.functions.depositForBurn.assert_called_once_with(
            MOCK_AMOUNT_1_USDC,
            MOCK_DESTINATION_DOMAIN,
            bytes.fromhex(MOCK_RELAYER_IDENTITY[2:]),
            MOCK_USDC,
            b"\x00" * 32,
            0,
            2000,
        )
        usdc_contract.functions.approve.assert_not_called()

    @pytest.mark.asyncio
    async def test_v1_deposit_for_burn_arguments(self, mock_web3, source_adapter, messenger_contract):
        """Test a V1 adapter calls the four-argument burn on the V1 TokenMessenger."""
        v1_messenger = mock_web3.add_contract(TOKEN_MESSENGER_V1_BASE_SEPOLIA)
        v1_messenger.functions.depositForBurn.return_value = create_mock_tx_fn()
        source_adapter.token_messenger = TOKEN_MESSENGER_V1_BASE_SEPOLIA
        source_adapter.cctp_version = 1

        tx_hash = await source_adapter.submit(
            create_instruction(destination_domain=9, mint_recipient=MOCK_APTOS_RECIPIENT)
        )

        assert tx_hash == MOCK_BROADCAST_TX
        v1_messenger.functions.depositForBurn.assert_called_once_with(
            MOCK_AMOUNT_1_USDC,
            9,
            bytes.fromhex(MOCK_APTOS_RECIPIENT[2:]),
            MOCK_USDC,
        )
        messenger_contract.functions.depositForBurn.assert_not_called()

    def test_unsupported_cctp_version(self, mock_web3):
        """Test only CCTP versions 1 and 2 are accepted."""
        with pytest.raises(ValueError, match="CCTP version"):
            EVMSourceAdapter(
                MOCK_RELAYER_PRIVATE_KEY,
                web3=mock_web3,
                token_messenger=TOKEN_MESSENGER_V2_TESTNET,
                usdc=MOCK_USDC,
                cctp_version=3,
            )

    @pytest.mark.asyncio
    async def test_non_evm_recipient(self, source_adapter, messenger_contract):
        """Test a 32-byte recipient is passed through as bytes32."""
        await source_adapter.submit(create_instruction(mint_recipient=MOCK_APTOS_RECIPIENT))

        args = messenger_contract.functions.depositForBurn.call_args[0]
        assert args[2] == bytes.fromhex(MOCK_APTOS_RECIPIENT[2:])

    @pytest.mark.asyncio
    async def test_approves_when_allowance_too_low(self, mock_web3, source_adapter):
        """Test TokenMessengerV2 is approved for the maximum when the allowance is short."""
        usdc = create_mock_usdc_contract(mock_web3, MOCK_USDC, allowance=MOCK_AMOUNT_1_USDC - 1)

        await source_adapter.submit(create_instruction())

        usdc.functions.approve.assert_called_once_with(TOKEN_MESSENGER_V2_TESTNET, MAX_UINT256)
        assert mock_web3.eth.send_raw_transaction.await_count == 2

    @pytest.mark.asyncio
    async def test_allowance_query_failure(self, mock_web3, source_adapter, messenger_contract):
        """Test a failing allowance query aborts before the burn."""
        usdc = create_mock_usdc_contract(mock_web3, MOCK_USDC)
        usdc.functions.allowance.return_value.call = AsyncMock(side_effect=ConnectionError("rpc down"))

        with pytest.raises(ChainSubmissionError, match="allowance query failed"):
            await source_adapter.submit(create_instruction())
        messenger_contract.functions.depositForBurn.assert_not_called()

    @pytest.mark.asyncio
    async def test_eip1559_fee_params(self, source_adapter, messenger_contract):
        """Test fees come from fee history and the pending nonce is used."""
        await source_adapter.submit(create_instruction())

        tx_fn = messenger_contract.functions.depositForBurn.return_value
        params = tx_fn.build_transaction.call_args[0][0]
        assert params["maxPriorityFeePerGas"] == 100_000
        assert params["maxFeePerGas"] == 2 * 1_000_000 + 100_000
        assert params["nonce"] == MOCK_PENDING_NONCE
        assert params["gas"] == 110_000
        assert params["from"] == MOCK_RELAYER_ADDRESS

    @pytest.mark.asyncio
    async def test_legacy_gas_price_fallback(self, mock_web3, source_adapter, messenger_contract):
        """Test gasPrice is used when fee history is unavailable."""
        async def _gas_price():
            return 42

        mock_web3.eth.fee_history = AsyncMock(side_effect=ValueError("method not found"))
        mock_web3.eth.gas_price = _gas_price()

        await source_adapter.submit(create_instruction())

        params = messenger_contract.functions.depositForBurn.return_value.build_transaction.call_args[0][0]
        assert params["gasPrice"] == 42
        assert "maxFeePerGas" not in params

    @pytest.mark.asyncio
    async def test_gas_estimation_fallback(self, source_adapter, messenger_contract):
        """Test a failed gas estimate falls back to a fixed limit."""
        tx_fn = messenger_contract.functions.depositForBurn.return_value
        tx_fn.estimate_gas = AsyncMock(side_effect=ValueError("execution reverted"))

        await source_adapter.submit(create_instruction())

        assert tx_fn.build_transaction.call_args[0][0]["gas"] == 300_000

    @pytest.mark.asyncio
    async def test_unauthenticated_owner_burns_relayer_balance(self, source_adapter, messenger_contract, permit2_contract, caplog):
        """Test an owner without a signature falls back to the relayer balance with a warning."""
        with caplog.at_level(logging.WARNING, logger="cctp_relay.adapters.evm.adapter"):
            await source_adapter.submit(create_instruction(debited_address=MOCK_OWNER_ADDRESS))

        permit2_contract.functions.permit.assert_not_called()
        messenger_contract.functions.depositForBurn.assert_called_once()
        assert "relayer balance" in caplog.text


class TestDelegatedBurn:
    """Test Permit2 pulls before the burn."""

    @pytest.mark.asyncio
    async def test_permit_and_transfer_from(self, source_adapter, permit2_contract, messenger_contract):
        """Test permit then transferFrom are called with the owner's permit."""
        permit = create_mock_permit(nonce=2)
        signature = create_real_signature(permit)
        instruction = create_instruction(
            debited_address=MOCK_OWNER_ADDRESS, permit=permit, signature=signature
        )

        await source_adapter.submit(instruction)

        permit2_contract.functions.permit.assert_called_once_with(
            MOCK_OWNER_ADDRESS,
            ((MOCK_USDC, MOCK_AMOUNT_1_USDC, MOCK_DEADLINE_FUTURE, 2), MOCK_RELAYER_ADDRESS, MOCK_DEADLINE_FUTURE),
            bytes.fromhex(signature[2:]),
        )
        permit2_contract.functions.transferFrom.assert_called_once_with(
            MOCK_OWNER_ADDRESS, MOCK_RELAYER_ADDRESS, MOCK_AMOUNT_1_USDC, MOCK_USDC
        )
        messenger_contract.functions.depositForBurn.assert_called_once()

    @pytest.mark.asyncio
    async def test_spender_must_be_relayer(self, source_adapter, permit2_contract, messenger_contract):
        """Test a permit naming another spender is refused before any transaction."""
        permit = create_mock_permit(spender=MOCK_OTHER_ADDRESS)
        instruction = create_instruction(
            debited_address=MOCK_OWNER_ADDRESS, permit=permit, signature=create_real_signature(permit)
        )

        with pytest.raises(ChainSubmissionError, match="spender"):
            await source_adapter.submit(instruction)
        permit2_contract.functions.permit.assert_not_called()
        messenger_contract.functions.depositForBurn.assert_not_called()

    @pytest.mark.asyncio
    async def test_permit_token_must_be_burn_token(self, source_adapter, permit2_contract, messenger_contract):
        """Test a permit for another token is refused before any transaction."""
        permit = create_mock_permit(token=MOCK_OTHER_ADDRESS)
        instruction = create_instruction(
            debited_address=MOCK_OWNER_ADDRESS, permit=permit, signature=create_real_signature(permit)
        )

        with pytest.raises(ChainSubmissionError, match="not the burn token"):
            await source_adapter.submit(instruction)
        permit2_contract.functions.permit.assert_not_called()
        permit2_contract.functions.transferFrom.assert_not_called()
        messenger_contract.functions.depositForBurn.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_signature_bytes(self, source_adapter, permit2_contract):
        """Test a malformed signature is reported as invalid permit data."""
        instruction = create_instruction(
            debited_address=MOCK_OWNER_ADDRESS, permit=create_mock_permit(), signature="0x1234"
        )

        with pytest.raises(ChainSubmissionError, match="invalid permit data"):
            await source_adapter.submit(instruction)
        permit2_contract.functions.permit.assert_not_called()


class TestTransactionConfirmation:
    """Test broadcast and receipt handling."""

    @pytest.mark.asyncio
    async def test_revert_raises_with_tx_hash(self, mock_web3, source_adapter):
        """Test a reverted receipt raises ChainSubmissionError carrying the hash."""
        mock_web3.eth.get_transaction_receipt = AsyncMock(return_value=create_mock_receipt(status=0))

        with pytest.raises(ChainSubmissionError, match="reverted") as exc_info:
            await source_adapter.submit(create_instruction())
        assert exc_info.value.tx_hash == MOCK_BROADCAST_TX

    @pytest.mark.asyncio
    async def test_broadcast_failure(self, mock_web3, source_adapter):
        """Test an RPC broadcast failure raises without a tx hash."""
        mock_web3.eth.send_raw_transaction = AsyncMock(side_effect=ConnectionError("connection refused"))

        with pytest.raises(ChainSubmissionError, match="Failed to broadcast") as exc_info:
            await source_adapter.submit(create_instruction())
        assert exc_info.value.tx_hash is None

    @pytest.mark.asyncio
    async def test_receipt_after_pending(self, mock_web3, source_adapter):
        """Test receipt polling tolerates TransactionNotFound while pending."""
        mock_web3.eth.get_transaction_receipt = AsyncMock(
            side_effect=[TransactionNotFound("pending"), create_mock_receipt()]
        )

        with patch.object(source_adapter, "_sleep_async", new=AsyncMock()) as mock_sleep:
            tx_hash = await source_adapter.submit(create_instruction())

        assert tx_hash == MOCK_BROADCAST_TX
        mock_sleep.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_receipt_timeout(self, mock_web3, source_adapter):
        """Test a missing receipt after all attempts raises a timeout error."""
        mock_web3.eth.get_transaction_receipt = AsyncMock(side_effect=TransactionNotFound("pending"))

        with patch.object(source_adapter, "_sleep_async", new=AsyncMock()):
            with pytest.raises(ChainSubmissionError, match="timed out"):
                await source_adapter.submit(create_instruction())
        assert mock_web3.eth.get_transaction_receipt.await_count == 3

    @pytest.mark.asyncio
    async def test_build_failure(self, source_adapter, messenger_contract):
        """Test a failing build_transaction is wrapped."""
        tx_fn = messenger_contract.functions.depositForBurn.return_value
        tx_fn.build_transaction = AsyncMock(side_effect=ValueError("insufficient funds"))

        with pytest.raises(ChainSubmissionError, match="could not build transaction"):
            await source_adapter.submit(create_instruction())


class TestDestinationCompletion:
    """Test mints through receiveMessage."""

    @pytest.mark.asyncio
    async def test_receive_message_arguments(self, mock_web3, destination_adapter):
        """Test message and attestation are passed as bytes."""
        attestation = create_mock_attestation()

        tx_hash = await destination_adapter.submit_completion(attestation)

        assert tx_hash == MOCK_BROADCAST_TX
        transmitter = mock_web3.contracts[MESSAGE_TRANSMITTER_V2_TESTNET.lower()]
        transmitter.functions.receiveMessage.assert_called_once_with(
            bytes.fromhex(attestation.message[2:]),
            bytes.fromhex(attestation.attestation[2:]),
        )

    @pytest.mark.asyncio
    async def test_invalid_attestation_hex(self, destination_adapter):
        """Test a non-hex attestation is rejected before broadcasting."""
        attestation = create_mock_attestation(attestation="0xnothex")

        with pytest.raises(ChainSubmissionError, match="invalid attestation payload"):
            await destination_adapter.submit_completion(attestation)

    @pytest.mark.asyncio
    async def test_destination_revert(self, mock_web3, destination_adapter):
        """Test a reverted mint raises ChainSubmissionError."""
        mock_web3.eth.get_transaction_receipt = AsyncMock(return_value=create_mock_receipt(status=0))

        with pytest.raises(ChainSubmissionError, match="receiveMessage"):
            await destination_adapter.submit_completion(create_mock_attestation())
