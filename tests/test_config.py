"""
Relay Configuration Test Suite

Tests environment resolution, network profiles, optional overrides and
validation errors of ``create_config``.
"""

import os
from unittest.mock import patch

import pydantic
import pytest

from mocks import MOCK_ENV, MOCK_OTHER_ADDRESS, MOCK_RELAYER_PRIVATE_KEY
from cctp_relay.adapters.evm.constants import (
    BASE_MAINNET_CHAIN_ID,
    BASE_MAINNET_USDC,
    BASE_SEPOLIA_CHAIN_ID,
    BASE_SEPOLIA_USDC,
    IRIS_API_MAINNET,
    IRIS_API_TESTNET,
    MESSAGE_TRANSMITTER_V1_BASE_SEPOLIA,
    MESSAGE_TRANSMITTER_V2_TESTNET,
    PERMIT2_ADDRESS,
    TOKEN_MESSENGER_V1_BASE_SEPOLIA,
    TOKEN_MESSENGER_V2_TESTNET,
)
from cctp_relay.config import NetworkType, create_config, load_config
from cctp_relay.engine.exceptions import ConfigurationError


class TestRequiredVariables:
    """Test required variables are enforced."""

    @pytest.mark.parametrize("var", list(MOCK_ENV))
    def test_missing_variable_is_named(self, var):
        env = {k: v for k, v in MOCK_ENV.items() if k != var}

        with pytest.raises(ConfigurationError, match=f"Missing required environment variable: {var}"):
            create_config(env=env)

    def test_empty_value_counts_as_missing(self):
        with pytest.raises(ConfigurationError, match="SOURCE_RPC_URL"):
            create_config(env={**MOCK_ENV, "SOURCE_RPC_URL": ""})

    def test_override_satisfies_requirement(self):
        env = {k: v for k, v in MOCK_ENV.items() if k != "SOURCE_RPC_URL"}

        config = create_config(env=env, source_rpc_url="https://override.example")

        assert config.source_rpc_url == "https://override.example"


class TestNetworkProfiles:
    """Test defaults resolved from the network type."""

    def test_testnet_defaults(self):
        config = create_config(env=MOCK_ENV)

        assert config.network_type == NetworkType.TESTNET
        assert config.source_chain_id == BASE_SEPOLIA_CHAIN_ID
        assert config.source_domain == 6
        assert config.destination_domain == 0
        assert config.usdc_address == BASE_SEPOLIA_USDC
        assert config.token_messenger_address == TOKEN_MESSENGER_V2_TESTNET
        assert config.source_message_transmitter_address == MESSAGE_TRANSMITTER_V2_TESTNET
        assert config.destination_message_transmitter_address == MESSAGE_TRANSMITTER_V2_TESTNET
        assert config.permit2_address == PERMIT2_ADDRESS
        assert config.iris_api_url == IRIS_API_TESTNET
        assert config.cctp_version == 2
        assert config.allow_permit_reconstruction is True

    def test_mainnet_profile(self):
        config = create_config(env={**MOCK_ENV, "NETWORK_TYPE": "Mainnet"})

        assert config.network_type == NetworkType.MAINNET
        assert config.source_chain_id == BASE_MAINNET_CHAIN_ID
        assert config.usdc_address == BASE_MAINNET_USDC
        assert config.iris_api_url == IRIS_API_MAINNET

    def test_unknown_network(self):
        with pytest.raises(ConfigurationError, match="NETWORK_TYPE"):
            create_config(env={**MOCK_ENV, "NETWORK_TYPE": "Devnet"})


class TestOptionalVariables:
    """Test optional overrides and their parsing."""

    def test_address_and_domain_overrides(self):
        config = create_config(env={
            **MOCK_ENV,
            "SOURCE_USDC_ADDRESS": MOCK_OTHER_ADDRESS,
            "DESTINATION_DOMAIN": "3",
            "SOURCE_CHAIN_ID": "11155111",
            "IRIS_API_URL": "https://iris.example",
        })

        assert config.usdc_address == MOCK_OTHER_ADDRESS
        assert config.destination_domain == 3
        assert config.source_chain_id == 11155111
        assert config.iris_api_url == "https://iris.example"

    @pytest.mark.parametrize("raw, expected", [("false", False), ("0", False), ("TRUE", True), ("yes", True)])
    def test_permit_reconstruction_flag(self, raw, expected):
        config = create_config(env={**MOCK_ENV, "ALLOW_PERMIT_RECONSTRUCTION": raw})

        assert config.allow_permit_reconstruction is expected

    def test_invalid_boolean(self):
        with pytest.raises(ConfigurationError, match="ALLOW_PERMIT_RECONSTRUCTION"):
            create_config(env={**MOCK_ENV, "ALLOW_PERMIT_RECONSTRUCTION": "maybe"})

    def test_invalid_integer(self):
        with pytest.raises(ConfigurationError, match="DESTINATION_DOMAIN"):
            create_config(env={**MOCK_ENV, "DESTINATION_DOMAIN": "ethereum"})

    def test_invalid_address(self):
        with pytest.raises(ConfigurationError, match="usdc_address"):
            create_config(env={**MOCK_ENV, "SOURCE_USDC_ADDRESS": "0x1234"})

    def test_keyword_override_wins_over_env(self):
        config = create_config(env={**MOCK_ENV, "DESTINATION_DOMAIN": "3"}, destination_domain=7)

        assert config.destination_domain == 7


class TestDestinationDomains:
    """Test which destinations the relay accepts and how Aptos is wired."""

    @pytest.mark.parametrize("domain", ["4", "5", "42"])
    def test_unsupported_destination_is_rejected(self, domain):
        with pytest.raises(ConfigurationError, match="DESTINATION_DOMAIN .* is not supported"):
            create_config(env={**MOCK_ENV, "DESTINATION_DOMAIN": domain})

    def test_destination_equal_to_source_is_rejected(self):
        with pytest.raises(ConfigurationError, match="must differ from the source domain"):
            create_config(env={**MOCK_ENV, "DESTINATION_DOMAIN": "6"})

    def test_aptos_requires_receive_script(self):
        with pytest.raises(ConfigurationError, match="APTOS_RECEIVE_MESSAGE_SCRIPT"):
            create_config(env={**MOCK_ENV, "DESTINATION_DOMAIN": "9"})

    def test_aptos_switches_source_to_cctp_v1(self):
        config = create_config(env={
            **MOCK_ENV,
            "DESTINATION_DOMAIN": "9",
            "APTOS_RECEIVE_MESSAGE_SCRIPT": "/opt/cctp/handle_receive_message.mv",
        })

        assert config.destination_is_aptos
        assert config.cctp_version == 1
        assert config.token_messenger_address == TOKEN_MESSENGER_V1_BASE_SEPOLIA
        assert config.source_message_transmitter_address == MESSAGE_TRANSMITTER_V1_BASE_SEPOLIA
        assert config.destination_message_transmitter_address is None
        assert config.aptos_receive_message_script == "/opt/cctp/handle_receive_message.mv"

    def test_aptos_accepts_prefixed_ed25519_key(self):
        config = create_config(env={
            **MOCK_ENV,
            "DESTINATION_DOMAIN": "9",
            "APTOS_RECEIVE_MESSAGE_SCRIPT": "handle_receive_message.mv",
            "DESTINATION_SPONSOR_PRIVATE_KEY": "ed25519-priv-0x" + "11" * 32,
        })

        assert config.destination_private_key.startswith("ed25519-priv-")

    def test_token_messenger_override_wins_for_aptos(self):
        config = create_config(env={
            **MOCK_ENV,
            "DESTINATION_DOMAIN": "9",
            "APTOS_RECEIVE_MESSAGE_SCRIPT": "handle_receive_message.mv",
            "SOURCE_TOKEN_MESSENGER_ADDRESS": MOCK_OTHER_ADDRESS,
        })

        assert config.token_messenger_address == MOCK_OTHER_ADDRESS


class TestPrivateKeys:
    """Test sponsor keys are checked when the configuration is built."""

    @pytest.mark.parametrize("var", ["SOURCE_SPONSOR_PRIVATE_KEY", "DESTINATION_SPONSOR_PRIVATE_KEY"])
    @pytest.mark.parametrize("key", ["0x1234", "not-a-key", "0x" + "zz" * 32])
    def test_malformed_key_is_rejected(self, var, key):
        with pytest.raises(ConfigurationError, match=var) as exc_info:
            create_config(env={**MOCK_ENV, var: key})

        assert key not in str(exc_info.value)

    def test_key_without_prefix_is_accepted(self):
        config = create_config(env={**MOCK_ENV, "SOURCE_SPONSOR_PRIVATE_KEY": MOCK_RELAYER_PRIVATE_KEY[2:]})

        assert config.source_private_key == MOCK_RELAYER_PRIVATE_KEY[2:]

    def test_ed25519_prefix_is_only_for_aptos(self):
        with pytest.raises(ConfigurationError, match="DESTINATION_SPONSOR_PRIVATE_KEY"):
            create_config(env={**MOCK_ENV, "DESTINATION_SPONSOR_PRIVATE_KEY": "ed25519-priv-0x" + "11" * 32})


class TestRelayConfig:
    """Test properties of the resolved configuration object."""

    def test_private_keys_hidden_from_repr(self):
        config = create_config(env=MOCK_ENV)

        assert MOCK_RELAYER_PRIVATE_KEY not in repr(config)

    def test_frozen(self):
        config = create_config(env=MOCK_ENV)

        with pytest.raises(pydantic.ValidationError):
            config.destination_domain = 5

    def test_load_config_reads_process_environment(self):
        with patch("cctp_relay.config.load_env_files"):
            with patch.dict(os.environ, {**MOCK_ENV, "NETWORK_TYPE": "Mainnet"}):
                config = load_config()

        assert config.network_type == NetworkType.MAINNET
        assert config.source_rpc_url == MOCK_ENV["SOURCE_RPC_URL"]
