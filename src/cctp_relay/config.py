"""
Relay Configuration

Immutable configuration for the relay, resolved once at start-up by the entry
points. Library code receives a ``RelayConfig`` and never reads the
environment itself.

Environment variables (``.env.local`` then ``.env`` are loaded first):

    Required:
        SOURCE_RPC_URL, DESTINATION_RPC_URL,
        SOURCE_SPONSOR_PRIVATE_KEY, DESTINATION_SPONSOR_PRIVATE_KEY

    Optional:
        NETWORK_TYPE                            Testnet (default) or Mainnet
        SOURCE_USDC_ADDRESS                     overrides the network's USDC
        SOURCE_TOKEN_MESSENGER_ADDRESS          overrides the TokenMessenger
        SOURCE_MESSAGE_TRANSMITTER_ADDRESS      overrides the MessageTransmitter (source)
        DESTINATION_MESSAGE_TRANSMITTER_ADDRESS overrides MessageTransmitterV2 (destination)
        SOURCE_CHAIN_ID                         overrides the source chain id
        DESTINATION_DOMAIN                      CCTP domain to mint on (default 0)
        APTOS_RECEIVE_MESSAGE_SCRIPT            path to the compiled
                                                handle_receive_message.mv
                                                (required when minting on Aptos)
        IRIS_API_URL                            overrides the attestation API
        ALLOW_PERMIT_RECONSTRUCTION             "false" rejects delegated
                                                requests without a permit

Minting on Aptos (``DESTINATION_DOMAIN=9``) switches the source side to CCTP
V1: the V1 TokenMessenger becomes the default and the destination RPC URL and
sponsor key name an Aptos fullnode and an Ed25519 key.
"""

import os
import re
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional

import dotenv
from eth_utils import is_address
from pydantic import BaseModel, ConfigDict, Field

from .adapters.evm.constants import (
    CCTP_DOMAIN_APTOS,
    CCTP_DOMAIN_ETHEREUM,
    CCTP_V1_ONLY_DOMAINS,
    PERMIT2_ADDRESS,
    SUPPORTED_DESTINATION_DOMAINS,
    domain_name,
    get_network_profile,
)
from .engine.exceptions import ConfigurationError


class NetworkType(str, Enum):
    TESTNET = "Testnet"
    MAINNET = "Mainnet"


#: (field name, environment variable) pairs that must resolve to a value.
REQUIRED_VARIABLES = (
    ("source_rpc_url", "SOURCE_RPC_URL"),
    ("destination_rpc_url", "DESTINATION_RPC_URL"),
    ("source_private_key", "SOURCE_SPONSOR_PRIVATE_KEY"),
    ("destination_private_key", "DESTINATION_SPONSOR_PRIVATE_KEY"),
)

_OPTIONAL_VARIABLES = (
    ("usdc_address", "SOURCE_USDC_ADDRESS"),
    ("token_messenger_address", "SOURCE_TOKEN_MESSENGER_ADDRESS"),
    ("source_message_transmitter_address", "SOURCE_MESSAGE_TRANSMITTER_ADDRESS"),
    ("destination_message_transmitter_address", "DESTINATION_MESSAGE_TRANSMITTER_ADDRESS"),
    ("source_chain_id", "SOURCE_CHAIN_ID"),
    ("destination_domain", "DESTINATION_DOMAIN"),
    ("aptos_receive_message_script", "APTOS_RECEIVE_MESSAGE_SCRIPT"),
    ("iris_api_url", "IRIS_API_URL"),
    ("allow_permit_reconstruction", "ALLOW_PERMIT_RECONSTRUCTION"),
)

_ADDRESS_FIELDS = (
    "usdc_address",
    "token_messenger_address",
    "source_message_transmitter_address",
    "destination_message_transmitter_address",
    "permit2_address",
)

#: 32-byte hex secret, 0x prefix optional (EVM secp256k1 and Aptos Ed25519 keys alike).
_PRIVATE_KEY_PATTERN = re.compile(r"^(0x)?[0-9a-fA-F]{64}$")
_ED25519_KEY_PREFIX = "ed25519-priv-"


class RelayConfig(BaseModel):
    """
    Fully resolved relay configuration. Frozen once constructed.

    Private keys are excluded from ``repr`` so the object is safe to log.
    ``destination_message_transmitter_address`` is unset when minting on
    Aptos, where ``aptos_receive_message_script`` is used instead.
    """

    model_config = ConfigDict(frozen=True)

    network_type: NetworkType = Field(default=NetworkType.TESTNET)
    source_rpc_url: str = Field(..., min_length=1)
    destination_rpc_url: str = Field(..., min_length=1)
    source_private_key: str = Field(..., min_length=1, repr=False)
    destination_private_key: str = Field(..., min_length=1, repr=False)

    source_chain_id: int = Field(..., gt=0)
    source_domain: int = Field(..., ge=0)
    destination_domain: int = Field(default=CCTP_DOMAIN_ETHEREUM, ge=0)
    cctp_version: int = Field(default=2, ge=1, le=2)

    usdc_address: str
    token_messenger_address: str
    source_message_transmitter_address: str
    destination_message_transmitter_address: Optional[str] = None
    permit2_address: str = PERMIT2_ADDRESS
    aptos_receive_message_script: Optional[str] = None

    iris_api_url: str
    explorer_url: str = ""
    allow_permit_reconstruction: bool = True

    @property
    def destination_is_aptos(self) -> bool:
        return self.destination_domain == CCTP_DOMAIN_APTOS


def _parse_bool(name: str, raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ConfigurationError(f"{name} must be a boolean (true/false), got {raw!r}")


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(str(raw).strip())
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


_PARSERS: Dict[str, Callable[[str, str], Any]] = {
    "source_chain_id": _parse_int,
    "destination_domain": _parse_int,
    "allow_permit_reconstruction": _parse_bool,
}


def _check_private_key(var: str, key: str, *, ed25519: bool = False) -> None:
    """Reject keys that are not 32 bytes of hex. The message never echoes the key."""
    if ed25519 and key.startswith(_ED25519_KEY_PREFIX):
        key = key[len(_ED25519_KEY_PREFIX):]
    if not _PRIVATE_KEY_PATTERN.match(key.strip()):
        raise ConfigurationError(f"{var} must be a 32-byte hex private key")


def load_env_files() -> None:
    """Load ``.env.local`` then ``.env`` into the process environment (existing values win)."""
    dotenv.load_dotenv(".env.local")
    dotenv.load_dotenv()


def create_config(env: Optional[Mapping[str, str]] = None, **overrides: Any) -> RelayConfig:
    """
    Build a ``RelayConfig`` from explicit overrides, falling back to the
    environment for every field not given.

    Args:
        env: Mapping to read variables from instead of ``os.environ`` (the
            dotenv files are not loaded in that case).
        **overrides: ``RelayConfig`` field values, e.g. ``network_type="Mainnet"``.

    Returns:
        RelayConfig: The resolved, validated configuration.

    Raises:
        ConfigurationError: A required variable is missing, a value is
            malformed, or no adapter can mint on the destination domain. The
            message names the offending variable.

    Example:
        config = create_config(source_rpc_url="https://sepolia.base.org")
    """
    if env is None:
        load_env_files()
        env = os.environ

    def _lookup(var: str) -> Optional[str]:
        value = env.get(var)
        return value if value not in (None, "") else None

    values: Dict[str, Any] = {}

    for field_name, var in REQUIRED_VARIABLES:
        value = overrides.get(field_name) or _lookup(var)
        if not value:
            raise ConfigurationError(f"Missing required environment variable: {var}")
        values[field_name] = value

    network_raw = overrides.get("network_type") or _lookup("NETWORK_TYPE") or NetworkType.TESTNET.value
    try:
        network = NetworkType(network_raw)
    except ValueError:
        raise ConfigurationError(
            f"NETWORK_TYPE must be 'Testnet' or 'Mainnet', got {network_raw!r}"
        )
    profile = get_network_profile(network.value)
    values["network_type"] = network

    for field_name, var in _OPTIONAL_VARIABLES:
        if overrides.get(field_name) is not None:
            values[field_name] = overrides[field_name]
            continue
        raw = _lookup(var)
        if raw is None:
            continue
        parser = _PARSERS.get(field_name)
        values[field_name] = parser(var, raw) if parser else raw.strip()

    for field_name in ("source_domain", "permit2_address", "explorer_url"):
        if overrides.get(field_name) is not None:
            values[field_name] = overrides[field_name]

    # -- destination ---------------------------------------------------------
    source_domain = values.setdefault("source_domain", profile.domain)
    destination_domain = values.setdefault("destination_domain", CCTP_DOMAIN_ETHEREUM)
    if destination_domain not in SUPPORTED_DESTINATION_DOMAINS:
        raise ConfigurationError(
            f"DESTINATION_DOMAIN {destination_domain} ({domain_name(destination_domain)}) is not supported; "
            f"expected one of {sorted(SUPPORTED_DESTINATION_DOMAINS)}"
        )
    if destination_domain == source_domain:
        raise ConfigurationError(
            f"DESTINATION_DOMAIN must differ from the source domain ({domain_name(source_domain)})"
        )

    aptos = destination_domain == CCTP_DOMAIN_APTOS
    version = 1 if destination_domain in CCTP_V1_ONLY_DOMAINS else 2
    values["cctp_version"] = version

    # -- network profile defaults ----------------------------------------------
    values.setdefault("source_chain_id", profile.chain_id)
    values.setdefault("usdc_address", profile.usdc)
    values.setdefault("iris_api_url", profile.iris_api_url)
    values.setdefault("explorer_url", profile.explorer_url)
    if version == 1:
        values.setdefault("token_messenger_address", profile.token_messenger_v1)
        values.setdefault("source_message_transmitter_address", profile.message_transmitter_v1)
    else:
        values.setdefault("token_messenger_address", profile.token_messenger)
        values.setdefault("source_message_transmitter_address", profile.message_transmitter)

    if aptos:
        if not values.get("aptos_receive_message_script"):
            raise ConfigurationError(
                "Missing required environment variable: APTOS_RECEIVE_MESSAGE_SCRIPT "
                "(compiled handle_receive_message script, needed to mint on Aptos)"
            )
        values.pop("destination_message_transmitter_address", None)
    else:
        values.setdefault("destination_message_transmitter_address", profile.message_transmitter)

    # -- validation ------------------------------------------------------------
    for field_name in _ADDRESS_FIELDS:
        address = values.get(field_name)
        if address is not None and not is_address(address):
            raise ConfigurationError(f"{field_name} is not a valid EVM address: {address!r}")

    _check_private_key("SOURCE_SPONSOR_PRIVATE_KEY", values["source_private_key"])
    _check_private_key("DESTINATION_SPONSOR_PRIVATE_KEY", values["destination_private_key"], ed25519=aptos)

    try:
        return RelayConfig(**values)
    except ValueError as e:
        raise ConfigurationError(f"Invalid relay configuration: {e}") from e


def load_config() -> RelayConfig:
    """Resolve the configuration from ``.env.local``, ``.env`` and the environment."""
    return create_config()
