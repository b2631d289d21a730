"""
EVM and CCTP Constants

Contract addresses, chain identifiers and CCTP domain mappings used by the
relay, plus the integer conversion helpers for token amounts.

All CCTP V2 contracts share one address per environment across EVM chains
(deployed via CREATE2). Aptos only speaks CCTP V1, so each source profile also
carries the V1 TokenMessenger used for burns towards it.
"""

from typing import Dict, Optional
from decimal import Decimal, InvalidOperation

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Permit2
# ---------------------------------------------------------------------------

#: Canonical Uniswap Permit2 singleton address (same on all EVM networks).
PERMIT2_ADDRESS: str = "0x000000000022D473030F116dDEE9F6B43aC78BA3"

#: EIP-712 domain name and version of the Permit2 contract.
PERMIT2_DOMAIN_NAME: str = "Permit2"
PERMIT2_DOMAIN_VERSION: str = "1"

#: Field widths of Permit2 ``PermitDetails``.
MAX_UINT160: int = (1 << 160) - 1
MAX_UINT48: int = (1 << 48) - 1
MAX_UINT256: int = (1 << 256) - 1

#: Default lifetime of a freshly created permit, in seconds.
DEFAULT_PERMIT_LIFETIME: int = 3600


# ---------------------------------------------------------------------------
# Chains and tokens
# ---------------------------------------------------------------------------

BASE_MAINNET_CHAIN_ID: int = 8453
BASE_SEPOLIA_CHAIN_ID: int = 84532

BASE_MAINNET_USDC: str = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
BASE_SEPOLIA_USDC: str = "0x036CbD53842c5426634e7929541eC2318f3dCF7e"

#: USDC uses 6 decimals on every CCTP chain.
USDC_DECIMALS: int = 6


# ---------------------------------------------------------------------------
# CCTP V2
# ---------------------------------------------------------------------------

#: TokenMessengerV2 / MessageTransmitterV2 on mainnets.
TOKEN_MESSENGER_V2: str = "0x28b5a0e9C621a5BadaA536219b3a228C8168cf5d"
MESSAGE_TRANSMITTER_V2: str = "0x81D40F21F12A8F0E3252Bccb954D722d4c464B64"

#: TokenMessengerV2 / MessageTransmitterV2 on testnets.
TOKEN_MESSENGER_V2_TESTNET: str = "0x8FE6B999Dc680CcFDD5Bf7EB0974218be2542DAA"
MESSAGE_TRANSMITTER_V2_TESTNET: str = "0xE737e5cEBEEBa77EFE34D4aa090756590b1CE275"


# ---------------------------------------------------------------------------
# CCTP V1 (Base)
# ---------------------------------------------------------------------------

#: TokenMessenger / MessageTransmitter on Base and Base Sepolia.
TOKEN_MESSENGER_V1_BASE: str = "0x1682ae6375c4e4a97e4b583bc394c861a46d8962"
MESSAGE_TRANSMITTER_V1_BASE: str = "0xad09780d193884d503182ad4588450c416d6f9d4"
TOKEN_MESSENGER_V1_BASE_SEPOLIA: str = "0x9f3b8679c73c2fef8b59b4f3444d4e156fb70aa5"
MESSAGE_TRANSMITTER_V1_BASE_SEPOLIA: str = "0x7865fafc2db2093669d92c0f33aeef291086befd"

CCTP_DOMAIN_ETHEREUM = 0
CCTP_DOMAIN_AVALANCHE = 1
CCTP_DOMAIN_OPTIMISM = 2
CCTP_DOMAIN_ARBITRUM = 3
CCTP_DOMAIN_BASE = 6
CCTP_DOMAIN_POLYGON = 7
CCTP_DOMAIN_APTOS = 9

#: Human-readable names for log and CLI output.
CCTP_DOMAIN_NAMES: Dict[int, str] = {
    CCTP_DOMAIN_ETHEREUM: "Ethereum",
    CCTP_DOMAIN_AVALANCHE: "Avalanche",
    CCTP_DOMAIN_OPTIMISM: "Optimism",
    CCTP_DOMAIN_ARBITRUM: "Arbitrum",
    CCTP_DOMAIN_BASE: "Base",
    CCTP_DOMAIN_POLYGON: "Polygon",
    CCTP_DOMAIN_APTOS: "Aptos",
}

#: Circle Iris attestation API.
IRIS_API_MAINNET: str = "https://iris-api.circle.com"
IRIS_API_TESTNET: str = "https://iris-api-sandbox.circle.com"

#: Standard finality threshold accepted by V2 ``depositForBurn``.
FINALITY_THRESHOLD_STANDARD = 2000

#: Destination domains reachable only through CCTP V1.
CCTP_V1_ONLY_DOMAINS = frozenset({CCTP_DOMAIN_APTOS})

#: Domains the relay can mint on: EVM chains (V2) and Aptos (V1).
SUPPORTED_DESTINATION_DOMAINS = frozenset({
    CCTP_DOMAIN_ETHEREUM,
    CCTP_DOMAIN_AVALANCHE,
    CCTP_DOMAIN_OPTIMISM,
    CCTP_DOMAIN_ARBITRUM,
    CCTP_DOMAIN_BASE,
    CCTP_DOMAIN_POLYGON,
    CCTP_DOMAIN_APTOS,
})


class CctpNetworkProfile(BaseModel):
    """Contract addresses and identifiers for one side of a CCTP deployment."""
    name: str
    chain_id: int
    domain: int = Field(..., ge=0, description="CCTP domain of the source chain")
    usdc: str = Field(..., description="Native USDC address on the source chain")
    token_messenger: str = Field(..., description="TokenMessengerV2 address")
    message_transmitter: str = Field(..., description="MessageTransmitterV2 address")
    token_messenger_v1: str = Field(..., description="TokenMessenger (V1) address")
    message_transmitter_v1: str = Field(..., description="MessageTransmitter (V1) address")
    iris_api_url: str = Field(..., description="Iris attestation API base URL")
    explorer_url: str = Field(..., description="Block explorer base URL")


_NETWORK_PROFILES: Dict[str, CctpNetworkProfile] = {
    "Testnet": CctpNetworkProfile(
        name="Base Sepolia",
        chain_id=BASE_SEPOLIA_CHAIN_ID,
        domain=CCTP_DOMAIN_BASE,
        usdc=BASE_SEPOLIA_USDC,
        token_messenger=TOKEN_MESSENGER_V2_TESTNET,
        message_transmitter=MESSAGE_TRANSMITTER_V2_TESTNET,
        token_messenger_v1=TOKEN_MESSENGER_V1_BASE_SEPOLIA,
        message_transmitter_v1=MESSAGE_TRANSMITTER_V1_BASE_SEPOLIA,
        iris_api_url=IRIS_API_TESTNET,
        explorer_url="https://sepolia.basescan.org",
    ),
    "Mainnet": CctpNetworkProfile(
        name="Base",
        chain_id=BASE_MAINNET_CHAIN_ID,
        domain=CCTP_DOMAIN_BASE,
        usdc=BASE_MAINNET_USDC,
        token_messenger=TOKEN_MESSENGER_V2,
        message_transmitter=MESSAGE_TRANSMITTER_V2,
        token_messenger_v1=TOKEN_MESSENGER_V1_BASE,
        message_transmitter_v1=MESSAGE_TRANSMITTER_V1_BASE,
        iris_api_url=IRIS_API_MAINNET,
        explorer_url="https://basescan.org",
    ),
}


def get_network_profile(network: str) -> CctpNetworkProfile:
    """
    Return the default source-chain profile for a network mode.

    Args:
        network: ``"Testnet"`` or ``"Mainnet"``.

    Returns:
        CctpNetworkProfile: A copy the caller may modify freely.

    Raises:
        ValueError: If the network mode is unknown.
    """
    try:
        return _NETWORK_PROFILES[network].model_copy()
    except KeyError:
        raise ValueError(
            f"Unsupported network type: {network!r}. Expected one of {sorted(_NETWORK_PROFILES)}"
        )


def domain_name(domain: Optional[int]) -> str:
    """Human-readable name of a CCTP domain (falls back to the number)."""
    if domain is None:
        return "unknown"
    return CCTP_DOMAIN_NAMES.get(domain, f"domain {domain}")


# ---------------------------------------------------------------------------
# Amount conversion
# ---------------------------------------------------------------------------

def amount_to_value(*, amount: int | str | Decimal, decimals: int = USDC_DECIMALS) -> int:
    """
    Convert a human-readable token amount into its smallest-unit integer.

    Parsing goes through ``Decimal`` so that decimal strings such as ``"0.2"``
    are converted exactly; floats are rejected to keep amount math integral.

    Args:
        amount: Human amount as a decimal string, int or ``Decimal``.
        decimals: Token decimals (6 for USDC).

    Returns:
        int: Amount in the token's smallest unit.

    Raises:
        ValueError: If the amount is not numeric, not positive, or has more
            fractional digits than ``decimals`` allows.

    Example:
        amount_to_value(amount="1.0")  # 1_000_000
        amount_to_value(amount="0.2")  # 200_000
    """
    if isinstance(amount, bool) or isinstance(amount, float):
        raise ValueError(f"Amount must be a decimal string, int or Decimal, got {type(amount).__name__}")
    if decimals < 0:
        raise ValueError("decimals must be non-negative")

    try:
        amount_decimal = Decimal(str(amount).strip())
    except (InvalidOperation, ValueError):
        raise ValueError(f"Invalid amount: {amount!r} is not a number")

    if not amount_decimal.is_finite():
        raise ValueError(f"Invalid amount: {amount!r} is not a finite number")
    if amount_decimal <= 0:
        raise ValueError(f"Invalid amount: {amount!r}. Must be a positive number")

    scaled = amount_decimal.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise ValueError(
            f"Invalid amount: {amount!r} has more than {decimals} decimal places"
        )
    return int(scaled)


def value_to_amount(*, value: int | str, decimals: int = USDC_DECIMALS) -> Decimal:
    """
    Convert a smallest-unit integer back into a human-readable ``Decimal``.

    Args:
        value: Amount in the token's smallest unit.
        decimals: Token decimals (6 for USDC).

    Returns:
        Decimal: Human amount, e.g. ``Decimal("1.000000")`` for 1_000_000.
    """
    quantum = Decimal(1).scaleb(-decimals)
    return (Decimal(int(value)) / (Decimal(10) ** decimals)).quantize(quantum)
