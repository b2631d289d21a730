"""
CCTP V2 + USDC + Permit2 Smart Contract ABI Module

Minimal ABI fragments for the contract calls the relay makes: ERC20 approvals,
Permit2 allowance redemption, TokenMessengerV2 (and V1, for Aptos) burns and
MessageTransmitterV2 mints.

Usage:
    from .CCTP_ABI import (
        get_deposit_for_burn_abi,
        get_receive_message_abi,
        get_permit2_allowance_abi,
    )

    # Burn on the source chain
    messenger = web3.eth.contract(address=token_messenger, abi=get_deposit_for_burn_abi())

    # Mint on the destination chain
    transmitter = web3.eth.contract(address=message_transmitter, abi=get_receive_message_abi())
"""

from typing import Dict, Any, List


def get_allowance_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for ERC20 `allowance(owner, spender)`.

    Returns:
        List[Dict[str, Any]]: ABI for ERC20 `allowance` function.
    """
    return [
        {
            "name": "allowance",
            "type": "function",
            "stateMutability": "view",
            "inputs": [
                {"name": "owner", "type": "address"},
                {"name": "spender", "type": "address"},
            ],
            "outputs": [{"name": "", "type": "uint256"}],
        }
    ]


def get_approve_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for ERC20 `approve(spender, amount)`.

    Returns:
        List[Dict[str, Any]]: ABI for ERC20 `approve` function.

    Example:
        contract = web3.eth.contract(address=usdc, abi=get_approve_abi())
        tx = contract.functions.approve(token_messenger, amount).build_transaction({...})
    """
    return [
        {
            "name": "approve",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [
                {"name": "spender", "type": "address"},
                {"name": "amount", "type": "uint256"},
            ],
            "outputs": [{"name": "", "type": "bool"}],
        }
    ]


def get_usdc_abi() -> List[Dict[str, Any]]:
    """ERC20 `allowance` + `approve`, enough to top up the burn allowance."""
    return get_allowance_abi() + get_approve_abi()


def get_permit2_allowance_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for Permit2 AllowanceTransfer ``permit`` and ``transferFrom``.

    The function signatures on-chain::

        function permit(
            address owner,
            PermitSingle memory permitSingle,
            bytes calldata signature
        ) external

        function transferFrom(
            address from,
            address to,
            uint160 amount,
            address token
        ) external

    where ``PermitSingle = { PermitDetails details; address spender; uint256 sigDeadline }``
    and ``PermitDetails = { address token; uint160 amount; uint48 expiration; uint48 nonce }``.

    Returns:
        List[Dict[str, Any]]: ABI entries for ``permit`` and ``transferFrom``.

    Example::

        permit2 = web3.eth.contract(address=PERMIT2_ADDRESS, abi=get_permit2_allowance_abi())
        permit2.functions.permit(
            owner,
            ((token, amount, expiration, nonce), spender, sig_deadline),
            sig_bytes,
        )
        permit2.functions.transferFrom(owner, relayer, amount, token)
    """
    return [
        {
            "name": "permit",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [
                {"name": "owner", "type": "address"},
                {
                    "name": "permitSingle",
                    "type": "tuple",
                    "components": [
                        {
                            "name": "details",
                            "type": "tuple",
                            "components": [
                                {"name": "token",      "type": "address"},
                                {"name": "amount",     "type": "uint160"},
                                {"name": "expiration", "type": "uint48"},
                                {"name": "nonce",      "type": "uint48"},
                            ],
                        },
                        {"name": "spender",     "type": "address"},
                        {"name": "sigDeadline", "type": "uint256"},
                    ],
                },
                {"name": "signature", "type": "bytes"},
            ],
            "outputs": [],
        },
        {
            "name": "transferFrom",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [
                {"name": "from",   "type": "address"},
                {"name": "to",     "type": "address"},
                {"name": "amount", "type": "uint160"},
                {"name": "token",  "type": "address"},
            ],
            "outputs": [],
        },
    ]


def get_deposit_for_burn_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for TokenMessengerV2 ``depositForBurn``.

    ``mintRecipient`` and ``destinationCaller`` are 32-byte values so that
    non-EVM recipients fit; EVM addresses are left-padded with zeros. A zero
    ``destinationCaller`` lets anyone relay the mint.

    Returns:
        List[Dict[str, Any]]: ABI containing the ``depositForBurn`` entry.
    """
    return [
        {
            "name": "depositForBurn",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [
                {"name": "amount",               "type": "uint256"},
                {"name": "destinationDomain",    "type": "uint32"},
                {"name": "mintRecipient",        "type": "bytes32"},
                {"name": "burnToken",            "type": "address"},
                {"name": "destinationCaller",    "type": "bytes32"},
                {"name": "maxFee",               "type": "uint256"},
                {"name": "minFinalityThreshold", "type": "uint32"},
            ],
            "outputs": [],
        }
    ]


def get_deposit_for_burn_v1_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for the CCTP V1 TokenMessenger ``depositForBurn``.

    V1 has no destination caller, fee or finality arguments. It is the only
    burn Aptos accepts messages from.

    Returns:
        List[Dict[str, Any]]: ABI containing the V1 ``depositForBurn`` entry.
    """
    return [
        {
            "name": "depositForBurn",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [
                {"name": "amount",            "type": "uint256"},
                {"name": "destinationDomain", "type": "uint32"},
                {"name": "mintRecipient",     "type": "bytes32"},
                {"name": "burnToken",         "type": "address"},
            ],
            "outputs": [{"name": "_nonce", "type": "uint64"}],
        }
    ]


def get_receive_message_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for MessageTransmitterV2 ``receiveMessage(message, attestation)``.

    Returns:
        List[Dict[str, Any]]: ABI containing the ``receiveMessage`` entry.
    """
    return [
        {
            "name": "receiveMessage",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [
                {"name": "message",     "type": "bytes"},
                {"name": "attestation", "type": "bytes"},
            ],
            "outputs": [{"name": "success", "type": "bool"}],
        }
    ]
