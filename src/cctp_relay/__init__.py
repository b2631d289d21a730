"""
cctp-relay: USDC transfers over Circle CCTP with optional Permit2-delegated
authorization.

The schema package is imported first; the adapter and engine modules depend
on it.
"""

from .schemas import (
    TransferRequest,
    TransferResult,
    Authenticated,
    Unauthenticated,
)
from .adapters.evm import Permit, create_permit, sign_permit_single, AuthorizationVerifier
from .engine import TransferOrchestrator, EventBus, AttestationPoller, PollingPolicy
from .config import RelayConfig, create_config, load_config

__version__ = "0.1.0"

__all__ = [
    "TransferRequest",
    "TransferResult",
    "Authenticated",
    "Unauthenticated",
    "Permit",
    "create_permit",
    "sign_permit_single",
    "AuthorizationVerifier",
    "TransferOrchestrator",
    "EventBus",
    "AttestationPoller",
    "PollingPolicy",
    "RelayConfig",
    "create_config",
    "load_config",
]
