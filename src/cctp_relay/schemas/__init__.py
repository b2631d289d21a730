from .bases import (
    CanonicalModel,
    BaseSignature,
    VerificationStatus,
    BaseVerificationResult,
    TransactionStatus,
    BaseTransactionConfirmation,
)
from .authorization import Authenticated, Unauthenticated, Authorization, UNAUTHENTICATED_TOKEN
from .transfers import (
    TransferPhase,
    TransferRequest,
    BurnInstruction,
    AttestationRequest,
    Attestation,
    NotYetAvailable,
    TransferResult,
    normalize_recipient,
)

__all__ = [
    "CanonicalModel",
    "BaseSignature",
    "VerificationStatus",
    "BaseVerificationResult",
    "TransactionStatus",
    "BaseTransactionConfirmation",
    "Authenticated",
    "Unauthenticated",
    "Authorization",
    "UNAUTHENTICATED_TOKEN",
    "TransferPhase",
    "TransferRequest",
    "BurnInstruction",
    "AttestationRequest",
    "Attestation",
    "NotYetAvailable",
    "TransferResult",
    "normalize_recipient",
]
