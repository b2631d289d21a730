from .schemas import (
    EVMECDSASignature,
    Permit,
    PermitVerificationResult,
    EVMTransactionConfirmation,
)
from .standards import (
    EIP712Domain,
    PermitDetails,
    PermitSingleMessage,
    PermitSingleTypedData,
)
from .signatures import (
    create_permit,
    build_permit_single_typed_data,
    sign_permit_single,
    split_signature,
)
from .verifies import (
    verify_permit_single,
    AuthorizationVerifier,
)

__all__ = [
    "EVMECDSASignature",
    "Permit",
    "PermitVerificationResult",
    "EVMTransactionConfirmation",
    "EIP712Domain",
    "PermitDetails",
    "PermitSingleMessage",
    "PermitSingleTypedData",
    "create_permit",
    "build_permit_single_typed_data",
    "sign_permit_single",
    "split_signature",
    "verify_permit_single",
    "AuthorizationVerifier",
]
