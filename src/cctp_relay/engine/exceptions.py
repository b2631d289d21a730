"""
Exception and Error Definitions Module

Defines the exception hierarchy for transfer validation, delegated
authorization, chain submission and attestation polling. All exceptions
inherit from RelayError for unified exception handling.

Exception Hierarchy:
    RelayError (root)
    ├── ValidationError
    ├── AuthorizationError
    │   ├── SignatureVerificationError
    │   └── PermitExpiredError
    ├── ChainSubmissionError
    ├── AttestationError
    │   ├── AttestationTimeout
    │   └── AttestationServiceError
    └── ConfigurationError
"""

from typing import Optional


class RelayError(Exception):
    """
    Root exception class for all project-specific exceptions.

    All custom exceptions should inherit from this class to enable
    unified exception handling and centralized error processing.
    """
    pass


class ValidationError(RelayError):
    """
    Raised when transfer input is malformed. Detected before any I/O and
    never retried.

    This includes scenarios such as:
    - Non-numeric, zero or negative amounts
    - Amounts with more than 6 decimal places
    - Malformed source or destination addresses
    """
    pass


class AuthorizationError(RelayError):
    """
    Raised when a delegated-mode authorization is rejected. Always raised
    before any on-chain action.

    This includes scenarios such as:
    - Permit owner or value not matching the transfer
    - Missing chain id for a real signature
    - Missing permit while reconstruction is disabled
    """
    pass


class SignatureVerificationError(AuthorizationError):
    """
    Raised when the recovered permit signer does not match the owner.

    Attributes:
        owner: Expected signer address
    """

    def __init__(self, message: str, owner: Optional[str] = None) -> None:
        super().__init__(message)
        self.owner = owner


class PermitExpiredError(AuthorizationError):
    """
    Raised when the permit deadline has already passed.

    Attributes:
        deadline: The expired permit deadline
        current_time: Time the check was performed
    """

    def __init__(self, message: str, deadline: Optional[int] = None, current_time: Optional[int] = None) -> None:
        super().__init__(message)
        self.deadline = deadline
        self.current_time = current_time


class ChainSubmissionError(RelayError):
    """
    Raised when a source or destination transaction cannot be broadcast or
    reverts. Fatal to the current request; no automatic retry.

    This includes scenarios such as:
    - RPC connection failures
    - Fee replacement or nonce conflicts
    - On-chain reverts

    Attributes:
        tx_hash: Hash of the transaction, when it was broadcast
    """

    def __init__(self, message: str, tx_hash: Optional[str] = None) -> None:
        super().__init__(message)
        self.tx_hash = tx_hash


class AttestationError(RelayError):
    """
    Base exception for attestation failures.

    Parent class for all errors raised while waiting for an attestation.
    """
    pass


class AttestationTimeout(AttestationError):
    """
    Raised when the overall polling deadline passes without an attestation.
    The source-side burn has already happened and must be reconciled out of
    band.

    Attributes:
        elapsed: Seconds spent polling
        timeout: Overall deadline in seconds
    """

    def __init__(self, message: str, elapsed: float = 0.0, timeout: float = 0.0) -> None:
        super().__init__(message)
        self.elapsed = elapsed
        self.timeout = timeout


class AttestationServiceError(AttestationError):
    """
    Raised when the attestation service fails in a way that retrying will not
    fix. Propagated immediately without backoff.

    This includes scenarios such as:
    - Client errors other than "not found" or rate limiting
    - Malformed response payloads

    Attributes:
        status_code: HTTP status code, when available
    """

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ConfigurationError(RelayError):
    """
    Raised when required configuration is missing or invalid.

    This includes scenarios such as:
    - Missing RPC endpoints or signing keys
    - Unknown network type
    - Malformed contract address overrides
    """
    pass
