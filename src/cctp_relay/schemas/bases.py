"""
Base Schema Models for the CCTP Relay

This module defines the fundamental base classes that all other schema models
inherit from. It provides the foundation for type safety, validation, and
consistent serialization across the relay.

Core Classes:
    - CanonicalModel: Pydantic base model shared by every schema
    - BaseSignature: Abstract signature component model
    - BaseVerificationResult: Abstract verification result model
    - VerificationStatus: Outcome codes shared by all verifiers
    - BaseTransactionConfirmation: Abstract receipt summary of a broadcast transaction
    - TransactionStatus: Execution outcome codes of a transaction

Dependencies:
    - pydantic: For data validation and serialization
"""

from typing import Optional, Dict, Any
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class CanonicalModel(BaseModel):
    """
    Pydantic base model for every relay schema.

    Fields may be populated by name or by alias.
    """

    model_config = ConfigDict(populate_by_name=True)


class BaseSignature(CanonicalModel, ABC):
    """
    Abstract base class for signature components.

    Concrete classes describe how a particular chain family splits a
    signature into transportable fields (v/r/s on EVM).

    Methods:
        validate_format: Check the components are well formed
    """

    @abstractmethod
    def validate_format(self) -> bool:
        """
        Validate the signature components.

        Returns:
            bool: True if signature format is valid.

        Raises:
            ValueError: If signature format is invalid with descriptive message.
        """


class VerificationStatus(str, Enum):
    """
    Enumeration of possible verification result statuses.

    Attributes:
        SUCCESS: Authorization is valid
        UNAUTHENTICATED: Accepted through the testing bypass, nothing was checked
        INVALID_SIGNATURE: Signature is malformed or the signer does not match
        EXPIRED: Permit deadline has passed
        OWNER_MISMATCH: Permit owner differs from the debited account
        TOKEN_MISMATCH: Permit token differs from the burn token
        SPENDER_MISMATCH: Permit spender is not the relayer
        AMOUNT_MISMATCH: Permit value differs from the transfer amount
        MISSING_CHAIN_ID: No chain id supplied for a real signature
        MISSING_PERMIT: No permit supplied while reconstruction is disabled
    """
    SUCCESS = "success"
    UNAUTHENTICATED = "unauthenticated"
    INVALID_SIGNATURE = "invalid_signature"
    EXPIRED = "expired"
    OWNER_MISMATCH = "owner_mismatch"
    TOKEN_MISMATCH = "token_mismatch"
    SPENDER_MISMATCH = "spender_mismatch"
    AMOUNT_MISMATCH = "amount_mismatch"
    MISSING_CHAIN_ID = "missing_chain_id"
    MISSING_PERMIT = "missing_permit"


class BaseVerificationResult(CanonicalModel, ABC):
    """
    Abstract base class for authorization verification results.

    Attributes:
        status: Verification result status (VerificationStatus enum)
        is_valid: Boolean indicating if verification was successful
        message: Human-readable status message
        error_details: Detailed error information if verification failed
        verified_at: Timestamp when verification was performed

    Methods:
        is_success: Check if verification was successful
    """

    status: VerificationStatus = Field(..., description="Verification result status")
    is_valid: bool = Field(..., description="Whether the authorization is accepted")
    message: str = Field(..., description="Human-readable status message")
    error_details: Optional[Dict[str, Any]] = Field(None, description="Detailed error information")
    verified_at: datetime = Field(default_factory=datetime.now, description="Verification timestamp")

    def is_success(self) -> bool:
        """
        Check if verification accepted the authorization.

        Both real signature matches and the explicit unauthenticated bypass
        count as accepted; use ``status`` to tell them apart.

        Returns:
            bool: True if the authorization was accepted.

        Example:
            result = verifier.verify(owner=..., amount=..., authorization=...)
            if not result.is_success():
                raise authorization_error(result)
        """
        return self.is_valid and self.status in (
            VerificationStatus.SUCCESS,
            VerificationStatus.UNAUTHENTICATED,
        )


class TransactionStatus(str, Enum):
    """
    Enumeration of possible transaction execution statuses.

    Attributes:
        SUCCESS: Transaction executed successfully on-chain
        FAILED: Transaction reverted on-chain
        TIMEOUT: Receipt did not appear within the polling window
        NETWORK_ERROR: Broadcast failed at the RPC layer
    """
    SUCCESS = "success"
    FAILED = "failed"
    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"


class BaseTransactionConfirmation(CanonicalModel, ABC):
    """
    Abstract base class for transaction confirmation data.

    Attributes:
        status: Transaction execution status (TransactionStatus enum)
        error_message: Error message if transaction failed
        created_at: Timestamp when confirmation was recorded
    """

    status: TransactionStatus = Field(..., description="Transaction execution status")
    error_message: Optional[str] = Field(None, description="Error message if transaction failed")
    created_at: datetime = Field(default_factory=datetime.now, description="Confirmation recording timestamp")

    def is_success(self) -> bool:
        """Return True if the transaction executed successfully on-chain."""
        return self.status == TransactionStatus.SUCCESS
