from .exceptions import (
    RelayError,
    ValidationError,
    AuthorizationError,
    SignatureVerificationError,
    PermitExpiredError,
    ChainSubmissionError,
    AttestationError,
    AttestationTimeout,
    AttestationServiceError,
    ConfigurationError,
)
from .events import (
    BaseEvent,
    EventBus,
    TransferStartedEvent,
    AuthorizationVerifiedEvent,
    SourceSubmittedEvent,
    AttestationReceivedEvent,
    DestinationSubmittedEvent,
    TransferFailedEvent,
)
from .poller import AttestationPoller, PollingPolicy
from .orchestrator import TransferOrchestrator


__all__ = [
    # Exceptions
    "RelayError",
    "ValidationError",
    "AuthorizationError",
    "SignatureVerificationError",
    "PermitExpiredError",
    "ChainSubmissionError",
    "AttestationError",
    "AttestationTimeout",
    "AttestationServiceError",
    "ConfigurationError",
    # Events
    "BaseEvent",
    "EventBus",
    "TransferStartedEvent",
    "AuthorizationVerifiedEvent",
    "SourceSubmittedEvent",
    "AttestationReceivedEvent",
    "DestinationSubmittedEvent",
    "TransferFailedEvent",
    # Flow
    "AttestationPoller",
    "PollingPolicy",
    "TransferOrchestrator",
]
