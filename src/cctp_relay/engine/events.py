"""
Transfer phase events.

The orchestrator publishes one typed event per phase transition; interested
parties (the CLI progress printer, metrics, audit logs) subscribe async
handlers on the EventBus. Handlers observe the flow and never influence it.
"""

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from typing import Dict, Callable, Optional, Awaitable

from pydantic import BaseModel, ConfigDict

from ..schemas.transfers import Attestation, TransferPhase, TransferResult

logger = logging.getLogger(__name__)

# ==================== Base Event ====================

class BaseEvent(ABC):
    """Base class for all events in the system."""

    @abstractmethod
    def __repr__(self) -> str:
        """String representation of the event."""
        pass


# ==================== Phase Events ====================

class TransferStartedEvent(BaseModel, BaseEvent):
    """
    A transfer passed input validation.

    ``funded_by_relayer`` marks unauthenticated delegated transfers: with no
    permit to redeem, the burn spends ``relayer_address``'s USDC rather than
    ``debited_address``'s.
    """
    amount: int
    debited_address: str
    mint_recipient: str
    delegated: bool
    funded_by_relayer: bool = False
    relayer_address: Optional[str] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"TransferStartedEvent(amount={self.amount}, delegated={self.delegated})"


class AuthorizationVerifiedEvent(BaseModel, BaseEvent):
    """A delegated-mode authorization was accepted."""
    owner: str
    unauthenticated: bool = False
    reconstructed_permit: bool = False

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"AuthorizationVerifiedEvent(owner={self.owner}, unauthenticated={self.unauthenticated})"


class SourceSubmittedEvent(BaseModel, BaseEvent):
    """The burn was broadcast on the source chain."""
    source_tx: str

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"SourceSubmittedEvent(source_tx={self.source_tx})"


class AttestationReceivedEvent(BaseModel, BaseEvent):
    """The attestation service signed the burn message."""
    attestation: Attestation

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"AttestationReceivedEvent(attestation={self.attestation!r})"


class DestinationSubmittedEvent(BaseModel, BaseEvent):
    """The mint was broadcast on the destination chain; the transfer is done."""
    result: TransferResult

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"DestinationSubmittedEvent(destination_tx={self.result.destination_tx})"


class TransferFailedEvent(BaseModel, BaseEvent):
    """The transfer stopped in ``phase``."""
    phase: TransferPhase
    result: TransferResult

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"TransferFailedEvent(phase={self.phase.value}, error={self.result.error})"


# ==================== Event Bus ====================

EventHandlerFunc = Callable[[BaseEvent], Awaitable[None]]


class EventBus:
    """Event dispatcher for publishing and subscribing to transfer events."""

    def __init__(self) -> None:
        """Initialize with empty subscribers."""
        self._subscribers: Dict[type, list[EventHandlerFunc]] = {}

    def subscribe(self, event_class: type[BaseEvent], handler: EventHandlerFunc) -> None:
        """
        Register an async handler for the given event class.
        Multiple handlers can be subscribed to the same event type and run in parallel.

        Args:
            event_class: The event class to subscribe to.
            handler: The async handler function to call when the event is published.

        Raises:
            TypeError: If handler is not a coroutine function.
        """
        if not inspect.iscoroutinefunction(handler):
            raise TypeError(f"Handler must be a coroutine function, got {type(handler).__name__}")

        self._subscribers.setdefault(event_class, []).append(handler)

    def subscribe_all(self, handler: EventHandlerFunc) -> None:
        """Register ``handler`` for every phase event class."""
        for event_class in (
            TransferStartedEvent,
            AuthorizationVerifiedEvent,
            SourceSubmittedEvent,
            AttestationReceivedEvent,
            DestinationSubmittedEvent,
            TransferFailedEvent,
        ):
            self.subscribe(event_class, handler)

    async def dispatch(self, event: BaseEvent) -> None:
        """
        Dispatch an event to all subscribers of its class, in parallel.

        Handler failures are logged and never propagate: observers must not
        change the outcome of a transfer.

        Args:
            event: The event to dispatch.
        """
        handlers = self._subscribers.get(type(event), [])
        if not handlers:
            return

        results = await asyncio.gather(
            *(handler(event) for handler in handlers), return_exceptions=True
        )
        for result in results:
            if isinstance(result, Exception):
                logger.error("Event handler failed for %r: %s", event, result)
