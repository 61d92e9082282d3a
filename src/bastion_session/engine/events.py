"""
Status events published while a protocol run progresses.

Events carry their own data and are dispatched to subscribers (UI, CLI,
loggers) through an ``EventBus``. Subscribers are observers only: they run in
subscription order and never alter the run.
"""

import inspect
import logging
from abc import ABC, abstractmethod
from typing import Dict, Any, Callable, Optional, List, Awaitable

from pydantic import BaseModel, ConfigDict, Field

from ..schemas.bases import ProtocolPhase

logger = logging.getLogger(__name__)


# ==================== Base Event ====================

class BaseEvent(ABC):
    """Base class for all events in the system."""

    @abstractmethod
    def __repr__(self) -> str:
        """String representation of the event."""
        pass


class StatusEvent(BaseModel, BaseEvent):
    """Phase status update. ``status`` is the string shown to the user."""
    phase: ProtocolPhase
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def status(self) -> str:
        return f"{self.phase.value}: {self.message}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(phase={self.phase.value}, message={self.message!r})"


# ==================== Phase Events ====================

class KeyGeneratedEvent(StatusEvent):
    """Operator key generated. Only the address is carried, never the key."""
    phase: ProtocolPhase = ProtocolPhase.KEY_GENERATION
    operator: str


class SignatureRequestedEvent(StatusEvent):
    """EIP-712 approval signature requested from the wallet."""
    phase: ProtocolPhase = ProtocolPhase.SIGNATURE_REQUEST
    attempt: int
    salt: str


class DigestVerifiedEvent(StatusEvent):
    """Local digest matched the chain digest and the signer was confirmed."""
    phase: ProtocolPhase = ProtocolPhase.DIGEST_VERIFICATION
    digest: str


class SaltMutatedEvent(StatusEvent):
    """Derivation returned the zero address; salt re-derived for a new attempt."""
    phase: ProtocolPhase = ProtocolPhase.ADDRESS_DERIVATION
    attempt: int
    previous_salt: str
    salt: str


class AddressDerivedEvent(StatusEvent):
    """Session account address obtained from the factory."""
    phase: ProtocolPhase = ProtocolPhase.ADDRESS_DERIVATION
    session_address: str
    attempts: int


class DelegationAuthorizedEvent(StatusEvent):
    """Delegation authorization recovered to the session address."""
    phase: ProtocolPhase = ProtocolPhase.DELEGATION_AUTHORIZATION
    implementation: str


class AllowanceSettledEvent(StatusEvent):
    """Owner allowance to the factory covers the approval amount."""
    phase: ProtocolPhase = ProtocolPhase.ALLOWANCE_SETTLEMENT
    tx_hashes: List[str] = Field(default_factory=list)


class ActivationCompleteEvent(StatusEvent):
    """checkSig transaction confirmed; session account activated."""
    phase: ProtocolPhase = ProtocolPhase.ACTIVATION
    tx_hash: str


class OperatorRotatedEvent(StatusEvent):
    """changeOperator confirmed on the session account."""
    phase: ProtocolPhase = ProtocolPhase.OPERATOR_ROTATION
    session_address: str
    operator: str


# ==================== Event Bus ====================

EventHandlerFunc = Callable[[StatusEvent], Awaitable[None]]


class EventBus:
    """Event dispatcher for publishing status events to subscribers."""

    def __init__(self) -> None:
        """Initialize with empty subscribers."""
        self._subscribers: Dict[type, List[EventHandlerFunc]] = {}

    def subscribe(self, event_class: type, handler: EventHandlerFunc) -> None:
        """
        Register an async handler for the given event class.

        A handler subscribed to a base class (e.g. ``StatusEvent``) receives
        every subclass event as well.

        Args:
            event_class: The event class to subscribe to.
            handler: The async handler function to call when the event is published.

        Raises:
            TypeError: If handler is not a coroutine function.
        """
        if not inspect.iscoroutinefunction(handler):
            raise TypeError(f"Handler must be a coroutine function, got {type(handler).__name__}")

        if event_class not in self._subscribers:
            self._subscribers[event_class] = []
        self._subscribers[event_class].append(handler)

    async def dispatch(self, event: StatusEvent) -> int:
        """
        Dispatch an event to every matching subscriber, one after another.

        Args:
            event: The event to dispatch.

        Returns:
            Number of handlers that received the event.
        """
        logger.info("%s", event.status)
        delivered = 0
        for event_class, handlers in self._subscribers.items():
            if not isinstance(event, event_class):
                continue
            for handler in handlers:
                await handler(event)
                delivered += 1
        return delivered


async def publish(bus: Optional[EventBus], event: StatusEvent) -> None:
    """Dispatch ``event`` on ``bus`` when one is attached; log it otherwise."""
    if bus is None:
        logger.info("%s", event.status)
        return
    await bus.dispatch(event)
