"""Client for the Bastion session-key protocol."""

from .config import BastionConfig
from .adapters import (
    BastionAdapter,
    SignerAdapter,
    ChainClient,
    Web3ChainClient,
    create_signer,
    SessionResult,
)
from .engine import EventBus, StatusEvent, SessionProtocolError

__all__ = [
    "BastionConfig",
    "BastionAdapter",
    "SignerAdapter",
    "ChainClient",
    "Web3ChainClient",
    "create_signer",
    "SessionResult",
    "EventBus",
    "StatusEvent",
    "SessionProtocolError",
]
