from .events import (
    EventBus,
    publish,
    StatusEvent,
    KeyGeneratedEvent,
    SignatureRequestedEvent,
    DigestVerifiedEvent,
    SaltMutatedEvent,
    AddressDerivedEvent,
    DelegationAuthorizedEvent,
    AllowanceSettledEvent,
    ActivationCompleteEvent,
    OperatorRotatedEvent,
)
from .exceptions import (
    SessionProtocolError,
    ConfigurationError,
    InvalidAddress,
    InvalidAmount,
    InvalidSalt,
    WalletRequestFailed,
    SignatureVerificationError,
    MalformedSignature,
    DigestMismatch,
    SignerMismatch,
    AuthorizationMismatch,
    DerivationExhausted,
    BlockchainInteractionError,
    ChainReadFailed,
    TransactionFailed,
    AllowanceUpdateFailed,
    Unauthorized,
    OperatorUnderfunded,
)

__all__ = [
    "EventBus",
    "publish",
    "StatusEvent",
    "KeyGeneratedEvent",
    "SignatureRequestedEvent",
    "DigestVerifiedEvent",
    "SaltMutatedEvent",
    "AddressDerivedEvent",
    "DelegationAuthorizedEvent",
    "AllowanceSettledEvent",
    "ActivationCompleteEvent",
    "OperatorRotatedEvent",
    "SessionProtocolError",
    "ConfigurationError",
    "InvalidAddress",
    "InvalidAmount",
    "InvalidSalt",
    "WalletRequestFailed",
    "SignatureVerificationError",
    "MalformedSignature",
    "DigestMismatch",
    "SignerMismatch",
    "AuthorizationMismatch",
    "DerivationExhausted",
    "BlockchainInteractionError",
    "ChainReadFailed",
    "TransactionFailed",
    "AllowanceUpdateFailed",
    "Unauthorized",
    "OperatorUnderfunded",
]
