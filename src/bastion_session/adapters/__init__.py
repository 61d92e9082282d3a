from .bases import SignerAdapter, ChainClient
from .signers import (
    InjectedProviderSigner,
    EmbeddedKeySigner,
    RemoteCustodySigner,
    create_signer,
)
from .evm import (
    BastionAdapter,
    Web3ChainClient,
    Approval,
    OperatorKey,
    EVMECDSASignature,
    DelegationAuthorization,
    SessionResult,
)

__all__ = [
    "SignerAdapter",
    "ChainClient",
    "InjectedProviderSigner",
    "EmbeddedKeySigner",
    "RemoteCustodySigner",
    "create_signer",
    "BastionAdapter",
    "Web3ChainClient",
    "Approval",
    "OperatorKey",
    "EVMECDSASignature",
    "DelegationAuthorization",
    "SessionResult",
]
