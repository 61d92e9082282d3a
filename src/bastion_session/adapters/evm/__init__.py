from .adapter import BastionAdapter
from .chain import Web3ChainClient
from .schemas import (
    Approval,
    OperatorKey,
    EVMECDSASignature,
    DelegationAuthorization,
    ContractCall,
    EVMTransactionConfirmation,
    DerivationResult,
    AllowanceSettlement,
    SessionResult,
)
from .signatures import (
    generate_operator_key,
    encode_operator,
    build_approval,
    build_approval_domain,
    build_approval_typed_data,
    sign_approval,
)
from .verifies import (
    split_signature,
    compute_approval_digest,
    recover_approval_signer,
    verify_approval_signature,
    recover_authorization_address,
    authorize_delegation,
)
from .derivation import mutate_salt, salt_sequence, derive_session_address
from .allowance import settle_allowance
from .rotation import rotate_operator, read_operator

__all__ = [
    "BastionAdapter",
    "Web3ChainClient",
    "Approval",
    "OperatorKey",
    "EVMECDSASignature",
    "DelegationAuthorization",
    "ContractCall",
    "EVMTransactionConfirmation",
    "DerivationResult",
    "AllowanceSettlement",
    "SessionResult",
    "generate_operator_key",
    "encode_operator",
    "build_approval",
    "build_approval_domain",
    "build_approval_typed_data",
    "sign_approval",
    "split_signature",
    "compute_approval_digest",
    "recover_approval_signer",
    "verify_approval_signature",
    "recover_authorization_address",
    "authorize_delegation",
    "mutate_salt",
    "salt_sequence",
    "derive_session_address",
    "settle_allowance",
    "rotate_operator",
    "read_operator",
]
