from dataclasses import dataclass, field
from typing import Dict, Any, List

import rlp
from eth_utils import keccak, to_bytes

from .constants import (
    APPROVAL_DOMAIN_NAME,
    APPROVAL_DOMAIN_VERSION,
    APPROVAL_PRIMARY_TYPE,
    SET_CODE_AUTHORIZATION_MAGIC,
    DELEGATION_NONCE,
)


# -----------------------------
# EIP-712 Domain
# -----------------------------

@dataclass
class EIP712Domain:
    """
    EIP-712 domain separator.
    Binds the approval signature to the factory on one chain.
    """
    chainId: int
    verifyingContract: str
    name: str = APPROVAL_DOMAIN_NAME
    version: str = APPROVAL_DOMAIN_VERSION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "chainId": self.chainId,
            "verifyingContract": self.verifyingContract,
        }


# -----------------------------
# Bastion factory: Approval
# -----------------------------


@dataclass
class ApprovalMessage:
    """
    Message payload of the factory's ``Approval`` struct.

    ``operator`` is typed ``bytes`` in the schema even though it carries a
    20-byte address: EIP-712 hashes it as ``keccak(operator)``, not as a
    left-padded ``address`` word. Every bytes field is a 0x-prefixed hex string.

    Attributes:
        operator: Raw 20-byte operator address (hex).
        token: ERC-20 token address.
        amount: Allowance amount in base units (uint256).
        domain: keccak256 of the allow-listed origin (bytes32 hex).
        salt: Per-attempt salt (bytes32 hex).
    """
    operator: str
    token: str
    amount: int
    domain: str
    salt: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operator": self.operator,
            "token": self.token,
            "amount": self.amount,
            "domain": self.domain,
            "salt": self.salt,
        }


@dataclass
class ApprovalTypedData:
    """
    Container for the ``Approval`` typed data usable with EIP-712 signing routines.

    ``to_dict()`` yields ``{types, primaryType, domain, message}``, the layout
    accepted by ``eth_account`` and by ``eth_signTypedData_v4``.
    """
    domain: EIP712Domain
    message: ApprovalMessage

    primary_type: str = APPROVAL_PRIMARY_TYPE

    types: Dict[str, List[Dict[str, str]]] = field(
        default_factory=lambda: {
            "EIP712Domain": [
                {"name": "name", "type": "string"},
                {"name": "version", "type": "string"},
                {"name": "chainId", "type": "uint256"},
                {"name": "verifyingContract", "type": "address"},
            ],
            "Approval": [
                {"name": "operator", "type": "bytes"},
                {"name": "token", "type": "address"},
                {"name": "amount", "type": "uint256"},
                {"name": "domain", "type": "bytes32"},
                {"name": "salt", "type": "bytes32"},
            ],
        }
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "types": self.types,
            "primaryType": self.primary_type,
            "domain": self.domain.to_dict(),
            "message": self.message.to_dict(),
        }


# -----------------------------
# EIP-7702: Set-code authorization
# -----------------------------


@dataclass
class SetCodeAuthorization:
    """
    Unsigned EIP-7702 authorization tuple ``(chain_id, address, nonce)``.

    There is no EIP-712 schema here: the signed payload is
    ``0x05 || rlp([chain_id, address, nonce])``.

    Attributes:
        chain_id: Chain the delegation is valid on.
        address: Implementation contract the authority delegates to.
        nonce: Authority nonce; always 0 for session accounts.
    """
    chain_id: int
    address: str
    nonce: int = DELEGATION_NONCE

    def signing_payload(self) -> bytes:
        encoded = rlp.encode([self.chain_id, to_bytes(hexstr=self.address), self.nonce])
        return SET_CODE_AUTHORIZATION_MAGIC + encoded

    def signing_hash(self) -> bytes:
        return keccak(self.signing_payload())
