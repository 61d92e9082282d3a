"""
EVM Off-Chain Signing Utilities

Key generation and EIP-712 construction helpers for the factory's
``Approval`` struct.  Everything here is pure and in-process (``eth_account``
and ``eth_utils``); no RPC calls or on-chain state queries are made.

Exported helpers
----------------
generate_operator_key
    Create a fresh ephemeral secp256k1 keypair for the session operator.

build_approval
    Validate the token address, scale the human-readable amount and return
    an ``Approval`` with a cryptographically random salt.

build_approval_domain / build_approval_typed_data
    Low-level helpers that wrap an ``Approval`` in the factory's EIP-712
    envelope without signing.  Hand ``typed_data.to_dict()`` to a wallet.

sign_approval
    Sign the envelope with a local private key and return the packed
    65-byte signature, the same shape a wallet returns.
"""

import os
import re
import logging
from decimal import Decimal
from typing import Optional, Union

from eth_account import Account
from eth_utils import keccak, to_bytes

from .standards import EIP712Domain, ApprovalMessage, ApprovalTypedData
from .schemas import Approval, OperatorKey, EVMECDSASignature, BYTES32_PATTERN
from .constants import (
    DEFAULT_AMOUNT_DECIMALS,
    checksum_address,
    amount_to_value,
)
from ...engine.exceptions import InvalidAmount, InvalidSalt

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Key generation
# ---------------------------------------------------------------------------

def generate_operator_key() -> OperatorKey:
    """
    Generate an ephemeral operator keypair from the OS CSPRNG.

    Returns:
        ``OperatorKey`` with a checksummed ``address`` and a 0x-prefixed
        ``private_key``.
    """
    account = Account.create(extra_entropy=os.urandom(32).hex())
    return OperatorKey(address=account.address, private_key="0x" + account.key.hex().removeprefix("0x"))


def encode_operator(address: str) -> str:
    """
    Encode an operator address as the raw 20-byte ``bytes`` payload.

    This is ``encodePacked(["address"], [operator])``: no padding, no length
    word.  Returned as lowercase 0x-hex.
    """
    checksummed = checksum_address(address, field_name="operator")
    return "0x" + to_bytes(hexstr=checksummed).hex()


def hash_origin(origin: str) -> str:
    """keccak256 of the UTF-8 bytes of ``origin``, as bytes32 hex."""
    return "0x" + keccak(text=origin).hex()


def random_salt() -> str:
    return "0x" + os.urandom(32).hex()


# ---------------------------------------------------------------------------
# Approval builder
# ---------------------------------------------------------------------------

def build_approval(
    *,
    operator: str,
    token: str,
    amount: Union[str, int, Decimal],
    allowed_origin: str,
    salt: Optional[str] = None,
    decimals: int = DEFAULT_AMOUNT_DECIMALS,
) -> Approval:
    """
    Build the canonical ``Approval`` record.

    The amount is scaled with a fixed ``decimals`` rather than the token's own
    ``decimals()``; tokens with a different precision end up over- or
    under-scaled.

    Args:
        operator:       Operator address (encoded as raw bytes in the record).
        token:          ERC-20 token address.
        amount:         Human-readable amount, e.g. ``"100"``.
        allowed_origin: Allow-listed origin string hashed into ``domain``.
        salt:           bytes32 hex salt; a random one is drawn when omitted.
        decimals:       Base-unit scaling applied to ``amount``.

    Returns:
        ``Approval`` ready for ``build_approval_typed_data``.

    Raises:
        InvalidAddress: If ``token`` or ``operator`` is not a canonical address.
        InvalidAmount:  If ``amount`` does not scale to a positive uint256.
        InvalidSalt:    If ``salt`` is not exactly 32 bytes of 0x-hex.

    Example::

        approval = build_approval(
            operator=operator_key.address,
            token="0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238",
            amount="100",
            allowed_origin="https://dashboard.zerodev.app",
        )
        assert approval.amount == 100 * 10**18
    """
    token_checksum = checksum_address(token, field_name="token")
    operator_bytes = encode_operator(operator)

    value = amount_to_value(amount=amount, decimals=decimals)
    if value <= 0:
        raise InvalidAmount(
            f"amount must be greater than zero, got {amount!r}",
            details={"amount": str(amount), "value": value},
        )
    logger.debug("Scaled amount %s with fixed %d decimals; token decimals not queried", amount, decimals)

    if salt is None:
        salt = random_salt()
    elif not isinstance(salt, str) or not re.fullmatch(BYTES32_PATTERN, salt):
        raise InvalidSalt(f"salt must be 32 bytes of 0x-hex, got {salt!r}", details={"salt": salt})

    return Approval(
        operator=operator_bytes,
        token=token_checksum,
        amount=value,
        domain=hash_origin(allowed_origin),
        salt=salt,
    )


def build_approval_domain(*, chain_id: int, factory: str) -> EIP712Domain:
    """EIP-712 domain of the factory: ``BastionFactory`` / ``0.0.0-beta``."""
    return EIP712Domain(
        chainId=chain_id,
        verifyingContract=checksum_address(factory, field_name="factory"),
    )


def build_approval_typed_data(
    approval: Approval,
    *,
    chain_id: int,
    factory: str,
) -> ApprovalTypedData:
    """
    Wrap an ``Approval`` in the factory's EIP-712 envelope without signing.

    Use this when signing is handled by a wallet.  The verification path
    rebuilds the envelope with this same function, so the local digest is
    always computed over exactly what was signed.
    """
    return ApprovalTypedData(
        domain=build_approval_domain(chain_id=chain_id, factory=factory),
        message=ApprovalMessage(**approval.to_message()),
    )


# ---------------------------------------------------------------------------
# Local signer
# ---------------------------------------------------------------------------

def sign_approval(
    *,
    private_key: str,
    approval: Approval,
    chain_id: int,
    factory: str,
) -> str:
    """
    Sign ``approval`` in-process and return the packed ``r || s || v`` hex.

    Args:
        private_key: Hex-encoded secp256k1 private key of the owner.
        approval:    Record to sign.
        chain_id:    EVM network ID bound into the domain.
        factory:     Factory address (``verifyingContract``).

    Returns:
        0x-prefixed 65-byte signature hex.
    """
    typed_data = build_approval_typed_data(approval, chain_id=chain_id, factory=factory)
    signed = Account.sign_typed_data(private_key, full_message=typed_data.to_dict())
    return EVMECDSASignature(
        v=signed.v,
        r="0x" + signed.r.to_bytes(32, "big").hex(),
        s="0x" + signed.s.to_bytes(32, "big").hex(),
    ).to_packed_hex()
