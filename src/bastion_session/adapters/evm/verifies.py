"""
EVM Signature Verification Helpers

One owner signature is read two ways, and both readings are checked here
as explicit pure functions over the same ``(v, r, s)`` triple:

- as an EIP-712 signature over the factory's ``Approval`` struct, which must
  recover to the connected owner; and
- as an EIP-7702 set-code authorization ``(chain_id, implementation, 0)``,
  which must recover to the session address the factory derived.

Current coverage
----------------
split_signature
    Slice a raw 65-byte signature into ``r``, ``s`` and a normalized ``v``.

compute_approval_digest / recover_approval_signer
    Local EIP-712 digest and ECDSA recovery for an ``Approval``.

verify_approval_signature
    Full verification pass: split, recompute the digest locally, compare it
    with the factory's ``getDigest`` and confirm the recovered signer.

recover_authorization_address / authorize_delegation
    EIP-7702 recovery of the same triple and the equality check against the
    derived session address.
"""

import logging
from typing import Tuple, Union

from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_keys import keys
from eth_keys.exceptions import BadSignature, ValidationError as KeysValidationError
from eth_utils import keccak

from .standards import SetCodeAuthorization
from .schemas import Approval, EVMECDSASignature, DelegationAuthorization
from .signatures import build_approval_typed_data
from .BASTION_ABI import get_factory_abi
from ..bases import ChainClient
from ...engine.exceptions import (
    MalformedSignature,
    DigestMismatch,
    SignerMismatch,
    AuthorizationMismatch,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

_SIGNATURE_LENGTH = 65


def _to_hex32(value: Union[bytes, str]) -> str:
    """Normalize a bytes32 value returned by a node to lowercase 0x-hex."""
    if isinstance(value, str):
        return "0x" + value.lower().removeprefix("0x").zfill(64)
    return "0x" + bytes(value).rjust(32, b"\x00").hex()


def _raw_signature_bytes(signature: Union[bytes, str]) -> bytes:
    if isinstance(signature, (bytes, bytearray)):
        return bytes(signature)
    if not isinstance(signature, str):
        raise MalformedSignature(
            f"Signature must be bytes or hex string, got {type(signature).__name__}"
        )
    hex_str = signature.strip()
    hex_str = hex_str[2:] if hex_str[:2] in ("0x", "0X") else hex_str
    try:
        return bytes.fromhex(hex_str)
    except ValueError as e:
        raise MalformedSignature(
            "Signature is not valid hexadecimal", details={"signature": signature}
        ) from e


# ---------------------------------------------------------------------------
# Signature decomposition
# ---------------------------------------------------------------------------

def split_signature(signature: Union[bytes, str]) -> EVMECDSASignature:
    """
    Split a packed 65-byte signature into ``(v, r, s)``.

    Bytes 0-32 are ``r``, 32-64 are ``s`` and byte 64 is the recovery id.
    A recovery id below 27 has 27 added, so both the ``{0, 1}`` and
    ``{27, 28}`` conventions are accepted.

    Raises:
        MalformedSignature: If the payload is not 65 bytes of hex, or the
            recovery id does not normalize into ``{27, 28}``.
    """
    raw = _raw_signature_bytes(signature)
    if len(raw) != _SIGNATURE_LENGTH:
        raise MalformedSignature(
            f"Signature must be {_SIGNATURE_LENGTH} bytes, got {len(raw)}",
            details={"length": len(raw)},
        )

    r = raw[0:32]
    s = raw[32:64]
    v = raw[64]
    if v < 27:
        v += 27
    if v not in (27, 28):
        raise MalformedSignature(f"Invalid recovery id: {raw[64]}", details={"v": raw[64]})

    return EVMECDSASignature(v=v, r="0x" + r.hex(), s="0x" + s.hex())


# ---------------------------------------------------------------------------
# EIP-712 approval
# ---------------------------------------------------------------------------

def _approval_signable(approval: Approval, *, chain_id: int, factory: str):
    typed_data = build_approval_typed_data(approval, chain_id=chain_id, factory=factory)
    return encode_typed_data(full_message=typed_data.to_dict())


def compute_approval_digest(approval: Approval, *, chain_id: int, factory: str) -> str:
    """
    Compute the EIP-712 digest of ``approval`` in-process.

    Returns:
        ``keccak256(0x19 || 0x01 || domainSeparator || structHash)`` as 0x-hex.
    """
    signable = _approval_signable(approval, chain_id=chain_id, factory=factory)
    return "0x" + keccak(b"\x19" + signable.version + signable.header + signable.body).hex()


def recover_approval_signer(
    approval: Approval,
    signature: EVMECDSASignature,
    *,
    chain_id: int,
    factory: str,
) -> str:
    """
    Recover the address that signed ``approval``.

    Raises:
        SignerMismatch: If no address can be recovered from the triple.
    """
    signable = _approval_signable(approval, chain_id=chain_id, factory=factory)
    try:
        return Account.recover_message(
            signable, vrs=(signature.v, signature.r_int, signature.s_int)
        )
    except (BadSignature, KeysValidationError, ValueError) as e:
        raise SignerMismatch(
            f"Could not recover approval signer: {e}",
            details={"signature": signature.to_dict()},
        ) from e


async def verify_approval_signature(
    *,
    approval: Approval,
    signature: Union[bytes, str],
    expected_signer: str,
    chain_id: int,
    factory: str,
    chain: ChainClient,
) -> Tuple[EVMECDSASignature, str]:
    """
    Verify an owner's approval signature against the factory.

    Steps:
        1. Split the raw bytes and normalize ``v``.
        2. Recompute the EIP-712 digest locally.
        3. Read ``getDigest(approval)`` from the factory and compare
           (case-insensitive).
        4. Recover the signer and compare with ``expected_signer``.

    Args:
        approval:        The record that was signed.
        signature:       Raw 65-byte signature returned by the wallet.
        expected_signer: Connected account address.
        chain_id:        Chain id bound into the EIP-712 domain.
        factory:         Factory address (``verifyingContract``).
        chain:           Chain client used for the ``getDigest`` read.

    Returns:
        ``(signature, digest)``: the normalized triple and the verified digest.

    Raises:
        MalformedSignature: Signature bytes are not a 65-byte payload.
        DigestMismatch:     Local and on-chain digests differ.
        SignerMismatch:     Recovered signer is not ``expected_signer``.
        ChainReadFailed:    The ``getDigest`` read failed.
    """
    parsed = split_signature(signature)

    local_digest = compute_approval_digest(approval, chain_id=chain_id, factory=factory)
    chain_digest = _to_hex32(
        await chain.read_contract(
            factory, get_factory_abi(), "getDigest", (approval.to_contract_tuple(),)
        )
    )
    if local_digest.lower() != chain_digest.lower():
        raise DigestMismatch(
            "Local EIP-712 digest does not match factory digest",
            details={"local_digest": local_digest, "chain_digest": chain_digest},
        )

    recovered = recover_approval_signer(approval, parsed, chain_id=chain_id, factory=factory)
    if recovered.lower() != expected_signer.lower():
        raise SignerMismatch(
            "Approval signer is not the connected account",
            details={"expected": expected_signer, "recovered": recovered},
        )

    logger.debug("Approval digest %s verified for %s", local_digest, recovered)
    return parsed, local_digest


# ---------------------------------------------------------------------------
# EIP-7702 delegation authorization
# ---------------------------------------------------------------------------

def recover_authorization_address(
    signature: EVMECDSASignature,
    *,
    chain_id: int,
    implementation: str,
) -> str:
    """
    Read ``signature`` as an EIP-7702 authorization and recover its authority.

    The signed payload is ``0x05 || rlp([chain_id, implementation, 0])``;
    the recovery bit is ``v - 27``.

    Raises:
        AuthorizationMismatch: If the triple does not recover to any address.
    """
    authorization = SetCodeAuthorization(chain_id=chain_id, address=implementation)
    try:
        sig = keys.Signature(vrs=(signature.y_parity, signature.r_int, signature.s_int))
        public_key = sig.recover_public_key_from_msg_hash(authorization.signing_hash())
    except (BadSignature, KeysValidationError) as e:
        raise AuthorizationMismatch(
            f"Could not recover delegation authority: {e}",
            details={"implementation": implementation, "chain_id": chain_id},
        ) from e
    return public_key.to_checksum_address()


def authorize_delegation(
    signature: EVMECDSASignature,
    *,
    chain_id: int,
    implementation: str,
    session_address: str,
) -> DelegationAuthorization:
    """
    Build the delegation authorization for ``session_address``.

    The authority recovered from the EIP-7702 reading of ``signature`` must be
    the session address the factory derived from the same triple.

    Raises:
        AuthorizationMismatch: If the recovered authority differs.
    """
    authority = recover_authorization_address(
        signature, chain_id=chain_id, implementation=implementation
    )
    if authority.lower() != session_address.lower():
        raise AuthorizationMismatch(
            "Delegation authority does not match the derived session address",
            details={"authority": authority, "session_address": session_address},
        )

    return DelegationAuthorization(
        chain_id=chain_id,
        address=implementation,
        y_parity=signature.y_parity,
        r=signature.r,
        s=signature.s,
        authority=authority,
    )
