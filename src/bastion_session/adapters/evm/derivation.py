"""
Session address derivation.

The factory derives the session account from ``(chainId, v, r, s)``. A zero
address means the triple was degenerate; the only client-side lever is to
change the salt, which changes the signed payload and therefore the triple.
Salts evolve as ``salt_{n+1} = keccak(salt_n)`` so a run is reproducible
from its first salt.
"""

import logging
from typing import List, Optional

from eth_utils import keccak

from .schemas import Approval, DerivationResult
from .signatures import build_approval_typed_data
from .verifies import verify_approval_signature
from .constants import MAX_DERIVATION_ATTEMPTS, is_zero_address
from .BASTION_ABI import get_factory_abi
from ..bases import SignerAdapter, ChainClient
from ...engine.events import (
    EventBus,
    publish,
    SignatureRequestedEvent,
    DigestVerifiedEvent,
    SaltMutatedEvent,
    AddressDerivedEvent,
)
from ...engine.exceptions import DerivationExhausted

logger = logging.getLogger(__name__)


def mutate_salt(salt: str) -> str:
    """Next salt in the sequence: keccak256 of the current 32 bytes."""
    return "0x" + keccak(hexstr=salt).hex()


def salt_sequence(salt: str, count: int) -> List[str]:
    """The first ``count`` salts of a run starting at ``salt``."""
    salts = []
    current = salt
    for _ in range(count):
        salts.append(current)
        current = mutate_salt(current)
    return salts


async def derive_session_address(
    *,
    approval: Approval,
    owner: str,
    chain_id: int,
    factory: str,
    signer: SignerAdapter,
    chain: ChainClient,
    max_attempts: int = MAX_DERIVATION_ATTEMPTS,
    event_bus: Optional[EventBus] = None,
) -> DerivationResult:
    """
    Sign, verify and derive until the factory returns a non-zero address.

    Each attempt signs the current approval, runs the full verification pass
    and asks the factory for ``getBastionAddress(chainId, v, r, s)``. On the
    zero address the salt is mutated and the loop starts over with a new
    signature.

    Args:
        approval:     Approval carrying the first salt.
        owner:        Connected account that signs.
        chain_id:     Chain id bound into the domain and the derivation.
        factory:      Factory address.
        signer:       Wallet backend producing signatures.
        chain:        Chain client for ``getDigest`` / ``getBastionAddress``.
        max_attempts: Upper bound on signatures requested.
        event_bus:    Optional bus receiving status events.

    Returns:
        ``DerivationResult`` bound to the final approval and triple.

    Raises:
        DerivationExhausted: Every attempt produced the zero address.
        DigestMismatch, SignerMismatch, MalformedSignature: Verification of
            any attempt failed; the run stops immediately.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    current = approval
    salts: List[str] = []

    for attempt in range(1, max_attempts + 1):
        salts.append(current.salt)
        await publish(event_bus, SignatureRequestedEvent(
            message=f"Requesting approval signature (attempt {attempt})",
            attempt=attempt,
            salt=current.salt,
        ))

        typed_data = build_approval_typed_data(current, chain_id=chain_id, factory=factory)
        raw_signature = await signer.sign_typed_data(owner, typed_data.to_dict())

        signature, digest = await verify_approval_signature(
            approval=current,
            signature=raw_signature,
            expected_signer=owner,
            chain_id=chain_id,
            factory=factory,
            chain=chain,
        )
        await publish(event_bus, DigestVerifiedEvent(
            message="Digest matches factory and signer is the connected account",
            digest=digest,
        ))

        session_address = await chain.read_contract(
            factory,
            get_factory_abi(),
            "getBastionAddress",
            (chain_id, signature.v, signature.r_bytes(), signature.s_bytes()),
        )

        if not is_zero_address(session_address):
            await publish(event_bus, AddressDerivedEvent(
                message=f"Session address {session_address}",
                session_address=session_address,
                attempts=attempt,
            ))
            return DerivationResult(
                approval=current,
                signature=signature,
                chain_id=chain_id,
                session_address=session_address,
                digest=digest,
                attempts=attempt,
                salts=salts,
            )

        if attempt == max_attempts:
            break

        next_salt = mutate_salt(current.salt)
        logger.warning("Derivation attempt %d returned the zero address; mutating salt", attempt)
        await publish(event_bus, SaltMutatedEvent(
            message=f"Degenerate derivation on attempt {attempt}, retrying with new salt",
            attempt=attempt,
            previous_salt=current.salt,
            salt=next_salt,
        ))
        current = current.with_salt(next_salt)

    raise DerivationExhausted(
        f"No session address after {max_attempts} attempts",
        details={"attempts": max_attempts, "salts": salts},
    )
