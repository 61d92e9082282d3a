"""
Exception and Error Definitions Module

Defines the exception hierarchy for the session-key protocol. Every error is
tagged with the protocol phase that raised it so a caller can report where a
run stopped. No error is fatal to the process: a failed run leaves the client
ready for a fresh attempt with newly generated key material.

Exception Hierarchy:
    SessionProtocolError (root)
    ├── ConfigurationError
    ├── InvalidAddress (also ValueError)
    ├── InvalidAmount (also ValueError)
    ├── InvalidSalt (also ValueError)
    ├── WalletRequestFailed
    ├── SignatureVerificationError
    │   ├── MalformedSignature
    │   ├── DigestMismatch
    │   ├── SignerMismatch
    │   └── AuthorizationMismatch
    ├── DerivationExhausted
    ├── BlockchainInteractionError
    │   ├── ChainReadFailed
    │   └── TransactionFailed
    ├── AllowanceUpdateFailed
    ├── Unauthorized
    └── OperatorUnderfunded
"""

from typing import Any, Dict, Optional

from ..schemas.bases import ProtocolPhase


class SessionProtocolError(Exception):
    """
    Root exception class for all project-specific exceptions.

    Attributes:
        phase: ``ProtocolPhase`` in which the error was raised.
        details: Structured diagnostic data (addresses, digests, reasons).
    """

    default_phase: Optional[ProtocolPhase] = None

    def __init__(
        self,
        message: str,
        *,
        phase: Optional[ProtocolPhase] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.phase = phase or self.default_phase
        self.details = details or {}

    def __str__(self) -> str:
        if self.phase is None:
            return self.message
        return f"[{self.phase.value}] {self.message}"


class ConfigurationError(SessionProtocolError):
    """
    Raised when configuration is missing or invalid.

    This includes scenarios such as:
    - Missing RPC URL or factory address
    - Unknown wallet backend
    - Mock token requested but not configured
    """
    default_phase = ProtocolPhase.CONFIGURATION


class InvalidAddress(SessionProtocolError, ValueError):
    """Raised when an address string does not parse to a canonical EVM address."""
    default_phase = ProtocolPhase.APPROVAL_BUILD


class InvalidAmount(SessionProtocolError, ValueError):
    """
    Raised when an amount is unparseable, not representable in base units,
    or not strictly positive after scaling.
    """
    default_phase = ProtocolPhase.APPROVAL_BUILD


class InvalidSalt(SessionProtocolError, ValueError):
    """Raised when a salt is not exactly 32 bytes of 0x-prefixed hex."""
    default_phase = ProtocolPhase.APPROVAL_BUILD


class WalletRequestFailed(SessionProtocolError):
    """
    Raised when the wallet backend refuses or fails a request (account
    access, signing, transaction submission outside of chain execution).
    """
    default_phase = ProtocolPhase.SIGNATURE_REQUEST


class SignatureVerificationError(SessionProtocolError):
    """
    Base exception for signature verification failures.

    Parent class for every check that runs between receiving signature bytes
    and accepting the (v, r, s) triple.
    """
    default_phase = ProtocolPhase.DIGEST_VERIFICATION


class MalformedSignature(SignatureVerificationError):
    """Raised when raw signature bytes are not a 65-byte hex payload."""


class DigestMismatch(SignatureVerificationError):
    """
    Raised when the locally computed EIP-712 digest differs from the digest
    the factory contract computes for the same approval.

    Attributes (in ``details``):
        local_digest: Digest computed in-process
        chain_digest: Digest returned by ``getDigest``
    """


class SignerMismatch(SignatureVerificationError):
    """
    Raised when the address recovered from the approval signature is not the
    connected account.

    Attributes (in ``details``):
        expected: Connected account address
        recovered: Address recovered from the signature
    """


class AuthorizationMismatch(SignatureVerificationError):
    """
    Raised when the signature triple, read as an EIP-7702 delegation
    authorization, does not recover to the derived session address.
    """
    default_phase = ProtocolPhase.DELEGATION_AUTHORIZATION


class DerivationExhausted(SessionProtocolError):
    """
    Raised when every derivation attempt returned the zero address.

    Attributes (in ``details``):
        attempts: Number of attempts made
        salts: Salts tried, in order
    """
    default_phase = ProtocolPhase.ADDRESS_DERIVATION


class BlockchainInteractionError(SessionProtocolError):
    """
    Raised when blockchain interaction (RPC call) fails.

    This includes scenarios such as:
    - RPC call timeout
    - Network connectivity issues
    - Contract call revert
    """


class ChainReadFailed(BlockchainInteractionError):
    """Raised when a view call against a contract fails."""


class TransactionFailed(BlockchainInteractionError):
    """
    Generic chain-submission failure.

    Attributes:
        reason: Underlying failure reason from the node or wallet
        reverted: True when the call reverted (simulation or mined status 0)
        tx_hash: Transaction hash if the transaction was broadcast
    """

    def __init__(
        self,
        message: str,
        *,
        reason: Optional[str] = None,
        reverted: bool = False,
        tx_hash: Optional[str] = None,
        phase: Optional[ProtocolPhase] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, phase=phase, details=details)
        self.reason = reason or message
        self.reverted = reverted
        self.tx_hash = tx_hash


class AllowanceUpdateFailed(SessionProtocolError):
    """
    Raised when an ERC-20 approve step fails, including after the
    zero-then-approve fallback.

    Attributes:
        reason: Failure reason of the underlying transaction
    """
    default_phase = ProtocolPhase.ALLOWANCE_SETTLEMENT

    def __init__(self, message: str, *, reason: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.reason = reason or message


class Unauthorized(SessionProtocolError):
    """Raised when the caller is not the session account's controller (call reverted)."""
    default_phase = ProtocolPhase.OPERATOR_ROTATION


class OperatorUnderfunded(SessionProtocolError):
    """Raised when the operator cannot pay for the activation transaction."""
    default_phase = ProtocolPhase.ACTIVATION
