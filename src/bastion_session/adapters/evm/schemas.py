"""
EVM Adapter Schema Models

Pydantic models for the session-key protocol. All classes inherit from
``SchemaModel`` in ``schemas.bases``.

Record classes:
    - Approval: The signed intent (operator, token, amount, domain, salt).
    - OperatorKey: Ephemeral operator keypair.

Signature classes:
    - EVMECDSASignature: Normalized (v, r, s) triple shared by the approval
      and the delegation authorization.
    - DelegationAuthorization: EIP-7702 authorization built from that triple.

Result / confirmation classes:
    - ContractCall: A state-changing call to simulate and submit.
    - EVMTransactionConfirmation: Mined transaction receipt.
    - DerivationResult: Outcome of the salt-mutation derivation loop.
    - AllowanceSettlement: Outcome of allowance settlement.
    - SessionResult: Everything a later activation / rotation needs.
"""

from typing import Optional, Dict, Any, List, Literal, Tuple

from pydantic import Field
from eth_utils import to_bytes

from .constants import MAX_UINT256
from ...schemas.bases import (
    SchemaModel,
    BaseTransactionConfirmation,
)

BYTES32_PATTERN = r"^0x[0-9a-fA-F]{64}$"


class Approval(SchemaModel):
    """
    Approval record signed by the owner.

    Attributes:
        operator: Raw 20-byte operator address as 0x-hex (``bytes`` in the
            EIP-712 schema, never ``address``).
        token: Checksummed ERC-20 token address.
        amount: Allowance in base units; strictly positive.
        domain: keccak256 of the allow-listed origin (bytes32 hex).
        salt: bytes32 hex; random on the first attempt, hashed on each retry.

    Example::

        approval = Approval(
            operator="0x" + "11" * 20,
            token="0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238",
            amount=100 * 10**18,
            domain="0x" + "22" * 32,
            salt="0x" + "33" * 32,
        )
    """

    operator: str = Field(..., description="Raw 20-byte operator address (0x-hex)")
    token: str = Field(..., description="ERC-20 token contract address")
    amount: int = Field(..., gt=0, le=MAX_UINT256, description="Allowance amount in base units (uint256)")
    domain: str = Field(..., pattern=BYTES32_PATTERN, description="keccak256 of the allowed origin (bytes32 hex)")
    salt: str = Field(..., pattern=BYTES32_PATTERN, description="Per-attempt salt (bytes32 hex)")

    def with_salt(self, salt: str) -> "Approval":
        """Return a copy of this approval carrying ``salt``."""
        return self.model_copy(update={"salt": salt})

    def to_message(self) -> Dict[str, Any]:
        """EIP-712 message dict (bytes fields stay 0x-hex)."""
        return {
            "operator": self.operator,
            "token": self.token,
            "amount": self.amount,
            "domain": self.domain,
            "salt": self.salt,
        }

    def to_contract_tuple(self) -> Tuple[bytes, str, int, bytes, bytes]:
        """ABI tuple for ``getDigest`` / ``checkSig``."""
        return (
            to_bytes(hexstr=self.operator),
            self.token,
            self.amount,
            to_bytes(hexstr=self.domain),
            to_bytes(hexstr=self.salt),
        )


class OperatorKey(SchemaModel):
    """
    Ephemeral operator keypair.

    ``private_key`` is excluded from ``repr`` so the key does not leak into
    logs; callers that need it read the attribute directly.
    """

    address: str = Field(..., description="Checksummed operator address")
    private_key: str = Field(..., repr=False, description="0x-prefixed secp256k1 private key")


class EVMECDSASignature(SchemaModel):
    """
    Normalized EVM ECDSA signature (v, r, s).

    The same triple authenticates the EIP-712 approval and, read with
    ``y_parity = v - 27``, the EIP-7702 delegation authorization.

    Attributes:
        v: ECDSA recovery ID normalized to 27 or 28.
        r: r component, 32 bytes as 0x-prefixed 64-char hex.
        s: s component, 32 bytes as 0x-prefixed 64-char hex.
    """

    v: int = Field(..., ge=27, le=28, description="ECDSA recovery ID (27 or 28)")
    r: str = Field(..., description="Signature r component (32 bytes, 0x-prefixed hex)")
    s: str = Field(..., description="Signature s component (32 bytes, 0x-prefixed hex)")

    def validate_format(self) -> bool:
        """
        Validate v/r/s components.

        Returns:
            True when all components pass.

        Raises:
            ValueError: Descriptive message on the first failed check.
        """
        if self.v not in (27, 28):
            raise ValueError(f"Invalid recovery ID: {self.v}. Must be 27 or 28")

        for name, val in [("r", self.r), ("s", self.s)]:
            hex_str = val.replace("0x", "").replace("0X", "")
            if len(hex_str) != 64:
                raise ValueError(f"Invalid {name}: expected 64 hex chars, got {len(hex_str)}")
            try:
                int(hex_str, 16)
            except ValueError:
                raise ValueError(f"Invalid {name}: not valid hexadecimal")

        return True

    @property
    def y_parity(self) -> int:
        return self.v - 27

    @property
    def r_int(self) -> int:
        return int(self.r, 16)

    @property
    def s_int(self) -> int:
        return int(self.s, 16)

    def r_bytes(self) -> bytes:
        return to_bytes(hexstr=self.r).rjust(32, b"\x00")

    def s_bytes(self) -> bytes:
        return to_bytes(hexstr=self.s).rjust(32, b"\x00")

    def to_packed_hex(self) -> str:
        """
        Encode v/r/s into a packed 65-byte hex string (``r || s || v``).

        Returns:
            0x-prefixed 132-character hex string.
        """
        self.validate_format()
        r = self.r.replace("0x", "").replace("0X", "").zfill(64)
        s = self.s.replace("0x", "").replace("0X", "").zfill(64)
        return "0x" + r + s + format(self.v, "02x")


class DelegationAuthorization(SchemaModel):
    """
    EIP-7702 authorization delegating the session account to the implementation.

    Consumed by the activation call as an ``authorizationList`` entry.

    Attributes:
        chain_id: Chain the delegation is valid on.
        address: Implementation contract address.
        nonce: Always 0.
        y_parity: ``v - 27`` of the shared signature.
        r, s: Shared signature components.
        authority: Address the authorization recovers to (the session account).
    """

    chain_id: int = Field(..., ge=0)
    address: str
    nonce: int = Field(default=0, ge=0)
    y_parity: Literal[0, 1]
    r: str
    s: str
    authority: str

    def to_authorization_list_entry(self) -> Dict[str, Any]:
        """Entry for a type-4 transaction's ``authorizationList``."""
        return {
            "chainId": self.chain_id,
            "address": self.address,
            "nonce": self.nonce,
            "yParity": self.y_parity,
            "r": int(self.r, 16),
            "s": int(self.s, 16),
        }


class ContractCall(SchemaModel):
    """
    A state-changing contract call to simulate and submit.

    Attributes:
        address: Target contract.
        abi: ABI fragment containing ``function_name``.
        function_name: Function to call.
        args: Positional arguments.
        sender: Account the call is sent from.
        value: Native value in wei.
    """

    address: str
    abi: List[Dict[str, Any]]
    function_name: str
    args: Tuple[Any, ...] = ()
    sender: str
    value: int = Field(default=0, ge=0)


class EVMTransactionConfirmation(BaseTransactionConfirmation):
    """
    EVM-Specific Transaction Confirmation.

    Attributes:
        confirmation_type: Always "evm" for this implementation
        tx_hash: Transaction hash (0x-prefixed hex string on EVM)
        block_number: Block number containing transaction
        gas_used: Actual gas consumed by transaction
        transaction_fee: Native token paid as fee (in wei)
        from_address: Transaction sender address
        to_address: Transaction receiver/contract address

    Example:
        confirmation = await chain.wait_for_confirmation(tx_hash)
        if confirmation.is_success():
            print(f"Confirmed: {confirmation.tx_hash}")
    """

    confirmation_type: Literal["evm"] = Field(default="evm", description="Confirmation type identifier")
    tx_hash: str = Field(..., description="Transaction hash (0x-prefixed hex string on EVM)")
    block_number: Optional[int] = Field(None, ge=0, description="Block number containing transaction")
    gas_used: Optional[int] = Field(None, ge=0, description="Actual gas consumed by transaction")
    transaction_fee: Optional[int] = Field(None, ge=0, description="Transaction fee in wei")
    from_address: Optional[str] = Field(None, description="Transaction sender address")
    to_address: Optional[str] = Field(None, description="Transaction receiver/contract address")


class DerivationResult(SchemaModel):
    """
    Outcome of the derivation loop.

    ``session_address`` is bound to exactly ``(chain_id, signature)``; the
    ``approval`` is the one whose salt produced that signature.
    """

    approval: Approval
    signature: EVMECDSASignature
    chain_id: int
    session_address: str
    digest: str
    attempts: int = Field(..., ge=1)
    salts: List[str] = Field(default_factory=list)


class AllowanceSettlement(SchemaModel):
    """
    Outcome of allowance settlement.

    Attributes:
        previous_allowance: Allowance read before any write.
        required_amount: Amount the approval needs.
        tx_hashes: Approve transactions issued, in order.
        used_fallback: True when the zero-then-approve path ran.
    """

    previous_allowance: int = Field(..., ge=0)
    required_amount: int = Field(..., ge=0)
    tx_hashes: List[str] = Field(default_factory=list)
    used_fallback: bool = False

    @property
    def skipped(self) -> bool:
        return not self.tx_hashes


class SessionResult(SchemaModel):
    """
    Verified session, ready for activation.

    Holds the operator key (for later use by the caller), the approval and
    signature the factory will re-verify, the derived session address and the
    delegation authorization.
    """

    owner: str
    operator: OperatorKey
    approval: Approval
    signature: EVMECDSASignature
    chain_id: int
    factory: str
    session_address: str
    implementation: str
    authorization: DelegationAuthorization
    allowance: AllowanceSettlement
    attempts: int = Field(default=1, ge=1)
    activation_tx_hash: Optional[str] = None
