"""
EVM Protocol Constants

Fixed values shared by the session-key protocol (EIP-712 domain tags, retry
bounds, chain defaults) plus the canonical amount / address conversions used
when building approvals.
"""

from decimal import Decimal, InvalidOperation, localcontext
from typing import Dict, Any

from eth_utils import is_address, to_checksum_address

from ...engine.exceptions import InvalidAddress, InvalidAmount

# ---------------------------------------------------------------------------
# EIP-712 approval domain
# ---------------------------------------------------------------------------

#: ``name`` of the factory's EIP-712 domain.
APPROVAL_DOMAIN_NAME: str = "BastionFactory"

#: ``version`` of the factory's EIP-712 domain.
APPROVAL_DOMAIN_VERSION: str = "0.0.0-beta"

APPROVAL_PRIMARY_TYPE: str = "Approval"

# ---------------------------------------------------------------------------
# EIP-7702 delegation authorization
# ---------------------------------------------------------------------------

#: Prefix byte of the EIP-7702 authorization signing payload.
SET_CODE_AUTHORIZATION_MAGIC: bytes = b"\x05"

#: The delegation authorization is always signed for nonce 0.
DELEGATION_NONCE: int = 0

# ---------------------------------------------------------------------------
# Protocol defaults
# ---------------------------------------------------------------------------

ZERO_ADDRESS: str = "0x0000000000000000000000000000000000000000"

MAX_UINT256: int = 2**256 - 1

#: Upper bound on salt-mutation attempts when derivation is degenerate.
MAX_DERIVATION_ATTEMPTS: int = 10

#: Fixed base-unit scaling applied to approval amounts. Token decimals are not
#: queried; tokens with other decimal counts are over- or under-scaled.
DEFAULT_AMOUNT_DECIMALS: int = 18

DEFAULT_ALLOWED_ORIGIN: str = "https://dashboard.zerodev.app"

#: 0.001 ETH, the operator balance below which activation is refused.
DEFAULT_MIN_OPERATOR_BALANCE_WEI: int = 10**15

SEPOLIA_CHAIN_ID: int = 11155111

_EVM_CHAINS_DATA: Dict[int, Dict[str, Any]] = {
    11155111: {"name": "Sepolia"},
    1: {"name": "Ethereum Mainnet"},
}


def get_chain_info(chain_id: int) -> Dict[str, Any]:
    """
    Return the known metadata for ``chain_id`` or a generic EIP-155 entry.

    Args:
        chain_id: EVM chain ID.

    Returns:
        dict with the chain ``name``.
    """
    return _EVM_CHAINS_DATA.get(
        chain_id,
        {"name": f"EVM chain {chain_id}"},
    )


def checksum_address(value: str, *, field_name: str = "address") -> str:
    """
    Parse ``value`` into a checksummed EVM address.

    Lower- and upper-case hex are accepted; mixed case must carry a valid
    EIP-55 checksum.

    Raises:
        InvalidAddress: If ``value`` is not a canonical 20-byte address.
    """
    if not isinstance(value, str) or not is_address(value.strip()):
        raise InvalidAddress(
            f"Invalid {field_name}: {value!r}",
            details={field_name: value},
        )
    return to_checksum_address(value.strip())


def is_zero_address(value: str) -> bool:
    return value is None or value.lower() == ZERO_ADDRESS


def amount_to_value(*, amount: float | int | str | Decimal, decimals: int) -> int:
    """Convert a human-readable token `amount` into smallest-unit integer `value`.

    Args:
        amount: Human-readable amount (e.g. "100"). Accepts float/int/str/Decimal.
        decimals: Base-unit decimals (18 for the approval amount).

    Returns:
        int: Smallest-unit integer value.

    Raises:
        InvalidAmount: If the amount is unparseable, negative, cannot be
            represented in smallest units or overflows uint256.
    """
    if not isinstance(decimals, int) or decimals < 0:
        raise ValueError("decimals must be a non-negative int")

    try:
        # str() avoids binary-float surprises (0.1 -> 0.100000000000000005...)
        dec_amount = amount if isinstance(amount, Decimal) else Decimal(str(amount).strip())
    except (InvalidOperation, ValueError, TypeError) as e:
        raise InvalidAmount(f"Invalid amount: {amount!r}", details={"amount": amount}) from e

    if not dec_amount.is_finite():
        raise InvalidAmount(f"Invalid amount: {amount!r}", details={"amount": amount})

    if dec_amount < 0:
        raise InvalidAmount("amount must be non-negative", details={"amount": str(amount)})

    # uint256 needs 78 digits, past the default 28-digit context
    with localcontext() as ctx:
        ctx.prec = 160
        scaled = dec_amount * (Decimal(10) ** decimals)

    if scaled != scaled.to_integral_value():
        raise InvalidAmount(
            f"amount {amount!r} is not representable with decimals={decimals} "
            f"(would create fractional smallest units)",
            details={"amount": str(amount), "decimals": decimals},
        )

    value = int(scaled)
    if value > MAX_UINT256:
        raise InvalidAmount(
            f"amount {amount!r} overflows uint256 at decimals={decimals}",
            details={"amount": str(amount), "decimals": decimals},
        )
    return value

