"""
Operator rotation on an existing session account.

``changeOperator(bytes)`` replaces the account's operator record with the
raw 20-byte encoding of the new operator. Only the account's controller may
call it; anyone else gets a revert, surfaced as ``Unauthorized``.
"""

import logging
from typing import Optional

from .schemas import ContractCall, OperatorKey
from .signatures import encode_operator, generate_operator_key
from .constants import checksum_address
from .BASTION_ABI import get_session_account_abi
from ..bases import SignerAdapter, ChainClient
from ...engine.events import EventBus, publish, KeyGeneratedEvent, OperatorRotatedEvent
from ...engine.exceptions import Unauthorized, TransactionFailed
from ...schemas.bases import ProtocolPhase

logger = logging.getLogger(__name__)


async def read_operator(*, session_address: str, chain: ChainClient) -> str:
    """Current operator bytes of ``session_address`` as lowercase 0x-hex."""
    value = await chain.read_contract(session_address, get_session_account_abi(), "operator")
    if isinstance(value, str):
        return value.lower()
    return "0x" + bytes(value).hex()


async def rotate_operator(
    *,
    session_address: str,
    controller: str,
    signer: SignerAdapter,
    chain: ChainClient,
    new_operator: Optional[OperatorKey] = None,
    event_bus: Optional[EventBus] = None,
) -> OperatorKey:
    """
    Replace the session account's operator with a new key.

    Args:
        session_address: Session account to update.
        controller:      Account sending ``changeOperator``.
        signer:          Wallet that signs the transaction.
        chain:           Chain client.
        new_operator:    Key to install; a fresh one is generated when omitted.
        event_bus:       Optional bus receiving status events.

    Returns:
        The installed ``OperatorKey``.

    Raises:
        Unauthorized:      The call reverted (caller is not the controller).
        TransactionFailed: Submission failed for another reason, or the
            operator read back after confirmation is not the new one.
    """
    account = checksum_address(session_address, field_name="session_address")
    if new_operator is None:
        new_operator = generate_operator_key()
        await publish(event_bus, KeyGeneratedEvent(
            message=f"New operator {new_operator.address}",
            operator=new_operator.address,
        ))

    encoded = encode_operator(new_operator.address)
    call = ContractCall(
        address=account,
        abi=get_session_account_abi(),
        function_name="changeOperator",
        args=(bytes.fromhex(encoded[2:]),),
        sender=controller,
    )

    try:
        tx_hash = await chain.simulate_then_send(call, signer)
        await chain.wait_for_confirmation(tx_hash)
    except TransactionFailed as e:
        if e.reverted:
            raise Unauthorized(
                f"{controller} is not allowed to change the operator of {account}",
                details={"reason": e.reason, "tx_hash": e.tx_hash},
            ) from e
        raise

    current = await read_operator(session_address=account, chain=chain)
    if current != encoded:
        raise TransactionFailed(
            "Operator did not change after changeOperator was confirmed",
            tx_hash=tx_hash,
            phase=ProtocolPhase.OPERATOR_ROTATION,
            details={"expected": encoded, "actual": current},
        )

    logger.info("Operator of %s rotated to %s", account, new_operator.address)
    await publish(event_bus, OperatorRotatedEvent(
        message=f"Operator rotated to {new_operator.address}",
        session_address=account,
        operator=new_operator.address,
    ))
    return new_operator
