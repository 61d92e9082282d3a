"""
ERC-20 allowance settlement.

Ensures ``allowance(owner, spender) >= amount`` before activation. Tokens in
the USDT family revert when an allowance moves from one non-zero value to
another, so a failed direct approve falls back to approve(0) followed by
approve(amount), each awaited. The fallback runs at most once.
"""

import logging
from typing import List, Optional

from .schemas import ContractCall, AllowanceSettlement
from .ERC20_ABI import get_allowance_abi, get_approve_abi
from ..bases import SignerAdapter, ChainClient
from ...engine.events import EventBus, publish, AllowanceSettledEvent
from ...engine.exceptions import AllowanceUpdateFailed, TransactionFailed

logger = logging.getLogger(__name__)


async def _approve(
    *,
    token: str,
    owner: str,
    spender: str,
    amount: int,
    signer: SignerAdapter,
    chain: ChainClient,
) -> str:
    call = ContractCall(
        address=token,
        abi=get_approve_abi(),
        function_name="approve",
        args=(spender, amount),
        sender=owner,
    )
    tx_hash = await chain.simulate_then_send(call, signer)
    await chain.wait_for_confirmation(tx_hash)
    return tx_hash


async def settle_allowance(
    *,
    owner: str,
    token: str,
    spender: str,
    amount: int,
    signer: SignerAdapter,
    chain: ChainClient,
    event_bus: Optional[EventBus] = None,
) -> AllowanceSettlement:
    """
    Raise the owner's allowance for ``spender`` to at least ``amount``.

    Issues zero approve calls when the current allowance already covers
    ``amount``, one call on the direct path and three calls (the failed direct
    attempt, zero, amount) on the fallback path.

    Args:
        owner:   Token holder; sender of every approve.
        token:   ERC-20 token address.
        spender: Address being approved (the factory).
        amount:  Required allowance in base units.
        signer:  Wallet that signs the approve transactions.
        chain:   Chain client for reads, simulation and receipts.

    Returns:
        ``AllowanceSettlement`` listing the confirmed approve transactions.

    Raises:
        AllowanceUpdateFailed: A fallback step failed; ``reason`` carries the
            underlying transaction failure.
        ChainReadFailed: The initial ``allowance`` read failed.
    """
    current = int(await chain.read_contract(
        token, get_allowance_abi(), "allowance", (owner, spender)
    ))

    if current >= amount:
        logger.info("Existing allowance %d covers %d; skipping approve", current, amount)
        await publish(event_bus, AllowanceSettledEvent(
            message="Existing allowance is sufficient, approve skipped",
        ))
        return AllowanceSettlement(previous_allowance=current, required_amount=amount)

    tx_hashes: List[str] = []
    used_fallback = False
    try:
        tx_hashes.append(await _approve(
            token=token, owner=owner, spender=spender, amount=amount, signer=signer, chain=chain,
        ))
    except TransactionFailed as first_error:
        logger.warning(
            "approve(%d) failed (%s); retrying as approve(0) then approve(%d)",
            amount, first_error.reason, amount,
        )
        used_fallback = True
        for step_amount in (0, amount):
            try:
                tx_hashes.append(await _approve(
                    token=token, owner=owner, spender=spender, amount=step_amount,
                    signer=signer, chain=chain,
                ))
            except TransactionFailed as e:
                raise AllowanceUpdateFailed(
                    f"approve({step_amount}) failed during zero-then-approve fallback",
                    reason=e.reason,
                    details={"token": token, "spender": spender, "step_amount": step_amount},
                ) from e

    await publish(event_bus, AllowanceSettledEvent(
        message=f"Allowance set to {amount}",
        tx_hashes=tx_hashes,
    ))
    return AllowanceSettlement(
        previous_allowance=current,
        required_amount=amount,
        tx_hashes=tx_hashes,
        used_fallback=used_fallback,
    )
