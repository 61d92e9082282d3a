"""
web3.py Chain Client

``Web3ChainClient`` implements ``ChainClient`` over an ``AsyncWeb3`` HTTP
provider. Reads decode through the supplied ABI fragment; writes are always
simulated with ``eth_call`` from the sender before the wallet is asked to sign,
so a revert surfaces as ``TransactionFailed(reverted=True)`` without anything
being broadcast.
"""

import asyncio
import logging
from typing import Optional, Dict, Any, List, Sequence

from eth_account import Account
from web3 import AsyncWeb3
from web3.exceptions import ContractLogicError, TransactionNotFound

from .schemas import ContractCall, EVMTransactionConfirmation
from .constants import checksum_address
from ..bases import ChainClient, SignerAdapter
from ...schemas.bases import TransactionStatus
from ...engine.exceptions import ChainReadFailed, TransactionFailed

logger = logging.getLogger(__name__)

#: Gas limit used when estimation fails (common for type-4 transactions on
#: nodes that do not simulate authorization lists).
_FALLBACK_GAS_LIMIT: int = 300000


class Web3ChainClient(ChainClient):
    """
    Chain read/write client backed by web3.py.

    Attributes:
        w3: ``AsyncWeb3`` instance used for every call.

    Example:
        chain = Web3ChainClient(rpc_url="https://sepolia.example/rpc")
        impl = await chain.read_contract(factory, get_factory_abi(), "impl")
    """

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        *,
        request_timeout: int = 60,
        poll_interval: float = 2.0,
        max_polls: int = 90,
        w3: Optional[AsyncWeb3] = None,
    ):
        if w3 is None:
            if not rpc_url:
                raise ValueError("rpc_url is required when no AsyncWeb3 instance is supplied")
            w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(
                rpc_url,
                request_kwargs={"timeout": request_timeout},
            ))
        self.w3 = w3
        self._poll_interval = poll_interval
        self._max_polls = max_polls

    def _bound_function(self, address: str, abi: List[Dict[str, Any]], function_name: str, args: Sequence[Any]):
        contract = self.w3.eth.contract(address=checksum_address(address), abi=abi)
        return getattr(contract.functions, function_name)(*args)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def read_contract(
        self,
        address: str,
        abi: List[Dict[str, Any]],
        function_name: str,
        args: Sequence[Any] = (),
    ) -> Any:
        try:
            return await self._bound_function(address, abi, function_name, args).call()
        except Exception as e:
            raise ChainReadFailed(
                f"{function_name}() on {address} failed: {e}",
                details={"address": address, "function": function_name},
            ) from e

    async def get_balance(self, address: str) -> int:
        try:
            return await self.w3.eth.get_balance(checksum_address(address))
        except Exception as e:
            raise ChainReadFailed(
                f"Balance read for {address} failed: {e}",
                details={"address": address},
            ) from e

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def simulate_then_send(self, call: ContractCall, signer: SignerAdapter) -> str:
        fn = self._bound_function(call.address, call.abi, call.function_name, call.args)
        tx_params: Dict[str, Any] = {"from": checksum_address(call.sender), "value": call.value}

        try:
            await fn.call(tx_params)
        except ContractLogicError as e:
            raise TransactionFailed(
                f"{call.function_name} simulation reverted",
                reason=str(e),
                reverted=True,
            ) from e
        except Exception as e:
            raise TransactionFailed(f"{call.function_name} simulation failed", reason=str(e)) from e

        # Gas estimation with 10% buffer
        try:
            gas_estimate = await fn.estimate_gas(tx_params)
            tx_params["gas"] = int(gas_estimate * 1.1)
        except Exception:
            tx_params["gas"] = _FALLBACK_GAS_LIMIT

        try:
            tx = await fn.build_transaction(tx_params)
        except Exception as e:
            raise TransactionFailed(f"Could not build {call.function_name} transaction", reason=str(e)) from e

        tx_hash = await signer.send_transaction(tx)
        logger.info("Submitted %s to %s: %s", call.function_name, call.address, tx_hash)
        return tx_hash

    async def wait_for_confirmation(self, tx_hash: str) -> EVMTransactionConfirmation:
        """
        Poll ``eth_getTransactionReceipt`` until ``tx_hash`` is mined.

        Polls every ``poll_interval`` seconds for at most ``max_polls`` rounds.

        Raises:
            TransactionFailed: Timeout, or ``reverted=True`` on a status-0 receipt.
        """
        receipt = None
        for _ in range(self._max_polls):
            try:
                receipt = await self.w3.eth.get_transaction_receipt(tx_hash)
                if receipt:
                    break
            except TransactionNotFound:
                pass  # still pending
            await asyncio.sleep(self._poll_interval)

        if not receipt:
            raise TransactionFailed(
                "Transaction confirmation timed out",
                tx_hash=tx_hash,
                details={"status": TransactionStatus.TIMEOUT.value},
            )

        current_block = await self.w3.eth.block_number
        confirmations = max(current_block - receipt["blockNumber"], 0)
        transaction_fee = receipt["gasUsed"] * receipt.get("effectiveGasPrice", 0)

        if receipt.get("status") != 1:
            raise TransactionFailed(
                "Transaction reverted on-chain",
                reason="status 0",
                reverted=True,
                tx_hash=tx_hash,
                details={"block_number": receipt["blockNumber"]},
            )

        return EVMTransactionConfirmation(
            status=TransactionStatus.SUCCESS,
            tx_hash=tx_hash,
            block_number=receipt["blockNumber"],
            gas_used=receipt["gasUsed"],
            confirmations=confirmations,
            transaction_fee=transaction_fee,
            from_address=receipt.get("from"),
            to_address=receipt.get("to"),
        )

    async def send_set_code_transaction(
        self,
        *,
        private_key: str,
        call: ContractCall,
        authorizations: List[Dict[str, Any]],
        chain_id: Optional[int] = None,
    ) -> str:
        """
        Sign and broadcast an EIP-7702 (type 4) transaction from ``private_key``.

        ``authorizations`` are ``authorizationList`` entries
        (``chainId``, ``address``, ``nonce``, ``yParity``, ``r``, ``s``).
        """
        account = Account.from_key(private_key)
        sender = account.address
        contract = self.w3.eth.contract(address=checksum_address(call.address), abi=call.abi)
        data = contract.encode_abi(call.function_name, args=list(call.args))

        try:
            resolved_chain_id = chain_id if chain_id is not None else await self.w3.eth.chain_id
            tx: Dict[str, Any] = {
                "type": 4,
                "chainId": resolved_chain_id,
                "from": sender,
                "to": checksum_address(call.address),
                "value": call.value,
                "data": data,
                "nonce": await self.w3.eth.get_transaction_count(sender),
                "authorizationList": authorizations,
            }

            try:
                gas_estimate = await self.w3.eth.estimate_gas(tx)
                tx["gas"] = int(gas_estimate * 1.1)
            except ContractLogicError as e:
                raise TransactionFailed(
                    f"{call.function_name} simulation reverted", reason=str(e), reverted=True
                ) from e
            except Exception:
                tx["gas"] = _FALLBACK_GAS_LIMIT

            # Dynamic Gas Fee Handling (EIP-1559)
            try:
                fee_history = await self.w3.eth.fee_history(1, "latest", [25.0])
                base_fee = fee_history["baseFeePerGas"][-1]
                priority_fee = fee_history["reward"][0][0]
                tx["maxPriorityFeePerGas"] = priority_fee
                tx["maxFeePerGas"] = (base_fee * 2) + priority_fee
            except Exception:
                gas_price = await self.w3.eth.gas_price
                tx["maxPriorityFeePerGas"] = gas_price
                tx["maxFeePerGas"] = gas_price

            tx.pop("from")
            signed_tx = account.sign_transaction(tx)
            tx_hash = await self.w3.eth.send_raw_transaction(signed_tx.raw_transaction)
        except TransactionFailed:
            raise
        except Exception as e:
            raise TransactionFailed(f"Could not send {call.function_name} transaction", reason=str(e)) from e

        tx_hash_hex = AsyncWeb3.to_hex(tx_hash)
        logger.info("Submitted type-4 %s from %s: %s", call.function_name, sender, tx_hash_hex)
        return tx_hash_hex
