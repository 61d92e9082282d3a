"""
Abstract Base Classes for Protocol Collaborators

Defines the two boundaries the session-key protocol talks to. The protocol
itself never opens a wallet or an RPC connection; it only calls these
interfaces, so every backend (and every test fake) is interchangeable.

Core Classes:
    - SignerAdapter: Wallet-side operations (accounts, chain id, EIP-712 signing, writes)
    - ChainClient: Node-side operations (contract reads, simulate-then-send, receipts)

Concrete signers live in ``adapters.signers``; the web3.py chain client lives in
``adapters.evm.chain``.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from ..schemas.bases import BaseTransactionConfirmation


class SignerAdapter(ABC):
    """
    Abstract Base Class for wallet backends.

    A signer represents one connected identity (injected provider, embedded
    key, remote custody). Backends are selected by configuration through
    ``create_signer`` rather than by subclassing the protocol.

    Key Responsibilities:
    1. get_addresses: Accounts the wallet exposes, primary first
    2. get_chain_id: Chain the wallet is connected to
    3. sign_typed_data: EIP-712 signature over a typed-data dict
    4. send_transaction: Sign and broadcast a prepared transaction

    Example Implementation:
        class HardwareSigner(SignerAdapter):
            async def sign_typed_data(self, account, typed_data):
                ...
    """

    @abstractmethod
    async def get_addresses(self) -> List[str]:
        """
        Return the wallet's accounts.

        Returns:
            List of checksummed addresses; the first entry is the connected account.
        """
        pass

    @abstractmethod
    async def get_chain_id(self) -> int:
        """Return the chain id of the connected context."""
        pass

    @abstractmethod
    async def sign_typed_data(self, account: str, typed_data: Dict[str, Any]) -> str:
        """
        Sign EIP-712 typed data with ``account``.

        Args:
            account: Address that must produce the signature.
            typed_data: ``{types, primaryType, domain, message}`` dict.

        Returns:
            0x-prefixed 65-byte signature hex (``r || s || v``).
        """
        pass

    @abstractmethod
    async def send_transaction(self, tx: Dict[str, Any]) -> str:
        """
        Sign and broadcast a prepared transaction.

        Args:
            tx: Transaction dict with at least ``from``, ``to`` and ``data``.

        Returns:
            0x-prefixed transaction hash.
        """
        pass


class ChainClient(ABC):
    """
    Abstract Base Class for chain read/write access.

    Reads return decoded values; writes are always simulated first so that a
    revert surfaces before anything is broadcast.

    Key Responsibilities:
    1. read_contract: Call a view function and return its decoded output
    2. simulate_then_send: Simulate a state-changing call, then submit it via a signer
    3. wait_for_confirmation: Block until a transaction is mined
    4. get_balance: Native balance of an address
    5. send_set_code_transaction: Submit an EIP-7702 transaction signed by a local key
    """

    @abstractmethod
    async def read_contract(
        self,
        address: str,
        abi: List[Dict[str, Any]],
        function_name: str,
        args: Sequence[Any] = (),
    ) -> Any:
        """
        Call a view function.

        Raises:
            ChainReadFailed: If the call fails or reverts.
        """
        pass

    @abstractmethod
    async def simulate_then_send(self, call: Any, signer: SignerAdapter) -> str:
        """
        Simulate ``call`` from its sender, then submit it through ``signer``.

        Args:
            call: ``ContractCall`` describing target, function, args and sender.
            signer: Wallet that signs and broadcasts the transaction.

        Returns:
            Transaction hash.

        Raises:
            TransactionFailed: ``reverted=True`` when simulation reverts; plain
                failure when the wallet or node rejects the submission.
        """
        pass

    @abstractmethod
    async def wait_for_confirmation(self, tx_hash: str) -> BaseTransactionConfirmation:
        """
        Wait for ``tx_hash`` to be mined.

        Raises:
            TransactionFailed: On a status-0 receipt (``reverted=True``) or timeout.
        """
        pass

    @abstractmethod
    async def get_balance(self, address: str) -> int:
        """Native balance of ``address`` in wei."""
        pass

    @abstractmethod
    async def send_set_code_transaction(
        self,
        *,
        private_key: str,
        call: Any,
        authorizations: List[Dict[str, Any]],
        chain_id: Optional[int] = None,
    ) -> str:
        """
        Sign and broadcast an EIP-7702 (type 4) transaction from a local key.

        Args:
            private_key: Key of the sending account; never logged.
            call: ``ContractCall`` executed by the transaction.
            authorizations: Signed ``authorizationList`` entries.
            chain_id: Chain id; read from the node when omitted.

        Returns:
            Transaction hash.
        """
        pass
