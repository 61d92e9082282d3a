"""
Session Protocol Test Mocks Module

In-memory fakes of the wallet and chain collaborators so the full protocol can
be exercised with real signatures and no network.

Key Components:
    - Fixed test keys, addresses and chain constants
    - FakeSigner: ``SignerAdapter`` signing EIP-712 with a local key
    - FakeChain: ``ChainClient`` that computes ``getDigest`` with eth-account
      and ``getBastionAddress`` as the EIP-7702 authority of ``(chainId, v, r, s)``,
      tracks ERC-20 allowances and session-account operators
    - Helper functions computing digests and authorities independently of the
      code under test

Usage:
    from test_mocks import FakeChain, FakeSigner, MOCK_OWNER_PRIVATE_KEY

    chain = FakeChain()
    signer = FakeSigner(MOCK_OWNER_PRIVATE_KEY)
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple

import rlp
from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_keys import keys
from eth_utils import keccak, to_checksum_address
from web3 import AsyncWeb3

# Import from the main codebase
import sys
from pathlib import Path
src_path = Path(__file__).parent.parent.parent / "src"
sys.path.insert(0, str(src_path))

from bastion_session.adapters.bases import SignerAdapter, ChainClient
from bastion_session.adapters.evm.schemas import ContractCall, EVMTransactionConfirmation
from bastion_session.engine.exceptions import ChainReadFailed, TransactionFailed
from bastion_session.schemas.bases import TransactionStatus


# ========================================================================
# Mock Blockchain Constants
# ========================================================================

# Test private keys (do not use in production!)
MOCK_OWNER_PRIVATE_KEY = "0x1234567890123456789012345678901234567890123456789012345678901234"
MOCK_OTHER_PRIVATE_KEY = "0xabcdefabcdefabcdefabcdefabcdefabcdefabcdefabcdefabcdefabcdefabcd"

MOCK_OWNER_ADDRESS = AsyncWeb3.to_checksum_address(Account.from_key(MOCK_OWNER_PRIVATE_KEY).address)
MOCK_OTHER_ADDRESS = AsyncWeb3.to_checksum_address(Account.from_key(MOCK_OTHER_PRIVATE_KEY).address)

MOCK_FACTORY_ADDRESS = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
MOCK_IMPLEMENTATION_ADDRESS = "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512"
MOCK_USDC_SEPOLIA = "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238"
MOCK_OPERATOR_ADDRESS = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"

MOCK_CHAIN_ID_SEPOLIA = 11155111
MOCK_ORIGIN = "https://dashboard.zerodev.app"
MOCK_SALT = "0x" + "5a" * 32

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


# ========================================================================
# Independent reference computations
# ========================================================================

def reference_typed_data(
    approval_tuple: Tuple[bytes, str, int, bytes, bytes],
    *,
    chain_id: int,
    factory: str,
    version: str = "0.0.0-beta",
) -> Dict[str, Any]:
    """Typed data the factory hashes, built from the ABI tuple it receives."""
    operator, token, amount, domain, salt = approval_tuple
    return {
        "types": {
            "EIP712Domain": [
                {"name": "name", "type": "string"},
                {"name": "version", "type": "string"},
                {"name": "chainId", "type": "uint256"},
                {"name": "verifyingContract", "type": "address"},
            ],
            "Approval": [
                {"name": "operator", "type": "bytes"},
                {"name": "token", "type": "address"},
                {"name": "amount", "type": "uint256"},
                {"name": "domain", "type": "bytes32"},
                {"name": "salt", "type": "bytes32"},
            ],
        },
        "primaryType": "Approval",
        "domain": {
            "name": "BastionFactory",
            "version": version,
            "chainId": chain_id,
            "verifyingContract": factory,
        },
        "message": {
            "operator": operator,
            "token": token,
            "amount": amount,
            "domain": domain,
            "salt": salt,
        },
    }


def reference_digest(approval_tuple, *, chain_id: int, factory: str, version: str = "0.0.0-beta") -> bytes:
    signable = encode_typed_data(
        full_message=reference_typed_data(approval_tuple, chain_id=chain_id, factory=factory, version=version)
    )
    return keccak(b"\x19" + signable.version + signable.header + signable.body)


def reference_authority(*, chain_id: int, implementation: str, v: int, r: bytes, s: bytes) -> str:
    """EIP-7702 authority of ``(chain_id, implementation, nonce=0)`` signed by ``(v, r, s)``."""
    digest = keccak(b"\x05" + rlp.encode([chain_id, bytes.fromhex(implementation[2:]), 0]))
    signature = keys.Signature(vrs=(v - 27, int.from_bytes(r, "big"), int.from_bytes(s, "big")))
    return signature.recover_public_key_from_msg_hash(digest).to_checksum_address()


# ========================================================================
# Fake wallet
# ========================================================================

class FakeSigner(SignerAdapter):
    """
    Wallet backed by a local key.

    Args:
        private_key: Owner key.
        chain_id: Chain reported by ``get_chain_id``.
        raw_v: When True, the signature's last byte is returned as 0/1
            instead of 27/28.
        sign_with: Optional different key actually used to sign (simulates a
            wallet signing with the wrong account).
    """

    def __init__(
        self,
        private_key: str = MOCK_OWNER_PRIVATE_KEY,
        *,
        chain_id: int = MOCK_CHAIN_ID_SEPOLIA,
        raw_v: bool = False,
        sign_with: Optional[str] = None,
    ):
        self.account = Account.from_key(private_key)
        self.chain_id = chain_id
        self.raw_v = raw_v
        self._signing_key = sign_with or private_key
        self.signed: List[Dict[str, Any]] = []
        self.sent: List[Dict[str, Any]] = []

    async def get_addresses(self) -> List[str]:
        return [self.account.address]

    async def get_chain_id(self) -> int:
        return self.chain_id

    async def sign_typed_data(self, account: str, typed_data: Dict[str, Any]) -> str:
        self.signed.append(typed_data)
        signed = Account.sign_typed_data(self._signing_key, full_message=typed_data)
        raw = bytes(signed.signature)
        if self.raw_v:
            raw = raw[:64] + bytes([raw[64] - 27])
        return "0x" + raw.hex()

    async def send_transaction(self, tx: Dict[str, Any]) -> str:
        self.sent.append(tx)
        return "0x" + keccak(text=f"signer-tx-{len(self.sent)}").hex()


# ========================================================================
# Fake chain
# ========================================================================

class FakeChain(ChainClient):
    """
    In-memory factory, ERC-20 token and session accounts.

    Args:
        implementation: Address returned by ``impl()``.
        zero_address_attempts: Number of initial ``getBastionAddress`` calls
            answered with the zero address.
        allowance: Starting allowance for every (owner, spender) pair.
        reject_nonzero_to_nonzero: Token reverts approvals that move a
            non-zero allowance to another non-zero value.
        fail_all_approvals: Token reverts every approve.
        digest_version: Domain version the factory hashes with; set it to
            something else to simulate schema drift.
        controllers: Session account -> address allowed to call ``changeOperator``.
        balance: Native balance reported for every address; ``None`` makes
            the read fail.
    """

    def __init__(
        self,
        *,
        factory: str = MOCK_FACTORY_ADDRESS,
        implementation: str = MOCK_IMPLEMENTATION_ADDRESS,
        zero_address_attempts: int = 0,
        allowance: int = 0,
        reject_nonzero_to_nonzero: bool = False,
        fail_all_approvals: bool = False,
        digest_version: str = "0.0.0-beta",
        controllers: Optional[Dict[str, str]] = None,
        balance: Optional[int] = 10**18,
    ):
        self.factory = factory
        self.implementation = implementation
        self.zero_address_attempts = zero_address_attempts
        self.default_allowance = allowance
        self.reject_nonzero_to_nonzero = reject_nonzero_to_nonzero
        self.fail_all_approvals = fail_all_approvals
        self.digest_version = digest_version
        self.controllers = controllers or {}
        self.balance = balance

        self.allowances: Dict[Tuple[str, str], int] = {}
        self.operators: Dict[str, bytes] = {}
        self.derivation_calls = 0
        self.approve_calls: List[int] = []
        self.sent_calls: List[ContractCall] = []
        self.set_code_transactions: List[Dict[str, Any]] = []
        self.minted: List[Tuple[str, int]] = []
        self._tx_counter = 0

    def _next_tx_hash(self) -> str:
        self._tx_counter += 1
        return "0x" + keccak(text=f"tx-{self._tx_counter}").hex()

    def allowance_of(self, owner: str, spender: str) -> int:
        return self.allowances.get((owner.lower(), spender.lower()), self.default_allowance)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def read_contract(self, address: str, abi, function_name: str, args: Sequence[Any] = ()) -> Any:
        if function_name == "getDigest":
            (approval_tuple,) = args
            return reference_digest(
                approval_tuple, chain_id=MOCK_CHAIN_ID_SEPOLIA, factory=self.factory, version=self.digest_version
            )
        if function_name == "getBastionAddress":
            self.derivation_calls += 1
            if self.derivation_calls <= self.zero_address_attempts:
                return ZERO_ADDRESS
            chain_id, v, r, s = args
            return reference_authority(chain_id=chain_id, implementation=self.implementation, v=v, r=r, s=s)
        if function_name == "impl":
            return self.implementation
        if function_name == "allowance":
            owner, spender = args
            return self.allowance_of(owner, spender)
        if function_name == "operator":
            return self.operators.get(to_checksum_address(address), b"")
        raise ChainReadFailed(f"{function_name}() not available on {address}")

    async def get_balance(self, address: str) -> int:
        if self.balance is None:
            raise ChainReadFailed(f"Balance read for {address} failed")
        return self.balance

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def simulate_then_send(self, call: ContractCall, signer: SignerAdapter) -> str:
        self.sent_calls.append(call)

        if call.function_name == "approve":
            spender, amount = call.args
            self.approve_calls.append(amount)
            current = self.allowance_of(call.sender, spender)
            if self.fail_all_approvals:
                raise TransactionFailed("approve simulation reverted", reason="approve disabled", reverted=True)
            if self.reject_nonzero_to_nonzero and current != 0 and amount != 0:
                raise TransactionFailed(
                    "approve simulation reverted", reason="non-zero to non-zero approval", reverted=True
                )
            self.allowances[(call.sender.lower(), spender.lower())] = amount

        elif call.function_name == "changeOperator":
            account = to_checksum_address(call.address)
            controller = self.controllers.get(account)
            if controller is None or controller.lower() != call.sender.lower():
                raise TransactionFailed("changeOperator simulation reverted", reason="Unauthorized()", reverted=True)
            (operator,) = call.args
            self.operators[account] = operator

        elif call.function_name == "mint":
            to, amount = call.args
            self.minted.append((to, amount))

        return self._next_tx_hash()

    async def wait_for_confirmation(self, tx_hash: str) -> EVMTransactionConfirmation:
        return EVMTransactionConfirmation(
            status=TransactionStatus.SUCCESS,
            tx_hash=tx_hash,
            block_number=1,
            confirmations=1,
        )

    async def send_set_code_transaction(
        self,
        *,
        private_key: str,
        call: ContractCall,
        authorizations: List[Dict[str, Any]],
        chain_id: Optional[int] = None,
    ) -> str:
        self.set_code_transactions.append({
            "sender": Account.from_key(private_key).address,
            "call": call,
            "authorizations": authorizations,
            "chain_id": chain_id,
        })
        return self._next_tx_hash()
