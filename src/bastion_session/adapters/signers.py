"""
Wallet Backends

Concrete ``SignerAdapter`` implementations, one per wallet connection type:

    - InjectedProviderSigner: a wallet exposing EIP-1193 style JSON-RPC
      (``eth_requestAccounts``, ``eth_signTypedData_v4``, ``eth_sendTransaction``)
    - EmbeddedKeySigner: a managed key held in-process; signs locally and
      broadcasts raw transactions
    - RemoteCustodySigner: a custody service reached over HTTP

``create_signer`` picks the backend named by ``BastionConfig.wallet_backend``.
"""

import json
import logging
from typing import Any, Dict, List, Optional, TYPE_CHECKING

import httpx
from eth_account import Account
from web3 import AsyncWeb3

from .bases import SignerAdapter
from .evm.constants import checksum_address
from ..engine.exceptions import ConfigurationError, WalletRequestFailed, TransactionFailed

if TYPE_CHECKING:
    from ..config import BastionConfig

logger = logging.getLogger(__name__)


def _make_web3(rpc_url: str, request_timeout: int) -> AsyncWeb3:
    return AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(
        rpc_url,
        request_kwargs={"timeout": request_timeout},
    ))


def _jsonable(value: Any) -> Any:
    """Convert web3 transaction values (HexBytes, bytes) to JSON-friendly types."""
    if isinstance(value, (bytes, bytearray)):
        return AsyncWeb3.to_hex(value)
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


# ---------------------------------------------------------------------------
# Injected provider
# ---------------------------------------------------------------------------

class InjectedProviderSigner(SignerAdapter):
    """
    Wallet reached through its JSON-RPC provider.

    The wallet owns the keys; every signing request goes to the provider and
    may be confirmed by the user.
    """

    def __init__(self, w3: Optional[AsyncWeb3] = None, *, rpc_url: Optional[str] = None, request_timeout: int = 60):
        if w3 is None:
            if not rpc_url:
                raise ConfigurationError("Injected wallet requires a wallet RPC URL")
            w3 = _make_web3(rpc_url, request_timeout)
        self.w3 = w3

    async def _request(self, method: str, params: List[Any]) -> Any:
        try:
            response = await self.w3.provider.make_request(method, params)
        except Exception as e:
            raise WalletRequestFailed(f"{method} failed: {e}", details={"method": method}) from e
        if "error" in response:
            error = response["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise WalletRequestFailed(f"{method} rejected: {message}", details={"method": method, "error": error})
        return response.get("result")

    async def get_addresses(self) -> List[str]:
        accounts = await self._request("eth_accounts", [])
        if not accounts:
            accounts = await self._request("eth_requestAccounts", []) or []
        return [checksum_address(a) for a in accounts]

    async def get_chain_id(self) -> int:
        try:
            return await self.w3.eth.chain_id
        except Exception as e:
            raise WalletRequestFailed(f"eth_chainId failed: {e}", details={"method": "eth_chainId"}) from e

    async def sign_typed_data(self, account: str, typed_data: Dict[str, Any]) -> str:
        signature = await self._request("eth_signTypedData_v4", [account, json.dumps(typed_data)])
        if not signature:
            raise WalletRequestFailed("Wallet returned an empty signature")
        return signature

    async def send_transaction(self, tx: Dict[str, Any]) -> str:
        try:
            tx_hash = await self.w3.eth.send_transaction(tx)
        except Exception as e:
            raise TransactionFailed("Wallet rejected transaction", reason=str(e)) from e
        return AsyncWeb3.to_hex(tx_hash)


# ---------------------------------------------------------------------------
# Embedded key
# ---------------------------------------------------------------------------

class EmbeddedKeySigner(SignerAdapter):
    """
    Managed wallet whose key lives in this process.

    Typed data is signed with ``eth_account``; transactions get their nonce
    from the node, are signed locally and broadcast raw.
    """

    def __init__(self, private_key: str, w3: AsyncWeb3):
        self._account = Account.from_key(private_key)
        self.address = self._account.address
        self.w3 = w3

    async def get_addresses(self) -> List[str]:
        return [self.address]

    async def get_chain_id(self) -> int:
        return await self.w3.eth.chain_id

    async def sign_typed_data(self, account: str, typed_data: Dict[str, Any]) -> str:
        if account.lower() != self.address.lower():
            raise WalletRequestFailed(
                f"Embedded wallet cannot sign for {account}",
                details={"account": account, "wallet": self.address},
            )
        signed = self._account.sign_typed_data(full_message=typed_data)
        return AsyncWeb3.to_hex(signed.signature)

    async def send_transaction(self, tx: Dict[str, Any]) -> str:
        tx = dict(tx)
        tx["from"] = self.address
        try:
            if "nonce" not in tx:
                tx["nonce"] = await self.w3.eth.get_transaction_count(self.address)
            if "chainId" not in tx:
                tx["chainId"] = await self.w3.eth.chain_id
            signed_tx = self._account.sign_transaction(tx)
            tx_hash = await self.w3.eth.send_raw_transaction(signed_tx.raw_transaction)
        except Exception as e:
            raise TransactionFailed("Could not broadcast transaction", reason=str(e)) from e
        return AsyncWeb3.to_hex(tx_hash)


# ---------------------------------------------------------------------------
# Remote custody
# ---------------------------------------------------------------------------

class RemoteCustodySigner(SignerAdapter):
    """
    Custody service reached over HTTP.

    Endpoints (JSON, bearer-token auth):
        GET  /v1/accounts          -> {"accounts": [address, ...]}
        GET  /v1/chain-id          -> {"chainId": int}
        POST /v1/sign-typed-data   {"account", "typedData"} -> {"signature"}
        POST /v1/transactions      {"transaction"} -> {"hash"}

    Usage:
        ```python
        async with RemoteCustodySigner(base_url="https://custody.example", token="...") as signer:
            accounts = await signer.get_addresses()
        ```
    """

    def __init__(
        self,
        *,
        base_url: str,
        token: Optional[str] = None,
        account: Optional[str] = None,
        request_timeout: int = 60,
        client: Optional[httpx.AsyncClient] = None,
    ):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = client or httpx.AsyncClient(base_url=base_url, headers=headers, timeout=request_timeout)
        self._account = checksum_address(account) if account else None

    async def __aenter__(self) -> "RemoteCustodySigner":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _call(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            response = await self._client.request(method, path, json=payload)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise WalletRequestFailed(
                f"Custody service returned {e.response.status_code} for {path}",
                details={"path": path, "status_code": e.response.status_code, "body": e.response.text},
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise WalletRequestFailed(f"Custody request {path} failed: {e}", details={"path": path}) from e

    async def get_addresses(self) -> List[str]:
        data = await self._call("GET", "/v1/accounts")
        accounts = [checksum_address(a) for a in data.get("accounts", [])]
        if self._account:
            accounts = [self._account] + [a for a in accounts if a != self._account]
        return accounts

    async def get_chain_id(self) -> int:
        data = await self._call("GET", "/v1/chain-id")
        return int(data["chainId"])

    async def sign_typed_data(self, account: str, typed_data: Dict[str, Any]) -> str:
        data = await self._call("POST", "/v1/sign-typed-data", {"account": account, "typedData": typed_data})
        signature = data.get("signature")
        if not signature:
            raise WalletRequestFailed("Custody service returned no signature", details={"response": data})
        return signature

    async def send_transaction(self, tx: Dict[str, Any]) -> str:
        try:
            data = await self._call("POST", "/v1/transactions", {"transaction": _jsonable(tx)})
        except WalletRequestFailed as e:
            raise TransactionFailed("Custody service rejected transaction", reason=e.message) from e
        tx_hash = data.get("hash")
        if not tx_hash:
            raise TransactionFailed("Custody service returned no transaction hash", details={"response": data})
        return tx_hash if tx_hash.startswith("0x") else "0x" + tx_hash


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def create_signer(config: "BastionConfig", *, w3: Optional[AsyncWeb3] = None) -> SignerAdapter:
    """
    Build the wallet backend named by ``config.wallet_backend``.

    Args:
        config: Client configuration.
        w3:     Optional ``AsyncWeb3`` reused by provider-based backends.

    Raises:
        ConfigurationError: Unknown backend or missing backend settings.
    """
    backend = config.wallet_backend
    logger.debug("Creating %s wallet backend", backend)

    if backend == "injected":
        if w3 is None:
            w3 = _make_web3(config.wallet_rpc_url or config.rpc_url, config.request_timeout)
        return InjectedProviderSigner(w3)

    if backend == "embedded":
        if not config.embedded_private_key:
            raise ConfigurationError("Embedded wallet requires embedded_private_key")
        return EmbeddedKeySigner(
            config.embedded_private_key,
            w3 or _make_web3(config.rpc_url, config.request_timeout),
        )

    if backend == "remote":
        if not config.remote_custody_url:
            raise ConfigurationError("Remote custody wallet requires remote_custody_url")
        return RemoteCustodySigner(
            base_url=config.remote_custody_url,
            token=config.remote_custody_token,
            account=config.remote_custody_account,
            request_timeout=config.request_timeout,
        )

    raise ConfigurationError(f"Unknown wallet backend: {backend!r}", details={"backend": backend})
