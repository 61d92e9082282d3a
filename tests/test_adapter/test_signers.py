"""
Tests for the wallet backends and the backend factory.
"""

import json
from unittest.mock import AsyncMock, Mock

import httpx
import pytest
from eth_account import Account

from test_mocks import (
    MOCK_OWNER_PRIVATE_KEY,
    MOCK_OWNER_ADDRESS,
    MOCK_OTHER_ADDRESS,
    MOCK_FACTORY_ADDRESS,
    MOCK_USDC_SEPOLIA,
    MOCK_OPERATOR_ADDRESS,
    MOCK_CHAIN_ID_SEPOLIA,
    MOCK_ORIGIN,
    MOCK_SALT,
)

from bastion_session import BastionConfig
from bastion_session.adapters.signers import (
    InjectedProviderSigner,
    EmbeddedKeySigner,
    RemoteCustodySigner,
    create_signer,
)
from bastion_session.adapters.evm.signatures import build_approval, build_approval_typed_data
from bastion_session.adapters.evm.verifies import recover_approval_signer, split_signature
from bastion_session.engine.exceptions import ConfigurationError, WalletRequestFailed, TransactionFailed

CUSTODY_URL = "https://custody.test"


@pytest.fixture
def approval():
    return build_approval(
        operator=MOCK_OPERATOR_ADDRESS,
        token=MOCK_USDC_SEPOLIA,
        amount="100",
        allowed_origin=MOCK_ORIGIN,
        salt=MOCK_SALT,
    )


@pytest.fixture
def typed_data(approval):
    return build_approval_typed_data(
        approval, chain_id=MOCK_CHAIN_ID_SEPOLIA, factory=MOCK_FACTORY_ADDRESS
    ).to_dict()


@pytest.fixture
def mock_w3():
    w3 = Mock()
    w3.eth = Mock()
    w3.eth.get_transaction_count = AsyncMock(return_value=7)
    w3.eth.send_raw_transaction = AsyncMock(return_value=b"\x11" * 32)
    w3.eth.send_transaction = AsyncMock(return_value=b"\x22" * 32)
    w3.provider = Mock()
    w3.provider.make_request = AsyncMock()
    return w3


def _custody(handler, account=None):
    client = httpx.AsyncClient(base_url=CUSTODY_URL, transport=httpx.MockTransport(handler))
    return RemoteCustodySigner(base_url=CUSTODY_URL, account=account, client=client)


@pytest.mark.asyncio
class TestEmbeddedKeySigner:

    async def test_signature_recovers_to_key(self, approval, typed_data, mock_w3):
        signer = EmbeddedKeySigner(MOCK_OWNER_PRIVATE_KEY, mock_w3)
        packed = await signer.sign_typed_data(MOCK_OWNER_ADDRESS, typed_data)

        recovered = recover_approval_signer(
            approval, split_signature(packed), chain_id=MOCK_CHAIN_ID_SEPOLIA, factory=MOCK_FACTORY_ADDRESS
        )
        assert recovered == MOCK_OWNER_ADDRESS
        assert await signer.get_addresses() == [MOCK_OWNER_ADDRESS]

    async def test_refuses_other_account(self, typed_data, mock_w3):
        signer = EmbeddedKeySigner(MOCK_OWNER_PRIVATE_KEY, mock_w3)
        with pytest.raises(WalletRequestFailed):
            await signer.sign_typed_data(MOCK_OTHER_ADDRESS, typed_data)

    async def test_send_fills_nonce_and_signs_locally(self, mock_w3):
        signer = EmbeddedKeySigner(MOCK_OWNER_PRIVATE_KEY, mock_w3)
        tx_hash = await signer.send_transaction({
            "to": MOCK_USDC_SEPOLIA,
            "data": "0x",
            "value": 0,
            "gas": 60000,
            "maxFeePerGas": 2 * 10**9,
            "maxPriorityFeePerGas": 10**9,
            "chainId": MOCK_CHAIN_ID_SEPOLIA,
        })

        assert tx_hash == "0x" + "11" * 32
        mock_w3.eth.get_transaction_count.assert_awaited_once_with(MOCK_OWNER_ADDRESS)
        (raw,), _ = mock_w3.eth.send_raw_transaction.await_args
        assert Account.recover_transaction(raw) == MOCK_OWNER_ADDRESS

    async def test_broadcast_failure(self, mock_w3):
        mock_w3.eth.send_raw_transaction.side_effect = ValueError("nonce too low")
        signer = EmbeddedKeySigner(MOCK_OWNER_PRIVATE_KEY, mock_w3)
        with pytest.raises(TransactionFailed) as exc_info:
            await signer.send_transaction({
                "to": MOCK_USDC_SEPOLIA, "value": 0, "gas": 21000, "gasPrice": 10**9,
                "chainId": MOCK_CHAIN_ID_SEPOLIA, "nonce": 0,
            })
        assert "nonce too low" in exc_info.value.reason


@pytest.mark.asyncio
class TestInjectedProviderSigner:

    async def test_sign_typed_data_v4(self, typed_data, mock_w3):
        mock_w3.provider.make_request.return_value = {"jsonrpc": "2.0", "id": 1, "result": "0xsig"}
        signer = InjectedProviderSigner(mock_w3)

        assert await signer.sign_typed_data(MOCK_OWNER_ADDRESS, typed_data) == "0xsig"
        method, params = mock_w3.provider.make_request.await_args.args
        assert method == "eth_signTypedData_v4"
        assert params[0] == MOCK_OWNER_ADDRESS
        assert json.loads(params[1]) == typed_data

    async def test_user_rejection(self, typed_data, mock_w3):
        mock_w3.provider.make_request.return_value = {
            "jsonrpc": "2.0", "id": 1, "error": {"code": 4001, "message": "User rejected the request."},
        }
        signer = InjectedProviderSigner(mock_w3)
        with pytest.raises(WalletRequestFailed) as exc_info:
            await signer.sign_typed_data(MOCK_OWNER_ADDRESS, typed_data)
        assert exc_info.value.details["error"]["code"] == 4001

    async def test_requires_provider(self):
        with pytest.raises(ConfigurationError):
            InjectedProviderSigner()

    async def test_requests_accounts_when_none_exposed(self, mock_w3):
        mock_w3.provider.make_request.side_effect = [
            {"jsonrpc": "2.0", "id": 1, "result": []},
            {"jsonrpc": "2.0", "id": 2, "result": [MOCK_OWNER_ADDRESS.lower()]},
        ]
        signer = InjectedProviderSigner(mock_w3)

        assert await signer.get_addresses() == [MOCK_OWNER_ADDRESS]
        methods = [call.args[0] for call in mock_w3.provider.make_request.await_args_list]
        assert methods == ["eth_accounts", "eth_requestAccounts"]

    async def test_account_lookup_failure(self, mock_w3):
        mock_w3.provider.make_request.side_effect = ConnectionError("provider unreachable")
        signer = InjectedProviderSigner(mock_w3)

        with pytest.raises(WalletRequestFailed) as exc_info:
            await signer.get_addresses()
        assert exc_info.value.details["method"] == "eth_accounts"

    async def test_chain_id_failure(self, mock_w3):
        async def unreachable():
            raise ConnectionError("provider unreachable")

        mock_w3.eth.chain_id = unreachable()
        signer = InjectedProviderSigner(mock_w3)

        with pytest.raises(WalletRequestFailed):
            await signer.get_chain_id()


@pytest.mark.asyncio
class TestRemoteCustodySigner:

    async def test_accounts_and_chain(self):
        def handler(request):
            if request.url.path == "/v1/accounts":
                return httpx.Response(200, json={"accounts": [MOCK_OTHER_ADDRESS.lower(), MOCK_OWNER_ADDRESS]})
            return httpx.Response(200, json={"chainId": MOCK_CHAIN_ID_SEPOLIA})

        async with _custody(handler, account=MOCK_OWNER_ADDRESS) as signer:
            assert await signer.get_addresses() == [MOCK_OWNER_ADDRESS, MOCK_OTHER_ADDRESS]
            assert await signer.get_chain_id() == MOCK_CHAIN_ID_SEPOLIA

    async def test_sign_request_body(self, typed_data):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"signature": "0xabc"})

        async with _custody(handler) as signer:
            assert await signer.sign_typed_data(MOCK_OWNER_ADDRESS, typed_data) == "0xabc"
        assert seen["path"] == "/v1/sign-typed-data"
        assert seen["body"] == {"account": MOCK_OWNER_ADDRESS, "typedData": typed_data}

    async def test_http_error(self, typed_data):
        async with _custody(lambda request: httpx.Response(403, text="denied")) as signer:
            with pytest.raises(WalletRequestFailed) as exc_info:
                await signer.sign_typed_data(MOCK_OWNER_ADDRESS, typed_data)
        assert exc_info.value.details["status_code"] == 403

    async def test_send_transaction(self):
        def handler(request):
            body = json.loads(request.content)
            assert body["transaction"]["data"] == "0x0102"
            return httpx.Response(200, json={"hash": "ab" * 32})

        async with _custody(handler) as signer:
            tx_hash = await signer.send_transaction({"to": MOCK_USDC_SEPOLIA, "data": b"\x01\x02"})
        assert tx_hash == "0x" + "ab" * 32

    async def test_send_rejected(self):
        async with _custody(lambda request: httpx.Response(500, text="boom")) as signer:
            with pytest.raises(TransactionFailed):
                await signer.send_transaction({"to": MOCK_USDC_SEPOLIA})


class TestCreateSigner:

    def _config(self, **overrides):
        values = dict(rpc_url="http://localhost:8545", factory_address=MOCK_FACTORY_ADDRESS)
        values.update(overrides)
        return BastionConfig(**values)

    def test_injected_default(self, mock_w3):
        assert isinstance(create_signer(self._config(), w3=mock_w3), InjectedProviderSigner)

    def test_embedded(self, mock_w3):
        signer = create_signer(
            self._config(wallet_backend="embedded", embedded_private_key=MOCK_OWNER_PRIVATE_KEY), w3=mock_w3
        )
        assert isinstance(signer, EmbeddedKeySigner)
        assert signer.address == MOCK_OWNER_ADDRESS

    def test_remote(self):
        signer = create_signer(self._config(wallet_backend="remote", remote_custody_url=CUSTODY_URL))
        assert isinstance(signer, RemoteCustodySigner)
