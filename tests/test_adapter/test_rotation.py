"""
Tests for operator rotation.
"""

import pytest
from eth_utils import to_checksum_address

from test_mocks import (
    FakeChain,
    FakeSigner,
    MOCK_OWNER_ADDRESS,
    MOCK_OTHER_PRIVATE_KEY,
    MOCK_OPERATOR_ADDRESS,
)

from bastion_session.adapters.evm.rotation import rotate_operator, read_operator
from bastion_session.adapters.evm.signatures import generate_operator_key
from bastion_session.engine.events import EventBus, StatusEvent
from bastion_session.engine.exceptions import Unauthorized, InvalidAddress
from bastion_session.schemas.bases import ProtocolPhase

SESSION_ADDRESS = to_checksum_address("0x9fe46736679d2d9a65f0992f2272de9f3c7fa6e0")


@pytest.mark.asyncio
class TestRotateOperator:

    async def test_controller_rotates(self):
        chain = FakeChain(controllers={SESSION_ADDRESS: MOCK_OWNER_ADDRESS})
        new_operator = await rotate_operator(
            session_address=SESSION_ADDRESS,
            controller=MOCK_OWNER_ADDRESS,
            signer=FakeSigner(),
            chain=chain,
        )

        stored = await read_operator(session_address=SESSION_ADDRESS, chain=chain)
        assert stored == new_operator.address.lower()
        assert len(bytes.fromhex(stored[2:])) == 20

        (call,) = chain.sent_calls
        assert call.function_name == "changeOperator"
        assert call.args == (bytes.fromhex(new_operator.address[2:]),)

    async def test_explicit_operator(self):
        chain = FakeChain(controllers={SESSION_ADDRESS: MOCK_OWNER_ADDRESS})
        key = generate_operator_key()
        result = await rotate_operator(
            session_address=SESSION_ADDRESS,
            controller=MOCK_OWNER_ADDRESS,
            signer=FakeSigner(),
            chain=chain,
            new_operator=key,
        )
        assert result == key

    async def test_non_controller_is_unauthorized(self):
        chain = FakeChain(controllers={SESSION_ADDRESS: MOCK_OPERATOR_ADDRESS})
        with pytest.raises(Unauthorized) as exc_info:
            await rotate_operator(
                session_address=SESSION_ADDRESS,
                controller=MOCK_OWNER_ADDRESS,
                signer=FakeSigner(),
                chain=chain,
            )
        assert exc_info.value.phase == ProtocolPhase.OPERATOR_ROTATION
        assert chain.operators == {}

    async def test_invalid_session_address(self):
        with pytest.raises(InvalidAddress):
            await rotate_operator(
                session_address="0xnope",
                controller=MOCK_OWNER_ADDRESS,
                signer=FakeSigner(MOCK_OTHER_PRIVATE_KEY),
                chain=FakeChain(),
            )

    async def test_events(self):
        bus = EventBus()
        seen = []

        async def record(event):
            seen.append(event)

        bus.subscribe(StatusEvent, record)
        new_operator = await rotate_operator(
            session_address=SESSION_ADDRESS,
            controller=MOCK_OWNER_ADDRESS,
            signer=FakeSigner(),
            chain=FakeChain(controllers={SESSION_ADDRESS: MOCK_OWNER_ADDRESS}),
            event_bus=bus,
        )
        assert [type(e).__name__ for e in seen] == ["KeyGeneratedEvent", "OperatorRotatedEvent"]
        assert seen[1].operator == new_operator.address
        assert new_operator.private_key not in seen[0].status
