from bastion_session import BastionAdapter, BastionConfig, EventBus, StatusEvent

# Reads BASTION_RPC_URL, BASTION_FACTORY_ADDRESS, BASTION_WALLET_BACKEND, ...
config = BastionConfig.from_env()

USDC = "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238"


async def print_status(event: StatusEvent):
    print(event.status)


async def main():
    bus = EventBus()
    bus.subscribe(StatusEvent, print_status)

    adapter = BastionAdapter.from_config(config, event_bus=bus)
    session = await adapter.create_session(token=USDC, amount="0.8")

    # The operator needs gas before it can submit the activation transaction.
    print("Fund operator:", session.operator.address)
    input("Press enter once funded...")

    return await adapter.activate(session)


if __name__ == "__main__":
    import asyncio
    session = asyncio.run(main())
    print("Session account:", session.session_address)
    print("Activation tx:", session.activation_tx_hash)
