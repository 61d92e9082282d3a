"""
Bastion Session Adapter

``BastionAdapter`` drives one client session against the Bastion factory:

    generate operator -> build approval -> sign -> verify -> derive (retry on
    zero address) -> authorize delegation -> settle allowance -> activate

Rotation is a separate, later call that reuses the key generator and the
wallet. Every step is awaited in order; a failure aborts the run and
propagates with the phase it was raised in.
"""

import logging
from decimal import Decimal
from typing import Optional, Union, TYPE_CHECKING

from .schemas import OperatorKey, SessionResult, ContractCall
from .signatures import generate_operator_key, build_approval
from .verifies import authorize_delegation
from .derivation import derive_session_address
from .allowance import settle_allowance
from .rotation import rotate_operator
from .chain import Web3ChainClient
from .constants import amount_to_value, checksum_address, get_chain_info
from .BASTION_ABI import get_factory_abi
from .ERC20_ABI import get_mint_abi
from ..bases import SignerAdapter, ChainClient
from ...engine.events import (
    EventBus,
    publish,
    KeyGeneratedEvent,
    DelegationAuthorizedEvent,
    ActivationCompleteEvent,
)
from ...engine.exceptions import (
    ChainReadFailed,
    ConfigurationError,
    OperatorUnderfunded,
    WalletRequestFailed,
)
from ...schemas.bases import ProtocolPhase

if TYPE_CHECKING:
    from ...config import BastionConfig

logger = logging.getLogger(__name__)


class BastionAdapter:
    """
    Client-side session-key protocol against the Bastion factory.

    Attributes:
        config: Explicit client configuration.
        signer: Connected wallet backend.
        chain:  Chain read/write client.
        event_bus: Optional bus receiving status events.

    Example:
        config = BastionConfig.from_env()
        adapter = BastionAdapter.from_config(config)
        session = await adapter.create_session(token=USDC, amount="100")
        session = await adapter.activate(session)
        print(session.session_address, session.operator.private_key)
    """

    def __init__(
        self,
        config: "BastionConfig",
        *,
        signer: SignerAdapter,
        chain: ChainClient,
        event_bus: Optional[EventBus] = None,
    ):
        self.config = config
        self.signer = signer
        self.chain = chain
        self.event_bus = event_bus

    @classmethod
    def from_config(cls, config: "BastionConfig", *, event_bus: Optional[EventBus] = None) -> "BastionAdapter":
        """Build the web3 chain client and the configured wallet backend."""
        # signers imports evm.constants, so the backend factory resolves late
        from ..signers import create_signer

        chain = Web3ChainClient(config.rpc_url, request_timeout=config.request_timeout)
        return cls(config, signer=create_signer(config), chain=chain, event_bus=event_bus)

    @property
    def factory(self) -> str:
        return self.config.factory_address

    # ------------------------------------------------------------------
    # Connected context
    # ------------------------------------------------------------------

    async def get_owner(self) -> str:
        """Primary account of the connected wallet."""
        addresses = await self.signer.get_addresses()
        if not addresses:
            raise WalletRequestFailed("Wallet exposes no accounts", phase=ProtocolPhase.SIGNATURE_REQUEST)
        return checksum_address(addresses[0], field_name="owner")

    async def get_chain_id(self) -> int:
        """
        Chain id of the connected wallet.

        Raises:
            ConfigurationError: If the wallet is on a different chain than
                ``config.chain_id``.
        """
        chain_id = await self.signer.get_chain_id()
        if chain_id != self.config.chain_id:
            expected = get_chain_info(self.config.chain_id)["name"]
            raise ConfigurationError(
                f"Wallet is connected to chain {chain_id}; switch to {expected} ({self.config.chain_id})",
                details={"connected": chain_id, "expected": self.config.chain_id},
            )
        return chain_id

    async def get_implementation(self) -> str:
        return await self.chain.read_contract(self.factory, get_factory_abi(), "impl")

    # ------------------------------------------------------------------
    # Session creation
    # ------------------------------------------------------------------

    async def generate_operator(self) -> OperatorKey:
        """Generate an operator key and announce its address."""
        operator = generate_operator_key()
        await publish(self.event_bus, KeyGeneratedEvent(
            message=f"Operator {operator.address}",
            operator=operator.address,
        ))
        return operator

    async def create_session(
        self,
        *,
        token: str,
        amount: Union[str, int, Decimal],
        operator: Optional[OperatorKey] = None,
        salt: Optional[str] = None,
    ) -> SessionResult:
        """
        Run the protocol up to (not including) activation.

        Args:
            token:    ERC-20 token the allowance is scoped to.
            amount:   Human-readable amount, scaled by ``config.amount_decimals``.
            operator: Operator key; a fresh one is generated when omitted.
            salt:     First salt; drawn from the OS CSPRNG when omitted.

        Returns:
            ``SessionResult`` with the derived session address, the delegation
            authorization and the operator key.

        Raises:
            InvalidAddress, InvalidAmount: Approval inputs are invalid.
            DigestMismatch, SignerMismatch, MalformedSignature: Verification failed.
            DerivationExhausted: Every derivation attempt was degenerate.
            AuthorizationMismatch: Delegation authority is not the session address.
            AllowanceUpdateFailed: Allowance could not be raised.
        """
        owner = await self.get_owner()
        chain_id = await self.get_chain_id()

        if operator is None:
            operator = await self.generate_operator()

        approval = build_approval(
            operator=operator.address,
            token=token,
            amount=amount,
            allowed_origin=self.config.allowed_origin,
            salt=salt,
            decimals=self.config.amount_decimals,
        )

        derivation = await derive_session_address(
            approval=approval,
            owner=owner,
            chain_id=chain_id,
            factory=self.factory,
            signer=self.signer,
            chain=self.chain,
            max_attempts=self.config.max_derivation_attempts,
            event_bus=self.event_bus,
        )

        implementation = await self.get_implementation()
        authorization = authorize_delegation(
            derivation.signature,
            chain_id=chain_id,
            implementation=implementation,
            session_address=derivation.session_address,
        )
        await publish(self.event_bus, DelegationAuthorizedEvent(
            message=f"Delegation of {derivation.session_address} to {implementation} verified",
            implementation=implementation,
        ))

        allowance = await settle_allowance(
            owner=owner,
            token=derivation.approval.token,
            spender=self.factory,
            amount=derivation.approval.amount,
            signer=self.signer,
            chain=self.chain,
            event_bus=self.event_bus,
        )

        return SessionResult(
            owner=owner,
            operator=operator,
            approval=derivation.approval,
            signature=derivation.signature,
            chain_id=chain_id,
            factory=self.factory,
            session_address=derivation.session_address,
            implementation=implementation,
            authorization=authorization,
            allowance=allowance,
            attempts=derivation.attempts,
        )

    # ------------------------------------------------------------------
    # Activation
    # ------------------------------------------------------------------

    async def get_operator_balance(self, address: str) -> Optional[int]:
        """Native balance in wei, or ``None`` when it cannot be read."""
        try:
            return await self.chain.get_balance(address)
        except ChainReadFailed as e:
            logger.warning("Balance of %s unknown: %s", address, e)
            return None

    async def activate(self, session: SessionResult) -> SessionResult:
        """
        Submit ``checkSig`` from the operator with the delegation authorization.

        The operator must be able to pay for gas: a known balance below
        ``config.min_operator_balance_wei`` aborts; an unknown balance does not.

        Raises:
            OperatorUnderfunded: Operator balance is known and too low.
            TransactionFailed:   The activation transaction failed.
        """
        operator = session.operator
        balance = await self.get_operator_balance(operator.address)
        if balance is not None and balance < self.config.min_operator_balance_wei:
            raise OperatorUnderfunded(
                f"Operator {operator.address} holds {balance} wei; "
                f"at least {self.config.min_operator_balance_wei} wei is required",
                details={"balance": balance, "required": self.config.min_operator_balance_wei},
            )

        signature = session.signature
        call = ContractCall(
            address=session.factory,
            abi=get_factory_abi(),
            function_name="checkSig",
            args=(
                session.approval.to_contract_tuple(),
                session.chain_id,
                signature.v,
                signature.r_bytes(),
                signature.s_bytes(),
            ),
            sender=operator.address,
        )
        tx_hash = await self.chain.send_set_code_transaction(
            private_key=operator.private_key,
            call=call,
            authorizations=[session.authorization.to_authorization_list_entry()],
            chain_id=session.chain_id,
        )
        await self.chain.wait_for_confirmation(tx_hash)

        await publish(self.event_bus, ActivationCompleteEvent(
            message=f"Session account {session.session_address} activated",
            tx_hash=tx_hash,
        ))
        return session.model_copy(update={"activation_tx_hash": tx_hash})

    # ------------------------------------------------------------------
    # Later-stage operations
    # ------------------------------------------------------------------

    async def rotate_operator(
        self,
        session_address: str,
        *,
        new_operator: Optional[OperatorKey] = None,
    ) -> OperatorKey:
        """Replace the operator of ``session_address``; the wallet's account is the controller."""
        controller = await self.get_owner()
        return await rotate_operator(
            session_address=session_address,
            controller=controller,
            signer=self.signer,
            chain=self.chain,
            new_operator=new_operator,
            event_bus=self.event_bus,
        )

    async def mint_mock_token(self, to: str, amount: Union[str, int, Decimal]) -> str:
        """
        Mint test tokens from ``config.mock_token_address``.

        Raises:
            ConfigurationError: No mock token configured.
        """
        token = self.config.mock_token_address
        if not token:
            raise ConfigurationError("mock_token_address is not configured")

        value = amount_to_value(amount=amount, decimals=self.config.amount_decimals)
        sender = await self.get_owner()
        call = ContractCall(
            address=token,
            abi=get_mint_abi(),
            function_name="mint",
            args=(checksum_address(to, field_name="to"), value),
            sender=sender,
        )
        tx_hash = await self.chain.simulate_then_send(call, self.signer)
        await self.chain.wait_for_confirmation(tx_hash)
        logger.info("Minted %d units of %s to %s", value, token, to)
        return tx_hash
