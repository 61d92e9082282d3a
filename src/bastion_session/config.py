"""
Client configuration.

``BastionConfig`` gathers everything a run needs (RPC endpoint, contract
addresses, allow-listed origin, wallet backend) into one explicit object
passed to ``BastionAdapter``. ``from_env`` reads ``BASTION_*`` variables,
loading a ``.env`` file first when one is present.
"""

import os
from typing import Literal, Optional

import dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .adapters.evm.constants import (
    SEPOLIA_CHAIN_ID,
    DEFAULT_ALLOWED_ORIGIN,
    DEFAULT_AMOUNT_DECIMALS,
    DEFAULT_MIN_OPERATOR_BALANCE_WEI,
    MAX_DERIVATION_ATTEMPTS,
    checksum_address,
)
from .engine.exceptions import ConfigurationError, InvalidAddress

WalletBackend = Literal["injected", "embedded", "remote"]

ENV_PREFIX = "BASTION_"


class BastionConfig(BaseModel):
    """
    Explicit configuration for one client session.

    Attributes:
        rpc_url: JSON-RPC endpoint used for chain reads and receipts.
        factory_address: Bastion factory contract.
        chain_id: Expected chain id.
        allowed_origin: Origin string hashed into the approval ``domain``.
        wallet_backend: Which ``SignerAdapter`` to build.
        wallet_rpc_url: Wallet JSON-RPC endpoint for the injected backend.
        embedded_private_key: Owner key for the embedded backend.
        remote_custody_url / remote_custody_token / remote_custody_account:
            Remote custody API settings.
        mock_token_address: Test token exposing ``mint(to, amount)``.
        amount_decimals: Base-unit scaling for approval amounts.
        max_derivation_attempts: Salt-mutation bound.
        min_operator_balance_wei: Activation balance floor.
        request_timeout: HTTP timeout in seconds.
    """

    model_config = ConfigDict(frozen=True)

    rpc_url: str
    factory_address: str
    chain_id: int = Field(default=SEPOLIA_CHAIN_ID, gt=0)
    allowed_origin: str = DEFAULT_ALLOWED_ORIGIN
    wallet_backend: WalletBackend = "injected"
    wallet_rpc_url: Optional[str] = None
    embedded_private_key: Optional[str] = Field(default=None, repr=False)
    remote_custody_url: Optional[str] = None
    remote_custody_token: Optional[str] = Field(default=None, repr=False)
    remote_custody_account: Optional[str] = None
    mock_token_address: Optional[str] = None
    amount_decimals: int = Field(default=DEFAULT_AMOUNT_DECIMALS, ge=0)
    max_derivation_attempts: int = Field(default=MAX_DERIVATION_ATTEMPTS, ge=1)
    min_operator_balance_wei: int = Field(default=DEFAULT_MIN_OPERATOR_BALANCE_WEI, ge=0)
    request_timeout: int = Field(default=60, gt=0)

    @field_validator("rpc_url")
    @classmethod
    def _require_rpc_url(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("rpc_url must not be empty")
        return value.strip()

    @field_validator("factory_address", "mock_token_address", "remote_custody_account")
    @classmethod
    def _checksum(cls, value: Optional[str], info) -> Optional[str]:
        if value is None or value == "":
            if info.field_name == "factory_address":
                raise ValueError("factory_address must not be empty")
            return None
        try:
            return checksum_address(value, field_name=info.field_name)
        except InvalidAddress as e:
            raise ValueError(e.message) from e

    @model_validator(mode="after")
    def _check_backend(self) -> "BastionConfig":
        if self.wallet_backend == "embedded" and not self.embedded_private_key:
            raise ValueError("embedded wallet backend requires embedded_private_key")
        if self.wallet_backend == "remote" and not self.remote_custody_url:
            raise ValueError("remote wallet backend requires remote_custody_url")
        return self

    @classmethod
    def from_env(cls, env_file: Optional[str] = None, **overrides) -> "BastionConfig":
        """
        Build a config from ``BASTION_*`` environment variables.

        Args:
            env_file: ``.env`` path; the nearest ``.env`` is searched when omitted.
            **overrides: Field values taking precedence over the environment.

        Raises:
            ConfigurationError: Required values are missing or invalid.
        """
        dotenv.load_dotenv(env_file or dotenv.find_dotenv(usecwd=True))

        values = {}
        for name in cls.model_fields:
            raw = os.getenv(ENV_PREFIX + name.upper())
            if raw is not None and raw != "":
                values[name] = raw
        values.update({k: v for k, v in overrides.items() if v is not None})

        missing = [name for name in ("rpc_url", "factory_address") if not values.get(name)]
        if missing:
            raise ConfigurationError(
                "Missing configuration: " + ", ".join(ENV_PREFIX + m.upper() for m in missing),
                details={"missing": missing},
            )
        return cls.build(**values)

    @classmethod
    def build(cls, **values) -> "BastionConfig":
        """Construct a config, reporting validation errors as ``ConfigurationError``."""
        try:
            return cls(**values)
        except ValueError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e
