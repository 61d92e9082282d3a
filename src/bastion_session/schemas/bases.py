"""
Base Schema Models for the Bastion session client

Fundamental base classes and enumerations shared by every other schema model.

Core Classes:
    - SchemaModel: Pydantic base model shared by all schema models
    - ProtocolPhase: Phases of a session-creation / rotation run
    - TransactionStatus: Outcome of a submitted chain transaction
    - BaseTransactionConfirmation: Abstract transaction confirmation model

Dependencies:
    - pydantic: For data validation and serialization
"""

from typing import Dict, Any
from abc import ABC
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class SchemaModel(BaseModel):
    """Pydantic base model for every schema in the package."""

    model_config = ConfigDict(populate_by_name=True)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert model to dictionary representation.

        Returns:
            Dict[str, Any]: Dictionary with all model fields.
        """
        return self.model_dump()


class ProtocolPhase(str, Enum):
    """
    Phases of a protocol run, in the order a session-creation run visits them.

    Errors and status events are tagged with the phase that produced them so
    callers can tell where a run stopped.
    """
    KEY_GENERATION = "key_generation"
    APPROVAL_BUILD = "approval_build"
    SIGNATURE_REQUEST = "signature_request"
    DIGEST_VERIFICATION = "digest_verification"
    ADDRESS_DERIVATION = "address_derivation"
    DELEGATION_AUTHORIZATION = "delegation_authorization"
    ALLOWANCE_SETTLEMENT = "allowance_settlement"
    ACTIVATION = "activation"
    OPERATOR_ROTATION = "operator_rotation"
    CONFIGURATION = "configuration"


class TransactionStatus(str, Enum):
    """
    Enumeration of possible transaction execution statuses.

    Attributes:
        SUCCESS: Transaction executed successfully on-chain
        TIMEOUT: Transaction confirmation timed out
    """
    SUCCESS = "success"
    TIMEOUT = "timeout"


class BaseTransactionConfirmation(SchemaModel, ABC):
    """
    Abstract base class for blockchain transaction confirmation/receipt data.

    Attributes:
        confirmation_type: Type of confirmation (e.g., "evm")
        status: Transaction execution status (TransactionStatus enum)
        confirmations: Number of block confirmations
        created_at: Timestamp when confirmation was recorded
    """

    confirmation_type: str = Field(..., description="Type of confirmation (e.g., evm)")
    status: TransactionStatus = Field(..., description="Transaction execution status")
    confirmations: int = Field(default=0, ge=0, description="Number of block confirmations")
    created_at: datetime = Field(default_factory=datetime.now, description="Confirmation recording timestamp")

    def is_success(self) -> bool:
        """Return True if the transaction executed successfully on-chain."""
        return self.status == TransactionStatus.SUCCESS

