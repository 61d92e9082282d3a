from .bases import (
    SchemaModel,
    ProtocolPhase,
    TransactionStatus,
    BaseTransactionConfirmation,
)

__all__ = [
    "SchemaModel",
    "ProtocolPhase",
    "TransactionStatus",
    "BaseTransactionConfirmation",
]
