"""
Order model, validation, storage and persistence.
"""
from .models import (
    ErrorDetail,
    MandateOutput,
    Order,
    OrderStatus,
    QueueStatus,
    StandardOrder,
)
from .persistence import SnapshotPersistence
from .store import OrderStore
from .validator import (
    IntentValidator,
    RecoveringSignatureVerifier,
    SignatureVerifier,
    ValidationResult,
)

__all__ = [
    "ErrorDetail",
    "IntentValidator",
    "MandateOutput",
    "Order",
    "OrderStatus",
    "OrderStore",
    "QueueStatus",
    "RecoveringSignatureVerifier",
    "SignatureVerifier",
    "SnapshotPersistence",
    "StandardOrder",
    "ValidationResult",
]
