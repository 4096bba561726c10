"""
Response models for the solver API.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from oif_solver.orders.models import Order, QueueStatus


class ErrorDetailResponse(BaseModel):
    kind: str
    message: str
    operation: Optional[str] = None
    occurred_at: datetime


class OrderResponse(BaseModel):
    """Order state."""
    id: str
    status: str
    intent: Dict[str, Any]
    fill_tx_ref: Optional[str] = None
    finalize_tx_ref: Optional[str] = None
    filled_at: Optional[datetime] = None
    error_detail: Optional[ErrorDetailResponse] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_order(cls, order: Order) -> "OrderResponse":
        error = None
        if order.error_detail:
            error = ErrorDetailResponse(
                kind=order.error_detail.kind,
                message=order.error_detail.message,
                operation=order.error_detail.operation,
                occurred_at=order.error_detail.occurred_at,
            )
        return cls(
            id=order.id,
            status=order.status.value,
            intent=order.intent.to_dict(),
            fill_tx_ref=order.fill_tx_ref,
            finalize_tx_ref=order.finalize_tx_ref,
            filled_at=order.filled_at,
            error_detail=error,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class OrderListResponse(BaseModel):
    orders: List[OrderResponse]
    count: int


class SubmitOrderResponse(BaseModel):
    id: str
    status: str
    message: str


class OrderActionResponse(BaseModel):
    """Result of a manual action on an order."""
    id: str
    status: str
    message: str


class QueueStatusResponse(BaseModel):
    total: int
    pending: int
    processing: int
    filled: int
    finalized: int
    failed: int

    @classmethod
    def from_status(cls, status: QueueStatus) -> "QueueStatusResponse":
        return cls(**status.to_dict())


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    timestamp: str
    transport: str
    monitor: Dict[str, Any]
    events: Dict[str, Any]
