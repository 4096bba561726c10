"""
Pydantic models for API requests and responses.
"""
from .requests import MandateOutputRequest, StandardOrderRequest, SubmitOrderRequest
from .responses import (
    ErrorDetailResponse,
    HealthResponse,
    OrderActionResponse,
    OrderListResponse,
    OrderResponse,
    QueueStatusResponse,
    SubmitOrderResponse,
)

__all__ = [
    "ErrorDetailResponse",
    "HealthResponse",
    "MandateOutputRequest",
    "OrderActionResponse",
    "OrderListResponse",
    "OrderResponse",
    "QueueStatusResponse",
    "StandardOrderRequest",
    "SubmitOrderRequest",
    "SubmitOrderResponse",
]
