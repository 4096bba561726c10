"""
Order API routes.
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from oif_solver.api.dependencies import get_solver, valid_order_id
from oif_solver.api.models import (
    OrderActionResponse,
    OrderListResponse,
    OrderResponse,
    SubmitOrderRequest,
    SubmitOrderResponse,
)
from oif_solver.exceptions import ConflictError, NotFoundError, ValidationError
from oif_solver.orders.models import OrderStatus
from oif_solver.services.solver import SolverService

router = APIRouter(prefix="/api/v1/orders", tags=["Orders"])


@router.post("", response_model=SubmitOrderResponse, status_code=201)
async def submit_order(
    request: SubmitOrderRequest,
    solver: SolverService = Depends(get_solver),
) -> SubmitOrderResponse:
    """
    Submit a signed order.

    The order is validated and stored as pending; the monitor fills it on
    its next sweep.
    """
    try:
        order_id = solver.submit(request.order.to_intent(), request.signature)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return SubmitOrderResponse(
        id=order_id,
        status=OrderStatus.PENDING.value,
        message="Order submitted successfully",
    )


@router.get("", response_model=OrderListResponse)
async def list_orders(
    status: Optional[OrderStatus] = Query(None, description="Filter by status"),
    solver: SolverService = Depends(get_solver),
) -> OrderListResponse:
    """List orders in submission order."""
    orders = [OrderResponse.from_order(o) for o in solver.list(status)]
    return OrderListResponse(orders=orders, count=len(orders))


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str = Depends(valid_order_id),
    solver: SolverService = Depends(get_solver),
) -> OrderResponse:
    """Get a single order."""
    try:
        return OrderResponse.from_order(solver.get(order_id))
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Order not found")


@router.post("/{order_id}/finalize", response_model=OrderActionResponse, status_code=202)
async def finalize_order(
    order_id: str = Depends(valid_order_id),
    solver: SolverService = Depends(get_solver),
) -> OrderActionResponse:
    """
    Trigger finalization now.

    Accepted for filled orders and for failed orders that were already
    filled. Settlement completes in the background.
    """
    try:
        order = solver.finalize(order_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Order not found")
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return OrderActionResponse(
        id=order.id,
        status=order.status.value,
        message="Finalization triggered successfully",
    )


@router.post("/{order_id}/requeue", response_model=OrderActionResponse)
async def requeue_order(
    order_id: str = Depends(valid_order_id),
    solver: SolverService = Depends(get_solver),
) -> OrderActionResponse:
    """Move a failed order back to pending."""
    try:
        order = solver.requeue(order_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Order not found")
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return OrderActionResponse(id=order.id, status=order.status.value, message="Order requeued")


@router.post("/{order_id}/abandon", response_model=OrderActionResponse)
async def abandon_order(
    order_id: str = Depends(valid_order_id),
    solver: SolverService = Depends(get_solver),
) -> OrderActionResponse:
    """Mark an order stuck in processing as failed."""
    try:
        order = solver.abandon(order_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Order not found")
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return OrderActionResponse(id=order.id, status=order.status.value, message="Order marked failed")
