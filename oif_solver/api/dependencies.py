"""
Dependency injection for API routes.
"""
import uuid

from fastapi import HTTPException, Request

from oif_solver.services.solver import SolverService


def get_solver(request: Request) -> SolverService:
    """The solver attached to the running app."""
    solver = getattr(request.app.state, "solver", None)
    if solver is None:
        raise HTTPException(status_code=503, detail="Solver not initialized")
    return solver


def valid_order_id(order_id: str) -> str:
    """Reject ids that are not UUIDs before touching the store."""
    try:
        uuid.UUID(order_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid order ID format")
    return order_id
