"""
Queue and health routes.
"""
from fastapi import APIRouter, Depends

from oif_solver.api.dependencies import get_solver
from oif_solver.api.models import HealthResponse, QueueStatusResponse
from oif_solver.services.solver import SolverService

router = APIRouter(prefix="/api/v1", tags=["System"])


@router.get("/queue", response_model=QueueStatusResponse)
async def get_queue_status(solver: SolverService = Depends(get_solver)) -> QueueStatusResponse:
    """Number of orders in each status."""
    return QueueStatusResponse.from_status(solver.queue_status())


@router.get("/health", response_model=HealthResponse)
async def health_check(solver: SolverService = Depends(get_solver)) -> HealthResponse:
    """Service health."""
    return HealthResponse(**solver.health())
