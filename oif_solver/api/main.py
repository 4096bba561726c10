"""
FastAPI application for the solver API.
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from oif_solver import __version__
from oif_solver.api.routes import orders_router, system_router
from oif_solver.services.solver import SolverService


def create_app(solver: SolverService) -> FastAPI:
    """
    Build the API around a solver.

    The solver's lifecycle is owned by the caller; the app only serves it.
    """
    app = FastAPI(
        title="OIF Solver API",
        description="Order submission and lifecycle API for the cross-chain solver",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.solver = solver

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(orders_router)
    app.include_router(system_router)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": "OIF Solver API",
            "version": __version__,
            "docs": "/docs",
            "endpoints": [
                "POST /api/v1/orders",
                "GET /api/v1/orders",
                "GET /api/v1/orders/{id}",
                "POST /api/v1/orders/{id}/finalize",
                "POST /api/v1/orders/{id}/requeue",
                "POST /api/v1/orders/{id}/abandon",
                "GET /api/v1/queue",
                "GET /api/v1/health",
            ],
        }

    return app
