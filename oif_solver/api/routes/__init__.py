"""
API routes module.
"""
from .orders import router as orders_router
from .system import router as system_router

__all__ = [
    "orders_router",
    "system_router",
]
