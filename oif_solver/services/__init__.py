"""
Order lifecycle services: events, orchestration, monitoring and the solver facade.
"""
from .events import EventBus, EventType, OrderEvent, Subscription
from .orchestrator import OperationPlan, OrderOrchestrator
from .monitor import MonitorConfig, OrderMonitor
from .solver import SolverService

__all__ = [
    "EventBus",
    "EventType",
    "MonitorConfig",
    "OperationPlan",
    "OrderEvent",
    "OrderMonitor",
    "OrderOrchestrator",
    "SolverService",
    "Subscription",
]
