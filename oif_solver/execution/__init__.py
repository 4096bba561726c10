"""
Execution engines: direct chain access and relayed submission.
"""
from .types import (
    Async,
    ChainType,
    ExecutionContext,
    ExecutionEngine,
    ExecutionPriority,
    ExecutionResult,
    GasParams,
    Immediate,
    RelayStatus,
    RelayStatusReport,
    TransportType,
)
from .polling import wait_for_completion
from .direct import DirectExecutor
from .relayer import RelayerExecutor
from .factory import ExecutionEngineFactory

__all__ = [
    "Async",
    "ChainType",
    "DirectExecutor",
    "ExecutionContext",
    "ExecutionEngine",
    "ExecutionEngineFactory",
    "ExecutionPriority",
    "ExecutionResult",
    "GasParams",
    "Immediate",
    "RelayStatus",
    "RelayStatusReport",
    "RelayerExecutor",
    "TransportType",
    "wait_for_completion",
]
