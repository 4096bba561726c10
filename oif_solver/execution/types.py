"""
Execution engine types.

An engine answers a submission either immediately with a transaction
reference, or with a relay request id the caller must poll.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Protocol, Union


class ChainType(str, Enum):
    """Which side of the cross-chain order a transaction targets."""
    ORIGIN = "origin"
    DESTINATION = "destination"


class TransportType(str, Enum):
    """How transactions reach a chain."""
    DIRECT = "direct"
    RELAYER = "relayer"


class ExecutionPriority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"


class RelayStatus(str, Enum):
    """Status of an asynchronous relay request."""
    QUEUED = "queued"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RelayStatus.CONFIRMED, RelayStatus.FAILED)


@dataclass(frozen=True)
class GasParams:
    gas_limit: int
    gas_price: int


@dataclass
class ExecutionContext:
    """
    Per-call hints for the engine.

    Attributes:
        priority: Urgency, mapped to relayer speed
        timeout_seconds: How long the caller will wait for completion
        metadata: Opaque values forwarded to the relay service
        request_id: Optional caller-side correlation id
    """
    priority: ExecutionPriority = ExecutionPriority.NORMAL
    timeout_seconds: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    request_id: Optional[str] = None


@dataclass(frozen=True)
class Immediate:
    """The transaction is done; ``tx_ref`` is its hash."""
    tx_ref: str


@dataclass(frozen=True)
class Async:
    """The relay accepted the request; poll ``request_id`` for completion."""
    request_id: str
    initial_status: RelayStatus = RelayStatus.QUEUED


ExecutionResult = Union[Immediate, Async]


@dataclass(frozen=True)
class RelayStatusReport:
    """One answer from the relay status endpoint."""
    request_id: str
    status: RelayStatus
    tx_hash: Optional[str] = None
    block_number: Optional[int] = None
    error: Optional[str] = None


class ExecutionEngine(Protocol):
    """
    Submits contract calls to a chain.

    Optional capabilities (``static_call``, ``estimate_gas``) must be checked
    with ``supports_static_call``/``supports_gas_estimation`` before use.
    """

    transport: TransportType

    async def submit(
        self,
        chain: ChainType,
        call_data: bytes,
        target: str,
        gas: GasParams,
        context: Optional[ExecutionContext] = None,
    ) -> ExecutionResult:
        ...

    async def poll_status(self, request_id: str) -> RelayStatusReport:
        ...

    def forget(self, request_id: str) -> None:
        """Drop tracking for a request the caller has given up on."""
        ...

    def supports_static_call(self) -> bool:
        ...

    def supports_gas_estimation(self) -> bool:
        ...

    async def static_call(self, chain: ChainType, call_data: bytes, target: str) -> bytes:
        ...

    async def estimate_gas(self, chain: ChainType, call_data: bytes, target: str) -> int:
        ...

    async def health_check(self) -> bool:
        ...

    async def close(self) -> None:
        ...
