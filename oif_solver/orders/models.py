"""
Order lifecycle models.

Orders are immutable snapshots. The store produces a new ``Order`` for every
transition, so a value handed to a caller never changes underneath it.
"""
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Tuple, Dict, Any


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromisoformat(value)


class OrderStatus(str, Enum):
    """Order lifecycle status."""
    PENDING = "pending"        # Accepted, waiting for fill
    PROCESSING = "processing"  # An operation is in flight
    FILLED = "filled"          # Filled on destination, waiting for finalization
    FINALIZED = "finalized"    # Settled on origin (terminal)
    FAILED = "failed"          # Last operation failed, manual action needed


@dataclass(frozen=True)
class MandateOutput:
    """
    A single output the filler must deliver on the destination chain.

    ``remote_oracle``, ``remote_filler``, ``token`` and ``recipient`` are
    32-byte hex values. ``remote_call`` and ``fulfillment_context`` are
    arbitrary hex-encoded bytes.
    """
    remote_oracle: str
    remote_filler: str
    chain_id: int
    token: str
    amount: int
    recipient: str
    remote_call: str = "0x"
    fulfillment_context: str = "0x"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "remote_oracle": self.remote_oracle,
            "remote_filler": self.remote_filler,
            "chain_id": str(self.chain_id),
            "token": self.token,
            "amount": str(self.amount),
            "recipient": self.recipient,
            "remote_call": self.remote_call,
            "fulfillment_context": self.fulfillment_context,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MandateOutput":
        return cls(
            remote_oracle=data["remote_oracle"],
            remote_filler=data["remote_filler"],
            chain_id=int(data["chain_id"]),
            token=data["token"],
            amount=int(data["amount"]),
            recipient=data["recipient"],
            remote_call=data.get("remote_call") or "0x",
            fulfillment_context=data.get("fulfillment_context") or "0x",
        )


@dataclass(frozen=True)
class StandardOrder:
    """
    The signed intent as the maker submitted it.

    Attributes:
        user: Maker address
        nonce: Maker nonce
        origin_chain_id: Chain the inputs are locked on
        destination_chain_id: Chain the outputs are delivered on
        expires: Unix timestamp after which the order cannot settle
        fill_deadline: Unix timestamp after which the order cannot be filled
        local_oracle: Oracle address on the origin chain
        inputs: ``(token_id, amount)`` pairs locked by the maker
        outputs: Outputs the solver must deliver
    """
    user: str
    nonce: int
    origin_chain_id: int
    destination_chain_id: int
    expires: int
    fill_deadline: int
    local_oracle: str
    inputs: Tuple[Tuple[int, int], ...] = ()
    outputs: Tuple[MandateOutput, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        # Integers are strings so uint256 values survive JSON readers
        return {
            "user": self.user,
            "nonce": str(self.nonce),
            "origin_chain_id": str(self.origin_chain_id),
            "destination_chain_id": str(self.destination_chain_id),
            "expires": self.expires,
            "fill_deadline": self.fill_deadline,
            "local_oracle": self.local_oracle,
            "inputs": [[str(token_id), str(amount)] for token_id, amount in self.inputs],
            "outputs": [output.to_dict() for output in self.outputs],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StandardOrder":
        return cls(
            user=data["user"],
            nonce=int(data["nonce"]),
            origin_chain_id=int(data["origin_chain_id"]),
            destination_chain_id=int(data["destination_chain_id"]),
            expires=int(data["expires"]),
            fill_deadline=int(data["fill_deadline"]),
            local_oracle=data["local_oracle"],
            inputs=tuple(
                (int(token_id), int(amount)) for token_id, amount in data.get("inputs", [])
            ),
            outputs=tuple(
                MandateOutput.from_dict(output) for output in data.get("outputs", [])
            ),
        )


@dataclass(frozen=True)
class ErrorDetail:
    """Why the last operation on an order failed."""
    kind: str
    message: str
    operation: Optional[str] = None
    occurred_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "message": self.message,
            "operation": self.operation,
            "occurred_at": self.occurred_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ErrorDetail":
        return cls(
            kind=data["kind"],
            message=data["message"],
            operation=data.get("operation"),
            occurred_at=_parse_time(data.get("occurred_at")) or utcnow(),
        )


@dataclass(frozen=True)
class Order:
    """
    Tracked order.

    Only ``OrderStore`` creates new versions of an order; everyone else
    reads snapshots.
    """
    id: str
    intent: StandardOrder
    signature: str
    status: OrderStatus = OrderStatus.PENDING

    # Execution references
    fill_tx_ref: Optional[str] = None
    finalize_tx_ref: Optional[str] = None
    filled_at: Optional[datetime] = None

    error_detail: Optional[ErrorDetail] = None

    # Timing
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.status == OrderStatus.FINALIZED

    def evolve(self, **changes) -> "Order":
        """Return a copy with ``changes`` applied."""
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "intent": self.intent.to_dict(),
            "signature": self.signature,
            "status": self.status.value,
            "fill_tx_ref": self.fill_tx_ref,
            "finalize_tx_ref": self.finalize_tx_ref,
            "filled_at": self.filled_at.isoformat() if self.filled_at else None,
            "error_detail": self.error_detail.to_dict() if self.error_detail else None,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Order":
        error = data.get("error_detail")
        return cls(
            id=data["id"],
            intent=StandardOrder.from_dict(data["intent"]),
            signature=data["signature"],
            status=OrderStatus(data["status"]),
            fill_tx_ref=data.get("fill_tx_ref"),
            finalize_tx_ref=data.get("finalize_tx_ref"),
            filled_at=_parse_time(data.get("filled_at")),
            error_detail=ErrorDetail.from_dict(error) if error else None,
            created_at=_parse_time(data["created_at"]),
            updated_at=_parse_time(data["updated_at"]),
        )


@dataclass(frozen=True)
class QueueStatus:
    """Number of orders per status."""
    total: int = 0
    pending: int = 0
    processing: int = 0
    filled: int = 0
    finalized: int = 0
    failed: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "pending": self.pending,
            "processing": self.processing,
            "filled": self.filled,
            "finalized": self.finalized,
            "failed": self.failed,
        }
