"""
Order lifecycle events.

Publishing never blocks: each subscriber has a bounded queue and events that
do not fit are dropped and counted for that subscriber.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import AsyncIterator, Dict, List, Optional

from oif_solver.orders.models import Order, OrderStatus, utcnow

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    ORDER_RECEIVED = "order_received"
    ORDER_FILLED = "order_filled"
    ORDER_FINALIZED = "order_finalized"
    ORDER_FAILED = "order_failed"
    ORDER_REQUEUED = "order_requeued"


@dataclass(frozen=True)
class OrderEvent:
    """Something happened to an order."""
    type: EventType
    order_id: str
    status: OrderStatus
    tx_ref: Optional[str] = None
    error: Optional[str] = None
    timestamp: datetime = field(default_factory=utcnow)

    @classmethod
    def from_order(cls, event_type: EventType, order: Order) -> "OrderEvent":
        tx_ref = order.finalize_tx_ref or order.fill_tx_ref
        error = None
        if order.error_detail:
            error = f"{order.error_detail.kind}: {order.error_detail.message}"
        return cls(
            type=event_type,
            order_id=order.id,
            status=order.status,
            tx_ref=tx_ref,
            error=error,
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            "type": self.type.value,
            "order_id": self.order_id,
            "status": self.status.value,
            "tx_ref": self.tx_ref,
            "error": self.error,
            "timestamp": self.timestamp.isoformat(),
        }


class Subscription:
    """A subscriber's view of the bus."""

    def __init__(self, name: str, maxsize: int):
        self.name = name
        self.queue: "asyncio.Queue[OrderEvent]" = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    async def get(self) -> OrderEvent:
        return await self.queue.get()

    def get_nowait(self) -> OrderEvent:
        return self.queue.get_nowait()

    async def __aiter__(self) -> AsyncIterator[OrderEvent]:
        while True:
            yield await self.queue.get()


class EventBus:
    """
    Broadcasts order events to subscribers.

    Features:
    - Bounded buffering per subscriber
    - Non-blocking publish with drop counting
    """

    def __init__(self, buffer_size: int = 256):
        self.buffer_size = buffer_size
        self._subscriptions: List[Subscription] = []
        self.published = 0

    def subscribe(self, name: str = "subscriber") -> Subscription:
        subscription = Subscription(name, self.buffer_size)
        self._subscriptions.append(subscription)
        logger.debug(f"Event subscriber registered: {name}")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def publish(self, event: OrderEvent) -> None:
        """Deliver ``event`` to every subscriber that has room for it."""
        self.published += 1
        for subscription in list(self._subscriptions):
            try:
                subscription.queue.put_nowait(event)
            except asyncio.QueueFull:
                subscription.dropped += 1
                logger.debug(
                    f"Subscriber {subscription.name} is full, dropped {event.type.value} "
                    f"for order {event.order_id}"
                )

    def stats(self) -> Dict[str, object]:
        return {
            "published": self.published,
            "subscribers": {
                s.name: {"queued": s.queue.qsize(), "dropped": s.dropped}
                for s in self._subscriptions
            },
        }


async def log_events(subscription: Subscription) -> None:
    """Write every event from ``subscription`` to the log until cancelled."""
    async for event in subscription:
        if event.type == EventType.ORDER_FAILED:
            logger.warning(f"Order {event.order_id} failed: {event.error}")
        else:
            suffix = f" ({event.tx_ref})" if event.tx_ref else ""
            logger.info(f"Order {event.order_id}: {event.type.value}{suffix}")
