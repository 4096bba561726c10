"""
Order orchestration.

One orchestrator per operation. It reserves an order with a compare-and-set
transition, encodes and submits the call, waits for asynchronous relays, and
records the outcome. Failures always end in the Failed state; nothing is
retried automatically.
"""
import logging
import time
from dataclasses import dataclass
from typing import Optional, Set

from oif_solver.contracts.encoding import CallEncoder, Operation
from oif_solver.exceptions import ExecutionError
from oif_solver.execution.polling import wait_for_completion
from oif_solver.execution.types import (
    Async,
    ChainType,
    ExecutionContext,
    ExecutionEngine,
    ExecutionPriority,
    GasParams,
)
from oif_solver.orders.models import ErrorDetail, Order, OrderStatus
from oif_solver.orders.store import OrderStore
from oif_solver.services.events import EventBus, EventType, OrderEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OperationPlan:
    """Where and how an operation is sent."""
    operation: Operation
    chain: ChainType
    target: str
    gas: GasParams


class OrderOrchestrator:
    """
    Drives a single operation (fill or finalize) for one order at a time.

    Typical use from a scheduler::

        order = orchestrator.reserve(order_id)   # synchronous CAS
        asyncio.create_task(orchestrator.run(order))
    """

    def __init__(
        self,
        plan: OperationPlan,
        store: OrderStore,
        encoder: CallEncoder,
        engine: ExecutionEngine,
        events: Optional[EventBus] = None,
        timeout_seconds: float = 300.0,
        poll_interval: float = 5.0,
        critical_window_seconds: int = 300,
    ):
        self.plan = plan
        self.store = store
        self.encoder = encoder
        self.engine = engine
        self.events = events
        self.timeout_seconds = timeout_seconds
        self.poll_interval = poll_interval
        self.critical_window_seconds = critical_window_seconds

        self.in_flight: Set[str] = set()

    @property
    def operation(self) -> Operation:
        return self.plan.operation

    def reserve(self, order_id: str, allow_retry: bool = False) -> Order:
        """
        Claim an order for this operation.

        Args:
            order_id: Order to claim
            allow_retry: For finalize, also accept a Failed order that
                already has a fill

        Returns:
            The order, now in Processing

        Raises:
            ConflictError: If the order is not in the required state
            NotFoundError: If the id is unknown
        """
        if self.operation == Operation.FILL:
            order = self.store.begin_fill(order_id)
        elif allow_retry and self.store.get(order_id).status == OrderStatus.FAILED:
            order = self.store.retry_finalize(order_id)
        else:
            order = self.store.begin_finalize(order_id)

        self.in_flight.add(order_id)
        logger.info(f"Order {order_id} reserved for {self.operation.value}")
        return order

    async def execute(self, order_id: str, allow_retry: bool = False) -> Order:
        """Reserve and run in one step."""
        order = self.reserve(order_id, allow_retry=allow_retry)
        return await self.run(order)

    async def run(self, order: Order) -> Order:
        """
        Perform the operation on a reserved order.

        Returns:
            The order in its new state (Filled, Finalized or Failed)
        """
        try:
            try:
                tx_ref = await self._perform(order)
            except Exception as e:
                return self._fail(order, e)
            try:
                return self._succeed(order, tx_ref)
            except Exception as e:
                logger.warning(
                    f"Order {order.id} {self.operation.value} sent as {tx_ref} "
                    f"but recording the outcome failed"
                )
                return self._fail(order, e)
        finally:
            self.in_flight.discard(order.id)

    def build_context(self, order: Order) -> ExecutionContext:
        remaining = order.intent.expires - int(time.time())
        if remaining < self.critical_window_seconds:
            priority = ExecutionPriority.CRITICAL
        else:
            priority = ExecutionPriority.NORMAL
        return ExecutionContext(
            priority=priority,
            timeout_seconds=self.timeout_seconds,
            metadata={
                "order_id": order.id,
                "order_nonce": str(order.intent.nonce),
                "origin_chain": str(order.intent.origin_chain_id),
                "operation": self.operation.value,
            },
            request_id=order.id,
        )

    def _check_preconditions(self, order: Order) -> None:
        now = int(time.time())
        if self.operation == Operation.FILL:
            if order.intent.fill_deadline <= now:
                raise ExecutionError(f"Fill deadline {order.intent.fill_deadline} has passed")
        else:
            if order.fill_tx_ref is None:
                raise ExecutionError("Order has no fill transaction to settle")
            if order.intent.expires <= now:
                raise ExecutionError(f"Order expired at {order.intent.expires}")

    async def _perform(self, order: Order) -> str:
        self._check_preconditions(order)
        call_data = self.encoder.encode(self.operation, order)

        result = await self.engine.submit(
            self.plan.chain,
            call_data,
            self.plan.target,
            self.plan.gas,
            self.build_context(order),
        )

        if isinstance(result, Async):
            logger.info(
                f"Order {order.id} {self.operation.value} relayed as {result.request_id} "
                f"({result.initial_status.value}), waiting for completion"
            )
            try:
                report = await wait_for_completion(
                    self.engine, result.request_id, self.timeout_seconds, self.poll_interval
                )
            except Exception:
                self.engine.forget(result.request_id)
                raise
            return report.tx_hash or result.request_id

        return result.tx_ref

    def _succeed(self, order: Order, tx_ref: str) -> Order:
        if self.operation == Operation.FILL:
            updated = self.store.fill_succeeded(order.id, tx_ref)
            event_type = EventType.ORDER_FILLED
        else:
            updated = self.store.finalize_succeeded(order.id, tx_ref)
            event_type = EventType.ORDER_FINALIZED

        logger.info(f"Order {order.id} {self.operation.value} succeeded: {tx_ref}")
        self._publish(event_type, updated)
        return updated

    def _fail(self, order: Order, error: Exception) -> Order:
        kind = getattr(error, "kind", type(error).__name__)
        if not hasattr(error, "kind"):
            logger.error(f"Unexpected error during {self.operation.value} of {order.id}", exc_info=True)
        else:
            logger.warning(f"Order {order.id} {self.operation.value} failed: {kind}: {error}")

        detail = ErrorDetail(kind=kind, message=str(error), operation=self.operation.value)
        updated = self.store.operation_failed(order.id, detail)
        self._publish(EventType.ORDER_FAILED, updated)
        return updated

    def _publish(self, event_type: EventType, order: Order) -> None:
        if self.events is not None:
            self.events.publish(OrderEvent.from_order(event_type, order))
