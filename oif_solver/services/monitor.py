"""
Order monitoring loop.

Periodically sweeps the store and dispatches fill and finalize operations.
Each dispatched operation runs in a background task that reserves its order
only after taking a concurrency slot, so a sweep never waits on any single
order and work still queued at shutdown is left untouched.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Dict, Optional, Set

from oif_solver.contracts.encoding import Operation
from oif_solver.exceptions import ConflictError, NotFoundError
from oif_solver.orders.models import Order, OrderStatus, utcnow
from oif_solver.orders.store import OrderStore
from oif_solver.services.orchestrator import OrderOrchestrator

logger = logging.getLogger(__name__)


@dataclass
class MonitorConfig:
    """Configuration for the order monitor."""
    interval_seconds: float = 60.0
    auto_finalize: bool = True
    finalization_delay_seconds: float = 30.0
    max_concurrent_operations: int = 4


class OrderMonitor:
    """
    Background scheduler for order operations.

    Features:
    - Periodic sweeps of pending and filled orders
    - Bounded concurrency across orchestrator tasks
    - Graceful drain of in-flight work on stop
    """

    def __init__(
        self,
        store: OrderStore,
        orchestrators: Dict[Operation, OrderOrchestrator],
        config: MonitorConfig = None,
    ):
        self.store = store
        self.orchestrators = orchestrators
        self.config = config or MonitorConfig()

        # State
        self.running = False
        self._semaphore = asyncio.Semaphore(self.config.max_concurrent_operations)
        self._tasks: Set[asyncio.Task] = set()
        self._queued: Set[str] = set()
        self._stopping = False
        self._sweep_task: Optional[asyncio.Task] = None

        # Stats
        self.sweeps = 0
        self.dispatched = 0
        self.conflicts = 0

    async def start(self) -> None:
        """Start the sweep loop."""
        if self.running:
            logger.warning("Monitor is already running")
            return

        logger.info(
            f"Starting order monitor (interval={self.config.interval_seconds}s, "
            f"auto_finalize={self.config.auto_finalize})"
        )
        self.running = True
        self._stopping = False
        self._sweep_task = asyncio.create_task(self._sweep_loop(), name="order_sweep_loop")

    async def stop(self) -> None:
        """
        Stop sweeping, then wait for in-flight operations to finish.

        In-flight operations are not cancelled; each ends on its own, at the
        latest when its completion timeout elapses. Operations still waiting
        for a slot are dropped and their orders keep their current status.
        """
        self._stopping = True
        if self.running:
            logger.info("Stopping order monitor...")
            self.running = False

            if self._sweep_task and not self._sweep_task.done():
                self._sweep_task.cancel()
                try:
                    await self._sweep_task
                except asyncio.CancelledError:
                    pass

        await self.drain()
        logger.info("Order monitor stopped")

    async def drain(self) -> None:
        """Wait for every dispatched operation to complete."""
        if self._tasks:
            logger.info(f"Waiting for {len(self._tasks)} in-flight operations")
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _sweep_loop(self) -> None:
        while self.running:
            try:
                self.sweep()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in sweep loop: {e}", exc_info=True)

            await asyncio.sleep(self.config.interval_seconds)

    def sweep(self) -> int:
        """
        Dispatch every order that is ready for its next operation.

        Returns:
            Number of operations dispatched
        """
        self.sweeps += 1
        count = 0
        for order in self.store.list():
            operation = self._next_operation(order)
            if operation is None:
                continue
            if self.dispatch(order.id, operation) is not None:
                count += 1

        if count:
            logger.info(f"Sweep {self.sweeps}: dispatched {count} operations")
        return count

    def _next_operation(self, order: Order) -> Optional[Operation]:
        if order.status == OrderStatus.PENDING:
            return Operation.FILL
        if order.status == OrderStatus.FILLED and self.config.auto_finalize:
            filled_at = order.filled_at or order.updated_at
            ready_at = filled_at + timedelta(seconds=self.config.finalization_delay_seconds)
            if utcnow() >= ready_at:
                return Operation.FINALIZE
        return None

    def dispatch(
        self,
        order_id: str,
        operation: Operation,
        allow_retry: bool = False,
    ) -> Optional[asyncio.Task]:
        """
        Queue ``operation`` for an order in a bounded background task.

        The order is reserved only once the task holds a concurrency slot,
        so queued work stays in its current state until it actually starts.
        Conflicts found at that point are logged and skipped.

        Returns:
            The background task, or None if the order is already queued
        """
        if order_id in self._queued:
            return None

        orchestrator = self.orchestrators[operation]
        self._queued.add(order_id)
        task = asyncio.create_task(
            self._reserve_and_run(orchestrator, order_id, allow_retry),
            name=f"{operation.value}-{order_id}",
        )
        task.add_done_callback(lambda _: self._queued.discard(order_id))
        return self._track(task)

    def spawn(self, orchestrator: OrderOrchestrator, order: Order) -> asyncio.Task:
        """Run an already reserved order in a bounded background task."""
        task = asyncio.create_task(
            self._run_bounded(orchestrator, order),
            name=f"{orchestrator.operation.value}-{order.id}",
        )
        return self._track(task)

    def _track(self, task: asyncio.Task) -> asyncio.Task:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self.dispatched += 1
        return task

    async def _reserve_and_run(
        self,
        orchestrator: OrderOrchestrator,
        order_id: str,
        allow_retry: bool,
    ) -> Optional[Order]:
        operation = orchestrator.operation.value
        async with self._semaphore:
            if self._stopping:
                logger.debug(f"Monitor stopping, {operation} for {order_id} not started")
                return None
            try:
                order = orchestrator.reserve(order_id, allow_retry=allow_retry)
            except ConflictError as e:
                self.conflicts += 1
                logger.debug(f"Skipping {operation} for {order_id}: {e}")
                return None
            except NotFoundError:
                logger.warning(f"Order {order_id} vanished before {operation}")
                return None
            return await self._run(orchestrator, order)

    async def _run_bounded(self, orchestrator: OrderOrchestrator, order: Order) -> Order:
        async with self._semaphore:
            return await self._run(orchestrator, order)

    async def _run(self, orchestrator: OrderOrchestrator, order: Order) -> Order:
        try:
            return await orchestrator.run(order)
        except Exception as e:
            logger.error(
                f"{orchestrator.operation.value} of {order.id} could not record its outcome: {e}",
                exc_info=True,
            )
            raise

    def stats(self) -> Dict[str, object]:
        return {
            "running": self.running,
            "sweeps": self.sweeps,
            "dispatched": self.dispatched,
            "conflicts": self.conflicts,
            "queued": len(self._queued),
            "in_flight": len(self._tasks),
        }
