"""
Solver service.

Owns the order store and wires it to persistence, the execution engine,
the orchestrators and the monitor. This is the surface the HTTP layer and
the entry point talk to.
"""
import asyncio
import logging
from typing import Dict, List, Optional

from eth_account import Account

from oif_solver import __version__
from oif_solver.config.settings import Config
from oif_solver.contracts.encoding import CallEncoder, Operation
from oif_solver.exceptions import ConflictError, PersistenceError
from oif_solver.execution.factory import ExecutionEngineFactory
from oif_solver.execution.types import ChainType, ExecutionEngine, GasParams
from oif_solver.orders.models import ErrorDetail, Order, OrderStatus, QueueStatus, StandardOrder, utcnow
from oif_solver.orders.persistence import SnapshotPersistence
from oif_solver.orders.store import OrderStore
from oif_solver.orders.validator import IntentValidator, RecoveringSignatureVerifier, SignatureVerifier
from oif_solver.services.events import EventBus, EventType, OrderEvent, log_events
from oif_solver.services.monitor import MonitorConfig, OrderMonitor
from oif_solver.services.orchestrator import OperationPlan, OrderOrchestrator

logger = logging.getLogger(__name__)


class SolverService:
    """
    Facade over the order lifecycle.

    Features:
    - Order submission and queries
    - Manual finalize, requeue and abandon
    - Startup and shutdown with snapshot persistence
    """

    def __init__(
        self,
        config: Config,
        store: OrderStore,
        engine: ExecutionEngine,
        persistence: Optional[SnapshotPersistence] = None,
        events: Optional[EventBus] = None,
    ):
        """
        Wire the service around an existing store and engine.

        Args:
            config: Application configuration
            store: Order store, empty or restored from a snapshot
            engine: Execution engine used for both operations
            persistence: Snapshot persistence, None to disable
            events: Event bus, created from config when omitted
        """
        self.config = config
        self.store = store
        self.engine = engine
        self.persistence = persistence
        self.events = events or EventBus(buffer_size=config.event_buffer_size)

        solver_address = config.solver_address or Account.from_key(config.solver_private_key).address
        self.solver_address = solver_address
        self.encoder = CallEncoder.for_solver(solver_address)

        self.orchestrators: Dict[Operation, OrderOrchestrator] = {
            Operation.FILL: self._orchestrator(OperationPlan(
                operation=Operation.FILL,
                chain=ChainType.DESTINATION,
                target=config.coin_filler_address,
                gas=GasParams(config.fill_gas_limit, config.fill_gas_price),
            )),
            Operation.FINALIZE: self._orchestrator(OperationPlan(
                operation=Operation.FINALIZE,
                chain=ChainType.ORIGIN,
                target=config.settler_compact_address,
                gas=GasParams(config.finalize_gas_limit, config.finalize_gas_price),
            )),
        }

        self.monitor = OrderMonitor(
            store=store,
            orchestrators=self.orchestrators,
            config=MonitorConfig(
                interval_seconds=config.monitoring_interval_seconds,
                auto_finalize=config.auto_finalize,
                finalization_delay_seconds=config.finalization_delay_seconds,
                max_concurrent_operations=config.max_concurrent_operations,
            ),
        )

        self.started_at = None
        self._event_log_task: Optional[asyncio.Task] = None

    def _orchestrator(self, plan: OperationPlan) -> OrderOrchestrator:
        return OrderOrchestrator(
            plan=plan,
            store=self.store,
            encoder=self.encoder,
            engine=self.engine,
            events=self.events,
            timeout_seconds=self.config.operation_timeout_seconds,
            poll_interval=self.config.relayer_poll_interval_seconds,
            critical_window_seconds=self.config.critical_expiry_window_seconds,
        )

    @classmethod
    async def from_config(
        cls,
        config: Config,
        engine: Optional[ExecutionEngine] = None,
    ) -> "SolverService":
        """
        Build a service from configuration.

        Loads the snapshot when persistence is enabled and creates the
        execution engine through the factory unless one is given.
        """
        verifier = RecoveringSignatureVerifier() if config.verify_signatures else SignatureVerifier()
        validator = IntentValidator(verifier)

        persistence = None
        orders: List[Order] = []
        if config.persistence_enabled:
            persistence = SnapshotPersistence(config.persistence_file)
            orders = persistence.load_snapshot()

        store = OrderStore.from_snapshot(orders, validator=validator)

        if config.fail_processing_on_load:
            for order in store.list_by_status(OrderStatus.PROCESSING):
                store.operation_failed(order.id, ErrorDetail(
                    kind="InterruptedError",
                    message="Operation was interrupted by a restart",
                ))
                logger.warning(f"Order {order.id} was processing at shutdown, marked failed")

        if engine is None:
            engine = await ExecutionEngineFactory(config).create_engine()

        return cls(config, store, engine, persistence=persistence)

    # ============ Lifecycle ============

    async def startup(self) -> None:
        """Start background work: event logging and, if enabled, the monitor."""
        self.started_at = utcnow()
        subscription = self.events.subscribe("log")
        self._event_log_task = asyncio.create_task(log_events(subscription), name="event_log")

        if self.config.monitoring_enabled:
            await self.monitor.start()
        else:
            logger.info("Monitoring disabled; orders advance only by manual triggers")

        status = self.store.queue_status()
        logger.info(
            f"Solver {self.solver_address} started via {self.engine.transport.value}: "
            f"{status.total} orders ({status.pending} pending, {status.filled} filled)"
        )

    async def shutdown(self) -> None:
        """Stop the monitor, drain operations, save the snapshot, release the engine."""
        logger.info("Shutting down solver...")
        await self.monitor.stop()
        self.save_snapshot()
        await self.engine.close()

        if self._event_log_task and not self._event_log_task.done():
            self._event_log_task.cancel()
            try:
                await self._event_log_task
            except asyncio.CancelledError:
                pass

        logger.info("Solver stopped")

    def save_snapshot(self) -> Optional[int]:
        """Persist the store; failures are logged, not raised."""
        if self.persistence is None:
            return None
        try:
            return self.persistence.save_snapshot(self.store.snapshot())
        except PersistenceError as e:
            logger.error(f"Snapshot not saved: {e}")
            return None

    # ============ Orders ============

    def submit(self, intent: StandardOrder, signature: str) -> str:
        """
        Accept a new order.

        Raises:
            ValidationError: If the intent is malformed or expired
        """
        order_id = self.store.submit(intent, signature)
        self.events.publish(OrderEvent.from_order(EventType.ORDER_RECEIVED, self.store.get(order_id)))
        return order_id

    def get(self, order_id: str) -> Order:
        return self.store.get(order_id)

    def list(self, status: Optional[OrderStatus] = None) -> List[Order]:
        if status is None:
            return self.store.list()
        return self.store.list_by_status(status)

    def queue_status(self) -> QueueStatus:
        return self.store.queue_status()

    def finalize(self, order_id: str) -> Order:
        """
        Trigger finalization now.

        Accepts Filled orders, and Failed orders that already have a fill.
        The order is reserved before returning; settlement continues in the
        background.

        Returns:
            The reserved order (status Processing)

        Raises:
            ConflictError: If the order cannot be finalized now
            NotFoundError: If the id is unknown
        """
        orchestrator = self.orchestrators[Operation.FINALIZE]
        order = orchestrator.reserve(order_id, allow_retry=True)
        self.monitor.spawn(orchestrator, order)
        return order

    def requeue(self, order_id: str) -> Order:
        """Send a Failed order back to Pending."""
        order = self.store.requeue(order_id)
        logger.info(f"Order {order_id} requeued")
        self.events.publish(OrderEvent.from_order(EventType.ORDER_REQUEUED, order))
        return order

    def abandon(self, order_id: str) -> Order:
        """
        Mark a Processing order as Failed.

        Meant for orders left in Processing by an unclean shutdown. Refused
        while this process is still running an operation on the order.
        """
        if any(order_id in o.in_flight for o in self.orchestrators.values()):
            current = self.store.get(order_id)
            raise ConflictError(
                order_id, current.status.value, OrderStatus.PROCESSING.value,
                message=f"Order {order_id} has an operation in flight",
            )
        order = self.store.operation_failed(order_id, ErrorDetail(
            kind="Abandoned",
            message="Marked failed by operator",
        ))
        logger.warning(f"Order {order_id} abandoned by operator")
        self.events.publish(OrderEvent.from_order(EventType.ORDER_FAILED, order))
        return order

    def health(self) -> Dict[str, object]:
        return {
            "status": "healthy",
            "service": "oif-solver",
            "version": __version__,
            "timestamp": utcnow().isoformat(),
            "transport": self.engine.transport.value,
            "monitor": self.monitor.stats(),
            "events": self.events.stats(),
        }
