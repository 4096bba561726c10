"""
In-memory order store.

The store is the single owner of order state. Every status change goes
through ``transition``, an atomic compare-and-set on the current status,
which is what keeps at most one operation in flight per order.
"""
import logging
import threading
import uuid
from typing import Callable, Dict, Iterable, List, Optional

from oif_solver.exceptions import ConflictError, NotFoundError, ValidationError
from oif_solver.orders.models import (
    ErrorDetail,
    Order,
    OrderStatus,
    QueueStatus,
    StandardOrder,
    utcnow,
)
from oif_solver.orders.validator import IntentValidator

logger = logging.getLogger(__name__)

Mutator = Callable[[Order], Dict[str, object]]

# (from, to) edges of the lifecycle
ALLOWED_TRANSITIONS = frozenset({
    (OrderStatus.PENDING, OrderStatus.PROCESSING),     # begin fill
    (OrderStatus.PROCESSING, OrderStatus.FILLED),      # fill succeeded
    (OrderStatus.FILLED, OrderStatus.PROCESSING),      # begin finalize
    (OrderStatus.PROCESSING, OrderStatus.FINALIZED),   # finalize succeeded
    (OrderStatus.PROCESSING, OrderStatus.FAILED),      # operation failed
    (OrderStatus.FAILED, OrderStatus.PENDING),         # requeue
    (OrderStatus.FAILED, OrderStatus.PROCESSING),      # manual finalize retry
})

_PROTECTED_FIELDS = frozenset({"id", "intent", "signature", "status", "created_at"})


class OrderStore:
    """
    Thread-safe store of orders keyed by id.

    Features:
    - Validated submission
    - Compare-and-set status transitions
    - Insertion-ordered listing
    - Snapshot export and restore
    """

    def __init__(self, validator: Optional[IntentValidator] = None):
        """
        Initialize an empty store.

        Args:
            validator: Intent validator used by ``submit``
        """
        self.validator = validator or IntentValidator()
        self._orders: Dict[str, Order] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_snapshot(
        cls,
        orders: Iterable[Order],
        validator: Optional[IntentValidator] = None,
    ) -> "OrderStore":
        """Build a store pre-loaded with previously saved orders."""
        store = cls(validator=validator)
        store.restore(orders)
        return store

    def __len__(self) -> int:
        return len(self._orders)

    # ============ Submission & Queries ============

    def submit(self, intent: StandardOrder, signature: str) -> str:
        """
        Validate an intent and store it as a new Pending order.

        Returns:
            The new order id

        Raises:
            ValidationError: If the intent or signature is rejected
        """
        result = self.validator.validate(intent, signature)
        if not result.is_valid:
            logger.info(f"Rejected order submission: {'; '.join(result.errors)}")
            raise ValidationError(result.first_field, result.first_error)

        now = utcnow()
        order = Order(
            id=str(uuid.uuid4()),
            intent=intent,
            signature=signature,
            status=OrderStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self._orders[order.id] = order

        logger.info(
            f"Order {order.id} accepted: chain {intent.origin_chain_id} -> "
            f"{intent.destination_chain_id}, nonce {intent.nonce}"
        )
        return order.id

    def get(self, order_id: str) -> Order:
        """
        Get an order snapshot.

        Raises:
            NotFoundError: If the id is unknown
        """
        with self._lock:
            order = self._orders.get(order_id)
        if order is None:
            raise NotFoundError(order_id)
        return order

    def list(self) -> List[Order]:
        """All orders in creation order."""
        with self._lock:
            return list(self._orders.values())

    def list_by_status(self, status: OrderStatus) -> List[Order]:
        with self._lock:
            return [o for o in self._orders.values() if o.status == status]

    def queue_status(self) -> QueueStatus:
        """Count orders per status."""
        counts = {status: 0 for status in OrderStatus}
        with self._lock:
            for order in self._orders.values():
                counts[order.status] += 1
            total = len(self._orders)
        return QueueStatus(
            total=total,
            pending=counts[OrderStatus.PENDING],
            processing=counts[OrderStatus.PROCESSING],
            filled=counts[OrderStatus.FILLED],
            finalized=counts[OrderStatus.FINALIZED],
            failed=counts[OrderStatus.FAILED],
        )

    # ============ Transitions ============

    def transition(
        self,
        order_id: str,
        expected: OrderStatus,
        next_status: OrderStatus,
        mutator: Optional[Mutator] = None,
    ) -> Order:
        """
        Atomically move an order from ``expected`` to ``next_status``.

        Args:
            order_id: Order to transition
            expected: Status the caller believes the order has
            next_status: Status to move to
            mutator: Optional function returning extra field updates,
                applied in the same atomic step

        Returns:
            The updated order

        Raises:
            NotFoundError: If the id is unknown
            ConflictError: If the current status is not ``expected`` or the
                edge is not part of the lifecycle
        """
        with self._lock:
            current = self._orders.get(order_id)
            if current is None:
                raise NotFoundError(order_id)
            if (expected, next_status) not in ALLOWED_TRANSITIONS:
                raise ConflictError(
                    order_id, current.status.value, expected.value,
                    message=f"Transition {expected.value} -> {next_status.value} is not allowed",
                )
            if current.status != expected:
                raise ConflictError(order_id, current.status.value, expected.value)

            changes = dict(mutator(current)) if mutator else {}
            illegal = _PROTECTED_FIELDS.intersection(changes)
            if illegal:
                raise ValueError(f"Mutator may not change {sorted(illegal)}")

            updated = current.evolve(status=next_status, updated_at=utcnow(), **changes)
            self._check_invariants(updated)
            self._orders[order_id] = updated

        logger.debug(f"Order {order_id}: {expected.value} -> {next_status.value}")
        return updated

    def begin_fill(self, order_id: str) -> Order:
        return self.transition(order_id, OrderStatus.PENDING, OrderStatus.PROCESSING)

    def fill_succeeded(self, order_id: str, tx_ref: str) -> Order:
        return self.transition(
            order_id, OrderStatus.PROCESSING, OrderStatus.FILLED,
            lambda o: {"fill_tx_ref": tx_ref, "filled_at": utcnow()},
        )

    def begin_finalize(self, order_id: str) -> Order:
        return self.transition(order_id, OrderStatus.FILLED, OrderStatus.PROCESSING)

    def finalize_succeeded(self, order_id: str, tx_ref: str) -> Order:
        def mutate(order: Order) -> Dict[str, object]:
            if order.fill_tx_ref is None:
                raise ConflictError(
                    order_id, order.status.value, OrderStatus.PROCESSING.value,
                    message=f"Order {order_id} was never filled",
                )
            return {"finalize_tx_ref": tx_ref}

        return self.transition(order_id, OrderStatus.PROCESSING, OrderStatus.FINALIZED, mutate)

    def operation_failed(self, order_id: str, error: ErrorDetail) -> Order:
        return self.transition(
            order_id, OrderStatus.PROCESSING, OrderStatus.FAILED,
            lambda o: {"error_detail": error},
        )

    def requeue(self, order_id: str) -> Order:
        """
        Move a Failed order back to Pending.

        Orders that already have a fill are refused: sending them back to
        Pending would fill them twice. Use ``retry_finalize`` instead.
        """
        def mutate(order: Order) -> Dict[str, object]:
            if order.fill_tx_ref is not None:
                raise ConflictError(
                    order_id, order.status.value, OrderStatus.FAILED.value,
                    message=f"Order {order_id} is already filled; retry finalization instead",
                )
            return {"error_detail": None}

        return self.transition(order_id, OrderStatus.FAILED, OrderStatus.PENDING, mutate)

    def retry_finalize(self, order_id: str) -> Order:
        """Reserve a Failed but filled order for another finalize attempt."""
        def mutate(order: Order) -> Dict[str, object]:
            if order.fill_tx_ref is None:
                raise ConflictError(
                    order_id, order.status.value, OrderStatus.FILLED.value,
                    message=f"Order {order_id} has no fill to finalize",
                )
            return {"error_detail": None}

        return self.transition(order_id, OrderStatus.FAILED, OrderStatus.PROCESSING, mutate)

    # ============ Snapshots ============

    def snapshot(self) -> List[Order]:
        """Copy of every order, for persistence."""
        return self.list()

    def restore(self, orders: Iterable[Order]) -> int:
        """
        Load orders verbatim, replacing any with the same id.

        Returns:
            Number of orders loaded
        """
        count = 0
        with self._lock:
            for order in orders:
                self._orders[order.id] = order
                count += 1
                if order.status == OrderStatus.PROCESSING:
                    logger.warning(
                        f"Order {order.id} restored in processing state; "
                        f"no operation will resume it automatically"
                    )
        return count

    @staticmethod
    def _check_invariants(order: Order) -> None:
        if order.status == OrderStatus.PENDING and order.fill_tx_ref is not None:
            raise ValueError(f"Pending order {order.id} cannot carry a fill reference")
        if order.status != OrderStatus.FINALIZED and order.finalize_tx_ref is not None:
            raise ValueError(f"Order {order.id} has a finalize reference but is {order.status.value}")
