"""
Tests for order models.
"""
import dataclasses
from datetime import datetime, timezone

import pytest

from oif_solver.orders.models import (
    ErrorDetail,
    MandateOutput,
    Order,
    OrderStatus,
    QueueStatus,
    StandardOrder,
)
from helpers import SIGNATURE, make_intent


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def intent():
    return make_intent(nonce=2**255 + 7)


@pytest.fixture
def order(intent):
    return Order(id="b1e3c7a2-0000-4000-8000-000000000001", intent=intent, signature=SIGNATURE)


# ============================================================================
# Serialization
# ============================================================================

class TestSerialization:
    """Dict conversion used by persistence and the API."""

    def test_large_integers_are_strings(self, intent):
        """uint256 values should serialize as decimal strings."""
        data = intent.to_dict()
        assert data["nonce"] == str(2**255 + 7)
        assert data["outputs"][0]["amount"] == str(10**18)
        assert all(isinstance(v, str) for pair in data["inputs"] for v in pair)

    def test_intent_round_trip(self, intent):
        assert StandardOrder.from_dict(intent.to_dict()) == intent

    def test_order_round_trip_with_all_fields(self, order):
        filled = order.evolve(
            status=OrderStatus.FAILED,
            fill_tx_ref="0x" + "cd" * 32,
            filled_at=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
            error_detail=ErrorDetail(kind="ExecutionError", message="reverted", operation="finalize"),
        )
        assert Order.from_dict(filled.to_dict()) == filled

    def test_output_defaults_empty_bytes(self):
        output = MandateOutput.from_dict({
            "remote_oracle": "0x" + "11" * 32,
            "remote_filler": "0x" + "22" * 32,
            "chain_id": "1",
            "token": "0x" + "33" * 32,
            "amount": "5",
            "recipient": "0x" + "44" * 32,
        })
        assert output.remote_call == "0x"
        assert output.fulfillment_context == "0x"


# ============================================================================
# Immutability
# ============================================================================

class TestImmutability:

    def test_order_is_frozen(self, order):
        with pytest.raises(dataclasses.FrozenInstanceError):
            order.status = OrderStatus.FILLED

    def test_evolve_returns_new_value(self, order):
        updated = order.evolve(status=OrderStatus.PROCESSING)
        assert updated.status == OrderStatus.PROCESSING
        assert order.status == OrderStatus.PENDING

    def test_only_finalized_is_terminal(self, order):
        assert not order.evolve(status=OrderStatus.FAILED).is_terminal
        assert order.evolve(status=OrderStatus.FINALIZED).is_terminal


def test_queue_status_to_dict():
    status = QueueStatus(total=3, pending=1, failed=2)
    assert status.to_dict() == {
        "total": 3, "pending": 1, "processing": 0,
        "filled": 0, "finalized": 0, "failed": 2,
    }
