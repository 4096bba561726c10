"""
Tests for the relayer execution engine and the relay poll loop.
"""
import asyncio
import json

import pytest
import pytest_asyncio

from oif_solver.exceptions import ExecutionError, OperationTimeoutError
from oif_solver.execution.polling import wait_for_completion
from oif_solver.execution.relayer import RelayerExecutor, map_status
from oif_solver.execution.types import (
    Async,
    ChainType,
    ExecutionContext,
    ExecutionPriority,
    GasParams,
    Immediate,
    RelayStatus,
)
from helpers import FILLER_ADDRESS, FakeEngine, relay_report

HOST = "relayer.test"
TX_PATH = "/api/v1/anvil-destination-relayer/transactions"
TX_HASH = "0x" + "cd" * 32
GAS = GasParams(gas_limit=360_000, gas_price=50_000_000_000)


def json_response(aresponses, body, status=200):
    return aresponses.Response(
        text=json.dumps(body), status=status, content_type="application/json"
    )


def make_relayer(**overrides) -> RelayerExecutor:
    fields = dict(
        api_url=f"http://{HOST}/api/v1/",
        api_key="test-key",
        chain_ids={ChainType.ORIGIN: 31337, ChainType.DESTINATION: 31338},
        chain_endpoints={31337: "anvil-origin-relayer", 31338: "anvil-destination-relayer"},
        use_async=True,
        poll_interval=0.01,
    )
    fields.update(overrides)
    return RelayerExecutor(**fields)


@pytest_asyncio.fixture
async def relayer():
    r = make_relayer()
    yield r
    await r.close()


@pytest_asyncio.fixture
async def sync_relayer():
    r = make_relayer(use_async=False)
    yield r
    await r.close()


# ============================================================================
# Status mapping
# ============================================================================

class TestStatusMapping:

    @pytest.mark.parametrize("value,expected", [
        ("pending", RelayStatus.QUEUED),
        ("Submitted", RelayStatus.SUBMITTED),
        ("mined", RelayStatus.CONFIRMED),
        ("confirmed", RelayStatus.CONFIRMED),
        ("error", RelayStatus.FAILED),
        ("something-new", RelayStatus.QUEUED),
        (None, RelayStatus.QUEUED),
    ])
    def test_map_status(self, value, expected):
        assert map_status(value) == expected


# ============================================================================
# Submission
# ============================================================================

class TestSubmit:

    @pytest.mark.asyncio
    async def test_async_mode_returns_request_id(self, relayer, aresponses):
        """Async mode hands back the request id without polling."""
        captured = {}

        async def handler(request):
            captured["body"] = await request.json()
            captured["auth"] = request.headers.get("Authorization")
            return json_response(aresponses, {"transactionId": "req-42", "status": "pending"})

        aresponses.add(HOST, TX_PATH, "POST", handler)

        context = ExecutionContext(
            priority=ExecutionPriority.CRITICAL,
            metadata={"order_id": "abc", "operation": "fill"},
        )
        result = await relayer.submit(
            ChainType.DESTINATION, b"\x01\x02", FILLER_ADDRESS, GAS, context
        )

        assert result == Async("req-42", RelayStatus.QUEUED)
        assert captured["auth"] == "Bearer test-key"
        body = captured["body"]
        assert body["to"] == FILLER_ADDRESS
        assert body["data"] == "0x0102"
        assert body["gasLimit"] == 360_000
        assert body["gasPrice"] == 50_000_000_000
        assert body["value"] == "0"
        assert body["speed"] == "fastest"
        assert body["metadata"] == {"order_id": "abc", "operation": "fill"}

    @pytest.mark.asyncio
    async def test_data_envelope_unwrapped(self, relayer, aresponses):
        aresponses.add(HOST, TX_PATH, "POST", json_response(
            aresponses, {"success": True, "data": {"requestId": "req-7", "status": "queued"}}
        ))
        result = await relayer.submit(ChainType.DESTINATION, b"", FILLER_ADDRESS, GAS)
        assert result.request_id == "req-7"

    @pytest.mark.asyncio
    async def test_already_confirmed_returns_immediate(self, relayer, aresponses):
        aresponses.add(HOST, TX_PATH, "POST", json_response(
            aresponses, {"transactionId": "req-1", "status": "confirmed", "hash": TX_HASH}
        ))
        result = await relayer.submit(ChainType.DESTINATION, b"", FILLER_ADDRESS, GAS)
        assert result == Immediate(TX_HASH)

    @pytest.mark.asyncio
    async def test_sync_mode_polls_until_confirmed(self, sync_relayer, aresponses):
        """Sync mode polls the status endpoint and returns the final hash."""
        aresponses.add(HOST, TX_PATH, "POST", json_response(
            aresponses, {"transactionId": "req-9", "status": "pending"}
        ))
        aresponses.add(HOST, f"{TX_PATH}/req-9", "GET", json_response(
            aresponses, {"transactionId": "req-9", "status": "submitted"}
        ))
        aresponses.add(HOST, f"{TX_PATH}/req-9", "GET", json_response(
            aresponses, {"transactionId": "req-9", "status": "mined", "hash": TX_HASH, "blockNumber": 12}
        ))

        result = await sync_relayer.submit(ChainType.DESTINATION, b"", FILLER_ADDRESS, GAS)
        assert result == Immediate(TX_HASH)

    @pytest.mark.asyncio
    async def test_sync_mode_relay_failure(self, sync_relayer, aresponses):
        aresponses.add(HOST, TX_PATH, "POST", json_response(
            aresponses, {"transactionId": "req-9", "status": "pending"}
        ))
        aresponses.add(HOST, f"{TX_PATH}/req-9", "GET", json_response(
            aresponses, {"transactionId": "req-9", "status": "failed", "error": "out of gas"}
        ))

        with pytest.raises(ExecutionError) as exc:
            await sync_relayer.submit(ChainType.DESTINATION, b"", FILLER_ADDRESS, GAS)
        assert "out of gas" in str(exc.value)

    @pytest.mark.asyncio
    async def test_sync_mode_timeout(self, sync_relayer, aresponses):
        aresponses.add(HOST, TX_PATH, "POST", json_response(
            aresponses, {"transactionId": "req-9", "status": "pending"}
        ))
        aresponses.add(
            HOST, f"{TX_PATH}/req-9", "GET",
            json_response(aresponses, {"transactionId": "req-9", "status": "pending"}),
            repeat=aresponses.INFINITY,
        )

        with pytest.raises(OperationTimeoutError):
            await sync_relayer.submit(
                ChainType.DESTINATION, b"", FILLER_ADDRESS, GAS,
                ExecutionContext(timeout_seconds=0.05),
            )
        assert sync_relayer._requests == {}

    @pytest.mark.asyncio
    async def test_http_error_carries_status(self, relayer, aresponses):
        aresponses.add(HOST, TX_PATH, "POST", aresponses.Response(status=503, text="overloaded"))

        with pytest.raises(ExecutionError) as exc:
            await relayer.submit(ChainType.DESTINATION, b"", FILLER_ADDRESS, GAS)
        assert exc.value.status == 503
        assert "overloaded" in exc.value.message

    @pytest.mark.asyncio
    async def test_rejected_on_submit(self, relayer, aresponses):
        aresponses.add(HOST, TX_PATH, "POST", json_response(
            aresponses, {"transactionId": "req-1", "status": "failed", "error": "nonce too low"}
        ))
        with pytest.raises(ExecutionError):
            await relayer.submit(ChainType.DESTINATION, b"", FILLER_ADDRESS, GAS)

    @pytest.mark.asyncio
    async def test_unconfigured_chain(self):
        r = make_relayer(chain_endpoints={31337: "anvil-origin-relayer"})
        try:
            with pytest.raises(ExecutionError):
                await r.submit(ChainType.DESTINATION, b"", FILLER_ADDRESS, GAS)
        finally:
            await r.close()


# ============================================================================
# Status polling
# ============================================================================

class TestPollStatus:

    @pytest.mark.asyncio
    async def test_unknown_request(self, relayer):
        with pytest.raises(ExecutionError):
            await relayer.poll_status("never-submitted")

    @pytest.mark.asyncio
    async def test_terminal_status_forgets_request(self, relayer, aresponses):
        aresponses.add(HOST, TX_PATH, "POST", json_response(
            aresponses, {"transactionId": "req-3", "status": "pending"}
        ))
        aresponses.add(HOST, f"{TX_PATH}/req-3", "GET", json_response(
            aresponses, {"transactionId": "req-3", "status": "confirmed", "hash": TX_HASH, "blockNumber": "77"}
        ))

        await relayer.submit(ChainType.DESTINATION, b"", FILLER_ADDRESS, GAS)
        report = await relayer.poll_status("req-3")

        assert report.status == RelayStatus.CONFIRMED
        assert report.tx_hash == TX_HASH
        assert report.block_number == 77

        with pytest.raises(ExecutionError):
            await relayer.poll_status("req-3")

    @pytest.mark.asyncio
    async def test_forget_drops_pending_request(self, relayer, aresponses):
        aresponses.add(HOST, TX_PATH, "POST", json_response(
            aresponses, {"transactionId": "req-4", "status": "pending"}
        ))

        await relayer.submit(ChainType.DESTINATION, b"", FILLER_ADDRESS, GAS)
        relayer.forget("req-4")
        relayer.forget("req-4")

        with pytest.raises(ExecutionError):
            await relayer.poll_status("req-4")


# ============================================================================
# Capabilities
# ============================================================================

class TestCapabilities:

    @pytest.mark.asyncio
    async def test_static_call_not_supported(self, relayer):
        assert relayer.supports_static_call() is False
        with pytest.raises(ExecutionError):
            await relayer.static_call(ChainType.ORIGIN, b"", FILLER_ADDRESS)

    @pytest.mark.asyncio
    async def test_estimate_gas_default(self, relayer):
        assert relayer.supports_gas_estimation() is True
        assert await relayer.estimate_gas(ChainType.ORIGIN, b"", FILLER_ADDRESS) == 200_000

    @pytest.mark.asyncio
    async def test_health_check(self, relayer, aresponses):
        aresponses.add(HOST, "/api/v1/health", "GET", json_response(aresponses, {"ok": True}))
        aresponses.add(HOST, "/api/v1/health", "GET", aresponses.Response(status=500))

        assert await relayer.health_check() is True
        assert await relayer.health_check() is False


# ============================================================================
# Poll loop
# ============================================================================

class TestWaitForCompletion:

    @pytest.mark.asyncio
    async def test_returns_confirmed_report(self):
        engine = FakeEngine(statuses=[
            relay_report("req-1", RelayStatus.QUEUED),
            relay_report("req-1", RelayStatus.SUBMITTED),
            relay_report("req-1", RelayStatus.CONFIRMED, TX_HASH),
        ])
        report = await wait_for_completion(engine, "req-1", timeout_seconds=5, poll_interval=0.01)
        assert report.tx_hash == TX_HASH
        assert engine.polls == 3

    @pytest.mark.asyncio
    async def test_failure_raises(self):
        engine = FakeEngine(statuses=[relay_report("req-1", RelayStatus.FAILED)])
        with pytest.raises(ExecutionError):
            await wait_for_completion(engine, "req-1", timeout_seconds=5, poll_interval=0.01)

    @pytest.mark.asyncio
    async def test_timeout_raises(self):
        engine = FakeEngine(statuses=[relay_report("req-1", RelayStatus.SUBMITTED)])
        with pytest.raises(OperationTimeoutError) as exc:
            await wait_for_completion(engine, "req-1", timeout_seconds=0.05, poll_interval=0.01)
        assert exc.value.request_id == "req-1"
        assert engine.polls >= 2

    @pytest.mark.asyncio
    async def test_cancellation_stops_polling(self):
        engine = FakeEngine(statuses=[relay_report("req-1", RelayStatus.QUEUED)])
        task = asyncio.create_task(
            wait_for_completion(engine, "req-1", timeout_seconds=60, poll_interval=10)
        )
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert engine.polls == 1
