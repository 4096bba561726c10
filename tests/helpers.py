"""
Shared builders for tests.
"""
import asyncio
import time
from typing import List, Optional

from oif_solver.config.settings import Config
from oif_solver.execution.types import (
    Async,
    ExecutionResult,
    Immediate,
    RelayStatus,
    RelayStatusReport,
    TransportType,
)
from oif_solver.orders.models import MandateOutput, StandardOrder

SOLVER_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
SOLVER_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
USER_ADDRESS = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
ORACLE_ADDRESS = "0x9fe46736679d2d9a65f0992f2272de9f3c7fa6e0"
SETTLER_ADDRESS = "0xe7f1725e7734ce288f8367e1bb143e90bb3f0512"
FILLER_ADDRESS = "0xcf7ed3acca5a467e9e704c703e8d87f634fb0fc9"
SIGNATURE = "0x" + "ab" * 65


def make_output(**overrides) -> MandateOutput:
    fields = dict(
        remote_oracle="0x" + "00" * 12 + "11" * 20,
        remote_filler="0x" + "00" * 12 + "22" * 20,
        chain_id=31338,
        token="0x" + "00" * 12 + "33" * 20,
        amount=10**18,
        recipient=USER_ADDRESS,
    )
    fields.update(overrides)
    return MandateOutput(**fields)


def make_intent(**overrides) -> StandardOrder:
    now = int(time.time())
    fields = dict(
        user=USER_ADDRESS,
        nonce=123,
        origin_chain_id=31337,
        destination_chain_id=31338,
        expires=now + 3600,
        fill_deadline=now + 1800,
        local_oracle=ORACLE_ADDRESS,
        inputs=((int("44" * 20, 16), 10**18),),
        outputs=(make_output(),),
    )
    fields.update(overrides)
    return StandardOrder(**fields)


def make_config(**overrides) -> Config:
    fields = dict(
        solver_private_key=SOLVER_KEY,
        settler_compact_address=SETTLER_ADDRESS,
        coin_filler_address=FILLER_ADDRESS,
        persistence_enabled=False,
        monitoring_enabled=False,
        log_file=None,
        relayer_api_key=None,
        relayer_poll_interval_seconds=0.01,
        finalization_delay_seconds=0,
    )
    fields.update(overrides)
    return Config(**fields)


class FakeEngine:
    """
    Scripted execution engine.

    ``results`` are returned from ``submit`` in order (the last one repeats);
    an exception instance is raised instead of returned. ``statuses`` are
    returned from ``poll_status`` in the same way.
    """

    transport = TransportType.DIRECT

    def __init__(
        self,
        results: Optional[List] = None,
        statuses: Optional[List] = None,
        gate: Optional[asyncio.Event] = None,
    ):
        self.results = list(results or [Immediate("0x" + "ab" * 32)])
        self.statuses = list(statuses or [])
        self.gate = gate
        self.submissions = []
        self.polls = 0
        self.forgotten = []
        self.active = 0
        self.max_active = 0
        self.closed = False

    async def submit(self, chain, call_data, target, gas, context=None) -> ExecutionResult:
        self.submissions.append((chain, call_data, target, gas, context))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            else:
                await asyncio.sleep(0)
            result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        finally:
            self.active -= 1
        if isinstance(result, Exception):
            raise result
        return result

    async def poll_status(self, request_id: str) -> RelayStatusReport:
        self.polls += 1
        status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        if isinstance(status, Exception):
            raise status
        return status

    def forget(self, request_id: str) -> None:
        self.forgotten.append(request_id)

    def supports_static_call(self) -> bool:
        return False

    def supports_gas_estimation(self) -> bool:
        return False

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        self.closed = True


def relay_report(request_id: str, status: RelayStatus, tx_hash: Optional[str] = None) -> RelayStatusReport:
    return RelayStatusReport(request_id=request_id, status=status, tx_hash=tx_hash)


def async_result(request_id: str = "req-1") -> Async:
    return Async(request_id, RelayStatus.QUEUED)
