"""
Poll loop for asynchronous relay requests.
"""
import asyncio
import logging

from oif_solver.exceptions import ExecutionError, OperationTimeoutError
from oif_solver.execution.types import ExecutionEngine, RelayStatus, RelayStatusReport

logger = logging.getLogger(__name__)


async def wait_for_completion(
    engine: ExecutionEngine,
    request_id: str,
    timeout_seconds: float,
    poll_interval: float = 5.0,
) -> RelayStatusReport:
    """
    Poll ``request_id`` until it confirms, fails, or the timeout elapses.

    Cancelling the awaiting task stops polling immediately.

    Args:
        engine: Engine that accepted the request
        request_id: Relay request id
        timeout_seconds: Maximum time to wait
        poll_interval: Delay between polls

    Returns:
        The confirmed status report

    Raises:
        ExecutionError: If the relay reports failure
        OperationTimeoutError: If no terminal status arrived in time
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout_seconds
    polls = 0

    while True:
        report = await engine.poll_status(request_id)
        polls += 1

        if report.status == RelayStatus.CONFIRMED:
            logger.info(f"Relay request {request_id} confirmed after {polls} polls: {report.tx_hash}")
            return report
        if report.status == RelayStatus.FAILED:
            raise ExecutionError(
                f"Relay request {request_id} failed: {report.error or 'no reason given'}"
            )

        remaining = deadline - loop.time()
        if remaining <= 0:
            raise OperationTimeoutError(request_id, timeout_seconds)

        logger.debug(f"Relay request {request_id} is {report.status.value}, polling again")
        await asyncio.sleep(min(poll_interval, remaining))
