"""
Relayer execution engine.

Delegates transaction submission to an external relay service over HTTP.
"""
import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

from oif_solver.exceptions import ExecutionError
from oif_solver.execution.polling import wait_for_completion
from oif_solver.execution.types import (
    Async,
    ChainType,
    ExecutionContext,
    ExecutionPriority,
    ExecutionResult,
    GasParams,
    Immediate,
    RelayStatus,
    RelayStatusReport,
    TransportType,
)
from oif_solver.logging.decorators import log_timing

logger = logging.getLogger(__name__)

PRIORITY_SPEED = {
    ExecutionPriority.CRITICAL: "fastest",
    ExecutionPriority.HIGH: "fast",
    ExecutionPriority.NORMAL: "average",
    ExecutionPriority.LOW: "safest",
}

STATUS_MAP = {
    "pending": RelayStatus.QUEUED,
    "queued": RelayStatus.QUEUED,
    "processing": RelayStatus.SUBMITTED,
    "submitted": RelayStatus.SUBMITTED,
    "sent": RelayStatus.SUBMITTED,
    "mined": RelayStatus.CONFIRMED,
    "confirmed": RelayStatus.CONFIRMED,
    "failed": RelayStatus.FAILED,
    "error": RelayStatus.FAILED,
}


def map_status(value: Optional[str]) -> RelayStatus:
    """Translate a relay status string; unknown values count as queued."""
    return STATUS_MAP.get((value or "").lower(), RelayStatus.QUEUED)


class RelayerExecutor:
    """
    Execution engine backed by a transaction relay HTTP API.

    In async mode ``submit`` returns ``Async`` and the caller polls. In sync
    mode ``submit`` polls internally and returns ``Immediate``.

    Example:
        relayer = RelayerExecutor(
            api_url="http://localhost:8080/api/v1",
            api_key="secret",
            chain_ids={ChainType.ORIGIN: 31337, ChainType.DESTINATION: 31338},
            chain_endpoints={31337: "origin-relayer", 31338: "destination-relayer"},
        )
        result = await relayer.submit(ChainType.ORIGIN, data, target, gas)
        await relayer.close()
    """

    transport = TransportType.RELAYER

    DEFAULT_GAS_ESTIMATE = 200_000

    def __init__(
        self,
        api_url: str,
        api_key: str,
        chain_ids: Dict[ChainType, int],
        chain_endpoints: Dict[int, str],
        use_async: bool = False,
        timeout_seconds: float = 300.0,
        poll_interval: float = 5.0,
        request_timeout: float = 30.0,
    ):
        """
        Initialize the relayer client.

        Args:
            api_url: Relay API base URL
            api_key: Bearer token for the relay API
            chain_ids: Chain id for each side of an order
            chain_endpoints: Relay endpoint name per chain id
            use_async: Return ``Async`` instead of waiting for completion
            timeout_seconds: Default completion timeout in sync mode
            poll_interval: Delay between status polls in sync mode
            request_timeout: Timeout for a single HTTP request
        """
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self.chain_ids = dict(chain_ids)
        self.chain_endpoints = {int(k): v for k, v in chain_endpoints.items()}
        self.use_async = use_async
        self.timeout_seconds = timeout_seconds
        self.poll_interval = poll_interval
        self.request_timeout = request_timeout

        self._session: Optional[aiohttp.ClientSession] = None
        self._requests: Dict[str, ChainType] = {}

        logger.info(
            f"RelayerExecutor initialized: url={self.api_url}, "
            f"async={use_async}, chains={sorted(self.chain_endpoints)}"
        )

    async def __aenter__(self) -> "RelayerExecutor":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.request_timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    def _endpoint(self, chain: ChainType) -> str:
        chain_id = self.chain_ids.get(chain)
        if chain_id is None:
            raise ExecutionError(f"No chain id configured for {chain.value} chain")
        name = self.chain_endpoints.get(chain_id)
        if name is None:
            raise ExecutionError(f"No relayer endpoint configured for chain {chain_id}")
        return f"{self.api_url}/{name}/transactions"

    async def _request(self, method: str, url: str, data: Optional[dict] = None) -> Dict[str, Any]:
        session = await self._get_session()
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            async with session.request(method, url, json=data, headers=headers) as response:
                if response.status >= 400:
                    raise ExecutionError(await response.text(), status=response.status)
                body = await response.json(content_type=None)
        except aiohttp.ClientError as e:
            logger.error(f"Network error during {method} {url}: {e}")
            raise ExecutionError(f"Network error: {e}") from e
        except asyncio.TimeoutError as e:
            raise ExecutionError(f"Relayer request timed out: {method} {url}") from e

        if not isinstance(body, dict):
            raise ExecutionError(f"Unexpected relayer response: {body!r}")
        # Some relayers wrap the payload in {"success": ..., "data": {...}}
        if isinstance(body.get("data"), dict):
            return body["data"]
        return body

    @staticmethod
    def _request_id(body: Dict[str, Any]) -> Optional[str]:
        return body.get("requestId") or body.get("transactionId") or body.get("transaction_id") or body.get("id")

    # ============ Execution ============

    @log_timing
    async def submit(
        self,
        chain: ChainType,
        call_data: bytes,
        target: str,
        gas: GasParams,
        context: Optional[ExecutionContext] = None,
    ) -> ExecutionResult:
        """
        Send a transaction through the relay service.

        Args:
            chain: Chain to send on
            call_data: Encoded call data
            target: Contract address
            gas: Gas limit and price
            context: Priority, timeout and metadata for the relay

        Returns:
            ``Immediate`` with a hash, or ``Async`` with a request id

        Raises:
            ExecutionError: If the relay rejects the request
        """
        context = context or ExecutionContext()
        url = self._endpoint(chain)
        payload = {
            "to": target,
            "data": "0x" + call_data.hex(),
            "gasLimit": gas.gas_limit,
            "gasPrice": gas.gas_price,
            "value": "0",
            "speed": PRIORITY_SPEED[context.priority],
        }
        if context.metadata:
            payload["metadata"] = context.metadata

        logger.info(
            f"Relaying {len(call_data)} bytes to {target} on {chain.value} chain "
            f"(speed={payload['speed']})"
        )
        body = await self._request("POST", url, data=payload)

        request_id = self._request_id(body)
        status = map_status(body.get("status"))
        tx_hash = body.get("hash") or body.get("txHash")

        if status == RelayStatus.FAILED:
            raise ExecutionError(f"Relayer rejected transaction: {body.get('error') or body}")
        if status == RelayStatus.CONFIRMED and tx_hash:
            return Immediate(tx_hash)
        if request_id is None:
            if tx_hash:
                return Immediate(tx_hash)
            raise ExecutionError(f"Relayer response has no request id: {body}")

        self._requests[request_id] = chain

        if self.use_async:
            logger.info(f"Relay request {request_id} queued for async processing")
            return Async(request_id, status)

        timeout = context.timeout_seconds or self.timeout_seconds
        try:
            report = await wait_for_completion(self, request_id, timeout, self.poll_interval)
        except Exception:
            self.forget(request_id)
            raise
        if not report.tx_hash:
            raise ExecutionError(f"Relay request {request_id} confirmed without a hash")
        return Immediate(report.tx_hash)

    async def poll_status(self, request_id: str) -> RelayStatusReport:
        """
        Fetch the current status of a relay request.

        Raises:
            ExecutionError: If the request is unknown or the relay errors
        """
        chain = self._requests.get(request_id)
        if chain is None:
            raise ExecutionError(f"Unknown relay request: {request_id}")

        body = await self._request("GET", f"{self._endpoint(chain)}/{request_id}")
        block_number = body.get("blockNumber", body.get("block_number"))
        report = RelayStatusReport(
            request_id=self._request_id(body) or request_id,
            status=map_status(body.get("status")),
            tx_hash=body.get("hash") or body.get("txHash"),
            block_number=int(block_number) if block_number is not None else None,
            error=body.get("error"),
        )
        if report.status.is_terminal:
            self._requests.pop(request_id, None)
        return report

    def forget(self, request_id: str) -> None:
        """Stop tracking a request, e.g. after its completion wait timed out."""
        self._requests.pop(request_id, None)

    # ============ Capabilities ============

    def supports_static_call(self) -> bool:
        return False

    def supports_gas_estimation(self) -> bool:
        return True

    async def static_call(self, chain: ChainType, call_data: bytes, target: str) -> bytes:
        raise ExecutionError("Static calls are not supported through the relayer")

    async def estimate_gas(self, chain: ChainType, call_data: bytes, target: str) -> int:
        logger.debug("Relayer does not estimate gas, using default")
        return self.DEFAULT_GAS_ESTIMATE

    async def health_check(self) -> bool:
        """Check that the relay API answers."""
        session = await self._get_session()
        url = f"{self.api_url}/health"
        try:
            async with session.get(url, headers={"Authorization": f"Bearer {self.api_key}"}) as response:
                return response.status < 400
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Relayer health check failed: {e}")
            return False
