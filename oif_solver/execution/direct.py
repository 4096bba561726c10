"""
Direct execution engine.

Signs transactions with the solver key and sends them straight to a chain
node, waiting for the receipt.
"""
import asyncio
import logging
from typing import Dict, Optional

import aiohttp
from eth_account import Account
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception

from oif_solver.exceptions import ExecutionError
from oif_solver.execution.types import (
    ChainType,
    ExecutionContext,
    ExecutionResult,
    GasParams,
    Immediate,
    RelayStatusReport,
    TransportType,
)
from oif_solver.logging.decorators import log_timing

logger = logging.getLogger(__name__)

NODE_ERRORS = (Web3Exception, ValueError, aiohttp.ClientError, asyncio.TimeoutError, OSError)


class DirectExecutor:
    """
    Execution engine that talks to chain nodes over JSON-RPC.

    Transactions on the same chain are sent one at a time so that nonces are
    assigned in order.
    """

    transport = TransportType.DIRECT

    def __init__(
        self,
        private_key: str,
        rpc_urls: Dict[ChainType, str],
        chain_ids: Dict[ChainType, int],
        confirm_transactions: bool = True,
        confirmation_timeout: float = 120.0,
        clients: Optional[Dict[ChainType, AsyncWeb3]] = None,
    ):
        """
        Initialize the executor.

        Args:
            private_key: Solver signing key
            rpc_urls: Node URL per chain
            chain_ids: Chain id per chain, used for replay protection
            confirm_transactions: Wait for a receipt before returning
            confirmation_timeout: Seconds to wait for a receipt
            clients: Pre-built web3 clients, used instead of ``rpc_urls``
        """
        self.account = Account.from_key(private_key)
        self.rpc_urls = dict(rpc_urls)
        self.chain_ids = dict(chain_ids)
        self.confirm_transactions = confirm_transactions
        self.confirmation_timeout = confirmation_timeout

        self._clients: Dict[ChainType, AsyncWeb3] = dict(clients or {})
        self._owned: set = set()
        self._locks: Dict[ChainType, asyncio.Lock] = {}

        chains = sorted(c.value for c in set(self.rpc_urls) | set(self._clients))
        logger.info(f"DirectExecutor initialized: wallet={self.address}, chains={chains}")

    @property
    def address(self) -> str:
        return self.account.address

    def _client(self, chain: ChainType) -> AsyncWeb3:
        client = self._clients.get(chain)
        if client is None:
            url = self.rpc_urls.get(chain)
            if not url:
                raise ExecutionError(f"No RPC URL configured for {chain.value} chain")
            client = AsyncWeb3(AsyncHTTPProvider(url))
            self._clients[chain] = client
            self._owned.add(chain)
        return client

    def _lock(self, chain: ChainType) -> asyncio.Lock:
        if chain not in self._locks:
            self._locks[chain] = asyncio.Lock()
        return self._locks[chain]

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
        Sign and send a transaction.

        Args:
            chain: Chain to send on
            call_data: Encoded call data
            target: Contract address
            gas: Gas limit and price

        Returns:
            ``Immediate`` with the transaction hash

        Raises:
            ExecutionError: If the node rejects the transaction, it reverts,
                or no receipt arrives in time
        """
        w3 = self._client(chain)
        chain_id = self.chain_ids.get(chain)
        if chain_id is None:
            raise ExecutionError(f"No chain id configured for {chain.value} chain")

        try:
            async with self._lock(chain):
                nonce = await w3.eth.get_transaction_count(self.address, "pending")
                tx = {
                    "to": Web3.to_checksum_address(target),
                    "from": self.address,
                    "data": call_data,
                    "value": 0,
                    "gas": gas.gas_limit,
                    "gasPrice": gas.gas_price,
                    "nonce": nonce,
                    "chainId": chain_id,
                }
                signed = self.account.sign_transaction(tx)
                tx_hash = await w3.eth.send_raw_transaction(signed.raw_transaction)
            tx_ref = Web3.to_hex(tx_hash)
            logger.info(f"Sent transaction {tx_ref} to {target} on {chain.value} chain (nonce {nonce})")

            if self.confirm_transactions:
                receipt = await w3.eth.wait_for_transaction_receipt(
                    tx_hash, timeout=self.confirmation_timeout
                )
                if receipt["status"] != 1:
                    raise ExecutionError(f"Transaction {tx_ref} reverted")
                logger.info(f"Transaction {tx_ref} confirmed in block {receipt['blockNumber']}")
        except TimeExhausted as e:
            raise ExecutionError(f"No receipt for transaction within {self.confirmation_timeout}s: {e}") from e
        except NODE_ERRORS as e:
            raise ExecutionError(f"{chain.value} node rejected transaction: {e}") from e

        return Immediate(tx_ref)

    async def poll_status(self, request_id: str) -> RelayStatusReport:
        raise ExecutionError("Direct execution has no asynchronous requests to poll")

    def forget(self, request_id: str) -> None:
        pass

    # ============ Capabilities ============

    def supports_static_call(self) -> bool:
        return True

    def supports_gas_estimation(self) -> bool:
        return True

    async def static_call(self, chain: ChainType, call_data: bytes, target: str) -> bytes:
        w3 = self._client(chain)
        try:
            result = await w3.eth.call({
                "to": Web3.to_checksum_address(target),
                "from": self.address,
                "data": call_data,
            })
        except ContractLogicError as e:
            raise ExecutionError(f"Static call reverted: {e}") from e
        except NODE_ERRORS as e:
            raise ExecutionError(f"Static call failed: {e}") from e
        return bytes(result)

    async def estimate_gas(self, chain: ChainType, call_data: bytes, target: str) -> int:
        w3 = self._client(chain)
        try:
            return await w3.eth.estimate_gas({
                "to": Web3.to_checksum_address(target),
                "from": self.address,
                "data": call_data,
            })
        except NODE_ERRORS as e:
            raise ExecutionError(f"Gas estimation failed: {e}") from e

    async def health_check(self) -> bool:
        """Check that every configured node answers."""
        chains = set(self.rpc_urls) | set(self._clients)
        for chain in chains:
            try:
                if not await self._client(chain).is_connected():
                    logger.warning(f"{chain.value} node is not reachable")
                    return False
            except NODE_ERRORS as e:
                logger.warning(f"{chain.value} node health check failed: {e}")
                return False
        return True

    async def close(self) -> None:
        for chain in list(self._owned):
            provider = self._clients[chain].provider
            disconnect = getattr(provider, "disconnect", None)
            if disconnect is not None:
                await disconnect()
        self._owned.clear()
