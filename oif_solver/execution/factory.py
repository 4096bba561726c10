"""
Execution engine factory.

Chooses a backend once, when the engine is created. A hybrid policy prefers
the relayer and falls back to direct execution only if the relayer cannot be
built or fails its health check at that moment.
"""
import logging
from typing import Dict, List, Optional

from web3 import AsyncWeb3

from oif_solver.config.settings import Config
from oif_solver.exceptions import ConfigurationError
from oif_solver.execution.direct import DirectExecutor
from oif_solver.execution.relayer import RelayerExecutor
from oif_solver.execution.types import ChainType, ExecutionEngine, TransportType

logger = logging.getLogger(__name__)

BACKENDS = ("direct", "relayer", "hybrid")


class ExecutionEngineFactory:
    """
    Builds execution engines from configuration.

    Example:
        factory = ExecutionEngineFactory(config)
        engine = await factory.create_engine()
    """

    def __init__(self, config: Config, web3_clients: Optional[Dict[ChainType, AsyncWeb3]] = None):
        self.config = config
        self.web3_clients = web3_clients

    @property
    def chain_ids(self) -> Dict[ChainType, int]:
        return {
            ChainType.ORIGIN: self.config.origin_chain_id,
            ChainType.DESTINATION: self.config.destination_chain_id,
        }

    def available_transports(self) -> List[TransportType]:
        """Transports the current configuration can build."""
        available = []
        if self.config.solver_private_key and (
            self.web3_clients or (self.config.origin_rpc_url and self.config.destination_rpc_url)
        ):
            available.append(TransportType.DIRECT)
        if self.config.relayer_api_url and self.config.relayer_api_key:
            available.append(TransportType.RELAYER)
        return available

    def supports(self, transport: TransportType) -> bool:
        return transport in self.available_transports()

    def recommend_transport(self, use_case: str) -> TransportType:
        """
        Suggest a transport for a kind of work.

        Reads need a node, so they always go direct. Transactions prefer the
        relayer when one is configured.
        """
        if use_case in ("static_call", "read", "gas_estimation"):
            return TransportType.DIRECT
        if self.supports(TransportType.RELAYER):
            return TransportType.RELAYER
        return TransportType.DIRECT

    def create(self, transport: TransportType) -> ExecutionEngine:
        """
        Build an engine for ``transport``.

        Raises:
            ConfigurationError: If the transport is not configured
        """
        if not self.supports(transport):
            raise ConfigurationError(f"{transport.value} execution is not configured")

        if transport == TransportType.DIRECT:
            return DirectExecutor(
                private_key=self.config.solver_private_key,
                rpc_urls={
                    ChainType.ORIGIN: self.config.origin_rpc_url,
                    ChainType.DESTINATION: self.config.destination_rpc_url,
                },
                chain_ids=self.chain_ids,
                confirm_transactions=self.config.confirm_transactions,
                confirmation_timeout=self.config.confirmation_timeout_seconds,
                clients=self.web3_clients,
            )

        return RelayerExecutor(
            api_url=self.config.relayer_api_url,
            api_key=self.config.relayer_api_key,
            chain_ids=self.chain_ids,
            chain_endpoints=self.config.relayer_chain_endpoints,
            use_async=self.config.relayer_use_async,
            timeout_seconds=self.config.relayer_timeout_seconds,
            poll_interval=self.config.relayer_poll_interval_seconds,
        )

    async def create_engine(self, backend: Optional[str] = None) -> ExecutionEngine:
        """
        Build the engine for the configured backend policy.

        Args:
            backend: ``direct``, ``relayer`` or ``hybrid``; defaults to config

        Raises:
            ConfigurationError: If the policy is unknown or cannot be met
        """
        backend = (backend or self.config.execution_backend).lower()
        if backend not in BACKENDS:
            raise ConfigurationError(f"Unknown execution backend: {backend}")

        if backend == "direct":
            return self.create(TransportType.DIRECT)
        if backend == "relayer":
            return self.create(TransportType.RELAYER)

        try:
            relayer = self.create(TransportType.RELAYER)
        except ConfigurationError as e:
            logger.warning(f"Relayer unavailable ({e}), falling back to direct execution")
            return self.create(TransportType.DIRECT)

        if await relayer.health_check():
            logger.info("Hybrid execution: using relayer")
            return relayer

        logger.warning("Relayer failed its health check, falling back to direct execution")
        await relayer.close()
        return self.create(TransportType.DIRECT)
