"""
Tests for execution engine selection.
"""
from unittest.mock import AsyncMock, MagicMock

import pytest

from oif_solver.exceptions import ConfigurationError
from oif_solver.execution.direct import DirectExecutor
from oif_solver.execution.factory import ExecutionEngineFactory
from oif_solver.execution.relayer import RelayerExecutor
from oif_solver.execution.types import ChainType, TransportType
from helpers import make_config

RELAYER = dict(relayer_api_url="http://relayer.test/api/v1", relayer_api_key="test-key")


class TestAvailability:

    def test_direct_only_without_relayer_key(self):
        factory = ExecutionEngineFactory(make_config())
        assert factory.available_transports() == [TransportType.DIRECT]
        assert not factory.supports(TransportType.RELAYER)

    def test_both_transports(self):
        factory = ExecutionEngineFactory(make_config(**RELAYER))
        assert factory.available_transports() == [TransportType.DIRECT, TransportType.RELAYER]

    def test_injected_clients_count_as_direct(self):
        clients = {ChainType.ORIGIN: MagicMock(), ChainType.DESTINATION: MagicMock()}
        factory = ExecutionEngineFactory(
            make_config(origin_rpc_url="", destination_rpc_url=""), web3_clients=clients
        )
        assert factory.supports(TransportType.DIRECT)

    def test_recommend_transport(self):
        factory = ExecutionEngineFactory(make_config(**RELAYER))
        assert factory.recommend_transport("static_call") == TransportType.DIRECT
        assert factory.recommend_transport("transaction") == TransportType.RELAYER

        direct_only = ExecutionEngineFactory(make_config())
        assert direct_only.recommend_transport("transaction") == TransportType.DIRECT

    def test_create_unconfigured_transport(self):
        factory = ExecutionEngineFactory(make_config())
        with pytest.raises(ConfigurationError):
            factory.create(TransportType.RELAYER)


class TestCreateEngine:

    @pytest.mark.asyncio
    async def test_direct_backend(self):
        engine = await ExecutionEngineFactory(make_config()).create_engine()
        assert isinstance(engine, DirectExecutor)
        assert engine.chain_ids == {ChainType.ORIGIN: 31337, ChainType.DESTINATION: 31338}

    @pytest.mark.asyncio
    async def test_relayer_backend(self):
        factory = ExecutionEngineFactory(make_config(execution_backend="relayer", **RELAYER))
        engine = await factory.create_engine()
        try:
            assert isinstance(engine, RelayerExecutor)
            assert engine.chain_endpoints[31338] == "anvil-destination-relayer"
        finally:
            await engine.close()

    @pytest.mark.asyncio
    async def test_relayer_backend_requires_key(self):
        factory = ExecutionEngineFactory(make_config(execution_backend="relayer"))
        with pytest.raises(ConfigurationError):
            await factory.create_engine()

    @pytest.mark.asyncio
    async def test_unknown_backend(self):
        with pytest.raises(ConfigurationError):
            await ExecutionEngineFactory(make_config()).create_engine("carrier-pigeon")

    @pytest.mark.asyncio
    async def test_hybrid_prefers_healthy_relayer(self, monkeypatch):
        monkeypatch.setattr(RelayerExecutor, "health_check", AsyncMock(return_value=True))
        factory = ExecutionEngineFactory(make_config(execution_backend="hybrid", **RELAYER))

        engine = await factory.create_engine()
        try:
            assert engine.transport == TransportType.RELAYER
        finally:
            await engine.close()

    @pytest.mark.asyncio
    async def test_hybrid_falls_back_on_failed_health_check(self, monkeypatch):
        """An unhealthy relayer at creation time means direct execution."""
        monkeypatch.setattr(RelayerExecutor, "health_check", AsyncMock(return_value=False))
        close = AsyncMock()
        monkeypatch.setattr(RelayerExecutor, "close", close)
        factory = ExecutionEngineFactory(make_config(execution_backend="hybrid", **RELAYER))

        engine = await factory.create_engine()

        assert engine.transport == TransportType.DIRECT
        close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_hybrid_falls_back_without_relayer(self):
        factory = ExecutionEngineFactory(make_config(execution_backend="hybrid"))
        engine = await factory.create_engine()
        assert isinstance(engine, DirectExecutor)
