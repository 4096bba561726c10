"""
Tests for the process entry point.
"""
import logging
from unittest.mock import AsyncMock

import pytest

from oif_solver.config.settings import ZERO_ADDRESS
from oif_solver.main import Application
from helpers import FakeEngine, make_config


@pytest.fixture(autouse=True)
def restore_package_logger():
    logger = logging.getLogger("oif_solver")
    saved = (logger.level, list(logger.handlers), logger.propagate)
    yield
    for handler in logger.handlers:
        if handler not in saved[1]:
            handler.close()
    logger.setLevel(saved[0])
    logger.handlers = saved[1]
    logger.propagate = saved[2]


@pytest.mark.asyncio
async def test_setup_rejects_invalid_config():
    application = Application(make_config(settler_compact_address=ZERO_ADDRESS))
    with pytest.raises(ValueError):
        await application.setup()
    assert application.solver is None


@pytest.mark.asyncio
async def test_setup_and_stop(monkeypatch):
    engine = FakeEngine()
    monkeypatch.setattr(
        "oif_solver.services.solver.ExecutionEngineFactory.create_engine",
        AsyncMock(return_value=engine),
    )
    application = Application(make_config(server_port=3999))

    await application.setup()
    assert application.server.config.port == 3999
    assert application.solver.engine is engine

    await application.stop()
    assert application.server.should_exit is True
    assert engine.closed is True
