"""
OIF Solver entry point.
"""
import asyncio
import logging
import sys
from typing import Optional

import uvicorn

from oif_solver.api.main import create_app
from oif_solver.config.settings import Config
from oif_solver.logging.logger import setup_logging
from oif_solver.services.solver import SolverService

logger = logging.getLogger("oif_solver")


class Application:
    """Solver process: service plus HTTP server."""

    def __init__(self, config: Optional[Config] = None):
        self.config = config or Config()
        self.solver: Optional[SolverService] = None
        self.server: Optional[uvicorn.Server] = None

    async def setup(self):
        """Initialize all components."""
        setup_logging(self.config)
        logger.info("Initializing OIF solver...")

        is_valid, msg = self.config.validate_execution()
        if not is_valid:
            logger.error(f"Execution config invalid: {msg}")
            raise ValueError(msg)

        self.solver = await SolverService.from_config(self.config)

        app = create_app(self.solver)
        self.server = uvicorn.Server(uvicorn.Config(
            app,
            host=self.config.server_host,
            port=self.config.server_port,
            log_config=None,
        ))

        logger.info("Initialization complete.")

    async def start(self):
        """Run until the server is asked to exit."""
        await self.solver.startup()
        logger.info(f"Serving on http://{self.config.server_host}:{self.config.server_port}")
        # uvicorn handles SIGINT/SIGTERM while serving
        await self.server.serve()

    async def stop(self):
        """Graceful shutdown."""
        if self.server is not None:
            self.server.should_exit = True
        if self.solver is not None:
            await self.solver.shutdown()
            self.solver = None


async def main():
    application = Application()
    try:
        await application.setup()
        await application.start()
    except Exception as e:
        logger.error(f"Critical error: {e}", exc_info=True)
        await application.stop()
        sys.exit(1)
    await application.stop()


if __name__ == "__main__":
    asyncio.run(main())
