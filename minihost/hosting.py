"""
minihost — Host and Host Builder
==================================

What:  Wires a server (transport) and a compiled pipeline into a runnable host.
How:   HostBuilder collects configuration callbacks and a server. build()
       applies every callback, in registration order, to one fresh
       ApplicationBuilder, compiles it once and returns a Host.
Who:   Application entry points.
When:  Once per process; the compiled handler is reused for every exchange.

Example::

    host = (
        HostBuilder()
        .use_asgi_server("http://localhost:5000/")
        .configure(lambda app: app.use(hello).use(world))
        .build()
    )
    host.run_sync()

Lifecycle:
    run_sync():
    1. Configure logging from settings
    2. Run the server loop until stop() or Ctrl+C
    3. Drain in-flight exchanges and release the sockets
"""

import asyncio
import logging
import sys
from typing import Callable, List, Optional

from minihost.config import HostSettings, settings as default_settings
from minihost.exceptions import TransportUnsetError
from minihost.pipeline import ApplicationBuilder, RequestDelegate
from minihost.transports.asgi import AsgiServer
from minihost.transports.base import Server

logger = logging.getLogger(__name__)

ConfigureCallback = Callable[[ApplicationBuilder], None]


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(settings: Optional[HostSettings] = None) -> None:
    """
    Configure root logging for a host process.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s

    Called by Host.run_sync(); library code never configures logging on import.
    """
    settings = settings or default_settings
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # minihost writes its own access log
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Host
# ══════════════════════════════════════════════════════════════════════════

class Host:
    """A server paired with the handler it runs for every exchange."""

    def __init__(
        self,
        server: Server,
        handler: RequestDelegate,
        settings: Optional[HostSettings] = None,
    ):
        self.server = server
        self.handler = handler
        self.settings = settings or default_settings

    async def run(self) -> None:
        await self.server.run(self.handler)

    async def stop(self) -> None:
        await self.server.stop()

    def run_sync(self) -> None:
        """Process entry point: set up logging and serve until interrupted."""
        setup_logging(self.settings)
        logger.info("=" * 60)
        logger.info("minihost starting with %r", self.server)
        try:
            asyncio.run(self.run())
        except KeyboardInterrupt:
            logger.info("Interrupted")
        logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Host Builder
# ══════════════════════════════════════════════════════════════════════════

class HostBuilder:
    """Accumulates configuration callbacks and a server, then builds a Host."""

    def __init__(self, settings: Optional[HostSettings] = None):
        self.settings = settings or default_settings
        self._server: Optional[Server] = None
        self._configures: List[ConfigureCallback] = []

    def configure(self, configure: ConfigureCallback) -> "HostBuilder":
        self._configures.append(configure)
        return self

    def use_server(self, server: Server) -> "HostBuilder":
        self._server = server
        return self

    def use_asgi_server(self, *urls: str) -> "HostBuilder":
        """Serve `urls` with uvicorn. No URLs means the configured defaults."""
        return self.use_server(AsgiServer(*urls, settings=self.settings))

    def build(self) -> Host:
        """
        Compile the pipeline and pair it with the selected server.

        Raises:
            TransportUnsetError: no server was selected.
        """
        if self._server is None:
            raise TransportUnsetError()

        app = ApplicationBuilder()
        for configure in self._configures:
            configure(app)
        handler = app.build()
        logger.debug(
            "Built pipeline with %d middleware(s) for %r", len(app), self._server
        )
        return Host(self._server, handler, self.settings)
