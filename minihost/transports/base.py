"""
minihost — Server Interface and Accept Loop
=============================================

What:  The contract every transport implements, plus the accept loop shared
       by listener-style transports.
How:   ListenerServer.run() binds, then repeatedly awaits the next native
       exchange, builds an HttpContext through the transport adapter, runs
       the composed handler and finalizes the exchange. Subclasses only
       supply the transport-specific steps (_bind, _accept, _create_features,
       _finalize, _close_listener, _unbind).
Who:   Driven by Host.run(); AsgiServer is the concrete transport.

State machine:
    IDLE ──run()──▶ SERVING ──stop() / listener closed──▶ STOPPED

Exchange isolation:
    An exception escaping the handler is logged; if nothing was sent yet the
    status becomes 500. The exchange is still finalized and the loop keeps
    accepting. Failures of accept itself propagate out of run().

Shutdown:
    stop() starts a single shutdown_timeout clock. In-flight exchanges, and
    in serialized mode the one currently running, get until then to finish;
    the rest are cancelled and finalized. STOPPED is entered even when
    unbinding raises.
"""

import asyncio
import enum
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from minihost.capabilities import CapabilityRegistry
from minihost.config import HostSettings, settings as default_settings
from minihost.exceptions import ListenerClosedError, ServerStateError
from minihost.http import HttpContext
from minihost.pipeline import RequestDelegate

logger = logging.getLogger(__name__)

INTERNAL_SERVER_ERROR = 500


class ServerState(enum.Enum):
    IDLE = "idle"
    SERVING = "serving"
    STOPPED = "stopped"


class Server(ABC):
    """
    Abstract transport driven by a Host.

    Contract:
        - run() serves exchanges with the given handler until stop() is
          called or the transport fails
        - stop() makes a running run() return after in-flight exchanges
          have completed
    """

    @abstractmethod
    async def run(self, handler: RequestDelegate) -> None:
        """
        Serve exchanges with `handler` until stopped.

        Raises:
            ServerStateError: the server is not idle.
            TransportError: binding failed or the transport broke down.
        """
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Request an orderly shutdown of a running server."""
        ...


class ListenerServer(Server):
    """
    Accept loop over an abstract listener.

    With `concurrent_exchanges` enabled each exchange is processed in its own
    task; otherwise exchanges are processed one at a time, in accept order.
    Either way the middleware ordering inside one exchange is unchanged.
    """

    def __init__(self, settings: Optional[HostSettings] = None):
        self.settings = settings or default_settings
        self.state = ServerState.IDLE
        self._stopping = False
        self._stop_requested = asyncio.Event()
        self._deadline: Optional[float] = None
        self._serving = asyncio.Event()
        self._in_flight: Dict["asyncio.Task[None]", Any] = {}

    # ── Transport hooks ───────────────────────────────────────────────────

    @abstractmethod
    async def _bind(self) -> None:
        """Bind to the configured addresses and start listening."""

    @abstractmethod
    async def _accept(self) -> Any:
        """
        Wait for the next native exchange.

        Raises:
            ListenerClosedError: the listener was closed by stop().
        """

    @abstractmethod
    def _create_features(self, exchange: Any) -> CapabilityRegistry:
        """Adapt a native exchange into a populated capability registry."""

    @abstractmethod
    async def _finalize(self, exchange: Any) -> None:
        """Flush and close a native exchange."""

    @abstractmethod
    async def _close_listener(self) -> None:
        """Stop accepting; a pending _accept() must raise ListenerClosedError."""

    @abstractmethod
    async def _unbind(self) -> None:
        """Release the addresses bound by _bind()."""

    # ── Lifecycle ─────────────────────────────────────────────────────────

    async def wait_serving(self) -> None:
        """Wait until the server is bound and accepting."""
        await self._serving.wait()

    async def run(self, handler: RequestDelegate) -> None:
        if self.state is not ServerState.IDLE:
            raise ServerStateError(self.state.value)

        await self._bind()
        self.state = ServerState.SERVING
        self._serving.set()
        logger.info("Server started: %s", self)

        try:
            while True:
                try:
                    exchange = await self._accept()
                except ListenerClosedError:
                    break

                task = asyncio.create_task(self._process(handler, exchange))
                self._in_flight[task] = exchange
                task.add_done_callback(self._forget)
                if not self.settings.concurrent_exchanges:
                    await self._wait_serialized(task)
        finally:
            try:
                await self._drain()
                await self._unbind()
            finally:
                self.state = ServerState.STOPPED
                logger.info("Server stopped: %s", self)

    async def stop(self) -> None:
        if self._stopping:
            return
        self._begin_shutdown()
        logger.info("Stopping server: %s", self)
        await self._close_listener()

    def _begin_shutdown(self) -> None:
        """Mark the server as stopping and start the shutdown_timeout clock."""
        self._stopping = True
        if self._deadline is None:
            self._deadline = time.monotonic() + self.settings.shutdown_timeout
        self._stop_requested.set()

    # ── Per-exchange processing ───────────────────────────────────────────

    async def _process(self, handler: RequestDelegate, exchange: Any) -> None:
        try:
            context = HttpContext(self._create_features(exchange))
            try:
                await handler(context)
            except Exception:
                logger.error(
                    "Unhandled error while processing %r", context, exc_info=True
                )
                if not context.response.has_started:
                    context.response.status_code = INTERNAL_SERVER_ERROR
                    # The body the handler sized is not going to be sent
                    if "content-length" in context.response.headers:
                        del context.response.headers["content-length"]
        finally:
            await self._finalize_quietly(exchange)

    async def _finalize_quietly(self, exchange: Any) -> None:
        try:
            await self._finalize(exchange)
        except Exception:
            logger.error("Failed to finalize exchange", exc_info=True)

    def _forget(self, task: "asyncio.Task[None]") -> None:
        self._in_flight.pop(task, None)

    async def _wait_serialized(self, task: "asyncio.Task[None]") -> None:
        """Wait for one exchange, handing it to _drain() if stop() arrives first."""
        stop_requested = asyncio.create_task(self._stop_requested.wait())
        try:
            await asyncio.wait(
                {task, stop_requested}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            stop_requested.cancel()
        if not task.done():
            await self._drain()

    async def _drain(self) -> None:
        """Wait for in-flight exchanges, cancelling any still running at the deadline."""
        if not self._in_flight:
            return
        if self._deadline is None:
            self._deadline = time.monotonic() + self.settings.shutdown_timeout
        pending = dict(self._in_flight)
        timeout = max(0.0, self._deadline - time.monotonic())
        logger.info("Waiting for %d in-flight exchange(s)", len(pending))
        _, still_running = await asyncio.wait(set(pending), timeout=timeout)
        if still_running:
            logger.warning(
                "Cancelling %d exchange(s) still running after %.1fs",
                len(still_running),
                self.settings.shutdown_timeout,
            )
            for task in still_running:
                task.cancel()
            await asyncio.gather(*still_running, return_exceptions=True)
            # A task cancelled before its first step never reaches its finally
            for task in still_running:
                await self._finalize_quietly(pending[task])
