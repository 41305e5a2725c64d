"""
minihost — ASGI Transport
===========================

What:  A transport that receives exchanges through ASGI and binds real
       sockets with uvicorn.
How:   uvicorn parses HTTP and calls AsgiListener for every request. The
       listener wraps the call in an AsgiExchange, queues it for the accept
       loop and waits until the exchange is finalized. AsgiRequestFeature and
       AsgiResponseFeature adapt an exchange to the two capabilities.
Who:   Selected with HostBuilder.use_asgi_server(); driven by ListenerServer.

Exchange flow:
    uvicorn ──scope/receive/send──▶ AsgiListener ──queue──▶ accept loop
        ▲                                                       │
        └──────────── exchange.close() (http.response.body) ◀───┘

Streams are pass-through: request chunks are pulled from `receive` when the
handler reads, and response bytes are sent as soon as they are written. The
status line and headers go out with the first body write, or on close when
nothing was written.
"""

import asyncio
import logging
import socket
from typing import Any, AsyncIterator, Awaitable, Callable, List, MutableMapping, Optional, Tuple

import uvicorn
from starlette.datastructures import URL, Headers, MutableHeaders

from minihost.capabilities import CapabilityRegistry, RequestCapability, ResponseCapability
from minihost.config import DEFAULT_URL, HostSettings
from minihost.exceptions import (
    ClientDisconnectedError,
    ListenerClosedError,
    ResponseStartedError,
    TransportError,
)
from minihost.transports.base import ListenerServer

logger = logging.getLogger(__name__)

Scope = MutableMapping[str, Any]
Message = MutableMapping[str, Any]
Receive = Callable[[], Awaitable[Message]]
Send = Callable[[Message], Awaitable[None]]

SERVICE_UNAVAILABLE = 503
ALL_INTERFACES = {"", "+", "*", "0.0.0.0"}


# ══════════════════════════════════════════════════════════════════════════
# Body Streams
# ══════════════════════════════════════════════════════════════════════════

class RequestBodyStream:
    """Reads the request body from ASGI `http.request` messages as needed."""

    def __init__(self, receive: Receive):
        self._receive = receive
        self._pending = b""
        self._complete = False

    async def _pull(self) -> bytes:
        message = await self._receive()
        if message["type"] == "http.disconnect":
            self._complete = True
            raise ClientDisconnectedError()
        self._complete = not message.get("more_body", False)
        return message.get("body", b"")

    async def read(self, size: int = -1) -> bytes:
        """
        Read up to `size` bytes, or the rest of the body when `size` < 0.

        Returns b"" once the body is exhausted.
        """
        if size < 0:
            chunks = [self._pending]
            self._pending = b""
            while not self._complete:
                chunks.append(await self._pull())
            return b"".join(chunks)

        while not self._pending and not self._complete:
            self._pending = await self._pull()
        data, self._pending = self._pending[:size], self._pending[size:]
        return data

    async def __aiter__(self) -> AsyncIterator[bytes]:
        if self._pending:
            data, self._pending = self._pending, b""
            yield data
        while not self._complete:
            chunk = await self._pull()
            if chunk:
                yield chunk


class ResponseBodyStream:
    """Writes response bytes straight through to the exchange."""

    def __init__(self, exchange: "AsgiExchange"):
        self._exchange = exchange

    async def write(self, data: bytes) -> None:
        if not data:
            return
        await self._exchange.send_body(data)

    async def flush(self) -> None:
        await self._exchange.start_response()


# ══════════════════════════════════════════════════════════════════════════
# Native Exchange
# ══════════════════════════════════════════════════════════════════════════

class AsgiExchange:
    """
    One ASGI HTTP request/response round-trip.

    Holds the request parts taken from the scope and the response state
    (status, headers) until it is sent.
    """

    def __init__(self, scope: Scope, receive: Receive, send: Send):
        self.scope = scope
        self.url = URL(scope=scope)
        self.method: str = scope["method"]
        self.request_headers = Headers(scope=scope)
        self.remote_address: Optional[str] = scope["client"][0] if scope.get("client") else None
        self.input_stream = RequestBodyStream(receive)

        self._status_code = 200
        self.response_headers = MutableHeaders()
        self.output_stream = ResponseBodyStream(self)
        self.response_started = False
        self.closed = False

        self._send = send
        self._done = asyncio.Event()

    @property
    def status_code(self) -> int:
        return self._status_code

    @status_code.setter
    def status_code(self, value: int) -> None:
        if self.response_started:
            raise ResponseStartedError(context={"status_code": value})
        self._status_code = value

    async def start_response(self) -> None:
        """Send the status line and headers if they have not been sent."""
        if self.response_started:
            return
        self.response_started = True
        await self._send(
            {
                "type": "http.response.start",
                "status": self._status_code,
                "headers": self.response_headers.raw,
            }
        )

    async def send_body(self, data: bytes) -> None:
        if self.closed:
            raise TransportError("Cannot write to a closed exchange")
        await self.start_response()
        await self._send({"type": "http.response.body", "body": data, "more_body": True})

    async def close(self) -> None:
        """Finish the response and release the waiting ASGI call."""
        if self.closed:
            return
        try:
            await self.start_response()
            await self._send({"type": "http.response.body", "body": b"", "more_body": False})
        finally:
            self.closed = True
            self._done.set()

    async def wait_closed(self) -> None:
        await self._done.wait()


# ══════════════════════════════════════════════════════════════════════════
# Transport Adapter
# ══════════════════════════════════════════════════════════════════════════

class AsgiRequestFeature:
    """RequestCapability over an AsgiExchange."""

    def __init__(self, exchange: AsgiExchange):
        self._exchange = exchange

    @property
    def url(self) -> URL:
        return self._exchange.url

    @property
    def method(self) -> str:
        return self._exchange.method

    @property
    def headers(self) -> Headers:
        return self._exchange.request_headers

    @property
    def body(self) -> RequestBodyStream:
        return self._exchange.input_stream

    @property
    def remote_address(self) -> Optional[str]:
        return self._exchange.remote_address


class AsgiResponseFeature:
    """ResponseCapability over an AsgiExchange."""

    def __init__(self, exchange: AsgiExchange):
        self._exchange = exchange

    @property
    def status_code(self) -> int:
        return self._exchange.status_code

    @status_code.setter
    def status_code(self, value: int) -> None:
        self._exchange.status_code = value

    @property
    def headers(self) -> MutableHeaders:
        return self._exchange.response_headers

    @property
    def body(self) -> ResponseBodyStream:
        return self._exchange.output_stream

    @property
    def has_started(self) -> bool:
        return self._exchange.response_started


def create_features(exchange: AsgiExchange) -> CapabilityRegistry:
    """Build the capability registry for one exchange."""
    return (
        CapabilityRegistry()
        .set(RequestCapability, AsgiRequestFeature(exchange))
        .set(ResponseCapability, AsgiResponseFeature(exchange))
    )


# ══════════════════════════════════════════════════════════════════════════
# Listener
# ══════════════════════════════════════════════════════════════════════════

class AsgiListener:
    """
    ASGI application that hands every HTTP exchange to accept().

    Each ASGI call blocks until its exchange has been closed by the server
    loop. Calls arriving while the listener is not listening get a 503.
    """

    def __init__(self) -> None:
        self._pending: "asyncio.Queue[Optional[AsgiExchange]]" = asyncio.Queue()
        self.is_listening = False
        self.is_closed = False

    def start(self) -> None:
        if not self.is_closed:
            self.is_listening = True

    def close(self) -> None:
        """Stop listening. Exchanges queued before the close are still accepted."""
        if self.is_closed:
            return
        self.is_closed = True
        self.is_listening = False
        self._pending.put_nowait(None)

    async def accept(self) -> AsgiExchange:
        """
        Wait for the next exchange.

        Raises:
            ListenerClosedError: the listener was closed.
        """
        exchange = await self._pending.get()
        if exchange is None:
            # Keep the sentinel for any other waiter
            self._pending.put_nowait(None)
            raise ListenerClosedError()
        return exchange

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "lifespan":
            await self._lifespan(receive, send)
            return
        if scope["type"] != "http":
            raise TransportError(
                f"Unsupported ASGI scope type '{scope['type']}'",
                context={"scope_type": scope["type"]},
            )

        if not self.is_listening:
            await send({"type": "http.response.start", "status": SERVICE_UNAVAILABLE, "headers": []})
            await send({"type": "http.response.body", "body": b"", "more_body": False})
            return

        exchange = AsgiExchange(scope, receive, send)
        self._pending.put_nowait(exchange)
        await exchange.wait_closed()

    async def _lifespan(self, receive: Receive, send: Send) -> None:
        while True:
            message = await receive()
            if message["type"] == "lifespan.startup":
                await send({"type": "lifespan.startup.complete"})
            elif message["type"] == "lifespan.shutdown":
                await send({"type": "lifespan.shutdown.complete"})
                return


# ══════════════════════════════════════════════════════════════════════════
# Server
# ══════════════════════════════════════════════════════════════════════════

def parse_listen_url(url: str) -> Tuple[str, int]:
    """
    Split a listen URL into a bindable (host, port) pair.

    "+", "*" and an empty host mean all interfaces. A missing port means 80.

    Raises:
        TransportError: the scheme is not http or the URL has a path prefix.
    """
    parsed = URL(url)
    if parsed.scheme != "http":
        raise TransportError(
            f"Unsupported URL scheme in '{url}'; only http is served",
            context={"url": url},
        )
    if parsed.path not in ("", "/"):
        raise TransportError(
            f"Path prefixes are not supported in listen URL '{url}'",
            context={"url": url},
        )
    host = parsed.hostname or ""
    if host in ALL_INTERFACES:
        host = "0.0.0.0"
    return host, parsed.port if parsed.port is not None else 80


class AsgiServer(ListenerServer):
    """
    Serves the listen URLs with uvicorn and feeds exchanges to the accept loop.

    Each URL gets its own listening socket and uvicorn.Server. With no URLs,
    the configured `settings.urls` are used (default http://localhost:5000/).
    Port 0 binds an ephemeral port; `addresses` holds what was bound.
    """

    def __init__(self, *urls: str, settings: Optional[HostSettings] = None):
        super().__init__(settings)
        self.urls: List[str] = list(urls) or self.settings.urls_list or [DEFAULT_URL]
        self.listener = AsgiListener()
        self.addresses: List[Tuple[str, int]] = []
        self._sockets: List[socket.socket] = []
        self._uvicorn_servers: List[uvicorn.Server] = []
        self._serve_tasks: "List[asyncio.Task[None]]" = []
        self._binding_failure: Optional[BaseException] = None

    def __repr__(self) -> str:
        return f"AsgiServer({', '.join(self.urls)})"

    # ── Binding ───────────────────────────────────────────────────────────

    async def _bind(self) -> None:
        bindings = [parse_listen_url(url) for url in self.urls]
        try:
            for url, (host, port) in zip(self.urls, bindings):
                self._sockets.append(self._open_socket(url, host, port))
        except TransportError:
            self._close_sockets()
            raise

        for sock in self._sockets:
            config = uvicorn.Config(
                self.listener,
                interface="asgi3",
                lifespan="off",
                log_config=None,
                access_log=False,
            )
            server = uvicorn.Server(config)
            task = asyncio.create_task(server.serve(sockets=[sock]))
            task.add_done_callback(self._binding_exited)
            self._uvicorn_servers.append(server)
            self._serve_tasks.append(task)
            host, port = sock.getsockname()[:2]
            self.addresses.append((host, port))
            logger.info("Listening on http://%s:%d/", host, port)

        self.listener.start()

    def _open_socket(self, url: str, host: str, port: int) -> socket.socket:
        try:
            return socket.create_server((host, port))
        except OSError as e:
            raise TransportError(
                f"Could not bind '{url}': {e}",
                context={"url": url, "host": host, "port": port},
            ) from e

    def _close_sockets(self) -> None:
        for sock in self._sockets:
            sock.close()
        self._sockets.clear()

    def _binding_exited(self, task: "asyncio.Task[None]") -> None:
        if self._stopping:
            return
        if not task.cancelled() and task.exception() is not None:
            self._binding_failure = task.exception()
            logger.error("uvicorn binding failed", exc_info=self._binding_failure)
        else:
            logger.info("uvicorn binding exited; closing listener")
        self._begin_shutdown()
        self.listener.close()

    async def _unbind(self) -> None:
        self._stopping = True
        for server in self._uvicorn_servers:
            server.should_exit = True
        if self._serve_tasks:
            await asyncio.gather(*self._serve_tasks, return_exceptions=True)
        self._close_sockets()
        if self._binding_failure is not None:
            raise TransportError(
                "uvicorn binding failed while serving",
                context={"urls": self.urls},
            ) from self._binding_failure

    # ── Exchanges ─────────────────────────────────────────────────────────

    async def _accept(self) -> AsgiExchange:
        return await self.listener.accept()

    def _create_features(self, exchange: AsgiExchange) -> CapabilityRegistry:
        return create_features(exchange)

    async def _finalize(self, exchange: AsgiExchange) -> None:
        await exchange.close()

    async def _close_listener(self) -> None:
        self.listener.close()
