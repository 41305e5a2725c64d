"""Test helpers for minihost pipelines.

Two levels are provided:

- ``create_test_context()`` builds an HttpContext backed by in-memory
  capabilities, for calling a single handler or middleware directly.
- ``TestServer`` is an AsgiServer that never opens a socket; ``client()``
  talks to it through ``httpx.ASGITransport``. ``serve()`` runs a Host in the
  background for the duration of an ``async with`` block.

Example::

    host = HostBuilder().use_server(TestServer()).configure(setup).build()
    async with serve(host) as client:
        response = await client.get("/")
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator, List, Mapping, Optional

import httpx
from starlette.datastructures import URL, Headers, MutableHeaders

from minihost.capabilities import CapabilityRegistry, RequestCapability, ResponseCapability
from minihost.config import HostSettings
from minihost.exceptions import ResponseStartedError
from minihost.http import HttpContext
from minihost.transports.asgi import AsgiServer

if TYPE_CHECKING:
    from minihost.hosting import Host


# ── In-memory capabilities ────────────────────────────────────────────────


class MemoryInputStream:
    def __init__(self, data: bytes = b"", chunk_size: int = 65536):
        self._data = data
        self._position = 0
        self._chunk_size = chunk_size

    async def read(self, size: int = -1) -> bytes:
        end = len(self._data) if size < 0 else self._position + size
        chunk = self._data[self._position:end]
        self._position += len(chunk)
        return chunk

    async def __aiter__(self) -> AsyncIterator[bytes]:
        while True:
            chunk = await self.read(self._chunk_size)
            if not chunk:
                return
            yield chunk


class MemoryOutputStream:
    def __init__(self, response: "MemoryResponseFeature"):
        self._response = response
        self.chunks: List[bytes] = []

    async def write(self, data: bytes) -> None:
        self._response.has_started = True
        self.chunks.append(data)

    async def flush(self) -> None:
        self._response.has_started = True

    def getvalue(self) -> bytes:
        return b"".join(self.chunks)


class MemoryRequestFeature:
    def __init__(
        self,
        url: str,
        method: str,
        headers: Optional[Mapping[str, str]],
        body: bytes,
        remote_address: Optional[str],
    ):
        self.url = URL(url)
        self.method = method
        self.headers = Headers(headers=dict(headers or {}))
        self.body = MemoryInputStream(body)
        self.remote_address = remote_address


class MemoryResponseFeature:
    def __init__(self) -> None:
        self._status_code = 200
        self.headers = MutableHeaders()
        self.body = MemoryOutputStream(self)
        self.has_started = False

    @property
    def status_code(self) -> int:
        return self._status_code

    @status_code.setter
    def status_code(self, value: int) -> None:
        if self.has_started:
            raise ResponseStartedError(context={"status_code": value})
        self._status_code = value


def create_test_context(
    url: str = "http://testserver/",
    method: str = "GET",
    headers: Optional[Mapping[str, str]] = None,
    body: bytes = b"",
    remote_address: Optional[str] = "127.0.0.1",
) -> HttpContext:
    """Build an HttpContext whose response is captured in memory.

    The response feature is reachable as
    ``context.features.get(ResponseCapability)``; its ``body.getvalue()``
    returns everything written so far.
    """
    features = (
        CapabilityRegistry()
        .set(RequestCapability, MemoryRequestFeature(url, method, headers, body, remote_address))
        .set(ResponseCapability, MemoryResponseFeature())
    )
    return HttpContext(features)


def response_body(context: HttpContext) -> bytes:
    """Everything written to the body of a context from create_test_context()."""
    return context.features.get(ResponseCapability).body.getvalue()


# ── In-process server ─────────────────────────────────────────────────────


class TestServer(AsgiServer):
    """AsgiServer without sockets; exchanges arrive through ``client()``."""

    __test__ = False  # not a pytest test class

    def __init__(self, *, settings: Optional[HostSettings] = None) -> None:
        super().__init__("http://testserver/", settings=settings)

    async def _bind(self) -> None:
        self.listener.start()

    async def _unbind(self) -> None:
        pass

    def client(self, base_url: str = "http://testserver") -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=httpx.ASGITransport(app=self.listener),
            base_url=base_url,
        )


@asynccontextmanager
async def serve(host: Host) -> AsyncIterator[httpx.AsyncClient]:
    """Run ``host`` in the background and yield a client for its TestServer."""
    server = host.server
    if not isinstance(server, TestServer):
        raise TypeError(f"serve() needs a Host built with TestServer, got {server!r}")

    task = asyncio.create_task(host.run())
    serving = asyncio.create_task(server.wait_serving())
    await asyncio.wait([task, serving], return_when=asyncio.FIRST_COMPLETED)
    if not serving.done():
        serving.cancel()
    if task.done():
        # run() failed before serving; surface its exception
        task.result()
    try:
        async with server.client() as client:
            yield client
    finally:
        await host.stop()
        await task
