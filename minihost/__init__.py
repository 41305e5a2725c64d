"""
minihost — Minimal HTTP Host
==============================

What:  A middleware pipeline composed over a pluggable HTTP transport.
How:   Middleware are `(next) -> handler` callables folded into one handler
       over a 404 fallback. Transports expose each exchange through a
       capability registry, so the request/response views never depend on a
       concrete HTTP implementation.

    ┌─────────────────────────────────────┐
    │        HostBuilder → Host           │  ← wiring
    ├─────────────────────────────────────┤
    │   ApplicationBuilder (pipeline)     │  ← middleware composition
    ├─────────────────────────────────────┤
    │   HttpContext / Request / Response  │  ← transport-independent views
    ├─────────────────────────────────────┤
    │   CapabilityRegistry                │  ← typed capability lookup
    ├─────────────────────────────────────┤
    │   Server (AsgiServer over uvicorn)  │  ← transport
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"

from minihost.capabilities import (
    CapabilityRegistry,
    InputStream,
    OutputStream,
    RequestCapability,
    ResponseCapability,
)
from minihost.config import HostSettings, settings
from minihost.exceptions import (
    ClientDisconnectedError,
    ListenerClosedError,
    MiniHostError,
    MissingCapabilityError,
    ResponseStartedError,
    ServerStateError,
    TransportError,
    TransportUnsetError,
)
from minihost.hosting import Host, HostBuilder, setup_logging
from minihost.http import HttpContext, HttpRequest, HttpResponse
from minihost.pipeline import ApplicationBuilder, Middleware, RequestDelegate, not_found
from minihost.transports import AsgiServer, ListenerServer, Server, ServerState

__all__ = [
    # Capabilities
    "CapabilityRegistry",
    "RequestCapability",
    "ResponseCapability",
    "InputStream",
    "OutputStream",
    # Views
    "HttpContext",
    "HttpRequest",
    "HttpResponse",
    # Pipeline
    "ApplicationBuilder",
    "Middleware",
    "RequestDelegate",
    "not_found",
    # Hosting
    "Host",
    "HostBuilder",
    "setup_logging",
    # Transports
    "Server",
    "ServerState",
    "ListenerServer",
    "AsgiServer",
    # Config
    "HostSettings",
    "settings",
    # Errors
    "MiniHostError",
    "MissingCapabilityError",
    "TransportUnsetError",
    "ServerStateError",
    "ResponseStartedError",
    "TransportError",
    "ListenerClosedError",
    "ClientDisconnectedError",
]
