"""
minihost — Transports
=======================

What:  Servers that accept HTTP exchanges and run them through a pipeline.

    Server (abstract)
    └── ListenerServer   accept loop, exchange isolation, graceful stop
        └── AsgiServer   uvicorn sockets + ASGI listener
"""

from minihost.transports.asgi import (
    AsgiExchange,
    AsgiListener,
    AsgiRequestFeature,
    AsgiResponseFeature,
    AsgiServer,
    create_features,
    parse_listen_url,
)
from minihost.transports.base import ListenerServer, Server, ServerState

__all__ = [
    "Server",
    "ServerState",
    "ListenerServer",
    "AsgiServer",
    "AsgiListener",
    "AsgiExchange",
    "AsgiRequestFeature",
    "AsgiResponseFeature",
    "create_features",
    "parse_listen_url",
]
