"""
minihost — Exception Hierarchy
================================

What:  Host-specific exceptions for wiring, configuration and transport failures.
How:   Each exception carries a human-readable message and an optional context
       dict. Wiring and configuration errors surface at build time; transport
       errors surface from the server loop or from a single exchange.
Who:   Raised by views, builders, servers and transports; caught by the server
       loop (per-exchange isolation) and by ExceptionHandlingMiddleware.

Exception Hierarchy:
    MiniHostError (base)
    ├── MissingCapabilityError      → view constructed without its capability
    ├── TransportUnsetError         → HostBuilder.build() without a server
    ├── ServerStateError            → run() on a server that is not idle
    ├── ResponseStartedError        → status changed after the body started
    └── TransportError              → bind failure, I/O failure, bad URL/scope
        ├── ListenerClosedError     → accept() after the listener was closed
        └── ClientDisconnectedError → peer went away while the body was read
"""

from typing import Any, Dict, Optional


class MiniHostError(Exception):
    """
    Base exception for all minihost errors.

    Attributes:
        message:  Human-readable description.
        context:  Additional debug info (logged, never written to a response).
    """

    def __init__(
        self,
        message: str = "An unexpected host error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class MissingCapabilityError(MiniHostError):
    """
    Raised when a request/response view is built against a registry that
    lacks the capability it needs.

    This is a wiring bug in a transport adapter, not a runtime condition.
    It is never retried.
    """

    def __init__(
        self,
        capability: type,
        context: Optional[Dict[str, Any]] = None,
    ):
        name = getattr(capability, "__name__", repr(capability))
        ctx = context or {}
        ctx["capability"] = name
        super().__init__(
            message=f"Capability {name} is not registered for this exchange",
            context=ctx,
        )
        self.capability = capability


class TransportUnsetError(MiniHostError):
    """Raised by HostBuilder.build() when no server was selected."""

    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=(
                "No server configured. Call use_server() or use_asgi_server() "
                "before build()."
            ),
            context=context,
        )


class ServerStateError(MiniHostError):
    """Raised when a server is asked to run while not idle."""

    def __init__(self, state: str, context: Optional[Dict[str, Any]] = None):
        ctx = context or {}
        ctx["state"] = state
        super().__init__(
            message=f"Server cannot run from state '{state}'; servers run once",
            context=ctx,
        )
        self.state = state


class ResponseStartedError(MiniHostError):
    """
    Raised when the status code is changed after the response started.

    The status line goes out with the first body write; later changes would
    never reach the client.
    """

    def __init__(
        self,
        message: str = "Response has already started; status can no longer change",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class TransportError(MiniHostError):
    """
    Raised when the transport cannot bind, accept, read or write.

    Bind failures propagate out of the server loop. I/O failures inside one
    exchange are contained to that exchange.
    """

    def __init__(
        self,
        message: str = "Transport operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ListenerClosedError(TransportError):
    """Raised by accept() once the listener has been closed."""

    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__(message="Listener is closed", context=context)


class ClientDisconnectedError(TransportError):
    """Raised when the client disconnects before the request body was read."""

    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__(
            message="Client disconnected while the request body was being read",
            context=context,
        )
