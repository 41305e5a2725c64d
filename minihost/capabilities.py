"""
minihost — Capability Registry
================================

What:  A typed, heterogeneous store keyed by capability type, plus the
       capability contracts that transports implement.
How:   A transport adapter registers one object per capability kind for each
       exchange. HttpRequest/HttpResponse look their capability up once and
       delegate to it, so application code never sees the transport.
Who:   Populated by transport adapters; read by the views in minihost.http.

Capability kinds:
    RequestCapability   read-only: url, method, headers, body, remote_address
    ResponseCapability  mutable:   status_code, headers, body, has_started
"""

from typing import Any, AsyncIterator, Dict, Optional, Protocol, Type, TypeVar, runtime_checkable

from starlette.datastructures import URL, Headers, MutableHeaders

T = TypeVar("T")


@runtime_checkable
class InputStream(Protocol):
    """Pass-through request body. Chunks are pulled from the transport on demand."""

    async def read(self, size: int = -1) -> bytes: ...

    def __aiter__(self) -> AsyncIterator[bytes]: ...


@runtime_checkable
class OutputStream(Protocol):
    """Pass-through response body. Writes go straight to the transport."""

    async def write(self, data: bytes) -> None: ...

    async def flush(self) -> None: ...


@runtime_checkable
class RequestCapability(Protocol):
    """Read access to the request side of an exchange."""

    @property
    def url(self) -> URL: ...

    @property
    def method(self) -> str: ...

    @property
    def headers(self) -> Headers: ...

    @property
    def body(self) -> InputStream: ...

    @property
    def remote_address(self) -> Optional[str]: ...


@runtime_checkable
class ResponseCapability(Protocol):
    """Read/write access to the response side of an exchange."""

    status_code: int

    @property
    def headers(self) -> MutableHeaders: ...

    @property
    def body(self) -> OutputStream: ...

    @property
    def has_started(self) -> bool: ...


class CapabilityRegistry:
    """
    One slot per capability kind, last write wins.

    `get` on an unset kind returns None and never raises. The registry is
    filled while an exchange's context is built and only read afterwards.

    Example::

        feature = AsgiExchangeFeature(exchange)
        registry = (
            CapabilityRegistry()
            .set(RequestCapability, feature)
            .set(ResponseCapability, feature)
        )
        registry.get(RequestCapability)  # -> feature
    """

    def __init__(self) -> None:
        self._capabilities: Dict[type, Any] = {}

    def set(self, kind: Type[T], instance: T) -> "CapabilityRegistry":
        """Register `instance` for `kind`, replacing any previous entry."""
        self._capabilities[kind] = instance
        return self

    def get(self, kind: Type[T]) -> Optional[T]:
        """Return the instance registered for `kind`, or None."""
        return self._capabilities.get(kind)

    def __contains__(self, kind: object) -> bool:
        return kind in self._capabilities

    def __len__(self) -> int:
        return len(self._capabilities)

    def __repr__(self) -> str:
        kinds = ", ".join(sorted(k.__name__ for k in self._capabilities))
        return f"CapabilityRegistry({kinds})"
