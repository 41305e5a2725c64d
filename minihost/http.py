"""
minihost — Request, Response and Context Views
================================================

What:  Transport-independent facades over the capability registry.
How:   Each view resolves its capability once at construction and delegates
       every accessor to it. Mutations (status, headers, body writes) hit the
       capability directly, so the transport sees them immediately.
Who:   Built by the server loop for every exchange; used by middleware.
When:  Created after the transport hands off an exchange; discarded once the
       exchange is finalized.
"""

from typing import Any, Dict, Mapping, Optional

from starlette.datastructures import URL, Headers, MutableHeaders
from starlette.responses import JSONResponse

from minihost.capabilities import (
    CapabilityRegistry,
    InputStream,
    OutputStream,
    RequestCapability,
    ResponseCapability,
)
from minihost.exceptions import MissingCapabilityError, ResponseStartedError


class HttpRequest:
    """Read-only view of the request side of an exchange."""

    def __init__(self, features: CapabilityRegistry):
        capability = features.get(RequestCapability)
        if capability is None:
            raise MissingCapabilityError(RequestCapability)
        self._capability = capability

    @property
    def url(self) -> URL:
        return self._capability.url

    @property
    def method(self) -> str:
        return self._capability.method

    @property
    def path(self) -> str:
        return self._capability.url.path

    @property
    def headers(self) -> Headers:
        return self._capability.headers

    @property
    def body(self) -> InputStream:
        return self._capability.body

    @property
    def remote_address(self) -> Optional[str]:
        return self._capability.remote_address


class HttpResponse:
    """Read/write view of the response side of an exchange."""

    def __init__(self, features: CapabilityRegistry):
        capability = features.get(ResponseCapability)
        if capability is None:
            raise MissingCapabilityError(ResponseCapability)
        self._capability = capability

    @property
    def status_code(self) -> int:
        return self._capability.status_code

    @status_code.setter
    def status_code(self, value: int) -> None:
        self._capability.status_code = value

    @property
    def headers(self) -> MutableHeaders:
        return self._capability.headers

    @property
    def body(self) -> OutputStream:
        return self._capability.body

    @property
    def has_started(self) -> bool:
        return self._capability.has_started

    async def write(self, contents: str, encoding: str = "utf-8") -> None:
        """Encode `contents` and write it to the response body."""
        await self._capability.body.write(contents.encode(encoding))

    async def write_json(
        self,
        content: Any,
        status_code: Optional[int] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        """
        Write `content` as a complete JSON body.

        Rendering is delegated to Starlette's JSONResponse, whose
        content-type and content-length headers are copied onto this
        response before the bytes are written.

        Raises:
            ResponseStartedError: the body has already started.
        """
        if self.has_started:
            raise ResponseStartedError(
                "Cannot write a JSON body after the response has started"
            )
        rendered = JSONResponse(
            content=content,
            status_code=status_code or self.status_code,
            headers=dict(headers) if headers else None,
        )
        self.status_code = rendered.status_code
        for name, value in rendered.headers.items():
            self.headers[name] = value
        await self._capability.body.write(rendered.body)


class HttpContext:
    """
    Pairs the request and response views of one exchange.

    `items` holds per-exchange state shared between middlewares
    (e.g. the request id set by RequestIDMiddleware).
    """

    def __init__(self, features: CapabilityRegistry):
        self.features = features
        self.request = HttpRequest(features)
        self.response = HttpResponse(features)
        self.items: Dict[str, Any] = {}

    def __repr__(self) -> str:
        return f"HttpContext({self.request.method} {self.request.url})"
