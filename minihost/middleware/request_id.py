"""
minihost — Request ID Middleware
==================================

What:  Assigns an ID to each exchange and echoes it in the response.
How:   Uses the client's X-Request-ID header when present, otherwise a short
       UUID. The ID is stored in a ContextVar (for loggers), in
       context.items["request_id"] (for handlers) and in the X-Request-ID
       response header.
When:  Registered first so every later middleware sees the ID.
"""

import uuid
from contextvars import ContextVar

from minihost.http import HttpContext
from minihost.pipeline import RequestDelegate

REQUEST_ID_HEADER = "X-Request-ID"

# Coroutine-local: each exchange task gets its own copy
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class RequestIDMiddleware:
    """
    Assigns a request ID to each exchange.

    Behavior:
        1. Use the client's X-Request-ID header if present
        2. Otherwise generate an 8-character UUID prefix
        3. Store it in request_id_var and context.items
        4. Set it on the response before any body is written
    """

    def __init__(self, header: str = REQUEST_ID_HEADER):
        self.header = header

    def __call__(self, next: RequestDelegate) -> RequestDelegate:
        async def handler(context: HttpContext) -> None:
            rid = context.request.headers.get(self.header) or str(uuid.uuid4())[:8]
            token = request_id_var.set(rid)
            context.items["request_id"] = rid
            context.response.headers[self.header] = rid
            try:
                await next(context)
            finally:
                request_id_var.reset(token)

        return handler
