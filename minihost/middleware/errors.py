"""
minihost — Exception Handling Middleware
==========================================

What:  Turns exceptions escaping the rest of the pipeline into a 500 response.
How:   Wraps `next` in try/except. If nothing has been sent yet the response
       becomes a JSON error carrying the request ID; the exception is logged
       with its traceback either way. Internal details never reach the client.
When:  Registered after RequestIDMiddleware and RequestLoggingMiddleware so
       the access log records the final status.

Response body:
    {
        "error": "internal_server_error",
        "message": "An unexpected error occurred. ...",
        "request_id": "a1b2c3d4"
    }
"""

import logging

from minihost.exceptions import MiniHostError
from minihost.http import HttpContext
from minihost.middleware.request_id import request_id_var
from minihost.pipeline import RequestDelegate

logger = logging.getLogger(__name__)

INTERNAL_SERVER_ERROR = 500


class ExceptionHandlingMiddleware:
    """Catch-all error translation for the downstream pipeline."""

    def __call__(self, next: RequestDelegate) -> RequestDelegate:
        async def handler(context: HttpContext) -> None:
            try:
                await next(context)
            except MiniHostError as exc:
                rid = request_id_var.get("")
                logger.error(
                    "[%s] Host error: %s | Context: %s",
                    rid,
                    exc.message,
                    exc.context,
                    exc_info=True,
                )
                await self._write_error(context, "server_error", rid)
            except Exception as exc:
                rid = request_id_var.get("")
                logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
                await self._write_error(context, "internal_server_error", rid)

        return handler

    async def _write_error(self, context: HttpContext, error: str, rid: str) -> None:
        if context.response.has_started:
            # Status line already sent; the truncated body is all the client gets
            return
        await context.response.write_json(
            {
                "error": error,
                "message": (
                    "An unexpected error occurred. Please try again or "
                    "contact support."
                ),
                "request_id": rid,
            },
            status_code=INTERNAL_SERVER_ERROR,
        )
