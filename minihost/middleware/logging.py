"""
minihost — Request Logging Middleware
=======================================

What:  Access log line for every exchange.
How:   Times the downstream chain and logs method, path, status, duration,
       request ID and client address once it returns.
When:  After RequestIDMiddleware (uses the request ID for correlation).

Log line:
    GET /hello 200 1.4ms [a1b2c3d4] from 127.0.0.1

The record also carries the fields as `extra` attributes (request_id,
method, path, status, duration_ms, client_ip) for structured handlers.
Request bodies and headers are never logged.
"""

import logging
import time
from typing import Iterable

from minihost.http import HttpContext
from minihost.middleware.request_id import request_id_var
from minihost.pipeline import RequestDelegate

logger = logging.getLogger("minihost.access")


class RequestLoggingMiddleware:
    """
    Logs each exchange after the rest of the pipeline has run.

    Level by status: 5xx → ERROR, 4xx → WARNING, everything else → INFO.
    Paths in `excluded_paths` are passed through without a log line.
    """

    def __init__(self, excluded_paths: Iterable[str] = ()):
        self.excluded_paths = frozenset(excluded_paths)

    def __call__(self, next: RequestDelegate) -> RequestDelegate:
        async def handler(context: HttpContext) -> None:
            path = context.request.path
            if path in self.excluded_paths:
                await next(context)
                return

            start_time = time.perf_counter()
            try:
                await next(context)
            finally:
                self._log(context, path, start_time)

        return handler

    def _log(self, context: HttpContext, path: str, start_time: float) -> None:
        duration_ms = (time.perf_counter() - start_time) * 1000
        method = context.request.method
        client_ip = context.request.remote_address or "unknown"
        rid = request_id_var.get("")
        status = context.response.status_code

        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s",
            method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )
