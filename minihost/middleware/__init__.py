"""
minihost — Built-in Middleware
================================

What:  Cross-cutting concerns written against the pipeline's middleware
       contract: each class instance is a `(next) -> handler` callable.

Suggested order:
    app.use(RequestIDMiddleware())
       .use(RequestLoggingMiddleware())
       .use(RateLimitMiddleware())
       .use(ExceptionHandlingMiddleware())
       .use(...application middleware...)

    Request → [Request ID] → [Logging] → [Rate Limit] → [Errors] → app
    Response ← [Request ID] ← [Logging] ← [Rate Limit] ← [Errors] ← app

    - Request ID is set before anything else can write the response
    - Logging sees the final status, including 429 and 500
"""

from minihost.middleware.errors import ExceptionHandlingMiddleware
from minihost.middleware.logging import RequestLoggingMiddleware
from minihost.middleware.rate_limit import RateLimitMiddleware
from minihost.middleware.request_id import RequestIDMiddleware, request_id_var

__all__ = [
    "ExceptionHandlingMiddleware",
    "RateLimitMiddleware",
    "RequestIDMiddleware",
    "RequestLoggingMiddleware",
    "request_id_var",
]
