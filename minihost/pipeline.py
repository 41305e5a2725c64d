"""
minihost — Middleware Pipeline
================================

What:  Collects middleware in registration order and compiles them into one
       request handler.
How:   build() starts from a terminal handler that answers 404 and wraps it
       with each middleware from last-registered to first-registered. The
       first middleware registered ends up outermost.

Execution order for M1, M2, M3 registered in that order:

    M1 before → M2 before → M3 before → terminal
    M1 after  ← M2 after  ← M3 after  ←

A middleware that never awaits `next` short-circuits the chain: the
middlewares registered after it do not run for that exchange, and the
after-phases of the ones registered before it still run.

Example::

    def hello(next):
        async def handler(context):
            await context.response.write("Hello ")
            await next(context)
        return handler

    app = ApplicationBuilder().use(hello).use(world)
    handler = app.build()
"""

from typing import Awaitable, Callable, List

from minihost.http import HttpContext

RequestDelegate = Callable[[HttpContext], Awaitable[None]]
Middleware = Callable[[RequestDelegate], RequestDelegate]

NOT_FOUND = 404


async def not_found(context: HttpContext) -> None:
    """Terminal handler: nothing handled the exchange."""
    context.response.status_code = NOT_FOUND


class ApplicationBuilder:
    """Ordered list of middleware factories and the compiler that folds them."""

    def __init__(self) -> None:
        self._middlewares: List[Middleware] = []

    def use(self, middleware: Middleware) -> "ApplicationBuilder":
        """Append a `(next) -> handler` factory. No validation is done."""
        self._middlewares.append(middleware)
        return self

    def run(self, handler: RequestDelegate) -> "ApplicationBuilder":
        """Append a terminal handler that never calls `next`."""

        def terminal(_next: RequestDelegate) -> RequestDelegate:
            return handler

        return self.use(terminal)

    def build(self) -> RequestDelegate:
        """
        Compile the registered middleware into a single handler.

        The middleware list is left untouched. A host builds its pipeline
        once and reuses the result for every exchange.
        """
        handler: RequestDelegate = not_found
        for middleware in reversed(self._middlewares):
            handler = middleware(handler)
        return handler

    def __len__(self) -> int:
        return len(self._middlewares)
