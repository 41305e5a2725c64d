"""
minihost — Pipeline Composition Unit Tests
============================================

What:  Ordering, short-circuit and fallback behavior of ApplicationBuilder.
How:   Tracing middleware record entry/exit; handlers run against in-memory
       contexts.

Test Strategy:
    ✅ Onion order for 1..n middlewares
    ✅ Short-circuit skips later middlewares, unwinds earlier ones
    ✅ Empty pipeline answers 404 with no body
    ✅ Hello/World composition
"""

import pytest

from minihost.pipeline import ApplicationBuilder, not_found
from minihost.testing import create_test_context, response_body

from tests.conftest import hello_middleware, world_middleware


def onion(names):
    return [f"{n}-before" for n in names] + [f"{n}-after" for n in reversed(names)]


class TestOrdering:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("count", [1, 2, 3, 10])
    async def test_onion_order(self, tracing, trace, count):
        names = [f"m{i}" for i in range(1, count + 1)]
        app = ApplicationBuilder()
        for name in names:
            app.use(tracing(name))

        await app.build()(create_test_context())

        assert trace == onion(names)

    @pytest.mark.asyncio
    async def test_terminal_runs_between_phases(self, trace):
        def marker(next):
            async def handler(context):
                trace.append("before")
                await next(context)
                trace.append(f"after:{context.response.status_code}")

            return handler

        await ApplicationBuilder().use(marker).build()(create_test_context())

        assert trace == ["before", "after:404"]

    @pytest.mark.asyncio
    async def test_long_pipeline_builds_without_recursion(self):
        app = ApplicationBuilder()
        for _ in range(5000):
            app.use(lambda next: next)
        context = create_test_context()

        await app.build()(context)

        assert context.response.status_code == 404


class TestShortCircuit:

    @pytest.mark.asyncio
    async def test_later_middlewares_do_not_run(self, tracing, trace):
        app = (
            ApplicationBuilder()
            .use(tracing("m1"))
            .use(tracing("m2", call_next=False))
            .use(tracing("m3"))
        )
        context = create_test_context()

        await app.build()(context)

        assert trace == ["m1-before", "m2-before", "m2-after", "m1-after"]
        assert context.response.status_code == 200

    @pytest.mark.asyncio
    async def test_run_registers_terminal_handler(self, tracing, trace):
        async def terminal(context):
            trace.append("terminal")
            await context.response.write("done")

        app = ApplicationBuilder().use(tracing("m1")).run(terminal).use(tracing("m2"))
        context = create_test_context()

        await app.build()(context)

        assert trace == ["m1-before", "terminal", "m1-after"]
        assert response_body(context) == b"done"


class TestFallback:

    @pytest.mark.asyncio
    async def test_empty_pipeline_is_not_found(self):
        context = create_test_context()

        await ApplicationBuilder().build()(context)

        assert context.response.status_code == 404
        assert response_body(context) == b""
        assert context.response.has_started is False

    def test_empty_pipeline_is_terminal_handler(self):
        assert ApplicationBuilder().build() is not_found

    @pytest.mark.asyncio
    async def test_pass_through_middlewares_reach_fallback(self, tracing, trace):
        context = create_test_context()

        await ApplicationBuilder().use(tracing("m1")).use(tracing("m2")).build()(context)

        assert context.response.status_code == 404
        assert trace == onion(["m1", "m2"])


class TestBuild:

    def test_use_is_fluent(self):
        app = ApplicationBuilder()
        assert app.use(hello_middleware) is app
        assert len(app) == 1

    def test_factories_are_called_in_reverse_order(self):
        calls = []

        def factory(name):
            def middleware(next):
                calls.append(name)
                return next

            return middleware

        ApplicationBuilder().use(factory("a")).use(factory("b")).use(factory("c")).build()

        assert calls == ["c", "b", "a"]

    @pytest.mark.asyncio
    async def test_build_leaves_registration_intact(self, tracing, trace):
        app = ApplicationBuilder().use(tracing("m1")).use(tracing("m2"))
        first, second = app.build(), app.build()

        await first(create_test_context())
        await second(create_test_context())

        assert trace == onion(["m1", "m2"]) * 2

    @pytest.mark.asyncio
    async def test_hello_world(self):
        context = create_test_context()
        handler = ApplicationBuilder().use(hello_middleware).use(world_middleware).build()

        await handler(context)

        assert response_body(context) == b"Hello World!"
        assert context.response.status_code == 200
