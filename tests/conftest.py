"""
minihost — Test Configuration (conftest.py)
=============================================

What:  Shared pytest fixtures for the test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy (all function-scoped):
    ├── host_settings: HostSettings with small limits for tests
    ├── trace: list that tracing middleware append to
    ├── tracing: factory for middleware that record entry/exit in `trace`
    ├── test_context: in-memory HttpContext (no transport)
    └── test_server: TestServer driven through httpx.ASGITransport
"""

import os

# Keep test output quiet and independent of any local .env
os.environ["MINIHOST_LOG_LEVEL"] = "WARNING"
os.environ["MINIHOST_URLS"] = "http://localhost:5000/"

from typing import Callable, List

import pytest

from minihost.config import HostSettings
from minihost.http import HttpContext
from minihost.pipeline import Middleware, RequestDelegate
from minihost.testing import TestServer, create_test_context


# ══════════════════════════════════════════════════════════════════════════
# Pipeline helpers
# ══════════════════════════════════════════════════════════════════════════

def hello_middleware(next: RequestDelegate) -> RequestDelegate:
    async def handler(context: HttpContext) -> None:
        await context.response.write("Hello ")
        await next(context)

    return handler


def world_middleware(next: RequestDelegate) -> RequestDelegate:
    async def handler(context: HttpContext) -> None:
        await context.response.write("World!")

    return handler


def make_tracing_middleware(
    name: str, trace: List[str], call_next: bool = True
) -> Middleware:
    """Middleware that records '<name>-before' / '<name>-after' in `trace`."""

    def middleware(next: RequestDelegate) -> RequestDelegate:
        async def handler(context: HttpContext) -> None:
            trace.append(f"{name}-before")
            if call_next:
                await next(context)
            trace.append(f"{name}-after")

        return handler

    return middleware


# ══════════════════════════════════════════════════════════════════════════
# Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def host_settings() -> HostSettings:
    """Settings with a short shutdown timeout and a small rate limit."""
    return HostSettings(
        shutdown_timeout=2.0,
        rate_limit_requests=3,
        rate_limit_window=60,
    )


@pytest.fixture
def trace() -> List[str]:
    return []


@pytest.fixture
def tracing(trace) -> Callable[..., Middleware]:
    """
    Factory for tracing middleware bound to the `trace` fixture.

    Usage:
        def test_order(tracing, trace):
            app.use(tracing("m1")).use(tracing("m2", call_next=False))
    """

    def factory(name: str, call_next: bool = True) -> Middleware:
        return make_tracing_middleware(name, trace, call_next)

    return factory


@pytest.fixture
def test_context() -> HttpContext:
    return create_test_context(
        url="http://testserver/greeting?name=ada",
        headers={"X-Trace": "abc"},
        body=b"payload",
    )


@pytest.fixture
def test_server(host_settings) -> TestServer:
    return TestServer(settings=host_settings)
