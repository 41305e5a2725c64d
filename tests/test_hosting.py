"""
minihost — Host and HostBuilder Unit Tests
============================================

What:  Builder wiring, configuration order and run/stop delegation.
How:   A mock Server records what the host hands it; no transport involved.
"""

import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from minihost.config import HostSettings
from minihost.exceptions import TransportUnsetError
from minihost.hosting import Host, HostBuilder, setup_logging
from minihost.pipeline import not_found
from minihost.testing import create_test_context, response_body
from minihost.transports.asgi import AsgiServer
from minihost.transports.base import Server

from tests.conftest import hello_middleware, world_middleware


@pytest.fixture
def mock_server():
    server = MagicMock(spec=Server)
    server.run = AsyncMock()
    server.stop = AsyncMock()
    return server


class TestHostBuilder:

    def test_build_without_server_raises(self):
        with pytest.raises(TransportUnsetError, match="No server configured"):
            HostBuilder().configure(lambda app: app.use(hello_middleware)).build()

    def test_builder_methods_are_fluent(self, mock_server):
        builder = HostBuilder()
        assert builder.use_server(mock_server) is builder
        assert builder.configure(lambda app: None) is builder

    def test_build_pairs_server_and_handler(self, mock_server):
        host = HostBuilder().use_server(mock_server).build()
        assert isinstance(host, Host)
        assert host.server is mock_server
        assert host.handler is not_found

    def test_last_selected_server_wins(self, mock_server):
        other = MagicMock(spec=Server)
        host = HostBuilder().use_server(other).use_server(mock_server).build()
        assert host.server is mock_server

    def test_callbacks_run_in_order_on_one_builder(self, mock_server):
        seen = []
        HostBuilder().use_server(mock_server).configure(
            lambda app: seen.append(("first", app))
        ).configure(lambda app: seen.append(("second", app))).build()

        assert [name for name, _ in seen] == ["first", "second"]
        assert seen[0][1] is seen[1][1]

    @pytest.mark.asyncio
    async def test_callbacks_compose_one_pipeline(self, mock_server):
        host = (
            HostBuilder()
            .use_server(mock_server)
            .configure(lambda app: app.use(hello_middleware))
            .configure(lambda app: app.use(world_middleware))
            .build()
        )
        context = create_test_context()

        await host.handler(context)

        assert response_body(context) == b"Hello World!"

    def test_use_asgi_server(self):
        settings = HostSettings()
        host = HostBuilder(settings).use_asgi_server("http://127.0.0.1:8081/").build()

        assert isinstance(host.server, AsgiServer)
        assert host.server.urls == ["http://127.0.0.1:8081/"]
        assert host.server.settings is settings

    def test_use_asgi_server_defaults_to_localhost_5000(self):
        host = HostBuilder(HostSettings(urls="")).use_asgi_server().build()
        assert host.server.urls == ["http://localhost:5000/"]


class TestHost:

    @pytest.mark.asyncio
    async def test_run_delegates_to_server(self, mock_server):
        host = HostBuilder().use_server(mock_server).build()

        await host.run()

        mock_server.run.assert_awaited_once_with(host.handler)

    @pytest.mark.asyncio
    async def test_stop_delegates_to_server(self, mock_server):
        host = Host(mock_server, not_found)

        await host.stop()

        mock_server.stop.assert_awaited_once()

    def test_run_sync_handles_keyboard_interrupt(self, mock_server):
        mock_server.run.side_effect = KeyboardInterrupt
        host = Host(mock_server, not_found)

        with patch("minihost.hosting.setup_logging") as mock_setup:
            host.run_sync()

        mock_setup.assert_called_once_with(host.settings)
        mock_server.run.assert_awaited_once()


class TestSetupLogging:

    def test_applies_level_from_settings(self):
        with patch("minihost.hosting.logging.basicConfig") as mock_basic:
            setup_logging(HostSettings(log_level="debug"))

        kwargs = mock_basic.call_args.kwargs
        assert kwargs["level"] == logging.DEBUG
        assert kwargs["force"] is True
        assert logging.getLogger("uvicorn.access").level == logging.WARNING
