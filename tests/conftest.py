"""Shared fixtures: a live mock directory server and parsed sample pages."""

import asyncio
import socket
import threading
import time
from collections.abc import Generator
from contextlib import closing

import pytest
from aiohttp import web

from dirscrape.config import RunSettings, ScrapeRequest
from tests.mock_server import create_app

# =============================================================================
# aiohttp test server fixtures
# =============================================================================


def find_free_port() -> int:
    """Find a free port on localhost.

    Returns:
        An available port number.
    """
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind(("", 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


class AioHttpTestServer:
    """Wrapper to run aiohttp server in a background thread."""

    def __init__(self, app: web.Application, port: int) -> None:
        self.app = app
        self.port = port
        self.host = "127.0.0.1"
        self._loop: asyncio.AbstractEventLoop | None = None
        self._runner: web.AppRunner | None = None
        self._thread: threading.Thread | None = None
        self._started = threading.Event()

    @property
    def url(self) -> str:
        """Get the base URL of the server."""
        return f"http://{self.host}:{self.port}"

    def start(self) -> None:
        """Start the server in a background thread."""
        self._thread = threading.Thread(target=self._run_server, daemon=True)
        self._thread.start()
        self._started.wait(timeout=5.0)

    def _run_server(self) -> None:
        """Run the server in an asyncio event loop."""
        self._loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self._loop)

        async def start() -> None:
            self._runner = web.AppRunner(self.app)
            await self._runner.setup()
            site = web.TCPSite(self._runner, self.host, self.port)
            await site.start()

        self._loop.run_until_complete(start())
        self._started.set()
        self._loop.run_forever()

    def stop(self) -> None:
        """Stop the server and clean up resources."""
        if self._loop and self._runner:
            future = asyncio.run_coroutine_threadsafe(
                self._runner.cleanup(), self._loop
            )
            future.result(timeout=2.0)

        if self._loop:
            self._loop.call_soon_threadsafe(self._loop.stop)

        if self._thread:
            self._thread.join(timeout=2.0)


@pytest.fixture
def directory_server() -> Generator[AioHttpTestServer, None, None]:
    """Start an aiohttp server running the Bug Town Directory.

    Yields:
        AioHttpTestServer instance with the directory app running.
    """
    server = AioHttpTestServer(create_app(), find_free_port())
    server.start()
    yield server
    server.stop()


@pytest.fixture
def server_url(directory_server: AioHttpTestServer) -> str:
    """Base URL of the test server (e.g. "http://127.0.0.1:8080")."""
    return directory_server.url


# =============================================================================
# Configuration fixtures
# =============================================================================


@pytest.fixture
def request_model() -> ScrapeRequest:
    return ScrapeRequest(search_term="plumbers", location="Austin, TX", parallelism=1)


@pytest.fixture
def fast_settings() -> RunSettings:
    """Settings without politeness delay or long waits."""
    return RunSettings(
        detail_delay_seconds=0,
        listing_timeout_ms=5_000,
        detail_timeout_ms=5_000,
        container_wait_timeout_ms=500,
        results_wait_timeout_ms=500,
    )

