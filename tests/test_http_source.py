"""Tests for HttpPageSource against the mock directory server."""

import time

import pytest

from dirscrape.common.exceptions import FetchFailure, NavigationTimeout
from dirscrape.config import RunSettings
from dirscrape.data_types import WaitForLoadState, WaitForSelector
from dirscrape.driver.http_source import HttpPageSource
from dirscrape.driver.page_source import navigation_limiter


class TestHttpPageSource:
    @pytest.mark.asyncio
    async def test_fetches_and_parses(self, server_url):
        async with HttpPageSource.open() as source:
            page = await source.fetch_rendered(
                f"{server_url}/mip/beetle-plumbing", WaitForLoadState(), 5_000
            )
        assert page.url == f"{server_url}/mip/beetle-plumbing"
        h1 = page.query_css("main h1", "business name")[0]
        assert h1.inner_text() == "Beetle Plumbing"

    @pytest.mark.asyncio
    async def test_server_error_is_fetch_failure(self, server_url):
        async with HttpPageSource.open() as source:
            with pytest.raises(FetchFailure) as exc_info:
                await source.fetch_rendered(
                    f"{server_url}/mip/wasp-repairs", WaitForLoadState(), 5_000
                )
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_not_found_is_fetch_failure(self, server_url):
        async with HttpPageSource.open() as source:
            with pytest.raises(FetchFailure) as exc_info:
                await source.fetch_rendered(
                    f"{server_url}/mip/nobody", WaitForLoadState(), 5_000
                )
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_missing_required_selector_is_timeout(self, server_url):
        async with HttpPageSource.open() as source:
            with pytest.raises(NavigationTimeout):
                await source.fetch_rendered(
                    f"{server_url}/mip/beetle-plumbing",
                    WaitForSelector(".search-results", required=True),
                    5_000,
                )

    @pytest.mark.asyncio
    async def test_missing_optional_selector_is_tolerated(self, server_url):
        async with HttpPageSource.open() as source:
            page = await source.fetch_rendered(
                f"{server_url}/mip/moth-fixtures",
                WaitForSelector("main", required=False),
                5_000,
            )
        assert page.query_css("main", "container", min_count=0) == []

    @pytest.mark.asyncio
    async def test_connection_refused_is_fetch_failure(self):
        from tests.conftest import find_free_port

        url = f"http://127.0.0.1:{find_free_port()}/search"
        async with HttpPageSource.open() as source:
            with pytest.raises(FetchFailure):
                await source.fetch_rendered(url, WaitForLoadState(), 2_000)

    @pytest.mark.asyncio
    async def test_sends_configured_headers(self, server_url):
        settings = RunSettings(user_agent="BugBot/1.0", accept_language="fr")
        async with HttpPageSource.open(settings) as source:
            assert source._client.headers["User-Agent"] == "BugBot/1.0"
            assert source._client.headers["Accept-Language"] == "fr"

    @pytest.mark.asyncio
    async def test_rate_limiter_spaces_requests(self, server_url):
        limiter = navigation_limiter(2)
        url = f"{server_url}/mip/beetle-plumbing"
        async with HttpPageSource.open(rate_limiter=limiter) as source:
            started = time.monotonic()
            for _ in range(3):
                await source.fetch_rendered(url, WaitForLoadState(), 5_000)
            elapsed = time.monotonic() - started
        assert elapsed >= 0.4


class TestNavigationLimiter:
    def test_disabled(self):
        assert navigation_limiter(None) is None
        assert navigation_limiter(0) is None

    def test_enabled(self):
        assert navigation_limiter(5) is not None
        assert navigation_limiter(0.5) is not None
