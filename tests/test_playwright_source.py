"""Tests for PlaywrightPageSource against the mock directory server.

Skipped unless the playwright extra is installed and Chromium can be
launched (``playwright install chromium``).
"""

import contextlib

import pytest

pytest.importorskip("playwright.async_api")

from playwright.async_api import Error as PlaywrightError  # noqa: E402

from dirscrape.common.exceptions import FetchFailure, NavigationTimeout  # noqa: E402
from dirscrape.config import ScrapeRequest  # noqa: E402
from dirscrape.data_types import (  # noqa: E402
    RunState,
    WaitForLoadState,
    WaitForSelector,
)
from dirscrape.driver.coordinator import RunCoordinator  # noqa: E402
from dirscrape.driver.links import YellowPagesLinks  # noqa: E402
from dirscrape.driver.playwright_source import PlaywrightPageSource  # noqa: E402

pytestmark = pytest.mark.playwright


@pytest.fixture
async def browser_source(fast_settings):
    async with contextlib.AsyncExitStack() as stack:
        try:
            source = await stack.enter_async_context(
                PlaywrightPageSource.open(fast_settings, max_tabs=2)
            )
        except PlaywrightError as e:
            pytest.skip(f"Chromium unavailable: {e}")
        yield source


class TestPlaywrightPageSource:
    @pytest.mark.asyncio
    async def test_snapshot_of_rendered_page(self, browser_source, server_url):
        page = await browser_source.fetch_rendered(
            f"{server_url}/mip/beetle-plumbing",
            WaitForSelector("main.container", required=False),
            5_000,
        )
        h1 = page.query_css("main h1", "business name")[0]
        assert h1.inner_text() == "Beetle Plumbing"
        assert browser_source.open_tabs == 0

    @pytest.mark.asyncio
    async def test_not_found_is_fetch_failure(self, browser_source, server_url):
        with pytest.raises(FetchFailure) as exc_info:
            await browser_source.fetch_rendered(
                f"{server_url}/mip/nobody", WaitForLoadState(), 5_000
            )
        assert exc_info.value.status_code == 404
        assert browser_source.open_tabs == 0

    @pytest.mark.asyncio
    async def test_required_selector_times_out(self, browser_source, server_url):
        with pytest.raises(NavigationTimeout):
            await browser_source.fetch_rendered(
                f"{server_url}/mip/beetle-plumbing",
                WaitForSelector(".search-results", timeout_ms=300, required=True),
                5_000,
            )
        assert browser_source.open_tabs == 0

    @pytest.mark.asyncio
    async def test_optional_selector_snapshots_anyway(
        self, browser_source, server_url
    ):
        page = await browser_source.fetch_rendered(
            f"{server_url}/mip/moth-fixtures",
            WaitForSelector("main.container", timeout_ms=300, required=False),
            5_000,
        )
        assert page.query_css("main.container", "container", min_count=0) == []

    @pytest.mark.asyncio
    async def test_one_page_run(self, browser_source, server_url, fast_settings):
        fast_settings = fast_settings.model_copy(update={"max_pages": 1})
        coordinator = RunCoordinator(
            ScrapeRequest(search_term="plumbers", location="Austin, TX"),
            browser_source,
            YellowPagesLinks(base_url=server_url),
            settings=fast_settings,
        )
        summary = await coordinator.run()

        assert summary.state == RunState.DONE
        assert [r["businessName"] for r in coordinator.records] == [
            "Beetle Plumbing",
            "Ant Hill Drains",
            "Cricket Pipes",
        ]
