"""Playwright page source.

One browser and one browser context serve a whole run. Each fetch opens its
own tab, so up to ``max_tabs`` listing pages can load at once. The tab is
closed as soon as the DOM snapshot has been taken:

1. Acquire a tab slot (and a rate limiter token, if configured)
2. Navigate and satisfy the wait condition
3. Serialize the rendered DOM and parse it with lxml
4. Close the tab on every exit path

Key features:
- Sub-resources that only matter to humans (images, fonts...) are aborted
- Desktop user agent and Accept-Language header for every tab
- Navigation pace controlled via pyrate_limiter
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from playwright.async_api import (
    BrowserContext,
    Page,
    Route,
    async_playwright,
)
from playwright.async_api import (
    Error as PlaywrightError,
)
from playwright.async_api import (
    TimeoutError as PlaywrightTimeoutError,
)
from pyrate_limiter import Limiter
from typing_extensions import assert_never

from dirscrape.common.exceptions import FetchFailure, NavigationTimeout
from dirscrape.common.lxml_page_element import LxmlPageElement
from dirscrape.config import RunSettings
from dirscrape.data_types import (
    WaitCondition,
    WaitForLoadState,
    WaitForSelector,
)

logger = logging.getLogger(__name__)


class PlaywrightPageSource:
    """PageSource that renders pages in a shared browser context.

    Use open() to get an instance; it owns the Playwright, browser and
    context lifecycles.
    """

    def __init__(
        self,
        browser_context: BrowserContext,
        max_tabs: int = 3,
        rate_limiter: Limiter | None = None,
    ) -> None:
        """Initialize the page source.

        Args:
            browser_context: Context in which tabs are opened.
            max_tabs: Maximum number of tabs open at the same time.
            rate_limiter: Optional limiter acquired before each navigation.
        """
        if max_tabs < 1:
            raise ValueError(f"max_tabs must be positive, got {max_tabs}")
        self.browser_context = browser_context
        self.max_tabs = max_tabs
        self.rate_limiter = rate_limiter
        self._tabs = asyncio.Semaphore(max_tabs)
        self.open_tabs = 0

    @classmethod
    @asynccontextmanager
    async def open(
        cls,
        settings: RunSettings | None = None,
        max_tabs: int = 3,
        rate_limiter: Limiter | None = None,
        viewport: dict[str, int] | None = None,
        **launch_kwargs: Any,
    ) -> AsyncIterator[PlaywrightPageSource]:
        """Launch Chromium and create the page source.

        Args:
            settings: Headless flag, user agent, Accept-Language header and
                blocked resource types.
            max_tabs: Maximum number of concurrent tabs (the run's
                parallelism).
            rate_limiter: Optional limiter acquired before each navigation.
            viewport: Browser viewport (default 1280x800).
            **launch_kwargs: Extra arguments for chromium.launch().

        Yields:
            Initialized PlaywrightPageSource.

        Example::

            async with PlaywrightPageSource.open(settings, max_tabs=3) as source:
                page = await source.fetch_rendered(url, WaitForLoadState(), 45_000)
        """
        settings = settings or RunSettings()
        blocked = frozenset(settings.blocked_resource_types)

        playwright = await async_playwright().start()
        try:
            browser = await playwright.chromium.launch(
                headless=settings.headless, **launch_kwargs
            )
            try:
                browser_context = await browser.new_context(
                    viewport=viewport or {"width": 1280, "height": 800},
                    user_agent=settings.user_agent,
                    extra_http_headers={
                        "accept-language": settings.accept_language
                    },
                )
                try:
                    if blocked:

                        async def block_resources(route: Route) -> None:
                            if route.request.resource_type in blocked:
                                await route.abort()
                            else:
                                await route.continue_()

                        await browser_context.route("**/*", block_resources)

                    yield cls(browser_context, max_tabs, rate_limiter)

                finally:
                    await browser_context.close()

            finally:
                await browser.close()

        finally:
            await playwright.stop()

    async def fetch_rendered(
        self, url: str, wait: WaitCondition, timeout_ms: int
    ) -> LxmlPageElement:
        """Render ``url`` in a fresh tab and return the parsed DOM snapshot.

        Raises:
            NavigationTimeout: If navigation or a required wait timed out.
            FetchFailure: On navigation errors and 4xx/5xx responses.
        """
        async with self._tabs:
            if self.rate_limiter:
                await self.rate_limiter.try_acquire_async(
                    name="navigation", weight=1
                )
            page = await self.browser_context.new_page()
            self.open_tabs += 1
            try:
                html_content = await self._load(page, url, wait, timeout_ms)
                final_url = page.url
            except PlaywrightTimeoutError as e:
                raise NavigationTimeout(url, timeout_ms / 1000) from e
            except PlaywrightError as e:
                reason = (str(e).splitlines() or [type(e).__name__])[0]
                raise FetchFailure(url, reason) from e
            finally:
                self.open_tabs -= 1
                await page.close()

        return LxmlPageElement.from_html(html_content, final_url)

    async def _load(
        self, page: Page, url: str, wait: WaitCondition, timeout_ms: int
    ) -> str:
        match wait:
            case WaitForLoadState(state=state):
                response = await page.goto(
                    url, wait_until=state.value, timeout=timeout_ms
                )
            case WaitForSelector():
                response = await page.goto(
                    url, wait_until="domcontentloaded", timeout=timeout_ms
                )
                try:
                    await page.wait_for_selector(
                        wait.selector, timeout=wait.timeout_ms or timeout_ms
                    )
                except PlaywrightTimeoutError:
                    if wait.required:
                        raise
                    logger.warning(
                        f"Wait for {wait.selector!r} timed out on {url}; "
                        "snapshotting the page as it is"
                    )
            case _:
                assert_never(wait)

        if response is not None and response.status >= 400:
            raise FetchFailure(
                url,
                f"server responded {response.status}",
                status_code=response.status,
            )
        return await page.content()
