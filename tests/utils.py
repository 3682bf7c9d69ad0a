"""Test utilities shared by the unit and integration tests."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from dirscrape.common.exceptions import FetchFailure, NavigationTimeout
from dirscrape.common.lxml_page_element import LxmlPageElement
from dirscrape.data_types import WaitCondition

CONTAINER_OPEN = "<main class='container search-monitor'>"


def page_from(body: str, url: str = "https://example.test/mip/x") -> LxmlPageElement:
    """Parse a detail page whose content container holds ``body``."""
    return LxmlPageElement.from_html(
        f"<html><body>{CONTAINER_OPEN}{body}</main></body></html>", url
    )


def bare_page(body: str, url: str = "https://example.test/page") -> LxmlPageElement:
    """Parse a page with ``body`` directly inside <body>."""
    return LxmlPageElement.from_html(f"<html><body>{body}</body></html>", url)


def collect_results_async() -> tuple[
    Callable[[Any], Awaitable[None]], list[Any]
]:
    """Create an async callback that collects its argument in a list.

    Returns:
        A tuple of (async_callback_function, results_list).

    Example:
        callback, records = collect_results_async()
        coordinator = RunCoordinator(..., on_record=callback)
        await coordinator.run()
        assert len(records) > 0
    """
    results: list[Any] = []

    async def callback(data: Any) -> None:
        results.append(data)

    return callback, results


class FakeSite:
    """In-memory PageSource serving canned HTML by URL.

    URLs mapped to an exception instance raise it instead. Every fetch is
    recorded in ``fetched`` together with the wait condition it used.

    Args:
        pages: URL -> HTML document, or an exception to raise.
        delay: Seconds each fetch takes, to let concurrent fetches overlap.
    """

    def __init__(
        self, pages: dict[str, str | Exception], delay: float = 0.0
    ) -> None:
        self.pages = pages
        self.delay = delay
        self.fetched: list[tuple[str, WaitCondition]] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.before_fetch: Callable[[str], None] | None = None

    async def fetch_rendered(
        self, url: str, wait: WaitCondition, timeout_ms: int
    ) -> LxmlPageElement:
        if self.before_fetch is not None:
            self.before_fetch(url)
        self.fetched.append((url, wait))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1
        content = self.pages.get(url)
        if content is None:
            raise FetchFailure(url, "not found", status_code=404)
        if isinstance(content, Exception):
            raise content
        return LxmlPageElement.from_html(content, url)

    def urls(self) -> list[str]:
        return [url for url, _ in self.fetched]


def timeout(url: str) -> NavigationTimeout:
    return NavigationTimeout(url, 1.0)
