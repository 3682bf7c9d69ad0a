"""Plain HTTP page source for directories that render server-side.

No JavaScript runs, so wait conditions are checked against the downloaded
HTML instead of being waited for: a required WaitForSelector that does not
match counts as a timeout, anything else is accepted as is.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx
from pyrate_limiter import Limiter
from typing_extensions import assert_never

from dirscrape.common.exceptions import FetchFailure, NavigationTimeout
from dirscrape.common.lxml_page_element import LxmlPageElement
from dirscrape.config import RunSettings
from dirscrape.data_types import WaitCondition, WaitForLoadState, WaitForSelector

logger = logging.getLogger(__name__)


class HttpPageSource:
    """PageSource backed by an httpx.AsyncClient.

    Example::

        async with HttpPageSource.open(settings) as source:
            page = await source.fetch_rendered(
                url, WaitForLoadState(), timeout_ms=30_000
            )
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        rate_limiter: Limiter | None = None,
    ) -> None:
        """Initialize the page source.

        Args:
            client: Client used for every request. The caller owns it.
            rate_limiter: Optional limiter acquired before each request.
        """
        self._client = client
        self.rate_limiter = rate_limiter

    @classmethod
    @asynccontextmanager
    async def open(
        cls,
        settings: RunSettings | None = None,
        rate_limiter: Limiter | None = None,
        **client_kwargs: Any,
    ) -> AsyncIterator[HttpPageSource]:
        """Create a source with its own client, closed on exit.

        Args:
            settings: Supplies the user agent and Accept-Language header.
            rate_limiter: Optional limiter acquired before each request.
            **client_kwargs: Extra arguments for httpx.AsyncClient.
        """
        settings = settings or RunSettings()
        headers = {
            "User-Agent": settings.user_agent,
            "Accept-Language": settings.accept_language,
        }
        client = httpx.AsyncClient(
            headers=headers, follow_redirects=True, **client_kwargs
        )
        try:
            yield cls(client, rate_limiter)
        finally:
            await client.aclose()

    async def fetch_rendered(
        self, url: str, wait: WaitCondition, timeout_ms: int
    ) -> LxmlPageElement:
        """Download and parse ``url``.

        Raises:
            NavigationTimeout: If the request timed out, or a required
                selector is missing from the document.
            FetchFailure: On connection errors and 4xx/5xx responses.
        """
        if self.rate_limiter:
            await self.rate_limiter.try_acquire_async(name="navigation", weight=1)

        timeout_seconds = timeout_ms / 1000
        try:
            response = await self._client.get(url, timeout=timeout_seconds)
        except httpx.TimeoutException as e:
            raise NavigationTimeout(url, timeout_seconds) from e
        except httpx.HTTPError as e:
            raise FetchFailure(url, f"{type(e).__name__}: {e}") from e

        if response.status_code >= 400:
            raise FetchFailure(
                url,
                f"server responded {response.status_code}",
                status_code=response.status_code,
            )

        page = LxmlPageElement.from_html(response.content, str(response.url))

        match wait:
            case WaitForLoadState():
                pass
            case WaitForSelector(selector=selector, required=required):
                if required and not page.query_css(
                    selector, "wait condition", min_count=0
                ):
                    raise NavigationTimeout(url, timeout_seconds)
            case _:
                assert_never(wait)

        return page
