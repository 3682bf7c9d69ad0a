"""PageSource protocol: how the coordinator obtains parsed pages.

A page source turns a URL into a parsed PageElement. Browser sources render
the page, wait for the requested condition and serialize the DOM; the tab
is closed before fetch_rendered() returns, on every path. The extraction
core therefore only ever handles snapshots and never holds a live session.

Failures are reported with the transient exceptions from
dirscrape.common.exceptions:

- NavigationTimeout when navigation or a required wait exceeds its budget.
- FetchFailure for every other reason the page could not be obtained.
"""

from __future__ import annotations

from typing import Protocol

from pyrate_limiter import Duration, InMemoryBucket, Limiter, Rate

from dirscrape.common.page_element import PageElement
from dirscrape.data_types import WaitCondition


class PageSource(Protocol):
    """Fetches pages and returns their parsed snapshots."""

    async def fetch_rendered(
        self, url: str, wait: WaitCondition, timeout_ms: int
    ) -> PageElement:
        """Load ``url``, honour ``wait`` and return the parsed document.

        Args:
            url: Absolute URL to load.
            wait: Condition to satisfy before the snapshot is taken.
            timeout_ms: Navigation timeout in milliseconds.

        Raises:
            NavigationTimeout: If loading or a required wait timed out.
            FetchFailure: If the page could not be loaded.
        """
        ...


def navigation_limiter(per_second: float | None) -> Limiter | None:
    """Build the limiter shared by all tabs of a run.

    Args:
        per_second: Navigations allowed per second. Fractional rates are
            expressed per minute. None or 0 disables limiting.

    Example::

        limiter = navigation_limiter(settings.navigation_rate)
        async with HttpPageSource.open(settings, rate_limiter=limiter) as source:
            ...
    """
    if not per_second:
        return None
    if per_second >= 1:
        rate = Rate(int(per_second), Duration.SECOND)
    else:
        rate = Rate(max(int(per_second * 60), 1), Duration.MINUTE)
    return Limiter(InMemoryBucket([rate]))
