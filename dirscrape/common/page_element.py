"""PageElement protocol for driver-agnostic DOM queries.

The extraction core only ever sees PageElements. A page source (browser or
plain HTTP) is responsible for obtaining the HTML, whether by serializing a
rendered Playwright DOM or by downloading it, and for wrapping the parsed
tree. Detection and extraction therefore never hold a live browser
reference, and a detail page can be closed as soon as its snapshot exists.
"""

from __future__ import annotations

from typing import Protocol


class PageElement(Protocol):
    """Protocol for querying one node of a parsed page.

    All query methods support count validation and raise
    HTMLStructuralAssumptionException if the actual count doesn't match
    expectations. Presence probes pass ``min_count=0``.
    """

    @property
    def url(self) -> str:
        """The URL of the page this element belongs to."""
        ...

    def query_xpath(
        self,
        selector: str,
        description: str,
        min_count: int = 1,
        max_count: int | None = None,
    ) -> list[PageElement]:
        """Query elements by XPath selector.

        Raises:
            HTMLStructuralAssumptionException: If count doesn't match expectations.
        """
        ...

    def query_css(
        self,
        selector: str,
        description: str,
        min_count: int = 1,
        max_count: int | None = None,
    ) -> list[PageElement]:
        """Query elements by CSS selector.

        Raises:
            HTMLStructuralAssumptionException: If count doesn't match expectations.
        """
        ...

    def inner_text(self) -> str:
        """Whitespace-normalized visible text, one line per text block."""
        ...

    def get_attribute(self, name: str) -> str | None:
        """Attribute value, or None if the attribute doesn't exist."""
        ...

    def inner_html(self) -> str:
        """Inner HTML content of the element as a string."""
        ...

