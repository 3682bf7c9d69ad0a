"""Primary content container resolution.

Detection and extraction both read a detail page through its primary
content container, never through the whole document, so that sidebars and
"people also viewed" blocks do not leak into a business's record. Both go
through resolve_container() with the same selector chain; if they resolved
it separately they could disagree about which node is the business's own
content.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from dirscrape.common.exceptions import ContainerNotFound
from dirscrape.common.page_element import PageElement

logger = logging.getLogger(__name__)

DEFAULT_CONTAINER_CHAIN: tuple[str, ...] = (
    "main.container.search-monitor",
    "main",
    ".business-info",
    ".listing-details",
    ".result-details",
)


def resolve_container(
    page: PageElement,
    chain: Sequence[str] = DEFAULT_CONTAINER_CHAIN,
) -> PageElement | None:
    """Find the page's primary content container.

    Selectors are tried in priority order; the first one with a match wins
    and its first match (in document order) is the container.

    Args:
        page: Root element of a parsed detail page.
        chain: Container selectors, most specific first.

    Returns:
        The container element, or None if no selector matches.
    """
    for selector in chain:
        matches = page.query_css(selector, "content container", min_count=0)
        if matches:
            return matches[0]
    return None


def require_container(
    page: PageElement,
    chain: Sequence[str] = DEFAULT_CONTAINER_CHAIN,
) -> PageElement:
    """Like resolve_container(), but raise when nothing matches.

    Raises:
        ContainerNotFound: If no selector in the chain matches.
    """
    container = resolve_container(page, chain)
    if container is None:
        raise ContainerNotFound(page.url, list(chain))
    return container
