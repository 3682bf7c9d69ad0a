"""Listing-page link discovery.

The coordinator asks a LinkDiscovery for three things: the URL of listing
page N, the detail-page URLs found on a listing page, and an estimate of
how many listing pages a search has. YellowPagesLinks implements this for
Yellowpages-style search results.

Ads are filtered by a list of exclusion rules. Each rule is a small
predicate over one result element, so the list can be changed without
touching the rest of the discovery logic.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import urlencode, urljoin

from dirscrape.common.page_element import PageElement
from dirscrape.common.selector_utils import class_tokens
from dirscrape.config import ScrapeRequest

logger = logging.getLogger(__name__)

SHOWING_COUNT = re.compile(r"(\d+)\s*-\s*(\d+)\s+of\s+(\d+)")


class LinkDiscovery(Protocol):
    """Navigation knowledge about one directory site."""

    results_selector: str
    """Selector that must be present once a listing page has loaded."""

    def listing_url(self, request: ScrapeRequest, page_number: int) -> str:
        """URL of the 1-based listing page ``page_number``."""
        ...

    def listing_detail_urls(self, page: PageElement) -> list[str]:
        """Absolute, de-duplicated detail URLs of a listing page, in order."""
        ...

    def estimate_total_pages(self, page: PageElement) -> int:
        """Advisory number of listing pages, at least 1."""
        ...


# =============================================================================
# Exclusion rules
# =============================================================================


@dataclass(frozen=True)
class ExclusionRule:
    """Predicate that marks a search result as not organic.

    Attributes:
        name: Short label used in debug logs.
        matches: Returns True for results that must be skipped.
    """

    name: str
    matches: Callable[[PageElement], bool]


def has_class(*classes: str) -> ExclusionRule:
    """Exclude results carrying any of the given classes."""
    wanted = frozenset(classes)

    def matches(result: PageElement) -> bool:
        return not wanted.isdisjoint(class_tokens(result.get_attribute("class")))

    return ExclusionRule(f"class in {sorted(wanted)}", matches)


def contains(selector: str) -> ExclusionRule:
    """Exclude results containing an element that matches ``selector``."""

    def matches(result: PageElement) -> bool:
        return bool(result.query_css(selector, selector, min_count=0))

    return ExclusionRule(f"contains {selector}", matches)


def inside(*container_classes: str) -> ExclusionRule:
    """Exclude results nested inside a container with one of the classes."""
    tests = " or ".join(
        f"contains(concat(' ', normalize-space(@class), ' '), ' {c} ')"
        for c in container_classes
    )
    xpath = f"ancestor-or-self::*[{tests}]"

    def matches(result: PageElement) -> bool:
        return bool(result.query_xpath(xpath, "ad container", min_count=0))

    return ExclusionRule(f"inside {list(container_classes)}", matches)


DEFAULT_EXCLUSIONS: tuple[ExclusionRule, ...] = (
    has_class("paid-listing", "astro-tmc"),
    contains(".ad-pill"),
    inside("center-ads", "side-ads"),
)


# =============================================================================
# Yellowpages
# =============================================================================


class YellowPagesLinks:
    """LinkDiscovery for Yellowpages-style search result pages.

    Args:
        base_url: Site root; search and detail links are resolved against it.
        exclusions: Rules that filter out ads. Defaults to the rules for
            paid listings, ad pills and ad columns.
    """

    results_selector = ".search-results"
    result_selector = (
        ".search-results.organic .result, .search-results.organic .srp-listing"
    )
    link_selector = ".business-name"

    def __init__(
        self,
        base_url: str = "https://www.yellowpages.com",
        exclusions: Sequence[ExclusionRule] = DEFAULT_EXCLUSIONS,
    ) -> None:
        self.base_url = base_url.rstrip("/") + "/"
        self.exclusions = tuple(exclusions)

    def listing_url(self, request: ScrapeRequest, page_number: int) -> str:
        """Search URL for one listing page.

        Examples:
            >>> YellowPagesLinks().listing_url(
            ...     ScrapeRequest(search_term="plumbers", location="78701"), 2
            ... )
            'https://www.yellowpages.com/search?search_terms=plumbers&geo_location_terms=78701&page=2'
        """
        query = urlencode(
            {
                "search_terms": request.search_term,
                "geo_location_terms": request.location,
                "page": page_number,
            }
        )
        return urljoin(self.base_url, "search") + "?" + query

    def _excluded_by(self, result: PageElement) -> ExclusionRule | None:
        for rule in self.exclusions:
            if rule.matches(result):
                return rule
        return None

    def listing_detail_urls(self, page: PageElement) -> list[str]:
        results = page.query_css(
            self.result_selector, "organic search results", min_count=0
        )
        urls: list[str] = []
        seen: set[str] = set()
        for result in results:
            rule = self._excluded_by(result)
            if rule is not None:
                logger.debug(f"Skipping result ({rule.name}) on {page.url}")
                continue
            anchors = result.query_css(
                self.link_selector, "business link", min_count=0
            )
            href = anchors[0].get_attribute("href") if anchors else None
            if not href:
                continue
            url = urljoin(self.base_url, href)
            if url not in seen:
                seen.add(url)
                urls.append(url)
        return urls

    def estimate_total_pages(self, page: PageElement) -> int:
        """Page count from the "1-30 of 248" banner, else pagination links.

        Falls back to 1 when neither is present.
        """
        banners = page.query_css(".showing-count", "result count", min_count=0)
        if banners:
            match = SHOWING_COUNT.search(banners[0].inner_text())
            if match:
                first, last, total = (int(g) for g in match.groups())
                per_page = last - first + 1
                if per_page > 0:
                    return max(1, math.ceil(total / per_page))

        numbers = []
        for anchor in page.query_css(
            ".pagination ul li a[data-page]", "pagination links", min_count=0
        ):
            value = anchor.get_attribute("data-page") or ""
            if value.isdigit() and int(value) > 0:
                numbers.append(int(value))
        return max(numbers, default=1)
