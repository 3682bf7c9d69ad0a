"""Checked HTML element wrapper for safe CSS/XPath querying.

This module provides CheckedHtmlElement, a wrapper around lxml.html.HtmlElement
that validates selector results against expected counts. Rules that only
probe for presence pass ``min_count=0``; link discovery and container
resolution use the counts to fail loudly when a page has changed shape.
"""

from __future__ import annotations

from functools import lru_cache
from typing import overload

from cssselect import HTMLTranslator, SelectorError
from lxml.html import HtmlElement

from dirscrape.common.exceptions import (
    HTMLStructuralAssumptionException,
)

_TRANSLATOR = HTMLTranslator()


@lru_cache(maxsize=1024)
def css_to_descendant_xpath(selector: str) -> str:
    """Translate CSS to XPath that only matches strict descendants.

    Unlike lxml's own cssselect(), the context element never matches
    itself, as with a browser's querySelectorAll().

    Raises:
        SelectorError: If the selector cannot be parsed.
    """
    return _TRANSLATOR.css_to_xpath(selector, prefix="descendant::")


class CheckedHtmlElement:
    """Wrapper around HtmlElement with validated selectors.

    checked_xpath() and checked_css() raise HTMLStructuralAssumptionException
    when the number of results falls outside [min_count, max_count].
    """

    def __init__(self, element: HtmlElement, request_url: str = "") -> None:
        """Initialize the checked element wrapper.

        Args:
            element: The lxml HtmlElement to wrap.
            request_url: Optional URL for error context.
        """
        self._element = element
        self._request_url = request_url

    @property
    def request_url(self) -> str:
        return self._request_url

    def _check_count(
        self,
        selector: str,
        selector_type: str,
        description: str,
        min_count: int,
        max_count: int | None,
        actual_count: int,
        is_element_query: bool = True,
    ) -> None:
        if actual_count < min_count or (
            max_count is not None and actual_count > max_count
        ):
            raise HTMLStructuralAssumptionException(
                selector=selector,
                selector_type=selector_type,
                description=description,
                expected_min=min_count,
                expected_max=max_count,
                actual_count=actual_count,
                request_url=self._request_url,
                is_element_query=is_element_query,
            )

    @overload
    def checked_xpath(
        self,
        xpath: str,
        description: str,
        min_count: int = 1,
        max_count: int | None = None,
        *,
        type: type[str],
    ) -> list[str]: ...

    @overload
    def checked_xpath(
        self,
        xpath: str,
        description: str,
        min_count: int = 1,
        max_count: int | None = None,
    ) -> list[CheckedHtmlElement]: ...

    def checked_xpath(
        self,
        xpath: str,
        description: str,
        min_count: int = 1,
        max_count: int | None = None,
        *,
        type: type[str] | None = None,
    ) -> list[CheckedHtmlElement] | list[str]:
        """Execute XPath query with count validation.

        Args:
            xpath: XPath expression to execute.
            description: Human-readable description of what's being selected.
            min_count: Minimum number of elements expected (default: 1).
            max_count: Maximum number of elements expected (None = unlimited).
            type: Pass `str` to return only string results (text/attributes).
                If omitted, returns only CheckedHtmlElements.

        Returns:
            List of matching results filtered by type.

        Raises:
            HTMLStructuralAssumptionException: If count doesn't match expectations.
        """
        results = self._element.xpath(xpath)

        if type is str:
            filtered: list[str] = [str(r) for r in results if isinstance(r, str)]
            self._check_count(
                xpath,
                "xpath",
                description,
                min_count,
                max_count,
                len(filtered),
                is_element_query=False,
            )
            return filtered

        wrapped: list[CheckedHtmlElement] = [
            CheckedHtmlElement(r, self._request_url)
            for r in results
            if isinstance(r, HtmlElement)
        ]
        self._check_count(
            xpath, "xpath", description, min_count, max_count, len(wrapped)
        )
        return wrapped

    def checked_css(
        self,
        selector: str,
        description: str,
        min_count: int = 1,
        max_count: int | None = None,
    ) -> list[CheckedHtmlElement]:
        """Execute CSS selector query with count validation.

        Args:
            selector: CSS selector expression.
            description: Human-readable description of what's being selected.
            min_count: Minimum number of elements expected (default: 1).
            max_count: Maximum number of elements expected (None = unlimited).

        Returns:
            List of matching descendant CheckedHtmlElements in document
            order. The element itself is never part of the result.

        Raises:
            HTMLStructuralAssumptionException: If count doesn't match
                expectations or the selector cannot be parsed.

        Example::

            tree = CheckedHtmlElement(lxml.html.document_fromstring(html))
            phones = tree.checked_css(".phone, .phones", "phone", min_count=0)
            h1 = tree.checked_css("h1", "business name", max_count=1)
        """
        try:
            xpath = css_to_descendant_xpath(selector)
        except SelectorError as e:
            raise HTMLStructuralAssumptionException(
                selector=selector,
                selector_type="css",
                description=description,
                expected_min=min_count,
                expected_max=max_count,
                actual_count=0,
                request_url=self._request_url,
            ) from e

        results = self._element.xpath(xpath)
        self._check_count(
            selector, "css", description, min_count, max_count, len(results)
        )

        return [
            CheckedHtmlElement(result, self._request_url) for result in results
        ]

    def __getattr__(self, name: str):
        """Delegate all other attributes to the wrapped element."""
        return getattr(self._element, name)
