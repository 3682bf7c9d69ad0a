"""LxmlPageElement implementation wrapping CheckedHtmlElement.

This module provides the implementation of the PageElement protocol used by
every page source. It wraps CheckedHtmlElement and adds the text helpers the
field rules rely on.
"""

from __future__ import annotations

import re
from html import escape as escape_html

from lxml import html

from dirscrape.common.checked_html import CheckedHtmlElement

_INLINE_WHITESPACE = re.compile(r"[ \t\r\f\v\u00a0]+")
_SKIPPED_TEXT_TAGS = {"script", "style", "noscript", "template"}
_UTF8_PARSER = html.HTMLParser(encoding="utf-8")


class LxmlPageElement:
    """Implementation of PageElement protocol wrapping CheckedHtmlElement.

    Attributes:
        _element: The underlying CheckedHtmlElement.
        _url: The base URL for resolving relative URLs.
    """

    def __init__(self, element: CheckedHtmlElement, url: str = ""):
        """Initialize LxmlPageElement.

        Args:
            element: The CheckedHtmlElement to wrap.
            url: Base URL for resolving relative URLs.
        """
        self._element = element
        self._url = url

    @classmethod
    def from_html(cls, content: str | bytes, url: str = "") -> LxmlPageElement:
        """Parse an HTML document and wrap its root element.

        Args:
            content: Full HTML document (a DOM snapshot or a downloaded body).
            url: The URL the document was loaded from.

        Returns:
            LxmlPageElement for the document root.
        """
        parser = None
        if isinstance(content, str):
            # lxml refuses str input that carries an XML encoding declaration
            content = content.encode("utf-8")
            parser = _UTF8_PARSER
        if not content.strip():
            content = b"<html></html>"
        doc = html.document_fromstring(content, parser=parser, base_url=url or None)
        return cls(CheckedHtmlElement(doc, url), url)

    @property
    def url(self) -> str:
        return self._url

    def query_xpath(
        self,
        selector: str,
        description: str,
        min_count: int = 1,
        max_count: int | None = None,
    ) -> list[LxmlPageElement]:
        """Query elements by XPath selector.

        Raises:
            HTMLStructuralAssumptionException: If count doesn't match expectations.
        """
        checked_elements = self._element.checked_xpath(
            selector, description, min_count, max_count
        )
        return [LxmlPageElement(elem, self._url) for elem in checked_elements]

    def query_css(
        self,
        selector: str,
        description: str,
        min_count: int = 1,
        max_count: int | None = None,
    ) -> list[LxmlPageElement]:
        """Query elements by CSS selector.

        Raises:
            HTMLStructuralAssumptionException: If count doesn't match expectations.
        """
        checked_elements = self._element.checked_css(
            selector, description, min_count, max_count
        )
        return [LxmlPageElement(elem, self._url) for elem in checked_elements]

    def inner_text(self) -> str:
        """Approximate the browser's innerText.

        Script and style bodies are skipped, runs of inline whitespace
        collapse to one space, each line is stripped and blank lines are
        dropped. <br> produces a line break.
        """
        root = self._element._element
        pieces: list[str] = [root.text or ""]
        for child in root:
            self._collect_text(child, pieces)
        lines = (
            _INLINE_WHITESPACE.sub(" ", line).strip()
            for line in "".join(pieces).split("\n")
        )
        return "\n".join(line for line in lines if line)

    @classmethod
    def _collect_text(cls, elem, pieces: list[str]) -> None:
        if not isinstance(elem.tag, str):
            # comments and processing instructions
            pass
        elif elem.tag.lower() in _SKIPPED_TEXT_TAGS:
            pass
        elif elem.tag.lower() == "br":
            pieces.append("\n")
        else:
            if elem.text:
                pieces.append(elem.text)
            for child in elem:
                cls._collect_text(child, pieces)
        if elem.tail:
            pieces.append(elem.tail)

    def get_attribute(self, name: str) -> str | None:
        return self._element.get(name)

    def inner_html(self) -> str:
        elem = self._element._element
        leading = escape_html(elem.text) if elem.text else ""
        return leading + "".join(
            html.tostring(child, encoding="unicode") for child in elem
        )

