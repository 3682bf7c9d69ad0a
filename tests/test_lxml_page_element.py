"""Tests for LxmlPageElement and CheckedHtmlElement.

Tests count validation, text normalization and document parsing.
"""

import pytest
from lxml import html

from dirscrape.common.checked_html import CheckedHtmlElement
from dirscrape.common.exceptions import (
    HTMLStructuralAssumptionException,
)
from dirscrape.common.lxml_page_element import (
    LxmlPageElement,
)


@pytest.fixture
def listing_page():
    """Small detail page for testing."""
    html_content = """
    <html>
    <body>
        <main class="container">
            <h1>  Beetle   Plumbing </h1>
            <div class="phone">(512) 555-0101<br>Call</div>
            <p class="about">Fixes <b>every</b> leak.<script>var x = 1;</script></p>
            <ul class="services"><li>Repair</li><li>Install</li></ul>
        </main>
    </body>
    </html>
    """
    doc = html.document_fromstring(html_content)
    checked = CheckedHtmlElement(doc, "https://example.com/search")
    return LxmlPageElement(checked, "https://example.com/search")


class TestQueries:
    def test_query_css_returns_wrapped_elements(self, listing_page):
        items = listing_page.query_css(".services li", "services")
        assert [i.inner_text() for i in items] == ["Repair", "Install"]
        assert all(isinstance(i, LxmlPageElement) for i in items)

    def test_query_xpath(self, listing_page):
        headings = listing_page.query_xpath("//h1", "heading", max_count=1)
        assert headings[0].inner_text() == "Beetle Plumbing"

    def test_min_count_violation_raises(self, listing_page):
        with pytest.raises(HTMLStructuralAssumptionException) as exc_info:
            listing_page.query_css(".missing", "missing thing")
        assert exc_info.value.actual_count == 0
        assert exc_info.value.request_url == "https://example.com/search"

    def test_max_count_violation_raises(self, listing_page):
        with pytest.raises(HTMLStructuralAssumptionException):
            listing_page.query_css("li", "list items", max_count=1)

    def test_presence_check_with_zero_min_count(self, listing_page):
        assert listing_page.query_css(".missing", "presence", min_count=0) == []

    def test_css_never_matches_the_element_itself(self, listing_page):
        services = listing_page.query_css(".services", "services")[0]
        assert services.query_css(".services", "nested", min_count=0) == []
        assert len(services.query_css("li", "items")) == 2

    def test_invalid_css_raises_structural_exception(self, listing_page):
        with pytest.raises(HTMLStructuralAssumptionException):
            listing_page.query_css("div[", "broken selector", min_count=0)


class TestText:
    def test_inner_text_collapses_whitespace(self, listing_page):
        h1 = listing_page.query_css("h1", "name")[0]
        assert h1.inner_text() == "Beetle Plumbing"

    def test_inner_text_breaks_lines_at_br(self, listing_page):
        phone = listing_page.query_css(".phone", "phone")[0]
        assert phone.inner_text() == "(512) 555-0101\nCall"

    def test_inner_text_skips_scripts(self, listing_page):
        about = listing_page.query_css(".about", "about")[0]
        assert about.inner_text() == "Fixes every leak."

    def test_inner_text_excludes_own_tail(self):
        page = LxmlPageElement.from_html(
            "<div><span>inside</span> after</div>", "https://example.com/"
        )
        span = page.query_css("span", "span")[0]
        assert span.inner_text() == "inside"

    def test_inner_html(self, listing_page):
        about = listing_page.query_css(".about", "about")[0]
        assert about.inner_html().startswith("Fixes <b>every</b> leak.")

    def test_get_attribute_missing_is_none(self, listing_page):
        h1 = listing_page.query_css("h1", "name")[0]
        assert h1.get_attribute("data-id") is None


class TestFromHtml:
    def test_parses_str_with_encoding_declaration(self):
        page = LxmlPageElement.from_html(
            '<?xml version="1.0" encoding="utf-8"?><html><body><h1>Hi</h1></body></html>',
            "https://example.com/",
        )
        assert page.query_css("h1", "heading")[0].inner_text() == "Hi"

    def test_empty_document(self):
        page = LxmlPageElement.from_html("", "https://example.com/")
        assert page.query_css("main", "container", min_count=0) == []
        assert page.url == "https://example.com/"

    def test_declaration_does_not_make_a_fragment_root(self):
        page = LxmlPageElement.from_html(
            b'<?xml version="1.0" encoding="utf-8"?>'
            b"<html><body><main class='container'><h1>Hi</h1></main></body></html>",
            "https://example.com/",
        )
        assert page.query_css("main h1", "heading")[0].inner_text() == "Hi"

    def test_str_snapshot_keeps_non_ascii_text(self):
        page = LxmlPageElement.from_html(
            "<html><body><h1>Café Cricket</h1></body></html>", "https://example.com/"
        )
        assert page.query_css("h1", "heading")[0].inner_text() == "Café Cricket"

    def test_single_element_document_is_queryable(self):
        page = LxmlPageElement.from_html("<h1>Only</h1>", "https://example.com/")
        assert page.query_css("h1", "heading")[0].inner_text() == "Only"
