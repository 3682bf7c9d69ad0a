"""Tests for selector utility functions."""

from dirscrape.common.selector_utils import (
    class_selector,
    class_tokens,
    css_escape_identifier,
    id_selector,
)
from tests.utils import bare_page


class TestCssEscapeIdentifier:
    def test_plain_identifiers_unchanged(self):
        assert css_escape_identifier("reviews") == "reviews"
        assert css_escape_identifier("ta-reviews_container") == "ta-reviews_container"

    def test_special_characters_escaped(self):
        assert css_escape_identifier("a:b") == "a\\:b"
        assert css_escape_identifier("a.b") == "a\\.b"

    def test_leading_digit_hex_escaped(self):
        assert css_escape_identifier("24hr") == "\\32 4hr"


class TestSelectors:
    def test_id_selector(self):
        assert id_selector("reviews") == "#reviews"

    def test_class_selector_compound(self):
        assert class_selector("hours  open-now") == ".hours.open-now"

    def test_class_selector_blank(self):
        assert class_selector("  ") is None

    def test_class_tokens(self):
        assert class_tokens(" a  b ") == ["a", "b"]
        assert class_tokens(None) == []

    def test_escaped_selectors_match_their_elements(self):
        page = bare_page(
            '<div id="24hr">day and night</div><div class="x:y">odd</div>'
        )
        assert page.query_css(id_selector("24hr"), "id")[0].inner_text() == (
            "day and night"
        )
        assert page.query_css(class_selector("x:y"), "class")[0].inner_text() == "odd"
