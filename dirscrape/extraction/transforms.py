"""Value transforms applied by field rules.

Every function here turns matched elements (or a raw attribute string) into
one cell Value. They are pure, so rule tables for other directory sites can
reuse them freely. A transform that cannot make sense of its input raises
FieldExtractionError; the extractor turns that into an absent field.
"""

from __future__ import annotations

import json
import re
from collections.abc import Sequence

from dirscrape.common.exceptions import FieldExtractionError
from dirscrape.common.page_element import PageElement
from dirscrape.data_types import Value

PHONE_ACTION_SUFFIX = re.compile(r"\s*(?:Call|Text|SMS|Message)\s*$", re.I)
YP_RATING_CLASS = re.compile(r"result-rating\s+(\w+)")
TA_RATING_CLASS = re.compile(r"ta-(\d)-(\d)")
TA_REVIEW_STARS_CLASS = re.compile(r"ta-(\d)")
THUMBNAIL_SUFFIX = "_228x168_crop.jpg"

SOCIAL_NETWORKS: tuple[str, ...] = ("facebook", "twitter", "instagram", "linkedin")


def clean(text: str | None) -> str | None:
    """Trim text; empty or missing text becomes None."""
    if text is None:
        return None
    text = text.strip()
    return text or None


def element_text(element: PageElement | None) -> str | None:
    """Trimmed visible text of an element, None if empty or missing."""
    if element is None:
        return None
    return clean(element.inner_text())


def first_text(elements: Sequence[PageElement]) -> str | None:
    return element_text(elements[0]) if elements else None


def joined_text(elements: Sequence[PageElement], separator: str = "; ") -> str:
    """Join the trimmed text of every element.

    Examples:
        Three <li> elements "Repair", "Install", "Maintenance" join to
        "Repair; Install; Maintenance".
    """
    return separator.join(e.inner_text().strip() for e in elements)


def attribute_value(
    element: PageElement | None,
    name: str,
    strip_prefix: str | None = None,
) -> str | None:
    """Raw attribute value, optionally with a leading prefix removed.

    An empty attribute is reported as None.

    Examples:
        href="mailto:info@example.com" with strip_prefix="mailto:" gives
        "info@example.com".
    """
    if element is None:
        return None
    value = element.get_attribute(name)
    if not value:
        return None
    if strip_prefix and value.startswith(strip_prefix):
        value = value[len(strip_prefix) :]
    return value or None


def strip_phone_action(text: str | None) -> str | None:
    """Remove a trailing call-to-action word from phone text.

    Examples:
        >>> strip_phone_action("(512) 555-0100 Call")
        '(512) 555-0100'
        >>> strip_phone_action("(512) 555-0100\\nTEXT")
        '(512) 555-0100'
    """
    if text is None:
        return None
    return clean(PHONE_ACTION_SUFFIX.sub("", text.strip()))


def strip_parentheses(text: str | None) -> str | None:
    """Remove parentheses from a count such as "(12)".

    Examples:
        >>> strip_parentheses("(12)")
        '12'
    """
    if text is None:
        return None
    return clean(text.replace("(", "").replace(")", ""))


def class_token(class_attr: str | None, pattern: re.Pattern[str]) -> str | None:
    """First capture group of a pattern searched in a class attribute.

    Examples:
        >>> class_token("result-rating four half", YP_RATING_CLASS)
        'four'
        >>> class_token("result-rating four_half", YP_RATING_CLASS)
        'four_half'
    """
    if not class_attr:
        return None
    match = pattern.search(class_attr)
    return match.group(1) if match else None


def dash_rating(class_attr: str | None) -> str | None:
    """Decode a numeric-dash rating class such as ``ta-4-5`` to "4.5".

    Examples:
        >>> dash_rating("ta-rating extra ta-4-5")
        '4.5'
        >>> dash_rating("ta-rating") is None
        True
    """
    if not class_attr:
        return None
    match = TA_RATING_CLASS.search(class_attr)
    return f"{match.group(1)}.{match.group(2)}" if match else None


def social_links(elements: Sequence[PageElement]) -> str:
    """JSON object mapping each social network to its last linked URL.

    Networks appear in the order they are first linked.
    """
    links: dict[str, str] = {}
    for element in elements:
        href = element.get_attribute("href") or ""
        for network in SOCIAL_NETWORKS:
            if network in href:
                links[network] = href
    return to_json(links)


def hours_table(day_elements: Sequence[PageElement]) -> str:
    """JSON object of ``{day name: hours}`` read from per-day rows.

    Rows without both a day name and hours are skipped.
    """
    hours: dict[str, str] = {}
    for day in day_elements:
        name = first_text(day.query_css(".day-name, .day", "day name", min_count=0))
        span = first_text(
            day.query_css(".day-hours, .hours", "day hours", min_count=0)
        )
        if name and span:
            hours[name] = span
    return to_json(hours)


def resolve_photo_url(element: PageElement, field_id: str) -> str | None:
    """Full-resolution URL of a gallery item.

    Resolution order: the ``data-media`` JSON payload (``fullImagePath``,
    then ``src``), the ``data-url`` attribute, and finally the element's
    ``src`` with the thumbnail size suffix removed.

    Raises:
        FieldExtractionError: If ``data-media`` is present but is not a
            JSON object.
    """
    data_media = element.get_attribute("data-media")
    if data_media:
        try:
            media = json.loads(data_media)
        except ValueError as e:
            raise FieldExtractionError(
                field_id, f"malformed data-media JSON: {e}", element.url
            ) from e
        if not isinstance(media, dict):
            raise FieldExtractionError(
                field_id, "data-media is not a JSON object", element.url
            )
        for key in ("fullImagePath", "src"):
            if media.get(key):
                return str(media[key])

    data_url = element.get_attribute("data-url")
    if data_url:
        return data_url

    src = element.get_attribute("src")
    if src:
        return src.replace(THUMBNAIL_SUFFIX, "")
    return None


def review_stars(element: PageElement | None) -> str | None:
    """Star rating of one review: class-encoded digit, else visible text."""
    if element is None:
        return None
    return class_token(
        element.get_attribute("class"), TA_REVIEW_STARS_CLASS
    ) or element_text(element)


def to_json(value: dict[str, str]) -> str:
    """Compact JSON with non-ASCII characters kept as is."""
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def coerce_value(value: object) -> Value:
    """Narrow an arbitrary Python value to a cell Value.

    Raises:
        TypeError: For containers and other non-scalar values.
    """
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    raise TypeError(f"{type(value).__name__} is not a cell value")
