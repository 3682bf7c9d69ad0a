"""Selector utility functions for rules built from page content.

The generic section fallback turns arbitrary ``id`` and ``class`` values
found on a page into FieldIds and, later, back into CSS selectors. Those
values are untrusted, so they have to be escaped before cssselect sees them.
"""

import re

_IDENT_SAFE = re.compile(r"^-?[_a-zA-Z][_a-zA-Z0-9-]*$")


def css_escape_identifier(value: str) -> str:
    """Escape a string for use as a CSS identifier.

    Args:
        value: Raw ``id`` or class name taken from a page.

    Returns:
        The identifier with every character outside ``[_a-zA-Z0-9-]``
        backslash-escaped, and a leading digit hex-escaped.

    Examples:
        >>> css_escape_identifier("reviews")
        'reviews'
        >>> css_escape_identifier("ta:container")
        'ta\\\\:container'
        >>> css_escape_identifier("24hr")
        '\\\\32 4hr'
    """
    if _IDENT_SAFE.match(value):
        return value

    out: list[str] = []
    for i, ch in enumerate(value):
        if ch.isdigit() and (i == 0 or (i == 1 and value[0] == "-")):
            out.append(f"\\{ord(ch):x} ")
        elif ch == "_" or ch == "-" or ch.isalnum() and ch.isascii():
            out.append(ch)
        else:
            out.append("\\" + ch)
    return "".join(out)


def id_selector(element_id: str) -> str:
    """Build a CSS selector matching an element by id.

    Examples:
        >>> id_selector("reviews")
        '#reviews'
    """
    return "#" + css_escape_identifier(element_id)


def class_selector(class_attr: str) -> str | None:
    """Build a CSS selector matching every class in a class attribute.

    Args:
        class_attr: The raw ``class`` attribute value.

    Returns:
        A compound class selector, or None if the attribute holds no class.

    Examples:
        >>> class_selector("hours  open-now")
        '.hours.open-now'
        >>> class_selector("   ") is None
        True
    """
    classes = class_attr.split()
    if not classes:
        return None
    return "".join("." + css_escape_identifier(c) for c in classes)


def class_tokens(class_attr: str | None) -> list[str]:
    """Split a class attribute into its class names."""
    return class_attr.split() if class_attr else []
