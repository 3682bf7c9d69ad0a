"""Exception types for scrape errors.

This module defines the exception hierarchy used by the extraction core and
the page sources. Almost every error here is caught close to where it is
raised and converted into absence (an empty presence map, an omitted field,
an empty URL list). Only BootstrapFailure is allowed to reach the caller of
a run.
"""

from typing import Any


class ScraperAssumptionException(Exception):
    """Base class for page-shape assumption violations.

    The extraction core assumes that a detail page has a recognizable
    content container and that each field rule can read its value. When
    those assumptions fail the subclasses below carry the URL and context
    needed to diagnose which page and which rule broke.
    """

    def __init__(
        self,
        message: str,
        request_url: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable description of the assumption violation.
            request_url: The URL of the page that triggered this error.
            context: Optional dict of additional context (selector, field, etc).
        """
        self.message = message
        self.request_url = request_url
        self.context = context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the error message with context.

        Returns:
            Formatted error message string.
        """
        parts = [self.message]
        parts.append(f"URL: {self.request_url}")

        if self.context:
            parts.append("Context:")
            for key, value in self.context.items():
                parts.append(f"  {key}: {value}")

        return "\n".join(parts)


class HTMLStructuralAssumptionException(ScraperAssumptionException):
    """Raised when a checked selector returns an unexpected number of elements.

    Attributes:
        selector: The XPath or CSS selector that was used.
        selector_type: Type of selector ("xpath" or "css").
        is_element_query: True if querying for elements, False for strings.
    """

    def __init__(
        self,
        selector: str,
        selector_type: str,
        description: str,
        expected_min: int,
        expected_max: int | None,
        actual_count: int,
        request_url: str,
        is_element_query: bool = True,
    ) -> None:
        """Initialize the exception.

        Args:
            selector: The XPath or CSS selector that was used.
            selector_type: Type of selector ("xpath" or "css").
            description: Human-readable description of what was being selected.
            expected_min: Minimum number of elements expected.
            expected_max: Maximum number of elements expected (None = unlimited).
            actual_count: Actual number of elements found.
            request_url: The URL of the page being queried.
            is_element_query: True if querying for elements (default), False for strings.
        """
        self.selector = selector
        self.selector_type = selector_type
        self.description = description
        self.expected_min = expected_min
        self.expected_max = expected_max
        self.actual_count = actual_count
        self.is_element_query = is_element_query

        if expected_max is None:
            expected_str = f"at least {expected_min}"
        elif expected_min == expected_max:
            expected_str = f"exactly {expected_min}"
        else:
            expected_str = f"between {expected_min} and {expected_max}"

        message = (
            f"HTML structure mismatch: Expected {expected_str} "
            f"elements for '{description}', but found {actual_count}"
        )

        context = {
            "selector": selector,
            "selector_type": selector_type,
            "expected_min": expected_min,
            "expected_max": expected_max
            if expected_max is not None
            else "unlimited",
            "actual_count": actual_count,
            "is_element_query": is_element_query,
        }

        super().__init__(message, request_url, context)


class ContainerNotFound(ScraperAssumptionException):
    """Raised when no selector of the container chain matches a page.

    Detection and extraction catch this and treat the page as having zero
    fields; it is logged as a warning and never aborts a run.

    Attributes:
        tried: The container selectors that were tried, in order.
    """

    def __init__(self, request_url: str, tried: list[str]) -> None:
        self.tried = tried
        super().__init__(
            "Primary content container not found",
            request_url,
            {"tried": ", ".join(tried)},
        )


class FieldExtractionError(ScraperAssumptionException):
    """Raised when one field's transform cannot produce a value.

    Typical causes are malformed JSON in a data attribute or an element
    that is missing the child the transform expects. The extractor catches
    this per field, so the remaining fields of the same record survive.

    Attributes:
        field_id: The FieldId whose value could not be computed.
    """

    def __init__(
        self,
        field_id: str,
        reason: str,
        request_url: str = "",
    ) -> None:
        self.field_id = field_id
        super().__init__(
            f"Could not extract field '{field_id}': {reason}",
            request_url,
            {"field_id": field_id},
        )


# =============================================================================
# Transient exceptions
# =============================================================================


class TransientException(Exception):
    """Base class for fetch errors that might resolve on a later attempt.

    The coordinator converts these into "zero results" for the unit of work
    that raised them (one listing page or one detail page).
    """

    pass


class NavigationTimeout(TransientException):
    """Raised when a navigation or element wait exceeds its timeout.

    Attributes:
        url: The URL that timed out.
        timeout_seconds: The timeout duration in seconds.
        message: Human-readable error message.
    """

    def __init__(self, url: str, timeout_seconds: float) -> None:
        """Initialize the exception.

        Args:
            url: The URL that timed out.
            timeout_seconds: The timeout duration in seconds.
        """
        self.url = url
        self.timeout_seconds = timeout_seconds
        self.message = f"Navigation to {url} timed out after {timeout_seconds}s"
        super().__init__(self.message)


class FetchFailure(TransientException):
    """Raised when a page cannot be fetched for any other reason.

    Attributes:
        url: The URL that failed.
        status_code: HTTP status code when one is known.
        message: Human-readable error message.
    """

    def __init__(
        self, url: str, reason: str, status_code: int | None = None
    ) -> None:
        self.url = url
        self.status_code = status_code
        self.message = f"Failed to fetch {url}: {reason}"
        super().__init__(self.message)


class BootstrapFailure(Exception):
    """Raised when a run cannot reach its first listing page.

    This is the only error that aborts a run. The message is meant to be
    shown to the user as is.

    Attributes:
        url: The first listing page URL.
    """

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.message = f"Could not start scrape at {url}: {reason}"
        super().__init__(self.message)
