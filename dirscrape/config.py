"""Run configuration models.

ScrapeRequest is what the user asks for (search term, location and how many
listing pages to work on at once). RunSettings holds the scheduling and
extraction policy that rarely changes between runs. Both are frozen pydantic
models; the coordinator treats them as immutable input.

Example::

    from dirscrape.config import RunSettings, ScrapeRequest

    request = ScrapeRequest(search_term="plumbers", location="Austin, TX")
    settings = RunSettings(detail_delay_seconds=1.0, max_pages=5)
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from dirscrape.data_types import METADATA_COLUMNS

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

DEFAULT_BLOCKED_RESOURCE_TYPES: tuple[str, ...] = (
    "image",
    "stylesheet",
    "font",
    "media",
)


class ScrapeRequest(BaseModel):
    """One search to scrape.

    Attributes:
        search_term: What to search for, e.g. "plumbers".
        location: Where to search, e.g. a zip code or "City, ST".
        parallelism: Listing pages processed concurrently per batch (1-20).
        category: Optional category label recorded in the run summary.
    """

    model_config = ConfigDict(frozen=True)

    search_term: str = Field(..., min_length=1)
    location: str = Field(..., min_length=1)
    parallelism: int = Field(default=3, ge=1, le=20)
    category: str | None = None

    @field_validator("search_term", "location")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class RunSettings(BaseModel):
    """Scheduling, timeout and output policy for a run.

    Attributes:
        detail_delay_seconds: Pause between consecutive detail page visits
            of one listing page.
        listing_timeout_ms: Navigation timeout for listing pages.
        detail_timeout_ms: Navigation timeout for detail pages.
        container_wait_timeout_ms: How long a detail page may take to show
            its content container before it is snapshotted anyway.
        results_wait_timeout_ms: How long a listing page may take to show
            its search results before it counts as failed.
        generic_sections: Enable the catch-all rule that turns every
            identifiable section of the container into a field.
        max_pages: Upper bound on listing pages visited. None follows the
            page-count estimate.
        metadata_columns: Trailing run metadata columns in persisted tables.
        headless: Run the browser without a window.
        user_agent: User agent for browser and HTTP sources.
        accept_language: Accept-Language header sent with every request.
        blocked_resource_types: Browser resource types that are aborted.
        navigation_rate: Max navigations per second across all tabs.
            None disables the limiter.
    """

    model_config = ConfigDict(frozen=True)

    detail_delay_seconds: float = 2.0
    listing_timeout_ms: int = 60_000
    detail_timeout_ms: int = 45_000
    container_wait_timeout_ms: int = 15_000
    results_wait_timeout_ms: int = 15_000
    generic_sections: bool = False
    max_pages: int | None = Field(default=None, ge=1)
    metadata_columns: tuple[str, ...] = ("sourceUrl",)
    headless: bool = True
    user_agent: str = DEFAULT_USER_AGENT
    accept_language: str = "en-US,en;q=0.9"
    blocked_resource_types: tuple[str, ...] = DEFAULT_BLOCKED_RESOURCE_TYPES
    navigation_rate: float | None = Field(default=None, gt=0)

    @field_validator("detail_delay_seconds")
    @classmethod
    def _non_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("delay must not be negative")
        return value

    @field_validator(
        "listing_timeout_ms",
        "detail_timeout_ms",
        "container_wait_timeout_ms",
        "results_wait_timeout_ms",
    )
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("timeout must be positive")
        return value

    @field_validator("metadata_columns")
    @classmethod
    def _known_metadata(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        unknown = [c for c in value if c not in METADATA_COLUMNS]
        if unknown:
            raise ValueError(
                f"unknown metadata columns {unknown}; "
                f"choose from {list(METADATA_COLUMNS)}"
            )
        return value
