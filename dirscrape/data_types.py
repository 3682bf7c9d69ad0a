"""Data types shared by the extraction core and the run coordinator.

These types are designed to be:

1. Immutable once handed on - a Record is frozen before it enters the
   RecordStore, and RunSummary is a snapshot.
2. Serializable - every Value is a JSON scalar and RunSummary has to_dict().
3. Exhaustive - RunState and the wait conditions are closed sets that the
   coordinator and page sources handle with match statements.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Union

FieldId = str
"""Stable identifier for one semantic datum, e.g. "phone" or "review3_rating"."""

Value = Union[str, int, float, bool, None]
"""Closed set of cell values a Record may hold."""

PresenceMap = dict[FieldId, bool]
"""Page-scoped, insertion-ordered map of the FieldIds observed on one page."""


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Record(Mapping[FieldId, Value]):
    """One business's extracted values, in extraction order.

    A Record is a read-only mapping. Fields the page did not expose are
    simply absent; the table serializer backfills them. The source URL and
    run metadata travel beside the values rather than inside them, so they
    never collide with a FieldId.

    Attributes:
        source_url: The detail page the values were read from.
        page_index: Listing page number (1-based) that linked to the page.
        extracted_at: Timezone-aware UTC time of extraction.
    """

    __slots__ = ("_values", "source_url", "page_index", "extracted_at")

    def __init__(
        self,
        values: Mapping[FieldId, Value],
        source_url: str,
        page_index: int = 0,
        extracted_at: datetime | None = None,
    ) -> None:
        self._values = MappingProxyType(dict(values))
        self.source_url = source_url
        self.page_index = page_index
        self.extracted_at = extracted_at or utc_now()

    def __getitem__(self, key: FieldId) -> Value:
        return self._values[key]

    def __iter__(self) -> Iterator[FieldId]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def with_page_index(self, page_index: int) -> Record:
        """Return a copy of this record tagged with a listing page number."""
        return Record(
            self._values, self.source_url, page_index, self.extracted_at
        )

    def metadata(self) -> dict[str, Value]:
        """Run metadata keyed by the table's metadata column names."""
        return {
            "sourceUrl": self.source_url,
            "pageIndex": self.page_index,
            "extractedAt": self.extracted_at.isoformat(),
        }

    def __repr__(self) -> str:
        return (
            f"Record({dict(self._values)!r}, source_url={self.source_url!r}, "
            f"page_index={self.page_index})"
        )


METADATA_COLUMNS: tuple[str, ...] = ("sourceUrl", "pageIndex", "extractedAt")


# =============================================================================
# Wait conditions
# =============================================================================


class LoadState(str, Enum):
    """Page load milestones a page source can wait for."""

    LOAD = "load"
    DOMCONTENTLOADED = "domcontentloaded"
    NETWORKIDLE = "networkidle"


@dataclass(frozen=True)
class WaitForLoadState:
    """Wait until the page reaches a load milestone."""

    state: LoadState = LoadState.DOMCONTENTLOADED


@dataclass(frozen=True)
class WaitForSelector:
    """Wait until a CSS selector matches, after the DOM is loaded.

    Attributes:
        selector: CSS selector to wait for. A comma list waits for any.
        timeout_ms: Separate budget for the element wait. None means the
            navigation timeout applies.
        required: If False, an element-wait timeout is tolerated and the
            page is snapshotted as it is.
    """

    selector: str
    timeout_ms: int | None = None
    required: bool = False


WaitCondition = Union[WaitForLoadState, WaitForSelector]


# =============================================================================
# Run state
# =============================================================================


class RunState(str, Enum):
    """States of one scrape run."""

    INIT = "init"
    DISCOVER_TOTAL_PAGES = "discover_total_pages"
    PROCESS_BATCH = "process_batch"
    FINALIZE = "finalize"
    DONE = "done"
    ABORTED = "aborted"
    STOPPED = "stopped"

    @property
    def is_terminal(self) -> bool:
        return self in (RunState.DONE, RunState.ABORTED, RunState.STOPPED)


@dataclass
class RunCounters:
    """Mutable tallies kept by the coordinator during a run."""

    listing_pages_ok: int = 0
    listing_pages_failed: int = 0
    detail_pages_ok: int = 0
    detail_pages_failed: int = 0
    detail_pages_empty: int = 0
    duplicate_urls_skipped: int = 0
    checkpoints_written: int = 0


@dataclass(frozen=True)
class RunSummary:
    """Human-readable outcome of a run, persisted as JSON.

    Attributes:
        state: Final RunState.
        total_pages_estimate: Advisory page count from the first listing page.
        pages_planned: Listing pages the run intended to visit.
        counters: Success and failure tallies.
        record_count: Records in the store at the end of the run.
        fields: The final schema, in column order.
        started_at: Run start time (UTC).
        elapsed_seconds: Wall time of the run.
        error: Message of the fatal error for aborted runs.
    """

    state: RunState
    total_pages_estimate: int
    pages_planned: int
    counters: RunCounters
    record_count: int
    fields: tuple[FieldId, ...]
    started_at: datetime
    elapsed_seconds: float
    error: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def field_count(self) -> int:
        return len(self.fields)

    def to_dict(self) -> dict[str, Any]:
        c = self.counters
        return {
            "state": self.state.value,
            "totalPagesEstimate": self.total_pages_estimate,
            "pagesPlanned": self.pages_planned,
            "listingPages": {
                "ok": c.listing_pages_ok,
                "failed": c.listing_pages_failed,
            },
            "detailPages": {
                "ok": c.detail_pages_ok,
                "failed": c.detail_pages_failed,
                "empty": c.detail_pages_empty,
                "duplicatesSkipped": c.duplicate_urls_skipped,
            },
            "records": self.record_count,
            "checkpoints": c.checkpoints_written,
            "fieldCount": self.field_count,
            "fields": list(self.fields),
            "startedAt": self.started_at.isoformat(),
            "elapsedSeconds": round(self.elapsed_seconds, 3),
            "error": self.error,
            **self.extra,
        }

    def describe(self) -> str:
        """One-paragraph summary for logs and the CLI."""
        c = self.counters
        return (
            f"Run {self.state.value}: {self.record_count} records, "
            f"{self.field_count} fields, "
            f"{c.listing_pages_ok}/{c.listing_pages_ok + c.listing_pages_failed} "
            f"listing pages ok, {c.detail_pages_ok} detail pages ok, "
            f"{c.detail_pages_failed} failed, {c.detail_pages_empty} unrecognized, "
            f"in {self.elapsed_seconds:.1f}s"
        )
