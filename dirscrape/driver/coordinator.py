"""Run coordinator: sequences one scrape run.

State machine::

    Init -> DiscoverTotalPages -> ProcessBatch* -> Finalize -> Done
                 |                     |
                 v                     v
              Aborted               Stopped (stop_event set)

Listing pages are processed in contiguous batches of ``parallelism``
pages. Within a batch the listing pages run concurrently (asyncio.gather)
and the coordinator waits for all of them before writing a checkpoint.
Each listing page task visits its own detail URLs one after another.

Detection, schema merge, extraction and the append to the RecordStore
happen with no await in between. The event loop therefore never
interleaves two pages inside that sequence, and the schema has a single
writer without any lock.

Only BootstrapFailure (the first listing page cannot be loaded) escapes
run(); every other failure is logged, counted and turned into "no URLs"
or "no record" for the unit of work that failed.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from dirscrape.common.exceptions import (
    BootstrapFailure,
    ScraperAssumptionException,
    TransientException,
)
from dirscrape.common.page_element import PageElement
from dirscrape.config import RunSettings, ScrapeRequest
from dirscrape.data_types import (
    FieldId,
    Record,
    RunCounters,
    RunState,
    RunSummary,
    WaitForSelector,
    utc_now,
)
from dirscrape.driver.links import LinkDiscovery
from dirscrape.driver.page_source import PageSource
from dirscrape.extraction.default_rules import default_rule_table
from dirscrape.extraction.detector import FieldDetector
from dirscrape.extraction.extractor import FieldExtractor
from dirscrape.extraction.rules import RuleTable
from dirscrape.extraction.schema import GlobalSchema, SchemaAccumulator
from dirscrape.output.record_store import RecordStore
from dirscrape.output.run_output import RunOutput
from dirscrape.output.table import serialize

logger = logging.getLogger(__name__)


def plan_batches(total_pages: int, batch_size: int) -> list[list[int]]:
    """Partition listing pages ``1..total_pages`` into contiguous batches.

    Examples:
        >>> plan_batches(7, 3)
        [[1, 2, 3], [4, 5, 6], [7]]
        >>> plan_batches(0, 3)
        []
    """
    if batch_size < 1:
        raise ValueError(f"batch size must be positive, got {batch_size}")
    return [
        list(range(start, min(start + batch_size, total_pages + 1)))
        for start in range(1, total_pages + 1, batch_size)
    ]


class RunCoordinator:
    """Drives one scrape run from the first listing page to the final table.

    Example usage::

        async with PlaywrightPageSource.open(settings, max_tabs=3) as source:
            coordinator = RunCoordinator(
                request, source, YellowPagesLinks(), settings=settings,
                output=RunOutput("results", request.search_term, request.location),
            )
            summary = await coordinator.run()
    """

    def __init__(
        self,
        request: ScrapeRequest,
        source: PageSource,
        links: LinkDiscovery,
        rules: RuleTable | None = None,
        settings: RunSettings | None = None,
        output: RunOutput | None = None,
        on_record: Callable[[Record], Awaitable[None]] | None = None,
        on_new_fields: Callable[[tuple[FieldId, ...]], Awaitable[None]]
        | None = None,
        on_checkpoint: Callable[[str, int], Awaitable[None]] | None = None,
        on_run_complete: Callable[[RunSummary], Awaitable[None]] | None = None,
        stop_event: asyncio.Event | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """Initialize the coordinator.

        Args:
            request: What to scrape; treated as immutable.
            source: Fetches and parses pages.
            links: Listing URLs, detail links and the page-count estimate.
            rules: Field rules. Defaults to the built-in table, with the
                section catch-all enabled per ``settings.generic_sections``.
            settings: Scheduling, timeout and output policy.
            output: Where checkpoints, the final table and the summary are
                written. If None, nothing is persisted.
            on_record: Optional async callback invoked after each record is
                stored.
            on_new_fields: Optional async callback invoked with the FieldIds
                a page added to the schema.
            on_checkpoint: Optional async callback invoked after each batch
                with the checkpoint table and the 1-based batch number.
            on_run_complete: Optional async callback invoked with the final
                RunSummary, including for aborted runs.
            stop_event: Optional asyncio.Event for graceful shutdown. It is
                checked before every detail URL and every batch; work in
                flight finishes, nothing new starts.
            sleep: Awaitable used for the politeness delay.
        """
        self.request = request
        self.source = source
        self.links = links
        self.settings = settings or RunSettings()
        self.rules = (
            rules
            if rules is not None
            else default_rule_table(self.settings.generic_sections)
        )
        self.output = output
        self.on_record = on_record
        self.on_new_fields = on_new_fields
        self.on_checkpoint = on_checkpoint
        self.on_run_complete = on_run_complete
        self.stop_event = stop_event
        self._sleep = sleep

        self.detector = FieldDetector(self.rules)
        self.extractor = FieldExtractor(self.rules)
        self.accumulator = SchemaAccumulator()
        self.records = RecordStore()
        self.counters = RunCounters()
        self.state = RunState.INIT
        self.total_pages_estimate = 0
        self.pages_planned = 0
        self._visited: set[str] = set()

    @property
    def schema(self) -> GlobalSchema:
        return self.accumulator.schema

    def _stop_requested(self) -> bool:
        return self.stop_event is not None and self.stop_event.is_set()

    def _listing_wait(self) -> WaitForSelector:
        return WaitForSelector(
            self.links.results_selector,
            timeout_ms=self.settings.results_wait_timeout_ms,
            required=True,
        )

    def _detail_wait(self) -> WaitForSelector:
        return WaitForSelector(
            ", ".join(self.rules.container_chain),
            timeout_ms=self.settings.container_wait_timeout_ms,
            required=False,
        )

    def table(self) -> str:
        """Serialize the records stored so far against the current schema."""
        return serialize(
            self.records.snapshot(),
            self.schema,
            metadata_columns=self.settings.metadata_columns,
        )

    async def run(self) -> RunSummary:
        """Run the scrape to completion, stop or abort.

        Returns:
            The RunSummary of a Done or Stopped run.

        Raises:
            BootstrapFailure: If the first listing page cannot be loaded.
                A summary in state Aborted is still persisted and passed
                to on_run_complete.
        """
        started_at = utc_now()
        started = time.monotonic()
        error: str | None = None
        logger.info(
            f"Starting scrape for {self.request.search_term!r} in "
            f"{self.request.location!r} with parallelism "
            f"{self.request.parallelism}"
        )

        try:
            if self._stop_requested():
                self.state = RunState.STOPPED
            else:
                self.state = RunState.DISCOVER_TOTAL_PAGES
                first_page = await self._bootstrap()
                await self._process_batches(first_page)
                self.state = RunState.FINALIZE
                self._finalize()
                self.state = (
                    RunState.STOPPED if self._stop_requested() else RunState.DONE
                )
        except BootstrapFailure as e:
            self.state = RunState.ABORTED
            error = e.message
            logger.error(error)
            raise
        finally:
            summary = self._summary(started_at, time.monotonic() - started, error)
            if self.output is not None:
                self.output.write_summary(summary)
            logger.info(summary.describe())
            if self.on_run_complete:
                await self.on_run_complete(summary)

        return summary

    async def _bootstrap(self) -> PageElement:
        """Load listing page 1 and estimate the number of pages.

        Raises:
            BootstrapFailure: If page 1 cannot be loaded or its page count
                cannot be read.
        """
        url = self.links.listing_url(self.request, 1)
        logger.info(f"Fetching first listing page {url}")
        try:
            first_page = await self.source.fetch_rendered(
                url, self._listing_wait(), self.settings.listing_timeout_ms
            )
            self.total_pages_estimate = self.links.estimate_total_pages(first_page)
        except TransientException as e:
            raise BootstrapFailure(url, str(e)) from e
        except Exception as e:
            raise BootstrapFailure(url, f"{type(e).__name__}: {e}") from e

        self.pages_planned = self.total_pages_estimate
        if self.settings.max_pages is not None:
            self.pages_planned = min(self.pages_planned, self.settings.max_pages)
        logger.info(
            f"Detected total pages: {self.total_pages_estimate} "
            f"(visiting {self.pages_planned})"
        )
        return first_page

    async def _process_batches(self, first_page: PageElement) -> None:
        batches = plan_batches(self.pages_planned, self.request.parallelism)
        for number, batch in enumerate(batches, start=1):
            if self._stop_requested():
                logger.info("Stop requested; no further batches will start")
                break
            self.state = RunState.PROCESS_BATCH
            logger.info(
                f"Scraping pages {', '.join(str(n) for n in batch)} "
                f"(batch {number}/{len(batches)})"
            )
            await asyncio.gather(
                *(
                    self._process_listing_page(
                        n, first_page if n == 1 else None
                    )
                    for n in batch
                )
            )
            await self._checkpoint(number)

    async def _checkpoint(self, batch_number: int) -> None:
        table = self.table()
        if self.output is not None:
            self.output.write_checkpoint(table)
        self.counters.checkpoints_written += 1
        logger.info(
            f"Progress: {len(self.records)} records, {len(self.schema)} fields "
            f"after batch {batch_number}"
        )
        if self.on_checkpoint:
            await self.on_checkpoint(table, batch_number)

    async def _listing_detail_urls(
        self, page_number: int, prefetched: PageElement | None
    ) -> list[str]:
        """Detail URLs of one listing page; empty if the page failed."""
        url = self.links.listing_url(self.request, page_number)
        try:
            page = prefetched
            if page is None:
                page = await self.source.fetch_rendered(
                    url, self._listing_wait(), self.settings.listing_timeout_ms
                )
            detail_urls = self.links.listing_detail_urls(page)
        except (TransientException, ScraperAssumptionException) as e:
            self.counters.listing_pages_failed += 1
            logger.error(f"Page {page_number}: Failed to scrape: {e}")
            return []
        except Exception:
            self.counters.listing_pages_failed += 1
            logger.error(f"Page {page_number}: Failed to scrape", exc_info=True)
            return []

        self.counters.listing_pages_ok += 1
        logger.info(f"Page {page_number}: Found {len(detail_urls)} detail links")
        return detail_urls

    async def _process_listing_page(
        self, page_number: int, prefetched: PageElement | None
    ) -> None:
        detail_urls = await self._listing_detail_urls(page_number, prefetched)
        for position, url in enumerate(detail_urls):
            if self._stop_requested():
                logger.info(f"Page {page_number}: stopping before {url}")
                return
            if url in self._visited:
                self.counters.duplicate_urls_skipped += 1
                logger.debug(f"Skipping already visited {url}")
                continue
            self._visited.add(url)

            await self._process_detail(url, page_number)

            if position < len(detail_urls) - 1:
                await self._sleep(self.settings.detail_delay_seconds)

    async def _process_detail(self, url: str, page_number: int) -> None:
        """Fetch one detail page and store its record, if any."""
        try:
            page = await self.source.fetch_rendered(
                url, self._detail_wait(), self.settings.detail_timeout_ms
            )
        except TransientException as e:
            self.counters.detail_pages_failed += 1
            logger.error(f"Error processing {url}: {e}")
            return
        except Exception:
            self.counters.detail_pages_failed += 1
            logger.error(f"Error processing {url}", exc_info=True)
            return

        # No awaits from here until the record is stored.
        try:
            presence = self.detector.detect(page)
            if presence is None:
                self.counters.detail_pages_empty += 1
                logger.warning(f"No data extracted from {url}")
                return
            added = self.accumulator.merge(presence)
            record = self.extractor.extract(page, self.schema)
        except Exception:
            self.counters.detail_pages_failed += 1
            logger.error(f"Error processing {url}", exc_info=True)
            return
        if record is None:
            self.counters.detail_pages_empty += 1
            logger.warning(f"No data extracted from {url}")
            return
        record = record.with_page_index(page_number)
        self.records.append(record)
        self.counters.detail_pages_ok += 1
        logger.info(
            f"Extracted: {record.get('businessName') or 'Unknown'} "
            f"({len(record)} fields) from {url}"
        )

        if added and self.on_new_fields:
            await self.on_new_fields(added)
        if self.on_record:
            await self.on_record(record)

    def _finalize(self) -> None:
        table = self.table()
        if self.output is not None:
            self.output.write_table(table)

    def _summary(
        self, started_at, elapsed_seconds: float, error: str | None
    ) -> RunSummary:
        return RunSummary(
            state=self.state,
            total_pages_estimate=self.total_pages_estimate,
            pages_planned=self.pages_planned,
            counters=self.counters,
            record_count=len(self.records),
            fields=self.schema.fields,
            started_at=started_at,
            elapsed_seconds=elapsed_seconds,
            error=error,
            extra={
                "searchTerm": self.request.search_term,
                "location": self.request.location,
                "category": self.request.category,
            },
        )
