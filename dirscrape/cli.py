"""dirscrape CLI: run a directory scrape or inspect the field rules.

Usage:
    dirscrape run --search plumbers --location "Austin, TX"
    dirscrape run -s dentists -l 78701 --parallel 5 --max-pages 4
    dirscrape run -s bakeries -l Boston --source http --jsonl records.jsonl
    dirscrape fields                         # List static field ids
    dirscrape fields --generic-sections
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from pathlib import Path
from typing import TextIO

import click
from pydantic import ValidationError

from dirscrape.common.exceptions import BootstrapFailure
from dirscrape.config import RunSettings, ScrapeRequest
from dirscrape.data_types import RunSummary
from dirscrape.driver.callbacks import (
    echo_checkpoint,
    echo_new_fields,
    save_records_to_jsonl_file,
)
from dirscrape.driver.coordinator import RunCoordinator
from dirscrape.driver.links import YellowPagesLinks
from dirscrape.driver.page_source import navigation_limiter
from dirscrape.extraction.default_rules import default_rule_table
from dirscrape.output.run_output import LOG_FORMAT, RunOutput


@click.group()
@click.version_option(package_name="dirscrape")
def cli() -> None:
    """dirscrape: business directory scraper with schema discovery."""


def _invalid(e: ValidationError) -> click.BadParameter:
    details = "; ".join(
        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
        for err in e.errors()
    )
    return click.BadParameter(details)


def _install_stop_handler(stop_event: asyncio.Event) -> None:
    """Turn the first SIGINT into a graceful stop."""
    loop = asyncio.get_running_loop()

    def _request_stop() -> None:
        if stop_event.is_set():
            raise KeyboardInterrupt
        click.echo("Stopping after the pages in flight (Ctrl-C again to abort)")
        stop_event.set()

    # add_signal_handler is unavailable on some platforms (e.g. Windows)
    with contextlib.suppress(NotImplementedError, RuntimeError):
        loop.add_signal_handler(signal.SIGINT, _request_stop)


@cli.command()
@click.option("-s", "--search", "search_term", required=True, help="Search term.")
@click.option(
    "-l", "--location", required=True, help="Zip code or 'City, ST'."
)
@click.option(
    "-p",
    "--parallel",
    "parallelism",
    type=int,
    default=3,
    show_default=True,
    help="Listing pages scraped concurrently per batch (1-20).",
)
@click.option("--category", default=None, help="Label stored in the summary.")
@click.option(
    "--max-pages",
    type=int,
    default=None,
    help="Visit at most this many listing pages.",
)
@click.option(
    "--delay",
    type=float,
    default=2.0,
    show_default=True,
    help="Seconds between detail page visits.",
)
@click.option(
    "-o",
    "--out",
    "out_dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("results"),
    show_default=True,
    help="Directory under which run directories are created.",
)
@click.option(
    "--source",
    type=click.Choice(["playwright", "http"]),
    default="playwright",
    show_default=True,
    help="How pages are fetched.",
)
@click.option(
    "--base-url",
    default="https://www.yellowpages.com",
    show_default=True,
    help="Directory site root.",
)
@click.option(
    "--generic-sections",
    is_flag=True,
    help="Also record every identifiable page section as a field.",
)
@click.option("--headed", is_flag=True, help="Show the browser window.")
@click.option(
    "--rate",
    type=float,
    default=None,
    help="Max navigations per second across all tabs.",
)
@click.option(
    "--jsonl",
    "jsonl_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Also stream each record to this JSON Lines file.",
)
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging.")
def run(
    search_term: str,
    location: str,
    parallelism: int,
    category: str | None,
    max_pages: int | None,
    delay: float,
    out_dir: Path,
    source: str,
    base_url: str,
    generic_sections: bool,
    headed: bool,
    rate: float | None,
    jsonl_path: Path | None,
    verbose: bool,
) -> None:
    """Scrape every listing for a search term in a location.

    The table is checkpointed after each batch of listing pages and
    written in full at the end, together with summary.json and the run
    log, into a fresh directory under --out.

    \b
    Examples:
        dirscrape run -s plumbers -l "Austin, TX"
        dirscrape run -s dentists -l 78701 --parallel 5 --max-pages 4
    """
    log_level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=log_level, format=LOG_FORMAT)

    try:
        request = ScrapeRequest(
            search_term=search_term,
            location=location,
            parallelism=parallelism,
            category=category,
        )
        settings = RunSettings(
            detail_delay_seconds=delay,
            max_pages=max_pages,
            generic_sections=generic_sections,
            headless=not headed,
            navigation_rate=rate,
        )
    except ValidationError as e:
        raise _invalid(e) from e

    output = RunOutput(out_dir, request.search_term, request.location)
    click.echo(f"Search:   {request.search_term} in {request.location}")
    click.echo(f"Source:   {source}")
    click.echo(f"Output:   {output.directory}")

    with contextlib.ExitStack() as stack:
        jsonl: TextIO | None = None
        if jsonl_path is not None:
            jsonl = stack.enter_context(jsonl_path.open("w", encoding="utf-8"))
        stack.enter_context(output.capture_log(level=log_level))
        try:
            summary = _run_coordinator(
                request, settings, output, source, base_url, jsonl
            )
        except BootstrapFailure as e:
            raise click.ClickException(e.message) from e

    click.echo(summary.describe())
    click.echo(f"Table:    {output.table_path}")


def _run_coordinator(
    request: ScrapeRequest,
    settings: RunSettings,
    output: RunOutput,
    source_name: str,
    base_url: str,
    jsonl: TextIO | None,
) -> RunSummary:
    if source_name == "playwright":
        try:
            from dirscrape.driver.playwright_source import PlaywrightPageSource
        except ImportError as e:
            raise click.ClickException(
                f"Missing dependency: {e}. "
                "Install the 'playwright' extra: "
                "pip install dirscrape[playwright] && playwright install chromium"
            ) from e
    else:
        from dirscrape.driver.http_source import HttpPageSource

    async def _go() -> RunSummary:
        stop_event = asyncio.Event()
        _install_stop_handler(stop_event)
        limiter = navigation_limiter(settings.navigation_rate)
        if source_name == "playwright":
            opener = PlaywrightPageSource.open(
                settings, max_tabs=request.parallelism, rate_limiter=limiter
            )
        else:
            opener = HttpPageSource.open(settings, rate_limiter=limiter)
        async with opener as page_source:
            coordinator = RunCoordinator(
                request,
                page_source,
                YellowPagesLinks(base_url=base_url),
                settings=settings,
                output=output,
                on_record=save_records_to_jsonl_file(jsonl) if jsonl else None,
                on_new_fields=echo_new_fields(),
                on_checkpoint=echo_checkpoint(),
                stop_event=stop_event,
            )
            return await coordinator.run()

    return asyncio.run(_go())


@cli.command()
@click.option(
    "--generic-sections",
    is_flag=True,
    help="Include the section catch-all rule.",
)
def fields(generic_sections: bool) -> None:
    """List the field ids the built-in rules can produce.

    Group fields are shown as patterns; the number of instances depends
    on the page.
    """
    table = default_rule_table(generic_sections)
    for rule in table.rules:
        for field_id in rule.field_ids():
            click.echo(f"{field_id}\t{rule.kind}")
    click.echo(f"Content container chain: {', '.join(table.container_chain)}")


def main() -> None:
    """Entry point for the ``dirscrape`` console script."""
    cli()
