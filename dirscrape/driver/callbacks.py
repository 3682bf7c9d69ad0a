"""Callback factories for the coordinator's on_* parameters.

Each factory returns an async callback that can be passed to
RunCoordinator for side effects such as streaming records to disk or
reporting schema growth, without subclassing the coordinator.

Example::

    from dirscrape.driver.callbacks import save_records_to_jsonl_file

    with open("records.jsonl", "w") as f:
        coordinator = RunCoordinator(
            request, source, links, on_record=save_records_to_jsonl_file(f)
        )
        summary = await coordinator.run()
"""

from __future__ import annotations

import csv
import io
import json
from collections.abc import Awaitable, Callable
from typing import TextIO

import click

from dirscrape.data_types import FieldId, Record


def record_to_dict(record: Record, with_metadata: bool = True) -> dict:
    """Plain dict of a record's values, optionally with its metadata."""
    data = dict(record)
    if with_metadata:
        data.update(record.metadata())
    return data


def save_records_to_jsonl_file(
    file_handle: TextIO, with_metadata: bool = True
) -> Callable[[Record], Awaitable[None]]:
    """Create a callback that writes each record as one JSON line.

    Unlike the table, a JSON line only carries the fields the record
    actually has; absent fields are not padded.

    Args:
        file_handle: An open file handle to write JSON lines to.
            The caller is responsible for opening and closing the file.
        with_metadata: Include sourceUrl, pageIndex and extractedAt.

    Returns:
        A callback that can be passed as on_record.
    """

    async def callback(record: Record) -> None:
        json.dump(
            record_to_dict(record, with_metadata), file_handle, ensure_ascii=False
        )
        file_handle.write("\n")
        file_handle.flush()

    return callback


def echo_new_fields(
    prefix: str = "New fields: ",
) -> Callable[[tuple[FieldId, ...]], Awaitable[None]]:
    """Create a callback that prints FieldIds as the schema grows."""

    async def callback(added: tuple[FieldId, ...]) -> None:
        click.echo(f"{prefix}{', '.join(added)}")

    return callback


def echo_checkpoint() -> Callable[[str, int], Awaitable[None]]:
    """Create a callback that prints a line per written checkpoint."""

    async def callback(table: str, batch_number: int) -> None:
        rows = max(sum(1 for _ in csv.reader(io.StringIO(table))) - 1, 0)
        click.echo(f"Checkpoint after batch {batch_number}: {rows} rows")

    return callback

