"""CSV serialization of records against a schema.

Every call rebuilds the whole table from scratch. Header order is schema
order, every cell is quoted (including empty ones), internal quotes are
doubled and rows end with a bare newline. The output for the same inputs
is byte-identical on every call.

Example::

    text = serialize(store.snapshot(), accumulator.schema)
    text = serialize(records, schema, metadata_columns=("sourceUrl",))
"""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable, Sequence

from dirscrape.data_types import METADATA_COLUMNS, Record, Value
from dirscrape.extraction.schema import GlobalSchema


def format_cell(value: Value) -> str:
    """Text of one cell. Absent and None are empty; booleans are lowercase.

    Examples:
        >>> format_cell(True)
        'true'
        >>> format_cell(None)
        ''
        >>> format_cell(15)
        '15'
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def validate_records(records: Iterable[Record], schema: GlobalSchema) -> None:
    """Check that every record only holds fields the schema knows about.

    Raises:
        ValueError: Naming the first record and fields outside the schema.
    """
    for position, record in enumerate(records):
        unknown = [field_id for field_id in record if field_id not in schema]
        if unknown:
            raise ValueError(
                f"Record {position} ({record.source_url}) has fields not in "
                f"the schema: {', '.join(unknown)}"
            )


def serialize(
    records: Sequence[Record],
    schema: GlobalSchema,
    *,
    metadata_columns: Sequence[str] = (),
) -> str:
    """Render records as a rectangular CSV table.

    Args:
        records: Records in store order.
        schema: Column set; fields absent from a record render as "".
        metadata_columns: Run metadata columns appended after the schema
            columns (any of "sourceUrl", "pageIndex", "extractedAt").

    Returns:
        The CSV text, header first, one row per record.

    Raises:
        ValueError: If a record has a field that is not in the schema, or a
            metadata column is unknown.
    """
    unknown = [c for c in metadata_columns if c not in METADATA_COLUMNS]
    if unknown:
        raise ValueError(f"Unknown metadata columns: {', '.join(unknown)}")
    validate_records(records, schema)

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow([*schema, *metadata_columns])
    for record in records:
        metadata = record.metadata() if metadata_columns else {}
        writer.writerow(
            [format_cell(record.get(field_id)) for field_id in schema]
            + [format_cell(metadata[column]) for column in metadata_columns]
        )
    return buffer.getvalue()
