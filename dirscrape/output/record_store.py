"""Append-only store of the records extracted during one run."""

from __future__ import annotations

from collections.abc import Iterator

from dirscrape.data_types import Record


class RecordStore:
    """Ordered, append-only sequence of Records.

    Records are immutable, and the store never reorders or removes them.
    snapshot() hands out a tuple so a checkpoint being serialized is not
    affected by appends that happen while it is written.
    """

    def __init__(self) -> None:
        self._records: list[Record] = []

    def append(self, record: Record) -> None:
        if not isinstance(record, Record):
            raise TypeError(f"expected Record, got {type(record).__name__}")
        self._records.append(record)

    def snapshot(self) -> tuple[Record, ...]:
        """The records appended so far, as an immutable tuple."""
        return tuple(self._records)

    def __iter__(self) -> Iterator[Record]:
        return iter(self.snapshot())

    def __len__(self) -> int:
        return len(self._records)

    def __getitem__(self, index: int) -> Record:
        return self._records[index]
