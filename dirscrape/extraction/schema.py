"""Run-scoped field schema.

GlobalSchema is an immutable, insertion-ordered set of FieldIds. merge()
returns a new schema rather than mutating the old one, so a checkpoint or
an in-progress extraction that holds a schema always sees a consistent
column list. SchemaAccumulator is the single owner of the current schema
for one run.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping

from dirscrape.data_types import FieldId

logger = logging.getLogger(__name__)


class GlobalSchema:
    """Insertion-ordered set of FieldIds that only ever grows.

    Positions never change once assigned, which keeps column order stable
    across checkpoint files.
    """

    __slots__ = ("_fields", "_positions")

    def __init__(self, fields: Iterable[FieldId] = ()) -> None:
        positions: dict[FieldId, int] = {}
        for field_id in fields:
            positions.setdefault(field_id, len(positions))
        self._positions = positions
        self._fields = tuple(positions)

    @property
    def fields(self) -> tuple[FieldId, ...]:
        return self._fields

    def index(self, field_id: FieldId) -> int:
        """Column position of a field.

        Raises:
            ValueError: If the field is not in the schema.
        """
        try:
            return self._positions[field_id]
        except KeyError:
            raise ValueError(f"{field_id!r} is not in the schema") from None

    def __contains__(self, field_id: object) -> bool:
        return field_id in self._positions

    def __iter__(self) -> Iterator[FieldId]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, GlobalSchema):
            return self._fields == other._fields
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._fields)

    def __repr__(self) -> str:
        return f"GlobalSchema({list(self._fields)!r})"


def merge(
    schema: GlobalSchema, presence: Mapping[FieldId, bool]
) -> tuple[GlobalSchema, tuple[FieldId, ...]]:
    """Union a page's presence map into a schema.

    New fields are appended in presence-map order; fields mapped to False
    are ignored. The input schema is never modified.

    Args:
        schema: The current schema.
        presence: Fields observed on one page.

    Returns:
        The merged schema (the same object when nothing was added) and the
        newly added FieldIds.
    """
    added = tuple(
        field_id
        for field_id, present in presence.items()
        if present and field_id not in schema
    )
    if not added:
        return schema, ()
    return GlobalSchema(schema.fields + added), added


class SchemaAccumulator:
    """Owns the current GlobalSchema of one run.

    The coordinator feeds it one presence map per detail page, from a single
    logical extraction stream, so no locking is involved.
    """

    def __init__(self, schema: GlobalSchema | None = None) -> None:
        self._schema = schema if schema is not None else GlobalSchema()

    @property
    def schema(self) -> GlobalSchema:
        return self._schema

    def merge(self, presence: Mapping[FieldId, bool]) -> tuple[FieldId, ...]:
        """Merge a presence map and return the newly added FieldIds."""
        self._schema, added = merge(self._schema, presence)
        if added:
            logger.info(
                f"Schema grew by {len(added)} to {len(self._schema)} fields: "
                + ", ".join(added)
            )
        return added
