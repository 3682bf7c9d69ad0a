"""Record extraction for detail pages."""

from __future__ import annotations

import logging

from dirscrape.common.exceptions import (
    ContainerNotFound,
    ScraperAssumptionException,
)
from dirscrape.common.page_element import PageElement
from dirscrape.data_types import FieldId, Record, Value
from dirscrape.extraction.container import require_container
from dirscrape.extraction.rules import Rule, RuleTable
from dirscrape.extraction.schema import GlobalSchema
from dirscrape.extraction.transforms import coerce_value

logger = logging.getLogger(__name__)


class FieldExtractor:
    """Computes a Record for one detail page against the current schema.

    Only fields in the schema are computed, and only when the page exposes
    them; everything else is left for the table serializer to backfill.
    Each field runs inside its own error boundary. A field whose transform
    raises is logged and left out while the rest of the record survives.

    Args:
        rules: The rule table shared with the detector.
    """

    def __init__(self, rules: RuleTable) -> None:
        self.rules = rules

    def _plan(self, schema: GlobalSchema) -> list[tuple[Rule, set[FieldId]]]:
        """Group schema fields by the rule that computes them, in rule order."""
        owned: dict[int, tuple[Rule, set[FieldId]]] = {}
        for field_id in schema:
            rule = self.rules.rule_for(field_id)
            if rule is None:
                logger.debug(f"No rule computes field {field_id!r}")
                continue
            owned.setdefault(id(rule), (rule, set()))[1].add(field_id)
        order = {id(rule): i for i, rule in enumerate(self.rules.rules)}
        return sorted(owned.values(), key=lambda entry: order[id(entry[0])])

    def extract(
        self, page: PageElement, schema: GlobalSchema
    ) -> Record | None:
        """Extract the values of every schema field present on a page.

        Args:
            page: Root element of the parsed page.
            schema: The run's schema at the time of extraction.

        Returns:
            The page's Record, or None if the page has no recognizable
            content container.
        """
        try:
            container = require_container(page, self.rules.container_chain)
        except ContainerNotFound as e:
            logger.warning(f"Nothing extracted: {e.message} ({e.request_url})")
            return None

        values: dict[FieldId, Value] = {}
        failed = 0
        for rule, wanted in self._plan(schema):
            try:
                cells = list(rule.cells(container, wanted))
            except ScraperAssumptionException as e:
                failed += len(wanted)
                logger.warning(
                    f"Rule for {sorted(wanted)[0]!r} failed on {page.url}: "
                    f"{e.message}"
                )
                continue
            except Exception:
                failed += len(wanted)
                logger.warning(
                    f"Rule for {sorted(wanted)[0]!r} failed on {page.url}",
                    exc_info=True,
                )
                continue
            for field_id, compute in cells:
                try:
                    values[field_id] = coerce_value(compute())
                except ScraperAssumptionException as e:
                    failed += 1
                    logger.warning(
                        f"Field {field_id!r} omitted on {page.url}: {e.message}"
                    )
                except Exception:
                    failed += 1
                    logger.warning(
                        f"Field {field_id!r} omitted on {page.url}",
                        exc_info=True,
                    )

        if failed:
            logger.info(
                f"Extracted {len(values)} fields from {page.url} "
                f"({failed} failed)"
            )
        return Record(values, source_url=page.url)
