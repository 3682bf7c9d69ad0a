"""Field presence detection for detail pages."""

from __future__ import annotations

import logging

from dirscrape.common.exceptions import (
    ContainerNotFound,
    ScraperAssumptionException,
)
from dirscrape.common.page_element import PageElement
from dirscrape.data_types import PresenceMap
from dirscrape.extraction.container import require_container
from dirscrape.extraction.rules import RuleTable

logger = logging.getLogger(__name__)


class FieldDetector:
    """Reports which fields a detail page exposes.

    Presence only: no values are computed here. A field is present when its
    rule's probe matches at least one element inside the page's content
    container.

    Args:
        rules: The rule table shared with the extractor.
    """

    def __init__(self, rules: RuleTable) -> None:
        self.rules = rules

    def detect(self, page: PageElement) -> PresenceMap | None:
        """Build the presence map of one page.

        Args:
            page: Root element of the parsed page.

        Returns:
            Present FieldIds in rule order, each mapped to True, or None if
            the page has no recognizable content container.
        """
        try:
            container = require_container(page, self.rules.container_chain)
        except ContainerNotFound as e:
            logger.warning(f"No fields detected: {e.message} ({e.request_url})")
            return None

        presence: PresenceMap = {}
        for rule in self.rules.rules:
            try:
                found = rule.detect(container)
            except ScraperAssumptionException as e:
                logger.warning(
                    f"Detection rule {rule.field_ids()[0]!r} failed on "
                    f"{page.url}: {e.message}"
                )
                continue
            except Exception:
                logger.warning(
                    f"Detection rule {rule.field_ids()[0]!r} failed on {page.url}",
                    exc_info=True,
                )
                continue
            if rule is self.rules.section_rule:
                # Ids a static rule owns stay with that rule.
                found = [f for f in found if self.rules.rule_for(f) is rule]
            for field_id in found:
                presence.setdefault(field_id, True)
        logger.debug(f"Detected {len(presence)} fields on {page.url}")
        return presence
