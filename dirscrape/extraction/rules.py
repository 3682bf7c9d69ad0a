"""Declarative field rules shared by detection and extraction.

A rule knows three things about the fields it owns: which FieldIds it can
produce, how to tell from a container whether they are present, and how to
compute their values. FieldDetector and FieldExtractor both walk the same
RuleTable, so presence and extraction can't drift apart.

Rules never compute values eagerly. Rule.cells() yields ``(field_id,
compute)`` pairs for the fields that are present, and the extractor calls
each ``compute`` inside its own error boundary, so a failing field leaves
its neighbours untouched.

Example::

    table = RuleTable(
        [
            text("businessName", "h1"),
            phone("phone", ".phone", ".phones"),
            flag("verified", ".verified-badge"),
        ]
    )
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Callable, Collection, Iterable, Iterator, Sequence
from dataclasses import dataclass
from functools import cached_property

from dirscrape.common.page_element import PageElement
from dirscrape.common.selector_utils import (
    class_selector,
    class_tokens,
    id_selector,
)
from dirscrape.data_types import FieldId, Value
from dirscrape.extraction import transforms
from dirscrape.extraction.container import DEFAULT_CONTAINER_CHAIN

logger = logging.getLogger(__name__)

Compute = Callable[[], Value]
Cell = tuple[FieldId, Compute]
ElementsTransform = Callable[[Sequence[PageElement]], Value]


def _matches(
    container: PageElement, selector: str, description: str
) -> list[PageElement]:
    return container.query_css(selector, description, min_count=0)


class Rule(ABC):
    """One entry of a rule table.

    Subclasses are frozen dataclasses that declare ``kind`` as a field.
    Rule only annotates it and must never give it a value.
    """

    kind: str

    @abstractmethod
    def field_ids(self) -> tuple[FieldId, ...]:
        """Display names of the fields this rule can produce."""

    @abstractmethod
    def claims(self, field_id: FieldId) -> bool:
        """Whether this rule is the one that computes ``field_id``."""

    @abstractmethod
    def detect(self, container: PageElement) -> list[FieldId]:
        """FieldIds with evidence in the container, in column order."""

    @abstractmethod
    def cells(
        self, container: PageElement, wanted: Collection[FieldId]
    ) -> Iterator[Cell]:
        """Deferred values for the wanted fields present in the container."""


# =============================================================================
# Scalar rules
# =============================================================================


@dataclass(frozen=True)
class ScalarRule(Rule):
    """A rule producing one field from the matches of a selector.

    Attributes:
        field_id: The field produced.
        kind: Rule kind name, e.g. "text" or "flag".
        selectors: Extraction selectors in priority order. The first one
            with any match supplies the elements handed to ``transform``.
        transform: Turns the matched elements into a Value.
        detect_selector: Presence probe. Defaults to any of ``selectors``.
    """

    field_id: FieldId
    kind: str
    selectors: tuple[str, ...]
    transform: ElementsTransform
    detect_selector: str | None = None

    def field_ids(self) -> tuple[FieldId, ...]:
        return (self.field_id,)

    def claims(self, field_id: FieldId) -> bool:
        return field_id == self.field_id

    @property
    def presence_selector(self) -> str:
        return self.detect_selector or ", ".join(self.selectors)

    def detect(self, container: PageElement) -> list[FieldId]:
        if _matches(container, self.presence_selector, self.field_id):
            return [self.field_id]
        return []

    def cells(
        self, container: PageElement, wanted: Collection[FieldId]
    ) -> Iterator[Cell]:
        if self.field_id not in wanted:
            return
        for selector in self.selectors:
            elements = _matches(container, selector, self.field_id)
            if elements:
                yield self.field_id, lambda: self.transform(elements)
                return


def text(field_id: FieldId, *selectors: str, detect: str | None = None) -> ScalarRule:
    """Trimmed text of the first match; empty text becomes None."""
    return ScalarRule(
        field_id, "text", selectors, transforms.first_text, detect
    )


def attribute(
    field_id: FieldId,
    selector: str,
    name: str = "href",
    strip_prefix: str | None = None,
) -> ScalarRule:
    """Attribute of the first match, e.g. an href or a data-* id."""

    def transform(elements: Sequence[PageElement]) -> Value:
        return transforms.attribute_value(elements[0], name, strip_prefix)

    return ScalarRule(field_id, "attribute", (selector,), transform)


def joined(field_id: FieldId, selector: str) -> ScalarRule:
    """Text of every match joined with "; "."""
    return ScalarRule(field_id, "joined", (selector,), transforms.joined_text)


def flag(field_id: FieldId, selector: str) -> ScalarRule:
    """True whenever the selector matches, whatever the element says."""
    return ScalarRule(field_id, "flag", (selector,), lambda elements: True)


def class_token(
    field_id: FieldId,
    selector: str,
    pattern: re.Pattern[str] = transforms.YP_RATING_CLASS,
) -> ScalarRule:
    """Token captured from the class attribute of the first match."""

    def transform(elements: Sequence[PageElement]) -> Value:
        return transforms.class_token(elements[0].get_attribute("class"), pattern)

    return ScalarRule(field_id, "class_token", (selector,), transform)


def dash_rating(field_id: FieldId, selector: str) -> ScalarRule:
    """Numeric-dash rating class (``ta-4-5``) decoded to "4.5"."""

    def transform(elements: Sequence[PageElement]) -> Value:
        return transforms.dash_rating(elements[0].get_attribute("class"))

    return ScalarRule(field_id, "dash_rating", (selector,), transform)


def phone(field_id: FieldId, *selectors: str) -> ScalarRule:
    """Phone text without a trailing Call/Text/SMS/Message label."""

    def transform(elements: Sequence[PageElement]) -> Value:
        return transforms.strip_phone_action(elements[0].inner_text())

    return ScalarRule(field_id, "phone", selectors, transform)


def count_text(field_id: FieldId, selector: str) -> ScalarRule:
    """Count text with its parentheses removed."""

    def transform(elements: Sequence[PageElement]) -> Value:
        return transforms.strip_parentheses(elements[0].inner_text())

    return ScalarRule(field_id, "count_text", (selector,), transform)


def social(field_id: FieldId, selector: str) -> ScalarRule:
    """JSON object of social network profile links."""
    return ScalarRule(field_id, "social", (selector,), transforms.social_links)


def hours(field_id: FieldId, selector: str, detect: str | None = None) -> ScalarRule:
    """JSON object of opening hours keyed by day name."""
    return ScalarRule(
        field_id, "hours", (selector,), transforms.hours_table, detect
    )


# =============================================================================
# Coordinates
# =============================================================================


@dataclass(frozen=True)
class CoordinatesRule(Rule):
    """Latitude and longitude read from data attributes of a map element."""

    selector: str = ".map"
    latitude_id: FieldId = "latitude"
    longitude_id: FieldId = "longitude"
    latitude_attribute: str = "data-lat"
    longitude_attribute: str = "data-lng"
    kind: str = "coordinates"

    def field_ids(self) -> tuple[FieldId, ...]:
        return (self.latitude_id, self.longitude_id)

    def claims(self, field_id: FieldId) -> bool:
        return field_id in (self.latitude_id, self.longitude_id)

    def detect(self, container: PageElement) -> list[FieldId]:
        if _matches(container, self.selector, "map"):
            return [self.latitude_id, self.longitude_id]
        return []

    def cells(
        self, container: PageElement, wanted: Collection[FieldId]
    ) -> Iterator[Cell]:
        maps = _matches(container, self.selector, "map")
        if not maps:
            return
        element = maps[0]
        for field_id, name in (
            (self.latitude_id, self.latitude_attribute),
            (self.longitude_id, self.longitude_attribute),
        ):
            if field_id in wanted:
                yield field_id, self._reader(element, name)

    @staticmethod
    def _reader(element: PageElement, name: str) -> Compute:
        return lambda: transforms.attribute_value(element, name)


# =============================================================================
# Repeating groups
# =============================================================================


def total_field_id(group_label: str) -> FieldId:
    """Name of a group's true-count field, e.g. "Reviews" -> "totalReviews"."""
    return f"total{group_label}"


@dataclass(frozen=True)
class GroupAttribute:
    """One attribute of a repeating group instance.

    Attributes:
        name: Attribute suffix of the FieldId (``review3_<name>``).
        read: Computes the value from the instance element.
    """

    name: str
    read: Callable[[PageElement], Value]


@dataclass(frozen=True)
class GroupRule(Rule):
    """A repeating structure flattened into numbered columns.

    Instances beyond ``cap`` are counted in ``total<Label>`` but get no
    columns of their own. The total is the real number of matches.

    Attributes:
        prefix: FieldId prefix of each instance, e.g. "review".
        label: Suffix of the total field, e.g. "Reviews".
        item_selector: Selects every instance inside the container.
        attributes: Per-instance attributes, in column order.
        cap: Maximum number of instances materialized as columns.
    """

    prefix: str
    label: str
    item_selector: str
    attributes: tuple[GroupAttribute, ...]
    cap: int = 10
    kind: str = "group"

    def __post_init__(self) -> None:
        if self.cap < 1:
            raise ValueError(f"group cap must be positive, got {self.cap}")

    @cached_property
    def _pattern(self) -> re.Pattern[str]:
        names = "|".join(re.escape(a.name) for a in self.attributes)
        return re.compile(rf"{re.escape(self.prefix)}(\d+)_(?:{names})")

    @property
    def total_id(self) -> FieldId:
        return total_field_id(self.label)

    def instance_field_id(self, index: int, attribute_name: str) -> FieldId:
        return f"{self.prefix}{index}_{attribute_name}"

    def field_ids(self) -> tuple[FieldId, ...]:
        return tuple(f"{self.prefix}<N>_{a.name}" for a in self.attributes) + (
            self.total_id,
        )

    def claims(self, field_id: FieldId) -> bool:
        if field_id == self.total_id:
            return True
        match = self._pattern.fullmatch(field_id)
        return bool(match) and 1 <= int(match.group(1)) <= self.cap

    def detect(self, container: PageElement) -> list[FieldId]:
        count = len(_matches(container, self.item_selector, self.label))
        if not count:
            return []
        present = [
            self.instance_field_id(i, a.name)
            for i in range(1, min(count, self.cap) + 1)
            for a in self.attributes
        ]
        present.append(self.total_id)
        return present

    def cells(
        self, container: PageElement, wanted: Collection[FieldId]
    ) -> Iterator[Cell]:
        items = _matches(container, self.item_selector, self.label)
        if not items:
            return
        for index, item in enumerate(items[: self.cap], start=1):
            for attr in self.attributes:
                field_id = self.instance_field_id(index, attr.name)
                if field_id in wanted:
                    yield field_id, self._reader(attr, item)
        if self.total_id in wanted:
            total = len(items)
            yield self.total_id, lambda: total

    @staticmethod
    def _reader(attr: GroupAttribute, item: PageElement) -> Compute:
        return lambda: attr.read(item)


@dataclass(frozen=True)
class PhotoGroupRule(Rule):
    """A gallery flattened into ``<prefix><N>`` URL columns.

    Each column holds one resolved image URL. An item whose ``data-media``
    is malformed loses only its own column.

    Attributes:
        prefix: FieldId prefix, e.g. "photo" or "galleryImage".
        label: Suffix of the total field, e.g. "Photos".
        item_selector: Selects every gallery item inside the container.
        cap: Maximum number of photos materialized as columns.
        detect_selector: Presence probe. Defaults to ``item_selector``.
    """

    prefix: str
    label: str
    item_selector: str
    cap: int = 10
    detect_selector: str | None = None
    kind: str = "photos"

    def __post_init__(self) -> None:
        if self.cap < 1:
            raise ValueError(f"group cap must be positive, got {self.cap}")

    @cached_property
    def _pattern(self) -> re.Pattern[str]:
        return re.compile(rf"{re.escape(self.prefix)}(\d+)")

    @property
    def total_id(self) -> FieldId:
        return total_field_id(self.label)

    def field_ids(self) -> tuple[FieldId, ...]:
        return (f"{self.prefix}<N>", self.total_id)

    def claims(self, field_id: FieldId) -> bool:
        if field_id == self.total_id:
            return True
        match = self._pattern.fullmatch(field_id)
        return bool(match) and 1 <= int(match.group(1)) <= self.cap

    def _present(
        self, container: PageElement, items: Sequence[PageElement]
    ) -> bool:
        # A named gallery counts as present even when it holds no images.
        if self.detect_selector is None:
            return bool(items)
        return bool(_matches(container, self.detect_selector, self.label))

    def detect(self, container: PageElement) -> list[FieldId]:
        items = _matches(container, self.item_selector, self.label)
        if not self._present(container, items):
            return []
        present = [
            f"{self.prefix}{i}"
            for i in range(1, min(len(items), self.cap) + 1)
        ]
        present.append(self.total_id)
        return present

    def cells(
        self, container: PageElement, wanted: Collection[FieldId]
    ) -> Iterator[Cell]:
        items = _matches(container, self.item_selector, self.label)
        if not self._present(container, items):
            return
        for index, item in enumerate(items[: self.cap], start=1):
            field_id = f"{self.prefix}{index}"
            if field_id in wanted:
                yield field_id, self._reader(item, field_id)
        if self.total_id in wanted:
            total = len(items)
            yield self.total_id, lambda: total

    @staticmethod
    def _reader(item: PageElement, field_id: FieldId) -> Compute:
        return lambda: transforms.resolve_photo_url(item, field_id)


# =============================================================================
# Generic section fallback
# =============================================================================


SECTION_SUFFIX = "Section"


@dataclass(frozen=True)
class SectionRule(Rule):
    """Catch-all rule: every identifiable block of the container is a field.

    A ``section``, ``div`` or ``article`` with an id becomes ``<id>Section``;
    one with only classes becomes ``<classes joined by _>Section``. The
    value is the block's visible text. This produces many low-value fields,
    so rule tables only include it when asked to.

    Attributes:
        node_selector: Blocks considered.
        max_fields: Upper bound on fields synthesized per page.
    """

    node_selector: str = "section, div, article"
    max_fields: int = 50
    kind: str = "section"

    def field_ids(self) -> tuple[FieldId, ...]:
        return (f"<id or classes>{SECTION_SUFFIX}",)

    def claims(self, field_id: FieldId) -> bool:
        return field_id.endswith(SECTION_SUFFIX) and len(field_id) > len(
            SECTION_SUFFIX
        )

    def detect(self, container: PageElement) -> list[FieldId]:
        present: dict[FieldId, None] = {}
        for node in _matches(container, self.node_selector, "sections"):
            name = self._name_of(node)
            if name:
                present.setdefault(name + SECTION_SUFFIX)
            if len(present) >= self.max_fields:
                logger.debug(
                    f"Section capture stopped at {self.max_fields} fields "
                    f"on {container.url}"
                )
                break
        return list(present)

    @staticmethod
    def _name_of(node: PageElement) -> str | None:
        node_id = (node.get_attribute("id") or "").strip()
        if node_id:
            return node_id
        classes = class_tokens(node.get_attribute("class"))
        return "_".join(classes) if classes else None

    def cells(
        self, container: PageElement, wanted: Collection[FieldId]
    ) -> Iterator[Cell]:
        for field_id in wanted:
            if not self.claims(field_id):
                continue
            node = self._find(container, field_id[: -len(SECTION_SUFFIX)])
            if node is not None:
                yield field_id, self._reader(node)

    @staticmethod
    def _find(container: PageElement, name: str) -> PageElement | None:
        candidates = [id_selector(name)]
        # Class names may themselves contain "_", so try both readings.
        compound = class_selector(name.replace("_", " "))
        if compound:
            candidates.append(compound)
        single = class_selector(name)
        if single and single not in candidates:
            candidates.append(single)
        for selector in candidates:
            found = _matches(container, selector, "section")
            if found:
                return found[0]
        return None

    @staticmethod
    def _reader(node: PageElement) -> Compute:
        return lambda: transforms.element_text(node) or transforms.clean(
            node.inner_html()
        )


# =============================================================================
# Rule table
# =============================================================================


class RuleTable:
    """Ordered, validated collection of rules.

    Rule order is column discovery order: on a page that exposes several
    new fields, they enter the schema in table order.

    Args:
        rules: Rules in column order.
        container_chain: Content container selectors, most specific first.
        section_rule: Optional catch-all rule, consulted last.

    Raises:
        ValueError: If two rules produce the same FieldId.
    """

    def __init__(
        self,
        rules: Sequence[Rule],
        container_chain: Sequence[str] = DEFAULT_CONTAINER_CHAIN,
        section_rule: SectionRule | None = None,
    ) -> None:
        self._rules = tuple(rules)
        self.container_chain = tuple(container_chain)
        self.section_rule = section_rule
        self._by_id: dict[FieldId, Rule] = {}
        self._pattern_rules: list[Rule] = []
        for rule in self._rules:
            if isinstance(rule, (GroupRule, PhotoGroupRule)):
                self._pattern_rules.append(rule)
                ids: Iterable[FieldId] = (rule.total_id,)
            else:
                ids = rule.field_ids()
            for field_id in ids:
                if field_id in self._by_id:
                    raise ValueError(f"Duplicate rule for field '{field_id}'")
                self._by_id[field_id] = rule

    @property
    def rules(self) -> tuple[Rule, ...]:
        """Rules in evaluation order, with the catch-all last if enabled."""
        if self.section_rule is None:
            return self._rules
        return self._rules + (self.section_rule,)

    def with_generic_sections(
        self, enabled: bool = True, max_fields: int = 50
    ) -> RuleTable:
        """Copy of this table with the catch-all section rule on or off."""
        return RuleTable(
            self._rules,
            self.container_chain,
            SectionRule(max_fields=max_fields) if enabled else None,
        )

    def rule_for(self, field_id: FieldId) -> Rule | None:
        """The rule that computes ``field_id``, or None if none does."""
        rule = self._by_id.get(field_id)
        if rule is not None:
            return rule
        for candidate in self._pattern_rules:
            if candidate.claims(field_id):
                return candidate
        if self.section_rule is not None and self.section_rule.claims(field_id):
            return self.section_rule
        return None

    def field_ids(self) -> list[FieldId]:
        """Display names of every field the table can produce."""
        return [field_id for rule in self.rules for field_id in rule.field_ids()]

    def __len__(self) -> int:
        return len(self.rules)
