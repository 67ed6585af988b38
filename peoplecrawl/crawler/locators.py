"""Ordered fallback lookups for one logical field of a result container.

A ``LocatorChain`` walks its strategies from the most markup-specific to the
most structural and returns the first value that is non-empty and not a known
placeholder. Several markup generations can be live at once, so the ordering
is configuration data (see ``selectors_people_search.py``), not branching code.
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass
from typing import Callable, FrozenSet, List, Optional, Tuple

from bs4.element import Tag

from .logging_utils import _crawler_event
from .markup import page_text
from .utils import clean_text


def _node_value(node: Tag, attribute: Optional[str]) -> str:
    if attribute is None:
        return clean_text(node.get_text(" "))
    raw = node.get(attribute)
    if isinstance(raw, list):
        raw = " ".join(raw)
    return (raw or "").strip()


class LocatorStrategy:
    """One concrete way of finding a field's value inside a container."""

    kind: str = "base"

    def resolve(self, container: Tag) -> Optional[str]:
        raise NotImplementedError

    def describe(self) -> str:
        return self.kind


@dataclass(frozen=True)
class AttributeMatch(LocatorStrategy):
    """First node matching ``selector`` whose text (or ``attribute``) is non-empty.

    An empty selector targets the container itself.
    """

    selector: str
    attribute: Optional[str] = None
    contains: Optional[str] = None
    kind: str = "attribute_match"

    def resolve(self, container: Tag) -> Optional[str]:
        nodes = [container] if not self.selector else container.select(self.selector)
        for node in nodes:
            value = _node_value(node, self.attribute)
            if not value:
                continue
            if self.contains is not None and self.contains not in value:
                continue
            return value
        return None

    def describe(self) -> str:
        target = f"@{self.attribute}" if self.attribute else "text"
        return f"{self.kind}:{self.selector or ':self'}{target}"


@dataclass(frozen=True)
class StructuralPosition(LocatorStrategy):
    """The ``index``-th non-empty node matching ``selector``."""

    selector: str
    index: int = 0
    attribute: Optional[str] = None
    kind: str = "structural_position"

    def resolve(self, container: Tag) -> Optional[str]:
        values = [v for v in (_node_value(n, self.attribute) for n in container.select(self.selector)) if v]
        if -len(values) <= self.index < len(values):
            return values[self.index]
        return None

    def describe(self) -> str:
        return f"{self.kind}:{self.selector}[{self.index}]"


@dataclass(frozen=True)
class TextPattern(LocatorStrategy):
    """Regex search over the container's visible text."""

    pattern: str
    group: int = 0
    flags: int = re.IGNORECASE
    kind: str = "text_pattern"

    def resolve(self, container: Tag) -> Optional[str]:
        match = re.search(self.pattern, page_text(container), self.flags)
        if not match:
            return None
        return (match.group(self.group) or "").strip() or None

    def describe(self) -> str:
        return f"{self.kind}:{self.pattern}"


@dataclass(frozen=True)
class LocatorChain:
    field_name: str
    strategies: Tuple[LocatorStrategy, ...]
    placeholders: FrozenSet[str] = frozenset()
    normalize: Optional[Callable[[str], str]] = None

    def _accept(self, raw: Optional[str]) -> Optional[str]:
        if not raw:
            return None
        value = self.normalize(raw) if self.normalize else clean_text(raw)
        if not value:
            return None
        if value.lower() in {p.lower() for p in self.placeholders}:
            return None
        return value

    def resolve_with_strategy(self, container: Tag) -> Tuple[Optional[str], Optional[LocatorStrategy]]:
        for strategy in self.strategies:
            try:
                value = self._accept(strategy.resolve(container))
            except Exception as exc:  # noqa: BLE001
                _crawler_event(
                    "extract",
                    kind="strategy_error",
                    field=self.field_name,
                    strategy=strategy.describe(),
                    error=str(exc),
                )
                continue
            if value is not None:
                return value, strategy
        return None, None

    def resolve(self, container: Tag) -> Optional[str]:
        value, _ = self.resolve_with_strategy(container)
        return value


def _signature(node: Tag) -> Tuple[str, Tuple[str, ...]]:
    classes = node.get("class") or []
    return node.name, tuple(sorted(classes))


def largest_homogeneous_group(root: Tag, *, min_size: int = 2) -> List[Tag]:
    """Return the biggest set of same-shaped sibling elements under ``root``."""

    best: List[Tag] = []
    for parent in [root, *root.find_all(True)]:
        children = [c for c in parent.find_all(True, recursive=False)]
        if len(children) < min_size:
            continue
        counts = Counter(_signature(c) for c in children)
        signature, size = counts.most_common(1)[0]
        if size > len(best):
            best = [c for c in children if _signature(c) == signature]
    return best if len(best) >= min_size else []


@dataclass(frozen=True)
class ContainerChain:
    """Resolves the list of per-result containers on a page."""

    selectors: Tuple[str, ...]
    results_ancestors: Tuple[str, ...] = ()
    min_group_size: int = 2
    excluded_ancestors: Tuple[str, ...] = ("nav", "header", "footer")

    def _usable(self, node: Tag) -> bool:
        return node.find_parent(list(self.excluded_ancestors)) is None

    def resolve(self, root: Tag) -> Tuple[List[Tag], str]:
        for selector in self.selectors:
            try:
                found = [n for n in root.select(selector) if self._usable(n)]
            except Exception as exc:  # noqa: BLE001
                _crawler_event("extract", kind="container_selector_error", selector=selector, error=str(exc))
                continue
            if found:
                return found, f"selector:{selector}"

        for ancestor_selector in self.results_ancestors:
            try:
                ancestors = [n for n in root.select(ancestor_selector) if self._usable(n)]
            except Exception:  # noqa: BLE001
                continue
            for ancestor in ancestors:
                group = largest_homogeneous_group(ancestor, min_size=self.min_group_size)
                if group:
                    return group, f"homogeneous_list:{ancestor_selector}"
        return [], ""


__all__ = [
    "AttributeMatch",
    "ContainerChain",
    "LocatorChain",
    "LocatorStrategy",
    "StructuralPosition",
    "TextPattern",
    "largest_homogeneous_group",
]
