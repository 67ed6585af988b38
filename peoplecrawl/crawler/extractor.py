"""Structural extraction of people-search results from captured page markup."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Tuple

from bs4.element import Tag

from . import config
from .locators import ContainerChain, LocatorChain
from .logging_utils import _crawler_event
from .markup import Markup, contains_any, has_any_selector, page_text, parse_document
from .records import ProfileRecord
from .selectors_people_search import (
    CONTAINER_CHAIN,
    FIELD_CHAINS,
    PEOPLE_SEARCH_SELECTORS,
    PeopleSearchSelectors,
)
from .utils import clean_text

_RESULTS_COUNT_RE = re.compile(r"([,\d]+)\s*results?", re.I)
_RESULTS_NUMBER_RE = re.compile(r"([,\d]+)(?:\+)?\s+results?", re.I)
_ANY_NUMBER_RE = re.compile(r"(\d[\d,]+)")
_BODY_COUNT_RE = re.compile(r"(\d[\d,]*)\s*results?", re.I)
# Fields of which at least one must resolve for a container to become a record.
_REQUIRED_ANY = ("title", "location", "url")


@dataclass(frozen=True)
class ExtractionResult:
    records: Tuple[ProfileRecord, ...]
    no_results_signal: bool
    marker_present: bool
    container_count: int
    strategy: str = ""
    skipped: int = 0


def has_no_results_marker(html: Markup, selectors: PeopleSearchSelectors = PEOPLE_SEARCH_SELECTORS) -> bool:
    """Return True when the page explicitly says the query has no (more) results."""

    soup = parse_document(html)
    if has_any_selector(soup, selectors.no_results_selectors):
        return True
    return contains_any(page_text(soup), selectors.no_results_markers)


def _find_results_text(soup) -> str:
    for heading in soup.find_all(["h1", "h2", "h3", "h4"]):
        text = clean_text(heading.get_text(" "))
        if "result" in text.lower() and re.search(r"\d", text):
            return text

    for element in soup.find_all(["div", "p", "span"]):
        text = clean_text(element.get_text(" "))
        if len(text) < 100 and _RESULTS_COUNT_RE.search(text):
            return text

    body_match = _BODY_COUNT_RE.search(page_text(soup))
    if body_match:
        return f"About {body_match.group(1)} results"
    return ""


def parse_total_results(html: Markup) -> int:
    """Probe the page for the advertised number of results.

    Falls back to DEFAULT_TOTAL_RESULTS when no count can be read.
    """

    text = _find_results_text(parse_document(html))
    total = 0
    if text:
        match = _RESULTS_NUMBER_RE.search(text) or _ANY_NUMBER_RE.search(text)
        if match:
            digits = match.group(1).replace(",", "")
            if digits.isdigit():
                total = int(digits)
    return total or config.DEFAULT_TOTAL_RESULTS


class RecordExtractor:
    """Applies the container chain and field chains to one loaded page."""

    def __init__(
        self,
        *,
        selectors: PeopleSearchSelectors = PEOPLE_SEARCH_SELECTORS,
        containers: ContainerChain = CONTAINER_CHAIN,
        chains: Optional[Mapping[str, LocatorChain]] = None,
    ) -> None:
        self.selectors = selectors
        self.containers = containers
        self.chains: Dict[str, LocatorChain] = dict(chains or FIELD_CHAINS)

    def _resolve(self, field_name: str, container: Tag) -> Optional[str]:
        chain = self.chains.get(field_name)
        if chain is None:
            return None
        return chain.resolve(container)

    def resolve_fields(self, container: Tag) -> Dict[str, Optional[str]]:
        """Resolve every configured field of ``container`` independently."""

        return {name: self._resolve(name, container) for name in self.chains}

    def extract_container(self, container: Tag) -> Optional[ProfileRecord]:
        fields = self.resolve_fields(container)
        if not any(fields.get(name) for name in _REQUIRED_ANY):
            return None
        return ProfileRecord.from_fields(
            name=fields.get("name"),
            title=fields.get("title"),
            location=fields.get("location"),
            profile_url=fields.get("url"),
            connection_degree=fields.get("connection_degree"),
            image_url=fields.get("image"),
        )

    def _locate_containers(self, soup) -> Tuple[List[Tag], str, bool]:
        direct = ContainerChain(selectors=self.containers.selectors, excluded_ancestors=self.containers.excluded_ancestors)
        found, strategy = direct.resolve(soup)
        marker = has_no_results_marker(soup, self.selectors)
        if found or marker:
            return found, strategy, marker

        fallback = ContainerChain(
            selectors=(),
            results_ancestors=self.containers.results_ancestors,
            min_group_size=self.containers.min_group_size,
            excluded_ancestors=self.containers.excluded_ancestors,
        )
        found, strategy = fallback.resolve(soup)
        if found:
            _crawler_event("extract", kind="container_fallback", strategy=strategy, count=len(found))
        return found, strategy, marker

    def extract(self, html: Markup, *, page: Optional[int] = None) -> ExtractionResult:
        soup = parse_document(html)
        containers, strategy, marker = self._locate_containers(soup)

        records: List[ProfileRecord] = []
        skipped = 0
        for index, container in enumerate(containers):
            try:
                profile = self.extract_container(container)
            except Exception as exc:  # noqa: BLE001
                _crawler_event("extract", kind="container_error", page=page, index=index, error=str(exc))
                skipped += 1
                continue
            if profile is None:
                skipped += 1
                continue
            records.append(profile)

        no_results = not containers
        _crawler_event(
            "extract",
            page=page,
            containers=len(containers),
            records=len(records),
            skipped=skipped,
            strategy=strategy or None,
            no_results_marker=marker,
            no_results_signal=no_results,
        )
        return ExtractionResult(
            records=tuple(records),
            no_results_signal=no_results,
            marker_present=marker,
            container_count=len(containers),
            strategy=strategy,
            skipped=skipped,
        )


__all__ = [
    "ExtractionResult",
    "RecordExtractor",
    "has_no_results_marker",
    "parse_total_results",
]
