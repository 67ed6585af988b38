"""Search target normalisation and result-count arithmetic."""

from __future__ import annotations

import json
import urllib.parse
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from . import config
from .errors import SearchSpecError
from .logging_utils import _crawler_event


def _normalize_array_param(key: str, value: str) -> str:
    """Re-serialize ``["1586"]``-style values so every request encodes them alike."""

    if not (value.startswith("[") and value.endswith("]")):
        return value
    try:
        parsed = json.loads(value.replace("'", '"'))
    except ValueError:
        _crawler_event("state", phase="search", kind="array_param_unparsed", key=key, value=value)
        return value
    return json.dumps(parsed, separators=(",", ":"), ensure_ascii=False)


def normalize_search_url(raw: str) -> str:
    """Validate ``raw`` and return a deterministic form of the search URL."""

    candidate = (raw or "").strip()
    if not candidate:
        raise SearchSpecError("Either a search URL or search keywords are required")

    parsed = urllib.parse.urlsplit(candidate)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise SearchSpecError(f"Malformed search URL: {candidate!r}")

    host = (parsed.hostname or "").lower()
    domain = config.TARGET_DOMAIN
    if host != domain and not host.endswith("." + domain):
        raise SearchSpecError(f"Search URL must point at {domain}: {candidate!r}")

    params: List[Tuple[str, str]] = [
        (key, _normalize_array_param(key, value))
        for key, value in urllib.parse.parse_qsl(parsed.query, keep_blank_values=True)
    ]
    query = urllib.parse.urlencode(params, quote_via=urllib.parse.quote)
    return urllib.parse.urlunsplit((parsed.scheme, parsed.netloc, parsed.path or "/", query, ""))


def compute_total_to_extract(
    total_available: int,
    max_pages: int,
    results_per_page: int,
    platform_cap: Optional[int] = None,
) -> int:
    """Return ``min(total_available, max_pages * results_per_page, platform_cap)``."""

    cap = config.PLATFORM_RESULT_CAP if platform_cap is None else platform_cap
    return max(0, min(int(total_available), int(max_pages) * int(results_per_page), int(cap)))


@dataclass(frozen=True)
class SearchSpec:
    url: str
    max_pages: int = field(default_factory=lambda: config.DEFAULT_MAX_PAGES)
    results_per_page: int = field(default_factory=lambda: config.RESULTS_PER_PAGE)

    @classmethod
    def build(
        cls,
        search_url: Optional[str] = None,
        *,
        keywords: Optional[str] = None,
        max_pages: Optional[int] = None,
    ) -> "SearchSpec":
        """Build a search from caller input, rejecting misuse before any navigation."""

        if search_url and search_url.strip():
            url = normalize_search_url(search_url)
        elif keywords and keywords.strip():
            url = normalize_search_url(
                config.DEFAULT_SEARCH_URL + "?" + urllib.parse.urlencode({"keywords": keywords.strip()})
            )
        else:
            raise SearchSpecError("Either a search URL or search keywords are required")

        pages = config.DEFAULT_MAX_PAGES if max_pages is None else max_pages
        try:
            pages = int(pages)
        except (TypeError, ValueError) as exc:
            raise SearchSpecError(f"maxPages must be an integer, got {max_pages!r}") from exc
        if pages < 1:
            raise SearchSpecError(f"maxPages must be at least 1, got {pages}")
        return cls(url=url, max_pages=pages)

    @property
    def expected_path_prefix(self) -> str:
        path = urllib.parse.urlsplit(self.url).path or "/"
        return path if path.endswith("/") else path + "/"

    def page_url(self, page_number: int) -> str:
        """Return the URL for 1-based ``page_number``."""

        parts = urllib.parse.urlsplit(self.url)
        params = [
            (k, v)
            for k, v in urllib.parse.parse_qsl(parts.query, keep_blank_values=True)
            if k != "page"
        ]
        if page_number > 1:
            params.append(("page", str(page_number)))
        query = urllib.parse.urlencode(params, quote_via=urllib.parse.quote)
        return urllib.parse.urlunsplit((parts.scheme, parts.netloc, parts.path, query, ""))

    def total_to_extract(self, total_available: int) -> int:
        return compute_total_to_extract(total_available, self.max_pages, self.results_per_page)


__all__ = ["SearchSpec", "compute_total_to_extract", "normalize_search_url"]
