"""The crawl's only externally observable output: a stream of tagged events."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional

from .records import ProfileRecord

PROGRESS = "progress"
RECORD = "record"
ERROR = "error"
DONE = "done"

EVENT_KINDS = (PROGRESS, RECORD, ERROR, DONE)


class Status:
    # progress
    CONNECTED = "connected"
    COOKIES_SET = "cookies_set"
    VALIDATING = "validating"
    VALIDATED = "validated"
    NAVIGATING = "navigating"
    RETRY_NAVIGATION = "retry_navigation"
    PAGE_LOADED = "page_loaded"
    EXTRACTING = "extracting"
    EXTRACTING_PROGRESS = "extracting_progress"
    EXTRACTED = "extracted"
    NO_MORE_RESULTS = "no_more_results"
    CANCELLED = "cancelled"
    # record
    PROFILE = "profile"
    # error
    ERROR = "error"
    BLOCKED = "blocked"
    STOPPED = "stopped"
    # done
    DONE = "done"


@dataclass(frozen=True)
class CrawlEvent:
    kind: str
    status: str
    message: str
    data: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.kind not in EVENT_KINDS:
            raise ValueError(f"Unknown event kind: {self.kind!r}")

    @property
    def is_terminal(self) -> bool:
        return self.kind == DONE

    def to_dict(self) -> Dict[str, Any]:
        """Flatten into the wire shape consumed by the transport."""

        payload: Dict[str, Any] = {"type": self.kind, "status": self.status, "message": self.message}
        for key, value in self.data.items():
            if isinstance(value, ProfileRecord):
                value = value.to_dict()
            elif isinstance(value, (list, tuple)) and value and isinstance(value[0], ProfileRecord):
                value = [item.to_dict() for item in value]
            payload[key] = value
        return payload


def progress(status: str, message: str, *, page: Optional[int] = None, **extra: Any) -> CrawlEvent:
    data = dict(extra)
    if page is not None:
        data["page"] = page
    return CrawlEvent(PROGRESS, status, message, data)


def record(profile: ProfileRecord, *, page: int, progress_pct: int, scraped: int, total: int) -> CrawlEvent:
    return CrawlEvent(
        RECORD,
        Status.PROFILE,
        f"Extracted profile: {profile.name} ({scraped}/{total}) - {progress_pct}%",
        {
            "profile": profile,
            "page": page,
            "progress": progress_pct,
            "profilesScraped": scraped,
            "totalProfiles": total,
        },
    )


def error(
    message: str,
    *,
    status: str = Status.ERROR,
    code: Optional[str] = None,
    page: Optional[int] = None,
    **extra: Any,
) -> CrawlEvent:
    data = dict(extra)
    if code:
        data["code"] = code
    if page is not None:
        data["page"] = page
    return CrawlEvent(ERROR, status, message, data)


def done(
    records: Iterable[ProfileRecord],
    *,
    reason: str,
    page: Optional[int] = None,
    message: str = "Scraping completed",
    **extra: Any,
) -> CrawlEvent:
    results = list(records)
    data: Dict[str, Any] = {"reason": reason, "resultsCount": len(results), "results": results}
    if page is not None:
        data["page"] = page
    data.update(extra)
    return CrawlEvent(DONE, Status.DONE, message, data)


__all__ = [
    "CrawlEvent",
    "DONE",
    "ERROR",
    "EVENT_KINDS",
    "PROGRESS",
    "RECORD",
    "Status",
    "done",
    "error",
    "progress",
    "record",
]
