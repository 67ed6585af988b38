"""Per-crawl state, owned and mutated only by the orchestrator."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .records import ProfileRecord


class Termination:
    COMPLETED = "completed"
    NO_MORE_RESULTS = "no_more_results"
    STOPPED = "stopped"
    BLOCKED = "blocked"
    EXPIRED = "session_expired"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass(frozen=True)
class CrawlSnapshot:
    """Immutable view of a finished crawl."""

    reason: str
    page: int
    records: Tuple[ProfileRecord, ...]
    total_available: Optional[int]
    total_to_extract: Optional[int]
    consecutive_error_count: int
    cancelled: bool

    @property
    def record_count(self) -> int:
        return len(self.records)


@dataclass
class CrawlState:
    current_page: int = 0
    accumulated_records: List[ProfileRecord] = field(default_factory=list)
    total_available: Optional[int] = None
    total_to_extract: Optional[int] = None
    consecutive_error_count: int = 0
    cancelled: bool = False
    snapshot: Optional[CrawlSnapshot] = None

    @property
    def finalized(self) -> bool:
        return self.snapshot is not None

    def _check_open(self) -> None:
        if self.snapshot is not None:
            raise RuntimeError("CrawlState is finalized")

    def begin_page(self, page_number: int) -> None:
        self._check_open()
        self.current_page = page_number

    def fix_totals(self, total_available: int, total_to_extract: int) -> bool:
        """Record the result-count probe once; later calls are ignored."""

        self._check_open()
        if self.total_to_extract is not None:
            return False
        self.total_available = total_available
        self.total_to_extract = total_to_extract
        return True

    def append(self, record: ProfileRecord) -> int:
        self._check_open()
        self.accumulated_records.append(record)
        return len(self.accumulated_records)

    def record_failure(self) -> int:
        self._check_open()
        self.consecutive_error_count += 1
        return self.consecutive_error_count

    def record_success(self) -> None:
        self._check_open()
        self.consecutive_error_count = 0

    def mark_cancelled(self) -> None:
        self._check_open()
        self.cancelled = True

    def progress_for(self, scraped: int) -> int:
        """Return ``min(100, floor(100 * scraped / total_to_extract))``."""

        total = self.total_to_extract or 0
        if total <= 0:
            return 100
        return min(100, (100 * scraped) // total)

    def finalize(self, reason: str) -> CrawlSnapshot:
        if self.snapshot is not None:
            return self.snapshot
        self.snapshot = CrawlSnapshot(
            reason=reason,
            page=self.current_page,
            records=tuple(self.accumulated_records),
            total_available=self.total_available,
            total_to_extract=self.total_to_extract,
            consecutive_error_count=self.consecutive_error_count,
            cancelled=self.cancelled,
        )
        return self.snapshot


__all__ = ["CrawlSnapshot", "CrawlState", "Termination"]
