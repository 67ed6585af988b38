"""The per-page crawl loop and its termination policy."""

from __future__ import annotations

import asyncio
import random
import threading
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, Protocol

from . import config, events
from .browser import BrowsingContext
from .error_codes import ErrorCode
from .errors import CrawlerError
from .events import CrawlEvent, Status
from .extractor import RecordExtractor, parse_total_results
from .logging_utils import _crawler_event
from .navigator import NavigationAttempt, PageNavigator, PageOutcome
from .scroll import ScrollDriver
from .search import SearchSpec, compute_total_to_extract
from .state import CrawlSnapshot, CrawlState, Termination
from .utils import short_error_message

Sleep = Callable[[float], Awaitable[Any]]


class CancelSignal(Protocol):
    def is_set(self) -> bool: ...

    def set(self) -> None: ...


def inter_page_delay_seconds(page_number: int, rng: Optional[random.Random] = None) -> float:
    """Randomized pause after ``page_number`` that grows with the page index."""

    rand = rng or random
    delay = config.PAGE_DELAY_BASE_SECONDS + page_number * config.PAGE_DELAY_PER_PAGE_SECONDS
    if page_number + 1 in config.HIGH_RISK_PAGES:
        delay += config.HIGH_RISK_DELAY_BONUS_SECONDS
    if config.PAGE_DELAY_JITTER_SECONDS > 0:
        delay += rand.uniform(0, config.PAGE_DELAY_JITTER_SECONDS)
    return max(0.0, delay)


class CrawlOrchestrator:
    """Drives one sequential crawl over a single browsing context.

    The orchestrator exclusively owns its ``CrawlState``. ``stream()`` yields
    ``CrawlEvent`` values and always ends with exactly one ``done`` event.
    Cancellation is cooperative: it is honoured before each navigation and
    during the interruptible pauses between pages, never mid-extraction.
    The cancel signal may be set from another thread.
    """

    def __init__(
        self,
        context: BrowsingContext,
        search: SearchSpec,
        *,
        navigator: Optional[PageNavigator] = None,
        scroller: Optional[ScrollDriver] = None,
        extractor: Optional[RecordExtractor] = None,
        cancel_event: Optional[CancelSignal] = None,
        rng: Optional[random.Random] = None,
        sleep: Sleep = asyncio.sleep,
        error_budget: Optional[int] = None,
    ) -> None:
        self.context = context
        self.search = search
        self.rng = rng or random.Random()
        self.sleep = sleep
        self.navigator = navigator or PageNavigator(context, rng=self.rng, sleep=sleep)
        self.scroller = scroller or ScrollDriver(rng=self.rng, sleep=sleep)
        self.extractor = extractor or RecordExtractor()
        self.cancel_event: CancelSignal = cancel_event if cancel_event is not None else threading.Event()
        self.error_budget = config.CONSECUTIVE_ERROR_BUDGET if error_budget is None else error_budget
        self.state = CrawlState()
        self._started = False

    @property
    def snapshot(self) -> Optional[CrawlSnapshot]:
        return self.state.snapshot

    def cancel(self) -> None:
        _crawler_event("state", phase="cancel_requested", page=self.state.current_page)
        self.cancel_event.set()

    def _cancelled(self) -> bool:
        return self.cancel_event.is_set()

    async def _interruptible_delay(self, seconds: float) -> bool:
        """Wait ``seconds`` in short slices; returns True if cancelled meanwhile."""

        remaining = max(0.0, seconds)
        interval = max(0.01, config.CANCEL_CHECK_INTERVAL_SECONDS)
        while remaining > 0:
            if self._cancelled():
                return True
            step = min(interval, remaining)
            await self.sleep(step)
            remaining -= step
        return self._cancelled()

    async def _capture(self, name: str) -> None:
        try:
            path = await self.context.snapshot(name)
        except Exception as exc:  # noqa: BLE001
            _crawler_event("state", phase="snapshot_failed", name=name, error=str(exc))
            return
        if path is not None:
            _crawler_event("state", phase="snapshot_saved", name=name, path=str(path))

    def _finish(self, reason: str, message: str = "Scraping completed") -> CrawlEvent:
        snap = self.state.finalize(reason)
        _crawler_event(
            "state",
            phase="terminated",
            reason=reason,
            page=snap.page,
            records=snap.record_count,
            consecutive_errors=snap.consecutive_error_count,
        )
        return events.done(
            snap.records,
            reason=reason,
            page=snap.page,
            message=message,
            totalProfiles=snap.total_to_extract,
        )

    def _cancelled_events(self) -> list[CrawlEvent]:
        self.state.mark_cancelled()
        page = self.state.current_page
        _crawler_event("state", phase="cancelled", page=page, records=len(self.state.accumulated_records))
        return [
            events.progress(Status.CANCELLED, "Scraping cancelled", page=page or None),
            self._finish(Termination.CANCELLED, "Scraping cancelled"),
        ]

    async def _page_failed(self, page: int, code: str, message: str) -> AsyncIterator[CrawlEvent]:
        """Count a page-level failure; finalizes the crawl once the budget is spent."""

        count = self.state.record_failure()
        _crawler_event("state", phase="page_failed", page=page, error_code=code, consecutive_errors=count)
        await self._capture(f"page_{page}_failed")
        yield events.error(f"Error on page {page}: {message}", code=code, page=page, consecutiveErrors=count)

        if count >= self.error_budget:
            yield events.error(
                f"Too many consecutive errors ({count}). Stopping.",
                status=Status.STOPPED,
                code=code,
                page=page,
            )
            yield self._finish(Termination.STOPPED, f"Scraping stopped after {count} consecutive errors")
            return

        if page < self.search.max_pages and await self._interruptible_delay(config.ERROR_COOLDOWN_SECONDS):
            for event in self._cancelled_events():
                yield event

    async def _navigate(self, page: int) -> AsyncIterator[Any]:
        final: Optional[NavigationAttempt] = None
        async for attempt in self.navigator.navigate(
            self.search.page_url(page),
            page_number=page,
            expected_path_prefix=self.search.expected_path_prefix,
        ):
            if attempt.final:
                final = attempt
                continue
            yield events.progress(
                Status.RETRY_NAVIGATION,
                f"Retrying page {page} (attempt {attempt.attempt + 1}): {attempt.message}",
                page=page,
                attempt=attempt.attempt + 1,
                code=attempt.error_code,
            )
        if final is None:
            raise CrawlerError(ErrorCode.INTERNAL, f"Navigator produced no outcome for page {page}")
        yield final

    async def _pages(self) -> AsyncIterator[CrawlEvent]:
        state = self.state
        search = self.search

        for page in range(1, search.max_pages + 1):
            if self._cancelled():
                for event in self._cancelled_events():
                    yield event
                return

            state.begin_page(page)
            yield events.progress(Status.NAVIGATING, f"Navigating to page {page}...", page=page)

            final: Optional[NavigationAttempt] = None
            async for item in self._navigate(page):
                if isinstance(item, NavigationAttempt):
                    final = item
                else:
                    yield item

            if final.outcome is PageOutcome.EXPIRED:
                _crawler_event("state", phase="session_expired", page=page, url=final.url)
                await self._capture(f"page_{page}_expired")
                yield events.error(
                    "Session expired. Please provide fresh cookies.",
                    code=ErrorCode.SESSION_EXPIRED,
                    page=page,
                )
                yield self._finish(Termination.EXPIRED, "Scraping stopped: session expired")
                return

            if final.outcome is PageOutcome.BLOCKED:
                _crawler_event("state", phase="blocked", page=page, url=final.url)
                await self._capture(f"page_{page}_blocked")
                yield events.error(
                    "Access blocked or CAPTCHA detected. Stopping.",
                    status=Status.BLOCKED,
                    code=ErrorCode.BLOCKED,
                    page=page,
                )
                yield self._finish(Termination.BLOCKED, "Scraping stopped: access blocked")
                return

            if final.outcome is PageOutcome.TRANSIENT_FAILURE:
                async for event in self._page_failed(
                    page, final.error_code or ErrorCode.NAVIGATION_ERROR, final.message or "navigation failed"
                ):
                    yield event
                if state.finalized:
                    return
                continue

            yield events.progress(Status.PAGE_LOADED, f"Page {page} loaded", page=page, url=final.url)
            await self.sleep(config.PAGE_SETTLE_SECONDS)

            if state.total_to_extract is None:
                total_available = parse_total_results(await self.context.content())
                total = compute_total_to_extract(total_available, search.max_pages, search.results_per_page)
                state.fix_totals(total_available, total)
                _crawler_event("state", phase="totals_fixed", total_available=total_available, total_to_extract=total)
                yield events.progress(
                    Status.EXTRACTING,
                    f"Found {total_available} results, extracting up to {total}",
                    page=page,
                    totalResults=total_available,
                    totalProfiles=total,
                )
            else:
                yield events.progress(Status.EXTRACTING, f"Extracting profiles from page {page}...", page=page)

            await self.scroller.settle(self.context)
            await self.sleep(config.POST_SCROLL_SETTLE_SECONDS)

            result = self.extractor.extract(await self.context.content(), page=page)
            if not result.records:
                if result.no_results_signal:
                    yield events.progress(Status.NO_MORE_RESULTS, f"No more results on page {page}", page=page)
                    yield self._finish(Termination.NO_MORE_RESULTS)
                    return
                async for event in self._page_failed(
                    page,
                    ErrorCode.SITE_STRUCTURE,
                    f"{result.container_count} result containers yielded no profiles",
                ):
                    yield event
                if state.finalized:
                    return
                continue

            yield events.progress(
                Status.EXTRACTING_PROGRESS,
                f"Found {len(result.records)} profiles on page {page}",
                page=page,
                found=len(result.records),
            )

            total = state.total_to_extract or 0
            for profile in result.records:
                scraped = state.append(profile)
                yield events.record(
                    profile,
                    page=page,
                    progress_pct=state.progress_for(scraped),
                    scraped=scraped,
                    total=total,
                )

            state.record_success()
            scraped = len(state.accumulated_records)
            yield events.progress(
                Status.EXTRACTED,
                f"Page {page} done: {scraped}/{total} profiles",
                page=page,
                profilesScraped=scraped,
                totalProfiles=total,
            )

            if page < search.max_pages:
                delay = inter_page_delay_seconds(page, self.rng)
                _crawler_event("state", phase="inter_page_delay", page=page, seconds=round(delay, 2))
                if await self._interruptible_delay(delay):
                    for event in self._cancelled_events():
                        yield event
                    return

        yield self._finish(Termination.COMPLETED)

    async def stream(self) -> AsyncIterator[CrawlEvent]:
        if self._started:
            raise RuntimeError("CrawlOrchestrator.stream() may only be consumed once")
        self._started = True
        _crawler_event("state", phase="started", url=self.search.url, max_pages=self.search.max_pages)

        try:
            async for event in self._pages():
                yield event
        except CrawlerError as exc:
            if self.state.finalized:
                raise
            _crawler_event("state", phase="crawl_failed", error_code=exc.error_code, error=str(exc))
            yield events.error(short_error_message(exc), code=exc.error_code, page=self.state.current_page or None)
            yield self._finish(Termination.FAILED, "Scraping failed")
        except Exception as exc:  # noqa: BLE001
            if self.state.finalized:
                raise
            _crawler_event("state", phase="crawl_failed", error_code=ErrorCode.INTERNAL, error=repr(exc))
            yield events.error(short_error_message(exc), code=ErrorCode.INTERNAL, page=self.state.current_page or None)
            yield self._finish(Termination.FAILED, "Scraping failed")


__all__ = ["CancelSignal", "CrawlOrchestrator", "inter_page_delay_seconds"]
