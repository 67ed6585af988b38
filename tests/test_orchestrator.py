from __future__ import annotations

import asyncio
import random
from typing import Any

import pytest

from peoplecrawl.crawler import config
from peoplecrawl.crawler.error_codes import ErrorCode
from peoplecrawl.crawler.events import DONE, ERROR, PROGRESS, RECORD, CrawlEvent, Status
from peoplecrawl.crawler.navigator import PageNavigator
from peoplecrawl.crawler.orchestrator import CrawlOrchestrator, inter_page_delay_seconds
from peoplecrawl.crawler.scroll import ScrollDriver
from peoplecrawl.crawler.search import SearchSpec
from peoplecrawl.crawler.state import Termination
from tests.fakes import (
    BLOCKED_HTML,
    FEED_HTML,
    LOGIN_HTML,
    LOGIN_URL,
    NO_RESULTS_HTML,
    SEARCH_URL,
    FakeBrowsingContext,
    FakePage,
    person_html,
    results_page,
    three_people,
)

pytestmark = pytest.mark.usefixtures("fast_config")

SPEC = SearchSpec.build(SEARCH_URL, max_pages=5)


async def _no_sleep(_seconds: float) -> None:
    return None


def _url(page: int) -> str:
    return SPEC.page_url(page)


def _results(page: int, people: list[str] | None = None, total_text: str = "About 1,000 results") -> FakePage:
    return FakePage(_url(page), results_page(people if people is not None else _people(page), total_text=total_text))


def _people(page: int) -> list[str]:
    return [person_html(f"Person {page}-{i}", f"p{page}-{i}") for i in range(3)]


def _failing(page: int) -> FakePage:
    # Lands on the feed instead of the results page on every attempt.
    return FakePage("https://www.linkedin.com/feed/", FEED_HTML)


def _orchestrator(context: FakeBrowsingContext, *, max_pages: int = 5, sleep=_no_sleep, **kwargs: Any) -> CrawlOrchestrator:
    spec = SearchSpec.build(SEARCH_URL, max_pages=max_pages)
    return CrawlOrchestrator(
        context,
        spec,
        navigator=PageNavigator(context, sleep=_no_sleep),
        scroller=ScrollDriver(sleep=_no_sleep),
        sleep=sleep,
        rng=random.Random(7),
        **kwargs,
    )


def _run(orchestrator: CrawlOrchestrator) -> list[CrawlEvent]:
    async def _collect() -> list[CrawlEvent]:
        return [event async for event in orchestrator.stream()]

    return asyncio.run(_collect())


def _statuses(events: list[CrawlEvent], kind: str) -> list[str]:
    return [e.status for e in events if e.kind == kind]


def _assert_single_terminal(events: list[CrawlEvent]) -> CrawlEvent:
    assert [e.kind for e in events].count(DONE) == 1
    assert events[-1].kind == DONE
    return events[-1]


def test_no_results_page_terminates_normally() -> None:
    context = FakeBrowsingContext({_url(1): _results(1), _url(2): FakePage(_url(2), NO_RESULTS_HTML)})
    orchestrator = _orchestrator(context)

    events = _run(orchestrator)

    done = _assert_single_terminal(events)
    assert done.data["reason"] == Termination.NO_MORE_RESULTS
    assert Status.NO_MORE_RESULTS in _statuses(events, PROGRESS)
    assert _statuses(events, ERROR) == []
    assert orchestrator.state.consecutive_error_count == 0
    assert done.data["resultsCount"] == 3
    assert context.navigations == [_url(1), _url(2)]


def test_no_results_on_first_page() -> None:
    context = FakeBrowsingContext({_url(1): FakePage(_url(1), NO_RESULTS_HTML)})
    orchestrator = _orchestrator(context)

    events = _run(orchestrator)

    assert events[-1].data["reason"] == Termination.NO_MORE_RESULTS
    assert orchestrator.snapshot.records == ()
    assert orchestrator.snapshot.consecutive_error_count == 0


def test_three_exhausted_transient_failures_stop_the_crawl() -> None:
    context = FakeBrowsingContext(
        {_url(1): _results(1), _url(2): _failing(2), _url(3): _failing(3), _url(4): _failing(4), _url(5): _results(5)}
    )
    orchestrator = _orchestrator(context)

    events = _run(orchestrator)

    done = _assert_single_terminal(events)
    assert done.data["reason"] == Termination.STOPPED
    assert Status.STOPPED in _statuses(events, ERROR)
    assert _statuses(events, PROGRESS).count(Status.RETRY_NAVIGATION) == 6
    assert [r.external_id for r in orchestrator.snapshot.records] == ["p1-0", "p1-1", "p1-2"]
    assert [r.external_id for r in done.data["results"]] == ["p1-0", "p1-1", "p1-2"]
    assert done.data["page"] == 4
    assert _url(5) not in context.navigations
    assert len(context.navigations) == 1 + 3 * config.NAV_MAX_ATTEMPTS


def test_successful_page_resets_error_budget() -> None:
    context = FakeBrowsingContext(
        {_url(1): _results(1), _url(2): _failing(2), _url(3): _results(3), _url(4): _failing(4), _url(5): _failing(5)}
    )
    orchestrator = _orchestrator(context)

    events = _run(orchestrator)

    assert events[-1].data["reason"] == Termination.COMPLETED
    assert Status.STOPPED not in _statuses(events, ERROR)
    assert orchestrator.snapshot.consecutive_error_count == 2
    assert [r.external_id for r in orchestrator.snapshot.records][-3:] == ["p3-0", "p3-1", "p3-2"]


def test_expired_on_page_two_aborts_immediately() -> None:
    context = FakeBrowsingContext({_url(1): _results(1), _url(2): FakePage(LOGIN_URL, LOGIN_HTML), _url(3): _results(3)})
    orchestrator = _orchestrator(context)

    events = _run(orchestrator)

    done = _assert_single_terminal(events)
    assert done.data["reason"] == Termination.EXPIRED
    assert done.data["page"] == 2
    errors = [e for e in events if e.kind == ERROR]
    assert len(errors) == 1
    assert errors[0].data["code"] == ErrorCode.SESSION_EXPIRED
    assert errors[0].data["page"] == 2
    assert orchestrator.state.consecutive_error_count == 0
    assert context.navigations == [_url(1), _url(2)]
    assert "page_2_expired" in context.snapshots
    assert done.data["resultsCount"] == 3


def test_block_aborts_with_blocked_status() -> None:
    context = FakeBrowsingContext({_url(1): FakePage(_url(1), BLOCKED_HTML)})
    orchestrator = _orchestrator(context)

    events = _run(orchestrator)

    assert _statuses(events, ERROR) == [Status.BLOCKED]
    assert events[-1].data["reason"] == Termination.BLOCKED
    assert events[-1].data["results"] == []
    assert orchestrator.state.consecutive_error_count == 0


def test_cancellation_during_inter_page_delay(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "PAGE_DELAY_BASE_SECONDS", 5.0)
    monkeypatch.setattr(config, "CANCEL_CHECK_INTERVAL_SECONDS", 0.25)
    context = FakeBrowsingContext({_url(1): _results(1), _url(2): _results(2)})
    delay_slices: list[float] = []
    holder: dict[str, CrawlOrchestrator] = {}

    async def _sleep(seconds: float) -> None:
        if seconds > 0:
            delay_slices.append(seconds)
            holder["orchestrator"].cancel()

    orchestrator = _orchestrator(context, sleep=_sleep)
    holder["orchestrator"] = orchestrator

    events = _run(orchestrator)

    done = _assert_single_terminal(events)
    assert done.data["reason"] == Termination.CANCELLED
    assert events[-2].status == Status.CANCELLED
    assert delay_slices == [0.25]
    assert context.navigations == [_url(1)]
    assert orchestrator.snapshot.cancelled is True
    assert done.data["resultsCount"] == 3


def test_cancel_before_first_navigation() -> None:
    context = FakeBrowsingContext({_url(1): _results(1)})
    orchestrator = _orchestrator(context)
    orchestrator.cancel()

    events = _run(orchestrator)

    assert [e.kind for e in events] == [PROGRESS, DONE]
    assert events[-1].data["reason"] == Termination.CANCELLED
    assert context.navigations == []


def test_progress_is_monotonic_and_total_fixed_from_first_page() -> None:
    context = FakeBrowsingContext(
        {
            _url(1): _results(1),
            _url(2): _results(2, total_text="About 5 results"),
            _url(3): FakePage(_url(3), NO_RESULTS_HTML),
        }
    )
    orchestrator = _orchestrator(context)

    events = _run(orchestrator)

    records = [e for e in events if e.kind == RECORD]
    progress = [e.data["progress"] for e in records]
    assert progress == sorted(progress)
    assert {e.data["totalProfiles"] for e in records} == {50}
    assert [e.data["profilesScraped"] for e in records] == list(range(1, 7))
    assert progress[-1] == 100 * 6 // 50
    assert orchestrator.snapshot.total_to_extract == 50
    assert orchestrator.snapshot.total_available == 1000


def _ten_people(page: int) -> list[str]:
    return [person_html(f"Person {page}-{i}", f"p{page}-{i}") for i in range(10)]


def test_missing_result_count_still_crawls_every_page() -> None:
    context = FakeBrowsingContext({_url(page): _results(page, _ten_people(page), total_text="") for page in (1, 2, 3)})
    orchestrator = _orchestrator(context, max_pages=3)

    events = _run(orchestrator)

    done = _assert_single_terminal(events)
    assert context.navigations == [_url(1), _url(2), _url(3)]
    assert done.data["reason"] == Termination.COMPLETED
    assert done.data["resultsCount"] == 30
    assert orchestrator.snapshot.total_to_extract == config.DEFAULT_TOTAL_RESULTS
    progress = [e.data["progress"] for e in events if e.kind == RECORD]
    assert progress == sorted(progress)
    assert progress[-1] == 100


def test_every_extracted_record_is_emitted() -> None:
    context = FakeBrowsingContext({_url(1): _results(1, _ten_people(1), total_text="About 4 results")})
    orchestrator = _orchestrator(context, max_pages=1)

    events = _run(orchestrator)

    records = [e for e in events if e.kind == RECORD]
    assert len(records) == 10
    assert [e.data["profilesScraped"] for e in records] == list(range(1, 11))
    assert {e.data["totalProfiles"] for e in records} == {4}
    assert events[-1].data["resultsCount"] == 10
    assert events[-1].data["reason"] == Termination.COMPLETED


def test_challenge_words_in_a_headline_do_not_abort_the_crawl() -> None:
    researcher = person_html("Grace Hopper", "grace-hopper", title="CAPTCHA researcher at Acme")
    context = FakeBrowsingContext({_url(1): _results(1, [researcher]), _url(2): FakePage(_url(2), NO_RESULTS_HTML)})
    orchestrator = _orchestrator(context)

    events = _run(orchestrator)

    assert _statuses(events, ERROR) == []
    assert events[-1].data["reason"] == Termination.NO_MORE_RESULTS
    assert [r.external_id for r in orchestrator.snapshot.records] == ["grace-hopper"]


def test_containers_without_records_count_as_page_failure() -> None:
    names_only = [
        '<li class="reusable-search__result-container"><span class="t-16"><span>Name</span></span></li>'
    ] * 2
    context = FakeBrowsingContext({_url(1): _results(1, names_only)})
    orchestrator = _orchestrator(context, error_budget=1)

    events = _run(orchestrator)

    errors = [e for e in events if e.kind == ERROR]
    assert errors[0].data["code"] == ErrorCode.SITE_STRUCTURE
    assert errors[-1].status == Status.STOPPED
    assert events[-1].data["reason"] == Termination.STOPPED


def test_unexpected_exception_still_ends_with_done() -> None:
    class BrokenExtractor:
        def extract(self, html, *, page=None):  # noqa: ANN001
            raise RuntimeError("parser exploded")

    context = FakeBrowsingContext({_url(1): _results(1)})
    orchestrator = _orchestrator(context, extractor=BrokenExtractor())

    events = _run(orchestrator)

    assert events[-2].kind == ERROR
    assert events[-2].data["code"] == ErrorCode.INTERNAL
    assert events[-1].data["reason"] == Termination.FAILED


def test_done_event_serializes_records() -> None:
    context = FakeBrowsingContext({_url(1): _results(1, three_people()), _url(2): FakePage(_url(2), NO_RESULTS_HTML)})

    events = _run(_orchestrator(context))
    payload = events[-1].to_dict()

    assert payload["type"] == "done"
    assert payload["resultsCount"] == 3
    assert payload["results"][0]["linkedinId"] == "ada-lovelace"
    assert payload["results"][2]["isAnonymous"] is True


def test_stream_can_only_be_consumed_once() -> None:
    context = FakeBrowsingContext({_url(1): FakePage(_url(1), NO_RESULTS_HTML)})
    orchestrator = _orchestrator(context)
    _run(orchestrator)

    with pytest.raises(RuntimeError):
        _run(orchestrator)


def test_inter_page_delay_grows_with_page_index(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "PAGE_DELAY_BASE_SECONDS", 5.0)
    monkeypatch.setattr(config, "PAGE_DELAY_PER_PAGE_SECONDS", 1.0)
    monkeypatch.setattr(config, "HIGH_RISK_DELAY_BONUS_SECONDS", 5.0)

    delays = [inter_page_delay_seconds(page) for page in range(1, 9)]

    assert delays[:5] == [6.0, 7.0, 8.0, 9.0, 10.0]
    assert delays[5] == 11.0 + 5.0
    assert delays == sorted(delays)
