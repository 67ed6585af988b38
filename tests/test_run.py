from __future__ import annotations

import asyncio

import pytest

from peoplecrawl.crawler import run
from peoplecrawl.crawler.error_codes import ErrorCode
from peoplecrawl.crawler.events import DONE, ERROR, CrawlEvent, Status
from peoplecrawl.crawler.search import SearchSpec
from peoplecrawl.crawler.state import Termination
from tests.fakes import (
    COOKIES,
    FEED_HTML,
    FEED_URL,
    LOGIN_HTML,
    LOGIN_URL,
    NO_RESULTS_HTML,
    SEARCH_URL,
    FakeBrowsingContext,
    FakePage,
    results_page,
    three_people,
)

pytestmark = pytest.mark.usefixtures("fast_config")


def _collect(**kwargs) -> list[CrawlEvent]:
    async def _run() -> list[CrawlEvent]:
        return [event async for event in run.crawl_people(**kwargs)]

    return asyncio.run(_run())


@pytest.fixture
def no_browser(monkeypatch: pytest.MonkeyPatch) -> None:
    async def _refuse(*_args, **_kwargs):  # noqa: ANN002, ANN003
        raise AssertionError("browser must not be launched")

    monkeypatch.setattr(run, "open_browser", _refuse)


@pytest.mark.usefixtures("no_browser")
@pytest.mark.parametrize(
    "kwargs, code",
    [
        ({"search_url": None, "cookies": COOKIES}, ErrorCode.INVALID_SEARCH),
        ({"search_url": "https://example.com/people", "cookies": COOKIES}, ErrorCode.INVALID_SEARCH),
        ({"search_url": SEARCH_URL, "cookies": "JSESSIONID=1"}, ErrorCode.MISSING_TOKEN),
        ({"search_url": SEARCH_URL, "cookies": COOKIES, "max_pages": 0}, ErrorCode.INVALID_SEARCH),
    ],
)
def test_caller_misuse_rejected_before_any_browser(kwargs: dict, code: str) -> None:
    events = _collect(**kwargs)

    assert [e.kind for e in events] == [ERROR, DONE]
    assert events[0].data["code"] == code
    assert events[1].data["reason"] == Termination.FAILED


def test_full_crawl_over_supplied_context() -> None:
    spec = SearchSpec.build(SEARCH_URL)
    context = FakeBrowsingContext(
        {
            FEED_URL: FakePage(FEED_URL, FEED_HTML),
            spec.page_url(1): FakePage(spec.page_url(1), results_page(three_people())),
            spec.page_url(2): FakePage(spec.page_url(2), NO_RESULTS_HTML),
        }
    )

    events = _collect(search_url=SEARCH_URL, cookies=COOKIES, context=context)

    statuses = [e.status for e in events]
    assert statuses[:3] == [Status.COOKIES_SET, Status.VALIDATING, Status.VALIDATED]
    assert events[2].data["identity"]["displayName"] == "Ada Lovelace"
    assert statuses.count(Status.PROFILE) == 3
    assert events[-1].data["reason"] == Termination.NO_MORE_RESULTS
    assert context.navigations[0] == FEED_URL


def test_rejected_session_ends_with_error_and_done() -> None:
    context = FakeBrowsingContext({FEED_URL: FakePage(LOGIN_URL, LOGIN_HTML)})

    events = _collect(search_url=SEARCH_URL, cookies=COOKIES, context=context)

    assert events[-2].data["code"] == ErrorCode.NOT_AUTHENTICATED
    assert events[-1].data["reason"] == Termination.FAILED
    assert context.navigations == [FEED_URL]


def test_owned_browser_is_always_closed(monkeypatch: pytest.MonkeyPatch) -> None:
    context = FakeBrowsingContext({FEED_URL: FakePage(LOGIN_URL, LOGIN_HTML)})
    closed: list[tuple] = []

    async def _open(headless: bool = True):
        return "pw", "browser", "ctx", context

    async def _close(*handles):
        closed.append(handles)

    monkeypatch.setattr(run, "open_browser", _open)
    monkeypatch.setattr(run, "close_browser", _close)

    events = _collect(search_url=SEARCH_URL, cookies=COOKIES)

    assert events[-1].kind == DONE
    assert closed == [("pw", "browser", "ctx")]
