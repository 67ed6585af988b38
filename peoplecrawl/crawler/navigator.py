"""Per-page navigation with outcome classification and bounded retries."""

from __future__ import annotations

import asyncio
import enum
import random
import urllib.parse
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from bs4 import BeautifulSoup

from . import config
from .browser import BrowsingContext
from .error_codes import ErrorCode
from .errors import BrowserClosed, BrowserTimeout, CrawlerError
from .logging_utils import _crawler_event
from .markup import Markup, contains_any, has_any_selector, page_text, parse_document
from .retry_policy import RetryPolicy
from .selectors_people_search import PEOPLE_SEARCH_SELECTORS, PeopleSearchSelectors
from .session import is_login_url

Sleep = Callable[[float], Awaitable[Any]]

_CAPTCHA_FRAME_SELECTORS = ('iframe[src*="captcha"]', 'iframe[title*="CAPTCHA" i]', "#captcha-internal")

_CLICK_NEXT_SCRIPT = """
(labels) => {
    const buttons = Array.from(document.querySelectorAll('button[aria-label], button'));
    for (const button of buttons) {
        const label = (button.getAttribute('aria-label') || button.innerText || '').trim();
        if (labels.includes(label) && !button.disabled) {
            button.click();
            return true;
        }
    }
    return false;
}
"""

_JITTER_SCROLL_SCRIPT = "(dy) => { window.scrollBy(0, dy); }"


class PageOutcome(enum.Enum):
    LOADED = "loaded"
    BLOCKED = "blocked"
    EXPIRED = "expired"
    TRANSIENT_FAILURE = "transient_failure"


def _on_expected_path(url: str, expected_path_prefix: str) -> bool:
    parts = urllib.parse.urlsplit(url or "")
    host = (parts.hostname or "").lower()
    domain = config.TARGET_DOMAIN
    if host != domain and not host.endswith("." + domain):
        return False
    path = parts.path or "/"
    if not path.endswith("/"):
        path += "/"
    return path.startswith(expected_path_prefix or "/")


def _looks_like_results_page(soup: BeautifulSoup, selectors: PeopleSearchSelectors) -> bool:
    if has_any_selector(soup, selectors.results_ready) or has_any_selector(soup, selectors.no_results_selectors):
        return True
    return bool(page_text(soup))


def classify_page(
    url: str,
    html: Markup,
    *,
    expected_path_prefix: str,
    selectors: PeopleSearchSelectors = PEOPLE_SEARCH_SELECTORS,
) -> PageOutcome:
    """Classify what a navigation actually landed on.

    Rules apply in priority order: login/checkpoint URL, block signature
    (a challenge frame, or challenge text on a page without result entries),
    off-path URL, then coarse results-page consistency.
    """

    if is_login_url(url, selectors):
        return PageOutcome.EXPIRED

    soup = parse_document(html)
    if has_any_selector(soup, _CAPTCHA_FRAME_SELECTORS):
        return PageOutcome.BLOCKED
    # Result headlines are free text; only a page without results is read as a challenge.
    if not has_any_selector(soup, selectors.result_containers) and contains_any(
        page_text(soup), selectors.block_signatures
    ):
        return PageOutcome.BLOCKED

    if not _on_expected_path(url, expected_path_prefix):
        return PageOutcome.TRANSIENT_FAILURE

    if not _looks_like_results_page(soup, selectors):
        return PageOutcome.TRANSIENT_FAILURE
    return PageOutcome.LOADED


_OUTCOME_ERROR_CODES = {
    PageOutcome.EXPIRED: ErrorCode.SESSION_EXPIRED,
    PageOutcome.BLOCKED: ErrorCode.BLOCKED,
}


@dataclass(frozen=True)
class NavigationAttempt:
    outcome: PageOutcome
    url: str
    attempt: int
    final: bool
    message: str = ""
    error_code: Optional[str] = None
    timed_out: bool = False

    @property
    def loaded(self) -> bool:
        return self.outcome is PageOutcome.LOADED


class PageNavigator:
    """Loads one results page at a time and reports every attempt.

    ``navigate`` is an async generator: each non-final attempt is a transient
    failure about to be retried, and the last attempt carries the outcome.
    """

    def __init__(
        self,
        context: BrowsingContext,
        *,
        policy: Optional[RetryPolicy] = None,
        selectors: PeopleSearchSelectors = PEOPLE_SEARCH_SELECTORS,
        rng: Optional[random.Random] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.context = context
        self.policy = policy or RetryPolicy()
        self.selectors = selectors
        self.rng = rng or random.Random()
        self.sleep = sleep

    def _timeout_for(self, page_number: int) -> int:
        if page_number >= config.HIGH_RISK_PAGE_THRESHOLD:
            return config.HIGH_RISK_NAV_TIMEOUT_SECONDS
        return config.NAV_TIMEOUT_SECONDS

    async def _jitter_scroll(self, page_number: int) -> None:
        try:
            await self.context.evaluate(_JITTER_SCROLL_SCRIPT, self.rng.randint(50, 200))
        except BrowserClosed:
            raise
        except CrawlerError as exc:
            _crawler_event("navigate", kind="jitter_scroll_failed", page=page_number, error=str(exc))

    async def _click_next(self, page_number: int) -> bool:
        try:
            clicked = bool(await self.context.evaluate(_CLICK_NEXT_SCRIPT, list(self.selectors.next_button_labels)))
        except BrowserClosed:
            raise
        except CrawlerError as exc:
            _crawler_event("navigate", kind="next_click_failed", page=page_number, error=str(exc))
            return False
        _crawler_event("navigate", kind="next_click", page=page_number, clicked=clicked)
        return clicked

    async def _load(self, url: str, *, page_number: int, attempt: int, timeout: int) -> tuple[bool, Optional[str], str]:
        """Issue one load; returns ``(timed_out, error_code, message)``."""

        if attempt > 1 and page_number > 1 and await self._click_next(page_number):
            ready = await self.context.wait_for_selector(self.selectors.results_ready_selector, timeout)
            return (not ready, None, "" if ready else "Next-page click did not render results")

        try:
            await self.context.navigate(url, timeout)
        except BrowserTimeout as exc:
            # Still classified below.
            return True, None, str(exc)
        except BrowserClosed:
            raise
        except CrawlerError as exc:
            return False, exc.error_code, str(exc)
        return False, None, ""

    async def _capture(self) -> tuple[str, str]:
        current = await self.context.current_url()
        try:
            html = await self.context.content()
        except BrowserClosed:
            raise
        except CrawlerError as exc:
            _crawler_event("navigate", kind="content_unavailable", url=current, error=str(exc))
            html = ""
        return current, html

    async def navigate(
        self,
        url: str,
        *,
        page_number: int,
        expected_path_prefix: str,
    ) -> AsyncIterator[NavigationAttempt]:
        timeout = self._timeout_for(page_number)
        high_risk = page_number >= config.HIGH_RISK_PAGE_THRESHOLD
        attempt = 0

        while True:
            attempt += 1
            if high_risk:
                await self._jitter_scroll(page_number)

            _crawler_event("navigate", kind="attempt", page=page_number, attempt=attempt, url=url, timeout=timeout)
            timed_out, load_error, message = await self._load(
                url, page_number=page_number, attempt=attempt, timeout=timeout
            )
            current, html = await self._capture()
            outcome = classify_page(current, html, expected_path_prefix=expected_path_prefix, selectors=self.selectors)
            if load_error and outcome is PageOutcome.LOADED:
                # The previous results page is still showing.
                outcome = PageOutcome.TRANSIENT_FAILURE

            _crawler_event(
                "navigate",
                kind="classified",
                page=page_number,
                attempt=attempt,
                outcome=outcome.value,
                url=current,
                timed_out=timed_out,
            )

            if outcome is PageOutcome.LOADED:
                ready = await self.context.wait_for_selector(
                    self.selectors.results_ready_selector, config.SELECTOR_TIMEOUT_SECONDS
                )
                if not ready:
                    _crawler_event("navigate", kind="results_wait_timeout", page=page_number, url=current)
                yield NavigationAttempt(outcome, current, attempt, True, message, None, timed_out)
                return

            if outcome in _OUTCOME_ERROR_CODES:
                yield NavigationAttempt(
                    outcome, current, attempt, True, message or outcome.value, _OUTCOME_ERROR_CODES[outcome], timed_out
                )
                return

            if load_error:
                code = load_error
            elif not _on_expected_path(current, expected_path_prefix):
                code = ErrorCode.UNEXPECTED_REDIRECT
                message = message or f"Redirected to {current}"
            else:
                code = ErrorCode.NAVIGATION_TIMEOUT if timed_out else ErrorCode.NAVIGATION_ERROR
                message = message or "Page did not render search results"

            retry = self.policy.should_retry(attempt, code, page=page_number)
            yield NavigationAttempt(outcome, current, attempt, not retry, message, code, timed_out)
            if not retry:
                return
            await self.sleep(self.policy.delay_for(attempt))


__all__ = ["NavigationAttempt", "PageNavigator", "PageOutcome", "classify_page"]
