"""Browsing-context capability and its Playwright implementation.

The crawl core only talks to ``BrowsingContext``. Playwright errors are
translated into ``BrowserTimeout`` / ``BrowserClosed`` here so nothing above
this module imports Playwright.
"""

from __future__ import annotations

import re
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Tuple

from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PWError,
    Page,
    Playwright,
    Route,
    TimeoutError as PWTimeout,
    async_playwright,
)

from . import config
from .errors import BrowserClosed, BrowserTimeout, CrawlerError
from .error_codes import ErrorCode
from .logging_utils import _crawler_event
from .utils import log_line

_TARGET_CLOSED_MARKERS = (
    "target closed",
    "target page, context or browser has been closed",
    "browser has been closed",
    "page has been closed",
)


class BrowsingContext(Protocol):
    async def navigate(self, url: str, timeout_seconds: float) -> None: ...

    async def clear_cookies(self) -> None: ...

    async def install_cookies(self, cookies: List[Dict[str, Any]]) -> None: ...

    async def evaluate(self, script: str, arg: Any = None) -> Any: ...

    async def wait_for_selector(self, selector: str, timeout_seconds: float) -> bool: ...

    async def current_url(self) -> str: ...

    async def content(self) -> str: ...

    async def snapshot(self, name: str) -> Optional[Path]: ...


def _is_target_closed_error(exc: Exception) -> bool:
    """Return ``True`` if *exc* indicates the Playwright target is gone."""

    message = str(exc).lower()
    return any(marker in message for marker in _TARGET_CLOSED_MARKERS)


def _translate(exc: Exception, *, action: str) -> CrawlerError:
    if isinstance(exc, PWTimeout):
        return BrowserTimeout(f"{action} timed out: {exc}")
    if isinstance(exc, PWError) and _is_target_closed_error(exc):
        return BrowserClosed(f"Browser closed during {action}: {exc}")
    return CrawlerError(ErrorCode.NAVIGATION_ERROR, f"{action} failed: {exc}")


class PlaywrightBrowsingContext:
    """``BrowsingContext`` over one Playwright page and its browser context."""

    def __init__(self, context: BrowserContext, page: Page) -> None:
        self._context = context
        self._page = page

    async def navigate(self, url: str, timeout_seconds: float) -> None:
        try:
            await self._page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=int(timeout_seconds * 1000),
            )
        except (PWTimeout, PWError) as exc:
            raise _translate(exc, action=f"goto({url!r})") from exc

    async def clear_cookies(self) -> None:
        try:
            await self._context.clear_cookies()
        except PWError as exc:
            raise _translate(exc, action="clear_cookies") from exc

    async def install_cookies(self, cookies: List[Dict[str, Any]]) -> None:
        try:
            await self._context.add_cookies(cookies)
        except PWError as exc:
            raise _translate(exc, action="add_cookies") from exc

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        try:
            if arg is None:
                return await self._page.evaluate(script)
            return await self._page.evaluate(script, arg)
        except (PWTimeout, PWError) as exc:
            raise _translate(exc, action="evaluate") from exc

    async def wait_for_selector(self, selector: str, timeout_seconds: float) -> bool:
        try:
            await self._page.wait_for_selector(
                selector, state="attached", timeout=int(timeout_seconds * 1000)
            )
            return True
        except PWTimeout:
            return False
        except PWError as exc:
            raise _translate(exc, action="wait_for_selector") from exc

    async def current_url(self) -> str:
        return self._page.url

    async def content(self) -> str:
        try:
            return await self._page.content()
        except (PWTimeout, PWError) as exc:
            raise _translate(exc, action="content") from exc

    async def snapshot(self, name: str) -> Optional[Path]:
        """Save a full-page screenshot under DIAGNOSTICS_DIR for debugging."""

        if config.DIAGNOSTICS_DIR is None:
            return None
        safe = re.sub(r"[^A-Za-z0-9_.-]+", "_", name).strip("._") or "snapshot"
        path = config.DIAGNOSTICS_DIR / f"{time.strftime('%Y%m%d_%H%M%S')}_{safe}.png"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            await self._page.screenshot(path=str(path), full_page=True)
            log_line(f"Saved debug screenshot -> {path}")
            return path
        except Exception as exc:  # noqa: BLE001
            log_line(f"Failed to save debug screenshot: {exc}")
            return None


async def _route_filter(route: Route) -> None:
    request = route.request
    url = request.url
    if request.resource_type in config.BLOCKED_RESOURCE_TYPES or any(
        fragment in url for fragment in config.BLOCKED_URL_FRAGMENTS
    ):
        await route.abort()
    else:
        await route.continue_()


async def open_browser(
    headless: bool = True,
) -> Tuple[Playwright, Browser, BrowserContext, PlaywrightBrowsingContext]:
    """Launch Chromium and return everything needed for later cleanup."""

    pw = await async_playwright().start()
    try:
        browser = await pw.chromium.launch(headless=headless, args=config.BROWSER_ARGS)
        context = await browser.new_context(
            user_agent=config.USER_AGENT,
            viewport=config.VIEWPORT,
            locale="en-US",
        )
        await context.add_init_script(
            "Object.defineProperty(navigator, 'webdriver', { get: () => undefined });"
        )
        await context.route("**/*", _route_filter)
        page = await context.new_page()
    except Exception:
        await pw.stop()
        raise
    _crawler_event("browser", step="opened", headless=headless)
    return pw, browser, context, PlaywrightBrowsingContext(context, page)


async def close_browser(pw: Playwright, browser: Browser, context: BrowserContext) -> None:
    """Release Playwright resources in reverse order of creation."""

    for label, closer in (("context", context.close), ("browser", browser.close), ("playwright", pw.stop)):
        try:
            await closer()
        except Exception as exc:  # noqa: BLE001
            log_line(f"[BROWSER] Failed to close {label}: {exc}")
    _crawler_event("browser", step="closed")


__all__ = [
    "BrowsingContext",
    "PlaywrightBrowsingContext",
    "close_browser",
    "open_browser",
]
