"""Entry points that wire a browser, a session and the crawl loop together."""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import os
import sys
from typing import AsyncIterator, List, Optional

from . import events
from .browser import BrowsingContext, close_browser, open_browser
from .config_validation import Entrypoint, validate_runtime_config
from .credentials import CredentialSet
from .errors import CrawlerError
from .error_codes import ErrorCode
from .events import CrawlEvent, Status
from .logging_utils import _crawler_event
from .orchestrator import CancelSignal, CrawlOrchestrator
from .search import SearchSpec
from .session import SessionGate
from .state import Termination
from .utils import log_line, short_error_message


def _failed(exc: Exception, *, code: Optional[str] = None) -> List[CrawlEvent]:
    error_code = code or getattr(exc, "error_code", None) or ErrorCode.INTERNAL
    return [
        events.error(short_error_message(exc), code=error_code),
        events.done([], reason=Termination.FAILED, message="Scraping failed"),
    ]


async def crawl_people(
    search_url: Optional[str] = None,
    cookies: Optional[str] = None,
    *,
    keywords: Optional[str] = None,
    max_pages: Optional[int] = None,
    headless: bool = True,
    cancel_event: Optional[CancelSignal] = None,
    context: Optional[BrowsingContext] = None,
    entrypoint: Entrypoint = "ui",
) -> AsyncIterator[CrawlEvent]:
    """Run one people-search crawl and yield its events.

    Caller input is validated before a browser is launched. When ``context``
    is supplied the caller owns its lifetime; otherwise a Chromium instance is
    opened here and always closed before the generator finishes.
    """

    try:
        search = SearchSpec.build(search_url, keywords=keywords, max_pages=max_pages)
        effective_pages = validate_runtime_config(entrypoint, max_pages=search.max_pages)
        if effective_pages != search.max_pages:
            search = dataclasses.replace(search, max_pages=effective_pages)
        credentials = CredentialSet.parse(cookies)
    except CrawlerError as exc:
        _crawler_event("error", phase="input", error_code=exc.error_code, error=str(exc))
        for event in _failed(exc):
            yield event
        return
    except ValueError as exc:
        _crawler_event("error", phase="config", error=str(exc))
        for event in _failed(exc, code=ErrorCode.INTERNAL):
            yield event
        return

    yield events.progress(Status.COOKIES_SET, f"Parsed {len(credentials)} cookies", cookies=len(credentials))

    handles = None
    terminated = False
    try:
        if context is None:
            *handles, context = await open_browser(headless=headless)

        yield events.progress(Status.VALIDATING, "Validating session...")
        try:
            session = await SessionGate(context).establish(credentials)
        except CrawlerError as exc:
            for event in _failed(exc):
                yield event
            return

        identity = session.identity.to_dict() if session.identity else None
        yield events.progress(Status.VALIDATED, "Session validated", identity=identity)

        orchestrator = CrawlOrchestrator(context, search, cancel_event=cancel_event)
        async for event in orchestrator.stream():
            terminated = terminated or event.is_terminal
            yield event
    except CrawlerError as exc:
        log_line(f"[RUN] Crawl failed: {exc}")
        if terminated:
            raise
        for event in _failed(exc):
            yield event
    except Exception as exc:  # noqa: BLE001
        log_line(f"[RUN] Crawl failed unexpectedly: {exc!r}")
        if terminated:
            raise
        for event in _failed(exc, code=ErrorCode.INTERNAL):
            yield event
    finally:
        if handles is not None:
            await close_browser(*handles)


async def _print_events(args: argparse.Namespace) -> int:
    exit_code = 0
    async for event in crawl_people(
        args.search_url,
        args.cookies,
        keywords=args.keywords,
        max_pages=args.max_pages,
        headless=not args.headed,
        entrypoint="cli",
    ):
        print(json.dumps(event.to_dict(), ensure_ascii=False), flush=True)
        if event.is_terminal and event.data.get("reason") in {Termination.FAILED, Termination.BLOCKED, Termination.EXPIRED}:
            exit_code = 1
    return exit_code


def _cli_entrypoint(argv: Optional[List[str]] = None) -> None:  # pragma: no cover
    parser = argparse.ArgumentParser(description="Run a people-search crawl and print events as JSON lines")
    parser.add_argument("--search-url", default=None)
    parser.add_argument("--keywords", default=None)
    parser.add_argument(
        "--cookies",
        default=os.getenv("PEOPLECRAWL_COOKIES"),
        help="Raw Cookie header ('li_at=...; JSESSIONID=...'). Defaults to $PEOPLECRAWL_COOKIES.",
    )
    parser.add_argument("--max-pages", type=int, default=None)
    parser.add_argument("--headed", action="store_true", help="Show the browser window")

    args = parser.parse_args(argv)
    sys.exit(asyncio.run(_print_events(args)))


if __name__ == "__main__":  # pragma: no cover
    _cli_entrypoint()

__all__ = ["crawl_people", "_cli_entrypoint"]
