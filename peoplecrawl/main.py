from __future__ import annotations

import asyncio
import json
import os
import queue
import threading
from typing import Any, Dict, Generator, Optional

from flask import Flask, Response, jsonify, request

from peoplecrawl.crawler import events
from peoplecrawl.crawler.error_codes import ErrorCode
from peoplecrawl.crawler.errors import SearchSpecError
from peoplecrawl.crawler.events import Status
from peoplecrawl.crawler.healthcheck import run_health_checks
from peoplecrawl.crawler.logging_utils import _crawler_event
from peoplecrawl.crawler.run import crawl_people
from peoplecrawl.crawler.search import SearchSpec
from peoplecrawl.crawler.utils import log_line, short_error_message

app = Flask(__name__)
app.secret_key = os.environ.get("SECRET_KEY", "dev-secret-change-me")

HEARTBEAT_SECONDS = 15.0
_STREAM_END = object()


def _sse(payload: Dict[str, Any]) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


def _bad_request(message: str) -> Response:
    response = jsonify({"error": message})
    response.status_code = 400
    return response


def _run_crawl_in_thread(
    kwargs: Dict[str, Any],
    outbox: "queue.Queue[Any]",
    cancel_event: threading.Event,
) -> threading.Thread:
    """Drive ``crawl_people`` on a daemon thread with its own event loop."""

    async def _pump() -> None:
        async for event in crawl_people(cancel_event=cancel_event, **kwargs):
            outbox.put(event.to_dict())

    def _run() -> None:
        try:
            asyncio.run(_pump())
        except Exception as exc:  # noqa: BLE001
            log_line(f"[API] Crawl thread failed: {exc}")
            outbox.put(events.error(short_error_message(exc), code=ErrorCode.INTERNAL).to_dict())
        finally:
            outbox.put(_STREAM_END)

    thread = threading.Thread(target=_run, daemon=True)
    thread.start()
    return thread


def _event_stream(kwargs: Dict[str, Any]) -> Generator[str, None, None]:
    """Yield SSE messages for one crawl; a closed client cancels the crawl."""

    outbox: "queue.Queue[Any]" = queue.Queue()
    cancel_event = threading.Event()

    yield _sse(events.progress(Status.CONNECTED, "Connected to scraping service").to_dict())
    _run_crawl_in_thread(kwargs, outbox, cancel_event)

    finished = False
    try:
        while True:
            try:
                item = outbox.get(timeout=HEARTBEAT_SECONDS)
            except queue.Empty:
                yield ": heartbeat\n\n"
                continue
            if item is _STREAM_END:
                finished = True
                break
            yield _sse(item)
    finally:
        if not finished:
            _crawler_event("state", phase="client_disconnected")
            cancel_event.set()


def _parse_max_pages(raw: Optional[str]) -> Optional[int]:
    if raw is None or not raw.strip():
        return None
    return int(raw)


@app.get("/api/people-search")
def people_search() -> Response:
    """Stream one people-search crawl as Server-Sent Events."""

    keywords = (request.args.get("q") or "").strip() or None
    search_url = (request.args.get("searchUrl") or "").strip() or None
    cookies = (request.args.get("cookies") or "").strip()

    if not cookies:
        return _bad_request("LinkedIn cookies are required")
    if not keywords and not search_url:
        return _bad_request("Search query or search URL is required")

    try:
        max_pages = _parse_max_pages(request.args.get("maxPages"))
        SearchSpec.build(search_url, keywords=keywords, max_pages=max_pages)
    except SearchSpecError as exc:
        return _bad_request(str(exc))
    except ValueError:
        return _bad_request("maxPages must be an integer")

    kwargs = {
        "search_url": search_url,
        "cookies": cookies,
        "keywords": keywords,
        "max_pages": max_pages,
    }
    _crawler_event("state", phase="api_request", keywords=keywords, search_url=search_url, max_pages=max_pages)

    response = Response(_event_stream(kwargs), mimetype="text/event-stream")
    response.headers["Cache-Control"] = "no-cache"
    response.headers["X-Accel-Buffering"] = "no"
    return response


@app.get("/api/health")
def api_health() -> Response:
    """Return a JSON health summary for configuration and optional outputs."""

    result = run_health_checks(entrypoint="ui")
    status = 200 if result.ok else 503
    return jsonify({"ok": result.ok, "checks": result.checks}), status
