from __future__ import annotations

import logging
import re
import sys
import urllib.parse
from pathlib import Path
from typing import Optional

from . import config

LOGGER = logging.getLogger("peoplecrawl")
_LOGGER_INITIALISED = False
_CURRENT_LOG_FILE: Optional[Path] = None

_WHITESPACE_RE = re.compile(r"\s+")


def _configure_logger(log_path: Optional[Path]) -> None:
    """Configure the shared crawler logger, optionally mirroring to ``log_path``."""

    global _LOGGER_INITIALISED, _CURRENT_LOG_FILE

    for handler in list(LOGGER.handlers):
        LOGGER.removeHandler(handler)
        try:
            handler.close()
        except Exception:  # noqa: BLE001
            continue

    formatter = logging.Formatter(
        fmt="[%(asctime)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)
    LOGGER.addHandler(stream_handler)

    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        LOGGER.addHandler(file_handler)

    LOGGER.setLevel(logging.INFO)
    LOGGER.propagate = False

    _CURRENT_LOG_FILE = log_path
    _LOGGER_INITIALISED = True


def _ensure_logger() -> None:
    """Initialise the logger lazily using the configured log file."""

    if _LOGGER_INITIALISED:
        return
    _configure_logger(config.LOG_FILE)


def get_current_log_path() -> Optional[Path]:
    """Return the log file currently receiving log lines, if any."""

    _ensure_logger()
    return _CURRENT_LOG_FILE


def log_line(message: str) -> None:
    """Write a timestamped log line to stdout and the active log file."""

    _ensure_logger()
    LOGGER.info(message)


def clean_text(value: str | None) -> str:
    """Collapse whitespace and newlines into single spaces."""

    if not value:
        return ""
    return _WHITESPACE_RE.sub(" ", str(value)).strip()


def strip_query(url: str | None) -> str:
    """Drop the query string and fragment from ``url``."""

    raw = (url or "").strip()
    if not raw:
        return ""
    return raw.split("?", 1)[0].split("#", 1)[0]


def normalize_url(raw: str | None, *, page_url: str = "") -> str:
    """Resolve a possibly relative href against ``page_url``."""

    raw = (raw or "").strip()
    if not raw:
        return ""
    lowered = raw.lower()
    if lowered.startswith("javascript:") or raw == "#":
        return ""
    if raw.startswith("//"):
        return "https:" + raw
    if raw.startswith("/"):
        try:
            return urllib.parse.urljoin(page_url or "https://www." + config.TARGET_DOMAIN, raw)
        except Exception:
            return raw
    return raw


def short_error_message(exc: BaseException, max_length: int = 200) -> str:
    """Return a single-line, bounded description of ``exc``."""

    text = clean_text(str(exc)) or exc.__class__.__name__
    if len(text) > max_length:
        return text[: max_length - 3] + "..."
    return text


__all__ = [
    "LOGGER",
    "clean_text",
    "get_current_log_path",
    "log_line",
    "normalize_url",
    "short_error_message",
    "strip_query",
]
