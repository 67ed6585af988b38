from __future__ import annotations

import re
from typing import Any

from . import config
from .utils import log_line

REDACTED = "<redacted>"

# Field names whose values are credentials and must never reach a log line.
_SECRET_FIELDS = frozenset({"cookie", "cookies", "cookie_header", "token", "password", "session_password"})
_SECRET_COOKIES = ("JSESSIONID", "li_rm", "li_mc")


def _cookie_pair_re() -> re.Pattern[str]:
    names = {config.AUTH_COOKIE_NAME, *_SECRET_COOKIES}
    alternation = "|".join(re.escape(name) for name in sorted(names))
    return re.compile(rf"\b({alternation})=(\"[^\"]*\"|[^;,\s'\"]+)", re.I)


def redact(key: str, value: Any) -> Any:
    """Mask credential-bearing fields and inline ``name=value`` session cookies."""

    if key.lower() in _SECRET_FIELDS or key.lower() == config.AUTH_COOKIE_NAME.lower():
        return REDACTED
    if isinstance(value, str):
        return _cookie_pair_re().sub(rf"\1={REDACTED}", value)
    return value


def _crawler_event(label: str = "", *, phase: str | None = None, **fields: Any) -> None:
    """Emit a structured crawler log line.

    ``phase`` may be used as a keyword alias for the label. When both
    ``label`` and ``phase`` are provided, ``phase`` is emitted as part of the
    payload so the caller still captures the event stage. Session cookie
    values are masked wherever they appear.
    """

    try:
        phase_label = label or (phase or "")
        if phase and label:
            fields.setdefault("phase", phase)
        payload = ", ".join(f"{k}={repr(redact(k, v))}" for k, v in sorted(fields.items()))
        log_line(f"[CRAWLER][{phase_label.upper()}] {payload}")
    except Exception:
        # Never let logging break the crawl.
        return


__all__ = ["REDACTED", "_crawler_event", "redact"]
