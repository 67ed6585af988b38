from __future__ import annotations

"""Centralised error code taxonomy for crawl failures.

These codes travel on ``error`` events and in structured logs so that a caller
can tell a dead session from a throttled one from a flaky page load. The
taxonomy is intentionally small and should stay stable for consumers.
"""


class ErrorCode:
    MISSING_TOKEN = "missing_token"
    NOT_AUTHENTICATED = "not_authenticated"
    SESSION_EXPIRED = "session_expired"
    BLOCKED = "blocked"
    NAVIGATION_TIMEOUT = "navigation_timeout"
    UNEXPECTED_REDIRECT = "unexpected_redirect"
    NAVIGATION_ERROR = "navigation_error"
    SITE_STRUCTURE = "site_structure_changed"
    INVALID_SEARCH = "invalid_search"
    BROWSER_CLOSED = "browser_closed"
    CANCELLED = "cancelled"
    INTERNAL = "internal_error"


__all__ = ["ErrorCode"]
