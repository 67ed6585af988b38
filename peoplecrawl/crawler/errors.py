from __future__ import annotations

from .error_codes import ErrorCode


class CrawlerError(Exception):
    def __init__(self, error_code: str, message: str) -> None:
        super().__init__(message)
        self.error_code = error_code

    def __str__(self) -> str:  # pragma: no cover - inherited behaviour
        return str(self.args[0]) if self.args else ""


class AuthError(CrawlerError):
    """Credentials are unusable: either incomplete or not accepted by the site."""

    @classmethod
    def missing_token(cls, cookie_name: str) -> "AuthError":
        return cls(
            ErrorCode.MISSING_TOKEN,
            f"Missing required authentication cookie ({cookie_name})",
        )

    @classmethod
    def not_authenticated(cls, detail: str = "") -> "AuthError":
        message = "Not logged in. Please provide valid cookies."
        if detail:
            message = f"{message} ({detail})"
        return cls(ErrorCode.NOT_AUTHENTICATED, message)


class SearchSpecError(CrawlerError, ValueError):
    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.INVALID_SEARCH, message)


class BrowserTimeout(CrawlerError):
    """A bounded browser wait expired."""

    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.NAVIGATION_TIMEOUT, message)


class BrowserClosed(CrawlerError):
    """The browsing context is gone and cannot be used again."""

    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.BROWSER_CLOSED, message)


__all__ = [
    "AuthError",
    "BrowserClosed",
    "BrowserTimeout",
    "CrawlerError",
    "SearchSpecError",
]
