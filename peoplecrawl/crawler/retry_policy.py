from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Callable, Optional

from . import config
from .error_codes import ErrorCode
from .logging_utils import _crawler_event

RETRYABLE_ERROR_CODES = {
    ErrorCode.NAVIGATION_TIMEOUT,
    ErrorCode.UNEXPECTED_REDIRECT,
    ErrorCode.NAVIGATION_ERROR,
}

NON_RETRYABLE_ERROR_CODES = {
    ErrorCode.MISSING_TOKEN,
    ErrorCode.NOT_AUTHENTICATED,
    # The session itself is unusable; another attempt only burns the account.
    ErrorCode.SESSION_EXPIRED,
    ErrorCode.BLOCKED,
    ErrorCode.INVALID_SEARCH,
    ErrorCode.BROWSER_CLOSED,
    ErrorCode.CANCELLED,
}


def compute_backoff_seconds(attempt_index: int, rng: Optional[random.Random] = None) -> float:
    """Return a short randomized backoff for the given attempt (1-based)."""

    rand = rng or random
    base = config.NAV_RETRY_BASE_SECONDS * max(1, attempt_index)
    jitter = rand.uniform(0, config.NAV_RETRY_JITTER_SECONDS) if config.NAV_RETRY_JITTER_SECONDS > 0 else 0.0
    return float(max(0.0, base + jitter))


def decide_retry(
    attempt_index: int,
    max_attempts: int,
    *,
    error_code: Optional[str] = None,
    page: Optional[int] = None,
) -> bool:
    """Decide whether a failed navigation attempt should be retried."""

    code = (error_code or "").strip()

    if code in NON_RETRYABLE_ERROR_CODES:
        _crawler_event(
            "state",
            phase="retry_decision",
            kind="non_retryable",
            error_code=code,
            attempt=attempt_index,
            max_attempts=max_attempts,
            page=page,
            will_retry=False,
        )
        return False

    if attempt_index >= max_attempts:
        _crawler_event(
            "state",
            phase="retry_decision",
            kind="capped",
            error_code=code or None,
            attempt=attempt_index,
            max_attempts=max_attempts,
            page=page,
            will_retry=False,
        )
        return False

    will_retry = code in RETRYABLE_ERROR_CODES
    _crawler_event(
        "state",
        phase="retry_decision",
        kind="retryable" if will_retry else ("unknown" if code else "missing_error_code"),
        error_code=code or None,
        attempt=attempt_index,
        max_attempts=max_attempts,
        page=page,
        will_retry=will_retry,
    )
    return will_retry


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded attempts plus a backoff schedule for transient failures."""

    max_attempts: int = field(default_factory=lambda: config.NAV_MAX_ATTEMPTS)
    backoff: Callable[[int], float] = compute_backoff_seconds

    def should_retry(self, attempt_index: int, error_code: Optional[str], *, page: Optional[int] = None) -> bool:
        return decide_retry(attempt_index, max(1, self.max_attempts), error_code=error_code, page=page)

    def delay_for(self, attempt_index: int) -> float:
        return max(0.0, float(self.backoff(attempt_index)))


__all__ = [
    "NON_RETRYABLE_ERROR_CODES",
    "RETRYABLE_ERROR_CODES",
    "RetryPolicy",
    "compute_backoff_seconds",
    "decide_retry",
]
