"""Configuration constants for the people-search crawler."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Optional


def _parse_timeout_seconds(env_var: str, default: int, *, minimum: int = 1) -> int:
    """Parse a timeout value in seconds from the environment with bounds."""

    try:
        value = int(os.getenv(env_var, str(default)))
    except ValueError:
        return default
    return max(minimum, value)


def _parse_float(env_var: str, default: float) -> float:
    try:
        return float(os.getenv(env_var, str(default)))
    except ValueError:
        return default


def _optional_path(env_var: str) -> Optional[Path]:
    raw = os.getenv(env_var, "").strip()
    return Path(raw) if raw else None


# Target platform
TARGET_DOMAIN: str = os.getenv("PEOPLECRAWL_TARGET_DOMAIN", "linkedin.com").strip().lower()
DEFAULT_SEARCH_URL: str = "https://www.linkedin.com/search/results/people/"
SESSION_CHECK_URL: str = "https://www.linkedin.com/feed/"
AUTH_COOKIE_NAME: str = os.getenv("PEOPLECRAWL_AUTH_COOKIE", "li_at").strip() or "li_at"
COOKIE_DOMAIN: str = "." + TARGET_DOMAIN

# The platform renders a fixed number of people per results page and never
# exposes more than PLATFORM_RESULT_CAP results for any query.
RESULTS_PER_PAGE: int = 10
PLATFORM_RESULT_CAP: int = 1000
DEFAULT_MAX_PAGES: int = int(os.getenv("PEOPLECRAWL_MAX_PAGES", "100"))
# Used when the result-count probe finds nothing on the first page.
DEFAULT_TOTAL_RESULTS: int = 10

# Navigation timeouts (seconds)
NAV_TIMEOUT_SECONDS: int = _parse_timeout_seconds("PEOPLECRAWL_NAV_TIMEOUT_SECONDS", 30)
# Pages from HIGH_RISK_PAGE_THRESHOLD onwards are throttled more aggressively.
HIGH_RISK_NAV_TIMEOUT_SECONDS: int = _parse_timeout_seconds(
    "PEOPLECRAWL_HIGH_RISK_NAV_TIMEOUT_SECONDS", 60
)
HIGH_RISK_PAGE_THRESHOLD: int = int(os.getenv("PEOPLECRAWL_HIGH_RISK_PAGE", "6"))
SELECTOR_TIMEOUT_SECONDS: int = _parse_timeout_seconds(
    "PEOPLECRAWL_SELECTOR_TIMEOUT_SECONDS", 15
)
SESSION_NAV_SELECTOR_TIMEOUT_SECONDS: int = _parse_timeout_seconds(
    "PEOPLECRAWL_SESSION_SELECTOR_TIMEOUT_SECONDS", 15
)

# Retry / abort policy
NAV_MAX_ATTEMPTS: int = int(os.getenv("PEOPLECRAWL_NAV_MAX_ATTEMPTS", "3"))
NAV_RETRY_BASE_SECONDS: float = _parse_float("PEOPLECRAWL_NAV_RETRY_BASE_SECONDS", 2.0)
NAV_RETRY_JITTER_SECONDS: float = _parse_float("PEOPLECRAWL_NAV_RETRY_JITTER_SECONDS", 1.5)
CONSECUTIVE_ERROR_BUDGET: int = int(os.getenv("PEOPLECRAWL_ERROR_BUDGET", "3"))
ERROR_COOLDOWN_SECONDS: float = _parse_float("PEOPLECRAWL_ERROR_COOLDOWN_SECONDS", 15.0)

# Pacing (seconds)
PAGE_SETTLE_SECONDS: float = _parse_float("PEOPLECRAWL_PAGE_SETTLE_SECONDS", 7.0)
POST_SCROLL_SETTLE_SECONDS: float = _parse_float("PEOPLECRAWL_POST_SCROLL_SETTLE_SECONDS", 3.0)
PAGE_DELAY_BASE_SECONDS: float = _parse_float("PEOPLECRAWL_PAGE_DELAY_BASE_SECONDS", 5.0)
PAGE_DELAY_PER_PAGE_SECONDS: float = _parse_float("PEOPLECRAWL_PAGE_DELAY_PER_PAGE_SECONDS", 1.0)
PAGE_DELAY_JITTER_SECONDS: float = _parse_float("PEOPLECRAWL_PAGE_DELAY_JITTER_SECONDS", 3.0)
HIGH_RISK_PAGES: tuple[int, ...] = (7, 8, 9, 10)
HIGH_RISK_DELAY_BONUS_SECONDS: float = 5.0
CANCEL_CHECK_INTERVAL_SECONDS: float = 0.25

# Scroll simulation
SCROLL_STEP_PX: int = int(os.getenv("PEOPLECRAWL_SCROLL_STEP_PX", "300"))
SCROLL_STEP_JITTER_PX: int = 60
SCROLL_PAUSE_MIN_MS: int = 50
SCROLL_PAUSE_MAX_MS: int = 350
SCROLL_LONG_PAUSE_CHANCE: float = 0.2
SCROLL_LONG_PAUSE_MIN_MS: int = 1000
SCROLL_LONG_PAUSE_MAX_MS: int = 2500
SCROLL_REVERSE_CHANCE: float = 0.1
SCROLL_REVERSE_MIN_PX: int = 50
SCROLL_REVERSE_MAX_PX: int = 150
SCROLL_MAX_STEPS: int = int(os.getenv("PEOPLECRAWL_SCROLL_MAX_STEPS", "60"))

# Optional instrumentation. Both stay disabled unless configured.
DIAGNOSTICS_DIR: Optional[Path] = _optional_path("PEOPLECRAWL_DIAGNOSTICS_DIR")
LOG_FILE: Optional[Path] = _optional_path("PEOPLECRAWL_LOG_FILE")

# Browser fingerprint
USER_AGENT: str = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
)
VIEWPORT: dict[str, int] = {"width": 1280, "height": 800}
BROWSER_ARGS: list[str] = [
    "--disable-blink-features=AutomationControlled",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--disable-gpu",
]
BLOCKED_RESOURCE_TYPES: frozenset[str] = frozenset({"media", "font"})
BLOCKED_URL_FRAGMENTS: tuple[str, ...] = (
    "analytics",
    "/li/track",
    "tracking",
    "/pixel/",
    "ads.linkedin.com",
)


def max_pages_limit() -> int:
    """Return the largest page count the platform can ever serve."""

    return max(1, PLATFORM_RESULT_CAP // max(1, RESULTS_PER_PAGE))
