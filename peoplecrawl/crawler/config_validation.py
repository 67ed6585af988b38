from __future__ import annotations

from typing import Literal, Optional

from . import config
from .logging_utils import _crawler_event
from .utils import log_line

Entrypoint = Literal["ui", "cli", "health", "tests"]


def _raise_config_error(message: str, *, entrypoint: Entrypoint, error: str) -> None:
    _crawler_event(
        "error",
        phase="config",
        context="runtime_validation",
        error=error,
        entrypoint=entrypoint,
    )
    log_line(f"[CONFIG] {message} (entrypoint={entrypoint})")
    raise ValueError(message)


def validate_runtime_config(entrypoint: Entrypoint, *, max_pages: Optional[int] = None) -> Optional[int]:
    """Validate runtime configuration for the given entrypoint.

    Raises ``ValueError`` when a blocking misconfiguration is detected.
    An out-of-range ``max_pages`` is clamped and logged; the effective value
    is returned (``None`` when no value was supplied).
    """

    for name in (
        "NAV_TIMEOUT_SECONDS",
        "HIGH_RISK_NAV_TIMEOUT_SECONDS",
        "SELECTOR_TIMEOUT_SECONDS",
        "NAV_MAX_ATTEMPTS",
        "CONSECUTIVE_ERROR_BUDGET",
        "RESULTS_PER_PAGE",
        "PLATFORM_RESULT_CAP",
    ):
        value = getattr(config, name)
        if value < 1:
            _raise_config_error(
                f"{name} must be at least 1, got {value}.",
                entrypoint=entrypoint,
                error=f"{name.lower()}_invalid",
            )

    for name in (
        "PAGE_SETTLE_SECONDS",
        "POST_SCROLL_SETTLE_SECONDS",
        "PAGE_DELAY_BASE_SECONDS",
        "ERROR_COOLDOWN_SECONDS",
    ):
        value = getattr(config, name)
        if value < 0:
            _raise_config_error(
                f"{name} must not be negative, got {value}.",
                entrypoint=entrypoint,
                error=f"{name.lower()}_negative",
            )

    if not config.AUTH_COOKIE_NAME:
        _raise_config_error(
            "AUTH_COOKIE_NAME must not be empty.",
            entrypoint=entrypoint,
            error="auth_cookie_name_missing",
        )

    if max_pages is None:
        return None

    limit = config.max_pages_limit()
    adjusted = min(max(1, int(max_pages)), limit)
    if adjusted != max_pages:
        _crawler_event(
            "state",
            phase="config",
            context="runtime_validation",
            kind="config_adjustment",
            field="max_pages",
            value=max_pages,
            adjusted=adjusted,
            entrypoint=entrypoint,
        )
        log_line(f"[CONFIG] maxPages={max_pages} outside 1..{limit}; clamping to {adjusted}.")
    return adjusted


__all__ = ["validate_runtime_config"]
