from __future__ import annotations

import pytest

from peoplecrawl.crawler import config


@pytest.fixture
def fast_config(monkeypatch: pytest.MonkeyPatch) -> None:
    """Zero every pacing knob so crawls run instantly under asyncio.run."""

    for name in (
        "PAGE_SETTLE_SECONDS",
        "POST_SCROLL_SETTLE_SECONDS",
        "PAGE_DELAY_BASE_SECONDS",
        "PAGE_DELAY_PER_PAGE_SECONDS",
        "PAGE_DELAY_JITTER_SECONDS",
        "HIGH_RISK_DELAY_BONUS_SECONDS",
        "ERROR_COOLDOWN_SECONDS",
        "NAV_RETRY_BASE_SECONDS",
        "NAV_RETRY_JITTER_SECONDS",
    ):
        monkeypatch.setattr(config, name, 0.0)
    for name in (
        "SCROLL_PAUSE_MIN_MS",
        "SCROLL_PAUSE_MAX_MS",
        "SCROLL_LONG_PAUSE_MIN_MS",
        "SCROLL_LONG_PAUSE_MAX_MS",
    ):
        monkeypatch.setattr(config, name, 0)
    monkeypatch.setattr(config, "DIAGNOSTICS_DIR", None)
