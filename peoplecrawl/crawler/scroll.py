"""Randomized incremental scrolling to trigger lazy-loaded results."""

from __future__ import annotations

import asyncio
import random
from typing import Any, Awaitable, Callable, Dict, Optional

from . import config
from .browser import BrowsingContext
from .logging_utils import _crawler_event

Sleep = Callable[[float], Awaitable[Any]]

_METRICS_SCRIPT = """
() => ({
    scrollHeight: Math.max(
        document.body ? document.body.scrollHeight : 0,
        document.documentElement ? document.documentElement.scrollHeight : 0
    ),
    innerHeight: window.innerHeight || 0,
    scrollY: window.scrollY || window.pageYOffset || 0,
})
"""

_SCROLL_BY_SCRIPT = "(dy) => { window.scrollBy(0, dy); }"


def _as_int(metrics: Any, key: str) -> int:
    if not isinstance(metrics, dict):
        return 0
    value = metrics.get(key, 0)
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


class ScrollDriver:
    def __init__(
        self,
        *,
        rng: Optional[random.Random] = None,
        sleep: Sleep = asyncio.sleep,
        max_steps: Optional[int] = None,
    ) -> None:
        self.rng = rng or random.Random()
        self.sleep = sleep
        self.max_steps = config.SCROLL_MAX_STEPS if max_steps is None else max_steps

    def _step_size(self) -> int:
        jitter = self.rng.randint(-config.SCROLL_STEP_JITTER_PX, config.SCROLL_STEP_JITTER_PX)
        return max(1, config.SCROLL_STEP_PX + jitter)

    def _pause_seconds(self) -> float:
        if self.rng.random() < config.SCROLL_LONG_PAUSE_CHANCE:
            ms = self.rng.randint(config.SCROLL_LONG_PAUSE_MIN_MS, config.SCROLL_LONG_PAUSE_MAX_MS)
        else:
            ms = self.rng.randint(config.SCROLL_PAUSE_MIN_MS, config.SCROLL_PAUSE_MAX_MS)
        return ms / 1000.0

    async def _metrics(self, context: BrowsingContext) -> Dict[str, int]:
        raw = await context.evaluate(_METRICS_SCRIPT)
        return {key: _as_int(raw, key) for key in ("scrollHeight", "innerHeight", "scrollY")}

    async def settle(self, context: BrowsingContext) -> int:
        """Scroll the page top to bottom; returns the number of steps taken.

        Never raises: partial loading is acceptable degradation.
        """

        steps = 0
        reversals = 0
        try:
            metrics = await self._metrics(context)
            total_height = metrics["scrollHeight"]
            viewport = metrics["innerHeight"]
            scrolled = 0

            await self.sleep(self._pause_seconds())
            while steps < self.max_steps:
                steps += 1
                if scrolled > viewport and self.rng.random() < config.SCROLL_REVERSE_CHANCE:
                    up = self.rng.randint(config.SCROLL_REVERSE_MIN_PX, config.SCROLL_REVERSE_MAX_PX)
                    await context.evaluate(_SCROLL_BY_SCRIPT, -up)
                    scrolled = max(0, scrolled - up)
                    reversals += 1
                else:
                    down = self._step_size()
                    await context.evaluate(_SCROLL_BY_SCRIPT, down)
                    scrolled += down

                metrics = await self._metrics(context)
                at_bottom = metrics["innerHeight"] + metrics["scrollY"] >= metrics["scrollHeight"]
                if scrolled >= total_height or at_bottom:
                    break
                await self.sleep(self._pause_seconds())
        except Exception as exc:  # noqa: BLE001
            _crawler_event("scroll", kind="aborted", steps=steps, error=str(exc))
            return steps

        _crawler_event(
            "scroll",
            kind="settled",
            steps=steps,
            reversals=reversals,
            budget_exhausted=steps >= self.max_steps,
        )
        return steps


__all__ = ["ScrollDriver"]
