"""Politeness delays for long sync runs."""

import random
import time
from typing import Callable

from catalog_sync.config import (
    CATEGORY_DELAY_SECONDS,
    DETAIL_DELAY_SECONDS,
    LONG_PAUSE_INTERVAL_SECONDS,
    LONG_PAUSE_MAX_SECONDS,
    LONG_PAUSE_MIN_SECONDS,
)
from catalog_sync.logging_config import get_logger, log_sync_event

__all__ = ["RateLimiter"]

logger = get_logger("throttle")


class RateLimiter:
    """Fixed delays plus a periodic long pause keyed off wall-clock time.

    The long pause fires whenever ``long_pause_interval`` seconds have passed
    since the run started or since the previous long pause, no matter which
    category or page is being processed.
    """

    def __init__(
        self,
        category_delay: float = CATEGORY_DELAY_SECONDS,
        detail_delay: float = DETAIL_DELAY_SECONDS,
        long_pause_interval: float = LONG_PAUSE_INTERVAL_SECONDS,
        long_pause_min: float = LONG_PAUSE_MIN_SECONDS,
        long_pause_max: float = LONG_PAUSE_MAX_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        uniform: Callable[[float, float], float] = random.uniform,
    ):
        self.category_delay = category_delay
        self.detail_delay = detail_delay
        self.long_pause_interval = long_pause_interval
        self.long_pause_min = long_pause_min
        self.long_pause_max = long_pause_max
        self.clock = clock
        self.sleep = sleep
        self.uniform = uniform
        self._window_start = clock()
        self.long_pauses_taken = 0

    @classmethod
    def disabled(cls) -> "RateLimiter":
        """A limiter that never sleeps."""
        return cls(category_delay=0, detail_delay=0, long_pause_interval=0)

    def start(self) -> None:
        """Begin a new run; the long-pause window starts now."""
        self._window_start = self.clock()
        self.long_pauses_taken = 0

    def maybe_long_pause(self) -> float:
        """Take the long pause if the interval elapsed. Returns seconds slept."""
        if self.long_pause_interval <= 0:
            return 0.0
        elapsed = self.clock() - self._window_start
        if elapsed < self.long_pause_interval:
            return 0.0

        pause = self.uniform(self.long_pause_min, self.long_pause_max)
        logger.info(f"Ran for {elapsed / 60:.0f} min, pausing {pause / 60:.1f} min to stay under the radar")
        log_sync_event("long_pause", {"elapsed_seconds": round(elapsed), "pause_seconds": round(pause)})
        self.sleep(pause)
        self.long_pauses_taken += 1
        self._window_start = self.clock()
        return pause

    def between_pages(self) -> None:
        self.maybe_long_pause()

    def between_details(self) -> None:
        if self.detail_delay > 0:
            self.sleep(self.detail_delay)

    def between_categories(self) -> None:
        self.maybe_long_pause()
        if self.category_delay > 0:
            self.sleep(self.category_delay)
