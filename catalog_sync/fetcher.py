"""Product detail fetching with bounded retries."""

import logging
import time
from typing import Any, Callable, Optional

from catalog_sync.browser import NavigationError
from catalog_sync.config import (
    DETAIL_BACKOFF_SECONDS,
    DETAIL_MAX_ATTEMPTS,
    NAVIGATION_TIMEOUT_MS,
)
from catalog_sync.extractors import DetailExtractor, RebikeDetailExtractor
from catalog_sync.logging_config import get_logger, log_sync_event
from catalog_sync.models import DetailResult

__all__ = ["DetailFetcher"]

logger = get_logger("fetcher")


class DetailFetcher:
    """Fetch product details, degrading to a placeholder instead of failing.

    Attempt ``n`` that fails is followed by a pause of
    ``backoff_seconds * n`` before the next attempt, up to ``max_attempts``
    attempts in total.
    """

    def __init__(
        self,
        extractor: Optional[DetailExtractor] = None,
        max_attempts: int = DETAIL_MAX_ATTEMPTS,
        backoff_seconds: float = DETAIL_BACKOFF_SECONDS,
        timeout_ms: int = NAVIGATION_TIMEOUT_MS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.extractor = extractor or RebikeDetailExtractor()
        self.max_attempts = max(1, max_attempts)
        self.backoff_seconds = backoff_seconds
        self.timeout_ms = timeout_ms
        self.sleep = sleep

    def fetch(self, session: Any, url: str) -> DetailResult:
        """Return the product's details, or a degraded placeholder.

        Never raises for navigation or extraction failures.
        """
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                return self.extractor.load_detail(session, url, self.timeout_ms)
            except NavigationError as e:
                last_error = e
                kind = "Timeout" if e.timed_out else "Navigation error"
                logger.warning(f"      {kind} loading details (attempt {attempt}/{self.max_attempts}): {url}")
            except Exception as e:
                last_error = e
                logger.warning(
                    f"      Failed to extract details (attempt {attempt}/{self.max_attempts}): {url} - {e}"
                )

            if attempt < self.max_attempts:
                backoff = self.backoff_seconds * attempt
                logger.info(f"      Retrying in {backoff:.0f}s")
                self.sleep(backoff)

        logger.error(f"      Giving up on details after {self.max_attempts} attempts: {url}")
        log_sync_event("detail_degraded", {
            "url": url,
            "attempts": self.max_attempts,
            "error": str(last_error),
        }, level=logging.WARNING)
        return DetailResult.placeholder()
