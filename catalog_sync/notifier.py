"""Outbound notifications about sync results."""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import requests

from catalog_sync.config import NOTIFY_WEBHOOK_URL
from catalog_sync.logging_config import get_logger, log_sync_event
from catalog_sync.models import SyncSummary

__all__ = [
    "Notifier",
    "LogNotifier",
    "WebhookNotifier",
    "get_default_notifier",
]

logger = get_logger("notifier")


class Notifier(ABC):
    """Receives the summary of a run that changed the catalog."""

    @abstractmethod
    def notify(self, summary: SyncSummary) -> None:
        pass


class LogNotifier(Notifier):
    def notify(self, summary: SyncSummary) -> None:
        logger.info(
            f"Catalog changed ({summary.action}): +{summary.added_count} "
            f"-{summary.removed_count} ~{summary.updated_count}, "
            f"{summary.total_products} products total"
        )


class WebhookNotifier(Notifier):
    """POST the summary as JSON to a webhook."""

    def __init__(self, url: str, timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def notify(self, summary: SyncSummary) -> None:
        payload = summary.to_dict()
        try:
            response = self.session.post(self.url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            logger.info(f"Sent sync summary to webhook (HTTP {response.status_code})")
        except requests.RequestException as e:
            logger.error(f"Webhook notification failed: {e}")
            log_sync_event("notify_failed", {
                "url": self.url,
                "error": str(e),
            }, level=logging.WARNING)


def get_default_notifier() -> Notifier:
    """Webhook notifier when ``NOTIFY_WEBHOOK_URL`` is set, else log only."""
    if NOTIFY_WEBHOOK_URL:
        return WebhookNotifier(NOTIFY_WEBHOOK_URL)
    return LogNotifier()
