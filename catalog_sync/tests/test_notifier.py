"""Tests for sync notifications."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from catalog_sync.models import SyncSummary
from catalog_sync.notifier import LogNotifier, Notifier, WebhookNotifier, get_default_notifier


def _summary():
    return SyncSummary(
        timestamp="2024-05-01T02:00:00.000Z",
        action="sync",
        added_count=3,
        removed_count=1,
        updated_count=2,
        total_products=120,
        categories=["city"],
    )


class TestWebhookNotifier:

    def test_posts_summary_json(self):
        session = MagicMock()
        session.post.return_value.status_code = 204
        notifier = WebhookNotifier("https://hooks.example/sync", timeout=5, session=session)

        notifier.notify(_summary())

        session.post.assert_called_once_with(
            "https://hooks.example/sync",
            json={
                "timestamp": "2024-05-01T02:00:00.000Z",
                "action": "sync",
                "addedCount": 3,
                "removedCount": 1,
                "updatedCount": 2,
                "totalProducts": 120,
                "categories": ["city"],
            },
            timeout=5,
        )

    def test_http_error_is_logged_not_raised(self):
        session = MagicMock()
        session.post.return_value.raise_for_status.side_effect = requests.HTTPError("502 Bad Gateway")
        WebhookNotifier("https://hooks.example/sync", session=session).notify(_summary())

    def test_connection_error_is_logged_not_raised(self):
        session = MagicMock()
        session.post.side_effect = requests.ConnectionError("refused")
        WebhookNotifier("https://hooks.example/sync", session=session).notify(_summary())


class TestDefaultNotifier:

    def test_base_notifier_is_abstract(self):
        with pytest.raises(TypeError):
            Notifier()

    def test_log_notifier_without_webhook(self):
        with patch("catalog_sync.notifier.NOTIFY_WEBHOOK_URL", None):
            assert isinstance(get_default_notifier(), LogNotifier)

    def test_webhook_notifier_when_configured(self):
        with patch("catalog_sync.notifier.NOTIFY_WEBHOOK_URL", "https://hooks.example/sync"):
            notifier = get_default_notifier()
        assert isinstance(notifier, WebhookNotifier)
        assert notifier.url == "https://hooks.example/sync"

    def test_log_notifier_logs(self, caplog):
        with caplog.at_level("INFO", logger="catalog_sync"):
            LogNotifier().notify(_summary())
        assert "+3 -1 ~2" in caplog.text


class TestSyncSummary:

    def test_has_changes(self):
        assert _summary().has_changes()
        assert not SyncSummary(timestamp="t", action="sync").has_changes()

    def test_change_log_entry(self):
        entry = _summary().to_change_log_entry()
        assert entry.counts == {"added": 3, "removed": 1, "updated": 2, "total": 120}
        assert entry.action == "sync"
