"""Tests for the browser session error mapping and the rebike extractors."""

from unittest.mock import MagicMock

import pytest
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PWTimeout

from catalog_sync.browser import BrowserSession, NavigationError
from catalog_sync.extractors import RebikeDetailExtractor, RebikeListingExtractor
from catalog_sync.html_utils import CARD_SELECTOR


@pytest.fixture
def browser_session():
    """A BrowserSession wired to mocks instead of a launched browser."""
    session = BrowserSession(navigation_timeout_ms=45000)
    session._browser = MagicMock()
    session._context = MagicMock()
    session._page = MagicMock()
    return session


class TestBrowserSession:

    def test_goto_uses_default_timeout(self, browser_session):
        browser_session.goto("https://rebike.com/de/city-e-bikes?page=1")
        browser_session._page.goto.assert_called_once_with(
            "https://rebike.com/de/city-e-bikes?page=1", wait_until="networkidle", timeout=45000,
        )

    def test_timeout_becomes_navigation_error(self, browser_session):
        browser_session._page.goto.side_effect = PWTimeout("Timeout 45000ms exceeded")

        with pytest.raises(NavigationError) as excinfo:
            browser_session.goto("https://rebike.com/de/x")

        assert excinfo.value.timed_out
        assert excinfo.value.url == "https://rebike.com/de/x"

    def test_playwright_error_becomes_navigation_error(self, browser_session):
        browser_session._page.goto.side_effect = PlaywrightError("net::ERR_CONNECTION_RESET")

        with pytest.raises(NavigationError) as excinfo:
            browser_session.goto("https://rebike.com/de/x")

        assert not excinfo.value.timed_out

    def test_wait_for_selector_timeout_is_false(self, browser_session):
        browser_session._page.wait_for_selector.side_effect = PWTimeout("Timeout 5000ms exceeded")
        assert browser_session.wait_for_selector(".bike-card", 5000) is False

    def test_close_releases_everything(self, browser_session):
        page, context, browser = browser_session._page, browser_session._context, browser_session._browser

        browser_session.close()

        page.close.assert_called_once()
        context.close.assert_called_once()
        browser.close.assert_called_once()
        assert not browser_session.is_started


LISTING = """
<div class="bike-card">
  <a href="/de/cube-kathmandu">Cube Kathmandu</a>
  <p class="css-1bw9inq">1.500 €</p>
</div>
<button aria-label="Next page">›</button>
"""


class TestRebikeExtractors:

    def test_listing_waits_for_cards_then_parses(self):
        session = MagicMock()
        session.wait_for_selector.return_value = True
        session.content.return_value = LISTING

        page = RebikeListingExtractor(wait_ms=5000, timeout_ms=45000).load_listing(
            session, "https://rebike.com/de/city-e-bikes?page=1"
        )

        session.goto.assert_called_once_with("https://rebike.com/de/city-e-bikes?page=1", timeout_ms=45000)
        session.wait_for_selector.assert_called_once_with(CARD_SELECTOR, 5000)
        assert [c.url for c in page.cards] == ["https://rebike.com/de/cube-kathmandu"]
        assert page.has_next

    def test_listing_without_cards_is_none(self):
        session = MagicMock()
        session.wait_for_selector.return_value = False

        assert RebikeListingExtractor().load_listing(session, "https://rebike.com/de/x?page=9") is None
        session.content.assert_not_called()

    def test_listing_navigation_error_propagates(self):
        session = MagicMock()
        session.goto.side_effect = NavigationError("https://rebike.com/de/x", "Timed out", timed_out=True)

        with pytest.raises(NavigationError):
            RebikeListingExtractor().load_listing(session, "https://rebike.com/de/x")

    def test_detail(self):
        session = MagicMock()
        session.content.return_value = (
            '<h1>Cube Kathmandu Hybrid One 750 Trapez</h1>'
            '<img src="https://rebike-photo-nas.example/cube/1.jpg">'
        )

        result = RebikeDetailExtractor().load_detail(session, "https://rebike.com/de/cube", 45000)

        session.goto.assert_called_once_with("https://rebike.com/de/cube", timeout_ms=45000)
        assert result.images == ["https://rebike-photo-nas.example/cube/1.jpg"]
        assert result.description == "Cube Kathmandu Hybrid One 750 Trapez"
