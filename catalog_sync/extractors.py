"""Site-specific page extraction behind a small interface.

The walker and the detail fetcher only talk to ``ListingExtractor`` and
``DetailExtractor``. The rebike.com implementations drive a
``BrowserSession`` and parse the rendered HTML; tests plug in fixtures
that serve canned pages without a browser.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, List, Optional

from catalog_sync.config import LISTING_WAIT_MS, NAVIGATION_TIMEOUT_MS
from catalog_sync.html_utils import (
    CARD_SELECTOR,
    extract_listing_cards,
    has_next_page,
    parse_detail_page,
)
from catalog_sync.models import DetailResult, ListingCard

__all__ = [
    "ListingPage",
    "ListingExtractor",
    "DetailExtractor",
    "RebikeListingExtractor",
    "RebikeDetailExtractor",
]


@dataclass
class ListingPage:
    """Cards found on one listing page and whether pagination continues."""

    cards: List[ListingCard] = field(default_factory=list)
    has_next: bool = False


class ListingExtractor(ABC):
    """Loads a category listing page and extracts its cards."""

    @abstractmethod
    def load_listing(self, session: Any, url: str) -> Optional[ListingPage]:
        """Navigate to a listing page.

        Returns None when the card selector never appeared.

        Raises:
            NavigationError: If the page could not be loaded
        """


class DetailExtractor(ABC):
    """Loads a product page and extracts images, description and specs."""

    @abstractmethod
    def load_detail(self, session: Any, url: str, timeout_ms: int) -> DetailResult:
        """Navigate to a product page and extract its details.

        Raises:
            NavigationError: If the page could not be loaded
        """


class RebikeListingExtractor(ListingExtractor):
    def __init__(self, wait_ms: int = LISTING_WAIT_MS, timeout_ms: int = NAVIGATION_TIMEOUT_MS):
        self.wait_ms = wait_ms
        self.timeout_ms = timeout_ms

    def load_listing(self, session: Any, url: str) -> Optional[ListingPage]:
        session.goto(url, timeout_ms=self.timeout_ms)
        if not session.wait_for_selector(CARD_SELECTOR, self.wait_ms):
            return None
        html = session.content()
        return ListingPage(cards=extract_listing_cards(html), has_next=has_next_page(html))


class RebikeDetailExtractor(DetailExtractor):
    def load_detail(self, session: Any, url: str, timeout_ms: int) -> DetailResult:
        session.goto(url, timeout_ms=timeout_ms)
        return parse_detail_page(session.content())
