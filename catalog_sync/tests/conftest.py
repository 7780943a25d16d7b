"""Shared fixtures: a fake browser session and a fake rebike site.

``FakeSite`` serves canned listing pages and product details through the
same extractor interfaces the real rebike extractors implement, so walks
and whole sync runs can be tested without launching a browser.
"""

import time
from typing import Dict, List, Optional, Sequence, Set
from unittest.mock import MagicMock
from urllib.parse import parse_qs, urlparse

import pytest

from catalog_sync.browser import NavigationError
from catalog_sync.db import init_db
from catalog_sync.extractors import DetailExtractor, ListingExtractor, ListingPage
from catalog_sync.fetcher import DetailFetcher
from catalog_sync.models import CategoryTarget, DetailResult, ListingCard
from catalog_sync.orchestrator import SyncOrchestrator, is_sync_running
from catalog_sync.shutdown import get_shutdown_handler
from catalog_sync.store import CategoryCatalogStore
from catalog_sync.throttle import RateLimiter
from catalog_sync.walker import CategoryWalker

CITY = CategoryTarget("city", "https://rebike.com/de/city-e-bikes")
TREKKING = CategoryTarget("trekking", "https://rebike.com/de/trekkingrad-touren-e-bike-kaufen")


def make_card(
    slug: str,
    title: Optional[str] = None,
    current: Optional[str] = "1.500 €",
    original: Optional[str] = "1.939 €",
) -> ListingCard:
    return ListingCard(
        title=title if title is not None else slug.replace("-", " ").title(),
        url=f"https://rebike.com/de/{slug}",
        current_price_raw=current,
        original_price_raw=original,
        image_url=f"https://rebike-photo-nas.example/{slug}/thumb.jpg",
    )


def _split_page(url: str):
    parsed = urlparse(url)
    page = int(parse_qs(parsed.query).get("page", ["1"])[0])
    base = url.split("?", 1)[0]
    return base, page


class FakeSession:
    """Stands in for BrowserSession; the fake site never touches it."""

    def __init__(self):
        self.pages_opened = 0
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.closed = True

    def new_page(self):
        self.pages_opened += 1


class FakeSite(ListingExtractor, DetailExtractor):
    """Canned listings keyed by category URL, one list of cards per page.

    Attributes:
        listing_failures: Page URLs whose navigation raises NavigationError
        detail_failures: Product URLs whose detail fetch always fails
        broken_categories: Category URLs whose listing raises RuntimeError
        detail_calls: Every product URL a detail fetch was attempted for
    """

    def __init__(self, listings: Optional[Dict[str, Sequence[Sequence[ListingCard]]]] = None):
        self.listings: Dict[str, List[List[ListingCard]]] = {
            url: [list(page) for page in pages] for url, pages in (listings or {}).items()
        }
        self.listing_failures: Set[str] = set()
        self.detail_failures: Set[str] = set()
        self.broken_categories: Set[str] = set()
        self.listing_calls: List[str] = []
        self.detail_calls: List[str] = []

    def set_pages(self, target: CategoryTarget, *pages: Sequence[ListingCard]) -> None:
        self.listings[target.url] = [list(page) for page in pages]

    def load_listing(self, session, url: str) -> Optional[ListingPage]:
        self.listing_calls.append(url)
        base, page = _split_page(url)
        if base in self.broken_categories:
            raise RuntimeError(f"unexpected page structure at {url}")
        if url in self.listing_failures:
            raise NavigationError(url, "Timed out after 45000 ms", timed_out=True)
        pages = self.listings.get(base, [])
        if page > len(pages) or not pages[page - 1]:
            return None
        return ListingPage(cards=list(pages[page - 1]), has_next=page < len(pages))

    def load_detail(self, session, url: str, timeout_ms: int) -> DetailResult:
        self.detail_calls.append(url)
        if url in self.detail_failures:
            raise NavigationError(url, f"Timed out after {timeout_ms} ms", timed_out=True)
        slug = url.rstrip("/").rsplit("/", 1)[-1]
        return DetailResult(
            images=[f"https://rebike-photo-nas.example/{slug}/1.jpg"],
            description=f"{slug} in sehr gutem Zustand",
            specifications={"Motor": "Bosch Performance Line", "Akku": "500 Wh"},
        )


@pytest.fixture(autouse=True)
def reset_shutdown_flag():
    get_shutdown_handler().reset()
    yield
    get_shutdown_handler().reset()


@pytest.fixture
def data_dir(tmp_path):
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def store(data_dir):
    return CategoryCatalogStore(str(data_dir))


@pytest.fixture
def db_path(tmp_path):
    path = str(tmp_path / "sync_state.db")
    init_db(path)
    return path


@pytest.fixture
def site():
    return FakeSite()


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def sleeps():
    """Collects every sleep a component would have taken."""
    return []


@pytest.fixture
def fetcher(site, sleeps):
    return DetailFetcher(extractor=site, max_attempts=3, backoff_seconds=4.0, sleep=sleeps.append)


@pytest.fixture
def walker(store, fetcher, site, db_path):
    return CategoryWalker(
        store=store,
        fetcher=fetcher,
        listing_extractor=site,
        throttle=RateLimiter.disabled(),
        db_path=db_path,
    )


@pytest.fixture
def notifier():
    return MagicMock()


@pytest.fixture
def orchestrator(store, fetcher, site, db_path, notifier):
    return SyncOrchestrator(
        store=store,
        db_path=db_path,
        session_factory=FakeSession,
        fetcher=fetcher,
        listing_extractor=site,
        throttle=RateLimiter.disabled(),
        notifier=notifier,
        targets=[CITY, TREKKING],
    )


def wait_until_idle(timeout: float = 10.0) -> None:
    """Block until no sync run holds the run lock."""
    deadline = time.monotonic() + timeout
    while is_sync_running():
        if time.monotonic() > deadline:
            raise AssertionError("sync run did not finish in time")
        time.sleep(0.02)
