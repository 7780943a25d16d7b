"""Category page walker.

Walks one category's paginated listing, page by page, and decides per card
whether the product is already known (skip) or new (fetch details). Each
page produces a ``PageBatch``; the incremental walk persists every batch
before loading the next page, so an interrupted walk loses at most the page
it was working on.
"""

import logging
from enum import Enum
from typing import Any, Iterable, Iterator, Optional, Set

from catalog_sync.browser import NavigationError
from catalog_sync.config import DB_PATH, MAX_PAGES_PER_CATEGORY
from catalog_sync.db import (
    STATE_COMPLETE,
    STATE_FAILED,
    STATE_INTERRUPTED,
    get_resume_marker,
    mark_category_finished,
    update_scrape_state,
)
from catalog_sync.extractors import ListingExtractor, RebikeListingExtractor
from catalog_sync.fetcher import DetailFetcher
from catalog_sync.logging_config import get_logger, log_sync_event
from catalog_sync.models import (
    CategoryTarget,
    CategoryWalkResult,
    PageBatch,
    ProductRecord,
    WalkStatus,
)
from catalog_sync.shutdown import shutdown_requested
from catalog_sync.store import CategoryCatalogStore, StorageError
from catalog_sync.throttle import RateLimiter
from catalog_sync.url_utils import build_page_url

__all__ = [
    "WalkState",
    "CategoryWalker",
]

logger = get_logger("walker")

_DB_STATUS = {
    WalkStatus.COMPLETE: STATE_COMPLETE,
    WalkStatus.INTERRUPTED: STATE_INTERRUPTED,
    WalkStatus.FAILED: STATE_FAILED,
}


class WalkState(str, Enum):
    LOADING_PAGE = "loading_page"
    EXTRACTING_CARDS = "extracting_cards"
    SKIPPING_KNOWN = "skipping_known"
    FETCHING_NEW = "fetching_new"
    PAGINATING = "paginating"
    DONE = "done"


class CategoryWalker:
    """Walks category listings and turns new cards into product records."""

    def __init__(
        self,
        store: CategoryCatalogStore,
        fetcher: Optional[DetailFetcher] = None,
        listing_extractor: Optional[ListingExtractor] = None,
        throttle: Optional[RateLimiter] = None,
        db_path: str = DB_PATH,
        max_pages: int = MAX_PAGES_PER_CATEGORY,
    ):
        self.store = store
        self.fetcher = fetcher or DetailFetcher()
        self.listing_extractor = listing_extractor or RebikeListingExtractor()
        self.throttle = throttle or RateLimiter()
        self.db_path = db_path
        self.max_pages = max_pages
        self.state = WalkState.DONE

    def _transition(self, state: WalkState, category: str, page_num: int) -> None:
        if state != self.state:
            logger.debug(f"[{category}] page {page_num}: {self.state.value} -> {state.value}")
        self.state = state

    def iter_pages(
        self,
        session: Any,
        target: CategoryTarget,
        reference_urls: Iterable[str] = (),
        resume_url: Optional[str] = None,
        skip_known: bool = True,
    ) -> Iterator[PageBatch]:
        """Yield one ``PageBatch`` per listing page.

        Args:
            session: Browser session shared with the detail fetcher
            target: Category to walk
            reference_urls: Snapshot of URLs already stored for the category
            resume_url: Last persisted card URL of an interrupted walk
            skip_known: Skip cards whose URL is in ``reference_urls``

        Raises:
            NavigationError: If a listing page could not be loaded
        """
        known: Set[str] = set(reference_urls) if skip_known else set()
        seen: Set[str] = set()
        marker = resume_url
        page_num = 1

        while True:
            self._transition(WalkState.LOADING_PAGE, target.tag, page_num)
            page_url = build_page_url(target.url, page_num)
            logger.info(f"  [{target.tag}] Page {page_num}: {page_url}")
            listing = self.listing_extractor.load_listing(session, page_url)

            if listing is None:
                logger.info(f"  [{target.tag}] No product cards on page {page_num}, stopping")
                break

            self._transition(WalkState.EXTRACTING_CARDS, target.tag, page_num)
            cards = []
            repeats = 0
            for card in listing.cards:
                if not card.title or not card.url:
                    continue
                if card.url in seen:
                    repeats += 1
                    continue
                seen.add(card.url)
                cards.append(card)

            if repeats and not cards:
                logger.warning(f"  [{target.tag}] Page {page_num} repeats earlier cards only, stopping")
                break

            if marker and page_num == 1 and marker not in {c.url for c in cards}:
                logger.warning(f"  [{target.tag}] Resume marker not on page 1, ignoring it: {marker}")
                marker = None

            batch = PageBatch(page_num=page_num, cards=cards, has_next=listing.has_next)
            for card in cards:
                if marker:
                    self._transition(WalkState.SKIPPING_KNOWN, target.tag, page_num)
                    if card.url == marker:
                        logger.info(f"  [{target.tag}] Reached resume marker, continuing normally")
                        marker = None
                    continue

                if card.url in known:
                    self._transition(WalkState.SKIPPING_KNOWN, target.tag, page_num)
                    logger.debug(f"    Skipping known product: {card.url}")
                    continue

                self._transition(WalkState.FETCHING_NEW, target.tag, page_num)
                logger.info(f"    Fetching details: {card.title[:60]}")
                detail = self.fetcher.fetch(session, card.url)
                if detail.degraded:
                    batch.details_degraded += 1
                batch.new_records.append(ProductRecord.from_card(card, detail, target.tag))
                known.add(card.url)
                self.throttle.between_details()

            logger.info(
                f"  [{target.tag}] Page {page_num}: {len(cards)} cards, "
                f"{len(batch.new_records)} new"
            )
            yield batch

            self._transition(WalkState.PAGINATING, target.tag, page_num)
            if not listing.has_next:
                logger.info(f"  [{target.tag}] No next page after page {page_num}")
                break
            if page_num >= self.max_pages:
                logger.warning(f"  [{target.tag}] Reached page ceiling ({self.max_pages}), stopping")
                break
            page_num += 1
            self.throttle.between_pages()

        self._transition(WalkState.DONE, target.tag, page_num)

    def walk(self, session: Any, target: CategoryTarget) -> CategoryWalkResult:
        """Incremental walk: skip known products and persist after every page.

        Known products whose title or price changed on the listing are
        refreshed in the same write. A stored resume marker from an
        unfinished walk is honored. Listing navigation failures and stop
        requests end the walk as interrupted, keeping the marker for the
        next run.

        Raises:
            StorageError: If the catalog could not be read or a page could not be persisted
        """
        result = CategoryWalkResult(category=target.tag)
        reference_urls = self.store.existing_urls(target.tag)
        resume_url = get_resume_marker(self.db_path, target.tag)
        if resume_url:
            logger.info(f"  [{target.tag}] Resuming after {resume_url}")

        log_sync_event("category_start", {
            "category": target.tag,
            "stored_products": len(reference_urls),
            "resume_url": resume_url,
        })

        try:
            for batch in self.iter_pages(session, target, reference_urls, resume_url, skip_known=True):
                total = self.store.append_incremental(
                    target.tag, batch.new_records, refreshed_cards=batch.cards
                )
                update_scrape_state(self.db_path, target.tag, batch.page_num, batch.last_card_url, total)
                result.fold(batch)
                log_sync_event("page_persisted", {
                    "category": target.tag,
                    "page": batch.page_num,
                    "cards": len(batch.cards),
                    "new": len(batch.new_records),
                    "total": total,
                }, level=logging.DEBUG)

                if shutdown_requested():
                    logger.warning(f"  [{target.tag}] Stop requested, interrupting after page {batch.page_num}")
                    result.status = WalkStatus.INTERRUPTED
                    break
        except NavigationError as e:
            logger.error(f"  [{target.tag}] Listing navigation failed: {e}")
            result.status = WalkStatus.INTERRUPTED
            result.error = str(e)
        except StorageError as e:
            logger.error(f"  [{target.tag}] {e}")
            mark_category_finished(self.db_path, target.tag, STATE_FAILED)
            raise

        stored = self.store.count(target.tag)
        mark_category_finished(self.db_path, target.tag, _DB_STATUS[result.status], stored)
        log_sync_event("category_complete", {
            "category": target.tag,
            "status": result.status.value,
            "pages": result.pages_walked,
            "found": len(result.cards),
            "new": len(result.new_records),
            "degraded": result.details_degraded,
            "stored": stored,
        })
        return result

    def collect(self, session: Any, target: CategoryTarget) -> CategoryWalkResult:
        """Full walk without skip logic or persistence, for a full reload."""
        result = CategoryWalkResult(category=target.tag)
        log_sync_event("category_start", {"category": target.tag, "mode": "full_reload"})
        try:
            for batch in self.iter_pages(session, target, skip_known=False):
                result.fold(batch)
                if shutdown_requested():
                    logger.warning(f"  [{target.tag}] Stop requested, interrupting after page {batch.page_num}")
                    result.status = WalkStatus.INTERRUPTED
                    break
        except NavigationError as e:
            logger.error(f"  [{target.tag}] Listing navigation failed: {e}")
            result.status = WalkStatus.INTERRUPTED
            result.error = str(e)
        return result

