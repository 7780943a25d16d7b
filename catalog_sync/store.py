"""Per-category JSON catalog files.

Each category tag owns one file, ``products_<tag>.json``, holding a JSON
array of product records in discovery order. Every write replaces the file
atomically (temp file in the same directory + ``os.replace``), so a crash
mid-write leaves the previously committed catalog intact.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Set

from catalog_sync.config import CATEGORY_TAGS, DATA_DIR
from catalog_sync.logging_config import get_logger
from catalog_sync.models import ListingCard, ProductRecord
from catalog_sync.reconcile import has_listing_changes

__all__ = [
    "StorageError",
    "CategoryCatalogStore",
]

logger = get_logger("store")


class StorageError(Exception):
    """Raised when a category catalog could not be persisted."""
    pass


class CategoryCatalogStore:
    """Load, append to and overwrite per-category product catalogs.

    The store assumes a single writer; callers serialize sync runs.
    """

    def __init__(self, data_dir: str = DATA_DIR, categories: Optional[Sequence[str]] = None):
        self.data_dir = Path(data_dir)
        self.categories = list(categories) if categories is not None else list(CATEGORY_TAGS)

    def path_for(self, category: str) -> Path:
        self._check_category(category)
        return self.data_dir / f"products_{category}.json"

    def _check_category(self, category: str) -> None:
        if category not in self.categories:
            raise ValueError(f"Unknown category '{category}'. Must be one of {self.categories}")

    def load(self, category: str) -> List[ProductRecord]:
        """Return the stored records for a category, or [] if none exist.

        An unreadable catalog is logged and read as empty. Write paths use
        ``_read`` instead so they never replace a catalog they could not read.
        """
        try:
            return self._read(category)
        except StorageError as e:
            logger.error(str(e))
            return []

    def _read(self, category: str) -> List[ProductRecord]:
        path = self.path_for(category)
        if not path.exists():
            return []
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Could not read catalog for {category} ({path}): {e}") from e
        if not isinstance(data, list):
            raise StorageError(f"Catalog for {category} is not a list: {path}")
        return [ProductRecord.from_dict(item) for item in data if isinstance(item, dict)]

    def existing_urls(self, category: str) -> Set[str]:
        return {record.url for record in self.load(category)}

    def contains_url(self, category: str, url: str) -> bool:
        return url in self.existing_urls(category)

    def append_incremental(
        self,
        category: str,
        new_records: Iterable[ProductRecord],
        refreshed_cards: Iterable[ListingCard] = (),
    ) -> int:
        """Append records after the existing ones and persist the full list.

        Stored records matching one of ``refreshed_cards`` take over the
        card's title and prices when those changed, in the same write.
        Records without a title are dropped. Returns the stored total.

        Raises:
            StorageError: If the catalog could not be read or written
        """
        new_records = [r for r in new_records if r.title]
        existing = self._read(category)
        refreshed = _refresh_listings(existing, refreshed_cards)
        if not new_records and not refreshed:
            return len(existing)
        combined = existing + new_records
        self._write(category, combined)
        logger.debug(
            f"Appended {len(new_records)} and refreshed {refreshed} records "
            f"in {category} ({len(combined)} total)"
        )
        return len(combined)

    def overwrite(self, category: str, records: Iterable[ProductRecord]) -> int:
        """Replace the full contents of a category catalog.

        Raises:
            StorageError: If the catalog could not be written
        """
        records = [r for r in records if r.title]
        self._write(category, records)
        logger.info(f"Saved {len(records)} products to {self.path_for(category)}")
        return len(records)

    def remove_urls(self, category: str, urls: Iterable[str]) -> int:
        """Delete records by URL. Returns how many were removed."""
        doomed = set(urls)
        if not doomed:
            return 0
        existing = self._read(category)
        kept = [r for r in existing if r.url not in doomed]
        removed = len(existing) - len(kept)
        if removed:
            self._write(category, kept)
        return removed

    def load_all(self, categories: Optional[Sequence[str]] = None) -> List[ProductRecord]:
        """Concatenate the catalogs of the given (default: all) categories."""
        all_records: List[ProductRecord] = []
        for category in categories or self.categories:
            all_records.extend(self.load(category))
        return all_records

    def count(self, category: str) -> int:
        return len(self.load(category))

    def _write(self, category: str, records: List[ProductRecord]) -> None:
        path = self.path_for(category)
        payload = [record.to_dict() for record in records]
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent)
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
            tmp_name = None
        except (OSError, TypeError, ValueError) as e:
            raise StorageError(f"Failed to write catalog for {category} to {path}: {e}") from e
        finally:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)


def _refresh_listings(records: List[ProductRecord], cards: Iterable[ListingCard]) -> int:
    by_url = {record.url: record for record in records}
    refreshed = 0
    for card in cards:
        record = by_url.get(card.url)
        if record is not None and card.title and has_listing_changes(record, card):
            record.refresh_listing(card)
            refreshed += 1
    return refreshed
