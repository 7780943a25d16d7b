"""Data models for catalog records and sync runs."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from catalog_sync.pricing import normalize_prices
from catalog_sync.url_utils import product_id_from_url

__all__ = [
    "DETAIL_PLACEHOLDER_DESCRIPTION",
    "ListingCard",
    "DetailResult",
    "ProductRecord",
    "CategoryTarget",
    "PageBatch",
    "WalkStatus",
    "CategoryWalkResult",
    "ReconciliationDiff",
    "SyncMode",
    "SyncRun",
    "SyncSummary",
    "ChangeLogEntry",
]

DETAIL_PLACEHOLDER_DESCRIPTION = "Beschreibung wird geladen..."
MAX_IMAGES = 8


def utc_now_iso() -> str:
    return datetime.utcnow().isoformat(timespec="milliseconds") + "Z"


@dataclass
class ListingCard:
    """Lightweight product data visible on a category listing page."""

    title: str
    url: str
    current_price_raw: Optional[str] = None
    original_price_raw: Optional[str] = None
    image_url: Optional[str] = None


@dataclass
class DetailResult:
    """Extended fields collected from a product's own page."""

    images: List[str] = field(default_factory=list)
    description: str = ""
    specifications: Dict[str, str] = field(default_factory=dict)
    degraded: bool = False

    @classmethod
    def placeholder(cls) -> "DetailResult":
        """Result used when every fetch attempt failed."""
        return cls(
            images=[],
            description=DETAIL_PLACEHOLDER_DESCRIPTION,
            specifications={},
            degraded=True,
        )


# Python attribute -> key used in the JSON catalog files
_JSON_KEYS = {
    "id": "id",
    "title": "title",
    "url": "url",
    "image_url": "imageUrl",
    "category": "category",
    "current_price_raw": "currentPriceRaw",
    "original_price_raw": "originalPriceRaw",
    "current_base_price": "currentBasePrice",
    "original_base_price": "originalBasePrice",
    "discount_percent": "discountPercent",
    "images": "images",
    "description": "description",
    "specifications": "specifications",
    "parsed_at": "parsedAt",
}


@dataclass
class ProductRecord:
    """A single catalog item as persisted per category."""

    id: str
    title: str
    url: str
    category: str
    image_url: Optional[str] = None
    current_price_raw: Optional[str] = None
    original_price_raw: Optional[str] = None
    current_base_price: Optional[float] = None
    original_base_price: Optional[float] = None
    discount_percent: int = 0
    images: List[str] = field(default_factory=list)
    description: str = ""
    specifications: Dict[str, str] = field(default_factory=dict)
    parsed_at: str = field(default_factory=utc_now_iso)

    @classmethod
    def from_card(
        cls,
        card: ListingCard,
        detail: DetailResult,
        category: str,
        parsed_at: Optional[str] = None,
    ) -> "ProductRecord":
        """Merge listing card and detail data, normalizing prices."""
        current, original, discount = normalize_prices(
            card.current_price_raw, card.original_price_raw
        )
        return cls(
            id=product_id_from_url(card.url),
            title=card.title,
            url=card.url,
            category=category,
            image_url=card.image_url,
            current_price_raw=card.current_price_raw,
            original_price_raw=card.original_price_raw,
            current_base_price=current,
            original_base_price=original,
            discount_percent=discount,
            images=list(detail.images)[:MAX_IMAGES],
            description=detail.description,
            specifications=dict(detail.specifications),
            parsed_at=parsed_at or utc_now_iso(),
        )

    def refresh_listing(self, card: ListingCard) -> None:
        """Take over title and prices from a newer listing card."""
        current, original, discount = normalize_prices(
            card.current_price_raw, card.original_price_raw
        )
        self.title = card.title
        self.current_price_raw = card.current_price_raw
        self.original_price_raw = card.original_price_raw
        self.current_base_price = current
        self.original_base_price = original
        self.discount_percent = discount

    def to_dict(self) -> Dict[str, Any]:
        return {key: getattr(self, attr) for attr, key in _JSON_KEYS.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProductRecord":
        """Build a record from a stored dict (camelCase or snake_case keys)."""
        values: Dict[str, Any] = {}
        for attr, key in _JSON_KEYS.items():
            if key in data:
                values[attr] = data[key]
            elif attr in data:
                values[attr] = data[attr]
        values.setdefault("id", product_id_from_url(values.get("url", "")))
        values.setdefault("title", "")
        values.setdefault("url", "")
        values.setdefault("category", "")
        if values.get("images") is None:
            values["images"] = []
        if values.get("specifications") is None:
            values["specifications"] = {}
        if values.get("discount_percent") is None:
            values["discount_percent"] = 0
        return cls(**values)


@dataclass(frozen=True)
class CategoryTarget:
    """One entry of the fixed category list."""

    tag: str
    url: str


@dataclass
class PageBatch:
    """Outcome of one pagination step, folded by the caller."""

    page_num: int
    cards: List[ListingCard] = field(default_factory=list)
    new_records: List[ProductRecord] = field(default_factory=list)
    has_next: bool = False
    details_degraded: int = 0

    @property
    def card_urls(self) -> List[str]:
        return [card.url for card in self.cards]

    @property
    def last_card_url(self) -> Optional[str]:
        return self.cards[-1].url if self.cards else None


class WalkStatus(str, Enum):
    COMPLETE = "complete"
    INTERRUPTED = "interrupted"
    FAILED = "failed"


@dataclass
class CategoryWalkResult:
    """Folded result of walking one category."""

    category: str
    status: WalkStatus = WalkStatus.COMPLETE
    pages_walked: int = 0
    cards: Dict[str, ListingCard] = field(default_factory=dict)
    new_records: List[ProductRecord] = field(default_factory=list)
    details_fetched: int = 0
    details_degraded: int = 0
    last_product_url: Optional[str] = None
    error: Optional[str] = None

    @property
    def found_urls(self) -> List[str]:
        return list(self.cards.keys())

    def fold(self, batch: PageBatch) -> None:
        self.pages_walked = max(self.pages_walked, batch.page_num)
        for card in batch.cards:
            self.cards.setdefault(card.url, card)
        self.new_records.extend(batch.new_records)
        self.details_fetched += len(batch.new_records)
        self.details_degraded += batch.details_degraded
        if batch.last_card_url:
            self.last_product_url = batch.last_card_url


@dataclass
class ReconciliationDiff:
    """URL-level difference between the stored catalog and one run."""

    added: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)

    @property
    def counts(self) -> Dict[str, int]:
        return {
            "added": len(self.added),
            "removed": len(self.removed),
            "updated": len(self.updated),
        }

    def has_changes(self) -> bool:
        return bool(self.added or self.removed or self.updated)


class SyncMode(str, Enum):
    INCREMENTAL = "sync"
    FULL_RELOAD = "full_reload"


@dataclass
class SyncRun:
    """In-memory record of a single orchestration pass."""

    mode: SyncMode
    categories: List[str]
    started_at: str = field(default_factory=utc_now_iso)
    finished_at: Optional[str] = None
    category_counts: Dict[str, int] = field(default_factory=dict)
    statuses: Dict[str, WalkStatus] = field(default_factory=dict)
    found_urls: Dict[str, Set[str]] = field(default_factory=dict)
    diffs: Dict[str, ReconciliationDiff] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def found_this_run(self) -> Set[str]:
        urls: Set[str] = set()
        for category_urls in self.found_urls.values():
            urls.update(category_urls)
        return urls

    def totals(self) -> Dict[str, int]:
        totals = {"added": 0, "removed": 0, "updated": 0}
        for diff in self.diffs.values():
            for key, value in diff.counts.items():
                totals[key] += value
        totals["total"] = sum(self.category_counts.values())
        return totals

    def summary(self) -> "SyncSummary":
        totals = self.totals()
        return SyncSummary(
            timestamp=self.finished_at or utc_now_iso(),
            action=self.mode.value,
            added_count=totals["added"],
            removed_count=totals["removed"],
            updated_count=totals["updated"],
            total_products=totals["total"],
            categories=list(self.categories),
        )


@dataclass
class SyncSummary:
    """Value handed to the notifier after a run."""

    timestamp: str
    action: str
    added_count: int = 0
    removed_count: int = 0
    updated_count: int = 0
    total_products: int = 0
    categories: List[str] = field(default_factory=list)

    def has_changes(self) -> bool:
        return (self.added_count + self.removed_count + self.updated_count) > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "action": self.action,
            "addedCount": self.added_count,
            "removedCount": self.removed_count,
            "updatedCount": self.updated_count,
            "totalProducts": self.total_products,
            "categories": self.categories,
        }

    def to_change_log_entry(self) -> "ChangeLogEntry":
        return ChangeLogEntry(
            timestamp=self.timestamp,
            action=self.action,
            counts={
                "added": self.added_count,
                "removed": self.removed_count,
                "updated": self.updated_count,
                "total": self.total_products,
            },
            categories=list(self.categories),
        )


@dataclass
class ChangeLogEntry:
    """Append-only audit record of one run."""

    timestamp: str
    action: str
    counts: Dict[str, int] = field(default_factory=dict)
    categories: List[str] = field(default_factory=list)
