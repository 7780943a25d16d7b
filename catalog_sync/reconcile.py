"""Diff the stored catalog of a category against what a run found."""

from typing import Any, Iterable, List, Sequence

from catalog_sync.models import ProductRecord, ReconciliationDiff

__all__ = [
    "diff_urls",
    "has_listing_changes",
    "reconcile_category",
]

# Fields visible on listing cards and in records alike
_COMPARED_FIELDS = ("title", "current_price_raw", "original_price_raw")


def diff_urls(stored_urls: Iterable[str], found_urls: Iterable[str]) -> ReconciliationDiff:
    """added = found - stored, removed = stored - found, in input order."""
    stored_list = list(dict.fromkeys(stored_urls))
    found_list = list(dict.fromkeys(found_urls))
    stored_set = set(stored_list)
    found_set = set(found_list)
    return ReconciliationDiff(
        added=[url for url in found_list if url not in stored_set],
        removed=[url for url in stored_list if url not in found_set],
    )


def has_listing_changes(old: Any, new: Any) -> bool:
    """True if title or either raw price differs between two items."""
    return any(getattr(old, f, None) != getattr(new, f, None) for f in _COMPARED_FIELDS)


def reconcile_category(
    stored: Sequence[ProductRecord],
    found: Iterable[Any],
) -> ReconciliationDiff:
    """Full diff for one category.

    ``found`` holds listing cards or product records seen this run; both
    expose ``url``, ``title`` and the raw price fields.
    """
    found_items: List[Any] = list(found)
    diff = diff_urls((r.url for r in stored), (item.url for item in found_items))

    stored_by_url = {r.url: r for r in stored}
    seen = set()
    for item in found_items:
        if item.url in seen:
            continue
        seen.add(item.url)
        old = stored_by_url.get(item.url)
        if old is not None and has_listing_changes(old, item):
            diff.updated.append(item.url)
    return diff
