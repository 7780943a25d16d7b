"""Tests for found-vs-stored reconciliation."""

from catalog_sync.models import DetailResult, ProductRecord
from catalog_sync.reconcile import diff_urls, has_listing_changes, reconcile_category
from catalog_sync.tests.conftest import make_card


def _record(slug, **card_kwargs):
    return ProductRecord.from_card(make_card(slug, **card_kwargs), DetailResult(), "city")


class TestDiffUrls:

    def test_set_algebra(self):
        stored = ["a", "b", "c"]
        found = ["b", "c", "d", "e"]
        diff = diff_urls(stored, found)

        assert diff.added == ["d", "e"]
        assert diff.removed == ["a"]
        # |removed| + |S ∩ F| == |S|
        assert len(diff.removed) + len(set(stored) & set(found)) == len(stored)

    def test_duplicates_counted_once(self):
        diff = diff_urls(["a", "a"], ["b", "b"])
        assert diff.added == ["b"]
        assert diff.removed == ["a"]

    def test_empty_inputs(self):
        diff = diff_urls([], [])
        assert not diff.has_changes()

    def test_identical_sets(self):
        diff = diff_urls(["a", "b"], ["b", "a"])
        assert diff.counts == {"added": 0, "removed": 0, "updated": 0}


class TestReconcileCategory:

    def test_price_change_is_an_update(self):
        stored = [_record("a"), _record("b")]
        found = [make_card("a", current="1.400 €"), make_card("b")]

        diff = reconcile_category(stored, found)

        assert diff.updated == ["https://rebike.com/de/a"]
        assert diff.added == []
        assert diff.removed == []

    def test_title_change_is_an_update(self):
        stored = [_record("a")]
        found = [make_card("a", title="Cube Kathmandu (neu)")]
        assert reconcile_category(stored, found).updated == ["https://rebike.com/de/a"]

    def test_added_and_removed(self):
        stored = [_record("a"), _record("old")]
        found = [make_card("a"), make_card("new")]

        diff = reconcile_category(stored, found)

        assert diff.added == ["https://rebike.com/de/new"]
        assert diff.removed == ["https://rebike.com/de/old"]
        assert diff.updated == []

    def test_accepts_records_as_found_items(self):
        stored = [_record("a")]
        found = [_record("a", original="2.100 €")]
        assert reconcile_category(stored, found).updated == ["https://rebike.com/de/a"]

    def test_has_listing_changes(self):
        assert not has_listing_changes(make_card("a"), make_card("a"))
        assert has_listing_changes(make_card("a"), make_card("a", original=None))
