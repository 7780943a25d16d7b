"""Test API endpoints."""

import pytest

from catalog_sync import orchestrator as orchestrator_module
from catalog_sync.app import create_app
from catalog_sync.models import DetailResult, ProductRecord
from catalog_sync.tests.conftest import CITY, make_card, wait_until_idle


def _seed(store, category, *specs):
    records = []
    for slug, title, price in specs:
        card = make_card(slug, title=title, current=price, original=None)
        records.append(ProductRecord.from_card(card, DetailResult(), category))
    store.append_incremental(category, records)


@pytest.fixture
def client(orchestrator):
    app = create_app(orchestrator)
    app.config["TESTING"] = True
    with app.test_client() as test_client:
        yield test_client


@pytest.fixture
def catalog(store):
    _seed(store, "all",
          ("cube-kathmandu", "Cube Kathmandu Hybrid", "2.499 €"),
          ("kalkhoff-endeavour", "Kalkhoff Endeavour 3.B", "1.939,50 €"),
          ("gazelle-ultimate", "Gazelle Ultimate C380", "3.100 €"))
    _seed(store, "city", ("gazelle-ultimate", "Gazelle Ultimate C380", "3.100 €"))
    return store


class TestCategoriesEndpoint:
    """Test GET /api/categories endpoint."""

    def test_lists_every_category_with_counts(self, client, catalog):
        response = client.get("/api/categories")
        assert response.status_code == 200

        by_name = {c["name"]: c for c in response.json}
        assert by_name["all"] == {"name": "all", "count": 3, "available": True}
        assert by_name["city"]["count"] == 1
        assert by_name["kids"] == {"name": "kids", "count": 0, "available": False}
        assert [c["name"] for c in response.json][:2] == ["sales", "all"]


class TestProductsEndpoint:
    """Test GET /api/products endpoint."""

    def test_defaults_to_all_category(self, client, catalog):
        response = client.get("/api/products")
        assert response.status_code == 200
        data = response.json
        assert data["pagination"]["totalProducts"] == 3
        assert data["products"][0]["title"] == "Cube Kathmandu Hybrid"
        assert "currentBasePrice" in data["products"][0]

    def test_pagination(self, client, catalog):
        data = client.get("/api/products?category=all&page=2&limit=2").json
        assert [p["id"] for p in data["products"]] == ["gazelle-ultimate"]
        assert data["pagination"] == {
            "currentPage": 2,
            "totalPages": 2,
            "totalProducts": 3,
            "productsPerPage": 2,
            "hasNextPage": False,
            "hasPrevPage": True,
        }

    def test_search_is_case_insensitive(self, client, catalog):
        data = client.get("/api/products?search=KALKHOFF").json
        assert [p["id"] for p in data["products"]] == ["kalkhoff-endeavour"]

    @pytest.mark.parametrize("sort,expected", [
        ("price-asc", ["kalkhoff-endeavour", "cube-kathmandu", "gazelle-ultimate"]),
        ("price-desc", ["gazelle-ultimate", "cube-kathmandu", "kalkhoff-endeavour"]),
        ("name-asc", ["cube-kathmandu", "gazelle-ultimate", "kalkhoff-endeavour"]),
        ("name-desc", ["kalkhoff-endeavour", "gazelle-ultimate", "cube-kathmandu"]),
        ("default", ["cube-kathmandu", "kalkhoff-endeavour", "gazelle-ultimate"]),
    ])
    def test_sorting(self, client, catalog, sort, expected):
        data = client.get(f"/api/products?sort={sort}").json
        assert [p["id"] for p in data["products"]] == expected

    def test_unknown_category(self, client, catalog):
        assert client.get("/api/products?category=unicycles").status_code == 404

    @pytest.mark.parametrize("query", ["page=0", "page=abc", "limit=-1"])
    def test_bad_paging_params(self, client, catalog, query):
        assert client.get(f"/api/products?{query}").status_code == 400

    def test_product_by_id(self, client, catalog):
        response = client.get("/api/products/kalkhoff-endeavour")
        assert response.status_code == 200
        assert response.json["currentBasePrice"] == 1939.5

    def test_product_not_found(self, client, catalog):
        assert client.get("/api/products/nope").status_code == 404


class TestSyncEndpoints:
    """Test the sync trigger and status endpoints."""

    def test_parse_now_starts_background_run(self, client, site, store):
        site.set_pages(CITY, [make_card("cube-kathmandu")])

        response = client.post("/api/parse-now", json={"mode": "incremental", "categories": ["city"]})
        wait_until_idle()

        assert response.status_code == 202
        assert response.json["accepted"] is True
        assert response.json["mode"] == "sync"
        assert store.count("city") == 1

    def test_parse_now_busy(self, client):
        orchestrator_module._run_lock.acquire()
        try:
            response = client.post("/api/parse-now")
        finally:
            orchestrator_module._run_lock.release()

        assert response.status_code == 409
        assert response.json["accepted"] is False

    @pytest.mark.parametrize("payload", [
        {"mode": "sometimes"},
        {"categories": ["unicycles"]},
        {"categories": "city"},
    ])
    def test_parse_now_bad_request(self, client, payload):
        assert client.post("/api/parse-now", json=payload).status_code == 400

    def test_status_after_run(self, client, orchestrator, site):
        site.set_pages(CITY, [make_card("cube-kathmandu")])
        orchestrator.run_incremental_sync(["city"])

        data = client.get("/api/sync/status").json

        assert data["running"] is False
        assert data["lastRun"]["addedCount"] == 1
        states = {s["category"]: s for s in data["categories"]}
        assert states["city"]["status"] == "complete"

    def test_changes(self, client, orchestrator, site):
        site.set_pages(CITY, [make_card("cube-kathmandu")])
        orchestrator.run_incremental_sync(["city"])
        orchestrator.run_incremental_sync(["city"])

        data = client.get("/api/sync/changes?limit=1").json

        assert len(data["changes"]) == 1
        assert data["changes"][0]["counts"]["added"] == 0

    def test_stop_when_idle(self, client):
        response = client.post("/api/sync/stop")
        assert response.json == {"running": False, "stopRequested": False}

    def test_health(self, client):
        assert client.get("/health").json == {"status": "ok"}
