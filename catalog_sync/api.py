"""HTTP surface for triggering syncs and reading the catalog.

Endpoints:
    POST /api/parse-now          start a background sync
    POST /api/sync/stop          ask a running sync to stop after its current page
    GET  /api/sync/status        current/last run, per-category scrape state
    GET  /api/sync/changes       change log, newest first
    GET  /api/categories         category names with product counts
    GET  /api/products           one category's products, searchable and paginated
    GET  /api/products/<id>      a single product looked up across all categories
"""

from typing import Any, Dict, List, Tuple, Union

from flask import Blueprint, Response, current_app, jsonify, request

from catalog_sync.db import get_all_scrape_states, get_change_log, init_db
from catalog_sync.logging_config import get_logger
from catalog_sync.models import ProductRecord
from catalog_sync.orchestrator import SyncOrchestrator, get_sync_status, is_sync_running, parse_mode
from catalog_sync.shutdown import request_shutdown

__all__ = ["api"]

logger = get_logger("api")

api = Blueprint("api", __name__, url_prefix="/api")

DEFAULT_PAGE_SIZE = 24
MAX_PAGE_SIZE = 100

_SORTS = {
    "price-asc": (lambda p: p.current_base_price or 0, False),
    "price-desc": (lambda p: p.current_base_price or 0, True),
    "name-asc": (lambda p: p.title.casefold(), False),
    "name-desc": (lambda p: p.title.casefold(), True),
}


def _orchestrator() -> SyncOrchestrator:
    return current_app.config["SYNC_ORCHESTRATOR"]


def _error(message: str, status: int) -> Tuple[Response, int]:
    return jsonify({"error": message}), status


def _positive_int(name: str, default: int) -> int:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    value = int(raw)
    if value < 1:
        raise ValueError(f"'{name}' must be a positive integer")
    return value


@api.route("/parse-now", methods=["POST"])
def parse_now() -> Tuple[Response, int]:
    """Start a sync in the background and answer immediately.

    Request JSON (optional):
        {"mode": "incremental" | "full", "categories": ["city", ...]}

    Returns 202 when the run was started, 409 when one is already active.
    """
    payload = request.get_json(silent=True) or {}
    try:
        mode = parse_mode(payload.get("mode", "incremental"))
        categories = payload.get("categories") or None
        if categories is not None and not isinstance(categories, list):
            raise ValueError("'categories' must be a list of category names")
        started = _orchestrator().start_background_sync(mode, categories)
    except ValueError as e:
        return _error(str(e), 400)

    if not started:
        return jsonify({
            "accepted": False,
            "error": "A catalog sync is already running",
        }), 409

    logger.info(f"Sync triggered over HTTP ({mode.value})")
    return jsonify({
        "accepted": True,
        "mode": mode.value,
        "message": "Catalog sync started in the background",
    }), 202


@api.route("/sync/stop", methods=["POST"])
def stop_sync() -> Response:
    running = is_sync_running()
    if running:
        request_shutdown()
    return jsonify({"running": running, "stopRequested": running})


@api.route("/sync/status", methods=["GET"])
def sync_status() -> Response:
    db_path = _orchestrator().db_path
    init_db(db_path)
    status = get_sync_status()
    status["running"] = is_sync_running()
    status["categories"] = get_all_scrape_states(db_path)
    return jsonify(status)


@api.route("/sync/changes", methods=["GET"])
def sync_changes() -> Union[Response, Tuple[Response, int]]:
    try:
        limit = _positive_int("limit", 20)
    except ValueError as e:
        return _error(str(e), 400)

    db_path = _orchestrator().db_path
    init_db(db_path)
    entries = get_change_log(db_path, limit=limit)
    return jsonify({
        "changes": [
            {
                "timestamp": e.timestamp,
                "action": e.action,
                "counts": e.counts,
                "categories": e.categories,
            }
            for e in entries
        ]
    })


@api.route("/categories", methods=["GET"])
def list_categories() -> Response:
    store = _orchestrator().store
    categories = []
    for tag in store.categories:
        count = store.count(tag)
        categories.append({"name": tag, "count": count, "available": count > 0})
    return jsonify(categories)


def _filter_and_sort(products: List[ProductRecord], search: str, sort: str) -> List[ProductRecord]:
    if search:
        needle = search.casefold()
        products = [p for p in products if needle in (p.title or "").casefold()]
    if sort in _SORTS:
        key, reverse = _SORTS[sort]
        products = sorted(products, key=key, reverse=reverse)
    return products


@api.route("/products", methods=["GET"])
def list_products() -> Union[Response, Tuple[Response, int]]:
    """One page of a category's products.

    Query params: category (default "all"), page, limit, search,
    sort (price-asc | price-desc | name-asc | name-desc).
    """
    store = _orchestrator().store
    category = request.args.get("category") or "all"
    if category not in store.categories:
        return _error(f"Unknown category '{category}'", 404)

    try:
        page = _positive_int("page", 1)
        limit = min(_positive_int("limit", DEFAULT_PAGE_SIZE), MAX_PAGE_SIZE)
    except ValueError as e:
        return _error(str(e), 400)

    products = _filter_and_sort(
        store.load(category),
        request.args.get("search", "").strip(),
        request.args.get("sort", "default"),
    )

    total = len(products)
    total_pages = (total + limit - 1) // limit
    start = (page - 1) * limit
    page_items = products[start:start + limit]

    pagination: Dict[str, Any] = {
        "currentPage": page,
        "totalPages": total_pages,
        "totalProducts": total,
        "productsPerPage": limit,
        "hasNextPage": page < total_pages,
        "hasPrevPage": page > 1,
    }
    return jsonify({
        "products": [p.to_dict() for p in page_items],
        "pagination": pagination,
    })


@api.route("/products/<product_id>", methods=["GET"])
def get_product(product_id: str) -> Union[Response, Tuple[Response, int]]:
    for product in _orchestrator().store.load_all():
        if product.id == product_id:
            return jsonify(product.to_dict())
    return _error("Product not found", 404)
