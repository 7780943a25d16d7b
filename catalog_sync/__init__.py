"""rebike.com catalog synchronization package."""

__version__ = "0.1.0"

# Re-export main components for convenient imports
from catalog_sync.config import (
    BASE_URL,
    CATEGORY_TAGS,
    CATEGORY_TARGETS,
    DATA_DIR,
    DB_PATH,
)
from catalog_sync.models import (
    ProductRecord,
    ReconciliationDiff,
    SyncMode,
    SyncRun,
    SyncSummary,
)
from catalog_sync.orchestrator import (
    SyncOrchestrator,
    remove_obsolete_products,
    run_full_reload,
    run_incremental_sync,
    start_background_sync,
)
from catalog_sync.pricing import discount_percent, parse_price
from catalog_sync.store import CategoryCatalogStore, StorageError

__all__ = [
    # Version
    "__version__",
    # Config
    "BASE_URL",
    "CATEGORY_TAGS",
    "CATEGORY_TARGETS",
    "DATA_DIR",
    "DB_PATH",
    # Models
    "ProductRecord",
    "ReconciliationDiff",
    "SyncMode",
    "SyncRun",
    "SyncSummary",
    # Core
    "parse_price",
    "discount_percent",
    "CategoryCatalogStore",
    "StorageError",
    "SyncOrchestrator",
    "run_incremental_sync",
    "run_full_reload",
    "start_background_sync",
    "remove_obsolete_products",
]
