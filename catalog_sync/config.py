"""Configuration and constants for the catalog sync."""

import os
from pathlib import Path
from typing import List, Optional, Tuple

from dotenv import load_dotenv

__all__ = [
    "BASE_URL",
    "CATEGORY_TARGETS",
    "CATEGORY_TAGS",
    "DATA_DIR",
    "DB_PATH",
    "LOG_DIR",
    "NAVIGATION_TIMEOUT_MS",
    "LISTING_WAIT_MS",
    "DETAIL_MAX_ATTEMPTS",
    "DETAIL_BACKOFF_SECONDS",
    "DETAIL_DELAY_SECONDS",
    "CATEGORY_DELAY_SECONDS",
    "LONG_PAUSE_INTERVAL_SECONDS",
    "LONG_PAUSE_MIN_SECONDS",
    "LONG_PAUSE_MAX_SECONDS",
    "MAX_PAGES_PER_CATEGORY",
    "BROWSER_USER_AGENT",
    "BROWSER_HEADLESS",
    "SCHEDULE_INTERVAL_HOURS",
    "SCHEDULE_NIGHTLY_HOUR",
    "SCHEDULE_INITIAL_DELAY_SECONDS",
    "NOTIFY_WEBHOOK_URL",
    "FLASK_HOST",
    "FLASK_PORT",
    "FLASK_DEBUG",
]

_PROJECT_ROOT = Path(__file__).parent.parent

# Load environment variables from .env file (explicitly specify path)
load_dotenv(dotenv_path=_PROJECT_ROOT / ".env")


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


BASE_URL = "https://rebike.com"

# Ordered (tag, url) pairs; the order is the processing order of a sync run.
# "all" is the catch-all feed of every used e-bike on the site.
CATEGORY_TARGETS: List[Tuple[str, str]] = [
    ("sales", "https://rebike.com/de/rebike1-sales-e-bike-angebote"),
    ("all", "https://rebike.com/de/gebrauchte-e-bikes-und-pedelecs-kaufen"),
    ("trekking", "https://rebike.com/de/trekkingrad-touren-e-bike-kaufen"),
    ("city", "https://rebike.com/de/city-e-bikes"),
    ("urban", "https://rebike.com/de/urban-e-bikes"),
    ("mountain", "https://rebike.com/de/e-mountainbikes"),
    ("hardtail", "https://rebike.com/de/e-mountainbikes/e-bike-hardtail"),
    ("fully", "https://rebike.com/de/e-mountainbikes/e-bike-fully"),
    ("cargo", "https://rebike.com/de/e-lastenrad-e-bike-kaufen"),
    ("speed", "https://rebike.com/de/s-pedelecs"),
    ("gravel", "https://rebike.com/de/e-gravel-rennraeder"),
    ("kids", "https://rebike.com/de/kinder-e-bikes"),
    ("classic", "https://rebike.com/de/fahrraeder"),
]

CATEGORY_TAGS: List[str] = [tag for tag, _ in CATEGORY_TARGETS]

# Storage
DATA_DIR = os.getenv("CATALOG_DATA_DIR", str(_PROJECT_ROOT / "data"))
DB_PATH = os.getenv("CATALOG_DB_PATH", str(Path(DATA_DIR) / "sync_state.db"))
LOG_DIR = Path(os.getenv("CATALOG_LOG_DIR", str(_PROJECT_ROOT / "logs")))

# Navigation timeouts (milliseconds, as Playwright expects them)
NAVIGATION_TIMEOUT_MS = _env_int("NAVIGATION_TIMEOUT_MS", 45000)
LISTING_WAIT_MS = _env_int("LISTING_WAIT_MS", 5000)

# Detail fetch retries: attempt N waits DETAIL_BACKOFF_SECONDS * N before retrying
DETAIL_MAX_ATTEMPTS = _env_int("DETAIL_MAX_ATTEMPTS", 3)
DETAIL_BACKOFF_SECONDS = _env_float("DETAIL_BACKOFF_SECONDS", 4.0)
DETAIL_DELAY_SECONDS = _env_float("DETAIL_DELAY_SECONDS", 1.0)

# Rate limiting between categories, plus a long randomized pause
# every LONG_PAUSE_INTERVAL_SECONDS of wall-clock run time
CATEGORY_DELAY_SECONDS = _env_float("CATEGORY_DELAY_SECONDS", 3.0)
LONG_PAUSE_INTERVAL_SECONDS = _env_float("LONG_PAUSE_INTERVAL_SECONDS", 20 * 60)
LONG_PAUSE_MIN_SECONDS = _env_float("LONG_PAUSE_MIN_SECONDS", 60)
LONG_PAUSE_MAX_SECONDS = _env_float("LONG_PAUSE_MAX_SECONDS", 7 * 60)

# Runaway-loop guard for pagination
MAX_PAGES_PER_CATEGORY = _env_int("MAX_PAGES_PER_CATEGORY", 200)

# Browser
BROWSER_USER_AGENT = os.getenv(
    "BROWSER_USER_AGENT",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
)
BROWSER_HEADLESS = os.getenv("BROWSER_HEADLESS", "True").lower() == "true"

# Scheduled runs: every SCHEDULE_INTERVAL_HOURS, nightly at SCHEDULE_NIGHTLY_HOUR,
# and once SCHEDULE_INITIAL_DELAY_SECONDS after the scheduler starts
SCHEDULE_INTERVAL_HOURS = _env_float("SCHEDULE_INTERVAL_HOURS", 6)
SCHEDULE_NIGHTLY_HOUR = _env_int("SCHEDULE_NIGHTLY_HOUR", 2)
SCHEDULE_INITIAL_DELAY_SECONDS = _env_int("SCHEDULE_INITIAL_DELAY_SECONDS", 30)

# Optional webhook that receives the run summary
NOTIFY_WEBHOOK_URL: Optional[str] = os.getenv("NOTIFY_WEBHOOK_URL") or None

# Flask app settings (default debug off for safety)
FLASK_HOST = os.getenv("FLASK_HOST", "0.0.0.0")
FLASK_PORT = int(os.getenv("FLASK_PORT", os.getenv("PORT", "5000")))
FLASK_DEBUG = os.getenv("FLASK_DEBUG", "False").lower() == "true"
