"""SQLite bookkeeping for sync runs: per-category scrape state and change log."""

import json
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional

from catalog_sync.config import DB_PATH
from catalog_sync.models import ChangeLogEntry

__all__ = [
    "STATE_IN_PROGRESS",
    "STATE_COMPLETE",
    "STATE_INTERRUPTED",
    "STATE_FAILED",
    "get_connection",
    "init_db",
    "update_scrape_state",
    "mark_category_finished",
    "get_scrape_state",
    "get_all_scrape_states",
    "get_resume_marker",
    "append_change_log",
    "get_change_log",
]

STATE_IN_PROGRESS = "in_progress"
STATE_COMPLETE = "complete"
STATE_INTERRUPTED = "interrupted"
STATE_FAILED = "failed"


@contextmanager
def get_connection(db_path: str = DB_PATH) -> Generator[sqlite3.Connection, None, None]:
    """Context manager for database connections."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


def init_db(db_path: str = DB_PATH) -> None:
    """Initialize the database schema."""
    with get_connection(db_path) as conn:
        cursor = conn.cursor()

        # Pagination / resume tracking per category
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS scrape_state (
                category TEXT PRIMARY KEY,
                last_page_scraped INTEGER DEFAULT 0,
                last_product_url TEXT,
                status TEXT,
                products_stored INTEGER,
                last_scraped_at TIMESTAMP
            )
        """)

        # Append-only audit trail of runs
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS change_log (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                timestamp TEXT NOT NULL,
                action TEXT NOT NULL,
                added INTEGER DEFAULT 0,
                removed INTEGER DEFAULT 0,
                updated INTEGER DEFAULT 0,
                total INTEGER DEFAULT 0,
                categories_json TEXT
            )
        """)

        cursor.execute("CREATE INDEX IF NOT EXISTS idx_change_log_timestamp ON change_log(timestamp)")
        conn.commit()


def update_scrape_state(
    db_path: str,
    category: str,
    last_page: int,
    last_product_url: Optional[str],
    products_stored: Optional[int] = None,
) -> None:
    """Record the durability point reached by an in-progress walk."""
    with get_connection(db_path) as conn:
        cursor = conn.cursor()
        cursor.execute("""
            INSERT INTO scrape_state (category, last_page_scraped, last_product_url, status,
                                      products_stored, last_scraped_at)
            VALUES (?, ?, ?, ?, ?, CURRENT_TIMESTAMP)
            ON CONFLICT(category) DO UPDATE SET
                last_page_scraped = excluded.last_page_scraped,
                last_product_url = COALESCE(excluded.last_product_url, last_product_url),
                status = excluded.status,
                products_stored = COALESCE(excluded.products_stored, products_stored),
                last_scraped_at = CURRENT_TIMESTAMP
        """, (category, last_page, last_product_url, STATE_IN_PROGRESS, products_stored))
        conn.commit()


def mark_category_finished(
    db_path: str,
    category: str,
    status: str,
    products_stored: Optional[int] = None,
) -> None:
    """Close out a category walk.

    A clean finish clears the resume marker; any other status keeps it so
    the next incremental run can pick up where this one stopped.
    """
    with get_connection(db_path) as conn:
        cursor = conn.cursor()
        cursor.execute("""
            INSERT INTO scrape_state (category, status, products_stored, last_scraped_at)
            VALUES (?, ?, ?, CURRENT_TIMESTAMP)
            ON CONFLICT(category) DO UPDATE SET
                status = excluded.status,
                products_stored = COALESCE(excluded.products_stored, products_stored),
                last_scraped_at = CURRENT_TIMESTAMP
        """, (category, status, products_stored))
        if status == STATE_COMPLETE:
            cursor.execute(
                "UPDATE scrape_state SET last_product_url = NULL WHERE category = ?",
                (category,),
            )
        conn.commit()


def get_scrape_state(db_path: str, category: str) -> Optional[Dict[str, Any]]:
    """Get the scrape state for a category."""
    with get_connection(db_path) as conn:
        cursor = conn.cursor()
        cursor.execute(
            "SELECT * FROM scrape_state WHERE category = ?",
            (category,),
        )
        row = cursor.fetchone()
        return dict(row) if row else None


def get_all_scrape_states(db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    with get_connection(db_path) as conn:
        cursor = conn.cursor()
        cursor.execute("SELECT * FROM scrape_state ORDER BY category")
        return [dict(row) for row in cursor.fetchall()]


def get_resume_marker(db_path: str, category: str) -> Optional[str]:
    """Return the last persisted product URL of an unfinished walk, if any."""
    state = get_scrape_state(db_path, category)
    if not state or state.get("status") == STATE_COMPLETE:
        return None
    return state.get("last_product_url")


def append_change_log(db_path: str, entry: ChangeLogEntry) -> int:
    """Append a change-log entry, returning its row id."""
    with get_connection(db_path) as conn:
        cursor = conn.cursor()
        cursor.execute("""
            INSERT INTO change_log (timestamp, action, added, removed, updated, total, categories_json)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """, (
            entry.timestamp,
            entry.action,
            entry.counts.get("added", 0),
            entry.counts.get("removed", 0),
            entry.counts.get("updated", 0),
            entry.counts.get("total", 0),
            json.dumps(entry.categories, ensure_ascii=False),
        ))
        conn.commit()
        return cursor.lastrowid


def get_change_log(db_path: str = DB_PATH, limit: Optional[int] = None) -> List[ChangeLogEntry]:
    """Read change-log entries, newest first."""
    query = "SELECT * FROM change_log ORDER BY id DESC"
    params: tuple = ()
    if limit is not None:
        query += " LIMIT ?"
        params = (limit,)

    with get_connection(db_path) as conn:
        cursor = conn.cursor()
        cursor.execute(query, params)
        entries = []
        for row in cursor.fetchall():
            try:
                categories = json.loads(row["categories_json"] or "[]")
            except json.JSONDecodeError:
                categories = []
            entries.append(ChangeLogEntry(
                timestamp=row["timestamp"],
                action=row["action"],
                counts={
                    "added": row["added"],
                    "removed": row["removed"],
                    "updated": row["updated"],
                    "total": row["total"],
                },
                categories=categories,
            ))
        return entries
