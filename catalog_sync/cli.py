"""Command-line interface for the catalog sync."""

import argparse
import logging
import time
from typing import List, Optional

from catalog_sync.config import (
    CATEGORY_TAGS,
    CATEGORY_TARGETS,
    DATA_DIR,
    DB_PATH,
    MAX_PAGES_PER_CATEGORY,
)
from catalog_sync.db import get_all_scrape_states, get_change_log, init_db

__all__ = ["main", "parse_args", "show_stats", "show_changes", "build_orchestrator"]


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="rebike.com catalog sync with per-page persistence and resume",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Incremental sync of all categories (skips products already stored)
  python -m catalog_sync.cli

  # Full reload of two categories
  python -m catalog_sync.cli --mode full --categories city trekking

  # Incremental sync, then delete products no longer listed
  python -m catalog_sync.cli --remove-obsolete

  # Show stored product counts and scrape state
  python -m catalog_sync.cli --stats

  # Last 10 change-log entries
  python -m catalog_sync.cli --changes 10

  # Run the scheduler and the HTTP API until interrupted
  python -m catalog_sync.cli --schedule --serve
        """,
    )

    parser.add_argument(
        "--mode",
        choices=["incremental", "full"],
        default="incremental",
        help="incremental: skip products already stored (default); full: re-walk and overwrite",
    )
    parser.add_argument(
        "--categories",
        nargs="+",
        choices=CATEGORY_TAGS,
        help=f"Categories to sync (default: all). Choices: {CATEGORY_TAGS}",
    )
    parser.add_argument(
        "--max-pages",
        type=int,
        default=MAX_PAGES_PER_CATEGORY,
        help=f"Page ceiling per category (default: {MAX_PAGES_PER_CATEGORY})",
    )
    parser.add_argument(
        "--remove-obsolete",
        action="store_true",
        help="After the sync, delete stored products that were not found on the site",
    )

    # Storage
    parser.add_argument(
        "--data-dir",
        default=DATA_DIR,
        help=f"Directory holding products_<category>.json (default: {DATA_DIR})",
    )
    parser.add_argument(
        "--db",
        default=DB_PATH,
        help=f"SQLite path for scrape state and change log (default: {DB_PATH})",
    )

    # Info commands
    parser.add_argument(
        "--stats",
        action="store_true",
        help="Show stored product counts and scrape state, then exit",
    )
    parser.add_argument(
        "--list-categories",
        action="store_true",
        help="List configured categories and exit",
    )
    parser.add_argument(
        "--changes",
        type=int,
        metavar="N",
        help="Show the last N change-log entries and exit",
    )

    # Long-running modes
    parser.add_argument(
        "--schedule",
        action="store_true",
        help="Run scheduled syncs (every 6 hours and nightly) until interrupted",
    )
    parser.add_argument(
        "--serve",
        action="store_true",
        help="Serve the HTTP API (parse-now, status, products)",
    )

    parser.add_argument(
        "--headed",
        action="store_true",
        help="Show the browser window",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Debug logging",
    )

    return parser.parse_args(argv)


def show_stats(data_dir: str, db_path: str) -> None:
    """Display stored product counts and per-category scrape state."""
    from catalog_sync.store import CategoryCatalogStore

    init_db(db_path)
    store = CategoryCatalogStore(data_dir)

    print(f"\n{'='*50}")
    print(f"Catalog: {data_dir}")
    print(f"State:   {db_path}")
    print(f"{'='*50}")

    print("\nProducts by category:")
    total = 0
    for tag in store.categories:
        count = store.count(tag)
        total += count
        print(f"  {tag}: {count}")
    print(f"\nTotal records: {total}")

    print("\nScrape state:")
    states = get_all_scrape_states(db_path)
    if states:
        for state in states:
            print(f"  {state['category']}: {state['status'] or '?'}"
                  f" - page {state['last_page_scraped'] or 0}"
                  f" - last scraped: {state['last_scraped_at'] or 'never'}")
    else:
        print("  No sync history yet")
    print()


def show_changes(db_path: str, limit: int) -> None:
    init_db(db_path)
    entries = get_change_log(db_path, limit=limit)
    if not entries:
        print("No changes recorded yet")
        return
    for entry in entries:
        counts = entry.counts
        print(f"{entry.timestamp}  {entry.action:<15}"
              f" +{counts.get('added', 0)} -{counts.get('removed', 0)} ~{counts.get('updated', 0)}"
              f"  total {counts.get('total', 0)}  [{', '.join(entry.categories)}]")


def build_orchestrator(args: argparse.Namespace):
    from catalog_sync.browser import BrowserSession
    from catalog_sync.orchestrator import SyncOrchestrator
    from catalog_sync.store import CategoryCatalogStore

    return SyncOrchestrator(
        store=CategoryCatalogStore(args.data_dir),
        db_path=args.db,
        session_factory=lambda: BrowserSession(headless=not args.headed),
        max_pages=min(args.max_pages, MAX_PAGES_PER_CATEGORY),
    )


def _run_forever(args: argparse.Namespace, orchestrator) -> None:
    from catalog_sync.app import run_server
    from catalog_sync.scheduler import create_scheduler
    from catalog_sync.shutdown import get_shutdown_handler

    logger = logging.getLogger("catalog_sync.cli")
    scheduler = None
    if args.schedule:
        scheduler = create_scheduler(orchestrator)
        scheduler.start()
        logger.info("Scheduler started")

    try:
        if args.serve:
            run_server(orchestrator)
        else:
            handler = get_shutdown_handler().install()
            while not handler.shutdown_requested:
                time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        if scheduler is not None:
            scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI."""
    args = parse_args(argv)

    if args.list_categories:
        print("Available categories:")
        for tag, url in CATEGORY_TARGETS:
            print(f"  {tag}: {url}")
        return 0

    if args.stats:
        show_stats(args.data_dir, args.db)
        return 0

    if args.changes is not None:
        show_changes(args.db, args.changes)
        return 0

    from catalog_sync.logging_config import setup_logging
    from catalog_sync.shutdown import get_shutdown_handler

    setup_logging(level=logging.DEBUG if args.verbose else logging.INFO)
    orchestrator = build_orchestrator(args)

    if args.schedule or args.serve:
        _run_forever(args, orchestrator)
        return 0

    handler = get_shutdown_handler().install()
    try:
        run = orchestrator.run(args.mode, args.categories)
    finally:
        handler.uninstall()

    if run is None:
        return 1

    if args.remove_obsolete:
        removed = orchestrator.remove_obsolete_products(run)
        print(f"Removed {removed} obsolete products")

    totals = run.totals()
    print(f"\n{run.mode.value}: +{totals['added']} -{totals['removed']} ~{totals['updated']}"
          f", {totals['total']} records stored")
    if run.errors:
        print("Categories with errors:")
        for tag, error in run.errors.items():
            print(f"  {tag}: {error}")
        return 2
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
