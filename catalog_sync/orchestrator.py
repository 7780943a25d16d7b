"""Sync orchestration across the fixed category list.

One run walks every selected category in order with a single browser
session, folds what it found into a ``SyncRun``, reconciles each completed
category against the catalog as it was before the run, writes a change-log
entry and hands a summary to the notifier when something changed.

Only one run may be active per process. A second request while a run is in
progress is a no-op.
"""

import threading
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from catalog_sync.browser import BrowserSession
from catalog_sync.config import CATEGORY_TARGETS, DB_PATH, MAX_PAGES_PER_CATEGORY
from catalog_sync.db import (
    STATE_COMPLETE,
    STATE_FAILED,
    append_change_log,
    init_db,
    mark_category_finished,
)
from catalog_sync.extractors import ListingExtractor
from catalog_sync.fetcher import DetailFetcher
from catalog_sync.logging_config import get_logger, log_sync_event
from catalog_sync.models import (
    CategoryTarget,
    CategoryWalkResult,
    ChangeLogEntry,
    ReconciliationDiff,
    SyncMode,
    SyncRun,
    WalkStatus,
    utc_now_iso,
)
from catalog_sync.notifier import Notifier, get_default_notifier
from catalog_sync.reconcile import reconcile_category
from catalog_sync.shutdown import get_shutdown_handler, shutdown_requested
from catalog_sync.store import CategoryCatalogStore
from catalog_sync.throttle import RateLimiter
from catalog_sync.walker import CategoryWalker

__all__ = [
    "SyncOrchestrator",
    "parse_mode",
    "is_sync_running",
    "get_sync_status",
    "run_incremental_sync",
    "run_full_reload",
    "start_background_sync",
    "remove_obsolete_products",
]

logger = get_logger("orchestrator")

# Process-wide guard: at most one sync run at a time
_run_lock = threading.Lock()

_status_lock = threading.Lock()
_status: Dict[str, Any] = {
    "running": False,
    "mode": None,
    "startedAt": None,
    "currentCategory": None,
    "lastRun": None,
}

_MODE_ALIASES = {
    "incremental": SyncMode.INCREMENTAL,
    "sync": SyncMode.INCREMENTAL,
    "full": SyncMode.FULL_RELOAD,
    "full_reload": SyncMode.FULL_RELOAD,
    "full-reload": SyncMode.FULL_RELOAD,
}


def parse_mode(mode: Union[SyncMode, str]) -> SyncMode:
    """Accept a ``SyncMode`` or one of its names used by the CLI and API."""
    if isinstance(mode, SyncMode):
        return mode
    try:
        return _MODE_ALIASES[str(mode).strip().lower()]
    except KeyError:
        raise ValueError(f"Unknown sync mode '{mode}'. Use 'incremental' or 'full'") from None


def _set_status(**values: Any) -> None:
    with _status_lock:
        _status.update(values)


def get_sync_status() -> Dict[str, Any]:
    """Snapshot of the current (or last finished) run."""
    with _status_lock:
        return dict(_status)


def is_sync_running() -> bool:
    return _run_lock.locked()


class SyncOrchestrator:
    """Runs incremental syncs and full reloads over the category list."""

    def __init__(
        self,
        store: Optional[CategoryCatalogStore] = None,
        db_path: str = DB_PATH,
        session_factory: Callable[[], Any] = BrowserSession,
        fetcher: Optional[DetailFetcher] = None,
        listing_extractor: Optional[ListingExtractor] = None,
        throttle: Optional[RateLimiter] = None,
        notifier: Optional[Notifier] = None,
        targets: Optional[Sequence[CategoryTarget]] = None,
        max_pages: int = MAX_PAGES_PER_CATEGORY,
    ):
        self.targets = list(targets) if targets is not None else [
            CategoryTarget(tag, url) for tag, url in CATEGORY_TARGETS
        ]
        self.store = store or CategoryCatalogStore(categories=[t.tag for t in self.targets])
        self.db_path = db_path
        self.session_factory = session_factory
        self.throttle = throttle or RateLimiter()
        self.notifier = notifier or get_default_notifier()
        self.walker = CategoryWalker(
            store=self.store,
            fetcher=fetcher,
            listing_extractor=listing_extractor,
            throttle=self.throttle,
            db_path=db_path,
            max_pages=max_pages,
        )

    def select_targets(self, categories: Optional[Sequence[str]] = None) -> List[CategoryTarget]:
        """Targets for the given tags in list order; all of them by default."""
        if not categories:
            return list(self.targets)
        known = {t.tag for t in self.targets}
        unknown = [c for c in categories if c not in known]
        if unknown:
            raise ValueError(f"Unknown categories: {', '.join(unknown)}. Must be among {sorted(known)}")
        wanted = set(categories)
        return [t for t in self.targets if t.tag in wanted]

    def run(
        self,
        mode: Union[SyncMode, str] = SyncMode.INCREMENTAL,
        categories: Optional[Sequence[str]] = None,
    ) -> Optional[SyncRun]:
        """Run a sync in the calling thread.

        Returns:
            The finished ``SyncRun``, or None if another run was active
        """
        mode = parse_mode(mode)
        targets = self.select_targets(categories)
        if not _run_lock.acquire(blocking=False):
            logger.info(f"A sync is already running, ignoring {mode.value} request")
            return None
        get_shutdown_handler().reset()
        try:
            return self._run_locked(mode, targets)
        finally:
            _run_lock.release()

    def run_incremental_sync(self, categories: Optional[Sequence[str]] = None) -> Optional[SyncRun]:
        return self.run(SyncMode.INCREMENTAL, categories)

    def run_full_reload(self, categories: Optional[Sequence[str]] = None) -> Optional[SyncRun]:
        return self.run(SyncMode.FULL_RELOAD, categories)

    def start_background_sync(
        self,
        mode: Union[SyncMode, str] = SyncMode.INCREMENTAL,
        categories: Optional[Sequence[str]] = None,
    ) -> bool:
        """Start a run in a daemon thread and return at once.

        Returns:
            True if the run was started, False if one is already active
        """
        mode = parse_mode(mode)
        targets = self.select_targets(categories)
        if not _run_lock.acquire(blocking=False):
            logger.info(f"A sync is already running, ignoring background {mode.value} request")
            return False

        # Stop requests may arrive before the worker thread runs
        get_shutdown_handler().reset()
        thread = threading.Thread(
            target=self._run_in_background,
            args=(mode, targets),
            name="catalog-sync",
            daemon=True,
        )
        try:
            thread.start()
        except RuntimeError:
            _run_lock.release()
            raise
        logger.info(f"Started background {mode.value}")
        return True

    def _run_in_background(self, mode: SyncMode, targets: List[CategoryTarget]) -> None:
        try:
            self._run_locked(mode, targets)
        except Exception as e:
            logger.exception(f"Background {mode.value} failed: {e}")
        finally:
            _run_lock.release()

    def _run_locked(self, mode: SyncMode, targets: List[CategoryTarget]) -> SyncRun:
        init_db(self.db_path)
        self.throttle.start()

        run = SyncRun(mode=mode, categories=[t.tag for t in targets])
        _set_status(running=True, mode=mode.value, startedAt=run.started_at, currentCategory=None)
        logger.info(f"Starting {mode.value} over {len(targets)} categories")
        log_sync_event("sync_start", {"mode": mode.value, "categories": run.categories})

        try:
            with self.session_factory() as session:
                for index, target in enumerate(targets):
                    if shutdown_requested():
                        logger.warning(f"Stop requested, skipping remaining categories from {target.tag}")
                        break
                    if index > 0:
                        self.throttle.between_categories()

                    _set_status(currentCategory=target.tag)
                    logger.info(f"[{index + 1}/{len(targets)}] Category {target.tag}: {target.url}")
                    self._process_category(session, mode, target, run)

            for target in targets:
                run.category_counts[target.tag] = self.store.count(target.tag)
            run.finished_at = utc_now_iso()
            self._finish(run)
        finally:
            _set_status(
                running=False,
                currentCategory=None,
                lastRun=self._run_report(run),
            )
        return run

    def _process_category(self, session: Any, mode: SyncMode, target: CategoryTarget, run: SyncRun) -> None:
        # Reconciliation compares against the catalog as it was before this walk
        stored = self.store.load(target.tag)
        try:
            session.new_page()
            if mode == SyncMode.INCREMENTAL:
                result = self.walker.walk(session, target)
            else:
                result = self.walker.collect(session, target)
                if result.status == WalkStatus.COMPLETE:
                    count = self.store.overwrite(target.tag, result.new_records)
                    mark_category_finished(self.db_path, target.tag, STATE_COMPLETE, count)
                else:
                    logger.warning(f"  [{target.tag}] Walk {result.status.value}, keeping previous catalog")
        except Exception as e:
            logger.exception(f"  [{target.tag}] Category failed: {e}")
            run.statuses[target.tag] = WalkStatus.FAILED
            run.errors[target.tag] = str(e)
            mark_category_finished(self.db_path, target.tag, STATE_FAILED)
            return

        run.statuses[target.tag] = result.status
        run.found_urls[target.tag] = set(result.found_urls)
        if result.error:
            run.errors[target.tag] = result.error
        run.diffs[target.tag] = self._diff_for(mode, stored, result)

        diff = run.diffs[target.tag]
        logger.info(
            f"  [{target.tag}] {result.status.value}: {len(result.cards)} found, "
            f"+{len(diff.added)} -{len(diff.removed)} ~{len(diff.updated)}"
        )

    @staticmethod
    def _diff_for(mode: SyncMode, stored, result: CategoryWalkResult) -> ReconciliationDiff:
        if result.status == WalkStatus.COMPLETE:
            return reconcile_category(stored, result.cards.values())
        # An unfinished walk says nothing about removals; only its persisted
        # additions count
        if mode == SyncMode.INCREMENTAL:
            return ReconciliationDiff(added=[r.url for r in result.new_records])
        return ReconciliationDiff()

    def _finish(self, run: SyncRun) -> None:
        summary = run.summary()
        append_change_log(self.db_path, summary.to_change_log_entry())

        totals = run.totals()
        logger.info(
            f"{run.mode.value} finished: +{totals['added']} -{totals['removed']} "
            f"~{totals['updated']}, {totals['total']} products stored"
        )
        log_sync_event("sync_complete", {
            "mode": run.mode.value,
            "counts": totals,
            "statuses": {tag: status.value for tag, status in run.statuses.items()},
            "errors": run.errors,
        })

        if not summary.has_changes():
            return
        try:
            self.notifier.notify(summary)
        except Exception as e:
            logger.error(f"Notifier failed: {e}")

    @staticmethod
    def _run_report(run: SyncRun) -> Dict[str, Any]:
        report = run.summary().to_dict()
        report["startedAt"] = run.started_at
        report["finishedAt"] = run.finished_at
        report["statuses"] = {tag: status.value for tag, status in run.statuses.items()}
        report["errors"] = dict(run.errors)
        return report

    def remove_obsolete_products(self, run: SyncRun) -> int:
        """Delete products the run no longer found on the site.

        Only categories that were walked to completion carry removals. This
        is never part of a routine sync and has to be requested explicitly.

        Returns:
            Number of records deleted
        """
        if not _run_lock.acquire(blocking=False):
            logger.info("A sync is running, not removing obsolete products now")
            return 0
        try:
            removed_total = 0
            touched = []
            for tag, diff in run.diffs.items():
                if run.statuses.get(tag) != WalkStatus.COMPLETE or not diff.removed:
                    continue
                removed = self.store.remove_urls(tag, diff.removed)
                if removed:
                    logger.info(f"  [{tag}] Removed {removed} obsolete products")
                    removed_total += removed
                    touched.append(tag)

            total = sum(self.store.count(tag) for tag in run.categories)
            append_change_log(self.db_path, ChangeLogEntry(
                timestamp=utc_now_iso(),
                action="remove_obsolete",
                counts={"added": 0, "removed": removed_total, "updated": 0, "total": total},
                categories=touched,
            ))
            log_sync_event("obsolete_removed", {"removed": removed_total, "categories": touched})
            return removed_total
        finally:
            _run_lock.release()


_default: Optional[SyncOrchestrator] = None


def _get_default() -> SyncOrchestrator:
    global _default
    if _default is None:
        _default = SyncOrchestrator()
    return _default


def run_incremental_sync(categories: Optional[Sequence[str]] = None) -> Optional[SyncRun]:
    return _get_default().run_incremental_sync(categories)


def run_full_reload(categories: Optional[Sequence[str]] = None) -> Optional[SyncRun]:
    return _get_default().run_full_reload(categories)


def start_background_sync(
    mode: Union[SyncMode, str] = SyncMode.INCREMENTAL,
    categories: Optional[Sequence[str]] = None,
) -> bool:
    return _get_default().start_background_sync(mode, categories)


def remove_obsolete_products(run: SyncRun) -> int:
    return _get_default().remove_obsolete_products(run)
