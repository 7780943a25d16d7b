"""Periodic sync scheduling with APScheduler."""

from datetime import datetime, timedelta
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from catalog_sync.config import (
    SCHEDULE_INITIAL_DELAY_SECONDS,
    SCHEDULE_INTERVAL_HOURS,
    SCHEDULE_NIGHTLY_HOUR,
)
from catalog_sync.logging_config import get_logger
from catalog_sync.models import SyncMode
from catalog_sync.orchestrator import SyncOrchestrator

__all__ = [
    "scheduled_sync",
    "create_scheduler",
]

logger = get_logger("scheduler")


def scheduled_sync(orchestrator: SyncOrchestrator, mode: SyncMode = SyncMode.FULL_RELOAD) -> None:
    """Job body: run a sync, skipping quietly if one is already active."""
    logger.info(f"Scheduled {mode.value} starting")
    try:
        run = orchestrator.run(mode)
    except Exception as e:
        logger.exception(f"Scheduled {mode.value} failed: {e}")
        return
    if run is None:
        logger.info(f"Scheduled {mode.value} skipped, a sync is already running")


def create_scheduler(
    orchestrator: Optional[SyncOrchestrator] = None,
    interval_hours: float = SCHEDULE_INTERVAL_HOURS,
    nightly_hour: int = SCHEDULE_NIGHTLY_HOUR,
    initial_delay_seconds: int = SCHEDULE_INITIAL_DELAY_SECONDS,
    mode: SyncMode = SyncMode.FULL_RELOAD,
) -> BackgroundScheduler:
    """Build (but do not start) the sync scheduler.

    Jobs:
        - every ``interval_hours``
        - nightly at ``nightly_hour``:00
        - once, ``initial_delay_seconds`` after creation (skipped if negative)
    """
    orchestrator = orchestrator or SyncOrchestrator()
    scheduler = BackgroundScheduler()

    scheduler.add_job(
        scheduled_sync,
        trigger=IntervalTrigger(hours=interval_hours),
        args=(orchestrator, mode),
        id="sync_interval",
        name=f"Sync every {interval_hours:g} hours",
        max_instances=1,
        coalesce=True,
    )
    scheduler.add_job(
        scheduled_sync,
        trigger=CronTrigger(hour=nightly_hour, minute=0),
        args=(orchestrator, mode),
        id="sync_nightly",
        name=f"Nightly sync at {nightly_hour:02d}:00",
        max_instances=1,
        coalesce=True,
    )
    if initial_delay_seconds >= 0:
        scheduler.add_job(
            scheduled_sync,
            trigger=DateTrigger(run_date=datetime.now() + timedelta(seconds=initial_delay_seconds)),
            args=(orchestrator, mode),
            id="sync_initial",
            name="Initial sync after startup",
        )

    return scheduler
