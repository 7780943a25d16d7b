"""Tests for scheduled sync jobs."""

from unittest.mock import MagicMock

from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from catalog_sync.models import SyncMode
from catalog_sync.scheduler import create_scheduler, scheduled_sync


class TestCreateScheduler:

    def test_registers_interval_nightly_and_initial_jobs(self):
        scheduler = create_scheduler(orchestrator=MagicMock())
        jobs = {job.id: job for job in scheduler.get_jobs()}

        assert set(jobs) == {"sync_interval", "sync_nightly", "sync_initial"}
        assert isinstance(jobs["sync_interval"].trigger, IntervalTrigger)
        assert jobs["sync_interval"].trigger.interval.total_seconds() == 6 * 3600
        assert isinstance(jobs["sync_nightly"].trigger, CronTrigger)
        assert "hour='2'" in str(jobs["sync_nightly"].trigger)
        assert isinstance(jobs["sync_initial"].trigger, DateTrigger)

    def test_jobs_run_full_reload_by_default(self):
        orchestrator = MagicMock()
        scheduler = create_scheduler(orchestrator=orchestrator)
        for job in scheduler.get_jobs():
            assert job.args == (orchestrator, SyncMode.FULL_RELOAD)

    def test_initial_run_can_be_disabled(self):
        scheduler = create_scheduler(orchestrator=MagicMock(), initial_delay_seconds=-1)
        assert {job.id for job in scheduler.get_jobs()} == {"sync_interval", "sync_nightly"}

    def test_custom_schedule(self):
        scheduler = create_scheduler(
            orchestrator=MagicMock(), interval_hours=12, nightly_hour=4, mode=SyncMode.INCREMENTAL,
        )
        jobs = {job.id: job for job in scheduler.get_jobs()}
        assert jobs["sync_interval"].trigger.interval.total_seconds() == 12 * 3600
        assert "hour='4'" in str(jobs["sync_nightly"].trigger)
        assert jobs["sync_nightly"].args[1] == SyncMode.INCREMENTAL


class TestScheduledSync:

    def test_runs_orchestrator(self):
        orchestrator = MagicMock()
        scheduled_sync(orchestrator, SyncMode.FULL_RELOAD)
        orchestrator.run.assert_called_once_with(SyncMode.FULL_RELOAD)

    def test_busy_run_is_skipped_quietly(self):
        orchestrator = MagicMock()
        orchestrator.run.return_value = None
        scheduled_sync(orchestrator, SyncMode.FULL_RELOAD)

    def test_failure_does_not_escape_job(self):
        orchestrator = MagicMock()
        orchestrator.run.side_effect = RuntimeError("browser failed to launch")
        scheduled_sync(orchestrator)
