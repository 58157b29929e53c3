"""Tests for SyncScheduler. APScheduler is replaced by a MagicMock."""

from __future__ import annotations

from datetime import UTC, datetime
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from nautilus.models import CloudCredentials
from nautilus.scheduler import STARTUP_JOB_ID, SYNC_JOB_ID, SyncScheduler, validate_schedule

AWS_READY = CloudCredentials(
    aws_enabled=True, aws_access_key_id="AK", aws_secret_access_key="SK",
    update_schedule="0 3 * * *",
)


def _store(creds: CloudCredentials) -> MagicMock:
    store = MagicMock()
    store.load_cloud_credentials.return_value = creds
    return store


def _apscheduler(running: bool = False) -> MagicMock:
    sched = MagicMock()
    sched.running = running
    sched.get_job.return_value = None
    return sched


class TestValidateSchedule:
    def test_valid(self) -> None:
        assert validate_schedule("0 2 * * *") is not None
        assert validate_schedule("*/15 * * * 1-5") is not None

    @pytest.mark.parametrize("expr", ["not a cron", "0 2 * *", "61 * * * *"])
    def test_invalid(self, expr: str) -> None:
        with pytest.raises(ValueError):
            validate_schedule(expr)


class TestStart:
    def test_not_configured(self) -> None:
        sched = _apscheduler()
        scheduler = SyncScheduler(_store(CloudCredentials()), runner=lambda: 0, scheduler=sched)
        assert scheduler.start() is False
        sched.add_job.assert_not_called()
        sched.start.assert_not_called()

    def test_enabled_but_incomplete(self) -> None:
        sched = _apscheduler()
        creds = CloudCredentials(gcp_enabled=True, gcp_project_id="p")
        assert SyncScheduler(_store(creds), runner=lambda: 0, scheduler=sched).start() is False

    def test_configured(self) -> None:
        sched = _apscheduler()
        scheduler = SyncScheduler(_store(AWS_READY), runner=lambda: 0, scheduler=sched)
        assert scheduler.start() is True
        sched.start.assert_called_once()

        recurring, startup = sched.add_job.call_args_list
        assert recurring.kwargs["id"] == SYNC_JOB_ID
        assert recurring.kwargs["max_instances"] == 1
        assert recurring.kwargs["coalesce"] is True
        assert startup.kwargs["id"] == STARTUP_JOB_ID

    def test_invalid_stored_schedule(self) -> None:
        sched = _apscheduler()
        creds = AWS_READY.model_copy(update={"update_schedule": "whenever"})
        assert SyncScheduler(_store(creds), runner=lambda: 0, scheduler=sched).start() is False
        sched.add_job.assert_not_called()


class TestReload:
    def test_replaces_existing_job(self) -> None:
        sched = _apscheduler(running=True)
        sched.get_job.return_value = SimpleNamespace(next_run_time=None)
        scheduler = SyncScheduler(_store(AWS_READY), runner=lambda: 0, scheduler=sched)
        assert scheduler.reload() is True
        sched.remove_job.assert_called_once_with(SYNC_JOB_ID)
        assert sched.add_job.call_count == 1
        sched.start.assert_not_called()

    def test_unconfigured_removes_job(self) -> None:
        sched = _apscheduler(running=True)
        sched.get_job.return_value = SimpleNamespace(next_run_time=None)
        scheduler = SyncScheduler(_store(CloudCredentials()), runner=lambda: 0, scheduler=sched)
        assert scheduler.reload() is False
        sched.remove_job.assert_called_once_with(SYNC_JOB_ID)
        sched.add_job.assert_not_called()


class TestRunOnce:
    def test_returns_exit_status(self) -> None:
        scheduler = SyncScheduler(_store(AWS_READY), runner=lambda: 3, scheduler=_apscheduler())
        assert scheduler.run_once() == 3

    def test_overlapping_run_skipped(self) -> None:
        nested: list[int | None] = []
        running: list[bool] = []

        def runner() -> int:
            running.append(scheduler.is_running)
            nested.append(scheduler.run_once())
            return 0

        scheduler = SyncScheduler(_store(AWS_READY), runner=runner, scheduler=_apscheduler())
        assert scheduler.run_once() == 0
        assert nested == [None]
        assert running == [True]
        assert scheduler.is_running is False

    def test_lock_released_after_error(self) -> None:
        def runner() -> int:
            raise RuntimeError("boom")

        scheduler = SyncScheduler(_store(AWS_READY), runner=runner, scheduler=_apscheduler())
        with pytest.raises(RuntimeError):
            scheduler.run_once()
        assert scheduler.is_running is False

    def test_subprocess_command(self) -> None:
        scheduler = SyncScheduler(
            _store(AWS_READY), scheduler=_apscheduler(), database_url="sqlite:///n.db",
        )
        completed = SimpleNamespace(returncode=0, stdout="GKE: 1 cluster(s)\n", stderr="")
        with patch("nautilus.scheduler.subprocess.run", return_value=completed) as run:
            assert scheduler.run_once() == 0
        cmd = run.call_args.args[0]
        assert cmd[1:4] == ["-m", "nautilus.cli.main", "sync"]
        assert cmd[-2:] == ["--database-url", "sqlite:///n.db"]


class TestNextRunTime:
    def test_no_job(self) -> None:
        scheduler = SyncScheduler(_store(AWS_READY), runner=lambda: 0, scheduler=_apscheduler())
        assert scheduler.next_run_time is None

    def test_scheduled(self) -> None:
        when = datetime(2024, 6, 3, 3, 0, tzinfo=UTC)
        sched = _apscheduler()
        sched.get_job.return_value = SimpleNamespace(next_run_time=when)
        scheduler = SyncScheduler(_store(AWS_READY), runner=lambda: 0, scheduler=sched)
        assert scheduler.next_run_time == when

    def test_shutdown(self) -> None:
        sched = _apscheduler(running=True)
        SyncScheduler(_store(AWS_READY), runner=lambda: 0, scheduler=sched).shutdown()
        sched.shutdown.assert_called_once_with(wait=False)
