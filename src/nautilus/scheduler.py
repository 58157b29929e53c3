"""SyncScheduler: runs the sync command on the stored cron schedule.

The schedule is the ``updateSchedule`` cron string in the cloud
credentials setting. Each run is a child process
(``python -m nautilus.cli.main sync``) so a slow or crashing cycle
never affects the web server. A single-slot run lock skips a trigger
that fires while the previous run is still active.
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
import threading
from collections.abc import Callable
from datetime import datetime
from typing import Any

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from nautilus.settings.store import SettingsStore

logger = logging.getLogger(__name__)

SYNC_JOB_ID = "nautilus-sync"
STARTUP_JOB_ID = "nautilus-sync-startup"


def validate_schedule(expression: str) -> CronTrigger:
    """Parse a five-field crontab string; raises ``ValueError`` if invalid."""
    return CronTrigger.from_crontab(expression)


class SyncScheduler:
    """Owns the recurring sync job."""

    def __init__(
        self,
        store: SettingsStore,
        runner: Callable[[], int] | None = None,
        scheduler: Any | None = None,
        database_url: str | None = None,
    ) -> None:
        self._store = store
        self._database_url = database_url
        self._runner = runner or self._run_subprocess
        self._scheduler = scheduler or BackgroundScheduler()
        self._run_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> bool:
        """Schedule the recurring job plus one immediate run.

        Returns False (and schedules nothing) when no provider is
        enabled and fully configured.
        """
        if not self._schedule_from_settings():
            return False
        if not self._scheduler.running:
            self._scheduler.start()
        self._scheduler.add_job(self.run_once, id=STARTUP_JOB_ID, replace_existing=True)
        return True

    def reload(self) -> bool:
        """Re-read the settings and reschedule; no immediate run."""
        if self._scheduler.get_job(SYNC_JOB_ID) is not None:
            self._scheduler.remove_job(SYNC_JOB_ID)
        scheduled = self._schedule_from_settings()
        if scheduled and not self._scheduler.running:
            self._scheduler.start()
        return scheduled

    def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)

    @property
    def next_run_time(self) -> datetime | None:
        job = self._scheduler.get_job(SYNC_JOB_ID)
        return job.next_run_time if job is not None else None

    def _schedule_from_settings(self) -> bool:
        creds = self._store.load_cloud_credentials()
        if not creds.any_configured():
            logger.info("No cloud provider is enabled and configured; sync not scheduled")
            return False
        try:
            trigger = validate_schedule(creds.update_schedule)
        except ValueError as exc:
            logger.error("Invalid update schedule %r: %s", creds.update_schedule, exc)
            return False
        self._scheduler.add_job(
            self.run_once,
            trigger,
            id=SYNC_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logger.info("Sync scheduled with %r", creds.update_schedule)
        return True

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    def run_once(self) -> int | None:
        """Run one sync unless another is active.

        Returns the exit status, or None if the run was skipped.
        """
        if not self._run_lock.acquire(blocking=False):
            logger.warning("Previous sync still running; skipping this trigger")
            return None
        try:
            status = self._runner()
        finally:
            self._run_lock.release()
        if status == 0:
            logger.info("Sync completed")
        else:
            logger.error("Sync exited with status %s", status)
        return status

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    def _run_subprocess(self) -> int:
        cmd = [sys.executable, "-m", "nautilus.cli.main", "sync"]
        if self._database_url:
            cmd += ["--database-url", self._database_url]
        logger.info("Starting sync: %s", " ".join(cmd))
        proc = subprocess.run(  # noqa: S603
            cmd, capture_output=True, text=True, env=os.environ.copy(), check=False,
        )
        for line in proc.stdout.splitlines():
            logger.info("sync: %s", line)
        for line in proc.stderr.splitlines():
            logger.warning("sync: %s", line)
        return proc.returncode
