"""SchedulerEngine — APScheduler lifecycle for the periodic maintenance sweep."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from src.config import settings
from src.scheduler.models import SweepTrigger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from datetime import datetime

    from apscheduler.job import Job

    from src.scheduler.models import MaintenanceRun
    from src.scheduler.runner import MaintenanceRunner

logger = logging.getLogger(__name__)

MAINTENANCE_JOB_ID = "task-maintenance"


class SchedulerEngine:
    """Fires the maintenance sweep on a cron schedule (hourly by default).

    Args:
        runner: MaintenanceRunner invoked on every fire.
        cron: Crontab expression for the sweep (default from settings).
        timezone: IANA timezone string (default from settings).
    """

    def __init__(
        self,
        runner: MaintenanceRunner,
        cron: str | None = None,
        timezone: str | None = None,
    ) -> None:
        self._runner = runner
        self._cron = cron or settings.maintenance_cron
        self._timezone = timezone or settings.scheduler_timezone
        self._scheduler = AsyncIOScheduler(timezone=self._timezone)
        self._running = False
        self._last_outcome: MaintenanceRun | None = None

    @property
    def running(self) -> bool:
        return self._running

    @property
    def last_outcome(self) -> MaintenanceRun | None:
        """Outcome of the most recent sweep, if any has run."""
        return self._last_outcome

    @property
    def next_run_time(self) -> datetime | None:
        job = self._scheduler.get_job(MAINTENANCE_JOB_ID)
        # Pending jobs (scheduler not started) have no next_run_time yet
        return getattr(job, "next_run_time", None)

    # -- Lifecycle -------------------------------------------------------------

    async def start(self) -> None:
        """Register the maintenance job and start the scheduler."""
        self.add_cron_job(MAINTENANCE_JOB_ID, self._cron, self._run_maintenance)
        self._scheduler.start()
        self._running = True
        logger.info(
            "Scheduler started: task maintenance on '%s' (tz=%s), next run %s",
            self._cron,
            self._timezone,
            self.next_run_time,
        )

    async def stop(self) -> None:
        """Shut down the scheduler."""
        if self._running:
            self._scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Scheduler stopped")

    # -- Jobs ------------------------------------------------------------------

    def add_cron_job(
        self,
        job_id: str,
        cron: str,
        func: Callable[[], Awaitable[Any]],
    ) -> Job:
        """Schedule *func* on a crontab expression, replacing any job with the same ID.

        Jobs never overlap themselves and missed fires collapse into one.
        """
        job = self._scheduler.add_job(
            func,
            trigger=CronTrigger.from_crontab(cron, timezone=self._timezone),
            id=job_id,
            name=job_id,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=None,
            replace_existing=True,
        )
        logger.info("Scheduled job %s (%s)", job_id, cron)
        return job

    async def run_now(self) -> MaintenanceRun:
        """Run a sweep immediately, outside the cron schedule."""
        return await self._run_maintenance()

    # -- Internal --------------------------------------------------------------

    async def _run_maintenance(self) -> MaintenanceRun:
        """Callback invoked by APScheduler. Delegates to the runner."""
        outcome = await self._runner.run(SweepTrigger.now())
        self._last_outcome = outcome
        return outcome
