"""Background scheduler for the periodic offline replay and connectivity probe."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from packsync.core.time_utils import utc_now

if TYPE_CHECKING:
    from packsync.config import SyncConfig
    from packsync.services.network_status import ConnectivityProbe
    from packsync.services.sync_service import SyncService

logger = logging.getLogger(__name__)

SYNC_JOB_ID = "offline_sync"
PROBE_JOB_ID = "connectivity_probe"


class SchedulerService:
    """Manages the periodic jobs of the sync layer."""

    def __init__(
        self,
        cfg: SyncConfig,
        sync_service: SyncService,
        probe: ConnectivityProbe | None = None,
    ) -> None:
        """Initialize scheduler service.

        Args:
            cfg: Sync configuration (intervals, probe switch)
            sync_service: Service whose replay runs every ``cfg.interval_sec``
            probe: Connectivity probe run every ``cfg.probe_interval_sec``
        """
        self.cfg = cfg
        self._sync_service = sync_service
        self._probe = probe
        self._scheduler: AsyncIOScheduler | None = None
        self._started = False

    @property
    def running(self) -> bool:
        return self._started

    async def start(self) -> None:
        """Start the scheduler with configured jobs."""
        if self._started:
            logger.warning("scheduler_already_started")
            return

        self._scheduler = AsyncIOScheduler()

        self._scheduler.add_job(
            self._sync_service.run_scheduled_sync,
            trigger=IntervalTrigger(seconds=self.cfg.interval_sec),
            id=SYNC_JOB_ID,
            name="Offline Operation Replay",
            replace_existing=True,
            max_instances=1,  # Prevent overlapping runs
            coalesce=True,
        )
        logger.info(
            "scheduler_sync_job_added",
            extra={"job_id": SYNC_JOB_ID, "interval_sec": self.cfg.interval_sec},
        )

        if self._probe is not None and self.cfg.probe_enabled:
            self._scheduler.add_job(
                self._probe.run_scheduled_probe,
                trigger=IntervalTrigger(seconds=self.cfg.probe_interval_sec),
                id=PROBE_JOB_ID,
                name="Connectivity Probe",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
                # First probe right away, then on the interval
                next_run_time=utc_now(),
            )
            logger.info(
                "scheduler_probe_job_added",
                extra={"job_id": PROBE_JOB_ID, "interval_sec": self.cfg.probe_interval_sec},
            )
        else:
            logger.info(
                "scheduler_probe_job_skipped",
                extra={
                    "probe_enabled": self.cfg.probe_enabled,
                    "has_probe": self._probe is not None,
                },
            )

        self._scheduler.start()
        self._started = True
        logger.info("scheduler_started")

    async def stop(self) -> None:
        """Stop the scheduler gracefully."""
        if self._scheduler and self._started:
            self._scheduler.shutdown(wait=True)
            self._scheduler = None
            self._started = False
            logger.info("scheduler_stopped")

    def get_next_run_time(self, job_id: str) -> datetime | None:
        """Get next scheduled run time for a job.

        Args:
            job_id: Job identifier (``SYNC_JOB_ID`` or ``PROBE_JOB_ID``)

        Returns:
            Next run time or None if job not found or scheduler not running
        """
        if not self._scheduler:
            return None
        job = self._scheduler.get_job(job_id)
        return job.next_run_time if job else None
