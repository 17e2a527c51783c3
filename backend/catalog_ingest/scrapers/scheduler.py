"""APScheduler-based sync scheduler.

Runs the full brand sweep at a fixed interval. A sweep that is still
running when the next tick fires is skipped, never run concurrently.
"""

from datetime import datetime, timezone
from typing import Optional

import structlog
from apscheduler.job import Job
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from catalog_ingest.config import settings
from catalog_ingest.db.store import SqlCatalogStore
from catalog_ingest.scrapers.sync_service import SweepSummary, SyncService

logger = structlog.get_logger(__name__)

SWEEP_JOB_ID = "sync_all_brands"


class SyncScheduler:
    """Manages the periodic sweep job.

    Args:
        db_session_factory: Async session factory for the catalog store
        interval_minutes: Sweep interval, defaults to SCHEDULE_INTERVAL_MINUTES
    """

    def __init__(
        self,
        db_session_factory: async_sessionmaker[AsyncSession],
        interval_minutes: Optional[int] = None,
    ):
        self.db_session_factory = db_session_factory
        self.interval_minutes = interval_minutes or settings.SCHEDULE_INTERVAL_MINUTES
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self.logger = logger.bind(service="sync_scheduler")
        self.last_summary: Optional[SweepSummary] = None

    def start(self) -> None:
        """Start the scheduler. Call add_sweep_job() to register the sweep."""
        if not self.scheduler.running:
            self.scheduler.start()
            self.logger.info("scheduler_started")
        else:
            self.logger.warning("scheduler_already_running")

    def stop(self) -> None:
        """Stop the scheduler, waiting for a running sweep to finish."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=True)
            self.logger.info("scheduler_stopped")
        else:
            self.logger.warning("scheduler_not_running")

    def add_sweep_job(self, run_immediately: bool = False) -> Job:
        """Register the interval sweep job.

        Args:
            run_immediately: Fire the first sweep now instead of after one interval
        """
        trigger = IntervalTrigger(minutes=self.interval_minutes, timezone="UTC")

        job_kwargs = {}
        if run_immediately:
            job_kwargs["next_run_time"] = datetime.now(timezone.utc)

        job = self.scheduler.add_job(
            func=self._run_sweep_wrapper,
            trigger=trigger,
            id=SWEEP_JOB_ID,
            name="Sync all active brands",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            **job_kwargs,
        )

        self.logger.info(
            "sweep_job_added",
            interval_minutes=self.interval_minutes,
            next_run=job.next_run_time.isoformat() if getattr(job, "next_run_time", None) else None,
        )
        return job

    async def _run_sweep_wrapper(self) -> None:
        """Entry point APScheduler calls; a failed sweep never stops the scheduler."""
        try:
            await self.run_sweep()
        except Exception as e:
            self.logger.error("sweep_job_failed", error=str(e), exc_info=True)

    async def run_sweep(self) -> SweepSummary:
        """Run one sweep over every active brand."""
        self.logger.info("starting_sweep_job")
        store = SqlCatalogStore(self.db_session_factory)
        summary = await SyncService(store).sync_all()
        self.last_summary = summary

        self.logger.info(
            "sweep_job_completed",
            brands=len(summary.results),
            added=summary.total_added,
            updated=summary.total_updated,
            failed=summary.total_failed,
            failed_brands=summary.failed_brands,
        )
        return summary

    def get_jobs_status(self) -> dict:
        job = self.scheduler.get_job(SWEEP_JOB_ID)
        if job is None:
            return {}
        return {
            SWEEP_JOB_ID: {
                "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
                "trigger": str(job.trigger),
            }
        }

    def is_running(self) -> bool:
        return self.scheduler.running
