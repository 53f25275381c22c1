"""APScheduler-based scrape scheduler.

Two interval jobs drive the pipeline: a full scrape cycle and a cleanup
pass that expires stale coupons. Overlap protection lives in the
orchestrator; a tick that fires during an active cycle is a no-op.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from kupon.config import Settings, settings as default_settings
from kupon.scrapers.orchestrator import ScrapeOrchestrator

logger = structlog.get_logger(__name__)


CYCLE_JOB_ID = "scrape_cycle"
CLEANUP_JOB_ID = "expire_stale"


class ScrapeScheduler:
    """Periodic scrape cycles and cleanup on an AsyncIOScheduler.

    Job failures are logged and swallowed so the next tick runs normally.
    """

    def __init__(self, orchestrator: ScrapeOrchestrator, settings: Settings = default_settings):
        self.orchestrator = orchestrator
        self.settings = settings
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self.logger = logger.bind(service="scrape_scheduler")

    def start(self, run_immediately: bool = False) -> None:
        """Register both jobs and start the scheduler.

        Must be called from inside a running event loop.

        Args:
            run_immediately: Fire the first cycle now instead of after one interval
        """
        if self.scheduler.running:
            self.logger.warning("scheduler_already_running")
            return

        cycle_kwargs = {}
        if run_immediately:
            cycle_kwargs["next_run_time"] = datetime.now(timezone.utc) + timedelta(seconds=1)

        self.scheduler.add_job(
            func=self._run_cycle_wrapper,
            trigger=IntervalTrigger(minutes=self.settings.SCRAPE_INTERVAL_MINUTES, timezone="UTC"),
            id=CYCLE_JOB_ID,
            name="Scrape all platforms",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            **cycle_kwargs,
        )

        self.scheduler.add_job(
            func=self._run_cleanup_wrapper,
            trigger=IntervalTrigger(minutes=self.settings.CLEANUP_INTERVAL_MINUTES, timezone="UTC"),
            id=CLEANUP_JOB_ID,
            name="Expire stale coupons",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

        self.scheduler.start()
        self.logger.info(
            "scheduler_started",
            scrape_interval_minutes=self.settings.SCRAPE_INTERVAL_MINUTES,
            cleanup_interval_minutes=self.settings.CLEANUP_INTERVAL_MINUTES,
            run_immediately=run_immediately,
        )

    def stop(self) -> None:
        """Stop the scheduler without waiting for a running cycle."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            self.logger.info("scheduler_stopped")
        else:
            self.logger.warning("scheduler_not_running")

    async def _run_cycle_wrapper(self) -> None:
        """Job entry point for the scrape cycle."""
        try:
            results = await self.orchestrator.run_cycle()
            if not results:
                self.logger.info("scheduled_cycle_skipped")
        except Exception as e:
            self.logger.error("scheduled_cycle_failed", error=str(e), exc_info=True)

    async def _run_cleanup_wrapper(self) -> None:
        """Job entry point for stale-coupon expiry."""
        try:
            await self.orchestrator.cleanup()
        except Exception as e:
            self.logger.error("scheduled_cleanup_failed", error=str(e), exc_info=True)

    def get_jobs_status(self) -> Dict[str, Dict[str, Optional[str]]]:
        """Next run time and trigger of each registered job."""
        jobs = {}
        for job in self.scheduler.get_jobs():
            jobs[job.id] = {
                "name": job.name,
                "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
                "trigger": str(job.trigger),
            }
        return jobs

    def is_running(self) -> bool:
        return self.scheduler.running
