"""APScheduler-based ingestion scheduler.

This module runs the full ingestion (every adapter, in order) on a cron
schedule. At most one run is in flight at any time: a tick that arrives
while a run is still going is skipped, and stop() lets the in-flight run
finish before the fetcher is closed.
"""

import asyncio
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

import structlog
from apscheduler.job import Job
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hacksniffer.config import settings
from hacksniffer.core.exceptions import StoreError
from hacksniffer.models.ingestion_job import IngestionJob
from hacksniffer.scrapers.base import BaseAdapter
from hacksniffer.scrapers.ingestion_service import IngestionReport, IngestionService

logger = structlog.get_logger(__name__)

JOB_ID = "ingest_hackathons"


class IngestionScheduler:
    """Manages the periodic ingestion job using APScheduler.

    This scheduler:
    - Registers one cron job that runs every adapter sequentially
    - Skips a run if the previous one is still in progress
    - Records each adapter's result to the ingestion_jobs table
    - Handles errors without stopping the scheduler
    """

    def __init__(
        self,
        db_session_factory: async_sessionmaker[AsyncSession],
        fetcher,
        adapters: Sequence[BaseAdapter],
        cron: Optional[str] = None,
        threshold: Optional[float] = None,
        window: Optional[int] = None,
    ):
        """Initialize ingestion scheduler.

        Args:
            db_session_factory: Async session factory for database access
            fetcher: Shared Fetcher; closed by stop()
            adapters: Adapters in run order
            cron: Five-field cron expression, evaluated in UTC (defaults to INGEST_CRON)
            threshold: Duplicate similarity threshold passed to the service
            window: Duplicate comparison window passed to the service
        """
        self.db_session_factory = db_session_factory
        self.fetcher = fetcher
        self.adapters: List[BaseAdapter] = list(adapters)
        self.cron = cron or settings.INGEST_CRON
        self.threshold = threshold
        self.window = window
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self.logger = logger.bind(service="ingestion_scheduler")

        self._job: Optional[Job] = None
        self._running = False
        self._idle = asyncio.Event()
        self._idle.set()
        self.last_report: Optional[IngestionReport] = None
        self.last_run_at: Optional[datetime] = None

    def start(self) -> Job:
        """Register the cron job and start the scheduler.

        Must be called from inside a running event loop.

        Returns:
            APScheduler Job instance

        Raises:
            ValueError: If the cron expression is invalid
        """
        if self.scheduler.running:
            self.logger.warning("scheduler_already_running")
            return self._job

        trigger = CronTrigger.from_crontab(self.cron, timezone="UTC")
        self._job = self.scheduler.add_job(
            func=self._run_ingestion_wrapper,
            trigger=trigger,
            id=JOB_ID,
            name="Ingest hackathons",
            replace_existing=True,
            max_instances=1,  # Prevent overlapping runs
            coalesce=True,  # Missed ticks collapse into one run
        )
        self.scheduler.start()

        self.logger.info(
            "scheduler_started",
            cron=self.cron,
            adapters=[adapter.source_id.value for adapter in self.adapters],
            next_run=self._next_run_iso(),
        )
        return self._job

    async def stop(self) -> None:
        """Stop the scheduler gracefully.

        Requests shutdown (no new fetches, no new candidates), waits for
        the in-flight run to return, then closes the fetcher.
        """
        self.fetcher.begin_shutdown()

        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            # AsyncIOScheduler may defer shutdown to the next loop iteration
            await asyncio.sleep(0)
            self.logger.info("scheduler_stopped")

        if self._running:
            self.logger.info("waiting_for_ingestion_run")
        await self._idle.wait()

        await self.fetcher.aclose()
        self.logger.info("fetcher_closed")

    async def _run_ingestion_wrapper(self) -> None:
        """Wrapper for run_ingestion that handles exceptions.

        This is the function that APScheduler calls. It catches all
        exceptions to prevent a failed run from stopping the scheduler.
        """
        try:
            await self.run_ingestion()
        except Exception as e:
            self.logger.error("ingestion_job_failed", error=str(e), exc_info=True)

    async def run_ingestion(self) -> Optional[IngestionReport]:
        """Execute one ingestion run over all adapters.

        This method:
        1. Runs every adapter through IngestionService
        2. Records one IngestionJob row per adapter result
        3. Returns the report

        Returns:
            IngestionReport, or None if a run was already in progress

        Raises:
            StoreError: If the record store fails during the run
        """
        if self._running:
            self.logger.warning("ingestion_already_running")
            return None

        self._running = True
        self._idle.clear()
        self.last_run_at = datetime.now(timezone.utc)
        self.logger.info("starting_ingestion_run", adapters=len(self.adapters))

        try:
            async with self.db_session_factory() as db:
                service = IngestionService(
                    db,
                    self.fetcher,
                    self.adapters,
                    threshold=self.threshold,
                    window=self.window,
                )
                report = await service.run()
                await self._record_jobs(db, report)
        finally:
            self._running = False
            self._idle.set()

        self.last_report = report
        self.logger.info(
            "ingestion_run_completed",
            duration_ms=report.duration_ms,
            created=report.events_created,
            updated=report.events_updated,
            errors=report.error_count,
        )
        return report

    async def _record_jobs(self, db: AsyncSession, report: IngestionReport) -> None:
        for result in report.results:
            db.add(
                IngestionJob(
                    source=result.source_id,
                    status=result.status,
                    started_at=result.scraped_at,
                    duration_seconds=Decimal(str(round(result.duration_ms / 1000, 3))),
                    events_found=result.events_found,
                    events_processed=result.events_processed,
                    events_created=result.events_created,
                    events_updated=result.events_updated,
                    errors="\n".join(result.errors) or None,
                )
            )
        try:
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            raise StoreError("record_jobs", str(e)) from e

    def _next_run_iso(self) -> Optional[str]:
        # Pending jobs (scheduler not started) have no next_run_time yet
        next_run = getattr(self._job, "next_run_time", None) if self._job else None
        return next_run.isoformat() if next_run else None

    def get_status(self) -> Dict[str, Any]:
        """Get scheduler status.

        Returns:
            Dict with state, schedule, adapters and last run summary
        """
        return {
            "state": "running" if self._running else "idle",
            "scheduled": self.scheduler.running,
            "cron": self.cron,
            "next_run": self._next_run_iso(),
            "adapters": [adapter.source_id.value for adapter in self.adapters],
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "last_report": self.last_report.to_dict() if self.last_report else None,
        }

    def is_running(self) -> bool:
        """Check if an ingestion run is in progress."""
        return self._running
