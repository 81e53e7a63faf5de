"""Tests for the cron ingestion scheduler."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy import select

from hacksniffer.core.exceptions import FetchError
from hacksniffer.models import IngestionJob
from hacksniffer.scrapers.base import BaseAdapter, CandidateRecord, SourceId
from hacksniffer.scrapers.scheduler import JOB_ID, IngestionScheduler

START = datetime(2031, 6, 1, tzinfo=timezone.utc)


def make_record(title: str) -> CandidateRecord:
    return CandidateRecord(
        title=title,
        start_date=START,
        end_date=START + timedelta(days=2),
        location="Online",
        is_online=True,
        source=SourceId.DEVPOST,
    )


class ListAdapter(BaseAdapter):
    source_id = SourceId.DEVPOST
    base_url = "https://list.example"
    listing_paths = ("/",)

    def __init__(self, fetcher, candidates=(), source_id=None, error=None):
        if source_id is not None:
            self.source_id = source_id
        super().__init__(fetcher)
        self.candidates = list(candidates)
        self.error = error

    async def scrape(self):
        if self.error is not None:
            raise self.error
        return list(self.candidates)


class GatedAdapter(ListAdapter):
    """Blocks in scrape() until the test opens the gate."""

    def __init__(self, fetcher, candidates=()):
        super().__init__(fetcher, candidates)
        self.gate = asyncio.Event()
        self.entered = asyncio.Event()

    async def scrape(self):
        self.entered.set()
        await self.gate.wait()
        return list(self.candidates)


class TestIngestionScheduler:
    """Single-flight runs, job records and lifecycle."""

    async def test_run_records_one_job_per_adapter(self, session_factory, site, make_fetcher):
        fetcher = make_fetcher(site)
        adapters = [
            ListAdapter(fetcher, [make_record("Scheduled Hack")]),
            ListAdapter(fetcher, source_id=SourceId.MLH, error=FetchError("mlh", "https://mlh.io", 3)),
        ]
        scheduler = IngestionScheduler(session_factory, fetcher, adapters)

        report = await scheduler.run_ingestion()

        assert report.events_created == 1
        async with session_factory() as db:
            jobs = (await db.execute(select(IngestionJob).order_by(IngestionJob.source))).scalars().all()
        assert [(job.source, job.status) for job in jobs] == [("devpost", "completed"), ("mlh", "failed")]
        assert jobs[0].events_created == 1
        assert jobs[1].errors.startswith("Adapter error:")
        assert scheduler.get_status()["last_report"]["totals"]["events_created"] == 1

    async def test_overlapping_run_is_skipped(self, session_factory, site, make_fetcher):
        fetcher = make_fetcher(site)
        adapter = GatedAdapter(fetcher, [make_record("Slow Hack")])
        scheduler = IngestionScheduler(session_factory, fetcher, [adapter])

        first = asyncio.create_task(scheduler.run_ingestion())
        await adapter.entered.wait()

        assert scheduler.is_running()
        assert scheduler.get_status()["state"] == "running"
        assert await scheduler.run_ingestion() is None

        adapter.gate.set()
        report = await first

        assert report.events_created == 1
        assert scheduler.is_running() is False

    async def test_stop_waits_for_in_flight_run(self, session_factory, site, make_fetcher):
        fetcher = make_fetcher(site)
        adapter = GatedAdapter(fetcher, [make_record("Interrupted Hack")])
        scheduler = IngestionScheduler(session_factory, fetcher, [adapter])

        run = asyncio.create_task(scheduler.run_ingestion())
        await adapter.entered.wait()
        stopping = asyncio.create_task(scheduler.stop())
        await asyncio.sleep(0.01)

        assert not stopping.done()
        assert fetcher.is_shutting_down

        adapter.gate.set()
        await stopping

        report = run.result()
        assert report.results[0].events_processed == 0
        assert scheduler.is_running() is False

    async def test_start_registers_cron_job(self, session_factory, site, make_fetcher):
        fetcher = make_fetcher(site)
        scheduler = IngestionScheduler(session_factory, fetcher, [], cron="0 3 * * *")

        scheduler.start()
        try:
            job = scheduler.scheduler.get_job(JOB_ID)
            assert isinstance(job.trigger, CronTrigger)
            assert job.max_instances == 1
            assert job.coalesce is True

            status = scheduler.get_status()
            assert status["scheduled"] is True
            assert status["state"] == "idle"
            assert status["next_run"].endswith("03:00:00+00:00")
        finally:
            await scheduler.stop()

        assert scheduler.scheduler.running is False

    async def test_invalid_cron_rejected(self, session_factory, site, make_fetcher):
        scheduler = IngestionScheduler(session_factory, make_fetcher(site), [], cron="every day")

        with pytest.raises(ValueError):
            scheduler.start()

    async def test_wrapper_swallows_failures(self, session_factory, site, make_fetcher):
        scheduler = IngestionScheduler(session_factory, make_fetcher(site), [])
        scheduler.run_ingestion = AsyncMock(side_effect=RuntimeError("database is gone"))

        await scheduler._run_ingestion_wrapper()

        scheduler.run_ingestion.assert_awaited_once()
