"""Ingestion orchestration service.

This service connects the source adapters with the record store. For
every adapter it runs the politeness check and the scrape, then decides
per candidate whether to update an existing record or create a new one.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from hacksniffer.config import settings
from hacksniffer.core.exceptions import PolitenessError, StoreError
from hacksniffer.scrapers.base import BaseAdapter, CandidateRecord
from hacksniffer.services.deduplication import NEAR_DATE_WINDOW, find_duplicate_groups, merge_duplicates
from hacksniffer.services.hackathon_service import HackathonService, RecordStore

logger = structlog.get_logger(__name__)

CREATED = "created"
UPDATED = "updated"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SourceRunResult:
    """Outcome of running one adapter."""

    source_id: str
    events_found: int = 0
    events_processed: int = 0
    events_created: int = 0
    events_updated: int = 0
    errors: List[str] = field(default_factory=list)
    duration_ms: int = 0
    scraped_at: datetime = field(default_factory=_utcnow)
    aborted: bool = False  # The adapter failed before any candidate was processed

    @property
    def status(self) -> str:
        if self.aborted:
            return "failed"
        return "completed_with_errors" if self.errors else "completed"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_id": self.source_id,
            "status": self.status,
            "events_found": self.events_found,
            "events_processed": self.events_processed,
            "events_created": self.events_created,
            "events_updated": self.events_updated,
            "errors": list(self.errors),
            "duration_ms": self.duration_ms,
            "scraped_at": self.scraped_at.isoformat(),
        }


@dataclass
class IngestionReport:
    """Aggregate of one ingestion run over all adapters."""

    started_at: datetime
    duration_ms: int = 0
    results: List[SourceRunResult] = field(default_factory=list)

    @property
    def events_found(self) -> int:
        return sum(r.events_found for r in self.results)

    @property
    def events_processed(self) -> int:
        return sum(r.events_processed for r in self.results)

    @property
    def events_created(self) -> int:
        return sum(r.events_created for r in self.results)

    @property
    def events_updated(self) -> int:
        return sum(r.events_updated for r in self.results)

    @property
    def error_count(self) -> int:
        return sum(len(r.errors) for r in self.results)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "duration_ms": self.duration_ms,
            "totals": {
                "events_found": self.events_found,
                "events_processed": self.events_processed,
                "events_created": self.events_created,
                "events_updated": self.events_updated,
                "errors": self.error_count,
            },
            "results": [r.to_dict() for r in self.results],
        }


class IngestionService:
    """Runs adapters and writes their deduplicated output to the store.

    Handles the complete flow per adapter: robots check → scrape →
    per-candidate URL match / duplicate match / create → run result.
    """

    def __init__(
        self,
        db: AsyncSession,
        fetcher,
        adapters: Optional[Sequence[BaseAdapter]] = None,
        threshold: Optional[float] = None,
        window: Optional[int] = None,
        store: Optional[RecordStore] = None,
    ):
        """Initialize ingestion service.

        Args:
            db: Async database session
            fetcher: Shared Fetcher (also consulted for shutdown requests)
            adapters: Adapters in run order
            threshold: Duplicate similarity threshold (defaults to DEDUP_THRESHOLD)
            window: Upcoming stored records compared per candidate (defaults to DEDUP_WINDOW)
            store: Record store (defaults to a HackathonService on db)
        """
        self.db = db
        self.fetcher = fetcher
        self.adapters = list(adapters or [])
        self.threshold = settings.DEDUP_THRESHOLD if threshold is None else threshold
        self.window = settings.DEDUP_WINDOW if window is None else window
        self.store: RecordStore = store or HackathonService(db)
        self.logger = logger.bind(service="ingestion_service")

    @property
    def stopping(self) -> bool:
        return bool(getattr(self.fetcher, "is_shutting_down", False))

    async def run(self, adapters: Optional[Sequence[BaseAdapter]] = None) -> IngestionReport:
        """Run every adapter sequentially in order.

        Returns:
            IngestionReport with one SourceRunResult per adapter run

        Raises:
            StoreError: If the record store fails; the run is aborted
        """
        report = IngestionReport(started_at=_utcnow())
        start = time.monotonic()

        for adapter in adapters if adapters is not None else self.adapters:
            if self.stopping:
                self.logger.info("ingestion_stopping", skipped_source=adapter.source_id.value)
                break
            report.results.append(await self.run_adapter(adapter))

        report.duration_ms = int((time.monotonic() - start) * 1000)
        self.logger.info(
            "ingestion_run_complete",
            adapters=len(report.results),
            duration_ms=report.duration_ms,
            found=report.events_found,
            created=report.events_created,
            updated=report.events_updated,
            errors=report.error_count,
        )
        return report

    async def run_adapter(self, adapter: BaseAdapter) -> SourceRunResult:
        """Run a single adapter and process all of its candidates.

        Adapter-level failures (robots disallow, listing fetch failure,
        parser crash) and per-candidate failures are recorded in the
        result; only StoreError propagates.

        Args:
            adapter: Adapter to run

        Returns:
            SourceRunResult for this adapter
        """
        source = adapter.source_id.value
        result = SourceRunResult(source_id=source)
        start = time.monotonic()
        self.logger.info("running_adapter", source=source)

        try:
            try:
                await self.fetcher.check_politeness(source, adapter.base_url, adapter.required_paths)
                candidates = await adapter.scrape()
            except PolitenessError as e:
                self.logger.warning("adapter_disallowed", source=source, path=e.path)
                result.errors.append(f"Adapter error: {e}")
                result.aborted = True
                return result
            except StoreError:
                raise
            except Exception as e:
                self.logger.error("adapter_fetch_failed", source=source, error=str(e), exc_info=True)
                result.errors.append(f"Adapter error: {e}")
                result.aborted = True
                return result

            result.events_found = len(candidates)
            self.logger.info("candidates_fetched", source=source, count=len(candidates))

            for candidate in candidates:
                if self.stopping:
                    self.logger.info("ingestion_stopping", source=source, remaining=len(candidates) - result.events_processed)
                    break
                try:
                    outcome = await self.process_candidate(candidate)
                except StoreError:
                    raise
                except Exception as e:
                    self.logger.warning(
                        "candidate_processing_failed",
                        source=source,
                        title=candidate.title[:80],
                        error=str(e),
                    )
                    result.errors.append(f"Event processing error: {e}")
                    continue

                result.events_processed += 1
                if outcome == CREATED:
                    result.events_created += 1
                else:
                    result.events_updated += 1
        finally:
            result.duration_ms = int((time.monotonic() - start) * 1000)

        self.logger.info(
            "adapter_run_complete",
            source=source,
            found=result.events_found,
            processed=result.events_processed,
            created=result.events_created,
            updated=result.events_updated,
            errors=len(result.errors),
            duration_ms=result.duration_ms,
        )
        return result

    async def process_candidate(self, candidate: CandidateRecord) -> str:
        """Write one candidate to the store.

        1. A stored record with the same canonical URL is merged with the
           candidate and updated.
        2. Otherwise the candidate is compared with the upcoming window of
           stored records plus the records starting near it; if it heads a
           duplicate group containing stored records, the first of them is
           merged and updated.
        3. Otherwise the candidate is created.

        Returns:
            "created" or "updated"
        """
        canonical_url = candidate.canonical_url
        if canonical_url:
            existing = await self.store.find_by_canonical_url(canonical_url)
            if existing is not None:
                merged = merge_duplicates([candidate, CandidateRecord.from_record(existing)])
                if await self.store.update(existing.id, merged.to_fields()) is not None:
                    return UPDATED

        stored_rows = await self._comparison_rows(candidate)
        for group in find_duplicate_groups([candidate, *stored_rows], self.threshold):
            if group.primary is not candidate:
                continue
            stored = group.duplicates
            merged = merge_duplicates([candidate, *(CandidateRecord.from_record(r) for r in stored)])
            if await self.store.update(stored[0].id, merged.to_fields()) is not None:
                self.logger.debug(
                    "candidate_merged_into_duplicate",
                    source=candidate.source.value,
                    hackathon_id=str(stored[0].id),
                    group_size=len(group.members),
                )
                return UPDATED

        await self.store.create(candidate)
        return CREATED

    async def _comparison_rows(self, candidate: CandidateRecord) -> List[Any]:
        """Stored records a candidate is compared with, each id once.

        The bounded window of upcoming records comes first, followed by
        records starting near the candidate's start. The second query
        catches events that have already started, including rows written
        earlier in this run. With the default weights a record starting
        further away cannot reach the default threshold.
        """
        rows: Dict[Any, Any] = {}
        for row in await self.store.find_upcoming(self.window):
            rows.setdefault(row.id, row)
        nearby = await self.store.find_starting_near(candidate.start_date, NEAR_DATE_WINDOW, self.window)
        for row in nearby:
            rows.setdefault(row.id, row)
        return list(rows.values())
