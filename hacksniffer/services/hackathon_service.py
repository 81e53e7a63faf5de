"""Hackathon record store backed by SQLAlchemy.

The ingestion pipeline only needs five operations from a store, captured
by the RecordStore protocol. HackathonService implements them on the
async ORM session and commits after every write, so records written
before a failure stay written.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Protocol
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from hacksniffer.core.exceptions import StoreError
from hacksniffer.models.hackathon import Hackathon
from hacksniffer.scrapers.base import CandidateRecord
from hacksniffer.scrapers.utils.normalizer import canonicalize_url

logger = structlog.get_logger(__name__)

# Columns an update may touch; id and created_at are never rewritten
UPDATABLE_FIELDS = frozenset({
    "title",
    "description",
    "start_date",
    "end_date",
    "registration_deadline",
    "dates_synthesized",
    "location",
    "is_online",
    "website_url",
    "registration_url",
    "canonical_url",
    "source",
})


class RecordStore(Protocol):
    """Persistence operations the ingestion pipeline depends on."""

    async def find_by_canonical_url(self, url: str) -> Optional[Any]:
        ...

    async def find_upcoming(self, limit: int = 100) -> List[Any]:
        ...

    async def find_starting_near(self, start: datetime, within: timedelta, limit: int = 100) -> List[Any]:
        ...

    async def create(self, candidate: CandidateRecord) -> Any:
        ...

    async def update(self, record_id: UUID, fields: Dict[str, Any]) -> Optional[Any]:
        ...


class HackathonService:
    """SQLAlchemy implementation of RecordStore for Hackathon rows."""

    def __init__(self, db: AsyncSession):
        """Initialize hackathon service.

        Args:
            db: Async database session
        """
        self.db = db
        self.logger = logger.bind(service="hackathon_service")

    async def _fail(self, operation: str, error: SQLAlchemyError) -> StoreError:
        await self.db.rollback()
        self.logger.error("store_operation_failed", operation=operation, error=str(error))
        return StoreError(operation, str(error))

    async def find_by_canonical_url(self, url: str) -> Optional[Hackathon]:
        """Find the record listed at a canonical URL.

        Args:
            url: URL to look up; canonicalized before the query

        Returns:
            Matching Hackathon or None
        """
        canonical = canonicalize_url(url)
        if not canonical:
            return None
        try:
            result = await self.db.execute(
                select(Hackathon)
                .where(Hackathon.canonical_url == canonical)
                .order_by(Hackathon.created_at)
                .limit(1)
            )
        except SQLAlchemyError as e:
            raise await self._fail("find_by_canonical_url", e) from e
        return result.scalar_one_or_none()

    async def find_upcoming(self, limit: int = 100) -> List[Hackathon]:
        """Records starting after now, soonest first.

        Args:
            limit: Maximum number of records

        Returns:
            List of Hackathon ordered by start_date ascending
        """
        now = datetime.now(timezone.utc)
        try:
            result = await self.db.execute(
                select(Hackathon)
                .where(Hackathon.start_date > now)
                .order_by(Hackathon.start_date.asc())
                .limit(limit)
            )
        except SQLAlchemyError as e:
            raise await self._fail("find_upcoming", e) from e
        return list(result.scalars().all())

    async def find_starting_near(
        self,
        start: datetime,
        within: timedelta,
        limit: int = 100,
    ) -> List[Hackathon]:
        """Records whose start lies within ``within`` of ``start``.

        Unlike find_upcoming this ignores the current time, so events that
        have already started are found as well.

        Args:
            start: Reference start timestamp
            within: Maximum distance from start, in either direction
            limit: Maximum number of records

        Returns:
            List of Hackathon ordered by start_date ascending
        """
        try:
            result = await self.db.execute(
                select(Hackathon)
                .where(Hackathon.start_date >= start - within)
                .where(Hackathon.start_date <= start + within)
                .order_by(Hackathon.start_date.asc())
                .limit(limit)
            )
        except SQLAlchemyError as e:
            raise await self._fail("find_starting_near", e) from e
        return list(result.scalars().all())

    async def get(self, record_id: UUID) -> Optional[Hackathon]:
        try:
            return await self.db.get(Hackathon, record_id)
        except SQLAlchemyError as e:
            raise await self._fail("get", e) from e

    async def create(self, candidate: CandidateRecord) -> Hackathon:
        """Insert a new record; its id is assigned here and never changes.

        Raises:
            StoreError: If the insert fails
        """
        hackathon = Hackathon(**candidate.to_fields())
        try:
            self.db.add(hackathon)
            await self.db.commit()
        except SQLAlchemyError as e:
            raise await self._fail("create", e) from e

        self.logger.info(
            "hackathon_created",
            hackathon_id=str(hackathon.id),
            source=hackathon.source,
            title=hackathon.title[:80],
        )
        return hackathon

    async def update(self, record_id: UUID, fields: Dict[str, Any]) -> Optional[Hackathon]:
        """Overwrite fields of an existing record.

        Args:
            record_id: Id of the record to update
            fields: Column values; unknown keys are ignored

        Returns:
            Updated Hackathon, or None if no record has that id

        Raises:
            StoreError: If the update fails
        """
        hackathon = await self.get(record_id)
        if hackathon is None:
            self.logger.warning("hackathon_not_found", hackathon_id=str(record_id))
            return None

        for key, value in fields.items():
            if key in UPDATABLE_FIELDS:
                setattr(hackathon, key, value)

        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            raise await self._fail("update", e) from e

        self.logger.info(
            "hackathon_updated",
            hackathon_id=str(hackathon.id),
            source=hackathon.source,
            fields=sorted(key for key in fields if key in UPDATABLE_FIELDS),
        )
        return hackathon
