"""Base source adapter interface.

All source-specific scrapers should inherit from BaseAdapter and
implement scrape(). Parsing is expressed as ordered, pure strategy
functions that run_strategies() tries until one yields records.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import structlog

from hacksniffer.core.exceptions import FetchError, ValidationError
from hacksniffer.scrapers.utils.normalizer import (
    MAX_DESCRIPTION_LENGTH,
    MAX_TITLE_LENGTH,
    DateRange,
    absolute_url,
    canonicalize_url,
    classify_location,
    clean_text,
    ensure_utc,
    placeholder_window,
    strip_html,
    truncate,
)


logger = structlog.get_logger(__name__)


class SourceId(str, Enum):
    """Tags of the supported hackathon sources."""

    DEVPOST = "devpost"
    MLH = "mlh"
    EVENTBRITE = "eventbrite"


# Earlier sources win when duplicates are merged
SOURCE_PRIORITY: Tuple[SourceId, ...] = (SourceId.MLH, SourceId.DEVPOST, SourceId.EVENTBRITE)


def source_rank(source: Any) -> int:
    """Position of a source in SOURCE_PRIORITY; unknown sources rank last."""
    try:
        return SOURCE_PRIORITY.index(SourceId(source))
    except ValueError:
        return len(SOURCE_PRIORITY)


@dataclass(frozen=True, kw_only=True)
class CandidateRecord:
    """Normalized hackathon data returned by all adapters.

    Construction validates the record, so an existing instance always has
    a title, a location, a known source and a start strictly before its end.
    """

    title: str
    description: Optional[str] = None
    start_date: datetime
    end_date: datetime
    registration_deadline: Optional[datetime] = None
    location: str
    is_online: bool = False
    website_url: Optional[str] = None
    registration_url: Optional[str] = None
    source: SourceId
    dates_synthesized: bool = False  # True when a placeholder window replaced unparseable dates

    def __post_init__(self):
        """Validate data after initialization."""
        try:
            source = SourceId(self.source)
        except ValueError:
            raise ValidationError(str(self.source), f"unknown source: {self.source!r}") from None
        object.__setattr__(self, "source", source)

        if not self.title or not self.title.strip():
            raise ValidationError(source.value, "title is required")
        if len(self.title) > MAX_TITLE_LENGTH:
            raise ValidationError(source.value, f"title exceeds {MAX_TITLE_LENGTH} characters")
        if not self.location or not self.location.strip():
            raise ValidationError(source.value, "location is required")
        if self.start_date is None or self.end_date is None:
            raise ValidationError(source.value, "start_date and end_date are required")

        start = ensure_utc(self.start_date)
        end = ensure_utc(self.end_date)
        if start >= end:
            raise ValidationError(
                source.value,
                f"start_date {start.isoformat()} is not before end_date {end.isoformat()}",
            )
        object.__setattr__(self, "start_date", start)
        object.__setattr__(self, "end_date", end)
        if self.registration_deadline is not None:
            object.__setattr__(self, "registration_deadline", ensure_utc(self.registration_deadline))

    @property
    def canonical_url(self) -> Optional[str]:
        """Canonical listing URL: website URL, falling back to registration URL."""
        return canonicalize_url(self.website_url or self.registration_url)

    def to_fields(self) -> Dict[str, Any]:
        """Column values for persisting this record."""
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values["source"] = self.source.value
        values["canonical_url"] = self.canonical_url
        return values

    @classmethod
    def from_record(cls, record: Any) -> "CandidateRecord":
        """Build a candidate from any object with the same attribute names,
        e.g. a persisted Hackathon row."""
        return cls(**{f.name: getattr(record, f.name) for f in fields(cls)})


@dataclass(frozen=True)
class ParseContext:
    """Everything a pure strategy function needs besides the document."""

    base_url: str
    source: SourceId
    now: datetime
    online_keywords: Tuple[str, ...] = ()
    placeholder_days: int = 30


Strategy = Callable[[str, ParseContext], List[CandidateRecord]]

# Errors that mean "this listing item is unusable", never "the page is unusable"
ITEM_ERRORS = (ValidationError, ValueError, KeyError, TypeError, AttributeError, IndexError)


def build_candidate(
    ctx: ParseContext,
    *,
    title: Optional[str],
    dates: Optional[DateRange],
    location: Optional[str] = None,
    website_url: Optional[str] = None,
    description: Optional[str] = None,
    registration_url: Optional[str] = None,
    registration_deadline: Optional[datetime] = None,
    is_online: Optional[bool] = None,
) -> CandidateRecord:
    """Normalize raw extracted values into a validated CandidateRecord.

    Missing dates are replaced with the context's placeholder window and
    the record is flagged as synthesized.

    Raises:
        ValidationError: If the normalized values are still invalid
    """
    if dates is None:
        dates = placeholder_window(ctx.now, ctx.placeholder_days)

    location_text, online = classify_location(location, ctx.online_keywords)
    if is_online:
        online = True

    description_text = truncate(strip_html(description), MAX_DESCRIPTION_LENGTH)

    return CandidateRecord(
        title=clean_text(title),
        description=description_text or None,
        start_date=dates.start,
        end_date=dates.end,
        registration_deadline=registration_deadline,
        location=location_text,
        is_online=online,
        website_url=absolute_url(website_url, ctx.base_url),
        registration_url=absolute_url(registration_url, ctx.base_url),
        source=ctx.source,
        dates_synthesized=dates.synthesized,
    )


def parse_items(
    items: Iterable[Any],
    parse_item: Callable[[Any, ParseContext], Optional[CandidateRecord]],
    ctx: ParseContext,
    limit: Optional[int] = None,
) -> List[CandidateRecord]:
    """Apply parse_item to each listing item, skipping the bad ones.

    Args:
        items: Raw listing items (tags, JSON objects, ...)
        parse_item: Returns a record, or None for items that aren't events
        ctx: Parse context
        limit: Maximum number of items to inspect

    Returns:
        Records from every item that parsed and validated
    """
    records: List[CandidateRecord] = []
    for index, item in enumerate(items):
        if limit is not None and index >= limit:
            break
        try:
            record = parse_item(item, ctx)
        except ITEM_ERRORS as e:
            logger.warning(
                "listing_item_skipped",
                source=ctx.source.value,
                index=index,
                error=str(e),
            )
            continue
        if record is not None:
            records.append(record)
    return records


def run_strategies(
    strategies: Sequence[Strategy],
    document: str,
    ctx: ParseContext,
    log: Optional[Any] = None,
) -> List[CandidateRecord]:
    """Try extraction strategies in order; the first with results wins.

    A strategy that raises is logged and treated as having found nothing.

    Args:
        strategies: Ordered pure functions (document, ctx) -> records
        document: Page body
        ctx: Parse context
        log: Bound logger for context (defaults to the module logger)

    Returns:
        Records from the first productive strategy, or an empty list
    """
    log = log or logger
    for strategy in strategies:
        try:
            records = strategy(document, ctx)
        except Exception as e:
            log.warning("strategy_failed", strategy=strategy.__name__, error=str(e))
            continue

        if records:
            log.info("strategy_matched", strategy=strategy.__name__, count=len(records))
            return records

        log.debug("strategy_empty", strategy=strategy.__name__)
    return []


class BaseAdapter(ABC):
    """Abstract base class for all source adapters.

    An adapter owns the parsing logic of one source and delegates all
    network I/O to the shared Fetcher.
    """

    source_id: SourceId
    name: str = ""
    base_url: str = ""
    listing_paths: Tuple[str, ...] = ()
    online_keywords: Tuple[str, ...] = ()
    placeholder_days: int = 30
    max_detail_pages: int = 5

    def __init__(self, fetcher, clock: Optional[Callable[[], datetime]] = None):
        """Initialize the adapter.

        Args:
            fetcher: Shared Fetcher instance
            clock: Returns the current UTC time (injectable for tests)
        """
        self.fetcher = fetcher
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.logger = structlog.get_logger(adapter=self.source_id.value)

    @property
    def required_paths(self) -> List[str]:
        """Paths checked against robots.txt before scraping."""
        return list(self.listing_paths)

    def url_for(self, path: str) -> str:
        return self.base_url.rstrip("/") + path

    def parse_context(self) -> ParseContext:
        return ParseContext(
            base_url=self.base_url,
            source=self.source_id,
            now=self.clock(),
            online_keywords=self.online_keywords,
            placeholder_days=self.placeholder_days,
        )

    @abstractmethod
    async def scrape(self) -> List[CandidateRecord]:
        """Fetch and parse the source's current hackathon listings.

        Returns:
            List of validated CandidateRecord objects

        Raises:
            FetchError: If the primary listing page cannot be fetched
        """
        pass

    async def fetch_optional(self, url: str) -> Optional[str]:
        """Fetch a secondary page; failures are logged and yield None."""
        try:
            return await self.fetcher.fetch(url, self.source_id.value)
        except FetchError as e:
            self.logger.warning("secondary_fetch_failed", url=url, error=str(e))
            return None

    async def enrich_links(
        self,
        links: Sequence[str],
        parse_detail: Callable[[str, str, ParseContext], Optional[CandidateRecord]],
        ctx: ParseContext,
    ) -> List[CandidateRecord]:
        """Fetch up to max_detail_pages harvested links and parse each one.

        Args:
            links: Absolute detail-page URLs
            parse_detail: Pure function (document, url, ctx) -> record or None
            ctx: Parse context

        Returns:
            Records from the detail pages that fetched and parsed
        """
        records: List[CandidateRecord] = []
        for url in links[: self.max_detail_pages]:
            document = await self.fetch_optional(url)
            if document is None:
                continue
            try:
                record = parse_detail(document, url, ctx)
            except ITEM_ERRORS as e:
                self.logger.warning("detail_page_skipped", url=url, error=str(e))
                continue
            if record is not None:
                records.append(record)
        return records
