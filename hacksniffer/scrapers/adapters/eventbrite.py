"""Eventbrite adapter.

Searches Eventbrite's public "hackathon" discovery pages. The online
search page is the primary listing; the regional pages only add
results, so their fetch failures are logged and skipped.
"""

import json
from datetime import timedelta
from typing import Any, Dict, List, Optional

from bs4 import Tag

from hacksniffer.scrapers.base import (
    BaseAdapter,
    CandidateRecord,
    ParseContext,
    SourceId,
    build_candidate,
    parse_items,
    run_strategies,
)
from hacksniffer.scrapers.utils.markup import (
    first_text,
    iter_ld_events,
    iter_script_json,
    ld_event_fields,
    make_soup,
    node_text,
)
from hacksniffer.scrapers.utils.normalizer import DateRange, parse_date_range, parse_timestamp


SEARCH_PATHS = (
    "/d/online/hackathon",
    "/d/united-states/hackathon",
    "/d/worldwide/hackathon",
)

MAX_RECORDS = 20
MAX_SERVER_DATA_EVENTS = 10
MAX_CARDS = 15
MAX_LINKS = 10

# Card <time datetime> only carries the start; assume a weekend-length event
ASSUMED_EVENT_LENGTH = timedelta(days=2)

SERVER_DATA_MARKER = "window.__SERVER_DATA__"

CARD_SELECTORS = [
    "[data-testid='organizer-profile-event-card']",
    ".event-card",
    ".search-event-card",
    "[data-event-id]",
    ".eds-event-card",
    ".event-listing",
    "article[data-event]",
]
TITLE_SELECTORS = [
    "h1",
    "h2",
    "h3",
    "h4",
    ".event-title",
    ".card-title",
    ".listing-hero-title",
    "[data-testid='event-title']",
    "a[href*='/e/']",
]
DATE_SELECTORS = [".event-date", ".date-time", ".card-date", "[data-testid='event-date']", ".date"]
LOCATION_SELECTORS = [
    ".event-location",
    ".location",
    ".venue",
    "[data-testid='event-location']",
    ".card-location",
]
DESCRIPTION_SELECTORS = [".event-description", ".description", ".summary", ".card-description", "p"]


def _parse_ld_event(event: Dict[str, Any], ctx: ParseContext) -> Optional[CandidateRecord]:
    fields = ld_event_fields(event, ctx.now)
    return build_candidate(ctx, **fields) if fields else None


def parse_json_ld(document: str, ctx: ParseContext) -> List[CandidateRecord]:
    """Tier 1: JSON-LD Events, bare or wrapped in an ItemList."""
    soup = make_soup(document)
    events = [event for data in iter_script_json(soup, "application/ld+json") for event in iter_ld_events(data)]
    return parse_items(events, _parse_ld_event, ctx)


def extract_server_data(document: str) -> Optional[Dict[str, Any]]:
    """Decode the object assigned to window.__SERVER_DATA__, if present."""
    for script in make_soup(document).find_all("script"):
        content = script.string or script.get_text()
        marker = content.find(SERVER_DATA_MARKER)
        if marker < 0:
            continue
        start = content.find("{", marker)
        if start < 0:
            continue
        try:
            data, _ = json.JSONDecoder().raw_decode(content, start)
        except ValueError:
            continue
        if isinstance(data, dict):
            return data
    return None


def _server_events(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    search_results = data.get("search_results")
    results = data.get("results")
    events = (
        (search_results.get("events") if isinstance(search_results, dict) else None)
        or data.get("events")
        or (results.get("events") if isinstance(results, dict) else None)
        or []
    )
    return [event for event in events if isinstance(event, dict)] if isinstance(events, list) else []


def _text_field(value: Any) -> Optional[str]:
    """Eventbrite wraps many strings as {"text": ..., "html": ...}."""
    if isinstance(value, dict):
        return value.get("text")
    return value if isinstance(value, str) else None


def _time_field(value: Any) -> Any:
    if isinstance(value, dict):
        return value.get("utc") or value.get("local")
    return value


def parse_server_event(event: Dict[str, Any], ctx: ParseContext) -> Optional[CandidateRecord]:
    """Map one event of the __SERVER_DATA__ search results to a candidate."""
    title = _text_field(event.get("name")) or event.get("title")
    url = event.get("url")
    start = parse_timestamp(_time_field(event.get("start")) or event.get("start_date"), ctx.now)
    end = parse_timestamp(_time_field(event.get("end")) or event.get("end_date"), ctx.now)
    if not title or not url or start is None or end is None:
        return None

    venue = event.get("venue")
    location = None
    if isinstance(venue, dict):
        address = venue.get("address")
        location = venue.get("name") or (
            address.get("localized_area_display") if isinstance(address, dict) else None
        )

    return build_candidate(
        ctx,
        title=title,
        dates=DateRange(start, end),
        location=location,
        is_online=bool(event.get("is_online_event")) or not venue,
        website_url=url,
        description=_text_field(event.get("description")) or event.get("summary"),
    )


def parse_server_data(document: str, ctx: ParseContext) -> List[CandidateRecord]:
    """Tier 2: search results embedded as window.__SERVER_DATA__."""
    data = extract_server_data(document)
    if data is None:
        return []
    return parse_items(_server_events(data), parse_server_event, ctx, limit=MAX_SERVER_DATA_EVENTS)


def _card_dates(card: Tag, ctx: ParseContext) -> Optional[DateRange]:
    time_tag = card.select_one("time[datetime]")
    if time_tag is not None:
        start = parse_timestamp(time_tag["datetime"], ctx.now)
        if start is not None:
            return DateRange(start, start + ASSUMED_EVENT_LENGTH)

    return parse_date_range(first_text(card, DATE_SELECTORS + ["time"]), ctx.now) or parse_date_range(
        node_text(card), ctx.now
    )


def parse_card(card: Tag, ctx: ParseContext) -> Optional[CandidateRecord]:
    """Map one search-result card to a candidate, with a placeholder window if undated."""
    title = first_text(card, TITLE_SELECTORS, min_length=4)
    link = card.select_one("a[href*='/e/']")
    if not title or link is None:
        return None

    return build_candidate(
        ctx,
        title=title,
        dates=_card_dates(card, ctx),
        location=first_text(card, LOCATION_SELECTORS) or None,
        website_url=link.get("href"),
        description=first_text(card, DESCRIPTION_SELECTORS, min_length=21) or None,
    )


def parse_cards(document: str, ctx: ParseContext) -> List[CandidateRecord]:
    """Tier 3: event cards; the first productive selector wins."""
    soup = make_soup(document)
    for selector in CARD_SELECTORS:
        cards = soup.select(selector)
        if not cards:
            continue
        records = parse_items(cards, parse_card, ctx, limit=MAX_CARDS)
        if records:
            return records
    return []


def _parse_hack_link(link: Tag, ctx: ParseContext) -> Optional[CandidateRecord]:
    title = node_text(link)
    if "hack" not in title.lower():
        return None
    return build_candidate(ctx, title=title, dates=None, website_url=link.get("href"))


def parse_hack_links(document: str, ctx: ParseContext) -> List[CandidateRecord]:
    """Tier 4: hack-titled event links, dated with the placeholder window."""
    links = make_soup(document).select("a[href*='/e/']")
    return parse_items(links, _parse_hack_link, ctx, limit=MAX_LINKS)


class EventbriteAdapter(BaseAdapter):
    """Eventbrite hackathon search adapter."""

    source_id = SourceId.EVENTBRITE
    name = "Eventbrite"
    base_url = "https://www.eventbrite.com"
    listing_paths = SEARCH_PATHS
    online_keywords = ("web", "internet")
    placeholder_days = 30

    strategies = (parse_json_ld, parse_server_data, parse_cards, parse_hack_links)

    async def scrape(self) -> List[CandidateRecord]:
        """Fetch hackathons from each search page until enough are found.

        Raises:
            FetchError: If the primary (online) search page cannot be fetched
        """
        ctx = self.parse_context()
        self.logger.info("scrape_started")
        records: List[CandidateRecord] = []

        for index, path in enumerate(self.listing_paths):
            url = self.url_for(path)
            if index == 0:
                document = await self.fetcher.fetch(url, self.source_id.value)
            else:
                document = await self.fetch_optional(url)
                if document is None:
                    continue

            found = run_strategies(self.strategies, document, ctx, self.logger.bind(path=path))
            records.extend(found)
            if len(records) >= MAX_RECORDS:
                break

        records = records[:MAX_RECORDS]
        self.logger.info("scrape_complete", count=len(records))
        return records
