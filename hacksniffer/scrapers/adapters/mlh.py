"""Major League Hacking (MLH) adapter.

Scrapes the season event list at https://mlh.io/seasons/<season>/events.
MLH seasons run from late summer to the following summer, so from
August onward the listing of the next calendar year is the current one.
"""

from datetime import datetime, timedelta
from typing import List, Optional

from bs4 import BeautifulSoup, Tag

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
    first_href,
    first_text,
    harvest_links,
    make_soup,
    meta_content,
    node_text,
)
from hacksniffer.scrapers.utils.normalizer import DateRange, parse_date_range, parse_timestamp


MAX_ITEMS = 20

# From this month on, the next year's season is listed
SEASON_ROLLOVER_MONTH = 8

CARD_SELECTORS = [
    ".event-wrapper",
    ".event-card",
    ".event",
    "article",
    ".hackathon",
    "[data-event]",
    ".card",
    ".listing",
]
TITLE_SELECTORS = [
    ".event-name",
    "h3",
    "h1",
    "h2",
    "h4",
    ".title",
    ".name",
    ".hackathon-name",
    ".event-title",
    "a[href*='/events/']",
]
DATE_SELECTORS = [".event-date", ".date", "time"]
LOCATION_SELECTORS = [".event-location", ".location", ".venue", ".place"]
DESCRIPTION_SELECTORS = [".event-description", ".description", ".summary", "p"]

EVENT_LINK_SELECTOR = "a[href*='/events/'], a[href*='hackathon'], a[href*='hack']"


def season_for(now: datetime) -> int:
    """MLH season year for the given moment."""
    return now.year + 1 if now.month >= SEASON_ROLLOVER_MONTH else now.year


def _itemprop_value(node: Tag, prop: str) -> Optional[str]:
    tag = node.select_one(f"[itemprop='{prop}']")
    if tag is None:
        return None
    return tag.get("content") or tag.get("datetime") or tag.get("href") or node_text(tag) or None


def _microdata_containers(soup: BeautifulSoup) -> List[Tag]:
    containers = soup.select("[itemscope][itemtype*='Event']")
    if containers:
        return containers

    # Microdata without itemtype: climb from each startDate to its item scope
    found: List[Tag] = []
    for tag in soup.select("[itemprop='startDate']"):
        container = tag.find_parent(attrs={"itemscope": True}) or tag.parent
        if container is not None and container not in found:
            found.append(container)
    return found


def parse_microdata_event(node: Tag, ctx: ParseContext) -> Optional[CandidateRecord]:
    """Map one schema.org microdata Event to a candidate."""
    title = _itemprop_value(node, "name")
    start = parse_timestamp(_itemprop_value(node, "startDate"), ctx.now)
    end = parse_timestamp(_itemprop_value(node, "endDate"), ctx.now)
    if not title or start is None or end is None:
        return None
    # Single-day events carry the same date twice
    if end == start:
        end = start + timedelta(days=1)

    location_node = node.select_one("[itemprop='location']")
    location = node_text(location_node) if location_node else None
    attendance = first_text(node, [".event-hybrid-notes"])
    if not location and attendance:
        location = attendance

    return build_candidate(
        ctx,
        title=title,
        dates=DateRange(start, end),
        location=location,
        is_online="digital" in attendance.lower(),
        website_url=_itemprop_value(node, "url") or first_href(node),
        description=_itemprop_value(node, "description"),
    )


def parse_microdata(document: str, ctx: ParseContext) -> List[CandidateRecord]:
    """Tier 1: schema.org Event microdata (itemprop startDate/endDate)."""
    containers = _microdata_containers(make_soup(document))
    return parse_items(containers, parse_microdata_event, ctx, limit=MAX_ITEMS)


def parse_card(card: Tag, ctx: ParseContext) -> Optional[CandidateRecord]:
    """Map one event card to a candidate, with a placeholder window if undated."""
    title = first_text(card, TITLE_SELECTORS, min_length=4)
    url = first_href(card)
    if not title or not url:
        return None

    dates = parse_date_range(first_text(card, DATE_SELECTORS), ctx.now) or parse_date_range(
        node_text(card), ctx.now
    )
    location = first_text(card, LOCATION_SELECTORS) or first_text(card, [".event-hybrid-notes"])

    return build_candidate(
        ctx,
        title=title,
        dates=dates,
        location=location or None,
        website_url=url,
        description=first_text(card, DESCRIPTION_SELECTORS, min_length=21) or None,
    )


def parse_cards(document: str, ctx: ParseContext) -> List[CandidateRecord]:
    """Tier 2: event cards with text dates; the first productive selector wins."""
    soup = make_soup(document)
    for selector in CARD_SELECTORS:
        cards = soup.select(selector)
        if not cards:
            continue
        records = parse_items(cards, parse_card, ctx, limit=MAX_ITEMS)
        if records:
            return records
    return []


def parse_detail_page(document: str, url: str, ctx: ParseContext) -> Optional[CandidateRecord]:
    """Build a candidate from an event's own page; undated pages are skipped."""
    soup = make_soup(document)
    title = first_text(soup, ["h1", "title"])
    if not title:
        return None

    dates = parse_date_range(node_text(soup.body or soup), ctx.now)
    if dates is None:
        return None

    return build_candidate(
        ctx,
        title=title,
        dates=dates,
        location=first_text(soup, [".location", ".venue"]) or None,
        website_url=url,
        description=meta_content(soup, name="description") or None,
    )


class MLHAdapter(BaseAdapter):
    """Major League Hacking season listing adapter."""

    source_id = SourceId.MLH
    name = "Major League Hacking"
    base_url = "https://mlh.io"
    online_keywords = ("worldwide", "global")
    placeholder_days = 45

    strategies = (parse_microdata, parse_cards)

    @property
    def listing_path(self) -> str:
        return f"/seasons/{season_for(self.clock())}/events"

    @property
    def required_paths(self) -> List[str]:
        return [self.listing_path]

    async def scrape(self) -> List[CandidateRecord]:
        """Fetch the current MLH season's events.

        Raises:
            FetchError: If the season listing cannot be fetched
        """
        ctx = self.parse_context()
        url = self.url_for(self.listing_path)
        self.logger.info("scrape_started", url=url)

        listing = await self.fetcher.fetch(url, self.source_id.value)
        records = run_strategies(self.strategies, listing, ctx, self.logger)

        if not records:
            links = harvest_links(make_soup(listing), EVENT_LINK_SELECTOR, self.base_url)
            self.logger.info("harvesting_detail_pages", links_found=len(links))
            records = await self.enrich_links(links, parse_detail_page, ctx)

        self.logger.info("scrape_complete", count=len(records))
        return records
