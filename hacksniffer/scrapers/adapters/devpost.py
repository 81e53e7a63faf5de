"""Devpost adapter.

Scrapes the public hackathon listing at https://devpost.com/hackathons.
The listing is rendered client-side more often than not, so the adapter
tries several extraction tiers on the HTML, then the JSON listing
endpoint, and finally harvests hackathon links and reads their detail
pages.
"""

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
    first_href,
    first_text,
    harvest_links,
    iter_ld_events,
    iter_script_json,
    ld_event_fields,
    load_json,
    make_soup,
    meta_content,
    node_text,
)
from hacksniffer.scrapers.utils.normalizer import (
    DateRange,
    parse_date_range,
    parse_single_date,
    parse_timestamp,
)


LISTING_PATH = "/hackathons"
API_PATH = "/api/hackathons"

MAX_ITEMS = 20
MAX_CONTEXT_LINKS = 10

HACKATHON_LINK_SELECTOR = (
    "a[href*='/hackathons/'], a[href*='/challenges/'], a[href*='/software-competitions/']"
)

CARD_SELECTORS = [
    ".challenge-item",
    ".hackathon-item",
    ".challenge-card",
    ".hackathon-card",
    "[data-testid*='challenge']",
    "[data-testid*='hackathon']",
    ".challenge-tile",
    ".tile",
    ".card",
    "article",
]
TITLE_SELECTORS = ["h1", "h2", "h3", ".title", ".name", "[data-testid*='title']", "a"]
DATE_SELECTORS = [".date", ".challenge-date", ".submission-period", "[class*='date']", "time"]
LOCATION_SELECTORS = [".location", ".challenge-location", "[class*='location']"]
DESCRIPTION_SELECTORS = [".description", ".challenge-description", ".summary", "p"]

# Words that reveal the attendance mode in a card's free text
ATTENDANCE_WORDS = ("online", "virtual", "remote", "in-person", "hybrid")

# Keys under which JSON payloads keep their list of hackathons
ITEM_LIST_KEYS = ("hackathons", "challenges", "events", "data", "results")
ITEM_HINT_KEYS = ("title", "name", "challenge_title", "url", "link", "website_url")


# ---------------------------------------------------------------------------
# JSON payloads (embedded scripts and /api/hackathons)
# ---------------------------------------------------------------------------


def find_json_items(data: Any) -> List[Dict[str, Any]]:
    """Locate the list of hackathon objects inside an arbitrary JSON payload."""
    if isinstance(data, list):
        return [item for item in data if isinstance(item, dict)]
    if not isinstance(data, dict):
        return []

    for key in ITEM_LIST_KEYS:
        value = data.get(key)
        if isinstance(value, list):
            return [item for item in value if isinstance(item, dict)]

    # Fall back to the first list whose entries look like hackathons
    for value in data.values():
        if isinstance(value, list) and value and isinstance(value[0], dict):
            if any(key in value[0] for key in ITEM_HINT_KEYS):
                return [item for item in value if isinstance(item, dict)]
    return []


def _json_dates(item: Dict[str, Any], now) -> Optional[DateRange]:
    start = parse_timestamp(
        item.get("start_date") or item.get("startDate") or item.get("begins_at") or item.get("open_date"),
        now,
    )
    end = parse_timestamp(
        item.get("end_date") or item.get("endDate") or item.get("ends_at") or item.get("close_date"),
        now,
    )
    if start and end:
        return DateRange(start, end)

    period = item.get("submission_period_dates")
    if isinstance(period, dict):
        start = start or parse_timestamp(period.get("start"), now)
        end = end or parse_timestamp(period.get("end"), now)
        if start and end:
            return DateRange(start, end)
    elif isinstance(period, str):
        return parse_date_range(period, now)
    return None


def _json_location(item: Dict[str, Any]) -> Optional[str]:
    location = item.get("displayed_location") or item.get("location") or item.get("venue")
    if isinstance(location, dict):
        location = location.get("location") or location.get("name")
    return location if isinstance(location, str) else None


def parse_json_item(item: Dict[str, Any], ctx: ParseContext) -> Optional[CandidateRecord]:
    """Map one Devpost JSON hackathon object to a candidate."""
    title = item.get("title") or item.get("name") or item.get("challenge_title") or item.get("displayName")
    url = item.get("url") or item.get("link") or item.get("website_url") or item.get("href")
    if not title or not url:
        return None

    return build_candidate(
        ctx,
        title=title,
        dates=_json_dates(item, ctx.now),
        location=_json_location(item),
        is_online=bool(item.get("is_online") or item.get("virtual") or item.get("remote")),
        website_url=url,
        description=item.get("description") or item.get("summary") or item.get("tagline"),
        registration_deadline=parse_timestamp(item.get("registration_deadline"), ctx.now),
    )


def parse_embedded_json(document: str, ctx: ParseContext) -> List[CandidateRecord]:
    """Tier 1: application/json script blocks mentioning hackathons."""
    records: List[CandidateRecord] = []
    for script in make_soup(document).find_all("script", attrs={"type": "application/json"}):
        raw = script.string or script.get_text()
        if "hackathon" not in raw and "challenge" not in raw:
            continue
        items = find_json_items(load_json(raw))
        records.extend(parse_items(items, parse_json_item, ctx, limit=MAX_ITEMS))
    return records


def parse_api_response(document: str, ctx: ParseContext) -> List[CandidateRecord]:
    """Secondary listing: the /api/hackathons JSON endpoint."""
    items = find_json_items(load_json(document))
    return parse_items(items, parse_json_item, ctx, limit=MAX_ITEMS)


# ---------------------------------------------------------------------------
# HTML tiers
# ---------------------------------------------------------------------------


def _parse_ld_event(event: Dict[str, Any], ctx: ParseContext) -> Optional[CandidateRecord]:
    fields = ld_event_fields(event, ctx.now)
    return build_candidate(ctx, **fields) if fields else None


def parse_json_ld(document: str, ctx: ParseContext) -> List[CandidateRecord]:
    """Tier 2: schema.org Event objects in JSON-LD."""
    soup = make_soup(document)
    events = [event for data in iter_script_json(soup, "application/ld+json") for event in iter_ld_events(data)]
    return parse_items(events, _parse_ld_event, ctx)


def _card_location(card: Tag, text: str) -> Optional[str]:
    location = first_text(card, LOCATION_SELECTORS)
    if location:
        return location
    lowered = text.lower()
    for word in ATTENDANCE_WORDS:
        if word in lowered:
            return word.capitalize()
    return None


def parse_card(card: Tag, ctx: ParseContext) -> Optional[CandidateRecord]:
    """Map one listing card to a candidate; cards without a link are ignored."""
    title = first_text(card, TITLE_SELECTORS, min_length=4)
    url = first_href(card)
    if not title or not url:
        return None

    text = node_text(card)
    dates = parse_date_range(first_text(card, DATE_SELECTORS), ctx.now) or parse_date_range(text, ctx.now)

    return build_candidate(
        ctx,
        title=title,
        dates=dates,
        location=_card_location(card, text),
        website_url=url,
        description=first_text(card, DESCRIPTION_SELECTORS, min_length=21) or None,
    )


def parse_cards(document: str, ctx: ParseContext) -> List[CandidateRecord]:
    """Tier 3: the first card selector that yields any records wins."""
    soup = make_soup(document)
    for selector in CARD_SELECTORS:
        cards = soup.select(selector)
        if not cards:
            continue
        records = parse_items(cards, parse_card, ctx, limit=MAX_ITEMS)
        if records:
            return records
    return []


def _parse_context_link(link: Tag, ctx: ParseContext) -> Optional[CandidateRecord]:
    title = node_text(link)
    if len(title) <= 5:
        return None
    container = link.find_parent(["li", "article", "section", "div"]) or link
    dates = parse_date_range(node_text(container), ctx.now)
    if dates is None:
        return None
    return build_candidate(ctx, title=title, dates=dates, website_url=link.get("href"))


def parse_link_context(document: str, ctx: ParseContext) -> List[CandidateRecord]:
    """Tier 4: hackathon links whose surrounding block carries a date range."""
    links = make_soup(document).select(HACKATHON_LINK_SELECTOR)
    return parse_items(links, _parse_context_link, ctx, limit=MAX_CONTEXT_LINKS)


# ---------------------------------------------------------------------------
# Detail pages
# ---------------------------------------------------------------------------


def parse_detail_page(document: str, url: str, ctx: ParseContext) -> Optional[CandidateRecord]:
    """Build a candidate from a hackathon's own page.

    Dates come from event meta tags, else from the first date range in
    the page text. Pages without dates are skipped.
    """
    soup = make_soup(document)
    title = first_text(soup, ["h1", "title"])
    if not title:
        return None

    start = parse_timestamp(meta_content(soup, property="event:start_time"), ctx.now)
    end = parse_timestamp(meta_content(soup, property="event:end_time"), ctx.now)
    if start and end:
        dates = DateRange(start, end)
    else:
        body = soup.body or soup
        dates = parse_date_range(node_text(body), ctx.now)
    if dates is None:
        return None

    deadline_text = first_text(soup, [".submission-deadline", ".deadline"])
    registration = soup.select_one("a[href*='register'], a[href*='apply'], .register-btn[href]")

    return build_candidate(
        ctx,
        title=title,
        dates=dates,
        location=meta_content(soup, property="event:location") or None,
        website_url=url,
        description=meta_content(soup, name="description") or first_text(soup, [".challenge-description"]),
        registration_url=registration.get("href") if registration else None,
        registration_deadline=parse_single_date(deadline_text, ctx.now) if deadline_text else None,
    )


class DevpostAdapter(BaseAdapter):
    """Devpost hackathon listing adapter."""

    source_id = SourceId.DEVPOST
    name = "Devpost"
    base_url = "https://devpost.com"
    listing_paths = (LISTING_PATH, API_PATH)
    placeholder_days = 30

    html_strategies = (parse_embedded_json, parse_json_ld, parse_cards, parse_link_context)

    async def scrape(self) -> List[CandidateRecord]:
        """Fetch Devpost hackathons.

        Returns:
            Candidates from the first productive tier

        Raises:
            FetchError: If the /hackathons listing cannot be fetched
        """
        ctx = self.parse_context()
        self.logger.info("scrape_started")

        listing = await self.fetcher.fetch(self.url_for(LISTING_PATH), self.source_id.value)
        records = run_strategies(self.html_strategies, listing, ctx, self.logger)

        if not records:
            api_document = await self.fetch_optional(self.url_for(API_PATH))
            if api_document:
                records = run_strategies([parse_api_response], api_document, ctx, self.logger)

        if not records:
            links = harvest_links(make_soup(listing), HACKATHON_LINK_SELECTOR, self.base_url)
            self.logger.info("harvesting_detail_pages", links_found=len(links))
            records = await self.enrich_links(links, parse_detail_page, ctx)

        self.logger.info("scrape_complete", count=len(records))
        return records
