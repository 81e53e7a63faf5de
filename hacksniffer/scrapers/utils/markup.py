"""HTML and embedded-JSON helpers used by the adapter strategies."""

import json
import re
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple
from urllib.parse import urljoin

import structlog
from bs4 import BeautifulSoup, Tag

from hacksniffer.scrapers.utils.normalizer import DateRange, clean_text, parse_timestamp


logger = structlog.get_logger(__name__)


_SPACE_BEFORE_PUNCTUATION = re.compile(r"\s+([,.;:!?])")


def make_soup(document: str) -> BeautifulSoup:
    return BeautifulSoup(document, "html.parser")


def node_text(node: Tag) -> str:
    """Visible text of an element with block boundaries turned into spaces."""
    return _SPACE_BEFORE_PUNCTUATION.sub(r"\1", clean_text(node.get_text(" ")))


def first_text(node: Tag, selectors: Iterable[str], min_length: int = 1) -> str:
    """Return the cleaned text of the first selector match long enough to use.

    Args:
        node: Element to search within
        selectors: CSS selectors, tried in order
        min_length: Minimum accepted text length

    Returns:
        Cleaned text, or an empty string if nothing qualified
    """
    for selector in selectors:
        element = node.select_one(selector)
        if element is None:
            continue
        text = node_text(element)
        if len(text) >= min_length:
            return text
    return ""


def first_href(node: Tag, selector: str = "a[href]") -> Optional[str]:
    if node.name == "a" and node.get("href"):
        return node["href"]
    link = node.select_one(selector)
    return link.get("href") if link else None


def meta_content(soup: BeautifulSoup, **attrs: str) -> str:
    """Content of the first <meta> tag matching attrs, e.g. property="og:title"."""
    tag = soup.find("meta", attrs=attrs)
    return clean_text(tag.get("content", "")) if tag else ""


def harvest_links(
    soup: BeautifulSoup,
    selector: str,
    base_url: str,
    limit: Optional[int] = None,
) -> List[str]:
    """Collect unique absolute URLs of links matching selector.

    Links carrying a fragment or query string are ignored, they point at
    filtered views rather than event pages.
    """
    links: List[str] = []
    for anchor in soup.select(selector):
        href = (anchor.get("href") or "").strip()
        if not href or "#" in href or "?" in href:
            continue
        url = urljoin(base_url.rstrip("/") + "/", href)
        if url not in links:
            links.append(url)
        if limit is not None and len(links) >= limit:
            break
    return links


def load_json(raw: Optional[str]) -> Optional[Any]:
    """Parse JSON text, returning None for empty or malformed input."""
    if not raw or not raw.strip():
        return None
    try:
        return json.loads(raw)
    except ValueError:
        logger.debug("embedded_json_invalid", length=len(raw))
        return None


def iter_script_json(soup: BeautifulSoup, script_type: str) -> Iterator[Any]:
    """Yield the parsed body of every <script type=script_type> that holds JSON."""
    for script in soup.find_all("script", attrs={"type": script_type}):
        data = load_json(script.string or script.get_text())
        if data is not None:
            yield data


def _is_event_type(value: Any) -> bool:
    types = value if isinstance(value, list) else [value]
    return any(
        isinstance(t, str) and (t.endswith("Event") or t == "Hackathon")
        for t in types
    )


def iter_ld_events(data: Any) -> Iterator[Dict[str, Any]]:
    """Flatten JSON-LD into its Event objects.

    Handles top-level arrays, @graph containers and ItemList wrappers
    (whose itemListElement entries may nest the event under "item").
    """
    if isinstance(data, list):
        for entry in data:
            yield from iter_ld_events(entry)
        return
    if not isinstance(data, dict):
        return

    if "@graph" in data:
        yield from iter_ld_events(data["@graph"])

    node_type = data.get("@type")
    if node_type == "ItemList" or (isinstance(node_type, list) and "ItemList" in node_type):
        for element in data.get("itemListElement") or []:
            if isinstance(element, dict) and isinstance(element.get("item"), dict):
                element = element["item"]
            yield from iter_ld_events(element)
    elif _is_event_type(node_type):
        yield data


def ld_location(event: Dict[str, Any]) -> Tuple[Optional[str], bool]:
    """Extract (location text, is_online) from a JSON-LD Event."""
    online = "online" in str(event.get("eventAttendanceMode", "")).lower()
    location = event.get("location")
    if isinstance(location, list):
        location = location[0] if location else None

    if isinstance(location, dict):
        if location.get("@type") == "VirtualLocation":
            return "Online", True
        name = location.get("name")
        address = location.get("address")
        if not name and isinstance(address, dict):
            name = address.get("addressLocality") or address.get("name")
        elif not name and isinstance(address, str):
            name = address
        return name, online

    if isinstance(location, str):
        return location, online
    return None, online


def ld_event_fields(event: Dict[str, Any], now: Optional[datetime] = None) -> Optional[Dict[str, Any]]:
    """Map a JSON-LD Event to keyword arguments for build_candidate().

    Returns None when the event lacks a name, URL or parseable dates.
    """
    title = event.get("name")
    url = event.get("url")
    start = parse_timestamp(event.get("startDate"), now)
    end = parse_timestamp(event.get("endDate"), now)
    if not title or not url or start is None or end is None:
        return None

    # Date-only events that start and end on the same day
    if end == start:
        end = start + timedelta(days=1)

    location, online = ld_location(event)
    return {
        "title": title,
        "dates": DateRange(start, end),
        "location": location,
        "is_online": online,
        "website_url": url,
        "description": event.get("description"),
    }
