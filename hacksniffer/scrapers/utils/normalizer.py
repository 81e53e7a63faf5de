"""Data normalization utilities shared by every source adapter.

Free functions for cleaning text, canonicalizing URLs, turning free-text
date ranges into UTC timestamps, and classifying locations as online or
in-person. Adapters compose these; nothing here performs I/O.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Optional, Tuple, Union
from urllib.parse import parse_qsl, urlencode, urljoin, urlparse, urlunparse

from bs4 import BeautifulSoup


MAX_TITLE_LENGTH = 500
MAX_DESCRIPTION_LENGTH = 500

# Keywords marking a location string as an online event. Adapters extend
# this with source-specific words (e.g. MLH's "worldwide").
ONLINE_KEYWORDS: Tuple[str, ...] = ("online", "virtual", "remote", "digital")

TRACKING_PARAMS = frozenset({
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_term",
    "utm_content",
    "fbclid",
    "gclid",
    "mc_cid",
    "mc_eid",
    "ref",
    "source",
    "campaign",
})

MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}

_MONTH = (
    r"(?P<{name}>jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?"
    r"|aug(?:ust)?|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)\.?"
)

# "2024-10-15 to 2024-10-17"
_ISO_RANGE = re.compile(
    r"(?P<y1>\d{4})-(?P<m1>\d{2})-(?P<d1>\d{2})"
    r"\s*(?:to|until|through|-)\s*"
    r"(?P<y2>\d{4})-(?P<m2>\d{2})-(?P<d2>\d{2})",
    re.IGNORECASE,
)

# "Oct 15, 2024 - Nov 2, 2024" / "Oct 30 - Nov 2, 2024"
_DISTINCT_MONTHS = re.compile(
    r"\b" + _MONTH.format(name="m1") + r"\s+(?P<d1>\d{1,2})(?!\d),?(?:\s*(?P<y1>\d{4}))?"
    r"\s*-\s*"
    + _MONTH.format(name="m2") + r"\s+(?P<d2>\d{1,2})(?!\d),?(?:\s*(?P<y2>\d{4}))?",
    re.IGNORECASE,
)

# "Oct 15 - 17, 2024" / "Oct 15, 2024"
_SHARED_MONTH = re.compile(
    r"\b" + _MONTH.format(name="m") + r"\s+(?P<d1>\d{1,2})(?!\d)"
    r"(?:\s*-\s*(?P<d2>\d{1,2})(?!\d))?,?(?:\s*(?P<y>\d{4}))?",
    re.IGNORECASE,
)

_ORDINAL = re.compile(r"(\d{1,2})(?:st|nd|rd|th)\b", re.IGNORECASE)
_DASHES = re.compile(r"\s*[–—]\s*")
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class DateRange:
    """A start/end pair in UTC.

    ``synthesized`` marks placeholder windows invented because no date
    could be parsed; downstream consumers discount such dates.
    """

    start: datetime
    end: datetime
    synthesized: bool = False


# ---------------------------------------------------------------------------
# Text
# ---------------------------------------------------------------------------


def clean_text(text: Optional[str]) -> str:
    """Collapse all whitespace runs to single spaces and trim."""
    if not text:
        return ""
    return _WHITESPACE.sub(" ", text).strip()


def strip_html(text: Optional[str]) -> str:
    """Remove HTML tags and entities, returning cleaned plain text."""
    if not text:
        return ""
    if "<" not in text and "&" not in text:
        return clean_text(text)
    return clean_text(BeautifulSoup(text, "html.parser").get_text(" "))


def truncate(text: Optional[str], limit: int) -> str:
    if not text:
        return ""
    return text if len(text) <= limit else text[:limit].rstrip()


# ---------------------------------------------------------------------------
# URLs
# ---------------------------------------------------------------------------


def absolute_url(href: Optional[str], base_url: str) -> Optional[str]:
    """Resolve a possibly relative href against the source's base URL."""
    if not href:
        return None
    href = href.strip()
    if href.startswith(("javascript:", "mailto:", "#")):
        return None
    return urljoin(base_url.rstrip("/") + "/", href)


def canonicalize_url(url: Optional[str]) -> Optional[str]:
    """Normalize a URL so the same listing always maps to one key.

    Removes tracking parameters, the ``www.`` prefix, fragments and the
    trailing slash, and lowercases the scheme and host.

    Args:
        url: URL to canonicalize

    Returns:
        Canonical URL, the input unchanged if it cannot be parsed, or None
    """
    if not url:
        return None

    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return url

    if not parsed.scheme or not parsed.netloc:
        return url

    host = parsed.netloc.lower()
    if host.startswith("www."):
        host = host[len("www."):]

    query = urlencode(
        [
            (key, value)
            for key, value in parse_qsl(parsed.query, keep_blank_values=True)
            if key.lower() not in TRACKING_PARAMS
        ],
        doseq=True,
    )
    path = parsed.path.rstrip("/")

    return urlunparse((parsed.scheme.lower(), host, path, parsed.params, query, ""))


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


def ensure_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime; naive values are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _utc_midnight(year: int, month: int, day: int) -> Optional[datetime]:
    try:
        return datetime(year, month, day, tzinfo=timezone.utc)
    except ValueError:
        return None


def _month_number(name: str) -> int:
    return MONTHS[name[:3].lower()]


def _prepare_date_text(text: str) -> str:
    text = _DASHES.sub(" - ", text)
    text = _ORDINAL.sub(r"\1", text)
    return clean_text(text)


def parse_date_range(text: Optional[str], now: Optional[datetime] = None) -> Optional[DateRange]:
    """Find and parse the first date range in free text.

    Recognized shapes, tried in this order:
    - ``2024-10-15 to 2024-10-17``
    - ``Oct 30, 2024 - Nov 2, 2024`` (years optional on either side)
    - ``Oct 15 - 17, 2024`` or a single ``Oct 15, 2024``

    A missing year defaults to the current year. A single day becomes a
    one-day window ending at the next midnight.

    Args:
        text: Raw date text (ordinal suffixes and en/em dashes are tolerated)
        now: Reference time for the current year (defaults to utcnow)

    Returns:
        DateRange at UTC midnights, or None if nothing parseable was found
    """
    if not text:
        return None

    now = now or datetime.now(timezone.utc)
    prepared = _prepare_date_text(text)

    match = _ISO_RANGE.search(prepared)
    if match:
        start = _utc_midnight(int(match["y1"]), int(match["m1"]), int(match["d1"]))
        end = _utc_midnight(int(match["y2"]), int(match["m2"]), int(match["d2"]))
        if start and end:
            return DateRange(start, end)

    match = _DISTINCT_MONTHS.search(prepared)
    if match:
        explicit_start_year = match["y1"]
        explicit_end_year = match["y2"]
        end_year = int(explicit_end_year or explicit_start_year or now.year)
        start_year = int(explicit_start_year or end_year)
        start = _utc_midnight(start_year, _month_number(match["m1"]), int(match["d1"]))
        end = _utc_midnight(end_year, _month_number(match["m2"]), int(match["d2"]))
        if start and end:
            # "Dec 30 - Jan 2, 2025" spans a year boundary
            if start >= end and not explicit_start_year:
                if explicit_end_year:
                    start = _utc_midnight(start_year - 1, start.month, start.day)
                else:
                    end = _utc_midnight(end_year + 1, end.month, end.day)
            if start and end:
                return DateRange(start, end)

    match = _SHARED_MONTH.search(prepared)
    if match:
        year = int(match["y"] or now.year)
        month = _month_number(match["m"])
        start = _utc_midnight(year, month, int(match["d1"]))
        if match["d2"]:
            end = _utc_midnight(year, month, int(match["d2"]))
        else:
            end = start + timedelta(days=1) if start else None
        if start and end:
            return DateRange(start, end)

    return None


def parse_single_date(text: Optional[str], now: Optional[datetime] = None) -> Optional[datetime]:
    """Parse the first date in text, ignoring any range end."""
    if not text:
        return None
    prepared = _prepare_date_text(text)

    iso = re.search(r"(\d{4})-(\d{2})-(\d{2})", prepared)
    if iso:
        return _utc_midnight(int(iso.group(1)), int(iso.group(2)), int(iso.group(3)))

    match = _SHARED_MONTH.search(prepared)
    if match:
        now = now or datetime.now(timezone.utc)
        return _utc_midnight(int(match["y"] or now.year), _month_number(match["m"]), int(match["d1"]))
    return None


def parse_timestamp(
    value: Union[str, datetime, date, None],
    now: Optional[datetime] = None,
) -> Optional[datetime]:
    """Parse a timestamp from JSON or markup attributes into aware UTC.

    Handles ISO-8601 (with ``Z`` or offsets), bare ISO dates, and falls
    back to month-name text such as ``Oct 15, 2024``.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if not isinstance(value, str):
        return None

    raw = value.strip()
    if not raw:
        return None
    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"

    try:
        return ensure_utc(datetime.fromisoformat(raw))
    except ValueError:
        return parse_single_date(raw, now=now)


def placeholder_window(now: Optional[datetime] = None, days: int = 30) -> DateRange:
    """Build the last-resort window "now" through "now + days".

    The result is flagged as synthesized so the record carries the fact
    that its dates were guessed.
    """
    start = ensure_utc(now or datetime.now(timezone.utc))
    return DateRange(start, start + timedelta(days=days), synthesized=True)


# ---------------------------------------------------------------------------
# Locations
# ---------------------------------------------------------------------------


def is_online_location(text: Optional[str], extra_keywords: Iterable[str] = ()) -> bool:
    """Check whether a location string describes an online event."""
    if not text:
        return False
    lowered = text.lower()
    return any(keyword in lowered for keyword in (*ONLINE_KEYWORDS, *extra_keywords))


def classify_location(
    text: Optional[str],
    extra_keywords: Iterable[str] = (),
) -> Tuple[str, bool]:
    """Normalize a raw location string.

    Args:
        text: Raw location text (may be empty)
        extra_keywords: Source-specific online keywords

    Returns:
        Tuple of (location, is_online). A missing location means online.
    """
    location = truncate(clean_text(text), MAX_TITLE_LENGTH)
    if not location:
        return "Online", True
    return location, is_online_location(location, extra_keywords)
