"""Duplicate detection and merging for hackathon records.

The same event is frequently listed by several sources with slightly
different titles, dates or location strings. This module scores pairs of
records with a weighted similarity, groups near-duplicates greedily, and
merges each group into one authoritative record.

Every function accepts CandidateRecord instances as well as persisted
Hackathon rows: both expose the same attribute names.
"""

import hashlib
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, List, Optional, Sequence

import structlog

from hacksniffer.scrapers.base import CandidateRecord, source_rank
from hacksniffer.scrapers.utils.normalizer import ensure_utc, is_online_location

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Scoring parameters
# ---------------------------------------------------------------------------
DEFAULT_THRESHOLD = 0.85
NEAR_DATE_WINDOW = timedelta(days=3)  # Start dates this close earn half credit

# Location key shared by every online-only location ("Online", "Virtual", ...)
ONLINE_LOCATION_KEY = "online"


@dataclass(frozen=True)
class SimilarityWeights:
    """Component weights of the similarity score; they sum to 1."""

    title: float = 0.4
    date: float = 0.3
    location: float = 0.2
    online: float = 0.1


DEFAULT_WEIGHTS = SimilarityWeights()


@dataclass
class DuplicateGroup:
    """A record plus every later record judged to describe the same event."""

    primary: Any
    duplicates: List[Any] = field(default_factory=list)

    @property
    def members(self) -> List[Any]:
        return [self.primary, *self.duplicates]


# ---------------------------------------------------------------------------
# Fingerprints
# ---------------------------------------------------------------------------


def _is_malformed(record: Any) -> bool:
    title = getattr(record, "title", None)
    location = getattr(record, "location", None)
    return (
        not title
        or not title.strip()
        or not location
        or not location.strip()
        or getattr(record, "start_date", None) is None
        or getattr(record, "end_date", None) is None
    )


def content_fingerprint(record: Any) -> Optional[str]:
    """SHA-256 over the identifying content of a record.

    The hashed text is lowercase trimmed title, start and end as ISO
    timestamps, lowercase trimmed location, and the online flag, joined
    with "|".

    Returns:
        Hex digest, or None for records missing a title, location or dates
    """
    if _is_malformed(record):
        return None

    content = "|".join([
        record.title.strip().lower(),
        ensure_utc(record.start_date).isoformat(),
        ensure_utc(record.end_date).isoformat(),
        record.location.strip().lower(),
        str(bool(record.is_online)).lower(),
    ])
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


# ---------------------------------------------------------------------------
# Similarity
# ---------------------------------------------------------------------------


def levenshtein_distance(a: str, b: str) -> int:
    """Edit distance between two strings (insert, delete, substitute)."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (char_a != char_b),
            ))
        previous = current
    return previous[-1]


def levenshtein_similarity(a: Optional[str], b: Optional[str]) -> float:
    """1 - distance / max length on lowercased, trimmed strings."""
    s1 = (a or "").strip().lower()
    s2 = (b or "").strip().lower()
    if s1 == s2:
        return 1.0
    if not s1 or not s2:
        return 0.0
    longest = max(len(s1), len(s2))
    return (longest - levenshtein_distance(s1, s2)) / longest


def _location_key(location: str) -> str:
    if is_online_location(location):
        return ONLINE_LOCATION_KEY
    return location.strip().lower()


def _date_score(a: Any, b: Any) -> float:
    # Placeholder windows say nothing about when the event happens
    if getattr(a, "dates_synthesized", False) or getattr(b, "dates_synthesized", False):
        return 0.0
    delta = abs(ensure_utc(a.start_date) - ensure_utc(b.start_date))
    if delta == timedelta(0):
        return 1.0
    if delta <= NEAR_DATE_WINDOW:
        return 0.5
    return 0.0


def similarity(a: Any, b: Any, weights: SimilarityWeights = DEFAULT_WEIGHTS) -> float:
    """Weighted similarity of two records in [0, 1].

    Components:
    - title: Levenshtein similarity of the titles
    - date: 1.0 for identical start, 0.5 within three days, else 0;
      always 0 when either side has synthesized dates
    - location: Levenshtein similarity, with every online-only location
      ("Online", "Virtual", "Remote", ...) compared as the same place
    - online: 1.0 when both online flags agree

    Malformed records score 0.0 against everything. The score is symmetric.
    """
    if _is_malformed(a) or _is_malformed(b):
        return 0.0

    score = weights.title * levenshtein_similarity(a.title, b.title)
    score += weights.date * _date_score(a, b)
    score += weights.location * levenshtein_similarity(_location_key(a.location), _location_key(b.location))
    if bool(a.is_online) == bool(b.is_online):
        score += weights.online
    return score


def is_duplicate(a: Any, b: Any, threshold: float = DEFAULT_THRESHOLD) -> bool:
    """Check whether two records describe the same event."""
    fingerprint_a = content_fingerprint(a)
    fingerprint_b = content_fingerprint(b)
    if fingerprint_a is None or fingerprint_b is None:
        return False
    if fingerprint_a == fingerprint_b:
        return True
    return similarity(a, b) >= threshold


# ---------------------------------------------------------------------------
# Grouping and merging
# ---------------------------------------------------------------------------


def find_duplicate_groups(records: Sequence[Any], threshold: float = DEFAULT_THRESHOLD) -> List[DuplicateGroup]:
    """Greedy single-pass grouping of near-duplicate records.

    Records are visited in order. Each record not yet assigned to a group
    becomes a primary and claims every later unassigned record it is a
    duplicate of. Only groups with at least one duplicate are returned.
    Malformed records are never grouped.

    Args:
        records: Records to compare, in priority-of-primary order
        threshold: Minimum similarity for two records to be duplicates

    Returns:
        List of DuplicateGroup in the order their primaries appear
    """
    fingerprints = [content_fingerprint(record) for record in records]
    assigned = set()
    groups: List[DuplicateGroup] = []

    for i, primary in enumerate(records):
        if i in assigned or fingerprints[i] is None:
            continue
        assigned.add(i)

        duplicates = []
        for j in range(i + 1, len(records)):
            if j in assigned or fingerprints[j] is None:
                continue
            if fingerprints[i] == fingerprints[j] or similarity(primary, records[j]) >= threshold:
                duplicates.append(records[j])
                assigned.add(j)

        if duplicates:
            groups.append(DuplicateGroup(primary=primary, duplicates=duplicates))

    if groups:
        logger.debug(
            "duplicate_groups_found",
            records=len(records),
            groups=len(groups),
            duplicates=sum(len(group.duplicates) for group in groups),
        )
    return groups


def merge_duplicates(records: Sequence[Any]) -> CandidateRecord:
    """Merge records describing one event into a single candidate.

    The base is the record from the highest-priority source (ties go to
    the earliest record). On top of the base:
    - start_date, end_date: the base's, unless they are synthesized and
      another record has real dates
    - description: the longest non-empty one
    - registration_deadline: the earliest one
    - registration_url: the first one present
    - website_url: the base's, else the first one present

    Args:
        records: Non-empty group of duplicate records

    Returns:
        Merged, validated CandidateRecord

    Raises:
        ValueError: If records is empty
    """
    if not records:
        raise ValueError("Cannot merge an empty group of records")

    ordered = sorted(enumerate(records), key=lambda pair: (source_rank(pair[1].source), pair[0]))
    ranked = [record for _, record in ordered]
    base = ranked[0]

    # Real dates from any member beat a placeholder window on the base
    dated = base
    if getattr(base, "dates_synthesized", False):
        dated = next((r for r in ranked if not getattr(r, "dates_synthesized", False)), base)

    description = base.description
    for record in records:
        if record.description and len(record.description) > len(description or ""):
            description = record.description

    deadlines = [ensure_utc(r.registration_deadline) for r in records if r.registration_deadline]
    registration_url = next((r.registration_url for r in records if r.registration_url), None)
    website_url = base.website_url or next((r.website_url for r in records if r.website_url), None)

    return CandidateRecord(
        title=base.title,
        description=description,
        start_date=dated.start_date,
        end_date=dated.end_date,
        registration_deadline=min(deadlines) if deadlines else None,
        location=base.location,
        is_online=base.is_online,
        website_url=website_url,
        registration_url=registration_url,
        source=base.source,
        dates_synthesized=bool(getattr(dated, "dates_synthesized", False)),
    )
