"""Services for deduplication and record persistence."""

from hacksniffer.services.deduplication import (
    DuplicateGroup,
    SimilarityWeights,
    content_fingerprint,
    find_duplicate_groups,
    is_duplicate,
    levenshtein_similarity,
    merge_duplicates,
    similarity,
)
from hacksniffer.services.hackathon_service import HackathonService, RecordStore

__all__ = [
    "DuplicateGroup",
    "SimilarityWeights",
    "content_fingerprint",
    "find_duplicate_groups",
    "is_duplicate",
    "levenshtein_similarity",
    "merge_duplicates",
    "similarity",
    "HackathonService",
    "RecordStore",
]
