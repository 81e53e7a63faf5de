"""Hackathon ingestion: source adapters, fetch utilities, orchestration.

This package provides:
- The BaseAdapter interface and the CandidateRecord data structure
- Utility modules for fetching, rate limiting, robots rules and normalization
- Factory for creating adapter instances
- The ingestion orchestrator and the cron scheduler
"""

from .base import (
    SOURCE_PRIORITY,
    BaseAdapter,
    CandidateRecord,
    ParseContext,
    SourceId,
    run_strategies,
)
from .factory import AdapterFactory

__all__ = [
    # Base classes
    "BaseAdapter",
    "ParseContext",
    "run_strategies",
    # Data structures
    "CandidateRecord",
    "SourceId",
    "SOURCE_PRIORITY",
    # Factory
    "AdapterFactory",
]
