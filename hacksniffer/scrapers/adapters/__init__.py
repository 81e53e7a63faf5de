"""Source-specific adapter implementations.

Each adapter module implements a class that inherits from BaseAdapter
and keeps its parsing tiers as module-level strategy functions.
"""

from .devpost import DevpostAdapter
from .mlh import MLHAdapter
from .eventbrite import EventbriteAdapter

__all__ = [
    "DevpostAdapter",
    "MLHAdapter",
    "EventbriteAdapter",
]
