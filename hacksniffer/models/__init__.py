"""SQLAlchemy models for hacksniffer.

All models are imported here so metadata.create_all can discover them.
"""

from hacksniffer.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from hacksniffer.models.hackathon import Hackathon
from hacksniffer.models.ingestion_job import IngestionJob

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "Hackathon",
    "IngestionJob",
]
