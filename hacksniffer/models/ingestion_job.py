"""Ingestion job tracking and monitoring."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from hacksniffer.models.base import Base, UUIDPrimaryKeyMixin, utcnow


class IngestionJob(UUIDPrimaryKeyMixin, Base):
    """Tracks one adapter's contribution to an ingestion run.

    Each adapter run creates an IngestionJob record holding its
    counts, timing and error list.
    """

    __tablename__ = "ingestion_jobs"

    source: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="completed",
        index=True,
        comment="Status: 'completed', 'completed_with_errors', 'failed'",
    )

    # Timing
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    duration_seconds: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 3), nullable=True)

    # Metrics
    events_found: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    events_processed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    events_created: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    events_updated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Newline-separated error messages
    errors: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<IngestionJob(id={self.id}, source='{self.source}', status='{self.status}')>"
