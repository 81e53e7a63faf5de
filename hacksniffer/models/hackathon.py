"""Hackathon model: the persisted, deduplicated event record."""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from hacksniffer.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Hackathon(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A hackathon ingested from one or more sources.

    The id is assigned on first persistence and never changes; later
    scrapes and dedup merges update the row in place.
    """

    __tablename__ = "hackathons"

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Timing (stored as UTC)
    start_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    registration_deadline: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    dates_synthesized: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="True when the adapter substituted a placeholder date window",
    )

    # Location
    location: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    is_online: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)

    # Links
    website_url: Mapped[Optional[str]] = mapped_column(String(2000), nullable=True)
    registration_url: Mapped[Optional[str]] = mapped_column(String(2000), nullable=True)
    canonical_url: Mapped[Optional[str]] = mapped_column(
        String(2000),
        nullable=True,
        comment="Tracking-stripped, www-stripped URL used for listing identity",
    )

    source: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    __table_args__ = (
        Index("idx_hackathons_canonical_url", "canonical_url"),
    )

    def __repr__(self) -> str:
        return f"<Hackathon(id={self.id}, source='{self.source}', title='{self.title[:40]}')>"
