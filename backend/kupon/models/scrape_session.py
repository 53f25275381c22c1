"""Scrape session audit records."""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, ForeignKey, Integer, DateTime, Uuid
from sqlalchemy import JSON as JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from kupon.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from kupon.models.platform import Platform


SESSION_STATUSES = ("running", "completed", "failed", "cancelled")


class ScrapeSession(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """One platform run within a scrape cycle.

    Created as 'running' when the platform scraper starts and finalized
    exactly once as 'completed', 'failed' or 'cancelled'.
    """

    __tablename__ = "scrape_sessions"

    session_id: Mapped[uuid.UUID] = mapped_column(Uuid, unique=True, nullable=False, default=uuid.uuid4)
    platform_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("platforms.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="running",
        index=True,
        comment="Status: 'running', 'completed', 'failed', 'cancelled'",
    )

    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    duration_ms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    items_found: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    items_saved: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    items_updated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    items_failed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    error_details: Mapped[Optional[dict]] = mapped_column(JSONB, nullable=True)
    performance_metrics: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)

    scraper_version: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    platform: Mapped["Platform"] = relationship(back_populates="scrape_sessions")

    def __repr__(self) -> str:
        return f"<ScrapeSession(session_id={self.session_id}, status='{self.status}')>"
