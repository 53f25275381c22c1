"""Platform and merchant models."""

import uuid
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, Integer, Boolean, ForeignKey
from sqlalchemy import JSON as JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from kupon.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from kupon.models.coupon import Coupon
    from kupon.models.scrape_session import ScrapeSession


class Platform(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """E-commerce platform being scraped (Shopee, Tokopedia, ...).

    Rows are seeded from the static platform configs at startup. The JSON
    columns mirror that config for inspection; the scraper itself reads the
    in-code config.
    """

    __tablename__ = "platforms"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    slug: Mapped[str] = mapped_column(String(50), unique=True, index=True, nullable=False)
    base_url: Mapped[str] = mapped_column(String(500), nullable=False)
    logo_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    endpoints: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    selectors: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    limits: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=100)

    merchants: Mapped[list["Merchant"]] = relationship(back_populates="platform", cascade="all, delete-orphan")
    coupons: Mapped[list["Coupon"]] = relationship(back_populates="platform", cascade="all, delete-orphan")
    scrape_sessions: Mapped[list["ScrapeSession"]] = relationship(back_populates="platform", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Platform(id={self.id}, slug='{self.slug}')>"


class Merchant(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Seller a coupon belongs to. Each platform is seeded with its own house merchant."""

    __tablename__ = "merchants"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, index=True, nullable=False)
    platform_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("platforms.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    website_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    platform: Mapped[Optional["Platform"]] = relationship(back_populates="merchants")

    def __repr__(self) -> str:
        return f"<Merchant(id={self.id}, slug='{self.slug}')>"
