"""Canonical coupon model."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, Text, ForeignKey, Boolean, Numeric, DateTime, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from kupon.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin, utcnow

if TYPE_CHECKING:
    from kupon.models.platform import Platform, Merchant


DISCOUNT_TYPES = ("percentage", "fixed", "shipping", "cashback", "bogo")
COUPON_STATUSES = ("active", "expired", "disabled", "pending")


class Coupon(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A promotional offer scraped from a platform.

    (title, platform_id, merchant_id) is the natural key used by upserts.
    Rows are never deleted by the scraper; cleanup only flips status to
    'expired'.
    """

    __tablename__ = "coupons"
    __table_args__ = (
        UniqueConstraint("title", "platform_id", "merchant_id", name="uq_coupons_title_platform_merchant"),
        Index("ix_coupons_platform_status", "platform_id", "status"),
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    discount_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="percentage",
        comment="One of: percentage, fixed, shipping, cashback, bogo",
    )
    discount_value: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    discount_text: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    coupon_code: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)

    platform_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("platforms.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    merchant_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("merchants.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    source_url: Mapped[str] = mapped_column(String(1000), nullable=False)
    image_url: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="active",
        index=True,
        comment="One of: active, expired, disabled, pending",
    )
    is_featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    valid_until: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    scraped_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    platform: Mapped["Platform"] = relationship(back_populates="coupons", lazy="selectin")
    merchant: Mapped[Optional["Merchant"]] = relationship(lazy="selectin")

    def __repr__(self) -> str:
        return f"<Coupon(id={self.id}, title='{self.title[:30]}', status='{self.status}')>"
