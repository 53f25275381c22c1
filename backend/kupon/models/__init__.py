"""SQLAlchemy models for Kupon.

All models are imported here so Base.metadata knows every table.
"""

from kupon.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from kupon.models.platform import Platform, Merchant
from kupon.models.coupon import Coupon, DISCOUNT_TYPES, COUPON_STATUSES
from kupon.models.scrape_session import ScrapeSession, SESSION_STATUSES

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "Platform",
    "Merchant",
    "Coupon",
    "ScrapeSession",
    "DISCOUNT_TYPES",
    "COUPON_STATUSES",
    "SESSION_STATUSES",
]
