"""Coupon Pydantic schemas for response serialization."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class PlatformBrief(BaseModel):
    """Brief platform information for coupon responses."""

    model_config = ConfigDict(from_attributes=True)

    name: str
    slug: str
    logo_url: Optional[str] = None


class MerchantBrief(BaseModel):
    """Brief merchant information for coupon responses."""

    model_config = ConfigDict(from_attributes=True)

    name: str
    slug: str


class CouponResponse(BaseModel):
    """Standard coupon response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    description: Optional[str] = None
    discount_type: str
    discount_value: Decimal
    discount_text: Optional[str] = None
    coupon_code: Optional[str] = None
    source_url: str
    image_url: Optional[str] = None
    status: str
    is_featured: bool
    valid_until: Optional[datetime] = None
    scraped_at: datetime
    created_at: datetime
    updated_at: datetime
    platform: PlatformBrief
    merchant: Optional[MerchantBrief] = None
