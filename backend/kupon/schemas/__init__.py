"""Pydantic schemas for the Kupon API.

All request/response models are defined here for easy import.
"""

from kupon.schemas.common import ApiResponse, ErrorResponse, HealthCheckResponse, Pagination
from kupon.schemas.coupon import CouponResponse, MerchantBrief, PlatformBrief
from kupon.schemas.scrape import TriggerRequest, TriggerResult

__all__ = [
    # Common
    "ApiResponse",
    "ErrorResponse",
    "HealthCheckResponse",
    "Pagination",
    # Coupon
    "CouponResponse",
    "MerchantBrief",
    "PlatformBrief",
    # Scrape
    "TriggerRequest",
    "TriggerResult",
]
