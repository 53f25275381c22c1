"""Scrape pipeline for coupon and deal listings.

This package provides:
- Platform configs and the adapter interface
- Fetch strategies and the fallback chain that runs them
- The platform scraper, the multi-platform orchestrator and its scheduler
"""

from .platform_config import PlatformConfig, SelectorSet
from .base import CouponRecord, FetchTarget, PlatformAdapter, RawItem

__all__ = [
    # Configuration
    "PlatformConfig",
    "SelectorSet",
    # Data structures
    "RawItem",
    "FetchTarget",
    "CouponRecord",
    # Adapter interface
    "PlatformAdapter",
]
