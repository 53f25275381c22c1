"""Traveloka adapter.

Travel promos run for weeks, hence the longer default validity window.
"""

from typing import List

from kupon.scrapers.base import CouponRecord, PlatformAdapter
from kupon.scrapers.platform_config import PlatformConfig, SelectorSet

# Default discount when nothing parses: 10 (percent)
TRAVELOKA_CONFIG = PlatformConfig(
    name="Traveloka",
    slug="traveloka",
    base_url="https://www.traveloka.com/id-id",
    logo_url="https://www.traveloka.com/favicon.ico",
    endpoints={
        "deals": "/promotion",
    },
    selectors={
        "deals": SelectorSet(
            container=(".promotion-card", "[class*='promo-card']", "[data-testid*='promo']"),
            title=(".promotion-title", "[class*='title']", "h3"),
            description=(".promotion-description", "[class*='description']"),
            discount=(".promotion-discount", "[class*='discount']"),
            code=("[class*='promo-code']", "[class*='code']"),
            image=(".promotion-image img", "img"),
            link=("a",),
        ),
    },
    max_items=25,
    timeout_seconds=35,
    priority=5,
    rate_limit_requests=8,
    valid_days=14,
    featured_rate=0.2,
    promo_phrase="Promo travel terbaik dari Traveloka!",
)


class TravelokaAdapter(PlatformAdapter):
    """Traveloka promotion listing."""

    config = TRAVELOKA_CONFIG

    def post_process(self, records: List[CouponRecord]) -> List[CouponRecord]:
        records = super().post_process(records)
        # promotion cards without a code are banners, not coupons
        with_code = [r for r in records if r.coupon_code]
        return with_code or records
