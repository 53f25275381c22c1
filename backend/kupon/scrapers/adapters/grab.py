"""Grab (GrabFood / GrabMart) adapter."""

from kupon.scrapers.base import PlatformAdapter
from kupon.scrapers.platform_config import PlatformConfig, SelectorSet

# Default discount when nothing parses: 10 (percent)
GRAB_CONFIG = PlatformConfig(
    name="Grab",
    slug="grab",
    base_url="https://food.grab.com/id/id",
    logo_url="https://food.grab.com/favicon.ico",
    endpoints={
        "food": "/promos",
        "mart": "https://mart.grab.com/id/promos",
    },
    selectors={
        "food": SelectorSet(
            container=(".promo-card", "[class*='promoCard']", "[class*='PromoCard']"),
            title=(".promo-title", "[class*='title']"),
            description=(".promo-description", "[class*='description']"),
            discount=(".promo-discount", "[class*='discount']"),
            code=("[class*='promo-code']",),
            image=(".promo-image img", "img"),
            link=("a",),
        ),
        "mart": SelectorSet(
            container=(".promo-card", "[class*='promoCard']"),
            title=(".promo-title", "[class*='title']"),
            description=(".promo-description", "[class*='description']"),
            discount=(".promo-discount", "[class*='discount']"),
            image=("img",),
            link=("a",),
        ),
    },
    max_items=20,
    timeout_seconds=30,
    priority=6,
    rate_limit_requests=10,
    valid_days=3,
    featured_rate=0.15,
    promo_phrase="Promo menarik dari Grab!",
)


class GrabAdapter(PlatformAdapter):
    config = GRAB_CONFIG
