"""Blibli adapter."""

from kupon.scrapers.base import PlatformAdapter
from kupon.scrapers.platform_config import PlatformConfig, SelectorSet

# Default discount when nothing parses: 10 (percent)
BLIBLI_CONFIG = PlatformConfig(
    name="Blibli",
    slug="blibli",
    base_url="https://www.blibli.com",
    logo_url="https://www.blibli.com/favicon.ico",
    endpoints={
        "deals": "/deals",
        "vouchers": "/voucher",
    },
    selectors={
        "deals": SelectorSet(
            container=(".product-item", "[class*='product-card']"),
            title=(".product-title", "[class*='product__name']", "[class*='title']"),
            price=(".product-price", "[class*='price__final']", "[class*='price']"),
            original_price=("[class*='price__before']", "del"),
            discount=(".product-discount", "[class*='discount']"),
            image=(".product-image img", "img"),
            link=("a",),
        ),
        "vouchers": SelectorSet(
            container=(".voucher-card", "[class*='voucher']"),
            title=(".voucher-title", "[class*='title']"),
            description=(".voucher-description", "[class*='desc']"),
            discount=(".voucher-discount", "[class*='discount']"),
            code=(".voucher-code", "[class*='code']"),
            link=("a",),
        ),
    },
    max_items=30,
    timeout_seconds=30,
    priority=4,
    rate_limit_requests=20,
    valid_days=7,
    featured_rate=0.15,
    promo_phrase="Penawaran menarik dari Blibli!",
)


class BlibliAdapter(PlatformAdapter):
    config = BLIBLI_CONFIG
