"""Lazada Indonesia adapter."""

from kupon.scrapers.base import PlatformAdapter, RawItem
from kupon.scrapers.platform_config import PlatformConfig, SelectorSet

# Default discount when nothing parses: 10 (percent)
LAZADA_CONFIG = PlatformConfig(
    name="Lazada",
    slug="lazada",
    base_url="https://www.lazada.co.id",
    logo_url="https://www.lazada.co.id/favicon.ico",
    endpoints={
        "flash_sale": "/flash-sale/",
        "vouchers": "/vouchers/",
    },
    selectors={
        "flash_sale": SelectorSet(
            container=(".sale-item", "[class*='flash-unit']", "[data-qa-locator='product-item']"),
            title=(".item-title-text", "[class*='title']"),
            price=(".sale-price", "[class*='price-current']", "[class*='price']"),
            original_price=(".origin-price", "del"),
            discount=(".sale-percent", "[class*='discount']"),
            image=(".item-img img", "img"),
            link=("a",),
        ),
        "vouchers": SelectorSet(
            container=(".voucher-item", "[class*='voucher-card']"),
            title=(".voucher-title", "[class*='title']"),
            description=(".voucher-desc", "[class*='desc']"),
            discount=(".voucher-value", "[class*='value']"),
            code=(".voucher-code", "[class*='code']"),
            link=("a",),
        ),
    },
    max_items=35,
    timeout_seconds=40,
    priority=3,
    rate_limit_requests=12,
    valid_days=6,
    featured_rate=0.18,
    promo_phrase="Penawaran terbatas dari Lazada!",
)


class LazadaAdapter(PlatformAdapter):
    """Lazada flash sale and voucher wall."""

    config = LAZADA_CONFIG

    def extract_fields(self, item: RawItem) -> RawItem:
        item = super().extract_fields(item)
        # voucher values read "Rp50RB" or "Diskon 15%"; the code cell says "Collect" until claimed
        if item.code and item.code.strip().lower() in ("collect", "klaim", "ambil"):
            item.code = None
        return item
