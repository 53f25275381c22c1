"""Shopee Indonesia adapter.

Flash-sale cards usually show the sale and crossed-out price but no
discount badge, so the discount is derived from the price pair.
"""

import re
from decimal import Decimal

from kupon.scrapers.base import PlatformAdapter, RawItem
from kupon.scrapers.platform_config import PlatformConfig, SelectorSet
from kupon.scrapers.utils.normalizer import parse_price

# Default discount when nothing parses: 10 (percent)
SHOPEE_CONFIG = PlatformConfig(
    name="Shopee",
    slug="shopee",
    base_url="https://shopee.co.id",
    logo_url="https://shopee.co.id/favicon.ico",
    endpoints={
        "flash_sale": "/flash_sale",
        "daily_discover": "/daily-discover",
    },
    selectors={
        "flash_sale": SelectorSet(
            container=("[data-sqe='link'] .stardust-card", ".flash-sale-item-card", "[class*='flash-sale-item']"),
            title=(".flash-sale-item-card__title", "[class*='item-card__title']", "[class*='name']"),
            price=(".flash-sale-item-card__price", "[class*='current-price']", "[class*='price']"),
            original_price=(".flash-sale-item-card__original-price", "[class*='original-price']", "del"),
            discount=(".flash-sale-item-card__discount", "[class*='discount']", "[class*='percent']"),
            image=(".flash-sale-item-card__image img", "img"),
            link=("a",),
        ),
        "daily_discover": SelectorSet(
            container=("[data-sqe='link']", ".shopee-search-item-result__item"),
            title=(".shopee-search-item-result__text", "[data-sqe='name']", "[class*='name']"),
            price=(".shopee-price", "[class*='price']"),
            discount=(".percent-discount", "[class*='discount']"),
            image=(".shopee-search-item-result__image img", "img"),
            link=("a",),
        ),
    },
    max_items=50,
    timeout_seconds=30,
    priority=1,
    rate_limit_requests=10,
    valid_days=5,
    featured_rate=0.2,
    promo_phrase="Penawaran spesial dari Shopee dengan diskon menarik!",
)

_PRICE_PAIR_RE = re.compile(r"Rp\s*[\d.,]+.*?Rp\s*[\d.,]+", re.IGNORECASE)
_PRICE_IN_TEXT_RE = re.compile(r"Rp\s*[\d.,]+", re.IGNORECASE)


class ShopeeAdapter(PlatformAdapter):
    """Shopee flash sale and daily discover."""

    config = SHOPEE_CONFIG

    def extract_fields(self, item: RawItem) -> RawItem:
        item = super().extract_fields(item)

        if not item.discount_text:
            price, original = item.price, item.original_price
            if not original and price and _PRICE_PAIR_RE.search(price):
                # "Rp 49.000 Rp 99.000" in one node
                found = _PRICE_IN_TEXT_RE.findall(price)
                price, original = found[0], found[1]
            discount = self.discount_from_prices(price, original)
            if discount is not None:
                item.discount_text = f"{discount}%"
        return item

    @staticmethod
    def discount_from_prices(price: str, original: str):
        """Percentage saved between sale and original price, or None."""
        current = parse_price(price)
        before = parse_price(original)
        if not current or not before or before <= current:
            return None
        return int(((before - current) / before * Decimal(100)).quantize(Decimal("1")))
