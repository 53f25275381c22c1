"""Tokopedia adapter."""

import re

from kupon.scrapers.base import PlatformAdapter, RawItem
from kupon.scrapers.platform_config import PlatformConfig, SelectorSet

# Default discount when nothing parses: 10 (percent)
TOKOPEDIA_CONFIG = PlatformConfig(
    name="Tokopedia",
    slug="tokopedia",
    base_url="https://www.tokopedia.com",
    logo_url="https://www.tokopedia.com/favicon.ico",
    endpoints={
        "promo": "/promo",
        "flash_sale": "/flash-sale",
    },
    selectors={
        "promo": SelectorSet(
            container=("[data-testid='divPromoCard']", "[class*='promo-card']"),
            title=("[data-testid='spnPromoName']", "[class*='promo-title']", "h3"),
            description=("[data-testid='spnPromoDesc']", "[class*='promo-desc']"),
            discount=("[data-testid='spnPromoDiscount']", "[class*='discount']"),
            code=("[data-testid='spnPromoCode']", "[class*='promo-code']"),
            image=("[data-testid='imgPromo']", "img"),
            link=("a",),
        ),
        "flash_sale": SelectorSet(
            container=("[data-testid='divProductWrapper']", "[data-testid='master-product-card']"),
            title=("[data-testid='spnProductName']", "[data-testid='linkProductName']", "[class*='name']"),
            price=("[data-testid='spnProductPrice']", "[data-testid='linkProductPrice']"),
            original_price=("[data-testid='lblProductSlashPrice']", "del"),
            discount=("[data-testid='spnProductDiscount']", "[data-testid='lblProductDiscount']"),
            image=("[data-testid='imgProduct']", "img"),
            link=("a",),
        ),
    },
    max_items=40,
    timeout_seconds=35,
    priority=2,
    rate_limit_requests=15,
    valid_days=7,
    featured_rate=0.15,
    promo_phrase="Promo eksklusif dari Tokopedia!",
)

_TAG_RE = re.compile(r"\s*\[(?:FLASH SALE|PROMO)\]\s*", re.IGNORECASE)


class TokopediaAdapter(PlatformAdapter):
    """Tokopedia promo page and flash sale."""

    config = TOKOPEDIA_CONFIG

    def extract_fields(self, item: RawItem) -> RawItem:
        item = super().extract_fields(item)
        item.title = _TAG_RE.sub(" ", item.title).strip()
        if item.code:
            item.code = item.code.replace("Kode:", "").replace("Kode", "").strip()
        return item
