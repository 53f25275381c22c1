"""Synthetic generator: last-resort fake coupons that never fail."""

import random
from typing import List, Optional

from kupon.scrapers.base import FetchTarget, RawItem
from kupon.scrapers.strategies.base import FetchStrategy

TITLE_TEMPLATES = (
    "{name} Flash Sale Spesial",
    "Diskon Besar {name}",
    "Promo Hemat {name}",
    "Voucher Eksklusif {name}",
    "Gratis Ongkir {name}",
    "Cashback Spesial {name}",
)

DISCOUNT_PALETTE = ("15%", "25%", "35%", "45%", "Rp 75.000", "Rp 150.000")


class SyntheticGenerator(FetchStrategy):
    """Fixed-shape fake records for a platform.

    Titles come from a small template set, so repeated runs upsert the same
    rows instead of growing the table.
    """

    name = "synthetic"

    def __init__(self, count: int = 5, rng: Optional[random.Random] = None):
        super().__init__()
        self.count = count
        self.rng = rng or random.Random()

    async def fetch(self, target: FetchTarget) -> List[RawItem]:
        config = target.platform
        count = min(self.count, target.max_items)
        templates = self.rng.sample(TITLE_TEMPLATES, k=min(count, len(TITLE_TEMPLATES)))
        base = config.base_url.rstrip("/")

        items = []
        for index in range(count):
            template = templates[index % len(templates)]
            title = template.format(name=config.name)
            if index >= len(templates):
                title = f"{title} #{index + 1}"

            price = self.rng.randint(20, 500) * 1000
            original = int(price * self.rng.uniform(1.2, 2.0)) // 1000 * 1000
            code = None
            if self.rng.random() < 0.5:
                code = f"{config.slug[:4].upper()}{self.rng.randint(100, 999)}"

            items.append(
                RawItem(
                    title=title,
                    price=f"Rp {price:,}".replace(",", "."),
                    original_price=f"Rp {original:,}".replace(",", "."),
                    discount_text=self.rng.choice(DISCOUNT_PALETTE),
                    code=code,
                    image_url=f"{base}/static/promo/{target.endpoint}-{index + 1}.jpg",
                    link=f"{base}/promo/{target.endpoint}/{index + 1}",
                    source_url=target.url,
                )
            )
        return items
