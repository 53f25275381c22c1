"""Curated fallback: hand-maintained seed coupons with light variation."""

import json
import random
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from kupon.core.exceptions import FetchFailure
from kupon.scrapers.base import FetchTarget, RawItem
from kupon.scrapers.strategies.base import FetchStrategy

DEFAULT_DATA_PATH = Path(__file__).resolve().parent.parent.parent / "data" / "curated_deals.json"

TITLE_VARIATIONS = (" - Terbatas!", " - Hari Ini Saja!", " - Limited Time!", " - Buruan!")
VARIATION_PROBABILITY = 0.3
DEFAULT_VALID_DAYS = 7


class CuratedFallback(FetchStrategy):
    """Samples the curated dataset for the target's platform.

    The JSON file maps platform slug -> list of coupon objects with the
    RawItem field names. A platform missing from the file is an empty,
    successful result; an unreadable file is a failure.
    """

    name = "curated"

    def __init__(
        self,
        data_path: Optional[Union[str, Path]] = None,
        sample_size: int = 5,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        super().__init__()
        self.data_path = Path(data_path) if data_path else DEFAULT_DATA_PATH
        self.sample_size = sample_size
        self.rng = rng or random.Random()
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._data: Optional[Dict[str, List[dict]]] = None

    def _load(self, target: FetchTarget) -> Dict[str, List[dict]]:
        if self._data is None:
            try:
                with self.data_path.open(encoding="utf-8") as fh:
                    data = json.load(fh)
            except (OSError, json.JSONDecodeError) as e:
                raise FetchFailure(self.name, target.key, f"cannot read {self.data_path}: {e}") from e
            if not isinstance(data, dict):
                raise FetchFailure(self.name, target.key, "curated data must be an object keyed by platform")
            self._data = data
        return self._data

    async def fetch(self, target: FetchTarget) -> List[RawItem]:
        entries = [e for e in self._load(target).get(target.platform.slug, []) if e.get("title")]
        if not entries:
            self.logger.info("no_curated_entries", target=target.key)
            return []

        self.rng.shuffle(entries)
        now = self.clock()
        items = []
        for entry in entries[: min(self.sample_size, target.max_items)]:
            title = entry["title"]
            if self.rng.random() < VARIATION_PROBABILITY:
                title += self.rng.choice(TITLE_VARIATIONS)
            items.append(
                RawItem(
                    title=title,
                    description=entry.get("description"),
                    price=entry.get("price"),
                    original_price=entry.get("original_price"),
                    discount_text=entry.get("discount"),
                    code=entry.get("code"),
                    image_url=entry.get("image_url"),
                    link=entry.get("link") or target.url,
                    valid_until=entry.get("valid_until") or now + timedelta(days=DEFAULT_VALID_DAYS),
                    source_url=target.url,
                )
            )

        self.logger.info("curated_items_sampled", target=target.key, count=len(items))
        return items
