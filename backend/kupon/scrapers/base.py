"""Core scraper data structures and the platform adapter interface.

Every platform module provides one PlatformAdapter subclass carrying its
PlatformConfig and, where needed, overrides of the three hooks:
fetch_endpoint(), extract_fields() and post_process().
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple, Union
from urllib.parse import urljoin

import structlog

from kupon.scrapers.platform_config import PlatformConfig, SelectorSet

if TYPE_CHECKING:
    from kupon.scrapers.chain import FetchStrategyChain


@dataclass
class RawItem:
    """Loosely-typed extraction result, consumed by the normalizer.

    Only the title is required at extraction time. The tag fields at the
    bottom are filled in by the chain and the platform scraper.
    """

    title: str
    description: Optional[str] = None
    price: Optional[str] = None
    original_price: Optional[str] = None
    discount_text: Optional[str] = None
    code: Optional[str] = None
    image_url: Optional[str] = None
    link: Optional[str] = None
    valid_until: Optional[Union[datetime, str]] = None

    platform_slug: Optional[str] = None
    endpoint: Optional[str] = None
    source_url: Optional[str] = None
    strategy: Optional[str] = None


@dataclass
class FetchTarget:
    """One endpoint of one platform, as handed to a fetch strategy."""

    platform: PlatformConfig
    endpoint: str
    url: str
    selectors: SelectorSet
    max_items: int

    @property
    def key(self) -> str:
        return f"{self.platform.slug}:{self.endpoint}"


@dataclass
class CouponRecord:
    """Normalized coupon ready for upsert."""

    title: str
    description: str
    discount_type: str
    discount_value: Decimal
    source_url: str
    platform_id: uuid.UUID
    scraped_at: datetime
    merchant_id: Optional[uuid.UUID] = None
    discount_text: Optional[str] = None
    coupon_code: Optional[str] = None
    image_url: Optional[str] = None
    status: str = "active"
    is_featured: bool = False
    valid_until: Optional[datetime] = None
    platform_slug: Optional[str] = None

    @property
    def natural_key(self) -> Tuple[str, uuid.UUID, Optional[uuid.UUID]]:
        return (self.title, self.platform_id, self.merchant_id)

    def to_row(self) -> Dict[str, Any]:
        """Column values for the coupons table."""
        return {
            "title": self.title,
            "description": self.description,
            "discount_type": self.discount_type,
            "discount_value": self.discount_value,
            "discount_text": self.discount_text,
            "coupon_code": self.coupon_code,
            "platform_id": self.platform_id,
            "merchant_id": self.merchant_id,
            "source_url": self.source_url,
            "image_url": self.image_url,
            "status": self.status,
            "is_featured": self.is_featured,
            "valid_until": self.valid_until,
            "scraped_at": self.scraped_at,
        }


class PlatformAdapter:
    """Per-platform capability object.

    The default hooks are enough for most platforms; subclasses only set
    ``config`` and override what their site needs.
    """

    config: PlatformConfig

    def __init__(self, config: Optional[PlatformConfig] = None):
        if config is not None:
            self.config = config
        if getattr(self, "config", None) is None:
            raise ValueError(f"{type(self).__name__} has no PlatformConfig")
        self.logger = structlog.get_logger(__name__).bind(platform=self.config.slug)

    @property
    def slug(self) -> str:
        return self.config.slug

    def build_targets(self) -> List[FetchTarget]:
        """Build fetch targets for every endpoint, in configured order.

        Endpoints without selectors still produce a target with an empty
        selector set; the platform scraper rejects those up front.
        """
        targets = []
        for endpoint in self.config.endpoints:
            targets.append(
                FetchTarget(
                    platform=self.config,
                    endpoint=endpoint,
                    url=self.config.endpoint_url(endpoint),
                    selectors=self.config.selectors_for(endpoint) or SelectorSet(container=(), title=()),
                    max_items=self.config.max_items,
                )
            )
        return targets

    async def fetch_endpoint(self, chain: "FetchStrategyChain", target: FetchTarget) -> List[RawItem]:
        """Resolve items for one endpoint through the strategy chain."""
        return await chain.fetch(target)

    def extract_fields(self, item: RawItem) -> RawItem:
        """Platform fix-ups applied to each raw item before normalization.

        The default resolves relative links and images against the
        endpoint URL.
        """
        page_url = item.source_url or self.config.base_url
        if item.link and not item.link.startswith(("http://", "https://")):
            item.link = urljoin(page_url, item.link)
        if item.image_url and item.image_url.startswith("//"):
            item.image_url = "https:" + item.image_url
        elif item.image_url and not item.image_url.startswith(("http://", "https://", "data:")):
            item.image_url = urljoin(page_url, item.image_url)
        return item

    def post_process(self, records: List[CouponRecord]) -> List[CouponRecord]:
        """Drop duplicate natural keys within one run, keeping the last seen."""
        unique: Dict[Tuple, CouponRecord] = {}
        for record in records:
            unique[record.natural_key] = record
        if len(unique) < len(records):
            self.logger.debug("duplicate_records_dropped", dropped=len(records) - len(unique))
        return list(unique.values())
