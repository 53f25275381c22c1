"""Static per-platform scrape configuration."""

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple
from urllib.parse import urljoin


SELECTOR_FIELDS = (
    "container",
    "title",
    "description",
    "price",
    "original_price",
    "discount",
    "code",
    "image",
    "link",
)


@dataclass(frozen=True)
class SelectorSet:
    """Ordered CSS selector candidates per logical field.

    Candidates are tried in listed order and the first one producing
    non-empty text wins.
    """

    container: Tuple[str, ...] = ()
    title: Tuple[str, ...] = ()
    description: Tuple[str, ...] = ()
    price: Tuple[str, ...] = ()
    original_price: Tuple[str, ...] = ()
    discount: Tuple[str, ...] = ()
    code: Tuple[str, ...] = ()
    image: Tuple[str, ...] = ("img",)
    link: Tuple[str, ...] = ("a",)
    wait_for: Optional[str] = None

    def candidates(self, field_name: str) -> Tuple[str, ...]:
        return getattr(self, field_name)

    def is_usable(self) -> bool:
        """A selector set needs at least a container and a title candidate."""
        return bool(self.container) and bool(self.title)

    def wait_selector(self) -> Optional[str]:
        if self.wait_for:
            return self.wait_for
        return ", ".join(self.container) or None

    def to_dict(self) -> Dict[str, list]:
        data = {name: list(self.candidates(name)) for name in SELECTOR_FIELDS}
        if self.wait_for:
            data["wait_for"] = [self.wait_for]
        return data


@dataclass(frozen=True)
class PlatformConfig:
    """Identity, endpoints, selectors and limits for one platform.

    Immutable for the lifetime of a run; looked up by slug through the
    adapter registry.
    """

    name: str
    slug: str
    base_url: str
    endpoints: Dict[str, str] = field(default_factory=dict)  # endpoint type -> path or absolute URL
    selectors: Dict[str, SelectorSet] = field(default_factory=dict)
    max_items: int = 20
    timeout_seconds: float = 30.0
    enabled: bool = True
    priority: int = 100
    rate_limit_requests: int = 10
    rate_limit_window_seconds: float = 60.0
    valid_days: int = 7
    featured_rate: float = 0.15
    promo_phrase: str = ""
    default_discount_value: int = 10
    logo_url: Optional[str] = None

    def endpoint_url(self, endpoint: str) -> str:
        return urljoin(self.base_url.rstrip("/") + "/", self.endpoints[endpoint].lstrip("/"))

    def selectors_for(self, endpoint: str) -> Optional[SelectorSet]:
        return self.selectors.get(endpoint)

    def description_suffix(self) -> str:
        return self.promo_phrase or f"Promo menarik dari {self.name}"

    def limits(self) -> Dict[str, float]:
        return {
            "max_items": self.max_items,
            "timeout_seconds": self.timeout_seconds,
            "rate_limit_requests": self.rate_limit_requests,
            "rate_limit_window_seconds": self.rate_limit_window_seconds,
            "valid_days": self.valid_days,
            "featured_rate": self.featured_rate,
            "default_discount_value": self.default_discount_value,
        }
