"""Raw HTTP fetch strategy.

Plain GET with browser-like headers, then selector extraction and, when
the configured selectors find nothing, heuristic regex parsing of the
returned markup. Cheapest tier and the most brittle.
"""

import re
from typing import List, Optional
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup

from kupon.core.exceptions import FetchFailure
from kupon.scrapers.base import FetchTarget, RawItem
from kupon.scrapers.strategies.base import FetchStrategy
from kupon.scrapers.utils.anti_detection import AntiDetectionPolicy
from kupon.scrapers.utils.retry import http_retrying
from kupon.scrapers.utils.selectors import clean_text, extract_items


PROMO_KEYWORDS_RE = re.compile(r"promo|diskon|sale|deal|kupon|voucher|cashback|hemat", re.IGNORECASE)
TITLE_CLASS_RE = re.compile(r"title|name|product", re.IGNORECASE)
PRICE_RE = re.compile(r"(?:Rp\.?|IDR)\s*\d[\d.,]*|\$\s*\d[\d.,]*", re.IGNORECASE)
DISCOUNT_RES = [
    re.compile(r"\d{1,3}\s*%\s*(?:off|diskon)", re.IGNORECASE),
    re.compile(r"diskon\s*(?:s/d\s*|hingga\s*)?\d{1,3}\s*%", re.IGNORECASE),
    re.compile(r"hemat\s*Rp\.?\s*\d[\d.,]*", re.IGNORECASE),
    re.compile(r"cashback\s*\d[\d.,]*\s*(?:rb|ribu|k|jt|%)?", re.IGNORECASE),
]
BACKGROUND_IMAGE_RE = re.compile(r"background-image\s*:\s*url\(['\"]?([^'\")]+)['\"]?\)", re.IGNORECASE)

TEXT_MAX_LENGTH = 100


class RawHttpFetcher(FetchStrategy):
    """httpx GET + BeautifulSoup/regex parsing."""

    name = "raw_http"

    def __init__(
        self,
        client: httpx.AsyncClient,
        anti_detection: AntiDetectionPolicy,
        max_items: int = 5,
        attempts: int = 3,
        backoff: float = 1.0,
    ):
        """Initialize raw fetcher.

        Args:
            client: Shared async HTTP client (owned by the caller)
            anti_detection: Header and user-agent policy
            max_items: Cap on heuristic items per page
            attempts: Attempts for transport errors and 5xx responses
            backoff: Exponential backoff multiplier in seconds
        """
        super().__init__()
        self.client = client
        self.anti_detection = anti_detection
        self.max_items = max_items
        self.attempts = attempts
        self.backoff = backoff

    async def fetch(self, target: FetchTarget) -> List[RawItem]:
        try:
            html = await self._get(target.url)
        except httpx.HTTPError as e:
            raise FetchFailure(self.name, target.key, str(e) or type(e).__name__) from e

        limit = min(self.max_items, target.max_items)
        items = extract_items(html, target.selectors, target.url, limit)
        if not items:
            items = self.parse_heuristic(html, target.url, limit)

        self.logger.info("http_items_extracted", target=target.key, count=len(items))
        return items

    async def _get(self, url: str) -> str:
        async for attempt in http_retrying(self.attempts, self.backoff):
            with attempt:
                response = await self.client.get(
                    url,
                    headers=self.anti_detection.build_headers(),
                    follow_redirects=True,
                )
                response.raise_for_status()
                return response.text
        raise FetchFailure(self.name, url, "no attempt made")

    def parse_heuristic(self, html: str, page_url: str, max_items: Optional[int] = None) -> List[RawItem]:
        """Assemble items from page-wide title/price/discount/image/link patterns.

        The n-th title is paired with the n-th price, discount, image and
        link found on the page. Only real extracted titles produce items.
        """
        max_items = max_items or self.max_items
        soup = BeautifulSoup(html, "html.parser")

        titles = self._find_titles(soup)
        if not titles:
            return []

        body_text = soup.get_text(" ", strip=True)
        prices = PRICE_RE.findall(body_text)
        discounts = [m.group(0) for pattern in DISCOUNT_RES for m in pattern.finditer(body_text)]
        images = self._find_images(soup, html, page_url)
        links = self._find_links(soup, page_url)

        items = []
        for index, title in enumerate(titles[:max_items]):
            items.append(
                RawItem(
                    title=title,
                    price=prices[index] if index < len(prices) else None,
                    discount_text=clean_text(discounts[index], TEXT_MAX_LENGTH) if index < len(discounts) else None,
                    image_url=images[index] if index < len(images) else None,
                    link=links[index] if index < len(links) else page_url,
                    source_url=page_url,
                )
            )
        return items

    def _find_titles(self, soup: BeautifulSoup) -> List[str]:
        candidates = []
        if soup.title and soup.title.string:
            candidates.append(soup.title.string)
        for heading in soup.find_all(re.compile(r"^h[1-6]$")):
            text = heading.get_text(" ", strip=True)
            if PROMO_KEYWORDS_RE.search(text):
                candidates.append(text)
        for element in soup.find_all(class_=TITLE_CLASS_RE):
            candidates.append(element.get_text(" ", strip=True))

        seen = set()
        titles = []
        for candidate in candidates:
            text = clean_text(candidate, TEXT_MAX_LENGTH)
            if not text or len(text) < 4 or text.lower() in seen:
                continue
            seen.add(text.lower())
            titles.append(text)
        return titles

    def _find_images(self, soup: BeautifulSoup, html: str, page_url: str) -> List[str]:
        images = []
        for img in soup.find_all("img"):
            src = img.get("src") or img.get("data-src")
            if src and not src.startswith("data:"):
                images.append(urljoin(page_url, src))
        images.extend(urljoin(page_url, m) for m in BACKGROUND_IMAGE_RE.findall(html))
        return images

    def _find_links(self, soup: BeautifulSoup, page_url: str) -> List[str]:
        links = []
        for anchor in soup.find_all("a", href=True):
            href = anchor["href"].strip()
            if not href or href.startswith(("javascript:", "#", "mailto:", "tel:")):
                continue
            links.append(urljoin(page_url, href))
        return links
