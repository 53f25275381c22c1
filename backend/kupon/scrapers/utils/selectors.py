"""Selector-based extraction over parsed HTML.

``first_match`` is independent of any DOM library; ``extract_items`` binds
it to BeautifulSoup for rendered or fetched markup.
"""

import re
from typing import Callable, List, Optional, Sequence

from bs4 import BeautifulSoup, Tag

from kupon.scrapers.base import RawItem
from kupon.scrapers.platform_config import SelectorSet

_WHITESPACE_RE = re.compile(r"\s+")


def clean_text(text: Optional[str], max_length: Optional[int] = None) -> Optional[str]:
    """Collapse whitespace and optionally truncate; empty strings become None."""
    if text is None:
        return None
    cleaned = _WHITESPACE_RE.sub(" ", text).strip()
    if max_length is not None:
        cleaned = cleaned[:max_length].rstrip()
    return cleaned or None


def first_match(candidates: Sequence[str], query: Callable[[str], Optional[str]]) -> Optional[str]:
    """Return the first non-empty result of ``query`` over candidates in order.

    Args:
        candidates: Selector candidates, highest priority first
        query: Function mapping one selector to extracted text (or None)

    Returns:
        First non-empty stripped value, or None if no candidate matched
    """
    for candidate in candidates:
        value = query(candidate)
        if value is not None and value.strip():
            return value.strip()
    return None


def _text_of(node: Tag, selector: str) -> Optional[str]:
    found = node.select_one(selector)
    if found is None:
        return None
    return clean_text(found.get_text(" ", strip=True))


def _attr_of(node: Tag, selector: str, attrs: Sequence[str]) -> Optional[str]:
    # "a" also matches the container itself when the card is a link
    candidates = [node] if node.name == selector else []
    found = node.select_one(selector)
    if found is not None:
        candidates.append(found)
    for element in candidates:
        for attr in attrs:
            value = element.get(attr)
            if value and not str(value).startswith(("javascript:", "#")):
                return str(value).strip()
    return None


def find_containers(soup: BeautifulSoup, selectors: SelectorSet) -> List[Tag]:
    """Containers from the first container selector that matches anything."""
    for selector in selectors.container:
        nodes = soup.select(selector)
        if nodes:
            return nodes
    return []


def extract_items(
    html: str,
    selectors: SelectorSet,
    page_url: Optional[str] = None,
    max_items: int = 20,
) -> List[RawItem]:
    """Run selector extraction over an HTML document.

    Items without a title are discarded entirely.
    """
    soup = BeautifulSoup(html, "html.parser")
    items: List[RawItem] = []

    for node in find_containers(soup, selectors):
        title = first_match(selectors.title, lambda sel: _text_of(node, sel))
        if not title:
            continue

        items.append(
            RawItem(
                title=title,
                description=first_match(selectors.description, lambda sel: _text_of(node, sel)),
                price=first_match(selectors.price, lambda sel: _text_of(node, sel)),
                original_price=first_match(selectors.original_price, lambda sel: _text_of(node, sel)),
                discount_text=first_match(selectors.discount, lambda sel: _text_of(node, sel)),
                code=first_match(selectors.code, lambda sel: _text_of(node, sel)),
                image_url=first_match(selectors.image, lambda sel: _attr_of(node, sel, ("src", "data-src", "data-original"))),
                link=first_match(selectors.link, lambda sel: _attr_of(node, sel, ("href",))),
                source_url=page_url,
            )
        )
        if len(items) >= max_items:
            break

    return items
