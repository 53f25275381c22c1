"""Fetch strategies, cheapest first: raw HTTP, browser, curated, synthetic."""

from .base import FetchStrategy
from .http_fetcher import RawHttpFetcher
from .browser_fetcher import BrowserFetcher
from .curated import CuratedFallback
from .synthetic import SyntheticGenerator

__all__ = [
    "FetchStrategy",
    "RawHttpFetcher",
    "BrowserFetcher",
    "CuratedFallback",
    "SyntheticGenerator",
]
