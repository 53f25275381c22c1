"""Scraper utilities for rate limiting, anti-detection and field normalization."""

from .rate_limiter import SlidingWindowRateLimiter
from .anti_detection import (
    AntiDetectionPolicy,
    CHALLENGE_SELECTORS,
    LAUNCH_ARGS,
    STEALTH_JS,
    USER_AGENTS,
)
from .normalizer import (
    FieldNormalizer,
    NormalizationContext,
    clean_title,
    parse_discount,
    parse_price,
)
from .selectors import clean_text, extract_items, first_match
from .retry import NavigationError, http_retrying, navigation_retrying


__all__ = [
    # Rate limiting
    "SlidingWindowRateLimiter",
    # Anti-detection
    "AntiDetectionPolicy",
    "CHALLENGE_SELECTORS",
    "LAUNCH_ARGS",
    "STEALTH_JS",
    "USER_AGENTS",
    # Normalization
    "FieldNormalizer",
    "NormalizationContext",
    "clean_title",
    "parse_discount",
    "parse_price",
    # Extraction
    "clean_text",
    "extract_items",
    "first_match",
    # Retry
    "NavigationError",
    "http_retrying",
    "navigation_retrying",
]
