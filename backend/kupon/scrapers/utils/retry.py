"""Retry policies built on tenacity."""

import logging

import httpx
import structlog
from playwright.async_api import Error as PlaywrightError
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_incrementing,
)

logger = structlog.get_logger(__name__)


class NavigationError(Exception):
    """Page loaded but shows an error (HTTP >= 400 or an error title)."""


def is_retryable_http_error(exc: BaseException) -> bool:
    """Transport errors and 5xx responses are retried; 4xx are not."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return isinstance(exc, httpx.TransportError)


def http_retrying(attempts: int = 3, base_delay: float = 1.0) -> AsyncRetrying:
    """Exponential backoff for plain HTTP fetches."""
    return AsyncRetrying(
        stop=stop_after_attempt(max(1, attempts)),
        wait=wait_exponential(multiplier=base_delay, min=0, max=30),
        retry=retry_if_exception(is_retryable_http_error),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


def navigation_retrying(attempts: int = 3, base_delay: float = 2.0) -> AsyncRetrying:
    """Browser navigation retry: waits base, 2*base, 3*base between attempts."""
    return AsyncRetrying(
        stop=stop_after_attempt(max(1, attempts)),
        wait=wait_incrementing(start=base_delay, increment=base_delay),
        retry=retry_if_exception_type((PlaywrightError, NavigationError)),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
