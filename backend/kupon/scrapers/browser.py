"""Scoped Playwright browser session.

One BrowserSession belongs to one PlatformScraper.scrape() call. The
Chromium process is launched lazily on the first page request, shared by
every page of that run, and closed when the session exits.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import structlog
from playwright.async_api import Browser, Page, Playwright, async_playwright

from kupon.scrapers.utils.anti_detection import LAUNCH_ARGS, AntiDetectionPolicy

logger = structlog.get_logger(__name__)


class BrowserSession:
    """Async context manager owning a Playwright browser for one scrape run."""

    def __init__(self, anti_detection: AntiDetectionPolicy, headless: bool = True, block_resources: bool = True):
        self.anti_detection = anti_detection
        self._headless = headless
        self._block_resources = block_resources
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._lock = asyncio.Lock()
        self.pages_opened = 0

    async def __aenter__(self) -> "BrowserSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def is_started(self) -> bool:
        return self._browser is not None

    async def _ensure_browser(self) -> Browser:
        async with self._lock:
            if self._browser is None:
                self._playwright = await async_playwright().start()
                self._browser = await self._playwright.chromium.launch(
                    headless=self._headless,
                    args=LAUNCH_ARGS,
                )
                logger.info("browser_started", headless=self._headless)
            return self._browser

    @asynccontextmanager
    async def page(self) -> AsyncIterator[Page]:
        """Open an anti-detection page in a fresh context.

        The page and its context are closed on every exit path, including
        timeouts and cancellation.
        """
        browser = await self._ensure_browser()
        context = await browser.new_context(**self.anti_detection.context_options())
        try:
            if self._block_resources:
                await context.route(
                    "**/*.{woff,woff2,ttf,eot,mp4,webm}",
                    lambda route: route.abort(),
                )
            page = await context.new_page()
            self.pages_opened += 1
            try:
                await self.anti_detection.apply(page)
                yield page
            finally:
                await page.close()
        finally:
            await context.close()

    async def close(self) -> None:
        """Close the browser and stop Playwright. Safe to call twice."""
        async with self._lock:
            if self._browser is not None:
                try:
                    await self._browser.close()
                finally:
                    self._browser = None
            if self._playwright is not None:
                try:
                    await self._playwright.stop()
                finally:
                    self._playwright = None
                logger.info("browser_stopped", pages_opened=self.pages_opened)
