"""Browser-driven fetch strategy using Playwright."""

import asyncio
from typing import Any, Awaitable, Callable, List

from playwright.async_api import Error as PlaywrightError, Page, TimeoutError as PlaywrightTimeoutError

from kupon.core.exceptions import FetchFailure
from kupon.scrapers.base import FetchTarget, RawItem
from kupon.scrapers.browser import BrowserSession
from kupon.scrapers.strategies.base import FetchStrategy
from kupon.scrapers.utils.retry import NavigationError, navigation_retrying
from kupon.scrapers.utils.selectors import extract_items

ERROR_TITLE_MARKERS = ("error", "404", "not found")


class BrowserFetcher(FetchStrategy):
    """Navigate with retry, clear bot checks, scroll, then extract by selector.

    ``hard_timeout`` bounds the whole attempt and is separate from the
    per-navigation timeout.
    """

    name = "browser"

    def __init__(
        self,
        session: BrowserSession,
        navigation_timeout: float = 30.0,
        hard_timeout: float = 90.0,
        attempts: int = 3,
        base_delay: float = 2.0,
        anti_bot_wait: float = 5.0,
        wait_for_selector_timeout: float = 10.0,
        scroll_count: int = 3,
        scroll_pause: float = 1.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        super().__init__()
        self.session = session
        self.navigation_timeout = navigation_timeout
        self.hard_timeout = hard_timeout
        self.attempts = attempts
        self.base_delay = base_delay
        self.anti_bot_wait = anti_bot_wait
        self.wait_for_selector_timeout = wait_for_selector_timeout
        self.scroll_count = scroll_count
        self.scroll_pause = scroll_pause
        self.sleep = sleep

    async def fetch(self, target: FetchTarget) -> List[RawItem]:
        try:
            async with self.session.page() as page:
                await self._navigate(page, target.url)
                await self._handle_challenge(page, target)
                await self._wait_for_content(page, target)
                await self._scroll(page)
                await self.session.anti_detection.simulate_human(page)
                html = await page.content()
        except (PlaywrightError, NavigationError) as e:
            raise FetchFailure(self.name, target.key, str(e)) from e

        items = extract_items(html, target.selectors, target.url, target.max_items)
        self.logger.info("browser_items_extracted", target=target.key, count=len(items))
        return items

    async def _navigate(self, page: Page, url: str) -> None:
        async for attempt in navigation_retrying(self.attempts, self.base_delay):
            with attempt:
                response = await page.goto(
                    url,
                    wait_until="domcontentloaded",
                    timeout=self.navigation_timeout * 1000,
                )
                if response is not None and response.status >= 400:
                    raise NavigationError(f"HTTP {response.status} for {url}")
                title = (await page.title()).lower()
                if any(marker in title for marker in ERROR_TITLE_MARKERS):
                    raise NavigationError(f"error page title '{title}' for {url}")

    async def _handle_challenge(self, page: Page, target: FetchTarget) -> None:
        """Wait out a bot challenge: fixed waits, re-checking after each."""
        anti_detection = self.session.anti_detection
        for check in range(2):
            if not await anti_detection.detect_challenge(page):
                return
            self.logger.warning("bot_challenge_detected", target=target.key, check=check + 1)
            await self.sleep(self.anti_bot_wait)
        if await anti_detection.detect_challenge(page):
            raise FetchFailure(self.name, target.key, "bot challenge not cleared")

    async def _wait_for_content(self, page: Page, target: FetchTarget) -> None:
        selector = target.selectors.wait_selector()
        if not selector:
            return
        try:
            await page.wait_for_selector(selector, timeout=self.wait_for_selector_timeout * 1000)
        except PlaywrightTimeoutError:
            # extraction proceeds on whatever has rendered
            self.logger.info("content_wait_timeout", target=target.key, selector=selector)

    async def _scroll(self, page: Page) -> None:
        for _ in range(self.scroll_count):
            await page.evaluate("window.scrollBy(0, window.innerHeight)")
            await self.sleep(self.scroll_pause)
        await page.evaluate("window.scrollTo(0, 0)")
