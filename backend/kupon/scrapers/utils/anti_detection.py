"""Anti-detection policy for HTTP and browser sessions.

Rotates user agents, shapes request headers, masks automation flags and
adds small human-like interactions. All randomness comes from one
injectable ``random.Random``.
"""

import itertools
import random
from typing import Any, Dict, List, Optional

import structlog
from playwright.async_api import Error as PlaywrightError, Page

logger = structlog.get_logger(__name__)


USER_AGENTS: List[str] = [
    # Chrome on Windows
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/138.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/137.0.0.0 Safari/537.36",
    # Chrome on macOS
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/138.0.0.0 Safari/537.36",
    # Firefox
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:140.0) Gecko/20100101 Firefox/140.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:140.0) Gecko/20100101 Firefox/140.0",
    # Safari
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/18.5 Safari/605.1.15",
    # Edge
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/138.0.0.0 Safari/537.36 Edg/138.0.0.0",
    # Chrome on Linux
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/138.0.0.0 Safari/537.36",
]

LAUNCH_ARGS: List[str] = [
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--disable-infobars",
    "--no-sandbox",
    "--no-first-run",
]

# Markup fingerprints of bot-challenge pages
CHALLENGE_SELECTORS: List[str] = [
    ".cf-browser-verification",
    "#challenge-form",
    ".g-recaptcha",
    "#captcha",
    "[data-testid='captcha']",
    ".hcaptcha-box",
]

CHALLENGE_TITLES = ("just a moment", "attention required", "access denied", "verify you are human")

STEALTH_JS = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
Object.defineProperty(navigator, 'languages', { get: () => ['id-ID', 'id', 'en-US', 'en'] });
Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3, 4, 5] });
Object.defineProperty(navigator, 'hardwareConcurrency', { get: () => 8 });
window.chrome = { runtime: {}, loadTimes: function() {}, csi: function() {} };
const originalQuery = window.navigator.permissions.query;
window.navigator.permissions.query = (parameters) =>
  parameters.name === 'notifications'
    ? Promise.resolve({ state: Notification.permission })
    : originalQuery(parameters);
"""


class AntiDetectionPolicy:
    """Fingerprint-reduction settings for one scrape run."""

    def __init__(self, rng: Optional[random.Random] = None, proxies: Optional[List[str]] = None):
        """Initialize policy.

        Args:
            rng: Random source for UA, viewport and interaction jitter
            proxies: Optional proxy URLs, handed out round-robin
        """
        self.rng = rng or random.Random()
        self._proxies = itertools.cycle(proxies) if proxies else None

    def random_user_agent(self) -> str:
        return self.rng.choice(USER_AGENTS)

    def build_headers(self, user_agent: Optional[str] = None) -> Dict[str, str]:
        """Browser-like request headers preferring Indonesian content."""
        return {
            "User-Agent": user_agent or self.random_user_agent(),
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
            "Accept-Language": "id-ID,id;q=0.9,en-US;q=0.8,en;q=0.7",
            "Accept-Encoding": "gzip, deflate",
            "Cache-Control": "no-cache",
            "Pragma": "no-cache",
            "Sec-Fetch-Dest": "document",
            "Sec-Fetch-Mode": "navigate",
            "Sec-Fetch-Site": "none",
            "Sec-Fetch-User": "?1",
            "Upgrade-Insecure-Requests": "1",
        }

    def random_viewport(self) -> Dict[str, int]:
        return {
            "width": 1366 + self.rng.randint(0, 99),
            "height": 768 + self.rng.randint(0, 99),
        }

    def next_proxy(self) -> Optional[str]:
        return next(self._proxies) if self._proxies else None

    def context_options(self, user_agent: Optional[str] = None) -> Dict[str, Any]:
        """Keyword arguments for ``Browser.new_context``."""
        options: Dict[str, Any] = {
            "user_agent": user_agent or self.random_user_agent(),
            "viewport": self.random_viewport(),
            "locale": "id-ID",
            "timezone_id": "Asia/Jakarta",
            "java_script_enabled": True,
            "bypass_csp": True,
        }
        proxy = self.next_proxy()
        if proxy:
            options["proxy"] = {"server": proxy}
        return options

    async def apply(self, page: Page) -> None:
        """Install extra headers and the stealth script on a fresh page."""
        headers = self.build_headers()
        headers.pop("User-Agent")
        await page.set_extra_http_headers(headers)
        await page.add_init_script(STEALTH_JS)

    async def simulate_human(self, page: Page) -> None:
        """A random mouse move and a small scroll. Failures are ignored."""
        try:
            viewport = page.viewport_size or {"width": 1366, "height": 768}
            await page.mouse.move(
                self.rng.randint(0, viewport["width"] - 1),
                self.rng.randint(0, viewport["height"] - 1),
                steps=self.rng.randint(3, 10),
            )
            await page.mouse.wheel(0, self.rng.randint(100, 400))
        except PlaywrightError as e:
            logger.debug("human_simulation_skipped", error=str(e))

    async def detect_challenge(self, page: Page) -> bool:
        """True when the page looks like a bot challenge."""
        for selector in CHALLENGE_SELECTORS:
            if await page.query_selector(selector):
                return True
        title = (await page.title()).lower()
        return any(marker in title for marker in CHALLENGE_TITLES)

    def jitter(self, low: float, high: float) -> float:
        return self.rng.uniform(low, high)
