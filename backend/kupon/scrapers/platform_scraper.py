"""Single-platform scrape run.

Drives one adapter through its endpoints, normalizes what the fetch chain
returns, persists it and keeps the scrape_sessions audit row in step.
"""

import asyncio
import random
from contextlib import AsyncExitStack
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

import httpx
import structlog
from bs4 import BeautifulSoup

from kupon.config import Settings, settings as default_settings
from kupon.core.exceptions import ChainExhausted, ConfigurationError, ScrapeTimeout
from kupon.scrapers.base import CouponRecord, FetchTarget, PlatformAdapter, RawItem
from kupon.scrapers.browser import BrowserSession
from kupon.scrapers.chain import FetchStrategyChain
from kupon.scrapers.metrics import SessionMetrics
from kupon.scrapers.strategies import (
    BrowserFetcher,
    CuratedFallback,
    FetchStrategy,
    RawHttpFetcher,
    SyntheticGenerator,
)
from kupon.scrapers.strategies.browser_fetcher import ERROR_TITLE_MARKERS
from kupon.scrapers.utils import (
    AntiDetectionPolicy,
    FieldNormalizer,
    NormalizationContext,
    SlidingWindowRateLimiter,
)
from kupon.services.persistence import PersistenceGateway

logger = structlog.get_logger(__name__)


class PlatformScraper:
    """Runs one platform's endpoints sequentially through the fetch chain.

    One instance handles one platform. Browser and HTTP client are scoped
    to a single ``scrape()`` call and closed on every exit path.
    """

    def __init__(
        self,
        adapter: PlatformAdapter,
        gateway: PersistenceGateway,
        rate_limiter: SlidingWindowRateLimiter,
        anti_detection: Optional[AntiDetectionPolicy] = None,
        normalizer: Optional[FieldNormalizer] = None,
        strategies: Optional[Sequence[FetchStrategy]] = None,
        settings: Settings = default_settings,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize platform scraper.

        Args:
            adapter: Platform adapter carrying config and hooks
            gateway: Persistence gateway for lookups, upserts and sessions
            rate_limiter: Shared sliding-window limiter, keyed by platform slug
            anti_detection: Header/UA/proxy policy (built from settings if omitted)
            normalizer: Field normalizer (built around ``rng`` if omitted)
            strategies: Fixed strategy list; when omitted the default
                raw_http/browser/curated/synthetic tiers are built per run
            settings: Settings instance
            sleep: Awaitable sleep used between endpoints
            rng: Random source for featured flags and fallback data
            http_transport: Optional httpx transport for the HTTP tiers
        """
        self.adapter = adapter
        self.config = adapter.config
        self.gateway = gateway
        self.rate_limiter = rate_limiter
        self.settings = settings
        self.sleep = sleep
        self.rng = rng or random.Random(settings.RANDOM_SEED)
        self.anti_detection = anti_detection or AntiDetectionPolicy(rng=self.rng, proxies=settings.get_proxy_list())
        self.normalizer = normalizer or FieldNormalizer(rng=self.rng)
        self._strategies = list(strategies) if strategies is not None else None
        self._http_transport = http_transport
        self.logger = logger.bind(platform=self.config.slug)

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    async def _resolve_references(self) -> Tuple[Any, Any]:
        platform = await self.gateway.get_platform_by_slug(self.config.slug)
        if platform is None:
            raise ConfigurationError(f"Platform row missing for {self.config.slug!r}; run seed first")
        if not platform.is_active:
            raise ConfigurationError(f"Platform {self.config.slug!r} is deactivated")

        merchant_id = await self.gateway.get_merchant_id(self.config.slug)
        if merchant_id is None:
            raise ConfigurationError(f"Merchant row missing for {self.config.slug!r}; run seed first")
        return platform.id, merchant_id

    def _validate_targets(self, targets: List[FetchTarget]) -> None:
        if not targets:
            raise ConfigurationError(f"Platform {self.config.slug!r} has no endpoints")
        for target in targets:
            if not target.selectors.is_usable():
                raise ConfigurationError(f"No selectors configured for {target.key}")

    def _http_client(self) -> httpx.AsyncClient:
        client_kwargs: Dict[str, Any] = {
            "timeout": self.settings.HTTP_TIMEOUT_SECONDS,
            "follow_redirects": True,
        }
        if self._http_transport is not None:
            client_kwargs["transport"] = self._http_transport
        else:
            proxy = self.anti_detection.next_proxy()
            if proxy:
                client_kwargs["proxy"] = proxy
        return httpx.AsyncClient(**client_kwargs)

    async def _build_strategies(self, stack: AsyncExitStack) -> List[FetchStrategy]:
        if self._strategies is not None:
            return self._strategies

        s = self.settings
        client = await stack.enter_async_context(self._http_client())
        browser = await stack.enter_async_context(BrowserSession(self.anti_detection, headless=s.BROWSER_HEADLESS))

        return [
            RawHttpFetcher(
                client,
                self.anti_detection,
                max_items=s.HTTP_MAX_ITEMS,
                attempts=s.MAX_RETRIES,
                backoff=s.RETRY_BASE_DELAY_SECONDS / 2,
            ),
            BrowserFetcher(
                browser,
                navigation_timeout=min(s.DEFAULT_TIMEOUT_SECONDS, self.config.timeout_seconds),
                hard_timeout=s.BROWSER_HARD_TIMEOUT_SECONDS,
                attempts=s.MAX_RETRIES,
                base_delay=s.RETRY_BASE_DELAY_SECONDS,
                anti_bot_wait=s.ANTI_BOT_WAIT_SECONDS,
                wait_for_selector_timeout=s.WAIT_FOR_SELECTOR_TIMEOUT_SECONDS,
                scroll_count=s.SCROLL_COUNT,
            ),
            CuratedFallback(
                data_path=s.CURATED_DATA_PATH or None,
                sample_size=s.CURATED_SAMPLE_SIZE,
                rng=self.rng,
            ),
            SyntheticGenerator(count=s.SYNTHETIC_ITEM_COUNT, rng=self.rng),
        ]

    def _build_chain(self, strategies: Sequence[FetchStrategy]) -> FetchStrategyChain:
        return FetchStrategyChain(
            strategies,
            force_mock=self.settings.FORCE_MOCK_DATA,
            force_curated=self.settings.FORCE_CURATED_DATA,
            problematic_targets=self.settings.get_problematic_targets(),
            problematic_strategy=self.settings.PROBLEMATIC_TARGET_STRATEGY,
        )

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def _fetch_all(self, chain: FetchStrategyChain, targets: List[FetchTarget], metrics: SessionMetrics) -> List[RawItem]:
        collected: List[RawItem] = []

        for index, target in enumerate(targets):
            await self.rate_limiter.wait(self.config.slug)
            metrics.record_request()

            try:
                items = await self.adapter.fetch_endpoint(chain, target)
            except ChainExhausted as e:
                metrics.record_error(target.key, e.message)
                self.logger.warning("endpoint_failed", endpoint=target.endpoint, failures=e.failures)
                items = []
            else:
                items = items[: target.max_items]
                metrics.record_success(chain.last_strategy or "unknown", len(items))
                self.logger.info(
                    "endpoint_scraped",
                    endpoint=target.endpoint,
                    count=len(items),
                    strategy=chain.last_strategy,
                )

            for item in items:
                item.platform_slug = self.config.slug
                item.endpoint = target.endpoint
                item.source_url = item.source_url or target.url
                collected.append(item)

            if index < len(targets) - 1:
                await self.sleep(self.settings.DELAY_BETWEEN_REQUESTS_SECONDS)

        return collected

    def _normalize_all(self, items: List[RawItem], context: NormalizationContext, metrics: SessionMetrics) -> List[CouponRecord]:
        records: List[CouponRecord] = []
        for item in items:
            record = self.normalizer.normalize(self.adapter.extract_fields(item), context)
            if record is None:
                metrics.record_reject()
                metrics.record_error(item.endpoint or self.config.slug, f"rejected item: {item.title!r}")
                continue
            records.append(record)
        return self.adapter.post_process(records)

    async def _fetch_and_store(self, targets, platform_id, merchant_id, metrics: SessionMetrics) -> Dict[str, int]:
        async with AsyncExitStack() as stack:
            strategies = await self._build_strategies(stack)
            chain = self._build_chain(strategies)
            items = await self._fetch_all(chain, targets, metrics)

        context = NormalizationContext.from_config(self.config, platform_id, merchant_id)
        records = self._normalize_all(items, context, metrics)
        return await self.gateway.upsert_batch(records)

    async def scrape(self, timeout: Optional[float] = None) -> Dict[str, Any]:
        """Scrape every endpoint of the platform and persist the results.

        Args:
            timeout: Overall time bound in seconds for fetching and saving.
                On expiry the session is marked failed and ScrapeTimeout is
                raised; outside cancellation marks it cancelled instead.

        Returns:
            Dict with platform, session_id, found, saved, created, updated,
            errors, duration_ms and per-strategy success counts

        Raises:
            ConfigurationError: Platform/merchant rows or selectors missing
            ScrapeTimeout: The run exceeded ``timeout``
            Exception: Any unexpected failure, after the session is marked failed
        """
        platform_id, merchant_id = await self._resolve_references()
        targets = self.adapter.build_targets()
        self._validate_targets(targets)

        metrics = SessionMetrics()
        started_at = datetime.now(timezone.utc)
        session_id = await self.gateway.create_session(
            {
                "platform_id": platform_id,
                "status": "running",
                "started_at": started_at,
                "scraper_version": self.settings.VERSION,
                "user_agent": self.anti_detection.random_user_agent(),
            }
        )
        self.logger.info("scrape_started", session_id=str(session_id), endpoints=len(targets))

        try:
            upsert = await asyncio.wait_for(self._fetch_and_store(targets, platform_id, merchant_id, metrics), timeout)
        except asyncio.TimeoutError as e:
            if timeout is None:
                await self._finalize(session_id, "failed", metrics, error=str(e) or type(e).__name__)
                raise
            error = ScrapeTimeout(self.config.slug, timeout)
            await self._finalize(session_id, "failed", metrics, error=error.message)
            self.logger.error("scrape_timed_out", session_id=str(session_id), timeout=timeout)
            raise error
        except asyncio.CancelledError:
            await self._finalize(session_id, "cancelled", metrics, error="cancelled")
            self.logger.warning("scrape_cancelled", session_id=str(session_id))
            raise
        except Exception as e:
            await self._finalize(session_id, "failed", metrics, error=str(e) or type(e).__name__)
            self.logger.error("scrape_failed", session_id=str(session_id), error=str(e), exc_info=True)
            raise

        metrics.items_saved = upsert["saved"]
        metrics.items_updated = upsert["updated"]
        for _ in range(upsert["errors"]):
            metrics.record_error("persistence", "upsert chunk failed")
        await self._finalize(session_id, "completed", metrics)

        result = {
            "platform": self.config.slug,
            "session_id": str(session_id),
            "found": metrics.items_found,
            "saved": upsert["saved"],
            "created": upsert["created"],
            "updated": upsert["updated"],
            "errors": metrics.errors,
            "duration_ms": metrics.elapsed_ms,
            "strategies": dict(metrics.strategies),
        }
        self.logger.info("scrape_completed", **result)
        return result

    async def _finalize(self, session_id, status: str, metrics: SessionMetrics, error: Optional[str] = None) -> None:
        patch: Dict[str, Any] = {
            "status": status,
            "completed_at": datetime.now(timezone.utc),
            "duration_ms": metrics.elapsed_ms,
            "items_found": metrics.items_found,
            "items_saved": metrics.items_saved,
            "items_updated": metrics.items_updated,
            "items_failed": metrics.errors,
            "performance_metrics": metrics.to_dict(),
        }
        if error or metrics.error_log:
            patch["error_details"] = {"error": error, "errors": metrics.error_log}
        await self.gateway.update_session(session_id, patch)

    # ------------------------------------------------------------------
    # Connectivity check
    # ------------------------------------------------------------------

    async def test(self) -> bool:
        """Check that the first endpoint serves a non-error page.

        Plain HTTP GET only; nothing is written to the database.
        """
        targets = self.adapter.build_targets()
        if not targets:
            return False
        url = targets[0].url

        try:
            async with self._http_client() as client:
                response = await client.get(url, headers=self.anti_detection.build_headers())
        except httpx.HTTPError as e:
            self.logger.warning("platform_test_failed", url=url, error=str(e))
            return False

        if response.status_code >= 400:
            self.logger.warning("platform_test_failed", url=url, status=response.status_code)
            return False

        soup = BeautifulSoup(response.text, "html.parser")
        title = soup.title.get_text(strip=True) if soup.title else ""
        ok = bool(title) and not any(marker in title.lower() for marker in ERROR_TITLE_MARKERS)
        self.logger.info("platform_tested", url=url, title=title[:100], ok=ok)
        return ok
