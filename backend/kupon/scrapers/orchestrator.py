"""Multi-platform scrape cycles.

The orchestrator runs enabled platforms in bounded batches, enforces the
per-platform time limit, expires stale coupons after every cycle and
refuses to start a cycle while another one is in flight.
"""

import asyncio
import random
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

import structlog

from kupon.config import Settings, settings as default_settings
from kupon.core.exceptions import NotFoundError, ScrapeTimeout
from kupon.scrapers.base import PlatformAdapter
from kupon.scrapers.factory import AdapterFactory, get_adapter_factory
from kupon.scrapers.platform_config import PlatformConfig
from kupon.scrapers.platform_scraper import PlatformScraper
from kupon.services.persistence import PersistenceGateway

logger = structlog.get_logger(__name__)

# extra time a timed-out scraper gets to write its failed session row
FINALIZE_GRACE_SECONDS = 5.0


ScraperFactory = Callable[[PlatformAdapter], Any]


class ScrapeOrchestrator:
    """Coordinates scrape cycles across all registered platforms.

    At most ``MAX_CONCURRENT_SCRAPERS`` platform runs are in flight at
    once, and only one cycle runs at a time: a second trigger is
    rejected rather than queued.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        factory: Optional[AdapterFactory] = None,
        settings: Settings = default_settings,
        scraper_factory: Optional[ScraperFactory] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        """Initialize orchestrator.

        Args:
            gateway: Persistence gateway shared by every platform run
            factory: Adapter registry (global factory if omitted)
            settings: Settings instance
            scraper_factory: Builds the per-platform runner from an adapter;
                defaults to PlatformScraper wired to the shared rate limiter
            sleep: Awaitable sleep used between batches
            rng: Random source handed to platform scrapers
        """
        self.gateway = gateway
        self.factory = factory or get_adapter_factory()
        self.settings = settings
        self.sleep = sleep
        self.rng = rng
        self.scraper_factory = scraper_factory or self._default_scraper
        self.logger = logger.bind(service="orchestrator")

        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._in_flight: set = set()
        self.cycles_run = 0
        self.last_cycle: Optional[Dict[str, Any]] = None

    def _default_scraper(self, adapter: PlatformAdapter) -> PlatformScraper:
        return PlatformScraper(
            adapter,
            self.gateway,
            self.factory.rate_limiter,
            anti_detection=self.factory.anti_detection,
            settings=self.settings,
            rng=self.rng,
        )

    @property
    def is_running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Platform selection
    # ------------------------------------------------------------------

    def enabled_configs(self) -> List[PlatformConfig]:
        """Registered platforms switched on in both code and environment, by priority."""
        return [
            config
            for config in self.factory.get_configs()
            if config.enabled and self.settings.is_platform_enabled(config.slug)
        ]

    def _select(self, platforms: Optional[Sequence[str]]) -> List[PlatformConfig]:
        if platforms is None:
            return self.enabled_configs()

        selected = []
        for slug in platforms:
            config = self.factory.get_config(slug)
            if config is None:
                self.logger.warning("unknown_platform_skipped", platform=slug)
                continue
            selected.append(config)
        return sorted(selected, key=lambda c: (c.priority, c.slug))

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    async def run_cycle(self, platforms: Optional[Sequence[str]] = None) -> Dict[str, Dict[str, Any]]:
        """Run one scrape cycle.

        Args:
            platforms: Explicit platform slugs; enable flags are ignored when
                given. Defaults to every enabled platform.

        Returns:
            Per-platform result dicts keyed by slug, or {} if a cycle was
            already running
        """
        if self._running:
            self.logger.warning("cycle_already_running")
            return {}

        self._running = True
        try:
            return await self._run_cycle(self._select(platforms))
        finally:
            self._running = False

    async def _run_cycle(self, configs: List[PlatformConfig]) -> Dict[str, Dict[str, Any]]:
        started = time.monotonic()
        started_at = datetime.now(timezone.utc)
        batch_size = max(1, self.settings.MAX_CONCURRENT_SCRAPERS)
        batches = [configs[i:i + batch_size] for i in range(0, len(configs), batch_size)]

        self.logger.info(
            "cycle_started",
            platforms=[c.slug for c in configs],
            batches=len(batches),
            max_concurrent=batch_size,
        )

        results: Dict[str, Dict[str, Any]] = {}
        for index, batch in enumerate(batches):
            batch_results = await asyncio.gather(*(self._run_one(config) for config in batch))
            for config, result in zip(batch, batch_results):
                results[config.slug] = result

            if index < len(batches) - 1:
                await self.sleep(self.settings.DELAY_BETWEEN_BATCHES_SECONDS)

        try:
            expired = await self.gateway.expire_stale()
        except Exception as e:
            self.logger.error("expire_stale_failed", error=str(e), exc_info=True)
            expired = 0

        self.cycles_run += 1
        self.last_cycle = self._summarize(results, expired, started_at, started)
        self.logger.info("cycle_completed", **{k: v for k, v in self.last_cycle.items() if k != "results"})
        return results

    async def _run_one(self, config: PlatformConfig) -> Dict[str, Any]:
        slug = config.slug
        timeout = self.settings.PLATFORM_TIMEOUT_SECONDS
        adapter = self.factory.create_adapter(slug)
        if adapter is None:
            return {"platform": slug, "error": f"No adapter registered for {slug}"}

        scraper = self.scraper_factory(adapter)
        self._in_flight.add(slug)
        try:
            return await asyncio.wait_for(scraper.scrape(timeout=timeout), timeout=timeout + FINALIZE_GRACE_SECONDS)
        except ScrapeTimeout as e:
            self.logger.error("platform_timed_out", platform=slug, timeout=timeout)
            return {"platform": slug, "error": e.message}
        except asyncio.TimeoutError:
            error = ScrapeTimeout(slug, timeout)
            self.logger.error("platform_timed_out", platform=slug, timeout=timeout, stage="finalize")
            return {"platform": slug, "error": error.message}
        except Exception as e:
            self.logger.error("platform_failed", platform=slug, error=str(e))
            return {"platform": slug, "error": str(e) or type(e).__name__}
        finally:
            self._in_flight.discard(slug)

    @staticmethod
    def _summarize(results: Dict[str, Dict[str, Any]], expired: int, started_at: datetime, started: float) -> Dict[str, Any]:
        failed = [slug for slug, result in results.items() if "error" in result]
        return {
            "started_at": started_at.isoformat(),
            "finished_at": datetime.now(timezone.utc).isoformat(),
            "duration_ms": int((time.monotonic() - started) * 1000),
            "platforms": len(results),
            "succeeded": len(results) - len(failed),
            "failed": failed,
            "found": sum(r.get("found", 0) for r in results.values()),
            "saved": sum(r.get("saved", 0) for r in results.values()),
            "errors": sum(r.get("errors", 0) for r in results.values()) + len(failed),
            "expired": expired,
            "results": results,
        }

    def trigger_in_background(self, platforms: Optional[Sequence[str]] = None) -> bool:
        """Start a cycle as a background task.

        Returns:
            False if a cycle is already running or pending, True otherwise
        """
        if self._running or (self._task is not None and not self._task.done()):
            self.logger.warning("cycle_already_running", source="trigger")
            return False
        self._task = asyncio.create_task(self.run_cycle(platforms))
        return True

    # ------------------------------------------------------------------
    # Single-platform operations
    # ------------------------------------------------------------------

    async def run_platform(self, slug: str) -> Dict[str, Any]:
        """Run one platform outside of a cycle, ignoring its enable flags.

        Raises:
            NotFoundError: If no adapter is registered for the slug
        """
        config = self.factory.get_config(slug)
        if config is None:
            raise NotFoundError("Platform", slug)
        return await self._run_one(config)

    async def cleanup(self) -> int:
        """Expire active coupons whose validity has passed."""
        expired = await self.gateway.expire_stale()
        self.logger.info("cleanup_completed", expired=expired)
        return expired

    async def test_platforms(self) -> Dict[str, bool]:
        """Connectivity check for every enabled platform, one at a time."""
        results: Dict[str, bool] = {}
        for config in self.enabled_configs():
            adapter = self.factory.create_adapter(config.slug)
            try:
                results[config.slug] = bool(await self.scraper_factory(adapter).test())
            except Exception as e:
                self.logger.warning("platform_test_error", platform=config.slug, error=str(e))
                results[config.slug] = False
        self.logger.info("platforms_tested", passed=sum(results.values()), total=len(results))
        return results

    # ------------------------------------------------------------------
    # Status / lifecycle
    # ------------------------------------------------------------------

    def get_status(self) -> Dict[str, Any]:
        enabled = {c.slug for c in self.enabled_configs()}
        return {
            "is_running": self._running,
            "in_flight": sorted(self._in_flight),
            "cycles_run": self.cycles_run,
            "max_concurrent": self.settings.MAX_CONCURRENT_SCRAPERS,
            "platforms": [
                {
                    "slug": config.slug,
                    "name": config.name,
                    "priority": config.priority,
                    "enabled": config.slug in enabled,
                    "rate_limit": self.factory.rate_limiter.get_status(config.slug),
                }
                for config in self.factory.get_configs()
            ],
            "last_cycle": self.last_cycle,
        }

    async def shutdown(self) -> None:
        """Cancel a pending background cycle and wait for it to unwind."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.logger.info("orchestrator_shutdown")
