"""Tests for the scrape orchestrator and scheduler."""

import asyncio
from typing import Dict, List, Optional

import pytest

from kupon.core.exceptions import NotFoundError, ScrapeTimeout
from kupon.scrapers.base import PlatformAdapter
from kupon.scrapers.factory import AdapterFactory
from kupon.scrapers.orchestrator import ScrapeOrchestrator
from kupon.scrapers.scheduler import CLEANUP_JOB_ID, CYCLE_JOB_ID, ScrapeScheduler

from tests.conftest import FakeGateway, make_config


class ConcurrencyProbe:
    """Shared bookkeeping for fake scrapers."""

    def __init__(self):
        self.active = 0
        self.peak = 0
        self.started: List[str] = []
        self.events: List[tuple] = []


class FakeScraper:
    """Stands in for PlatformScraper; behaviour is chosen per slug."""

    def __init__(self, adapter: PlatformAdapter, probe: ConcurrencyProbe, delays: Dict[str, float], failures: Dict[str, Exception]):
        self.slug = adapter.slug
        self.probe = probe
        self.delay = delays.get(self.slug, 0.01)
        self.failure = failures.get(self.slug)

    async def scrape(self, timeout=None):
        self.probe.active += 1
        self.probe.peak = max(self.probe.peak, self.probe.active)
        self.probe.started.append(self.slug)
        self.probe.events.append(("start", self.slug))
        try:
            try:
                await asyncio.wait_for(asyncio.sleep(self.delay), timeout)
            except asyncio.TimeoutError:
                raise ScrapeTimeout(self.slug, timeout)
            if self.failure is not None:
                raise self.failure
            return {"platform": self.slug, "found": 2, "saved": 2, "errors": 0}
        finally:
            self.probe.active -= 1
            self.probe.events.append(("end", self.slug))

    async def test(self):
        if self.failure is not None:
            raise self.failure
        return self.slug != "down"


def _factory(*slugs: str) -> AdapterFactory:
    factory = AdapterFactory()
    for priority, slug in enumerate(slugs, 1):
        config = make_config(slug, priority=priority)
        factory.register_adapter(slug, type(f"{slug.title()}Adapter", (PlatformAdapter,), {"config": config}))
    return factory


def _orchestrator(
    settings,
    slugs=("alpha", "beta", "gamma"),
    delays: Optional[Dict[str, float]] = None,
    failures: Optional[Dict[str, Exception]] = None,
    gateway: Optional[FakeGateway] = None,
):
    probe = ConcurrencyProbe()
    orchestrator = ScrapeOrchestrator(
        gateway or FakeGateway(platforms=slugs),
        factory=_factory(*slugs),
        settings=settings,
        scraper_factory=lambda adapter: FakeScraper(adapter, probe, delays or {}, failures or {}),
    )
    return orchestrator, probe


# ============================================================================
# CYCLES
# ============================================================================

class TestRunCycle:
    """Tests for batching, isolation and bookkeeping of a cycle."""

    async def test_runs_all_enabled_platforms(self, test_settings):
        orchestrator, probe = _orchestrator(test_settings)

        results = await orchestrator.run_cycle()

        assert set(results) == {"alpha", "beta", "gamma"}
        assert all(r["saved"] == 2 for r in results.values())
        assert orchestrator.gateway.expire_calls == 1
        assert orchestrator.cycles_run == 1
        assert orchestrator.last_cycle["succeeded"] == 3
        assert orchestrator.last_cycle["found"] == 6

    async def test_concurrency_is_bounded(self, test_settings):
        """With a limit of 2, the third platform starts only after a slot frees up."""
        settings = test_settings.model_copy(update={"MAX_CONCURRENT_SCRAPERS": 2})
        orchestrator, probe = _orchestrator(settings, delays={"alpha": 0.05, "beta": 0.05, "gamma": 0.01})

        await orchestrator.run_cycle()

        events = probe.events
        first_end = min(events.index(("end", "alpha")), events.index(("end", "beta")))
        assert probe.peak == 2
        assert probe.started[:2] == ["alpha", "beta"]
        assert events.index(("start", "gamma")) > first_end

    async def test_batches_follow_priority(self, test_settings):
        settings = test_settings.model_copy(update={"MAX_CONCURRENT_SCRAPERS": 1})
        orchestrator, probe = _orchestrator(settings, slugs=("gamma", "alpha", "beta"))

        await orchestrator.run_cycle()

        # priority follows registration order in _factory
        assert probe.started == ["gamma", "alpha", "beta"]

    async def test_batch_delay(self, test_settings):
        settings = test_settings.model_copy(update={"MAX_CONCURRENT_SCRAPERS": 1, "DELAY_BETWEEN_BATCHES_SECONDS": 3.0})
        orchestrator, _ = _orchestrator(settings)
        delays = []

        async def sleep(seconds):
            delays.append(seconds)

        orchestrator.sleep = sleep
        await orchestrator.run_cycle()

        assert delays == [3.0, 3.0]

    async def test_failure_is_isolated(self, test_settings):
        orchestrator, _ = _orchestrator(test_settings, failures={"beta": RuntimeError("layout changed")})

        results = await orchestrator.run_cycle()

        assert results["beta"] == {"platform": "beta", "error": "layout changed"}
        assert results["alpha"]["saved"] == 2
        assert results["gamma"]["saved"] == 2
        assert orchestrator.last_cycle["failed"] == ["beta"]

    async def test_platform_timeout(self, test_settings):
        settings = test_settings.model_copy(update={"PLATFORM_TIMEOUT_SECONDS": 0.05})
        orchestrator, probe = _orchestrator(settings, delays={"beta": 5.0})

        results = await orchestrator.run_cycle()

        assert "timed out" in results["beta"]["error"]
        assert results["alpha"]["saved"] == 2
        assert probe.active == 0

    async def test_second_cycle_is_rejected_while_running(self, test_settings):
        """Overlapping triggers never run two cycles at once."""
        orchestrator, probe = _orchestrator(test_settings, delays={"alpha": 0.1, "beta": 0.1, "gamma": 0.1})

        first = asyncio.create_task(orchestrator.run_cycle())
        await asyncio.sleep(0.01)
        second = await orchestrator.run_cycle()
        first_results = await first

        assert second == {}
        assert len(first_results) == 3
        assert orchestrator.cycles_run == 1
        assert probe.started.count("alpha") == 1

    async def test_expire_failure_does_not_fail_cycle(self, test_settings):
        gateway = FakeGateway(platforms=("alpha", "beta", "gamma"))

        async def broken_expire(now=None):
            raise RuntimeError("db locked")

        gateway.expire_stale = broken_expire
        orchestrator, _ = _orchestrator(test_settings, gateway=gateway)

        results = await orchestrator.run_cycle()

        assert len(results) == 3
        assert orchestrator.last_cycle["expired"] == 0

    async def test_disabled_platforms_are_skipped(self, test_settings):
        """Environment switches and config flags both exclude a platform."""
        settings = test_settings.model_copy(update={"TOKOPEDIA_ENABLED": False})
        orchestrator, _ = _orchestrator(settings, slugs=("shopee", "tokopedia", "lazada"))
        orchestrator.factory.register_adapter(
            "grab", type("GrabAdapter", (PlatformAdapter,), {"config": make_config("grab", priority=9, enabled=False)})
        )

        results = await orchestrator.run_cycle()

        assert list(results) == ["shopee", "lazada"]

    async def test_explicit_platforms_ignore_enable_flags(self, test_settings):
        settings = test_settings.model_copy(update={"SHOPEE_ENABLED": False, "TOKOPEDIA_ENABLED": False})
        orchestrator, _ = _orchestrator(settings, slugs=("shopee", "tokopedia"))

        results = await orchestrator.run_cycle(["tokopedia", "unknown"])

        assert list(results) == ["tokopedia"]


# ============================================================================
# SINGLE PLATFORM / BACKGROUND
# ============================================================================

class TestOrchestratorOperations:
    """Tests for run_platform, triggers, cleanup and status."""

    async def test_run_platform(self, test_settings):
        orchestrator, _ = _orchestrator(test_settings)
        result = await orchestrator.run_platform("gamma")
        assert result["platform"] == "gamma"

    async def test_run_unknown_platform(self, test_settings):
        orchestrator, _ = _orchestrator(test_settings)
        with pytest.raises(NotFoundError):
            await orchestrator.run_platform("nope")

    async def test_trigger_in_background(self, test_settings):
        orchestrator, probe = _orchestrator(test_settings, delays={"alpha": 0.05})

        assert orchestrator.trigger_in_background() is True
        assert orchestrator.trigger_in_background() is False

        await orchestrator._task
        assert orchestrator.cycles_run == 1
        assert orchestrator.trigger_in_background(["alpha"]) is True
        await orchestrator.shutdown()

    async def test_shutdown_cancels_pending_cycle(self, test_settings):
        orchestrator, probe = _orchestrator(test_settings, delays={"alpha": 5.0, "beta": 5.0, "gamma": 5.0})
        orchestrator.trigger_in_background()
        await asyncio.sleep(0.01)

        await orchestrator.shutdown()

        assert orchestrator.is_running is False
        assert probe.active == 0

    async def test_cleanup(self, test_settings):
        orchestrator, _ = _orchestrator(test_settings)
        assert await orchestrator.cleanup() == 0
        assert orchestrator.gateway.expire_calls == 1

    async def test_test_platforms(self, test_settings):
        orchestrator, _ = _orchestrator(
            test_settings, slugs=("alpha", "down", "broken"), failures={"broken": RuntimeError("boom")}
        )

        results = await orchestrator.test_platforms()

        assert results == {"alpha": True, "down": False, "broken": False}

    async def test_get_status(self, test_settings):
        orchestrator, _ = _orchestrator(test_settings)
        await orchestrator.run_cycle()

        status = orchestrator.get_status()

        assert status["is_running"] is False
        assert status["in_flight"] == []
        assert status["cycles_run"] == 1
        assert [p["slug"] for p in status["platforms"]] == ["alpha", "beta", "gamma"]
        assert status["platforms"][0]["rate_limit"]["limit"] == 100
        assert status["last_cycle"]["platforms"] == 3


# ============================================================================
# SCHEDULER
# ============================================================================

class TestScrapeScheduler:
    """Tests for APScheduler job registration and wrappers."""

    async def test_start_registers_jobs(self, test_settings):
        orchestrator, _ = _orchestrator(test_settings)
        scheduler = ScrapeScheduler(orchestrator, settings=test_settings)

        scheduler.start()
        try:
            jobs = scheduler.get_jobs_status()
            assert set(jobs) == {CYCLE_JOB_ID, CLEANUP_JOB_ID}
            assert jobs[CYCLE_JOB_ID]["next_run"] is not None
            assert scheduler.is_running() is True
        finally:
            scheduler.stop()

    async def test_cycle_wrapper_swallows_errors(self, test_settings):
        orchestrator, _ = _orchestrator(test_settings)

        async def broken_cycle(platforms=None):
            raise RuntimeError("boom")

        orchestrator.run_cycle = broken_cycle
        scheduler = ScrapeScheduler(orchestrator, settings=test_settings)

        await scheduler._run_cycle_wrapper()

    async def test_cleanup_wrapper_runs_expiry(self, test_settings):
        orchestrator, _ = _orchestrator(test_settings)
        scheduler = ScrapeScheduler(orchestrator, settings=test_settings)

        await scheduler._run_cleanup_wrapper()

        assert orchestrator.gateway.expire_calls == 1
