"""Tests for the REST API over an in-memory database."""

import asyncio
from decimal import Decimal

import httpx
import pytest_asyncio

from kupon.main import create_app
from kupon.scrapers.factory import AdapterFactory
from kupon.scrapers.orchestrator import ScrapeOrchestrator

from tests.conftest import DemoAdapter
from tests.test_persistence import _record, _refs


class GatedScraper:
    """Fake platform scraper that blocks until the test releases it."""

    def __init__(self, adapter, gate: asyncio.Event):
        self.slug = adapter.slug
        self.gate = gate

    async def scrape(self, timeout=None):
        await self.gate.wait()
        return {"platform": self.slug, "found": 0, "saved": 0, "errors": 0}

    async def test(self):
        return True


def _build_orchestrator(gateway, settings, gate: asyncio.Event) -> ScrapeOrchestrator:
    factory = AdapterFactory()
    factory.register_adapter("demo", DemoAdapter)
    return ScrapeOrchestrator(
        gateway,
        factory=factory,
        settings=settings,
        scraper_factory=lambda adapter: GatedScraper(adapter, gate),
    )


@pytest_asyncio.fixture
async def gate():
    event = asyncio.Event()
    yield event
    event.set()


@pytest_asyncio.fixture
async def populated(gateway):
    platform_id, merchant_id = await _refs(gateway)
    await gateway.upsert_batch(
        [
            _record(platform_id, merchant_id, title="A", coupon_code="AAA", is_featured=True),
            _record(platform_id, merchant_id, title="B", discount_type="fixed", discount_value=Decimal("150000")),
            _record(platform_id, merchant_id, title="C", coupon_code="CCC", discount_type="shipping"),
            _record(platform_id, merchant_id, title="D", status="expired", coupon_code="DDD"),
        ]
    )
    return gateway


@pytest_asyncio.fixture
async def orchestrator(populated, test_settings, gate):
    orchestrator = _build_orchestrator(populated, test_settings, gate)
    yield orchestrator
    gate.set()
    await orchestrator.shutdown()


@pytest_asyncio.fixture
async def client(populated, orchestrator, test_settings):
    app = create_app(gateway=populated, orchestrator=orchestrator, settings=test_settings)
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        yield client


# ============================================================================
# COUPONS
# ============================================================================

class TestCouponEndpoints:
    """Tests for /api/v1/coupons."""

    async def test_list_defaults_to_active(self, client):
        response = await client.get("/api/v1/coupons")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert {c["title"] for c in body["data"]} == {"A", "B", "C"}
        assert body["pagination"]["total"] == 3
        assert body["pagination"]["hasMore"] is False
        assert body["data"][0]["platform"]["slug"] == "demo"

    async def test_pagination(self, client):
        response = await client.get("/api/v1/coupons", params={"status": "all", "sort": "title", "order": "asc", "limit": 2})

        body = response.json()
        assert [c["title"] for c in body["data"]] == ["A", "B"]
        assert body["pagination"] == {"total": 4, "limit": 2, "offset": 0, "hasMore": True}

    async def test_filters(self, client):
        response = await client.get("/api/v1/coupons", params={"discount_type": "fixed"})
        assert [c["title"] for c in response.json()["data"]] == ["B"]

        response = await client.get("/api/v1/coupons", params={"featured": "true"})
        assert [c["title"] for c in response.json()["data"]] == ["A"]

        response = await client.get("/api/v1/coupons", params={"platform": "other"})
        assert response.json()["data"] == []

    async def test_invalid_limit(self, client):
        response = await client.get("/api/v1/coupons", params={"limit": 500})

        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "validation_error"
        assert "limit" in body["message"]

    async def test_get_by_code(self, client):
        response = await client.get("/api/v1/coupons/code/aaa")

        assert response.status_code == 200
        assert response.json()["data"]["coupon_code"] == "AAA"

    async def test_unknown_code(self, client):
        response = await client.get("/api/v1/coupons/code/NOPE")

        assert response.status_code == 404
        body = response.json()
        assert body["error"] == "not_found"
        assert "NOPE" in body["message"]


# ============================================================================
# HEALTH / STATUS
# ============================================================================

class TestServiceEndpoints:
    """Tests for health, status and the root endpoint."""

    async def test_health(self, client):
        response = await client.get("/api/v1/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["database"] == "ok"
        assert body["details"]["environment"] == "test"

    async def test_status(self, client):
        response = await client.get("/api/v1/status")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["scheduler"] == {"running": False, "jobs": {}}
        assert data["orchestrator"]["is_running"] is False
        assert [p["platform"] for p in data["platforms"]] == ["demo"]
        assert data["environment"] == "test"

    async def test_root(self, client):
        response = await client.get("/")

        assert response.status_code == 200
        assert response.json()["health"] == "/api/v1/health"


# ============================================================================
# SCRAPE TRIGGER
# ============================================================================

class TestTriggerEndpoint:
    """Tests for POST /api/v1/scrape/trigger."""

    async def test_trigger_all(self, client, orchestrator):
        response = await client.post("/api/v1/scrape/trigger")

        assert response.status_code == 200
        assert response.json()["data"] == {"accepted": True, "platforms": ["demo"]}

        await asyncio.sleep(0.01)
        assert orchestrator.is_running is True

    async def test_trigger_while_running_is_not_queued(self, client, orchestrator, gate):
        await client.post("/api/v1/scrape/trigger")

        response = await client.post("/api/v1/scrape/trigger", json={"platform": "demo"})

        assert response.status_code == 200
        assert response.json()["data"]["accepted"] is False

        gate.set()
        await orchestrator._task
        assert orchestrator.cycles_run == 1

    async def test_trigger_unknown_platform(self, client):
        response = await client.post("/api/v1/scrape/trigger", json={"platform": "nope"})

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"


class TestTriggerAuth:
    """Tests for the bearer token check on the trigger endpoint."""

    @pytest_asyncio.fixture
    async def secured(self, populated, test_settings, gate):
        settings = test_settings.model_copy(update={"SCRAPER_API_KEY": "s3cret"})
        orchestrator = _build_orchestrator(populated, settings, gate)
        app = create_app(gateway=populated, orchestrator=orchestrator, settings=settings)
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
            yield client
        gate.set()
        await orchestrator.shutdown()

    async def test_missing_token(self, secured):
        response = await secured.post("/api/v1/scrape/trigger")

        assert response.status_code == 401
        assert response.json()["error"] == "unauthorized"
        assert response.headers["www-authenticate"] == "Bearer"

    async def test_wrong_token(self, secured):
        response = await secured.post("/api/v1/scrape/trigger", headers={"Authorization": "Bearer wrong"})
        assert response.status_code == 401

    async def test_valid_token(self, secured):
        response = await secured.post("/api/v1/scrape/trigger", headers={"Authorization": "Bearer s3cret"})

        assert response.status_code == 200
        assert response.json()["data"]["accepted"] is True

    async def test_read_endpoints_stay_open(self, secured):
        response = await secured.get("/api/v1/coupons")
        assert response.status_code == 200
