"""Pytest configuration and shared fixtures."""

import random
import uuid
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from kupon.config import Settings
from kupon.db.seed import seed_platforms
from kupon.models import Base
from kupon.scrapers.base import CouponRecord, FetchTarget, PlatformAdapter, RawItem
from kupon.scrapers.platform_config import PlatformConfig, SelectorSet
from kupon.scrapers.strategies import FetchStrategy
from kupon.services.persistence import CouponFilters, PersistenceGateway, SQLAlchemyPersistenceGateway


# ============================================================================
# DEMO PLATFORM
# ============================================================================

DEMO_CONFIG = PlatformConfig(
    name="Demo",
    slug="demo",
    base_url="http://demo.test",
    endpoints={"deals": "/deals"},
    selectors={
        "deals": SelectorSet(
            container=(".deal",),
            title=(".title",),
            description=(".desc",),
            price=(".price",),
            discount=(".discount",),
            code=(".code",),
            link=("a",),
        ),
    },
    max_items=10,
    priority=1,
    rate_limit_requests=100,
    valid_days=7,
    featured_rate=0.0,
    promo_phrase="Promo demo!",
)


class DemoAdapter(PlatformAdapter):
    config = DEMO_CONFIG


DEMO_HTML = """
<html><head><title>Demo Deals</title></head><body>
  <div class="deal">
    <a href="/deal/1"><span class="title">50% OFF Widget</span></a>
    <span class="discount">50%</span>
    <span class="code">WIDGET50</span>
  </div>
  <div class="deal">
    <a href="/deal/2"><span class="title">Potongan Gadget</span></a>
    <span class="discount">Rp 150.000</span>
  </div>
</body></html>
"""


def make_config(slug: str, priority: int = 1, **overrides) -> PlatformConfig:
    """A one-endpoint platform config with usable selectors."""
    values = dict(
        name=slug.title(),
        slug=slug,
        base_url=f"http://{slug}.test",
        endpoints={"deals": "/deals"},
        selectors={"deals": SelectorSet(container=(".deal",), title=(".title",))},
        max_items=10,
        priority=priority,
        rate_limit_requests=100,
    )
    values.update(overrides)
    return PlatformConfig(**values)


# ============================================================================
# STUBS
# ============================================================================

class StubStrategy(FetchStrategy):
    """Returns fixed items, or raises the given exception."""

    def __init__(self, name: str, items: Optional[List[Dict[str, Any]]] = None, error: Optional[Exception] = None):
        self.name = name
        super().__init__()
        self._items = items or []
        self._error = error
        self.calls: List[str] = []

    async def fetch(self, target: FetchTarget) -> List[RawItem]:
        self.calls.append(target.key)
        if self._error is not None:
            raise self._error
        return [RawItem(**item) for item in self._items]


class FakeGateway(PersistenceGateway):
    """In-memory persistence gateway keyed on the coupon natural key."""

    def __init__(self, platforms: Sequence[str] = ("demo",)):
        self.platforms = {
            slug: type("PlatformRow", (), {"id": uuid.uuid4(), "slug": slug, "is_active": True})()
            for slug in platforms
        }
        self.merchants = {slug: uuid.uuid4() for slug in platforms}
        self.coupons: Dict[Tuple, CouponRecord] = {}
        self.sessions: Dict[uuid.UUID, Dict[str, Any]] = {}
        self.expire_calls = 0
        self.fail_upserts = False

    async def get_platform_by_slug(self, slug: str):
        return self.platforms.get(slug)

    async def get_merchant_id(self, slug: str) -> Optional[uuid.UUID]:
        return self.merchants.get(slug)

    async def upsert_coupon(self, record: CouponRecord) -> str:
        outcome = "updated" if record.natural_key in self.coupons else "created"
        self.coupons[record.natural_key] = record
        return outcome

    async def upsert_batch(self, records: Sequence[CouponRecord]) -> Dict[str, int]:
        if self.fail_upserts:
            return {"saved": 0, "created": 0, "updated": 0, "errors": len(records)}
        stats = {"saved": 0, "created": 0, "updated": 0, "errors": 0}
        for record in records:
            stats[await self.upsert_coupon(record)] += 1
            stats["saved"] += 1
        return stats

    async def expire_stale(self, now=None) -> int:
        self.expire_calls += 1
        return 0

    async def create_session(self, data: Dict[str, Any]) -> uuid.UUID:
        session_id = uuid.uuid4()
        self.sessions[session_id] = dict(data)
        return session_id

    async def update_session(self, session_id: uuid.UUID, patch: Dict[str, Any]) -> None:
        self.sessions[session_id].update(patch)

    async def query_coupons(self, filters: CouponFilters):
        rows = list(self.coupons.values())
        return rows[filters.offset:filters.offset + filters.limit], len(rows)


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def rng() -> random.Random:
    """Seeded random source."""
    return random.Random(42)


@pytest.fixture
def test_settings() -> Settings:
    """Settings with all delays removed and no overrides."""
    return Settings(
        ENVIRONMENT="test",
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        DELAY_BETWEEN_REQUESTS_SECONDS=0,
        DELAY_BETWEEN_BATCHES_SECONDS=0,
        MAX_CONCURRENT_SCRAPERS=5,
        PLATFORM_TIMEOUT_SECONDS=5,
        MAX_RETRIES=1,
        FORCE_MOCK_DATA=False,
        FORCE_CURATED_DATA=False,
        PROBLEMATIC_TARGETS="",
        SCRAPER_API_KEY="",
    )


@pytest_asyncio.fixture
async def session_factory():
    """In-memory SQLite database with all tables created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def gateway(session_factory) -> SQLAlchemyPersistenceGateway:
    """SQLAlchemy gateway over a database seeded with the demo platform."""
    await seed_platforms(session_factory, [DEMO_CONFIG])
    return SQLAlchemyPersistenceGateway(session_factory)


@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway()
