"""Persistence gateway over the canonical coupon schema.

The scraper core only talks to ``PersistenceGateway``; the SQLAlchemy
implementation is chosen at construction time (tests inject fakes or an
in-memory SQLite session factory).
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

import structlog
from sqlalchemy import and_, func, select, text, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kupon.core.exceptions import PersistenceFailure
from kupon.models import Coupon, Merchant, Platform, ScrapeSession
from kupon.scrapers.base import CouponRecord

logger = structlog.get_logger(__name__)

UPSERT_CHUNK_SIZE = 10
TERMINAL_SESSION_STATUSES = ("completed", "failed", "cancelled")


@dataclass
class CouponFilters:
    """Query filters for coupon listings."""

    platform: Optional[str] = None
    merchant: Optional[str] = None
    status: Optional[str] = "active"
    featured: Optional[bool] = None
    discount_type: Optional[str] = None
    has_code: Optional[bool] = None
    limit: int = 50
    offset: int = 0
    sort: str = "created_at"
    order: str = "desc"


SORTABLE_COLUMNS = {
    "created_at": Coupon.created_at,
    "updated_at": Coupon.updated_at,
    "scraped_at": Coupon.scraped_at,
    "valid_until": Coupon.valid_until,
    "discount_value": Coupon.discount_value,
    "title": Coupon.title,
}


class PersistenceGateway(ABC):
    """Data-access interface consumed by the scraper core."""

    @abstractmethod
    async def get_platform_by_slug(self, slug: str) -> Optional[Platform]:
        ...

    @abstractmethod
    async def get_merchant_id(self, slug: str) -> Optional[uuid.UUID]:
        ...

    @abstractmethod
    async def upsert_coupon(self, record: CouponRecord) -> str:
        """Insert or update one coupon. Returns "created" or "updated"."""

    @abstractmethod
    async def upsert_batch(self, records: Sequence[CouponRecord]) -> Dict[str, int]:
        """Upsert in chunks. Returns {"saved", "created", "updated", "errors"}."""

    @abstractmethod
    async def expire_stale(self, now: Optional[datetime] = None) -> int:
        ...

    @abstractmethod
    async def create_session(self, data: Dict[str, Any]) -> uuid.UUID:
        ...

    @abstractmethod
    async def update_session(self, session_id: uuid.UUID, patch: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    async def query_coupons(self, filters: CouponFilters) -> Tuple[List[Coupon], int]:
        ...


class SQLAlchemyPersistenceGateway(PersistenceGateway):
    """Gateway backed by an async SQLAlchemy session factory.

    Platform and merchant lookups are memoized for the gateway's lifetime
    with no invalidation; reference rows change rarely.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], chunk_size: int = UPSERT_CHUNK_SIZE):
        self.session_factory = session_factory
        self.chunk_size = chunk_size
        self._platform_cache: Dict[str, Platform] = {}
        self._merchant_cache: Dict[str, uuid.UUID] = {}
        self.logger = logger.bind(service="persistence")

    # ------------------------------------------------------------------
    # Reference lookups
    # ------------------------------------------------------------------

    async def get_platform_by_slug(self, slug: str) -> Optional[Platform]:
        if slug in self._platform_cache:
            return self._platform_cache[slug]
        async with self.session_factory() as db:
            result = await db.execute(select(Platform).where(Platform.slug == slug))
            platform = result.scalar_one_or_none()
        if platform is not None:
            self._platform_cache[slug] = platform
        return platform

    async def get_merchant_id(self, slug: str) -> Optional[uuid.UUID]:
        if slug in self._merchant_cache:
            return self._merchant_cache[slug]
        async with self.session_factory() as db:
            result = await db.execute(select(Merchant.id).where(Merchant.slug == slug))
            merchant_id = result.scalar_one_or_none()
        if merchant_id is not None:
            self._merchant_cache[slug] = merchant_id
        return merchant_id

    # ------------------------------------------------------------------
    # Coupons
    # ------------------------------------------------------------------

    async def _upsert(self, db: AsyncSession, record: CouponRecord) -> str:
        merchant_clause = (
            Coupon.merchant_id.is_(None) if record.merchant_id is None else Coupon.merchant_id == record.merchant_id
        )
        result = await db.execute(
            select(Coupon).where(
                and_(
                    Coupon.title == record.title,
                    Coupon.platform_id == record.platform_id,
                    merchant_clause,
                )
            )
        )
        existing = result.scalar_one_or_none()
        values = record.to_row()

        if existing is None:
            db.add(Coupon(**values))
            await db.flush()
            return "created"

        for key, value in values.items():
            setattr(existing, key, value)
        existing.updated_at = datetime.now(timezone.utc)
        return "updated"

    async def upsert_coupon(self, record: CouponRecord) -> str:
        async with self.session_factory() as db:
            outcome = await self._upsert(db, record)
            await db.commit()
        return outcome

    async def _upsert_chunk(self, chunk: Sequence[CouponRecord], offset: int) -> Dict[str, int]:
        chunk_stats = {"created": 0, "updated": 0}
        async with self.session_factory() as db:
            try:
                for record in chunk:
                    outcome = await self._upsert(db, record)
                    chunk_stats[outcome] += 1
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                raise PersistenceFailure(f"chunk at offset {offset} failed: {e}") from e
        return chunk_stats

    async def upsert_batch(self, records: Sequence[CouponRecord]) -> Dict[str, int]:
        """Upsert records in chunks, each chunk in its own transaction.

        A failing chunk is rolled back and its records counted as errors;
        the remaining chunks still run.
        """
        stats = {"saved": 0, "created": 0, "updated": 0, "errors": 0}

        for start in range(0, len(records), self.chunk_size):
            chunk = records[start:start + self.chunk_size]
            try:
                chunk_stats = await self._upsert_chunk(chunk, start)
            except PersistenceFailure as e:
                stats["errors"] += len(chunk)
                self.logger.error("upsert_chunk_failed", offset=start, size=len(chunk), error=e.message)
                continue

            stats["created"] += chunk_stats["created"]
            stats["updated"] += chunk_stats["updated"]

        stats["saved"] = stats["created"] + stats["updated"]
        self.logger.info("batch_upserted", total=len(records), **stats)
        return stats

    async def expire_stale(self, now: Optional[datetime] = None) -> int:
        """Flip active coupons whose valid_until has passed to expired."""
        now = now or datetime.now(timezone.utc)
        async with self.session_factory() as db:
            result = await db.execute(
                update(Coupon)
                .where(
                    Coupon.status == "active",
                    Coupon.valid_until.is_not(None),
                    Coupon.valid_until < now,
                )
                .values(status="expired", updated_at=now)
                .execution_options(synchronize_session=False)
            )
            await db.commit()
        count = result.rowcount or 0
        self.logger.info("stale_coupons_expired", count=count)
        return count

    async def query_coupons(self, filters: CouponFilters) -> Tuple[List[Coupon], int]:
        """Filtered, sorted, paginated coupons plus the unpaginated total."""
        query = select(Coupon)
        if filters.platform:
            query = query.join(Platform, Coupon.platform_id == Platform.id).where(Platform.slug == filters.platform)
        if filters.merchant:
            query = query.join(Merchant, Coupon.merchant_id == Merchant.id).where(Merchant.slug == filters.merchant)
        if filters.status:
            query = query.where(Coupon.status == filters.status)
        if filters.featured is not None:
            query = query.where(Coupon.is_featured == filters.featured)
        if filters.discount_type:
            query = query.where(Coupon.discount_type == filters.discount_type)
        if filters.has_code is True:
            query = query.where(Coupon.coupon_code.is_not(None), Coupon.coupon_code != "")
        elif filters.has_code is False:
            query = query.where(Coupon.coupon_code.is_(None))

        sort_column = SORTABLE_COLUMNS.get(filters.sort, Coupon.created_at)
        ordering = sort_column.asc() if filters.order.lower() == "asc" else sort_column.desc()

        async with self.session_factory() as db:
            total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar_one()
            result = await db.execute(
                query.order_by(ordering, Coupon.id).offset(filters.offset).limit(filters.limit)
            )
            coupons = list(result.scalars().all())
        return coupons, total

    async def get_coupon_by_code(self, code: str) -> Optional[Coupon]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(Coupon)
                .where(func.upper(Coupon.coupon_code) == code.strip().upper())
                .order_by((Coupon.status == "active").desc(), Coupon.updated_at.desc())
                .limit(1)
            )
            return result.scalars().first()

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def create_session(self, data: Dict[str, Any]) -> uuid.UUID:
        session = ScrapeSession(
            session_id=data.get("session_id") or uuid.uuid4(),
            platform_id=data["platform_id"],
            status=data.get("status", "running"),
            started_at=data.get("started_at") or datetime.now(timezone.utc),
            scraper_version=data.get("scraper_version"),
            user_agent=data.get("user_agent"),
            performance_metrics=data.get("performance_metrics") or {},
        )
        async with self.session_factory() as db:
            db.add(session)
            await db.commit()
        return session.session_id

    async def update_session(self, session_id: uuid.UUID, patch: Dict[str, Any]) -> None:
        """Apply a patch to a running session. Finalized sessions are left untouched."""
        async with self.session_factory() as db:
            result = await db.execute(select(ScrapeSession).where(ScrapeSession.session_id == session_id))
            session = result.scalar_one_or_none()
            if session is None:
                self.logger.warning("session_not_found", session_id=str(session_id))
                return
            if session.status in TERMINAL_SESSION_STATUSES:
                self.logger.warning("session_already_finalized", session_id=str(session_id), status=session.status)
                return
            for key, value in patch.items():
                setattr(session, key, value)
            await db.commit()

    async def get_session(self, session_id: uuid.UUID) -> Optional[ScrapeSession]:
        async with self.session_factory() as db:
            result = await db.execute(select(ScrapeSession).where(ScrapeSession.session_id == session_id))
            return result.scalar_one_or_none()

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    async def get_platform_stats(self) -> List[Dict[str, Any]]:
        """Per-platform coupon totals for the CLI stats command."""
        async with self.session_factory() as db:
            result = await db.execute(
                select(
                    Platform.slug,
                    Platform.name,
                    func.count(Coupon.id),
                    func.count(Coupon.id).filter(Coupon.status == "active"),
                    func.count(Coupon.coupon_code),
                    func.max(Coupon.scraped_at),
                )
                .select_from(Platform)
                .outerjoin(Coupon, Coupon.platform_id == Platform.id)
                .group_by(Platform.id, Platform.slug, Platform.name, Platform.priority)
                .order_by(Platform.priority)
            )
            rows = result.all()
        return [
            {
                "platform": slug,
                "name": name,
                "total": total,
                "active": active,
                "with_code": with_code,
                "last_scraped": last_scraped,
            }
            for slug, name, total, active, with_code, last_scraped in rows
        ]

    async def get_metrics(self, since_hours: int = 24) -> Dict[str, Any]:
        """Coupon status counts and recent session outcomes."""
        since = datetime.now(timezone.utc) - timedelta(hours=since_hours)
        async with self.session_factory() as db:
            status_rows = (await db.execute(select(Coupon.status, func.count(Coupon.id)).group_by(Coupon.status))).all()
            session_rows = (
                await db.execute(
                    select(ScrapeSession.status, func.count(ScrapeSession.id), func.avg(ScrapeSession.duration_ms))
                    .where(ScrapeSession.started_at >= since)
                    .group_by(ScrapeSession.status)
                )
            ).all()
            items_row = (
                await db.execute(
                    select(func.sum(ScrapeSession.items_found), func.sum(ScrapeSession.items_saved))
                    .where(ScrapeSession.started_at >= since)
                )
            ).one()

        coupons = {status: count for status, count in status_rows}
        sessions = {
            status: {"count": count, "avg_duration_ms": int(avg) if avg is not None else None}
            for status, count, avg in session_rows
        }
        found, saved = items_row
        return {
            "coupons": {"total": sum(coupons.values()), **coupons},
            "sessions": sessions,
            "window_hours": since_hours,
            "items_found": int(found or 0),
            "items_saved": int(saved or 0),
        }

    async def check_health(self) -> bool:
        try:
            async with self.session_factory() as db:
                await db.execute(text("SELECT 1"))
            return True
        except Exception as e:
            self.logger.error("database_health_check_failed", error=str(e))
            return False
