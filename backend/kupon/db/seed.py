"""Seed platform and house-merchant rows from the static platform configs."""

from typing import Dict, Iterable

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kupon.models import Merchant, Platform
from kupon.scrapers.platform_config import PlatformConfig

logger = structlog.get_logger(__name__)


def _platform_values(config: PlatformConfig) -> dict:
    return {
        "name": config.name,
        "base_url": config.base_url,
        "logo_url": config.logo_url,
        "endpoints": dict(config.endpoints),
        "selectors": {endpoint: sel.to_dict() for endpoint, sel in config.selectors.items()},
        "limits": config.limits(),
        "priority": config.priority,
    }


async def seed_platforms(
    session_factory: async_sessionmaker[AsyncSession],
    configs: Iterable[PlatformConfig],
) -> Dict[str, int]:
    """Insert or refresh one Platform and one house Merchant per config.

    Idempotent: platforms and merchants are matched by slug. Existing
    platform rows get their endpoints, selectors and limits refreshed
    from code; ``is_active`` is left alone so an operator can switch a
    platform off in the database.

    Returns:
        Counts of created and updated platforms and created merchants
    """
    stats = {"platforms_created": 0, "platforms_updated": 0, "merchants_created": 0}

    async with session_factory() as db:
        for config in configs:
            result = await db.execute(select(Platform).where(Platform.slug == config.slug))
            platform = result.scalar_one_or_none()

            if platform is None:
                platform = Platform(slug=config.slug, is_active=config.enabled, **_platform_values(config))
                db.add(platform)
                await db.flush()
                stats["platforms_created"] += 1
            else:
                for key, value in _platform_values(config).items():
                    setattr(platform, key, value)
                stats["platforms_updated"] += 1

            result = await db.execute(select(Merchant).where(Merchant.slug == config.slug))
            if result.scalar_one_or_none() is None:
                db.add(
                    Merchant(
                        name=config.name,
                        slug=config.slug,
                        platform_id=platform.id,
                        website_url=config.base_url,
                    )
                )
                stats["merchants_created"] += 1

        await db.commit()

    logger.info("platforms_seeded", **stats)
    return stats
