"""Register all platform adapters with the factory.

Imported during application and CLI startup.
"""

from typing import Optional

import structlog

from kupon.scrapers.factory import AdapterFactory, get_adapter_factory
from kupon.scrapers.adapters import (
    BlibliAdapter,
    GrabAdapter,
    LazadaAdapter,
    ShopeeAdapter,
    TokopediaAdapter,
    TravelokaAdapter,
)

logger = structlog.get_logger(__name__)


ADAPTERS = [
    # Marketplaces
    ("shopee", ShopeeAdapter),
    ("tokopedia", TokopediaAdapter),
    ("lazada", LazadaAdapter),
    ("blibli", BlibliAdapter),
    # Travel and services
    ("traveloka", TravelokaAdapter),
    ("grab", GrabAdapter),
]


def register_all_adapters(factory: Optional[AdapterFactory] = None) -> AdapterFactory:
    """Register every known adapter and return the factory used."""
    factory = factory or get_adapter_factory()

    for slug, adapter_class in ADAPTERS:
        try:
            factory.register_adapter(slug, adapter_class)
        except ValueError as e:
            logger.error("adapter_registration_failed", platform=slug, error=str(e))

    logger.info(
        "all_adapters_registered",
        count=len(factory.get_registered_platforms()),
        platforms=factory.get_registered_platforms(),
    )
    return factory
