"""Registry for creating platform adapter instances."""

from typing import Dict, List, Optional, Type

import structlog

from kupon.config import settings
from kupon.scrapers.base import PlatformAdapter
from kupon.scrapers.platform_config import PlatformConfig
from kupon.scrapers.utils import AntiDetectionPolicy, SlidingWindowRateLimiter


logger = structlog.get_logger(__name__)


class AdapterFactory:
    """Registry of platform adapters plus the services they share.

    The rate limiter and anti-detection policy live here so that every
    run of a platform, scheduled or manual, draws from the same sliding
    window and proxy rotation.
    """

    def __init__(
        self,
        rate_limiter: Optional[SlidingWindowRateLimiter] = None,
        anti_detection: Optional[AntiDetectionPolicy] = None,
    ):
        self.rate_limiter = rate_limiter or SlidingWindowRateLimiter()

        if anti_detection is None:
            proxy_list = settings.get_proxy_list()
            anti_detection = AntiDetectionPolicy(proxies=proxy_list)
            if proxy_list:
                logger.info("proxy_rotation_enabled", proxy_count=len(proxy_list))
        self.anti_detection = anti_detection

        self._adapter_registry: Dict[str, Type[PlatformAdapter]] = {}

    def register_adapter(self, slug: str, adapter_class: Type[PlatformAdapter]) -> None:
        """Register an adapter class for a platform.

        Args:
            slug: Platform slug (e.g. "shopee")
            adapter_class: PlatformAdapter subclass carrying a config

        Raises:
            ValueError: If the class is not a PlatformAdapter or its
                config slug does not match
        """
        if not isinstance(adapter_class, type) or not issubclass(adapter_class, PlatformAdapter):
            raise ValueError(f"Adapter class must inherit from PlatformAdapter: {adapter_class}")

        config = getattr(adapter_class, "config", None)
        if config is None or config.slug != slug:
            raise ValueError(f"Adapter {adapter_class.__name__} is not configured for platform {slug!r}")

        self._adapter_registry[slug] = adapter_class
        self.rate_limiter.set_limit(slug, config.rate_limit_requests, config.rate_limit_window_seconds)
        logger.debug("adapter_registered", platform=slug, adapter=adapter_class.__name__)

    def create_adapter(self, slug: str) -> Optional[PlatformAdapter]:
        """Create an adapter instance.

        Args:
            slug: Platform slug

        Returns:
            Adapter instance, or None if not registered
        """
        adapter_class = self._adapter_registry.get(slug)
        if not adapter_class:
            logger.warning("adapter_not_found", platform=slug)
            return None
        return adapter_class()

    def get_config(self, slug: str) -> Optional[PlatformConfig]:
        adapter_class = self._adapter_registry.get(slug)
        return adapter_class.config if adapter_class else None

    def get_configs(self) -> List[PlatformConfig]:
        """Registered configs, highest priority (lowest number) first."""
        configs = [cls.config for cls in self._adapter_registry.values()]
        return sorted(configs, key=lambda c: (c.priority, c.slug))

    def get_registered_platforms(self) -> List[str]:
        return [config.slug for config in self.get_configs()]

    def has_adapter(self, slug: str) -> bool:
        return slug in self._adapter_registry


# Global factory instance
adapter_factory = AdapterFactory()


def get_adapter_factory() -> AdapterFactory:
    """Get the global adapter factory instance."""
    return adapter_factory
