"""Tests for platform adapters, configs and the adapter registry."""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from kupon.scrapers.adapters import (
    GRAB_CONFIG,
    SHOPEE_CONFIG,
    TRAVELOKA_CONFIG,
    LazadaAdapter,
    ShopeeAdapter,
    TokopediaAdapter,
    TravelokaAdapter,
)
from kupon.scrapers.base import CouponRecord, PlatformAdapter, RawItem
from kupon.scrapers.factory import AdapterFactory
from kupon.scrapers.register_adapters import ADAPTERS, register_all_adapters

from tests.conftest import DEMO_CONFIG, DemoAdapter, FakeGateway


# ============================================================================
# CONFIGS
# ============================================================================

class TestPlatformConfigs:
    """Tests for the static platform configuration."""

    def test_every_endpoint_has_usable_selectors(self):
        for _, adapter_class in ADAPTERS:
            config = adapter_class.config
            assert config.endpoints, config.slug
            for endpoint in config.endpoints:
                assert config.selectors_for(endpoint).is_usable(), f"{config.slug}:{endpoint}"

    def test_endpoint_url_joins_paths(self):
        assert SHOPEE_CONFIG.endpoint_url("flash_sale") == "https://shopee.co.id/flash_sale"
        assert TRAVELOKA_CONFIG.endpoint_url("deals") == "https://www.traveloka.com/id-id/promotion"

    def test_absolute_endpoint_passes_through(self):
        assert GRAB_CONFIG.endpoint_url("mart") == "https://mart.grab.com/id/promos"

    def test_priorities_are_unique(self):
        priorities = [cls.config.priority for _, cls in ADAPTERS]
        assert len(set(priorities)) == len(priorities)

    def test_build_targets_in_config_order(self):
        targets = ShopeeAdapter().build_targets()
        assert [t.endpoint for t in targets] == ["flash_sale", "daily_discover"]
        assert targets[0].key == "shopee:flash_sale"
        assert targets[0].max_items == SHOPEE_CONFIG.max_items


# ============================================================================
# ADAPTER HOOKS
# ============================================================================

class TestAdapterHooks:
    """Tests for per-platform field fix-ups."""

    def test_default_resolves_relative_urls(self):
        item = RawItem(title="Deal", link="/deal/1", image_url="//cdn.demo.test/a.jpg", source_url="http://demo.test/deals")
        item = DemoAdapter().extract_fields(item)
        assert item.link == "http://demo.test/deal/1"
        assert item.image_url == "https://cdn.demo.test/a.jpg"

    def test_shopee_derives_discount_from_prices(self):
        item = RawItem(title="Sepatu", price="Rp 50.000", original_price="Rp 100.000")
        assert ShopeeAdapter().extract_fields(item).discount_text == "50%"

    def test_shopee_splits_price_pair(self):
        item = RawItem(title="Tas", price="Rp 75.000 Rp 100.000")
        assert ShopeeAdapter().extract_fields(item).discount_text == "25%"

    def test_shopee_keeps_existing_discount(self):
        item = RawItem(title="Tas", price="Rp 75.000", original_price="Rp 100.000", discount_text="Diskon 30%")
        assert ShopeeAdapter().extract_fields(item).discount_text == "Diskon 30%"

    def test_shopee_no_discount_when_prices_invalid(self):
        assert ShopeeAdapter.discount_from_prices("Rp 100.000", "Rp 90.000") is None
        assert ShopeeAdapter.discount_from_prices(None, "Rp 90.000") is None

    def test_tokopedia_strips_tags_and_code_label(self):
        item = RawItem(title="[FLASH SALE] Diskon 40% Perawatan", code="Kode: TOKO40")
        item = TokopediaAdapter().extract_fields(item)
        assert item.title == "Diskon 40% Perawatan"
        assert item.code == "TOKO40"

    def test_lazada_drops_collect_placeholder(self):
        item = LazadaAdapter().extract_fields(RawItem(title="Voucher", code="Collect"))
        assert item.code is None

    def test_post_process_dedupes_natural_keys(self):
        platform_id = uuid.uuid4()

        def record(title, value):
            return CouponRecord(
                title=title,
                description="",
                discount_type="percentage",
                discount_value=Decimal(value),
                source_url="http://demo.test",
                platform_id=platform_id,
                scraped_at=datetime.now(timezone.utc),
            )

        records = DemoAdapter().post_process([record("A", 10), record("B", 20), record("A", 30)])

        assert [(r.title, r.discount_value) for r in records] == [("A", Decimal(30)), ("B", Decimal(20))]

    def test_traveloka_prefers_records_with_codes(self):
        platform_id = uuid.uuid4()
        common = dict(
            description="",
            discount_type="percentage",
            discount_value=Decimal(10),
            source_url="https://www.traveloka.com",
            platform_id=platform_id,
            scraped_at=datetime.now(timezone.utc),
        )
        records = [CouponRecord(title="Hotel", coupon_code="HOTEL10", **common), CouponRecord(title="Banner", **common)]

        assert [r.title for r in TravelokaAdapter().post_process(records)] == ["Hotel"]


# ============================================================================
# FACTORY
# ============================================================================

class TestAdapterFactory:
    """Tests for adapter registration and lookup."""

    def test_register_all(self):
        factory = register_all_adapters(AdapterFactory())

        assert factory.get_registered_platforms() == ["shopee", "tokopedia", "lazada", "blibli", "traveloka", "grab"]
        assert isinstance(factory.create_adapter("shopee"), ShopeeAdapter)
        assert factory.rate_limiter.get_limit("shopee") == (10, 60.0)

    def test_unknown_slug(self):
        factory = AdapterFactory()
        assert factory.create_adapter("nope") is None
        assert factory.get_config("nope") is None
        assert not factory.has_adapter("nope")

    def test_rejects_non_adapter(self):
        with pytest.raises(ValueError):
            AdapterFactory().register_adapter("demo", FakeGateway)

    def test_rejects_slug_mismatch(self):
        with pytest.raises(ValueError):
            AdapterFactory().register_adapter("shopee", DemoAdapter)

    def test_adapter_without_config(self):
        class Bare(PlatformAdapter):
            pass

        with pytest.raises(ValueError):
            Bare()

    def test_registers_rate_limit(self):
        factory = AdapterFactory()
        factory.register_adapter("demo", DemoAdapter)
        assert factory.rate_limiter.get_limit("demo") == (DEMO_CONFIG.rate_limit_requests, 60.0)
