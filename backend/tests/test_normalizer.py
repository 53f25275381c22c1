"""Tests for discount parsing and field normalization."""

import random
import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from kupon.scrapers.base import RawItem
from kupon.scrapers.utils.normalizer import (
    FieldNormalizer,
    NormalizationContext,
    clean_title,
    parse_discount,
    parse_price,
)

from tests.conftest import DEMO_CONFIG


NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def context() -> NormalizationContext:
    return NormalizationContext.from_config(DEMO_CONFIG, uuid.uuid4(), uuid.uuid4())


@pytest.fixture
def normalizer() -> FieldNormalizer:
    return FieldNormalizer(rng=random.Random(42), clock=lambda: NOW)


# ============================================================================
# DISCOUNT PARSING
# ============================================================================

class TestParseDiscount:
    """Tests for parse_discount pattern precedence."""

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("50% OFF", ("percentage", Decimal("50"))),
            ("Diskon 12,5%", ("percentage", Decimal("12.5"))),
            ("Rp 150.000", ("fixed", Decimal("150000"))),
            ("Potongan Rp50RB", ("fixed", Decimal("50000"))),
            ("Hemat Rp 1,5jt", ("fixed", Decimal("1500000"))),
            ("Hingga 60 persen", ("percentage", Decimal("60"))),
            ("Gratis Ongkir", ("shipping", Decimal("0"))),
            ("Free shipping", ("shipping", Decimal("0"))),
            ("Cashback 10RB", ("cashback", Decimal("10000"))),
            ("Beli 1 Gratis 1", ("bogo", Decimal("50"))),
            ("Buy 1 Get 1", ("bogo", Decimal("50"))),
            ("Potongan 30", ("percentage", Decimal("30"))),
            ("Potongan 5000", ("fixed", Decimal("5000"))),
            ("Hemat 25.000", ("fixed", Decimal("25000"))),
            ("Potongan 150.000", ("fixed", Decimal("150000"))),
            ("Diskon 50rb", ("fixed", Decimal("50000"))),
            ("Potongan 1.5jt", ("fixed", Decimal("1500000"))),
        ],
    )
    def test_patterns(self, text, expected):
        assert parse_discount(text) == expected

    def test_percentage_wins_over_currency(self):
        """The first matching pattern decides the type."""
        assert parse_discount("Diskon 20% hingga Rp 50.000") == ("percentage", Decimal("20"))

    def test_default_when_empty(self):
        assert parse_discount(None) == ("percentage", Decimal("10"))
        assert parse_discount("   ", default_value=15) == ("percentage", Decimal("15"))

    def test_default_when_unparseable(self):
        assert parse_discount("Spesial hari ini") == ("percentage", Decimal("10"))


class TestParsePrice:
    """Tests for Indonesian price parsing."""

    def test_thousand_separators(self):
        assert parse_price("Rp 1.250.000") == Decimal("1250000")

    def test_decimal_fraction(self):
        assert parse_price("Rp 12.500,50") == Decimal("12500.50")

    def test_no_digits(self):
        assert parse_price("Gratis") is None
        assert parse_price(None) is None


class TestCleanTitle:
    """Tests for title cleanup."""

    def test_strips_brackets_and_whitespace(self):
        assert clean_title("  [PROMO]   Diskon   Besar  ") == "Diskon Besar"

    def test_truncates(self):
        assert len(clean_title("x" * 500)) == 200

    def test_empty(self):
        assert clean_title(None) == ""
        assert clean_title("[TAG]") == ""


# ============================================================================
# NORMALIZER
# ============================================================================

class TestFieldNormalizer:
    """Tests for RawItem -> CouponRecord mapping."""

    async def test_percentage_item(self, normalizer, context):
        """A "50% OFF Widget" card becomes a 50% active coupon."""
        raw = RawItem(
            title="50% OFF Widget",
            discount_text="50%",
            code="WIDGET50",
            link="http://demo.test/deal/1",
        )

        record = normalizer.normalize(raw, context)

        assert record is not None
        assert record.title == "50% OFF Widget"
        assert record.discount_type == "percentage"
        assert record.discount_value == Decimal("50")
        assert record.coupon_code == "WIDGET50"
        assert record.status == "active"
        assert record.is_featured is False
        assert record.source_url == "http://demo.test/deal/1"
        assert record.platform_id == context.platform_id
        assert record.merchant_id == context.merchant_id
        assert record.scraped_at == NOW

    async def test_default_description_and_validity(self, normalizer, context):
        """Missing description and expiry fall back to platform defaults."""
        record = normalizer.normalize(RawItem(title="Potongan Gadget", discount_text="Rp 150.000"), context)

        assert record.discount_type == "fixed"
        assert record.discount_value == Decimal("150000")
        assert record.description == "Potongan Gadget - Promo demo!"
        assert record.valid_until == NOW + timedelta(days=DEMO_CONFIG.valid_days)
        assert record.source_url == DEMO_CONFIG.base_url

    async def test_provided_expiry_is_kept(self, normalizer, context):
        record = normalizer.normalize(RawItem(title="Promo", valid_until="2026-04-01T00:00:00Z"), context)
        assert record.valid_until == datetime(2026, 4, 1, tzinfo=timezone.utc)

    async def test_unparseable_expiry_uses_default(self, normalizer, context):
        record = normalizer.normalize(RawItem(title="Promo", valid_until="besok"), context)
        assert record.valid_until == NOW + timedelta(days=DEMO_CONFIG.valid_days)

    async def test_rejects_missing_title(self, normalizer, context):
        """Items without a usable title are rejected, never raised."""
        assert normalizer.normalize(RawItem(title=""), context) is None
        assert normalizer.normalize(RawItem(title="   [TAG]  "), context) is None

    async def test_unexpected_error_returns_none(self, normalizer, context):
        """Garbage input yields None instead of an exception."""
        assert normalizer.normalize(object(), context) is None

    async def test_truncates_long_fields(self, normalizer, context):
        raw = RawItem(title="Promo", description="d" * 800, code="C" * 150)
        record = normalizer.normalize(raw, context)
        assert len(record.description) == 500
        assert len(record.coupon_code) == 100

    async def test_featured_rate_always(self, context):
        normalizer = FieldNormalizer(rng=random.Random(1), clock=lambda: NOW)
        record = normalizer.normalize(RawItem(title="Promo"), replace(context, featured_rate=1.0))
        assert record.is_featured is True
