"""Field normalization: raw extracted text -> canonical coupon fields."""

import random
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional, Tuple, Union

import structlog

from kupon.core.exceptions import NormalizationReject
from kupon.scrapers.base import CouponRecord, RawItem
from kupon.scrapers.platform_config import PlatformConfig

logger = structlog.get_logger(__name__)


TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 500
CODE_MAX_LENGTH = 100
URL_MAX_LENGTH = 1000
DISCOUNT_TEXT_MAX_LENGTH = 255

_MULTIPLIERS = {
    "rb": Decimal("1000"),
    "ribu": Decimal("1000"),
    "k": Decimal("1000"),
    "jt": Decimal("1000000"),
    "juta": Decimal("1000000"),
}

_PERCENT_RE = re.compile(r"(\d+(?:[.,]\d+)?)\s*%")
_CURRENCY_RE = re.compile(r"(?:rp|idr)\.?\s*(\d[\d.,]*)\s*(rb|ribu|k|jt|juta)?\b", re.IGNORECASE)
_UP_TO_RE = re.compile(r"(?:up\s*to|hingga|sampai)\s*(\d+)\s*(?:%|persen)?|(\d+)\s*persen", re.IGNORECASE)
_AMOUNT_RE = re.compile(r"(\d[\d.,]*)\s*(rb|ribu|k|jt|juta)?\b", re.IGNORECASE)
_BRACKET_RE = re.compile(r"\[[^\]]*\]")
_WHITESPACE_RE = re.compile(r"\s+")
_PRICE_RE = re.compile(r"(\d[\d.,]*)")


def _parse_amount(number: str, suffix: Optional[str] = None) -> Decimal:
    """Parse an Indonesian-formatted amount.

    Without a unit suffix dots and commas are thousand separators
    ("150.000" -> 150000). With one ("1,5jt") a single separator is a
    decimal point.
    """
    number = number.strip(".,")
    if suffix:
        multiplier = _MULTIPLIERS[suffix.lower()]
        normalized = number.replace(",", ".")
        if normalized.count(".") > 1:
            normalized = normalized.replace(".", "")
        return Decimal(normalized) * multiplier
    return Decimal(re.sub(r"[.,]", "", number))


def parse_discount(text: Optional[str], default_value: int = 10) -> Tuple[str, Decimal]:
    """Parse free-form discount text into (discount_type, value).

    Patterns are tried from most to least specific; the first match wins:
    percentage, currency amount, "up to"/"hingga" phrasing, free shipping,
    cashback amount, buy-get, bare integer, then the platform default.

    Args:
        text: Discount text as extracted (may be None)
        default_value: Platform default percentage

    Returns:
        Tuple of discount type and numeric value
    """
    default = ("percentage", Decimal(default_value))
    if not text or not text.strip():
        return default

    lowered = text.lower()

    match = _PERCENT_RE.search(lowered)
    if match:
        return "percentage", Decimal(match.group(1).replace(",", "."))

    match = _CURRENCY_RE.search(lowered)
    if match:
        try:
            return "fixed", _parse_amount(match.group(1), match.group(2))
        except InvalidOperation:
            pass

    match = _UP_TO_RE.search(lowered)
    if match:
        return "percentage", Decimal(match.group(1) or match.group(2))

    if ("gratis" in lowered and "ongkir" in lowered) or ("free" in lowered and ("shipping" in lowered or "ongkir" in lowered)):
        return "shipping", Decimal("0")

    if "cashback" in lowered:
        match = _AMOUNT_RE.search(lowered)
        if match:
            try:
                return "cashback", _parse_amount(match.group(1), match.group(2))
            except InvalidOperation:
                pass

    if ("buy" in lowered and "get" in lowered) or ("beli" in lowered and "gratis" in lowered) or "bogo" in lowered:
        return "bogo", Decimal("50")

    match = _AMOUNT_RE.search(lowered)
    if match:
        number, suffix = match.group(1).strip(".,"), match.group(2)
        try:
            value = _parse_amount(number, suffix)
        except InvalidOperation:
            return default
        # separators or a unit suffix mark an amount, never a percentage
        if not suffix and number.isdigit() and value <= 100:
            return "percentage", value
        return "fixed", value

    return default


def parse_price(text: Optional[str]) -> Optional[Decimal]:
    """Parse a price like "Rp 1.250.000" into Decimal(1250000).

    Returns:
        Decimal price, or None when no digits are present
    """
    if not text:
        return None
    match = _PRICE_RE.search(text)
    if not match:
        return None
    number = match.group(1).strip(".,")
    # A trailing ",NN" is a decimal fraction ("Rp 12.500,50")
    fraction = re.search(r",(\d{1,2})$", number)
    try:
        if fraction:
            whole = number[: fraction.start()].replace(".", "").replace(",", "")
            return Decimal(f"{whole}.{fraction.group(1)}")
        return Decimal(re.sub(r"[.,]", "", number))
    except InvalidOperation:
        return None


def clean_title(title: Optional[str]) -> str:
    """Strip bracketed tags, collapse whitespace and truncate to 200 chars."""
    if not title:
        return ""
    cleaned = _BRACKET_RE.sub(" ", title)
    cleaned = _WHITESPACE_RE.sub(" ", cleaned).strip(" -|:")
    return cleaned[:TITLE_MAX_LENGTH].rstrip()


def _truncate(value: Optional[str], length: int) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value[:length] if value else None


@dataclass(frozen=True)
class NormalizationContext:
    """Platform facts the normalizer needs for one run."""

    platform_slug: str
    platform_name: str
    platform_id: uuid.UUID
    merchant_id: Optional[uuid.UUID]
    base_url: str
    valid_days: int
    featured_rate: float
    promo_phrase: str
    default_discount_value: int

    @classmethod
    def from_config(
        cls,
        config: PlatformConfig,
        platform_id: uuid.UUID,
        merchant_id: Optional[uuid.UUID],
    ) -> "NormalizationContext":
        return cls(
            platform_slug=config.slug,
            platform_name=config.name,
            platform_id=platform_id,
            merchant_id=merchant_id,
            base_url=config.base_url,
            valid_days=config.valid_days,
            featured_rate=config.featured_rate,
            promo_phrase=config.description_suffix(),
            default_discount_value=config.default_discount_value,
        )


class FieldNormalizer:
    """Maps RawItems into CouponRecords.

    Randomness (featured flag) and time come from injectable sources so
    tests can pin them.
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.rng = rng or random.Random()
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def normalize(self, raw: RawItem, context: NormalizationContext) -> Optional[CouponRecord]:
        """Normalize one raw item.

        Never raises: a missing title or any unexpected error yields None
        and is logged, and the caller counts it as an error.
        """
        try:
            return self._normalize(raw, context)
        except NormalizationReject as e:
            logger.debug("item_rejected", platform=context.platform_slug, reason=e.reason)
            return None
        except Exception as e:
            logger.warning(
                "item_normalization_failed",
                platform=context.platform_slug,
                title=getattr(raw, "title", None),
                error=str(e),
            )
            return None

    def _normalize(self, raw: RawItem, context: NormalizationContext) -> CouponRecord:
        title = clean_title(raw.title)
        if not title:
            raise NormalizationReject("missing title")

        now = self.clock()
        discount_type, discount_value = parse_discount(raw.discount_text, context.default_discount_value)

        source_url = raw.link or raw.source_url or context.base_url
        if not source_url:
            raise NormalizationReject("missing source url")

        return CouponRecord(
            title=title,
            description=self.build_description(title, raw.description, context),
            discount_type=discount_type,
            discount_value=discount_value,
            discount_text=_truncate(raw.discount_text, DISCOUNT_TEXT_MAX_LENGTH),
            coupon_code=_truncate(raw.code, CODE_MAX_LENGTH),
            platform_id=context.platform_id,
            merchant_id=context.merchant_id,
            source_url=source_url[:URL_MAX_LENGTH],
            image_url=_truncate(raw.image_url, URL_MAX_LENGTH),
            status="active",
            is_featured=self.rng.random() < context.featured_rate,
            valid_until=self.resolve_valid_until(raw.valid_until, context.valid_days, now),
            scraped_at=now,
            platform_slug=context.platform_slug,
        )

    @staticmethod
    def build_description(title: str, description: Optional[str], context: NormalizationContext) -> str:
        if description and description.strip():
            text = description.strip()
        else:
            text = f"{title} - {context.promo_phrase}"
        return text[:DESCRIPTION_MAX_LENGTH]

    @staticmethod
    def resolve_valid_until(value: Optional[Union[datetime, str]], valid_days: int, now: datetime) -> datetime:
        """Use the provided expiry if it parses, otherwise now + platform offset."""
        parsed: Optional[datetime] = None
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, str) and value.strip():
            try:
                parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
            except ValueError:
                logger.debug("valid_until_unparseable", value=value)
        if parsed is None:
            return now + timedelta(days=valid_days)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
