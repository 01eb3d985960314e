# market_trust/filters/community_validator.py

"""Plausibility rules for anonymous community price submissions.

Everything here is a pure function of its arguments so a stored
submission can always be re-judged from its own fields: the market
price is a snapshot taken by the caller, never re-fetched.
"""

import hashlib
import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from market_trust.config.settings import Settings
from market_trust.models.community_submission import (
    QuantityBucket,
    ValidationStatus,
)

logger = logging.getLogger("market_trust.community")

REASON_HARD_REJECT = "price_outside_expected_range"
REASON_SOFT_EXCLUDE = "moderate_market_deviation"

_NICKELS_PER_DOLLAR = Decimal(20)


@dataclass(frozen=True)
class ValidationOutcome:
    """Result of judging one submission against the market snapshot."""

    rounded_price: Decimal
    bucket: QuantityBucket
    status: ValidationStatus
    reason: str | None = None
    deviation: float | None = None


def round_to_nickel(price: Decimal | float | str) -> Decimal:
    """Round to the nearest $0.05 so exact prices can't fingerprint anyone."""
    nickels = (Decimal(str(price)) * _NICKELS_PER_DOLLAR).quantize(
        Decimal(1), rounding=ROUND_HALF_UP,
    )
    return (nickels / _NICKELS_PER_DOLLAR).quantize(Decimal("0.01"))


def quantity_bucket(raw_quantity: float) -> QuantityBucket:
    """Map raw gallons onto the fixed order-size bands."""
    for upper, bucket in Settings.QUANTITY_BUCKETS:
        if raw_quantity < upper:
            return QuantityBucket(bucket)
    return QuantityBucket.BULK


def market_deviation(
    price: Decimal, market_price: Decimal,
) -> float:
    """Relative distance of *price* from the market snapshot."""
    return float(abs(price - market_price) / market_price)


def validate_submission(
    submitted_price: Decimal | float | str,
    raw_quantity: float,
    market_price_at_time: Decimal | float | str | None = None,
) -> ValidationOutcome:
    """Classify a submission as valid, soft-excluded or rejected.

    Smaller orders tolerate wider deviation because fixed delivery
    fees inflate their effective per-gallon price.  Without a market
    snapshot the submission is accepted as valid.
    """
    rounded = round_to_nickel(submitted_price)
    bucket = quantity_bucket(raw_quantity)

    if market_price_at_time is None:
        return ValidationOutcome(rounded, bucket, ValidationStatus.VALID)

    market = Decimal(str(market_price_at_time))
    if market <= 0:
        return ValidationOutcome(rounded, bucket, ValidationStatus.VALID)

    deviation = market_deviation(rounded, market)
    soft_limit, hard_limit = Settings.VALIDATION_THRESHOLDS[bucket.value]

    if deviation > hard_limit:
        logger.warning(
            "Hard reject: $%s vs market $%s (%.1f%% deviation, %s)",
            rounded, market, deviation * 100, bucket.value,
        )
        return ValidationOutcome(
            rounded, bucket, ValidationStatus.REJECTED,
            REASON_HARD_REJECT, deviation,
        )
    if deviation > soft_limit:
        logger.info(
            "Soft exclude: $%s vs market $%s (%.1f%% deviation, %s)",
            rounded, market, deviation * 100, bucket.value,
        )
        return ValidationOutcome(
            rounded, bucket, ValidationStatus.SOFT_EXCLUDED,
            REASON_SOFT_EXCLUDE, deviation,
        )
    return ValidationOutcome(
        rounded, bucket, ValidationStatus.VALID, None, deviation,
    )


def contribution_weight(
    area_valid_count: int, contributor_valid_count: int,
) -> float:
    """Cap one contributor's influence on a monthly area aggregate.

    The ceiling tightens as the area accumulates deliveries, and each
    prior valid delivery from the same contributor shaves 0.2 off
    (never below 0.5) before the ceiling applies.
    """
    if area_valid_count < 5:
        max_weight = 0.40
    elif area_valid_count < 10:
        max_weight = 0.30
    else:
        max_weight = 0.20

    if contributor_valid_count > 0:
        weight = max(0.5, 1.0 - contributor_valid_count * 0.2)
    else:
        weight = 1.0

    capped = min(weight, max_weight * (area_valid_count + 1))
    return round(min(capped, 1.0), 2)


def hash_contributor(device_id: str, salt: str | None = None) -> str:
    """One-way SHA-256 contributor key; never reversible to a device."""
    if salt is None:
        salt = Settings.CONTRIBUTOR_HASH_SALT
    material = device_id + salt
    return hashlib.sha256(material.encode("utf-8")).hexdigest()
