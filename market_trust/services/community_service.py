# market_trust/services/community_service.py

"""Synchronous admission of anonymous community delivery prices."""

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any

from market_trust.config.settings import Settings
from market_trust.filters.community_validator import (
    contribution_weight,
    validate_submission,
)
from market_trust.models.community_submission import (
    CommunitySubmission,
    QuantityBucket,
)
from market_trust.storage.community_store import CommunityStore

logger = logging.getLogger("market_trust.community")

_PREFIX_RE = re.compile(r"^\d{3}$")
_ZIP_RE = re.compile(r"^\d{5}$")
_MONTH_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")
_HASH_RE = re.compile(r"^[0-9a-f]{64}$")


class MalformedSubmissionError(ValueError):
    """A submission field failed basic format validation."""


class SubmissionRefusedError(Exception):
    """A well-formed submission was refused before being stored."""

    def __init__(self, reason: str, message: str) -> None:
        super().__init__(message)
        self.reason = reason


@dataclass(frozen=True)
class SubmissionRequest:
    """Raw fields posted by the public submission endpoint."""

    area_prefix: str
    price_per_unit: Decimal | float | str
    raw_quantity: float
    delivery_month: str
    contributor_hash: str
    product_type: str = Settings.DEFAULT_PRODUCT_TYPE
    market_price_at_time: Decimal | float | str | None = None
    full_zip: str | None = None
    delivery_date: date | None = None
    supplier_id: str | None = None
    supplier_name: str | None = None
    is_directory_supplier: bool = False


def month_key(moment: date) -> str:
    """``YYYY-MM`` for a date or datetime."""
    return f"{moment.year:04d}-{moment.month:02d}"


def previous_month_key(moment: date) -> str:
    """``YYYY-MM`` of the month before *moment*."""
    first = date(moment.year, moment.month, 1)
    return month_key(first - timedelta(days=1))


def _parse_price(value: Decimal | float | str, label: str) -> Decimal:
    """Parse a finite price inside the community sanity band."""
    try:
        price = Decimal(str(value))
    except InvalidOperation as exc:
        raise MalformedSubmissionError(f"{label} is not a number") from exc
    if not price.is_finite():
        raise MalformedSubmissionError(f"{label} is not a number")
    if not (
        Settings.COMMUNITY_MIN_PRICE <= price <= Settings.COMMUNITY_MAX_PRICE
    ):
        raise MalformedSubmissionError(
            f"{label} must be between ${Settings.COMMUNITY_MIN_PRICE} "
            f"and ${Settings.COMMUNITY_MAX_PRICE}"
        )
    return price


def _check_fields(
    request: SubmissionRequest,
) -> tuple[Decimal, Decimal | None]:
    """Validate formats; returns the price and market snapshot."""
    if not _PREFIX_RE.match(request.area_prefix):
        raise MalformedSubmissionError("ZIP prefix must be 3 digits")
    if request.full_zip is not None and not _ZIP_RE.match(request.full_zip):
        raise MalformedSubmissionError("Full ZIP code must be 5 digits")
    if not _MONTH_RE.match(request.delivery_month):
        raise MalformedSubmissionError(
            "Delivery month must be YYYY-MM format"
        )
    if not _HASH_RE.match(request.contributor_hash):
        raise MalformedSubmissionError("Invalid contributor hash")
    if request.product_type not in Settings.PRODUCT_TYPES:
        raise MalformedSubmissionError(
            "Product type must be one of: "
            + ", ".join(Settings.PRODUCT_TYPES)
        )
    if request.raw_quantity <= 0:
        raise MalformedSubmissionError("Quantity must be positive")
    price = _parse_price(request.price_per_unit, "Price")
    market = (
        _parse_price(request.market_price_at_time, "Market price")
        if request.market_price_at_time is not None
        else None
    )
    return price, market


class CommunitySubmissionService:
    """Validates and records community submissions in one step.

    Status and reason are decided here, at creation, and never
    revisited by a later batch job.
    """

    def __init__(self, store: CommunityStore) -> None:
        self._store = store

    def submit(
        self,
        request: SubmissionRequest,
        now: datetime | None = None,
    ) -> CommunitySubmission:
        """Judge and persist a submission.

        Returns the stored record (status ``valid``, ``soft_excluded``
        or ``rejected``).  Raises :class:`MalformedSubmissionError` for
        bad fields and :class:`SubmissionRefusedError` for stale,
        rate-limited or duplicate submissions, none of which are stored.
        """
        at = now or datetime.now()
        price, market = _check_fields(request)

        delivered = date.fromisoformat(f"{request.delivery_month}-01")
        oldest = (at - timedelta(days=Settings.COMMUNITY_MAX_AGE_DAYS)).date()
        if delivered < oldest:
            raise SubmissionRefusedError(
                "stale_submission",
                "Delivery is too old to submit "
                f"(max {Settings.COMMUNITY_MAX_AGE_DAYS} days)",
            )

        current_month = month_key(at)
        recent = self._store.count_for_contributor(
            request.contributor_hash, current_month,
        )
        if recent >= Settings.COMMUNITY_MONTHLY_LIMIT:
            raise SubmissionRefusedError(
                "rate_limit_exceeded",
                f"Maximum {Settings.COMMUNITY_MONTHLY_LIMIT} "
                "submissions per month reached",
            )

        outcome = validate_submission(
            price, request.raw_quantity, market,
        )
        self._reject_duplicates(
            request, outcome.rounded_price, outcome.bucket,
        )

        months = [current_month, previous_month_key(at)]
        area_count = self._store.count_valid_in_area(
            request.area_prefix, request.product_type, months,
        )
        own_count = self._store.count_valid_in_area(
            request.area_prefix,
            request.product_type,
            months,
            contributor_hash=request.contributor_hash,
        )
        weight = contribution_weight(area_count, own_count)

        stored = self._store.add(
            CommunitySubmission(
                area_prefix=request.area_prefix,
                full_zip=request.full_zip,
                product_type=request.product_type,
                price_per_unit=outcome.rounded_price,
                delivery_month=request.delivery_month,
                delivery_date=request.delivery_date,
                quantity_bucket=outcome.bucket,
                market_price_at_time=market,
                status=outcome.status,
                rejection_reason=outcome.reason,
                contributor_hash=request.contributor_hash,
                contribution_weight=weight,
                supplier_id=request.supplier_id,
                supplier_name=request.supplier_name,
                is_directory_supplier=request.is_directory_supplier,
                created_at=at,
            )
        )
        logger.info(
            "Submission stored: area %s, $%s, %s, bucket %s, "
            "status %s, weight %.2f",
            stored.area_prefix,
            stored.price_per_unit,
            stored.product_type,
            stored.quantity_bucket.value,
            stored.status.value,
            stored.contribution_weight,
        )
        return stored

    def _reject_duplicates(
        self,
        request: SubmissionRequest,
        rounded_price: Decimal,
        bucket: QuantityBucket,
    ) -> None:
        common: dict[str, Any] = {
            "price": rounded_price,
            "bucket": bucket,
            "product_type": request.product_type,
            "delivery_month": request.delivery_month,
            "delivery_date": request.delivery_date,
        }
        if self._store.find_duplicate(
            contributor_hash=request.contributor_hash, **common,
        ):
            logger.info(
                "Duplicate submission refused: %s... already reported $%s",
                request.contributor_hash[:8],
                rounded_price,
            )
            raise SubmissionRefusedError(
                "already_submitted",
                "This delivery has already been shared",
            )
        if self._store.find_duplicate(
            area_prefix=request.area_prefix, **common,
        ):
            logger.info(
                "Area duplicate refused: $%s %s in %s already on file",
                rounded_price,
                request.product_type,
                request.area_prefix,
            )
            raise SubmissionRefusedError(
                "price_already_reported",
                "This price has already been reported in your area",
            )
