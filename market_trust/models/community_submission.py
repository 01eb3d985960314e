# market_trust/models/community_submission.py

"""Anonymous community delivery-price submission model."""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum


class QuantityBucket(str, Enum):
    """Coarse order-size band derived once from raw gallons."""

    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    XLARGE = "xlarge"
    BULK = "bulk"


class ValidationStatus(str, Enum):
    """Plausibility verdict assigned at submission time."""

    VALID = "valid"
    SOFT_EXCLUDED = "soft_excluded"  # kept for audit, left out of aggregates
    REJECTED = "rejected"


@dataclass(frozen=True)
class CommunitySubmission:
    """A single crowd-reported delivery price.

    ``full_zip`` is only used for grouping and must never be echoed
    back in a response.  ``price_per_unit`` is already rounded to the
    nearest $0.05.
    """

    area_prefix: str
    product_type: str
    price_per_unit: Decimal
    delivery_month: str
    quantity_bucket: QuantityBucket
    contributor_hash: str
    status: ValidationStatus = ValidationStatus.VALID
    rejection_reason: str | None = None
    market_price_at_time: Decimal | None = None
    contribution_weight: float = 1.0
    full_zip: str | None = None
    delivery_date: date | None = None
    supplier_id: str | None = None
    supplier_name: str | None = None
    is_directory_supplier: bool = False
    created_at: datetime | None = None
    submission_id: int | None = None

    @property
    def counts_toward_aggregates(self) -> bool:
        """Only valid submissions feed benchmarks."""
        return self.status is ValidationStatus.VALID
