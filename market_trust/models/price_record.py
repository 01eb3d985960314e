# market_trust/models/price_record.py

"""Supplier price observation model."""

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from market_trust.config.settings import Settings

_THREE_PLACES = Decimal("0.001")


class SourceKind(str, Enum):
    """Where a price observation came from."""

    SCRAPED = "scraped"
    MANUAL = "manual"
    USER_REPORTED = "user_reported"
    AGGREGATOR_SIGNAL = "aggregator_signal"  # market intelligence only
    SUPPLIER_SMS = "supplier_sms"
    SUPPLIER_DIRECT = "supplier_direct"


class PriceOutOfRangeError(ValueError):
    """Raised when a price falls outside the sanity band."""


def to_price(value: Decimal | float | str) -> Decimal:
    """Coerce *value* to a 3-decimal fixed-point price."""
    return Decimal(str(value)).quantize(
        _THREE_PLACES, rounding=ROUND_HALF_UP,
    )


@dataclass(frozen=True)
class PriceRecord:
    """One observation of a supplier's per-gallon delivery price.

    Records are append-only.  Only the store may flip ``is_valid`` or
    push ``expires_at`` forward; everything else is fixed at creation.
    """

    supplier_id: str
    price_per_unit: Decimal
    observed_at: datetime
    expires_at: datetime | None = None
    min_quantity: int = Settings.DEFAULT_MIN_QUANTITY
    product_type: str = Settings.DEFAULT_PRODUCT_TYPE
    source_kind: SourceKind = SourceKind.SCRAPED
    source_url: str = ""
    is_valid: bool = True
    note: str = ""
    record_id: int | None = None

    def __post_init__(self) -> None:
        price = to_price(self.price_per_unit)
        if not Settings.MIN_PRICE <= price <= Settings.MAX_PRICE:
            raise PriceOutOfRangeError(
                f"Price ${price} outside valid range "
                f"(${Settings.MIN_PRICE}-${Settings.MAX_PRICE}) "
                f"for supplier {self.supplier_id}"
            )
        object.__setattr__(self, "price_per_unit", price)
        object.__setattr__(
            self, "source_kind", SourceKind(self.source_kind),
        )
        if self.expires_at is None:
            object.__setattr__(
                self,
                "expires_at",
                self.observed_at
                + timedelta(hours=Settings.PRICE_TTL_HOURS),
            )

    @property
    def expiry(self) -> datetime:
        """The expiry instant, defaulted from the TTL when unset."""
        if self.expires_at is not None:
            return self.expires_at
        return self.observed_at + timedelta(hours=Settings.PRICE_TTL_HOURS)

    @property
    def is_signal_only(self) -> bool:
        """True for observations that must never be displayed."""
        return self.source_kind is SourceKind.AGGREGATOR_SIGNAL

    def is_displayable(self, now: datetime) -> bool:
        """Valid, unexpired and not an aggregator signal."""
        return (
            self.is_valid
            and self.expiry > now
            and not self.is_signal_only
        )

    def with_id(self, record_id: int) -> "PriceRecord":
        """Return a copy carrying the store-assigned identifier."""
        return replace(self, record_id=record_id)
