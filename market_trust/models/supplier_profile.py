# market_trust/models/supplier_profile.py

"""Location facts the proximity matcher needs about a supplier."""

from collections.abc import Iterable
from dataclasses import dataclass, field

from market_trust.models.price_record import PriceRecord


@dataclass
class SupplierLocationProfile:
    """A supplier's declared service area plus its current price."""

    supplier_id: str
    state: str
    name: str = ""
    counties: list[str] = field(default_factory=lambda: list[str]())
    zip_codes: list[str] = field(default_factory=lambda: list[str]())
    current_price: PriceRecord | None = None


def normalize_county(raw: str) -> str:
    """Lower-case and collapse whitespace in a county name."""
    return " ".join(raw.lower().split())


def normalize_zip(raw: str) -> str:
    """Reduce a ZIP (or ZIP+4) to a zero-padded 5-digit string.

    Returns ``""`` when no digits are present.
    """
    head = raw.strip().split("-", 1)[0]
    digits = "".join(ch for ch in head if ch.isdigit())
    if not digits:
        return ""
    return digits.zfill(5)[:5]


@dataclass(frozen=True)
class NormalizedArea:
    """Pre-normalised county and ZIP sets for O(1) overlap tests."""

    counties: frozenset[str]
    zip_codes: frozenset[str]

    @classmethod
    def from_declared(
        cls,
        counties: Iterable[str],
        zip_codes: Iterable[str],
    ) -> "NormalizedArea":
        """Build the value object from free-text declarations."""
        county_set = frozenset(
            c for c in (normalize_county(x) for x in counties) if c
        )
        zip_set = frozenset(
            z for z in (normalize_zip(x) for x in zip_codes) if z
        )
        return cls(counties=county_set, zip_codes=zip_set)

    @property
    def zip_prefixes(self) -> frozenset[str]:
        """3-digit prefixes of every served ZIP."""
        return frozenset(z[:3] for z in self.zip_codes)
