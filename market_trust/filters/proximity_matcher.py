# market_trust/filters/proximity_matcher.py

"""Ranked "comparable nearby suppliers" for side-by-side display.

Locality is administrative-area overlap (counties and ZIPs), not
geometric distance.  Everything here works on already-loaded
profiles; there is no I/O.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from market_trust.config.settings import Settings
from market_trust.models.price_record import PriceRecord
from market_trust.models.supplier_profile import (
    NormalizedArea,
    SupplierLocationProfile,
)

logger = logging.getLogger("market_trust.proximity")


@dataclass(frozen=True)
class NearbySupplier:
    """One comparison candidate with its overlap score."""

    profile: SupplierLocationProfile
    score: int
    price: PriceRecord

    @property
    def is_strong(self) -> bool:
        return self.score > 0


class AreaIndex:
    """Normalised service areas for one matching batch.

    Each profile is normalised at most once, however many candidate
    pairs it takes part in.
    """

    def __init__(self) -> None:
        self._areas: dict[str, NormalizedArea] = {}

    def area_for(self, profile: SupplierLocationProfile) -> NormalizedArea:
        area = self._areas.get(profile.supplier_id)
        if area is None:
            area = NormalizedArea.from_declared(
                profile.counties, profile.zip_codes,
            )
            self._areas[profile.supplier_id] = area
        return area

    def __len__(self) -> int:
        return len(self._areas)


def overlap_score(a: NormalizedArea, b: NormalizedArea) -> int:
    """``10 x shared counties + shared ZIPs``."""
    return (
        Settings.PROXIMITY_COUNTY_WEIGHT * len(a.counties & b.counties)
        + len(a.zip_codes & b.zip_codes)
    )


def _rank_key(
    match: NearbySupplier,
) -> tuple[int, Decimal, float]:
    """Relevance first, then cheaper, then more recently observed."""
    return (
        -match.score,
        match.price.price_per_unit,
        -match.price.observed_at.timestamp(),
    )


class ProximityMatcher:
    """Finds comparable suppliers for a target supplier."""

    def __init__(self, index: AreaIndex | None = None) -> None:
        self._index = index or AreaIndex()

    def _eligible(
        self,
        supplier: SupplierLocationProfile,
        candidate: SupplierLocationProfile,
        cutoff: datetime,
    ) -> bool:
        if candidate.supplier_id == supplier.supplier_id:
            return False
        if candidate.state.strip().upper() != supplier.state.strip().upper():
            return False
        price = candidate.current_price
        return price is not None and price.observed_at >= cutoff

    def find_nearby(
        self,
        supplier: SupplierLocationProfile,
        candidate_pool: Iterable[SupplierLocationProfile],
        limit: int = Settings.PROXIMITY_DEFAULT_LIMIT,
        now: datetime | None = None,
    ) -> list[NearbySupplier]:
        """Return an ordered, capped comparison list.

        With at least three strong (score > 0) matches the top
        ``limit`` strong matches are returned.  Otherwise a short
        fallback list of at most three is built: any strong matches
        first, then same-state candidates by price.  An empty list
        means "hide the comparison section".
        """
        cutoff = (now or datetime.now()) - timedelta(
            days=Settings.PROXIMITY_MAX_AGE_DAYS
        )
        target_area = self._index.area_for(supplier)

        scored: list[NearbySupplier] = []
        for candidate in candidate_pool:
            price = candidate.current_price
            if price is None or not self._eligible(
                supplier, candidate, cutoff,
            ):
                continue
            scored.append(
                NearbySupplier(
                    profile=candidate,
                    score=overlap_score(
                        target_area, self._index.area_for(candidate),
                    ),
                    price=price,
                )
            )

        if not scored:
            logger.debug(
                "No comparable suppliers for %s", supplier.supplier_id,
            )
            return []

        scored.sort(key=_rank_key)
        strong = [m for m in scored if m.is_strong]

        if len(strong) >= Settings.PROXIMITY_MIN_STRONG:
            return strong[:max(limit, 0)]

        cap = min(Settings.PROXIMITY_FALLBACK_CAP, len(scored), max(limit, 0))
        logger.debug(
            "Only %d strong matches for %s, falling back to %d "
            "same-state suppliers",
            len(strong),
            supplier.supplier_id,
            cap,
        )
        return scored[:cap]

    def find_nearby_batch(
        self,
        suppliers: Sequence[SupplierLocationProfile],
        candidate_pool: Sequence[SupplierLocationProfile],
        limit: int = Settings.PROXIMITY_DEFAULT_LIMIT,
        now: datetime | None = None,
    ) -> dict[str, list[NearbySupplier]]:
        """Run :meth:`find_nearby` for many targets over one pool."""
        at = now or datetime.now()
        results = {
            s.supplier_id: self.find_nearby(s, candidate_pool, limit, at)
            for s in suppliers
        }
        logger.info(
            "Matched %d suppliers against a pool of %d (%d areas normalised)",
            len(suppliers),
            len(candidate_pool),
            len(self._index),
        )
        return results
