# market_trust/services/demand_aggregator.py

"""Supplier-facing demand signals: activity bands and market price."""

import logging
import statistics
from collections import defaultdict
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from market_trust.config.settings import Settings
from market_trust.models.activity import (
    ActivityBand,
    ActivityRank,
    InteractionCount,
)
from market_trust.models.supplier_profile import (
    NormalizedArea,
    SupplierLocationProfile,
    normalize_zip,
)
from market_trust.storage.rank_cache import ActivityRankCache

logger = logging.getLogger("market_trust.demand")

_THREE_PLACES = Decimal("0.001")


@dataclass
class AreaFacts:
    """Inputs for :func:`weighted_market_price`.

    ``median_prices`` maps a 3-digit ZIP prefix to the area's median
    current price; ``interactions`` are window counts per supplier/ZIP.
    """

    median_prices: dict[str, Decimal] = field(
        default_factory=lambda: dict[str, Decimal]()
    )
    interactions: list[InteractionCount] = field(
        default_factory=lambda: list[InteractionCount]()
    )


def rank_activity(
    counts: Mapping[str, int], now: datetime | None = None,
) -> ActivityRank:
    """Band every supplier by its share of window interactions.

    Small populations (< 10) use a median split since percentiles are
    meaningless there; larger ones use quartiles by rank position.
    """
    rows = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    total = len(rows)
    bands: dict[str, ActivityBand] = {}

    if total < Settings.ACTIVITY_SMALL_POPULATION:
        median = rows[total // 2][1] if total else 0
        for supplier_id, clicks in rows:
            if clicks == 0:
                bands[supplier_id] = ActivityBand.NEW
            elif clicks > median:
                bands[supplier_id] = ActivityBand.ACTIVE
            else:
                bands[supplier_id] = ActivityBand.GROWING
    else:
        for i, (supplier_id, clicks) in enumerate(rows):
            percentile = (total - i) / total * 100
            if clicks == 0:
                bands[supplier_id] = ActivityBand.NEW
            elif percentile >= 75:
                bands[supplier_id] = ActivityBand.HIGH
            elif percentile >= 50:
                bands[supplier_id] = ActivityBand.ACTIVE
            elif percentile >= 25:
                bands[supplier_id] = ActivityBand.GROWING
            else:
                bands[supplier_id] = ActivityBand.NEW

    return ActivityRank(
        bands=bands,
        total_interactions=sum(c for _, c in rows),
        computed_at=now or datetime.now(),
    )


def area_median_prices(
    profiles: Iterable[SupplierLocationProfile],
    product_type: str = Settings.DEFAULT_PRODUCT_TYPE,
) -> dict[str, Decimal]:
    """Median current price per 3-digit ZIP prefix served."""
    by_prefix: dict[str, list[Decimal]] = defaultdict(list)
    for profile in profiles:
        price = profile.current_price
        if price is None or price.product_type != product_type:
            continue
        area = NormalizedArea.from_declared([], profile.zip_codes)
        for prefix in area.zip_prefixes:
            by_prefix[prefix].append(price.price_per_unit)
    return {
        prefix: Decimal(statistics.median(prices)).quantize(
            _THREE_PLACES, rounding=ROUND_HALF_UP,
        )
        for prefix, prices in by_prefix.items()
    }


def weighted_market_price(
    supplier: SupplierLocationProfile,
    area_facts: AreaFacts,
) -> Decimal | None:
    """Demand-weighted average of area medians across the service area.

    Weights are other suppliers' interaction counts inside each ZIP
    prefix the supplier serves.  With no interaction signal at all
    the plain mean of the same medians is returned.  ``None`` when no
    served prefix has a known median.
    """
    prefixes = NormalizedArea.from_declared(
        [], supplier.zip_codes,
    ).zip_prefixes
    medians = {
        p: area_facts.median_prices[p]
        for p in sorted(prefixes)
        if p in area_facts.median_prices
    }
    if not medians:
        return None

    weights: dict[str, int] = dict.fromkeys(medians, 0)
    for row in area_facts.interactions:
        if row.supplier_id == supplier.supplier_id:
            continue
        prefix = normalize_zip(row.zip_code)[:3]
        if prefix in weights:
            weights[prefix] += row.count

    total_weight = sum(weights.values())
    if total_weight > 0:
        mean = sum(
            medians[p] * weights[p] for p in medians
        ) / Decimal(total_weight)
    else:
        mean = sum(medians.values()) / Decimal(len(medians))
    return Decimal(mean).quantize(_THREE_PLACES, rounding=ROUND_HALF_UP)


class DemandAggregator:
    """Serves activity bands from a TTL cache owned by this object.

    ``count_source`` returns window interaction counts for every
    active supplier; it is only called when the cache is cold.
    """

    def __init__(
        self,
        count_source: Callable[[], Mapping[str, int]],
        cache: ActivityRankCache | None = None,
    ) -> None:
        self._count_source = count_source
        self._cache = cache or ActivityRankCache()

    @property
    def cache(self) -> ActivityRankCache:
        return self._cache

    def activity_ranks(self, now: datetime | None = None) -> ActivityRank:
        """The full ranking, recomputed wholesale when the cache expired."""
        cached = self._cache.get()
        if cached is not None:
            return cached
        rank = rank_activity(self._count_source(), now)
        self._cache.put(rank)
        logger.info(
            "Activity ranks recomputed: %d suppliers ranked",
            len(rank.bands),
        )
        return rank

    def activity_rank(
        self, supplier_id: str, now: datetime | None = None,
    ) -> ActivityBand:
        """Band for one supplier; unknown suppliers are ``new``."""
        return self.activity_ranks(now).bands.get(
            supplier_id, ActivityBand.NEW,
        )
