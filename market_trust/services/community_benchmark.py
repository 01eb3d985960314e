# market_trust/services/community_benchmark.py

"""Area benchmark built from valid community submissions."""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from market_trust.config.settings import Settings
from market_trust.models.community_submission import (
    CommunitySubmission,
    QuantityBucket,
)
from market_trust.storage.community_store import CommunityStore

logger = logging.getLogger("market_trust.benchmark")


@dataclass
class BucketStats:
    """Median price for one quantity bucket."""

    median: Decimal
    count: int


@dataclass
class CommunityBenchmark:
    """Aggregate view of recent community prices in an area.

    When ``has_data`` is False only the counts and ``data_freshness``
    are meaningful; the caller shows a growth prompt instead.
    """

    area_prefix: str
    product_type: str
    has_data: bool
    delivery_count: int = 0
    contributor_count: int = 0
    data_freshness: str = "fresh"
    median_price: Decimal | None = None
    weighted_average: Decimal | None = None
    typical_range: tuple[Decimal, Decimal] | None = None
    by_bucket: dict[QuantityBucket, BucketStats] = field(
        default_factory=lambda: dict[QuantityBucket, BucketStats]()
    )
    small_vs_bulk_spread: Decimal | None = None
    confidence_score: float = 0.0
    confidence_level: str = "insufficient"


def months_back(now: date, count: int) -> list[str]:
    """``YYYY-MM`` keys for the current and previous ``count - 1`` months."""
    keys: list[str] = []
    year, month = now.year, now.month
    for _ in range(count):
        keys.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return keys


def _median(prices: list[Decimal]) -> Decimal:
    """Upper median of an ascending list."""
    return prices[len(prices) // 2]


def _weighted_average(
    submissions: list[CommunitySubmission],
) -> Decimal:
    total_weight = sum(
        Decimal(str(s.contribution_weight)) for s in submissions
    )
    if total_weight == 0:
        total = sum(s.price_per_unit for s in submissions)
        mean = total / len(submissions)
    else:
        weighted = sum(
            s.price_per_unit * Decimal(str(s.contribution_weight))
            for s in submissions
        )
        mean = weighted / total_weight
    return mean.quantize(Decimal("0.001"), rounding=ROUND_HALF_UP)


def confidence(
    delivery_count: int, contributor_count: int, days_since_newest: int,
) -> tuple[float, str]:
    """Score (0-1) and level for a benchmark's trustworthiness."""
    delivery_factor = min(delivery_count / 10, 1.0)
    contributor_factor = min(contributor_count / 5, 1.0)
    if days_since_newest < 14:
        recency = 1.0
    elif days_since_newest < 30:
        recency = 0.7
    else:
        recency = 0.4
    score = (
        delivery_factor * 0.4
        + contributor_factor * 0.3
        + recency * 0.3
    )
    if score >= 0.8:
        level = "high"
    elif score >= 0.5:
        level = "medium"
    else:
        level = "low"
    return round(score, 2), level


class CommunityBenchmarkService:
    """Computes area benchmarks; soft-excluded and rejected rows never count."""

    def __init__(self, store: CommunityStore) -> None:
        self._store = store

    def benchmark(
        self,
        area_prefix: str,
        product_type: str = Settings.DEFAULT_PRODUCT_TYPE,
        months: int = Settings.BENCHMARK_DEFAULT_MONTHS,
        now: datetime | None = None,
    ) -> CommunityBenchmark:
        """Build the benchmark for one area and product type."""
        at = now or datetime.now()
        submissions = self._store.valid_in_area(
            area_prefix, product_type, months_back(at.date(), months),
        )
        contributors = {s.contributor_hash for s in submissions}
        result = CommunityBenchmark(
            area_prefix=area_prefix,
            product_type=product_type,
            has_data=False,
            delivery_count=len(submissions),
            contributor_count=len(contributors),
        )

        if submissions:
            cutoff = at - timedelta(days=Settings.BENCHMARK_FRESHNESS_DAYS)
            fresh = [
                s for s in submissions
                if s.created_at is not None and s.created_at > cutoff
            ]
            if not fresh:
                result.data_freshness = "stale"
                result.confidence_level = "stale"
                return result

        if (
            result.delivery_count < Settings.BENCHMARK_MIN_DELIVERIES
            or result.contributor_count < Settings.BENCHMARK_MIN_CONTRIBUTORS
        ):
            result.confidence_score = round(
                result.delivery_count
                / Settings.BENCHMARK_MIN_DELIVERIES * 0.5
                + result.contributor_count
                / Settings.BENCHMARK_MIN_CONTRIBUTORS * 0.5,
                2,
            )
            logger.debug(
                "Benchmark %s/%s below threshold (%d deliveries, %d contributors)",
                area_prefix,
                product_type,
                result.delivery_count,
                result.contributor_count,
            )
            return result

        prices = sorted(s.price_per_unit for s in submissions)
        result.has_data = True
        result.median_price = _median(prices)
        result.weighted_average = _weighted_average(submissions)
        if len(prices) >= 5:
            result.typical_range = (
                prices[int(len(prices) * 0.25)],
                prices[int(len(prices) * 0.75)],
            )

        for bucket in QuantityBucket:
            bucket_prices = sorted(
                s.price_per_unit
                for s in submissions
                if s.quantity_bucket is bucket
            )
            if bucket_prices:
                result.by_bucket[bucket] = BucketStats(
                    median=_median(bucket_prices),
                    count=len(bucket_prices),
                )

        small = result.by_bucket.get(QuantityBucket.SMALL)
        bulk = result.by_bucket.get(QuantityBucket.BULK)
        if small and bulk and small.median > bulk.median:
            result.small_vs_bulk_spread = small.median - bulk.median

        newest = submissions[0].created_at or at
        result.confidence_score, result.confidence_level = confidence(
            result.delivery_count,
            result.contributor_count,
            (at - newest).days,
        )
        return result
