# tests/test_proximity_matcher.py

"""Tests for the nearby-supplier matcher."""

import unittest
from datetime import datetime, timedelta
from decimal import Decimal

from market_trust.filters.proximity_matcher import (
    AreaIndex,
    ProximityMatcher,
    overlap_score,
)
from market_trust.models.price_record import PriceRecord
from market_trust.models.supplier_profile import (
    NormalizedArea,
    SupplierLocationProfile,
)

NOW = datetime(2026, 1, 15, 12, 0, 0)


def _profile(
    supplier_id: str,
    price: str | None = "3.00",
    state: str = "CT",
    counties: list[str] | None = None,
    zips: list[str] | None = None,
    age: timedelta = timedelta(hours=2),
) -> SupplierLocationProfile:
    current = (
        PriceRecord(supplier_id, Decimal(price), NOW - age)
        if price is not None
        else None
    )
    return SupplierLocationProfile(
        supplier_id=supplier_id,
        state=state,
        name=supplier_id.title(),
        counties=counties or [],
        zip_codes=zips or [],
        current_price=current,
    )


class TestOverlapScore(unittest.TestCase):

    def test_counties_outweigh_zips(self) -> None:
        a = NormalizedArea.from_declared(["Hartford"], ["06103", "06104"])
        b = NormalizedArea.from_declared(["hartford"], ["06103"])
        self.assertEqual(overlap_score(a, b), 11)

    def test_no_overlap(self) -> None:
        a = NormalizedArea.from_declared(["Hartford"], [])
        b = NormalizedArea.from_declared(["Tolland"], [])
        self.assertEqual(overlap_score(a, b), 0)


class TestProximityMatcher(unittest.TestCase):
    """Ranking, eligibility and the fallback list."""

    def setUp(self) -> None:
        self.target = _profile(
            "target", counties=["Hartford"], zips=["06103", "06104"],
        )
        self.matcher = ProximityMatcher()

    def test_strong_matches_outrank_cheaper_unrelated(self) -> None:
        pool = [
            self.target,
            _profile("c", "3.30", counties=["Hartford"]),
            _profile("a", "3.10", counties=["hartford "]),
            _profile("b", "3.20", counties=["HARTFORD"]),
            _profile("cheap", "2.90", counties=["Litchfield"]),
        ]
        result = self.matcher.find_nearby(self.target, pool, now=NOW)
        self.assertEqual(
            [m.profile.supplier_id for m in result], ["a", "b", "c"],
        )
        self.assertTrue(all(m.is_strong for m in result))

    def test_score_before_price(self) -> None:
        pool = [
            _profile("zip_only", "2.80", zips=["06103"]),
            _profile("county", "3.40", counties=["Hartford"]),
            _profile("both", "3.60", counties=["Hartford"], zips=["06104"]),
        ]
        result = self.matcher.find_nearby(self.target, pool, now=NOW)
        self.assertEqual(
            [m.profile.supplier_id for m in result],
            ["both", "county", "zip_only"],
        )
        self.assertEqual([m.score for m in result], [11, 10, 1])

    def test_limit_applies_to_strong_list(self) -> None:
        pool = [
            _profile(f"s{i}", f"3.{i}0", counties=["Hartford"])
            for i in range(6)
        ]
        self.assertEqual(
            len(self.matcher.find_nearby(self.target, pool, 5, NOW)), 5,
        )
        self.assertEqual(
            len(self.matcher.find_nearby(self.target, pool, 2, NOW)), 2,
        )

    def test_fallback_capped_at_three(self) -> None:
        pool = [
            _profile("strong", "3.50", counties=["Hartford"]),
            _profile("w1", "2.90"),
            _profile("w2", "3.00"),
            _profile("w3", "3.05"),
            _profile("w4", "3.08"),
        ]
        result = self.matcher.find_nearby(self.target, pool, now=NOW)
        self.assertEqual(
            [m.profile.supplier_id for m in result], ["strong", "w1", "w2"],
        )

    def test_fallback_respects_smaller_limit(self) -> None:
        pool = [_profile("w1", "2.90"), _profile("w2", "3.00")]
        result = self.matcher.find_nearby(self.target, pool, 1, NOW)
        self.assertEqual([m.profile.supplier_id for m in result], ["w1"])

    def test_price_tie_prefers_fresher(self) -> None:
        pool = [
            _profile("older", "3.00", age=timedelta(days=3)),
            _profile("newer", "3.00", age=timedelta(hours=1)),
        ]
        result = self.matcher.find_nearby(self.target, pool, now=NOW)
        self.assertEqual(
            [m.profile.supplier_id for m in result], ["newer", "older"],
        )

    def test_other_state_excluded(self) -> None:
        pool = [_profile("ma", "2.50", state="MA", counties=["Hartford"])]
        self.assertEqual(self.matcher.find_nearby(self.target, pool, now=NOW), [])

    def test_state_compare_ignores_case(self) -> None:
        pool = [_profile("ct", "3.00", state=" ct")]
        self.assertEqual(
            len(self.matcher.find_nearby(self.target, pool, now=NOW)), 1,
        )

    def test_self_never_matched(self) -> None:
        self.assertEqual(
            self.matcher.find_nearby(self.target, [self.target], now=NOW), [],
        )

    def test_missing_or_old_price_excluded(self) -> None:
        pool = [
            _profile("none", None, counties=["Hartford"]),
            _profile("old", "3.00", counties=["Hartford"],
                     age=timedelta(days=15)),
        ]
        self.assertEqual(self.matcher.find_nearby(self.target, pool, now=NOW), [])

    def test_expired_but_recent_price_still_eligible(self) -> None:
        pool = [_profile("week", "3.00", age=timedelta(days=7))]
        self.assertEqual(
            len(self.matcher.find_nearby(self.target, pool, now=NOW)), 1,
        )

    def test_empty_pool(self) -> None:
        self.assertEqual(self.matcher.find_nearby(self.target, [], now=NOW), [])

    def test_batch_normalises_each_profile_once(self) -> None:
        index = AreaIndex()
        matcher = ProximityMatcher(index)
        second = _profile("second", counties=["Hartford"])
        pool = [
            self.target,
            second,
            _profile("x", "3.10", counties=["Hartford"]),
            _profile("y", "3.20"),
        ]
        results = matcher.find_nearby_batch(
            [self.target, second], pool, now=NOW,
        )
        self.assertEqual(set(results), {"target", "second"})
        self.assertEqual(
            [m.profile.supplier_id for m in results["target"]],
            ["second", "x", "y"],
        )
        self.assertEqual(len(index), 4)


if __name__ == "__main__":
    unittest.main()
