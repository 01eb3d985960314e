# tests/test_price_lifecycle.py

"""Tests for current-price derivation and auto-heal."""

import tempfile
import unittest
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path

from market_trust.models.price_record import PriceRecord, SourceKind
from market_trust.models.supplier_profile import SupplierLocationProfile
from market_trust.services.price_lifecycle import (
    PriceLifecycleManager,
    Staleness,
)
from market_trust.storage.price_store import PriceStore

NOW = datetime(2026, 1, 15, 12, 0, 0)


class TestPriceLifecycleManager(unittest.TestCase):
    """Display reads, the heal pass and staleness bands."""

    def setUp(self) -> None:
        self.tmp_dir = tempfile.mkdtemp()
        self.store = PriceStore(db_path=Path(self.tmp_dir) / "p.db")
        self.manager = PriceLifecycleManager(self.store)

    def tearDown(self) -> None:
        self.store.close()

    def _add(
        self,
        supplier_id: str,
        price: str,
        observed: datetime,
        **kwargs: object,
    ) -> PriceRecord:
        return self.store.add(
            PriceRecord(
                supplier_id,
                Decimal(price),
                observed,
                **kwargs,  # type: ignore[arg-type]
            )
        )

    # ── current_price ────────────────────────────────────

    def test_current_price_newest_wins(self) -> None:
        self._add("s1", "3.10", NOW - timedelta(hours=6))
        self._add("s1", "3.40", NOW - timedelta(hours=1))
        current = self.manager.current_price("s1", NOW)
        assert current is not None
        self.assertEqual(current.price_per_unit, Decimal("3.400"))

    def test_current_price_none_when_expired(self) -> None:
        self._add("s1", "3.10", NOW - timedelta(days=3))
        self.assertIsNone(self.manager.current_price("s1", NOW))

    def test_current_price_does_not_heal(self) -> None:
        stored = self._add("s1", "3.10", NOW - timedelta(days=3))
        self.manager.current_price("s1", NOW)
        assert stored.record_id is not None
        fetched = self.store.get(stored.record_id)
        assert fetched is not None
        self.assertEqual(fetched.expires_at, stored.expires_at)

    def test_invalid_record_hidden(self) -> None:
        stored = self._add("s1", "3.10", NOW - timedelta(hours=1))
        assert stored.record_id is not None
        self.store.set_validity(stored.record_id, False)
        self.assertIsNone(self.manager.current_price("s1", NOW))

    def test_aggregator_signal_never_returned(self) -> None:
        self._add(
            "s1",
            "2.90",
            NOW - timedelta(hours=1),
            source_kind=SourceKind.AGGREGATOR_SIGNAL,
        )
        self.assertIsNone(self.manager.current_price("s1", NOW))
        self.assertEqual(self.manager.current_prices(["s1"], NOW), {})

    def test_signal_newer_than_real_price_is_ignored(self) -> None:
        self._add("s1", "3.25", NOW - timedelta(hours=3))
        self._add(
            "s1",
            "2.90",
            NOW - timedelta(hours=1),
            source_kind=SourceKind.AGGREGATOR_SIGNAL,
        )
        current = self.manager.current_prices(["s1"], NOW)["s1"]
        self.assertEqual(current.price_per_unit, Decimal("3.250"))

    # ── current_prices and auto-heal ─────────────────────

    def test_batch_empty_input(self) -> None:
        self.assertEqual(self.manager.current_prices([], NOW), {})

    def test_batch_deduplicates_ids(self) -> None:
        self._add("s1", "3.10", NOW - timedelta(hours=1))
        prices = self.manager.current_prices(["s1", "s1"], NOW)
        self.assertEqual(list(prices), ["s1"])

    def test_auto_heal_extends_recent_expired(self) -> None:
        """A price observed 3 days ago is healed for 48 hours."""
        stored = self._add("s1", "3.10", NOW - timedelta(days=3))
        prices = self.manager.current_prices(["s1"], NOW)
        self.assertIn("s1", prices)
        self.assertEqual(prices["s1"].record_id, stored.record_id)
        self.assertEqual(
            prices["s1"].expires_at, NOW + timedelta(hours=48),
        )

    def test_auto_heal_is_idempotent(self) -> None:
        stored = self._add("s1", "3.10", NOW - timedelta(days=3))
        first = self.manager.current_prices(["s1"], NOW)
        second = self.manager.current_prices(["s1"], NOW)
        self.assertEqual(first, second)
        assert stored.record_id is not None
        fetched = self.store.get(stored.record_id)
        assert fetched is not None
        self.assertEqual(fetched.expires_at, NOW + timedelta(hours=48))

    def test_auto_heal_ignores_old_observations(self) -> None:
        self._add("s1", "3.10", NOW - timedelta(days=8))
        self.assertEqual(self.manager.current_prices(["s1"], NOW), {})

    def test_auto_heal_ignores_signals_and_invalid(self) -> None:
        self._add(
            "s1",
            "3.10",
            NOW - timedelta(days=2),
            source_kind=SourceKind.AGGREGATOR_SIGNAL,
        )
        bad = self._add("s2", "3.20", NOW - timedelta(days=2))
        assert bad.record_id is not None
        self.store.set_validity(bad.record_id, False)
        self.assertEqual(
            self.manager.current_prices(["s1", "s2"], NOW), {},
        )

    def test_auto_heal_only_touches_missing_suppliers(self) -> None:
        self._add("s1", "3.40", NOW - timedelta(hours=2))
        old_s1 = self._add("s1", "3.00", NOW - timedelta(days=2))
        self._add("s2", "3.10", NOW - timedelta(days=2))
        prices = self.manager.current_prices(["s1", "s2"], NOW)
        self.assertEqual(prices["s1"].price_per_unit, Decimal("3.400"))
        self.assertEqual(prices["s2"].price_per_unit, Decimal("3.100"))
        assert old_s1.record_id is not None
        untouched = self.store.get(old_s1.record_id)
        assert untouched is not None
        self.assertEqual(untouched.expires_at, old_s1.expires_at)

    def test_heal_logged(self) -> None:
        self._add("s1", "3.10", NOW - timedelta(days=3))
        with self.assertLogs("market_trust.lifecycle", level="INFO") as cm:
            self.manager.current_prices(["s1"], NOW)
        self.assertTrue(any("Auto-healed" in m for m in cm.output))

    def test_attach_current_prices(self) -> None:
        self._add("a", "3.15", NOW - timedelta(hours=1))
        profiles = [
            SupplierLocationProfile(supplier_id="a", state="CT"),
            SupplierLocationProfile(supplier_id="b", state="CT"),
        ]
        result = self.manager.attach_current_prices(profiles, NOW)
        self.assertIs(result, profiles)
        price = profiles[0].current_price
        assert price is not None
        self.assertEqual(price.price_per_unit, Decimal("3.150"))
        self.assertIsNone(profiles[1].current_price)

    # ── staleness ────────────────────────────────────────

    def test_staleness_bands(self) -> None:
        cases = [
            (timedelta(days=1), Staleness.FRESH),
            (timedelta(days=7), Staleness.STALE),
            (timedelta(days=13, hours=23), Staleness.STALE),
            (timedelta(days=14), Staleness.OUTDATED),
        ]
        for age, expected in cases:
            with self.subTest(age=age):
                record = PriceRecord("s1", Decimal("3.00"), NOW - age)
                self.assertEqual(
                    PriceLifecycleManager.staleness(record, NOW), expected,
                )


if __name__ == "__main__":
    unittest.main()
