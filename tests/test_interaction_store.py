# tests/test_interaction_store.py

"""Tests for the interaction log."""

import tempfile
import unittest
from datetime import datetime, timedelta
from pathlib import Path

from market_trust.models.activity import InteractionCount
from market_trust.storage.interaction_store import InteractionStore

NOW = datetime(2026, 1, 15, 12, 0, 0)


class TestInteractionStore(unittest.TestCase):
    """Window counts and the active-supplier roster."""

    def setUp(self) -> None:
        self.tmp_dir = tempfile.mkdtemp()
        self.store = InteractionStore(db_path=Path(self.tmp_dir) / "i.db")

    def tearDown(self) -> None:
        self.store.close()

    def test_unknown_action_rejected(self) -> None:
        with self.assertRaises(ValueError):
            self.store.record("s1", action_type="sms")

    def test_registered_supplier_counts_zero(self) -> None:
        self.store.register_supplier("quiet")
        self.store.register_supplier("quiet")
        self.assertEqual(self.store.counts_by_supplier(NOW), {"quiet": 0})

    def test_counts_respect_window(self) -> None:
        self.store.record("s1", at=NOW - timedelta(days=1))
        self.store.record("s1", at=NOW - timedelta(days=5))
        self.store.record("s1", at=NOW - timedelta(days=31))
        self.store.record("s2", at=NOW - timedelta(days=40))
        self.assertEqual(
            self.store.counts_by_supplier(NOW), {"s1": 2, "s2": 0},
        )

    def test_counts_by_zip_skips_missing_zip(self) -> None:
        self.store.record("s1", "06103", at=NOW - timedelta(days=1))
        self.store.record("s1", "06103", at=NOW - timedelta(days=2))
        self.store.record("s1", "06450", at=NOW - timedelta(days=2))
        self.store.record("s1", None, at=NOW - timedelta(days=2))
        rows = sorted(
            self.store.counts_by_zip(NOW), key=lambda r: r.zip_code,
        )
        self.assertEqual(
            rows,
            [
                InteractionCount("s1", "06103", 2),
                InteractionCount("s1", "06450", 1),
            ],
        )

    def test_supplier_demand_breakdown(self) -> None:
        at = NOW - timedelta(days=1)
        self.store.record("s1", action_type="click", at=at)
        self.store.record("s1", action_type="call", at=at)
        self.store.record("s1", action_type="call", at=at)
        self.store.record("s1", action_type="website", at=at)
        demand = self.store.supplier_demand("s1", NOW)
        self.assertEqual(
            (demand.clicks, demand.calls, demand.websites), (4, 2, 1),
        )

    def test_supplier_demand_unknown_supplier(self) -> None:
        demand = self.store.supplier_demand("ghost", NOW)
        self.assertEqual(
            (demand.clicks, demand.calls, demand.websites), (0, 0, 0),
        )


if __name__ == "__main__":
    unittest.main()
