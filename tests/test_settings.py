# tests/test_settings.py

"""Tests for the Settings configuration class."""

import unittest
from decimal import Decimal
from pathlib import Path

from market_trust.config.settings import Settings


class TestSettings(unittest.TestCase):
    """Verify policy constants keep their contracted values."""

    def test_price_band(self) -> None:
        """Sanity band is $1.50-$8.00."""
        self.assertEqual(Settings.MIN_PRICE, Decimal("1.50"))
        self.assertEqual(Settings.MAX_PRICE, Decimal("8.00"))

    def test_expiry_and_heal_windows(self) -> None:
        """24h default expiry, 7-day heal lookback, 48h extension."""
        self.assertEqual(Settings.PRICE_TTL_HOURS, 24)
        self.assertEqual(Settings.HEAL_LOOKBACK_DAYS, 7)
        self.assertEqual(Settings.HEAL_EXTENSION_HOURS, 48)

    def test_signal_lookback_is_seven_days(self) -> None:
        self.assertEqual(Settings.SIGNAL_LOOKBACK_HOURS, 168)

    def test_validation_threshold_table(self) -> None:
        """Every bucket has soft < hard and the contracted numbers."""
        expected = {
            "small": (0.45, 0.65),
            "medium": (0.40, 0.60),
            "large": (0.40, 0.60),
            "xlarge": (0.35, 0.55),
            "bulk": (0.35, 0.55),
        }
        self.assertEqual(Settings.VALIDATION_THRESHOLDS, expected)
        for bucket, (soft, hard) in expected.items():
            with self.subTest(bucket=bucket):
                self.assertLess(soft, hard)

    def test_quantity_bucket_bounds_ascending(self) -> None:
        bounds = [b for b, _ in Settings.QUANTITY_BUCKETS]
        self.assertEqual(bounds, [100, 200, 350, 500])

    def test_rank_ttl_is_one_hour(self) -> None:
        self.assertEqual(Settings.ACTIVITY_RANK_TTL, 3600.0)

    def test_proximity_constants(self) -> None:
        self.assertEqual(Settings.PROXIMITY_MAX_AGE_DAYS, 14)
        self.assertEqual(Settings.PROXIMITY_DEFAULT_LIMIT, 5)
        self.assertEqual(Settings.PROXIMITY_MIN_STRONG, 3)

    def test_product_types_include_default(self) -> None:
        self.assertIn(
            Settings.DEFAULT_PRODUCT_TYPE, Settings.PRODUCT_TYPES,
        )

    def test_path_constants_are_paths(self) -> None:
        """Path-typed settings are Path instances."""
        self.assertIsInstance(Settings.BASE_DIR, Path)
        self.assertIsInstance(Settings.PRICE_DB_PATH, Path)
        self.assertIsInstance(Settings.COMMUNITY_DB_PATH, Path)
        self.assertIsInstance(Settings.INTERACTION_DB_PATH, Path)
        self.assertIsInstance(Settings.LOGS_DIR, Path)

    def test_contributor_salt_non_empty(self) -> None:
        self.assertTrue(Settings.CONTRIBUTOR_HASH_SALT)


if __name__ == "__main__":
    unittest.main()
