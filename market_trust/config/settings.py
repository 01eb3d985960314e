# market_trust/config/settings.py

"""Central configuration for the market_trust engine."""

import os
from decimal import Decimal
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Central configuration for the market_trust engine."""

    # --- Price records ---
    MIN_PRICE: Decimal = Decimal("1.50")        # Sanity band floor ($/gal)
    MAX_PRICE: Decimal = Decimal("8.00")        # Sanity band ceiling ($/gal)
    DEFAULT_MIN_QUANTITY: int = 150             # Gallons per price tier
    DEFAULT_PRODUCT_TYPE: str = "heating_oil"
    PRODUCT_TYPES: list[str] = ["heating_oil", "propane"]
    PRICE_TTL_HOURS: int = 24                   # Default expiry after observation

    # --- Auto-heal ---
    HEAL_LOOKBACK_DAYS: int = 7                 # Only heal recently observed prices
    HEAL_EXTENSION_HOURS: int = 48              # New expiry = now + this

    # --- Market signals (internal only) ---
    SIGNAL_LOOKBACK_HOURS: int = 168            # 7 days

    # --- Staleness ---
    STALE_AFTER_DAYS: int = 7                   # Reminder / scrape-resume window
    OUTDATED_AFTER_DAYS: int = 14               # "Call to confirm" territory

    # --- Proximity matching ---
    PROXIMITY_MAX_AGE_DAYS: int = 14            # Older prices drop out of the pool
    PROXIMITY_COUNTY_WEIGHT: int = 10
    PROXIMITY_MIN_STRONG: int = 3
    PROXIMITY_FALLBACK_CAP: int = 3
    PROXIMITY_DEFAULT_LIMIT: int = 5

    # --- Community submissions ---
    COMMUNITY_MIN_PRICE: Decimal = Decimal("1.00")
    COMMUNITY_MAX_PRICE: Decimal = Decimal("8.00")
    COMMUNITY_MONTHLY_LIMIT: int = 4            # Submissions per contributor
    COMMUNITY_MAX_AGE_DAYS: int = 90            # Oldest deliverable month
    QUANTITY_BUCKETS: list[tuple[int, str]] = [
        (100, "small"),
        (200, "medium"),
        (350, "large"),
        (500, "xlarge"),
    ]
    VALIDATION_THRESHOLDS: dict[str, tuple[float, float]] = {
        # bucket: (soft-exclude above, hard-reject above)
        "small": (0.45, 0.65),
        "medium": (0.40, 0.60),
        "large": (0.40, 0.60),
        "xlarge": (0.35, 0.55),
        "bulk": (0.35, 0.55),
    }
    CONTRIBUTOR_HASH_SALT: str = os.getenv(
        "CONTRIBUTOR_HASH_SALT", "market-trust-local-salt",
    )

    # --- Community benchmark ---
    BENCHMARK_DEFAULT_MONTHS: int = 2
    BENCHMARK_FRESHNESS_DAYS: int = 45
    BENCHMARK_MIN_DELIVERIES: int = 3
    BENCHMARK_MIN_CONTRIBUTORS: int = 2

    # --- Activity ranking ---
    ACTIVITY_WINDOW_DAYS: int = 30
    ACTIVITY_RANK_TTL: float = 3600.0           # Seconds
    ACTIVITY_SMALL_POPULATION: int = 10

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    DATA_DIR: Path = Path(
        os.getenv("MARKET_TRUST_DATA_DIR", str(BASE_DIR / "data"))
    )
    PRICE_DB_PATH: Path = DATA_DIR / "prices.db"
    COMMUNITY_DB_PATH: Path = DATA_DIR / "community.db"
    INTERACTION_DB_PATH: Path = DATA_DIR / "interactions.db"
    LOGS_DIR: Path = BASE_DIR / "logs"
