# market_trust/storage/rank_cache.py

"""Time-boxed holder for the most recent activity ranking."""

import logging
import time
from dataclasses import dataclass

from market_trust.config.settings import Settings
from market_trust.models.activity import ActivityRank

logger = logging.getLogger("market_trust.cache")


@dataclass(frozen=True)
class CacheEntry:
    """A complete ranking and the monotonic time it was computed."""

    data: ActivityRank
    computed_at: float


class ActivityRankCache:
    """Single-slot cache, replaced wholesale on every recompute.

    Readers either see the previous complete ranking or the new one,
    never a partial update.  Expiry is checked at read time.
    """

    def __init__(self, ttl: float | None = None) -> None:
        self._ttl: float = (
            Settings.ACTIVITY_RANK_TTL if ttl is None else ttl
        )
        self._entry: CacheEntry | None = None

    @property
    def ttl(self) -> float:
        return self._ttl

    def get(self) -> ActivityRank | None:
        """Return the cached ranking, or ``None`` when absent or expired."""
        entry = self._entry
        if entry is None:
            return None
        if time.monotonic() - entry.computed_at >= self._ttl:
            logger.debug(
                "Activity rank cache expired after %.0fs", self._ttl,
            )
            return None
        return entry.data

    def put(self, rank: ActivityRank) -> None:
        """Replace the cached ranking."""
        self._entry = CacheEntry(data=rank, computed_at=time.monotonic())
        logger.info(
            "Activity ranks cached: %d suppliers, %d interactions",
            len(rank.bands),
            rank.total_interactions,
        )

    def invalidate(self) -> bool:
        """Drop the cached ranking.  Returns True if one was held."""
        had_entry = self._entry is not None
        self._entry = None
        return had_entry
