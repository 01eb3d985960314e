# market_trust/services/price_lifecycle.py

"""Current-price derivation over the append-only price log.

"Current price" is never stored.  It is the newest record for a
supplier that is valid, unexpired and not an aggregator signal.  This
module is the only read path display code should use; signal-only
data lives behind :mod:`market_trust.services.market_signals`.
"""

import logging
from collections.abc import Iterable
from datetime import datetime, timedelta
from enum import Enum

from market_trust.config.settings import Settings
from market_trust.models.price_record import PriceRecord
from market_trust.models.supplier_profile import SupplierLocationProfile
from market_trust.storage.price_store import PriceStore

logger = logging.getLogger("market_trust.lifecycle")


class Staleness(str, Enum):
    """Age band of a displayed price."""

    FRESH = "fresh"
    STALE = "stale"        # reminder sent, backup scraping resumes
    OUTDATED = "outdated"  # show "call to confirm"


def _newest_per_supplier(
    records: Iterable[PriceRecord],
) -> dict[str, PriceRecord]:
    """Keep the first record seen per supplier (input is newest first)."""
    latest: dict[str, PriceRecord] = {}
    for record in records:
        latest.setdefault(record.supplier_id, record)
    return latest


class PriceLifecycleManager:
    """Answers "what price may we show for supplier S right now?"."""

    def __init__(self, store: PriceStore) -> None:
        self._store = store

    def current_price(
        self, supplier_id: str, now: datetime | None = None,
    ) -> PriceRecord | None:
        """Newest displayable record for one supplier, or ``None``.

        Pure read: no auto-heal happens on this path.
        """
        at = now or datetime.now()
        records = self._store.displayable([supplier_id], at)
        return records[0] if records else None

    def current_prices(
        self,
        supplier_ids: Iterable[str],
        now: datetime | None = None,
    ) -> dict[str, PriceRecord]:
        """Batch variant of :meth:`current_price` with a single heal pass.

        Suppliers with no displayable record get one chance: valid,
        non-signal records observed within the heal lookback whose
        expiry already passed are extended to ``now + 48h`` and the
        lookup is repeated for those suppliers only.
        """
        at = now or datetime.now()
        ids = list(dict.fromkeys(supplier_ids))
        if not ids:
            return {}

        prices = _newest_per_supplier(self._store.displayable(ids, at))

        missing = [sid for sid in ids if sid not in prices]
        if missing and self._auto_heal(missing, at):
            healed = _newest_per_supplier(
                self._store.displayable(missing, at)
            )
            prices.update(healed)

        return prices

    def attach_current_prices(
        self,
        profiles: list[SupplierLocationProfile],
        now: datetime | None = None,
    ) -> list[SupplierLocationProfile]:
        """Fill ``current_price`` on each profile from one batch lookup."""
        prices = self.current_prices(
            (p.supplier_id for p in profiles), now,
        )
        for profile in profiles:
            profile.current_price = prices.get(profile.supplier_id)
        return profiles

    def _auto_heal(self, supplier_ids: list[str], now: datetime) -> int:
        """Extend recently observed, expired records.  Returns rows healed."""
        cutoff = now - timedelta(days=Settings.HEAL_LOOKBACK_DAYS)
        expired = self._store.recently_expired(supplier_ids, cutoff, now)
        if not expired:
            return 0

        new_expiry = now + timedelta(hours=Settings.HEAL_EXTENSION_HOURS)
        record_ids = [r.record_id for r in expired if r.record_id is not None]
        healed = self._store.extend_expiry(record_ids, new_expiry)
        logger.info(
            "Auto-healed %d expired prices for %d suppliers (until %s)",
            healed,
            len({r.supplier_id for r in expired}),
            new_expiry.isoformat(timespec="seconds"),
        )
        return healed

    @staticmethod
    def staleness(
        record: PriceRecord, now: datetime | None = None,
    ) -> Staleness:
        """Classify how old a price observation is."""
        age = (now or datetime.now()) - record.observed_at
        if age >= timedelta(days=Settings.OUTDATED_AFTER_DAYS):
            return Staleness.OUTDATED
        if age >= timedelta(days=Settings.STALE_AFTER_DAYS):
            return Staleness.STALE
        return Staleness.FRESH
