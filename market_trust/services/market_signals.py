# market_trust/services/market_signals.py

"""Internal market-intelligence read path.

Returns scraped and aggregator-signal observations for trend work.
Nothing here may be wired into a consumer-facing response; display
code must go through :class:`PriceLifecycleManager` instead.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from market_trust.config.settings import Settings
from market_trust.models.price_record import PriceRecord, SourceKind
from market_trust.storage.price_store import PriceStore

logger = logging.getLogger("market_trust.signals")


@dataclass(frozen=True)
class SignalQuery:
    """Options for :meth:`MarketSignalReader.market_signals`."""

    lookback_hours: int = Settings.SIGNAL_LOOKBACK_HOURS
    source_kinds: tuple[SourceKind, ...] = (
        SourceKind.SCRAPED,
        SourceKind.AGGREGATOR_SIGNAL,
    )


class MarketSignalReader:
    """Reads every signal-grade price, including aggregator signals."""

    def __init__(self, store: PriceStore) -> None:
        self._store = store

    def market_signals(
        self,
        query: SignalQuery | None = None,
        now: datetime | None = None,
    ) -> list[PriceRecord]:
        """Valid records within the lookback window, newest first."""
        opts = query or SignalQuery()
        if opts.lookback_hours <= 0:
            raise ValueError("lookback_hours must be positive")
        cutoff = (now or datetime.now()) - timedelta(
            hours=opts.lookback_hours
        )
        records = self._store.observed_since(cutoff, opts.source_kinds)
        logger.debug(
            "Market signals: %d records in last %dh (%s)",
            len(records),
            opts.lookback_hours,
            ", ".join(k.value for k in opts.source_kinds),
        )
        return records
