# market_trust/storage/price_store.py

"""SQLite-backed append-only log of supplier price records."""

import logging
import sqlite3
from collections.abc import Iterable, Sequence
from datetime import datetime
from decimal import Decimal
from pathlib import Path

from market_trust.config.settings import Settings
from market_trust.models.price_record import PriceRecord, SourceKind

logger = logging.getLogger("market_trust.price_store")

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS price_records (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    supplier_id    TEXT    NOT NULL,
    price          TEXT    NOT NULL,
    min_quantity   INTEGER NOT NULL DEFAULT 150,
    product_type   TEXT    NOT NULL DEFAULT 'heating_oil',
    source_kind    TEXT    NOT NULL DEFAULT 'scraped',
    source_url     TEXT    NOT NULL DEFAULT '',
    observed_at    TEXT    NOT NULL,
    expires_at     TEXT    NOT NULL,
    is_valid       INTEGER NOT NULL DEFAULT 1,
    note           TEXT    NOT NULL DEFAULT ''
);

CREATE INDEX IF NOT EXISTS idx_records_supplier_observed
    ON price_records(supplier_id, observed_at);

CREATE INDEX IF NOT EXISTS idx_records_expires
    ON price_records(expires_at);

CREATE INDEX IF NOT EXISTS idx_records_kind_observed
    ON price_records(source_kind, observed_at);
"""

_COLUMNS = (
    "id, supplier_id, price, min_quantity, product_type, "
    "source_kind, source_url, observed_at, expires_at, is_valid, note"
)

_SIGNAL_KIND = SourceKind.AGGREGATOR_SIGNAL.value


def _ts(value: datetime) -> str:
    """Fixed-width ISO timestamp so text comparison orders correctly."""
    return value.isoformat(timespec="microseconds")


def _placeholders(count: int) -> str:
    return ", ".join("?" for _ in range(count))


def _row_to_record(row: Sequence[object]) -> PriceRecord:
    return PriceRecord(
        record_id=int(str(row[0])),
        supplier_id=str(row[1]),
        price_per_unit=Decimal(str(row[2])),
        min_quantity=int(str(row[3])),
        product_type=str(row[4]),
        source_kind=SourceKind(str(row[5])),
        source_url=str(row[6]),
        observed_at=datetime.fromisoformat(str(row[7])),
        expires_at=datetime.fromisoformat(str(row[8])),
        is_valid=bool(row[9]),
        note=str(row[10]),
    )


class PriceStore:
    """Keyed store of :class:`PriceRecord` rows with range queries.

    Records are never deleted.  The two permitted mutations are an
    operator validity flip and a forward-only expiry extension.
    """

    def __init__(
        self, db_path: Path | None = None,
    ) -> None:
        path = db_path or Settings.PRICE_DB_PATH
        path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(
            str(path), check_same_thread=False,
        )
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)
        logger.debug("PriceStore opened at %s", path)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    # ── Recording ────────────────────────────────────────

    def add(self, record: PriceRecord) -> PriceRecord:
        """Append *record* and return it with its assigned id."""
        cur = self._conn.execute(
            "INSERT INTO price_records "
            "(supplier_id, price, min_quantity, product_type, "
            " source_kind, source_url, observed_at, expires_at, "
            " is_valid, note) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                record.supplier_id,
                str(record.price_per_unit),
                record.min_quantity,
                record.product_type,
                record.source_kind.value,
                record.source_url,
                _ts(record.observed_at),
                _ts(record.expiry),
                1 if record.is_valid else 0,
                record.note,
            ),
        )
        self._conn.commit()
        record_id = cur.lastrowid
        if record_id is None:
            raise sqlite3.DatabaseError("INSERT returned no row id")
        logger.info(
            "Recorded %s price $%s for supplier %s (id=%d)",
            record.source_kind.value,
            record.price_per_unit,
            record.supplier_id,
            record_id,
        )
        return record.with_id(record_id)

    def add_many(self, records: Iterable[PriceRecord]) -> int:
        """Append several records.  Returns the number stored."""
        count = 0
        for record in records:
            self.add(record)
            count += 1
        return count

    # ── Operator / heal mutations ────────────────────────

    def set_validity(self, record_id: int, is_valid: bool) -> bool:
        """Flip the validity flag.  Returns False for unknown ids."""
        cur = self._conn.execute(
            "UPDATE price_records SET is_valid = ? WHERE id = ?",
            (1 if is_valid else 0, record_id),
        )
        self._conn.commit()
        changed = cur.rowcount > 0
        if changed:
            logger.info(
                "Price record %d marked %s",
                record_id,
                "valid" if is_valid else "invalid",
            )
        return changed

    def extend_expiry(
        self, record_ids: Sequence[int], new_expiry: datetime,
    ) -> int:
        """Push ``expires_at`` forward to *new_expiry*.

        Rows already expiring later are left untouched, so repeating
        the call is harmless.  Returns the number of rows changed.
        """
        if not record_ids:
            return 0
        cur = self._conn.execute(
            "UPDATE price_records SET expires_at = ? "
            f"WHERE id IN ({_placeholders(len(record_ids))}) "
            "AND expires_at < ?",
            (_ts(new_expiry), *record_ids, _ts(new_expiry)),
        )
        self._conn.commit()
        return cur.rowcount

    # ── Querying ─────────────────────────────────────────

    def get(self, record_id: int) -> PriceRecord | None:
        """Fetch a single record by id."""
        row = self._conn.execute(
            f"SELECT {_COLUMNS} FROM price_records WHERE id = ?",
            (record_id,),
        ).fetchone()
        return _row_to_record(row) if row else None

    def displayable(
        self, supplier_ids: Sequence[str], now: datetime,
    ) -> list[PriceRecord]:
        """Valid, unexpired, non-signal records, newest first."""
        if not supplier_ids:
            return []
        rows = self._conn.execute(
            f"SELECT {_COLUMNS} FROM price_records "
            f"WHERE supplier_id IN ({_placeholders(len(supplier_ids))}) "
            "AND is_valid = 1 AND expires_at > ? "
            "AND source_kind != ? "
            "ORDER BY observed_at DESC, id DESC",
            (*supplier_ids, _ts(now), _SIGNAL_KIND),
        ).fetchall()
        return [_row_to_record(r) for r in rows]

    def recently_expired(
        self,
        supplier_ids: Sequence[str],
        observed_since: datetime,
        now: datetime,
    ) -> list[PriceRecord]:
        """Valid non-signal records observed since a cutoff but expired."""
        if not supplier_ids:
            return []
        rows = self._conn.execute(
            f"SELECT {_COLUMNS} FROM price_records "
            f"WHERE supplier_id IN ({_placeholders(len(supplier_ids))}) "
            "AND is_valid = 1 AND observed_at >= ? "
            "AND expires_at <= ? AND source_kind != ? "
            "ORDER BY observed_at DESC, id DESC",
            (*supplier_ids, _ts(observed_since), _ts(now), _SIGNAL_KIND),
        ).fetchall()
        return [_row_to_record(r) for r in rows]

    def observed_since(
        self,
        since: datetime,
        source_kinds: Sequence[SourceKind],
    ) -> list[PriceRecord]:
        """Valid records of the given kinds observed since *since*."""
        if not source_kinds:
            return []
        rows = self._conn.execute(
            f"SELECT {_COLUMNS} FROM price_records "
            "WHERE is_valid = 1 AND observed_at >= ? "
            f"AND source_kind IN ({_placeholders(len(source_kinds))}) "
            "ORDER BY observed_at DESC, id DESC",
            (_ts(since), *(k.value for k in source_kinds)),
        ).fetchall()
        return [_row_to_record(r) for r in rows]

    def history(self, supplier_id: str) -> list[PriceRecord]:
        """Every record for a supplier, oldest first."""
        rows = self._conn.execute(
            f"SELECT {_COLUMNS} FROM price_records "
            "WHERE supplier_id = ? "
            "ORDER BY observed_at ASC, id ASC",
            (supplier_id,),
        ).fetchall()
        return [_row_to_record(r) for r in rows]
