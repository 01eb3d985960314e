# market_trust/storage/interaction_store.py

"""SQLite-backed sink of consumer interactions (clicks, calls, visits)."""

import logging
import sqlite3
from datetime import datetime, timedelta
from pathlib import Path

from market_trust.config.settings import Settings
from market_trust.models.activity import InteractionCount, SupplierDemand

logger = logging.getLogger("market_trust.interactions")

ACTION_TYPES: tuple[str, ...] = ("click", "call", "website")

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS interactions (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    supplier_id  TEXT    NOT NULL,
    zip_code     TEXT,
    action_type  TEXT    NOT NULL DEFAULT 'click',
    created_at   TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_interactions_supplier_date
    ON interactions(supplier_id, created_at);

CREATE TABLE IF NOT EXISTS active_suppliers (
    supplier_id  TEXT PRIMARY KEY
);
"""


def _ts(value: datetime) -> str:
    return value.isoformat(timespec="microseconds")


class InteractionStore:
    """Append-only interaction log plus the roster of active suppliers."""

    def __init__(self, db_path: Path | None = None) -> None:
        path = db_path or Settings.INTERACTION_DB_PATH
        path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(
            str(path), check_same_thread=False,
        )
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)
        logger.debug("InteractionStore opened at %s", path)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def register_supplier(self, supplier_id: str) -> None:
        """Mark a supplier active so it is ranked even with zero clicks."""
        self._conn.execute(
            "INSERT OR IGNORE INTO active_suppliers (supplier_id) "
            "VALUES (?)",
            (supplier_id,),
        )
        self._conn.commit()

    def record(
        self,
        supplier_id: str,
        zip_code: str | None = None,
        action_type: str = "click",
        at: datetime | None = None,
    ) -> None:
        """Log one interaction."""
        if action_type not in ACTION_TYPES:
            raise ValueError(f"Unknown action type: {action_type}")
        self.register_supplier(supplier_id)
        self._conn.execute(
            "INSERT INTO interactions "
            "(supplier_id, zip_code, action_type, created_at) "
            "VALUES (?, ?, ?, ?)",
            (supplier_id, zip_code, action_type, _ts(at or datetime.now())),
        )
        self._conn.commit()

    def _window_start(self, now: datetime | None) -> str:
        return _ts(
            (now or datetime.now())
            - timedelta(days=Settings.ACTIVITY_WINDOW_DAYS)
        )

    def counts_by_supplier(
        self, now: datetime | None = None,
    ) -> dict[str, int]:
        """Window interaction totals for every active supplier."""
        rows = self._conn.execute(
            "SELECT a.supplier_id, COUNT(i.id) "
            "FROM active_suppliers a "
            "LEFT JOIN interactions i "
            "  ON i.supplier_id = a.supplier_id AND i.created_at > ? "
            "GROUP BY a.supplier_id",
            (self._window_start(now),),
        ).fetchall()
        return {str(r[0]): int(r[1]) for r in rows}

    def counts_by_zip(
        self, now: datetime | None = None,
    ) -> list[InteractionCount]:
        """Window interaction totals per (supplier, ZIP)."""
        rows = self._conn.execute(
            "SELECT supplier_id, zip_code, COUNT(*) FROM interactions "
            "WHERE created_at > ? AND zip_code IS NOT NULL "
            "GROUP BY supplier_id, zip_code",
            (self._window_start(now),),
        ).fetchall()
        return [
            InteractionCount(
                supplier_id=str(r[0]), zip_code=str(r[1]), count=int(r[2]),
            )
            for r in rows
        ]

    def supplier_demand(
        self, supplier_id: str, now: datetime | None = None,
    ) -> SupplierDemand:
        """Clicks (all actions), calls and website visits in the window."""
        row = self._conn.execute(
            "SELECT COUNT(*), "
            "  SUM(CASE WHEN action_type = 'call' THEN 1 ELSE 0 END), "
            "  SUM(CASE WHEN action_type = 'website' THEN 1 ELSE 0 END) "
            "FROM interactions WHERE supplier_id = ? AND created_at > ?",
            (supplier_id, self._window_start(now)),
        ).fetchone()
        return SupplierDemand(
            supplier_id=supplier_id,
            clicks=int(row[0] or 0),
            calls=int(row[1] or 0),
            websites=int(row[2] or 0),
        )
