# market_trust/storage/community_store.py

"""SQLite-backed store for community delivery submissions."""

import logging
import sqlite3
from collections.abc import Sequence
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

from market_trust.config.settings import Settings
from market_trust.models.community_submission import (
    CommunitySubmission,
    QuantityBucket,
    ValidationStatus,
)

logger = logging.getLogger("market_trust.community_store")

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS community_submissions (
    id                   INTEGER PRIMARY KEY AUTOINCREMENT,
    area_prefix          TEXT    NOT NULL,
    full_zip             TEXT,
    product_type         TEXT    NOT NULL DEFAULT 'heating_oil',
    price                TEXT    NOT NULL,
    delivery_month       TEXT    NOT NULL,
    delivery_date        TEXT,
    quantity_bucket      TEXT    NOT NULL,
    market_price_at_time TEXT,
    status               TEXT    NOT NULL DEFAULT 'valid',
    rejection_reason     TEXT,
    contributor_hash     TEXT    NOT NULL,
    contribution_weight  REAL    NOT NULL DEFAULT 1.0,
    supplier_id          TEXT,
    supplier_name        TEXT,
    is_directory_supplier INTEGER NOT NULL DEFAULT 0,
    created_at           TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_community_benchmark
    ON community_submissions(area_prefix, product_type,
                             delivery_month, status);

CREATE INDEX IF NOT EXISTS idx_community_contributor
    ON community_submissions(contributor_hash, delivery_month);
"""

_COLUMNS = (
    "id, area_prefix, full_zip, product_type, price, delivery_month, "
    "delivery_date, quantity_bucket, market_price_at_time, status, "
    "rejection_reason, contributor_hash, contribution_weight, "
    "supplier_id, supplier_name, is_directory_supplier, created_at"
)

_VALID = ValidationStatus.VALID.value
_REJECTED = ValidationStatus.REJECTED.value


def _placeholders(count: int) -> str:
    return ", ".join("?" for _ in range(count))


def _opt_str(value: object) -> str | None:
    return None if value is None else str(value)


def _row_to_submission(row: Sequence[object]) -> CommunitySubmission:
    market = _opt_str(row[8])
    delivery_date = _opt_str(row[6])
    return CommunitySubmission(
        submission_id=int(str(row[0])),
        area_prefix=str(row[1]),
        full_zip=_opt_str(row[2]),
        product_type=str(row[3]),
        price_per_unit=Decimal(str(row[4])),
        delivery_month=str(row[5]),
        delivery_date=(
            date.fromisoformat(delivery_date) if delivery_date else None
        ),
        quantity_bucket=QuantityBucket(str(row[7])),
        market_price_at_time=Decimal(market) if market else None,
        status=ValidationStatus(str(row[9])),
        rejection_reason=_opt_str(row[10]),
        contributor_hash=str(row[11]),
        contribution_weight=float(str(row[12])),
        supplier_id=_opt_str(row[13]),
        supplier_name=_opt_str(row[14]),
        is_directory_supplier=bool(row[15]),
        created_at=datetime.fromisoformat(str(row[16])),
    )


class CommunityStore:
    """Persistence for :class:`CommunitySubmission` records."""

    def __init__(self, db_path: Path | None = None) -> None:
        path = db_path or Settings.COMMUNITY_DB_PATH
        path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(
            str(path), check_same_thread=False,
        )
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)
        logger.debug("CommunityStore opened at %s", path)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def add(self, submission: CommunitySubmission) -> CommunitySubmission:
        """Persist a submission and return it with its id."""
        created = submission.created_at or datetime.now()
        cur = self._conn.execute(
            "INSERT INTO community_submissions "
            "(area_prefix, full_zip, product_type, price, "
            " delivery_month, delivery_date, quantity_bucket, "
            " market_price_at_time, status, rejection_reason, "
            " contributor_hash, contribution_weight, supplier_id, "
            " supplier_name, is_directory_supplier, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                submission.area_prefix,
                submission.full_zip,
                submission.product_type,
                str(submission.price_per_unit),
                submission.delivery_month,
                (
                    submission.delivery_date.isoformat()
                    if submission.delivery_date else None
                ),
                submission.quantity_bucket.value,
                _opt_str(submission.market_price_at_time),
                submission.status.value,
                submission.rejection_reason,
                submission.contributor_hash,
                submission.contribution_weight,
                submission.supplier_id,
                submission.supplier_name,
                1 if submission.is_directory_supplier else 0,
                created.isoformat(timespec="microseconds"),
            ),
        )
        self._conn.commit()
        submission_id = cur.lastrowid
        stored = (
            self.get(submission_id) if submission_id is not None else None
        )
        if stored is None:
            raise sqlite3.DatabaseError("Inserted submission not readable")
        return stored

    def get(self, submission_id: int) -> CommunitySubmission | None:
        """Fetch one submission by id."""
        row = self._conn.execute(
            f"SELECT {_COLUMNS} FROM community_submissions WHERE id = ?",
            (submission_id,),
        ).fetchone()
        return _row_to_submission(row) if row else None

    # ── Admission checks ─────────────────────────────────

    def count_for_contributor(
        self, contributor_hash: str, delivery_month: str,
    ) -> int:
        """Admitted submissions by one contributor for one month.

        Hard rejects are kept for audit only and do not count.
        """
        row = self._conn.execute(
            "SELECT COUNT(*) FROM community_submissions "
            "WHERE contributor_hash = ? AND delivery_month = ? "
            "AND status != ?",
            (contributor_hash, delivery_month, _REJECTED),
        ).fetchone()
        return int(row[0])

    def find_duplicate(
        self,
        *,
        price: Decimal,
        bucket: QuantityBucket,
        product_type: str,
        delivery_month: str,
        delivery_date: date | None = None,
        contributor_hash: str | None = None,
        area_prefix: str | None = None,
    ) -> CommunitySubmission | None:
        """Look for the same delivery already on file.

        Matches on the delivery date when one is given, otherwise on
        the delivery month.  Pass ``contributor_hash`` for a
        same-person check or ``area_prefix`` for a same-area check.
        Hard-rejected rows never match.
        """
        clauses = [
            "price = ?", "quantity_bucket = ?", "product_type = ?",
            "status != ?",
        ]
        params: list[object] = [
            str(price), bucket.value, product_type, _REJECTED,
        ]
        if delivery_date is not None:
            clauses.append("delivery_date = ?")
            params.append(delivery_date.isoformat())
        else:
            clauses.append("delivery_month = ?")
            params.append(delivery_month)
        if contributor_hash is not None:
            clauses.append("contributor_hash = ?")
            params.append(contributor_hash)
        if area_prefix is not None:
            clauses.append("area_prefix = ?")
            params.append(area_prefix)

        row = self._conn.execute(
            f"SELECT {_COLUMNS} FROM community_submissions "
            f"WHERE {' AND '.join(clauses)} LIMIT 1",
            params,
        ).fetchone()
        return _row_to_submission(row) if row else None

    def count_valid_in_area(
        self,
        area_prefix: str,
        product_type: str,
        months: Sequence[str],
        contributor_hash: str | None = None,
    ) -> int:
        """Valid submissions for an area, optionally for one contributor."""
        if not months:
            return 0
        sql = (
            "SELECT COUNT(*) FROM community_submissions "
            "WHERE area_prefix = ? AND product_type = ? AND status = ? "
            f"AND delivery_month IN ({_placeholders(len(months))})"
        )
        params: list[object] = [area_prefix, product_type, _VALID, *months]
        if contributor_hash is not None:
            sql += " AND contributor_hash = ?"
            params.append(contributor_hash)
        row = self._conn.execute(sql, params).fetchone()
        return int(row[0])

    # ── Aggregation reads ────────────────────────────────

    def valid_in_area(
        self,
        area_prefix: str,
        product_type: str,
        months: Sequence[str],
    ) -> list[CommunitySubmission]:
        """Valid submissions for an area and months, newest first."""
        if not months:
            return []
        rows = self._conn.execute(
            f"SELECT {_COLUMNS} FROM community_submissions "
            "WHERE area_prefix = ? AND product_type = ? AND status = ? "
            f"AND delivery_month IN ({_placeholders(len(months))}) "
            "ORDER BY created_at DESC, id DESC",
            (area_prefix, product_type, _VALID, *months),
        ).fetchall()
        return [_row_to_submission(r) for r in rows]
