"""
Persistent SQLite storage for the distribution cycle.

- `progress`: one row per address (ball count, blacklist flag and the
  percentage of a payout that was started but not yet recorded).
- `payouts`: completed payouts, unique on (winner, percentage_bp).
- `settings`: small key/value table for process-wide counters.

Every public method raises StoreUnavailable on sqlite errors. Writes that must
land together go through `transaction()`; nested blocks join the outer one.
"""

from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Optional, Set

from .errors import DuplicateOutcome, StoreUnavailable
from .models import ProgressRecord

logger = logging.getLogger(__name__)


class SQLiteStore:
    def __init__(self, db_path: str):
        self.db_path = db_path
        try:
            parent = os.path.dirname(db_path)
            if parent and db_path != ":memory:":
                os.makedirs(parent, exist_ok=True)
            # Autocommit mode; transactions are opened explicitly
            self.conn = sqlite3.connect(
                db_path, check_same_thread=False, isolation_level=None
            )
        except (OSError, sqlite3.Error) as e:
            raise StoreUnavailable(f"Cannot open store at {db_path}: {e}") from e
        self.conn.row_factory = sqlite3.Row
        self._depth = 0
        self._init_schema()

    # -----------------------------------------------------
    # Core schema
    # -----------------------------------------------------
    def _init_schema(self) -> None:
        try:
            self.conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS progress (
                    address TEXT PRIMARY KEY,
                    count INTEGER NOT NULL DEFAULT 0,
                    blacklisted INTEGER NOT NULL DEFAULT 0,
                    pending_bp INTEGER
                );

                CREATE TABLE IF NOT EXISTS payouts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    winner TEXT NOT NULL,
                    percentage_bp INTEGER NOT NULL,
                    tx_ref TEXT,
                    blacklisted INTEGER NOT NULL DEFAULT 0,
                    UNIQUE (winner, percentage_bp)
                );

                CREATE TABLE IF NOT EXISTS settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );
                """
            )
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Cannot initialise schema: {e}") from e

    def _execute(self, sql: str, params: Iterable[Any] = ()) -> sqlite3.Cursor:
        try:
            return self.conn.execute(sql, tuple(params))
        except sqlite3.Error as e:
            raise StoreUnavailable(str(e)) from e

    @contextmanager
    def transaction(self) -> Iterator["SQLiteStore"]:
        if self._depth:
            self._depth += 1
            try:
                yield self
            finally:
                self._depth -= 1
            return

        self._execute("BEGIN IMMEDIATE")
        self._depth = 1
        try:
            yield self
        except BaseException:
            self._depth = 0
            self._rollback()
            raise
        self._depth = 0
        try:
            self._execute("COMMIT")
        except StoreUnavailable:
            self._rollback()
            raise

    def _rollback(self) -> None:
        if not self.conn.in_transaction:
            return
        try:
            self.conn.execute("ROLLBACK")
        except sqlite3.Error:
            logger.exception("Rollback failed")

    # -----------------------------------------------------
    # Progress
    # -----------------------------------------------------
    def get_progress(self, address: str) -> Optional[ProgressRecord]:
        row = self._execute(
            "SELECT address, count, blacklisted, pending_bp FROM progress WHERE address=?",
            (address,),
        ).fetchone()
        return _progress(row) if row else None

    def set_count(self, address: str, count: int) -> None:
        self._execute(
            "INSERT INTO progress (address, count) VALUES (?, ?) "
            "ON CONFLICT(address) DO UPDATE SET count=excluded.count",
            (address, count),
        )

    def set_pending(self, address: str, percentage_bp: Optional[int]) -> None:
        self._execute(
            "INSERT INTO progress (address, pending_bp) VALUES (?, ?) "
            "ON CONFLICT(address) DO UPDATE SET pending_bp=excluded.pending_bp",
            (address, percentage_bp),
        )

    def list_progress(self) -> List[ProgressRecord]:
        # rowid survives upserts, so this is first-insertion order
        cur = self._execute(
            "SELECT address, count, blacklisted, pending_bp FROM progress ORDER BY rowid ASC"
        )
        return [_progress(row) for row in cur.fetchall()]

    def flag_progress(self, addresses: Set[str]) -> int:
        return self._flag("progress", "address", addresses)

    def blacklisted_progress(self) -> Set[str]:
        cur = self._execute("SELECT address FROM progress WHERE blacklisted=1")
        return {row["address"] for row in cur.fetchall()}

    # -----------------------------------------------------
    # Payouts
    # -----------------------------------------------------
    def insert_payout(
        self, winner: str, percentage_bp: int, tx_ref: Optional[str]
    ) -> None:
        try:
            self.conn.execute(
                "INSERT INTO payouts (winner, percentage_bp, tx_ref) VALUES (?,?,?)",
                (winner, percentage_bp, tx_ref),
            )
        except sqlite3.IntegrityError as e:
            raise DuplicateOutcome(f"{winner} / {percentage_bp}bp") from e
        except sqlite3.Error as e:
            raise StoreUnavailable(str(e)) from e

    def list_payouts(self) -> List[Dict[str, Any]]:
        cur = self._execute(
            "SELECT id, winner, percentage_bp, tx_ref, blacklisted "
            "FROM payouts ORDER BY id ASC"
        )
        return [dict(row) for row in cur.fetchall()]

    def flag_payouts(self, addresses: Set[str]) -> int:
        return self._flag("payouts", "winner", addresses)

    # -----------------------------------------------------
    # Settings
    # -----------------------------------------------------
    def get_setting(self, key: str, default: Optional[str] = None) -> Optional[str]:
        row = self._execute("SELECT value FROM settings WHERE key=?", (key,)).fetchone()
        return row["value"] if row else default

    def set_setting(self, key: str, value: str) -> None:
        self._execute(
            "INSERT INTO settings (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value=excluded.value",
            (key, value),
        )

    # -----------------------------------------------------
    # Maintenance
    # -----------------------------------------------------
    def _flag(self, table: str, column: str, addresses: Set[str]) -> int:
        if not addresses:
            return 0
        placeholders = ",".join("?" for _ in addresses)
        cur = self._execute(
            f"UPDATE {table} SET blacklisted=1 "
            f"WHERE lower({column}) IN ({placeholders}) AND blacklisted=0",
            [a.lower() for a in addresses],
        )
        return cur.rowcount

    def close(self) -> None:
        self.conn.close()


def _progress(row: sqlite3.Row) -> ProgressRecord:
    return ProgressRecord(
        address=row["address"],
        count=int(row["count"]),
        blacklisted=bool(row["blacklisted"]),
        pending_bp=row["pending_bp"],
    )
