"""
SQLite-backed store.

Schema:
    batches(
        batch_id TEXT PK,
        status TEXT,
        payload TEXT      -- Batch.to_dict() as JSON
    )
    balances(
        address TEXT PK,
        balance TEXT      -- decimal string
    )
    settlements(
        batch_id TEXT PK,
        payload TEXT      -- SettlementRecord.to_dict() as JSON
    )

Every multi-key write runs inside a single ``BEGIN IMMEDIATE`` transaction and
is rolled back on any failure. ``sqlite3.OperationalError`` (including "database
is locked" after ``timeout`` seconds) is surfaced as ``StoreUnavailableError``.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from decimal import Decimal
from pathlib import Path
from typing import Iterator, List, Mapping, Optional

from optisettle.protocol.enums import BatchStatus
from optisettle.protocol.errors import BatchNotFoundError, StoreUnavailableError
from optisettle.protocol.models import Batch, SettlementRecord

from .base import BatchStore

logger = logging.getLogger(__name__)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS batches (
        batch_id TEXT PRIMARY KEY,
        status TEXT NOT NULL,
        payload TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS balances (
        address TEXT PRIMARY KEY,
        balance TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS settlements (
        batch_id TEXT PRIMARY KEY,
        payload TEXT NOT NULL
    );
    """,
)


class SQLiteBatchStore(BatchStore):
    def __init__(self, db_path: str, *, timeout: float = 5.0) -> None:
        self.db_path = db_path
        self.timeout = timeout
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        # Autocommit mode; transactions are opened explicitly in _transaction().
        conn = sqlite3.connect(self.db_path, timeout=self.timeout, isolation_level=None)
        conn.execute("PRAGMA journal_mode=WAL;")
        return conn

    @contextmanager
    def _read(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._connect()
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"cannot open store {self.db_path}: {e}")
        try:
            yield conn
        except sqlite3.OperationalError as e:
            logger.error("Store read failed: %s", e)
            raise StoreUnavailableError(f"store read failed: {e}")
        finally:
            conn.close()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._connect()
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"cannot open store {self.db_path}: {e}")
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        except sqlite3.OperationalError as e:
            logger.error("Store write failed: %s", e)
            raise StoreUnavailableError(f"store write failed: {e}")
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self._transaction() as conn:
            for statement in _SCHEMA:
                conn.execute(statement)

    # -- batches ------------------------------------------------------------

    def load_batch(self, batch_id: str) -> Batch:
        with self._read() as conn:
            row = conn.execute(
                "SELECT payload FROM batches WHERE batch_id = ?", (batch_id,)
            ).fetchone()
        if row is None:
            raise BatchNotFoundError(batch_id)
        return Batch.from_dict(json.loads(row[0]))

    def save_batch(self, batch: Batch) -> None:
        payload = json.dumps(batch.to_dict(), sort_keys=True)
        with self._transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO batches (batch_id, status, payload) VALUES (?, ?, ?)",
                (batch.batch_id, batch.status.value, payload),
            )

    def list_batches(self, status: Optional[BatchStatus] = None) -> List[Batch]:
        with self._read() as conn:
            if status is None:
                rows = conn.execute("SELECT payload FROM batches").fetchall()
            else:
                rows = conn.execute(
                    "SELECT payload FROM batches WHERE status = ?", (status.value,)
                ).fetchall()
        batches = [Batch.from_dict(json.loads(row[0])) for row in rows]
        return sorted(batches, key=lambda b: b.created_at, reverse=True)

    # -- balances -----------------------------------------------------------

    def load_balance(self, address: str) -> Decimal:
        with self._read() as conn:
            row = conn.execute(
                "SELECT balance FROM balances WHERE address = ?", (address.lower(),)
            ).fetchone()
        return Decimal(row[0]) if row else Decimal(0)

    def save_balances(
        self,
        balances: Mapping[str, Decimal],
        record: Optional[SettlementRecord] = None,
    ) -> None:
        with self._transaction() as conn:
            conn.executemany(
                "INSERT OR REPLACE INTO balances (address, balance) VALUES (?, ?)",
                [(addr.lower(), str(value)) for addr, value in balances.items()],
            )
            if record is not None:
                conn.execute(
                    "INSERT OR REPLACE INTO settlements (batch_id, payload) VALUES (?, ?)",
                    (record.batch_id, json.dumps(record.to_dict(), sort_keys=True)),
                )

    # -- settlements --------------------------------------------------------

    def load_settlement(self, batch_id: str) -> Optional[SettlementRecord]:
        with self._read() as conn:
            row = conn.execute(
                "SELECT payload FROM settlements WHERE batch_id = ?", (batch_id,)
            ).fetchone()
        return SettlementRecord.from_dict(json.loads(row[0])) if row else None
