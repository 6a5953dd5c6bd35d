"""
Tests for the batch stores.

Both backends run the same contract; the SQLite store is also checked for
durability across instances and for lock timeouts.
"""

import datetime as _dt
import sqlite3
from decimal import Decimal

import pytest

from optisettle.merkle.tree import compute_root
from optisettle.protocol.enums import BatchStatus
from optisettle.protocol.errors import BatchNotFoundError, StoreUnavailableError
from optisettle.protocol.models import Batch, SettlementRecord, Transaction

T0 = _dt.datetime(2024, 1, 1, tzinfo=_dt.timezone.utc)


def _batch(batch_id, created_at=T0, status=BatchStatus.PENDING):
    txs = (Transaction("0xa", "0xb", Decimal("1.5")),)
    return Batch(
        batch_id=batch_id,
        transactions_root=compute_root(txs),
        transactions=txs,
        created_at=created_at,
        status=status,
    )


@pytest.fixture(params=["memory", "sqlite"])
def any_store(request, tmp_path):
    from optisettle.store import InMemoryBatchStore, SQLiteBatchStore

    if request.param == "memory":
        s = InMemoryBatchStore()
    else:
        s = SQLiteBatchStore(str(tmp_path / "store.sqlite"))
    yield s
    s.close()


class TestStoreContract:
    def test_batch_roundtrip(self, any_store):
        batch = _batch("b1")
        any_store.save_batch(batch)
        assert any_store.load_batch("b1") == batch

    def test_missing_batch(self, any_store):
        with pytest.raises(BatchNotFoundError):
            any_store.load_batch("nope")

    def test_save_replaces(self, any_store):
        any_store.save_batch(_batch("b1"))
        verified = _batch("b1", status=BatchStatus.VERIFIED)
        any_store.save_batch(verified)
        assert any_store.load_batch("b1").status == BatchStatus.VERIFIED

    def test_list_newest_first_with_filter(self, any_store):
        any_store.save_batch(_batch("old", created_at=T0))
        any_store.save_batch(_batch("new", created_at=T0 + _dt.timedelta(hours=1)))
        any_store.save_batch(_batch("done", created_at=T0 + _dt.timedelta(hours=2), status=BatchStatus.FINALIZED))

        assert [b.batch_id for b in any_store.list_batches()] == ["done", "new", "old"]
        assert [b.batch_id for b in any_store.list_batches(BatchStatus.PENDING)] == ["new", "old"]

    def test_unknown_balance_is_zero(self, any_store):
        assert any_store.load_balance("0xnobody") == Decimal(0)

    def test_balances_and_record_saved_together(self, any_store):
        record = SettlementRecord("b1", {"0xa": Decimal("-1.5"), "0xb": Decimal("1.5")}, T0)
        any_store.save_balances({"0xa": Decimal("8.5"), "0xb": Decimal("1.5")}, record)

        assert any_store.load_balances(["0xa", "0xb", "0xc"]) == {
            "0xa": Decimal("8.5"),
            "0xb": Decimal("1.5"),
            "0xc": Decimal(0),
        }
        assert any_store.load_settlement("b1") == record
        assert any_store.load_settlement("b2") is None


class TestSQLiteStore:
    def test_survives_restart(self, tmp_path):
        from optisettle.store import SQLiteBatchStore

        path = str(tmp_path / "nested" / "store.sqlite")
        first = SQLiteBatchStore(path)
        first.save_batch(_batch("b1"))
        first.save_balances({"0xa": Decimal("42.1")})

        second = SQLiteBatchStore(path)
        assert second.load_batch("b1") == _batch("b1")
        assert second.load_balance("0xA") == Decimal("42.1")

    def test_locked_database_is_unavailable(self, tmp_path):
        from optisettle.store import SQLiteBatchStore

        path = str(tmp_path / "store.sqlite")
        store = SQLiteBatchStore(path, timeout=0.1)

        blocker = sqlite3.connect(path, isolation_level=None)
        blocker.execute("BEGIN EXCLUSIVE")
        try:
            with pytest.raises(StoreUnavailableError):
                store.save_balances({"0xa": Decimal(1)})
        finally:
            blocker.execute("ROLLBACK")
            blocker.close()

        assert store.load_balance("0xa") == Decimal(0)

    def test_engine_over_sqlite(self, tmp_path):
        from optisettle.core.ledger import Ledger
        from optisettle.core.lifecycle import BatchLifecycle
        from optisettle.store import SQLiteBatchStore

        store = SQLiteBatchStore(str(tmp_path / "store.sqlite"))
        store.save_balances({"0xa": Decimal(100)})
        ledger = Ledger(store)
        lifecycle = BatchLifecycle(store, ledger)

        batch = lifecycle.submit([Transaction("0xA", "0xB", Decimal(10))])
        lifecycle.verify(batch.batch_id)
        lifecycle.reject(batch.batch_id, "abort")

        assert ledger.balance("0xa") == Decimal(100)
        assert ledger.settlement(batch.batch_id).is_reversed


class TestCreateStore:
    def test_backend_selection(self, tmp_path):
        from optisettle.core.settings import StoreSettings
        from optisettle.store import InMemoryBatchStore, SQLiteBatchStore, create_store

        assert isinstance(create_store(StoreSettings(backend="memory")), InMemoryBatchStore)
        sqlite_store = create_store(
            StoreSettings(backend="SQLite", sqlite_path=str(tmp_path / "s.sqlite"))
        )
        assert isinstance(sqlite_store, SQLiteBatchStore)

    def test_unknown_backend(self):
        from pydantic import ValidationError
        from optisettle.core.settings import StoreSettings

        with pytest.raises(ValidationError):
            StoreSettings(backend="postgres")
