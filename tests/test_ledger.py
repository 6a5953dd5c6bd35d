"""
Tests for the ledger: atomic settlement, exactly-once apply/reverse and
bridge operations.
"""

import datetime as _dt
from decimal import Decimal, localcontext

import pytest

from optisettle.protocol.errors import InsufficientBalanceError, ValidationError
from optisettle.protocol.models import AMOUNT_CONTEXT, Batch, Transaction


def _batch(batch_id, *txs):
    from optisettle.merkle.tree import compute_root

    return Batch(
        batch_id=batch_id,
        transactions_root=compute_root(txs),
        transactions=tuple(txs),
        created_at=_dt.datetime(2024, 1, 1, tzinfo=_dt.timezone.utc),
    )


class TestApplyBatch:
    def test_moves_funds(self, ledger):
        record = ledger.apply_batch(_batch("b1", Transaction("0xa", "0xb", Decimal(10))))

        assert ledger.balance("0xa") == Decimal(90)
        assert ledger.balance("0xB") == Decimal(10)
        assert record.deltas == {"0xa": Decimal(-10), "0xb": Decimal(10)}

    def test_apply_is_idempotent(self, ledger):
        batch = _batch("b1", Transaction("0xa", "0xb", Decimal(10)))
        first = ledger.apply_batch(batch)
        second = ledger.apply_batch(batch)

        assert first == second
        assert ledger.balance("0xa") == Decimal(90)

    def test_insufficient_balance_writes_nothing(self, ledger, store):
        batch = _batch(
            "b1",
            Transaction("0xa", "0xb", Decimal(50)),
            Transaction("0xc", "0xd", Decimal(1)),
        )
        with pytest.raises(InsufficientBalanceError) as exc_info:
            ledger.apply_batch(batch)

        assert exc_info.value.address == "0xc"
        assert ledger.balance("0xa") == Decimal(100)
        assert ledger.balance("0xb") == Decimal(0)
        assert store.load_settlement("b1") is None

    def test_sender_checked_against_running_balance(self, ledger):
        batch = _batch(
            "b1",
            Transaction("0xa", "0xb", Decimal(60)),
            Transaction("0xa", "0xc", Decimal(60)),
        )
        with pytest.raises(InsufficientBalanceError):
            ledger.apply_batch(batch)
        assert ledger.balance("0xa") == Decimal(100)

    def test_received_funds_can_be_spent_later_in_batch(self, ledger):
        batch = _batch(
            "b1",
            Transaction("0xa", "0xb", Decimal(30)),
            Transaction("0xb", "0xc", Decimal(30)),
        )
        ledger.apply_batch(batch)

        assert ledger.balance("0xa") == Decimal(70)
        assert ledger.balance("0xb") == Decimal(0)
        assert ledger.balance("0xc") == Decimal(30)

    def test_conserves_total(self, ledger, store):
        before = sum(store.all_balances().values())
        ledger.apply_batch(_batch(
            "b1",
            Transaction("0xa", "0xb", Decimal("12.5")),
            Transaction("0xb", "0xc", Decimal("2.25")),
        ))
        assert sum(store.all_balances().values()) == before


class TestReverseBatch:
    def test_restores_balances(self, ledger):
        batch = _batch("b1", Transaction("0xa", "0xb", Decimal(10)))
        ledger.apply_batch(batch)
        record = ledger.reverse_batch(batch)

        assert record.is_reversed
        assert ledger.balance("0xa") == Decimal(100)
        assert ledger.balance("0xb") == Decimal(0)

    def test_reverse_is_idempotent(self, ledger):
        batch = _batch("b1", Transaction("0xa", "0xb", Decimal(10)))
        ledger.apply_batch(batch)
        ledger.reverse_batch(batch)

        assert ledger.reverse_batch(batch) is None
        assert ledger.balance("0xa") == Decimal(100)

    def test_reverse_without_apply_is_noop(self, ledger):
        batch = _batch("b1", Transaction("0xa", "0xb", Decimal(10)))
        assert ledger.reverse_batch(batch) is None
        assert ledger.balance("0xa") == Decimal(100)

    def test_reapply_after_reverse_is_refused(self, ledger):
        from optisettle.protocol.errors import IllegalTransitionError

        batch = _batch("b1", Transaction("0xa", "0xb", Decimal(10)))
        ledger.apply_batch(batch)
        ledger.reverse_batch(batch)
        with pytest.raises(IllegalTransitionError):
            ledger.apply_batch(batch)

        assert ledger.balance("0xa") == Decimal(100)

    def test_reverse_after_withdrawal_goes_negative(self, ledger):
        batch = _batch("b1", Transaction("0xa", "0xb", Decimal(10)))
        ledger.apply_batch(batch)
        ledger.withdraw("0xb", Decimal(10))
        ledger.reverse_batch(batch)

        assert ledger.balance("0xb") == Decimal(-10)
        assert ledger.balance("0xa") == Decimal(100)


class TestBridge:
    def test_deposit(self, ledger):
        assert ledger.deposit("0xNEW", "5.5") == Decimal("5.5")
        assert ledger.balance("0xnew") == Decimal("5.5")

    def test_withdraw(self, ledger):
        assert ledger.withdraw("0xa", 40) == Decimal(60)

    def test_withdraw_more_than_balance(self, ledger):
        with pytest.raises(InsufficientBalanceError):
            ledger.withdraw("0xa", 101)
        assert ledger.balance("0xa") == Decimal(100)

    @pytest.mark.parametrize("amount", [0, "-1", "abc", "NaN", True])
    def test_invalid_amounts(self, ledger, amount):
        with pytest.raises(ValidationError):
            ledger.deposit("0xa", amount)


class TestExactArithmetic:
    def test_large_balance_small_debit_is_exact(self):
        from optisettle.core.ledger import Ledger
        from optisettle.store import InMemoryBatchStore

        store = InMemoryBatchStore({"0xa": Decimal("1E+29")})
        ledger = Ledger(store)
        amount = Decimal("0.000000000000000001")
        record = ledger.apply_batch(_batch("b1", Transaction("0xa", "0xb", amount)))

        assert ledger.balance("0xa") == Decimal("99999999999999999999999999999.999999999999999999")
        assert ledger.balance("0xb") == amount
        with localcontext(AMOUNT_CONTEXT):
            assert ledger.balance("0xa") + ledger.balance("0xb") == Decimal("1E+29")
        assert record.deltas == {"0xa": -amount, "0xb": amount}

        ledger.reverse_batch(_batch("b1", Transaction("0xa", "0xb", amount)))
        assert ledger.balance("0xa") == Decimal("1E+29")
        assert ledger.balance("0xb") == Decimal(0)

    def test_inexact_result_writes_nothing(self):
        from optisettle.core.ledger import Ledger
        from optisettle.store import InMemoryBatchStore

        huge = Decimal("1" + "0" * 120)
        store = InMemoryBatchStore({"0xa": Decimal(10), "0xb": huge})
        ledger = Ledger(store)
        batch = _batch("b1", Transaction("0xa", "0xb", Decimal("0.000000000000000001")))

        with pytest.raises(ValidationError):
            ledger.apply_batch(batch)
        assert ledger.balance("0xa") == Decimal(10)
        assert ledger.balance("0xb") == huge
        assert store.load_settlement("b1") is None

    def test_sub_unit_amount_is_rejected(self):
        with pytest.raises(ValidationError):
            Transaction("0xa", "0xb", Decimal("1E-28"))
