"""
Ledger

Authoritative account balances and atomic batch settlement.

Rules:
- A batch is applied all-or-nothing: every sender must cover its debits,
  checked in transaction order, before anything is written
- Balances and the batch's SettlementRecord land in one atomic store write
- The SettlementRecord makes apply and reverse exactly-once: applying an
  applied batch, or reversing a reversed (or never-applied) one, is a no-op
- A reversed batch can never be applied again
- Reversal replays the recorded deltas, not the batch body, so it undoes
  exactly what was applied
- Balance arithmetic runs in ``AMOUNT_CONTEXT``; a result that would need
  rounding is an error, never a silent loss of value
- One ledger lock serializes every mutation, so concurrent settlements over
  overlapping accounts never interleave
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from contextlib import contextmanager
from decimal import Decimal, DecimalException, localcontext
from typing import Dict, Iterator, Optional

from optisettle.protocol.enums import BatchStatus
from optisettle.protocol.errors import (
    IllegalTransitionError,
    InsufficientBalanceError,
    ValidationError,
)
from optisettle.protocol.models import (
    AMOUNT_CONTEXT,
    Batch,
    SettlementRecord,
    normalize_address,
    parse_amount,
)
from optisettle.store.base import BatchStore
from optisettle.utils.timestamps import Clock, utc_now

logger = logging.getLogger(__name__)


@contextmanager
def exact_arithmetic() -> Iterator[None]:
    """Run Decimal arithmetic exactly; any trapped condition becomes ValidationError."""
    try:
        with localcontext(AMOUNT_CONTEXT):
            yield
    except DecimalException as e:
        raise ValidationError(f"balance arithmetic cannot be represented exactly: {e!r}")


class Ledger:
    def __init__(self, store: BatchStore, *, clock: Clock = utc_now) -> None:
        self._store = store
        self._clock = clock
        self._lock = threading.RLock()

    def balance(self, address: str) -> Decimal:
        return self._store.load_balance(normalize_address(address))

    def settlement(self, batch_id: str) -> Optional[SettlementRecord]:
        return self._store.load_settlement(batch_id)

    # ------------------------------------------------------------------
    # Batch settlement
    # ------------------------------------------------------------------

    def apply_batch(self, batch: Batch) -> SettlementRecord:
        """
        Debit every sender and credit every recipient of ``batch``.

        Raises:
            InsufficientBalanceError: If any sender cannot cover a transfer;
                nothing is written in that case
            IllegalTransitionError: If the batch was settled and reversed
            ValidationError: If a balance cannot be computed exactly
            StoreUnavailableError: If the store write fails; nothing is
                written in that case either
        """
        with self._lock:
            existing = self._store.load_settlement(batch.batch_id)
            if existing is not None:
                if existing.is_reversed:
                    raise IllegalTransitionError(batch.batch_id, BatchStatus.REJECTED, "apply")
                logger.info("Batch %s already settled; skipping apply", batch.batch_id)
                return existing

            addresses = set()
            for tx in batch.transactions:
                addresses.add(tx.sender)
                addresses.add(tx.recipient)
            before = self._store.load_balances(sorted(addresses))
            working: Dict[str, Decimal] = dict(before)

            with exact_arithmetic():
                for tx in batch.transactions:
                    available = working[tx.sender]
                    if available < tx.amount:
                        raise InsufficientBalanceError(tx.sender, tx.amount, available)
                    working[tx.sender] = available - tx.amount
                    working[tx.recipient] = working[tx.recipient] + tx.amount

                deltas = {
                    address: working[address] - before[address]
                    for address in sorted(addresses)
                    if working[address] != before[address]
                }
            record = SettlementRecord(
                batch_id=batch.batch_id,
                deltas=deltas,
                applied_at=self._clock(),
            )
            self._store.save_balances({a: working[a] for a in deltas}, record)

        logger.info(
            "Applied batch %s: %d transactions, %d accounts changed",
            batch.batch_id,
            batch.leaf_count,
            len(deltas),
        )
        return record

    def reverse_batch(self, batch: Batch) -> Optional[SettlementRecord]:
        """
        Undo the recorded effect of ``batch``.

        Returns the reversed record, or None if there was nothing to undo.
        """
        with self._lock:
            record = self._store.load_settlement(batch.batch_id)
            if record is None or record.is_reversed:
                logger.info("Batch %s has no live settlement; skipping reverse", batch.batch_id)
                return None

            current = self._store.load_balances(sorted(record.deltas))
            with exact_arithmetic():
                restored = {
                    address: current[address] - delta for address, delta in record.deltas.items()
                }
            for address, value in restored.items():
                if value < 0:
                    # Funds were withdrawn after settlement; the debt stays visible.
                    logger.warning(
                        "Reversing batch %s leaves %s with negative balance %s",
                        batch.batch_id,
                        address,
                        value,
                    )

            reversed_record = dataclasses.replace(record, reversed_at=self._clock())
            self._store.save_balances(restored, reversed_record)

        logger.info("Reversed batch %s across %d accounts", batch.batch_id, len(restored))
        return reversed_record

    # ------------------------------------------------------------------
    # Bridge operations
    # ------------------------------------------------------------------

    def deposit(self, address: str, amount) -> Decimal:
        """Credit funds bridged in from the primary ledger. Returns the new balance."""
        address = normalize_address(address)
        amount = self._positive(amount)
        with self._lock:
            with exact_arithmetic():
                balance = self._store.load_balance(address) + amount
            self._store.save_balances({address: balance})
        logger.info("Deposited %s to %s", amount, address)
        return balance

    def withdraw(self, address: str, amount) -> Decimal:
        """Debit funds bridged out to the primary ledger. Returns the new balance."""
        address = normalize_address(address)
        amount = self._positive(amount)
        with self._lock:
            available = self._store.load_balance(address)
            if available < amount:
                raise InsufficientBalanceError(address, amount, available)
            with exact_arithmetic():
                balance = available - amount
            self._store.save_balances({address: balance})
        logger.info("Withdrew %s from %s", amount, address)
        return balance

    @staticmethod
    def _positive(amount) -> Decimal:
        value = parse_amount(amount)
        if value == 0:
            raise ValidationError("amount must be positive")
        return value
