"""
In-memory store.

Used by tests and by single-process deployments that do not need restart
durability. All models are frozen, so stored values are shared, not copied.
"""

from __future__ import annotations

import threading
from decimal import Decimal
from typing import Dict, List, Mapping, Optional

from optisettle.protocol.enums import BatchStatus
from optisettle.protocol.errors import BatchNotFoundError
from optisettle.protocol.models import Batch, SettlementRecord

from .base import BatchStore


class InMemoryBatchStore(BatchStore):
    def __init__(self, balances: Optional[Mapping[str, Decimal]] = None) -> None:
        self._lock = threading.Lock()
        self._batches: Dict[str, Batch] = {}
        self._balances: Dict[str, Decimal] = {}
        self._settlements: Dict[str, SettlementRecord] = {}
        if balances:
            self._balances.update({addr.lower(): Decimal(v) for addr, v in balances.items()})

    def load_batch(self, batch_id: str) -> Batch:
        with self._lock:
            batch = self._batches.get(batch_id)
        if batch is None:
            raise BatchNotFoundError(batch_id)
        return batch

    def save_batch(self, batch: Batch) -> None:
        with self._lock:
            self._batches[batch.batch_id] = batch

    def list_batches(self, status: Optional[BatchStatus] = None) -> List[Batch]:
        with self._lock:
            batches = list(self._batches.values())
        if status is not None:
            batches = [b for b in batches if b.status == status]
        return sorted(batches, key=lambda b: b.created_at, reverse=True)

    def load_balance(self, address: str) -> Decimal:
        with self._lock:
            return self._balances.get(address.lower(), Decimal(0))

    def save_balances(
        self,
        balances: Mapping[str, Decimal],
        record: Optional[SettlementRecord] = None,
    ) -> None:
        with self._lock:
            self._balances.update({addr.lower(): value for addr, value in balances.items()})
            if record is not None:
                self._settlements[record.batch_id] = record

    def load_settlement(self, batch_id: str) -> Optional[SettlementRecord]:
        with self._lock:
            return self._settlements.get(batch_id)

    def all_balances(self) -> Dict[str, Decimal]:
        with self._lock:
            return dict(self._balances)
