"""
Persistent store interface consumed by the settlement engine.

The engine never holds batches or balances as ambient state; everything goes
through a ``BatchStore``. Implementations must make ``save_balances`` atomic
across all keys it touches (and the optional settlement record), and must
surface timeouts or backend failures as ``StoreUnavailableError``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional

from optisettle.protocol.enums import BatchStatus
from optisettle.protocol.models import Batch, SettlementRecord


class BatchStore(ABC):
    """
    Storage for batches, balances and settlement records.
    """

    @abstractmethod
    def load_batch(self, batch_id: str) -> Batch:
        """Return the batch, raising BatchNotFoundError if it does not exist."""

    @abstractmethod
    def save_batch(self, batch: Batch) -> None:
        """Insert or replace a batch."""

    @abstractmethod
    def list_batches(self, status: Optional[BatchStatus] = None) -> List[Batch]:
        """All batches, newest first, optionally filtered by status."""

    @abstractmethod
    def load_balance(self, address: str) -> Decimal:
        """Balance for ``address``; unknown accounts hold zero."""

    def load_balances(self, addresses: Iterable[str]) -> Dict[str, Decimal]:
        return {address: self.load_balance(address) for address in addresses}

    @abstractmethod
    def save_balances(
        self,
        balances: Mapping[str, Decimal],
        record: Optional[SettlementRecord] = None,
    ) -> None:
        """
        Atomically write every balance in ``balances`` and, if given, the
        settlement record. Either everything lands or nothing does.
        """

    @abstractmethod
    def load_settlement(self, batch_id: str) -> Optional[SettlementRecord]:
        """Settlement record for ``batch_id``, or None if never applied."""

    def close(self) -> None:
        pass
