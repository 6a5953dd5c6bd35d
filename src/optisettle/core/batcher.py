"""
Batcher

Turns client transactions into an immutable, persisted Batch.

The batcher commits to the transactions exactly as given: balance
sufficiency is checked later, at verification, because balances can move
between batch creation and verification.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence

from optisettle.merkle.tree import CommitmentTree
from optisettle.protocol.enums import BatchStatus
from optisettle.protocol.errors import EmptyBatchError
from optisettle.protocol.models import Batch, Transaction
from optisettle.store.base import BatchStore
from optisettle.utils.id_gen import generate_batch_id
from optisettle.utils.timestamps import Clock, utc_now

from .pool import TransactionPool

logger = logging.getLogger(__name__)


class Batcher:
    def __init__(
        self,
        store: BatchStore,
        *,
        clock: Clock = utc_now,
        id_factory: Callable[[], str] = generate_batch_id,
    ) -> None:
        self._store = store
        self._clock = clock
        self._id_factory = id_factory

    def create_batch(self, transactions: Sequence[Transaction]) -> Batch:
        """
        Commit ``transactions`` to a new pending batch and persist it.

        Raises:
            EmptyBatchError: If no transactions are given
            StoreUnavailableError: If the batch could not be persisted
        """
        if not transactions:
            raise EmptyBatchError("a batch needs at least one transaction")

        tree = CommitmentTree.build(transactions)
        batch = Batch(
            batch_id=self._id_factory(),
            transactions_root=tree.root,
            transactions=tuple(transactions),
            created_at=self._clock(),
            status=BatchStatus.PENDING,
        )
        self._store.save_batch(batch)
        logger.info(
            "Created batch %s with %d transactions, root %s",
            batch.batch_id,
            batch.leaf_count,
            batch.transactions_root,
        )
        return batch

    def create_batch_from_pool(self, pool: TransactionPool, limit: Optional[int] = None) -> Batch:
        """
        Cut a batch from the head of ``pool``. Drained transactions go back to
        the pool if the batch cannot be persisted.
        """
        transactions = pool.drain(limit)
        if not transactions:
            raise EmptyBatchError("transaction pool is empty")
        try:
            return self.create_batch(transactions)
        except Exception:
            pool.restore(transactions)
            raise
