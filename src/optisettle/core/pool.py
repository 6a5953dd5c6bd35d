"""
Pending transaction pool.

Client transactions wait here until an operator cuts a batch. The pool is a
FIFO; draining removes transactions in submission order.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Deque, Iterable, List, Optional

from optisettle.protocol.models import Transaction

logger = logging.getLogger(__name__)


class TransactionPool:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._queue: Deque[Transaction] = deque()

    def add(self, tx: Transaction) -> int:
        """Queue a transaction. Returns the pool size after insertion."""
        with self._lock:
            self._queue.append(tx)
            size = len(self._queue)
        logger.debug("Queued transaction %s -> %s (%s), pool size %d",
                     tx.sender, tx.recipient, tx.amount, size)
        return size

    def pending(self) -> List[Transaction]:
        with self._lock:
            return list(self._queue)

    def drain(self, limit: Optional[int] = None) -> List[Transaction]:
        """Remove and return up to ``limit`` transactions (all if None)."""
        with self._lock:
            count = len(self._queue) if limit is None else min(limit, len(self._queue))
            return [self._queue.popleft() for _ in range(count)]

    def restore(self, transactions: Iterable[Transaction]) -> None:
        """Put drained transactions back at the front, preserving their order."""
        with self._lock:
            self._queue.extendleft(reversed(list(transactions)))

    def __len__(self) -> int:
        with self._lock:
            return len(self._queue)
