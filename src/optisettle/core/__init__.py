"""
Off-chain batching and settlement core: batcher, ledger, lifecycle.
"""

from .batcher import Batcher
from .ledger import Ledger
from .lifecycle import BatchLifecycle
from .locks import KeyedLock
from .pool import TransactionPool

__all__ = ["Batcher", "Ledger", "BatchLifecycle", "KeyedLock", "TransactionPool"]
