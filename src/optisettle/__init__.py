from .protocol import Batch, BatchStatus, Transaction
from .merkle import CommitmentTree, compute_root, verify_proof
from .core import Batcher, BatchLifecycle, Ledger, TransactionPool
from .store import BatchStore, InMemoryBatchStore, SQLiteBatchStore
from .engine import SettlementEngine

__version__ = "0.1.0"

__all__ = [
    "Batch",
    "BatchStatus",
    "Transaction",
    "CommitmentTree",
    "compute_root",
    "verify_proof",
    "Batcher",
    "BatchLifecycle",
    "Ledger",
    "TransactionPool",
    "BatchStore",
    "InMemoryBatchStore",
    "SQLiteBatchStore",
    "SettlementEngine",
]
