from .base import BatchStore
from .memory import InMemoryBatchStore
from .sqlite import SQLiteBatchStore


def create_store(settings) -> BatchStore:
    """Build the store selected by ``StoreSettings``."""
    if settings.backend == "sqlite":
        return SQLiteBatchStore(settings.sqlite_path, timeout=settings.timeout_seconds)
    return InMemoryBatchStore()


__all__ = ["BatchStore", "InMemoryBatchStore", "SQLiteBatchStore", "create_store"]
