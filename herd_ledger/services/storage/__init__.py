"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Currently implements an in-memory backend, but designed to be swappable.
"""

from herd_ledger.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    ExternalStoreError,
    LedgerStoreInterface,
    LockUnavailableError,
    NotFoundError,
)
from herd_ledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerStoreInterface",
    # Exceptions
    "DuplicateError",
    "ExternalStoreError",
    "LockUnavailableError",
    "NotFoundError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryLedgerStore",
]
