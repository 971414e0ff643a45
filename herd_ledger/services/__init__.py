"""Services package."""

from herd_ledger.services.storage import (
    AuditStorageInterface,
    DuplicateError,
    ExternalStoreError,
    InMemoryAuditStorage,
    InMemoryLedgerStore,
    LedgerStoreInterface,
    LockUnavailableError,
    NotFoundError,
)

__all__ = [
    "AuditStorageInterface",
    "DuplicateError",
    "ExternalStoreError",
    "InMemoryAuditStorage",
    "InMemoryLedgerStore",
    "LedgerStoreInterface",
    "LockUnavailableError",
    "NotFoundError",
]
