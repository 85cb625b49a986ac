"""Services package."""

from financia.services.storage import (
    AuditStorageInterface,
    DuplicateError,
    FinanceStorageInterface,
    InMemoryAuditStorage,
    InMemoryFinanceStorage,
    JsonFileFinanceStorage,
    JsonlAuditStorage,
    NotFoundError,
    StorageError,
)

__all__ = [
    # Storage services
    "AuditStorageInterface",
    "DuplicateError",
    "FinanceStorageInterface",
    "InMemoryAuditStorage",
    "InMemoryFinanceStorage",
    "JsonFileFinanceStorage",
    "JsonlAuditStorage",
    "NotFoundError",
    "StorageError",
]
