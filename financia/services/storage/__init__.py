"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
"""

from financia.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    FinanceStorageInterface,
    NotFoundError,
    StorageError,
)
from financia.services.storage.json_file import (
    JsonFileFinanceStorage,
    JsonlAuditStorage,
)
from financia.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryFinanceStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "FinanceStorageInterface",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Implementations
    "InMemoryAuditStorage",
    "InMemoryFinanceStorage",
    "JsonFileFinanceStorage",
    "JsonlAuditStorage",
]
