"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap the JSON file for a hosted backend later
2. Use in-memory storage for testing
3. Keep undo reversals decoupled from the storage implementation

Reversal closures registered with the undo manager call into this
interface; the manager itself never sees it.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from financia.models.audit import AuditEvent
from financia.models.records import FinanceRecord, RecordType


class FinanceStorageInterface(ABC):
    """
    Abstract interface for finance record storage.

    Any storage implementation must implement these methods.
    """

    @abstractmethod
    async def add_record(self, record: FinanceRecord) -> FinanceRecord:
        """
        Insert a new record.

        Raises:
            DuplicateError: If a record with the same id already exists
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def get_record(
        self,
        record_type: RecordType,
        record_id: str,
    ) -> Optional[FinanceRecord]:
        """Return the record, or None if it does not exist."""
        pass

    @abstractmethod
    async def update_record(self, record: FinanceRecord) -> FinanceRecord:
        """
        Replace an existing record.

        Raises:
            NotFoundError: If the record doesn't exist
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_record(
        self,
        record_type: RecordType,
        record_id: str,
    ) -> bool:
        """
        Delete a record.

        Returns:
            True if a record was deleted, False if it did not exist
        """
        pass

    @abstractmethod
    async def list_records(
        self,
        record_type: RecordType,
        limit: Optional[int] = None,
    ) -> list[FinanceRecord]:
        """List records of one type, most recently created first."""
        pass

    @abstractmethod
    async def export_all(self) -> dict[RecordType, list[FinanceRecord]]:
        """Snapshot of every collection, used by backups."""
        pass

    @abstractmethod
    async def replace_all(
        self,
        records: dict[RecordType, list[FinanceRecord]],
    ) -> None:
        """
        Replace the given collections wholesale (restore from backup).

        Collections absent from `records` are left untouched.
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events for a correlation ID, in chronological order."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Get all events for a specific entity, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass
