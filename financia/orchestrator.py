"""
Finance Session Orchestrator

Ties storage, audit logging, the undo manager and backups together for one
application session (login to logout).

DESIGN DECISION: Every mutation goes through the session, and every
mutation registers its own reversal:
- add    → reversal deletes the added record
- delete → reversal re-inserts the deleted record
- update → reversal writes back the previous version

The undo manager never sees storage; it only holds the closures built here.
"""

from typing import Any, Optional
from uuid import UUID

import structlog

from financia.audit import AuditLogger, create_correlation_id
from financia.config import Settings, get_settings
from financia.models.audit import AuditEventType
from financia.models.records import FinanceRecord, RecordType
from financia.models.undo import UndoEntry, UndoKind, UndoResult
from financia.services.backup import BackupService
from financia.services.storage import (
    FinanceStorageInterface,
    InMemoryFinanceStorage,
    JsonFileFinanceStorage,
    JsonlAuditStorage,
    NotFoundError,
    StorageError,
)
from financia.undo import UndoManager


class FinanceSession:
    """
    Lifecycle-scoped container for one user session.

    Usage:
        async with create_session() as session:
            record, undo_entry = await session.delete_record(
                RecordType.TRANSACTION, record_id
            )
            await session.undo(undo_entry.id)
    """

    def __init__(
        self,
        storage: FinanceStorageInterface,
        undo_manager: Optional[UndoManager] = None,
        audit_logger: Optional[AuditLogger] = None,
        backup_service: Optional[BackupService] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger
        self._undo = undo_manager or UndoManager(audit_logger=audit_logger)
        self._backup = backup_service or BackupService(storage, audit_logger=audit_logger)
        self._logger = structlog.get_logger(__name__)

    @property
    def storage(self) -> FinanceStorageInterface:
        return self._storage

    @property
    def undo_manager(self) -> UndoManager:
        return self._undo

    @property
    def backup(self) -> BackupService:
        return self._backup

    # ------------------------------------------------------------------
    # Record mutations
    # ------------------------------------------------------------------

    async def add_record(
        self,
        record_type: RecordType,
        data: dict[str, Any],
    ) -> tuple[FinanceRecord, UndoEntry]:
        """Store a new record; the returned undo entry deletes it again."""
        record_type = RecordType(record_type)
        correlation_id = create_correlation_id()
        try:
            record = await self._storage.add_record(
                FinanceRecord(record_type=record_type, data=data)
            )
        except StorageError as e:
            await self._audit_storage_error(e, correlation_id)
            raise
        await self._audit_record(AuditEventType.RECORD_ADDED, record, correlation_id)

        async def reverse() -> None:
            await self._storage.delete_record(record.record_type, record.id)

        entry = self._undo.register_undo(
            kind=UndoKind.ADD,
            subject=record_type.value,
            payload=_payload(record, None, correlation_id),
            description=_describe(record, "added"),
            reverse=reverse,
        )
        return record, entry

    async def update_record(
        self,
        record_type: RecordType,
        record_id: str,
        updates: dict[str, Any],
    ) -> tuple[FinanceRecord, UndoEntry]:
        """
        Merge `updates` into a record; the undo entry restores the old version.

        Raises:
            NotFoundError: If the record doesn't exist
        """
        previous = await self._require(record_type, record_id)
        correlation_id = create_correlation_id()
        try:
            record = await self._storage.update_record(previous.with_updates(updates))
        except StorageError as e:
            await self._audit_storage_error(e, correlation_id)
            raise
        await self._audit_record(AuditEventType.RECORD_UPDATED, record, correlation_id)

        async def reverse() -> None:
            await self._storage.update_record(previous)

        entry = self._undo.register_undo(
            kind=UndoKind.UPDATE,
            subject=previous.record_type.value,
            payload=_payload(record, previous, correlation_id),
            description=_describe(record, "updated"),
            reverse=reverse,
        )
        return record, entry

    async def delete_record(
        self,
        record_type: RecordType,
        record_id: str,
    ) -> tuple[FinanceRecord, UndoEntry]:
        """
        Delete a record; the undo entry puts it back unchanged.

        Raises:
            NotFoundError: If the record doesn't exist
        """
        record = await self._require(record_type, record_id)
        correlation_id = create_correlation_id()
        try:
            await self._storage.delete_record(record.record_type, record.id)
        except StorageError as e:
            await self._audit_storage_error(e, correlation_id)
            raise
        await self._audit_record(AuditEventType.RECORD_DELETED, record, correlation_id)

        async def reverse() -> None:
            await self._storage.add_record(record)

        entry = self._undo.register_undo(
            kind=UndoKind.DELETE,
            subject=record.record_type.value,
            payload=_payload(record, record, correlation_id),
            description=_describe(record, "deleted"),
            reverse=reverse,
        )
        return record, entry

    async def list_records(
        self,
        record_type: RecordType,
        limit: Optional[int] = None,
    ) -> list[FinanceRecord]:
        return await self._storage.list_records(RecordType(record_type), limit)

    # ------------------------------------------------------------------
    # Undo passthrough
    # ------------------------------------------------------------------

    async def undo(self, entry_id: Optional[str] = None) -> UndoResult:
        return await self._undo.undo(entry_id)

    def dismiss_undo(self, entry_id: str) -> None:
        self._undo.dismiss_undo(entry_id)

    def clear_undo_stack(self) -> None:
        """Call on navigation away or logout."""
        self._undo.clear_undo_stack()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        await self._undo.close()
        self._logger.debug("finance_session_closed")

    async def __aenter__(self) -> "FinanceSession":
        self._undo.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _require(self, record_type: RecordType, record_id: str) -> FinanceRecord:
        record = await self._storage.get_record(RecordType(record_type), record_id)
        if record is None:
            raise NotFoundError(f"{RecordType(record_type).value} not found: {record_id}")
        return record

    async def _audit_record(
        self,
        event_type: AuditEventType,
        record: FinanceRecord,
        correlation_id: UUID,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_record_changed(
                event_type=event_type,
                record_type=record.record_type.value,
                record_id=record.id,
                correlation_id=correlation_id,
            )

    async def _audit_storage_error(
        self,
        error: StorageError,
        correlation_id: UUID,
    ) -> None:
        self._logger.error(
            "record_write_failed",
            error=str(error),
            correlation_id=str(correlation_id),
        )
        if self._audit_logger:
            await self._audit_logger.log_error(
                error_type=type(error).__name__,
                error_message=str(error),
                correlation_id=correlation_id,
            )


def _payload(
    record: FinanceRecord,
    previous: Optional[FinanceRecord],
    correlation_id: UUID,
) -> dict[str, Any]:
    return {
        "record_type": record.record_type.value,
        "record_id": record.id,
        "previous": previous.to_export_dict() if previous else None,
        "correlation_id": correlation_id,
    }


def _describe(record: FinanceRecord, verb: str) -> str:
    label = record.record_type.value.capitalize()
    detail = record.data.get("description") or record.data.get("name")
    if detail:
        return f"{label} {verb}: {detail}"
    return f"{label} {verb}"


def create_session(settings: Optional[Settings] = None) -> FinanceSession:
    """
    Factory function to create a session from configuration.

    `STORAGE_BACKEND=json` persists records and the audit log to local
    files; `memory` keeps everything in process with local-only audit
    logging.
    """
    settings = settings or get_settings()
    storage_settings = settings.storage

    if storage_settings.backend == "json":
        storage: FinanceStorageInterface = JsonFileFinanceStorage(storage_settings.data_file)
        audit_logger = AuditLogger(JsonlAuditStorage(storage_settings.audit_file))
    else:
        storage = InMemoryFinanceStorage()
        audit_logger = AuditLogger()  # Local-only logging

    undo_manager = UndoManager(settings=settings.undo, audit_logger=audit_logger)
    backup_service = BackupService(
        storage,
        settings=settings.backup,
        audit_logger=audit_logger,
    )
    return FinanceSession(
        storage=storage,
        undo_manager=undo_manager,
        audit_logger=audit_logger,
        backup_service=backup_service,
    )
