"""
In-Memory Storage Implementation

Used by tests and by sessions configured with `STORAGE_BACKEND=memory`.
Records are kept per type in insertion order; newest first on listing,
matching how the screens show them.
"""

from typing import Optional
from uuid import UUID

from financia.models.audit import AuditEvent
from financia.models.records import FinanceRecord, RecordType
from financia.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    FinanceStorageInterface,
    NotFoundError,
)


class InMemoryFinanceStorage(FinanceStorageInterface):
    """Finance records held in a dict of dicts, keyed by type then id."""

    def __init__(self):
        self._records: dict[RecordType, dict[str, FinanceRecord]] = {
            record_type: {} for record_type in RecordType
        }

    def _collection(self, record_type: RecordType) -> dict[str, FinanceRecord]:
        return self._records[RecordType(record_type)]

    async def add_record(self, record: FinanceRecord) -> FinanceRecord:
        collection = self._collection(record.record_type)
        if record.id in collection:
            raise DuplicateError(
                f"{record.record_type.value} already exists: {record.id}"
            )
        collection[record.id] = record
        return record

    async def get_record(
        self,
        record_type: RecordType,
        record_id: str,
    ) -> Optional[FinanceRecord]:
        return self._collection(record_type).get(record_id)

    async def update_record(self, record: FinanceRecord) -> FinanceRecord:
        collection = self._collection(record.record_type)
        if record.id not in collection:
            raise NotFoundError(
                f"{record.record_type.value} not found: {record.id}"
            )
        collection[record.id] = record
        return record

    async def delete_record(
        self,
        record_type: RecordType,
        record_id: str,
    ) -> bool:
        return self._collection(record_type).pop(record_id, None) is not None

    async def list_records(
        self,
        record_type: RecordType,
        limit: Optional[int] = None,
    ) -> list[FinanceRecord]:
        indexed = sorted(
            enumerate(self._collection(record_type).values()),
            key=lambda pair: (pair[1].created_at, pair[0]),
            reverse=True,
        )
        records = [record for _, record in indexed]
        return records[:limit] if limit is not None else records

    async def export_all(self) -> dict[RecordType, list[FinanceRecord]]:
        return {
            record_type: await self.list_records(record_type)
            for record_type in RecordType
        }

    async def replace_all(
        self,
        records: dict[RecordType, list[FinanceRecord]],
    ) -> None:
        for record_type, items in records.items():
            self._records[RecordType(record_type)] = {r.id: r for r in items}


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return [e for e in self._events if e.correlation_id == correlation_id]

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        return [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
