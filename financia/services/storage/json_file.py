"""
JSON File Storage Implementation

DESIGN DECISION: A single JSON document on local disk is enough for a
personal finance app:
1. No database setup required
2. The user can open the file and read their data
3. Backups are a plain copy of the same shape

TRADEOFFS:
- The whole file is rewritten on each mutation (fine at personal scale)
- Writes are atomic (temp file + os.replace) and retried on OSError

Reads are served from memory; the file is loaded once on first access.
"""

import json
import os
from pathlib import Path
from typing import Optional
from uuid import UUID

import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from financia.models.audit import AuditEvent
from financia.models.records import FinanceRecord, RecordType
from financia.services.storage.interface import (
    AuditStorageInterface,
    StorageError,
)
from financia.services.storage.memory import InMemoryFinanceStorage


logger = structlog.get_logger(__name__)

FILE_FORMAT_VERSION = 1


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.05, max=1),
    retry=retry_if_exception_type(OSError),
    reraise=True,
)
def atomic_write_text(path: Path, text: str) -> None:
    """Write `text` to `path` via a temp file and os.replace()."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        with open(tmp, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp, path)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise


class JsonFileFinanceStorage(InMemoryFinanceStorage):
    """
    Finance records persisted to one JSON file.

    Layout:
        {"version": 1, "transactions": [...], "budgets": [...], ...}
    Each record uses `FinanceRecord.to_export_dict()`.
    """

    def __init__(self, path: str | Path):
        super().__init__()
        self._path = Path(path)
        self._loaded = False

    @property
    def path(self) -> Path:
        return self._path

    def _ensure_loaded(self) -> None:
        """Load the file once; a failed load leaves the store unloaded."""
        if self._loaded:
            return
        if not self._path.exists():
            self._loaded = True
            return
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            records = {
                record_type: {
                    record.id: record
                    for record in (
                        FinanceRecord.from_export_dict(record_type, item)
                        for item in raw.get(record_type.collection, [])
                    )
                }
                for record_type in RecordType
            }
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Failed to read {self._path}: {e}")
        except (AttributeError, TypeError, ValueError) as e:
            raise StorageError(f"Invalid record in {self._path}: {e}")
        self._records = records
        self._loaded = True
        logger.debug("storage_loaded", path=str(self._path))

    def _serialize(self) -> str:
        document = {"version": FILE_FORMAT_VERSION}
        for record_type in RecordType:
            document[record_type.collection] = [
                r.to_export_dict() for r in self._records[record_type].values()
            ]
        return json.dumps(document, indent=2, ensure_ascii=False)

    def _persist(self, snapshot: dict[RecordType, dict[str, FinanceRecord]]) -> None:
        """Write to disk; restore `snapshot` in memory if the write fails."""
        try:
            atomic_write_text(self._path, self._serialize())
        except OSError as e:
            self._records = snapshot
            logger.error("storage_write_failed", path=str(self._path), error=str(e))
            raise StorageError(f"Failed to write {self._path}: {e}")

    def _snapshot(self) -> dict[RecordType, dict[str, FinanceRecord]]:
        return {k: dict(v) for k, v in self._records.items()}

    async def add_record(self, record: FinanceRecord) -> FinanceRecord:
        self._ensure_loaded()
        snapshot = self._snapshot()
        result = await super().add_record(record)
        self._persist(snapshot)
        return result

    async def get_record(
        self,
        record_type: RecordType,
        record_id: str,
    ) -> Optional[FinanceRecord]:
        self._ensure_loaded()
        return await super().get_record(record_type, record_id)

    async def update_record(self, record: FinanceRecord) -> FinanceRecord:
        self._ensure_loaded()
        snapshot = self._snapshot()
        result = await super().update_record(record)
        self._persist(snapshot)
        return result

    async def delete_record(
        self,
        record_type: RecordType,
        record_id: str,
    ) -> bool:
        self._ensure_loaded()
        snapshot = self._snapshot()
        deleted = await super().delete_record(record_type, record_id)
        if deleted:
            self._persist(snapshot)
        return deleted

    async def list_records(
        self,
        record_type: RecordType,
        limit: Optional[int] = None,
    ) -> list[FinanceRecord]:
        self._ensure_loaded()
        return await super().list_records(record_type, limit)

    async def replace_all(
        self,
        records: dict[RecordType, list[FinanceRecord]],
    ) -> None:
        self._ensure_loaded()
        snapshot = self._snapshot()
        await super().replace_all(records)
        self._persist(snapshot)


class JsonlAuditStorage(AuditStorageInterface):
    """Audit events appended as JSON lines to a local file."""

    def __init__(self, path: str | Path):
        self._path = Path(path)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.05, max=1),
        retry=retry_if_exception_type(OSError),
        reraise=True,
    )
    def _append_line(self, line: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "a", encoding="utf-8") as f:
            f.write(line + "\n")

    def _read_events(self) -> list[AuditEvent]:
        if not self._path.exists():
            return []
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                return [
                    AuditEvent.from_json_line(line)
                    for line in f
                    if line.strip()
                ]
        except (OSError, ValueError) as e:
            raise StorageError(f"Failed to get audit events: {e}")

    async def append_event(self, event: AuditEvent) -> bool:
        try:
            self._append_line(event.to_json_line())
            return True
        except OSError as e:
            # Audit logging should not break the main flow
            logger.warning("audit_append_failed", path=str(self._path), error=str(e))
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return [e for e in self._read_events() if e.correlation_id == correlation_id]

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        return [
            e for e in self._read_events()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return list(reversed(self._read_events()))[:limit]
