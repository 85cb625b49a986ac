"""
Backup Service

Exports everything the user has entered to a file they keep, restores from
such a file, and decides when to nag about making a fresh backup.

Backup file layout (JSON):
    {
        "version": "1.0",
        "export_date": "<ISO timestamp>",
        "app_name": "Financia Suite",
        "data": {
            "transactions": [...], "budgets": [...],
            "goals": [...], "debts": [...],
            "settings": {...}
        }
    }

The reminder state (when the last backup happened) lives in a small JSON
file next to the user's config, written atomically.
"""

import csv
import io
import json
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Optional

import structlog

from financia.audit import AuditLogger
from financia.config import BackupSettings, get_settings
from financia.models.audit import AuditEventBuilder
from financia.models.records import FinanceRecord, RecordType, TransactionType, utcnow
from financia.services.storage import FinanceStorageInterface
from financia.services.storage.json_file import atomic_write_text


BACKUP_FORMAT_VERSION = "1.0"

CSV_HEADERS = ["Date", "Type", "Category", "Description", "Amount", "Person", "Notes"]


class BackupError(Exception):
    """Backup could not be created or restored."""
    pass


class BackupService:
    """
    Export, import and reminder logic for user backups.

    Args:
        storage: Where the finance records live
        settings: Backup settings (defaults to the cached app settings)
        audit_logger: Optional audit trail for exports and restores
        now: Returns the current UTC datetime; injectable for tests
    """

    def __init__(
        self,
        storage: FinanceStorageInterface,
        settings: Optional[BackupSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self._storage = storage
        self._settings = settings or get_settings().backup
        self._audit_logger = audit_logger
        self._now = now or utcnow
        self._logger = structlog.get_logger(__name__)

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    async def build_backup(self) -> dict[str, Any]:
        """Return the full backup document (caller decides where it goes)."""
        snapshot = await self._storage.export_all()
        data: dict[str, Any] = {
            record_type.collection: [
                r.to_export_dict() for r in snapshot.get(record_type, [])
            ]
            for record_type in RecordType
        }
        data["settings"] = {
            "reminder_interval_days": self._settings.reminder_interval_days,
        }
        return {
            "version": BACKUP_FORMAT_VERSION,
            "export_date": self._now().isoformat(),
            "app_name": self._settings.app_name,
            "data": data,
        }

    async def export_to_json(self, directory: Optional[str | Path] = None) -> Path:
        """
        Write `financia-backup-YYYY-MM-DD.json` and remember the backup time.

        Returns the path of the written file.
        """
        document = await self.build_backup()
        path = self._export_path("financia-backup", "json", directory)
        try:
            atomic_write_text(path, json.dumps(document, indent=2, ensure_ascii=False))
        except OSError as e:
            raise BackupError(f"Failed to write backup: {e}")

        self._record_backup_time(self._now())
        self._logger.info("backup_exported", path=str(path), format="json")
        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.backup_exported(str(path), "json"))
        return path

    async def export_transactions_csv(
        self,
        directory: Optional[str | Path] = None,
    ) -> Path:
        """
        Write transactions to `financia-transactions-YYYY-MM-DD.csv`.

        The file starts with a UTF-8 BOM so spreadsheet apps detect the
        encoding; every cell is quoted.

        Raises:
            BackupError: If there are no transactions to export
        """
        transactions = await self._storage.list_records(RecordType.TRANSACTION)
        if not transactions:
            raise BackupError("No transactions to export")

        buf = io.StringIO()
        writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow(CSV_HEADERS)
        for record in transactions:
            writer.writerow(_transaction_row(record))

        path = self._export_path("financia-transactions", "csv", directory)
        try:
            atomic_write_text(path, "\ufeff" + buf.getvalue())
        except OSError as e:
            raise BackupError(f"Failed to write CSV export: {e}")

        self._logger.info("backup_exported", path=str(path), format="csv")
        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.backup_exported(str(path), "csv"))
        return path

    # ------------------------------------------------------------------
    # Import
    # ------------------------------------------------------------------

    async def import_from_backup(self, backup: dict | str) -> dict[str, int]:
        """
        Restore collections from a backup document (dict or JSON string).

        Collections present in the backup replace the stored ones; absent
        collections are left as they are.

        Returns:
            Counts of restored transactions, budgets, goals and debts.

        Raises:
            BackupError: If the document is not a valid backup
        """
        if isinstance(backup, str):
            try:
                backup = json.loads(backup)
            except json.JSONDecodeError as e:
                raise BackupError(f"Invalid backup format: {e}")

        if not isinstance(backup, dict) or not backup.get("version") or not isinstance(backup.get("data"), dict):
            raise BackupError("Invalid backup format")

        data = backup["data"]
        restored: dict[RecordType, list[FinanceRecord]] = {}
        try:
            for record_type in RecordType:
                items = data.get(record_type.collection)
                if items is None:
                    continue
                restored[record_type] = [
                    FinanceRecord.from_export_dict(record_type, item) for item in items
                ]
        except (TypeError, ValueError) as e:
            raise BackupError(f"Invalid record in backup: {e}")

        await self._storage.replace_all(restored)

        stats = {
            record_type.collection: len(data.get(record_type.collection) or [])
            for record_type in RecordType
        }
        self._logger.info("backup_imported", **stats)
        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.backup_imported(stats))
        return stats

    # ------------------------------------------------------------------
    # Reminder
    # ------------------------------------------------------------------

    def last_backup_at(self) -> Optional[datetime]:
        value = self._load_state().get("last_backup")
        return datetime.fromisoformat(value) if value else None

    def needs_backup_reminder(self, now: Optional[datetime] = None) -> bool:
        """True if the user never backed up or the interval has passed."""
        last = self.last_backup_at()
        if last is None:
            return True
        now = now or self._now()
        return now - last > timedelta(days=self._settings.reminder_interval_days)

    def days_since_last_backup(self, now: Optional[datetime] = None) -> Optional[int]:
        last = self.last_backup_at()
        if last is None:
            return None
        now = now or self._now()
        return (now - last).days

    async def postpone_backup_reminder(self, now: Optional[datetime] = None) -> None:
        """Hide the reminder for `postpone_days` by back-dating the last backup."""
        now = now or self._now()
        hidden_for = timedelta(
            days=self._settings.reminder_interval_days - self._settings.postpone_days
        )
        self._record_backup_time(now - hidden_for)
        if self._audit_logger:
            await self._audit_logger.log(
                AuditEventBuilder.backup_reminder_postponed(self._settings.postpone_days)
            )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _export_path(
        self,
        prefix: str,
        suffix: str,
        directory: Optional[str | Path],
    ) -> Path:
        folder = Path(directory) if directory is not None else Path(self._settings.export_dir)
        return folder / f"{prefix}-{self._now().date().isoformat()}.{suffix}"

    def _load_state(self) -> dict:
        """Returns {} on missing or corrupt file."""
        path = Path(self._settings.state_file)
        try:
            with open(path, "r", encoding="utf-8") as f:
                state = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError) as e:
            self._logger.warning("backup_state_unreadable", path=str(path), error=str(e))
            return {}
        return state if isinstance(state, dict) else {}

    def _record_backup_time(self, when: datetime) -> None:
        state = self._load_state()
        state["last_backup"] = when.isoformat()
        try:
            atomic_write_text(Path(self._settings.state_file), json.dumps(state, indent=2))
        except OSError as e:
            raise BackupError(f"Failed to save backup state: {e}")


def _transaction_row(record: FinanceRecord) -> list[str]:
    data = record.data
    kind = data.get("type", "")
    return [
        str(data.get("date", "")),
        "Income" if kind == TransactionType.INCOME.value else "Expense",
        str(data.get("category") or ""),
        str(data.get("description") or ""),
        str(data.get("amount", "")),
        str(data.get("person") or ""),
        str(data.get("notes") or ""),
    ]
