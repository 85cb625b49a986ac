"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Complete traceability of mutations and their reversals
2. Debugging capability when a reversal fails
3. User can see history of their interactions

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to tie a mutation to its undo
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from financia.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from financia.models.undo import UndoEntry
from financia.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage, when one is configured (for persistence)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger()

    @property
    def storage(self) -> Optional[AuditStorageInterface]:
        return self._storage

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif event.severity.value == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_undo_registered(self, entry: UndoEntry) -> None:
        await self.log(AuditEventBuilder.undo_registered(
            undo_id=entry.id,
            kind=entry.kind,
            subject=entry.subject,
            description=entry.description,
            correlation_id=correlation_id_of(entry),
        ))

    async def log_undo_succeeded(self, entry: UndoEntry) -> None:
        await self.log(AuditEventBuilder.undo_succeeded(
            undo_id=entry.id,
            kind=entry.kind,
            subject=entry.subject,
            correlation_id=correlation_id_of(entry),
        ))

    async def log_undo_failed(self, entry: UndoEntry, error: BaseException) -> None:
        await self.log(AuditEventBuilder.undo_failed(
            undo_id=entry.id,
            kind=entry.kind,
            subject=entry.subject,
            error_message=f"{type(error).__name__}: {error}",
            correlation_id=correlation_id_of(entry),
        ))

    async def log_undo_rejected(self, undo_id: str, reason: str) -> None:
        await self.log(AuditEventBuilder.undo_rejected(undo_id, reason))

    async def log_undo_dismissed(self, undo_id: str) -> None:
        await self.log(AuditEventBuilder.undo_dismissed(undo_id))

    async def log_undo_expired(self, undo_ids: list[str]) -> None:
        await self.log(AuditEventBuilder.undo_expired(undo_ids))

    async def log_undo_stack_cleared(self, count: int) -> None:
        await self.log(AuditEventBuilder.undo_stack_cleared(count))

    async def log_record_changed(
        self,
        event_type: AuditEventType,
        record_type: str,
        record_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.record_changed(
            event_type=event_type,
            record_type=record_type,
            record_id=record_id,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def correlation_id_of(entry: UndoEntry) -> Optional[UUID]:
    """Correlation id carried in an entry payload, if the caller put one there."""
    payload = entry.payload
    if isinstance(payload, dict):
        value = payload.get("correlation_id")
        if isinstance(value, UUID):
            return value
    return None


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user action (e.g., deleting a transaction).
    Pass it through all subsequent operations, including its undo.
    """
    return uuid4()
