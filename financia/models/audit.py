"""
Audit Models for Financia

Every mutation, every undo attempt and every backup is recorded as an
audit event. This gives:
1. Traceability of what the user changed and what was reverted
2. Debugging information when a reversal fails
3. A history the user can inspect

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from financia.models.records import utcnow


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Undo lifecycle
    UNDO_REGISTERED = "undo_registered"
    UNDO_SUCCEEDED = "undo_succeeded"
    UNDO_FAILED = "undo_failed"
    UNDO_REJECTED = "undo_rejected"
    UNDO_DISMISSED = "undo_dismissed"
    UNDO_EXPIRED = "undo_expired"
    UNDO_STACK_CLEARED = "undo_stack_cleared"

    # Record mutations
    RECORD_ADDED = "record_added"
    RECORD_UPDATED = "record_updated"
    RECORD_DELETED = "record_deleted"

    # Backups
    BACKUP_EXPORTED = "backup_exported"
    BACKUP_IMPORTED = "backup_imported"
    BACKUP_REMINDER_POSTPONED = "backup_reminder_postponed"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'undo', 'transaction', 'backup')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., a mutation and its undo)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_json_line(self) -> str:
        """Serialize as one line of a JSON-lines audit file."""
        return self.model_dump_json()

    @classmethod
    def from_json_line(cls, line: str) -> "AuditEvent":
        return cls.model_validate_json(line)


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.undo_registered(
            undo_id=entry.id,
            kind=entry.kind,
            subject=entry.subject,
            description=entry.description,
        )
        event = AuditEventBuilder.undo_failed(
            undo_id=entry.id,
            kind=entry.kind,
            subject=entry.subject,
            error_message=str(error),
        )
    """

    @staticmethod
    def undo_registered(
        undo_id: str,
        kind: str,
        subject: str,
        description: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UNDO_REGISTERED,
            entity_type="undo",
            entity_id=undo_id,
            correlation_id=correlation_id,
            description=f"Undo available: {description}",
            details={"kind": kind, "subject": subject},
        )

    @staticmethod
    def undo_succeeded(
        undo_id: str,
        kind: str,
        subject: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UNDO_SUCCEEDED,
            entity_type="undo",
            entity_id=undo_id,
            correlation_id=correlation_id,
            description=f"Reverted {kind} of {subject}",
            details={"kind": kind, "subject": subject},
            is_user_action=True,
        )

    @staticmethod
    def undo_failed(
        undo_id: str,
        kind: str,
        subject: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UNDO_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="undo",
            entity_id=undo_id,
            correlation_id=correlation_id,
            description=f"Failed to revert {kind} of {subject}",
            details={"kind": kind, "subject": subject},
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def undo_rejected(
        undo_id: str,
        reason: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UNDO_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="undo",
            entity_id=undo_id,
            description=f"Undo rejected: {reason}",
            details={"reason": reason},
            is_user_action=True,
        )

    @staticmethod
    def undo_dismissed(undo_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UNDO_DISMISSED,
            entity_type="undo",
            entity_id=undo_id,
            description="Undo dismissed",
        )

    @staticmethod
    def undo_expired(undo_ids: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UNDO_EXPIRED,
            severity=AuditSeverity.DEBUG,
            entity_type="undo",
            description=f"{len(undo_ids)} undo entries expired",
            details={"undo_ids": undo_ids},
        )

    @staticmethod
    def undo_stack_cleared(count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UNDO_STACK_CLEARED,
            entity_type="undo",
            description=f"Undo history cleared ({count} entries)",
            details={"count": count},
        )

    @staticmethod
    def record_changed(
        event_type: AuditEventType,
        record_type: str,
        record_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        verb = {
            AuditEventType.RECORD_ADDED: "added",
            AuditEventType.RECORD_UPDATED: "updated",
            AuditEventType.RECORD_DELETED: "deleted",
        }[event_type]
        return AuditEvent(
            event_type=event_type,
            entity_type=record_type,
            entity_id=record_id,
            correlation_id=correlation_id,
            description=f"{record_type.capitalize()} {verb}",
            is_user_action=True,
        )

    @staticmethod
    def backup_exported(path: str, fmt: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_EXPORTED,
            entity_type="backup",
            description=f"Backup exported as {fmt}",
            details={"path": path, "format": fmt},
            is_user_action=True,
        )

    @staticmethod
    def backup_imported(stats: dict[str, int]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_IMPORTED,
            entity_type="backup",
            description="Backup restored",
            details={"stats": stats},
            is_user_action=True,
        )

    @staticmethod
    def backup_reminder_postponed(days: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_REMINDER_POSTPONED,
            entity_type="backup",
            description=f"Backup reminder postponed by {days} day(s)",
            details={"days": days},
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
