"""
Data Models Package

This package contains all Pydantic models used in Financia.
"""

from financia.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from financia.models.records import (
    FinanceRecord,
    RecordType,
    TransactionType,
)
from financia.models.undo import (
    UndoEntry,
    UndoKind,
    UndoOutcome,
    UndoResult,
    UndoSubject,
)

__all__ = [
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Record models
    "FinanceRecord",
    "RecordType",
    "TransactionType",
    # Undo models
    "UndoEntry",
    "UndoKind",
    "UndoOutcome",
    "UndoResult",
    "UndoSubject",
]
