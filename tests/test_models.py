"""
Tests for Financia models

Test strategy:
1. Unit tests for individual models (undo entries, records, audit events)
2. Behavior tests for the undo manager, countdown and session live in
   their own modules
3. No real files outside tmp_path, no network
"""

import pytest
from datetime import datetime, timezone
from uuid import uuid4

from pydantic import ValidationError

from financia.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from financia.models.records import FinanceRecord, RecordType
from financia.models.undo import (
    UndoEntry,
    UndoKind,
    UndoOutcome,
    UndoResult,
    UndoSubject,
)


def make_entry(**overrides):
    values = {
        "created_at": 1000.0,
        "kind": UndoKind.DELETE,
        "subject": UndoSubject.TRANSACTION,
        "payload": {"id": "t1"},
        "description": "Transaction deleted",
        "reverse": lambda: None,
    }
    values.update(overrides)
    return UndoEntry(**values)


class TestUndoModels:
    """Tests for undo entry and result models."""

    def test_undo_entry_creation(self):
        """Test UndoEntry model creation."""
        entry = make_entry()
        assert entry.kind == "delete"
        assert entry.subject == "transaction"
        assert entry.payload == {"id": "t1"}
        assert len(entry.id) == 32

    def test_undo_entry_strips_whitespace(self):
        """Test that whitespace is stripped from the description."""
        entry = make_entry(description="  Budget updated  ")
        assert entry.description == "Budget updated"

    def test_undo_entry_rejects_empty_description(self):
        """Test that an empty description is rejected."""
        with pytest.raises(ValidationError):
            make_entry(description="")

    def test_undo_entry_is_immutable(self):
        """Test that entries cannot be changed after creation."""
        entry = make_entry()
        with pytest.raises(ValidationError):
            entry.description = "changed"

    def test_undo_entry_expiry_is_strict(self):
        """Test that an entry exactly at the window is not expired."""
        entry = make_entry(created_at=1000.0)
        assert entry.age_ms(3500.0) == 2500.0
        assert entry.is_expired(6000.0, 5000) is False
        assert entry.is_expired(6000.1, 5000) is True

    def test_undo_entry_log_dict_omits_payload(self):
        """Test that payload and reversal stay out of logs."""
        log_dict = make_entry(payload={"secret": "x"}).to_log_dict()
        assert set(log_dict) == {"undo_id", "kind", "subject", "description"}

    def test_undo_entry_dump_excludes_reverse(self):
        """Test that the reversal callable is not serialized."""
        assert "reverse" not in make_entry().model_dump()

    def test_undo_result_truthiness(self):
        """Test that only SUCCESS is truthy."""
        assert UndoResult(outcome=UndoOutcome.SUCCESS, entry_id="a")
        assert not UndoResult(outcome=UndoOutcome.NOT_FOUND)
        failed = UndoResult(
            outcome=UndoOutcome.REVERSAL_FAILED,
            entry_id="a",
            error=RuntimeError("boom"),
        )
        assert failed.succeeded is False
        assert str(failed.error) == "boom"


class TestRecordModels:
    """Tests for finance record models."""

    def test_collection_names(self):
        """Test plural collection keys used in exports."""
        assert [t.collection for t in RecordType] == [
            "transactions", "budgets", "goals", "debts",
        ]

    def test_with_updates_merges_and_copies(self):
        """Test that with_updates leaves the original untouched."""
        record = FinanceRecord(
            record_type=RecordType.BUDGET,
            data={"category": "Food", "limit": 300},
        )
        updated = record.with_updates({"limit": 450})
        assert updated.id == record.id
        assert updated.data == {"category": "Food", "limit": 450}
        assert record.data["limit"] == 300
        assert updated.updated_at >= record.updated_at

    def test_export_dict_round_trip(self):
        """Test from_export_dict restores id, timestamps and data."""
        created = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        record = FinanceRecord(
            id="g1",
            record_type=RecordType.GOAL,
            data={"name": "Holiday"},
            created_at=created,
            updated_at=created,
        )
        restored = FinanceRecord.from_export_dict(
            RecordType.GOAL, record.to_export_dict()
        )
        assert restored == record

    def test_from_export_dict_without_id(self):
        """Test that a record without id gets a fresh one."""
        restored = FinanceRecord.from_export_dict(
            RecordType.DEBT, {"id": "", "name": "Car"}
        )
        assert restored.id
        assert restored.data == {"name": "Car"}


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.UNDO_REGISTERED,
            description="Undo available",
        )
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None
        assert event.correlation_id is None

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        correlation_id = uuid4()
        event = AuditEventBuilder.undo_registered(
            undo_id="u1",
            kind="delete",
            subject="transaction",
            description="Transaction deleted",
            correlation_id=correlation_id,
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "undo_registered"
        assert log_dict["entity_id"] == "u1"
        assert log_dict["correlation_id"] == str(correlation_id)

    def test_audit_event_json_line(self):
        """Test JSON-lines serialization."""
        event = AuditEventBuilder.undo_expired(["a", "b"])
        restored = AuditEvent.from_json_line(event.to_json_line())
        assert restored == event
        assert "\n" not in event.to_json_line()

    def test_audit_event_builder_undo_failed(self):
        """Test AuditEventBuilder.undo_failed."""
        event = AuditEventBuilder.undo_failed(
            undo_id="u1",
            kind="delete",
            subject="goal",
            error_message="RuntimeError: boom",
        )
        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "RuntimeError: boom"
        assert event.is_user_action is True

    def test_audit_event_builder_record_changed(self):
        """Test AuditEventBuilder.record_changed."""
        event = AuditEventBuilder.record_changed(
            event_type=AuditEventType.RECORD_UPDATED,
            record_type="budget",
            record_id="b1",
        )
        assert event.entity_type == "budget"
        assert event.description == "Budget updated"


class TestUndoEnums:
    """Tests for undo enums."""

    def test_outcome_values(self):
        """Test outcome string values."""
        assert {o.value for o in UndoOutcome} == {
            "success", "not_found", "reversal_failed", "concurrent_rejected",
        }

    def test_kind_values(self):
        """Test kind string values."""
        assert UndoKind.ADD.value == "add"
        assert UndoKind.DELETE.value == "delete"
        assert UndoKind.UPDATE.value == "update"
