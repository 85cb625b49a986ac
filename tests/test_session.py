"""
Tests for the finance session: mutations paired with their reversals.
"""

import asyncio

import pytest

from financia.audit import AuditLogger
from financia.config import Settings
from financia.models.audit import AuditEventType
from financia.models.records import RecordType
from financia.models.undo import UndoOutcome
from financia.orchestrator import FinanceSession, create_session
from financia.services.storage import (
    InMemoryAuditStorage,
    InMemoryFinanceStorage,
    JsonFileFinanceStorage,
    NotFoundError,
    StorageError,
)


@pytest.fixture
def make_session(make_manager):
    def factory(audit_storage=None):
        audit_logger = AuditLogger(audit_storage) if audit_storage is not None else None
        return FinanceSession(
            storage=InMemoryFinanceStorage(),
            undo_manager=make_manager(audit_logger=audit_logger),
            audit_logger=audit_logger,
        )
    return factory


COFFEE = {
    "type": "expense",
    "amount": 4.5,
    "category": "Food",
    "description": "Coffee",
    "date": "2026-10-01",
}


class TestAddRecord:
    """Tests for adding records and undoing the add."""

    def test_add_registers_undo_that_deletes(self, make_session):
        async def scenario():
            async with make_session() as session:
                record, entry = await session.add_record(RecordType.TRANSACTION, COFFEE)
                assert entry.kind == "add"
                assert entry.subject == "transaction"
                assert entry.description == "Transaction added: Coffee"
                assert entry.payload["record_id"] == record.id

                result = await session.undo(entry.id)
                assert result.outcome == UndoOutcome.SUCCESS
                assert await session.list_records(RecordType.TRANSACTION) == []
        asyncio.run(scenario())

    def test_description_falls_back_to_name(self, make_session):
        async def scenario():
            async with make_session() as session:
                _, entry = await session.add_record(
                    RecordType.GOAL, {"name": "Holiday", "target": 1200}
                )
                assert entry.description == "Goal added: Holiday"
                _, bare = await session.add_record(RecordType.DEBT, {"amount": 10})
                assert bare.description == "Debt added"
        asyncio.run(scenario())


class TestDeleteRecord:
    """Tests for deleting records and restoring them."""

    def test_delete_then_undo_restores_record(self, make_session):
        async def scenario():
            async with make_session() as session:
                record, _ = await session.add_record(RecordType.TRANSACTION, COFFEE)
                deleted, entry = await session.delete_record(
                    RecordType.TRANSACTION, record.id
                )
                assert deleted == record
                assert await session.list_records(RecordType.TRANSACTION) == []
                assert session.undo_manager.active_undo == entry

                result = await session.undo()
                assert result.succeeded
                restored = await session.storage.get_record(
                    RecordType.TRANSACTION, record.id
                )
                assert restored == record
        asyncio.run(scenario())

    def test_delete_unknown_record_raises(self, make_session):
        async def scenario():
            async with make_session() as session:
                with pytest.raises(NotFoundError):
                    await session.delete_record(RecordType.BUDGET, "missing")
                assert session.undo_manager.undo_stack == ()
        asyncio.run(scenario())

    def test_restore_conflict_is_reported_and_retryable(self, make_session):
        """Re-inserting a record that came back another way fails the undo."""
        async def scenario():
            async with make_session() as session:
                record, _ = await session.add_record(RecordType.TRANSACTION, COFFEE)
                _, entry = await session.delete_record(RecordType.TRANSACTION, record.id)
                await session.storage.add_record(record)

                result = await session.undo(entry.id)
                assert result.outcome == UndoOutcome.REVERSAL_FAILED
                assert session.undo_manager.active_undo == entry

                await session.storage.delete_record(RecordType.TRANSACTION, record.id)
                assert (await session.undo(entry.id)).succeeded
        asyncio.run(scenario())


class TestUpdateRecord:
    """Tests for updating records and reverting updates."""

    def test_update_then_undo_restores_previous_version(self, make_session):
        async def scenario():
            async with make_session() as session:
                record, _ = await session.add_record(RecordType.BUDGET, {
                    "category": "Food",
                    "limit": 300,
                })
                updated, entry = await session.update_record(
                    RecordType.BUDGET, record.id, {"limit": 450}
                )
                assert updated.data["limit"] == 450
                assert entry.kind == "update"
                assert entry.payload["previous"]["limit"] == 300

                assert (await session.undo(entry.id)).succeeded
                current = await session.storage.get_record(RecordType.BUDGET, record.id)
                assert current.data["limit"] == 300
        asyncio.run(scenario())

    def test_update_unknown_record_raises(self, make_session):
        async def scenario():
            async with make_session() as session:
                with pytest.raises(NotFoundError):
                    await session.update_record(RecordType.GOAL, "missing", {"x": 1})
        asyncio.run(scenario())

    def test_undo_update_of_vanished_record_fails(self, make_session):
        async def scenario():
            async with make_session() as session:
                record, _ = await session.add_record(RecordType.DEBT, {"name": "Car"})
                _, entry = await session.update_record(
                    RecordType.DEBT, record.id, {"name": "Car loan"}
                )
                await session.storage.delete_record(RecordType.DEBT, record.id)

                result = await session.undo(entry.id)
                assert result.outcome == UndoOutcome.REVERSAL_FAILED
                assert isinstance(result.error, NotFoundError)
        asyncio.run(scenario())


class TestSessionLifecycle:
    """Tests for clearing, closing and auditing a session."""

    def test_clear_undo_stack_keeps_data(self, make_session):
        async def scenario():
            async with make_session() as session:
                await session.add_record(RecordType.TRANSACTION, COFFEE)
                await session.add_record(RecordType.TRANSACTION, COFFEE)
                session.clear_undo_stack()
                assert session.undo_manager.undo_stack == ()
                assert len(await session.list_records(RecordType.TRANSACTION)) == 2
        asyncio.run(scenario())

    def test_dismiss_undo_passthrough(self, make_session):
        async def scenario():
            async with make_session() as session:
                _, entry = await session.add_record(RecordType.TRANSACTION, COFFEE)
                session.dismiss_undo(entry.id)
                assert (await session.undo(entry.id)).outcome == UndoOutcome.NOT_FOUND
        asyncio.run(scenario())

    def test_exit_closes_undo_manager(self, make_session):
        async def scenario():
            async with make_session() as session:
                await session.add_record(RecordType.TRANSACTION, COFFEE)
            return session

        session = asyncio.run(scenario())
        assert session.undo_manager.closed is True

    def test_mutation_and_undo_share_correlation_id(self, make_session):
        async def scenario():
            audit_storage = InMemoryAuditStorage()
            async with make_session(audit_storage) as session:
                record, entry = await session.add_record(RecordType.TRANSACTION, COFFEE)
                await session.undo(entry.id)
            correlation_id = entry.payload["correlation_id"]
            return await audit_storage.get_events_by_correlation_id(correlation_id)

        events = asyncio.run(scenario())
        types = [e.event_type for e in events]
        assert AuditEventType.RECORD_ADDED in types
        assert AuditEventType.UNDO_REGISTERED in types
        assert AuditEventType.UNDO_SUCCEEDED in types


class FailingStorage(InMemoryFinanceStorage):
    """Storage whose writes always fail."""

    async def add_record(self, record):
        raise StorageError("disk full")


class TestStorageFailures:
    """Tests for mutations whose storage write fails."""

    def test_failed_add_is_audited_and_registers_nothing(self, make_manager):
        async def scenario():
            audit_storage = InMemoryAuditStorage()
            audit_logger = AuditLogger(audit_storage)
            session = FinanceSession(
                storage=FailingStorage(),
                undo_manager=make_manager(audit_logger=audit_logger),
                audit_logger=audit_logger,
            )
            async with session:
                with pytest.raises(StorageError):
                    await session.add_record(RecordType.TRANSACTION, COFFEE)
                assert session.undo_manager.undo_stack == ()
            return audit_storage.events

        events = asyncio.run(scenario())
        assert [e.event_type for e in events] == [AuditEventType.SYSTEM_ERROR]
        assert events[0].error_message == "disk full"


class TestCreateSession:
    """Tests for building a session from configuration."""

    def test_memory_backend(self):
        session = create_session(Settings())
        assert isinstance(session.storage, InMemoryFinanceStorage)
        assert not isinstance(session.storage, JsonFileFinanceStorage)

    def test_json_backend_persists_records(self, tmp_path, monkeypatch):
        monkeypatch.setenv("STORAGE_BACKEND", "json")
        monkeypatch.setenv("STORAGE_DATA_FILE", str(tmp_path / "data.json"))
        monkeypatch.setenv("STORAGE_AUDIT_FILE", str(tmp_path / "audit.jsonl"))

        async def scenario():
            async with create_session(Settings()) as session:
                assert isinstance(session.storage, JsonFileFinanceStorage)
                record, _ = await session.add_record(RecordType.TRANSACTION, COFFEE)
            return record

        record = asyncio.run(scenario())
        reopened = JsonFileFinanceStorage(tmp_path / "data.json")
        restored = asyncio.run(reopened.get_record(RecordType.TRANSACTION, record.id))
        assert restored.data["description"] == "Coffee"
        assert (tmp_path / "audit.jsonl").exists()
