"""
Undo Manager

Keeps a short, time-bounded history of reversible actions and tracks which
one is currently shown to the user.

GUARANTEES:
1. History holds at most `max_entries` entries, newest first
2. Entries older than `window_ms` are purged by a periodic sweep
3. At most one entry is active, and it is always present in history
4. A reversed or dismissed entry is gone for good (no double-undo)
5. An entry whose reversal is in flight is never evicted by time and
   cannot be reversed a second time concurrently

All state transitions are synchronous; the only suspension point is
awaiting the caller's reversal.
"""

import asyncio
import inspect
from typing import Any, Callable, Coroutine, Optional

import structlog
from pydantic import ValidationError

from financia.audit import AuditLogger
from financia.config import UndoSettings, get_settings
from financia.models.undo import (
    ReverseFn,
    UndoEntry,
    UndoKind,
    UndoOutcome,
    UndoResult,
    UndoSubject,
)
from financia.undo.errors import InvalidUndoActionError, UndoManagerClosedError
from financia.undo.scheduler import RepeatingTask, Scheduler, Timer


ActiveListener = Callable[[Optional[UndoEntry]], None]


class UndoManager:
    """
    Session-scoped owner of the undo history.

    Construct one per application session and tear it down with
    `await manager.close()` (or use it as an async context manager).

    Usage:
        async with UndoManager() as undo:
            entry = undo.register_undo(
                kind=UndoKind.DELETE,
                subject=UndoSubject.TRANSACTION,
                payload=deleted,
                description="Transaction deleted",
                reverse=lambda: storage.add_record(deleted),
            )
            result = await undo.undo(entry.id)
    """

    def __init__(
        self,
        settings: Optional[UndoSettings] = None,
        scheduler: Optional[Scheduler] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._settings = settings or get_settings().undo
        self._scheduler = scheduler or Scheduler()
        self._audit_logger = audit_logger
        self._logger = structlog.get_logger(__name__)

        self._history: list[UndoEntry] = []
        self._active_id: Optional[str] = None
        self._in_flight: set[str] = set()
        # Dismissed while their reversal was running; removed once it ends
        self._dismiss_after_flight: set[str] = set()
        # Active-clear timers that fired while the entry was in flight
        self._expired_in_flight: set[str] = set()

        self._active_timers: dict[str, Timer] = {}
        self._sweeper: Optional[RepeatingTask] = None
        self._listeners: list[ActiveListener] = []
        self._audit_tasks: set[asyncio.Task] = set()
        self._closed = False

    # ------------------------------------------------------------------
    # Read-only projections
    # ------------------------------------------------------------------

    @property
    def settings(self) -> UndoSettings:
        return self._settings

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    @property
    def undo_stack(self) -> tuple[UndoEntry, ...]:
        """Snapshot of history, most recent first."""
        return tuple(self._history)

    @property
    def active_undo(self) -> Optional[UndoEntry]:
        if self._active_id is None:
            return None
        return self._find(self._active_id)

    @property
    def can_undo(self) -> bool:
        return bool(self._history)

    @property
    def in_flight(self) -> frozenset[str]:
        return frozenset(self._in_flight)

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, listener: ActiveListener) -> Callable[[], None]:
        """
        Call `listener(entry_or_none)` whenever the active entry changes.

        Returns a function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the periodic expiry sweep. Requires a running event loop."""
        self._check_open()
        if self._sweeper is None:
            self._sweeper = self._scheduler.call_every(
                self._settings.sweep_interval_ms,
                self.sweep_expired,
                name="undo-sweep",
            )

    async def close(self) -> None:
        """
        Tear the manager down.

        Stops the sweep and every pending one-shot timer, hides the active
        entry, and waits for outstanding audit writes.
        """
        if self._closed:
            return
        self._closed = True

        if self._sweeper is not None:
            self._sweeper.cancel()
            self._sweeper = None
        for timer in self._active_timers.values():
            timer.cancel()
        self._active_timers.clear()

        self._history.clear()
        self._set_active(None)
        self._listeners.clear()

        if self._audit_tasks:
            await asyncio.gather(*self._audit_tasks, return_exceptions=True)
        self._logger.debug("undo_manager_closed")

    async def __aenter__(self) -> "UndoManager":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def register_undo(
        self,
        *,
        kind: UndoKind | str,
        subject: UndoSubject | str,
        payload: Any,
        description: str,
        reverse: ReverseFn,
    ) -> UndoEntry:
        """
        Record a reversible action and make it the active one.

        The previously active entry stays in history (still undoable by id)
        and keeps its own timers.

        Raises:
            InvalidUndoActionError: `reverse` is not callable or a text
                field is empty
            UndoManagerClosedError: the manager was closed
        """
        self._check_open()
        if not callable(reverse):
            raise InvalidUndoActionError("reverse must be a callable")
        try:
            entry = UndoEntry(
                created_at=self._scheduler.now_ms(),
                kind=kind,
                subject=subject,
                payload=payload,
                description=description,
                reverse=reverse,
            )
        except ValidationError as e:
            raise InvalidUndoActionError(str(e)) from e

        self.start()

        self._history.insert(0, entry)
        overflow = self._history[self._settings.max_entries:]
        del self._history[self._settings.max_entries:]
        for evicted in overflow:
            self._forget(evicted.id)

        self._active_timers[entry.id] = self._scheduler.call_later(
            self._settings.window_ms,
            self._on_window_elapsed,
            entry.id,
        )
        self._set_active(entry.id)

        self._logger.info("undo_registered", **entry.to_log_dict())
        if overflow:
            self._logger.debug(
                "undo_capacity_evicted",
                undo_ids=[e.id for e in overflow],
            )
        self._audit(lambda log: log.log_undo_registered(entry))
        return entry

    async def undo(self, entry_id: Optional[str] = None) -> UndoResult:
        """
        Reverse an entry (the most recent one when `entry_id` is None).

        Returns an UndoResult; never raises for a failing reversal. The
        reversal's exception is logged and attached to the result, and the
        entry stays in history so the user can retry.
        """
        self._check_open()
        if entry_id is None:
            entry = self._history[0] if self._history else None
        else:
            entry = self._find(entry_id)

        if entry is None:
            self._logger.debug("undo_not_found", undo_id=entry_id)
            return UndoResult(outcome=UndoOutcome.NOT_FOUND, entry_id=entry_id)

        if entry.id in self._in_flight:
            self._logger.warning("undo_already_in_flight", undo_id=entry.id)
            self._audit(lambda log: log.log_undo_rejected(entry.id, "already in progress"))
            return UndoResult(
                outcome=UndoOutcome.CONCURRENT_REJECTED,
                entry_id=entry.id,
            )

        self._in_flight.add(entry.id)
        try:
            outcome = entry.reverse()
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            self._logger.error(
                "undo_reversal_failed",
                error=str(e),
                error_type=type(e).__name__,
                **entry.to_log_dict(),
            )
            self._audit(lambda log: log.log_undo_failed(entry, e))
            self._finish_flight(entry.id)
            return UndoResult(
                outcome=UndoOutcome.REVERSAL_FAILED,
                entry_id=entry.id,
                error=e,
            )
        except BaseException:
            self._finish_flight(entry.id)
            raise

        try:
            self._remove(entry.id)
        finally:
            self._finish_flight(entry.id)
        self._logger.info("undo_succeeded", **entry.to_log_dict())
        self._audit(lambda log: log.log_undo_succeeded(entry))
        return UndoResult(outcome=UndoOutcome.SUCCESS, entry_id=entry.id)

    def dismiss_undo(self, entry_id: str) -> None:
        """
        Drop an entry without reversing it. Unknown ids are ignored.

        An entry whose reversal is running is removed as soon as that
        reversal finishes, whatever its outcome.
        """
        self._check_open()
        if self._find(entry_id) is None:
            return
        if entry_id in self._in_flight:
            self._dismiss_after_flight.add(entry_id)
            self._logger.debug("undo_dismiss_deferred", undo_id=entry_id)
            return
        self._remove(entry_id)
        self._logger.debug("undo_dismissed", undo_id=entry_id)
        self._audit(lambda log: log.log_undo_dismissed(entry_id))

    def clear_undo_stack(self) -> None:
        """Forget every entry and hide the active one (navigation, logout)."""
        self._check_open()
        count = len(self._history)
        for entry in self._history:
            self._forget(entry.id)
        self._history.clear()
        self._set_active(None)
        self._logger.info("undo_stack_cleared", count=count)
        self._audit(lambda log: log.log_undo_stack_cleared(count))

    def sweep_expired(self) -> list[str]:
        """
        Remove entries older than the undo window.

        Entries with a reversal in flight are skipped. Returns the ids
        that were removed.
        """
        if self._closed:
            return []
        now = self._scheduler.now_ms()
        expired = [
            entry.id for entry in self._history
            if entry.is_expired(now, self._settings.window_ms)
            and entry.id not in self._in_flight
        ]
        for entry_id in expired:
            self._remove(entry_id)
        if expired:
            self._logger.debug("undo_expired", undo_ids=expired)
            self._audit(lambda log: log.log_undo_expired(expired))
        return expired

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_open(self) -> None:
        if self._closed:
            raise UndoManagerClosedError("Undo manager has been closed")

    def _find(self, entry_id: str) -> Optional[UndoEntry]:
        for entry in self._history:
            if entry.id == entry_id:
                return entry
        return None

    def _set_active(self, entry_id: Optional[str]) -> None:
        if entry_id == self._active_id:
            return
        self._active_id = entry_id
        active = self.active_undo
        for listener in list(self._listeners):
            listener(active)

    def _forget(self, entry_id: str) -> None:
        """Drop timers and bookkeeping for an entry leaving history."""
        timer = self._active_timers.pop(entry_id, None)
        if timer is not None:
            timer.cancel()
        self._dismiss_after_flight.discard(entry_id)
        self._expired_in_flight.discard(entry_id)

    def _remove(self, entry_id: str) -> None:
        """Remove from history; clears active in the same step."""
        self._history = [e for e in self._history if e.id != entry_id]
        self._forget(entry_id)
        if self._active_id == entry_id:
            self._set_active(None)

    def _finish_flight(self, entry_id: str) -> None:
        self._in_flight.discard(entry_id)
        if self._closed:
            return
        if entry_id in self._dismiss_after_flight:
            self._remove(entry_id)
            self._logger.debug("undo_dismissed", undo_id=entry_id)
            self._audit(lambda log: log.log_undo_dismissed(entry_id))
        elif entry_id in self._expired_in_flight:
            self._expired_in_flight.discard(entry_id)
            if self._active_id == entry_id:
                self._set_active(None)

    def _on_window_elapsed(self, entry_id: str) -> None:
        self._active_timers.pop(entry_id, None)
        if self._closed or self._active_id != entry_id:
            return
        if entry_id in self._in_flight:
            self._expired_in_flight.add(entry_id)
            return
        self._set_active(None)

    def _audit(
        self,
        make: Callable[[AuditLogger], Coroutine[Any, Any, None]],
    ) -> None:
        """Schedule an audit write without blocking the caller."""
        if self._audit_logger is None or self._closed:
            return
        task = asyncio.get_running_loop().create_task(make(self._audit_logger))
        self._audit_tasks.add(task)
        task.add_done_callback(self._audit_tasks.discard)
