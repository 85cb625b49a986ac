"""Undo subsystem package."""

from financia.undo.countdown import CountdownPresenter, CountdownView
from financia.undo.errors import (
    InvalidUndoActionError,
    UndoError,
    UndoManagerClosedError,
)
from financia.undo.manager import UndoManager
from financia.undo.scheduler import RepeatingTask, Scheduler, Timer

__all__ = [
    "CountdownPresenter",
    "CountdownView",
    "InvalidUndoActionError",
    "RepeatingTask",
    "Scheduler",
    "Timer",
    "UndoError",
    "UndoManager",
    "UndoManagerClosedError",
]
