"""Exceptions raised by the undo subsystem."""


class UndoError(Exception):
    """Base exception for undo errors."""
    pass


class InvalidUndoActionError(UndoError, ValueError):
    """Registration is missing a reversal, a description or a tag."""
    pass


class UndoManagerClosedError(UndoError, RuntimeError):
    """The manager was used after its session was torn down."""
    pass
