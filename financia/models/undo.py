"""
Undo Models for Financia

An undoable action is a generic record: a discriminator for the kind of
mutation, a tag for the affected entity, an opaque payload, and the stored
reversal callable supplied by whoever performed the mutation.

DESIGN DECISION: The undo manager never interprets `kind`, `subject` or
`payload`. Domain code (the finance session) owns the meaning; the manager
owns only ordering, visibility and expiry.
"""

from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


# A reversal may be a plain function or a coroutine function.
ReverseFn = Callable[[], Union[None, Any, Awaitable[Any]]]


class UndoKind(str, Enum):
    """Mutation categories that can be undone."""
    ADD = "add"
    DELETE = "delete"
    UPDATE = "update"


class UndoSubject(str, Enum):
    """Entity categories affected by undoable mutations."""
    TRANSACTION = "transaction"
    BUDGET = "budget"
    GOAL = "goal"
    DEBT = "debt"


class UndoOutcome(str, Enum):
    """
    Result of an undo attempt.

    None of these are exceptions: the manager reports them to the caller
    and leaves the decision of what to show to the presentation layer.
    """
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    REVERSAL_FAILED = "reversal_failed"
    CONCURRENT_REJECTED = "concurrent_rejected"


class UndoEntry(BaseModel):
    """
    One reversible action in the undo history.

    Entries are immutable once created; the only lifecycle transition is
    removal from history.
    """
    model_config = ConfigDict(
        frozen=True,
        arbitrary_types_allowed=True,
        str_strip_whitespace=True,
    )

    id: str = Field(
        default_factory=lambda: uuid4().hex,
        description="Unique identifier assigned at registration"
    )
    created_at: float = Field(
        ...,
        description="Registration time in milliseconds (manager clock)"
    )
    kind: str = Field(
        ...,
        min_length=1,
        description="Mutation category, e.g. 'add', 'delete', 'update'"
    )
    subject: str = Field(
        ...,
        min_length=1,
        description="Affected entity category, e.g. 'transaction', 'budget'"
    )
    payload: Any = Field(
        default=None,
        description="Caller-defined data needed for the reversal"
    )
    description: str = Field(
        ...,
        min_length=1,
        max_length=500,
        description="Human-readable text shown to the user"
    )
    reverse: ReverseFn = Field(
        ...,
        exclude=True,
        repr=False,
        description="Zero-argument callable performing the reversal"
    )

    @field_validator("kind", "subject", mode="before")
    @classmethod
    def enum_to_value(cls, v: Any) -> Any:
        """Accept UndoKind / UndoSubject members as well as plain strings."""
        if isinstance(v, Enum):
            return v.value
        return v

    def age_ms(self, now_ms: float) -> float:
        """Milliseconds elapsed since registration."""
        return now_ms - self.created_at

    def is_expired(self, now_ms: float, window_ms: float) -> bool:
        return self.age_ms(now_ms) > window_ms

    def to_log_dict(self) -> dict:
        """Fields safe to put in a structured log line (no payload)."""
        return {
            "undo_id": self.id,
            "kind": self.kind,
            "subject": self.subject,
            "description": self.description,
        }


class UndoResult(BaseModel):
    """What happened when `undo` was called."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    outcome: UndoOutcome
    entry_id: Optional[str] = None
    error: Optional[BaseException] = Field(
        default=None,
        description="Exception raised by the reversal, if it failed"
    )

    @property
    def succeeded(self) -> bool:
        return self.outcome == UndoOutcome.SUCCESS

    def __bool__(self) -> bool:
        return self.succeeded
