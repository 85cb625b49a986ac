"""
Finance Record Models

Transactions, budgets, goals and debts are all stored as `FinanceRecord`s:
a typed envelope around a free-form `data` dict. The storage layer only
cares about identity and type; screens care about the fields inside.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RecordType(str, Enum):
    """Kinds of finance records the application stores."""
    TRANSACTION = "transaction"
    BUDGET = "budget"
    GOAL = "goal"
    DEBT = "debt"

    @property
    def collection(self) -> str:
        """Plural key used in exports, e.g. 'transactions'."""
        return f"{self.value}s"


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class FinanceRecord(BaseModel):
    """A stored transaction, budget, goal or debt."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        default_factory=lambda: uuid4().hex,
        description="Unique record identifier"
    )
    record_type: RecordType = Field(
        ...,
        description="Which collection this record belongs to"
    )
    data: dict[str, Any] = Field(
        default_factory=dict,
        description="Record fields (amount, category, description, ...)"
    )
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def with_updates(self, updates: dict[str, Any]) -> "FinanceRecord":
        """Return a copy with `updates` merged into `data`."""
        return self.model_copy(
            update={
                "data": {**self.data, **updates},
                "updated_at": utcnow(),
            },
            deep=True,
        )

    def to_export_dict(self) -> dict[str, Any]:
        """Flatten into the shape written to backup files."""
        return {
            **self.data,
            "id": self.id,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_export_dict(
        cls,
        record_type: RecordType,
        raw: dict[str, Any],
    ) -> "FinanceRecord":
        """Inverse of `to_export_dict`; tolerates missing timestamps."""
        raw = dict(raw)
        kwargs: dict[str, Any] = {"record_type": record_type}
        if raw.get("id"):
            kwargs["id"] = str(raw.pop("id"))
        else:
            raw.pop("id", None)
        for key in ("created_at", "updated_at"):
            value = raw.pop(key, None)
            if value:
                kwargs[key] = datetime.fromisoformat(value)
        kwargs["data"] = raw
        return cls(**kwargs)
