from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


class PatchOp(str, Enum):
    UNCHANGED = "UNCHANGED"
    CLEARED = "CLEARED"
    SET = "SET"


@dataclass(frozen=True)
class FieldPatch(Generic[T]):
    """Update instruction for one optional field: leave it, remove it, or set it."""

    op: PatchOp = PatchOp.UNCHANGED
    value: Optional[T] = None

    @classmethod
    def unchanged(cls) -> "FieldPatch[T]":
        return cls(PatchOp.UNCHANGED)

    @classmethod
    def cleared(cls) -> "FieldPatch[T]":
        return cls(PatchOp.CLEARED)

    @classmethod
    def set(cls, value: T) -> "FieldPatch[T]":
        if value is None:
            raise ValueError("FieldPatch.set requires a value; use FieldPatch.cleared()")
        return cls(PatchOp.SET, value)

    def apply(self, record: dict, key: str) -> None:
        if self.op == PatchOp.CLEARED:
            record.pop(key, None)
        elif self.op == PatchOp.SET:
            record[key] = self.value


@dataclass(frozen=True)
class ExpensePatch:
    description: Optional[str] = None
    amount: Optional[Decimal] = None
    paid_by_id: Optional[str] = None
    participant_ids: Optional[tuple[str, ...]] = None
    category: FieldPatch[str] = field(default_factory=FieldPatch.unchanged)
    event_id: FieldPatch[str] = field(default_factory=FieldPatch.unchanged)

    def is_empty(self) -> bool:
        return (
            self.description is None and self.amount is None
            and self.paid_by_id is None and self.participant_ids is None
            and self.category.op == PatchOp.UNCHANGED
            and self.event_id.op == PatchOp.UNCHANGED
        )

    def required_changes(self) -> dict[str, Any]:
        changes: dict[str, Any] = {}
        if self.description is not None:
            changes["description"] = self.description
        if self.amount is not None:
            changes["amount"] = self.amount
        if self.paid_by_id is not None:
            changes["paidById"] = self.paid_by_id
        if self.participant_ids is not None:
            changes["participantIds"] = list(self.participant_ids)
        return changes
