from datetime import datetime
from decimal import Decimal
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .errors import ValidationError
from .patch import ExpensePatch, FieldPatch


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    def to_record(self) -> dict:
        # Optional fields are left out entirely so absence can mean "cleared".
        return self.model_dump(by_alias=True, exclude_none=True)

    @classmethod
    def from_record(cls, record: dict):
        return cls.model_validate(record)


def _non_blank(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be empty")
    return value


def _no_duplicates(values: tuple[str, ...]) -> tuple[str, ...]:
    if len(set(values)) != len(values):
        raise ValueError("must not contain duplicate ids")
    return values


NonBlankStr = Annotated[str, AfterValidator(_non_blank)]
UniqueIds = Annotated[tuple[str, ...], AfterValidator(_no_duplicates)]


class User(_Record):
    id: str
    name: NonBlankStr
    avatar_url: str
    email: Optional[str] = None


class Expense(_Record):
    id: str
    description: NonBlankStr
    amount: Decimal = Field(gt=0)
    paid_by_id: str
    participant_ids: UniqueIds = Field(min_length=1)
    event_id: Optional[str] = None
    category: Optional[str] = None
    date: datetime


class Event(_Record):
    id: str
    name: NonBlankStr
    member_ids: UniqueIds = ()


class Category(_Record):
    id: str
    name: NonBlankStr


class Debt(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    user_id: str
    user_name: str
    avatar_url: str
    balance: Decimal


class _Request(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ExpenseDraft(_Request):
    description: str
    amount: Decimal
    paid_by_id: str
    participant_ids: list[str]
    event_id: Optional[str] = None
    category: Optional[str] = None

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "description": "Dinner",
            "amount": "30.00",
            "paidById": "user_alice",
            "participantIds": ["user_alice", "user_bob", "user_charlie"],
            "category": "Food",
        }
    })


class UpdateExpenseRequest(_Request):
    """Partial update body. A key that is left out stays unchanged; ``null`` clears it.

    Only the optional fields can be cleared; ``null`` on a required field is rejected.
    """

    description: Optional[str] = None
    amount: Optional[Decimal] = None
    paid_by_id: Optional[str] = None
    participant_ids: Optional[list[str]] = None
    event_id: Optional[str] = None
    category: Optional[str] = None

    def _optional_patch(self, name: str) -> FieldPatch[str]:
        if name not in self.model_fields_set:
            return FieldPatch.unchanged()
        value = getattr(self, name)
        if value is None or not value.strip():
            return FieldPatch.cleared()
        return FieldPatch.set(value)

    def to_patch(self) -> ExpensePatch:
        nulled = [
            to_camel(name) for name in ("description", "amount", "paid_by_id", "participant_ids")
            if name in self.model_fields_set and getattr(self, name) is None
        ]
        if nulled:
            raise ValidationError(f"Required field(s) cannot be cleared: {', '.join(nulled)}")
        return ExpensePatch(
            description=self.description,
            amount=self.amount,
            paid_by_id=self.paid_by_id,
            participant_ids=tuple(self.participant_ids) if self.participant_ids is not None else None,
            category=self._optional_patch("category"),
            event_id=self._optional_patch("event_id"),
        )


class BulkDeleteRequest(_Request):
    expense_ids: list[str]


class CreateUserRequest(_Request):
    name: str
    avatar_url: Optional[str] = None
    email: Optional[str] = None
    id: Optional[str] = Field(default=None, description="Fixed id for an authenticated identity")


class UpdateUserRequest(_Request):
    name: str
    avatar_url: Optional[str] = None


class EventRequest(_Request):
    name: str
    member_ids: list[str] = Field(default_factory=list)


class CategoryRequest(_Request):
    name: str


class CategoryListResponse(BaseModel):
    categories: list[str]


class SettlementRequest(_Request):
    payer_id: str
    recipient_id: str
    amount: Decimal


class SuggestCategoryRequest(_Request):
    description: str


class SuggestCategoryResponse(_Request):
    category_suggestions: list[str]


class BalancesResponse(_Request):
    debts: list[Debt]
    current_user_id: Optional[str] = None
