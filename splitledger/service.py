import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Iterable, Optional, TypeVar
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError

from .balances import compute_balances, compute_pairwise_balances
from .errors import (
    CreationConflict,
    EntityNotFoundError,
    ReferentialInconsistency,
    StoreFailure,
    ValidationError,
)
from .models import Category, Debt, Event, Expense, ExpenseDraft, User
from .patch import ExpensePatch
from .reports import expenses_for_user
from .settlement import compose_settlement
from .storage import (
    CATEGORIES,
    EVENTS,
    EXPENSES,
    USERS,
    InMemoryStorage,
    LedgerStore,
    Write,
    WriteOp,
)

logger = logging.getLogger(__name__)

M = TypeVar("M")
R = TypeVar("R")


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex[:12]}"


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def default_avatar_url(name: str) -> str:
    return f"https://placehold.co/100x100.png?text={name.strip()[:1].upper()}"


class LedgerService:
    """Sole writer of users, expenses, events and categories.

    Every write goes to the store as one batch, so cascades (category rename
    and removal, event removal) either land together or not at all. Store
    errors surface as ``StoreFailure`` and are never retried here.
    """

    def __init__(self, storage: Optional[LedgerStore] = None):
        self.storage = storage or InMemoryStorage()

    # -- store access --------------------------------------------------

    def _call_store(self, fn: Callable[..., R], *args) -> R:
        try:
            return fn(*args)
        except CreationConflict:
            raise
        except Exception as e:
            raise StoreFailure(f"Store call '{fn.__name__}' failed: {e}") from e

    def _get(self, collection: str, record_id: str) -> Optional[dict]:
        return self._call_store(self.storage.get, collection, record_id)

    def _list(self, collection: str) -> list[dict]:
        return self._call_store(self.storage.list, collection)

    def _commit(self, writes: list[Write]) -> list[int]:
        return self._call_store(self.storage.commit_batch, writes)

    @staticmethod
    def _build(model: type[M], data: dict) -> M:
        try:
            return model.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid {model.__name__.lower()}: {e}") from e

    def _require(self, model: type[M], collection: str, record_id: str) -> M:
        record = self._get(collection, record_id)
        if record is None:
            raise EntityNotFoundError(f"{model.__name__} {record_id} not found")
        return model.from_record(record)

    # -- users ---------------------------------------------------------

    def list_users(self) -> list[User]:
        return [User.from_record(r) for r in self._list(USERS)]

    def get_user(self, user_id: str) -> User:
        return self._require(User, USERS, user_id)

    def add_user(
        self,
        name: str,
        avatar_url: Optional[str] = None,
        email: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> User:
        user = self._build(User, {
            "id": user_id or _new_id("user"),
            "name": name,
            "avatar_url": _blank_to_none(avatar_url) or default_avatar_url(name),
            "email": _blank_to_none(email),
        })
        try:
            self._commit([Write(WriteOp.INSERT, USERS, user.id, user.to_record())])
        except CreationConflict as e:
            raise ValidationError(f"User {user.id} already exists") from e
        logger.info("Added user %s (%s)", user.id, user.name)
        return user

    def update_user(self, user_id: str, name: str, avatar_url: Optional[str] = None) -> User:
        current = self.get_user(user_id)
        user = self._build(User, {
            **current.model_dump(),
            "name": name,
            "avatar_url": _blank_to_none(avatar_url) or current.avatar_url,
        })
        self._commit([Write(WriteOp.REPLACE, USERS, user.id, user.to_record())])
        logger.info("Updated user %s", user.id)
        return user

    # -- expenses ------------------------------------------------------

    def list_expenses(self, event_id: Optional[str] = None, user_id: Optional[str] = None) -> list[Expense]:
        expenses = [Expense.from_record(r) for r in self._list(EXPENSES)]
        if event_id is not None:
            expenses = [e for e in expenses if e.event_id == event_id]
        if user_id is not None:
            expenses = expenses_for_user(expenses, user_id)
        expenses.sort(key=lambda e: e.date, reverse=True)
        return expenses

    def get_expense(self, expense_id: str) -> Expense:
        return self._require(Expense, EXPENSES, expense_id)

    def add_expense(self, draft: ExpenseDraft) -> Expense:
        expense = self._build(Expense, {
            "id": _new_id("exp"),
            "description": draft.description,
            "amount": draft.amount,
            "paid_by_id": draft.paid_by_id,
            "participant_ids": tuple(draft.participant_ids),
            "event_id": _blank_to_none(draft.event_id),
            "category": _blank_to_none(draft.category),
            "date": datetime.now(timezone.utc),
        })
        self._check_references(expense)
        self._commit([Write(WriteOp.INSERT, EXPENSES, expense.id, expense.to_record())])
        logger.info("Added expense %s (%s) paid by %s", expense.id, expense.amount, expense.paid_by_id)
        return expense

    def update_expense(self, expense_id: str, patch: ExpensePatch) -> Expense:
        current = self.get_expense(expense_id)
        if patch.is_empty():
            return current

        record = current.to_record()
        record.update(patch.required_changes())
        patch.category.apply(record, "category")
        patch.event_id.apply(record, "eventId")
        if "category" in record:
            record["category"] = record["category"].strip()
            if not record["category"]:
                raise ValidationError("Category must not be blank; clear it instead")

        expense = self._build(Expense, record)
        self._check_references(expense)

        # Only the changed fields are written, so concurrent cascades on other
        # fields of this expense are kept.
        before, after = current.to_record(), expense.to_record()
        changed = {k: v for k, v in after.items() if k not in before or before[k] != v}
        removed = tuple(k for k in before if k not in after)
        if changed or removed:
            self._commit([Write(WriteOp.UPDATE, EXPENSES, expense.id, changed, removed)])
        logger.info("Updated expense %s", expense.id)
        return expense

    def delete_expense(self, expense_id: str) -> None:
        self.delete_expenses([expense_id])

    def delete_expenses(self, expense_ids: Iterable[str]) -> int:
        ids = list(dict.fromkeys(expense_ids))
        known = {r["id"] for r in self._list(EXPENSES)}
        missing = [i for i in ids if i not in known]
        if missing:
            raise EntityNotFoundError(f"Expense(s) not found: {', '.join(missing)}")
        self._commit([Write(WriteOp.DELETE, EXPENSES, i) for i in ids])
        logger.info("Deleted %d expense(s)", len(ids))
        return len(ids)

    def _check_references(self, expense: Expense) -> None:
        user_ids = {r["id"] for r in self._list(USERS)}
        if expense.paid_by_id not in user_ids:
            raise ReferentialInconsistency(f"Payer {expense.paid_by_id} does not exist")
        unknown = [p for p in expense.participant_ids if p not in user_ids]
        if unknown:
            raise ReferentialInconsistency(f"Participant(s) do not exist: {', '.join(unknown)}")
        if expense.event_id is not None and self._get(EVENTS, expense.event_id) is None:
            raise ReferentialInconsistency(f"Event {expense.event_id} does not exist")

    # -- events --------------------------------------------------------

    def list_events(self) -> list[Event]:
        return [Event.from_record(r) for r in self._list(EVENTS)]

    def get_event(self, event_id: str) -> Event:
        return self._require(Event, EVENTS, event_id)

    def add_event(self, name: str, member_ids: Iterable[str] = ()) -> Event:
        event = self._build(Event, {"id": _new_id("evt"), "name": name, "member_ids": tuple(member_ids)})
        self._check_members(event)
        self._commit([Write(WriteOp.INSERT, EVENTS, event.id, event.to_record())])
        logger.info("Added event %s (%s)", event.id, event.name)
        return event

    def update_event(self, event_id: str, name: str, member_ids: Iterable[str]) -> Event:
        self.get_event(event_id)
        event = self._build(Event, {"id": event_id, "name": name, "member_ids": tuple(member_ids)})
        self._check_members(event)
        self._commit([Write(WriteOp.REPLACE, EVENTS, event.id, event.to_record())])
        logger.info("Updated event %s", event.id)
        return event

    def delete_event(self, event_id: str) -> int:
        """Remove an event and detach every expense that pointed at it."""
        self.get_event(event_id)
        _, detached = self._commit([
            Write(WriteOp.DELETE, EVENTS, event_id),
            Write(WriteOp.UPDATE_WHERE, EXPENSES, remove_fields=("eventId",), where=("eventId", event_id)),
        ])
        logger.info("Deleted event %s, detached %d expense(s)", event_id, detached)
        return detached

    def _check_members(self, event: Event) -> None:
        user_ids = {r["id"] for r in self._list(USERS)}
        unknown = [m for m in event.member_ids if m not in user_ids]
        if unknown:
            raise ReferentialInconsistency(f"Member(s) do not exist: {', '.join(unknown)}")

    # -- categories ----------------------------------------------------

    def list_categories(self) -> list[Category]:
        categories = [Category.from_record(r) for r in self._list(CATEGORIES)]
        return sorted(categories, key=lambda c: c.name.lower())

    def find_category(self, name: str) -> Optional[Category]:
        wanted = name.strip().lower()
        for category in self.list_categories():
            if category.name.lower() == wanted:
                return category
        return None

    def add_category(self, name: str) -> Category:
        category = self._build(Category, {"id": _new_id("cat"), "name": name})
        if self.find_category(category.name) is not None:
            raise ValidationError(f"Category '{category.name}' already exists")
        try:
            self._commit([Write(WriteOp.INSERT, CATEGORIES, category.id, category.to_record())])
        except CreationConflict as e:
            raise ValidationError(f"Category '{category.name}' already exists") from e
        logger.info("Added category %s", category.name)
        return category

    def ensure_category(self, name: str) -> Category:
        """Get-or-create by case-insensitive name.

        A concurrent creator can win between the lookup and the insert; the
        store reports that as a conflict and the lookup is repeated once.
        """
        existing = self.find_category(name)
        if existing is not None:
            return existing
        category = self._build(Category, {"id": _new_id("cat"), "name": name})
        try:
            self._commit([Write(WriteOp.INSERT, CATEGORIES, category.id, category.to_record())])
        except CreationConflict:
            existing = self.find_category(name)
            if existing is None:
                raise StoreFailure(f"Category '{name}' conflicted on create but cannot be found")
            return existing
        logger.info("Created category %s on demand", category.name)
        return category

    def rename_category(self, old_name: str, new_name: str) -> Category:
        new_name = new_name.strip()
        if not new_name:
            raise ValidationError("Category name must not be empty")
        category = self.find_category(old_name)
        if category is None:
            raise EntityNotFoundError(f"Category '{old_name}' not found")
        if new_name.lower() == category.name.lower():
            return category
        clash = self.find_category(new_name)
        if clash is not None and clash.id != category.id:
            raise ValidationError(f"Category '{clash.name}' already exists")

        renamed = Category(id=category.id, name=new_name)
        try:
            _, updated = self._commit([
                Write(WriteOp.REPLACE, CATEGORIES, renamed.id, renamed.to_record()),
                Write(WriteOp.UPDATE_WHERE, EXPENSES, record={"category": new_name},
                      where=("category", category.name), ignore_case=True),
            ])
        except CreationConflict as e:
            raise ValidationError(f"Category '{new_name}' already exists") from e
        logger.info("Renamed category %s -> %s, %d expense(s) updated", category.name, new_name, updated)
        return renamed

    def remove_category(self, name: str) -> int:
        category = self.find_category(name)
        if category is None:
            raise EntityNotFoundError(f"Category '{name}' not found")
        _, cleared = self._commit([
            Write(WriteOp.DELETE, CATEGORIES, category.id),
            Write(WriteOp.UPDATE_WHERE, EXPENSES, remove_fields=("category",),
                  where=("category", category.name), ignore_case=True),
        ])
        logger.info("Removed category %s, cleared %d expense(s)", category.name, cleared)
        return cleared

    # -- settlements and balances --------------------------------------

    def record_settlement(self, payer_id: str, recipient_id: str, amount: Decimal) -> Expense:
        payer = self._known_user(payer_id)
        recipient = self._known_user(recipient_id)
        draft = compose_settlement(
            payer.id, recipient.id, amount, payer.name, recipient.name, self.ensure_category,
        )
        expense = self.add_expense(draft)
        logger.info("Recorded settlement %s: %s -> %s (%s)", expense.id, payer.id, recipient.id, amount)
        return expense

    def _known_user(self, user_id: str) -> User:
        record = self._get(USERS, user_id)
        if record is None:
            raise ReferentialInconsistency(f"User {user_id} does not exist")
        return User.from_record(record)

    def get_balances(self, current_user_id: Optional[str] = None) -> list[Debt]:
        users = self.list_users()
        expenses = [Expense.from_record(r) for r in self._list(EXPENSES)]
        if current_user_id is None:
            return compute_balances(expenses, users)
        return compute_pairwise_balances(expenses, users, current_user_id)
