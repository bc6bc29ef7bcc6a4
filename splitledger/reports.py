from collections import defaultdict
from decimal import Decimal
from typing import Iterable, Sequence

from .balances import CENT
from .models import Expense, User
from .settlement import SETTLEMENT_CATEGORY

UNCATEGORIZED = "Uncategorized"


def is_settlement(expense: Expense) -> bool:
    return expense.category is not None and expense.category.lower() == SETTLEMENT_CATEGORY.lower()


def spending_by_category(expenses: Iterable[Expense]) -> dict[str, Decimal]:
    """Total spend per category. Settlements move money, they are not spending."""
    totals: dict[str, Decimal] = defaultdict(Decimal)
    for expense in expenses:
        if is_settlement(expense):
            continue
        totals[expense.category or UNCATEGORIZED] += expense.amount
    return {name: total.quantize(CENT) for name, total in sorted(totals.items())}


def expenses_for_user(expenses: Iterable[Expense], user_id: str) -> list[Expense]:
    return [e for e in expenses if e.paid_by_id == user_id or user_id in e.participant_ids]


def search_expenses(expenses: Iterable[Expense], users: Sequence[User], term: str) -> list[Expense]:
    term = term.strip().lower()
    if not term:
        return list(expenses)
    names = {u.id: u.name.lower() for u in users}
    return [
        e for e in expenses
        if term in e.description.lower()
        or (e.category is not None and term in e.category.lower())
        or term in names.get(e.paid_by_id, "")
    ]
