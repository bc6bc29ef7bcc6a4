"""
Balance engine.

Turns the current users and expenses into one signed balance per user:
positive means the group owes that user, negative means the user owes
the group. Pure functions only; callers pass snapshots.
"""

import math
from collections import defaultdict
from decimal import Decimal
from fractions import Fraction
from typing import Iterable, Optional, Sequence

from .models import Debt, Expense, User

CENT = Decimal("0.01")
PAIRWISE_EPSILON = Fraction(1, 200)


def round_half_away(value: Fraction) -> Decimal:
    """Round an exact amount to cents, halves away from zero."""
    cents = math.floor(abs(value) * 100 + Fraction(1, 2))
    if value < 0:
        cents = -cents
    return (Decimal(cents) * CENT).quantize(CENT)


def _raw_balances(expenses: Iterable[Expense]) -> dict[str, Fraction]:
    # Ids that are not known users still accumulate here; callers only read known ones.
    totals: dict[str, Fraction] = defaultdict(Fraction)
    for expense in expenses:
        participants = expense.participant_ids
        if not participants:
            continue
        amount = Fraction(expense.amount)
        totals[expense.paid_by_id] += amount
        share = amount / len(participants)
        for participant_id in participants:
            totals[participant_id] -= share
    return totals


def _debt(user: User, balance: Fraction) -> Debt:
    return Debt(
        user_id=user.id,
        user_name=user.name,
        avatar_url=user.avatar_url,
        balance=round_half_away(balance),
    )


def compute_balances(expenses: Sequence[Expense], users: Sequence[User]) -> list[Debt]:
    if not users or not expenses:
        return []

    totals = _raw_balances(expenses)
    debts = [_debt(user, totals.get(user.id, Fraction(0))) for user in users]
    # sorted() is stable, so equal balances keep the order of ``users``.
    return sorted(debts, key=lambda d: d.balance, reverse=True)


def compute_pairwise_balances(
    expenses: Sequence[Expense],
    users: Sequence[User],
    current_user_id: Optional[str],
) -> list[Debt]:
    """Balances seen from one user's point of view.

    The first entry is the current user's overall balance. Every following
    entry is what that other user owes the current user (negative when the
    current user owes them), counting only expenses both of them took part in
    and one of them paid. Near-zero pairs are left out.
    """
    current = next((u for u in users if u.id == current_user_id), None)
    if current is None or not expenses:
        return compute_balances(expenses, users)

    overall = _raw_balances(expenses).get(current.id, Fraction(0))
    others: list[Debt] = []
    for other in users:
        if other.id == current.id:
            continue
        net = Fraction(0)
        for expense in expenses:
            participants = expense.participant_ids
            if current.id not in participants or other.id not in participants:
                continue
            share = Fraction(expense.amount) / len(participants)
            if expense.paid_by_id == current.id:
                net += share
            elif expense.paid_by_id == other.id:
                net -= share
        if abs(net) > PAIRWISE_EPSILON:
            others.append(_debt(other, net))

    others.sort(key=lambda d: d.balance, reverse=True)
    return [_debt(current, overall), *others]
