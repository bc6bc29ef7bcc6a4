"""
Shared-Expense Ledger

This module provides:
- Immutable user, expense, event and category records
- Balance computation over the full expense set
- Settlement transfers recorded as single-participant expenses
- Atomic category rename/removal cascades
- Three-state partial updates for optional expense fields
"""

from .balances import compute_balances, compute_pairwise_balances
from .errors import (
    EntityNotFoundError,
    LedgerError,
    ReferentialInconsistency,
    SettlementCategoryUnavailable,
    StoreFailure,
    ValidationError,
)
from .models import Category, Debt, Event, Expense, ExpenseDraft, User
from .patch import ExpensePatch, FieldPatch, PatchOp
from .service import LedgerService
from .settlement import compose_settlement
from .storage import InMemoryStorage

__all__ = [
    "compute_balances",
    "compute_pairwise_balances",
    "compose_settlement",
    "Category",
    "Debt",
    "Event",
    "Expense",
    "ExpenseDraft",
    "User",
    "ExpensePatch",
    "FieldPatch",
    "PatchOp",
    "LedgerService",
    "InMemoryStorage",
    "LedgerError",
    "ValidationError",
    "EntityNotFoundError",
    "ReferentialInconsistency",
    "SettlementCategoryUnavailable",
    "StoreFailure",
]
