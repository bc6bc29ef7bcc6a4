"""
Unit Tests for the Settlement Composer

Tests cover:
1. Draft shape (description, single recipient participant, category)
2. Self-settlement and non-positive amount rejection
3. Failure of the category collaborator
4. Settlement round-trip through the balance engine
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal

from splitledger.balances import compute_balances
from splitledger.errors import SettlementCategoryUnavailable, StoreFailure, ValidationError
from splitledger.models import Category, Expense, User
from splitledger.settlement import compose_settlement


NOW = datetime(2024, 5, 1, tzinfo=timezone.utc)


class CategoryRecorder:
    def __init__(self, category=None, error=None):
        self.calls = []
        self.category = category or Category(id="cat_settlement", name="Settlement")
        self.error = error

    def __call__(self, name: str) -> Category:
        self.calls.append(name)
        if self.error:
            raise self.error
        return self.category


def to_expense(draft, expense_id="settle") -> Expense:
    return Expense(id=expense_id, date=NOW, **draft.model_dump())


class TestComposeSettlement:
    """Tests for the draft the composer produces."""

    def test_draft_shape(self):
        ensure = CategoryRecorder()

        draft = compose_settlement("a", "b", Decimal("15.00"), "Alice", "Bob", ensure)

        assert draft.description == "Settlement: Alice to Bob"
        assert draft.amount == Decimal("15.00")
        assert draft.paid_by_id == "a"
        assert draft.participant_ids == ["b"]
        assert draft.category == "Settlement"
        assert draft.event_id is None
        assert ensure.calls == ["Settlement"]

    def test_uses_canonical_category_name(self):
        ensure = CategoryRecorder(Category(id="c1", name="settlement"))

        draft = compose_settlement("a", "b", Decimal("5"), "Alice", "Bob", ensure)

        assert draft.category == "settlement"

    def test_self_settlement_rejected(self):
        ensure = CategoryRecorder()

        with pytest.raises(ValidationError):
            compose_settlement("a", "a", Decimal("10"), "Alice", "Alice", ensure)

        assert ensure.calls == []

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5.00")])
    def test_non_positive_amount_rejected(self, amount):
        with pytest.raises(ValidationError):
            compose_settlement("a", "b", amount, "Alice", "Bob", CategoryRecorder())


class TestCategoryUnavailable:
    """Tests for failures of the ensure-category collaborator."""

    def test_store_failure_is_wrapped(self):
        cause = StoreFailure("store offline")

        with pytest.raises(SettlementCategoryUnavailable) as exc_info:
            compose_settlement("a", "b", Decimal("10"), "Alice", "Bob", CategoryRecorder(error=cause))

        assert exc_info.value.__cause__ is cause

    def test_wrong_category_returned(self):
        ensure = CategoryRecorder(Category(id="c1", name="Food"))

        with pytest.raises(SettlementCategoryUnavailable):
            compose_settlement("a", "b", Decimal("10"), "Alice", "Bob", ensure)

    def test_missing_category_returned(self):
        with pytest.raises(SettlementCategoryUnavailable):
            compose_settlement("a", "b", Decimal("10"), "Alice", "Bob", lambda name: None)


class TestSettlementRoundTrip:
    """Tests that a settlement nets a debt out through the balance engine."""

    def test_settlement_clears_debt(self):
        users = [
            User(id="a", name="Alice", avatar_url="https://placehold.co/100x100.png?text=A"),
            User(id="b", name="Bob", avatar_url="https://placehold.co/100x100.png?text=B"),
            User(id="c", name="Charlie", avatar_url="https://placehold.co/100x100.png?text=C"),
        ]
        dinner = Expense(
            id="dinner", description="Dinner", amount=Decimal("30.00"),
            paid_by_id="b", participant_ids=("a", "b"), date=NOW,
        )
        before = {d.user_id: d.balance for d in compute_balances([dinner], users)}
        assert before == {"a": Decimal("-15.00"), "b": Decimal("15.00"), "c": Decimal("0.00")}

        draft = compose_settlement("a", "b", Decimal("15.00"), "Alice", "Bob", CategoryRecorder())
        after = {d.user_id: d.balance for d in compute_balances([dinner, to_expense(draft)], users)}

        assert after == {"a": Decimal("0.00"), "b": Decimal("0.00"), "c": Decimal("0.00")}
