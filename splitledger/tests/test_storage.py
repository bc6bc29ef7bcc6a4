"""
Unit Tests for the In-Memory Store

Tests cover:
1. Field-level updates and predicate updates
2. Category name uniqueness on insert and replace
"""

import pytest

from splitledger.errors import CreationConflict
from splitledger.storage import CATEGORIES, EXPENSES, InMemoryStorage, Write, WriteOp


def store_with_expenses() -> InMemoryStorage:
    storage = InMemoryStorage(seed=True)
    storage.commit_batch([
        Write(WriteOp.INSERT, EXPENSES, "e1", {"id": "e1", "amount": "10", "category": "Food", "eventId": "t1"}),
        Write(WriteOp.INSERT, EXPENSES, "e2", {"id": "e2", "amount": "20", "category": "FOOD"}),
        Write(WriteOp.INSERT, EXPENSES, "e3", {"id": "e3", "amount": "30", "category": "Travel"}),
    ])
    return storage


class TestUpdates:
    """Tests for writes that touch only some fields."""

    def test_update_merges_and_removes_fields(self):
        storage = store_with_expenses()

        counts = storage.commit_batch([
            Write(WriteOp.UPDATE, EXPENSES, "e1", {"amount": "15"}, ("eventId",)),
        ])

        assert counts == [1]
        assert storage.get(EXPENSES, "e1") == {"id": "e1", "amount": "15", "category": "Food"}

    def test_update_missing_record(self):
        with pytest.raises(KeyError):
            store_with_expenses().commit_batch([Write(WriteOp.UPDATE, EXPENSES, "nope", {"amount": "1"})])

    def test_update_where_ignoring_case(self):
        storage = store_with_expenses()

        counts = storage.commit_batch([
            Write(WriteOp.UPDATE_WHERE, EXPENSES, record={"category": "Dining"},
                  where=("category", "food"), ignore_case=True),
        ])

        assert counts == [2]
        assert [storage.get(EXPENSES, i)["category"] for i in ("e1", "e2", "e3")] == ["Dining", "Dining", "Travel"]

    def test_update_where_exact_match(self):
        storage = store_with_expenses()

        counts = storage.commit_batch([
            Write(WriteOp.UPDATE_WHERE, EXPENSES, remove_fields=("category",), where=("category", "Food")),
        ])

        assert counts == [1]
        assert "category" not in storage.get(EXPENSES, "e1")
        assert storage.get(EXPENSES, "e2")["category"] == "FOOD"

    def test_update_where_without_matches(self):
        storage = store_with_expenses()

        assert storage.commit_batch([
            Write(WriteOp.UPDATE_WHERE, EXPENSES, remove_fields=("eventId",), where=("eventId", "t9")),
        ]) == [0]


class TestCategoryNames:
    """Tests for case-insensitive category name uniqueness."""

    def test_insert_duplicate_name(self):
        with pytest.raises(CreationConflict):
            InMemoryStorage(seed=True).commit_batch([
                Write(WriteOp.INSERT, CATEGORIES, "cat_x", {"id": "cat_x", "name": "FOOD"}),
            ])

    def test_replace_onto_existing_name(self):
        storage = InMemoryStorage(seed=True)

        with pytest.raises(CreationConflict):
            storage.commit_batch([
                Write(WriteOp.REPLACE, CATEGORIES, "cat_food", {"id": "cat_food", "name": "travel"}),
            ])

        assert storage.get(CATEGORIES, "cat_food")["name"] == "Food"

    def test_replace_may_keep_own_name(self):
        storage = InMemoryStorage(seed=True)

        storage.commit_batch([Write(WriteOp.REPLACE, CATEGORIES, "cat_food", {"id": "cat_food", "name": "FOOD"})])

        assert storage.get(CATEGORIES, "cat_food")["name"] == "FOOD"
