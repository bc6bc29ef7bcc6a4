from __future__ import annotations

import copy
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

from .errors import CreationConflict

USERS = "users"
EXPENSES = "expenses"
EVENTS = "events"
CATEGORIES = "categories"
COLLECTIONS = (USERS, EXPENSES, EVENTS, CATEGORIES)

DEFAULT_USERS = [
    {"id": "user_alice", "name": "Alice", "avatarUrl": "https://placehold.co/100x100.png?text=A"},
    {"id": "user_bob", "name": "Bob", "avatarUrl": "https://placehold.co/100x100.png?text=B"},
    {"id": "user_charlie", "name": "Charlie", "avatarUrl": "https://placehold.co/100x100.png?text=C"},
]

DEFAULT_CATEGORIES = [
    "Food", "Transport", "Shopping", "Utilities", "Entertainment",
    "Groceries", "Travel", "Health", "Other",
]


class WriteOp(str, Enum):
    INSERT = "INSERT"
    REPLACE = "REPLACE"
    UPDATE = "UPDATE"
    UPDATE_WHERE = "UPDATE_WHERE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class Write:
    """One write in a batch.

    ``UPDATE`` merges ``record`` into the stored record and drops
    ``remove_fields``. ``UPDATE_WHERE`` does the same to every record whose
    ``where`` field equals the given value, matched when the batch commits.
    """

    op: WriteOp
    collection: str
    record_id: Optional[str] = None
    record: Optional[dict] = None
    remove_fields: tuple[str, ...] = ()
    where: Optional[tuple[str, str]] = None
    ignore_case: bool = False


class LedgerStore(Protocol):
    """Document store keyed by opaque string ids. Records are plain dicts."""

    def get(self, collection: str, record_id: str) -> Optional[dict]: ...

    def list(self, collection: str) -> list[dict]: ...

    def commit_batch(self, writes: list[Write]) -> list[int]: ...


class InMemoryStorage:
    def __init__(self, seed: bool = True):
        self._lock = threading.Lock()
        self._data: dict[str, dict[str, dict]] = {name: {} for name in COLLECTIONS}
        if seed:
            self._seed_data()

    def _seed_data(self):
        for user in DEFAULT_USERS:
            self._data[USERS][user["id"]] = dict(user)
        for name in DEFAULT_CATEGORIES:
            category_id = f"cat_{name.lower()}"
            self._data[CATEGORIES][category_id] = {"id": category_id, "name": name}

    def get(self, collection: str, record_id: str) -> Optional[dict]:
        with self._lock:
            record = self._data[collection].get(record_id)
            return copy.deepcopy(record) if record is not None else None

    def list(self, collection: str) -> list[dict]:
        with self._lock:
            return [copy.deepcopy(r) for r in self._data[collection].values()]

    def commit_batch(self, writes: list[Write]) -> list[int]:
        """Apply every write or none of them.

        Returns the number of records each write touched.
        """
        with self._lock:
            staged = {name: dict(records) for name, records in self._data.items()}
            counts = [self._stage(staged, write) for write in writes]
            self._data = staged
            return counts

    def _stage(self, staged: dict[str, dict[str, dict]], write: Write) -> int:
        records = staged[write.collection]
        if write.op == WriteOp.INSERT:
            if write.record_id in records:
                raise CreationConflict(f"{write.collection}/{write.record_id} already exists")
            if write.collection == CATEGORIES:
                self._check_category_name(records, write.record)
            records[write.record_id] = copy.deepcopy(write.record)
        elif write.op == WriteOp.REPLACE:
            if write.record_id not in records:
                raise KeyError(f"{write.collection}/{write.record_id} does not exist")
            if write.collection == CATEGORIES:
                self._check_category_name(records, write.record)
            records[write.record_id] = copy.deepcopy(write.record)
        elif write.op == WriteOp.UPDATE:
            if write.record_id not in records:
                raise KeyError(f"{write.collection}/{write.record_id} does not exist")
            records[write.record_id] = self._merged(records[write.record_id], write)
        elif write.op == WriteOp.UPDATE_WHERE:
            matching = [rid for rid, r in records.items() if self._matches(r, write)]
            for record_id in matching:
                records[record_id] = self._merged(records[record_id], write)
            return len(matching)
        elif write.op == WriteOp.DELETE:
            if records.pop(write.record_id, None) is None:
                raise KeyError(f"{write.collection}/{write.record_id} does not exist")
        return 1

    @staticmethod
    def _merged(current: dict, write: Write) -> dict:
        record = copy.deepcopy(current)
        record.update(copy.deepcopy(write.record or {}))
        for name in write.remove_fields:
            record.pop(name, None)
        return record

    @staticmethod
    def _matches(record: dict, write: Write) -> bool:
        name, wanted = write.where
        value = record.get(name)
        if not isinstance(value, str):
            return False
        if write.ignore_case:
            return value.lower() == wanted.lower()
        return value == wanted

    @staticmethod
    def _check_category_name(records: dict[str, dict], record: dict) -> None:
        name = record["name"].lower()
        if any(rid != record["id"] and r["name"].lower() == name for rid, r in records.items()):
            raise CreationConflict(f"category '{record['name']}' already exists")
