"""Per-entity locks for in-process writers.

Ledger writes are serialized per inventory item and ingredient-list edits
per recipe. Different items and recipes never block each other.

Usage:
    from src.services.locks import item_lock

    with item_lock(item_id):
        ...  # read current_stock, apply the transaction, write it back
"""

import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator, List


class KeyedLocks:
    """Registry of re-entrant locks, one per key.

    A key's lock is created when a thread first asks for it and dropped once
    no thread holds or waits on it, so the registry only tracks keys in use.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        # key -> [lock, number of threads holding or waiting]
        self._locks: Dict[Hashable, List] = {}

    def _checkout(self, key: Hashable) -> threading.RLock:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = [threading.RLock(), 0]
                self._locks[key] = entry
            entry[1] += 1
            return entry[0]

    def _checkin(self, key: Hashable) -> None:
        with self._guard:
            entry = self._locks[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        """Hold the lock for key for the duration of the block."""
        lock = self._checkout(key)
        try:
            with lock:
                yield
        finally:
            self._checkin(key)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


_item_locks = KeyedLocks()
_recipe_locks = KeyedLocks()


def item_lock(item_id: str):
    """Serialize ledger writes for one inventory item."""
    return _item_locks.hold(item_id)


def recipe_lock(recipe_id: str):
    """Serialize ingredient-list mutations for one recipe."""
    return _recipe_locks.hold(recipe_id)
