"""Tests for the keyed lock registry."""

import threading

import pytest

from src.services.locks import KeyedLocks, item_lock, recipe_lock


def test_lock_dropped_after_release():
    locks = KeyedLocks()
    with locks.hold("a"):
        with locks.hold("a"):
            assert len(locks) == 1
        with locks.hold("b"):
            assert len(locks) == 2
        assert len(locks) == 1
    assert len(locks) == 0


def test_lock_dropped_after_error():
    locks = KeyedLocks()
    with pytest.raises(RuntimeError):
        with locks.hold("a"):
            raise RuntimeError("boom")
    assert len(locks) == 0


def test_many_keys_do_not_accumulate():
    locks = KeyedLocks()
    for index in range(500):
        with locks.hold(f"inv-{index}"):
            pass
    assert len(locks) == 0


def test_locks_are_reentrant():
    with item_lock("inv-1"):
        with item_lock("inv-1"):
            pass
    with recipe_lock("rec-1"):
        with recipe_lock("rec-1"):
            pass


def test_hold_serializes_writers():
    locks = KeyedLocks()
    counter = {"value": 0}

    def bump():
        for _ in range(1000):
            with locks.hold("inv-1"):
                current = counter["value"]
                counter["value"] = current + 1

    threads = [threading.Thread(target=bump) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert counter["value"] == 4000


def test_other_key_not_blocked():
    locks = KeyedLocks()
    entered = []

    def other():
        with locks.hold("inv-2"):
            entered.append(True)

    with locks.hold("inv-1"):
        thread = threading.Thread(target=other)
        thread.start()
        thread.join(timeout=1)

    assert entered == [True]


def test_waiter_keeps_lock_registered():
    locks = KeyedLocks()
    released = threading.Event()
    entered = []

    def waiter():
        with locks.hold("inv-1"):
            entered.append(released.is_set())

    with locks.hold("inv-1"):
        thread = threading.Thread(target=waiter)
        thread.start()
        thread.join(timeout=0.2)
        assert entered == []
        released.set()
    thread.join(timeout=1)

    assert entered == [True]
    assert len(locks) == 0
