"""Per-key locking for state stores.

One lock per record key; unrelated identities never contend.  Locks are
reference counted and dropped from the registry once the last holder
releases them, so the registry only holds keys currently in use.
"""
from __future__ import annotations

import threading
from collections.abc import Hashable, Iterator
from contextlib import contextmanager


class KeyedLockRegistry:
    """Hand out one :class:`threading.Lock` per key.

    Example::

        locks = KeyedLockRegistry()
        with locks.hold(("bans", "10.0.0.1")):
            ...  # read-modify-write of that record only
    """

    __slots__ = ("_guard", "_locks")

    def __init__(self) -> None:
        self._guard = threading.Lock()
        # key -> [lock, number of threads holding or waiting]
        self._locks: dict[Hashable, list] = {}

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        """Acquire the lock for *key* for the duration of the block."""
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = [threading.Lock(), 0]
                self._locks[key] = entry
            entry[1] += 1
        lock: threading.Lock = entry[0]
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    def __len__(self) -> int:
        """Number of keys currently held or waited on."""
        with self._guard:
            return len(self._locks)
