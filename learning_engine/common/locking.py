"""
Per-Key Locking

This module provides a registry of re-entrant locks keyed by arbitrary
hashable values. The engine uses it to serialize the load -> mutate -> save
cycle of a single (student, course) ledger while leaving every other key free.

Key features:
1. Locks are created on first use and discarded once no thread holds or waits on them
2. Calls on different keys never contend beyond a brief registry lookup
3. Re-entrant: a thread already holding a key may acquire it again
"""

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Hashable, Iterator


@dataclass
class _LockEntry:
    """A key's lock plus the number of threads holding or waiting on it."""
    lock: threading.RLock = field(default_factory=threading.RLock)
    users: int = 0


class KeyedLock:
    """
    Registry of re-entrant locks, one per key.

    Usage:
        locks = KeyedLock()
        with locks.hold(("ada@example.com", "course-1")):
            ...
    """

    def __init__(self):
        self._registry_lock = threading.Lock()
        self._entries: Dict[Hashable, _LockEntry] = {}

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        """
        Hold the lock for ``key`` for the duration of the ``with`` block.

        Args:
            key: Any hashable key
        """
        with self._registry_lock:
            entry = self._entries.get(key)
            if entry is None:
                entry = _LockEntry()
                self._entries[key] = entry
            entry.users += 1

        entry.lock.acquire()
        try:
            yield
        finally:
            entry.lock.release()
            with self._registry_lock:
                entry.users -= 1
                if entry.users == 0:
                    del self._entries[key]

    def __len__(self) -> int:
        """Number of keys currently held or waited on."""
        with self._registry_lock:
            return len(self._entries)

    def is_held(self, key: Hashable) -> bool:
        """Whether any thread currently holds or waits on ``key``."""
        with self._registry_lock:
            return key in self._entries
