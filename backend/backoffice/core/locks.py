"""
Process-level document locks.

Read-modify-write sequences (duplicate-name check then insert, payment-sum
check then append, counter read then increment) run under the lock for the
document they touch, so two request threads cannot interleave them.
"""
from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Hashable, Iterator

_registry_lock = threading.Lock()
_locks: dict[tuple[str, Hashable], threading.RLock] = {}

# The whole category tree shares one lock: name uniqueness is global.
CATEGORY_TREE = "*"


def _lock_for(kind: str, key: Hashable) -> threading.RLock:
    with _registry_lock:
        lock = _locks.get((kind, key))
        if lock is None:
            lock = threading.RLock()
            _locks[(kind, key)] = lock
        return lock


@contextmanager
def document_lock(kind: str, key: Hashable) -> Iterator[None]:
    """Hold the re-entrant lock for one document (``kind``, ``key``)."""
    lock = _lock_for(kind, key)
    with lock:
        yield
