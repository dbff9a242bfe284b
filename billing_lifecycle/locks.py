"""
Per-subscription locks for this process.

Database row locks (``SELECT ... FOR UPDATE``) cover concurrent processes
on PostgreSQL; these locks cover threads of one process, which is all that
SQLite gets. An entry lives only while some thread holds or waits for it.
"""
import threading
from contextlib import contextmanager

_registry_lock = threading.Lock()
_locks = {}  # subscription id -> [RLock, holders and waiters]


@contextmanager
def subscription_lock(subscription_id: int):
    """Hold the lock for ``subscription_id`` for the duration of the block.

    Re-entrant, so a re-evaluation inside a held unit does not deadlock on
    its own subscription.
    """
    with _registry_lock:
        entry = _locks.get(subscription_id)
        if entry is None:
            entry = _locks[subscription_id] = [threading.RLock(), 0]
        entry[1] += 1

    try:
        with entry[0]:
            yield
    finally:
        with _registry_lock:
            entry[1] -= 1
            if entry[1] == 0:
                del _locks[subscription_id]
