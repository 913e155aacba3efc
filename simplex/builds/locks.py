#simplex\builds\locks.py

"""Per-key mutual exclusion for builds."""

import threading
from contextlib import contextmanager
from typing import Dict, Generator, Hashable, Optional


class _Entry:
    """A lock plus the number of threads holding or waiting on it."""

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


class KeyedLock:
    """
    One lock per key, created on demand.

    Threads holding different keys never block each other. Entries are
    dropped once no thread holds or waits on them.
    """

    def __init__(self):
        self._entries: Dict[Hashable, _Entry] = {}
        self._guard = threading.Lock()

    def acquire(self, key: Hashable, timeout: Optional[float] = None) -> bool:
        """
        Acquire the lock for key.

        timeout=None blocks until acquired; timeout=0 does not block.
        Returns False if the lock could not be acquired in time.
        """
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.users += 1

        if timeout is None:
            acquired = entry.lock.acquire()
        elif timeout <= 0:
            acquired = entry.lock.acquire(blocking=False)
        else:
            acquired = entry.lock.acquire(timeout=timeout)

        if not acquired:
            self._forget(key, entry)
        return acquired

    def release(self, key: Hashable) -> None:
        with self._guard:
            entry = self._entries.get(key)
        if entry is None:
            raise RuntimeError(f"Lock for {key!r} is not held")
        entry.lock.release()
        self._forget(key, entry)

    @contextmanager
    def hold(self, key: Hashable, timeout: Optional[float] = None) -> Generator[bool, None, None]:
        """
        Hold the lock for key for the duration of the block.

        Yields False without entering the critical section if the lock
        could not be acquired within timeout.
        """
        acquired = self.acquire(key, timeout=timeout)
        try:
            yield acquired
        finally:
            if acquired:
                self.release(key)

    def is_locked(self, key: Hashable) -> bool:
        with self._guard:
            entry = self._entries.get(key)
        return entry is not None and entry.lock.locked()

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)

    def _forget(self, key: Hashable, entry: _Entry) -> None:
        with self._guard:
            entry.users -= 1
            if entry.users == 0 and self._entries.get(key) is entry:
                del self._entries[key]

    def __repr__(self) -> str:
        return f"<KeyedLock(keys={len(self)})>"


# Shared by every BuildService in the process unless one is injected
build_locks = KeyedLock()
