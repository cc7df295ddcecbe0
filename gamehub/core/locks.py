import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class KeyedLocks:
    """One lock per aggregate id: writers on the same id queue up, different ids run freely.

    A key's lock lives only while someone holds or waits for it, so the
    registry stays as small as the number of ids currently being written.
    """

    def __init__(self):
        self._locks: Dict[str, threading.Lock] = {}
        self._waiters: Dict[str, int] = {}
        self._registry_lock = threading.Lock() # guards both dicts

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._locks)

    def _acquire_entry(self, key: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.setdefault(key, threading.Lock())
            self._waiters[key] = self._waiters.get(key, 0) + 1
            return lock

    def _release_entry(self, key: str) -> None:
        with self._registry_lock:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        lock = self._acquire_entry(key)
        try:
            with lock:
                yield
        finally:
            self._release_entry(key)
