"""Per-resource locks for serializing check-then-write sequences."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator

from dayplanner.logger import get_logger


logger = get_logger(__name__)


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class KeyedLockTable:
    """One lock per key, created lazily.

    Holders of different keys never contend. Acquisition is always bounded
    by a timeout so a busy resource cannot block callers forever. A key's
    entry is dropped once nobody holds or waits for it, so the table only
    ever holds keys that are in use right now.
    """

    def __init__(self, default_timeout: float = 5.0) -> None:
        self.default_timeout = default_timeout
        self._table_lock = threading.Lock()
        self._locks: dict[str, _Entry] = {}

    def _checkout(self, key: str) -> _Entry:
        with self._table_lock:
            entry = self._locks.get(key)
            if entry is None:
                entry = _Entry()
                self._locks[key] = entry
            entry.users += 1
            return entry

    def _checkin(self, key: str, entry: _Entry) -> None:
        with self._table_lock:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, key: str, timeout: float | None = None) -> Iterator[bool]:
        """Context manager for one key's lock.

        Yields:
            bool: True if the lock was acquired within the timeout.
        """
        wait = self.default_timeout if timeout is None else timeout
        entry = self._checkout(key)
        try:
            acquired = entry.lock.acquire(timeout=wait)
            if not acquired:
                logger.warning("Failed to acquire lock for %s after %.2fs", key, wait)
            try:
                yield acquired
            finally:
                if acquired:
                    entry.lock.release()
        finally:
            self._checkin(key, entry)

    def __len__(self) -> int:
        with self._table_lock:
            return len(self._locks)
