"""Keyed mutual exclusion for per-player and per-game critical sections.

FastAPI runs sync endpoints on a thread pool, so a trade for one player must
hold that player's lock while it reads, mutates and commits the portfolio.
Locks for unrelated keys never contend. Entries are dropped once no thread
holds or waits on them.
"""

import threading
from contextlib import contextmanager
from typing import Hashable, Optional

from tradegame.config import settings
from tradegame.exceptions import ConflictingState


class KeyedLocks:
    def __init__(self, name: str):
        self.name = name
        self._guard = threading.Lock()
        self._locks: dict[Hashable, threading.Lock] = {}
        self._refs: dict[Hashable, int] = {}

    def _checkout(self, key: Hashable) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            self._refs[key] = self._refs.get(key, 0) + 1
            return lock

    def _checkin(self, key: Hashable) -> None:
        with self._guard:
            self._refs[key] -= 1
            if self._refs[key] == 0:
                del self._refs[key]
                del self._locks[key]

    @contextmanager
    def hold(self, key: Hashable, timeout: Optional[float] = None):
        """Hold the lock for ``key``; raise ConflictingState if it stays busy past ``timeout``."""
        if timeout is None:
            timeout = settings.LOCK_TIMEOUT_SECONDS
        lock = self._checkout(key)
        try:
            if not lock.acquire(timeout=timeout):
                raise ConflictingState(f"Timed out waiting for {self.name} {key}")
            try:
                yield
            finally:
                lock.release()
        finally:
            self._checkin(key)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


player_locks = KeyedLocks("player")
game_locks = KeyedLocks("game")
