from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator

from loguru import logger

from app.core.errors import ServerError


class UserLockRegistry:
    """One mutex per user id, created on demand.

    Entries are reference counted and dropped once nobody holds or waits on
    them, so the registry does not grow with the number of users ever seen.
    """

    def __init__(self, timeout: float = 5.0) -> None:
        self._timeout = timeout
        self._guard = threading.Lock()
        self._locks: dict[int, threading.Lock] = {}
        self._refs: dict[int, int] = {}

    @contextmanager
    def hold(self, user_id: int, timeout: float | None = None) -> Iterator[None]:
        wait = self._timeout if timeout is None else timeout
        lock = self._acquire_entry(user_id)
        try:
            if not lock.acquire(timeout=wait):
                logger.warning('Timed out waiting for credential lock (userId: {})', user_id)
                raise ServerError('Timed out waiting for credential lock', detail={'user_id': user_id})
            try:
                yield
            finally:
                lock.release()
        finally:
            self._release_entry(user_id)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def _acquire_entry(self, user_id: int) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[user_id] = lock
            self._refs[user_id] = self._refs.get(user_id, 0) + 1
            return lock

    def _release_entry(self, user_id: int) -> None:
        with self._guard:
            remaining = self._refs.get(user_id, 1) - 1
            if remaining <= 0:
                self._refs.pop(user_id, None)
                self._locks.pop(user_id, None)
            else:
                self._refs[user_id] = remaining
