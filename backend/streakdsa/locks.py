"""
In-process keyed locks for the per-(user, day) atomic section.

One lock per key, created on demand and dropped once nobody holds or waits
on it. Storage-level compare-and-set in db.py keeps multi-process
deployments correct; this lock only removes contention inside one worker.
"""
import logging
import threading
import time
from contextlib import contextmanager
from typing import Hashable

from .config import LOCK_BACKOFF_SECONDS, LOCK_RETRIES, LOCK_TIMEOUT_SECONDS
from .errors import ConflictError

logger = logging.getLogger(__name__)


class KeyedLock:
    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[Hashable, threading.Lock] = {}
        self._refs: dict[Hashable, int] = {}

    def _checkout(self, key: Hashable) -> threading.Lock:
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._refs[key] = self._refs.get(key, 0) + 1
            return lock

    def _release_ref(self, key: Hashable) -> None:
        with self._guard:
            self._refs[key] -= 1
            if self._refs[key] == 0:
                del self._refs[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)

    @contextmanager
    def hold(
        self,
        key: Hashable,
        timeout: float = LOCK_TIMEOUT_SECONDS,
        retries: int = LOCK_RETRIES,
        backoff: float = LOCK_BACKOFF_SECONDS,
    ):
        """
        Hold the lock for `key`. Each failed attempt waits `timeout`, then
        sleeps with exponential backoff. Raises ConflictError once `retries`
        extra attempts are exhausted.
        """
        lock = self._checkout(key)
        try:
            for attempt in range(retries + 1):
                if lock.acquire(timeout=timeout):
                    break
                if attempt < retries:
                    delay = backoff * (2 ** attempt)
                    logger.info("Lock busy for %s, retry %d in %.2fs", key, attempt + 1, delay)
                    time.sleep(delay)
            else:
                logger.warning("Lock contention for %s after %d attempts", key, retries + 1)
                raise ConflictError("Another update for this day is in progress, try again")
            try:
                yield
            finally:
                lock.release()
        finally:
            self._release_ref(key)


day_locks = KeyedLock()
