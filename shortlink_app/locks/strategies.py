"""
Per-link lock strategies using Strategy Pattern.

Every mutating unit of work on a link (version append, edit, rollback)
runs while holding the lock for that link, so version numbers are
assigned by exactly one writer at a time.
"""

import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Dict, Iterator

from redis.exceptions import LockError

from shortlink_app.exceptions import ConflictError

logger = logging.getLogger(__name__)


class LockStrategy(ABC):
    """
    Abstract base class for per-link mutual exclusion.

    Implementations must block until the lock for `key` is free or the
    blocking timeout elapses, in which case ConflictError is raised.
    Locks for different keys never block each other.
    """

    @abstractmethod
    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        """
        Hold the lock for `key` for the duration of the with-block.

        Args:
            key: Lock name, usually built with link_lock_key()

        Raises:
            ConflictError: If the lock could not be acquired in time
        """
        pass


def link_lock_key(link_id: int) -> str:
    return f"lock:link:{link_id}"


class RedisLock(LockStrategy):
    """
    Redis-backed lock (redis-py `Lock`, SET NX PX under the hood).

    Works across processes and hosts, which is what a multi-worker
    deployment needs. The lock expires after `timeout` seconds so a crashed
    holder cannot wedge a link forever.
    """

    def __init__(self, redis_client, timeout: int = 30, blocking_timeout: float = 10.0):
        """
        Initialize Redis lock strategy.

        Args:
            redis_client: Redis client instance (redis.Redis)
            timeout: Seconds until a held lock expires
            blocking_timeout: Seconds to wait for a busy lock
        """
        self.redis = redis_client
        self.timeout = timeout
        self.blocking_timeout = blocking_timeout

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        lock = self.redis.lock(
            key,
            timeout=self.timeout,
            blocking_timeout=self.blocking_timeout,
        )
        if not lock.acquire():
            logger.warning("Timed out waiting for %s", key)
            raise ConflictError(f"Link is being modified by another request ({key})")
        try:
            yield
        finally:
            try:
                lock.release()
            except LockError as e:
                # The lock expired while we held it
                logger.error("Failed to release %s: %s", key, e)


class InMemoryLock(LockStrategy):
    """
    Process-local lock using one threading.Lock per key.

    Good for development, tests and single-process deployments. Not
    shared between worker processes.
    """

    def __init__(self, blocking_timeout: float = 10.0):
        self.blocking_timeout = blocking_timeout
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _get_lock(self, key: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        lock = self._get_lock(key)
        if not lock.acquire(timeout=self.blocking_timeout):
            logger.warning("Timed out waiting for %s", key)
            raise ConflictError(f"Link is being modified by another request ({key})")
        try:
            yield
        finally:
            lock.release()
