"""
Lock module for the short link service.
Implements Strategy Pattern for per-link mutual exclusion backends.
"""

from .strategies import LockStrategy, RedisLock, InMemoryLock, link_lock_key
from .factory import LockFactory, LockBackend

__all__ = [
    "LockStrategy",
    "RedisLock",
    "InMemoryLock",
    "link_lock_key",
    "LockFactory",
    "LockBackend",
]
