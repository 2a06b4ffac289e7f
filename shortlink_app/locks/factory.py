"""
Factory for creating per-link lock instances.
Simple, clean factory with singleton caching.
"""

import logging
from enum import Enum
from .strategies import LockStrategy, RedisLock, InMemoryLock
from shortlink_app.config import settings

logger = logging.getLogger(__name__)


class LockBackend(Enum):
    """Available lock backends"""
    REDIS = "redis"
    MEMORY = "memory"


class LockFactory:
    """
    Simple factory for creating lock instances.

    Uses Singleton Pattern: every request must share the same lock
    instance, otherwise an in-memory lock would not exclude anything.
    """

    _instance: LockStrategy = None  # Single cached instance

    @classmethod
    def create(cls, backend: LockBackend) -> LockStrategy:
        """
        Create or return cached lock instance.

        Args:
            backend: Type of lock backend (from enum)

        Returns:
            Singleton lock instance
        """
        if cls._instance is not None:
            return cls._instance

        if backend == LockBackend.REDIS:
            import redis

            try:
                redis_client = redis.from_url(
                    settings.redis_url,
                    socket_connect_timeout=2,
                    socket_timeout=2,
                )

                # Test connection immediately
                redis_client.ping()

                cls._instance = RedisLock(
                    redis_client,
                    timeout=settings.lock_timeout,
                    blocking_timeout=settings.lock_blocking_timeout,
                )
                logger.info("Redis link lock initialized")

            except Exception as e:
                logger.warning("Redis connection failed: %s", e)
                logger.warning("Falling back to in-process link lock")
                cls._instance = InMemoryLock(blocking_timeout=settings.lock_blocking_timeout)

        elif backend == LockBackend.MEMORY:
            cls._instance = InMemoryLock(blocking_timeout=settings.lock_blocking_timeout)
            logger.info("In-process link lock initialized")

        else:
            raise ValueError(f"Unknown lock backend: {backend}")

        return cls._instance

    @classmethod
    def clear_instance(cls):
        """Clear cached instance (for testing)"""
        cls._instance = None
