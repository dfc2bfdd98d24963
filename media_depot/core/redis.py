"""Shared Redis connection pool."""

import logging

import redis

from media_depot.core.config import settings

logger = logging.getLogger(__name__)

_redis_pool: redis.ConnectionPool | None = None


def get_redis_pool() -> redis.ConnectionPool:
    """Get the process-wide connection pool, creating it on first use."""
    global _redis_pool

    if _redis_pool is None:
        _redis_pool = redis.ConnectionPool.from_url(
            settings.REDIS_URL,
            max_connections=max(settings.REDIS_POOL_SIZE, settings.WORKER_CONCURRENCY + 2),
            socket_timeout=5,
            socket_connect_timeout=5,
            socket_keepalive=True,
        )
        logger.debug(
            "Created Redis connection pool for %s (max_connections=%s)",
            settings.REDIS_URL,
            _redis_pool.max_connections,
        )
    return _redis_pool


def get_redis() -> redis.Redis:
    """Get a Redis client backed by the shared pool.

    Values are returned as bytes; callers decode what they read.
    """
    return redis.Redis(connection_pool=get_redis_pool())

