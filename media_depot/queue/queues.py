"""RQ queue definitions."""

import logging

import redis
from rq import Queue

from media_depot.core.config import settings
from media_depot.core.redis import get_redis

logger = logging.getLogger(__name__)

_download_queue: Queue | None = None


def get_download_queue(connection: redis.Redis | None = None) -> Queue:
    """Get the download queue.

    Args:
        connection: Redis client to bind a fresh queue to; the shared queue is
            created on first call when omitted

    Returns:
        RQ queue named by ``QUEUE_NAME``
    """
    global _download_queue

    if connection is not None:
        return Queue(settings.QUEUE_NAME, connection=connection)

    if _download_queue is None:
        _download_queue = Queue(settings.QUEUE_NAME, connection=get_redis())
        logger.debug("Created queue %s", settings.QUEUE_NAME)
    return _download_queue


def reset_download_queue() -> None:
    """Forget the shared queue. Used for testing."""
    global _download_queue
    _download_queue = None
