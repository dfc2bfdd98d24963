"""Reader counts that gate deletion of downloaded files."""

from pathlib import Path

import redis

from media_depot.core import keys
from media_depot.core.logging import get_logger
from media_depot.core.metrics import EVICTIONS_TOTAL, REFCOUNT_UNDERFLOWS_TOTAL
from media_depot.storage.content_cache import ContentCache

logger = get_logger().bind(module="refcount")


class FileRefCounter:
    """Counts readers of each file in Redis so any process can share a file.

    Counts only change inside Redis transactions, so two releases racing on the
    last reader cannot both observe the count reaching zero.
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        content_cache: ContentCache,
        guard_seconds: int,
        evict_on_last_release: bool = False,
    ) -> None:
        """Initialize reference counter.

        Args:
            redis_client: Redis client for state storage
            content_cache: Marker and metadata storage for the same files
            guard_seconds: Expiry put on every count so a crashed reader cannot pin a file forever
            evict_on_last_release: Delete on the last release even while the file's marker is alive
        """
        self.redis = redis_client
        self.content_cache = content_cache
        self.guard_seconds = guard_seconds
        self.evict_on_last_release = evict_on_last_release

    def count(self, file_path: str) -> int:
        value = self.redis.get(keys.refcount_key(file_path))
        return int(value) if value is not None else 0

    def acquire(self, file_path: str) -> int:
        """Register a reader of ``file_path``.

        Returns:
            The number of readers including this one
        """
        key = keys.refcount_key(file_path)
        with self.redis.pipeline(transaction=True) as pipe:
            pipe.incr(key)
            pipe.expire(key, self.guard_seconds)
            count, _ = pipe.execute()
        logger.debug("reader_acquired", file_path=file_path, readers=count)
        return int(count)

    def release(self, file_path: str) -> int:
        """Unregister a reader of ``file_path``.

        The reader that takes the count to zero decides whether the file goes:
        it is deleted when its last-access marker has expired (or always, with
        ``evict_on_last_release``). A count below zero means a double release;
        it is logged and then treated as zero.

        Returns:
            The remaining number of readers, never negative
        """
        key = keys.refcount_key(file_path)

        def _decrement(pipe: redis.client.Pipeline) -> int:
            current = pipe.get(key)
            remaining = (int(current) if current is not None else 0) - 1
            pipe.multi()
            if remaining > 0:
                pipe.decr(key)
            else:
                pipe.delete(key)
            return remaining

        remaining = int(self.redis.transaction(_decrement, key, value_from_callable=True))
        if remaining > 0:
            logger.debug("reader_released", file_path=file_path, readers=remaining)
            return remaining

        if remaining < 0:
            REFCOUNT_UNDERFLOWS_TOTAL.inc()
            logger.error(
                "refcount_underflow",
                file_path=file_path,
                count=remaining,
                reason="double release",
            )

        if self.evict_on_last_release or not self.content_cache.has_marker(file_path):
            self.evict(file_path, reason="last_release")
        return 0

    def evict(self, file_path: str, reason: str) -> bool:
        """Delete a file and its marker and metadata keys.

        A file that is already gone counts as deleted. Other failures are logged
        and reported through the return value, never raised.

        Returns:
            True if the file no longer exists
        """
        if self.count(file_path) > 0:
            logger.info("eviction_skipped_active_readers", file_path=file_path)
            return False

        try:
            Path(file_path).unlink()
            EVICTIONS_TOTAL.labels(reason=reason).inc()
            logger.info("file_evicted", file_path=file_path, reason=reason)
        except FileNotFoundError:
            logger.info("file_already_gone", file_path=file_path, reason=reason)
        except OSError as e:
            logger.error(
                "file_eviction_failed", file_path=file_path, reason=reason, error=str(e)
            )
            return False

        try:
            self.content_cache.forget(file_path)
        except redis.RedisError as e:
            logger.error("eviction_key_cleanup_failed", file_path=file_path, error=str(e))
        return True
