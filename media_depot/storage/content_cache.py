"""Last-access markers, cached metadata and in-flight download claims."""

import json
from collections.abc import Iterator
from datetime import datetime, timezone

import redis
from pydantic import ValidationError

from media_depot.acquisition.models import MediaMetadata
from media_depot.core import keys
from media_depot.core.logging import get_logger

logger = get_logger().bind(module="content_cache")


class ContentCache:
    """Per-file cache state shared by workers, readers and the sweeper.

    A file is protected from eviction exactly as long as its last-access marker
    exists. Markers and metadata share the retention window as their TTL.
    """

    def __init__(self, redis_client: redis.Redis, retention_seconds: int) -> None:
        """Initialize content cache.

        Args:
            redis_client: Redis client for state storage
            retention_seconds: TTL for markers and metadata
        """
        self.redis = redis_client
        self.retention_seconds = retention_seconds

    def touch(self, file_path: str) -> None:
        """Refresh the last-access marker of a file."""
        now = datetime.now(timezone.utc).isoformat()
        self.redis.set(
            keys.last_request_key(file_path), now, ex=self.retention_seconds
        )
        logger.debug("last_access_refreshed", file_path=file_path)

    def has_marker(self, file_path: str) -> bool:
        return bool(self.redis.exists(keys.last_request_key(file_path)))

    def iter_marked_paths(self) -> Iterator[tuple[str, str]]:
        """Yield ``(key, file_path)`` for every last-access marker."""
        for raw_key in self.redis.scan_iter(match=f"{keys.LAST_REQUEST_PREFIX}*"):
            key = raw_key.decode("utf-8") if isinstance(raw_key, bytes) else raw_key
            file_path = keys.file_path_from_key(key)
            if file_path:
                yield key, file_path

    def store_metadata(self, file_path: str, metadata: MediaMetadata) -> None:
        self.redis.set(
            keys.metadata_key(file_path),
            metadata.model_dump_json(),
            ex=self.retention_seconds,
        )

    def get_metadata(self, file_path: str) -> MediaMetadata | None:
        """Load cached metadata for a file.

        Returns:
            The metadata, or None when nothing usable is stored
        """
        data = self.redis.get(keys.metadata_key(file_path))
        if data is None:
            return None
        try:
            return MediaMetadata.model_validate(json.loads(data))
        except (ValueError, ValidationError) as e:
            logger.warning(
                "metadata_unreadable", file_path=file_path, error=str(e)
            )
            return None

    def forget(self, file_path: str) -> None:
        """Drop the marker and metadata keys of a file."""
        self.redis.delete(
            keys.last_request_key(file_path), keys.metadata_key(file_path)
        )

    def claim(self, content_hash: str, owner: str, ttl: int) -> bool:
        """Take the in-flight download claim for a content hash.

        Returns:
            True if this caller now owns the claim
        """
        return bool(
            self.redis.set(keys.inflight_key(content_hash), owner, nx=True, ex=ttl)
        )

    def is_claimed(self, content_hash: str) -> bool:
        return bool(self.redis.exists(keys.inflight_key(content_hash)))

    def release_claim(self, content_hash: str, owner: str) -> None:
        """Drop the claim if ``owner`` still holds it."""
        key = keys.inflight_key(content_hash)

        def _release(pipe: redis.client.Pipeline) -> None:
            current = pipe.get(key)
            if current is None:
                return
            holder = current.decode("utf-8") if isinstance(current, bytes) else current
            pipe.multi()
            if holder == owner:
                pipe.delete(key)

        self.redis.transaction(_release, key)
