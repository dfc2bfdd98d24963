"""Tests for last-access markers, cached metadata and download claims."""

import fakeredis

from media_depot.acquisition.models import MediaMetadata
from media_depot.core import keys
from media_depot.storage.content_cache import ContentCache

PATH = "downloads/Title_abcd.mp4"


def test_touch_creates_marker_with_ttl(
    content_cache: ContentCache, redis_client: fakeredis.FakeRedis
) -> None:
    assert not content_cache.has_marker(PATH)
    content_cache.touch(PATH)
    assert content_cache.has_marker(PATH)
    ttl = redis_client.ttl(keys.last_request_key(PATH))
    assert 0 < ttl <= content_cache.retention_seconds


def test_touch_refreshes_ttl(
    content_cache: ContentCache, redis_client: fakeredis.FakeRedis
) -> None:
    content_cache.touch(PATH)
    redis_client.expire(keys.last_request_key(PATH), 5)
    content_cache.touch(PATH)
    assert redis_client.ttl(keys.last_request_key(PATH)) > 5


def test_marker_expires(
    content_cache: ContentCache, redis_client: fakeredis.FakeRedis
) -> None:
    content_cache.touch(PATH)
    redis_client.delete(keys.last_request_key(PATH))
    assert not content_cache.has_marker(PATH)


def test_iter_marked_paths(content_cache: ContentCache) -> None:
    content_cache.touch("downloads/a_1.mp4")
    content_cache.touch("downloads/b_2.mp4")
    content_cache.store_metadata("downloads/c_3.mp4", MediaMetadata(title="C"))

    paths = sorted(path for _, path in content_cache.iter_marked_paths())
    assert paths == ["downloads/a_1.mp4", "downloads/b_2.mp4"]


def test_metadata_round_trip(content_cache: ContentCache) -> None:
    metadata = MediaMetadata(title="T", thumbnail_url="t.jpg", duration="1:00")
    content_cache.store_metadata(PATH, metadata)
    assert content_cache.get_metadata(PATH) == metadata


def test_metadata_missing(content_cache: ContentCache) -> None:
    assert content_cache.get_metadata(PATH) is None


def test_metadata_unreadable(
    content_cache: ContentCache, redis_client: fakeredis.FakeRedis
) -> None:
    redis_client.set(keys.metadata_key(PATH), b"not json")
    assert content_cache.get_metadata(PATH) is None


def test_forget_drops_marker_and_metadata(content_cache: ContentCache) -> None:
    content_cache.touch(PATH)
    content_cache.store_metadata(PATH, MediaMetadata(title="T"))
    content_cache.forget(PATH)
    assert not content_cache.has_marker(PATH)
    assert content_cache.get_metadata(PATH) is None


def test_claim_is_exclusive(content_cache: ContentCache) -> None:
    assert content_cache.claim("abcd", "worker-1", ttl=60)
    assert not content_cache.claim("abcd", "worker-2", ttl=60)
    assert content_cache.is_claimed("abcd")


def test_release_claim_by_owner(content_cache: ContentCache) -> None:
    content_cache.claim("abcd", "worker-1", ttl=60)
    content_cache.release_claim("abcd", "worker-1")
    assert not content_cache.is_claimed("abcd")
    assert content_cache.claim("abcd", "worker-2", ttl=60)


def test_release_claim_by_other_is_ignored(content_cache: ContentCache) -> None:
    content_cache.claim("abcd", "worker-1", ttl=60)
    content_cache.release_claim("abcd", "worker-2")
    assert content_cache.is_claimed("abcd")


def test_release_unclaimed(content_cache: ContentCache) -> None:
    content_cache.release_claim("abcd", "worker-1")
    assert not content_cache.is_claimed("abcd")
