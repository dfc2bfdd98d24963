"""Test configuration."""

import os
from collections.abc import Generator
from pathlib import Path

# Must be set before media_depot.core.config builds its settings
os.environ["TESTING"] = "true"
os.environ.setdefault("JSON_LOGS", "false")

import fakeredis
import pytest

from media_depot.core.logging import configure_logging

# Module-level structlog loggers bind to whatever configuration exists at import
configure_logging(testing=True)

from media_depot.core.config import Settings
from media_depot.storage.content_cache import ContentCache
from media_depot.storage.refcount import FileRefCounter
from media_depot.storage.task_store import TaskStore

RETENTION_SECONDS = 3600


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def redis_client() -> Generator[fakeredis.FakeRedis, None, None]:
    """In-memory Redis with real INCR, WATCH/MULTI, TTL and SCAN semantics."""
    server = fakeredis.FakeServer()
    client = fakeredis.FakeRedis(server=server)
    yield client
    client.flushall()
    client.close()


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    path = tmp_path / "downloads"
    path.mkdir()
    return path


@pytest.fixture
def test_settings(output_dir: Path) -> Settings:
    """Settings with short timers and a temporary output directory."""
    return Settings(
        OUTPUT_DIR=output_dir,
        TASK_RETENTION_SECONDS=RETENTION_SECONDS,
        JOB_TIMEOUT_SECONDS=60,
        FINAL_FILE_TIMEOUT_SECONDS=1.0,
        FINAL_FILE_POLL_INTERVAL=0.01,
        MISSING_OUTPUT_GRACE_SECONDS=0.05,
        INFLIGHT_WAIT_SECONDS=1.0,
        INFLIGHT_CLAIM_TTL_SECONDS=60,
        REFCOUNT_GUARD_SECONDS=600,
    )


@pytest.fixture
def content_cache(redis_client: fakeredis.FakeRedis) -> ContentCache:
    return ContentCache(redis_client, RETENTION_SECONDS)


@pytest.fixture
def task_store(redis_client: fakeredis.FakeRedis) -> TaskStore:
    return TaskStore(redis_client, RETENTION_SECONDS)


@pytest.fixture
def refcounter(
    redis_client: fakeredis.FakeRedis, content_cache: ContentCache
) -> FileRefCounter:
    return FileRefCounter(redis_client, content_cache, guard_seconds=600)


@pytest.fixture
def media_file(output_dir: Path) -> Path:
    """A finished download as the tool leaves it."""
    path = output_dir / "Some Title_0123456789abcdef.mp4"
    path.write_bytes(b"\x00\x00\x00\x18ftypmp42" + b"x" * 1024)
    return path
