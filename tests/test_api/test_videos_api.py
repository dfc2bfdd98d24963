"""Tests for the v1 HTTP API."""

from collections.abc import AsyncGenerator
from pathlib import Path
from unittest.mock import MagicMock

import fakeredis
import pytest
import redis
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from prometheus_client import REGISTRY
from pytest_asyncio import fixture as asyncio_fixture

from media_depot.api.v1.router import get_media_service, get_redis_client
from media_depot.main import create_app
from media_depot.models import TaskState, TaskStatus
from media_depot.queue.jobs import DownloadQueue
from media_depot.service import MediaService
from media_depot.storage.content_cache import ContentCache
from media_depot.storage.refcount import FileRefCounter
from media_depot.storage.task_store import TaskStore

VALID_URL = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"


@pytest.fixture
def rq_queue() -> MagicMock:
    queue = MagicMock()
    queue.fetch_job.return_value = None
    return queue


@pytest.fixture
def service(
    rq_queue: MagicMock, task_store: TaskStore, refcounter: FileRefCounter
) -> MediaService:
    return MediaService(DownloadQueue(rq_queue, task_store), refcounter)


@pytest.fixture
def app(service: MediaService, redis_client: fakeredis.FakeRedis) -> FastAPI:
    app = create_app()
    app.dependency_overrides[get_media_service] = lambda: service
    app.dependency_overrides[get_redis_client] = lambda: redis_client
    return app


@asyncio_fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


def _completed(task_store: TaskStore, file_path: Path, task_id: str = "t1") -> TaskState:
    state = (
        TaskState(task_id=task_id, url=VALID_URL)
        .transition(TaskStatus.PROCESSING)
        .transition(
            TaskStatus.COMPLETED,
            file_path=str(file_path),
            title="Some Title",
            duration="3:33",
        )
    )
    task_store.put(state)
    return state


@pytest.mark.asyncio
async def test_submit_download(client: AsyncClient, rq_queue: MagicMock) -> None:
    response = await client.post("/api/v1/videos", json={"url": VALID_URL})

    assert response.status_code == 202
    body = response.json()
    assert body["status"] == "pending"
    rq_queue.enqueue_call.assert_called_once()
    assert rq_queue.enqueue_call.call_args.kwargs["job_id"] == body["task_id"]


@pytest.mark.asyncio
async def test_submit_then_poll_pending(client: AsyncClient) -> None:
    created = await client.post("/api/v1/videos", json={"url": VALID_URL})
    task_id = created.json()["task_id"]

    response = await client.get(f"/api/v1/videos/{task_id}/status")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "pending"
    assert body["download_url"] is None
    assert body["file_path"] is None


@pytest.mark.asyncio
async def test_submit_invalid_url(client: AsyncClient, rq_queue: MagicMock) -> None:
    response = await client.post(
        "/api/v1/videos", json={"url": "https://vimeo.com/1"}
    )

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "InvalidURLError"
    assert "host not allowed" in body["message"]
    assert body["correlation_id"] != "unknown"
    rq_queue.enqueue_call.assert_not_called()


@pytest.mark.asyncio
async def test_submit_without_url(client: AsyncClient) -> None:
    response = await client.post("/api/v1/videos", json={})
    assert response.status_code == 422
    assert response.json()["error"] == "RequestValidationError"


@pytest.mark.asyncio
async def test_status_unknown_task(client: AsyncClient) -> None:
    response = await client.get(
        "/api/v1/videos/missing/status", headers={"X-Request-ID": "test-abc"}
    )

    assert response.status_code == 404
    body = response.json()
    assert body["error"] == "TaskNotFoundError"
    assert body["correlation_id"] == "test-abc"
    assert response.headers["X-Request-ID"] == "test-abc"


@pytest.mark.asyncio
async def test_status_completed_has_download_url(
    client: AsyncClient, task_store: TaskStore, media_file: Path
) -> None:
    _completed(task_store, media_file)

    response = await client.get("/api/v1/videos/t1/status")

    body = response.json()
    assert body["status"] == "completed"
    assert body["title"] == "Some Title"
    assert body["duration"] == "3:33"
    assert body["download_url"] == "http://test/api/v1/videos/t1"
    assert "url" not in body


@pytest.mark.asyncio
async def test_status_failed_shows_error(
    client: AsyncClient, task_store: TaskStore
) -> None:
    state = (
        TaskState(task_id="t2", url=VALID_URL)
        .transition(TaskStatus.PROCESSING)
        .transition(TaskStatus.FAILED, error="yt-dlp is not installed")
    )
    task_store.put(state)

    body = (await client.get("/api/v1/videos/t2/status")).json()

    assert body["status"] == "failed"
    assert body["error"] == "yt-dlp is not installed"
    assert body["download_url"] is None


@pytest.mark.asyncio
async def test_serve_video(
    client: AsyncClient,
    task_store: TaskStore,
    content_cache: ContentCache,
    refcounter: FileRefCounter,
    media_file: Path,
) -> None:
    _completed(task_store, media_file)
    content_cache.touch(str(media_file))

    response = await client.get("/api/v1/videos/t1")

    assert response.status_code == 200
    assert response.content == media_file.read_bytes()
    assert response.headers["content-type"] == "video/mp4"
    assert response.headers["content-disposition"] == 'attachment; filename="Some Title.mp4"'
    assert refcounter.count(str(media_file)) == 0
    assert media_file.exists()


@pytest.mark.asyncio
async def test_serve_escapes_quotes_in_filename(
    client: AsyncClient, task_store: TaskStore, content_cache: ContentCache, output_dir: Path
) -> None:
    quoted = output_dir / 'Say "hi"_0123456789abcdef.mp4'
    quoted.write_bytes(b"data")
    _completed(task_store, quoted)
    content_cache.touch(str(quoted))

    response = await client.get("/api/v1/videos/t1")

    assert response.headers["content-disposition"] == 'attachment; filename="Say \\"hi\\".mp4"'


@pytest.mark.asyncio
async def test_serve_pending_task(client: AsyncClient, task_store: TaskStore) -> None:
    task_store.put(TaskState(task_id="t3", url=VALID_URL))

    response = await client.get("/api/v1/videos/t3")

    assert response.status_code == 409
    assert response.json()["error"] == "TaskNotReadyError"


@pytest.mark.asyncio
async def test_serve_evicted_file(
    client: AsyncClient, task_store: TaskStore, output_dir: Path, refcounter: FileRefCounter
) -> None:
    gone = output_dir / "Gone_0123456789abcdef.mp4"
    _completed(task_store, gone)

    response = await client.get("/api/v1/videos/t1")

    assert response.status_code == 404
    assert response.json()["error"] == "MediaGoneError"
    assert refcounter.count(str(gone)) == 0


@pytest.mark.asyncio
async def test_health(client: AsyncClient) -> None:
    response = await client.get("/api/v1/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["redis"] == "healthy"


@pytest.mark.asyncio
async def test_health_redis_down(app: FastAPI, client: AsyncClient) -> None:
    broken = MagicMock()
    broken.ping.side_effect = redis.ConnectionError("refused")
    app.dependency_overrides[get_redis_client] = lambda: broken

    response = await client.get("/api/v1/health")

    assert response.status_code == 503
    assert response.json()["status"] == "unhealthy"


@pytest.mark.asyncio
async def test_store_unavailable(client: AsyncClient, service: MediaService) -> None:
    service.download_queue.queue.fetch_job.side_effect = redis.ConnectionError("refused")

    response = await client.get("/api/v1/videos/t1/status")

    assert response.status_code == 503
    assert response.json()["message"] == "Task storage is unavailable"


@pytest.mark.asyncio
async def test_metrics_endpoint(client: AsyncClient) -> None:
    await client.get("/api/v1/health")
    response = await client.get("/metrics")

    assert response.status_code == 200
    assert "media_depot_http_requests_total" in response.text


@pytest.mark.asyncio
async def test_request_metrics_use_route_template(client: AsyncClient) -> None:
    template = "/api/v1/videos/{task_id}/status"
    labels = {"method": "GET", "path": template}
    before = REGISTRY.get_sample_value("media_depot_http_requests_total", labels) or 0.0

    await client.get("/api/v1/videos/first-task/status")
    await client.get("/api/v1/videos/second-task/status")

    assert REGISTRY.get_sample_value("media_depot_http_requests_total", labels) == before + 2
    for task_id in ("first-task", "second-task"):
        raw = {"method": "GET", "path": f"/api/v1/videos/{task_id}/status"}
        assert REGISTRY.get_sample_value("media_depot_http_requests_total", raw) is None


@pytest.mark.asyncio
async def test_unrouted_requests_share_one_label(client: AsyncClient) -> None:
    labels = {"method": "GET", "path": "unmatched"}
    before = REGISTRY.get_sample_value("media_depot_http_requests_total", labels) or 0.0

    response = await client.get("/no/such/page")

    assert response.status_code == 404
    assert REGISTRY.get_sample_value("media_depot_http_requests_total", labels) == before + 1


@pytest.mark.asyncio
async def test_correlation_id_generated(client: AsyncClient) -> None:
    response = await client.get("/api/v1/health")
    assert response.headers["X-Request-ID"]
    assert response.json()["correlation_id"] == response.headers["X-Request-ID"]
