"""Caller-facing operations: enqueue, status and file delivery."""

import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import BinaryIO

import redis

from media_depot.core.config import Settings, settings as default_settings
from media_depot.core.hashing import original_filename
from media_depot.core.logging import get_logger
from media_depot.core.metrics import ACTIVE_READERS
from media_depot.core.redis import get_redis
from media_depot.models import TaskState, TaskStatus
from media_depot.queue.jobs import DownloadQueue
from media_depot.queue.queues import get_download_queue
from media_depot.storage.content_cache import ContentCache
from media_depot.storage.refcount import FileRefCounter
from media_depot.storage.task_store import TaskStore

logger = get_logger().bind(module="service")

CHUNK_SIZE = 64 * 1024


class ServiceError(Exception):
    """Base class for errors raised to callers of the service."""


class TaskNotFoundError(ServiceError):
    """The task id is unknown or its record has expired."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id


class TaskNotReadyError(ServiceError):
    """The task has not completed, so there is no file to serve."""

    def __init__(self, task_id: str, status: TaskStatus) -> None:
        super().__init__(f"Task {task_id} is {status.value}")
        self.task_id = task_id
        self.status = status


class MediaGoneError(ServiceError):
    """The task completed but its file has since been evicted."""

    def __init__(self, task_id: str, file_path: str) -> None:
        super().__init__(f"File for task {task_id} is no longer available")
        self.task_id = task_id
        self.file_path = file_path


class Delivery:
    """An open file registered as a reader until ``close`` is called.

    ``close`` is idempotent, so a stream that is both exhausted and torn down
    releases its reader exactly once.
    """

    def __init__(
        self,
        refcounter: FileRefCounter,
        file_path: str,
        handle: BinaryIO,
        filename: str,
        size: int,
    ) -> None:
        self.refcounter = refcounter
        self.file_path = file_path
        self.handle = handle
        self.filename = filename
        self.size = size
        self.closed = False

    def iter_chunks(self, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
        """Yield the file contents, releasing the reader once exhausted."""
        try:
            while chunk := self.handle.read(chunk_size):
                yield chunk
        finally:
            self.close()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            self.handle.close()
        finally:
            ACTIVE_READERS.dec()
            try:
                self.refcounter.release(self.file_path)
            except redis.RedisError as e:
                logger.error("reader_release_failed", file_path=self.file_path, error=str(e))


class MediaService:
    """Facade over the queue, the task store and the reader counts."""

    def __init__(self, download_queue: DownloadQueue, refcounter: FileRefCounter) -> None:
        self.download_queue = download_queue
        self.refcounter = refcounter

    def enqueue(self, url: str) -> str:
        """Submit a URL for acquisition.

        Returns:
            Task ID, pollable immediately
        """
        task_id = self.download_queue.enqueue(url)
        logger.info("task_enqueued", task_id=task_id, url=url)
        return task_id

    def get_status(self, task_id: str) -> TaskState:
        """Look up a task without blocking.

        Raises:
            TaskNotFoundError: If neither the queue nor the task store knows the task
        """
        state = self.download_queue.get_status(task_id)
        if state is None:
            raise TaskNotFoundError(task_id)
        return state

    def open_delivery(self, task_id: str) -> Delivery:
        """Open the file of a completed task for streaming.

        The caller must close the returned delivery.

        Raises:
            TaskNotFoundError: If the task is unknown
            TaskNotReadyError: If the task has not completed
            MediaGoneError: If the file no longer exists
        """
        state = self.get_status(task_id)
        if not state.is_servable():
            raise TaskNotReadyError(task_id, state.status)

        file_path = state.file_path or ""
        self.refcounter.acquire(file_path)
        try:
            handle = open(file_path, "rb")
        except FileNotFoundError:
            self.refcounter.release(file_path)
            logger.info("media_gone", task_id=task_id, file_path=file_path)
            raise MediaGoneError(task_id, file_path) from None
        except OSError:
            self.refcounter.release(file_path)
            raise

        try:
            size = os.fstat(handle.fileno()).st_size
        except OSError:
            handle.close()
            self.refcounter.release(file_path)
            raise

        ACTIVE_READERS.inc()
        logger.info("delivery_opened", task_id=task_id, file_path=file_path)
        return Delivery(
            self.refcounter,
            file_path,
            handle,
            filename=original_filename(file_path),
            size=size,
        )

    @contextmanager
    def serve(self, task_id: str) -> Iterator[tuple[BinaryIO, str]]:
        """Hold a file open for the duration of the block.

        Yields:
            ``(file handle, client-facing filename)``
        """
        delivery = self.open_delivery(task_id)
        try:
            yield delivery.handle, delivery.filename
        finally:
            delivery.close()


def build_refcounter(
    connection: redis.Redis, config: Settings | None = None
) -> FileRefCounter:
    config = config or default_settings
    return FileRefCounter(
        connection,
        ContentCache(connection, config.TASK_RETENTION_SECONDS),
        guard_seconds=config.REFCOUNT_GUARD_SECONDS,
        evict_on_last_release=config.EVICT_ON_LAST_RELEASE,
    )


def build_service(
    connection: redis.Redis | None = None, config: Settings | None = None
) -> MediaService:
    """Wire a service against Redis using the application settings."""
    config = config or default_settings
    connection = connection if connection is not None else get_redis()
    download_queue = DownloadQueue(
        get_download_queue(connection),
        TaskStore(connection, config.TASK_RETENTION_SECONDS),
        result_ttl=config.QUEUE_RESULT_TTL_SECONDS,
        job_timeout=config.JOB_TIMEOUT_SECONDS,
    )
    return MediaService(download_queue, build_refcounter(connection, config))
