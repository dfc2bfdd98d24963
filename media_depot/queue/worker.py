"""RQ worker pool for download jobs."""

import logging

import redis
from rq.worker_pool import WorkerPool

from media_depot.core.config import settings
from media_depot.queue.queues import get_download_queue

logger = logging.getLogger(__name__)


class DownloadWorkerPool:
    """Runs a fixed number of RQ workers against the download queue.

    Each worker is its own process, so concurrent downloads never share a
    Python interpreter and a stuck tool only holds up its own worker.
    """

    def __init__(
        self,
        connection: redis.Redis | None = None,
        num_workers: int | None = None,
    ) -> None:
        """Initialize worker pool.

        Args:
            connection: Redis client; defaults to the shared pool
            num_workers: Number of worker processes (default: ``WORKER_CONCURRENCY``)
        """
        queue = get_download_queue(connection)
        self.num_workers = num_workers or settings.WORKER_CONCURRENCY
        self.pool = WorkerPool(
            [queue],
            connection=queue.connection,
            num_workers=self.num_workers,
        )

    def run(self, burst: bool = False) -> None:
        """Start the workers and block until they exit.

        Args:
            burst: Exit once the queue is empty
        """
        logger.info(
            f"Starting {self.num_workers} download workers on {settings.QUEUE_NAME}"
        )
        self.pool.start(burst=burst, logging_level=settings.LOG_LEVEL.upper())

    def stop(self) -> None:
        """Ask the workers to finish their current jobs and exit."""
        logger.info("Stopping download workers")
        self.pool.request_stop()
