"""Worker-side processing of download jobs."""

import logging
import time
from typing import Any

from rq import get_current_job
from rq.job import Job
from rq.timeouts import JobTimeoutException

from media_depot.acquisition.errors import AcquisitionError
from media_depot.acquisition.executor import AcquisitionExecutor
from media_depot.core.config import settings
from media_depot.core.redis import get_redis
from media_depot.models import TaskState, TaskStatus
from media_depot.storage.content_cache import ContentCache
from media_depot.storage.task_store import TaskStore

logger = logging.getLogger(__name__)


class DownloadProcessor:
    """Moves one task through processing to a terminal state.

    Every state change is written to the task store and, when running under
    RQ, to the job's meta so status reads see it while the job is still live.
    """

    def __init__(
        self,
        executor: AcquisitionExecutor,
        task_store: TaskStore,
        job_timeout: int | None = None,
    ) -> None:
        self.executor = executor
        self.task_store = task_store
        self.job_timeout = job_timeout or settings.JOB_TIMEOUT_SECONDS

    def process(self, task_id: str, url: str, job: Job | None = None) -> TaskState:
        """Run the acquisition for a task.

        Args:
            task_id: Task ID
            url: Source URL
            job: RQ job carrying the task, if any

        Returns:
            The terminal task state
        """
        state = self.task_store.get(task_id) or TaskState(task_id=task_id, url=url)
        if state.status.is_terminal:
            logger.info(f"Task {task_id} already {state.status.value}, skipping")
            return state

        if state.status == TaskStatus.PENDING:
            state = state.transition(TaskStatus.PROCESSING)
            self._record(state, job)
        logger.info(f"Processing task {task_id}: {url}")

        deadline = time.monotonic() + self.job_timeout
        try:
            media = self.executor.acquire(url, deadline=deadline)
        except AcquisitionError as e:
            logger.error(f"Task {task_id} failed: {e}")
            state = state.transition(TaskStatus.FAILED, error=str(e))
        except JobTimeoutException as e:
            logger.error(f"Task {task_id} timed out: {e}")
            state = state.transition(
                TaskStatus.FAILED,
                error=f"download of {url} cancelled: job timed out",
            )
        except Exception as e:
            logger.exception(f"Unexpected error processing task {task_id}")
            state = state.transition(TaskStatus.FAILED, error=str(e))
        else:
            state = state.transition(
                TaskStatus.COMPLETED,
                file_path=media.file_path,
                title=media.metadata.title,
                thumbnail_url=media.metadata.thumbnail_url,
                duration=media.metadata.duration,
            )
            logger.info(f"Task {task_id} completed: {media.file_path}")

        self._record(state, job)
        return state

    def _record(self, state: TaskState, job: Job | None) -> None:
        self.task_store.put(state)
        if job is not None:
            job.meta["task"] = state.model_dump(mode="json")
            job.save_meta()


def process_download_job(task_id: str, url: str) -> dict[str, Any]:
    """RQ entry point for download jobs.

    Args:
        task_id: Task ID, equal to the RQ job ID
        url: Source URL

    Returns:
        The terminal task state as a dict
    """
    job = get_current_job()
    connection = job.connection if job is not None else get_redis()

    content_cache = ContentCache(connection, settings.TASK_RETENTION_SECONDS)
    processor = DownloadProcessor(
        executor=AcquisitionExecutor(content_cache),
        task_store=TaskStore(connection, settings.TASK_RETENTION_SECONDS),
    )
    return processor.process(task_id, url, job=job).model_dump(mode="json")
