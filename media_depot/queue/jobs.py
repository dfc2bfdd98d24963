"""Enqueueing downloads and looking up their status."""

import logging
import uuid
from typing import Any, cast

from pydantic import ValidationError
from rq import Queue

from media_depot.core.config import settings
from media_depot.models import TaskState, TaskStatus, most_advanced
from media_depot.storage.task_store import TaskStore

logger = logging.getLogger(__name__)

PROCESS_FUNC = "media_depot.queue.processor.process_download_job"

# Seconds RQ waits past our own deadline before killing the work horse
HARD_TIMEOUT_MARGIN = 60


class DownloadQueue:
    """Client side of the download queue.

    Task ids are generated here and reused as RQ job ids. Status comes from the
    job's meta while RQ still holds the job and from the task store afterwards.
    """

    def __init__(
        self,
        queue: Queue,
        task_store: TaskStore,
        result_ttl: int | None = None,
        job_timeout: int | None = None,
    ) -> None:
        """Initialize download queue.

        Args:
            queue: RQ queue the workers listen on
            task_store: Durable task records
            result_ttl: How long RQ keeps finished jobs
            job_timeout: Per-job deadline in seconds
        """
        self.queue = queue
        self.task_store = task_store
        self.result_ttl = (
            result_ttl if result_ttl is not None else settings.QUEUE_RESULT_TTL_SECONDS
        )
        self.job_timeout = job_timeout or settings.JOB_TIMEOUT_SECONDS

    def enqueue(self, url: str) -> str:
        """Enqueue a download.

        Args:
            url: Source URL

        Returns:
            Task ID
        """
        task_id = str(uuid.uuid4())
        state = TaskState(task_id=task_id, url=url)
        self.task_store.put(state)

        try:
            self.queue.enqueue_call(
                func=PROCESS_FUNC,
                args=(task_id, url),
                job_id=task_id,
                meta={"task": state.model_dump(mode="json")},
                timeout=self.job_timeout + HARD_TIMEOUT_MARGIN,
                result_ttl=self.result_ttl,
                failure_ttl=self.result_ttl,
            )
        except Exception:
            self.task_store.delete(task_id)
            raise

        logger.info(f"Task enqueued: ID={task_id}, URL={url}")
        return task_id

    def get_status(self, task_id: str) -> TaskState | None:
        """Get task status.

        Never blocks on the job; a task unknown to both the queue and the task
        store yields None. A terminal record in the task store is final and wins
        over whatever the queue reports.
        """
        stored = self.task_store.get(task_id)
        if stored is not None and stored.status.is_terminal:
            return stored
        return most_advanced(self._from_queue(task_id), stored)

    def _from_queue(self, task_id: str) -> TaskState | None:
        rq_job = self.queue.fetch_job(task_id)
        if not rq_job:
            return None

        task_data = cast(dict[str, Any], rq_job.meta.get("task", {}))
        if not task_data:
            return None
        try:
            state = TaskState.model_validate(task_data)
        except ValidationError as e:
            logger.warning(f"Unreadable task meta on job {task_id}: {e}")
            return None

        # The work horse died without recording a terminal state
        rq_status = rq_job.get_status()
        rq_status = getattr(rq_status, "value", rq_status)
        if rq_status in ("failed", "stopped", "canceled") and not state.status.is_terminal:
            error = getattr(rq_job, "exc_info", None) or f"job {rq_status}"
            if state.status == TaskStatus.PENDING:
                state = state.transition(TaskStatus.PROCESSING)
            state = state.transition(TaskStatus.FAILED, error=str(error).strip())
        return state
