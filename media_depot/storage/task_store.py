"""Durable task records with automatic expiry."""

import redis
from pydantic import ValidationError

from media_depot.core import keys
from media_depot.core.logging import get_logger
from media_depot.models import TaskState

logger = get_logger().bind(module="task_store")


class TaskStore:
    """Task id to task state mapping backed by expiring Redis keys.

    This store outlives the queue's own bookkeeping for a job and is the source
    of truth once the queue has discarded a finished job.
    """

    def __init__(self, redis_client: redis.Redis, retention_seconds: int) -> None:
        """Initialize task store.

        Args:
            redis_client: Redis client for state storage
            retention_seconds: How long a record stays retrievable after its last write
        """
        self.redis = redis_client
        self.retention_seconds = retention_seconds

    def put(self, state: TaskState) -> None:
        """Write a task record, restarting its retention window."""
        self.redis.set(
            keys.result_key(state.task_id),
            state.model_dump_json(),
            ex=self.retention_seconds,
        )
        logger.debug("task_recorded", task_id=state.task_id, status=state.status.value)

    def get(self, task_id: str) -> TaskState | None:
        """Read a task record.

        Returns:
            The stored state, or None if it expired, never existed or is unreadable
        """
        data = self.redis.get(keys.result_key(task_id))
        if data is None:
            return None
        try:
            return TaskState.model_validate_json(data)
        except ValidationError as e:
            logger.error("task_record_unreadable", task_id=task_id, error=str(e))
            return None

    def delete(self, task_id: str) -> None:
        self.redis.delete(keys.result_key(task_id))
