"""Task models shared by the queue, the task store and callers."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class TaskStatus(str, Enum):
    """Task status enum."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED)

    @property
    def rank(self) -> int:
        """Position in the lifecycle; both terminal states share the last slot."""
        return {
            TaskStatus.PENDING: 0,
            TaskStatus.PROCESSING: 1,
            TaskStatus.COMPLETED: 2,
            TaskStatus.FAILED: 2,
        }[self]


ALLOWED_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: frozenset({TaskStatus.PROCESSING}),
    TaskStatus.PROCESSING: frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED}),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.FAILED: frozenset(),
}


class InvalidTransitionError(ValueError):
    """Raised when a task would leave the pending/processing/terminal order."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskState(BaseModel):
    """Client-visible state of one acquisition task."""

    task_id: str
    url: str
    status: TaskStatus = TaskStatus.PENDING
    file_path: str | None = None
    title: str | None = None
    thumbnail_url: str | None = None
    duration: str | None = None
    error: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def transition(self, status: TaskStatus, **changes: Any) -> "TaskState":
        """Return a copy of this state moved to ``status``.

        Args:
            status: Target status
            **changes: Other fields to set on the copy

        Raises:
            InvalidTransitionError: If ``status`` may not follow the current status
        """
        if status not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Task {self.task_id} cannot move from {self.status.value} to {status.value}"
            )
        return self.model_copy(
            update={**changes, "status": status, "updated_at": _utcnow()}
        )

    def is_servable(self) -> bool:
        return self.status == TaskStatus.COMPLETED and bool(self.file_path)


def most_advanced(*states: TaskState | None) -> TaskState | None:
    """Pick the state furthest along the lifecycle, preferring the earliest on ties."""
    best: TaskState | None = None
    for state in states:
        if state is None:
            continue
        if best is None or state.status.rank > best.status.rank:
            best = state
    return best
