"""Request and response models for the v1 API."""

from datetime import datetime

from pydantic import BaseModel, Field

from media_depot.models import TaskState, TaskStatus


class DownloadRequest(BaseModel):
    """Body of a download submission."""

    url: str = Field(..., description="Source URL to acquire")


class TaskCreatedResponse(BaseModel):
    task_id: str
    status: TaskStatus = TaskStatus.PENDING


class TaskStatusResponse(BaseModel):
    """Status of a task as shown to polling clients."""

    task_id: str
    status: TaskStatus
    file_path: str | None = None
    title: str | None = None
    thumbnail_url: str | None = None
    duration: str | None = None
    error: str | None = None
    download_url: str | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_state(
        cls, state: TaskState, download_url: str | None = None
    ) -> "TaskStatusResponse":
        return cls(
            **state.model_dump(exclude={"url"}),
            download_url=download_url if state.is_servable() else None,
        )


class HealthResponse(BaseModel):
    status: str
    version: str
    redis: str
    correlation_id: str | None = None
