"""Redis-backed state: task records, file markers and reader counts."""

from media_depot.storage.content_cache import ContentCache
from media_depot.storage.refcount import FileRefCounter
from media_depot.storage.task_store import TaskStore

__all__ = ["ContentCache", "FileRefCounter", "TaskStore"]
