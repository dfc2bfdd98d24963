"""Redis key namespaces.

Every piece of shared state lives under its own prefix and carries its own TTL:

- ``video:lastrequest:<path>``: last-access marker, presence protects a file
- ``video:metadata:<path>``: cached title/thumbnail/duration for a file
- ``video:refcount:<path>``: number of readers currently streaming a file
- ``video:result:<task_id>``: durable task record
- ``video:inflight:<hash>``: claim held while a hash is being downloaded
"""

from typing import Final

LAST_REQUEST_PREFIX: Final[str] = "video:lastrequest:"
METADATA_PREFIX: Final[str] = "video:metadata:"
REFCOUNT_PREFIX: Final[str] = "video:refcount:"
RESULT_PREFIX: Final[str] = "video:result:"
INFLIGHT_PREFIX: Final[str] = "video:inflight:"


def last_request_key(file_path: str) -> str:
    """Return the last-access marker key for a file."""
    return f"{LAST_REQUEST_PREFIX}{file_path}"


def file_path_from_key(key: str | bytes) -> str:
    """Extract the file path from a last-access marker key.

    Returns an empty string when ``key`` is not a marker key.
    """
    if isinstance(key, bytes):
        key = key.decode("utf-8")
    if not key.startswith(LAST_REQUEST_PREFIX):
        return ""
    return key[len(LAST_REQUEST_PREFIX) :]


def metadata_key(file_path: str) -> str:
    """Return the metadata key for a file."""
    return f"{METADATA_PREFIX}{file_path}"


def refcount_key(file_path: str) -> str:
    """Return the reader count key for a file."""
    return f"{REFCOUNT_PREFIX}{file_path}"


def result_key(task_id: str) -> str:
    """Return the task record key."""
    return f"{RESULT_PREFIX}{task_id}"


def inflight_key(content_hash: str) -> str:
    """Return the download claim key for a content hash."""
    return f"{INFLIGHT_PREFIX}{content_hash}"
