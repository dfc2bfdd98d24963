"""Media acquisition through an external download tool.

The executor lives in ``media_depot.acquisition.executor``; it depends on the
storage package, which in turn uses the models exported here.
"""

from media_depot.acquisition.errors import (
    AcquisitionCancelledError,
    AcquisitionError,
    DownloadFailedError,
    FinalFileTimeoutError,
    MetadataFetchError,
    OutputDirectoryError,
    OutputNotFoundError,
    ToolMissingError,
)
from media_depot.acquisition.models import AcquiredMedia, MediaMetadata

__all__ = [
    "AcquiredMedia",
    "AcquisitionCancelledError",
    "AcquisitionError",
    "DownloadFailedError",
    "FinalFileTimeoutError",
    "MediaMetadata",
    "MetadataFetchError",
    "OutputDirectoryError",
    "OutputNotFoundError",
    "ToolMissingError",
]
