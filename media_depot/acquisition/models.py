"""Acquisition models."""

from pydantic import BaseModel, Field


class MediaMetadata(BaseModel):
    """Display metadata kept alongside a downloaded file."""

    title: str = ""
    thumbnail_url: str = ""
    duration: str = ""


class AcquiredMedia(BaseModel):
    """Result of a successful acquisition."""

    file_path: str
    metadata: MediaMetadata = Field(default_factory=MediaMetadata)
    cache_hit: bool = False
