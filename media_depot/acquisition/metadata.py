"""Parsing of the download tool's JSON metadata.

The tool emits an arbitrary JSON document. Only three fields matter here, and
any of them may be missing or malformed, so the document is validated into a
partial model whose fields all default to ``None``.
"""

import json
import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from media_depot.acquisition.models import MediaMetadata

logger = logging.getLogger(__name__)

PREFERRED_THUMBNAIL_RESOLUTION = "medium"


class ToolThumbnail(BaseModel):
    """One entry of the tool's ``thumbnails`` list."""

    model_config = ConfigDict(extra="ignore")

    url: str | None = None
    resolution: str | None = None

    @field_validator("url", "resolution", mode="before")
    @classmethod
    def _strings_only(cls, value: Any) -> str | None:
        return value if isinstance(value, str) else None


class ToolInfo(BaseModel):
    """The subset of the tool's JSON document we rely on."""

    model_config = ConfigDict(extra="ignore")

    title: str | None = None
    thumbnails: list[ToolThumbnail] = []
    duration: float | None = None

    @field_validator("title", mode="before")
    @classmethod
    def _title_string(cls, value: Any) -> str | None:
        return value if isinstance(value, str) else None

    @field_validator("thumbnails", mode="before")
    @classmethod
    def _thumbnail_dicts(cls, value: Any) -> list[Any]:
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, dict)]

    @field_validator("duration", mode="before")
    @classmethod
    def _numeric_duration(cls, value: Any) -> float | None:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return float(value)


def select_thumbnail(thumbnails: list[ToolThumbnail]) -> str:
    """Pick the medium-resolution thumbnail, falling back to the last entry."""
    if not thumbnails:
        return ""
    for thumbnail in thumbnails:
        if thumbnail.resolution == PREFERRED_THUMBNAIL_RESOLUTION:
            return thumbnail.url or ""
    return thumbnails[-1].url or ""


def format_duration(seconds: float | None) -> str:
    """Format a duration in seconds as ``minutes:seconds``."""
    if seconds is None or seconds < 0:
        return ""
    total = int(seconds)
    return f"{total // 60}:{total % 60:02d}"


def to_metadata(info: ToolInfo) -> MediaMetadata:
    return MediaMetadata(
        title=info.title or "",
        thumbnail_url=select_thumbnail(info.thumbnails),
        duration=format_duration(info.duration),
    )


def parse_tool_output(raw: str | bytes) -> MediaMetadata:
    """Parse metadata from the tool's standard output.

    The tool prints one JSON document per line; the last parseable object wins.

    Args:
        raw: Captured standard output

    Returns:
        Parsed metadata

    Raises:
        ValueError: If no JSON object can be found in the output
    """
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")

    for line in reversed(raw.strip().splitlines()):
        line = line.strip()
        if not line.startswith("{"):
            continue
        try:
            data = json.loads(line)
        except json.JSONDecodeError:
            continue
        if not isinstance(data, dict):
            continue
        try:
            return to_metadata(ToolInfo.model_validate(data))
        except ValidationError as e:
            logger.warning(f"Ignoring malformed metadata document: {e}")
            return MediaMetadata()

    raise ValueError("no JSON metadata found in tool output")
