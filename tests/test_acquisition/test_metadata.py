"""Tests for download tool metadata parsing."""

import json

import pytest

from media_depot.acquisition.metadata import (
    ToolThumbnail,
    format_duration,
    parse_tool_output,
    select_thumbnail,
)
from media_depot.acquisition.models import MediaMetadata


def test_parse_full_document() -> None:
    raw = json.dumps(
        {
            "title": "Test Video",
            "thumbnails": [
                {"url": "https://i.ytimg.com/small.jpg", "resolution": "small"},
                {"url": "https://i.ytimg.com/medium.jpg", "resolution": "medium"},
                {"url": "https://i.ytimg.com/large.jpg", "resolution": "large"},
            ],
            "duration": 125,
            "formats": [{"format_id": "22"}],
        }
    )
    assert parse_tool_output(raw) == MediaMetadata(
        title="Test Video",
        thumbnail_url="https://i.ytimg.com/medium.jpg",
        duration="2:05",
    )


def test_parse_falls_back_to_last_thumbnail() -> None:
    raw = json.dumps(
        {
            "title": "No Medium",
            "thumbnails": [{"url": "a.jpg"}, {"url": "b.jpg", "resolution": "hd"}],
            "duration": 59.9,
        }
    )
    metadata = parse_tool_output(raw)
    assert metadata.thumbnail_url == "b.jpg"
    assert metadata.duration == "0:59"


def test_parse_uses_last_json_line() -> None:
    raw = "[download] Destination: x\n" + json.dumps({"title": "Last"}) + "\n"
    assert parse_tool_output(raw).title == "Last"


def test_parse_bytes() -> None:
    assert parse_tool_output(json.dumps({"title": "Bytes"}).encode()).title == "Bytes"


def test_parse_missing_fields_gives_empty_metadata() -> None:
    metadata = parse_tool_output("{}")
    assert metadata == MediaMetadata()


def test_parse_ignores_malformed_fields() -> None:
    raw = json.dumps({"title": 42, "thumbnails": "nope", "duration": "long"})
    assert parse_tool_output(raw) == MediaMetadata()


def test_parse_drops_non_dict_thumbnails() -> None:
    raw = json.dumps({"thumbnails": ["x", {"url": "ok.jpg"}]})
    assert parse_tool_output(raw).thumbnail_url == "ok.jpg"


@pytest.mark.parametrize("raw", ["", "not json", "[1, 2]", "{broken"])
def test_parse_without_json_object_raises(raw: str) -> None:
    with pytest.raises(ValueError):
        parse_tool_output(raw)


@pytest.mark.parametrize(
    ("seconds", "expected"),
    [(0, "0:00"), (5, "0:05"), (60, "1:00"), (3599, "59:59"), (3600, "60:00"), (None, ""), (-1, "")],
)
def test_format_duration(seconds: float | None, expected: str) -> None:
    assert format_duration(seconds) == expected


def test_select_thumbnail_empty() -> None:
    assert select_thumbnail([]) == ""


def test_select_thumbnail_prefers_first_medium() -> None:
    thumbnails = [
        ToolThumbnail(url="m1.jpg", resolution="medium"),
        ToolThumbnail(url="m2.jpg", resolution="medium"),
    ]
    assert select_thumbnail(thumbnails) == "m1.jpg"
