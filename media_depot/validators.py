"""Source URL validation for the HTTP surface."""

from urllib.parse import parse_qs, urlparse

YOUTUBE_VIDEO_ID_LENGTH = 11


class InvalidURLError(ValueError):
    """Raised when a submitted URL is not acceptable."""


def _host_allowed(host: str, allowed_hosts: list[str]) -> bool:
    host = host.lower().split(":", 1)[0]
    for allowed in allowed_hosts:
        allowed = allowed.lower()
        if host == allowed or host.endswith(f".{allowed}"):
            return True
    return False


def validate_source_url(url: str, allowed_hosts: list[str]) -> str:
    """Validate a source URL.

    Args:
        url: URL submitted by a client
        allowed_hosts: Accepted hosts, subdomains included; empty accepts any host

    Returns:
        The stripped URL

    Raises:
        InvalidURLError: If the URL is empty, malformed or not allowed
    """
    url = (url or "").strip()
    if not url:
        raise InvalidURLError("URL cannot be empty")

    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise InvalidURLError(f"invalid URL format: {e}") from e

    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidURLError("invalid URL format: expected an http(s) URL")

    if not allowed_hosts:
        return url

    host = parsed.hostname or ""
    if not _host_allowed(host, allowed_hosts):
        raise InvalidURLError(f"host not allowed: {host}")

    if _host_allowed(host, ["youtube.com"]):
        if parsed.path != "/watch":
            raise InvalidURLError("not a YouTube watch URL")
        video_id = parse_qs(parsed.query).get("v", [""])[0]
        if not video_id:
            raise InvalidURLError("missing video ID")
        if len(video_id) != YOUTUBE_VIDEO_ID_LENGTH:
            raise InvalidURLError("invalid video ID length")

    return url
