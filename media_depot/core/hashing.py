"""Content addressing for source URLs.

A downloaded file is named ``<title>_<hash>.<ext>``. The hash is derived from the
source URL only, so a directory listing is enough to find the file for a URL
again without keeping an index.
"""

import hashlib
from pathlib import Path

DEFAULT_HASH_BYTES = 8


def url_hash(url: str, num_bytes: int = DEFAULT_HASH_BYTES) -> str:
    """Generate the fixed-width content hash of a source URL.

    Args:
        url: Source URL
        num_bytes: Number of leading SHA-256 digest bytes to keep

    Returns:
        Hex string of ``2 * num_bytes`` characters
    """
    return hashlib.sha256(url.encode("utf-8")).digest()[:num_bytes].hex()


def hashed_suffix(content_hash: str, extension: str) -> str:
    """Filename suffix shared by every file produced for ``content_hash``."""
    return f"{content_hash}.{extension.lstrip('.')}"


def output_template(output_dir: Path, content_hash: str) -> str:
    """Downloader output template that embeds the source title and the hash."""
    return str(output_dir / f"%(title)s_{content_hash}.%(ext)s")


def find_hashed_file(
    output_dir: Path, content_hash: str, extension: str
) -> Path | None:
    """Scan ``output_dir`` for the file carrying ``content_hash``.

    Raises:
        OSError: If the directory cannot be read
    """
    suffix = hashed_suffix(content_hash, extension)
    for entry in sorted(output_dir.iterdir()):
        if entry.name.endswith(suffix) and entry.is_file():
            return entry
    return None


def original_filename(file_path: str | Path, escape: bool = False) -> str:
    """Recover the client-facing filename from ``<title>_<hash>.<ext>``.

    Args:
        file_path: Path of the downloaded file
        escape: Escape double quotes for a Content-Disposition header

    Returns:
        ``<title>.<ext>``
    """
    path = Path(file_path)
    extension = path.suffix
    stem = path.name[: -len(extension)] if extension else path.name
    title, sep, _ = stem.rpartition("_")
    if not sep:
        title = stem
    filename = f"{title}{extension}"

    if escape:
        filename = filename.replace('"', '\\"')
    return filename
