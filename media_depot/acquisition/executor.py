"""Acquisition executor built around an external download tool."""

import logging
import re
import shutil
import subprocess
import time
import uuid
from pathlib import Path

import redis

from media_depot.acquisition.errors import (
    AcquisitionCancelledError,
    DownloadFailedError,
    FinalFileTimeoutError,
    MetadataFetchError,
    OutputDirectoryError,
    OutputNotFoundError,
    ToolMissingError,
)
from media_depot.acquisition.metadata import parse_tool_output
from media_depot.acquisition.models import AcquiredMedia, MediaMetadata
from media_depot.core.config import Settings, settings as default_settings
from media_depot.core.hashing import find_hashed_file, output_template, url_hash
from media_depot.core.metrics import ACQUISITIONS_TOTAL, CACHE_HITS_TOTAL
from media_depot.storage.content_cache import ContentCache

logger = logging.getLogger(__name__)

TEMPORARY_EXTENSIONS = (
    ".part",
    ".temp",
    ".tmp",
    ".ytdl",
    ".frag",
    ".ts",
    ".m4a",
    ".m4v",
    ".webm",
)

# Per-format intermediates such as "title_hash.f137.mp4" before the merge
_FORMAT_FRAGMENT = re.compile(r"\.f\d+(\.[A-Za-z0-9]+)?$")


def is_temporary_file(file_name: str, output_format: str = "mp4") -> bool:
    """Check whether a file is a staging artifact of the download tool."""
    name = Path(file_name).name
    if _FORMAT_FRAGMENT.search(name):
        return True
    if name.endswith(f".{output_format}"):
        return False
    return name.endswith(TEMPORARY_EXTENSIONS)


class AcquisitionExecutor:
    """Downloads media for a URL, reusing a previous download of the same URL.

    Files are named ``<title>_<hash>.<ext>``; the executor finds earlier
    downloads by scanning the output directory for the hash suffix.
    """

    def __init__(
        self,
        content_cache: ContentCache,
        config: Settings | None = None,
    ) -> None:
        """Initialize executor.

        Args:
            content_cache: Marker, metadata and claim storage
            config: Settings to use instead of the process-wide settings
        """
        self.content_cache = content_cache
        self.config = config or default_settings
        self.output_dir = Path(self.config.OUTPUT_DIR)
        self.binary = self.config.DOWNLOADER_BINARY
        self.output_format = self.config.OUTPUT_FORMAT

    def content_hash(self, url: str) -> str:
        return url_hash(url, self.config.URL_HASH_BYTES)

    def acquire(self, url: str, deadline: float | None = None) -> AcquiredMedia:
        """Acquire the media behind ``url``.

        Args:
            url: Source URL
            deadline: ``time.monotonic()`` value after which the acquisition is abandoned

        Returns:
            The downloaded (or previously downloaded) file and its metadata

        Raises:
            AcquisitionError: On any failure; subclasses name the cause
        """
        self._ensure_output_dir()
        self._ensure_tool(url)

        content_hash = self.content_hash(url)
        existing = self._find_existing(content_hash)
        if existing is not None:
            return self._serve_cached(url, existing)

        owner = uuid.uuid4().hex
        claimed = self._claim(url, content_hash, owner, deadline)
        try:
            # Another worker may have finished the same download while we waited
            existing = self._find_existing(content_hash)
            if existing is not None:
                return self._serve_cached(url, existing)
            return self._download(url, content_hash, deadline)
        finally:
            if claimed:
                self.content_cache.release_claim(content_hash, owner)

    def fetch_metadata(self, url: str) -> MediaMetadata:
        """Run a metadata-only lookup, without downloading anything.

        Raises:
            MetadataFetchError: If the tool fails or prints nothing usable
        """
        cmd = [self.binary, "--dump-json", "--no-playlist", "--skip-download", url]
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.config.METADATA_FETCH_TIMEOUT_SECONDS,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise MetadataFetchError(f"failed to fetch video metadata: {e}", url=url) from e

        if result.returncode != 0:
            raise MetadataFetchError(
                f"failed to fetch video metadata: exit status {result.returncode}: "
                f"{result.stderr.strip()}",
                url=url,
            )
        try:
            return parse_tool_output(result.stdout)
        except ValueError as e:
            raise MetadataFetchError(f"failed to parse video metadata: {e}", url=url) from e

    def _ensure_output_dir(self) -> None:
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise OutputDirectoryError(f"failed to create output directory: {e}") from e

    def _ensure_tool(self, url: str) -> None:
        if shutil.which(self.binary) is None:
            raise ToolMissingError(self.binary, url=url)

    def _find_existing(self, content_hash: str) -> Path | None:
        try:
            return find_hashed_file(self.output_dir, content_hash, self.output_format)
        except OSError as e:
            raise OutputDirectoryError(f"failed to read output directory: {e}") from e

    def _serve_cached(self, url: str, file_path: Path) -> AcquiredMedia:
        path = str(file_path)
        self.content_cache.touch(path)

        metadata = self.content_cache.get_metadata(path)
        if metadata is None:
            logger.info(f"No stored metadata found for {path}, fetching...")
            try:
                metadata = self.fetch_metadata(url)
            except MetadataFetchError as e:
                logger.warning(f"Failed to fetch metadata for existing video: {e}")
                metadata = MediaMetadata()
            else:
                self._store_metadata(path, metadata)

        CACHE_HITS_TOTAL.inc()
        ACQUISITIONS_TOTAL.labels(outcome="cache_hit").inc()
        logger.info(f"Cache hit for {url}: {path}")
        return AcquiredMedia(file_path=path, metadata=metadata, cache_hit=True)

    def _claim(
        self, url: str, content_hash: str, owner: str, deadline: float | None
    ) -> bool:
        """Take the in-flight claim, waiting a bounded time for another holder.

        Returns:
            True if this call owns the claim. False means the guard is disabled
            or another holder kept it past the wait limit.
        """
        if not self.config.INFLIGHT_GUARD_ENABLED:
            return False

        ttl = self.config.INFLIGHT_CLAIM_TTL_SECONDS
        if self.content_cache.claim(content_hash, owner, ttl):
            return True

        logger.info(f"Download of {url} already in flight, waiting for it")
        started = time.monotonic()
        while self.content_cache.is_claimed(content_hash):
            self._check_deadline(url, deadline)
            if time.monotonic() - started > self.config.INFLIGHT_WAIT_SECONDS:
                logger.warning(
                    f"Gave up waiting for in-flight download of {url} after "
                    f"{self.config.INFLIGHT_WAIT_SECONDS}s"
                )
                return False
            time.sleep(self.config.FINAL_FILE_POLL_INTERVAL)

        return self.content_cache.claim(content_hash, owner, ttl)

    def _download(
        self, url: str, content_hash: str, deadline: float | None
    ) -> AcquiredMedia:
        # Metadata and media come from one tool invocation
        cmd = [
            self.binary,
            "--dump-json",
            "--no-simulate",
            "-o",
            output_template(self.output_dir, content_hash),
            "--merge-output-format",
            self.output_format,
            "--windows-filenames",
            "--no-playlist",
            "--quiet",
            url,
        ]
        logger.info(f"Downloading video from {url}...")

        try:
            process = subprocess.Popen(
                cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True
            )
        except OSError as e:
            ACQUISITIONS_TOTAL.labels(outcome="failed").inc()
            raise DownloadFailedError(f"failed to start download: {e}", url=url) from e

        try:
            stdout, stderr = process.communicate(timeout=self._remaining(deadline))
        except subprocess.TimeoutExpired as e:
            process.kill()
            process.communicate()
            ACQUISITIONS_TOTAL.labels(outcome="cancelled").inc()
            raise AcquisitionCancelledError(
                f"download of {url} cancelled: job deadline exceeded", url=url
            ) from e

        if process.returncode != 0:
            ACQUISITIONS_TOTAL.labels(outcome="failed").inc()
            raise DownloadFailedError(
                f"failed to download video: exit status {process.returncode}: "
                f"{stderr.strip()}",
                url=url,
                returncode=process.returncode,
                stderr=stderr,
            )

        metadata = MediaMetadata()
        if stdout.strip():
            try:
                metadata = parse_tool_output(stdout)
            except ValueError as e:
                logger.warning(f"Failed to parse metadata: {e}")
        else:
            logger.warning(f"Download of {url} produced no metadata")

        file_path = self._find_existing(content_hash)
        if file_path is None:
            file_path = self.wait_for_final_file(url, content_hash, deadline)

        path = str(file_path)
        self.content_cache.touch(path)
        self._store_metadata(path, metadata)

        ACQUISITIONS_TOTAL.labels(outcome="downloaded").inc()
        logger.info(f"Successfully got video at {path}")
        return AcquiredMedia(file_path=path, metadata=metadata, cache_hit=False)

    def wait_for_final_file(
        self, url: str, content_hash: str, deadline: float | None = None
    ) -> Path:
        """Wait for staged files of ``content_hash`` to be renamed to the final file.

        Raises:
            FinalFileTimeoutError: If the final file does not appear in time
            OutputNotFoundError: If neither a staged nor a final file shows up
            AcquisitionCancelledError: If the job deadline passes first
        """
        timeout = self.config.FINAL_FILE_TIMEOUT_SECONDS
        started = time.monotonic()

        while True:
            elapsed = time.monotonic() - started
            if elapsed > timeout:
                raise FinalFileTimeoutError(
                    f"timeout waiting for file processing after {timeout:g}s", url=url
                )
            self._check_deadline(url, deadline)

            final_file: Path | None = None
            staged: list[str] = []
            try:
                entries = list(self.output_dir.iterdir())
            except OSError as e:
                logger.error(f"Error reading directory: {e}")
                entries = []

            for entry in entries:
                if content_hash not in entry.name:
                    continue
                if is_temporary_file(entry.name, self.output_format):
                    staged.append(entry.name)
                elif entry.name.endswith(f"{content_hash}.{self.output_format}"):
                    final_file = entry
                    break

            if final_file is not None:
                try:
                    if final_file.stat().st_size > 0:
                        return final_file
                except FileNotFoundError:
                    pass
            elif not staged and elapsed > self.config.MISSING_OUTPUT_GRACE_SECONDS:
                raise OutputNotFoundError(
                    f"no downloaded file found with hash {content_hash}", url=url
                )

            time.sleep(self.config.FINAL_FILE_POLL_INTERVAL)

    def _store_metadata(self, file_path: str, metadata: MediaMetadata) -> None:
        try:
            self.content_cache.store_metadata(file_path, metadata)
        except redis.RedisError as e:
            logger.warning(f"Failed to store metadata: {e}")

    @staticmethod
    def _remaining(deadline: float | None) -> float | None:
        if deadline is None:
            return None
        return max(deadline - time.monotonic(), 0.0)

    @staticmethod
    def _check_deadline(url: str, deadline: float | None) -> None:
        if deadline is not None and time.monotonic() >= deadline:
            raise AcquisitionCancelledError(
                f"acquisition of {url} cancelled: job deadline exceeded", url=url
            )
