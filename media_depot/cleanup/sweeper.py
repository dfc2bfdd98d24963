"""Eviction sweeper for downloaded files and their Redis keys."""

import threading
from dataclasses import dataclass, field
from pathlib import Path

import redis

from media_depot.core.logging import get_logger
from media_depot.core.metrics import EVICTIONS_TOTAL
from media_depot.storage.content_cache import ContentCache
from media_depot.storage.refcount import FileRefCounter

logger = get_logger().bind(module="sweeper")


@dataclass
class SweepReport:
    """What one sweep removed and what it could not."""

    orphan_keys: list[str] = field(default_factory=list)
    evicted_files: list[str] = field(default_factory=list)
    skipped_files: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def removed(self) -> int:
        return len(self.orphan_keys) + len(self.evicted_files)


def content_hash_of(file_name: str) -> str:
    """Extract the hash from ``<title>_<hash>.<ext>`` (or a staged variant)."""
    _, sep, tail = file_name.rpartition("_")
    if not sep:
        return ""
    return tail.split(".", 1)[0]


class EvictionSweeper:
    """Deletes files whose last-access marker expired and markers whose file is gone.

    Only the absence of a marker makes a file eligible, so every file gets a
    grace period equal to the marker TTL. Files with active readers or with
    a download in flight for their hash are left alone.
    """

    def __init__(
        self,
        content_cache: ContentCache,
        refcounter: FileRefCounter,
        output_dir: Path,
        media_extensions: list[str],
        interval_seconds: int,
    ) -> None:
        """Initialize sweeper.

        Args:
            content_cache: Marker and metadata storage
            refcounter: Reader counts and file deletion
            output_dir: Directory the executor downloads into
            media_extensions: Extensions of files the sweeper may delete
            interval_seconds: Seconds between sweeps in ``run_forever``
        """
        self.content_cache = content_cache
        self.refcounter = refcounter
        self.output_dir = Path(output_dir)
        self.media_extensions = tuple(ext.lower() for ext in media_extensions)
        self.interval_seconds = interval_seconds
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def sweep(self) -> SweepReport:
        """Run both phases once.

        Returns:
            Summary of removed keys and files
        """
        report = SweepReport()
        self._sweep_orphan_keys(report)
        self._sweep_orphan_files(report)
        logger.info(
            "sweep_completed",
            orphan_keys=len(report.orphan_keys),
            evicted_files=len(report.evicted_files),
            skipped_files=len(report.skipped_files),
            errors=len(report.errors),
        )
        return report

    def _sweep_orphan_keys(self, report: SweepReport) -> None:
        try:
            marked = list(self.content_cache.iter_marked_paths())
        except redis.RedisError as e:
            logger.error("marker_scan_failed", error=str(e))
            report.errors.append(f"scan: {e}")
            return

        for key, file_path in marked:
            if Path(file_path).exists():
                continue
            try:
                self.content_cache.forget(file_path)
            except redis.RedisError as e:
                logger.error("orphan_key_delete_failed", key=key, error=str(e))
                report.errors.append(f"{key}: {e}")
                continue
            EVICTIONS_TOTAL.labels(reason="orphan_key").inc()
            logger.info("orphan_key_deleted", key=key)
            report.orphan_keys.append(key)

    def _sweep_orphan_files(self, report: SweepReport) -> None:
        try:
            entries = sorted(self.output_dir.iterdir())
        except FileNotFoundError:
            return
        except OSError as e:
            logger.error("output_dir_unreadable", path=str(self.output_dir), error=str(e))
            report.errors.append(f"{self.output_dir}: {e}")
            return

        for entry in entries:
            if entry.suffix.lower() not in self.media_extensions:
                continue
            file_path = str(entry)
            try:
                if not entry.is_file() or self.content_cache.has_marker(file_path):
                    continue
                content_hash = content_hash_of(entry.name)
                if content_hash and self.content_cache.is_claimed(content_hash):
                    logger.debug("sweep_skipped_inflight", file_path=file_path)
                    report.skipped_files.append(file_path)
                    continue
                if self.refcounter.count(file_path) > 0:
                    logger.info("sweep_skipped_active_readers", file_path=file_path)
                    report.skipped_files.append(file_path)
                    continue
                if self.refcounter.evict(file_path, reason="expired"):
                    report.evicted_files.append(file_path)
                else:
                    report.errors.append(file_path)
            except (OSError, redis.RedisError) as e:
                logger.error("sweep_item_failed", file_path=file_path, error=str(e))
                report.errors.append(f"{file_path}: {e}")

    def run_forever(self) -> None:
        """Sweep every ``interval_seconds`` until ``stop`` is called."""
        logger.info("sweeper_started", interval_seconds=self.interval_seconds)
        while not self._stop_event.is_set():
            try:
                self.sweep()
            except Exception as e:
                logger.error("sweep_failed", error=str(e), exc_info=True)
            self._stop_event.wait(self.interval_seconds)
        logger.info("sweeper_stopped")

    def start(self) -> threading.Thread:
        """Run the sweeper on a daemon thread."""
        if self._thread is not None and self._thread.is_alive():
            return self._thread
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self.run_forever, name="eviction-sweeper", daemon=True
        )
        self._thread.start()
        return self._thread

    def stop(self, timeout: float | None = None) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
