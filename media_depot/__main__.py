"""Media depot CLI interface."""

import argparse
import json
import signal
import sys
from typing import Any

from media_depot.acquisition.errors import AcquisitionError
from media_depot.acquisition.executor import AcquisitionExecutor
from media_depot.cleanup.sweeper import EvictionSweeper
from media_depot.core.config import settings
from media_depot.core.logging import configure_logging
from media_depot.core.redis import get_redis
from media_depot.service import ServiceError, build_refcounter, build_service
from media_depot.storage.content_cache import ContentCache
from media_depot.validators import InvalidURLError, validate_source_url


def build_sweeper() -> EvictionSweeper:
    connection = get_redis()
    refcounter = build_refcounter(connection)
    return EvictionSweeper(
        content_cache=refcounter.content_cache,
        refcounter=refcounter,
        output_dir=settings.OUTPUT_DIR,
        media_extensions=settings.MEDIA_EXTENSIONS,
        interval_seconds=settings.cleanup_interval,
    )


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def run_worker(args: argparse.Namespace) -> int:
    from media_depot.queue.worker import DownloadWorkerPool

    sweeper = build_sweeper() if args.with_sweeper else None
    if sweeper is not None:
        sweeper.start()
    try:
        DownloadWorkerPool(num_workers=args.workers).run(burst=args.burst)
    finally:
        if sweeper is not None:
            sweeper.stop(timeout=5)
    return 0


def run_sweeper(args: argparse.Namespace) -> int:
    sweeper = build_sweeper()
    if args.interval:
        sweeper.interval_seconds = args.interval

    def _stop(signum: int, frame: Any) -> None:
        sweeper.stop()

    signal.signal(signal.SIGTERM, _stop)
    try:
        sweeper.run_forever()
    except KeyboardInterrupt:
        sweeper.stop()
    return 0


def run_sweep(args: argparse.Namespace) -> int:
    report = build_sweeper().sweep()
    _print_json(
        {
            "orphan_keys": report.orphan_keys,
            "evicted_files": report.evicted_files,
            "skipped_files": report.skipped_files,
            "errors": report.errors,
        }
    )
    return 1 if report.errors else 0


def run_enqueue(args: argparse.Namespace) -> int:
    try:
        url = validate_source_url(args.url, settings.ALLOWED_HOSTS)
    except InvalidURLError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    print(build_service().enqueue(url))
    return 0


def run_status(args: argparse.Namespace) -> int:
    try:
        state = build_service().get_status(args.task_id)
    except ServiceError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    _print_json(state.model_dump(mode="json"))
    return 0


def run_fetch(args: argparse.Namespace) -> int:
    executor = AcquisitionExecutor(
        ContentCache(get_redis(), settings.TASK_RETENTION_SECONDS)
    )
    try:
        media = executor.acquire(args.url)
    except AcquisitionError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    _print_json(media.model_dump(mode="json"))
    return 0


COMMANDS = {
    "worker": run_worker,
    "sweeper": run_sweeper,
    "sweep": run_sweep,
    "enqueue": run_enqueue,
    "status": run_status,
    "fetch": run_fetch,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="media_depot",
        description="Media acquisition queue tools",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the download workers with an in-process sweeper
  python -m media_depot worker --with-sweeper

  # Queue a download and poll it
  python -m media_depot enqueue "https://www.youtube.com/watch?v=dQw4w9WgXcQ"
  python -m media_depot status <task-id>

  # Remove expired files once
  python -m media_depot sweep
""",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    worker_parser = subparsers.add_parser("worker", help="Run the download worker pool")
    worker_parser.add_argument(
        "--workers", type=int, default=None, help="Number of worker processes"
    )
    worker_parser.add_argument(
        "--burst", action="store_true", help="Exit once the queue is empty"
    )
    worker_parser.add_argument(
        "--with-sweeper",
        action="store_true",
        help="Also run the eviction sweeper in this process",
    )

    sweeper_parser = subparsers.add_parser("sweeper", help="Run the eviction sweeper")
    sweeper_parser.add_argument(
        "--interval", type=int, default=None, help="Seconds between sweeps"
    )

    subparsers.add_parser("sweep", help="Run one eviction sweep and print a report")

    enqueue_parser = subparsers.add_parser("enqueue", help="Queue a URL for download")
    enqueue_parser.add_argument("url", help="Source URL")

    status_parser = subparsers.add_parser("status", help="Show the status of a task")
    status_parser.add_argument("task_id", help="Task ID")

    fetch_parser = subparsers.add_parser(
        "fetch", help="Download a URL in this process, bypassing the queue"
    )
    fetch_parser.add_argument("url", help="Source URL")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    handler = COMMANDS.get(args.command or "")
    if handler is None:
        parser.print_help()
        return 2

    configure_logging(level=settings.LOG_LEVEL, json_logs=settings.JSON_LOGS)
    return handler(args)


if __name__ == "__main__":
    sys.exit(main())
