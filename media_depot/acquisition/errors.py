"""Typed acquisition failures.

Every failure the executor can produce is one of these. Workers copy ``str(exc)``
into the task record; nothing here is allowed to escape to a polling client.
"""

INSTALL_HINT = (
    "Please install it first:\n"
    "On macOS: brew install yt-dlp\n"
    "On Linux: sudo apt install yt-dlp or pip install yt-dlp"
)


class AcquisitionError(Exception):
    """Base class for acquisition failures."""

    retryable: bool = False

    def __init__(self, message: str, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class ToolMissingError(AcquisitionError):
    """The download tool is not on PATH."""

    def __init__(self, binary: str, url: str | None = None) -> None:
        super().__init__(f"{binary} is not installed. {INSTALL_HINT}", url=url)
        self.binary = binary


class OutputDirectoryError(AcquisitionError):
    """The destination directory cannot be created or read."""


class DownloadFailedError(AcquisitionError):
    """The download tool exited with a non-zero status."""

    retryable = True

    def __init__(
        self,
        message: str,
        url: str | None = None,
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message, url=url)
        self.returncode = returncode
        self.stderr = stderr


class MetadataFetchError(AcquisitionError):
    """A metadata-only lookup failed."""

    retryable = True


class OutputNotFoundError(AcquisitionError):
    """The tool finished but no file carrying the URL hash exists."""


class FinalFileTimeoutError(AcquisitionError):
    """The staged download never reached its final name."""


class AcquisitionCancelledError(AcquisitionError):
    """The job deadline passed while the acquisition was running."""
