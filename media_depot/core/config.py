"""Application configuration."""

from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings.

    Environment variables will be loaded and validated using Pydantic.
    """

    app_name: str = "Media Depot"
    version: str = "0.1.0"
    api_prefix: str = "/api/v1"

    # CORS Settings
    cors_origins: list[str] = ["*"]
    cors_allow_credentials: bool = False

    # Redis Settings
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_POOL_SIZE: int = 10

    # Retention
    TASK_RETENTION_SECONDS: int = Field(
        default=86400, ge=1
    )  # task records, metadata and last-access markers
    CLEANUP_INTERVAL_SECONDS: int | None = Field(default=None, ge=1)

    # Queue Settings
    QUEUE_NAME: str = "downloads"
    QUEUE_RESULT_TTL_SECONDS: int = Field(default=3600, ge=0)
    WORKER_CONCURRENCY: int = Field(default=10, ge=1)
    JOB_TIMEOUT_SECONDS: int = Field(default=3600, ge=1)

    # Downloader Settings
    OUTPUT_DIR: Path = Path("downloads")
    DOWNLOADER_BINARY: str = "yt-dlp"
    OUTPUT_FORMAT: str = "mp4"
    MEDIA_EXTENSIONS: list[str] = [".mp4", ".webm", ".mkv"]
    URL_HASH_BYTES: int = Field(default=8, ge=4, le=32)
    METADATA_FETCH_TIMEOUT_SECONDS: int = 60
    FINAL_FILE_TIMEOUT_SECONDS: float = 300.0
    FINAL_FILE_POLL_INTERVAL: float = 0.5
    MISSING_OUTPUT_GRACE_SECONDS: float = 10.0

    # File lifecycle
    REFCOUNT_GUARD_SECONDS: int = Field(default=21600, ge=1)
    EVICT_ON_LAST_RELEASE: bool = False
    INFLIGHT_GUARD_ENABLED: bool = True
    INFLIGHT_CLAIM_TTL_SECONDS: int = Field(default=3600, ge=1)
    INFLIGHT_WAIT_SECONDS: float = 300.0

    # HTTP surface
    ALLOWED_HOSTS: list[str] = ["youtube.com", "youtu.be"]
    BASE_URL: str | None = None

    # Logging Settings
    LOG_LEVEL: str = "INFO"
    JSON_LOGS: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="allow",
    )

    @property
    def cleanup_interval(self) -> int:
        """Seconds between eviction sweeps (defaults to the retention window)."""
        return self.CLEANUP_INTERVAL_SECONDS or self.TASK_RETENTION_SECONDS

    @model_validator(mode="after")
    def use_test_redis_for_testing(self) -> "Settings":
        """Use a separate Redis database for tests to ensure isolation."""
        import os

        if os.getenv("TESTING") == "true":
            test_redis_url = os.getenv("TEST_REDIS_URL")
            if test_redis_url:
                self.REDIS_URL = test_redis_url
            elif self.REDIS_URL.endswith("/0"):
                self.REDIS_URL = self.REDIS_URL[:-2] + "/1"
            elif not self.REDIS_URL.endswith("/1"):
                self.REDIS_URL = self.REDIS_URL.rstrip("/") + "/1"
        return self


# Create settings instance
settings = Settings()
