"""
SarkariFeed Configuration System
===============================

Configuration management with environment variables and Pydantic models.
Environment variables override Field defaults with clear precedence.

Configuration is read once at process start; a running ingestion pass never
re-reads it.

Example:
    SARKARIFEED_INGESTION__FEED_URLS='["https://example.gov.in/rss.xml"]'
    SARKARIFEED_INGESTION__INTERVAL_MINUTES=30
    SARKARIFEED_DATABASE__PATH=/var/lib/sarkarifeed/records.db
"""

from pathlib import Path
from typing import List, Optional
from enum import Enum

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

from ..utils.exceptions import ConfigurationError, ErrorCode, ValidationError
from ..utils.validators import URLValidator


class LogLevel(str, Enum):
    """Available log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class IngestionSettings(BaseModel):
    """Feed ingestion and scheduling configuration."""
    feed_urls: List[str] = Field(default_factory=list, description="Ordered feed source URLs")
    interval_minutes: float = Field(default=60, gt=0, le=24 * 60, description="Minutes between scheduled runs; fractions allowed")
    run_on_start: bool = Field(default=True, description="Start a run immediately when the service starts")
    parallel_feeds: int = Field(default=5, ge=1, le=20, description="Concurrent feed fetches within one run")
    fetch_retries: int = Field(default=1, ge=0, le=5, description="Extra fetch attempts after a transport failure")
    retry_backoff_seconds: float = Field(default=2.0, ge=0.0, le=60.0, description="Base delay for exponential fetch backoff")
    default_window_days: int = Field(default=30, ge=1, le=365, description="Days added to the ingestion instant when no end date is found")
    result_archive_days: int = Field(default=30, ge=1, le=3650, description="Results older than this are archived")

    @field_validator("feed_urls")
    @classmethod
    def strip_feed_urls(cls, v):
        """Drop blank entries, keep order."""
        return [url.strip() for url in v if url and url.strip()]


class LimitsSettings(BaseModel):
    """Network limits."""
    request_timeout: int = Field(default=30, ge=1, le=300, description="Per-request fetch timeout in seconds")


class DatabaseSettings(BaseModel):
    """Record store configuration."""
    path: str = Field(default="data/sarkarifeed.db", description="SQLite database file path")
    pool_size: int = Field(default=5, ge=1, le=20, description="Connection pool size")


class LoggingSettings(BaseModel):
    """Logging configuration."""
    level: LogLevel = Field(default=LogLevel.INFO, description="Global log level")
    file_path: Optional[str] = Field(default="logs/sarkarifeed.log", description="Log file path")
    max_file_size_mb: int = Field(default=10, ge=1, le=100, description="Max log file size in MB")
    backup_count: int = Field(default=5, ge=1, le=20, description="Number of log backup files")
    structured_logging: bool = Field(default=False, description="Use structured JSON logging on the console")
    console_logging: bool = Field(default=True, description="Enable console logging")


class SarkariFeedSettings(BaseSettings):
    """Main application settings."""

    ingestion: IngestionSettings = Field(default_factory=IngestionSettings)
    limits: LimitsSettings = Field(default_factory=LimitsSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    app_name: str = Field(default="SarkariFeed", description="Application name")
    version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "env_nested_delimiter": "__",
        "env_prefix": "SARKARIFEED_",
        "extra": "ignore",
    }

    def validate_configuration(self) -> None:
        """Validate complete configuration."""
        errors = []

        for url in self.ingestion.feed_urls:
            try:
                URLValidator.validate_feed_url(url)
            except ValidationError as e:
                errors.append(f"Invalid feed URL {url!r}: {e.message}")

        try:
            db_path = Path(self.database.path)
            db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            errors.append(f"Invalid database path: {e}")

        if self.logging.file_path:
            try:
                log_path = Path(self.logging.file_path)
                log_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                errors.append(f"Invalid log file path: {e}")

        if errors:
            raise ConfigurationError(
                f"Configuration validation failed: {'; '.join(errors)}",
                error_code=ErrorCode.CONFIG_INVALID,
            )

    def get_effective_log_level(self) -> str:
        """Get effective log level considering debug mode."""
        if self.debug:
            return "DEBUG"
        return self.logging.level.value


def load_settings() -> SarkariFeedSettings:
    """Load settings from environment variables and defaults.

    Returns:
        Loaded and validated settings

    Raises:
        ConfigurationError: If configuration is invalid
    """
    from dotenv import load_dotenv
    load_dotenv()

    try:
        # Precedence: environment, then .env, then Field defaults
        settings = SarkariFeedSettings()
        settings.validate_configuration()
        return settings

    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(
            f"Failed to initialize settings: {e}",
            error_code=ErrorCode.CONFIG_INVALID,
        ) from e


# Global settings instance
_settings: Optional[SarkariFeedSettings] = None


def get_settings(reload: bool = False) -> SarkariFeedSettings:
    """Get global settings instance (singleton pattern).

    Args:
        reload: Force reload of settings

    Returns:
        Global settings instance
    """
    global _settings

    if _settings is None or reload:
        _settings = load_settings()

    return _settings
