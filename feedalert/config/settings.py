"""
FeedAlert Configuration System
==============================

Configuration management with environment variables and Pydantic models.
Environment variables override Field defaults with clear precedence.
"""

import re
from pathlib import Path
from typing import List, Optional
from enum import Enum

from pydantic import BaseModel, Field, field_validator, AnyHttpUrl
from pydantic_settings import BaseSettings

from ..utils.exceptions import ConfigurationError, ErrorCode

_COLOR_PATTERN = re.compile(r"^#(?:[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")


class LogLevel(str, Enum):
    """Available log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class FeedSource(BaseModel):
    """A configured feed source."""
    url: AnyHttpUrl = Field(..., description="Feed URL")
    source_id: int = Field(default=1, ge=0, description="Tag stored on every record from this source")
    expunge_days: Optional[int] = Field(default=None, ge=0, description="Per-source expunge window override")

    @property
    def feed_url(self) -> str:
        return str(self.url)


class FeedSettings(BaseModel):
    """Feed sources and refresh cadence."""
    sources: List[FeedSource] = Field(default_factory=list, description="Configured feed sources")
    default_expunge_days: int = Field(default=7, ge=0, le=365, description="Max item age in days")
    refresh_interval_minutes: int = Field(default=30, ge=1, le=1440, description="Minutes between refresh cycles")

    def expunge_days_for(self, source: FeedSource) -> int:
        if source.expunge_days is not None:
            return source.expunge_days
        return self.default_expunge_days


class FilteringSettings(BaseModel):
    """Blacklist and markup stripping configuration."""
    blacklist: str = Field(default="", description="Comma-separated blacklist terms, empty disables filtering")
    continue_marker: str = Field(default="weiterlesen", description="Text after this marker is dropped from bodies")
    decode_entities: bool = Field(default=True, description="Decode HTML entities after tag stripping")

    def blacklist_terms(self) -> List[str]:
        """Split the blacklist into case-sensitive terms."""
        if self.blacklist == "":
            return []
        return [term for term in self.blacklist.split(",") if term]


class NotifySettings(BaseModel):
    """Alert presentation configuration."""
    color: str = Field(default="#FF33B5E5", description="Blink color as #RRGGBB or #AARRGGBB")
    mode: int = Field(default=2, ge=0, le=3, description="Blink mode (0 = off, 1-3 = patterns)")
    sound: str = Field(default="notifysnd", description="Sound identifier passed to the surface")

    @field_validator('color')
    @classmethod
    def validate_color(cls, v):
        if not _COLOR_PATTERN.match(v):
            raise ValueError("color must look like #RRGGBB or #AARRGGBB")
        return v


class ImageSettings(BaseModel):
    """Item image resolution."""
    max_width: int = Field(default=128, ge=16, le=2048, description="Maximum width of stored images")
    corner_radius: int = Field(default=10, ge=0, le=200, description="Rounded corner radius in pixels")
    max_concurrent: int = Field(default=4, ge=1, le=32, description="Concurrent image downloads per cycle")


class LimitsSettings(BaseModel):
    """Network limits."""
    request_timeout: int = Field(default=30, ge=5, le=300, description="Feed request timeout in seconds")
    image_timeout: int = Field(default=15, ge=1, le=300, description="Image request timeout in seconds")


class DatabaseSettings(BaseModel):
    """Database configuration."""
    path: str = Field(default="data/feedalert.db", description="SQLite database file path")
    pool_size: int = Field(default=3, ge=1, le=20, description="Connection pool size")


class LoggingSettings(BaseModel):
    """Logging configuration."""
    level: LogLevel = Field(default=LogLevel.INFO, description="Global log level")
    file_path: Optional[str] = Field(default="logs/feedalert.log", description="Log file path")
    max_file_size_mb: int = Field(default=10, ge=1, le=100, description="Max log file size in MB")
    backup_count: int = Field(default=5, ge=1, le=20, description="Number of log backup files")
    structured_logging: bool = Field(default=False, description="Use structured JSON logging")
    console_logging: bool = Field(default=True, description="Enable console logging")


class TelegramSettings(BaseModel):
    """Telegram notification surface."""
    bot_token: Optional[str] = Field(default=None, description="Telegram bot token")
    chat_id: Optional[str] = Field(default=None, description="Chat receiving the alerts")

    @field_validator('bot_token')
    @classmethod
    def validate_bot_token(cls, v):
        if v is None or v == "":
            return None
        # Allow test tokens for development
        if v.endswith('_test'):
            return v
        if v.count(':') != 1 or len(v) < 20:
            raise ValueError("Invalid bot token format")
        return v

    @property
    def enabled(self) -> bool:
        return bool(self.bot_token and self.chat_id)


class FeedAlertSettings(BaseSettings):
    """Main application settings."""

    feeds: FeedSettings = Field(default_factory=FeedSettings)
    filtering: FilteringSettings = Field(default_factory=FilteringSettings)
    notify: NotifySettings = Field(default_factory=NotifySettings)
    images: ImageSettings = Field(default_factory=ImageSettings)
    limits: LimitsSettings = Field(default_factory=LimitsSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    telegram: TelegramSettings = Field(default_factory=TelegramSettings)

    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "env_nested_delimiter": "__",
        "env_prefix": "FEEDALERT_",
        "extra": "ignore",
    }

    def validate_configuration(self) -> None:
        """Validate complete configuration."""
        errors = []

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

        if bool(self.telegram.bot_token) != bool(self.telegram.chat_id):
            errors.append("Telegram surface needs both bot_token and chat_id")

        if errors:
            raise ConfigurationError(
                f"Configuration validation failed: {'; '.join(errors)}",
                error_code=ErrorCode.CONFIG_INVALID
            )

    def get_effective_log_level(self) -> str:
        """Get effective log level considering debug mode."""
        if self.debug:
            return "DEBUG"
        return self.logging.level.value


def load_settings() -> FeedAlertSettings:
    """Load settings from environment variables and defaults.

    Environment variables override Pydantic Field defaults.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    from dotenv import load_dotenv
    load_dotenv()

    try:
        settings = FeedAlertSettings()
        settings.validate_configuration()
        return settings

    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(
            f"Failed to initialize settings: {e}",
            error_code=ErrorCode.CONFIG_INVALID
        ) from e


_settings: Optional[FeedAlertSettings] = None


def get_settings(reload: bool = False) -> FeedAlertSettings:
    """Get the process-wide settings instance.

    Args:
        reload: Force reload of settings

    Returns:
        Global settings instance
    """
    global _settings

    if _settings is None or reload:
        _settings = load_settings()

    return _settings
