"""Configuration settings for the review scheduler."""
import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file
env_file = ".env.test" if os.getenv("ENV") == "test" else ".env"
load_dotenv(env_file)


# Ebbinghaus ladder in minutes: 5m, 30m, 12h, 1d, 2d, 4d, 7d, 15d, 30d
REVIEW_INTERVALS_MINUTES = [5, 30, 720, 1440, 2880, 5760, 10080, 21600, 43200]
RESOLVE_AFTER_STREAK = len(REVIEW_INTERVALS_MINUTES)


def get_review_intervals() -> list[int]:
    """Get review intervals (minutes) from environment variable."""
    raw = os.getenv("REVIEW_INTERVALS_MINUTES", "")
    if not raw.strip():
        return list(REVIEW_INTERVALS_MINUTES)
    return [int(value) for value in raw.split(",") if value.strip()]


@dataclass
class DatabaseSettings:
    """Database configuration settings."""
    url: str = os.getenv("DATABASE_URL", "sqlite:///dictreview.db")
    echo: bool = os.getenv("DATABASE_ECHO", "false").lower() == "true"


@dataclass
class LoggingSettings:
    """Logging configuration settings."""
    level: str = os.getenv("LOG_LEVEL", "INFO")
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    dir: Optional[str] = os.getenv("LOG_DIR", None)
    rotation: str = os.getenv("LOG_ROTATION", "midnight")
    interval: int = int(os.getenv("LOG_INTERVAL", "1"))
    backup_count: int = int(os.getenv("LOG_BACKUP_COUNT", "7"))


@dataclass
class ReviewSettings:
    """Spaced review settings."""
    intervals_minutes: list[int] = field(default_factory=get_review_intervals)
    resolve_after_streak: int = int(os.getenv("RESOLVE_AFTER_STREAK", str(RESOLVE_AFTER_STREAK)))
    default_user_id: str = os.getenv("DEFAULT_USER_ID", "local")
    reminder_interval_seconds: int = int(os.getenv("REMINDER_INTERVAL_SECONDS", "1800"))


@dataclass
class MonitoringSettings:
    """Metrics exporter settings."""
    port: int = int(os.getenv("METRICS_PORT", "0"))


def get_database_settings() -> DatabaseSettings:
    """Get database settings."""
    return DatabaseSettings()


def get_logging_settings() -> LoggingSettings:
    """Get logging settings."""
    return LoggingSettings()


def get_review_settings() -> ReviewSettings:
    """Get review settings."""
    return ReviewSettings()


def get_monitoring_settings() -> MonitoringSettings:
    """Get monitoring settings."""
    return MonitoringSettings()


@dataclass
class Settings:
    """Main settings class that combines all configuration settings."""
    database: DatabaseSettings = field(default_factory=get_database_settings)
    logging: LoggingSettings = field(default_factory=get_logging_settings)
    review: ReviewSettings = field(default_factory=get_review_settings)
    monitoring: MonitoringSettings = field(default_factory=get_monitoring_settings)

    def validate(self) -> None:
        """Validate settings and raise ValueError if invalid."""
        intervals = self.review.intervals_minutes
        if not intervals:
            raise ValueError("REVIEW_INTERVALS_MINUTES must not be empty")

        if any(minutes <= 0 for minutes in intervals):
            raise ValueError("REVIEW_INTERVALS_MINUTES must be positive")

        if any(later <= earlier for earlier, later in zip(intervals, intervals[1:])):
            raise ValueError("REVIEW_INTERVALS_MINUTES must be strictly increasing")

        if self.review.resolve_after_streak < 0:
            raise ValueError("RESOLVE_AFTER_STREAK cannot be negative")

        if not self.review.default_user_id:
            raise ValueError("DEFAULT_USER_ID is required")

        if self.review.reminder_interval_seconds < 1:
            raise ValueError("REMINDER_INTERVAL_SECONDS must be positive")

        if self.monitoring.port < 0:
            raise ValueError("METRICS_PORT cannot be negative")


# Create global settings instance
settings = Settings()
settings.validate()
