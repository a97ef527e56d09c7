"""Application configuration with validation."""

from enum import Enum
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import List


class Environment(str, Enum):
    """Application environment."""
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class ConfigurationError(Exception):
    """Raised when application configuration is invalid for the environment."""
    pass


class Settings(BaseSettings):
    """
    Bot settings with validation.

    Every field can be overridden with a ``QUEUEBOT_``-prefixed environment
    variable, e.g. ``QUEUEBOT_DATABASE_URL``.
    """

    # Environment
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment (development/production)"
    )

    # Wiki connection
    wiki_host: str = Field(
        default="ja.wikipedia.org",
        description="Host name of the MediaWiki site"
    )
    wiki_path: str = Field(
        default="/w/",
        description="Script path of the MediaWiki site"
    )
    wiki_scheme: str = Field(default="https")
    wiki_username: str = Field(
        default="",
        description="Bot account name (BotPassword form: User@AppName)"
    )
    wiki_password: str = Field(
        default="",
        description="Bot password"
    )
    bot_name: str = Field(
        default="QueueBot",
        description="User name used in queue-page signatures"
    )
    user_agent: str = Field(
        default="QueueBot/1.0 (https://ja.wikipedia.org/wiki/User:QueueBot)",
        description="User-Agent sent with every wiki request"
    )
    request_timeout: int = Field(
        default=30,
        description="Seconds before a wiki request times out"
    )

    # On-wiki pages
    queue_page: str = Field(
        default="プロジェクト:カテゴリ関連/キュー",
        description="Page whose Bot: sections hold the pending commands"
    )
    emergency_stop_page: str = Field(
        default="プロジェクト:カテゴリ関連/キュー/緊急停止",
        description="Page read before every page edit; any content but the sentinel stops the bot"
    )
    emergency_stop_sentinel: str = Field(
        default="動作中",
        description="Text that means 'keep running' on the emergency stop page"
    )

    poll_interval: int = Field(
        default=600,
        description="Seconds between queue reads when the worker runs in a loop"
    )

    # Database Configuration
    database_url: str = Field(
        default="sqlite:///./queuebot.db",
        description="Audit database connection URL"
    )
    # Connection pool tuning (server databases only; ignored for SQLite).
    db_pool_size: int = Field(default=5)
    db_max_overflow: int = Field(default=10)
    db_pool_recycle: int = Field(
        default=1800,
        description="Seconds before a connection is recycled (prevents stale connections)"
    )

    # Audit writes
    audit_max_attempts: int = Field(
        default=5,
        description="Attempts per audit insert before the error is returned"
    )
    audit_retry_base_delay: float = Field(
        default=0.05,
        description="Base backoff delay in seconds; doubles per attempt, plus jitter"
    )

    # Processing
    discovery_buffer_size: int = Field(
        default=50,
        description="Capacity of the member-discovery channel"
    )
    max_descent_depth: int = Field(
        default=16,
        description="Maximum nesting depth for template parameter recursion"
    )
    dry_run: bool = Field(
        default=False,
        description="Compute rewrites without saving pages or writing operation rows"
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_format: str = Field(
        default="json",
        description="Log output format: 'json' for structured, 'text' for human-readable"
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard Python logging levels."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v_upper

    @field_validator('wiki_path')
    @classmethod
    def normalize_wiki_path(cls, v: str) -> str:
        v = v.strip() or "/"
        if not v.startswith("/"):
            v = "/" + v
        if not v.endswith("/"):
            v = v + "/"
        return v

    @property
    def wiki_base_url(self) -> str:
        return f"{self.wiki_scheme}://{self.wiki_host}{self.wiki_path}"

    def validate_production_config(self) -> None:
        """Validate configuration for production environment.

        In production, fails startup if the bot would run anonymously.
        In development, returns silently so local dry runs work without
        credentials.

        Raises:
            ConfigurationError: If production config is incomplete.
        """
        errors: List[str] = []

        if not self.wiki_username or not self.wiki_password:
            errors.append(
                "QUEUEBOT_WIKI_USERNAME / QUEUEBOT_WIKI_PASSWORD are not set. "
                "Edits must be made from the bot account."
            )

        if self.database_url.startswith("sqlite"):
            errors.append(
                "QUEUEBOT_DATABASE_URL points at SQLite. "
                "Use the shared audit database in production."
            )

        if errors and self.environment == Environment.PRODUCTION:
            raise ConfigurationError(
                "Production configuration is incomplete:\n  - " + "\n  - ".join(errors)
            )

    class Config:
        """Pydantic configuration."""
        env_prefix = "QUEUEBOT_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


def get_settings() -> Settings:
    """Build settings from the current environment."""
    return Settings()
