"""
Runtime configuration for the hot keyword aggregator.
Values come from the environment (or a local .env file) and are validated once.
"""
from __future__ import annotations

import json
import logging
from functools import lru_cache

from pydantic import ValidationError as PydanticValidationError
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from hotkeys.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Constants
HOT_KEY_MAX_LENGTH = 100
HOT_KEY_DESC_MAX_LENGTH = 500
REQUEST_TIMEOUT_SECONDS = 30.0
RATE_LIMIT_DELAY_SECONDS = 1.0
DEFAULT_QUERY_LIMIT = 50
PLACEHOLDER_PREFIX = "your_"


class Settings(BaseSettings):
    """
    Application settings.
    Upstream credentials are optional: a source without credentials is skipped
    at collection time instead of failing the whole run.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Social trends source
    TWITTER_BEARER_TOKEN: str | None = None

    # Link aggregator source + OAuth
    REDDIT_CLIENT_ID: str | None = None
    REDDIT_CLIENT_SECRET: str | None = None
    REDDIT_USER_AGENT: str = "HypeCatHotKey/1.0.0"
    REDDIT_REDIRECT_URI: str | None = None

    # Persistence (Google Sheets)
    GOOGLE_CREDENTIALS: str | None = None  # JSON string of service account credentials
    SHEET_ID: str | None = None

    # Collection behaviour
    COLLECTION_INTERVAL_MINUTES: int = 30
    TOP_ITEMS_LIMIT: int = 10
    RETENTION_DAYS: int = 7
    REQUEST_TIMEOUT_SECONDS: float = REQUEST_TIMEOUT_SECONDS
    SCHEDULER_ENABLED: bool = False

    # Application
    CRON_SECRET: str | None = None
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"
    CORS_ORIGINS: list[str] = []

    @field_validator(
        "TWITTER_BEARER_TOKEN",
        "REDDIT_CLIENT_ID",
        "REDDIT_CLIENT_SECRET",
        "REDDIT_REDIRECT_URI",
        "GOOGLE_CREDENTIALS",
        "SHEET_ID",
        "CRON_SECRET",
    )
    @classmethod
    def blank_or_placeholder_to_none(cls, v: str | None) -> str | None:
        """Treat empty strings and `your_..._here` template values as unset."""
        if v is None:
            return None
        v = v.strip()
        if not v or v.startswith(PLACEHOLDER_PREFIX):
            return None
        return v

    @field_validator("COLLECTION_INTERVAL_MINUTES")
    @classmethod
    def validate_interval(cls, v: int) -> int:
        if not 1 <= v <= 1440:
            raise ValueError("COLLECTION_INTERVAL_MINUTES must be between 1 and 1440")
        return v

    @field_validator("TOP_ITEMS_LIMIT", "RETENTION_DAYS")
    @classmethod
    def validate_positive(cls, v: int, info) -> int:
        if v < 1:
            raise ValueError(f"{info.field_name} must be at least 1")
        return v

    @field_validator("REQUEST_TIMEOUT_SECONDS")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("REQUEST_TIMEOUT_SECONDS must be positive")
        return v

    @field_validator("GOOGLE_CREDENTIALS")
    @classmethod
    def validate_google_credentials_json(cls, v: str | None) -> str | None:
        """Validate that GOOGLE_CREDENTIALS, when set, is a service account JSON object."""
        if v is None:
            return None
        try:
            credentials_dict = json.loads(v)
        except json.JSONDecodeError as e:
            raise ValueError(f"GOOGLE_CREDENTIALS is not valid JSON: {e}") from e
        if not isinstance(credentials_dict, dict):
            raise ValueError("GOOGLE_CREDENTIALS must be a JSON object")
        required_fields = ["type", "project_id", "private_key", "client_email"]
        missing_fields = [field for field in required_fields if field not in credentials_dict]
        if missing_fields:
            raise ValueError(f"GOOGLE_CREDENTIALS missing required fields: {', '.join(missing_fields)}")
        return v

    @property
    def sheets_configured(self) -> bool:
        return bool(self.GOOGLE_CREDENTIALS and self.SHEET_ID)

    def log_startup_summary(self) -> None:
        """Log configuration summary on startup (without leaking secrets)."""
        logger.info("=" * 60)
        logger.info("Hot Keyword Aggregator - Configuration")
        logger.info("=" * 60)
        logger.info("Environment: %s", self.ENVIRONMENT)
        logger.info("Log Level: %s", self.LOG_LEVEL)
        logger.info("Twitter Bearer Token: %s", "✓ Present" if self.TWITTER_BEARER_TOKEN else "○ Not set (source skipped)")
        logger.info("Reddit Client ID: %s", "✓ Present" if self.REDDIT_CLIENT_ID else "○ Not set (source skipped)")
        logger.info("Reddit Redirect URI: %s", self.REDDIT_REDIRECT_URI or "○ Not set")
        logger.info("Google Sheets: %s", "✓ Configured" if self.sheets_configured else "○ In-memory storage only")
        logger.info("Collection Interval: %s min", self.COLLECTION_INTERVAL_MINUTES)
        logger.info("Top Items Limit: %s", self.TOP_ITEMS_LIMIT)
        logger.info("Retention: %s days", self.RETENTION_DAYS)
        logger.info("Scheduler: %s", "✓ Enabled" if self.SCHEDULER_ENABLED else "○ Disabled")
        logger.info("Cron Secret: %s", "✓ Configured" if self.CRON_SECRET else "○ Not configured")
        logger.info("=" * 60)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Raises ConfigurationError if the environment holds invalid values.
    """
    try:
        settings = Settings()
    except PydanticValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc
    settings.log_startup_summary()
    return settings
