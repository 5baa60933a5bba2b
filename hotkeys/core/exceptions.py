"""Custom exceptions for the hot keyword aggregator."""

from __future__ import annotations


class HotKeyError(Exception):
    """Base exception for all aggregator errors."""
    pass


class APIError(HotKeyError):
    """Base exception for external API failures."""
    pass


class SourceFetchError(APIError):
    """Raised when an upstream trend source cannot be read."""

    def __init__(self, source: str, message: str, status_code: int | None = None):
        self.source = source
        self.status_code = status_code
        super().__init__(f"{source}: {message}")


class RateLimitError(APIError):
    """Raised when API rate limit is exceeded."""

    def __init__(self, service: str, retry_after: int | None = None):
        self.service = service
        self.retry_after = retry_after
        super().__init__(f"{service} rate limit exceeded")


class OAuthError(APIError):
    """Raised when an OAuth exchange with the upstream provider fails."""
    pass


class ConfigurationError(HotKeyError):
    """Raised when required credentials or identifiers are missing or invalid."""
    pass


class ValidationError(HotKeyError):
    """Raised when input validation fails."""
    pass


class StorageError(HotKeyError):
    """Raised when a storage operation fails."""
    pass


class StorageUnavailableError(StorageError):
    """Raised when the backing store cannot be reached at all."""
    pass


class DuplicateHotKeyError(StorageError):
    """Raised on insert when (area, hot_key) already exists."""

    def __init__(self, area: str, hot_key: str):
        self.area = area
        self.hot_key = hot_key
        super().__init__(f"Hot key already exists: {hot_key} ({area})")
