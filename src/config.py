"""Application configuration settings.

This module provides centralized configuration management using environment
variables with sensible defaults.
"""

import os
from dataclasses import dataclass


def _get_bool_env(name: str, default: bool = False) -> bool:
    """Get a boolean value from environment variable.

    Args:
        name: Environment variable name.
        default: Default value if not set.

    Returns:
        Boolean value from environment.
    """
    value = os.getenv(name, "").lower()
    if value in ("true", "1", "yes", "on"):
        return True
    if value in ("false", "0", "no", "off"):
        return False
    return default


def _get_float_env(name: str, default: float) -> float:
    """Get a float value from environment variable, falling back on bad input."""
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        return default


@dataclass
class Settings:
    """Application settings loaded from environment variables.

    Attributes:
        GLOBAL_WEBHOOK_URL: Process-wide webhook sink that receives every event.
        WEBHOOK_MAX_ATTEMPTS: Total delivery attempts per destination.
        WEBHOOK_RETRY_DELAY_SECONDS: Base delay for linear retry backoff.
        WEBHOOK_TIMEOUT_SECONDS: Per-request HTTP timeout for webhook posts.
        PROFILE_CACHE_TTL_SECONDS: Lifetime of cached profile lookups.
        DISPLAY_TIMEZONE: IANA zone used when rendering timestamps in messages.
        BACKEND_URL: Base URL of the hosted backend (REST + auth).
        BACKEND_ANON_KEY: Public API key sent with every backend request.
        LOG_LEVEL: Logging level.
        LOG_JSON: Render log lines as JSON instead of console output.
    """

    # Webhooks
    GLOBAL_WEBHOOK_URL: str | None = None
    WEBHOOK_MAX_ATTEMPTS: int = 3
    WEBHOOK_RETRY_DELAY_SECONDS: float = 1.0
    WEBHOOK_TIMEOUT_SECONDS: float = 15.0

    # Orders
    PROFILE_CACHE_TTL_SECONDS: float = 300.0  # 5 minutes
    DISPLAY_TIMEZONE: str = "UTC"

    # Hosted backend
    BACKEND_URL: str = "http://localhost:54321"
    BACKEND_ANON_KEY: str | None = None

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        """Create settings from environment variables.

        Returns:
            Settings instance populated from environment.
        """
        return cls(
            GLOBAL_WEBHOOK_URL=os.getenv("GLOBAL_WEBHOOK_URL") or None,
            WEBHOOK_MAX_ATTEMPTS=int(_get_float_env("WEBHOOK_MAX_ATTEMPTS", 3)),
            WEBHOOK_RETRY_DELAY_SECONDS=_get_float_env("WEBHOOK_RETRY_DELAY_SECONDS", 1.0),
            WEBHOOK_TIMEOUT_SECONDS=_get_float_env("WEBHOOK_TIMEOUT_SECONDS", 15.0),
            PROFILE_CACHE_TTL_SECONDS=_get_float_env("PROFILE_CACHE_TTL_SECONDS", 300.0),
            DISPLAY_TIMEZONE=os.getenv("DISPLAY_TIMEZONE", "UTC"),
            BACKEND_URL=os.getenv("BACKEND_URL", "http://localhost:54321"),
            BACKEND_ANON_KEY=os.getenv("BACKEND_ANON_KEY"),
            LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
            LOG_JSON=_get_bool_env("LOG_JSON"),
        )


# Global settings instance
settings = Settings.from_env()
