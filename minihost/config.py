"""
minihost — Host Configuration
===============================

What:  Centralized host settings using Pydantic Settings.
How:   Values come from MINIHOST_* environment variables (or a .env file),
       are validated on load, and are exposed through a `settings` singleton.
       Settings objects are handed to servers and middleware as-is.
Who:   HostBuilder, AsgiServer, RateLimitMiddleware and setup_logging().
When:  Loaded once at import; tests build their own HostSettings instances.
"""

from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


DEFAULT_URL = "http://localhost:5000/"


class HostSettings(BaseSettings):
    """
    Host settings loaded from environment variables.

    All settings have development defaults. Attributes are grouped by concern.
    """

    # ── Server ────────────────────────────────────────────────────────────
    # Comma-separated listen URLs, e.g. "http://localhost:5000/,http://+:8080/"
    urls: str = Field(default=DEFAULT_URL)

    # Run each accepted exchange in its own task. False serializes exchanges.
    concurrent_exchanges: bool = Field(default=True)

    # Seconds to wait for in-flight exchanges on stop before cancelling them
    shutdown_timeout: float = Field(default=10.0, ge=0, le=300)

    @property
    def urls_list(self) -> List[str]:
        """Splits the comma-separated URLs into a list, dropping blanks."""
        return [url.strip() for url in self.urls.split(",") if url.strip()]

    # ── Logging ───────────────────────────────────────────────────────────
    # Valid: DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    # ── Rate Limiting ─────────────────────────────────────────────────────
    # Per-client sliding window used by RateLimitMiddleware
    rate_limit_requests: int = Field(default=100, ge=1, le=100_000)
    rate_limit_window: int = Field(default=3600, ge=1, le=86400)  # seconds

    # ── Pydantic Settings Config ──────────────────────────────────────────
    model_config = {
        "env_prefix": "MINIHOST_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }


# Singleton instance used when no explicit settings are passed
settings = HostSettings()
