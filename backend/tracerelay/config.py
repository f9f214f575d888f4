"""
TraceRelay Backend — Application Configuration
================================================

What:  Centralized configuration management using Pydantic Settings.
Why:   Type-safe environment variable loading with validation on startup.
How:   Pydantic Settings reads from environment variables (or .env file),
       validates types/ranges, and provides a singleton `settings` object.
Who:   Imported by the intake, the upstream client and the app factory.
When:  Loaded once at module import time.

The upload size limit and the upstream timeout live here (not as literals in
the services) so tests and deployments can shrink them without code changes.
"""

from pathlib import Path
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

# backend/public, next to the package directory
DEFAULT_STATIC_ROOT = str(Path(__file__).resolve().parent.parent / "public")


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have working defaults; a bare `tracerelay` invocation
    relays to the public AnimeTrace search endpoint on port 3000.
    """

    # ── Upstream Recognition Service ──────────────────────────────────────
    # What: The fixed endpoint every recognition request is forwarded to
    upstream_url: str = Field(
        default="https://api.animetrace.com/v1/search",
        description="Upstream image-recognition endpoint (multipart POST)",
    )

    # What: Upper bound, in seconds, for one upstream call (connect + read + write)
    upstream_timeout: float = Field(default=30.0, gt=0, le=600)

    # ── Upload Limits ─────────────────────────────────────────────────────
    # Default: 5MB = 5 * 1024 * 1024
    max_file_size: int = Field(default=5_242_880, gt=0)

    # ── Static Front-End ──────────────────────────────────────────────────
    static_root: str = Field(default=DEFAULT_STATIC_ROOT)

    # ── CORS ──────────────────────────────────────────────────────────────
    # Format: Comma-separated URLs, or "*" for any origin
    cors_origins: str = Field(default="*")

    @property
    def cors_origins_list(self) -> List[str]:
        """Splits comma-separated CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    # ── Server ────────────────────────────────────────────────────────────
    host: str = Field(default="0.0.0.0")
    # Read from the PORT environment variable
    port: int = Field(default=3000, ge=1, le=65535)

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

    @field_validator("upstream_url")
    @classmethod
    def validate_upstream_url(cls, v: str) -> str:
        """Rejects obviously unusable upstream URLs at startup."""
        stripped = v.strip()
        if not stripped:
            raise ValueError("upstream_url must not be empty")
        return stripped

    @property
    def max_file_size_mb(self) -> float:
        return self.max_file_size / (1024 * 1024)

    # ── Pydantic Settings Config ──────────────────────────────────────────
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,  # PORT and port both work
        "extra": "ignore",
    }


# Singleton instance, imported throughout the application
settings = Settings()
