"""Configuration settings for sdflash.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > defaults.
"""

import tempfile
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Block size for raw device writes (1 MiB)
DEFAULT_BLOCK_SIZE = 1024 * 1024


def _default_cache_dir() -> Path:
    """Return the shared temp directory used as download cache."""
    return Path(tempfile.gettempdir())


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the SDFLASH_ prefix.
    CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="SDFLASH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Paths
    cache_dir: Path = Field(
        default_factory=_default_cache_dir,
        description="Directory for downloaded and extracted images (never pruned)",
    )
    mount_point: Path = Field(
        default=Path("/tmp/sdflash-boot"),
        description="Scratch mount point for the boot partition",
    )
    mount_root: Path | None = Field(
        default=None,
        description="Removable media mount root (platform default if not set)",
    )

    # Device discovery
    poll_interval: float = Field(
        default=1.0,
        gt=0,
        description="Seconds between scans while waiting for media",
    )

    # I/O
    block_size: int = Field(
        default=DEFAULT_BLOCK_SIZE,
        ge=512,
        description="Block size for raw device writes",
    )
    download_timeout: int = Field(
        default=3600,
        ge=60,
        description="Timeout for image downloads in seconds",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="WARNING",
        description="Logging level",
    )


def get_settings() -> Settings:
    """Get the application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


__all__ = ["DEFAULT_BLOCK_SIZE", "Settings", "get_settings"]
