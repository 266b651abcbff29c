"""
Configuration management for distforge.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings, read from ``DISTFORGE_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="DISTFORGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging
    log_level: str = Field(default="WARNING", description="Level for library logs")
    log_format: str = Field(default="text", description="'text' or 'json'")

    # Output
    default_out_dir: str = Field(
        default="dist",
        description="Output directory, relative to the build source, when --out-dir is not given",
    )

    # Build environments
    build_python: Optional[str] = Field(
        default=None,
        description="Interpreter used to create build environments (default: the running one)",
    )
    index_url: Optional[str] = Field(
        default=None, description="Package index used to resolve build requirements"
    )
    keep_build_envs: bool = Field(
        default=False, description="Keep build environments on disk for debugging"
    )

    # Backends
    force_pep517: bool = Field(
        default=False,
        description="Always drive the build backend through PEP 517 hooks, even for distforge-backed packages",
    )


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings."""
    return settings


def reset_settings() -> Settings:
    """Re-read settings from the current environment."""
    global settings
    settings = Settings()
    return settings
