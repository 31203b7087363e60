"""
Application settings using Pydantic.

Provides environment-based configuration loading with CHARMSYNC_ prefix.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """charmsync settings."""

    # Retry engine shared by the deploy and read loops
    retry_attempts: int = 30
    retry_initial_delay: float = 1.0
    retry_backoff_multiplier: float = 2.0
    retry_max_delay: float | None = None

    # Read loop progress is logged every N attempts
    retry_log_every: int = 4

    # Application facade version from which DeployFromRepository exists
    repository_deploy_min_version: int = 19

    # Platform defaults
    default_lts_base: str = "ubuntu@22.04"
    default_space: str = "alpha"
    default_architecture: str = "amd64"

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "CHARMSYNC_"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
