"""
Application settings using Pydantic.

Provides environment-based configuration loading with STACKPLAN_ prefix.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="STACKPLAN_",
    )

    # Logging
    log_level: str = "WARNING"
    log_renderer: str = "console"  # console, json

    # Planning
    default_offering_weight: int = 1
    max_parallel_steps: int = 4

    # CLI
    output_format: str = "text"  # text, json


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
