"""
Application configuration using Pydantic Settings.
"""

import os
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


def get_env_file() -> str:
    """Determine which env file to use based on environment."""
    env = os.getenv("APP_ENV", "development")
    if env == "production":
        return ".env.production"
    return ".env.development"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App settings
    app_name: str = "Lump Sum Payout Model"
    debug: bool = False
    log_level: str = "INFO"
    app_env: str = "development"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Workbook data; the bundled 15-year lump-sum sheet when unset
    dataset_path: Optional[str] = None

    # Goal seek
    goal_seek_strategy: str = "secant"
    goal_seek_sample_step: float = 100.0
    goal_seek_iterate: bool = False
    goal_seek_tolerance: float = 0.01
    goal_seek_max_iterations: int = 50

    class Config:
        env_file = get_env_file()
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
