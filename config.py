"""
Configuration settings for the paper-practice service.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Any, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Database
    # ========================================
    database_url: str = Field(
        default="sqlite:///./paper_practice.db",
        description="SQLAlchemy connection string (PostgreSQL in production)",
    )

    # ========================================
    # Question Catalog
    # ========================================
    paper_count: int = Field(
        default=31,
        description="Number of published papers",
    )
    questions_per_paper: int = Field(
        default=100,
        description="Questions in every paper (numbered 1..N contiguously)",
    )
    catalog_dir: str = Field(
        default="data/papers",
        description="Directory holding paper JSON seed files",
    )

    # ========================================
    # Leaderboard
    # ========================================
    leaderboard_size: int = Field(
        default=20,
        description="Number of entries kept in the global leaderboard",
    )

    # ========================================
    # Store resilience
    # ========================================
    store_retry_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts for a transiently failing store operation",
    )
    store_retry_backoff_seconds: float = Field(
        default=0.1,
        ge=0,
        description="Delay before the first retry (doubled after each attempt)",
    )
    navigate_max_attempts: int = Field(
        default=5,
        ge=1,
        description="Version-conflict retries absorbed by navigate()",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default="logs/paper_practice.log",
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # API Server
    # ========================================
    api_host: str = Field(
        default="127.0.0.1",
        description="API server host",
    )
    api_port: int = Field(
        default=8100,
        description="API server port",
    )

    # ========================================
    # Helper Methods
    # ========================================
    def get_practice_config(self) -> dict[str, Any]:
        """Get quiz practice configuration as a dictionary."""
        return {
            "catalog": {
                "paper_count": self.paper_count,
                "questions_per_paper": self.questions_per_paper,
            },
            "leaderboard_size": self.leaderboard_size,
            "retry": {
                "attempts": self.store_retry_attempts,
                "backoff_seconds": self.store_retry_backoff_seconds,
                "navigate_max_attempts": self.navigate_max_attempts,
            },
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
