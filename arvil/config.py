"""
Configuration settings for the Arvil training core.

Uses Pydantic Settings for environment variable management with .env file support.
All variables are prefixed with ARVIL_ (e.g. ARVIL_DATA_DIR, ARVIL_LOG_LEVEL).
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from arvil.training.scheduler import SM2Config


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="ARVIL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Storage
    # ========================================
    data_dir: Path = Field(
        default_factory=lambda: Path.home() / ".arvil",
        description="Directory holding the local database and backups",
    )
    db_path: Path | None = Field(
        default=None,
        description="SQLite database file (defaults to <data_dir>/state.db)",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Logging verbosity level",
    )
    log_file: Path | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # SM-2 Settings (for spaced repetition)
    # ========================================
    sm2_initial_ease: float = Field(
        default=2.5,
        description="Ease factor assigned to newly tracked items",
    )
    sm2_minimum_ease: float = Field(
        default=1.3,
        description="Floor for the ease factor",
    )
    sm2_first_interval: int = Field(
        default=1,
        ge=1,
        description="Interval (days) after the first successful review",
    )
    sm2_second_interval: int = Field(
        default=6,
        ge=1,
        description="Interval (days) after the second consecutive success",
    )
    sm2_max_interval: int | None = Field(
        default=None,
        ge=1,
        description="Optional cap on the review interval in days (None = uncapped)",
    )

    # ========================================
    # CLI
    # ========================================
    review_flash_seconds: float = Field(
        default=3.0,
        ge=0,
        description="How long a fact is shown before the recall prompt",
    )

    @field_validator("data_dir", mode="before")
    @classmethod
    def expand_data_dir(cls, v):
        if v is None or v == "":
            return Path.home() / ".arvil"
        return Path(v).expanduser()

    @field_validator("db_path", "log_file", mode="before")
    @classmethod
    def expand_path(cls, v):
        if v is None or v == "":
            return None
        return Path(v).expanduser()

    @property
    def resolved_db_path(self) -> Path:
        """Effective database location."""
        return self.db_path or self.data_dir / "state.db"

    def get_sm2_config(self) -> SM2Config:
        """Build the scheduler configuration from these settings."""
        return SM2Config(
            initial_easiness=self.sm2_initial_ease,
            minimum_easiness=self.sm2_minimum_ease,
            first_interval=self.sm2_first_interval,
            second_interval=self.sm2_second_interval,
            maximum_interval=self.sm2_max_interval,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
