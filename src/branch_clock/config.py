"""Configuration management for branch-clock."""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BranchClockSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    data_dir: Path = Field(
        default=Path("~/.branch-clock"), validation_alias="BRANCH_CLOCK_DATA_DIR"
    )
    store_filename: str = Field(
        default="durations.json", validation_alias="BRANCH_CLOCK_STORE_FILE"
    )
    check_interval: int = Field(default=600, validation_alias="BRANCH_CLOCK_CHECK_INTERVAL")
    idle_threshold: int = Field(default=1800, validation_alias="BRANCH_CLOCK_IDLE_THRESHOLD")
    duration_merge_threshold: int = Field(
        default=1800, validation_alias="BRANCH_CLOCK_MERGE_THRESHOLD"
    )
    sleep_suspend_bound: int = Field(default=3600, validation_alias="BRANCH_CLOCK_SLEEP_BOUND")
    write_retries: int = Field(default=3, validation_alias="BRANCH_CLOCK_WRITE_RETRIES")
    lock_timeout: float = Field(default=5.0, validation_alias="BRANCH_CLOCK_LOCK_TIMEOUT")
    git_path: str | None = Field(default=None, validation_alias="BRANCH_CLOCK_GIT_PATH")
    log_level: str = Field(default="WARNING", validation_alias="BRANCH_CLOCK_LOG_LEVEL")

    @property
    def store_path(self) -> Path:
        return self.data_dir / self.store_filename

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "BRANCH_CLOCK_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("store_filename")
    @classmethod
    def _validate_store_filename(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized or "/" in normalized or "\\" in normalized:
            raise ValueError("BRANCH_CLOCK_STORE_FILE must be a plain file name")
        return normalized

    @field_validator("check_interval", "idle_threshold", "sleep_suspend_bound", "write_retries")
    @classmethod
    def _validate_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("intervals, thresholds and retry counts must be >= 1")
        return value

    @field_validator("duration_merge_threshold")
    @classmethod
    def _validate_merge_threshold(cls, value: int) -> int:
        if value < 0:
            raise ValueError("BRANCH_CLOCK_MERGE_THRESHOLD must be >= 0")
        return value

    @field_validator("lock_timeout")
    @classmethod
    def _validate_lock_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("BRANCH_CLOCK_LOCK_TIMEOUT must be > 0")
        return value


@lru_cache(maxsize=1)
def get_settings() -> BranchClockSettings:
    """Return cached settings instance."""

    settings = BranchClockSettings()
    settings.data_dir = settings.data_dir.expanduser().resolve()
    return settings


def configure_logging(level: str) -> None:
    """Configure root logging for branch-clock entry points."""

    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


__all__ = ["BranchClockSettings", "configure_logging", "get_settings"]
