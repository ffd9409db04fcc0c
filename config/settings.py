"""
Application settings loaded from environment variables.

Uses Pydantic Settings for type-safe configuration with validation.
All settings can be overridden via environment variables or .env file.
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from libs.common.exceptions import ConfigurationError
from libs.political_backtest.core import EventStudyConfig


class Settings(BaseSettings):
    """
    Application configuration.

    All settings are loaded from environment variables or .env file.
    List values are given as JSON, e.g. ``EVENT_STUDY_WINDOWS=[1,5,20]``.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extraneous env vars from broader platform configs
    )

    # Event Study Configuration
    event_study_windows: list[int] = Field(
        default=[1, 5, 20],
        min_length=1,
        description="Forward-return windows in trading sessions",
    )
    event_study_anchor_mode: Literal["transaction", "report", "both"] = Field(
        default="both",
        description="Which event dates produce anchors",
    )
    event_study_benchmark_mode: Literal[
        "spy_only", "spy_plus_sector_if_relevant", "spy_plus_sector_required"
    ] = Field(
        default="spy_plus_sector_if_relevant",
        description="Benchmark selection policy",
    )
    event_study_alignment: Literal["next_session"] = Field(
        default="next_session",
        description="Non-trading anchor alignment policy",
    )
    event_study_reports_root: Path = Field(
        default=Path("data/reports"),
        description="Root directory of persisted run history",
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    service_name: str = Field(
        default="political_backtest",
        description="Service name stamped on every log line",
    )

    @field_validator("event_study_windows")
    @classmethod
    def validate_windows(cls, value: list[int]) -> list[int]:
        if any(window < 1 for window in value):
            raise ValueError("event_study_windows entries must be >= 1")
        if len(set(value)) != len(value):
            raise ValueError("event_study_windows must not contain duplicates")
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Invalid log level: {value}")
        return level

    def event_study_config(self) -> EventStudyConfig:
        """Build the library-level run configuration from these settings.

        Raises:
            ConfigurationError: If the combination is rejected by ``EventStudyConfig``
        """
        try:
            return EventStudyConfig(
                windows=tuple(self.event_study_windows),
                anchor_mode=self.event_study_anchor_mode,
                benchmark_mode=self.event_study_benchmark_mode,
                alignment=self.event_study_alignment,
            )
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once.

    Returns:
        Settings: Application settings

    Example:
        >>> from config.settings import get_settings
        >>> settings = get_settings()
        >>> settings.event_study_windows
        [1, 5, 20]
    """
    return Settings()
