"""
Configuration settings for the mastery engine.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

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
        default="sqlite:///./mastery_engine.db",
        description="Profile store connection string (sqlite or postgresql)",
    )
    database_echo: bool = Field(
        default=False,
        description="Echo SQL statements to the log",
    )

    # ========================================
    # Profile Persistence
    # ========================================
    profile_write_max_retries: int = Field(
        default=2,
        ge=0,
        description="Retries after the first failed profile write",
    )
    profile_write_initial_delay_ms: int = Field(
        default=1000,
        description="Backoff delay before the first retry (ms)",
    )
    profile_write_max_delay_ms: int = Field(
        default=10000,
        description="Upper bound on a single backoff delay (ms)",
    )
    profile_write_backoff_multiplier: float = Field(
        default=2.0,
        description="Exponential growth factor between retries",
    )

    # ========================================
    # Quiz Composition
    # ========================================
    default_grade: int = Field(
        default=4,
        ge=1,
        le=8,
        description="Grade used for BKT parameters when a child's grade is unknown",
    )
    forgetting_curve_enabled: bool = Field(
        default=False,
        description="Classify topics on a time-decayed view of the profile",
    )
    min_topics_for_adaptive: int = Field(
        default=3,
        description="Tracked topics required before quizzes become adaptive",
    )

    # ========================================
    # Session Monitor
    # ========================================
    fatigue_baseline_questions: int = Field(
        default=5,
        description="Answers that establish the baseline answer time",
    )
    fatigue_speed_threshold: float = Field(
        default=0.5,
        description="Recent average time below baseline * threshold counts as rushing",
    )
    fatigue_accuracy_threshold: float = Field(
        default=0.4,
        description="Recent accuracy below this counts as an accuracy drop",
    )
    frustration_threshold: int = Field(
        default=3,
        description="Consecutive wrong answers on a topic that block it",
    )
    frustration_cooldown_questions: int = Field(
        default=5,
        description="Answers after a block before blocked topics are released",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_file: str | None = Field(
        default=None,
        description="Optional log file path (rotated by size)",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def get_retry_config():
    """Get the profile write retry policy from settings."""
    from src.core.retry import RetryConfig

    settings = get_settings()
    return RetryConfig(
        max_retries=settings.profile_write_max_retries,
        initial_delay_ms=settings.profile_write_initial_delay_ms,
        max_delay_ms=settings.profile_write_max_delay_ms,
        backoff_multiplier=settings.profile_write_backoff_multiplier,
    )


def get_monitor_config():
    """Get session behavior monitor thresholds from settings."""
    from src.delivery.telemetry import MonitorConfig

    settings = get_settings()
    return MonitorConfig(
        baseline_questions=settings.fatigue_baseline_questions,
        speed_threshold=settings.fatigue_speed_threshold,
        accuracy_threshold=settings.fatigue_accuracy_threshold,
        frustration_threshold=settings.frustration_threshold,
        cooldown_questions=settings.frustration_cooldown_questions,
    )
