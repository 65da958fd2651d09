"""
Configuration settings for the skill mastery engine.

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
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Logging level for the CLI sink",
    )
    log_file: str | None = Field(
        default=None,
        description="Optional log file path (rotated at 10 MB)",
    )

    # ========================================
    # Persistence
    # ========================================
    state_store_url: str = Field(
        default="sqlite:///skillengine_state.db",
        description="SQLAlchemy URL for the exported engine state store",
    )

    # ========================================
    # Session defaults
    # ========================================
    mastery_threshold: float = Field(
        default=0.85,
        ge=0.0,
        le=1.0,
        description="pMastery at or above which a skill counts as mastered",
    )
    target_items: int = Field(
        default=20,
        ge=1,
        description="Default number of items planned per session",
    )

    # ─── Bayesian Knowledge Tracing ─────────────────────────────────────────
    bkt_p_init: float = Field(default=0.3, description="Prior probability of mastery")
    bkt_p_learn: float = Field(default=0.1, description="Learning transition probability")
    bkt_p_slip: float = Field(default=0.1, description="P(incorrect | mastered)")
    bkt_p_guess: float = Field(default=0.2, description="P(correct | not mastered)")

    # ─── Diagnostic ─────────────────────────────────────────────────────────
    diagnostic_min_items_per_skill: int = Field(
        default=2,
        ge=0,
        description="Minimum items per skill for a reliable estimate",
    )
    diagnostic_max_items_per_skill: int = Field(
        default=5,
        ge=0,
        description="Maximum items per skill to avoid fatigue",
    )
    diagnostic_mastery_threshold: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Estimate at or above which a diagnosed skill counts as mastered",
    )
    diagnostic_difficulty_weight: float = Field(
        default=0.3,
        description="Weight of average item difficulty in the estimate",
    )
    diagnostic_prerequisite_boost_factor: float = Field(
        default=0.9,
        ge=0.0,
        le=1.0,
        description="Fraction of a mastered skill's estimate granted to its prerequisites",
    )
    diagnostic_max_items: int = Field(
        default=20,
        ge=0,
        description="Default diagnostic length",
    )

    # ─── Spaced retrieval (FSRS) ────────────────────────────────────────────
    fsrs_requested_retention: float = Field(
        default=0.9,
        gt=0.0,
        le=1.0,
        description="Target recall probability when a review comes due",
    )
    fsrs_max_interval_days: float = Field(
        default=365.0,
        ge=0.0,
        description="Upper bound on the gap between reviews",
    )

    # ─── Session flags ──────────────────────────────────────────────────────
    enforce_spaced_retrieval: bool = Field(
        default=True,
        description="Serve due reviews before new practice",
    )
    require_transfer_tests: bool = Field(
        default=True,
        description="Serve pending transfer tests for high-mastery skills",
    )

    def get_bkt_config(self) -> dict[str, float]:
        """Get BKT parameters as a dictionary."""
        return {
            "p_init": self.bkt_p_init,
            "p_learn": self.bkt_p_learn,
            "p_slip": self.bkt_p_slip,
            "p_guess": self.bkt_p_guess,
        }

    def get_diagnostic_config(self) -> dict[str, float | int]:
        """Get diagnostic engine configuration as a dictionary."""
        return {
            "min_items_per_skill": self.diagnostic_min_items_per_skill,
            "max_items_per_skill": self.diagnostic_max_items_per_skill,
            "mastery_threshold": self.diagnostic_mastery_threshold,
            "difficulty_weight": self.diagnostic_difficulty_weight,
            "prerequisite_boost_factor": self.diagnostic_prerequisite_boost_factor,
        }

    def get_fsrs_config(self) -> dict[str, float]:
        """Get FSRS scheduler parameters as a dictionary."""
        return {
            "requested_retention": self.fsrs_requested_retention,
            "max_interval_days": self.fsrs_max_interval_days,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
