"""
Configuration settings for the lingua progression engine.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

import sys
from functools import lru_cache
from pathlib import Path
from typing import Literal

from loguru import logger
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PACKAGED_DEFINITIONS_DIR = Path(__file__).parent / "lingua" / "registry" / "definitions"


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
        default="sqlite:///./lingua.db",
        description="SQLAlchemy connection string (PostgreSQL in production)",
    )

    # ========================================
    # AI Configuration
    # ========================================
    gemini_api_key: str = Field(
        default="",
        description="Google Gemini API key for content synthesis and answer judgment",
    )
    ai_model: str = Field(
        default="gemini-2.0-flash",
        description="Gemini model used for synthesis and judgment",
    )
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Gemini REST API base URL",
    )
    synthesis_timeout_seconds: float = Field(
        default=30.0,
        description="Upper bound for a single content synthesis call",
    )
    synthesis_temperature: float = Field(
        default=0.7,
        description="Sampling temperature for content synthesis",
    )
    judgment_timeout_seconds: float = Field(
        default=15.0,
        description="Upper bound for a single free-form judgment call",
    )

    # ========================================
    # Content Catalog
    # ========================================
    definitions_dir: Path = Field(
        default=PACKAGED_DEFINITIONS_DIR,
        description="Directory holding modules/*.json definition files",
    )

    # ========================================
    # Picker
    # ========================================
    picker_min_weight: float = Field(
        default=0.1,
        gt=0.0,
        le=1.0,
        description="Selection weight floor so no attempted pair is starved",
    )
    picker_recency_penalty: float = Field(
        default=0.25,
        gt=0.0,
        le=1.0,
        description="Weight multiplier for the immediately preceding pair",
    )
    difficulty_min_attempts: int = Field(
        default=3,
        ge=1,
        description="Graded attempts on a pair before a difficulty is suggested",
    )

    # ========================================
    # Marking
    # ========================================
    fallback_max_score: int = Field(
        default=60,
        ge=0,
        le=100,
        description="Score cap for heuristic marking when the judge is unavailable",
    )

    # ========================================
    # Sessions & Statistics
    # ========================================
    history_limit: int = Field(
        default=100,
        ge=1,
        description="Most recent events considered for picking and history reads",
    )
    max_questions_per_session: int = Field(
        default=0,
        ge=0,
        description="Questions issued before a session is exhausted (0 = unlimited)",
    )
    vocabulary_pool_size: int = Field(
        default=8,
        ge=0,
        description="Words sampled from the vocabulary store into generation hints",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
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
    debug: bool = Field(
        default=False,
        description="Expose generation debug info in session responses",
    )

    # ========================================
    # Helper Methods
    # ========================================
    def has_ai_configured(self) -> bool:
        """Check if a Gemini key is available."""
        return bool(self.gemini_api_key)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def configure_logging(settings: Settings | None = None) -> None:
    """Replace the default loguru sink with the service format."""
    settings = settings or get_settings()
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )
    if settings.log_file:
        logger.add(
            settings.log_file,
            level=settings.log_level,
            rotation="10 MB",
            retention=5,
        )
