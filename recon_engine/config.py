"""
Configuration management using Pydantic Settings.
All parameters are loaded from environment variables with sensible defaults.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


ENV_FILE_PATH = Path(os.environ.get("RECON_ENGINE_ENV_FILE", ".env"))


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE_PATH),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application
    app_env: str = Field(default="development")
    app_log_level: str = Field(default="INFO")

    # Job defaults, used when a caller leaves a setting out
    default_amount_tolerance_cents: int = Field(default=100, ge=0)
    default_time_window_hours: float = Field(default=48, ge=0)
    default_fuzzy_threshold: float = Field(default=85, ge=0, le=100)
    default_token_budget: int = Field(default=2000, ge=0)
    default_max_rows: int = Field(default=10000, ge=1)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


class JobSettings(BaseModel):
    """
    Per-job matching parameters.

    Validated here, at the caller boundary, so the matching engine can take
    the values as given.
    """
    amount_tolerance_cents: int = Field(ge=0)
    time_window_hours: float = Field(ge=0)
    fuzzy_threshold: float = Field(ge=0, le=100)
    max_rows: int = Field(ge=1)
    token_budget: int = Field(default=2000, ge=0)  # Consumed by the summary generator only

    @classmethod
    def defaults(cls, settings: Optional[Settings] = None) -> "JobSettings":
        """Job settings built entirely from the application defaults."""
        return cls.merged(None, settings)

    @classmethod
    def merged(
        cls,
        overrides: Optional[Dict[str, Any]],
        settings: Optional[Settings] = None,
    ) -> "JobSettings":
        """Fill the settings a caller did not provide from the application defaults."""
        settings = settings or get_settings()
        values = {
            "amount_tolerance_cents": settings.default_amount_tolerance_cents,
            "time_window_hours": settings.default_time_window_hours,
            "fuzzy_threshold": settings.default_fuzzy_threshold,
            "max_rows": settings.default_max_rows,
            "token_budget": settings.default_token_budget,
        }
        for key, value in (overrides or {}).items():
            if value is not None:
                values[key] = value
        return cls(**values)
