import logging
from typing import Optional

from pydantic import Field, HttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict

from stagescore.models.enums import StoreBackend


class AppSettings(BaseSettings):
    """Application settings loaded from environment variables or .env file."""

    # Record Store Selection
    store_backend: StoreBackend = Field(
        StoreBackend.WEBAPP,
        description="Which record store backs the engine (webapp or supabase).",
    )

    # Spreadsheet Web App Configuration
    webapp_url: Optional[HttpUrl] = Field(
        None, description="Deployment URL of the spreadsheet web app."
    )

    # Supabase Configuration
    supabase_url: Optional[str] = Field(
        None, description="URL for the Supabase project."
    )
    supabase_key: Optional[str] = Field(
        None, description="Anon key for the Supabase project."
    )
    supabase_service_key: Optional[str] = Field(
        None, description="Service role key for Supabase (use with caution!)."
    )

    # Transport Settings
    request_timeout: float = Field(
        30.0, gt=0, description="Per-request timeout in seconds for HTTP stores."
    )
    max_request_attempts: int = Field(
        4,
        ge=1,
        description="Total attempts for one store request, first try included.",
    )

    # Engine Settings
    reset_chunk_size: int = Field(
        5,
        ge=1,
        description="How many reset writes are in flight together.",
    )
    activity_log_size: int = Field(
        50, ge=1, description="How many recent saves the activity log keeps."
    )

    # Logging Configuration
    log_level: str = Field(
        "INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."
    )

    # Pydantic Settings Configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="STAGESCORE_",
        extra="ignore",
        case_sensitive=False,
    )


def load_settings() -> AppSettings:
    """Loads and validates application settings."""
    try:
        settings = AppSettings()
        log_level_upper = settings.log_level.upper()
        # Validate log_level even if loaded from .env
        if log_level_upper not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
            logging.warning(
                f"Invalid LOG_LEVEL '{settings.log_level}' found in .env or default. Using INFO."
            )
            settings.log_level = "INFO"
        else:
            settings.log_level = log_level_upper
        return settings
    except Exception as e:
        logging.exception(f"Error loading application settings: {e}")
        raise SystemExit("Failed to load application settings. Exiting.")


settings: AppSettings = load_settings()
