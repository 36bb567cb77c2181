"""Configuration settings for Tallyboard."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Flat settings read from environment variables and an optional .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Firebase project
    firebase_project_id: str = Field(..., validation_alias="FIREBASE_PROJECT_ID")
    firebase_api_key: SecretStr = Field(..., validation_alias="FIREBASE_API_KEY")
    firestore_database: str = Field(default="(default)", validation_alias="FIRESTORE_DATABASE")

    # REST endpoints
    firestore_url: str = Field(
        default="https://firestore.googleapis.com/v1", validation_alias="FIRESTORE_URL"
    )
    identity_url: str = Field(
        default="https://identitytoolkit.googleapis.com/v1", validation_alias="IDENTITY_URL"
    )
    secure_token_url: str = Field(
        default="https://securetoken.googleapis.com/v1", validation_alias="SECURE_TOKEN_URL"
    )
    request_timeout: float = Field(default=30.0, validation_alias="REQUEST_TIMEOUT")
    store_max_retries: int = Field(default=0, ge=0, validation_alias="STORE_MAX_RETRIES")

    # Dashboard behaviour
    dashboard_timezone: str = Field(default="UTC", validation_alias="DASHBOARD_TIMEZONE")
    recent_entries_limit: int = Field(default=5, ge=1, validation_alias="RECENT_ENTRIES_LIMIT")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", validation_alias="LOG_LEVEL"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", validation_alias="LOG_FORMAT"
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
