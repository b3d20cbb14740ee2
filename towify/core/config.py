"""Application configuration."""

import os
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from towify.utils.logging import get_logger

LOGGER = get_logger(__name__)


def find_env_file() -> Optional[Path]:
    """Find .env file in multiple possible locations."""
    current_dir = os.path.dirname(os.path.abspath(__file__))

    possible_paths = [
        os.path.join(os.getcwd(), ".env"),
        os.path.join(os.path.dirname(current_dir), ".env"),
        os.path.join(os.path.dirname(os.path.dirname(current_dir)), ".env"),
    ]

    for path_str in possible_paths:
        if os.path.exists(path_str):
            path = Path(path_str)
            LOGGER.debug(f"Found .env file at: {path}")
            return path

    return None


ENV_FILE = find_env_file()


class SupabaseSettings(BaseSettings):
    """Supabase project settings."""
    url: str = Field(default="", validation_alias="SUPABASE_URL")
    anon_key: str = Field(default="", validation_alias="SUPABASE_ANON_KEY")
    jwt_secret: str = Field(default="", validation_alias="SUPABASE_JWT_SECRET")

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE) if ENV_FILE else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_prefix="",
    )


class Settings(BaseSettings):
    """Unified application settings with nested models."""

    app_name: str = Field(default="Towify", validation_alias="APP_NAME")
    app_version: str = "0.1.0"
    environment: str = Field(default="development", validation_alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    http_timeout: float = Field(default=30.0, validation_alias="HTTP_TIMEOUT")

    # Fines fall due this many days after issue
    fine_due_days: int = Field(default=30, validation_alias="FINE_DUE_DAYS")

    # Seconds before expiry at which a held credential is refreshed
    token_refresh_margin: int = Field(default=60, validation_alias="TOKEN_REFRESH_MARGIN")

    supabase: SupabaseSettings = Field(default_factory=lambda: SupabaseSettings())

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE) if ENV_FILE else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def supabase_url(self) -> str:
        return self.supabase.url.rstrip("/")

    @property
    def supabase_anon_key(self) -> str:
        return self.supabase.anon_key

    @property
    def supabase_jwt_secret(self) -> str:
        return self.supabase.jwt_secret


settings = Settings()

LOGGER.debug(f"Settings initialized with environment: {settings.environment}")
LOGGER.debug(f"Supabase URL configured: {bool(settings.supabase_url)}")
