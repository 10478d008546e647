"""Runtime configuration using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Plugin settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="FBL_KEYCLOAK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_json: bool = False

    # Transport
    http_timeout: float = 30.0  # seconds
    verify_tls: bool = True


settings = Settings()


@lru_cache
def get_settings() -> Settings:
    """Accessor for the module-level settings singleton."""
    return settings
