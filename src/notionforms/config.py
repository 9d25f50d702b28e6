"""Configuration management using pydantic-settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
    )

    # Notion configuration
    notion_api_key: str = Field(alias="NOTION_API_KEY")
    notion_version: str = Field(default="2022-06-28", alias="NOTION_VERSION")
    request_timeout: float = Field(default=30.0, alias="NOTION_TIMEOUT")
    max_retries: int = Field(default=3, ge=1, alias="NOTION_MAX_RETRIES")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
