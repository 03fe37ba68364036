"""Application settings loaded from environment variables."""
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Ahurasense Core settings.

    Every field can be overridden with an environment variable of the same
    name (case-insensitive) or through a local ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Ahurasense Core API"
    app_version: str = "1.0.0"
    api_prefix: str = "/api/v1"
    log_level: str = Field(default="INFO")

    # Database
    database_url: str = Field(default="sqlite:///./ahurasense.db")
    sql_echo: bool = False

    # HTTP
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    # Object storage (attachments are uploaded by the client, we only keep URLs)
    storage_public_base_url: str = Field(default="http://localhost:9000/ahurasense")


@lru_cache
def get_settings() -> Settings:
    """Return the cached settings instance."""
    return Settings()
