"""Application settings powered by Pydantic BaseSettings."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Centralized environment configuration.

    Secrets and filesystem locations only; behavioural settings live in
    settings.yaml.
    """

    model_config = SettingsConfigDict(
        env_prefix="", case_sensitive=False, env_file=".env", env_file_encoding="utf-8"
    )

    voyage_api_key: str | None = Field(default=None, validation_alias="VOYAGE_API_KEY")
    db_path: Path = Field(
        default=Path("data/news_digest.db"), validation_alias="NEWS_DIGEST_DB_PATH"
    )
    config_dir: Path = Field(
        default=Path("config"), validation_alias="NEWS_DIGEST_CONFIG_DIR"
    )


def get_settings() -> AppSettings:
    """Get a settings instance."""
    return AppSettings()
