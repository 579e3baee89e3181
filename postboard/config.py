"""
Runtime configuration helpers for the postboard client.

Loads backend selection, credentials and behaviour switches from the
environment and from the .env file located in the project root.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root
BASE_DIR = Path(__file__).resolve().parents[1]

# Absolute path to .env
ENV_PATH = BASE_DIR / ".env"

# Load .env defaults without overriding environment variables provided by the platform
load_dotenv(dotenv_path=ENV_PATH, override=False)


class Settings(BaseSettings):
    backend: Literal["sql", "rest"] = Field(default="sql", alias="BACKEND")

    # In-process backend
    database_url: str = Field(default="sqlite+pysqlite:///./postboard.db", alias="DATABASE_URL")

    # Hosted backend
    backend_url: str | None = Field(default=None, alias="BACKEND_URL")
    backend_api_key: str | None = Field(default=None, alias="BACKEND_API_KEY")
    http_timeout: float = Field(default=15.0, alias="HTTP_TIMEOUT")
    realtime_poll_interval: float = Field(default=5.0, alias="REALTIME_POLL_INTERVAL")

    # Reactions
    reaction_rollback_on_error: bool = Field(default=False, alias="REACTION_ROLLBACK_ON_ERROR")

    # Object storage (DigitalOcean Spaces)
    spaces_key: str | None = Field(default=None, alias="DO_SPACES_KEY")
    spaces_secret: str | None = Field(default=None, alias="DO_SPACES_SECRET")
    spaces_region: str | None = Field(default=None, alias="DO_SPACES_REGION")
    spaces_name: str | None = Field(default=None, alias="DO_SPACES_NAME")
    spaces_endpoint: str | None = Field(default=None, alias="DO_SPACES_ENDPOINT")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()


__all__ = ["Settings", "get_settings"]
