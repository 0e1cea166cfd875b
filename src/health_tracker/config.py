"""Configuration management for the health-tracker client.

Loads settings from environment variables, optionally seeded from a .env file.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field
from dotenv import load_dotenv


DEFAULT_TOKEN_FILE = Path.home() / ".config" / "health-tracker" / "tokens.json"


class Settings(BaseModel):
    """Application settings loaded from environment variables."""
    api_base_url: str = Field(description="Base URL of the health-tracking API, including /api")
    timeout: float = Field(default=30.0, description="HTTP timeout in seconds")
    token_file: str = Field(default=str(DEFAULT_TOKEN_FILE), description="Where the token pair is persisted")


class Config(BaseModel):
    """Full application configuration."""
    settings: Settings

    def url(self, path: str) -> str:
        """Join an API path onto the configured base URL."""
        return self.settings.api_base_url.rstrip("/") + "/" + path.lstrip("/")


def _find_project_root() -> Path:
    """Walk up from this file to find the project root (where .env lives)."""
    current = Path(__file__).resolve().parent
    for parent in [current, *current.parents]:
        if (parent / ".env").exists():
            return parent
    # Fallback: cwd
    return Path.cwd()


def _env(*keys: str, default: str = "") -> str:
    """Try multiple env var names, return the first one found."""
    for key in keys:
        val = os.environ.get(key, "")
        if val:
            return val.strip().strip('"')
    return default


def _load_settings() -> Settings:
    """Load settings from environment variables.

    Supports both HEALTH_TRACKER_* and the mobile app's API_BASE_URL name.
    """
    return Settings(
        api_base_url=_env("HEALTH_TRACKER_API_BASE_URL", "API_BASE_URL", default="http://localhost:5276/api"),
        timeout=float(_env("HEALTH_TRACKER_TIMEOUT", default="30")),
        token_file=_env("HEALTH_TRACKER_TOKEN_FILE", default=str(DEFAULT_TOKEN_FILE)),
    )


@lru_cache(maxsize=1)
def get_config() -> Config:
    """Load and cache the full application configuration."""
    env_path = _find_project_root() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    return Config(settings=_load_settings())
