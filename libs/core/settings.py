"""Application settings loaded from environment variables."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_postgres_uri_from_env() -> str:
    """Build Postgres URI from component env vars if POSTGRES_URI is not set.

    Keeps a single source of truth for DB name via .env variables
    (POSTGRES_USER/PASSWORD/HOST/PORT/DB). If POSTGRES_URI is provided, it
    will override this default.
    """
    user = os.getenv("POSTGRES_USER", "postgres")
    password = os.getenv("POSTGRES_PASSWORD", "postgres")
    host = os.getenv("POSTGRES_HOST", "postgres")
    port = os.getenv("POSTGRES_PORT", "5432")
    db = os.getenv("POSTGRES_DB", "ytnotes")
    return f"postgresql+psycopg://{user}:{password}@{host}:{port}/{db}"


class Settings(BaseSettings):
    """Runtime settings for the application."""

    # Google OAuth client used for the consent flow and for refreshing
    # per-user Drive credentials.
    google_client_id: str = Field(default="")
    google_client_secret: str = Field(default="")
    google_redirect_uri: str = Field(default="http://localhost:5000/auth/google/callback")
    dashboard_url: str = Field(default="http://localhost:5173")
    jwt_secret: str = Field(default="change-me")
    access_token_ttl_minutes: int = Field(default=15)
    refresh_token_ttl_days: int = Field(default=7)
    # Drive layout: <drive_root_folder>/<drive_screenshots_folder>/<file>.png
    drive_root_folder: str = Field(default="ytNotes")
    drive_screenshots_folder: str = Field(default="screenshots")
    screenshots_dir: Path = Field(default=Path("/tmp/ytnotes/screenshots"))
    # Comma separated list of admin e-mail addresses
    admin_emails: str = Field(default="")
    cors_origins: str = Field(default="*")
    postgres_uri: str = Field(default_factory=_default_postgres_uri_from_env)
    log_level: str = Field(default="INFO")
    service_name: str = Field(default="api")
    environment: str = Field(default="development")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def admin_email_list(self) -> List[str]:
        return [e.strip() for e in self.admin_emails.split(",") if e.strip()]

    @property
    def cors_origin_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    """Return application settings instance."""
    return Settings()


__all__ = ["Settings", "get_settings"]
