"""
Configuration and settings for the workbench backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    log_level: str = Field(default="INFO")

    # Database (Postgres expected; any SQLAlchemy URL works)
    database_url: Optional[str] = Field(default=None)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    # Signed cookie session
    session_secret: str = Field(default="change-me")
    session_max_age: int = Field(default=14 * 24 * 3600)
    session_https_only: bool = Field(default=False)

    # OpenID Connect provider (Google by default)
    oidc_issuer: str = Field(default="https://accounts.google.com")
    oidc_client_id: Optional[str] = Field(default=None)
    oidc_client_secret: Optional[str] = Field(default=None)
    oidc_redirect_uri: Optional[str] = Field(default=None)
    oidc_scopes: str = Field(default="openid profile email")

    # Browser frontend
    frontend_url: str = Field(default="http://localhost:3000")
    login_success_path: str = Field(default="/dashboard")
    login_failure_path: str = Field(default="/")
    cors_origins: list[str] = Field(default=["http://localhost:3000"])

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=5000)

    @property
    def login_success_url(self) -> str:
        return self.frontend_url.rstrip("/") + self.login_success_path

    @property
    def login_failure_url(self) -> str:
        return self.frontend_url.rstrip("/") + self.login_failure_path


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
