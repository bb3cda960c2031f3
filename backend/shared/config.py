"""
Central configuration for the live score sync service.
Uses pydantic-settings for env-based config with validation.
"""
from __future__ import annotations

import os
from enum import Enum
from functools import lru_cache
from typing import Optional
from urllib.parse import urlparse

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    DEV = "dev"
    STAGING = "staging"
    PRODUCTION = "production"


class ConfigurationError(Exception):
    """Raised when required credentials are missing; aborts before any work."""


def _asyncpg_url(raw: str) -> str:
    if raw.startswith("postgres://"):
        return "postgresql+asyncpg://" + raw[len("postgres://") :]
    if raw.startswith("postgresql://") and "+asyncpg" not in raw:
        return raw.replace("postgresql://", "postgresql+asyncpg://", 1)
    return raw


class Settings(BaseSettings):
    """Root settings shared by the trigger, the pipeline and its collaborators."""

    model_config = SettingsConfigDict(
        env_prefix="LS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── General ──────────────────────────────────────────────
    environment: Environment = Environment.DEV
    debug: bool = False
    log_level: str = "INFO"
    instance_id: str = Field(default="", description="Identifier of the warm execution environment")

    # ── Postgres ─────────────────────────────────────────────
    database_url: Optional[str] = Field(default=None, description="Store connection URL (asyncpg driver)")
    db_pool_min: int = 1
    db_pool_max: int = 5
    db_command_timeout: int = 15

    # ── Federation score API ─────────────────────────────────
    vis_base_url: str = "https://www.fivb.org/Vis2009/XmlRequest.asmx"
    vis_app_id: str = ""
    vis_request_timeout_s: float = 10.0

    # ── HTTP trigger ─────────────────────────────────────────
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: list[str] = ["*"]

    # ── Observability ────────────────────────────────────────
    metrics_enabled: bool = True
    metrics_port: int = 9090

    @model_validator(mode="after")
    def use_platform_fallbacks(self) -> "Settings":
        """Pick up DATABASE_URL / FIVB_API_KEY when the LS_ variables are not set."""
        if not self.database_url:
            raw = os.environ.get("DATABASE_URL") or os.environ.get("SUPABASE_DB_URL")
            if raw:
                self.database_url = raw
        if self.database_url:
            self.database_url = _asyncpg_url(self.database_url)
        if not self.vis_app_id:
            self.vis_app_id = os.environ.get("FIVB_API_KEY", "")
        return self

    def require_credentials(self) -> None:
        """Raise ConfigurationError unless store and upstream credentials are present."""
        missing = []
        if not self.database_url:
            missing.append("LS_DATABASE_URL")
        if not self.vis_app_id:
            missing.append("LS_VIS_APP_ID")
        if missing:
            raise ConfigurationError(
                f"Missing required environment variable(s): {', '.join(missing)}"
            )

    @property
    def database_url_safe_log(self) -> str:
        """URL with password redacted, for logging only."""
        if not self.database_url:
            return "<unset>"
        try:
            u = urlparse(self.database_url)
            netloc = f"{u.username or '?'}@***" + (f":{u.port}" if u.port else "")
            path = u.path or "/?"
            return f"{u.scheme}://{netloc}{path}"
        except ValueError:
            return "postgresql+asyncpg://***"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton access to validated settings."""
    return Settings()
