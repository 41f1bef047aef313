"""Application configuration helpers."""

from __future__ import annotations

from functools import lru_cache
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

PROJECT_ROOT = Path(__file__).resolve().parents[3]
DEFAULT_DATA_DIR = PROJECT_ROOT / "data"
DEFAULT_DATABASE_URL = f"sqlite:///{DEFAULT_DATA_DIR / 'haku.db'}"
DEFAULT_ALLOW_ORIGINS = ("http://localhost:3000", "http://localhost:5173")


class AppConfig(BaseModel):
    """Runtime configuration loaded from environment variables."""

    model_config = ConfigDict(frozen=True)

    database_url: str = Field(
        default=DEFAULT_DATABASE_URL,
        description="SQLAlchemy URL of the content store",
    )
    jwt_secret_key: Optional[str] = Field(
        default=None,
        description="HMAC secret for JWT signing (required to issue session tokens)",
    )
    enable_local_mode: bool = Field(
        default=False,
        description="Allow local-dev token bypass when running locally (opt-in)",
    )
    local_dev_token: Optional[str] = Field(
        default=None,
        description="Static token accepted in local mode for development",
    )
    admin_api_key: Optional[str] = Field(
        default=None,
        description="Static key expected in the Api-Key header of admin endpoints",
    )
    allow_origins: tuple[str, ...] = Field(
        default=DEFAULT_ALLOW_ORIGINS,
        description="CORS origins allowed to call the API",
    )
    port: int = Field(default=8000, ge=1, le=65535)

    @field_validator("jwt_secret_key", mode="before")
    @classmethod
    def _ensure_secret(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        if not cleaned:
            raise ValueError(
                "JWT_SECRET_KEY cannot be empty; unset the variable to disable JWT auth in local mode"
            )
        if len(cleaned) < 16:
            raise ValueError("JWT_SECRET_KEY must be at least 16 characters")
        return cleaned

    @field_validator("admin_api_key", mode="before")
    @classmethod
    def _blank_key_disables_admin(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None

    @field_validator("allow_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: str | tuple[str, ...] | list[str]) -> tuple[str, ...]:
        if isinstance(value, str):
            return tuple(origin.strip() for origin in value.split(",") if origin.strip())
        return tuple(value)

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


def _read_env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(key, default)


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Load and cache application configuration."""
    enable_local_mode = _read_env("ENABLE_LOCAL_MODE", "false").lower() in {"1", "true", "yes"}

    config = AppConfig(
        database_url=_read_env("DATABASE_URL", DEFAULT_DATABASE_URL),
        jwt_secret_key=_read_env("JWT_SECRET_KEY"),
        enable_local_mode=enable_local_mode,
        local_dev_token=_read_env("LOCAL_DEV_TOKEN"),
        admin_api_key=_read_env("ADMIN_API_KEY"),
        allow_origins=_read_env("ALLOW_ORIGINS", ",".join(DEFAULT_ALLOW_ORIGINS)),
        port=int(_read_env("PORT", "8000")),
    )
    # The default SQLite file lives under data/, create it for downstream services.
    if config.database_url == DEFAULT_DATABASE_URL:
        DEFAULT_DATA_DIR.mkdir(parents=True, exist_ok=True)
    return config


def reload_config() -> AppConfig:
    """Clear cached config (useful for tests) and reload."""
    get_config.cache_clear()
    return get_config()


__all__ = ["AppConfig", "get_config", "reload_config", "PROJECT_ROOT", "DEFAULT_DATABASE_URL"]
