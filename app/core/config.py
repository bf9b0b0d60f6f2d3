"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app and the maintenance
scripts share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

import os

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


class BitrixSettings(BaseSettings):
    """Configuration required for talking to Bitrix24 portals."""

    client_id: str = Field(..., validation_alias="BITRIX24_CLIENT_ID")
    client_secret: str = Field(..., validation_alias="BITRIX24_CLIENT_SECRET")
    default_domain: Optional[str] = Field(
        None,
        validation_alias="BITRIX24_DOMAIN",
        description="Portal used when a request does not name its tenant.",
    )
    http_timeout_seconds: float = Field(30.0, validation_alias="BITRIX24_HTTP_TIMEOUT")
    token_url_template: str = Field(
        "https://{domain}/oauth/token/",
        validation_alias="BITRIX24_TOKEN_URL",
        description="OAuth token endpoint; '{domain}' is replaced by the portal.",
    )


class StorageSettings(BaseSettings):
    """Locations of the credential database and its JSON mirror."""

    db_path: str = Field("./data/tokens.db", validation_alias="DB_PATH")
    backup_path: str = Field("./data/tokens.json", validation_alias="TOKEN_BACKUP_PATH")


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    token_encryption_secret: Optional[str] = Field(
        None,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "Secret used to derive the symmetric key for encrypting stored tokens."
        ),
    )


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    bitrix: BitrixSettings = Field(default_factory=BitrixSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "BitrixSettings",
    "SecuritySettings",
    "StorageSettings",
    "get_settings",
]
