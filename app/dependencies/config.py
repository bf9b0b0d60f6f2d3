"""
FastAPI dependency utilities for injecting configuration.
"""

from functools import lru_cache

from fastapi import Depends

from app.core.config import AppSettings, BitrixSettings, get_settings


@lru_cache()
def _settings_singleton() -> AppSettings:
    """Ensure configuration is created once per process."""
    return get_settings()


def get_app_settings() -> AppSettings:
    """FastAPI dependency returning application settings."""
    return _settings_singleton()


def get_bitrix_settings(
    settings: AppSettings = Depends(get_app_settings),
) -> BitrixSettings:
    """FastAPI dependency returning the Bitrix24 settings group."""
    return settings.bitrix


SettingsDependency = Depends(get_app_settings)

__all__ = ["SettingsDependency", "get_app_settings", "get_bitrix_settings"]
