"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_bitrix_gateway,
    get_bitrix_oauth_client,
    get_bitrix_rest_client,
    get_contacts_service,
    get_credential_store,
    get_install_service,
    get_tenant_domain,
    get_token_cipher_service,
    get_token_manager,
)
from .config import SettingsDependency, get_app_settings, get_bitrix_settings

__all__ = [
    "SettingsDependency",
    "get_app_settings",
    "get_bitrix_settings",
    "get_bitrix_gateway",
    "get_bitrix_oauth_client",
    "get_bitrix_rest_client",
    "get_contacts_service",
    "get_credential_store",
    "get_install_service",
    "get_tenant_domain",
    "get_token_cipher_service",
    "get_token_manager",
]
