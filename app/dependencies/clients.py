"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from functools import lru_cache

from fastapi import Depends, Header, Query

from app.clients import BitrixOAuthClient, BitrixRestClient, SQLiteCredentialStore
from app.core.config import BitrixSettings, get_settings
from app.core.errors import ValidationFailedError
from app.dependencies.config import get_bitrix_settings
from app.services import (
    BitrixGateway,
    ContactsService,
    InstallService,
    TokenCipherService,
    TokenLifecycleManager,
)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_token_cipher_service() -> TokenCipherService:
    """Provide symmetric encryption helper for token storage."""
    settings = _settings()
    secret = settings.security.token_encryption_secret or settings.bitrix.client_secret
    return TokenCipherService(secret=secret)


@lru_cache()
def get_credential_store() -> SQLiteCredentialStore:
    """Provide the shared SQLite credential store."""
    settings = _settings()
    return SQLiteCredentialStore(
        settings.storage.db_path,
        backup_path=settings.storage.backup_path,
        cipher=get_token_cipher_service(),
    )


@lru_cache()
def get_bitrix_oauth_client() -> BitrixOAuthClient:
    """Create a singleton Bitrix24 OAuth client."""
    return BitrixOAuthClient(_settings().bitrix)


@lru_cache()
def get_bitrix_rest_client() -> BitrixRestClient:
    return BitrixRestClient(timeout_seconds=_settings().bitrix.http_timeout_seconds)


@lru_cache()
def get_token_manager() -> TokenLifecycleManager:
    """Provide helper for managing per-portal OAuth tokens."""
    return TokenLifecycleManager(
        store=get_credential_store(),
        oauth_client=get_bitrix_oauth_client(),
    )


@lru_cache()
def get_bitrix_gateway() -> BitrixGateway:
    return BitrixGateway(get_token_manager(), get_bitrix_rest_client())


def get_install_service() -> InstallService:
    """Build the install flow using the shared token manager and gateway."""
    return InstallService(get_token_manager(), get_bitrix_gateway())


def get_contacts_service() -> ContactsService:
    """Build the contact orchestrator over the shared gateway."""
    return ContactsService(get_bitrix_gateway())


def get_tenant_domain(
    x_bitrix_domain: str | None = Header(
        default=None, description="Bitrix24 portal the request acts on."
    ),
    domain: str | None = Query(
        default=None, description="Bitrix24 portal; overrides the configured default."
    ),
    bitrix: BitrixSettings = Depends(get_bitrix_settings),
) -> str:
    """Resolve the tenant for contact requests: header, query, then settings."""
    resolved = x_bitrix_domain or domain or bitrix.default_domain
    if not resolved:
        raise ValidationFailedError(
            "No Bitrix24 domain given; send X-Bitrix-Domain or ?domain=, "
            "or configure BITRIX24_DOMAIN"
        )
    return resolved


__all__ = [
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
