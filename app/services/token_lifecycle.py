"""
Helpers for retrieving and refreshing Bitrix24 OAuth tokens per portal.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from app.clients.bitrix_auth import BitrixOAuthClient, OAuthTokenExchangeError
from app.clients.sqlite_store import SQLiteCredentialStore
from app.core.errors import (
    NotAuthenticatedError,
    RefreshFailedError,
    ValidationFailedError,
)
from app.models.credentials import CredentialRecord
from app.schemas.install import AuthCodeInstall, DirectTokenInstall, HybridFormInstall

logger = logging.getLogger(__name__)


class TokenLifecycleManager:
    """Manages access to persisted Bitrix24 OAuth credentials."""

    REFRESH_BUFFER_SECONDS = 300

    def __init__(
        self,
        store: SQLiteCredentialStore,
        oauth_client: BitrixOAuthClient,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._oauth = oauth_client
        self._clock = clock

    def _now(self) -> int:
        return int(self._clock())

    async def get_valid_access_token(self, domain: str) -> str:
        """Return an access token that stays valid past the refresh buffer."""
        record = self._store.get(domain)
        if record is None:
            raise NotAuthenticatedError(f"No token found for domain: {domain}")

        if record.expires_within(self.REFRESH_BUFFER_SECONDS, now=self._now()):
            logger.debug("Token for %s is stale, refreshing", domain)
            record = await self.refresh(domain)
        return record.access_token

    async def refresh(self, domain: str) -> CredentialRecord:
        """Exchange the stored refresh token and overwrite the stored record."""
        existing = self._store.get(domain)
        if existing is None:
            raise RefreshFailedError(f"No token found for domain: {domain}")
        if not existing.refresh_token:
            raise RefreshFailedError(f"No refresh token stored for domain: {domain}")

        try:
            grant = await self._oauth.refresh_token(
                domain=domain, refresh_token=existing.refresh_token
            )
        except OAuthTokenExchangeError as exc:
            logger.error("Token refresh failed for %s: %s", domain, exc)
            raise RefreshFailedError(f"Token refresh failed: {exc}") from exc

        record = CredentialRecord.issue(
            domain=domain,
            member_id=existing.member_id,
            access_token=grant.access_token,
            refresh_token=grant.refresh_token,
            token_type=grant.token_type,
            scope=grant.scope or existing.scope,
            expires_in=grant.expires_in,
            now=self._now(),
        )
        if record.expires_within(self.REFRESH_BUFFER_SECONDS, now=self._now()):
            raise RefreshFailedError(
                f"Refreshed token for {domain} expires within "
                f"{self.REFRESH_BUFFER_SECONDS} seconds"
            )

        self._store.save(record)
        logger.info("Token refreshed successfully for domain %s", domain)
        return record

    async def exchange_code(self, request: AuthCodeInstall) -> CredentialRecord:
        """Complete a first-time install by exchanging its authorization code."""
        if not self._oauth.is_configured:
            raise ValidationFailedError(
                "BITRIX24_CLIENT_ID and BITRIX24_CLIENT_SECRET must be configured"
            )

        try:
            grant = await self._oauth.exchange_authorization_code(
                domain=request.domain, code=request.code, scope=request.scope
            )
        except OAuthTokenExchangeError as exc:
            logger.error("Token exchange failed for %s: %s", request.domain, exc)
            raise RefreshFailedError(f"Token exchange failed: {exc}") from exc

        record = CredentialRecord.issue(
            domain=request.domain,
            member_id=grant.member_id or request.member_id,
            access_token=grant.access_token,
            refresh_token=grant.refresh_token,
            token_type=grant.token_type,
            scope=grant.scope or request.scope,
            expires_in=grant.expires_in,
            now=self._now(),
        )
        self._store.save(record)
        logger.info("Installation completed for domain %s", request.domain)
        return record

    def store_direct_token(
        self, request: DirectTokenInstall | HybridFormInstall
    ) -> CredentialRecord:
        """Persist tokens the portal delivered already issued."""
        record = CredentialRecord.issue(
            domain=request.domain,
            member_id=request.member_id,
            access_token=request.access_token,
            refresh_token=request.refresh_token,
            scope=request.scope,
            expires_in=request.expires_in,
            now=self._now(),
        )
        self._store.save(record)
        return record

    def is_authenticated(self, domain: str) -> bool:
        return self._store.get(domain) is not None

    def list_credentials(self) -> list[CredentialRecord]:
        return self._store.list_all()

    def forget(self, domain: str) -> bool:
        return self._store.delete(domain)


__all__ = ["TokenLifecycleManager"]
