"""
Bitrix24 OAuth utilities.

These helpers perform the authorization-code and refresh-token exchanges
against a portal's token endpoint.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

import httpx

from app.core.config import BitrixSettings
from app.models.credentials import DEFAULT_EXPIRES_IN, DEFAULT_TOKEN_TYPE, TokenGrant

logger = logging.getLogger(__name__)


class OAuthTokenExchangeError(Exception):
    """Raised when the token endpoint returns an error."""


class BitrixOAuthClient:
    """Exchange authorization codes and refresh tokens for access tokens."""

    def __init__(
        self,
        settings: BitrixSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self._settings.client_id and self._settings.client_secret)

    def token_url(self, domain: str) -> str:
        return self._settings.token_url_template.format(domain=domain)

    async def exchange_authorization_code(
        self, *, domain: str, code: str, scope: str | None = None
    ) -> TokenGrant:
        """Exchange an authorization code issued by ``domain`` for tokens."""
        payload = {
            "grant_type": "authorization_code",
            "client_id": self._settings.client_id,
            "client_secret": self._settings.client_secret,
            "code": code,
        }
        if scope:
            payload["scope"] = scope
        return await self._request_tokens(domain, payload)

    async def refresh_token(self, *, domain: str, refresh_token: str) -> TokenGrant:
        """Refresh the access token using a stored refresh token."""
        payload = {
            "grant_type": "refresh_token",
            "client_id": self._settings.client_id,
            "client_secret": self._settings.client_secret,
            "refresh_token": refresh_token,
        }
        return await self._request_tokens(domain, payload)

    async def _request_tokens(self, domain: str, payload: Dict[str, Any]) -> TokenGrant:
        url = self.token_url(domain)
        logger.debug("Requesting %s grant from %s", payload["grant_type"], url)
        try:
            async with httpx.AsyncClient(
                timeout=self._settings.http_timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.post(url, data=payload)
        except httpx.HTTPError as exc:
            raise OAuthTokenExchangeError(f"Token endpoint unreachable: {exc}") from exc

        try:
            token_payload = response.json()
        except ValueError:
            token_payload = {}
        if not isinstance(token_payload, dict):
            raise OAuthTokenExchangeError(
                f"Unexpected token payload (HTTP {response.status_code}): {response.text}"
            )

        if response.status_code != httpx.codes.OK or token_payload.get("error"):
            description = (
                token_payload.get("error_description")
                or token_payload.get("error")
                or response.text
            )
            raise OAuthTokenExchangeError(description)

        if not token_payload.get("access_token"):
            raise OAuthTokenExchangeError("Incomplete token payload returned from Bitrix24.")

        try:
            expires_in = int(token_payload.get("expires_in") or DEFAULT_EXPIRES_IN)
        except (TypeError, ValueError) as exc:
            raise OAuthTokenExchangeError(
                f"Invalid expires_in in token payload: {token_payload.get('expires_in')!r}"
            ) from exc

        return TokenGrant(
            access_token=token_payload["access_token"],
            refresh_token=token_payload.get("refresh_token") or "",
            expires_in=expires_in,
            token_type=token_payload.get("token_type") or DEFAULT_TOKEN_TYPE,
            scope=token_payload.get("scope") or None,
            member_id=token_payload.get("member_id") or None,
        )


__all__ = ["BitrixOAuthClient", "OAuthTokenExchangeError"]
