"""
Single choke point for authenticated Bitrix24 REST calls.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from app.clients.bitrix_rest import BitrixResponse, BitrixRestClient, RemoteUnauthorizedError
from app.core.errors import AuthenticationFailedError, RefreshFailedError
from app.services.token_lifecycle import TokenLifecycleManager

logger = logging.getLogger(__name__)


class BitrixGateway:
    """Call any REST method on behalf of a portal, retrying once after a 401."""

    def __init__(self, token_manager: TokenLifecycleManager, rest_client: BitrixRestClient) -> None:
        self._tokens = token_manager
        self._rest = rest_client

    async def call(
        self, domain: str, method: str, payload: Dict[str, Any] | None = None
    ) -> Any:
        """Return the ``result`` member of the remote envelope."""
        response = await self.call_envelope(domain, method, payload)
        return response.result

    async def call_envelope(
        self, domain: str, method: str, payload: Dict[str, Any] | None = None
    ) -> BitrixResponse:
        access_token = await self._tokens.get_valid_access_token(domain)
        try:
            response = await self._rest.invoke(
                domain=domain, method=method, access_token=access_token, payload=payload
            )
        except RemoteUnauthorizedError:
            logger.info("Bitrix24 rejected token for %s on %s; refreshing", domain, method)
            access_token = await self._refresh_after_rejection(domain)
            try:
                response = await self._rest.invoke(
                    domain=domain, method=method, access_token=access_token, payload=payload
                )
            except RemoteUnauthorizedError as exc:
                logger.error("Retry of %s for %s was rejected again", method, domain)
                raise AuthenticationFailedError() from exc

        logger.debug("API call successful: %s", method)
        return response

    async def _refresh_after_rejection(self, domain: str) -> str:
        try:
            record = await self._tokens.refresh(domain)
        except RefreshFailedError as exc:
            raise AuthenticationFailedError() from exc
        return record.access_token


__all__ = ["BitrixGateway"]
