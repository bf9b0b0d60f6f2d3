"""
Thin HTTP wrapper around the Bitrix24 REST endpoint of a portal.

One call is one round trip; authentication policy lives in the gateway.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel, ConfigDict

from app.core.errors import RemoteApiError, RemoteTimeoutError, RemoteUnreachableError

logger = logging.getLogger(__name__)


class BitrixResponse(BaseModel):
    """Success envelope returned by ``/rest/<method>``."""

    model_config = ConfigDict(extra="allow")

    result: Any = None
    total: Optional[int] = None
    next: Optional[int] = None
    time: Optional[Dict[str, Any]] = None


class RemoteUnauthorizedError(Exception):
    """The portal rejected the access token with HTTP 401."""


class BitrixRestClient:
    """Issue authenticated POST calls to a portal's REST API."""

    def __init__(
        self,
        *,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout_seconds
        self._transport = transport

    async def invoke(
        self,
        *,
        domain: str,
        method: str,
        access_token: str,
        payload: Dict[str, Any] | None = None,
    ) -> BitrixResponse:
        url = f"https://{domain}/rest/{method}"
        body = {**(payload or {}), "auth": access_token}
        logger.debug("Calling Bitrix24 API %s for domain %s", method, domain)

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(url, json=body)
        except httpx.TimeoutException as exc:
            raise RemoteTimeoutError() from exc
        except httpx.TransportError as exc:
            raise RemoteUnreachableError(
                f"Network error - Unable to connect to {domain}: {exc}"
            ) from exc

        if response.status_code == httpx.codes.UNAUTHORIZED:
            raise RemoteUnauthorizedError(response.text)

        try:
            data = response.json()
        except ValueError as exc:
            raise RemoteApiError(
                f"Unexpected non-JSON response (HTTP {response.status_code})",
                http_status=response.status_code,
            ) from exc

        if not isinstance(data, dict):
            raise RemoteApiError("Unexpected response envelope", http_status=response.status_code)

        if data.get("error") is not None:
            raise RemoteApiError(
                data.get("error_description") or str(data["error"]),
                code=str(data["error"]),
                http_status=response.status_code,
            )

        if response.is_error:
            raise RemoteApiError(
                f"HTTP {response.status_code}", http_status=response.status_code
            )

        return BitrixResponse.model_validate(data)


__all__ = ["BitrixResponse", "BitrixRestClient", "RemoteUnauthorizedError"]
