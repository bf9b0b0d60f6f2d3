"""
Error taxonomy shared by the token lifecycle, gateway and contact services.

Each error carries the HTTP status and summary message used when it reaches
the API boundary.
"""

from __future__ import annotations

from http import HTTPStatus
from typing import Optional


class BridgeError(Exception):
    """Base class for failures surfaced to API clients."""

    status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR
    message: str = "Request failed"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.message)
        self.detail = detail or self.message


class NotAuthenticatedError(BridgeError):
    """Raised when no credential record exists for a domain."""

    status_code = HTTPStatus.UNAUTHORIZED
    message = "Domain not authenticated. Please install the app first."


class RefreshFailedError(BridgeError):
    """Raised when a refresh token cannot be exchanged for new credentials."""

    status_code = HTTPStatus.UNAUTHORIZED
    message = "Token refresh failed"


class AuthenticationFailedError(BridgeError):
    """Raised when a remote call is still unauthorized after one refresh."""

    status_code = HTTPStatus.UNAUTHORIZED
    message = "Authentication failed and token refresh unsuccessful"


class RemoteTimeoutError(BridgeError):
    status_code = HTTPStatus.REQUEST_TIMEOUT
    message = "Request timeout - Bitrix24 API is not responding"


class RemoteUnreachableError(BridgeError):
    status_code = HTTPStatus.SERVICE_UNAVAILABLE
    message = "Network error - Unable to connect to Bitrix24"


class RemoteApiError(BridgeError):
    """Raised when Bitrix24 reports a business error in its response envelope."""

    message = "Bitrix24 API error"

    def __init__(
        self,
        description: str | None = None,
        *,
        code: Optional[str] = None,
        http_status: Optional[int] = None,
    ) -> None:
        super().__init__(f"Bitrix24 API Error: {description or code or 'unknown error'}")
        self.code = code
        self.description = description
        self.http_status = http_status

    @property
    def is_not_found(self) -> bool:
        """Whether the remote side reported a missing entity."""
        code = (self.code or "").lower().replace("_", " ")
        description = (self.description or "").lower()
        return "not found" in code or "not found" in description


class NotFoundError(BridgeError):
    status_code = HTTPStatus.NOT_FOUND
    message = "Resource not found"


class ValidationFailedError(BridgeError):
    """Raised for malformed input that passed schema parsing."""

    status_code = HTTPStatus.BAD_REQUEST
    message = "Invalid request"


__all__ = [
    "AuthenticationFailedError",
    "BridgeError",
    "NotAuthenticatedError",
    "NotFoundError",
    "RefreshFailedError",
    "RemoteApiError",
    "RemoteTimeoutError",
    "RemoteUnreachableError",
    "ValidationFailedError",
]
