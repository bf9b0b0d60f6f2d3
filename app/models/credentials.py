"""
Domain models for OAuth credential persistence.
"""

from __future__ import annotations

import time
from typing import Optional

from pydantic import BaseModel, Field

DEFAULT_EXPIRES_IN = 3600
DEFAULT_TOKEN_TYPE = "Bearer"
DEFAULT_SCOPE = "user"


class TokenGrant(BaseModel):
    """Tokens returned by the Bitrix24 OAuth token endpoint."""

    access_token: str
    refresh_token: str = ""
    expires_in: int = DEFAULT_EXPIRES_IN
    token_type: str = DEFAULT_TOKEN_TYPE
    scope: Optional[str] = None
    member_id: Optional[str] = None


class CredentialRecord(BaseModel):
    """Represents the credential record stored for one Bitrix24 portal."""

    domain: str = Field(..., description="Portal host name, unique per record.")
    member_id: str = Field(..., description="Portal member identifier.")
    access_token: str
    refresh_token: str = ""
    token_type: str = DEFAULT_TOKEN_TYPE
    scope: str = DEFAULT_SCOPE
    expires_in: int = DEFAULT_EXPIRES_IN
    expires_at: int = Field(..., description="Epoch seconds when the access token expires.")
    created_at: int = Field(..., description="Epoch seconds when the record was written.")

    @classmethod
    def issue(
        cls,
        *,
        domain: str,
        member_id: str,
        access_token: str,
        refresh_token: str = "",
        token_type: str | None = None,
        scope: str | None = None,
        expires_in: int | None = None,
        now: int | None = None,
    ) -> "CredentialRecord":
        """Build a fresh record whose expiry is derived from its creation time."""
        created_at = int(time.time()) if now is None else now
        lifetime = int(expires_in or DEFAULT_EXPIRES_IN)
        return cls(
            domain=domain,
            member_id=member_id,
            access_token=access_token,
            refresh_token=refresh_token or "",
            token_type=token_type or DEFAULT_TOKEN_TYPE,
            scope=scope or DEFAULT_SCOPE,
            expires_in=lifetime,
            expires_at=created_at + lifetime,
            created_at=created_at,
        )

    def expires_within(self, buffer_seconds: int, *, now: int | None = None) -> bool:
        """Return True when the token expires inside ``buffer_seconds`` from now."""
        current = int(time.time()) if now is None else now
        return self.expires_at - buffer_seconds <= current

    def is_expired(self, *, now: int | None = None) -> bool:
        current = int(time.time()) if now is None else now
        return self.expires_at < current


__all__ = [
    "CredentialRecord",
    "DEFAULT_EXPIRES_IN",
    "DEFAULT_SCOPE",
    "DEFAULT_TOKEN_TYPE",
    "TokenGrant",
]
