"""Schemas for the three install payload shapes Bitrix24 can deliver."""

from __future__ import annotations

from typing import Annotated, Any, Literal, Mapping, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from app.core.errors import ValidationFailedError
from app.models.credentials import DEFAULT_EXPIRES_IN, DEFAULT_SCOPE

UNKNOWN_MEMBER = "unknown"
DOMAIN_PATTERN = r"^[A-Za-z0-9.-]+(:\d+)?$"


class DirectTokenInstall(BaseModel):
    """``ONAPPINSTALL`` event carrying an already issued ``auth`` block."""

    kind: Literal["direct_token"] = "direct_token"
    domain: str = Field(..., min_length=1, pattern=DOMAIN_PATTERN)
    access_token: str = Field(..., min_length=1)
    refresh_token: str = ""
    member_id: str = UNKNOWN_MEMBER
    expires_in: int = DEFAULT_EXPIRES_IN
    scope: str = DEFAULT_SCOPE
    client_endpoint: Optional[str] = None
    server_endpoint: Optional[str] = None


class HybridFormInstall(BaseModel):
    """Application frame opened with ``AUTH_ID``/``DOMAIN`` in body or query."""

    kind: Literal["hybrid_form"] = "hybrid_form"
    domain: str = Field(..., min_length=1, pattern=DOMAIN_PATTERN)
    access_token: str = Field(..., min_length=1)
    refresh_token: str = ""
    member_id: str = UNKNOWN_MEMBER
    expires_in: int = DEFAULT_EXPIRES_IN
    scope: str = DEFAULT_SCOPE
    placement: Optional[str] = None
    lang: Optional[str] = None
    protocol: Optional[str] = None

    @field_validator("expires_in", mode="before")
    @classmethod
    def _lenient_expiry(cls, value: Any) -> int:
        """``AUTH_EXPIRES`` arrives as a string and is sometimes blank."""
        try:
            return int(value) or DEFAULT_EXPIRES_IN
        except (TypeError, ValueError):
            return DEFAULT_EXPIRES_IN


class AuthCodeInstall(BaseModel):
    """Classic OAuth redirect carrying an authorization ``code``."""

    kind: Literal["auth_code"] = "auth_code"
    code: str = Field(..., min_length=1)
    domain: str = Field(..., min_length=1, pattern=DOMAIN_PATTERN)
    member_id: str = UNKNOWN_MEMBER
    scope: str = DEFAULT_SCOPE


InstallPayload = Annotated[
    Union[DirectTokenInstall, HybridFormInstall, AuthCodeInstall],
    Field(discriminator="kind"),
]


class InstallResponse(BaseModel):
    success: bool = True
    message: str
    domain: str
    member_id: str
    timestamp: str


def _collapse_brackets(data: Mapping[str, Any]) -> dict[str, Any]:
    """Turn form keys such as ``auth[access_token]`` into nested dicts."""
    collapsed: dict[str, Any] = {}
    for key, value in data.items():
        if "[" in key and key.endswith("]"):
            outer, _, inner = key[:-1].partition("[")
            nested = collapsed.setdefault(outer, {})
            if isinstance(nested, dict):
                nested[inner] = value
            continue
        collapsed[key] = value
    return collapsed


def _pick(key: str, *sources: Mapping[str, Any]) -> Any:
    for source in sources:
        value = source.get(key)
        if value not in (None, ""):
            return value
    return None


def _drop_empty(values: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


def classify_install_payload(
    body: Mapping[str, Any], query: Mapping[str, Any]
) -> Optional[str]:
    """Return the payload ``kind`` or ``None`` when no shape matches."""
    body = _collapse_brackets(body)
    if body.get("event") == "ONAPPINSTALL" and isinstance(body.get("auth"), dict):
        return "direct_token"
    if _pick("AUTH_ID", body, query) and _pick("DOMAIN", body, query):
        return "hybrid_form"
    if _pick("code", body, query):
        return "auth_code"
    return None


def parse_install_payload(
    body: Mapping[str, Any], query: Mapping[str, Any]
) -> DirectTokenInstall | HybridFormInstall | AuthCodeInstall:
    """Discriminate and validate an install request."""
    kind = classify_install_payload(body, query)
    body = _collapse_brackets(body)

    try:
        if kind == "direct_token":
            auth = body["auth"]
            return DirectTokenInstall(
                **_drop_empty(
                    {
                        "domain": auth.get("domain"),
                        "access_token": auth.get("access_token"),
                        "refresh_token": auth.get("refresh_token") or "",
                        "member_id": auth.get("member_id"),
                        "expires_in": auth.get("expires_in") or None,
                        "scope": auth.get("scope") or None,
                        "client_endpoint": auth.get("client_endpoint"),
                        "server_endpoint": auth.get("server_endpoint"),
                    }
                )
            )
        if kind == "hybrid_form":
            return HybridFormInstall(
                **_drop_empty(
                    {
                        "domain": _pick("DOMAIN", body, query),
                        "access_token": _pick("AUTH_ID", body, query),
                        "refresh_token": _pick("REFRESH_ID", body, query) or "",
                        "member_id": _pick("member_id", body, query),
                        "expires_in": _pick("AUTH_EXPIRES", body, query),
                        "placement": _pick("PLACEMENT", body, query),
                        "lang": _pick("LANG", body, query),
                        "protocol": _pick("PROTOCOL", body, query),
                    }
                )
            )
        if kind == "auth_code":
            return AuthCodeInstall(
                **_drop_empty(
                    {
                        "code": _pick("code", body, query),
                        "domain": _pick("domain", body, query),
                        "member_id": _pick("member_id", body, query),
                        "scope": _pick("scope", body, query),
                    }
                )
            )
    except ValidationError as exc:
        raise ValidationFailedError(
            f"Invalid install payload: {exc.errors()[0].get('msg', 'invalid value')}"
        ) from exc

    raise ValidationFailedError("Missing required parameters")


__all__ = [
    "AuthCodeInstall",
    "DOMAIN_PATTERN",
    "DirectTokenInstall",
    "HybridFormInstall",
    "InstallPayload",
    "InstallResponse",
    "classify_install_payload",
    "parse_install_payload",
]
